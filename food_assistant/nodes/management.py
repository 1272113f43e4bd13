# nodes/management.py
from food_assistant.state import Deps, Intent, ResultType
from food_assistant.utils.nlu import clarifying_questions
from food_assistant.utils.validation import guard_node, respond

GREETINGS = (
    "Hello! 👋 I'm your personal food assistant. I can help you discover restaurants, get personalized "
    "recommendations, browse menus, track orders, and much more. What would you like today?",
    "Hey there! Ready to help you find something delicious. Want me to suggest something based on your "
    "taste or show you what's trending?",
    "Hi! I'm here to make your food ordering experience seamless. Ask me anything about restaurants, "
    "menus, or let me recommend something special for you!",
)

HELP_TEXT = """Here's what I can do for you:

**🍽️ Ordering & Cart**
• "Order biryani from Paradise"
• "Add 2 pizzas to cart"
• "Show my cart" / "Place order"

**💡 Recommendations**
• "Recommend something spicy"
• "What should I eat for dinner?"
• "Show my usuals"
• "What's trending?"

**🔍 Search & Discovery**
• "Show vegetarian options under ₹200"
• "Find the cheapest pizza"
• "Compare Dominos vs Pizza Hut"

**📊 Nutrition & Diet**
• "How many calories in biryani?"
• "Show healthy options"
• "I'm allergic to peanuts"

**📦 Tracking**
• "Where is my order?"
• "Track my delivery"

Just ask naturally and I'll help!"""


@guard_node(name="Greeting", result_type=ResultType.GREETING, tags=["management"])
def greeting_node(state, deps: Deps):
    return respond(ResultType.GREETING, Intent.GREETING, deps.rng.choice(GREETINGS))


@guard_node(name="Help", result_type=ResultType.HELP, tags=["management"])
def help_node(state, deps: Deps):
    return respond(ResultType.HELP, Intent.HELP, HELP_TEXT)


@guard_node(name="Clarify", result_type=ResultType.CLARIFY, tags=["management"])
def clarify_node(state, deps: Deps):
    questions = clarifying_questions(state.get("utterance", ""), state.get("history") or [], state.get("entities"))
    text = "\n".join(questions) if questions else "Could you please provide more details?"
    return respond(ResultType.CLARIFY, Intent.CLARIFY, text)


@guard_node(name="Conversation", result_type=ResultType.CONVERSATION, tags=["management"])
def conversation_node(state, deps: Deps):
    # empty response: the caller forwards the turn to the open-ended chat
    return respond(ResultType.CONVERSATION, Intent.CONVERSATION, "")
