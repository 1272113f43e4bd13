# nodes/discovery.py
"""Usuals, recommendations, trending, healthy picks and combos."""
import re
from typing import List

from food_assistant.agents.cart_agent import fetch_cart
from food_assistant.schemas import RecommendationOptions, RecommendedItem
from food_assistant.state import Deps, Intent, ResultType
from food_assistant.utils.catalog import find_menu_item
from food_assistant.utils.config import DEFAULT_BUDGET, RECOMMEND_LIMIT, RECOMMEND_SHOWN, USUALS_COMPUTED, USUALS_SHOWN
from food_assistant.utils.profile import get_usuals
from food_assistant.utils.recommendation import combo_suggestions, recommend, similar_to, trending
from food_assistant.utils.validation import guard_node, respond

_SIMILAR = re.compile(r"\b(?:similar to|something like|like the)\s+(.+?)\s*(?:[?.!]|$)", re.I)


def _with_reasons(recs: List[RecommendedItem]) -> str:
    return "\n\n".join(
        f"{i}. **{r.name}** - ₹{r.price:g} from {r.restaurant_name}\n   {r.match_reason}"
        for i, r in enumerate(recs[:RECOMMEND_SHOWN], 1)
    )


@guard_node(name="Usuals", result_type=ResultType.USUALS, tags=["discovery"])
def usuals_node(state, deps: Deps):
    usuals = get_usuals(deps.store, state["user_id"], limit=USUALS_COMPUTED)
    if not usuals:
        return respond(ResultType.USUALS, Intent.USUALS,
                       "You don't have any usual orders yet. Once you order a few times, I'll remember your favorites!")
    listing = "\n".join(
        f"{i}. **{u.item_name}** from {u.restaurant_name} (ordered {u.order_count}x)"
        for i, u in enumerate(usuals[:USUALS_SHOWN], 1)
    )
    return respond(ResultType.USUALS, Intent.USUALS,
                   f"Here are your usuals:\n\n{listing}\n\nWould you like me to add any of these to your cart?",
                   data=[u.model_dump() for u in usuals])


def _recommend(state, deps: Deps, intent: Intent):
    utterance = state.get("utterance", "")
    m = _SIMILAR.search(utterance)
    if m:
        ref = find_menu_item(deps.store, m.group(1))
        if ref is not None:
            recs = similar_to(deps.store, ref.id, limit=RECOMMEND_SHOWN)
            if not recs:
                return respond(ResultType.RECOMMENDATION, intent,
                               f"I couldn't find dishes similar to {ref.name}. Try adjusting your request!")
            return respond(ResultType.RECOMMENDATION, intent,
                           f"If you like {ref.name}, you might enjoy:\n\n{_with_reasons(recs)}",
                           data=[r.model_dump() for r in recs])

    e = state["entities"]
    recs = recommend(deps.store, state["user_id"], RecommendationOptions(
        budget=e.budget, category=e.category, spice_level=e.spice_level,
        is_vegetarian=e.is_vegetarian, limit=RECOMMEND_LIMIT,
    ))
    if not recs:
        return respond(ResultType.RECOMMENDATION, intent,
                       "I couldn't find recommendations matching your criteria. Try adjusting your preferences!")
    return respond(
        ResultType.RECOMMENDATION, intent,
        f"Based on your taste profile, here are my recommendations:\n\n{_with_reasons(recs)}"
        "\n\nWould you like to add any of these to your cart?",
        data=[r.model_dump() for r in recs],
    )


@guard_node(name="Recommend", result_type=ResultType.RECOMMENDATION, tags=["discovery"])
def recommend_node(state, deps: Deps):
    return _recommend(state, deps, Intent.RECOMMEND)


@guard_node(name="SuggestByTaste", result_type=ResultType.RECOMMENDATION, tags=["discovery"])
def suggest_by_taste_node(state, deps: Deps):
    return _recommend(state, deps, Intent.SUGGEST_BY_TASTE)


@guard_node(name="SuggestByBudget", result_type=ResultType.RECOMMENDATION, tags=["discovery"])
def suggest_by_budget_node(state, deps: Deps):
    e = state["entities"]
    budget = e.budget or DEFAULT_BUDGET
    recs = recommend(deps.store, state["user_id"], RecommendationOptions(
        budget=budget, is_vegetarian=e.is_vegetarian, category=e.category, limit=RECOMMEND_LIMIT,
    ))
    if not recs:
        return respond(ResultType.RECOMMENDATION, Intent.SUGGEST_BY_BUDGET,
                       f"I couldn't find any options under ₹{budget:g}. Try adjusting your budget or filters!")
    listing = "\n".join(
        f"{i}. **{r.name}** - ₹{r.price:g} from {r.restaurant_name}" for i, r in enumerate(recs[:RECOMMEND_SHOWN], 1)
    )
    return respond(ResultType.RECOMMENDATION, Intent.SUGGEST_BY_BUDGET,
                   f"Here are options under ₹{budget:g}:\n\n{listing}", data=[r.model_dump() for r in recs])


@guard_node(name="Trending", result_type=ResultType.TRENDING, tags=["discovery"])
def trending_node(state, deps: Deps):
    items = trending(deps.store, limit=RECOMMEND_LIMIT, clock=deps.clock)
    if not items:
        return respond(ResultType.TRENDING, Intent.TRENDING,
                       "I couldn't find enough recent orders to show trending items yet. Try browsing our restaurants!")
    listing = "\n\n".join(
        f"{i}. **{t.name}** - ₹{t.price:g} from {t.restaurant_name}\n   🔥 {t.match_reason}"
        for i, t in enumerate(items[:RECOMMEND_SHOWN], 1)
    )
    return respond(ResultType.TRENDING, Intent.TRENDING, f"Here's what's trending this week:\n\n{listing}",
                   data=[t.model_dump() for t in items])


@guard_node(name="HealthyOptions", result_type=ResultType.HEALTHY, tags=["discovery"])
def healthy_options_node(state, deps: Deps):
    e = state["entities"]
    recs = recommend(deps.store, state["user_id"], RecommendationOptions(
        is_healthy=True, budget=e.budget, is_vegetarian=e.is_vegetarian, limit=RECOMMEND_LIMIT,
    ))
    if not recs:
        return respond(ResultType.HEALTHY, Intent.HEALTHY_OPTIONS,
                       "I couldn't find healthy options matching your criteria. Try adjusting your budget or filters!")
    listing = "\n\n".join(
        f"{i}. **{h.name}** - ₹{h.price:g}{f' ({h.calories} kcal)' if h.calories else ''}\n   from {h.restaurant_name}"
        for i, h in enumerate(recs[:RECOMMEND_SHOWN], 1)
    )
    return respond(ResultType.HEALTHY, Intent.HEALTHY_OPTIONS, f"Here are some healthy options for you:\n\n{listing}",
                   data=[h.model_dump() for h in recs])


@guard_node(name="Combos", result_type=ResultType.COMBOS, tags=["discovery"])
def combos_node(state, deps: Deps):
    cart = [l.item for l in fetch_cart(deps.store, state["user_id"]) if l.item is not None]
    combos = combo_suggestions(deps.store, cart)
    if not combos.drink and not combos.dessert:
        return respond(ResultType.COMBOS, Intent.COMBOS,
                       "Add a main dish to your cart and I'll suggest perfect pairings!", data=combos.model_dump())
    text = "Here are some combo suggestions:\n\n"
    if combos.drink:
        text += f"🥤 **{combos.drink.name}** - ₹{combos.drink.price:g} - {combos.drink.match_reason}\n"
    if combos.dessert:
        text += f"🍰 **{combos.dessert.name}** - ₹{combos.dessert.price:g} - {combos.dessert.match_reason}\n"
    return respond(ResultType.COMBOS, Intent.COMBOS, text.rstrip(), data=combos.model_dump())
