# utils/nlu.py
"""
Deterministic lexical intent/entity extraction.

``INTENT_RULES`` is evaluated top to bottom and the first predicate that fires wins.
Rules are ordered from most specific to most general; moving a broad rule above a
narrow one makes the narrow one unreachable for overlapping phrasings.
Entity extraction is independent of the chosen intent.
"""
from __future__ import annotations

import re
from typing import Callable, List, NamedTuple, Optional, Sequence, Tuple

from langsmith import traceable

from food_assistant.schemas import Entities, ItemRequest
from food_assistant.state import Intent
from food_assistant.utils.catalog import fold_plural


class Classification(NamedTuple):
    intent: Intent
    entities: Entities


def _norm(s: str) -> str:
    return re.sub(r"\s+", " ", (s or "").lower()).strip()


# ========= Vocab =========
KNOWN_RESTAURANTS = (
    "absolute barbecue", "ab's absolute barbecue", "pizza hut", "burger king", "paradise",
    "dominos", "domino's", "domino", "subway", "kfc", "kentucky", "shadab", "bawarchi",
    "meghana", "ulavacharu", "mcdonalds", "mcdonald's",
)
CUISINES = (
    "south indian", "north indian", "hyderabadi", "indian", "chinese", "italian", "mexican",
    "japanese", "thai", "continental", "american", "mughlai", "fast food", "andhra",
)
DISH_WORDS = (
    "fried rice", "ice cream", "biryani", "pizza", "burger", "sub", "chicken", "sushi", "roll",
    "mutton", "paneer", "dosa", "idli", "noodles", "kebab", "shawarma", "sandwich", "pasta",
    "coffee", "tea", "lassi", "coke", "fries", "naan",
)
CATEGORY_WORDS: Tuple[Tuple[str, str], ...] = (
    (r"\bmain ?course\b|\bmains?\b", "Main Course"),
    (r"\bbiryanis?\b", "Biryani"),
    (r"\bpizzas?\b", "Pizza"),
    (r"\bburgers?\b", "Burger"),
    (r"\bdesserts?\b|\bsweets?\b", "Dessert"),
    (r"\bdrinks?\b|\bbeverages?\b|\bjuices?\b|\bshakes?\b", "Beverage"),
    (r"\bstarters?\b|\bappetizers?\b", "Starter"),
    (r"\bsushi\b", "Sushi"),
    (r"\bsandwich(?:es)?\b|\bsubs\b", "Sandwich"),
    (r"\bsalads?\b", "Salad"),
)
NUMBER_WORDS = {
    "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
    "seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}

# ========= Patterns =========
_HELP = re.compile(
    r"^(?:help|help me|\?)[!. ]*$|\bwhat can you (?:do|help with)\b|\bhow (?:can|do) you (?:help|work)\b"
    r"|\bhow does this work\b|\bshow (?:me )?(?:the )?commands\b|\bwhat are your features\b"
)
_GREETING = re.compile(
    r"^(?:hi|hello|hey|hiya|howdy|yo|namaste|hola|good (?:morning|afternoon|evening))"
    r"(?: there| again| bot| assistant)?[!.,\s]*$"
)
_USUALS = re.compile(
    r"\b(?:my usuals?|the usual|usual order|what do i usually|what i usually|my favou?rites|my regulars?)\b"
)
_SAVE_PREF = re.compile(
    r"\b(?:i'?m|i am) (?:a )?(?:vegetarian|vegan|allergic)\b|\ballergic to\b"
    r"|\bi (?:don'?t|do not|can'?t|cannot) (?:like|eat)\b"
    r"|\bi (?:really )?(?:prefer|love|like) (?:it )?(?:extra |very )?(?:spicy|mild|hot|less spicy|non[- ]spicy)\b"
    r"|\bi (?:really )?(?:prefer|love) (?:" + "|".join(CUISINES) + r")\b"
    r"|\bmy (?:default |delivery )?address is\b|\b(?:always |please )?deliver (?:it |my food )?to\b"
    r"|\bsave (?:my )?preferences?\b|\bremember (?:that )?i\b"
)
_ALLERGEN_CHECK = re.compile(r"\ballerg(?:ens?|y|ies)\b|\bcontains? (?:nuts|peanuts|gluten|dairy)\b")
_COMPARE = re.compile(r"\bcompare\b|\bvs\.?\b|\bversus\b|\bdifference between\b|\bwhich is better\b")
_RESTAURANT_WORD = re.compile(r"\brestaurants?\b|\bplaces?\b|\boutlets?\b")
_TRENDING = re.compile(
    r"\btrending\b|\bpopular\b|\bwhat'?s hot\b|\bbest ?sellers?\b|\bmost ordered\b|\beveryone(?:'s| is) ordering\b"
)
_COMBOS = re.compile(
    r"\bcombos?\b|\bpair(?:s|ing)? (?:well )?with\b|\bgoes? (?:well )?with\b|\bcomplete my meal\b"
    r"|\bmeal deal\b|\bsides?\b"
)
_HEALTHY = re.compile(
    r"\bhealthy\b|\bhealthier\b|\blow[- ]?cal(?:orie)?s?\b|\blight (?:meal|food)\b|\bhigh[- ]protein\b"
    r"|\blow[- ]fat\b|\bdiet food\b"
)
_SORT = re.compile(r"\bsort(?:ed)?\b|\border(?:ed)? by\b|\barrange\b|\brank(?:ed)?\b")
_NUTRITION = re.compile(r"\bcalories?\b|\bnutrition(?:al)?\b|\bprotein\b|\bcarbs\b|\bmacros\b|\bkcal\b|\bingredients\b")
_CHEAPEST = re.compile(r"\bcheapest\b|\bleast expensive\b|\blowest price\b|\bmost affordable\b")
_HIGHEST_RATED = re.compile(
    r"\b(?:highest|top|best)[- ]?rated\b|\bhighest rating\b|\bbest reviewed\b|\btop \d+ (?:dishes|items)\b"
)
_FILTER_VERB = re.compile(r"\b(?:show|list|find|filter|only|any|give me)\b")
_FILTER_FACET = re.compile(r"\bveg(?:etarian|gie)?\b|\bvegan\b|\bnon[- ]?veg\b|\bspicy\b|\bmild\b")
_BUDGET_PHRASE = re.compile(
    r"\b(?:under|below|less than|within|upto|up to|cheaper than|max(?:imum)?)\s*(?:₹|rs\.?|inr)?\s*\d+"
    r"|\bbudget\b|\bfor (?:₹|rs\.?\s*)\d+|\bafford\b"
)
_TASTE = re.compile(
    r"\b(?:something|anything) (?:spicy|sweet|mild|savou?ry|tangy|cheesy|crispy|light|hot)\b"
    r"|\bin the mood for\b|\bcraving\b|\bbased on my taste\b|\bmy taste\b"
)
_RECOMMEND = re.compile(
    r"\brecommend\w*\b|\bsuggest\w*\b|\bwhat should (?:i|we) (?:eat|order|have|get)\b|\bsurprise me\b"
    r"|\bwhat(?:'s| is) good\b|\bsomething (?:like|similar)\b|\bsimilar to\b|\bhungry\b"
)
_RESTAURANT_INFO = re.compile(
    r"\btell me about\b|\binfo(?:rmation)? (?:about|on|for)\b|\bdetails (?:of|about|for)\b"
    r"|\bdelivery (?:time|fee|charge)\b|\bmin(?:imum)? order\b|\bis \w+(?: \w+)? open\b"
)
_TRACK = re.compile(
    r"\btrack(?:ing)?\b|\bwhere\b.*\b(?:order|food|delivery)\b|\border status\b|\bstatus\b"
    r"|\bwhen will (?:it|my (?:order|food)) (?:arrive|come)\b|\bdelivery\b"
)
_WISHLIST = re.compile(r"\bwish ?list\b|\bsave (?:it|this|that) for later\b")
_ORDER = re.compile(
    r"\border\b|\bbuy\b|\bpurchase\b|\bcheck ?out\b|\bi want\b|\bi'?d like\b|\bi would like\b"
    r"|\bget me\b|\badd\b.*\bto (?:my |the )?cart\b|\bsame as (?:last time|before)\b|\breorder\b|\brepeat\b"
)
_CART = re.compile(r"\bcart\b|\bbasket\b")
_QUERY = re.compile(
    r"\bwhat\b|\bwhich\b|\bwhere\b|\bhow\b|\btell me\b|\bshow\b|\bmenu\b|\brestaurants?\b|\bcuisines?\b"
    r"|\bdishes\b|\bavailable\b"
)

# ---- entity patterns ----
_UUID = re.compile(r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}")
_HASH_ID = re.compile(r"#([0-9a-f]{8})\b")
_HISTORY_ORDER_ID = re.compile(r"Order #([a-f0-9]+)", re.I)
_CURRENCY = re.compile(r"(?:₹|\brs\.?|\binr)\s*(\d+(?:\.\d+)?)|\b(\d+(?:\.\d+)?)\s*(?:rupees|rs\b|inr\b|₹)")
_BUDGET_NUM = re.compile(
    r"\b(?:under|below|less than|within|upto|up to|budget(?: of| is)?|max(?:imum)?|for)\s*(?:₹|rs\.?|inr)?\s*(\d+(?:\.\d+)?)\b"
)
_QTY = r"(\d+|" + "|".join(NUMBER_WORDS) + r")"
_ITEM_STOP = (
    r"from|at|and|with|to|for|under|below|in|on|of|please|delivered|now|asap|too|also|each|only|or"
)
_QTY_ITEM = re.compile(
    r"(?<![₹#\w.])" + _QTY + r"(?![a-wyz0-9])\s*(?:x\s+|x(?=[a-z])|plates? of\s+|pieces? of\s+)?"
    r"((?:(?!(?:" + _ITEM_STOP + r")\b)[a-z][a-z'-]*)(?:\s+(?!(?:" + _ITEM_STOP + r")\b)[a-z][a-z'-]*){0,3})"
)
_SET_QTY = re.compile(r"\b(?:to|quantity|qty|make it)\s+" + _QTY + r"\b")
_NOT_ITEMS = {
    "rupee", "rs", "inr", "kcal", "calorie", "min", "minute", "time", "people", "person", "star",
    "percent", "dish", "dishe", "item", "option", "thing", "day", "week",
}
_NOT_MODIFIERS = {
    "order", "want", "get", "me", "some", "a", "an", "the", "like", "add", "buy", "i", "to", "my",
    "please", "and", "with", "of", "in", "from", "at", "for", "any", "more", "also", "is", "are",
    "many", "much", "best", "cheapest", "show", "find", "compare", "vs", "or", "than", "about",
    "remove", "delete", "drop", "change", "update", "set", "modify", "save", "put", "take",
}
_RESTAURANT_CLAUSE = re.compile(
    r"\b(?:from|at)\s+([a-z0-9][a-z0-9\s'&-]*?)(?=\s+menu\b|\s+restaurant\b|\s+please\b|\s+for\b|\s+under\b|\s+by\b|\s+sorted\b|$|[,.!?])"
)
_RESTAURANT_REJECT = {
    "the", "cart", "wishlist", "home", "work", "office", "night", "lunch", "dinner", "breakfast",
    "once", "all", "last time",
}
_COMPARE_TARGETS = (
    re.compile(r"\bcompare\s+(.+?)\s+(?:and|with|vs\.?|versus|to|against)\s+(.+?)\s*(?:[?.!]|$)"),
    re.compile(r"\bdifference between\s+(.+?)\s+and\s+(.+?)\s*(?:[?.!]|$)"),
    re.compile(r"\bwhich is better,?\s+(.+?)\s+or\s+(.+?)\s*(?:[?.!]|$)"),
    re.compile(r"^(.+?)\s+(?:vs\.?|versus)\s+(.+?)\s*(?:[?.!]|$)"),
)


# ========= Entity extraction =========
def _to_qty(token: str) -> int:
    return int(token) if token.isdigit() else NUMBER_WORDS[token]


def _clean_item(name: str) -> str:
    return " ".join(fold_plural(w) for w in name.split())


def extract_items(text: str) -> List[ItemRequest]:
    t = _norm(text)
    items: List[ItemRequest] = []
    for m in _QTY_ITEM.finditer(t):
        name = _clean_item(m.group(2))
        if not name or name.split()[0] in _NOT_ITEMS:
            continue
        items.append(ItemRequest(name=name, quantity=_to_qty(m.group(1))))
    if items:
        return items

    # unquantified mentions: dish word plus one leading modifier ("chicken biryani")
    spans: List[Tuple[int, int, str]] = []
    for word in DISH_WORDS:
        for m in re.finditer(rf"(?:\b([a-z]+)\s+)?\b({re.escape(word)})(?:e?s)?\b", t):
            lead = m.group(1)
            if lead and lead not in _NOT_MODIFIERS:
                spans.append((m.start(), m.end(), f"{lead} {word}"))
            else:
                spans.append((m.start(2), m.end(), word))
    taken: List[Tuple[int, int, str]] = []
    for span in sorted(spans, key=lambda s: s[0] - s[1]):
        if all(span[1] <= s[0] or span[0] >= s[1] for s in taken):
            taken.append(span)
    return [ItemRequest(name=_clean_item(name)) for _, _, name in sorted(taken)]


def extract_new_quantity(text: str) -> Optional[int]:
    """Target quantity of an update ("change biryani to 3", "quantity 2")."""
    m = _SET_QTY.search(_norm(text))
    return _to_qty(m.group(1)) if m else None


def extract_restaurant(text: str) -> Optional[str]:
    t = _norm(text)
    for m in _RESTAURANT_CLAUSE.finditer(t):
        name = re.sub(r"^(?:the|a|my)\s+", "", m.group(1)).strip(" '-")
        if len(name) > 2 and name not in _RESTAURANT_REJECT and not name[0].isdigit():
            return name
    for kw in KNOWN_RESTAURANTS:
        if re.search(rf"\b{re.escape(kw)}\b", t):
            return "absolute barbecue" if "absolute" in kw else kw
    return None


def extract_budget(text: str) -> Optional[float]:
    t = _norm(text)
    m = _BUDGET_NUM.search(t) or _CURRENCY.search(t)
    if not m:
        return None
    value = next(g for g in m.groups() if g)
    return float(value)


def extract_category(text: str) -> Optional[str]:
    t = _norm(text)
    for pattern, category in CATEGORY_WORDS:
        if re.search(pattern, t):
            return category
    return None


def extract_spice(text: str) -> Optional[int]:
    t = _norm(text)
    if re.search(r"\bno spice\b|\bzero spice\b", t):
        return 1
    if re.search(r"\bnot (?:too |very )?spicy\b|\bless spicy\b|\bnon[- ]spicy\b|\bmild\b", t):
        return 2
    if re.search(r"\bmedium spic", t):
        return 3
    if re.search(r"\b(?:extra|very|super|really) (?:spicy|hot)\b", t):
        return 5
    if re.search(r"\bspicy\b|\bhot and spicy\b", t):
        return 4
    return None


def extract_vegetarian(text: str) -> Optional[bool]:
    t = _norm(text)
    if re.search(r"\bnon[- ]?veg(?:etarian)?\b", t):
        return False
    if re.search(r"\bveg(?:etarian|gie)?\b|\bvegan\b", t):
        return True
    return None


def extract_sort(text: str) -> Tuple[Optional[str], Optional[str]]:
    t = _norm(text)
    if not _SORT.search(t):
        return None, None
    key = None
    if re.search(r"\bprice\b|\bcheap|\bexpensive\b|\bcost\b", t):
        key = "price"
    elif re.search(r"\brating\b|\brated\b|\bstars?\b", t):
        key = "rating"
    elif re.search(r"\bcalori", t):
        key = "calories"
    elif re.search(r"\bname\b|\balphabetical", t):
        key = "name"
    order = None
    if re.search(r"\bdesc(?:ending)?\b|\bhigh(?:est)? to low(?:est)?\b|\bhighest first\b|\bexpensive first\b", t):
        order = "desc"
    elif re.search(r"\basc(?:ending)?\b|\blow(?:est)? to high(?:est)?\b|\blowest first\b|\bcheapest first\b|\ba to z\b", t):
        order = "asc"
    return key, order


def extract_order_id(text: str, history: Sequence[dict] = ()) -> Optional[str]:
    t = _norm(text)
    m = _UUID.search(t)
    if m:
        return m.group(0)
    m = _HASH_ID.search(t)
    if m:
        return m.group(1)
    for msg in reversed(list(history or [])):
        if msg.get("role") == "assistant" and "order #" in (msg.get("content") or "").lower():
            hm = _HISTORY_ORDER_ID.search(msg.get("content") or "")
            if hm:
                return hm.group(1).lower()
    return None


def extract_action(text: str) -> Optional[str]:
    t = _norm(text)
    if re.search(r"\bclear\b|\bempty\b", t):
        return "clear"
    if re.search(r"\bremove\b|\bdelete\b|\btake (?:\w+ )*out\b|\bdrop\b", t):
        return "remove"
    if re.search(r"\bupdate\b|\bchange\b|\bmodify\b|\bset\b", t):
        return "update"
    if re.search(r"\badd\b|\bput\b|\binsert\b|\bsave\b", t):
        return "add"
    if re.search(r"\bshow\b|\bview\b|\bsee\b|\bwhat'?s in\b|\bopen\b", t):
        return "view"
    return None


def _clean_target(s: str) -> str:
    s = re.sub(r"^(?:the|a|an)\s+", "", s.strip(" ,'\"?"))
    return re.sub(r"\s+(?:restaurants?|please)$", "", s).strip()


def extract_compare_targets(text: str) -> List[str]:
    t = _norm(text)
    for pattern in _COMPARE_TARGETS:
        m = pattern.search(t)
        if m:
            a, b = _clean_target(m.group(1)), _clean_target(m.group(2))
            if a and b and a != b:
                return [a, b]
    return []


def extract_entities(text: str, history: Sequence[dict] = ()) -> Entities:
    sort_by, sort_order = extract_sort(text)
    return Entities(
        restaurant=extract_restaurant(text),
        items=extract_items(text),
        budget=extract_budget(text),
        category=extract_category(text),
        spice_level=extract_spice(text),
        is_vegetarian=extract_vegetarian(text),
        sort_by=sort_by,
        sort_order=sort_order,
        order_id=extract_order_id(text, history),
        action=extract_action(text),
        compare_targets=extract_compare_targets(text),
    )


# ========= Clarifier =========
def clarifying_questions(text: str, history: Sequence[dict] = (), entities: Optional[Entities] = None) -> List[str]:
    t = _norm(text)
    entities = entities or extract_entities(text, history)
    questions: List[str] = []
    if re.search(r"\b(?:order|want|like|i'd like)\b.*\b(?:from|at)\b", t) and not entities.restaurant:
        questions.append("Which restaurant would you like to order from?")
    if re.search(r"\b(?:want|order|add|i'd like)\b.*\b(?:item|dish|food|something)\b", t) and not entities.items:
        questions.append("What item would you like to order?")
    if entities.items and any(it.quantity is None for it in entities.items):
        questions.append("How many would you like?")
    return questions


# ========= Rules =========
Predicate = Callable[[str, Entities, Sequence[dict]], bool]


def _is_restaurant_comparison(t: str, e: Entities, h: Sequence[dict]) -> bool:
    if not _COMPARE.search(t):
        return False
    if _RESTAURANT_WORD.search(t):
        return True
    known = [any(kw in target for kw in KNOWN_RESTAURANTS) for target in e.compare_targets]
    return len(known) == 2 and all(known)


INTENT_RULES: Tuple[Tuple[Predicate, Intent], ...] = (
    (lambda t, e, h: bool(_HELP.search(t)), Intent.HELP),
    (lambda t, e, h: bool(_GREETING.match(t)), Intent.GREETING),
    (lambda t, e, h: bool(_USUALS.search(t)), Intent.USUALS),
    (lambda t, e, h: bool(_SAVE_PREF.search(t)), Intent.SAVE_PREFERENCE),
    (lambda t, e, h: bool(_ALLERGEN_CHECK.search(t)), Intent.ALLERGEN_CHECK),
    (_is_restaurant_comparison, Intent.COMPARE_RESTAURANTS),
    (lambda t, e, h: bool(_COMPARE.search(t)), Intent.COMPARE_ITEMS),
    (lambda t, e, h: bool(_TRENDING.search(t)), Intent.TRENDING),
    (lambda t, e, h: bool(_COMBOS.search(t)), Intent.COMBOS),
    (lambda t, e, h: bool(_HEALTHY.search(t)), Intent.HEALTHY_OPTIONS),
    (lambda t, e, h: bool(_SORT.search(t)), Intent.SORT_MENU),
    (lambda t, e, h: bool(_NUTRITION.search(t)), Intent.NUTRITION_INFO),
    (lambda t, e, h: bool(_CHEAPEST.search(t)), Intent.CHEAPEST),
    (lambda t, e, h: bool(_HIGHEST_RATED.search(t)), Intent.HIGHEST_RATED),
    (lambda t, e, h: bool(_FILTER_VERB.search(t) and _FILTER_FACET.search(t)) or t.startswith("filter"),
     Intent.FILTER_MENU),
    (lambda t, e, h: bool(_BUDGET_PHRASE.search(t)), Intent.SUGGEST_BY_BUDGET),
    (lambda t, e, h: bool(_TASTE.search(t)), Intent.SUGGEST_BY_TASTE),
    (lambda t, e, h: bool(_RECOMMEND.search(t)), Intent.RECOMMEND),
    (lambda t, e, h: bool(_RESTAURANT_INFO.search(t)), Intent.RESTAURANT_INFO),
    (lambda t, e, h: bool(_TRACK.search(t)), Intent.TRACK),
    (lambda t, e, h: bool(_WISHLIST.search(t)), Intent.WISHLIST),
    (lambda t, e, h: bool(_ORDER.search(t)), Intent.ORDER),
    (lambda t, e, h: bool(_CART.search(t)), Intent.CART),
    (lambda t, e, h: bool(_QUERY.search(t)), Intent.QUERY),
    (lambda t, e, h: bool(clarifying_questions(t, h, e)), Intent.CLARIFY),
)


@traceable(name="classify", tags=["nlu"])
def classify(text: str, history: Optional[Sequence[dict]] = None) -> Classification:
    """Return the first matching intent (``conversation`` if none) and the extracted entities."""
    history = tuple(history or ())
    t = _norm(text)
    entities = extract_entities(text, history)
    if not t:
        return Classification(Intent.CONVERSATION, entities)
    for predicate, intent in INTENT_RULES:
        if predicate(t, entities, history):
            return Classification(intent, entities)
    return Classification(Intent.CONVERSATION, entities)
