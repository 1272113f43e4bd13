# nodes/preferences.py
import logging
import re
from typing import Any, List

from food_assistant.schemas import MemoryKind
from food_assistant.state import Deps, Intent, ResultType
from food_assistant.utils.catalog import find_menu_item
from food_assistant.utils.db import StoreError
from food_assistant.utils.nlu import CUISINES
from food_assistant.utils.profile import get_allergens, save_preference
from food_assistant.utils.utility import nutrition_info
from food_assistant.utils.validation import guard_node, respond

log = logging.getLogger(__name__)

_DIET = re.compile(r"\b(vegetarian|vegan)\b", re.I)
_ALLERGIC = re.compile(r"\ballergic to\s+(.+)", re.I)
_DISLIKE = re.compile(r"\b(?:don'?t|do not|can'?t|cannot) (?:like|eat)\s+(.+)", re.I)
_SPICE = re.compile(r"\b(?:prefer|love|like)\b.*?\b(less spicy|non[- ]spicy|mild|spicy|hot)\b", re.I)
_SPICE_WORD = re.compile(r"\b(?:spicy|spice|hot|chill(?:i|y|ies))\b", re.I)
_CUISINE = re.compile(r"\b(?:prefer|love)\s+(" + "|".join(CUISINES) + r")\b", re.I)
_ADDRESS = re.compile(
    r"\b(?:my (?:default |delivery )?address is|(?:always |please )?deliver (?:it |my food )?to)\s+(.+?)[.!]?\s*$", re.I
)
_NUTRITION_TARGET = re.compile(r"\b(?:in|of|for)\s+(?:an? |the |my )?(.+?)\s*[?.!]*$", re.I)

PREFERENCE_GUIDE = (
    "I can save your preferences! Tell me things like:\n"
    "• 'I'm vegetarian'\n"
    "• 'I'm allergic to peanuts'\n"
    "• 'I prefer spicy food'\n"
    "• 'I don't like onions'\n"
    "• 'My address is 12 MG Road, Bengaluru'"
)


def _split_list(text: str) -> List[str]:
    text = re.sub(r"[.!?]+$", "", text.strip())
    parts = re.split(r"\s*(?:,|\band\b|&)\s*", text)
    return [p.strip() for p in parts if p.strip()]


def _save(deps: Deps, user_id: str, ptype: str, key: str, value: Any) -> None:
    try:
        save_preference(deps.store, user_id, ptype, key, value)
    except StoreError as e:
        log.warning("[Preference] %s/%s write failed for %s: %s", ptype, key, user_id, e)


@guard_node(name="SavePreference", result_type=ResultType.PREFERENCE, tags=["preferences"])
def save_preference_node(state, deps: Deps):
    user_id = state["user_id"]
    text = state.get("utterance", "")

    m = _ADDRESS.search(text)
    if m:
        address = m.group(1).strip()
        try:
            deps.memory.set(user_id, MemoryKind.DEFAULT_ADDRESS, "default", {"address": address})
        except StoreError as e:
            log.warning("[Memory] default_address write failed for %s: %s", user_id, e)
        return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE,
                       f"Got it! I'll deliver to {address} by default.")

    m = _ALLERGIC.search(text)
    if m:
        allergens = _split_list(m.group(1))
        for a in allergens:
            _save(deps, user_id, "allergen", a.lower(), {"severity": "high"})
        return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE,
                       f"Noted! I'll make sure to avoid {', '.join(allergens)} in my recommendations.",
                       data={"allergens": allergens})

    m = _DISLIKE.search(text)
    if m and _SPICE_WORD.search(m.group(1)):
        _save(deps, user_id, "spice_level", "level", {"level": 1})
        return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE,
                       "Got it! I'll lean towards mild dishes from now on.")
    if m:
        dislikes = _split_list(m.group(1))
        for d in dislikes:
            _save(deps, user_id, "allergen", d.lower(), {"severity": "low"})
        return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE,
                       f"Noted! I'll keep {', '.join(dislikes)} out of my recommendations.",
                       data={"allergens": dislikes})

    m = _DIET.search(text)
    if m:
        diet = "vegan" if "vegan" in text.lower() else "vegetarian"
        _save(deps, user_id, "diet", diet, {"enabled": True})
        return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE,
                       f"Got it! I've saved your dietary preference as {diet}. "
                       "I'll prioritize these options in my recommendations.")

    m = _SPICE.search(text)
    if m:
        word = m.group(1).lower()
        level = 1 if word in ("mild", "less spicy", "non spicy", "non-spicy") else 4
        _save(deps, user_id, "spice_level", "level", {"level": level})
        label = "mild" if level == 1 else "spicy"
        return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE,
                       f"Got it! I'll lean towards {label} dishes from now on.")

    m = _CUISINE.search(text)
    if m:
        cuisine = m.group(1).title()
        _save(deps, user_id, "cuisine", cuisine, {"enabled": True})
        return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE,
                       f"Got it! I'll suggest more {cuisine} food.")

    return respond(ResultType.PREFERENCE, Intent.SAVE_PREFERENCE, PREFERENCE_GUIDE)


@guard_node(name="AllergenCheck", result_type=ResultType.NUTRITION, tags=["preferences"])
def allergen_check_node(state, deps: Deps):
    allergens = get_allergens(deps.store, state["user_id"])
    if allergens:
        return respond(
            ResultType.NUTRITION, Intent.ALLERGEN_CHECK,
            f"I have your allergens on file: {', '.join(allergens)}. I'll automatically filter out items "
            "containing these when making recommendations. Would you like to update your allergen list?",
            data={"allergens": allergens},
        )
    return respond(
        ResultType.NUTRITION, Intent.ALLERGEN_CHECK,
        "I don't have any allergens saved for you. Would you like to tell me about any food allergies? "
        "For example: 'I'm allergic to peanuts and dairy'",
    )


@guard_node(name="NutritionInfo", result_type=ResultType.NUTRITION, tags=["preferences"])
def nutrition_info_node(state, deps: Deps):
    text = state.get("utterance", "")
    mentions = [it.name for it in state["entities"].items]
    m = _NUTRITION_TARGET.search(text)
    if m:
        mentions.insert(0, m.group(1))
    for mention in mentions:
        item = find_menu_item(deps.store, mention)
        if item is not None:
            return respond(ResultType.NUTRITION, Intent.NUTRITION_INFO, nutrition_info(deps.store, item.id),
                           data=item.model_dump())
    return respond(
        ResultType.NUTRITION, Intent.NUTRITION_INFO,
        "Please specify which dish you'd like nutrition information for. "
        "For example: 'How many calories in chicken biryani?'",
    )
