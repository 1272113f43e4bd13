# nodes/lookup.py
"""Catalog lookups: comparisons, restaurant cards, sorted and filtered lists."""
import re
from typing import List, Optional

from food_assistant.agents.query_agent import format_query_response, run_query
from food_assistant.schemas import MenuFilter, MenuItem, Restaurant
from food_assistant.state import Deps, Intent, ResultType
from food_assistant.utils.catalog import find_menu_item, find_restaurant
from food_assistant.utils.config import LIST_CAP, TOP_RATED_CAP
from food_assistant.utils.utility import (
    cheapest,
    compare_items,
    compare_restaurants,
    filter_menu,
    highest_rated,
    restaurant_info,
    sort_menu,
)
from food_assistant.utils.validation import guard_node, respond

_ABOUT = re.compile(r"\b(?:about|on|for|of|is)\s+(?:the\s+)?(.+?)(?:\s+open)?\s*[?.!]*$", re.I)


def _numbered(items: List[MenuItem], fmt) -> str:
    return "\n".join(f"{i}. {fmt(it)}" for i, it in enumerate(items, 1))


def _unknown_restaurant(intent: Intent, name: str):
    return respond(
        ResultType.CLARIFY, intent,
        f'I couldn\'t find a restaurant matching "{name}". Which restaurant did you mean?',
    )


def _restaurant_in(state, deps: Deps) -> Optional[Restaurant]:
    name = state["entities"].restaurant
    if name:
        found = find_restaurant(deps.store, name)
        if found is not None:
            return found
    m = _ABOUT.search(state.get("utterance", ""))
    return find_restaurant(deps.store, m.group(1)) if m else None


@guard_node(name="CompareItems", result_type=ResultType.COMPARISON, tags=["lookup"])
def compare_items_node(state, deps: Deps):
    targets = state["entities"].compare_targets
    if len(targets) == 2:
        a, b = (find_menu_item(deps.store, t) for t in targets)
        if a is not None and b is not None:
            comparison = compare_items(deps.store, a.id, b.id)
            if comparison is not None:
                return respond(ResultType.COMPARISON, Intent.COMPARE_ITEMS, comparison.summary.rstrip(),
                               data=comparison.model_dump())
    return respond(
        ResultType.COMPARISON, Intent.COMPARE_ITEMS,
        "I can compare dishes for you! Please tell me which two items you'd like to compare. "
        "For example: 'Compare chicken biryani and mutton biryani'",
    )


@guard_node(name="CompareRestaurants", result_type=ResultType.COMPARISON, tags=["lookup"])
def compare_restaurants_node(state, deps: Deps):
    targets = state["entities"].compare_targets
    if len(targets) == 2:
        a, b = (find_restaurant(deps.store, t) for t in targets)
        if a is not None and b is not None and a.id != b.id:
            return respond(ResultType.COMPARISON, Intent.COMPARE_RESTAURANTS,
                           compare_restaurants(deps.store, a.id, b.id),
                           data={"restaurants": [a.model_dump(), b.model_dump()]})
    return respond(
        ResultType.COMPARISON, Intent.COMPARE_RESTAURANTS,
        "I can compare restaurants for you! Please tell me which two restaurants you'd like to compare. "
        "For example: 'Compare Paradise and Bawarchi'",
    )


@guard_node(name="RestaurantInfo", result_type=ResultType.QUERY, tags=["lookup"])
def restaurant_info_node(state, deps: Deps):
    r = _restaurant_in(state, deps)
    info = restaurant_info(deps.store, r.id) if r is not None else None
    if info is None:
        return respond(
            ResultType.QUERY, Intent.RESTAURANT_INFO,
            "Which restaurant would you like information about? "
            "I can tell you about their rating, delivery time, menu items, and more.",
        )
    text = (
        f"**{info.name}** ({info.cuisine})\n\n"
        f"⭐ Rating: {info.rating}\n"
        f"🕒 Delivery time: {info.delivery_time}\n"
        f"🚚 Delivery fee: ₹{info.delivery_fee:g}\n"
        f"🧾 Minimum order: ₹{info.min_order:g}\n"
        f"📋 Menu items: {info.menu_item_count}\n"
        f"{'Open now' if info.is_open else 'Closed right now'}"
    )
    return respond(ResultType.QUERY, Intent.RESTAURANT_INFO, text, data=info.model_dump())


@guard_node(name="SortMenu", result_type=ResultType.FILTER, tags=["lookup"])
def sort_menu_node(state, deps: Deps):
    e = state["entities"]
    sort_by = e.sort_by or "rating"
    # unspecified direction: best rated first, otherwise smallest first
    ascending = e.sort_order == "asc" if e.sort_order else sort_by != "rating"
    r = find_restaurant(deps.store, e.restaurant) if e.restaurant else None
    if e.restaurant and r is None:
        return _unknown_restaurant(Intent.SORT_MENU, e.restaurant)
    items = sort_menu(deps.store, r.id if r else None, sort_by=sort_by, ascending=ascending, limit=LIST_CAP)
    if not items:
        return respond(ResultType.FILTER, Intent.SORT_MENU, "I couldn't find items matching your criteria.")
    listing = _numbered(items, lambda it: f"**{it.name}** - ₹{it.price:g} ({it.rating}⭐)")
    return respond(ResultType.FILTER, Intent.SORT_MENU, f"Here are items sorted by {sort_by}:\n\n{listing}",
                   data=[it.model_dump() for it in items])


@guard_node(name="FilterMenu", result_type=ResultType.FILTER, tags=["lookup"])
def filter_menu_node(state, deps: Deps):
    e = state["entities"]
    r = find_restaurant(deps.store, e.restaurant) if e.restaurant else None
    if e.restaurant and r is None:
        return _unknown_restaurant(Intent.FILTER_MENU, e.restaurant)
    filters = MenuFilter(
        is_vegetarian=e.is_vegetarian,
        max_price=e.budget,
        spice_level=e.spice_level,
        category=e.category,
        restaurant_id=r.id if r else None,
    )
    items = filter_menu(deps.store, filters, limit=LIST_CAP)

    desc = []
    if e.is_vegetarian is not None:
        desc.append("vegetarian" if e.is_vegetarian else "non-veg")
    if e.category:
        desc.append(e.category.lower())
    if e.budget:
        desc.append(f"under ₹{e.budget:g}")
    if e.spice_level:
        desc.append("spicy" if e.spice_level >= 4 else "mild")
    label = ", ".join(desc) or "matching"

    if not items:
        return respond(ResultType.FILTER, Intent.FILTER_MENU,
                       f"I couldn't find any {label} options. Try adjusting your filters!")
    listing = _numbered(items, lambda it: f"**{it.name}** - ₹{it.price:g} from {it.restaurant_name}")
    return respond(ResultType.FILTER, Intent.FILTER_MENU, f"Here are {label} options:\n\n{listing}",
                   data=[it.model_dump() for it in items])


@guard_node(name="Cheapest", result_type=ResultType.FILTER, tags=["lookup"])
def cheapest_node(state, deps: Deps):
    e = state["entities"]
    r = find_restaurant(deps.store, e.restaurant) if e.restaurant else None
    if e.restaurant and r is None:
        return _unknown_restaurant(Intent.CHEAPEST, e.restaurant)
    item = cheapest(deps.store, e.category, r.id if r else None)
    if item is None:
        return respond(ResultType.FILTER, Intent.CHEAPEST, "I couldn't find items matching your criteria.")
    what = f" {e.category}" if e.category else ""
    return respond(
        ResultType.FILTER, Intent.CHEAPEST,
        f"The cheapest{what} option is **{item.name}** at ₹{item.price:g} from {item.restaurant_name}. "
        "Would you like to add it to your cart?",
        data=item.model_dump(),
    )


@guard_node(name="HighestRated", result_type=ResultType.FILTER, tags=["lookup"])
def highest_rated_node(state, deps: Deps):
    e = state["entities"]
    r = find_restaurant(deps.store, e.restaurant) if e.restaurant else None
    if e.restaurant and r is None:
        return _unknown_restaurant(Intent.HIGHEST_RATED, e.restaurant)
    items = highest_rated(deps.store, e.category, r.id if r else None, limit=TOP_RATED_CAP)
    if not items:
        return respond(ResultType.FILTER, Intent.HIGHEST_RATED, "I couldn't find items matching your criteria.")
    what = f" {e.category}" if e.category else ""
    listing = _numbered(items, lambda it: f"**{it.name}** - {it.rating}⭐ - ₹{it.price:g}")
    return respond(ResultType.FILTER, Intent.HIGHEST_RATED, f"Top rated{what} items:\n\n{listing}",
                   data=[it.model_dump() for it in items])


@guard_node(name="Query", result_type=ResultType.QUERY, tags=["lookup"])
def query_node(state, deps: Deps):
    result = run_query(deps.store, state.get("utterance", ""))
    return respond(ResultType.QUERY, Intent.QUERY, format_query_response(result),
                   data=[d.model_dump() for d in result.data])
