# nodes/ordering.py
"""
Ordering, cart, wishlist and tracking branches.

Order flow:
- "same as last time" with a remembered last order replays it
- "checkout" / "place order" with a non-empty cart places the cart
- otherwise resolve the restaurant, match the named items against its menu and
  add each match to the cart
"""
import logging
import re
from typing import List, Optional, Tuple

from food_assistant.agents.cart_agent import (
    add_to_cart,
    add_to_wishlist,
    clear_cart,
    fetch_cart,
    fetch_wishlist,
    remove_from_cart,
    remove_from_wishlist,
    render_cart,
    render_wishlist,
    update_quantity,
)
from food_assistant.agents.delivery_agent import track_order
from food_assistant.agents.order_agent import PlacementResult, checkout_cart, fetch_order_context, replay_last_order
from food_assistant.schemas import MemoryKind, MenuItem, Restaurant, UserMemory
from food_assistant.state import Deps, Intent, ResultType
from food_assistant.utils.catalog import find_menu_item, match_menu_item, name_matches
from food_assistant.utils.config import LIST_CAP
from food_assistant.utils.db import StoreError
from food_assistant.utils.nlu import extract_new_quantity
from food_assistant.utils.validation import guard_node, respond

log = logging.getLogger(__name__)

_REPEAT = re.compile(r"\b(?:same|last time|repeat|again)\b", re.I)
_CHECKOUT = re.compile(
    r"\bcheck ?out\b|\bplace (?:my |the |an )?order\b|\bconfirm (?:my |the )?order\b|\bproceed to (?:checkout|payment)\b",
    re.I,
)
_ADD_PHRASE = re.compile(
    r"\b(?:add|save|put)\s+(?:the |a |an |some )?(.+?)\s+(?:to|in|into|on)\s+(?:my |the )?(?:wish ?list|cart)\b",
    re.I,
)


def _mentioned_names(text: str, e) -> List[str]:
    if e.items:
        return [req.name for req in e.items]
    m = _ADD_PHRASE.search(text or "")
    return [m.group(1).strip()] if m else []


def _menu_listing(menu: List[MenuItem]) -> str:
    return "\n".join(f"- {it.name} (₹{it.price:g})" for it in menu[:LIST_CAP])


def _placed(p: PlacementResult):
    return respond(ResultType.ORDER, Intent.ORDER, p.message,
                   data=p.order.model_dump() if p.order else None,
                   order_data=p.order.model_dump() if p.order else None)


def _remember_restaurant(deps: Deps, user_id: str, restaurant: Restaurant) -> None:
    try:
        deps.memory.set(user_id, MemoryKind.RESTAURANT_PREFERENCE, restaurant.id,
                        {"name": restaurant.name, "id": restaurant.id})
    except StoreError as e:
        log.warning("[Memory] restaurant_preference write failed for %s: %s", user_id, e)


def _add_matches(deps: Deps, user_id: str, matched: List[Tuple[MenuItem, int]]) -> str:
    for item, qty in matched:
        add_to_cart(deps.store, user_id, item.id, item.name, qty)
    listed = ", ".join(f"{qty}x {item.name}" for item, qty in matched)
    return f"Added to your cart: {listed}. Would you like to add more items or proceed to checkout?"


@guard_node(name="Order", result_type=ResultType.ORDER, tags=["ordering"])
def order_node(state, deps: Deps):
    user_id = state["user_id"]
    text = state.get("utterance", "")
    e = state["entities"]
    memory: UserMemory = state.get("memory") or UserMemory(user_id=user_id)

    if _REPEAT.search(text) and memory.last_order:
        return _placed(replay_last_order(deps.store, user_id, memory.last_order, memory.default_address))

    if _CHECKOUT.search(text) and not e.items and fetch_cart(deps.store, user_id):
        return _placed(checkout_cart(deps.store, user_id, memory.default_address))

    ctx = fetch_order_context(deps.store, e.restaurant)
    if ctx.not_found:
        return respond(
            ResultType.CLARIFY, Intent.ORDER,
            f'I couldn\'t find a restaurant matching "{e.restaurant}". '
            "Could you please specify which restaurant you'd like to order from?",
        )
    if ctx.restaurant is not None and not ctx.has_menu:
        return respond(ResultType.ORDER, Intent.ORDER,
                       f"{ctx.restaurant.name} is available, but their menu is not yet set up. "
                       "Please choose another restaurant.")

    if e.items:
        matched: List[Tuple[MenuItem, int]] = []
        for req in e.items:
            if ctx.restaurant is not None:
                item: Optional[MenuItem] = match_menu_item(ctx.menu, req.name)
            else:
                item = find_menu_item(deps.store, req.name)
            if item is not None:
                matched.append((item, req.quantity or 1))

        if matched:
            msg = _add_matches(deps, user_id, matched)
            if ctx.restaurant is not None:
                _remember_restaurant(deps, user_id, ctx.restaurant)
            return respond(ResultType.ORDER, Intent.ORDER, msg,
                           data=[{"menu_item_id": it.id, "name": it.name, "quantity": q} for it, q in matched])
        if ctx.restaurant is not None:
            return respond(ResultType.ORDER, Intent.ORDER,
                           f"I couldn't find those items in {ctx.restaurant.name}. "
                           f"Here's the menu:\n\n{_menu_listing(ctx.menu)}",
                           data=ctx.model_dump())

    if ctx.restaurant is not None:
        return respond(ResultType.ORDER, Intent.ORDER,
                       f"Here's the menu from {ctx.restaurant.name}:\n\n{_menu_listing(ctx.menu)}"
                       "\n\nWhat would you like to order?",
                       data=ctx.model_dump())

    return respond(ResultType.ORDER, Intent.ORDER,
                   "I can help you place an order! Which restaurant would you like to order from?")


@guard_node(name="Track", result_type=ResultType.TRACK, tags=["ordering"])
def track_node(state, deps: Deps):
    status = track_order(deps.store, state["user_id"], state["entities"].order_id)
    return respond(ResultType.TRACK, Intent.TRACK, status)


@guard_node(name="Cart", result_type=ResultType.CART, tags=["ordering"])
def cart_node(state, deps: Deps):
    user_id = state["user_id"]
    e = state["entities"]
    action = e.action

    if action == "clear":
        return respond(ResultType.CART, Intent.CART, clear_cart(deps.store, user_id))

    if action in ("remove", "update"):
        lines = fetch_cart(deps.store, user_id)
        targets = [
            (line, req) for req in e.items for line in lines
            if line.item is not None and name_matches(line.item.name, req.name)
        ]
        if not targets:
            verb = "remove from" if action == "remove" else "update in"
            return respond(ResultType.CART, Intent.CART, f"Which item would you like to {verb} your cart?\n\n"
                           + render_cart(lines))
        new_qty = extract_new_quantity(state.get("utterance", ""))
        if action == "update" and new_qty is None and all(req.quantity is None for _, req in targets):
            names = ", ".join(dict.fromkeys(line.item.name for line, _ in targets))
            return respond(ResultType.CART, Intent.CART, f"How many {names} would you like in your cart?")
        messages = []
        for line, req in targets:
            if action == "remove":
                messages.append(remove_from_cart(deps.store, user_id, line.id))
            else:
                qty = new_qty if new_qty is not None else req.quantity
                messages.append(update_quantity(deps.store, user_id, line.id,
                                                qty if qty is not None else line.quantity))
        return respond(ResultType.CART, Intent.CART, " ".join(dict.fromkeys(messages)))

    requested = [(req.name, req.quantity) for req in e.items] or \
        [(name, None) for name in _mentioned_names(state.get("utterance", ""), e)]
    if action == "add" and requested:
        added = []
        for name, qty in requested:
            item = find_menu_item(deps.store, name)
            if item is not None:
                added.append(add_to_cart(deps.store, user_id, item.id, item.name, qty or 1))
        if added:
            return respond(ResultType.CART, Intent.CART, " ".join(added))
        return respond(ResultType.CART, Intent.CART, "I couldn't find those items on any menu.")

    return respond(ResultType.CART, Intent.CART, render_cart(fetch_cart(deps.store, user_id)))


@guard_node(name="Wishlist", result_type=ResultType.WISHLIST, tags=["ordering"])
def wishlist_node(state, deps: Deps):
    user_id = state["user_id"]
    e = state["entities"]
    action = e.action

    if action == "add":
        names = _mentioned_names(state.get("utterance", ""), e)
        if not names:
            return respond(ResultType.WISHLIST, Intent.WISHLIST,
                           "Which item would you like to save to your wishlist?")
        added = []
        for name in names:
            item = find_menu_item(deps.store, name)
            if item is not None:
                added.append(add_to_wishlist(deps.store, user_id, item.id, item.name))
        return respond(ResultType.WISHLIST, Intent.WISHLIST,
                       " ".join(added) or "I couldn't find those items on any menu.")

    if action in ("remove", "clear"):
        entries = fetch_wishlist(deps.store, user_id)
        if action == "remove":
            entries = [w for w in entries for req in e.items if w.item and name_matches(w.item.name, req.name)]
        if not entries:
            return respond(ResultType.WISHLIST, Intent.WISHLIST,
                           "Which item would you like to remove from your wishlist?")
        for w in entries:
            remove_from_wishlist(deps.store, user_id, w.menu_item_id)
        return respond(ResultType.WISHLIST, Intent.WISHLIST, "Removed from wishlist.")

    return respond(ResultType.WISHLIST, Intent.WISHLIST, render_wishlist(fetch_wishlist(deps.store, user_id)))
