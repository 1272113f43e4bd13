# agents/cart_agent.py
"""Cart and wishlist mutations keyed by (user, menu item)."""
from __future__ import annotations

import logging
from typing import List, Optional

from food_assistant.schemas import CartLine, MemoryKind, WishlistEntry
from food_assistant.utils.catalog import join_menu, MENU_ITEMS
from food_assistant.utils.db import Store, StoreError
from food_assistant.utils.memory import MemoryStore

log = logging.getLogger(__name__)

CART = "cart"
WISHLIST = "wishlist"


# ---------- cart ----------
def fetch_cart(store: Store, user_id: str) -> List[CartLine]:
    rows = store.select(CART, [("user_id", "eq", user_id)])
    if not rows:
        return []
    items = {it.id: it for it in join_menu(store, store.select(MENU_ITEMS, [("id", "in", [r["menu_item_id"] for r in rows])]))}
    return [CartLine(**r, item=items.get(r["menu_item_id"])) for r in rows]


def _snapshot(store: Store, user_id: str) -> None:
    """Mirror the cart into cart_state memory; failures only log."""
    try:
        lines = fetch_cart(store, user_id)
        MemoryStore(store).set(user_id, MemoryKind.CART_STATE, "current", {
            "items": [{"menu_item_id": l.menu_item_id, "name": l.item.name if l.item else "", "quantity": l.quantity}
                      for l in lines],
            "total": sum(l.line_total for l in lines),
        })
    except StoreError as e:
        log.warning("[Memory] cart snapshot failed for %s: %s", user_id, e)


def add_to_cart(store: Store, user_id: str, menu_item_id: str, item_name: str, quantity: Optional[int] = 1) -> str:
    quantity = quantity or 1
    existing = store.select(CART, [("user_id", "eq", user_id), ("menu_item_id", "eq", menu_item_id)], limit=1)
    if existing:
        store.increment(CART, existing[0]["id"], "quantity", quantity)
    else:
        store.upsert(CART, {"user_id": user_id, "menu_item_id": menu_item_id, "quantity": quantity},
                     on_conflict=("user_id", "menu_item_id"))
    _snapshot(store, user_id)
    return f"Added {quantity}x {item_name} to your cart."


def update_quantity(store: Store, user_id: str, cart_id: str, quantity: int) -> str:
    if quantity <= 0:
        return remove_from_cart(store, user_id, cart_id)
    store.update(CART, cart_id, {"quantity": quantity})
    _snapshot(store, user_id)
    return "Updated cart item quantity."


def remove_from_cart(store: Store, user_id: str, cart_id: str) -> str:
    store.delete(CART, [("id", "eq", cart_id), ("user_id", "eq", user_id)])
    _snapshot(store, user_id)
    return "Removed item from cart."


def clear_cart(store: Store, user_id: str) -> str:
    store.delete(CART, [("user_id", "eq", user_id)])
    _snapshot(store, user_id)
    return "Cart cleared."


def render_cart(lines: List[CartLine]) -> str:
    if not lines:
        return "Your cart is empty."
    total = sum(l.line_total for l in lines)
    rows = [f"{l.quantity}x {l.item.name if l.item else 'Item'} - ₹{l.line_total:g}" for l in lines]
    return "Your cart:\n" + "\n".join(rows) + f"\n\nTotal: ₹{total:g}"


# ---------- wishlist ----------
def fetch_wishlist(store: Store, user_id: str) -> List[WishlistEntry]:
    rows = store.select(WISHLIST, [("user_id", "eq", user_id)])
    if not rows:
        return []
    items = {it.id: it for it in join_menu(store, store.select(MENU_ITEMS, [("id", "in", [r["menu_item_id"] for r in rows])]))}
    return [WishlistEntry(**r, item=items.get(r["menu_item_id"])) for r in rows]


def add_to_wishlist(store: Store, user_id: str, menu_item_id: str, item_name: str) -> str:
    # a second add for the same item is a no-op
    store.upsert(WISHLIST, {"user_id": user_id, "menu_item_id": menu_item_id}, on_conflict=("user_id", "menu_item_id"))
    return f"Added {item_name} to your wishlist."


def remove_from_wishlist(store: Store, user_id: str, menu_item_id: str) -> str:
    store.delete(WISHLIST, [("user_id", "eq", user_id), ("menu_item_id", "eq", menu_item_id)])
    return "Removed from wishlist."


def render_wishlist(entries: List[WishlistEntry]) -> str:
    if not entries:
        return "Your wishlist is empty."
    rows = [
        f"{e.item.name} - ₹{e.item.price:g} ({e.item.restaurant_name})" if e.item else "Unavailable item"
        for e in entries
    ]
    return "Your wishlist:\n" + "\n".join(rows)
