# agents/order_agent.py
"""
Order context lookup and order placement.

Placement writes, in order: the Order row, its OrderItem rows, the cart clear and
the last_order memory entry. The cart is only cleared once every item row exists;
an order whose items could not be written is marked cancelled.
"""
from __future__ import annotations

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from food_assistant.agents.cart_agent import CART, fetch_cart
from food_assistant.schemas import MemoryKind, MenuItem, Order, OrderLine, Restaurant
from food_assistant.utils.catalog import find_restaurant, menu_items
from food_assistant.utils.db import Store, StoreError
from food_assistant.utils.memory import MemoryStore
from food_assistant.utils.profile import ORDER_ITEMS, ORDERS

log = logging.getLogger(__name__)

ADDRESS_PLACEHOLDER = "Please provide delivery address"


class OrderContext(BaseModel):
    restaurant: Optional[Restaurant] = None
    menu: List[MenuItem] = Field(default_factory=list)
    restaurant_name: Optional[str] = None
    not_found: bool = False

    @property
    def has_menu(self) -> bool:
        return bool(self.menu)


class PlacementResult(BaseModel):
    message: str
    order: Optional[Order] = None

    @property
    def ok(self) -> bool:
        return self.order is not None


def fetch_order_context(store: Store, restaurant_name: Optional[str]) -> OrderContext:
    if not restaurant_name:
        return OrderContext()
    restaurant = find_restaurant(store, restaurant_name)
    if restaurant is None:
        return OrderContext(restaurant_name=restaurant_name, not_found=True)
    menu = menu_items(store, [("restaurant_id", "eq", restaurant.id)])
    return OrderContext(restaurant=restaurant, menu=menu, restaurant_name=restaurant.name)


def place_order(
    store: Store,
    user_id: str,
    restaurant_id: Optional[str],
    lines: List[OrderLine],
    delivery_address: Optional[str],
    payment_method: str = "pin",
) -> PlacementResult:
    if not lines:
        return PlacementResult(message="Your cart is empty. Add some items before placing an order.")
    total = sum(l.price * l.quantity for l in lines)

    try:
        row = store.insert(ORDERS, {
            "user_id": user_id,
            "restaurant_id": restaurant_id,
            "total_amount": total,
            "status": "pending",
            "delivery_address": delivery_address,
            "payment_method": payment_method,
        })
    except StoreError as e:
        log.error("[Order] insert failed for %s: %s", user_id, e)
        return PlacementResult(message="Order placement failed. Please try again.")
    order = Order.model_validate(row)

    try:
        store.insert_many(ORDER_ITEMS, [
            {"order_id": order.id, "menu_item_id": l.menu_item_id, "quantity": l.quantity,
             "price": l.price, "item_name": l.name}
            for l in lines
        ])
    except StoreError as e:
        log.error("[Order] items insert failed for order %s: %s", order.id, e)
        try:
            store.update(ORDERS, order.id, {"status": "cancelled"})
        except StoreError as e2:
            log.error("[Order] could not cancel orphaned order %s: %s", order.id, e2)
        return PlacementResult(message="Order placement failed while saving your items. Your cart is unchanged.")

    try:
        store.delete(CART, [("user_id", "eq", user_id)])
    except StoreError as e:
        log.warning("[Order] cart clear failed after order %s: %s", order.id, e)

    try:
        MemoryStore(store).set(user_id, MemoryKind.LAST_ORDER, "latest", {
            "restaurant_id": restaurant_id,
            "items": [l.model_dump() for l in lines],
            "total_amount": total,
            "order_id": order.id,
        })
    except StoreError as e:
        log.warning("[Memory] last_order write failed for %s: %s", user_id, e)

    return PlacementResult(
        message=(
            f"Order placed successfully! Order #{order.id[:8]}. "
            'You can track your order anytime by asking "Where is my order?"'
        ),
        order=order,
    )


def replay_last_order(store: Store, user_id: str, last_order: dict, delivery_address: Optional[str]) -> PlacementResult:
    lines = [OrderLine.model_validate(l) for l in last_order.get("items") or []]
    return place_order(store, user_id, last_order.get("restaurant_id"), lines,
                       delivery_address or ADDRESS_PLACEHOLDER)


def checkout_cart(store: Store, user_id: str, delivery_address: Optional[str]) -> PlacementResult:
    cart = [l for l in fetch_cart(store, user_id) if l.item is not None]
    lines = [OrderLine(menu_item_id=l.menu_item_id, name=l.item.name, price=l.item.price, quantity=l.quantity)
             for l in cart]
    restaurant_id = cart[0].item.restaurant_id if cart else None
    return place_order(store, user_id, restaurant_id, lines, delivery_address or ADDRESS_PLACEHOLDER)
