# agents/delivery_agent.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from food_assistant.utils.db import Store
from food_assistant.utils.profile import ORDER_ITEMS, ORDERS

STATUS_MESSAGES = {
    "pending": "Your order is being confirmed by the restaurant.",
    "accepted": "Your order has been accepted and is being prepared.",
    "preparing": "Your order is being prepared. It should be ready soon!",
    "out_for_delivery": "Your order is out for delivery and will arrive shortly.",
    "delivered": "Your order has been delivered. Enjoy your meal!",
    "cancelled": "Your order has been cancelled.",
}


def _find_order(store: Store, user_id: str, order_id: str) -> Optional[Dict[str, Any]]:
    # "#abcd1234" references carry only the id prefix
    order_id = order_id.lower().lstrip("#")
    orders = store.select(ORDERS, [("user_id", "eq", user_id)], order_by="created_at", descending=True)
    return next((o for o in orders if o["id"] == order_id), None) or \
        next((o for o in orders if o["id"].startswith(order_id)), None)


def format_order_status(order: Dict[str, Any], lines: List[Dict[str, Any]]) -> str:
    items = ", ".join(f"{l['quantity']}x {l.get('item_name') or 'Item'}" for l in lines) or "N/A"
    out = [
        f"Order #{order['id'][:8]}",
        f"Status: {STATUS_MESSAGES.get(order.get('status'), order.get('status'))}",
        f"Items: {items}",
        f"Total: ₹{order.get('total_amount', 0):g}",
    ]
    if order.get("delivery_address"):
        out.append(f"Address: {order['delivery_address']}")
    return "\n".join(out)


def track_order(store: Store, user_id: str, order_id: Optional[str] = None) -> str:
    """Status text for the given order, or the user's most recent one."""
    if order_id:
        order = _find_order(store, user_id, order_id)
        if order is None:
            return "Order not found."
    else:
        latest = store.select(ORDERS, [("user_id", "eq", user_id)], order_by="created_at", descending=True, limit=1)
        if not latest:
            return "You don't have any recent orders."
        order = latest[0]
    lines = store.select(ORDER_ITEMS, [("order_id", "eq", order["id"])])
    return format_order_status(order, lines)
