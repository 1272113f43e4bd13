# utils/profile.py
"""
Taste profile and "usuals".

Explicit preferences live in ``user_preferences`` (one row per user, type, key).
The profile is rebuilt on every call and never stored.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from food_assistant.schemas import PriceRange, TasteProfile, Usual
from food_assistant.utils.catalog import MENU_ITEMS, restaurants_by_id
from food_assistant.utils.db import Store

log = logging.getLogger(__name__)

USER_PREFERENCES = "user_preferences"
ORDERS = "orders"
ORDER_ITEMS = "order_items"

PREFERENCE_TYPES = ("spice_level", "cuisine", "diet", "allergen", "price_range", "category")


def _top(values: List[str], n: int) -> List[str]:
    # Counter.most_common keeps first-seen order for equal counts
    return [v for v, _ in Counter(v for v in values if v).most_common(n)]


def parse_ts(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(value) if value else None
    except (TypeError, ValueError):
        return None


def recent_orders(store: Store, user_id: str, limit: int = 20) -> List[Dict[str, Any]]:
    return store.select(ORDERS, [("user_id", "eq", user_id)], order_by="created_at", descending=True, limit=limit)


def recent_order_items(store: Store, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
    """Order lines of the user's orders, newest first."""
    order_ids = [o["id"] for o in store.select(ORDERS, [("user_id", "eq", user_id)])]
    if not order_ids:
        return []
    return store.select(ORDER_ITEMS, [("order_id", "in", order_ids)],
                        order_by="created_at", descending=True, limit=limit)


def get_usuals(store: Store, user_id: str, limit: int = 10) -> List[Usual]:
    """Most-ordered items over the user's last 100 order lines, by count descending."""
    lines = recent_order_items(store, user_id, limit=100)
    if not lines:
        return []
    orders = {o["id"]: o for o in store.select(ORDERS, [("id", "in", list({l["order_id"] for l in lines}))])}
    owners = restaurants_by_id(store, (o.get("restaurant_id") for o in orders.values()))

    usuals: Dict[str, Usual] = {}
    for line in lines:
        key = line.get("menu_item_id") or line.get("item_name")
        ts = parse_ts(line.get("created_at"))
        if key in usuals:
            u = usuals[key]
            u.order_count += 1
            if ts and (u.last_ordered_at is None or ts > u.last_ordered_at):
                u.last_ordered_at = ts
            continue
        order = orders.get(line["order_id"], {})
        rid = order.get("restaurant_id") or ""
        usuals[key] = Usual(
            menu_item_id=key,
            item_name=line.get("item_name", ""),
            restaurant_id=rid,
            restaurant_name=owners[rid].name if rid in owners else "Unknown",
            order_count=1,
            last_ordered_at=ts,
        )
    ranked = sorted(usuals.values(), key=lambda u: u.order_count, reverse=True)
    return ranked[:limit]


def _infer_from_history(store: Store, user_id: str) -> Dict[str, List[str]]:
    orders = recent_orders(store, user_id, limit=20)
    owners = restaurants_by_id(store, (o.get("restaurant_id") for o in orders))
    cuisines = _top([owners[o["restaurant_id"]].cuisine for o in orders if o.get("restaurant_id") in owners], 3)

    lines = recent_order_items(store, user_id, limit=50)
    item_ids = list({l["menu_item_id"] for l in lines if l.get("menu_item_id")})
    cats = {}
    if item_ids:
        cats = {r["id"]: r.get("category") for r in store.select(MENU_ITEMS, [("id", "in", item_ids)])}
    categories = _top([cats.get(l.get("menu_item_id")) for l in lines], 5)
    return {"cuisines": cuisines, "categories": categories}


def build_taste_profile(store: Store, user_id: str) -> TasteProfile:
    profile = TasteProfile()
    rows = store.select(USER_PREFERENCES, [("user_id", "eq", user_id)])
    for pref in rows:
        ptype, key, value = pref.get("preference_type"), pref.get("preference_key"), pref.get("preference_value") or {}
        if ptype == "spice_level":
            level = value.get("level") if isinstance(value, dict) else None
            profile.spice_level = min(max(int(level or 3), 1), 5)
        elif ptype == "cuisine":
            profile.cuisine_preferences.append(key)
        elif ptype == "diet":
            profile.dietary_restrictions.append(key)
        elif ptype == "allergen":
            profile.allergens.append(key)
        elif ptype == "price_range" and isinstance(value, dict):
            profile.price_range = PriceRange(**value)
        elif ptype == "category":
            profile.favorite_categories.append(key)

    if not profile.cuisine_preferences and not profile.favorite_categories:
        inferred = _infer_from_history(store, user_id)
        profile.cuisine_preferences = inferred["cuisines"]
        profile.favorite_categories = inferred["categories"]
    return profile


def save_preference(store: Store, user_id: str, ptype: str, key: str, value: Any) -> None:
    if ptype not in PREFERENCE_TYPES:
        raise ValueError(f"unknown preference type: {ptype}")
    store.upsert(
        USER_PREFERENCES,
        {"user_id": user_id, "preference_type": ptype, "preference_key": key, "preference_value": value},
        on_conflict=("user_id", "preference_type", "preference_key"),
    )


def _keys_of(store: Store, user_id: str, ptype: str) -> List[str]:
    rows = store.select(USER_PREFERENCES, [("user_id", "eq", user_id), ("preference_type", "eq", ptype)])
    return [r["preference_key"] for r in rows]


def get_allergens(store: Store, user_id: str) -> List[str]:
    return _keys_of(store, user_id, "allergen")


def get_dietary_restrictions(store: Store, user_id: str) -> List[str]:
    return _keys_of(store, user_id, "diet")
