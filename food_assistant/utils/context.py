# utils/context.py
from typing import List

from food_assistant.schemas import Restaurant, UserMemory
from food_assistant.utils.catalog import RESTAURANTS
from food_assistant.utils.config import SYSTEM_PROMPT
from food_assistant.utils.db import Store


def format_restaurants(restaurants: List[Restaurant]) -> str:
    if not restaurants:
        return "AVAILABLE RESTAURANTS: (none currently listed)"
    lines = [f"- {r.name} ({r.cuisine}) - Rating: {r.rating}⭐, Delivery: {r.delivery_time}" for r in restaurants]
    return "AVAILABLE RESTAURANTS:\n" + "\n".join(lines)


def format_memory(memory: UserMemory) -> str:
    parts = []
    last = memory.last_order
    if last:
        items = ", ".join(f"{i.get('quantity', 1)}x {i.get('name')}" for i in last.get("items") or [])
        parts.append(f"Last order: {items or 'N/A'} (₹{last.get('total_amount', 0)})")
    if memory.default_address:
        parts.append(f"Default address: {memory.default_address}")
    prefs = memory.restaurant_preferences
    if prefs:
        parts.append("Preferred restaurants: " + ", ".join(p.restaurant_name for p in prefs))
    if not parts:
        return ""
    return "USER CONTEXT:\n" + "\n".join(parts)


def build_system_prompt(store: Store, memory: UserMemory, limit: int = 20) -> str:
    rows = store.select(RESTAURANTS, order_by="rating", descending=True, limit=limit)
    sections = [SYSTEM_PROMPT, format_restaurants([Restaurant.model_validate(r) for r in rows])]
    mem = format_memory(memory)
    if mem:
        sections.append(mem)
    return "\n\n".join(sections)
