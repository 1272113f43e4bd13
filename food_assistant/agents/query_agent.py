# agents/query_agent.py
from __future__ import annotations

import re
from typing import Any, List, Literal

from pydantic import BaseModel

from food_assistant.schemas import Restaurant
from food_assistant.utils.catalog import RESTAURANTS, menu_items
from food_assistant.utils.config import QUERY_ITEMS_SHOWN, QUERY_RESTAURANTS_SHOWN
from food_assistant.utils.db import Store

_RESTAURANT_Q = re.compile(r"\b(?:restaurants?|cuisines?|places?|where)\b", re.I)
_MENU_Q = re.compile(r"\b(?:menu|items?|dish(?:es)?|food)\b|\bwhat\b.*\bavailable\b", re.I)


class QueryResult(BaseModel):
    type: Literal["restaurants", "menu_items", "general"]
    data: List[Any] = []


def run_query(store: Store, text: str) -> QueryResult:
    if _RESTAURANT_Q.search(text or ""):
        rows = store.select(RESTAURANTS, order_by="rating", descending=True, limit=10)
        return QueryResult(type="restaurants", data=[Restaurant.model_validate(r) for r in rows])
    if _MENU_Q.search(text or ""):
        return QueryResult(type="menu_items", data=menu_items(store, order_by="rating", descending=True, limit=20))
    return QueryResult(type="general")


def format_query_response(result: QueryResult) -> str:
    if result.type == "restaurants" and result.data:
        rows = [f"- {r.name} ({r.cuisine}) - Rating: {r.rating} ⭐" for r in result.data[:QUERY_RESTAURANTS_SHOWN]]
        return "Here are some restaurants:\n\n" + "\n".join(rows)
    if result.type == "menu_items" and result.data:
        rows = [f"- {it.name} - ₹{it.price:g} ({it.restaurant_name})" for it in result.data[:QUERY_ITEMS_SHOWN]]
        return "Here are some menu items:\n\n" + "\n".join(rows)
    return "I can help you find restaurants and menu items. What are you looking for?"
