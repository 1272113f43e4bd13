# utils/catalog.py
"""Catalog reads: restaurant resolution and menu rows joined with their restaurant."""
from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Optional

from food_assistant.schemas import MenuItem, Restaurant
from food_assistant.utils.db import Store, Where

RESTAURANTS = "restaurants"
MENU_ITEMS = "menu_items"


def _norm(s: str) -> str:
    return re.sub(r"\s+", " ", re.sub(r"['\"]", "", (s or "").lower())).strip()


def fold_plural(word: str) -> str:
    w = (word or "").strip().lower()
    if len(w) > 3 and w.endswith("ies"):
        return w[:-3] + "y"
    if len(w) > 3 and w.endswith("s") and not w.endswith("ss"):
        return w[:-1]
    return w


def restaurants_by_id(store: Store, ids: Iterable[str]) -> Dict[str, Restaurant]:
    ids = [i for i in set(ids) if i]
    if not ids:
        return {}
    rows = store.select(RESTAURANTS, [("id", "in", ids)])
    return {r["id"]: Restaurant.model_validate(r) for r in rows}


def join_menu(store: Store, rows: List[Dict[str, Any]]) -> List[MenuItem]:
    """Attach restaurant name/cuisine; preserves row order."""
    owners = restaurants_by_id(store, (r.get("restaurant_id") for r in rows))
    out: List[MenuItem] = []
    for row in rows:
        owner = owners.get(row.get("restaurant_id"))
        data = dict(row)
        if owner:
            data["restaurant_name"] = owner.name
            data["restaurant_cuisine"] = owner.cuisine
        out.append(MenuItem.model_validate(data))
    return out


def menu_items(
    store: Store,
    where: Where = (),
    order_by: Optional[str] = None,
    descending: bool = False,
    limit: Optional[int] = None,
    include_unavailable: bool = False,
) -> List[MenuItem]:
    where = list(where)
    if not include_unavailable:
        where.append(("is_available", "eq", True))
    rows = store.select(MENU_ITEMS, where, order_by=order_by, descending=descending, limit=limit)
    return join_menu(store, rows)


def get_menu_item(store: Store, item_id: str) -> Optional[MenuItem]:
    row = store.get(MENU_ITEMS, item_id)
    return join_menu(store, [row])[0] if row else None


def get_restaurant(store: Store, restaurant_id: str) -> Optional[Restaurant]:
    row = store.get(RESTAURANTS, restaurant_id)
    return Restaurant.model_validate(row) if row else None


def find_restaurant(store: Store, name: str) -> Optional[Restaurant]:
    """
    Resolve a free-text restaurant mention.
    Exact (case-insensitive) name first; otherwise score candidates that contain the
    cleaned name or any of its words: +10 when the whole name is contained, +2 per word hit.
    """
    needle = _norm(name)
    if not needle:
        return None
    rows = store.select(RESTAURANTS)
    for r in rows:
        if _norm(r.get("name", "")) == needle:
            return Restaurant.model_validate(r)

    words = [w for w in needle.split() if len(w) > 2]
    best, best_score = None, 0
    for r in rows:
        rname = _norm(r.get("name", ""))
        if needle not in rname and not any(w in rname for w in words):
            continue
        score = 10 if needle in rname else 0
        rwords = rname.split()
        score += 2 * sum(1 for w in words if any(w in rw or rw in w for rw in rwords))
        if score > best_score:
            best, best_score = r, score
    return Restaurant.model_validate(best) if best else None


def name_matches(item_name: str, mention: str) -> bool:
    """Case-insensitive substring match in either direction, with plural folding."""
    a, b = (item_name or "").lower(), (mention or "").lower().strip()
    if not b:
        return False
    if b in a or (a and re.search(rf"\b{re.escape(a)}\b", b)):
        return True
    folded = " ".join(fold_plural(w) for w in b.split())
    return folded in a


def match_menu_item(menu: List[MenuItem], mention: str) -> Optional[MenuItem]:
    return next((mi for mi in menu if name_matches(mi.name, mention)), None)


def find_menu_item(store: Store, mention: str) -> Optional[MenuItem]:
    """Best catalog-wide match for a dish mention; exact name wins, then highest rated."""
    mention = (mention or "").strip()
    if not mention:
        return None
    menu = menu_items(store, order_by="rating", descending=True)
    exact = next((mi for mi in menu if mi.name.lower() == mention.lower()), None)
    return exact or match_menu_item(menu, mention)
