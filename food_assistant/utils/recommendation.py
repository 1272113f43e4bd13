# utils/recommendation.py
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from langsmith import traceable

from food_assistant.schemas import (
    ComboSuggestions, MenuItem, RecommendationOptions, RecommendedItem, TasteProfile,
)
from food_assistant.utils.catalog import fold_plural, get_menu_item, join_menu, menu_items, MENU_ITEMS
from food_assistant.utils.config import TRENDING_DAYS
from food_assistant.utils.db import Store, utcnow
from food_assistant.utils.profile import ORDER_ITEMS, parse_ts, build_taste_profile

log = logging.getLogger(__name__)

BASE_SCORE = 50
MAIN_CATEGORIES = {"biryani", "pizza", "burger", "main course"}


def contains_allergen(item: MenuItem, allergens: List[str]) -> bool:
    for stored in allergens:
        s = (stored or "").lower().strip()
        if not s:
            continue
        for a in item.allergens:
            a = a.lower()
            if s in a or fold_plural(s) in a:
                return True
    return False


def _passes_filters(item: MenuItem, options: RecommendationOptions, vegetarian_only: bool) -> bool:
    if options.budget is not None and item.price > options.budget:
        return False
    if options.category and options.category.lower() not in (item.category or "").lower():
        return False
    if vegetarian_only and not item.is_vegetarian:
        return False
    if options.spice_level is not None and item.spice_level is not None and item.spice_level > options.spice_level:
        return False
    if options.cuisine and options.cuisine.lower() not in (item.restaurant_cuisine or "").lower():
        return False
    return True


def score_item(item: MenuItem, profile: TasteProfile, options: RecommendationOptions) -> RecommendedItem:
    score = BASE_SCORE
    reasons: List[str] = []

    if item.restaurant_cuisine and item.restaurant_cuisine in profile.cuisine_preferences:
        score += 20
        reasons.append("matches your cuisine preference")
    if item.category in profile.favorite_categories:
        score += 15
        reasons.append("popular category for you")
    if item.rating >= 4.5:
        score += 15
        reasons.append("highly rated")
    elif item.rating >= 4.0:
        score += 10
    if item.price <= profile.price_range.max * 0.7:
        score += 5
        reasons.append("good value")
    if item.spice_level is not None and abs(item.spice_level - profile.spice_level) <= 1:
        score += 10
        reasons.append("matches your spice preference")
    if options.is_healthy and item.calories and item.calories < 500:
        score += 10
        reasons.append("healthy option")

    return RecommendedItem.from_menu_item(item, score, ", ".join(reasons) or "popular choice")


@traceable(name="recommend", tags=["recommendation"])
def recommend(
    store: Store,
    user_id: str,
    options: Optional[RecommendationOptions] = None,
    profile: Optional[TasteProfile] = None,
) -> List[RecommendedItem]:
    """
    Personalised picks. Hard filters (budget, category, vegetarian, max spice, cuisine)
    and allergen exclusion run before scoring; the sort is stable so equal scores keep
    catalog order.
    """
    options = options or RecommendationOptions()
    profile = profile or build_taste_profile(store, user_id)
    allergens = profile.allergens if options.exclude_allergens else []
    diet = {d.lower() for d in profile.dietary_restrictions}
    vegetarian_only = bool(options.is_vegetarian) or bool(diet & {"vegetarian", "vegan"})

    candidates = [
        it for it in menu_items(store)
        if _passes_filters(it, options, vegetarian_only) and not contains_allergen(it, allergens)
    ]
    scored = [score_item(it, profile, options) for it in candidates]
    scored.sort(key=lambda r: r.match_score, reverse=True)
    return scored[: options.limit]


@traceable(name="trending", tags=["recommendation"])
def trending(store: Store, limit: int = 10, clock: Callable[[], datetime] = utcnow) -> List[RecommendedItem]:
    """Most-ordered items over the trailing week; score 80 + min(count, 20)."""
    cutoff = clock() - timedelta(days=TRENDING_DAYS)
    lines = []
    for l in store.select(ORDER_ITEMS, order_by="created_at", descending=True, limit=200):
        ts = parse_ts(l.get("created_at"))
        # undated lines are outside every window
        if l.get("menu_item_id") and ts is not None and ts >= cutoff:
            lines.append(l)
    counts = Counter(l["menu_item_id"] for l in lines)
    if not counts:
        return []
    rows = store.select(MENU_ITEMS, [("id", "in", list(counts))])
    items: Dict[str, MenuItem] = {it.id: it for it in join_menu(store, rows)}

    out: List[RecommendedItem] = []
    for item_id, count in counts.most_common():
        item = items.get(item_id)
        if item is None:
            continue
        out.append(RecommendedItem.from_menu_item(item, 80 + min(count, 20), f"ordered {count} times this week"))
        if len(out) >= limit:
            break
    return out


@traceable(name="similar_to", tags=["recommendation"])
def similar_to(store: Store, item_id: str, limit: int = 5) -> List[RecommendedItem]:
    ref = get_menu_item(store, item_id)
    if ref is None:
        return []
    spread = ref.price * 0.3
    candidates = menu_items(store, [
        ("category", "eq", ref.category),
        ("id", "neq", ref.id),
        ("price", "gte", ref.price - spread),
        ("price", "lte", ref.price + spread),
    ], limit=limit)
    return [RecommendedItem.from_menu_item(it, 75, f"similar to {ref.name}") for it in candidates]


def _best_in(store: Store, category: str) -> Optional[MenuItem]:
    rows = menu_items(store, [("category", "contains", category)], order_by="rating", descending=True, limit=1)
    return rows[0] if rows else None


@traceable(name="combo_suggestions", tags=["recommendation"])
def combo_suggestions(store: Store, cart_items: List[MenuItem]) -> ComboSuggestions:
    cats = [(it.category or "").lower() for it in cart_items]
    has_main = any(c in MAIN_CATEGORIES for c in cats)
    if not has_main:
        return ComboSuggestions()
    out = ComboSuggestions()
    if not any("beverage" in c for c in cats):
        drink = _best_in(store, "beverage")
        if drink:
            out.drink = RecommendedItem.from_menu_item(drink, 70, "perfect pairing with your meal")
    if not any("dessert" in c for c in cats):
        dessert = _best_in(store, "dessert")
        if dessert:
            out.dessert = RecommendedItem.from_menu_item(dessert, 65, "sweet ending to your meal")
    return out
