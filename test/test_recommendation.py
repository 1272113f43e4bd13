#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Recommendation scoring, filters, trending, similar items and combos.
"""
from __future__ import annotations

import sys
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from food_assistant.schemas import MenuItem, RecommendationOptions, TasteProfile
from food_assistant.scripts.seed_catalog import load_catalog, seed
from food_assistant.utils.catalog import get_menu_item
from food_assistant.utils.db import InMemoryStore
from food_assistant.utils.profile import ORDER_ITEMS, ORDERS, save_preference
from food_assistant.utils.recommendation import (
    combo_suggestions,
    contains_allergen,
    recommend,
    score_item,
    similar_to,
    trending,
)

CATALOG = _ROOT / "data" / "catalog.json"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _seeded_store(**kwargs) -> InMemoryStore:
    store = InMemoryStore(**kwargs)
    seed(store, load_catalog(str(CATALOG)))
    return store


def _item(**overrides) -> MenuItem:
    data = dict(id="x", restaurant_id="r", name="Test Dish", price=200, category="Other", rating=4.0)
    data.update(overrides)
    return MenuItem(**data)


class TestScoring(unittest.TestCase):
    def test_score_is_clamped_to_100(self) -> None:
        profile = TasteProfile(cuisine_preferences=["Italian"], favorite_categories=["Pizza"], spice_level=2)
        item = _item(category="Pizza", restaurant_cuisine="Italian", rating=4.8, price=100,
                     spice_level=2, calories=300)
        rec = score_item(item, profile, RecommendationOptions(is_healthy=True))
        self.assertEqual(rec.match_score, 100)

    def test_base_score_without_signals(self) -> None:
        rec = score_item(_item(rating=3.5, price=900), TasteProfile(), RecommendationOptions())
        self.assertEqual(rec.match_score, 50)
        self.assertEqual(rec.match_reason, "popular choice")

    def test_higher_rating_scores_higher(self) -> None:
        profile, options = TasteProfile(), RecommendationOptions()
        low = score_item(_item(rating=4.0), profile, options)
        high = score_item(_item(rating=4.6), profile, options)
        self.assertGreater(high.match_score, low.match_score)

    def test_allergen_match_is_case_insensitive_and_plural_tolerant(self) -> None:
        item = _item(allergens=["Peanuts", "Dairy"])
        self.assertTrue(contains_allergen(item, ["peanut"]))
        self.assertTrue(contains_allergen(item, ["PEANUTS"]))
        self.assertFalse(contains_allergen(item, ["gluten"]))


class TestRecommend(unittest.TestCase):
    def setUp(self) -> None:
        if not CATALOG.exists():
            self.skipTest("catalog file missing: data/catalog.json")
        self.store = _seeded_store()

    def test_budget_is_a_hard_ceiling(self) -> None:
        recs = recommend(self.store, "u1", RecommendationOptions(budget=150, limit=50))
        self.assertTrue(recs)
        self.assertTrue(all(r.price <= 150 for r in recs))

    def test_stored_allergens_are_excluded(self) -> None:
        save_preference(self.store, "u1", "allergen", "peanuts", {"severity": "high"})
        names = {r.name for r in recommend(self.store, "u1", RecommendationOptions(limit=50))}
        self.assertNotIn("Peanut Butter Shake", names)
        self.assertNotIn("Sprout Salad", names)

    def test_allergen_filter_can_be_disabled(self) -> None:
        save_preference(self.store, "u1", "allergen", "peanuts", {"severity": "high"})
        opts = RecommendationOptions(limit=50, exclude_allergens=False)
        names = {r.name for r in recommend(self.store, "u1", opts)}
        self.assertIn("Peanut Butter Shake", names)

    def test_vegetarian_diet_applies_without_explicit_flag(self) -> None:
        save_preference(self.store, "u1", "diet", "vegetarian", {"enabled": True})
        recs = recommend(self.store, "u1", RecommendationOptions(limit=50))
        self.assertTrue(recs)
        self.assertTrue(all(r.is_vegetarian for r in recs))

    def test_sorted_by_score_and_truncated(self) -> None:
        recs = recommend(self.store, "u1", RecommendationOptions(limit=4))
        self.assertEqual(len(recs), 4)
        scores = [r.match_score for r in recs]
        self.assertEqual(scores, sorted(scores, reverse=True))

    def test_empty_when_nothing_fits(self) -> None:
        self.assertEqual(recommend(self.store, "u1", RecommendationOptions(budget=10)), [])


class TestTrendingSimilarCombos(unittest.TestCase):
    def setUp(self) -> None:
        if not CATALOG.exists():
            self.skipTest("catalog file missing: data/catalog.json")
        self.store = _seeded_store(clock=lambda: NOW)

    def test_trending_counts_last_week_only(self) -> None:
        order = self.store.insert(ORDERS, {"user_id": "u1", "restaurant_id": "r-paradise", "total_amount": 960})
        for _ in range(3):
            self.store.insert(ORDER_ITEMS, {"order_id": order["id"], "menu_item_id": "m-par-chk-biryani",
                                            "quantity": 1, "price": 320, "item_name": "Chicken Biryani"})
        old = (NOW - timedelta(days=30)).isoformat()
        for _ in range(5):
            self.store.insert(ORDER_ITEMS, {"order_id": order["id"], "menu_item_id": "m-dom-coke",
                                            "quantity": 1, "price": 60, "item_name": "Coke",
                                            "created_at": old})

        items = trending(self.store, clock=lambda: NOW)
        self.assertEqual([t.id for t in items], ["m-par-chk-biryani"])
        self.assertEqual(items[0].match_score, 83)
        self.assertEqual(items[0].match_reason, "ordered 3 times this week")

    def test_trending_empty_without_orders(self) -> None:
        self.assertEqual(trending(self.store, clock=lambda: NOW), [])

    def test_trending_skips_lines_without_a_usable_timestamp(self) -> None:
        order = self.store.insert(ORDERS, {"user_id": "u1", "restaurant_id": "r-paradise", "total_amount": 640})
        for created_at in (None, "not-a-date"):
            self.store.insert(ORDER_ITEMS, {"order_id": order["id"], "menu_item_id": "m-par-chk-biryani",
                                            "quantity": 1, "price": 320, "item_name": "Chicken Biryani",
                                            "created_at": created_at})
        self.assertEqual(trending(self.store, clock=lambda: NOW), [])

    def test_similar_to_same_category_within_price_band(self) -> None:
        recs = similar_to(self.store, "m-par-chk-biryani", limit=10)
        ids = {r.id for r in recs}
        self.assertNotIn("m-par-chk-biryani", ids)
        self.assertEqual(ids, {"m-par-mut-biryani", "m-par-veg-biryani", "m-baw-chk-biryani", "m-meg-chk-biryani"})
        self.assertTrue(all(r.match_score == 75 for r in recs))
        self.assertTrue(all(r.match_reason == "similar to Chicken Biryani" for r in recs))

    def test_combos_for_a_main_dish(self) -> None:
        combos = combo_suggestions(self.store, [get_menu_item(self.store, "m-par-chk-biryani")])
        self.assertEqual(combos.drink.name, "Sweet Lassi")
        self.assertEqual(combos.drink.match_score, 70)
        self.assertEqual(combos.dessert.name, "Choco Lava Cake")
        self.assertEqual(combos.dessert.match_score, 65)

    def test_no_combos_without_main_dish(self) -> None:
        combos = combo_suggestions(self.store, [get_menu_item(self.store, "m-dom-coke")])
        self.assertIsNone(combos.drink)
        self.assertIsNone(combos.dessert)

    def test_existing_beverage_is_not_suggested_again(self) -> None:
        cart = [get_menu_item(self.store, "m-par-chk-biryani"), get_menu_item(self.store, "m-par-lassi")]
        combos = combo_suggestions(self.store, cart)
        self.assertIsNone(combos.drink)
        self.assertIsNotNone(combos.dessert)


if __name__ == "__main__":
    unittest.main()
