#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
Usuals aggregation, taste profile and per-user memory.
"""
from __future__ import annotations

import sys
import unittest
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from food_assistant.schemas import MemoryKind
from food_assistant.scripts.seed_catalog import load_catalog, seed
from food_assistant.utils.db import InMemoryStore, StoreError
from food_assistant.utils.memory import MemoryStore
from food_assistant.utils.profile import (
    ORDER_ITEMS,
    ORDERS,
    build_taste_profile,
    get_allergens,
    get_usuals,
    save_preference,
)

CATALOG = _ROOT / "data" / "catalog.json"


def _seeded_store() -> InMemoryStore:
    store = InMemoryStore()
    seed(store, load_catalog(str(CATALOG)))
    return store


def _order(store, user_id, restaurant_id, lines):
    order = store.insert(ORDERS, {"user_id": user_id, "restaurant_id": restaurant_id,
                                  "total_amount": sum(p * q for _, _, p, q in lines), "status": "delivered"})
    for item_id, name, price, qty in lines:
        store.insert(ORDER_ITEMS, {"order_id": order["id"], "menu_item_id": item_id, "item_name": name,
                                   "price": price, "quantity": qty})
    return order


class _BrokenStore(InMemoryStore):
    def select(self, table, where=(), order_by=None, descending=False, limit=None):
        raise StoreError("connection refused")


class TestUsuals(unittest.TestCase):
    def setUp(self) -> None:
        if not CATALOG.exists():
            self.skipTest("catalog file missing: data/catalog.json")
        self.store = _seeded_store()
        for _ in range(3):
            _order(self.store, "u1", "r-paradise", [("m-par-chk-biryani", "Chicken Biryani", 320, 1)])
        _order(self.store, "u1", "r-dominos", [("m-dom-coke", "Coke", 60, 2)])
        _order(self.store, "u2", "r-dominos", [("m-dom-margherita", "Margherita Pizza", 199, 1)])

    def test_ranked_by_count(self) -> None:
        usuals = get_usuals(self.store, "u1")
        self.assertEqual([u.menu_item_id for u in usuals], ["m-par-chk-biryani", "m-dom-coke"])
        self.assertEqual(usuals[0].order_count, 3)
        self.assertEqual(usuals[0].restaurant_name, "Paradise Biryani")
        self.assertIsNotNone(usuals[0].last_ordered_at)

    def test_idempotent(self) -> None:
        self.assertEqual(get_usuals(self.store, "u1"), get_usuals(self.store, "u1"))

    def test_scoped_to_user(self) -> None:
        self.assertEqual([u.item_name for u in get_usuals(self.store, "u2")], ["Margherita Pizza"])
        self.assertEqual(get_usuals(self.store, "nobody"), [])

    def test_limit(self) -> None:
        self.assertEqual(len(get_usuals(self.store, "u1", limit=1)), 1)


class TestTasteProfile(unittest.TestCase):
    def setUp(self) -> None:
        if not CATALOG.exists():
            self.skipTest("catalog file missing: data/catalog.json")
        self.store = _seeded_store()

    def test_defaults(self) -> None:
        profile = build_taste_profile(self.store, "new-user")
        self.assertEqual(profile.spice_level, 3)
        self.assertEqual(profile.price_range.max, 1000)
        self.assertEqual(profile.cuisine_preferences, [])

    def test_explicit_preferences(self) -> None:
        save_preference(self.store, "u1", "spice_level", "level", {"level": 5})
        save_preference(self.store, "u1", "cuisine", "Italian", {"enabled": True})
        save_preference(self.store, "u1", "allergen", "peanuts", {"severity": "high"})
        profile = build_taste_profile(self.store, "u1")
        self.assertEqual(profile.spice_level, 5)
        self.assertEqual(profile.cuisine_preferences, ["Italian"])
        self.assertEqual(profile.allergens, ["peanuts"])

    def test_preference_upsert_does_not_duplicate(self) -> None:
        save_preference(self.store, "u1", "allergen", "peanuts", {"severity": "low"})
        save_preference(self.store, "u1", "allergen", "peanuts", {"severity": "high"})
        self.assertEqual(get_allergens(self.store, "u1"), ["peanuts"])

    def test_unknown_preference_type_rejected(self) -> None:
        with self.assertRaises(ValueError):
            save_preference(self.store, "u1", "mood", "happy", {})

    def test_inferred_from_history(self) -> None:
        _order(self.store, "u1", "r-paradise", [("m-par-chk-biryani", "Chicken Biryani", 320, 1)])
        _order(self.store, "u1", "r-paradise", [("m-par-mut-biryani", "Mutton Biryani", 380, 1)])
        _order(self.store, "u1", "r-dominos", [("m-dom-margherita", "Margherita Pizza", 199, 1)])
        profile = build_taste_profile(self.store, "u1")
        self.assertEqual(profile.cuisine_preferences[0], "Hyderabadi")
        self.assertIn("Italian", profile.cuisine_preferences)
        self.assertEqual(profile.favorite_categories[0], "Biryani")


class TestMemory(unittest.TestCase):
    def setUp(self) -> None:
        self.memory = MemoryStore(InMemoryStore())

    def test_set_then_get(self) -> None:
        self.memory.set("u1", MemoryKind.DEFAULT_ADDRESS, "default", {"address": "12 MG Road"})
        self.assertEqual(self.memory.get("u1").default_address, "12 MG Road")

    def test_second_set_overwrites(self) -> None:
        self.memory.set("u1", MemoryKind.LAST_ORDER, "latest", {"order_id": "a"})
        self.memory.set("u1", MemoryKind.LAST_ORDER, "latest", {"order_id": "b"})
        mem = self.memory.get("u1")
        self.assertEqual(mem.last_order, {"order_id": "b"})
        self.assertEqual(len(mem.entries[MemoryKind.LAST_ORDER.value]), 1)

    def test_partitioned_by_user_and_kind(self) -> None:
        self.memory.set("u1", MemoryKind.RESTAURANT_PREFERENCE, "r-paradise",
                        {"name": "Paradise Biryani", "id": "r-paradise"})
        self.memory.set("u1", MemoryKind.PREFERENCE, "spice", "hot")
        mem = self.memory.get("u1")
        self.assertEqual([p.restaurant_name for p in mem.restaurant_preferences], ["Paradise Biryani"])
        self.assertEqual(mem.preferences, [{"key": "spice", "value": "hot"}])
        self.assertEqual(self.memory.get("u2").entries, {})

    def test_clear(self) -> None:
        self.memory.set("u1", MemoryKind.CART_STATE, "current", {"items": []})
        self.assertEqual(self.memory.clear("u1", MemoryKind.CART_STATE), 1)
        self.assertIsNone(self.memory.get("u1").cart_state)

    def test_read_failure_degrades_to_empty(self) -> None:
        mem = MemoryStore(_BrokenStore()).get("u1")
        self.assertEqual(mem.user_id, "u1")
        self.assertEqual(mem.entries, {})


if __name__ == "__main__":
    unittest.main()
