#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
End-to-end turns through the Supervisor graph against an in-memory store.
"""
from __future__ import annotations

import random
import sys
import unittest
from datetime import datetime, timezone
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from food_assistant.agents.cart_agent import CART, add_to_cart, fetch_cart
from food_assistant.graph import INTENT_HANDLERS, Supervisor
from food_assistant.nodes.management import GREETINGS, HELP_TEXT
from food_assistant.schemas import RecommendationOptions
from food_assistant.scripts.seed_catalog import load_catalog, seed
from food_assistant.state import Intent, ResultType
from food_assistant.utils.db import InMemoryStore, StoreError
from food_assistant.utils.profile import ORDERS, build_taste_profile, get_allergens, get_dietary_restrictions
from food_assistant.utils.recommendation import recommend
from food_assistant.utils.validation import APOLOGY

CATALOG = _ROOT / "data" / "catalog.json"
NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class _CartDownStore(InMemoryStore):
    def select(self, table, where=(), order_by=None, descending=False, limit=None):
        if table == CART:
            raise StoreError("connection reset")
        return super().select(table, where, order_by, descending, limit)


class _SupervisorCase(unittest.TestCase):
    store_cls = InMemoryStore

    def setUp(self) -> None:
        if not CATALOG.exists():
            self.skipTest("catalog file missing: data/catalog.json")
        self.store = self.store_cls()
        seed(self.store, load_catalog(str(CATALOG)))
        self.sup = Supervisor(self.store, rng=random.Random(7), clock=lambda: NOW)

    def turn(self, text: str, history=None, user_id: str = "u1"):
        return self.sup.orchestrate(text, history or [], user_id)


class TestGraphShape(unittest.TestCase):
    def test_one_branch_per_intent(self) -> None:
        self.assertEqual(set(INTENT_HANDLERS), set(Intent))


class TestManagementTurns(_SupervisorCase):
    def test_greeting_from_fixed_set(self) -> None:
        result = self.turn("hello")
        self.assertEqual(result.type, ResultType.GREETING)
        self.assertIn(result.response, GREETINGS)

    def test_help(self) -> None:
        result = self.turn("what can you do?")
        self.assertEqual(result.intent, Intent.HELP)
        self.assertEqual(result.response, HELP_TEXT)

    def test_unclassified_delegates_to_chat(self) -> None:
        result = self.turn("thanks a lot")
        self.assertEqual(result.type, ResultType.CONVERSATION)
        self.assertEqual(result.response, "")
        self.assertTrue(result.needs_chat_fallback)

    def test_clarify(self) -> None:
        result = self.turn("I want chicken biryani")
        self.assertEqual(result.intent, Intent.ORDER)
        result = self.turn("biryani")
        self.assertEqual(result.type, ResultType.CLARIFY)
        self.assertIn("How many would you like?", result.response)


class TestPreferenceTurns(_SupervisorCase):
    def test_allergy_is_persisted_and_respected(self) -> None:
        result = self.turn("I'm allergic to peanuts")
        self.assertEqual(result.intent, Intent.SAVE_PREFERENCE)
        self.assertEqual(result.type, ResultType.PREFERENCE)
        self.assertIn("peanuts", result.response)
        self.assertEqual(get_allergens(self.store, "u1"), ["peanuts"])

        names = {r.name for r in recommend(self.store, "u1", RecommendationOptions(limit=50))}
        self.assertNotIn("Peanut Butter Shake", names)
        result = self.turn("recommend something")
        self.assertEqual(result.type, ResultType.RECOMMENDATION)
        self.assertFalse({"Peanut Butter Shake", "Sprout Salad"} & {r["name"] for r in result.data})

        check = self.turn("what are my allergens?")
        self.assertIn("peanuts", check.response)

    def test_vegetarian_diet(self) -> None:
        self.turn("I'm vegetarian")
        self.assertEqual(get_dietary_restrictions(self.store, "u1"), ["vegetarian"])

    def test_disliking_spicy_food_lowers_spice_level(self) -> None:
        result = self.turn("I don't like spicy food")
        self.assertEqual(result.type, ResultType.PREFERENCE)
        self.assertIn("mild", result.response)
        self.assertEqual(get_allergens(self.store, "u1"), [])
        self.assertEqual(build_taste_profile(self.store, "u1").spice_level, 1)

    def test_other_dislikes_are_avoided(self) -> None:
        self.turn("I don't like onions")
        self.assertEqual(get_allergens(self.store, "u1"), ["onions"])

    def test_default_address_goes_to_memory(self) -> None:
        result = self.turn("My address is 12 MG Road, Bengaluru")
        self.assertEqual(result.intent, Intent.SAVE_PREFERENCE)
        self.assertEqual(self.sup.memory.get("u1").default_address, "12 MG Road, Bengaluru")

    def test_guidance_when_nothing_to_save(self) -> None:
        result = self.turn("remember that I like things")
        self.assertEqual(result.intent, Intent.SAVE_PREFERENCE)
        self.assertIn("I can save your preferences!", result.response)

    def test_nutrition_for_named_dish(self) -> None:
        result = self.turn("how many calories in chicken biryani?")
        self.assertEqual(result.type, ResultType.NUTRITION)
        self.assertIn("Nutritional Information for Chicken Biryani", result.response)


class TestOrderTurns(_SupervisorCase):
    def test_order_with_quantity_from_restaurant(self) -> None:
        result = self.turn("order 2 biryanis from Paradise")
        self.assertEqual(result.intent, Intent.ORDER)
        self.assertIn("2x Chicken Biryani", result.response)
        lines = fetch_cart(self.store, "u1")
        self.assertEqual(len(lines), 1)
        self.assertEqual(lines[0].quantity, 2)
        self.assertEqual(lines[0].item.restaurant_id, "r-paradise")

        prefs = self.sup.memory.get("u1").restaurant_preferences
        self.assertEqual([p.restaurant_id for p in prefs], ["r-paradise"])

    def test_same_as_last_time_without_memory(self) -> None:
        result = self.turn("same as last time")
        self.assertEqual(result.intent, Intent.ORDER)
        self.assertEqual(result.response,
                         "I can help you place an order! Which restaurant would you like to order from?")
        self.assertEqual(self.store.select(ORDERS), [])

    def test_checkout_then_repeat_last_order(self) -> None:
        self.turn("order 2 biryanis from Paradise")
        placed = self.turn("place order")
        self.assertTrue(placed.response.startswith("Order placed successfully!"))
        self.assertIsNotNone(placed.order_data)
        self.assertEqual(fetch_cart(self.store, "u1"), [])

        again = self.turn("same as last time")
        self.assertTrue(again.response.startswith("Order placed successfully!"))
        self.assertEqual(again.order_data["total_amount"], 640)
        self.assertEqual(len(self.store.select(ORDERS, [("user_id", "eq", "u1")])), 2)

        history = [{"role": "user", "content": "same as last time"},
                   {"role": "assistant", "content": again.response}]
        status = self.turn("where is my order?", history)
        self.assertEqual(status.type, ResultType.TRACK)
        self.assertIn(f"Order #{again.order_data['id'][:8]}", status.response)

    def test_unknown_restaurant_asks_to_clarify(self) -> None:
        result = self.turn("order biryani from xyz kitchen")
        self.assertEqual(result.type, ResultType.CLARIFY)
        self.assertIn('"xyz kitchen"', result.response)

    def test_restaurant_without_menu(self) -> None:
        result = self.turn("order from Shadab")
        self.assertIn("Shadab is available, but their menu is not yet set up.", result.response)

    def test_unmatched_items_show_menu(self) -> None:
        result = self.turn("order 2 noodles from Dominos")
        self.assertIn("I couldn't find those items in Domino's Pizza", result.response)
        self.assertIn("- Margherita Pizza (₹199)", result.response)
        self.assertEqual(fetch_cart(self.store, "u1"), [])

    def test_restaurant_only_shows_menu(self) -> None:
        result = self.turn("I want to order from Dominos")
        self.assertTrue(result.response.startswith("Here's the menu from Domino's Pizza"))


class TestCartAndWishlistTurns(_SupervisorCase):
    def test_view_remove_and_clear(self) -> None:
        self.turn("order 2 biryanis from Paradise")
        self.assertIn("2x Chicken Biryani", self.turn("show my cart").response)
        removed = self.turn("remove chicken biryani from my cart")
        self.assertEqual(removed.type, ResultType.CART)
        self.assertEqual(fetch_cart(self.store, "u1"), [])
        self.assertEqual(self.turn("clear my cart").response, "Cart cleared.")

    def test_update_quantity_from_trailing_number(self) -> None:
        self.turn("order 1 chicken biryani from Paradise")
        result = self.turn("change chicken biryani quantity to 3 in my cart")
        self.assertEqual(result.type, ResultType.CART)
        self.assertEqual(result.response, "Updated cart item quantity.")
        self.assertEqual([line.quantity for line in fetch_cart(self.store, "u1")], [3])

    def test_update_without_quantity_asks(self) -> None:
        self.turn("order 1 chicken biryani from Paradise")
        result = self.turn("update chicken biryani in my cart")
        self.assertTrue(result.response.startswith("How many Chicken Biryani"))
        self.assertEqual([line.quantity for line in fetch_cart(self.store, "u1")], [1])

    def test_remove_by_generic_dish_word(self) -> None:
        add_to_cart(self.store, "u1", "m-dom-pepperoni", "Pepperoni Pizza", 2)
        result = self.turn("remove pizza from my cart")
        self.assertEqual(result.intent, Intent.CART)
        self.assertEqual(result.response, "Removed item from cart.")
        self.assertEqual(fetch_cart(self.store, "u1"), [])

    def test_wishlist(self) -> None:
        added = self.turn("add choco lava cake to my wishlist")
        self.assertEqual(added.type, ResultType.WISHLIST)
        self.assertIn("Choco Lava Cake", self.turn("show my wishlist").response)


class TestDiscoveryTurns(_SupervisorCase):
    def test_empty_budget_result_is_explicit(self) -> None:
        result = self.turn("suggest something under 10 rupees")
        self.assertEqual(result.intent, Intent.SUGGEST_BY_BUDGET)
        self.assertIn("couldn't find any options under ₹10", result.response)

    def test_budget_defaults(self) -> None:
        result = self.turn("what can I get on a budget?")
        self.assertEqual(result.intent, Intent.SUGGEST_BY_BUDGET)
        self.assertTrue(result.response.startswith("Here are options under ₹200"))
        self.assertTrue(all(r["price"] <= 200 for r in result.data))

    def test_usuals_empty_then_populated(self) -> None:
        self.assertIn("don't have any usual orders yet", self.turn("show my usuals").response)
        self.turn("order 2 biryanis from Paradise")
        self.turn("place order")
        self.assertIn("Chicken Biryani", self.turn("show my usuals").response)

    def test_trending(self) -> None:
        self.assertIn("couldn't find", self.turn("what's trending?").response)

    def test_similar_items(self) -> None:
        result = self.turn("suggest something similar to chicken biryani")
        self.assertIn("If you like Chicken Biryani", result.response)
        self.assertTrue(all(r["match_reason"] == "similar to Chicken Biryani" for r in result.data))

    def test_combos_follow_cart(self) -> None:
        self.assertIn("Add a main dish", self.turn("what goes well with my order?").response)
        self.turn("order 1 chicken biryani from Paradise")
        self.assertIn("Sweet Lassi", self.turn("what goes well with my order?").response)


class TestLookupTurns(_SupervisorCase):
    def test_compare_items_when_both_resolve(self) -> None:
        result = self.turn("compare chicken biryani and mutton biryani")
        self.assertEqual(result.type, ResultType.COMPARISON)
        self.assertIn("Better Price: Chicken Biryani", result.response)

    def test_compare_restaurants_when_both_resolve(self) -> None:
        result = self.turn("compare Paradise and Bawarchi")
        self.assertEqual(result.intent, Intent.COMPARE_RESTAURANTS)
        self.assertIn("Comparing Paradise Biryani vs Bawarchi", result.response)

    def test_compare_guidance_when_unresolved(self) -> None:
        result = self.turn("compare the restaurants")
        self.assertIn("Please tell me which two restaurants", result.response)

    def test_restaurant_info(self) -> None:
        result = self.turn("tell me about Paradise")
        self.assertIn("**Paradise Biryani** (Hyderabadi)", result.response)

    def test_cheapest_and_top_rated(self) -> None:
        self.assertIn("**Margherita Pizza** at ₹199", self.turn("find the cheapest pizza").response)
        top = self.turn("top rated biryani")
        self.assertEqual(len(top.data), 5)
        self.assertEqual(top.data[0]["name"], "Meghana Special Chicken Biryani")

    def test_unknown_restaurant_in_lookups_asks_to_clarify(self) -> None:
        cases = {
            "cheapest item at Foobar Palace": Intent.CHEAPEST,
            "sort the menu at Foobar Palace by price": Intent.SORT_MENU,
            "show veg options at Foobar Palace": Intent.FILTER_MENU,
            "top rated biryani at Foobar Palace": Intent.HIGHEST_RATED,
        }
        for text, intent in cases.items():
            with self.subTest(text=text):
                result = self.turn(text)
                self.assertEqual(result.intent, intent)
                self.assertEqual(result.type, ResultType.CLARIFY)
                self.assertIn('"foobar palace"', result.response)
                self.assertFalse(result.data)

    def test_known_restaurant_scopes_cheapest(self) -> None:
        result = self.turn("cheapest item at Dominos")
        self.assertEqual(result.type, ResultType.FILTER)
        self.assertEqual(result.data["restaurant_id"], "r-dominos")

    def test_sort_by_price_lists_cheapest_first(self) -> None:
        result = self.turn("sort by price")
        prices = [r["price"] for r in result.data]
        self.assertEqual(prices, sorted(prices))
        self.assertLessEqual(len(prices), 10)


class TestFailureTurns(_SupervisorCase):
    store_cls = _CartDownStore

    def test_store_failure_becomes_apology(self) -> None:
        result = self.turn("show my cart")
        self.assertEqual(result.type, ResultType.CART)
        self.assertEqual(result.response, APOLOGY)

    def test_other_branches_unaffected(self) -> None:
        self.assertEqual(self.turn("help").response, HELP_TEXT)


if __name__ == "__main__":
    unittest.main()
