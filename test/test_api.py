#!/usr/bin/env python
# -*- coding: utf-8 -*-
"""
POST /chat request validation, chat fallback and health checks.
"""
from __future__ import annotations

import sys
import unittest
from pathlib import Path

_ROOT = Path(__file__).resolve().parent.parent
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from fastapi.testclient import TestClient

from food_assistant.main import create_app
from food_assistant.nodes.management import GREETINGS
from food_assistant.scripts.seed_catalog import load_catalog, seed
from food_assistant.utils.db import InMemoryStore
from food_assistant.utils.llm import ChatFallbackError

CATALOG = _ROOT / "data" / "catalog.json"


class _FakeChat:
    def __init__(self, reply: str = "Happy to help!", fail: bool = False) -> None:
        self.reply, self.fail = reply, fail
        self.calls = []

    def __call__(self, messages, system):
        self.calls.append((messages, system))
        if self.fail:
            raise ChatFallbackError("AI service temporarily unavailable")
        return self.reply


def _user(text: str):
    return {"role": "user", "content": text}


class TestChatEndpoint(unittest.TestCase):
    def setUp(self) -> None:
        if not CATALOG.exists():
            self.skipTest("catalog file missing: data/catalog.json")
        store = InMemoryStore()
        seed(store, load_catalog(str(CATALOG)))
        self.fake = _FakeChat()
        self.client = TestClient(create_app(store, chat_fn=self.fake))

    def post(self, messages, user_id: str = "u1"):
        return self.client.post("/chat", json={"user_id": user_id, "messages": messages})

    def test_deterministic_turn(self) -> None:
        r = self.post([_user("hi")])
        self.assertEqual(r.status_code, 200)
        body = r.json()
        self.assertEqual(body["intent"], "greeting")
        self.assertIn(body["response"], GREETINGS)
        self.assertEqual(self.fake.calls, [])

    def test_order_returns_payload(self) -> None:
        self.post([_user("order 2 biryanis from Paradise")])
        body = self.post([_user("place order")]).json()
        self.assertEqual(body["intent"], "order")
        self.assertEqual(body["order_data"]["total_amount"], 640)

    def test_unclassified_turn_goes_to_chat_with_catalog_context(self) -> None:
        r = self.post([_user("thanks a lot")])
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["response"], "Happy to help!")
        self.assertEqual(r.json()["intent"], "conversation")
        messages, system = self.fake.calls[0]
        self.assertEqual(messages[-1]["content"], "thanks a lot")
        self.assertIn("AVAILABLE RESTAURANTS", system)
        self.assertIn("Paradise Biryani", system)

    def test_chat_failure_is_502(self) -> None:
        self.fake.fail = True
        r = self.post([_user("thanks a lot")])
        self.assertEqual(r.status_code, 502)
        self.assertIn("unavailable", r.json()["detail"])

    def test_last_message_must_be_user(self) -> None:
        r = self.post([_user("hi"), {"role": "assistant", "content": "Hello!"}])
        self.assertEqual(r.status_code, 422)

    def test_message_count_limit(self) -> None:
        r = self.post([_user("hi")] * 51)
        self.assertEqual(r.status_code, 422)

    def test_message_length_limit(self) -> None:
        r = self.post([_user("a" * 2001)])
        self.assertEqual(r.status_code, 422)

    def test_missing_user_id(self) -> None:
        r = self.client.post("/chat", json={"messages": [_user("hi")]})
        self.assertEqual(r.status_code, 422)

    def test_empty_content_rejected(self) -> None:
        self.assertEqual(self.post([_user("")]).status_code, 422)


class TestHealthChecks(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(create_app(InMemoryStore(), chat_fn=_FakeChat()))

    def test_healthz(self) -> None:
        r = self.client.get("/healthz")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json(), {"ok": True})

    def test_readyz_with_injected_chat(self) -> None:
        r = self.client.get("/readyz")
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()["ready"])


if __name__ == "__main__":
    unittest.main()
