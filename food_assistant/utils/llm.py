# utils/llm.py
"""Open-ended chat fallback: one blocking call to the configured chat backend, no retries."""
from __future__ import annotations

import logging
from typing import Any, Dict, List

import requests

from food_assistant.utils.config import (
    CHAT_BACKEND,
    CHAT_TEMP,
    CHAT_TIMEOUT,
    GATEWAY_API_KEY,
    GATEWAY_MODEL,
    GATEWAY_URL,
    OLLAMA_MODEL,
    OLLAMA_URL,
)

log = logging.getLogger(__name__)


class ChatFallbackError(RuntimeError):
    """The chat backend could not produce a reply."""


def _ollama_chat(messages: List[Dict[str, Any]]) -> str:
    resp = requests.post(
        f"{OLLAMA_URL.rstrip('/')}/api/chat",
        json={"model": OLLAMA_MODEL, "messages": messages, "stream": False, "options": {"temperature": CHAT_TEMP}},
        timeout=CHAT_TIMEOUT,
    )
    resp.raise_for_status()
    return (resp.json().get("message") or {}).get("content", "")


def _gateway_chat(messages: List[Dict[str, Any]]) -> str:
    resp = requests.post(
        f"{GATEWAY_URL.rstrip('/')}/v1/chat/completions",
        headers={"Authorization": f"Bearer {GATEWAY_API_KEY}", "Content-Type": "application/json"},
        json={"model": GATEWAY_MODEL, "messages": messages, "temperature": CHAT_TEMP},
        timeout=CHAT_TIMEOUT,
    )
    if resp.status_code == 429:
        raise ChatFallbackError("Rate limits exceeded, please try again later.")
    if resp.status_code == 402:
        raise ChatFallbackError("Payment required, please add funds to your workspace.")
    resp.raise_for_status()
    choices = resp.json().get("choices") or []
    return ((choices[0] if choices else {}).get("message") or {}).get("content", "")


def chat_completion(messages: List[Dict[str, Any]], system: str) -> str:
    """Reply to ``messages`` (oldest first) under ``system``; raises ChatFallbackError."""
    payload = [{"role": "system", "content": system}] + [
        {"role": m["role"], "content": m["content"]} for m in messages if m.get("role") != "system"
    ]
    try:
        text = _ollama_chat(payload) if CHAT_BACKEND == "ollama" else _gateway_chat(payload)
    except requests.RequestException as e:
        log.error("[LLM %s Error] %s", CHAT_BACKEND, e)
        raise ChatFallbackError("AI service error") from e
    except ValueError as e:
        log.error("[LLM %s Error] unreadable response: %s", CHAT_BACKEND, e)
        raise ChatFallbackError("AI service error") from e
    text = (text or "").strip()
    if not text:
        raise ChatFallbackError("AI service returned an empty reply")
    return text


def backend_ready(timeout: float = 0.8) -> bool:
    """Reachability check for /readyz."""
    try:
        if CHAT_BACKEND == "ollama":
            return requests.get(f"{OLLAMA_URL.rstrip('/')}/api/tags", timeout=timeout).ok
        return bool(GATEWAY_API_KEY)
    except requests.RequestException:
        return False
