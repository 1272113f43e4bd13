# utils/validation.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from langsmith import traceable

from food_assistant.state import Intent, OrchestrationResult, ResultType
from food_assistant.utils.db import StoreError

log = logging.getLogger(__name__)

APOLOGY = "Sorry, I'm having trouble reaching our kitchen systems right now. Please try again in a moment."


def respond(
    type: ResultType,
    intent: Optional[Intent],
    response: str,
    data: Any = None,
    order_data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """State update carrying the branch's single result."""
    return {"result": OrchestrationResult(type=type, response=response, intent=intent, data=data, order_data=order_data)}


def guard_node(
    name: str,
    result_type: ResultType,
    tags: Optional[List[str]] = None,
) -> Callable[[Callable[..., Dict[str, Any]]], Callable[..., Dict[str, Any]]]:
    """
    Decorator for branch nodes that:
      - traces with LangSmith
      - turns a StoreError into an apology result for this branch
      - validates the returned ``result`` against OrchestrationResult
    """
    tags = tags or []

    def decorator(fn: Callable[..., Dict[str, Any]]) -> Callable[..., Dict[str, Any]]:
        @traceable(name=name, tags=tags)
        def wrapper(state: Dict[str, Any], *args, **kwargs) -> Dict[str, Any]:
            intent = state.get("intent")
            try:
                out = fn(state, *args, **kwargs)
            except StoreError as e:
                log.error("[Node Error] %s: %s", name, e)
                return respond(result_type, intent, APOLOGY)

            result = out.get("result")
            if not isinstance(result, OrchestrationResult):
                try:
                    out["result"] = OrchestrationResult.model_validate(result)
                except ValidationError as ve:
                    log.error("[Node Error] %s returned an invalid result: %s", name, ve)
                    return respond(ResultType.ERROR, intent, APOLOGY)
            return out

        return wrapper

    return decorator
