# state.py
from __future__ import annotations

import random
from datetime import datetime
from enum import Enum
from typing import Callable, NamedTuple, Optional
from typing_extensions import List, Dict, Any, Literal, TypedDict, cast
from pydantic import BaseModel, Field
from pydantic.type_adapter import TypeAdapter

from food_assistant.schemas import Entities, UserMemory


class Intent(str, Enum):
    GREETING = "greeting"
    HELP = "help"
    USUALS = "usuals"
    ORDER = "order"
    TRACK = "track"
    CART = "cart"
    WISHLIST = "wishlist"
    QUERY = "query"
    CLARIFY = "clarify"
    RECOMMEND = "recommend"
    SUGGEST_BY_TASTE = "suggest_by_taste"
    SUGGEST_BY_BUDGET = "suggest_by_budget"
    TRENDING = "trending"
    HEALTHY_OPTIONS = "healthy_options"
    COMBOS = "combos"
    NUTRITION_INFO = "nutrition_info"
    ALLERGEN_CHECK = "allergen_check"
    SAVE_PREFERENCE = "save_preference"
    COMPARE_ITEMS = "compare_items"
    COMPARE_RESTAURANTS = "compare_restaurants"
    SORT_MENU = "sort_menu"
    FILTER_MENU = "filter_menu"
    CHEAPEST = "cheapest"
    HIGHEST_RATED = "highest_rated"
    RESTAURANT_INFO = "restaurant_info"
    CONVERSATION = "conversation"


class ResultType(str, Enum):
    ORDER = "order"
    TRACK = "track"
    CART = "cart"
    WISHLIST = "wishlist"
    QUERY = "query"
    CLARIFY = "clarify"
    CONVERSATION = "conversation"
    RECOMMENDATION = "recommendation"
    USUALS = "usuals"
    NUTRITION = "nutrition"
    COMPARISON = "comparison"
    FILTER = "filter"
    GREETING = "greeting"
    HELP = "help"
    PREFERENCE = "preference"
    TRENDING = "trending"
    HEALTHY = "healthy"
    COMBOS = "combos"
    ERROR = "error"


class MessageModel(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str = Field(min_length=1)


class OrchestrationResult(BaseModel):
    """The one object a caller gets back per turn.

    An empty ``response`` with type ``conversation`` means nothing deterministic
    handled the turn and the caller must forward it to the open-ended chat.
    """
    type: ResultType
    response: str = ""
    intent: Optional[Intent] = None
    data: Any = None
    order_data: Optional[Dict[str, Any]] = None

    @property
    def needs_chat_fallback(self) -> bool:
        return self.type == ResultType.CONVERSATION and not self.response


class MessageTD(TypedDict):
    role: Literal["system", "user", "assistant"]
    content: str


class OrchestrationStateTD(TypedDict, total=False):
    user_id: str
    utterance: str
    history: List[MessageTD]
    intent: Intent
    entities: Entities
    memory: UserMemory
    result: OrchestrationResult


class Deps(NamedTuple):
    """What every graph node is bound to; built once per Supervisor."""
    store: Any
    memory: Any
    rng: random.Random
    clock: Callable[[], datetime]


history_adapter = TypeAdapter(List[MessageModel])


def to_history(messages: List[Any]) -> List[MessageTD]:
    """Normalise caller-supplied turns (dicts or models) into graph messages."""
    models = history_adapter.validate_python(
        [m.model_dump() if isinstance(m, BaseModel) else m for m in messages or []]
    )
    return cast(List[MessageTD], [m.model_dump() for m in models])
