# graph.py
import logging
import random
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, cast

from langgraph.graph import END, StateGraph
from langsmith import traceable

from food_assistant.nodes.discovery import (
    combos_node,
    healthy_options_node,
    recommend_node,
    suggest_by_budget_node,
    suggest_by_taste_node,
    trending_node,
    usuals_node,
)
from food_assistant.nodes.lookup import (
    cheapest_node,
    compare_items_node,
    compare_restaurants_node,
    filter_menu_node,
    highest_rated_node,
    query_node,
    restaurant_info_node,
    sort_menu_node,
)
from food_assistant.nodes.management import clarify_node, conversation_node, greeting_node, help_node
from food_assistant.nodes.ordering import cart_node, order_node, track_node, wishlist_node
from food_assistant.nodes.preferences import allergen_check_node, nutrition_info_node, save_preference_node
from food_assistant.nodes.router import route, router_node
from food_assistant.state import Deps, Intent, OrchestrationResult, OrchestrationStateTD, ResultType, to_history
from food_assistant.utils.db import Store, utcnow
from food_assistant.utils.memory import MemoryStore
from food_assistant.utils.validation import APOLOGY

log = logging.getLogger(__name__)

# one branch per intent; every branch ends the turn
INTENT_HANDLERS: Dict[Intent, Callable[..., Dict[str, Any]]] = {
    Intent.GREETING: greeting_node,
    Intent.HELP: help_node,
    Intent.USUALS: usuals_node,
    Intent.ORDER: order_node,
    Intent.TRACK: track_node,
    Intent.CART: cart_node,
    Intent.WISHLIST: wishlist_node,
    Intent.QUERY: query_node,
    Intent.CLARIFY: clarify_node,
    Intent.RECOMMEND: recommend_node,
    Intent.SUGGEST_BY_TASTE: suggest_by_taste_node,
    Intent.SUGGEST_BY_BUDGET: suggest_by_budget_node,
    Intent.TRENDING: trending_node,
    Intent.HEALTHY_OPTIONS: healthy_options_node,
    Intent.COMBOS: combos_node,
    Intent.NUTRITION_INFO: nutrition_info_node,
    Intent.ALLERGEN_CHECK: allergen_check_node,
    Intent.SAVE_PREFERENCE: save_preference_node,
    Intent.COMPARE_ITEMS: compare_items_node,
    Intent.COMPARE_RESTAURANTS: compare_restaurants_node,
    Intent.SORT_MENU: sort_menu_node,
    Intent.FILTER_MENU: filter_menu_node,
    Intent.CHEAPEST: cheapest_node,
    Intent.HIGHEST_RATED: highest_rated_node,
    Intent.RESTAURANT_INFO: restaurant_info_node,
    Intent.CONVERSATION: conversation_node,
}


def _bind(fn: Callable[..., Dict[str, Any]], deps: Deps) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    return lambda s: fn(s, deps)


def build_graph(deps: Deps):
    g = StateGraph(state_schema=OrchestrationStateTD)

    g.add_node("router", _bind(router_node, deps))
    for intent, handler in INTENT_HANDLERS.items():
        g.add_node(intent.value, _bind(handler, deps))
        g.add_edge(intent.value, END)

    g.set_entry_point("router")
    g.add_conditional_edges(
        "router",
        route,
        {intent.value: intent.value for intent in INTENT_HANDLERS},
    )
    return g.compile()


class Supervisor:
    """Routes one utterance to exactly one intent branch and returns its result."""

    def __init__(
        self,
        store: Store,
        *,
        rng: Optional[random.Random] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.memory = MemoryStore(store)
        self.deps = Deps(store=store, memory=self.memory, rng=rng or random.Random(), clock=clock or utcnow)
        self.graph = build_graph(self.deps)

    @traceable(name="orchestrate", tags=["supervisor"])
    def orchestrate(self, utterance: str, history: Optional[List[Any]] = None, user_id: str = "") -> OrchestrationResult:
        try:
            state: OrchestrationStateTD = {
                "user_id": user_id,
                "utterance": utterance or "",
                "history": to_history(history or []),
            }
            out = cast(OrchestrationStateTD, self.graph.invoke(state))
        except Exception:
            log.exception("[Supervisor] turn failed for %s", user_id)
            return OrchestrationResult(type=ResultType.ERROR, response=APOLOGY)

        result = out.get("result")
        if result is None:
            log.error("[Supervisor] no branch produced a result for %s", user_id)
            return OrchestrationResult(type=ResultType.ERROR, response=APOLOGY, intent=out.get("intent"))
        return result
