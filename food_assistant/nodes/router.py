# router.py
from typing import Any, Dict

from langsmith import traceable

from food_assistant.state import Deps, Intent
from food_assistant.utils.nlu import classify


@traceable(name="Router", tags=["router"])
def router_node(state: Dict[str, Any], deps: Deps) -> Dict[str, Any]:
    """Classify the utterance and load the user's memory; history is only read."""
    intent, entities = classify(state.get("utterance", ""), state.get("history") or [])
    memory = deps.memory.get(state.get("user_id", ""))
    return {"intent": intent, "entities": entities, "memory": memory}


def route(state: Dict[str, Any]) -> str:
    intent = state.get("intent") or Intent.CONVERSATION
    return intent.value
