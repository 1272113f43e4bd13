# main.py (POST /chat plus health checks)
from dotenv import load_dotenv
load_dotenv()  # before config is imported

import logging
import pathlib
from typing import Any, Callable, Dict, List, Optional

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from langsmith import traceable
from pydantic import BaseModel, Field, field_validator

from food_assistant.graph import Supervisor
from food_assistant.scripts.seed_catalog import load_catalog, seed
from food_assistant.state import MessageModel
from food_assistant.utils.config import (
    CATALOG_JSON_PATH,
    CORS_ALLOW_ORIGINS,
    HOST,
    LOG_LEVEL,
    MAX_MESSAGE_CHARS,
    MAX_MESSAGES,
    PORT,
    STORE_BACKEND,
    SYSTEM_PROMPT,
)
from food_assistant.utils.context import build_system_prompt
from food_assistant.utils.db import InMemoryStore, RedisStore, Store, StoreError
from food_assistant.utils.llm import ChatFallbackError, backend_ready, chat_completion

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s %(message)s")
log = logging.getLogger(__name__)

ChatFn = Callable[[List[Dict[str, Any]], str], str]


class ChatRequest(BaseModel):
    user_id: str = Field(min_length=1)
    messages: List[MessageModel] = Field(min_length=1)

    @field_validator("messages")
    @classmethod
    def _check_messages(cls, v: List[MessageModel]) -> List[MessageModel]:
        if len(v) > MAX_MESSAGES:
            raise ValueError(f"too many messages (max {MAX_MESSAGES})")
        for m in v:
            if len(m.content) > MAX_MESSAGE_CHARS:
                raise ValueError(f"message too long (max {MAX_MESSAGE_CHARS} characters)")
        if v[-1].role != "user":
            raise ValueError("the last message must come from the user")
        return v


def make_store() -> Store:
    if STORE_BACKEND == "memory":
        store = InMemoryStore()
        if pathlib.Path(CATALOG_JSON_PATH).exists():
            log.info("[Store] seeding in-memory catalog from %s", CATALOG_JSON_PATH)
            seed(store, load_catalog(CATALOG_JSON_PATH))
        return store
    return RedisStore()


def create_app(store: Optional[Store] = None, chat_fn: Optional[ChatFn] = None) -> FastAPI:
    store = store or make_store()
    chat = chat_fn or chat_completion
    supervisor = Supervisor(store)

    app = FastAPI(title="food-assistant")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ALLOW_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _system_prompt(user_id: str) -> str:
        try:
            return build_system_prompt(store, supervisor.memory.get(user_id))
        except StoreError as e:
            log.warning("[Chat] context unavailable for %s: %s", user_id, e)
            return SYSTEM_PROMPT

    @traceable(name="turn", tags=["chat"])
    def _handle_turn(req: ChatRequest) -> Dict[str, Any]:
        history = [m.model_dump() for m in req.messages]
        result = supervisor.orchestrate(history[-1]["content"], history[:-1], req.user_id)
        response = result.response
        if result.needs_chat_fallback:
            response = chat(history, _system_prompt(req.user_id))
        return {
            "response": response,
            "intent": result.intent.value if result.intent else None,
            "data": result.data,
            "order_data": result.order_data,
        }

    @app.post("/chat")
    def chat_endpoint(req: ChatRequest):
        try:
            return _handle_turn(req)
        except ChatFallbackError as e:
            log.error("[Chat] fallback failed for %s: %s", req.user_id, e)
            raise HTTPException(status_code=502, detail=str(e) or "AI service error")

    @app.get("/healthz")
    def healthz():
        ok = store.ping()
        return JSONResponse({"ok": ok}, status_code=200 if ok else 503)

    @app.get("/readyz")
    def readyz():
        ok_store = store.ping()
        ok_chat = chat_fn is not None or backend_ready()
        ready = ok_store and ok_chat
        return JSONResponse({"store": ok_store, "chat": ok_chat, "ready": ready}, status_code=200 if ready else 503)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run("food_assistant.main:app", host=HOST, port=PORT, reload=True)
