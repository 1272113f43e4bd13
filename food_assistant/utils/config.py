# utils/config.py
import os

# ---- store ----
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
STORE_PREFIX = os.getenv("STORE_PREFIX", "food")
STORE_BACKEND = os.getenv("STORE_BACKEND", "redis").lower()  # redis | memory
CATALOG_JSON_PATH = os.getenv("CATALOG_JSON_PATH", "./data/catalog.json")

# ---- http ----
CORS_ALLOW_ORIGINS = [o.strip() for o in os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:8501,http://127.0.0.1:8501").split(",") if o.strip()]
HOST = os.getenv("HOST", "127.0.0.1")
PORT = int(os.getenv("PORT", "8000"))

# ---- open-ended chat fallback ----
CHAT_BACKEND = os.getenv("CHAT_LLM_BACKEND", "gateway").lower()  # gateway | ollama
CHAT_TEMP = float(os.getenv("CHAT_TEMP", "0.3"))
CHAT_TIMEOUT = float(os.getenv("CHAT_TIMEOUT", "60"))
OLLAMA_URL = os.getenv("OLLAMA_URL", "http://localhost:11434")
OLLAMA_MODEL = os.getenv("OLLAMA_MODEL", "llama3.1:8b")
GATEWAY_URL = os.getenv("CHAT_GATEWAY_URL", "https://ai.gateway.lovable.dev")
GATEWAY_MODEL = os.getenv("CHAT_GATEWAY_MODEL", "google/gemini-2.5-flash")
GATEWAY_API_KEY = os.getenv("CHAT_GATEWAY_API_KEY", "")

# ---- request limits ----
MAX_MESSAGES = int(os.getenv("MAX_MESSAGES", "50"))
MAX_MESSAGE_CHARS = int(os.getenv("MAX_MESSAGE_CHARS", "2000"))

# ---- display caps ----
USUALS_COMPUTED = 10
USUALS_SHOWN = 5
RECOMMEND_LIMIT = 8
RECOMMEND_SHOWN = 6
LIST_CAP = 10
TOP_RATED_CAP = 5
QUERY_RESTAURANTS_SHOWN = 5
QUERY_ITEMS_SHOWN = 10
DEFAULT_BUDGET = 200
TRENDING_DAYS = 7

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# System prompt for the open-ended chat fallback; restaurant list and memory are appended per request
SYSTEM_PROMPT = (
    "You are a helpful AI food ordering assistant. You help users discover restaurants, "
    "understand menus, and place orders.\n\n"
    "=== CAPABILITIES ===\n"
    "- Help users find restaurants based on cuisine, rating, or preferences\n"
    "- Explain menu items and make recommendations\n"
    "- Add items to cart and wishlist\n"
    "- Assist with order placement and tracking\n"
    "- Answer questions about delivery times, pricing, and restaurant details\n\n"
    "Keep responses conversational, friendly, and concise.\n\n"
    "=== HARD RULES ===\n"
    "1) NEVER infer user identity from message text. Identity comes from authentication only.\n"
    "2) If a restaurant is mentioned but not in the list below, say it is listed but menu/details "
    "are not yet available.\n"
    "3) Only confirm orders after receiving a valid order ID from the backend.\n"
    "4) DO NOT invent menu items or prices.\n"
)
