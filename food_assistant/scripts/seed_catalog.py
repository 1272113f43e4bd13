# scripts/seed_catalog.py
import logging
import pathlib
from typing import List

from pydantic import BaseModel, Field, TypeAdapter

from food_assistant.schemas import MenuItem, Restaurant
from food_assistant.utils.catalog import MENU_ITEMS, RESTAURANTS
from food_assistant.utils.config import CATALOG_JSON_PATH, STORE_BACKEND
from food_assistant.utils.db import InMemoryStore, RedisStore, Store

log = logging.getLogger(__name__)


class Catalog(BaseModel):
    restaurants: List[Restaurant] = Field(default_factory=list)
    menu_items: List[MenuItem] = Field(default_factory=list)


catalog_adapter = TypeAdapter(Catalog)

# joined at read time, never stored
_JOINED = {"restaurant_name", "restaurant_cuisine"}


def load_catalog(path: str = CATALOG_JSON_PATH) -> Catalog:
    return catalog_adapter.validate_json(pathlib.Path(path).read_bytes())


def seed(store: Store, catalog: Catalog) -> int:
    """Upsert every restaurant and menu item by id; safe to re-run."""
    for r in catalog.restaurants:
        store.upsert(RESTAURANTS, r.model_dump(), on_conflict=("id",))
    for it in catalog.menu_items:
        store.upsert(MENU_ITEMS, it.model_dump(exclude=_JOINED), on_conflict=("id",))
    return len(catalog.restaurants) + len(catalog.menu_items)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    store = RedisStore() if STORE_BACKEND == "redis" else InMemoryStore()
    log.info("Seeding %s → %s store", CATALOG_JSON_PATH, STORE_BACKEND)
    n = seed(store, load_catalog())
    log.info("Done. %d rows.", n)
