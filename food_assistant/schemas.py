# schemas.py
"""
Records shared by the extractor, the agents and the supervisor.

Rows coming out of the store are plain dicts; everything that crosses a module
boundary is one of these models.
"""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ---------- extractor output ----------
class ItemRequest(BaseModel):
    name: str
    quantity: Optional[int] = Field(default=None, ge=0)


class Entities(BaseModel):
    """What the extractor found in one utterance. None / [] means not specified."""
    restaurant: Optional[str] = None
    items: List[ItemRequest] = Field(default_factory=list)
    budget: Optional[float] = None
    category: Optional[str] = None
    spice_level: Optional[int] = Field(default=None, ge=1, le=5)
    is_vegetarian: Optional[bool] = None
    sort_by: Optional[Literal["price", "rating", "calories", "name"]] = None
    sort_order: Optional[Literal["asc", "desc"]] = None
    order_id: Optional[str] = None
    action: Optional[Literal["add", "remove", "update", "view", "clear"]] = None
    compare_targets: List[str] = Field(default_factory=list)


# ---------- catalog ----------
class Restaurant(BaseModel):
    id: str
    name: str
    cuisine: str = ""
    rating: float = 4.0
    delivery_time: str = "30-40 mins"
    delivery_fee: float = 0
    min_order: float = 0


class MenuItem(BaseModel):
    id: str
    restaurant_id: str
    name: str
    description: str = ""
    price: float
    category: str = "Other"
    rating: float = 4.0
    is_vegetarian: bool = False
    spice_level: Optional[int] = None
    calories: Optional[int] = None
    protein: Optional[float] = None
    carbs: Optional[float] = None
    fat: Optional[float] = None
    allergens: List[str] = Field(default_factory=list)
    ingredients: List[str] = Field(default_factory=list)
    is_available: bool = True
    # joined from restaurants
    restaurant_name: str = "Unknown"
    restaurant_cuisine: str = ""


class CartLine(BaseModel):
    id: str
    user_id: str
    menu_item_id: str
    quantity: int = 1
    item: Optional[MenuItem] = None

    @property
    def line_total(self) -> float:
        return (self.item.price if self.item else 0) * self.quantity


class WishlistEntry(BaseModel):
    id: str
    user_id: str
    menu_item_id: str
    item: Optional[MenuItem] = None


class OrderLine(BaseModel):
    """One line of an order about to be placed (also the shape kept in last_order memory)."""
    menu_item_id: str
    name: str
    price: float
    quantity: int = Field(default=1, ge=1)


class Order(BaseModel):
    id: str
    user_id: str
    restaurant_id: Optional[str] = None
    total_amount: float
    status: str = "pending"
    delivery_address: Optional[str] = None
    payment_method: str = "pin"
    created_at: Optional[datetime] = None


class OrderItem(BaseModel):
    id: str
    order_id: str
    menu_item_id: Optional[str] = None
    quantity: int
    price: float
    item_name: str
    created_at: Optional[datetime] = None


# ---------- memory & profile ----------
class MemoryKind(str, Enum):
    PREFERENCE = "preference"
    LAST_ORDER = "last_order"
    DEFAULT_ADDRESS = "default_address"
    CART_STATE = "cart_state"
    RESTAURANT_PREFERENCE = "restaurant_preference"


class RestaurantPreference(BaseModel):
    restaurant_id: str
    restaurant_name: str


class UserMemory(BaseModel):
    """Everything remembered about a user, partitioned by kind -> key -> value."""
    user_id: str = ""
    entries: Dict[str, Dict[str, Any]] = Field(default_factory=dict)

    def get(self, kind: MemoryKind | str, key: str) -> Any:
        kind = kind.value if isinstance(kind, MemoryKind) else kind
        return self.entries.get(kind, {}).get(key)

    def _first(self, kind: MemoryKind) -> Any:
        values = list(self.entries.get(kind.value, {}).values())
        return values[0] if values else None

    @property
    def preferences(self) -> List[Dict[str, Any]]:
        return [{"key": k, "value": v} for k, v in self.entries.get(MemoryKind.PREFERENCE.value, {}).items()]

    @property
    def last_order(self) -> Optional[Dict[str, Any]]:
        return self.get(MemoryKind.LAST_ORDER, "latest") or self._first(MemoryKind.LAST_ORDER)

    @property
    def default_address(self) -> Optional[str]:
        value = self.get(MemoryKind.DEFAULT_ADDRESS, "default") or self._first(MemoryKind.DEFAULT_ADDRESS)
        if isinstance(value, dict):
            return value.get("address")
        return value

    @property
    def cart_state(self) -> Optional[Dict[str, Any]]:
        return self._first(MemoryKind.CART_STATE)

    @property
    def restaurant_preferences(self) -> List[RestaurantPreference]:
        out = []
        for key, value in self.entries.get(MemoryKind.RESTAURANT_PREFERENCE.value, {}).items():
            name = value.get("name") if isinstance(value, dict) else None
            out.append(RestaurantPreference(restaurant_id=key, restaurant_name=name or key))
        return out


class PriceRange(BaseModel):
    min: float = 0
    max: float = 1000


class TasteProfile(BaseModel):
    spice_level: int = Field(default=3, ge=1, le=5)
    cuisine_preferences: List[str] = Field(default_factory=list)
    dietary_restrictions: List[str] = Field(default_factory=list)
    allergens: List[str] = Field(default_factory=list)
    price_range: PriceRange = Field(default_factory=PriceRange)
    favorite_categories: List[str] = Field(default_factory=list)


class Usual(BaseModel):
    menu_item_id: str
    item_name: str
    restaurant_id: str = ""
    restaurant_name: str = "Unknown"
    order_count: int = 1
    last_ordered_at: Optional[datetime] = None


# ---------- recommendation ----------
class RecommendationOptions(BaseModel):
    budget: Optional[float] = None
    cuisine: Optional[str] = None
    spice_level: Optional[int] = None
    category: Optional[str] = None
    is_vegetarian: Optional[bool] = None
    is_healthy: bool = False
    limit: int = 10
    exclude_allergens: bool = True


class RecommendedItem(BaseModel):
    id: str
    name: str
    description: str = ""
    price: float
    restaurant_id: str
    restaurant_name: str = "Unknown"
    category: str = "Other"
    rating: float = 4.0
    is_vegetarian: bool = False
    spice_level: Optional[int] = None
    calories: Optional[int] = None
    match_score: int = Field(ge=0, le=100)
    match_reason: str = "popular choice"

    @classmethod
    def from_menu_item(cls, item: MenuItem, score: int, reason: str) -> "RecommendedItem":
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            price=item.price,
            restaurant_id=item.restaurant_id,
            restaurant_name=item.restaurant_name,
            category=item.category,
            rating=item.rating,
            is_vegetarian=item.is_vegetarian,
            spice_level=item.spice_level,
            calories=item.calories,
            match_score=max(0, min(score, 100)),
            match_reason=reason,
        )


class ComboSuggestions(BaseModel):
    drink: Optional[RecommendedItem] = None
    dessert: Optional[RecommendedItem] = None


# ---------- utilities ----------
class ItemComparison(BaseModel):
    item1: MenuItem
    item2: MenuItem
    price_winner: str
    rating_winner: str
    calories_winner: Optional[str] = None
    summary: str


class RestaurantInfo(BaseModel):
    id: str
    name: str
    cuisine: str
    rating: float
    delivery_time: str
    delivery_fee: float
    min_order: float
    is_open: bool = True
    menu_item_count: int = 0


class MenuFilter(BaseModel):
    category: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    is_vegetarian: Optional[bool] = None
    min_rating: Optional[float] = None
    max_calories: Optional[int] = None
    spice_level: Optional[int] = None
    restaurant_id: Optional[str] = None
    cuisine: Optional[str] = None
