# utils/utility.py
"""Stateless informational lookups over the catalog: compare, sort, filter, nutrition."""
from __future__ import annotations

from typing import List, Optional

from food_assistant.schemas import ItemComparison, MenuFilter, MenuItem, RestaurantInfo
from food_assistant.utils.catalog import get_menu_item, get_restaurant, menu_items
from food_assistant.utils.db import Store


def compare_items(store: Store, item_id1: str, item_id2: str) -> Optional[ItemComparison]:
    item1, item2 = get_menu_item(store, item_id1), get_menu_item(store, item_id2)
    if item1 is None or item2 is None or item1.id == item2.id:
        return None

    price_winner = item1.name if item1.price < item2.price else item2.name
    rating_winner = item1.name if item1.rating > item2.rating else item2.name
    calories_winner = None
    if item1.calories and item2.calories:
        calories_winner = item1.name if item1.calories < item2.calories else item2.name

    summary = f"**{item1.name}** (₹{item1.price:g}) vs **{item2.name}** (₹{item2.price:g})\n\n"
    summary += f"• Better Price: {price_winner}\n"
    summary += f"• Higher Rating: {rating_winner}\n"
    if calories_winner:
        summary += f"• Fewer Calories: {calories_winner}\n"

    return ItemComparison(
        item1=item1, item2=item2,
        price_winner=price_winner, rating_winner=rating_winner,
        calories_winner=calories_winner, summary=summary,
    )


def compare_restaurants(store: Store, restaurant_id1: str, restaurant_id2: str) -> str:
    r1, r2 = get_restaurant(store, restaurant_id1), get_restaurant(store, restaurant_id2)
    if r1 is None or r2 is None or r1.id == r2.id:
        return "I couldn't find both restaurants to compare."

    lines = [
        f"**Comparing {r1.name} vs {r2.name}**",
        "",
        f"| Aspect | {r1.name} | {r2.name} |",
        "|--------|----------|----------|",
        f"| Rating | {r1.rating}⭐ | {r2.rating}⭐ |",
        f"| Cuisine | {r1.cuisine} | {r2.cuisine} |",
        f"| Delivery Time | {r1.delivery_time} | {r2.delivery_time} |",
        f"| Delivery Fee | ₹{r1.delivery_fee:g} | ₹{r2.delivery_fee:g} |",
        f"| Min Order | ₹{r1.min_order:g} | ₹{r2.min_order:g} |",
    ]
    # rating dominates; each rupee of delivery fee costs a twentieth of a star
    s1 = r1.rating * 20 - r1.delivery_fee
    s2 = r2.rating * 20 - r2.delivery_fee
    winner = r1.name if s1 > s2 else r2.name
    lines += ["", f"**Recommendation**: {winner} offers better overall value!"]
    return "\n".join(lines)


def restaurant_info(store: Store, restaurant_id: str) -> Optional[RestaurantInfo]:
    r = get_restaurant(store, restaurant_id)
    if r is None:
        return None
    count = len(menu_items(store, [("restaurant_id", "eq", r.id)]))
    return RestaurantInfo(
        id=r.id, name=r.name, cuisine=r.cuisine, rating=r.rating,
        delivery_time=r.delivery_time, delivery_fee=r.delivery_fee, min_order=r.min_order,
        is_open=True, menu_item_count=count,
    )


def sort_menu(store: Store, restaurant_id: Optional[str], sort_by: str = "rating",
              ascending: bool = False, limit: int = 20) -> List[MenuItem]:
    where = [("restaurant_id", "eq", restaurant_id)] if restaurant_id else []
    return menu_items(store, where, order_by=sort_by, descending=not ascending, limit=limit)


def filter_menu(store: Store, filters: MenuFilter, limit: int = 20) -> List[MenuItem]:
    where = []
    if filters.restaurant_id:
        where.append(("restaurant_id", "eq", filters.restaurant_id))
    if filters.category:
        where.append(("category", "contains", filters.category))
    if filters.min_price is not None:
        where.append(("price", "gte", filters.min_price))
    if filters.max_price is not None:
        where.append(("price", "lte", filters.max_price))
    if filters.is_vegetarian is not None:
        where.append(("is_vegetarian", "eq", filters.is_vegetarian))
    if filters.min_rating is not None:
        where.append(("rating", "gte", filters.min_rating))
    if filters.max_calories:
        where.append(("calories", "lte", filters.max_calories))
    items = menu_items(store, where)
    if filters.spice_level is not None:
        items = [it for it in items if it.spice_level is None or it.spice_level <= filters.spice_level]
    if filters.cuisine:
        items = [it for it in items if it.restaurant_cuisine.lower() == filters.cuisine.lower()]
    return items[:limit]


def nutrition_info(store: Store, item_id: str) -> str:
    item = get_menu_item(store, item_id)
    if item is None:
        return "I couldn't find nutritional information for this item."
    if not item.calories and not item.protein and not item.allergens and not item.ingredients:
        return f"Detailed nutritional information for {item.name} is not available yet."

    info = f"**Nutritional Information for {item.name}**\n\n"
    if item.calories or item.protein or item.carbs or item.fat:
        info += "📊 **Nutrition Facts**\n"
        if item.calories:
            info += f"• Calories: {item.calories} kcal\n"
        if item.protein:
            info += f"• Protein: {item.protein:g}g\n"
        if item.carbs:
            info += f"• Carbs: {item.carbs:g}g\n"
        if item.fat:
            info += f"• Fat: {item.fat:g}g\n"
    if item.is_vegetarian:
        info += "\n🥬 **Vegetarian**: Yes\n"
    if item.allergens:
        info += f"\n⚠️ **Allergens**: {', '.join(item.allergens)}\n"
    if item.ingredients:
        info += f"\n🧾 **Ingredients**: {', '.join(item.ingredients)}\n"
    return info.rstrip()


def cheapest(store: Store, category: Optional[str] = None, restaurant_id: Optional[str] = None) -> Optional[MenuItem]:
    where = []
    if category:
        where.append(("category", "contains", category))
    if restaurant_id:
        where.append(("restaurant_id", "eq", restaurant_id))
    rows = menu_items(store, where, order_by="price", limit=1)
    return rows[0] if rows else None


def highest_rated(store: Store, category: Optional[str] = None, restaurant_id: Optional[str] = None,
                  limit: int = 5) -> List[MenuItem]:
    where = []
    if category:
        where.append(("category", "contains", category))
    if restaurant_id:
        where.append(("restaurant_id", "eq", restaurant_id))
    return menu_items(store, where, order_by="rating", descending=True, limit=limit)
