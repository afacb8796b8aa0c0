"""Meals, restaurants and meal plans (mobile BFF)."""

from typing import Any

from momentum.gateway.client import RequestGateway


class KitchenApi:
    def __init__(self, gateway: RequestGateway):
        self.gateway = gateway

    # ─── Recipes ─────────────────────────────────────────

    async def list_meals(self) -> Any:
        return await self.gateway.request("/meals/recipes")

    async def create_meal(self, meal: dict[str, Any]) -> Any:
        return await self.gateway.request("/meals/recipes", "POST", meal)

    async def update_meal(self, meal_id: str, changes: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/meals/recipes/{meal_id}", "PUT", changes)

    async def delete_meal(self, meal_id: str) -> Any:
        return await self.gateway.request(f"/meals/recipes/{meal_id}", "DELETE")

    # ─── Restaurants ─────────────────────────────────────

    async def list_restaurants(self) -> Any:
        return await self.gateway.request("/meals/restaurants")

    async def create_restaurant(self, restaurant: dict[str, Any]) -> Any:
        return await self.gateway.request("/meals/restaurants", "POST", restaurant)

    async def delete_restaurant(self, restaurant_id: str) -> Any:
        return await self.gateway.request(f"/meals/restaurants/{restaurant_id}", "DELETE")

    # ─── Meal plans ──────────────────────────────────────

    async def list_plans(self) -> Any:
        return await self.gateway.request("/meals/plans")

    async def create_plan(self, start_date: str, end_date: str) -> Any:
        return await self.gateway.request(
            "/meals/plans", "POST", {"startDate": start_date, "endDate": end_date}
        )

    async def add_meal_to_plan(self, plan_id: str, entry: dict[str, Any]) -> Any:
        return await self.gateway.request(f"/meals/plans/{plan_id}/meals", "POST", entry)

    async def rate_meal(self, meal_id: str, rating: int) -> Any:
        return await self.gateway.request(f"/meals/rate/{meal_id}", "POST", {"rating": rating})
