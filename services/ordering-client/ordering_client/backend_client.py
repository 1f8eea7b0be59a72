from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol
from urllib.parse import quote

import httpx
from pydantic import TypeAdapter, ValidationError

from .schemas import (
    MenuCategories,
    MenuItem,
    NutritionInfo,
    PlacedOrder,
    PlaceOrderRequest,
    PlaceOrderResponse,
)

logger = logging.getLogger(__name__)

_categories_adapter = TypeAdapter(MenuCategories)
_orders_adapter = TypeAdapter(List[PlacedOrder])


class OrderingServiceError(Exception):
    """Represents a failed call to the ordering backend.

    ``detail`` carries the backend's own field-level message when the error
    body had one.
    """

    def __init__(self, message: str = "", detail: Optional[str] = None, status_code: Optional[int] = None):
        super().__init__(message)
        self.detail = detail
        self.status_code = status_code


class OrderingBackend(Protocol):
    async def fetch_menu(self) -> MenuCategories: ...

    async def place_order(self, request: PlaceOrderRequest) -> PlacedOrder: ...

    async def fetch_order_history(self, phone_number: str) -> List[PlacedOrder]: ...


class HTTPOrderingBackend:
    def __init__(self, base_url: str, timeout: float = 5.0, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def fetch_menu(self) -> MenuCategories:
        payload = await self._request("GET", "/menu/categories")
        try:
            return _categories_adapter.validate_python(payload)
        except ValidationError as exc:
            raise OrderingServiceError(f"Unexpected menu response: {exc.error_count()} invalid field(s)") from exc

    async def place_order(self, request: PlaceOrderRequest) -> PlacedOrder:
        payload = await self._request(
            "POST",
            "/orders",
            json=request.model_dump(by_alias=True, exclude_none=True),
        )
        try:
            return PlaceOrderResponse.model_validate(payload).data
        except ValidationError as exc:
            raise OrderingServiceError(f"Unexpected order response: {exc.error_count()} invalid field(s)") from exc

    async def fetch_order_history(self, phone_number: str) -> List[PlacedOrder]:
        payload = await self._request("GET", f"/orders/{quote(phone_number, safe='')}")
        if isinstance(payload, dict) and "data" in payload:
            payload = payload["data"]
        try:
            return _orders_adapter.validate_python(payload)
        except ValidationError as exc:
            raise OrderingServiceError(f"Unexpected order history response: {exc.error_count()} invalid field(s)") from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HTTPOrderingBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise OrderingServiceError(str(exc) or "Network Error") from exc

        if response.status_code >= 400:
            logger.warning("%s %s returned %d", method, url, response.status_code)
            raise OrderingServiceError(
                f"Request failed with status code {response.status_code}",
                detail=_first_error_message(response),
                status_code=response.status_code,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise OrderingServiceError(f"Invalid JSON from {method} {path}") from exc


def _first_error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    errors = body.get("errors")
    if not isinstance(errors, list) or not errors or not isinstance(errors[0], dict):
        return None
    message = errors[0].get("message") or errors[0].get("msg")
    return str(message) if message else None


SAMPLE_MENU: Dict[str, List[MenuItem]] = {
    "Starters": [
        MenuItem(
            id="starter-samosa",
            name="Vegetable Samosa",
            price=60,
            description="Crisp pastry filled with spiced potatoes and peas.",
            nutritional_info=NutritionInfo(calories=260, allergens=["gluten"]),
        ),
        MenuItem(id="starter-paneer-tikka", name="Paneer Tikka", price=180,
                 nutritional_info=NutritionInfo(calories=320, allergens=["dairy"])),
    ],
    "Mains": [
        MenuItem(id="main-dal-makhani", name="Dal Makhani", price=220,
                 nutritional_info=NutritionInfo(calories=410, allergens=["dairy"])),
        MenuItem(id="main-veg-biryani", name="Vegetable Biryani", price=250),
    ],
    "Desserts": [
        MenuItem(id="dessert-gulab-jamun", name="Gulab Jamun", price=90,
                 nutritional_info=NutritionInfo(calories=300, allergens=["dairy", "gluten"])),
    ],
}


class MockOrderingBackend:
    """In-memory backend for local development without the real API."""

    def __init__(self, categories: Optional[MenuCategories] = None):
        self._categories = dict(SAMPLE_MENU if categories is None else categories)
        self._orders: List[PlacedOrder] = []

    async def fetch_menu(self) -> MenuCategories:
        return {name: list(items) for name, items in self._categories.items()}

    async def place_order(self, request: PlaceOrderRequest) -> PlacedOrder:
        if not request.items:
            raise OrderingServiceError(
                "Request failed with status code 400",
                detail="At least one item is required.",
                status_code=400,
            )
        order = PlacedOrder(
            id=f"mock-order-{uuid.uuid4().hex[:12]}",
            customer_name=request.customer_name,
            phone_number=request.phone_number,
            notes=request.notes,
            items=list(request.items),
            total_amount=request.total_amount,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self._orders.append(order)
        return order

    async def fetch_order_history(self, phone_number: str) -> List[PlacedOrder]:
        return [order for order in reversed(self._orders) if order.phone_number == phone_number]
