from __future__ import annotations

from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_COMPLETED = "completed"
ORDER_STATUS_CANCELLED = "cancelled"


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class HealthResponse(BaseModel):
    status: Literal["ok"]


class NutritionInfo(WireModel):
    calories: Optional[int] = None
    allergens: List[str] = Field(default_factory=list)


class MenuItem(WireModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = Field(..., alias="_id")
    name: str
    price: float = Field(..., gt=0)
    description: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    nutritional_info: Optional[NutritionInfo] = Field(default=None, alias="nutritionalInfo")


MenuCategories = Dict[str, List[MenuItem]]


class OrderLineItem(WireModel):
    id: Optional[str] = Field(default=None, alias="_id")
    name: str
    price: float
    quantity: int = Field(..., gt=0)

    @property
    def line_total(self) -> float:
        return round(self.price * self.quantity, 2)


class PlaceOrderRequest(WireModel):
    customer_name: str = Field(..., alias="customerName")
    phone_number: str = Field(..., alias="phoneNumber", description="Digits only")
    notes: Optional[str] = None
    items: List[OrderLineItem]
    total_amount: float = Field(..., alias="totalAmount")


class PlacedOrder(WireModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    customer_name: Optional[str] = Field(default=None, alias="customerName")
    phone_number: Optional[str] = Field(default=None, alias="phoneNumber")
    notes: Optional[str] = None
    items: List[OrderLineItem] = Field(default_factory=list)
    total_amount: float = Field(default=0.0, alias="totalAmount")
    status: str = ORDER_STATUS_PENDING
    created_at: Optional[str] = Field(default=None, alias="createdAt")

    @property
    def badge(self) -> Tuple[str, str]:
        return status_badge(self.status)


class PlaceOrderResponse(WireModel):
    data: PlacedOrder


def status_badge(status: str) -> Tuple[str, str]:
    """Display label and tone for an order status tag.

    Unknown tags are shown like ``pending``.
    """
    if status == ORDER_STATUS_COMPLETED:
        tone = "success"
    elif status == ORDER_STATUS_CANCELLED:
        tone = "danger"
    else:
        tone = "warning"
    label = status[:1].upper() + status[1:]
    return label, tone


# Shell surface models


class CartLineView(BaseModel):
    item_id: str
    name: str
    price: float
    quantity: int
    line_total: float


class CartView(BaseModel):
    lines: List[CartLineView]
    total: float
    item_count: int


class MenuView(BaseModel):
    status: str
    categories: MenuCategories = Field(default_factory=dict)
    error: Optional[str] = None


class AddToCartRequest(BaseModel):
    item_id: str


class QuantityUpdateRequest(BaseModel):
    quantity: int


class CheckoutRequest(BaseModel):
    customer_name: str = ""
    phone_number: str = ""
    notes: Optional[str] = None


class CheckoutResponse(BaseModel):
    order: PlacedOrder
    confirmation_path: str


class OrderHistoryView(BaseModel):
    status: str
    orders: List[PlacedOrder] = Field(default_factory=list)
    error: Optional[str] = None
    message: Optional[str] = None
