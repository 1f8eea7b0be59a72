from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware

from . import schemas
from .backend_client import HTTPOrderingBackend, MockOrderingBackend, OrderingBackend
from .cart import CartLedger
from .catalog import MenuCatalog
from .config import Settings, load_settings
from .orders import OrderLifecycle
from .validation import NAME_FIELD, NOTES_FIELD, PHONE_FIELD

logger = logging.getLogger(__name__)


class OrderingShell:
    """Owns the menu catalog, the cart and the order flows of one customer."""

    def __init__(self, backend: OrderingBackend):
        self.backend = backend
        self.catalog = MenuCatalog(backend)
        self.cart = CartLedger()
        self.orders = OrderLifecycle(backend, self.cart)


def build_backend(settings: Settings) -> OrderingBackend:
    if settings.backend_mode == "mock":
        logger.info("Using in-memory mock backend")
        return MockOrderingBackend()
    if settings.backend_mode == "http":
        return HTTPOrderingBackend(settings.api_url, timeout=settings.api_timeout)
    raise RuntimeError(f"Unknown BACKEND_MODE {settings.backend_mode!r}, expected 'http' or 'mock'")


def get_shell(request: Request) -> OrderingShell:
    return request.app.state.shell


def _cart_view(cart: CartLedger) -> schemas.CartView:
    return schemas.CartView(
        lines=[
            schemas.CartLineView(
                item_id=line.item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
            for line in cart.lines
        ],
        total=cart.total,
        item_count=cart.item_count,
    )


def _menu_view(catalog: MenuCatalog) -> schemas.MenuView:
    return schemas.MenuView(
        status=catalog.state.status.value,
        categories=catalog.categories,
        error=catalog.state.error,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    close = getattr(app.state.shell.backend, "aclose", None)
    if close is not None:
        await close()


def create_app(shell: Optional[OrderingShell] = None, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(
        title="Ordering Client",
        version="0.1.0",
        description="Menu, cart and checkout state for the restaurant ordering client.",
        lifespan=lifespan,
    )
    app.state.shell = shell or OrderingShell(build_backend(settings))
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/healthz", response_model=schemas.HealthResponse, tags=["system"])
    async def healthz() -> schemas.HealthResponse:
        return schemas.HealthResponse(status="ok")

    @app.get("/menu", response_model=schemas.MenuView, tags=["menu"])
    async def get_menu(shell: OrderingShell = Depends(get_shell)) -> schemas.MenuView:
        await shell.catalog.load()
        return _menu_view(shell.catalog)

    @app.post("/menu/refresh", response_model=schemas.MenuView, tags=["menu"])
    async def refresh_menu(shell: OrderingShell = Depends(get_shell)) -> schemas.MenuView:
        await shell.catalog.refresh()
        return _menu_view(shell.catalog)

    @app.get("/cart", response_model=schemas.CartView, tags=["cart"])
    async def get_cart(shell: OrderingShell = Depends(get_shell)) -> schemas.CartView:
        return _cart_view(shell.cart)

    @app.post(
        "/cart/items",
        response_model=schemas.CartView,
        status_code=status.HTTP_201_CREATED,
        tags=["cart"],
    )
    async def add_to_cart(
        payload: schemas.AddToCartRequest,
        shell: OrderingShell = Depends(get_shell),
    ) -> schemas.CartView:
        item = shell.catalog.find_item(payload.item_id)
        if item is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Menu item not found")
        shell.cart.add_item(item)
        return _cart_view(shell.cart)

    @app.put("/cart/items/{item_id}", response_model=schemas.CartView, tags=["cart"])
    async def update_cart_item(
        item_id: str,
        payload: schemas.QuantityUpdateRequest,
        shell: OrderingShell = Depends(get_shell),
    ) -> schemas.CartView:
        shell.cart.update_quantity(item_id, payload.quantity)
        return _cart_view(shell.cart)

    @app.delete("/cart/items/{item_id}", response_model=schemas.CartView, tags=["cart"])
    async def remove_cart_item(
        item_id: str, shell: OrderingShell = Depends(get_shell)
    ) -> schemas.CartView:
        shell.cart.remove_item(item_id)
        return _cart_view(shell.cart)

    @app.post(
        "/checkout",
        response_model=schemas.CheckoutResponse,
        status_code=status.HTTP_201_CREATED,
        tags=["orders"],
    )
    async def checkout(
        payload: schemas.CheckoutRequest,
        shell: OrderingShell = Depends(get_shell),
    ) -> schemas.CheckoutResponse:
        shell.orders.update_field(NAME_FIELD, payload.customer_name)
        shell.orders.update_field(PHONE_FIELD, payload.phone_number)
        shell.orders.update_field(NOTES_FIELD, payload.notes)
        outcome = await shell.orders.submit()

        if outcome.field_errors:
            raise HTTPException(
                status_code=422,
                detail={"errors": outcome.field_errors},
            )
        if not outcome.ok:
            code = status.HTTP_502_BAD_GATEWAY if outcome.submitted else status.HTTP_409_CONFLICT
            raise HTTPException(status_code=code, detail=outcome.error)
        return schemas.CheckoutResponse(order=outcome.order, confirmation_path=outcome.confirmation_path)

    @app.get(
        "/orders/confirmation/{order_id}",
        response_model=schemas.PlacedOrder,
        tags=["orders"],
    )
    async def get_confirmation(
        order_id: str, shell: OrderingShell = Depends(get_shell)
    ) -> schemas.PlacedOrder:
        order = shell.orders.confirmation_for(order_id)
        if order is None:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Order information not available",
            )
        return order

    @app.delete("/orders/current", status_code=status.HTTP_204_NO_CONTENT, tags=["orders"])
    async def clear_current_order(shell: OrderingShell = Depends(get_shell)) -> None:
        shell.orders.clear_current_order()

    @app.get(
        "/orders/history/{phone_number}",
        response_model=schemas.OrderHistoryView,
        tags=["orders"],
    )
    async def get_order_history(
        phone_number: str, shell: OrderingShell = Depends(get_shell)
    ) -> schemas.OrderHistoryView:
        state = await shell.orders.fetch_history(phone_number)
        return schemas.OrderHistoryView(
            status=state.status.value,
            orders=shell.orders.order_history,
            error=state.error,
            message=shell.orders.history_message,
        )

    return app
