from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .backend_client import OrderingBackend, OrderingServiceError
from .cart import CartLedger, CartLine, cart_total
from .schemas import OrderLineItem, PlacedOrder, PlaceOrderRequest
from .status import Observable, RequestState
from .validation import CheckoutForm, FieldErrors

logger = logging.getLogger(__name__)

DEFAULT_SUBMIT_ERROR = "Failed to place order. Please try again."
DEFAULT_HISTORY_ERROR = "Failed to fetch order history."
EMPTY_CART_ERROR = "Your cart is empty."
SUBMIT_IN_FLIGHT_ERROR = "Your order is already being placed."
NO_ORDERS_MESSAGE = "No orders found for this phone number."


@dataclass(frozen=True)
class OrderDraft:
    customer_name: str
    phone_number: str
    lines: Tuple[CartLine, ...]
    total_amount: float
    notes: Optional[str] = None

    @classmethod
    def from_checkout(cls, form: CheckoutForm, lines: Tuple[CartLine, ...]) -> "OrderDraft":
        return cls(
            customer_name=form.customer_name.strip(),
            phone_number=form.cleaned_phone_number,
            notes=form.cleaned_notes,
            lines=lines,
            total_amount=cart_total(lines),
        )

    def to_request(self) -> PlaceOrderRequest:
        return PlaceOrderRequest(
            customer_name=self.customer_name,
            phone_number=self.phone_number,
            notes=self.notes,
            items=[
                OrderLineItem(id=line.item_id, name=line.name, price=line.price, quantity=line.quantity)
                for line in self.lines
            ],
            total_amount=self.total_amount,
        )


@dataclass(frozen=True)
class SubmitOutcome:
    order: Optional[PlacedOrder] = None
    error: Optional[str] = None
    field_errors: FieldErrors = field(default_factory=dict)
    submitted: bool = False

    @property
    def ok(self) -> bool:
        return self.order is not None

    @property
    def confirmation_path(self) -> Optional[str]:
        if self.order is None:
            return None
        return f"/order-confirmation/{self.order.id}"


class OrderLifecycle(Observable):
    """Checkout and order history flows.

    Submitting and querying history are tracked as separate request states
    so a failed lookup never shows up as a failed checkout.
    """

    def __init__(self, backend: OrderingBackend, cart: CartLedger):
        super().__init__()
        self._backend = backend
        self._cart = cart
        self.form = CheckoutForm()
        self.submission: RequestState[PlacedOrder] = RequestState("submit")
        self.history: RequestState[List[PlacedOrder]] = RequestState("history")

    @property
    def current_order(self) -> Optional[PlacedOrder]:
        return self.submission.result

    @property
    def order_history(self) -> List[PlacedOrder]:
        if not self.history.succeeded:
            return []
        return self.history.result or []

    @property
    def history_is_empty(self) -> bool:
        return self.history.succeeded and not self.order_history

    @property
    def history_message(self) -> Optional[str]:
        if self.history.failed:
            return self.history.error
        if self.history_is_empty:
            return NO_ORDERS_MESSAGE
        return None

    def update_field(self, name: str, value: Optional[str]) -> None:
        self.form.set_field(name, value)
        self._notify()

    async def submit(self) -> SubmitOutcome:
        if self.submission.is_loading:
            return SubmitOutcome(error=SUBMIT_IN_FLIGHT_ERROR)
        if not self.form.validate():
            logger.info("Checkout blocked by invalid field(s): %s", ", ".join(sorted(self.form.errors)))
            self._notify()
            return SubmitOutcome(field_errors=dict(self.form.errors))
        if self._cart.is_empty:
            return SubmitOutcome(error=EMPTY_CART_ERROR)

        draft = OrderDraft.from_checkout(self.form, self._cart.snapshot())
        self.submission.start()
        self._notify()
        logger.info("Placing order items=%d total=%.2f", len(draft.lines), draft.total_amount)
        try:
            order = await self._backend.place_order(draft.to_request())
        except OrderingServiceError as exc:
            message = exc.detail or str(exc) or DEFAULT_SUBMIT_ERROR
            logger.warning("Placing order failed: %s", message)
            self.submission.fail(message)
            self._notify()
            return SubmitOutcome(error=message, submitted=True)
        except Exception:
            logger.exception("Placing order failed unexpectedly")
            self.submission.fail(DEFAULT_SUBMIT_ERROR)
            self._notify()
            return SubmitOutcome(error=DEFAULT_SUBMIT_ERROR, submitted=True)
        except BaseException:
            # Cancelled: leave the request retryable, then let cancellation through.
            self.submission.fail(DEFAULT_SUBMIT_ERROR)
            self._notify()
            raise

        self.submission.succeed(order)
        self._release_cart(draft.lines)
        self.form.reset()
        logger.info("Order placed id=%s total=%.2f", order.id, order.total_amount)
        self._notify()
        return SubmitOutcome(order=order, submitted=True)

    async def fetch_history(self, phone_number: str) -> RequestState[List[PlacedOrder]]:
        if self.history.is_loading:
            logger.debug("Ignoring history lookup for %s while another lookup is loading", phone_number)
            return self.history

        self.history.start()
        self._notify()
        try:
            orders = await self._backend.fetch_order_history(phone_number)
        except OrderingServiceError as exc:
            message = exc.detail or str(exc) or DEFAULT_HISTORY_ERROR
            logger.warning("Order history lookup failed: %s", message)
            self.history.fail(message)
        except Exception:
            logger.exception("Order history lookup failed unexpectedly")
            self.history.fail(DEFAULT_HISTORY_ERROR)
        except BaseException:
            self.history.fail(DEFAULT_HISTORY_ERROR)
            self._notify()
            raise
        else:
            logger.info("Order history lookup returned %d order(s)", len(orders))
            self.history.succeed(list(orders))
        self._notify()
        return self.history

    def clear_current_order(self) -> None:
        self.submission.clear_result()
        self._notify()

    def confirmation_for(self, order_id: str) -> Optional[PlacedOrder]:
        order = self.current_order
        if order is None or order.id != order_id:
            return None
        return order

    def _release_cart(self, submitted: Tuple[CartLine, ...]) -> None:
        if self._cart.lines == submitted:
            self._cart.clear()
        else:
            # Cart changed while the order was in flight; keep the newer lines.
            self._cart.discard(submitted)
