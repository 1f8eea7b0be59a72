from __future__ import annotations

import asyncio
import logging

import pytest

from ordering_client.backend_client import OrderingServiceError
from ordering_client.cart import CartLedger, CartLine
from ordering_client.orders import (
    DEFAULT_HISTORY_ERROR,
    DEFAULT_SUBMIT_ERROR,
    EMPTY_CART_ERROR,
    NO_ORDERS_MESSAGE,
    SUBMIT_IN_FLIGHT_ERROR,
    OrderLifecycle,
)
from ordering_client.schemas import MenuItem, PlacedOrder
from ordering_client.status import RequestStatus
from ordering_client.validation import NAME_FIELD, NOTES_FIELD, PHONE_FIELD


class RecordingBackend:
    def __init__(self, history=None):
        self.placed = []
        self.history_queries = []
        self._history = history or []

    async def fetch_menu(self):
        return {}

    async def place_order(self, request):
        self.placed.append(request)
        return PlacedOrder(
            id="order-1",
            customer_name=request.customer_name,
            phone_number=request.phone_number,
            notes=request.notes,
            items=request.items,
            total_amount=request.total_amount,
        )

    async def fetch_order_history(self, phone_number):
        self.history_queries.append(phone_number)
        return list(self._history)


class FailingBackend(RecordingBackend):
    def __init__(self, error: OrderingServiceError):
        super().__init__()
        self._error = error

    async def place_order(self, request):
        self.placed.append(request)
        raise self._error

    async def fetch_order_history(self, phone_number):
        raise self._error


class BlockingBackend(RecordingBackend):
    """Holds place_order open until the test releases it."""

    def __init__(self):
        super().__init__()
        self.release = asyncio.Event()

    async def place_order(self, request):
        await self.release.wait()
        return await super().place_order(request)


@pytest.fixture()
def cart() -> CartLedger:
    ledger = CartLedger()
    ledger.add_item(MenuItem(id="x", name="Thali", price=100))
    ledger.add_item(MenuItem(id="x", name="Thali", price=100))
    return ledger


def fill_form(orders: OrderLifecycle, name: str = "John Doe", phone: str = "(123) 456-7890") -> None:
    orders.update_field(NAME_FIELD, name)
    orders.update_field(PHONE_FIELD, phone)


def test_successful_submit_clears_cart(cart):
    backend = RecordingBackend()
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)
    orders.update_field(NOTES_FIELD, "  extra spicy ")

    outcome = asyncio.run(orders.submit())

    assert outcome.ok
    assert outcome.confirmation_path == "/order-confirmation/order-1"
    assert orders.submission.status is RequestStatus.SUCCEEDED
    assert cart.is_empty
    assert orders.current_order.total_amount == 200
    request = backend.placed[0]
    assert request.phone_number == "1234567890"
    assert request.notes == "extra spicy"
    assert [(item.id, item.price, item.quantity) for item in request.items] == [("x", 100, 2)]


def test_invalid_form_blocks_submit(cart):
    backend = RecordingBackend()
    orders = OrderLifecycle(backend, cart)
    fill_form(orders, name="J", phone="555")

    outcome = asyncio.run(orders.submit())

    assert not outcome.ok
    assert set(outcome.field_errors) == {NAME_FIELD, PHONE_FIELD}
    assert backend.placed == []
    assert orders.submission.is_idle
    assert cart.lines == (CartLine(item_id="x", name="Thali", price=100, quantity=2),)


def test_transport_failure_keeps_cart(cart):
    backend = FailingBackend(OrderingServiceError())
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)
    before = cart.snapshot()

    outcome = asyncio.run(orders.submit())

    assert outcome.error == DEFAULT_SUBMIT_ERROR
    assert orders.submission.failed
    assert orders.submission.error == DEFAULT_SUBMIT_ERROR
    assert cart.lines == before
    assert orders.current_order is None


def test_backend_field_message_is_preferred(cart):
    backend = FailingBackend(
        OrderingServiceError("Request failed with status code 400", detail="Phone number is invalid")
    )
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)

    outcome = asyncio.run(orders.submit())

    assert outcome.error == "Phone number is invalid"


def test_transport_message_used_without_field_message(cart):
    backend = FailingBackend(OrderingServiceError("Request failed with status code 500"))
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)

    outcome = asyncio.run(orders.submit())

    assert outcome.error == "Request failed with status code 500"


def test_empty_cart_is_not_submitted():
    backend = RecordingBackend()
    orders = OrderLifecycle(backend, CartLedger())
    fill_form(orders)

    outcome = asyncio.run(orders.submit())

    assert outcome.error == EMPTY_CART_ERROR
    assert backend.placed == []


def test_second_submit_while_loading_is_rejected(cart):
    backend = BlockingBackend()
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)

    async def scenario():
        first = asyncio.create_task(orders.submit())
        await asyncio.sleep(0)
        second = await orders.submit()
        backend.release.set()
        return await first, second

    first, second = asyncio.run(scenario())

    assert first.ok
    assert second.error == SUBMIT_IN_FLIGHT_ERROR
    assert len(backend.placed) == 1


def test_cart_changes_during_submit_survive_success(cart):
    backend = BlockingBackend()
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)

    async def scenario():
        pending = asyncio.create_task(orders.submit())
        await asyncio.sleep(0)
        cart.add_item(MenuItem(id="lassi", name="Lassi", price=80))
        backend.release.set()
        return await pending

    outcome = asyncio.run(scenario())

    assert outcome.ok
    assert backend.placed[0].total_amount == 200
    assert [line.item_id for line in cart.lines] == ["lassi"]


def test_empty_history_is_success():
    backend = RecordingBackend(history=[])
    orders = OrderLifecycle(backend, CartLedger())

    state = asyncio.run(orders.fetch_history("9999999999"))

    assert state.status is RequestStatus.SUCCEEDED
    assert orders.order_history == []
    assert orders.history_is_empty
    assert orders.history_message == NO_ORDERS_MESSAGE


def test_history_uses_raw_phone_and_replaces_results():
    previous = PlacedOrder(id="old", total_amount=50, status="completed")
    backend = RecordingBackend(history=[previous])
    orders = OrderLifecycle(backend, CartLedger())

    asyncio.run(orders.fetch_history("(123) 456-7890"))

    assert backend.history_queries == ["(123) 456-7890"]
    assert [order.id for order in orders.order_history] == ["old"]
    assert orders.history_message is None


def test_history_failure_does_not_touch_submit_state(cart):
    backend = FailingBackend(OrderingServiceError("Network Error"))
    orders = OrderLifecycle(backend, cart)

    state = asyncio.run(orders.fetch_history("1234567890"))

    assert state.failed
    assert orders.history_message == "Network Error"
    assert orders.submission.is_idle


def test_confirmation_lookup_and_clear(cart):
    orders = OrderLifecycle(RecordingBackend(), cart)
    fill_form(orders)
    asyncio.run(orders.submit())

    assert orders.confirmation_for("order-1") is orders.current_order
    assert orders.confirmation_for("other") is None

    orders.clear_current_order()
    assert orders.confirmation_for("order-1") is None


class ExplodingOnceBackend(RecordingBackend):
    def __init__(self):
        super().__init__()
        self.exploded = False

    async def place_order(self, request):
        if not self.exploded:
            self.exploded = True
            raise RuntimeError("backend bug")
        return await super().place_order(request)

    async def fetch_order_history(self, phone_number):
        if not self.exploded:
            self.exploded = True
            raise RuntimeError("backend bug")
        return await super().fetch_order_history(phone_number)


class SwitchableHistoryBackend(RecordingBackend):
    error = None

    async def fetch_order_history(self, phone_number):
        if self.error is not None:
            raise self.error
        return await super().fetch_order_history(phone_number)


class BlockingHistoryBackend(RecordingBackend):
    def __init__(self, history=None):
        super().__init__(history=history)
        self.release = asyncio.Event()

    async def fetch_order_history(self, phone_number):
        self.history_queries.append(phone_number)
        await self.release.wait()
        return list(self._history)


def test_unexpected_backend_error_fails_submit_and_allows_retry(cart):
    backend = ExplodingOnceBackend()
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)

    first = asyncio.run(orders.submit())

    assert first.error == DEFAULT_SUBMIT_ERROR
    assert orders.submission.failed
    assert not cart.is_empty

    second = asyncio.run(orders.submit())

    assert second.ok
    assert cart.is_empty


def test_cancelled_submit_can_be_retried(cart):
    backend = BlockingBackend()
    orders = OrderLifecycle(backend, cart)
    fill_form(orders)

    async def scenario():
        pending = asyncio.create_task(orders.submit())
        await asyncio.sleep(0)
        pending.cancel()
        with pytest.raises(asyncio.CancelledError):
            await pending
        assert orders.submission.failed
        backend.release.set()
        return await orders.submit()

    outcome = asyncio.run(scenario())

    assert outcome.ok


def test_unexpected_history_error_allows_retry():
    backend = ExplodingOnceBackend()
    orders = OrderLifecycle(backend, CartLedger())

    state = asyncio.run(orders.fetch_history("1234567890"))
    assert state.failed
    assert orders.history_message == DEFAULT_HISTORY_ERROR

    state = asyncio.run(orders.fetch_history("1234567890"))
    assert state.succeeded


def test_failed_lookup_hides_previous_customers_orders():
    backend = SwitchableHistoryBackend(history=[PlacedOrder(id="A-order", total_amount=90)])
    orders = OrderLifecycle(backend, CartLedger())
    asyncio.run(orders.fetch_history("1111122222"))
    assert [order.id for order in orders.order_history] == ["A-order"]

    backend.error = OrderingServiceError("Network Error")
    state = asyncio.run(orders.fetch_history("3333344444"))

    assert state.failed
    assert orders.order_history == []
    assert not orders.history_is_empty


def test_overlapping_history_lookup_is_dropped_and_logged(caplog):
    caplog.set_level(logging.DEBUG, logger="ordering_client.orders")
    backend = BlockingHistoryBackend(history=[])
    orders = OrderLifecycle(backend, CartLedger())

    async def scenario():
        first = asyncio.create_task(orders.fetch_history("1111122222"))
        await asyncio.sleep(0)
        second = await orders.fetch_history("3333344444")
        assert second.is_loading
        backend.release.set()
        return await first

    state = asyncio.run(scenario())

    assert state.succeeded
    assert backend.history_queries == ["1111122222"]
    assert "Ignoring history lookup for 3333344444" in caplog.text
