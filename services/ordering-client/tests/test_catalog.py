from __future__ import annotations

import asyncio

from ordering_client.backend_client import OrderingServiceError
from ordering_client.catalog import DEFAULT_MENU_ERROR, MenuCatalog
from ordering_client.schemas import MenuItem
from ordering_client.status import RequestStatus


class CountingMenuBackend:
    def __init__(self, errors=()):
        self.calls = 0
        self._errors = list(errors)

    async def fetch_menu(self):
        self.calls += 1
        if self._errors:
            raise self._errors.pop(0)
        return {
            "Drinks": [MenuItem(id="lassi", name="Lassi", price=80)],
            "Mains": [MenuItem(id="dal", name="Dal", price=220)],
        }


def test_load_fetches_once():
    backend = CountingMenuBackend()
    catalog = MenuCatalog(backend)

    asyncio.run(catalog.load())
    asyncio.run(catalog.load())

    assert backend.calls == 1
    assert catalog.state.status is RequestStatus.SUCCEEDED
    assert catalog.category_names == ["Drinks", "Mains"]
    assert catalog.find_item("dal").price == 220
    assert catalog.find_item("missing") is None


def test_failure_is_sticky_until_refresh():
    backend = CountingMenuBackend(errors=[OrderingServiceError()])
    catalog = MenuCatalog(backend)

    asyncio.run(catalog.load())
    assert catalog.state.failed
    assert catalog.state.error == DEFAULT_MENU_ERROR

    asyncio.run(catalog.load())
    assert backend.calls == 1

    asyncio.run(catalog.refresh())
    assert backend.calls == 2
    assert catalog.state.succeeded
    assert catalog.state.error is None


def test_listeners_see_loading_then_result():
    catalog = MenuCatalog(CountingMenuBackend())
    seen = []
    catalog.subscribe(lambda: seen.append(catalog.state.status))

    asyncio.run(catalog.load())

    assert seen == [RequestStatus.LOADING, RequestStatus.SUCCEEDED]


def test_unexpected_error_fails_load_and_refresh_recovers():
    backend = CountingMenuBackend(errors=[RuntimeError("bad payload handling")])
    catalog = MenuCatalog(backend)

    asyncio.run(catalog.load())
    assert catalog.state.failed
    assert catalog.state.error == DEFAULT_MENU_ERROR

    asyncio.run(catalog.refresh())
    assert catalog.state.succeeded
    assert backend.calls == 2
