from __future__ import annotations

import logging
from typing import List, Optional

from .backend_client import OrderingBackend, OrderingServiceError
from .schemas import MenuCategories, MenuItem
from .status import Observable, RequestState

logger = logging.getLogger(__name__)

DEFAULT_MENU_ERROR = "Failed to load menu."


class MenuCatalog(Observable):
    """Cached category -> items mapping fetched once from the backend."""

    def __init__(self, backend: OrderingBackend):
        super().__init__()
        self._backend = backend
        self.state: RequestState[MenuCategories] = RequestState("menu")

    @property
    def categories(self) -> MenuCategories:
        return self.state.result or {}

    @property
    def category_names(self) -> List[str]:
        return list(self.categories)

    def find_item(self, item_id: str) -> Optional[MenuItem]:
        for items in self.categories.values():
            for item in items:
                if item.id == item_id:
                    return item
        return None

    async def load(self) -> RequestState[MenuCategories]:
        # Fetch only fires from idle; a failed load stays failed until refresh().
        if not self.state.is_idle:
            return self.state

        self.state.start()
        self._notify()
        try:
            categories = await self._backend.fetch_menu()
        except OrderingServiceError as exc:
            message = str(exc) or DEFAULT_MENU_ERROR
            logger.warning("Menu load failed: %s", message)
            self.state.fail(message)
        except Exception:
            logger.exception("Menu load failed unexpectedly")
            self.state.fail(DEFAULT_MENU_ERROR)
        except BaseException:
            self.state.fail(DEFAULT_MENU_ERROR)
            self._notify()
            raise
        else:
            logger.info("Menu loaded with %d categories", len(categories))
            self.state.succeed(categories)
        self._notify()
        return self.state

    async def refresh(self) -> RequestState[MenuCategories]:
        if self.state.is_loading:
            return self.state
        self.state.reset()
        return await self.load()
