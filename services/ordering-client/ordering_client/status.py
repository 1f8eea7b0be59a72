from __future__ import annotations

import logging
from enum import Enum
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[], None]


class RequestStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class RequestInFlightError(Exception):
    """Raised when a request is started while the previous one is still loading."""


class InvalidTransitionError(Exception):
    """Raised when a request state is moved along an edge that does not exist."""


class Observable:
    """Minimal listener registry shared by the state containers."""

    def __init__(self) -> None:
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()


class RequestState(Generic[T]):
    """Lifecycle of one kind of asynchronous request.

    idle -> loading -> succeeded | failed, and succeeded/failed can start
    again. The last successful result is kept until the next success
    replaces it.
    """

    def __init__(self, name: str):
        self.name = name
        self.status = RequestStatus.IDLE
        self.result: Optional[T] = None
        self.error: Optional[str] = None

    @property
    def is_idle(self) -> bool:
        return self.status is RequestStatus.IDLE

    @property
    def is_loading(self) -> bool:
        return self.status is RequestStatus.LOADING

    @property
    def succeeded(self) -> bool:
        return self.status is RequestStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status is RequestStatus.FAILED

    def start(self) -> None:
        if self.is_loading:
            raise RequestInFlightError(f"{self.name} request is already in flight.")
        self.status = RequestStatus.LOADING
        self.error = None
        logger.debug("%s -> loading", self.name)

    def succeed(self, result: T) -> None:
        self._require_loading("succeed")
        self.status = RequestStatus.SUCCEEDED
        self.result = result
        self.error = None
        logger.debug("%s -> succeeded", self.name)

    def fail(self, message: str) -> None:
        self._require_loading("fail")
        self.status = RequestStatus.FAILED
        self.error = message
        logger.debug("%s -> failed: %s", self.name, message)

    def reset(self) -> None:
        if self.is_loading:
            raise RequestInFlightError(f"{self.name} request is already in flight.")
        self.status = RequestStatus.IDLE
        self.error = None

    def clear_result(self) -> None:
        self.result = None

    def _require_loading(self, action: str) -> None:
        if not self.is_loading:
            raise InvalidTransitionError(
                f"Cannot {action} {self.name} request from status {self.status.value}."
            )

    def __repr__(self) -> str:
        return f"RequestState(name={self.name!r}, status={self.status.value!r}, error={self.error!r})"
