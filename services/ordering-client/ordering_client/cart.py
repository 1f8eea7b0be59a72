from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Tuple

from .schemas import MenuItem
from .status import Observable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    item_id: str
    name: str
    price: float
    quantity: int

    @property
    def line_total(self) -> float:
        return self.price * self.quantity

    @classmethod
    def from_menu_item(cls, item: MenuItem) -> "CartLine":
        return cls(item_id=item.id, name=item.name, price=item.price, quantity=1)


def cart_total(lines: Iterable[CartLine]) -> float:
    return round(sum(line.line_total for line in lines), 2)


class CartLedger(Observable):
    """Line items a customer intends to order.

    Holds at most one line per menu item, in insertion order. Quantities
    never drop below one: a line that would reach zero is removed. The total
    is always derived from the current lines.
    """

    def __init__(self, lines: Iterable[CartLine] = ()):
        super().__init__()
        self._lines: List[CartLine] = []
        for line in lines:
            self._put(line)

    @property
    def lines(self) -> Tuple[CartLine, ...]:
        return tuple(self._lines)

    @property
    def total(self) -> float:
        return cart_total(self._lines)

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines)

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def snapshot(self) -> Tuple[CartLine, ...]:
        return self.lines

    def get(self, item_id: str) -> Optional[CartLine]:
        index = self._index_of(item_id)
        return None if index is None else self._lines[index]

    def add_item(self, item: MenuItem) -> CartLine:
        index = self._index_of(item.id)
        if index is None:
            line = CartLine.from_menu_item(item)
            self._lines.append(line)
        else:
            line = replace(self._lines[index], quantity=self._lines[index].quantity + 1)
            self._lines[index] = line
        logger.info("Cart add item=%s quantity=%d total=%.2f", line.item_id, line.quantity, self.total)
        self._notify()
        return line

    def update_quantity(self, item_id: str, quantity: int) -> None:
        if quantity <= 0:
            self.remove_item(item_id)
            return
        index = self._index_of(item_id)
        if index is None:
            logger.debug("Ignoring quantity update for unknown item=%s", item_id)
            return
        self._lines[index] = replace(self._lines[index], quantity=quantity)
        logger.info("Cart update item=%s quantity=%d total=%.2f", item_id, quantity, self.total)
        self._notify()

    def remove_item(self, item_id: str) -> None:
        index = self._index_of(item_id)
        if index is None:
            return
        del self._lines[index]
        logger.info("Cart remove item=%s total=%.2f", item_id, self.total)
        self._notify()

    def clear(self) -> None:
        if not self._lines:
            return
        self._lines.clear()
        logger.info("Cart cleared")
        self._notify()

    def discard(self, submitted: Iterable[CartLine]) -> None:
        """Take previously submitted lines back out of the cart.

        Quantities added after the snapshot was taken stay in the cart.
        """
        submitted_quantities: Dict[str, int] = {}
        for line in submitted:
            submitted_quantities[line.item_id] = submitted_quantities.get(line.item_id, 0) + line.quantity

        remaining: List[CartLine] = []
        for line in self._lines:
            left = line.quantity - submitted_quantities.get(line.item_id, 0)
            if left > 0:
                remaining.append(line if left == line.quantity else replace(line, quantity=left))
        if remaining == self._lines:
            return
        self._lines = remaining
        logger.info("Cart discarded submitted lines, %d line(s) left", len(self._lines))
        self._notify()

    def _put(self, line: CartLine) -> None:
        if line.quantity <= 0:
            return
        index = self._index_of(line.item_id)
        if index is None:
            self._lines.append(line)
        else:
            current = self._lines[index]
            self._lines[index] = replace(current, quantity=current.quantity + line.quantity)

    def _index_of(self, item_id: str) -> Optional[int]:
        for index, line in enumerate(self._lines):
            if line.item_id == item_id:
                return index
        return None
