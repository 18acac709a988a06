"""jitr_shared.dealer — Dealer contract shared by both onboarding pipelines.

A dealer is built with every input it needs and exposes a single entry
point, `deal()`. It starts from a fresh, immutable work table and threads
it through its `steps` in order: each step receives the table produced by
the previous one and returns the next. The first failing step aborts the
run; nothing already done on the platform is rolled back, and the dealer
cannot be dealt again.
"""

from __future__ import annotations

import enum
import logging
from typing import Callable, Generic, Tuple, TypeVar

logger = logging.getLogger(__name__)

TableT = TypeVar("TableT")
CargoT = TypeVar("CargoT")


class State(enum.Enum):
    INCOMPLETE = "incomplete"
    COMPLETE = "complete"


class Dealer(Generic[TableT, CargoT]):
    """Base class for fixed, ordered workflows.

    Subclasses set `steps` to the names of their step methods (each
    `(table) -> table`) and implement `_initial_table()` and `_cargo()`.
    """

    steps: Tuple[str, ...] = ()

    def __init__(self) -> None:
        self.state = State.INCOMPLETE
        self._started = False

    def _initial_table(self) -> TableT:
        raise NotImplementedError

    def _cargo(self, table: TableT) -> CargoT:
        raise NotImplementedError

    def _step(self, name: str) -> Callable[[TableT], TableT]:
        return getattr(self, name)

    def deal(self) -> CargoT:
        if self._started:
            raise RuntimeError(f"{type(self).__name__} has already dealt")
        self._started = True

        table = self._initial_table()
        for name in self.steps:
            logger.info("%s: %s", type(self).__name__, name)
            table = self._step(name)(table)

        self.state = State.COMPLETE
        return self._cargo(table)
