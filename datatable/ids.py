"""
Identifier generators.

An IdGenerator produces an id that is not in use in a table. Stores call
their generator whenever a row is created without a usable id.

Invariants:
    - get_one_unused_id() always terminates
    - SequentialIdGenerator never fails
    - RandomIdGenerator fails with IdGeneratorExhausted after max_attempts draws

How to change safely:
    - New strategies only need the IdSpace methods of the table
    - Keep failures inside the DataTableError hierarchy so stores can
      fall back to sequential ids
"""

from __future__ import annotations

import logging
import random
from abc import abstractmethod
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from .errors import IdGeneratorExhausted

if TYPE_CHECKING:
    from .config import DataTableSettings

logger = logging.getLogger(__name__)

MAX_ID = 2**63 - 1


@runtime_checkable
class IdSpace(Protocol):
    """The part of a table an id generator needs to look at."""

    @abstractmethod
    def row_exists(self, row_id: int) -> bool: ...

    @abstractmethod
    def get_max_value_in_column(self, column: str) -> int: ...

    @abstractmethod
    def get_id_column_name(self) -> str: ...


@runtime_checkable
class IdGenerator(Protocol):
    """Strategy producing unused row ids."""

    @abstractmethod
    def get_one_unused_id(self, table: IdSpace) -> int:
        """Return an id not currently used in ``table``.

        Raises:
            IdGeneratorExhausted: If the strategy gives up
        """
        ...


class SequentialIdGenerator:
    """Max id plus one; 1 on an empty table."""

    def get_one_unused_id(self, table: IdSpace) -> int:
        return table.get_max_value_in_column(table.get_id_column_name()) + 1


class RandomIdGenerator:
    """Uniformly random ids in ``[min_id, max_id]``, retried up to max_attempts.

    Useful when ids must not be guessable from each other. With a densely
    used range the generator will run out of attempts; callers inside a
    store get sequential ids instead, direct callers get the error.

    Example:
        >>> gen = RandomIdGenerator(1, 1000, max_attempts=10)
        >>> row_id = gen.get_one_unused_id(store)
    """

    def __init__(self, min_id: int = 1, max_id: int = MAX_ID, max_attempts: int = 1000) -> None:
        if min_id < 1:
            raise ValueError(f"min_id must be positive, got {min_id}")
        if max_id < min_id:
            raise ValueError(f"max_id ({max_id}) is less than min_id ({min_id})")
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
        self.min_id = min_id
        self.max_id = max_id
        self.max_attempts = max_attempts
        self._random = random.SystemRandom()

    def get_one_unused_id(self, table: IdSpace) -> int:
        for _ in range(self.max_attempts):
            candidate = self._random.randint(self.min_id, self.max_id)
            if not table.row_exists(candidate):
                return candidate
        logger.debug(
            "Random id generator exhausted",
            extra={"min_id": self.min_id, "max_id": self.max_id, "attempts": self.max_attempts},
        )
        raise IdGeneratorExhausted(self.max_attempts)


def create_id_generator(settings: "DataTableSettings") -> IdGenerator:
    """Build the id generator selected by ``settings.id_strategy``.

    Raises:
        ValueError: If the strategy is unknown
    """
    if settings.id_strategy == "sequential":
        return SequentialIdGenerator()
    if settings.id_strategy == "random":
        return RandomIdGenerator(
            settings.random_id_min,
            settings.random_id_max,
            settings.random_id_max_attempts,
        )
    raise ValueError(f"Unsupported id strategy: {settings.id_strategy}")
