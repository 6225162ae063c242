"""The cache entry record and its state enum."""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any, Optional


class EntryState(str, enum.Enum):
    """Mutually exclusive states of a :class:`CacheEntry`."""

    EMPTY = "empty"
    PENDING = "pending"
    VALUE = "value"
    ERROR = "error"


@dataclass(eq=False)
class CacheEntry:
    """One cached resource.

    ``subscriber_count`` is owned by the engine's retain/release bookkeeping
    and never goes negative.  ``dependent_keys`` lists the entries derived
    from the last successful value and is only used for cascade eviction.
    """

    key: str
    state: EntryState = EntryState.EMPTY
    value: Any = None
    error: Optional[BaseException] = None
    future: Optional[asyncio.Future[Any]] = None
    subscriber_count: int = 0
    dependent_keys: list[str] = field(default_factory=list)
    deletion_timer: Optional[asyncio.TimerHandle] = None

    @property
    def is_present(self) -> bool:
        return self.state in (EntryState.VALUE, EntryState.ERROR)

    @property
    def is_pending(self) -> bool:
        return self.state is EntryState.PENDING

    @property
    def is_expiring(self) -> bool:
        return self.deletion_timer is not None

    def last_known(self) -> Any:
        """The cached value or error, ``None`` while empty or pending."""
        if self.state is EntryState.ERROR:
            return self.error
        return self.value

    def result(self) -> Any:
        """Return the cached value, re-raising a cached error."""
        if self.state is EntryState.ERROR:
            assert self.error is not None
            raise self.error
        return self.value

    def set_pending(self, future: asyncio.Future[Any]) -> None:
        self.state = EntryState.PENDING
        self.value = None
        self.error = None
        self.future = future

    def set_value(self, value: Any) -> None:
        self.state = EntryState.VALUE
        self.value = value
        self.error = None
        self.future = None

    def set_error(self, error: BaseException) -> None:
        self.state = EntryState.ERROR
        self.value = None
        self.error = error
        self.future = None

    def cancel_deletion(self) -> None:
        if self.deletion_timer is not None:
            self.deletion_timer.cancel()
            self.deletion_timer = None
