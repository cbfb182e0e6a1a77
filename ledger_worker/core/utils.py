"""Shared utility functions for the ledger worker."""

import logging
import threading
from collections.abc import Hashable, Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime

import colorlog

MONTH_FACTOR = 10000
LOGGER_NAMESPACE = "ledger-worker"


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a colorized format for the project.

    Handlers live on the ``ledger-worker`` namespace logger; module loggers below it
    propagate there, so a file handler added at startup sees every record.
    """
    base = logging.getLogger(LOGGER_NAMESPACE)
    if not base.handlers:
        handler = logging.StreamHandler()
        formatter = colorlog.ColoredFormatter(
            "%(log_color)s%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "bold_red",
            },
        )
        handler.setFormatter(formatter)
        base.addHandler(handler)
        base.setLevel(logging.INFO)
    base.propagate = False
    return logging.getLogger(name)


def utcnow_iso() -> str:
    """Get the current UTC time as an ISO8601 string."""
    return datetime.now(UTC).isoformat()


def encode_month_year(month: int, year: int) -> int:
    """Encode a month and year as the MMYYYY integer used across the schema."""
    return month * MONTH_FACTOR + year


def current_month_year(today: date | None = None) -> int:
    """Return the month-year key for today (or the given date)."""
    today = today or date.today()
    return encode_month_year(today.month, today.year)


def month_bounds(month_year: int) -> tuple[date, date]:
    """Return the half-open ``[start, end)`` date range covered by a month-year key."""
    month, year = divmod(month_year, MONTH_FACTOR)
    if not 1 <= month <= 12:  # noqa: PLR2004
        msg = f"Invalid month_year {month_year}: month must be between 1 and 12"
        raise ValueError(msg)
    start = date(year, month, 1)
    end = date(year + 1, 1, 1) if month == 12 else date(year, month + 1, 1)  # noqa: PLR2004
    return start, end


class KeyedLock:
    """A family of re-entrant locks, one per hashable key.

    A key's lock exists only while some thread holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> [lock, number of threads holding or waiting]
        self._locks: dict[Hashable, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _acquire_entry(self, key: Hashable) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = [threading.RLock(), 0]
                self._locks[key] = entry
            entry[1] += 1
            return entry[0]

    def _release_entry(self, key: Hashable) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the block."""
        lock = self._acquire_entry(key)
        try:
            with lock:
                yield
        finally:
            self._release_entry(key)
