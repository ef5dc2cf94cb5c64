"""
repositories/memory.py
----------------------
In-memory stores with the same interface as the PostgreSQL repositories.

These only hold state for the lifetime of the process: after a restart the
dedup record is gone, so a message redelivered by the transport would be
applied again. Use them for tests and throwaway deployments only
(``STORE_BACKEND=memory``).
"""

import threading
import time
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from utils.logger import get_logger

logger = get_logger(__name__)


class InMemoryLedgerStore:
    """Thread-safe dict of running totals."""

    def __init__(self, precision: int = 2):
        self.precision = precision
        self._quantum = Decimal(1).scaleb(-precision)
        self._totals: dict[str, Decimal] = {}
        self._lock = threading.Lock()

    def _round(self, value) -> Decimal:
        return Decimal(value).quantize(self._quantum, rounding=ROUND_HALF_UP)

    def get(self, chat_id: str) -> Optional[Decimal]:
        with self._lock:
            return self._totals.get(chat_id)

    def set(self, chat_id: str, value: Decimal) -> Decimal:
        with self._lock:
            self._totals[chat_id] = self._round(value)
            return self._totals[chat_id]

    def add(self, chat_id: str, delta: Decimal) -> Decimal:
        with self._lock:
            current = self._totals.get(chat_id, self._round(0))
            self._totals[chat_id] = self._round(current + self._round(delta))
            return self._totals[chat_id]

    def reset(self, chat_id: str) -> Decimal:
        return self.set(chat_id, Decimal(0))


class InMemoryDedupStore:
    """
    Processed-message set with optional time-boxed eviction.

    Args:
        ttl_seconds: Forget markers older than this. ``None`` or 0 keeps them
            for the life of the process.
        clock: Time source, injectable for tests.
    """

    durable = False

    def __init__(self, ttl_seconds: Optional[float] = None, clock=time.monotonic):
        self.ttl_seconds = ttl_seconds or None
        self._clock = clock
        self._seen: dict[tuple[str, str], float] = {}
        self._lock = threading.Lock()

    def _evict(self) -> None:
        if self.ttl_seconds is None:
            return
        cutoff = self._clock() - self.ttl_seconds
        expired = [key for key, at in self._seen.items() if at <= cutoff]
        for key in expired:
            del self._seen[key]
        if expired:
            logger.debug(f"Evicted {len(expired)} processed-message markers")

    def has_processed(self, chat_id: str, msg_id: str) -> bool:
        with self._lock:
            self._evict()
            return (chat_id, msg_id) in self._seen

    def mark_processed(self, chat_id: str, msg_id: str) -> None:
        with self._lock:
            self._evict()
            self._seen.setdefault((chat_id, msg_id), self._clock())

    def __len__(self) -> int:
        with self._lock:
            self._evict()
            return len(self._seen)
