"""
In-memory registry of pending Solana Pay requests.

Entries live in process memory only: a restart forgets every pending
request, and without a TTL abandoned requests are never evicted.
"""
import threading
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Dict, Optional


@dataclass
class PendingPayment:
    """Expected payment parameters for one reference"""
    reference: str
    recipient: str
    amount: Decimal
    memo: str
    created_at: float = 0.0


class PaymentRegistry:
    """
    With ``ttl_seconds > 0`` every put() also sweeps out expired entries,
    so abandoned requests cannot accumulate.
    """

    def __init__(self, ttl_seconds: int = 0, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, PendingPayment] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.ttl_seconds = ttl_seconds

    def _expired(self, entry: PendingPayment, now: float) -> bool:
        return self.ttl_seconds > 0 and now - entry.created_at > self.ttl_seconds

    def _sweep(self, now: float) -> int:
        stale = [ref for ref, entry in self._entries.items() if self._expired(entry, now)]
        for ref in stale:
            del self._entries[ref]
        return len(stale)

    def put(self, entry: PendingPayment) -> None:
        """Store an entry, replacing any existing one for the same reference"""
        now = self._clock()
        entry.created_at = now
        with self._lock:
            if self.ttl_seconds > 0:
                self._sweep(now)
            self._entries[entry.reference] = entry

    def get(self, reference: str) -> Optional[PendingPayment]:
        with self._lock:
            entry = self._entries.get(reference)
            if entry is not None and self._expired(entry, self._clock()):
                del self._entries[reference]
                return None
            return entry

    def pop(self, reference: str) -> Optional[PendingPayment]:
        """
        Remove and return the entry for a reference.

        Only one caller can receive a given entry; everyone after it gets None.
        """
        with self._lock:
            return self._entries.pop(reference, None)

    def remove(self, reference: str) -> None:
        self.pop(reference)

    def purge_expired(self) -> int:
        """Drop expired entries, returning how many were removed"""
        if self.ttl_seconds <= 0:
            return 0
        with self._lock:
            return self._sweep(self._clock())

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def __contains__(self, reference: str) -> bool:
        return self.get(reference) is not None
