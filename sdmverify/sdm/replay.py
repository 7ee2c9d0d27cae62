"""
Replay protection based on the tag's monotonic SDM read counter.

A genuine tag increments its read counter on every read, so a valid
(UID, counter, MAC) triple may be accepted once. Any later scan of the same
UID must carry a strictly larger counter; anything else is a replay, even
though its MAC still verifies.
"""

import logging
import threading
import zlib
from abc import ABC, abstractmethod
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_SHARDS = 16


def canonical_uid(uid: str) -> str:
    """Cache key for a UID: upper-case hex without whitespace."""
    return uid.replace(" ", "").strip().upper()


class CounterStore(ABC):
    """Highest accepted read counter per UID."""

    @abstractmethod
    def advance(self, uid: str, counter: int) -> bool:
        """
        Atomically raise the stored counter for uid to counter.

        Returns True if counter was strictly greater than the stored value
        (0 when the UID has never been seen) and the store was updated,
        False otherwise, in which case nothing changes.

        Raises CounterStoreError if the backing storage fails.
        """

    @abstractmethod
    def get(self, uid: str) -> Optional[int]:
        """Stored counter for uid, or None if the UID has never been accepted."""


class MemoryCounterStore(CounterStore):
    """
    Process-lifetime in-memory store.

    UIDs are spread over lock-striped shards: checks for the same UID
    serialize on one lock, while different UIDs usually proceed in parallel.
    """

    def __init__(self, shards: int = DEFAULT_SHARDS):
        if shards < 1:
            raise ValueError("shards must be >= 1")
        self._locks = [threading.Lock() for _ in range(shards)]
        self._counters: list[dict[str, int]] = [{} for _ in range(shards)]

    def _shard(self, uid: str) -> int:
        return zlib.crc32(uid.encode("ascii", "replace")) % len(self._locks)

    def advance(self, uid: str, counter: int) -> bool:
        shard = self._shard(uid)
        with self._locks[shard]:
            counters = self._counters[shard]
            if counter > counters.get(uid, 0):
                counters[uid] = counter
                return True
            return False

    def get(self, uid: str) -> Optional[int]:
        shard = self._shard(uid)
        with self._locks[shard]:
            return self._counters[shard].get(uid)

    def __len__(self):
        return sum(len(c) for c in self._counters)


class ReplayGuard:
    """Rejects scans whose read counter does not move forward."""

    def __init__(self, store: Optional[CounterStore] = None):
        self.store = store if store is not None else MemoryCounterStore()

    def check_freshness(self, uid: str, counter: int) -> bool:
        """
        Accept a scan if its counter is above every counter seen for the UID.

        Args:
            uid: UID hex string (any case).
            counter: Decoded read counter of the scan.

        Returns:
            True if the scan is fresh (the stored maximum is raised),
            False for a replay (nothing is changed).

        Raises:
            CounterStoreError: The store could not be read or updated.
        """
        key = canonical_uid(uid)
        fresh = self.store.advance(key, counter)
        if not fresh:
            logger.warning(
                "Replay detected for UID %s: counter %d, last accepted %s",
                key, counter, self.store.get(key),
            )
        return fresh

    def last_counter(self, uid: str) -> Optional[int]:
        return self.store.get(canonical_uid(uid))
