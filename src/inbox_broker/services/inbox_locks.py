"""Per-inbox mutual exclusion.

Each inbox has two locks. The append lock serializes appends to the inbox and
the cascade that deletes it. The publish lock is taken before the append lock
is released and held while subscribers are notified, so notifications leave
in commit order without running inside the append critical section.
Operations on different inboxes never share a lock.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from threading import Lock
from typing import NamedTuple


class _InboxLockPair(NamedTuple):
    append: Lock
    publish: Lock


class InboxLocks:
    """Registry of lazily created locks keyed by inbox id."""

    def __init__(self) -> None:
        self._locks: dict[str, _InboxLockPair] = {}
        self._guard = Lock()

    def _pair_for(self, inbox_id: str) -> _InboxLockPair:
        with self._guard:
            pair = self._locks.get(inbox_id)
            if pair is None:
                pair = self._locks[inbox_id] = _InboxLockPair(Lock(), Lock())
            return pair

    @contextmanager
    def hold(self, inbox_id: str) -> Iterator[None]:
        """Hold the append lock for `inbox_id` for the duration of the block."""
        with self._pair_for(inbox_id).append:
            yield

    def publish_lock(self, inbox_id: str) -> Lock:
        """Return the lock ordering notifications for `inbox_id`."""
        return self._pair_for(inbox_id).publish

    def discard(self, inbox_id: str) -> None:
        """Forget the locks of a deleted inbox.

        Threads already waiting on the old locks still acquire them and then
        find the inbox gone.
        """
        with self._guard:
            self._locks.pop(inbox_id, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
