import threading
from contextlib import contextmanager
from typing import Dict, List


class KeyedLocks:
    """One lock per key, created on demand and dropped when nobody holds it.

    Entries are reference counted so that a room's lock lives exactly as long
    as some thread holds or waits on it. Unrelated keys never contend beyond
    the short table guard.
    """

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, holders+waiters]
        self._entries: Dict[str, List] = {}

    @contextmanager
    def locked(self, key: str):
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._entries[key] = entry
            entry[1] += 1
        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0 and self._entries.get(key) is entry:
                    del self._entries[key]

    def __len__(self):
        with self._guard:
            return len(self._entries)
