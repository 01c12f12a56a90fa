import threading
import weakref
from contextlib import contextmanager


class KeyedLocks:
    """One re-entrant lock per key, created on demand.

    Handlers run in a thread pool, so per-user cart mutations and per-product
    rating recomputes are serialized with these. A key's lock lives only while
    someone holds a reference to it, so idle keys do not accumulate.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks = weakref.WeakValueDictionary()

    def __len__(self):
        return len(self._locks)

    def get(self, key: str):
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key: str):
        lock = self.get(key)
        with lock:
            yield
