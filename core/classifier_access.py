# core/classifier_access.py
"""
Synchronized access to persisted classifiers.
One job: serialize checkout/checkin per model identity so concurrent updates
never diverge, while reads stay lockless.
"""

import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from core.classifier_store import ClassifierStore
from core.errors import LockTimeoutError
from core.payload import CheckoutHandle, ClassifierSnapshot

LOCK_PREFIX = 'classifierUpdate_'


class KeyedLock:
    """Process-local mutual exclusion keyed by name"""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    def acquire(self, key: str, timeout: Optional[float] = None) -> bool:
        """
        Acquire the lock for key

        Args:
            key: Lock name
            timeout: Seconds to wait, None waits forever

        Returns:
            True if acquired, False on timeout
        """
        with self._guard:
            lock = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1

        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            self._forget(key)
        return acquired

    def release(self, key: str) -> None:
        with self._guard:
            lock = self._locks.get(key)
        if lock is None or not lock.locked():
            raise RuntimeError(f"Lock '{key}' is not held")
        lock.release()
        self._forget(key)

    def _forget(self, key: str) -> None:
        # Drop the entry once nobody holds or waits on it
        with self._guard:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def is_locked(self, key: str) -> bool:
        with self._guard:
            lock = self._locks.get(key)
        return lock is not None and lock.locked()

    @contextmanager
    def hold(self, key: str, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the lock for key for the duration of the block"""
        if not self.acquire(key, timeout):
            raise LockTimeoutError(key, timeout)
        try:
            yield
        finally:
            self.release(key)


class ClassifierAccessLayer:
    """Locked training sessions and lockless reads over a ClassifierStore"""

    def __init__(self, store: ClassifierStore, lock: Optional[Any] = None,
                 lock_timeout: Optional[float] = None):
        """
        Initialize access layer

        Args:
            store: Underlying checkout/checkin store
            lock: Object with a hold(key, timeout) context manager (default KeyedLock)
            lock_timeout: Seconds to wait for a model's update lock
        """
        self.store = store
        self.lock = lock or KeyedLock()
        self.lock_timeout = lock_timeout

    @staticmethod
    def lock_key(model_id: int) -> str:
        return f"{LOCK_PREFIX}{model_id}"

    @contextmanager
    def training_session(self, model_id: int) -> Iterator[CheckoutHandle]:
        """
        Check out a classifier under its update lock and check it back in

        If the block raises, nothing is checked in and the stored payload is
        left as it was.
        """
        with self.lock.hold(self.lock_key(model_id), self.lock_timeout):
            handle = self.store.checkout(model_id)
            yield handle
            self.store.checkin(handle)

    def train_documents(self, model_id: int, documents: Iterable[Tuple[str, str]]) -> int:
        """
        Train a classifier on labeled documents

        Args:
            model_id: Model identity
            documents: (text, label) pairs

        Returns:
            Number of documents trained
        """
        documents = list(documents)
        with self.training_session(model_id) as handle:
            handle.trainer.train(handle.pipe.instances(documents))
        return len(documents)

    def read(self, model_id: int) -> ClassifierSnapshot:
        return self.store.read(model_id)

    def get_classifier(self, model_id: int) -> Optional[Any]:
        return self.store.get_classifier(model_id)
