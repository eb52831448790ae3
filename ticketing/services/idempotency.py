"""Idempotency guard - binds each idempotency key to at most one purchase."""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from ticketing.domain import IdempotencyKey, PurchaseRecord
from ticketing.domain.errors import ConflictError
from ticketing.stores.interfaces import PurchaseStore

logger = logging.getLogger(__name__)


@dataclass
class _KeyLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


class IdempotencyGuard:
    """Bind-once mapping from idempotency key to purchase.

    The purchase store is the mapping: a key is bound when a record carrying
    it is stored, and the store refuses a second record for the same key.
    Bindings therefore survive restarts and never expire. Per-key locks exist
    only while some caller holds or waits for them.
    """

    def __init__(self, purchases: PurchaseStore) -> None:
        self._purchases = purchases
        self._locks: dict[IdempotencyKey, _KeyLock] = {}
        self._registry_lock = threading.Lock()

    @property
    def active_keys(self) -> int:
        with self._registry_lock:
            return len(self._locks)

    @contextmanager
    def serialize(self, key: IdempotencyKey) -> Iterator[None]:
        """Run the block exclusively for ``key``. Other keys are not blocked."""
        with self._registry_lock:
            entry = self._locks.setdefault(key, _KeyLock())
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._registry_lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._locks[key]

    def lookup(self, key: IdempotencyKey) -> PurchaseRecord | None:
        return self._purchases.get_by_idempotency_key(key)

    def bind(self, key: IdempotencyKey, record: PurchaseRecord) -> PurchaseRecord:
        """Store ``record`` as the purchase bound to ``key``.

        Raises:
            ConflictError: If ``key`` is already bound to a different record.
        """
        if record.idempotency_key != key:
            raise ValueError("Record carries a different idempotency key")
        try:
            return self._purchases.add_purchase(record)
        except ConflictError:
            bound = self._purchases.get_by_idempotency_key(key)
            if bound is not None and bound.id == record.id:
                return bound
            logger.warning(
                "Idempotency key %s already bound to %s, refusing %s",
                key,
                bound.id if bound else None,
                record.id,
            )
            raise
