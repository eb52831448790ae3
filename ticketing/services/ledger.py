"""Inventory ledger - sold/reserved counters per ticket class.

The counters live in the TicketClassStore and are the single source of truth:
nothing is cached here. Each mutation is one conditional write that refuses to
push ``sold + reserved`` past ``total`` or a counter below zero, so engines in
different processes sharing one database cannot oversell.

``guard`` is the per-class critical section. It takes a process-local lock
first, so callers in this process queue in order, and then the store's row
lock, which excludes other processes.
"""

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from ticketing.domain import TicketClass, TicketClassId
from ticketing.domain.errors import (
    InsufficientStateError,
    SoldOutError,
    TicketClassNotFoundError,
)
from ticketing.stores.interfaces import TicketClassStore

logger = logging.getLogger(__name__)


class InventoryLedger:
    """Tracks total/sold/reserved counts per ticket class."""

    def __init__(self, store: TicketClassStore) -> None:
        self._store = store
        self._locks: dict[TicketClassId, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    @contextmanager
    def guard(self, ticket_class_id: TicketClassId) -> Iterator[TicketClass]:
        """Hold the ticket class's critical section. Re-entrant.

        Yields the ticket class as read under the store lock.

        Raises:
            TicketClassNotFoundError: If the ticket class does not exist.
        """
        with self._registry_lock:
            lock = self._locks.setdefault(ticket_class_id, threading.RLock())
        try:
            with lock, self._store.locked(ticket_class_id) as ticket_class:
                yield ticket_class
        except TicketClassNotFoundError:
            self.forget(ticket_class_id)
            raise

    def ticket_class(self, ticket_class_id: TicketClassId) -> TicketClass:
        """Return the ticket class with its current counters."""
        ticket_class = self._store.get_ticket_class(ticket_class_id)
        if ticket_class is None:
            raise TicketClassNotFoundError(str(ticket_class_id))
        return ticket_class

    def available(self, ticket_class_id: TicketClassId) -> int:
        return self.ticket_class(ticket_class_id).available

    def _adjust(
        self, ticket_class_id: TicketClassId, sold_delta: int, reserved_delta: int
    ) -> TicketClass | None:
        with self.guard(ticket_class_id):
            return self._store.adjust_counts(ticket_class_id, sold_delta, reserved_delta)

    def reserve(self, ticket_class_id: TicketClassId, quantity: int) -> None:
        """Add ``quantity`` to the reserved count.

        Raises:
            SoldOutError: If fewer than ``quantity`` units are available.
        """
        with self.guard(ticket_class_id):
            if self._store.adjust_counts(ticket_class_id, 0, quantity) is None:
                raise SoldOutError(str(ticket_class_id), self.available(ticket_class_id))

    def release(self, ticket_class_id: TicketClassId, quantity: int) -> None:
        if self._adjust(ticket_class_id, 0, -quantity) is None:
            raise InsufficientStateError(
                str(ticket_class_id), f"release of {quantity} exceeds reserved units"
            )

    def commit_sale(self, ticket_class_id: TicketClassId, quantity: int) -> None:
        """Move ``quantity`` reserved units to sold.

        Must only be called for units held by a reservation.

        Raises:
            InsufficientStateError: If fewer units are reserved.
        """
        if self._adjust(ticket_class_id, quantity, -quantity) is None:
            raise InsufficientStateError(
                str(ticket_class_id), f"commit of {quantity} exceeds reserved units"
            )

    def refund_sale(self, ticket_class_id: TicketClassId, quantity: int) -> None:
        """Return ``quantity`` sold units to the available pool."""
        if self._adjust(ticket_class_id, -quantity, 0) is None:
            logger.error("Refund of %d on %s exceeds sold units", quantity, ticket_class_id)
            raise InsufficientStateError(
                str(ticket_class_id), f"refund of {quantity} exceeds sold units"
            )

    def forget(self, ticket_class_id: TicketClassId) -> None:
        """Drop the process-local lock of a removed ticket class."""
        with self._registry_lock:
            self._locks.pop(ticket_class_id, None)
