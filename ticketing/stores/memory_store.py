"""In-process store implementations.

Used by tests and by callers embedding the engine without a database.
Each store guards its dictionaries with a single lock. Engines built over the
same store instances share its row locks and counters.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime

from ticketing.domain import (
    Event,
    EventFilters,
    EventId,
    IdempotencyKey,
    PurchaseId,
    PurchaseRecord,
    PurchaseStatus,
    Reservation,
    ReservationId,
    ReservationState,
    TicketClass,
    TicketClassId,
)
from ticketing.domain.errors import (
    ConflictError,
    PurchaseNotFoundError,
    TicketClassNotFoundError,
)
from ticketing.stores.interfaces import (
    EventStore,
    PurchaseStore,
    ReservationStore,
    TicketClassStore,
)


class InMemoryEventStore(EventStore):
    def __init__(self, ticket_classes: "InMemoryTicketClassStore | None" = None) -> None:
        self._lock = threading.Lock()
        self._events: dict[EventId, Event] = {}
        self._ticket_classes = ticket_classes

    def list_events(self, filters: EventFilters) -> list[Event]:
        with self._lock:
            events = [event for event in self._events.values() if filters.matches(event)]
        return sorted(events, key=lambda event: event.starts_at)

    def get_event(self, event_id: EventId) -> Event | None:
        with self._lock:
            return self._events.get(event_id)

    def event_exists(self, event_id: EventId) -> bool:
        with self._lock:
            return event_id in self._events

    def add_event(self, event: Event) -> Event:
        with self._lock:
            self._events[event.id] = event
        return event

    def update_event(self, event: Event) -> Event:
        with self._lock:
            self._events[event.id] = event
        return event

    def delete_event(self, event_id: EventId) -> bool:
        with self._lock:
            removed = self._events.pop(event_id, None) is not None
        if removed and self._ticket_classes is not None:
            self._ticket_classes.delete_for_event(event_id)
        return removed


class InMemoryTicketClassStore(TicketClassStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ticket_classes: dict[TicketClassId, TicketClass] = {}
        self._row_locks: dict[TicketClassId, threading.RLock] = {}

    def get_ticket_class(self, ticket_class_id: TicketClassId) -> TicketClass | None:
        with self._lock:
            return self._ticket_classes.get(ticket_class_id)

    def list_for_event(self, event_id: EventId) -> list[TicketClass]:
        with self._lock:
            matches = [tc for tc in self._ticket_classes.values() if tc.event_id == event_id]
        return sorted(matches, key=lambda tc: tc.price.minor_units)

    def add_ticket_class(self, ticket_class: TicketClass) -> TicketClass:
        with self._lock:
            self._ticket_classes[ticket_class.id] = ticket_class
            self._row_locks[ticket_class.id] = threading.RLock()
        return ticket_class

    @contextmanager
    def locked(self, ticket_class_id: TicketClassId) -> Iterator[TicketClass]:
        with self._lock:
            row_lock = self._row_locks.get(ticket_class_id)
        if row_lock is None:
            raise TicketClassNotFoundError(str(ticket_class_id))
        with row_lock:
            ticket_class = self.get_ticket_class(ticket_class_id)
            if ticket_class is None:
                raise TicketClassNotFoundError(str(ticket_class_id))
            yield ticket_class

    def adjust_counts(
        self, ticket_class_id: TicketClassId, sold_delta: int, reserved_delta: int
    ) -> TicketClass | None:
        with self._lock:
            current = self._ticket_classes.get(ticket_class_id)
            if current is None:
                return None
            sold = current.sold + sold_delta
            reserved = current.reserved + reserved_delta
            if sold < 0 or reserved < 0 or sold + reserved > current.total.value:
                return None
            updated = replace(current, sold=sold, reserved=reserved)
            self._ticket_classes[ticket_class_id] = updated
            return updated

    def delete_for_event(self, event_id: EventId) -> None:
        with self._lock:
            for ticket_class_id in [
                tc.id for tc in self._ticket_classes.values() if tc.event_id == event_id
            ]:
                del self._ticket_classes[ticket_class_id]
                del self._row_locks[ticket_class_id]


class InMemoryReservationStore(ReservationStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._reservations: dict[ReservationId, Reservation] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._reservations)

    def add_reservation(self, reservation: Reservation) -> Reservation:
        with self._lock:
            self._reservations[reservation.id] = reservation
        return reservation

    def get_reservation(self, reservation_id: ReservationId) -> Reservation | None:
        with self._lock:
            return self._reservations.get(reservation_id)

    def finish(self, reservation_id: ReservationId, state: ReservationState) -> Reservation | None:
        with self._lock:
            current = self._reservations.get(reservation_id)
            if current is None or not current.is_held:
                return None
            finished = replace(current, state=state)
            self._reservations[reservation_id] = finished
            return finished

    def list_expired(
        self, now: datetime, ticket_class_id: TicketClassId | None = None
    ) -> list[Reservation]:
        with self._lock:
            expired = [
                r
                for r in self._reservations.values()
                if r.is_expired_at(now)
                and (ticket_class_id is None or r.ticket_class_id == ticket_class_id)
            ]
        return sorted(expired, key=lambda r: r.expires_at)

    def delete_finished(
        self, before: datetime, ticket_class_id: TicketClassId | None = None
    ) -> int:
        with self._lock:
            stale = [
                r.id
                for r in self._reservations.values()
                if not r.is_held
                and r.expires_at < before
                and (ticket_class_id is None or r.ticket_class_id == ticket_class_id)
            ]
            for reservation_id in stale:
                del self._reservations[reservation_id]
        return len(stale)


class InMemoryPurchaseStore(PurchaseStore):
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._purchases: dict[PurchaseId, PurchaseRecord] = {}
        self._by_key: dict[IdempotencyKey, PurchaseId] = {}

    def add_purchase(self, record: PurchaseRecord) -> PurchaseRecord:
        with self._lock:
            if record.idempotency_key in self._by_key:
                raise ConflictError(str(record.idempotency_key))
            self._purchases[record.id] = record
            self._by_key[record.idempotency_key] = record.id
        return record

    def get_purchase(self, purchase_id: PurchaseId) -> PurchaseRecord | None:
        with self._lock:
            return self._purchases.get(purchase_id)

    def get_by_idempotency_key(self, key: IdempotencyKey) -> PurchaseRecord | None:
        with self._lock:
            purchase_id = self._by_key.get(key)
            return self._purchases.get(purchase_id) if purchase_id else None

    def list_for_requester(self, requester: str) -> list[PurchaseRecord]:
        with self._lock:
            records = [r for r in self._purchases.values() if r.requester == requester]
        return sorted(records, key=lambda r: r.created_at, reverse=True)

    def update_status(self, purchase_id: PurchaseId, status: PurchaseStatus) -> PurchaseRecord:
        with self._lock:
            current = self._purchases.get(purchase_id)
            if current is None:
                raise PurchaseNotFoundError(str(purchase_id))
            updated = replace(current, status=status)
            self._purchases[purchase_id] = updated
            return updated
