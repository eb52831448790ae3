"""Store interfaces (repository pattern).

Stores must be swappable and return domain models.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
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


class EventStore(ABC):
    """Interface for event persistence operations."""

    @abstractmethod
    def list_events(self, filters: EventFilters) -> list[Event]:
        """Return events matching the filters ordered by starts_at ascending."""
        ...

    @abstractmethod
    def get_event(self, event_id: EventId) -> Event | None:
        """Return an event by ID, or None if not found."""
        ...

    @abstractmethod
    def event_exists(self, event_id: EventId) -> bool:
        """Check if an event exists."""
        ...

    @abstractmethod
    def add_event(self, event: Event) -> Event:
        """Persist a new event."""
        ...

    @abstractmethod
    def update_event(self, event: Event) -> Event:
        """Overwrite an existing event's attributes."""
        ...

    @abstractmethod
    def delete_event(self, event_id: EventId) -> bool:
        """Delete an event and its ticket classes. Returns False if absent."""
        ...


class TicketClassStore(ABC):
    """Interface for ticket class persistence, including inventory counters.

    The stored counters are authoritative. They change only through
    ``adjust_counts``, which never lets ``sold + reserved`` exceed ``total``.
    """

    @abstractmethod
    def get_ticket_class(self, ticket_class_id: TicketClassId) -> TicketClass | None:
        """Return a ticket class by ID, or None if not found."""
        ...

    @abstractmethod
    def list_for_event(self, event_id: EventId) -> list[TicketClass]:
        """Return an event's ticket classes ordered by price ascending."""
        ...

    @abstractmethod
    def add_ticket_class(self, ticket_class: TicketClass) -> TicketClass:
        """Persist a new ticket class."""
        ...

    @abstractmethod
    def locked(self, ticket_class_id: TicketClassId) -> AbstractContextManager[TicketClass]:
        """Lock a ticket class row for the duration of the block.

        Every holder of the store, in any process, is excluded until the
        block exits. Re-entrant within a thread. Yields the ticket class as
        read under the lock.

        Raises:
            TicketClassNotFoundError: If the ticket class does not exist.
        """
        ...

    @abstractmethod
    def adjust_counts(
        self, ticket_class_id: TicketClassId, sold_delta: int, reserved_delta: int
    ) -> TicketClass | None:
        """Apply counter deltas in one conditional write.

        Returns the updated ticket class, or None if the class does not
        exist or the result would leave a counter negative or exceed capacity.
        """
        ...


class ReservationStore(ABC):
    """Interface for reservation persistence."""

    @abstractmethod
    def add_reservation(self, reservation: Reservation) -> Reservation:
        """Persist a new reservation."""
        ...

    @abstractmethod
    def get_reservation(self, reservation_id: ReservationId) -> Reservation | None:
        """Return a reservation by ID, or None if not found."""
        ...

    @abstractmethod
    def finish(self, reservation_id: ReservationId, state: ReservationState) -> Reservation | None:
        """Move a held reservation to ``state``.

        Returns the updated reservation, or None if it is no longer held.
        """
        ...

    @abstractmethod
    def list_expired(
        self, now: datetime, ticket_class_id: TicketClassId | None = None
    ) -> list[Reservation]:
        """Return held reservations whose expiry is at or before ``now``."""
        ...

    @abstractmethod
    def delete_finished(
        self, before: datetime, ticket_class_id: TicketClassId | None = None
    ) -> int:
        """Delete reservations no longer held that expired before ``before``.

        Returns the number of reservations deleted.
        """
        ...


class PurchaseStore(ABC):
    """Interface for purchase record persistence."""

    @abstractmethod
    def add_purchase(self, record: PurchaseRecord) -> PurchaseRecord:
        """Persist a new purchase record.

        Raises:
            ConflictError: If a purchase is already stored under the record's
                idempotency key.
        """
        ...

    @abstractmethod
    def get_purchase(self, purchase_id: PurchaseId) -> PurchaseRecord | None:
        """Return a purchase by ID, or None if not found."""
        ...

    @abstractmethod
    def get_by_idempotency_key(self, key: IdempotencyKey) -> PurchaseRecord | None:
        """Return the purchase bound to an idempotency key, if any."""
        ...

    @abstractmethod
    def list_for_requester(self, requester: str) -> list[PurchaseRecord]:
        """Return a requester's purchases, newest first."""
        ...

    @abstractmethod
    def update_status(self, purchase_id: PurchaseId, status: PurchaseStatus) -> PurchaseRecord:
        """Change a purchase's status and return the updated record."""
        ...
