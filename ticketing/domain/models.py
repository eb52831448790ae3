"""Domain models representing persisted state.

These are pure domain objects with no API input rules.
Django ORM models are in ticketing/models.py (persistence layer).
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from ticketing.domain.value_objects import (
    Capacity,
    EventId,
    IdempotencyKey,
    Money,
    PurchaseId,
    ReservationId,
    TicketClassId,
)


@dataclass(frozen=True)
class Event:
    """Domain representation of an Event."""

    id: EventId
    organizer_id: str
    title: str
    description: str
    category: str
    location: str
    starts_at: datetime
    ends_at: datetime
    banner_url: str | None
    is_published: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class EventFilters:
    """Catalog filters. Empty values mean "no filter"."""

    category: str | None = None
    location: str | None = None
    search: str | None = None
    published_only: bool = True

    def matches(self, event: Event) -> bool:
        if self.published_only and not event.is_published:
            return False
        if self.category and event.category != self.category:
            return False
        if self.location and self.location.lower() not in event.location.lower():
            return False
        if self.search:
            needle = self.search.lower()
            if needle not in event.title.lower() and needle not in event.description.lower():
                return False
        return True


@dataclass(frozen=True)
class TicketClass:
    """One purchasable tier of an event, with its inventory counters."""

    id: TicketClassId
    event_id: EventId
    name: str
    price: Money
    total: Capacity
    created_at: datetime
    sold: int = 0
    reserved: int = 0

    def __post_init__(self) -> None:
        if self.sold < 0 or self.reserved < 0:
            raise ValueError("Inventory counters cannot be negative")
        if self.sold + self.reserved > self.total.value:
            raise ValueError("sold + reserved cannot exceed total capacity")

    @property
    def available(self) -> int:
        return self.total.value - self.sold - self.reserved


class ReservationState(Enum):
    HELD = "held"
    COMMITTED = "committed"
    RELEASED = "released"
    EXPIRED = "expired"


@dataclass(frozen=True)
class Reservation:
    """A time-boxed claim on units of a ticket class."""

    id: ReservationId
    ticket_class_id: TicketClassId
    quantity: int
    requester: str
    created_at: datetime
    expires_at: datetime
    state: ReservationState = ReservationState.HELD

    @property
    def is_held(self) -> bool:
        return self.state is ReservationState.HELD

    def is_expired_at(self, now: datetime) -> bool:
        return self.is_held and now >= self.expires_at


class PurchaseStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"
    REFUNDED = "refunded"


PURCHASE_STATUS_TRANSITIONS: dict[PurchaseStatus, frozenset[PurchaseStatus]] = {
    PurchaseStatus.PENDING: frozenset({PurchaseStatus.CONFIRMED, PurchaseStatus.FAILED}),
    PurchaseStatus.CONFIRMED: frozenset({PurchaseStatus.REFUNDED}),
    PurchaseStatus.FAILED: frozenset(),
    PurchaseStatus.REFUNDED: frozenset(),
}


@dataclass(frozen=True)
class PurchaseRecord:
    """Durable result of a successful admission.

    ``total`` is computed once at admission and never recomputed.
    """

    id: PurchaseId
    requester: str
    ticket_class_id: TicketClassId
    quantity: int
    unit_price: Money
    total: Money
    idempotency_key: IdempotencyKey
    status: PurchaseStatus
    qr_code: str
    created_at: datetime

    def can_transition_to(self, status: PurchaseStatus) -> bool:
        return status in PURCHASE_STATUS_TRANSITIONS[self.status]


class AdmissionState(Enum):
    REQUESTED = "requested"
    RESERVED = "reserved"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    REJECTED = "rejected"


ADMISSION_TRANSITIONS: dict[AdmissionState, frozenset[AdmissionState]] = {
    AdmissionState.REQUESTED: frozenset({AdmissionState.RESERVED, AdmissionState.REJECTED}),
    AdmissionState.RESERVED: frozenset({AdmissionState.COMMITTED, AdmissionState.ROLLED_BACK}),
    AdmissionState.COMMITTED: frozenset(),
    AdmissionState.ROLLED_BACK: frozenset(),
    AdmissionState.REJECTED: frozenset(),
}
