"""Wiring for the inventory and purchase-admission engine."""

from dataclasses import dataclass
from datetime import timedelta
from functools import cache

from ticketing.conf import reservation_ttl
from ticketing.services.admission import PurchaseAdmissionController
from ticketing.services.event_service import EventService
from ticketing.services.idempotency import IdempotencyGuard
from ticketing.services.ledger import InventoryLedger
from ticketing.services.purchase_service import PurchaseService
from ticketing.services.reservations import DEFAULT_RESERVATION_TTL, Clock, ReservationManager, utc_now
from ticketing.stores.interfaces import (
    EventStore,
    PurchaseStore,
    ReservationStore,
    TicketClassStore,
)


@dataclass(frozen=True)
class TicketingEngine:
    ledger: InventoryLedger
    reservations: ReservationManager
    guard: IdempotencyGuard
    admission: PurchaseAdmissionController
    purchases: PurchaseService
    events: EventService


def build_engine(
    events: EventStore,
    ticket_classes: TicketClassStore,
    purchases: PurchaseStore,
    reservations: ReservationStore,
    ttl: timedelta | None = None,
    clock: Clock = utc_now,
) -> TicketingEngine:
    """Assemble an engine. All state lives in the stores.

    Engines built over the same stores, in one process or several, share
    inventory, reservations and idempotency bindings.
    """
    ledger = InventoryLedger(ticket_classes)
    manager = ReservationManager(
        ledger,
        reservations,
        default_ttl=ttl or DEFAULT_RESERVATION_TTL,
        clock=clock,
        events=events,
    )
    guard = IdempotencyGuard(purchases)
    return TicketingEngine(
        ledger=ledger,
        reservations=manager,
        guard=guard,
        admission=PurchaseAdmissionController(ledger, manager, guard),
        purchases=PurchaseService(purchases, ledger),
        events=EventService(events, ticket_classes, ledger),
    )


@cache
def default_engine() -> TicketingEngine:
    """Process-wide engine backed by the Django ORM stores."""
    from ticketing.stores.django_store import (
        DjangoEventStore,
        DjangoPurchaseStore,
        DjangoReservationStore,
        DjangoTicketClassStore,
    )

    return build_engine(
        DjangoEventStore(),
        DjangoTicketClassStore(),
        DjangoPurchaseStore(),
        DjangoReservationStore(),
        ttl=reservation_ttl(),
    )
