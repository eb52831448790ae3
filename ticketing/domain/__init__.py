from ticketing.domain.models import (
    AdmissionState,
    Event,
    EventFilters,
    PurchaseRecord,
    PurchaseStatus,
    Reservation,
    ReservationState,
    TicketClass,
)
from ticketing.domain.value_objects import (
    Capacity,
    EventId,
    IdempotencyKey,
    Money,
    PurchaseId,
    Quantity,
    ReservationId,
    TicketClassId,
)

__all__ = [
    "AdmissionState",
    "Event",
    "EventFilters",
    "PurchaseRecord",
    "PurchaseStatus",
    "Reservation",
    "ReservationState",
    "TicketClass",
    "EventId",
    "TicketClassId",
    "ReservationId",
    "PurchaseId",
    "IdempotencyKey",
    "Money",
    "Capacity",
    "Quantity",
]
