from ticketing.handlers.views import (
    EventDetailView,
    EventListView,
    PurchaseListView,
    PurchaseRefundView,
    ReservationDetailView,
    ReservationListView,
    TicketClassListView,
)

__all__ = [
    "EventListView",
    "EventDetailView",
    "TicketClassListView",
    "PurchaseListView",
    "PurchaseRefundView",
    "ReservationListView",
    "ReservationDetailView",
]
