from django.urls import path

from ticketing.handlers import (
    EventDetailView,
    EventListView,
    PurchaseListView,
    PurchaseRefundView,
    ReservationDetailView,
    ReservationListView,
    TicketClassListView,
)

urlpatterns = [
    path("events", EventListView.as_view(), name="event-list"),
    path("events/<str:event_id>", EventDetailView.as_view(), name="event-detail"),
    path(
        "events/<str:event_id>/tickets",
        TicketClassListView.as_view(),
        name="ticket-class-list",
    ),
    path("purchases", PurchaseListView.as_view(), name="purchase-list"),
    path(
        "purchases/<str:purchase_id>/refund",
        PurchaseRefundView.as_view(),
        name="purchase-refund",
    ),
    path("reservations", ReservationListView.as_view(), name="reservation-list"),
    path(
        "reservations/<str:reservation_id>",
        ReservationDetailView.as_view(),
        name="reservation-detail",
    ),
]
