"""HTTP handlers (views) - handle HTTP concerns only.

Handlers:
- Parse requests and validate input format
- Call services for business logic
- Map domain errors and rejections to HTTP responses
- Never contain business logic
- Never expose internal error details
"""

import logging

from django.core.cache import cache
from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from ticketing import cache_keys
from ticketing.conf import ticketing_setting
from ticketing.domain import EventFilters, ReservationId, TicketClassId
from ticketing.domain.errors import (
    DomainError,
    ErrorCode,
    InvalidIdError,
    Rejection,
    RejectionReason,
    ReservationNotFoundError,
)
from ticketing.engine import default_engine
from ticketing.handlers.serializers import (
    EventQuerySerializer,
    EventSerializer,
    PurchaseRecordSerializer,
    PurchaseRequestSerializer,
    RejectionSerializer,
    ReservationRequestSerializer,
    ReservationSerializer,
    TicketClassSerializer,
)

logger = logging.getLogger(__name__)

IDEMPOTENCY_HEADER = "Idempotency-Key"

ERROR_STATUS = {
    ErrorCode.EVENT_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.TICKET_CLASS_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.RESERVATION_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.PURCHASE_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_ID: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_STATUS_TRANSITION: status.HTTP_409_CONFLICT,
}

REJECTION_STATUS = {
    RejectionReason.SOLD_OUT: status.HTTP_409_CONFLICT,
    RejectionReason.CONFLICT: status.HTTP_409_CONFLICT,
    RejectionReason.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RejectionReason.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    RejectionReason.INTERNAL_INVENTORY_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def error_response(error: DomainError) -> Response:
    return Response(
        {"code": error.code.value, "message": error.message},
        status=ERROR_STATUS.get(error.code, status.HTTP_400_BAD_REQUEST),
    )


def rejection_response(rejection: Rejection) -> Response:
    return Response(
        RejectionSerializer(rejection).data,
        status=REJECTION_STATUS[rejection.reason],
    )


class EventListView(APIView):
    """Handler for GET /api/events"""

    def get(self, request: Request) -> Response:
        query = EventQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        filters = EventFilters(**{k: v for k, v in query.validated_data.items() if v})
        cacheable = filters == EventFilters()
        if cacheable:
            cached = cache.get(cache_keys.EVENT_LIST)
            if cached is not None:
                return Response(cached)
        events = default_engine().events.list_events(filters)
        data = EventSerializer(events, many=True).data
        if cacheable:
            cache.set(cache_keys.EVENT_LIST, data, ticketing_setting("EVENT_CACHE_TIMEOUT"))
        return Response(data)


class EventDetailView(APIView):
    """Handler for GET /api/events/{event_id}"""

    def get(self, request: Request, event_id: str) -> Response:
        key = cache_keys.event_detail(event_id)
        cached = cache.get(key)
        if cached is not None:
            return Response(cached)
        try:
            event = default_engine().events.get_event(event_id, published_only=True)
        except DomainError as exc:
            return error_response(exc)
        data = EventSerializer(event).data
        cache.set(key, data, ticketing_setting("EVENT_CACHE_TIMEOUT"))
        return Response(data)


class TicketClassListView(APIView):
    """Handler for GET /api/events/{event_id}/tickets"""

    def get(self, request: Request, event_id: str) -> Response:
        engine = default_engine()
        try:
            ticket_classes = engine.events.get_ticket_classes_for_event(event_id, published_only=True)
        except DomainError as exc:
            return error_response(exc)
        for ticket_class in ticket_classes:
            engine.reservations.sweep_expired(ticket_class.id)
        ticket_classes = [engine.ledger.ticket_class(tc.id) for tc in ticket_classes]
        return Response(TicketClassSerializer(ticket_classes, many=True).data)


class PurchaseListView(APIView):
    """Handler for GET/POST /api/purchases"""

    permission_classes = [IsAuthenticated]

    def get(self, request: Request) -> Response:
        purchases = default_engine().purchases.list_purchases(str(request.user.pk))
        return Response(PurchaseRecordSerializer(purchases, many=True).data)

    def post(self, request: Request) -> Response:
        body = PurchaseRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        key = request.headers.get(IDEMPOTENCY_HEADER) or body.validated_data.get(
            "idempotency_key"
        )
        if not key:
            return Response(
                {"code": ErrorCode.INVALID_REQUEST.value, "message": "Idempotency key is required"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        reservation_id = body.validated_data.get("reservation_id")
        result = default_engine().admission.submit(
            key,
            str(body.validated_data["ticket_class_id"]),
            body.validated_data["quantity"],
            str(request.user.pk),
            reservation_id=ReservationId(reservation_id) if reservation_id else None,
        )
        if isinstance(result, Rejection):
            return rejection_response(result)
        return Response(PurchaseRecordSerializer(result).data, status=status.HTTP_201_CREATED)


class PurchaseRefundView(APIView):
    """Handler for POST /api/purchases/{purchase_id}/refund"""

    permission_classes = [IsAdminUser]

    def post(self, request: Request, purchase_id: str) -> Response:
        try:
            record = default_engine().purchases.refund_purchase(purchase_id)
        except DomainError as exc:
            logger.info("Refund of %s refused: %s", purchase_id, exc)
            return error_response(exc)
        return Response(PurchaseRecordSerializer(record).data)


class ReservationListView(APIView):
    """Handler for POST /api/reservations"""

    permission_classes = [IsAuthenticated]

    def post(self, request: Request) -> Response:
        body = ReservationRequestSerializer(data=request.data)
        body.is_valid(raise_exception=True)
        try:
            result = default_engine().reservations.hold(
                TicketClassId(body.validated_data["ticket_class_id"]),
                body.validated_data["quantity"],
                str(request.user.pk),
            )
        except DomainError as exc:
            return error_response(exc)
        if isinstance(result, Rejection):
            return rejection_response(result)
        return Response(ReservationSerializer(result).data, status=status.HTTP_201_CREATED)


class ReservationDetailView(APIView):
    """Handler for DELETE /api/reservations/{reservation_id}"""

    permission_classes = [IsAuthenticated]

    def delete(self, request: Request, reservation_id: str) -> Response:
        reservations = default_engine().reservations
        try:
            parsed = ReservationId.from_string(reservation_id)
        except ValueError:
            return error_response(InvalidIdError("reservation"))
        try:
            reservation = reservations.get(parsed)
            # Reservations of other requesters are reported as missing.
            if reservation.requester != str(request.user.pk):
                raise ReservationNotFoundError(reservation_id)
            reservation = reservations.release(parsed)
        except DomainError as exc:
            return error_response(exc)
        return Response(ReservationSerializer(reservation).data)
