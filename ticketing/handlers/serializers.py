"""Serializers for transforming domain models to API responses and parsing input."""

from rest_framework import serializers


class EventSerializer(serializers.Serializer):
    """Serializer for Event domain model."""

    id = serializers.CharField()
    organizer_id = serializers.CharField()
    title = serializers.CharField()
    description = serializers.CharField()
    category = serializers.CharField()
    location = serializers.CharField()
    starts_at = serializers.DateTimeField()
    ends_at = serializers.DateTimeField()
    banner_url = serializers.CharField(allow_null=True)
    is_published = serializers.BooleanField()


class EventQuerySerializer(serializers.Serializer):
    """Query parameters accepted by the event list."""

    category = serializers.CharField(required=False, allow_blank=True, max_length=100)
    location = serializers.CharField(required=False, allow_blank=True, max_length=255)
    search = serializers.CharField(required=False, allow_blank=True, max_length=255)


class TicketClassSerializer(serializers.Serializer):
    """Serializer for TicketClass domain model."""

    id = serializers.CharField()
    event_id = serializers.CharField()
    name = serializers.CharField()
    price = serializers.CharField()
    total = serializers.IntegerField(source="total.value")
    sold = serializers.IntegerField()
    reserved = serializers.IntegerField()
    available = serializers.IntegerField()


class PurchaseRecordSerializer(serializers.Serializer):
    """Serializer for PurchaseRecord domain model."""

    id = serializers.CharField()
    requester = serializers.CharField()
    ticket_class_id = serializers.CharField()
    quantity = serializers.IntegerField()
    unit_price = serializers.CharField()
    total = serializers.CharField()
    status = serializers.CharField(source="status.value")
    qr_code = serializers.CharField()
    created_at = serializers.DateTimeField()


class PurchaseRequestSerializer(serializers.Serializer):
    """Input for POST /api/purchases."""

    ticket_class_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    idempotency_key = serializers.CharField(required=False, max_length=255)
    reservation_id = serializers.UUIDField(required=False)


class RejectionSerializer(serializers.Serializer):
    reason = serializers.CharField(source="reason.value")
    message = serializers.CharField()
    available_quantity = serializers.IntegerField(allow_null=True)
    retryable = serializers.BooleanField()


class ReservationSerializer(serializers.Serializer):
    """Serializer for Reservation domain model."""

    id = serializers.CharField()
    ticket_class_id = serializers.CharField()
    quantity = serializers.IntegerField()
    requester = serializers.CharField()
    created_at = serializers.DateTimeField()
    expires_at = serializers.DateTimeField()
    state = serializers.CharField(source="state.value")


class ReservationRequestSerializer(serializers.Serializer):
    """Input for POST /api/reservations."""

    ticket_class_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
