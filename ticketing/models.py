"""Django ORM models (persistence layer).

These models handle database concerns. Domain logic lives in domain/models.py.
"""

import uuid

from django.db import models


class Event(models.Model):
    """Persistence model for events."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    organizer_id = models.CharField(max_length=64)
    title = models.CharField(max_length=255)
    description = models.TextField()
    category = models.CharField(max_length=100)
    location = models.CharField(max_length=255)
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    banner_url = models.URLField(max_length=500, blank=True, null=True)
    is_published = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["starts_at"]
        indexes = [
            models.Index(fields=["is_published", "starts_at"], name="ticketing_e_is_publ_3c1f0a_idx"),
            models.Index(fields=["category"], name="ticketing_e_categor_8d2b41_idx"),
        ]

    def __str__(self) -> str:
        return self.title


class TicketClass(models.Model):
    """Persistence model for ticket classes and their inventory counters."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(Event, on_delete=models.CASCADE, related_name="ticket_classes")
    name = models.CharField(max_length=100)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    total_quantity = models.PositiveIntegerField()
    sold_quantity = models.PositiveIntegerField(default=0)
    reserved_quantity = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "ticket classes"
        indexes = [
            models.Index(fields=["event"], name="ticketing_t_event_i_5a7e20_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(
                    sold_quantity__lte=models.F("total_quantity") - models.F("reserved_quantity")
                ),
                name="ticket_class_within_capacity",
            ),
        ]

    # Written only by conditional queryset updates, never by save().
    LOCKED_FIELDS = frozenset({"total_quantity", "sold_quantity", "reserved_quantity"})

    def __str__(self) -> str:
        return f"{self.name} - {self.price}"

    def save(self, *args, **kwargs):
        if not self._state.adding and kwargs.get("update_fields") is None:
            kwargs["update_fields"] = [
                field.name
                for field in self._meta.concrete_fields
                if not field.primary_key and field.name not in self.LOCKED_FIELDS
            ]
        super().save(*args, **kwargs)


class Reservation(models.Model):
    """Persistence model for holds on ticket class inventory."""

    class State(models.TextChoices):
        HELD = "held"
        COMMITTED = "committed"
        RELEASED = "released"
        EXPIRED = "expired"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    ticket_class = models.ForeignKey(
        TicketClass, on_delete=models.CASCADE, related_name="reservations"
    )
    quantity = models.PositiveIntegerField()
    requester = models.CharField(max_length=64)
    state = models.CharField(max_length=16, choices=State.choices, default=State.HELD)
    created_at = models.DateTimeField()
    expires_at = models.DateTimeField()

    class Meta:
        indexes = [
            models.Index(fields=["state", "expires_at"], name="ticketing_r_state_4b9d12_idx"),
            models.Index(fields=["ticket_class", "state"], name="ticketing_r_ticket__7c30e5_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.requester} x{self.quantity} {self.state}"


class PurchaseRecord(models.Model):
    """Persistence model for admitted purchases."""

    class Status(models.TextChoices):
        PENDING = "pending"
        CONFIRMED = "confirmed"
        FAILED = "failed"
        REFUNDED = "refunded"

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    requester = models.CharField(max_length=64)
    ticket_class = models.ForeignKey(
        TicketClass, on_delete=models.PROTECT, related_name="purchases"
    )
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    idempotency_key = models.CharField(max_length=255, unique=True)
    status = models.CharField(max_length=16, choices=Status.choices, default=Status.PENDING)
    qr_code = models.CharField(max_length=255)
    created_at = models.DateTimeField()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["requester", "-created_at"], name="ticketing_p_request_9e4c7b_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.requester} x{self.quantity} {self.ticket_class_id}"
