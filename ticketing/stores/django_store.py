"""Django ORM implementations of the stores."""

from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from django.db import IntegrityError, transaction
from django.db.models import F, ProtectedError, Q

from ticketing import models
from ticketing.domain import (
    Capacity,
    Event,
    EventFilters,
    EventId,
    IdempotencyKey,
    Money,
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
    InvalidRequestError,
    PurchaseNotFoundError,
    TicketClassNotFoundError,
)
from ticketing.stores.interfaces import (
    EventStore,
    PurchaseStore,
    ReservationStore,
    TicketClassStore,
)


def event_from_row(row: models.Event) -> Event:
    return Event(
        id=EventId(row.id),
        organizer_id=row.organizer_id,
        title=row.title,
        description=row.description,
        category=row.category,
        location=row.location,
        starts_at=row.starts_at,
        ends_at=row.ends_at,
        banner_url=row.banner_url or None,
        is_published=row.is_published,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def ticket_class_from_row(row: models.TicketClass) -> TicketClass:
    return TicketClass(
        id=TicketClassId(row.id),
        event_id=EventId(row.event_id),
        name=row.name,
        price=Money.from_decimal(row.price),
        total=Capacity(row.total_quantity),
        sold=row.sold_quantity,
        reserved=row.reserved_quantity,
        created_at=row.created_at,
    )


def reservation_from_row(row: models.Reservation) -> Reservation:
    return Reservation(
        id=ReservationId(row.id),
        ticket_class_id=TicketClassId(row.ticket_class_id),
        quantity=row.quantity,
        requester=row.requester,
        created_at=row.created_at,
        expires_at=row.expires_at,
        state=ReservationState(row.state),
    )


def purchase_from_row(row: models.PurchaseRecord) -> PurchaseRecord:
    return PurchaseRecord(
        id=PurchaseId(row.id),
        requester=row.requester,
        ticket_class_id=TicketClassId(row.ticket_class_id),
        quantity=row.quantity,
        unit_price=Money.from_decimal(row.unit_price),
        total=Money.from_decimal(row.total_amount),
        idempotency_key=IdempotencyKey(row.idempotency_key),
        status=PurchaseStatus(row.status),
        qr_code=row.qr_code,
        created_at=row.created_at,
    )


class DjangoEventStore(EventStore):
    """Relational event store using Django ORM."""

    def list_events(self, filters: EventFilters) -> list[Event]:
        queryset = models.Event.objects.all()
        if filters.published_only:
            queryset = queryset.filter(is_published=True)
        if filters.category:
            queryset = queryset.filter(category=filters.category)
        if filters.location:
            queryset = queryset.filter(location__icontains=filters.location)
        if filters.search:
            queryset = queryset.filter(
                Q(title__icontains=filters.search) | Q(description__icontains=filters.search)
            )
        return [event_from_row(row) for row in queryset.order_by("starts_at")]

    def get_event(self, event_id: EventId) -> Event | None:
        row = models.Event.objects.filter(pk=event_id.value).first()
        return event_from_row(row) if row else None

    def event_exists(self, event_id: EventId) -> bool:
        return models.Event.objects.filter(pk=event_id.value).exists()

    def add_event(self, event: Event) -> Event:
        row = models.Event.objects.create(
            id=event.id.value,
            organizer_id=event.organizer_id,
            title=event.title,
            description=event.description,
            category=event.category,
            location=event.location,
            starts_at=event.starts_at,
            ends_at=event.ends_at,
            banner_url=event.banner_url,
            is_published=event.is_published,
        )
        return event_from_row(row)

    def update_event(self, event: Event) -> Event:
        row = models.Event.objects.get(pk=event.id.value)
        row.title = event.title
        row.description = event.description
        row.category = event.category
        row.location = event.location
        row.starts_at = event.starts_at
        row.ends_at = event.ends_at
        row.banner_url = event.banner_url
        row.is_published = event.is_published
        row.save()
        return event_from_row(row)

    def delete_event(self, event_id: EventId) -> bool:
        try:
            deleted, _ = models.Event.objects.filter(pk=event_id.value).delete()
        except ProtectedError as exc:
            raise InvalidRequestError("Event has purchases and cannot be deleted") from exc
        return deleted > 0


class DjangoTicketClassStore(TicketClassStore):
    """Ticket class store; counters change only through conditional F() updates."""

    def get_ticket_class(self, ticket_class_id: TicketClassId) -> TicketClass | None:
        row = models.TicketClass.objects.filter(pk=ticket_class_id.value).first()
        return ticket_class_from_row(row) if row else None

    def list_for_event(self, event_id: EventId) -> list[TicketClass]:
        rows = models.TicketClass.objects.filter(event_id=event_id.value).order_by("price", "name")
        return [ticket_class_from_row(row) for row in rows]

    def add_ticket_class(self, ticket_class: TicketClass) -> TicketClass:
        row = models.TicketClass.objects.create(
            id=ticket_class.id.value,
            event_id=ticket_class.event_id.value,
            name=ticket_class.name,
            price=ticket_class.price.amount,
            total_quantity=ticket_class.total.value,
            sold_quantity=ticket_class.sold,
            reserved_quantity=ticket_class.reserved,
        )
        return ticket_class_from_row(row)

    @contextmanager
    def locked(self, ticket_class_id: TicketClassId) -> Iterator[TicketClass]:
        with transaction.atomic():
            row = (
                models.TicketClass.objects.select_for_update()
                .filter(pk=ticket_class_id.value)
                .first()
            )
            if row is None:
                raise TicketClassNotFoundError(str(ticket_class_id))
            yield ticket_class_from_row(row)

    def adjust_counts(
        self, ticket_class_id: TicketClassId, sold_delta: int, reserved_delta: int
    ) -> TicketClass | None:
        updated = models.TicketClass.objects.filter(
            pk=ticket_class_id.value,
            sold_quantity__gte=-sold_delta,
            reserved_quantity__gte=-reserved_delta,
            total_quantity__gte=F("sold_quantity") + F("reserved_quantity") + sold_delta + reserved_delta,
        ).update(
            sold_quantity=F("sold_quantity") + sold_delta,
            reserved_quantity=F("reserved_quantity") + reserved_delta,
        )
        return self.get_ticket_class(ticket_class_id) if updated else None


class DjangoReservationStore(ReservationStore):
    def add_reservation(self, reservation: Reservation) -> Reservation:
        row = models.Reservation.objects.create(
            id=reservation.id.value,
            ticket_class_id=reservation.ticket_class_id.value,
            quantity=reservation.quantity,
            requester=reservation.requester,
            state=reservation.state.value,
            created_at=reservation.created_at,
            expires_at=reservation.expires_at,
        )
        return reservation_from_row(row)

    def get_reservation(self, reservation_id: ReservationId) -> Reservation | None:
        row = models.Reservation.objects.filter(pk=reservation_id.value).first()
        return reservation_from_row(row) if row else None

    def finish(self, reservation_id: ReservationId, state: ReservationState) -> Reservation | None:
        updated = models.Reservation.objects.filter(
            pk=reservation_id.value, state=models.Reservation.State.HELD
        ).update(state=state.value)
        return self.get_reservation(reservation_id) if updated else None

    def list_expired(
        self, now: datetime, ticket_class_id: TicketClassId | None = None
    ) -> list[Reservation]:
        queryset = models.Reservation.objects.filter(
            state=models.Reservation.State.HELD, expires_at__lte=now
        )
        if ticket_class_id is not None:
            queryset = queryset.filter(ticket_class_id=ticket_class_id.value)
        return [reservation_from_row(row) for row in queryset.order_by("expires_at")]

    def delete_finished(
        self, before: datetime, ticket_class_id: TicketClassId | None = None
    ) -> int:
        queryset = models.Reservation.objects.exclude(
            state=models.Reservation.State.HELD
        ).filter(expires_at__lt=before)
        if ticket_class_id is not None:
            queryset = queryset.filter(ticket_class_id=ticket_class_id.value)
        deleted, _ = queryset.delete()
        return deleted


class DjangoPurchaseStore(PurchaseStore):
    def add_purchase(self, record: PurchaseRecord) -> PurchaseRecord:
        try:
            with transaction.atomic():
                row = models.PurchaseRecord.objects.create(
                    id=record.id.value,
                    requester=record.requester,
                    ticket_class_id=record.ticket_class_id.value,
                    quantity=record.quantity,
                    unit_price=record.unit_price.amount,
                    total_amount=record.total.amount,
                    idempotency_key=record.idempotency_key.value,
                    status=record.status.value,
                    qr_code=record.qr_code,
                    created_at=record.created_at,
                )
        except IntegrityError as exc:
            if models.PurchaseRecord.objects.filter(
                idempotency_key=record.idempotency_key.value
            ).exists():
                raise ConflictError(str(record.idempotency_key)) from exc
            raise
        return purchase_from_row(row)

    def get_purchase(self, purchase_id: PurchaseId) -> PurchaseRecord | None:
        row = models.PurchaseRecord.objects.filter(pk=purchase_id.value).first()
        return purchase_from_row(row) if row else None

    def get_by_idempotency_key(self, key: IdempotencyKey) -> PurchaseRecord | None:
        row = models.PurchaseRecord.objects.filter(idempotency_key=key.value).first()
        return purchase_from_row(row) if row else None

    def list_for_requester(self, requester: str) -> list[PurchaseRecord]:
        rows = models.PurchaseRecord.objects.filter(requester=requester).order_by("-created_at")
        return [purchase_from_row(row) for row in rows]

    def update_status(self, purchase_id: PurchaseId, status: PurchaseStatus) -> PurchaseRecord:
        updated = models.PurchaseRecord.objects.filter(pk=purchase_id.value).update(
            status=status.value
        )
        if not updated:
            raise PurchaseNotFoundError(str(purchase_id))
        return purchase_from_row(models.PurchaseRecord.objects.get(pk=purchase_id.value))
