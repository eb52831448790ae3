"""Tests for the Django ORM stores.

Run with: pytest tests/test_django_store.py -v
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

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
    SoldOutError,
    TicketClassNotFoundError,
)
from ticketing.stores.django_store import (
    DjangoEventStore,
    DjangoPurchaseStore,
    DjangoReservationStore,
    DjangoTicketClassStore,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


@pytest.fixture
def event() -> Event:
    return DjangoEventStore().add_event(
        Event(
            id=EventId.new(),
            organizer_id="org-1",
            title="Jazz Night",
            description="Live quartet",
            category="music",
            location="Addis Ababa",
            starts_at=NOW + timedelta(days=30),
            ends_at=NOW + timedelta(days=30, hours=3),
            banner_url=None,
            is_published=True,
            created_at=NOW,
            updated_at=NOW,
        )
    )


@pytest.fixture
def ticket_class(event) -> TicketClass:
    return DjangoTicketClassStore().add_ticket_class(
        TicketClass(
            id=TicketClassId.new(),
            event_id=event.id,
            name="General",
            price=Money.from_decimal("19.99"),
            total=Capacity(10),
            created_at=NOW,
        )
    )


def make_purchase(ticket_class: TicketClass, key: str = "key-1", **overrides) -> PurchaseRecord:
    fields = {
        "id": PurchaseId.new(),
        "requester": "user-1",
        "ticket_class_id": ticket_class.id,
        "quantity": 2,
        "unit_price": ticket_class.price,
        "total": ticket_class.price.times(2),
        "idempotency_key": IdempotencyKey(key),
        "status": PurchaseStatus.CONFIRMED,
        "qr_code": "ticket_abc",
        "created_at": NOW,
    }
    fields.update(overrides)
    return PurchaseRecord(**fields)


@pytest.mark.django_db
class TestEventStore:
    def test_round_trip(self, event):
        stored = DjangoEventStore().get_event(event.id)

        assert stored == event
        assert stored.banner_url is None

    def test_list_filters_by_search_in_description(self, event):
        store = DjangoEventStore()

        assert store.list_events(EventFilters(search="QUARTET")) == [event]
        assert store.list_events(EventFilters(category="tech")) == []

    def test_delete_event_with_purchases_is_refused(self, event, ticket_class):
        DjangoPurchaseStore().add_purchase(make_purchase(ticket_class))

        with pytest.raises(InvalidRequestError):
            DjangoEventStore().delete_event(event.id)

        assert DjangoEventStore().event_exists(event.id)

    def test_delete_event_cascades_to_ticket_classes(self, event, ticket_class):
        assert DjangoEventStore().delete_event(event.id) is True

        assert DjangoTicketClassStore().get_ticket_class(ticket_class.id) is None
        assert DjangoEventStore().delete_event(event.id) is False


@pytest.mark.django_db
class TestTicketClassStore:
    def test_round_trip_keeps_exact_price(self, ticket_class):
        stored = DjangoTicketClassStore().get_ticket_class(ticket_class.id)

        assert stored.price == Money(minor_units=1999)
        assert (stored.total, stored.sold, stored.reserved) == (Capacity(10), 0, 0)

    def test_adjust_counts_is_conditional(self, ticket_class):
        store = DjangoTicketClassStore()

        assert store.adjust_counts(ticket_class.id, 0, 8).reserved == 8
        assert store.adjust_counts(ticket_class.id, 2, 0).sold == 2
        assert store.adjust_counts(ticket_class.id, 0, 1) is None
        assert store.adjust_counts(ticket_class.id, -3, 0) is None
        assert store.adjust_counts(ticket_class.id, 0, -9) is None
        assert store.adjust_counts(TicketClassId.new(), 0, 1) is None

        row = models.TicketClass.objects.get(pk=ticket_class.id.value)
        assert (row.sold_quantity, row.reserved_quantity) == (2, 8)

    def test_locked_yields_current_row(self, ticket_class):
        store = DjangoTicketClassStore()
        store.adjust_counts(ticket_class.id, 0, 3)

        with store.locked(ticket_class.id) as locked:
            assert locked.reserved == 3

        with pytest.raises(TicketClassNotFoundError):
            with store.locked(TicketClassId.new()):
                pass

    def test_ledger_works_on_persisted_counters(self, ticket_class):
        from ticketing.services.ledger import InventoryLedger

        store = DjangoTicketClassStore()
        store.adjust_counts(ticket_class.id, 0, 5)
        store.adjust_counts(ticket_class.id, 4, -4)

        InventoryLedger(store).reserve(ticket_class.id, 2)

        row = models.TicketClass.objects.get(pk=ticket_class.id.value)
        assert (row.sold_quantity, row.reserved_quantity) == (4, 3)
        with pytest.raises(SoldOutError):
            InventoryLedger(store).reserve(ticket_class.id, 4)

    def test_model_save_leaves_capacity_and_counters_alone(self, ticket_class):
        stale = models.TicketClass.objects.get(pk=ticket_class.id.value)
        DjangoTicketClassStore().adjust_counts(ticket_class.id, 0, 4)

        stale.name = "Early bird"
        stale.price = Decimal("15.00")
        stale.total_quantity = 1
        stale.reserved_quantity = 0
        stale.save()

        row = models.TicketClass.objects.get(pk=ticket_class.id.value)
        assert (row.name, row.price) == ("Early bird", Decimal("15.00"))
        assert (row.total_quantity, row.sold_quantity, row.reserved_quantity) == (10, 0, 4)


@pytest.mark.django_db
class TestReservationStore:
    def make_reservation(self, ticket_class, expires_in=timedelta(minutes=10)) -> Reservation:
        return Reservation(
            id=ReservationId.new(),
            ticket_class_id=ticket_class.id,
            quantity=2,
            requester="user-1",
            created_at=NOW,
            expires_at=NOW + expires_in,
        )

    def test_round_trip(self, ticket_class):
        store = DjangoReservationStore()
        reservation = store.add_reservation(self.make_reservation(ticket_class))

        assert store.get_reservation(reservation.id) == reservation
        assert store.get_reservation(ReservationId.new()) is None

    def test_finish_applies_to_held_reservations_only(self, ticket_class):
        store = DjangoReservationStore()
        reservation = store.add_reservation(self.make_reservation(ticket_class))

        assert store.finish(reservation.id, ReservationState.RELEASED).state is (
            ReservationState.RELEASED
        )
        assert store.finish(reservation.id, ReservationState.EXPIRED) is None

    def test_list_expired_and_delete_finished(self, ticket_class):
        store = DjangoReservationStore()
        overdue = store.add_reservation(self.make_reservation(ticket_class, timedelta(minutes=1)))
        current = store.add_reservation(self.make_reservation(ticket_class, timedelta(hours=1)))
        later = NOW + timedelta(minutes=5)

        assert store.list_expired(later) == [overdue]
        assert store.list_expired(later, TicketClassId.new()) == []

        store.finish(overdue.id, ReservationState.EXPIRED)
        assert store.delete_finished(later) == 1
        assert store.get_reservation(overdue.id) is None
        assert store.get_reservation(current.id) == current

    def test_holds_expire_after_the_engine_is_rebuilt(self, ticket_class):
        from ticketing.engine import default_engine

        default_engine().reservations.hold(
            ticket_class.id, 10, "user-1", ttl=timedelta(microseconds=1)
        )
        default_engine.cache_clear()

        assert default_engine().reservations.sweep_expired() == 1
        assert default_engine().ledger.available(ticket_class.id) == 10


@pytest.mark.django_db
class TestPurchaseStore:
    def test_round_trip(self, ticket_class):
        record = make_purchase(ticket_class)

        DjangoPurchaseStore().add_purchase(record)

        assert DjangoPurchaseStore().get_purchase(record.id) == record
        assert DjangoPurchaseStore().get_by_idempotency_key(IdempotencyKey("key-1")) == record

    def test_duplicate_idempotency_key_is_refused(self, ticket_class):
        store = DjangoPurchaseStore()
        store.add_purchase(make_purchase(ticket_class))

        with pytest.raises(ConflictError):
            store.add_purchase(make_purchase(ticket_class))

    def test_list_for_requester_newest_first(self, ticket_class):
        store = DjangoPurchaseStore()
        older = store.add_purchase(make_purchase(ticket_class, key="a"))
        newer = store.add_purchase(
            make_purchase(ticket_class, key="b", created_at=NOW + timedelta(minutes=5))
        )

        assert store.list_for_requester("user-1") == [newer, older]
        assert store.list_for_requester("user-2") == []

    def test_update_status(self, ticket_class):
        store = DjangoPurchaseStore()
        record = store.add_purchase(make_purchase(ticket_class))

        updated = store.update_status(record.id, PurchaseStatus.REFUNDED)

        assert updated.status is PurchaseStatus.REFUNDED
        with pytest.raises(PurchaseNotFoundError):
            store.update_status(PurchaseId.new(), PurchaseStatus.REFUNDED)
