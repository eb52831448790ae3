"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime, timedelta

import pytest
from rest_framework.test import APIClient

from ticketing.domain import Capacity, Event, EventId, Money, TicketClass, TicketClassId
from ticketing.engine import TicketingEngine, build_engine, default_engine
from ticketing.stores.memory_store import (
    InMemoryEventStore,
    InMemoryPurchaseStore,
    InMemoryReservationStore,
    InMemoryTicketClassStore,
)


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def api_client() -> APIClient:
    return APIClient()


@pytest.fixture(autouse=True)
def clear_cache():
    from django.core.cache import cache
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def reset_default_engine():
    default_engine.cache_clear()
    yield
    default_engine.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def ticket_class_store() -> InMemoryTicketClassStore:
    return InMemoryTicketClassStore()


@pytest.fixture
def purchase_store() -> InMemoryPurchaseStore:
    return InMemoryPurchaseStore()


@pytest.fixture
def reservation_store() -> InMemoryReservationStore:
    return InMemoryReservationStore()


@pytest.fixture
def event_store(ticket_class_store) -> InMemoryEventStore:
    return InMemoryEventStore(ticket_class_store)


@pytest.fixture
def engine(event_store, ticket_class_store, purchase_store, reservation_store, clock) -> TicketingEngine:
    return build_engine(event_store, ticket_class_store, purchase_store, reservation_store, clock=clock)


@pytest.fixture
def make_ticket_class(ticket_class_store, event_store):
    def _make(
        total: int = 10, price: str = "25.00", name: str = "General", published: bool = True
    ) -> TicketClass:
        created_at = datetime(2026, 1, 1, tzinfo=UTC)
        event = event_store.add_event(
            Event(
                id=EventId.new(),
                organizer_id="org-1",
                title=f"{name} event",
                description="",
                category="music",
                location="Addis Ababa",
                starts_at=created_at + timedelta(days=30),
                ends_at=created_at + timedelta(days=30, hours=3),
                banner_url=None,
                is_published=published,
                created_at=created_at,
                updated_at=created_at,
            )
        )
        ticket_class = TicketClass(
            id=TicketClassId.new(),
            event_id=event.id,
            name=name,
            price=Money.from_decimal(price),
            total=Capacity(total),
            created_at=created_at,
        )
        return ticket_class_store.add_ticket_class(ticket_class)

    return _make
