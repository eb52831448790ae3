"""Event service - catalog browsing and organizer operations.

Services:
- Depend only on interfaces (stores)
- Validate domain invariants
- Perform orchestration and error mapping
- Return domain models or domain errors
"""

from dataclasses import replace
from datetime import UTC, datetime
from decimal import Decimal

from ticketing.domain import (
    Capacity,
    Event,
    EventFilters,
    EventId,
    Money,
    TicketClass,
    TicketClassId,
)
from ticketing.domain.errors import EventNotFoundError, InvalidIdError, InvalidRequestError
from ticketing.services.ledger import InventoryLedger
from ticketing.stores.interfaces import EventStore, TicketClassStore

EDITABLE_EVENT_FIELDS = frozenset(
    {"title", "description", "category", "location", "starts_at", "ends_at", "banner_url", "is_published"}
)


class EventService:
    """Service for event catalog operations."""

    def __init__(
        self,
        store: EventStore,
        ticket_classes: TicketClassStore,
        ledger: InventoryLedger | None = None,
    ) -> None:
        self._store = store
        self._ticket_classes = ticket_classes
        self._ledger = ledger

    def list_events(self, filters: EventFilters | None = None) -> list[Event]:
        """Return published events matching the filters, soonest first."""
        return self._store.list_events(filters or EventFilters())

    def get_event(self, event_id: str, published_only: bool = False) -> Event:
        """Return an event by ID.

        With ``published_only`` a draft is reported as not found.

        Raises:
            InvalidIdError: If the event_id is not a valid UUID.
            EventNotFoundError: If the event does not exist.
        """
        event = self._store.get_event(self._parse_id(event_id))
        if event is None or (published_only and not event.is_published):
            raise EventNotFoundError(event_id)
        return event

    def get_ticket_classes_for_event(
        self, event_id: str, published_only: bool = False
    ) -> list[TicketClass]:
        """Return ticket classes for an event with current inventory counters.

        Raises:
            InvalidIdError: If the event_id is not a valid UUID.
            EventNotFoundError: If the event does not exist, or is a draft and
                ``published_only`` is set.
        """
        event = self.get_event(event_id, published_only=published_only)
        return self._ticket_classes.list_for_event(event.id)

    def create_event(
        self,
        organizer_id: str,
        title: str,
        description: str,
        category: str,
        location: str,
        starts_at: datetime,
        ends_at: datetime,
        banner_url: str | None = None,
        is_published: bool = False,
    ) -> Event:
        if ends_at < starts_at:
            raise InvalidRequestError("Event cannot end before it starts")
        now = datetime.now(UTC)
        event = Event(
            id=EventId.new(),
            organizer_id=organizer_id,
            title=title,
            description=description,
            category=category,
            location=location,
            starts_at=starts_at,
            ends_at=ends_at,
            banner_url=banner_url,
            is_published=is_published,
            created_at=now,
            updated_at=now,
        )
        return self._store.add_event(event)

    def update_event(self, event_id: str, **changes) -> Event:
        """Apply ``changes`` to an event.

        Raises:
            InvalidRequestError: If a field is not editable or dates are inverted.
        """
        unknown = set(changes) - EDITABLE_EVENT_FIELDS
        if unknown:
            raise InvalidRequestError(f"Cannot update fields: {', '.join(sorted(unknown))}")
        event = replace(self.get_event(event_id), **changes, updated_at=datetime.now(UTC))
        if event.ends_at < event.starts_at:
            raise InvalidRequestError("Event cannot end before it starts")
        return self._store.update_event(event)

    def publish_event(self, event_id: str) -> Event:
        return self.update_event(event_id, is_published=True)

    def delete_event(self, event_id: str) -> None:
        parsed = self._parse_id(event_id)
        ticket_classes = self._ticket_classes.list_for_event(parsed)
        if not self._store.delete_event(parsed):
            raise EventNotFoundError(event_id)
        if self._ledger is not None:
            for ticket_class in ticket_classes:
                self._ledger.forget(ticket_class.id)

    def add_ticket_class(
        self, event_id: str, name: str, price: Decimal | str, total: int
    ) -> TicketClass:
        """Create a ticket class. Its capacity cannot change afterwards.

        Raises:
            InvalidRequestError: If price or total are invalid.
        """
        parsed = self._parse_id(event_id)
        if not self._store.event_exists(parsed):
            raise EventNotFoundError(event_id)
        try:
            ticket_class = TicketClass(
                id=TicketClassId.new(),
                event_id=parsed,
                name=name,
                price=Money.from_decimal(price),
                total=Capacity(total),
                created_at=datetime.now(UTC),
            )
        except (TypeError, ValueError) as exc:
            raise InvalidRequestError(str(exc)) from exc
        return self._ticket_classes.add_ticket_class(ticket_class)

    @staticmethod
    def _parse_id(event_id: str) -> EventId:
        try:
            return EventId.from_string(event_id)
        except (ValueError, TypeError, AttributeError):
            raise InvalidIdError("event")
