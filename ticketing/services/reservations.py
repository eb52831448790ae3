"""Reservation manager - short-lived holds on ticket inventory.

Reservations are persisted in a ReservationStore next to the counters they
hold, so a restarted process (or another process sharing the database) can
still expire them.

Expiry is processed lazily: ``hold`` and ``available`` sweep the ticket
class they touch before reading counters, and ``sweep_expired`` can be called
from a periodic job to reclaim holds on classes nobody is looking at. Capacity
from an expired hold therefore becomes visible no later than the next access
to its ticket class. Sweeps also delete finished reservations once they are
older than the retention window.
"""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from ticketing.domain import (
    Quantity,
    Reservation,
    ReservationId,
    ReservationState,
    TicketClassId,
)
from ticketing.domain.errors import (
    InsufficientStateError,
    InvalidRequestError,
    Rejection,
    ReservationNotFoundError,
    SoldOutError,
    TicketClassNotFoundError,
)
from ticketing.services.ledger import InventoryLedger
from ticketing.stores.interfaces import EventStore, ReservationStore

logger = logging.getLogger(__name__)

DEFAULT_RESERVATION_TTL = timedelta(minutes=10)
DEFAULT_FINISHED_RETENTION = timedelta(hours=1)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(UTC)


class ReservationManager:
    """Holds, releases, commits and expires reservations.

    When an event store is given, holds are only granted on ticket classes of
    published events.
    """

    def __init__(
        self,
        ledger: InventoryLedger,
        store: ReservationStore,
        default_ttl: timedelta = DEFAULT_RESERVATION_TTL,
        clock: Clock = utc_now,
        events: EventStore | None = None,
        retention: timedelta = DEFAULT_FINISHED_RETENTION,
    ) -> None:
        if default_ttl <= timedelta(0):
            raise ValueError("Reservation TTL must be positive")
        self._ledger = ledger
        self._store = store
        self._default_ttl = default_ttl
        self._clock = clock
        self._events = events
        self._retention = retention

    @property
    def default_ttl(self) -> timedelta:
        return self._default_ttl

    def _expire_locked(self, reservation: Reservation) -> bool:
        # Caller holds the ticket class guard.
        self._ledger.release(reservation.ticket_class_id, reservation.quantity)
        return self._store.finish(reservation.id, ReservationState.EXPIRED) is not None

    def _sweep_locked(self, ticket_class_id: TicketClassId, now: datetime) -> int:
        expired = 0
        for reservation in self._store.list_expired(now, ticket_class_id):
            if self._expire_locked(reservation):
                expired += 1
        if expired:
            logger.info("Expired %d reservation(s) on ticket class %s", expired, ticket_class_id)
        self._store.delete_finished(now - self._retention, ticket_class_id)
        return expired

    def _check_on_sale(self, ticket_class_id: TicketClassId) -> None:
        if self._events is None:
            return
        ticket_class = self._ledger.ticket_class(ticket_class_id)
        event = self._events.get_event(ticket_class.event_id)
        if event is None or not event.is_published:
            raise TicketClassNotFoundError(str(ticket_class_id))

    def get(self, reservation_id: ReservationId) -> Reservation:
        reservation = self._store.get_reservation(reservation_id)
        if reservation is None:
            raise ReservationNotFoundError(str(reservation_id))
        return reservation

    def hold(
        self,
        ticket_class_id: TicketClassId,
        quantity: int,
        requester: str,
        ttl: timedelta | None = None,
    ) -> Reservation | Rejection:
        """Claim ``quantity`` units for ``requester`` until ``now + ttl``.

        Returns a SOLD_OUT rejection carrying the available quantity when the
        class cannot cover the request.

        Raises:
            TicketClassNotFoundError: If the ticket class is unknown or its
                event is not published.
            InvalidRequestError: If quantity or ttl are not positive.
        """
        try:
            Quantity(quantity)
        except ValueError as exc:
            raise InvalidRequestError(str(exc)) from exc
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= timedelta(0):
            raise InvalidRequestError("Reservation TTL must be positive")
        self._check_on_sale(ticket_class_id)

        with self._ledger.guard(ticket_class_id):
            now = self._clock()
            self._sweep_locked(ticket_class_id, now)
            try:
                self._ledger.reserve(ticket_class_id, quantity)
            except SoldOutError as exc:
                logger.info(
                    "Hold of %d on %s rejected: %d available",
                    quantity,
                    ticket_class_id,
                    exc.available_quantity,
                )
                return Rejection.from_error(exc)
            reservation = self._store.add_reservation(
                Reservation(
                    id=ReservationId.new(),
                    ticket_class_id=ticket_class_id,
                    quantity=quantity,
                    requester=requester,
                    created_at=now,
                    expires_at=now + ttl,
                )
            )
        logger.debug("Held %d on %s as %s", quantity, ticket_class_id, reservation.id)
        return reservation

    def release(self, reservation_id: ReservationId) -> Reservation:
        """Give a held reservation back. No-op for reservations no longer held."""
        reservation = self.get(reservation_id)
        with self._ledger.guard(reservation.ticket_class_id):
            reservation = self.get(reservation_id)
            if not reservation.is_held:
                return reservation
            self._ledger.release(reservation.ticket_class_id, reservation.quantity)
            return self._store.finish(reservation_id, ReservationState.RELEASED)

    def commit(self, reservation_id: ReservationId) -> Reservation:
        """Turn a held reservation into a sale.

        Raises:
            InsufficientStateError: If the reservation is no longer held or has
                passed its expiry (it is expired first), or the ledger refuses
                the sale.
        """
        reservation = self.get(reservation_id)
        ticket_class_id = reservation.ticket_class_id
        with self._ledger.guard(ticket_class_id):
            reservation = self.get(reservation_id)
            if reservation.is_expired_at(self._clock()):
                self._expire_locked(reservation)
            elif reservation.is_held:
                self._ledger.commit_sale(ticket_class_id, reservation.quantity)
                return self._store.finish(reservation_id, ReservationState.COMMITTED)
        # Raised outside the guard so the expiry above is kept.
        raise InsufficientStateError(
            str(ticket_class_id),
            f"reservation {reservation_id} is {self.get(reservation_id).state.value}",
        )

    def available(self, ticket_class_id: TicketClassId) -> int:
        with self._ledger.guard(ticket_class_id):
            self._sweep_locked(ticket_class_id, self._clock())
            return self._ledger.available(ticket_class_id)

    def sweep_expired(self, ticket_class_id: TicketClassId | None = None) -> int:
        """Expire overdue holds; every ticket class when no id is given."""
        now = self._clock()
        if ticket_class_id is not None:
            targets = [ticket_class_id]
        else:
            overdue = self._store.list_expired(now)
            targets = list(dict.fromkeys(r.ticket_class_id for r in overdue))
        expired = 0
        for target in targets:
            try:
                with self._ledger.guard(target):
                    expired += self._sweep_locked(target, self._clock())
            except TicketClassNotFoundError:
                if ticket_class_id is not None:
                    raise
                logger.warning("Dropping holds on removed ticket class %s", target)
                for reservation in self._store.list_expired(now, target):
                    self._store.finish(reservation.id, ReservationState.EXPIRED)
        if ticket_class_id is None:
            self._store.delete_finished(now - self._retention)
        return expired
