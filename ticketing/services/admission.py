"""Purchase admission controller.

Every purchase attempt walks ``REQUESTED -> RESERVED -> COMMITTED`` on
success, ``REQUESTED -> RESERVED -> ROLLED_BACK`` when the sale cannot be
completed after a hold was granted, and ``REQUESTED -> REJECTED`` when no hold
could be taken. Failures come back as ``Rejection`` values, never exceptions,
and every rejected path gives back the units it reserved.
"""

import logging
import secrets
from dataclasses import dataclass, field

from ticketing.domain import (
    AdmissionState,
    IdempotencyKey,
    PurchaseId,
    PurchaseRecord,
    PurchaseStatus,
    Quantity,
    Reservation,
    ReservationId,
    TicketClassId,
)
from ticketing.domain.errors import (
    ConflictError,
    DomainError,
    InsufficientStateError,
    InternalInventoryError,
    InvalidIdError,
    InvalidRequestError,
    Rejection,
)
from ticketing.domain.models import ADMISSION_TRANSITIONS
from ticketing.services.idempotency import IdempotencyGuard
from ticketing.services.ledger import InventoryLedger
from ticketing.services.reservations import ReservationManager

logger = logging.getLogger(__name__)


@dataclass
class PurchaseAttempt:
    """Tracks one pass through the admission state machine."""

    key: IdempotencyKey
    state: AdmissionState = AdmissionState.REQUESTED
    history: list[AdmissionState] = field(default_factory=lambda: [AdmissionState.REQUESTED])

    def advance(self, state: AdmissionState) -> None:
        if state not in ADMISSION_TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal admission transition {self.state.value} -> {state.value}")
        logger.debug("Purchase %s: %s -> %s", self.key, self.state.value, state.value)
        self.state = state
        self.history.append(state)


def issue_qr_code(ticket_class_id: TicketClassId, issued_at_ms: int) -> str:
    return f"ticket_{ticket_class_id}_{issued_at_ms}_{secrets.token_hex(5)}"


class PurchaseAdmissionController:
    """Validates purchase requests against inventory and commits or rejects them."""

    def __init__(
        self,
        ledger: InventoryLedger,
        reservations: ReservationManager,
        guard: IdempotencyGuard,
    ) -> None:
        self._ledger = ledger
        self._reservations = reservations
        self._guard = guard

    def submit(
        self,
        idempotency_key: str,
        ticket_class_id: str | TicketClassId,
        quantity: int,
        requester: str,
        reservation_id: ReservationId | None = None,
    ) -> PurchaseRecord | Rejection:
        """Admit a purchase of ``quantity`` units, or say why not.

        Safe to retry: a key that already produced a purchase returns that
        purchase without touching inventory. When ``reservation_id`` names a
        hold the requester took at checkout, that hold is converted instead
        of taking a new one.
        """
        try:
            key, class_id = self._parse(idempotency_key, ticket_class_id, quantity, requester)
            with self._guard.serialize(key):
                return self._admit(
                    PurchaseAttempt(key=key), class_id, quantity, requester, reservation_id
                )
        except DomainError as exc:
            logger.info("Purchase %r rejected: %s", idempotency_key, exc)
            return Rejection.from_error(exc)

    def _parse(
        self,
        idempotency_key: str,
        ticket_class_id: str | TicketClassId,
        quantity: int,
        requester: str,
    ) -> tuple[IdempotencyKey, TicketClassId]:
        try:
            key = IdempotencyKey.from_string(idempotency_key)
            Quantity(quantity)
        except ValueError as exc:
            raise InvalidRequestError(str(exc)) from exc
        if not requester:
            raise InvalidRequestError("Requester is required")
        if isinstance(ticket_class_id, TicketClassId):
            return key, ticket_class_id
        try:
            return key, TicketClassId.from_string(ticket_class_id)
        except (ValueError, TypeError, AttributeError):
            raise InvalidIdError("ticket class")

    def _checkout_hold(
        self,
        reservation_id: ReservationId | None,
        ticket_class_id: TicketClassId,
        quantity: int,
        requester: str,
    ) -> Reservation | None:
        """Return the caller's still-held reservation, or None to take a new hold."""
        if reservation_id is None:
            return None
        reservation = self._reservations.get(reservation_id)
        if (
            reservation.ticket_class_id != ticket_class_id
            or reservation.quantity != quantity
            or reservation.requester != requester
        ):
            raise InvalidRequestError("Reservation does not match the purchase request")
        self._reservations.sweep_expired(ticket_class_id)
        reservation = self._reservations.get(reservation_id)
        return reservation if reservation.is_held else None

    def _replay(
        self,
        key: IdempotencyKey,
        existing: PurchaseRecord,
        ticket_class_id: TicketClassId,
        quantity: int,
        requester: str,
    ) -> PurchaseRecord:
        if (
            existing.ticket_class_id != ticket_class_id
            or existing.quantity != quantity
            or existing.requester != requester
        ):
            logger.warning(
                "Idempotency key %s replayed with different arguments (purchase %s)",
                key,
                existing.id,
            )
            raise ConflictError(str(key))
        logger.info("Replayed purchase %s for key %s", existing.id, key)
        return existing

    def _admit(
        self,
        attempt: PurchaseAttempt,
        ticket_class_id: TicketClassId,
        quantity: int,
        requester: str,
        reservation_id: ReservationId | None,
    ) -> PurchaseRecord | Rejection:
        existing = self._guard.lookup(attempt.key)
        if existing is not None:
            return self._replay(attempt.key, existing, ticket_class_id, quantity, requester)

        hold = self._checkout_hold(reservation_id, ticket_class_id, quantity, requester)
        if hold is None:
            hold = self._reservations.hold(ticket_class_id, quantity, requester)
        if isinstance(hold, Rejection):
            attempt.advance(AdmissionState.REJECTED)
            return hold
        attempt.advance(AdmissionState.RESERVED)

        unit_price = self._ledger.ticket_class(ticket_class_id).price
        total = unit_price.times(quantity)

        try:
            self._reservations.commit(hold.id)
        except InsufficientStateError:
            self._reservations.release(hold.id)
            attempt.advance(AdmissionState.ROLLED_BACK)
            logger.error(
                "Inventory commit failed for reservation %s on %s",
                hold.id,
                ticket_class_id,
                exc_info=True,
            )
            return Rejection.from_error(InternalInventoryError())

        created_at = hold.created_at
        record = PurchaseRecord(
            id=PurchaseId.new(),
            requester=requester,
            ticket_class_id=ticket_class_id,
            quantity=quantity,
            unit_price=unit_price,
            total=total,
            idempotency_key=attempt.key,
            status=PurchaseStatus.CONFIRMED,
            qr_code=issue_qr_code(ticket_class_id, int(created_at.timestamp() * 1000)),
            created_at=created_at,
        )
        try:
            record = self._guard.bind(attempt.key, record)
        except ConflictError:
            # Another process bound the key between lookup and bind.
            self._ledger.refund_sale(ticket_class_id, quantity)
            attempt.advance(AdmissionState.ROLLED_BACK)
            existing = self._guard.lookup(attempt.key)
            if existing is None:
                raise
            return self._replay(attempt.key, existing, ticket_class_id, quantity, requester)
        except Exception:
            self._ledger.refund_sale(ticket_class_id, quantity)
            attempt.advance(AdmissionState.ROLLED_BACK)
            logger.exception(
                "Storing purchase %s failed; returned %d unit(s) to %s",
                record.id,
                quantity,
                ticket_class_id,
            )
            return Rejection.from_error(InternalInventoryError())

        attempt.advance(AdmissionState.COMMITTED)
        logger.info(
            "Purchase %s confirmed: %d x %s for %s, total %s",
            record.id,
            quantity,
            ticket_class_id,
            requester,
            record.total,
        )
        return record
