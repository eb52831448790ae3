"""Domain error codes and typed rejections for the ticketing module."""

from dataclasses import dataclass
from enum import Enum
from typing import Self


class ErrorCode(Enum):
    """Domain error codes."""

    EVENT_NOT_FOUND = "EVENT_NOT_FOUND"
    TICKET_CLASS_NOT_FOUND = "TICKET_CLASS_NOT_FOUND"
    RESERVATION_NOT_FOUND = "RESERVATION_NOT_FOUND"
    PURCHASE_NOT_FOUND = "PURCHASE_NOT_FOUND"
    INVALID_ID = "INVALID_ID"
    INVALID_REQUEST = "INVALID_REQUEST"
    SOLD_OUT = "SOLD_OUT"
    CONFLICT = "CONFLICT"
    INSUFFICIENT_STATE = "INSUFFICIENT_STATE"
    INTERNAL_INVENTORY_ERROR = "INTERNAL_INVENTORY_ERROR"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"


@dataclass(eq=False)
class DomainError(Exception):
    """Base domain error with code and user-safe message."""

    code: ErrorCode
    message: str

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class EventNotFoundError(DomainError):
    """Raised when an event is not found."""

    def __init__(self, event_id: str) -> None:
        super().__init__(code=ErrorCode.EVENT_NOT_FOUND, message="Event not found")
        self.event_id = event_id


class TicketClassNotFoundError(DomainError):
    """Raised when a ticket class is not found."""

    def __init__(self, ticket_class_id: str) -> None:
        super().__init__(
            code=ErrorCode.TICKET_CLASS_NOT_FOUND,
            message="Ticket class not found",
        )
        self.ticket_class_id = ticket_class_id


class ReservationNotFoundError(DomainError):
    """Raised when a reservation is not found."""

    def __init__(self, reservation_id: str) -> None:
        super().__init__(
            code=ErrorCode.RESERVATION_NOT_FOUND,
            message="Reservation not found",
        )
        self.reservation_id = reservation_id


class PurchaseNotFoundError(DomainError):
    """Raised when a purchase is not found."""

    def __init__(self, purchase_id: str) -> None:
        super().__init__(code=ErrorCode.PURCHASE_NOT_FOUND, message="Purchase not found")
        self.purchase_id = purchase_id


class InvalidIdError(DomainError):
    """Raised when an identifier is malformed."""

    def __init__(self, kind: str = "resource") -> None:
        super().__init__(code=ErrorCode.INVALID_ID, message=f"Invalid {kind} ID format")
        self.kind = kind


class InvalidRequestError(DomainError):
    """Raised when request arguments fail domain validation."""

    def __init__(self, message: str) -> None:
        super().__init__(code=ErrorCode.INVALID_REQUEST, message=message)


class SoldOutError(DomainError):
    """Raised when a ticket class cannot cover the requested quantity."""

    def __init__(self, ticket_class_id: str, available_quantity: int) -> None:
        super().__init__(
            code=ErrorCode.SOLD_OUT,
            message="Not enough tickets available",
        )
        self.ticket_class_id = ticket_class_id
        self.available_quantity = available_quantity


class ConflictError(DomainError):
    """Raised when an idempotency key is reused for a different purchase."""

    def __init__(self, key: str) -> None:
        super().__init__(
            code=ErrorCode.CONFLICT,
            message="Idempotency key already used for a different purchase",
        )
        self.key = key


class InsufficientStateError(DomainError):
    """Raised when a ledger mutation would break sold + reserved <= total."""

    def __init__(self, ticket_class_id: str, detail: str) -> None:
        super().__init__(code=ErrorCode.INSUFFICIENT_STATE, message=detail)
        self.ticket_class_id = ticket_class_id


class InternalInventoryError(DomainError):
    """Raised when a purchase fails after its reservation was granted."""

    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.INTERNAL_INVENTORY_ERROR,
            message="Purchase could not be completed, please retry",
        )


class InvalidStatusTransitionError(DomainError):
    """Raised when a purchase status change is not allowed."""

    def __init__(self, current: str, requested: str) -> None:
        super().__init__(
            code=ErrorCode.INVALID_STATUS_TRANSITION,
            message=f"Cannot move purchase from {current} to {requested}",
        )
        self.current = current
        self.requested = requested


class RejectionReason(Enum):
    """Why a purchase request was not admitted."""

    SOLD_OUT = "SOLD_OUT"
    CONFLICT = "CONFLICT"
    INTERNAL_INVENTORY_ERROR = "INTERNAL_INVENTORY_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INVALID_REQUEST = "INVALID_REQUEST"


_REASON_BY_CODE = {
    ErrorCode.SOLD_OUT: RejectionReason.SOLD_OUT,
    ErrorCode.CONFLICT: RejectionReason.CONFLICT,
    ErrorCode.INSUFFICIENT_STATE: RejectionReason.INTERNAL_INVENTORY_ERROR,
    ErrorCode.INTERNAL_INVENTORY_ERROR: RejectionReason.INTERNAL_INVENTORY_ERROR,
    ErrorCode.EVENT_NOT_FOUND: RejectionReason.NOT_FOUND,
    ErrorCode.TICKET_CLASS_NOT_FOUND: RejectionReason.NOT_FOUND,
    ErrorCode.RESERVATION_NOT_FOUND: RejectionReason.NOT_FOUND,
    ErrorCode.PURCHASE_NOT_FOUND: RejectionReason.NOT_FOUND,
    ErrorCode.INVALID_ID: RejectionReason.INVALID_REQUEST,
    ErrorCode.INVALID_REQUEST: RejectionReason.INVALID_REQUEST,
    ErrorCode.INVALID_STATUS_TRANSITION: RejectionReason.INVALID_REQUEST,
}


@dataclass(frozen=True)
class Rejection:
    """Typed failure result returned across the admission boundary."""

    reason: RejectionReason
    message: str
    available_quantity: int | None = None

    @classmethod
    def from_error(cls, error: DomainError) -> Self:
        if isinstance(error, InsufficientStateError):
            # Counter detail stays in the logs.
            error = InternalInventoryError()
        return cls(
            reason=_REASON_BY_CODE[error.code],
            message=error.message,
            available_quantity=getattr(error, "available_quantity", None),
        )

    @property
    def retryable(self) -> bool:
        return self.reason is RejectionReason.INTERNAL_INVENTORY_ERROR
