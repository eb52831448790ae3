"""Domain primitives that enforce validity at creation time."""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Self
from uuid import UUID, uuid4

MINOR_UNIT_EXPONENT = 2
MINOR_UNITS_PER_MAJOR = 10**MINOR_UNIT_EXPONENT
MAX_IDEMPOTENCY_KEY_LENGTH = 255


@dataclass(frozen=True)
class EventId:
    """Unique identifier for an Event."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class TicketClassId:
    """Unique identifier for a TicketClass."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class ReservationId:
    """Unique identifier for a Reservation."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class PurchaseId:
    """Unique identifier for a PurchaseRecord."""

    value: UUID

    @classmethod
    def from_string(cls, value: str) -> Self:
        return cls(value=UUID(value))

    @classmethod
    def new(cls) -> Self:
        return cls(value=uuid4())

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Money:
    """Currency amount held as an integer count of minor units.

    Arithmetic never goes through floating point: ``Money.from_decimal("9.99")``
    is 999 minor units and ``times(3)`` is exactly 2997.
    """

    minor_units: int

    def __post_init__(self) -> None:
        if isinstance(self.minor_units, bool) or not isinstance(self.minor_units, int):
            raise TypeError("Money minor units must be an integer")
        if self.minor_units < 0:
            raise ValueError("Money amount cannot be negative")

    @classmethod
    def from_decimal(cls, value: Decimal | str | int) -> Self:
        """Build Money from a major-unit amount.

        Raises:
            ValueError: If the amount is negative, not a number, or has more
                fractional digits than the currency allows.
        """
        if isinstance(value, float):
            raise TypeError("Money cannot be built from a float")
        try:
            amount = Decimal(value)
        except (InvalidOperation, TypeError) as exc:
            raise ValueError(f"Invalid money amount: {value!r}") from exc
        if not amount.is_finite():
            raise ValueError(f"Invalid money amount: {value!r}")
        scaled = amount * MINOR_UNITS_PER_MAJOR
        if scaled != scaled.to_integral_value():
            raise ValueError(
                f"Money amount has more than {MINOR_UNIT_EXPONENT} decimal places"
            )
        return cls(minor_units=int(scaled))

    @classmethod
    def zero(cls) -> Self:
        return cls(minor_units=0)

    @property
    def amount(self) -> Decimal:
        return Decimal(self.minor_units).scaleb(-MINOR_UNIT_EXPONENT)

    def times(self, quantity: int) -> "Money":
        if quantity < 0:
            raise ValueError("Cannot multiply money by a negative quantity")
        return Money(minor_units=self.minor_units * quantity)

    def __add__(self, other: "Money") -> "Money":
        return Money(minor_units=self.minor_units + other.minor_units)

    def __str__(self) -> str:
        return f"{self.amount:.{MINOR_UNIT_EXPONENT}f}"


@dataclass(frozen=True)
class Capacity:
    """Non-negative integer representing capacity."""

    value: int

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError("Capacity cannot be negative")


@dataclass(frozen=True)
class Quantity:
    """Positive number of units in a single request."""

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValueError("Quantity must be an integer")
        if self.value <= 0:
            raise ValueError("Quantity must be positive")


@dataclass(frozen=True)
class IdempotencyKey:
    """Client-supplied token that identifies one logical purchase."""

    value: str

    @classmethod
    def from_string(cls, value: str) -> Self:
        if not isinstance(value, str):
            raise ValueError("Idempotency key must be a string")
        return cls(value=value.strip())

    def __post_init__(self) -> None:
        if not self.value:
            raise ValueError("Idempotency key cannot be blank")
        if len(self.value) > MAX_IDEMPOTENCY_KEY_LENGTH:
            raise ValueError("Idempotency key is too long")

    def __str__(self) -> str:
        return self.value
