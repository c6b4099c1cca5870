"""
Values -- immutable, self-validating domain value objects.

Responsibility:
    The identity and quantity types every other module speaks in: location
    references (a tagged Warehouse/Store variant), ledger keys, movement kinds,
    transfer statuses, and Decimal coercion for quantities and costs.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - A LocationRef is equal to another only if kind AND id match.
    - StockKey ordering is a total order independent of transfer direction;
      it is the lock acquisition order for the whole kernel.
    - Quantities are finite Decimals.  Floats are converted through ``str`` so
      ``0.1`` becomes ``Decimal("0.1")``, never its binary expansion.

Failure modes:
    - ValueError on malformed location strings or unknown kinds.
    - InvalidQuantityError on NaN, infinity or non-numeric quantities.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any
from uuid import UUID

from stock_kernel.exceptions import InvalidQuantityError


class LocationKind(str, Enum):
    """Discriminator of the location variant."""

    WAREHOUSE = "warehouse"
    STORE = "store"


@dataclass(frozen=True, slots=True)
class LocationRef:
    """
    Polymorphic location identity: discriminator plus id within that kind.

    Renders as ``"<kind>:<uuid>"``; ``parse()`` accepts the same form.
    """

    kind: LocationKind
    id: UUID

    def __post_init__(self):
        if not isinstance(self.kind, LocationKind):
            object.__setattr__(self, "kind", LocationKind(self.kind))
        if not isinstance(self.id, UUID):
            object.__setattr__(self, "id", UUID(str(self.id)))

    @classmethod
    def warehouse(cls, location_id: UUID) -> LocationRef:
        return cls(LocationKind.WAREHOUSE, location_id)

    @classmethod
    def store(cls, location_id: UUID) -> LocationRef:
        return cls(LocationKind.STORE, location_id)

    @classmethod
    def parse(cls, value: str | LocationRef) -> LocationRef:
        """Parse ``"warehouse:<uuid>"`` / ``"store:<uuid>"``."""
        if isinstance(value, LocationRef):
            return value
        kind, sep, raw_id = str(value).partition(":")
        if not sep:
            raise ValueError(f"Location reference must be '<kind>:<id>', got {value!r}")
        try:
            return cls(LocationKind(kind.strip().lower()), UUID(raw_id.strip()))
        except ValueError as exc:
            raise ValueError(f"Invalid location reference {value!r}: {exc}") from exc

    @property
    def sort_key(self) -> tuple[str, str]:
        return (self.kind.value, str(self.id))

    def __str__(self) -> str:
        return f"{self.kind.value}:{self.id}"


@dataclass(frozen=True, slots=True, order=True)
class StockKey:
    """
    Ledger primary key: (location kind, location id, product id).

    Field order defines the lock order.  Stored as strings so that ordering
    matches the String(36) columns on every backend.
    """

    location_kind: str
    location_id: str
    product_id: str

    @classmethod
    def of(cls, product_id: UUID, location: LocationRef) -> StockKey:
        return cls(location.kind.value, str(location.id), str(product_id))

    @property
    def location(self) -> LocationRef:
        return LocationRef(LocationKind(self.location_kind), UUID(self.location_id))

    def __str__(self) -> str:
        return f"{self.location_kind}:{self.location_id}/{self.product_id}"


class MovementKind(str, Enum):
    """Cause of a stock movement, with the delta sign it requires."""

    RECEIPT = "receipt"
    ISSUE = "issue"
    CORRECTION = "correction"
    TRANSFER_IN = "transfer-in"
    TRANSFER_OUT = "transfer-out"

    @property
    def required_sign(self) -> int:
        """+1 / -1 for kinds with a fixed direction, 0 when either is allowed."""
        return _REQUIRED_SIGN[self]


_REQUIRED_SIGN = {
    MovementKind.RECEIPT: 1,
    MovementKind.ISSUE: -1,
    MovementKind.CORRECTION: 0,
    MovementKind.TRANSFER_IN: 1,
    MovementKind.TRANSFER_OUT: -1,
}


class TransferStatus(str, Enum):
    """Lifecycle of a stock transfer."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not TransferStatus.PENDING


def to_decimal(value: Any, field_name: str = "quantity") -> Decimal:
    """
    Coerce a number to a finite Decimal.

    Raises:
        InvalidQuantityError: bool, NaN, infinity or non-numeric input.
    """
    if isinstance(value, bool):
        raise InvalidQuantityError(str(value), f"{field_name} must be numeric")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value)
        except InvalidOperation as exc:
            raise InvalidQuantityError(str(value), f"{field_name} is not a number") from exc
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise InvalidQuantityError(repr(value), f"{field_name} must be numeric")
    if not result.is_finite():
        raise InvalidQuantityError(str(value), f"{field_name} must be finite")
    return result


def normalize_sku(sku: str) -> str:
    """Canonical SKU form: stripped and upper-cased."""
    return sku.strip().upper()


def check_places(value: Decimal, places: int, field_name: str = "quantity") -> Decimal:
    """
    Reject values with more than ``places`` fractional digits.

    Raises:
        InvalidQuantityError: the value would be rounded on storage.
    """
    exponent = value.as_tuple().exponent
    if isinstance(exponent, int) and exponent < -places and value != value.quantize(
        Decimal(1).scaleb(-places)
    ):
        raise InvalidQuantityError(
            str(value), f"{field_name} allows at most {places} decimal places"
        )
    return value
