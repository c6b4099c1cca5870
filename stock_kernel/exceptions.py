"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the ledger must react differently to different failures: a
shortage is shown to the user, lock contention is retried, a storage failure
is fatal. Parsing messages for that is fragile, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        engine.record(product_id, location, Decimal("-5"), MovementKind.ISSUE)
    except InsufficientStockError as e:
        notify_user(f"Only {e.available} on hand")
    except LockTimeoutError:
        retry_later()

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StockKernelError (base)
    |
    +-- UnknownReferenceError
    |   +-- ProductNotFoundError
    |   +-- LocationNotFoundError
    |
    +-- InsufficientStockError
    |
    +-- StockRequestError
    |   +-- InvalidQuantityError
    |   +-- SameLocationError
    |   +-- DuplicateLineItemError
    |   +-- EmptyTransferError
    |
    +-- CatalogError
    |   +-- DuplicateSkuError
    |   +-- DuplicateLocationNameError
    |   +-- ProductReferencedError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |
    +-- StorageFailureError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                    | When Raised
--------------|-------------------------|-------------------------------------------
Reference     | PRODUCT_NOT_FOUND       | Product id does not resolve
              | LOCATION_NOT_FOUND      | Location ref does not resolve
--------------|-------------------------|-------------------------------------------
Stock         | INSUFFICIENT_STOCK      | Decrement would leave quantity < 0
--------------|-------------------------|-------------------------------------------
Request       | INVALID_QUANTITY        | Zero delta, wrong sign, non-finite value
              | SAME_LOCATION           | Transfer source == destination
              | DUPLICATE_LINE_ITEM     | Product repeated within one transfer
              | EMPTY_TRANSFER          | Transfer without line items
--------------|-------------------------|-------------------------------------------
Catalog       | DUPLICATE_SKU           | Normalized SKU already registered
              | DUPLICATE_LOCATION_NAME | Name already used within the kind
              | PRODUCT_REFERENCED      | Delete of a product with stock items
--------------|-------------------------|-------------------------------------------
Concurrency   | BUSY                    | Key locks not acquired within the wait
--------------|-------------------------|-------------------------------------------
Storage       | STORAGE_FAILURE         | Persistence error, transaction rolled back
--------------|-------------------------|-------------------------------------------
Immutability  | IMMUTABILITY_VIOLATION  | Update/delete of history or frozen fields

===============================================================================
"""


class StockKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.  ``retryable`` marks errors the caller may retry
    unchanged.
    """

    code: str = "STOCK_KERNEL_ERROR"
    retryable: bool = False


# Reference exceptions


class UnknownReferenceError(StockKernelError):
    """A product or location does not resolve."""

    code: str = "UNKNOWN_REFERENCE"


class ProductNotFoundError(UnknownReferenceError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class LocationNotFoundError(UnknownReferenceError):
    """Location with given kind and ID was not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"Location not found: {location}")


# Stock exceptions


class InsufficientStockError(StockKernelError):
    """
    Decrement would make quantity-on-hand negative.

    Never clamped: the mutation is rejected and nothing is written.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, location: str, available: str, requested: str):
        self.product_id = product_id
        self.location = location
        self.available = available
        self.requested = requested
        super().__init__(
            f"Insufficient stock of {product_id} at {location}: "
            f"available={available}, requested={requested}"
        )


# Request exceptions


class StockRequestError(StockKernelError):
    """Base exception for malformed movement or transfer requests."""

    code: str = "INVALID_REQUEST"


class InvalidQuantityError(StockRequestError):
    """Quantity is zero, has the wrong sign, or is not a finite number."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: str, reason: str):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity}: {reason}")


class SameLocationError(StockRequestError):
    """Transfer source and destination are the same location."""

    code: str = "SAME_LOCATION"

    def __init__(self, location: str):
        self.location = location
        super().__init__(f"Transfer source and destination are both {location}")


class DuplicateLineItemError(StockRequestError):
    """A product appears more than once in a single transfer."""

    code: str = "DUPLICATE_LINE_ITEM"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} appears more than once in transfer")


class EmptyTransferError(StockRequestError):
    """Transfer has no line items."""

    code: str = "EMPTY_TRANSFER"

    def __init__(self):
        super().__init__("Transfer requires at least one line item")


# Catalog exceptions


class CatalogError(StockKernelError):
    """Base exception for catalog and location registry errors."""

    code: str = "CATALOG_ERROR"


class DuplicateSkuError(CatalogError):
    """A product with the same normalized SKU already exists."""

    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"SKU already registered: {sku}")


class DuplicateLocationNameError(CatalogError):
    """A location of the same kind already uses this name."""

    code: str = "DUPLICATE_LOCATION_NAME"

    def __init__(self, kind: str, name: str):
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} name already registered: {name}")


class ProductReferencedError(CatalogError):
    """Product has stock items and cannot be deleted."""

    code: str = "PRODUCT_REFERENCED"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(
            f"Product {product_id} is referenced by stock items and cannot be deleted"
        )


# Concurrency exceptions


class ConcurrencyError(StockKernelError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """
    Ledger key locks could not be acquired within the bounded wait.

    Nothing was written; the caller may retry with backoff.
    """

    code: str = "BUSY"
    retryable: bool = True

    def __init__(self, keys: list[str], timeout_seconds: float):
        self.keys = keys
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Could not lock {len(keys)} ledger key(s) within {timeout_seconds}s"
        )


# Storage exceptions


class StorageFailureError(StockKernelError):
    """
    Underlying persistence failed.

    The transaction has been rolled back before this is raised.
    """

    code: str = "STORAGE_FAILURE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage failure during {operation}: {detail}")


# Immutability exceptions


class ImmutabilityError(StockKernelError):
    """Base exception for immutability violations."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an immutable record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
