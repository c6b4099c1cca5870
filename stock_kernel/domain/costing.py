"""
Costing -- unit cost recomputation on receipts.

Responsibility:
    Given the on-hand position of a stock item and an incoming receipt,
    compute the item's new unit cost under the configured policy.

Architecture position:
    Kernel > Domain -- pure functions, zero I/O.  Called by StockLedger.

Policies:
    WEIGHTED_AVERAGE (default)
        (on_hand * current_cost + received * received_cost) / (on_hand + received)
        When nothing is on hand the received cost is taken as-is.
    LATEST
        The received cost replaces the current cost.

Results are quantized to ``COST_PLACES`` decimal places (the Numeric scale
of the cost columns) with ROUND_HALF_UP.
"""

from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

COST_PLACES = 9
_COST_QUANTUM = Decimal(1).scaleb(-COST_PLACES)


class CostPolicy(str, Enum):
    """Unit cost policy applied to receipts."""

    WEIGHTED_AVERAGE = "weighted_average"
    LATEST = "latest"


def quantize_cost(value: Decimal) -> Decimal:
    return value.quantize(_COST_QUANTUM, rounding=ROUND_HALF_UP)


def recompute_unit_cost(
    policy: CostPolicy,
    on_hand: Decimal,
    current_cost: Decimal,
    received: Decimal,
    received_cost: Decimal,
) -> Decimal:
    """
    Unit cost after receiving ``received`` units at ``received_cost``.

    Preconditions:
        on_hand >= 0, received > 0, received_cost >= 0.

    Raises:
        ValueError: if a precondition does not hold.
    """
    if on_hand < 0:
        raise ValueError(f"on_hand must be non-negative, got {on_hand}")
    if received <= 0:
        raise ValueError(f"received must be positive, got {received}")
    if received_cost < 0:
        raise ValueError(f"received_cost must be non-negative, got {received_cost}")

    if policy is CostPolicy.LATEST or on_hand == 0:
        return quantize_cost(received_cost)

    total_value = on_hand * current_cost + received * received_cost
    return quantize_cost(total_value / (on_hand + received))
