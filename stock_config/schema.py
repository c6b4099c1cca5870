"""
Configuration schema (``stock_config.schema``).

Frozen, self-validating settings consumed by the kernel's composition root
(``LedgerOrchestrator.from_config``).  Validation happens at construction,
so an invalid file never yields a config object.
"""

from __future__ import annotations

from dataclasses import dataclass

from stock_kernel.domain.costing import COST_PLACES, CostPolicy

SETTING_NAMES = (
    "cost_policy",
    "lock_timeout_seconds",
    "default_unit",
    "page_size",
    "quantity_places",
)


@dataclass(frozen=True)
class LedgerConfig:
    """Runtime settings of the stock ledger."""

    config_id: str
    version: int
    cost_policy: CostPolicy
    lock_timeout_seconds: float
    default_unit: str
    page_size: int
    quantity_places: int
    checksum: str = ""

    def __post_init__(self):
        if not self.config_id:
            raise ValueError("config_id must not be empty")
        if not isinstance(self.cost_policy, CostPolicy):
            raise ValueError(f"cost_policy must be a CostPolicy, got {self.cost_policy!r}")
        if self.lock_timeout_seconds <= 0:
            raise ValueError(
                f"lock_timeout_seconds must be positive, got {self.lock_timeout_seconds}"
            )
        if not self.default_unit or not self.default_unit.strip():
            raise ValueError("default_unit must not be empty")
        if self.page_size <= 0:
            raise ValueError(f"page_size must be positive, got {self.page_size}")
        if not 0 <= self.quantity_places <= COST_PLACES:
            raise ValueError(
                f"quantity_places must be between 0 and {COST_PLACES}, "
                f"got {self.quantity_places}"
            )

    def settings(self) -> dict[str, object]:
        """The ledger settings in canonical, JSON-friendly form."""
        return {
            "cost_policy": self.cost_policy.value,
            "lock_timeout_seconds": self.lock_timeout_seconds,
            "default_unit": self.default_unit,
            "page_size": self.page_size,
            "quantity_places": self.quantity_places,
        }
