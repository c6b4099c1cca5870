"""
Configuration loader (``stock_config.loader``).

Responsibility
--------------
Reads a YAML settings file, merges caller overrides and parses the result
into a frozen ``LedgerConfig``.  Runtime code goes through
``stock_config.get_active_config()`` rather than calling this directly.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Unknown setting, wrong type or out-of-range value  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import replace
from pathlib import Path
from typing import Any, Mapping

import yaml

from stock_config.schema import SETTING_NAMES, LedgerConfig
from stock_kernel.domain.costing import CostPolicy


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return data


def compute_checksum(data: Mapping[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()


def _number(settings: Mapping[str, Any], name: str, kind: type) -> Any:
    value = settings[name]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if kind is int and not float(value).is_integer():
        raise ValueError(f"{name} must be an integer, got {value!r}")
    return kind(value)


def merge_settings(
    data: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> dict[str, Any]:
    """
    The ``ledger`` section of ``data`` with ``overrides`` applied on top.

    Raises:
        ValueError: unknown or missing setting names.
    """
    section = data.get("ledger") or {}
    if not isinstance(section, Mapping):
        raise ValueError("'ledger' section must be a mapping")

    merged = dict(section)
    merged.update(overrides or {})

    unknown = sorted(set(merged) - set(SETTING_NAMES))
    if unknown:
        raise ValueError(f"Unknown ledger settings: {', '.join(unknown)}")
    missing = [name for name in SETTING_NAMES if name not in merged]
    if missing:
        raise ValueError(f"Missing ledger settings: {', '.join(missing)}")
    return merged


def parse_ledger_config(
    data: Mapping[str, Any],
    overrides: Mapping[str, Any] | None = None,
) -> LedgerConfig:
    """
    Parse a ``LedgerConfig`` from loaded YAML data.

    Postconditions:
        ``checksum`` covers the identity (config_id, version) and the merged
        settings, so an override changes the checksum.
    """
    settings = merge_settings(data, overrides)

    try:
        cost_policy = CostPolicy(str(settings["cost_policy"]).strip().lower())
    except ValueError:
        allowed = ", ".join(p.value for p in CostPolicy)
        raise ValueError(
            f"cost_policy must be one of {allowed}, got {settings['cost_policy']!r}"
        ) from None

    config = LedgerConfig(
        config_id=str(data.get("config_id", "default")),
        version=int(data.get("version", 1)),
        cost_policy=cost_policy,
        lock_timeout_seconds=_number(settings, "lock_timeout_seconds", float),
        default_unit=str(settings["default_unit"]).strip().upper(),
        page_size=_number(settings, "page_size", int),
        quantity_places=_number(settings, "quantity_places", int),
    )
    checksum = compute_checksum(
        {
            "config_id": config.config_id,
            "version": config.version,
            "ledger": config.settings(),
        }
    )
    return replace(config, checksum=checksum)
