"""
stock_config -- single public entrypoint for ledger configuration.

Responsibility:
    Provides the one way to obtain runtime settings, ``get_active_config()``.
    Returns a frozen ``LedgerConfig``.

Architecture position:
    Configuration -- sits above ``stock_kernel``.  The kernel never imports
    from this package; ``LedgerOrchestrator.from_config()`` takes the
    resulting object.

Failure modes:
    - ``FileNotFoundError`` -- the settings file does not exist.
    - ``ValueError`` -- unknown, missing or invalid settings.

Audit relevance:
    Every successful call emits a ``STOCK_CONFIG_TRACE`` log record with the
    config id, version, checksum and the effective settings.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Mapping

from stock_config.loader import load_yaml_file, parse_ledger_config
from stock_config.schema import LedgerConfig
from stock_kernel.logging_config import get_logger

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "sets" / "default.yaml"


def get_active_config(
    config_path: Path | str | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> LedgerConfig:
    """The ONLY public configuration entrypoint.

    Args:
        config_path: YAML settings file.  Defaults to
            ``stock_config/sets/default.yaml``.
        overrides: Setting values applied on top of the file, e.g.
            ``{"cost_policy": "latest"}``.

    Raises:
        FileNotFoundError: If the settings file does not exist.
        ValueError: If the settings do not validate.
    """
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    config = parse_ledger_config(load_yaml_file(path), overrides)

    _logger.info(
        "STOCK_CONFIG_TRACE",
        extra={
            "trace_type": "STOCK_CONFIG_TRACE",
            "config_id": config.config_id,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(path),
            "override_keys": sorted(overrides or {}),
            **config.settings(),
        },
    )
    return config


__all__ = ["DEFAULT_CONFIG_PATH", "LedgerConfig", "get_active_config"]
