"""Tests for stock_config: defaults, overrides, validation and the trace record."""

import pytest
import yaml

from stock_config import DEFAULT_CONFIG_PATH, get_active_config
from stock_config.loader import compute_checksum, parse_ledger_config
from stock_config.schema import LedgerConfig
from stock_kernel.domain.costing import CostPolicy


def _write(tmp_path, data):
    path = tmp_path / "ledger.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


def _settings(**changes):
    settings = {
        "cost_policy": "weighted_average",
        "lock_timeout_seconds": 5.0,
        "default_unit": "EA",
        "page_size": 100,
        "quantity_places": 9,
    }
    settings.update(changes)
    return settings


class TestDefaults:
    def test_shipped_defaults(self):
        config = get_active_config()

        assert config.config_id == "default"
        assert config.version == 1
        assert config.cost_policy is CostPolicy.WEIGHTED_AVERAGE
        assert config.lock_timeout_seconds == 5.0
        assert config.default_unit == "EA"
        assert config.page_size == 100
        assert config.quantity_places == 9
        assert len(config.checksum) == 64

    def test_default_path_exists(self):
        assert DEFAULT_CONFIG_PATH.is_file()

    def test_deterministic_checksum(self):
        assert get_active_config().checksum == get_active_config().checksum


class TestOverrides:
    def test_override_applied(self):
        config = get_active_config(overrides={"cost_policy": "LATEST", "default_unit": "kg"})

        assert config.cost_policy is CostPolicy.LATEST
        assert config.default_unit == "KG"

    def test_override_changes_checksum(self):
        assert (
            get_active_config(overrides={"page_size": 50}).checksum
            != get_active_config().checksum
        )

    def test_unknown_override(self):
        with pytest.raises(ValueError, match="Unknown ledger settings"):
            get_active_config(overrides={"max_stock": 10})


class TestValidation:
    @pytest.mark.parametrize(
        "changes",
        [
            {"cost_policy": "fifo"},
            {"lock_timeout_seconds": 0},
            {"lock_timeout_seconds": "fast"},
            {"page_size": 0},
            {"page_size": 2.5},
            {"page_size": True},
            {"quantity_places": 12},
            {"default_unit": " "},
        ],
    )
    def test_invalid_values(self, tmp_path, changes):
        path = _write(tmp_path, {"config_id": "site", "version": 2, "ledger": _settings(**changes)})
        with pytest.raises(ValueError):
            get_active_config(path)

    def test_missing_setting(self, tmp_path):
        settings = _settings()
        del settings["page_size"]
        path = _write(tmp_path, {"ledger": settings})

        with pytest.raises(ValueError, match="Missing ledger settings"):
            get_active_config(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "ledger.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            get_active_config(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            get_active_config(tmp_path / "absent.yaml")

    def test_schema_rejects_direct_construction(self):
        with pytest.raises(ValueError):
            LedgerConfig(
                config_id="x",
                version=1,
                cost_policy="latest",
                lock_timeout_seconds=1.0,
                default_unit="EA",
                page_size=10,
                quantity_places=2,
            )


class TestCustomFile:
    def test_loaded_from_path(self, tmp_path):
        path = _write(
            tmp_path,
            {"config_id": "site", "version": 2, "ledger": _settings(quantity_places=3)},
        )

        config = get_active_config(str(path))

        assert config.config_id == "site"
        assert config.version == 2
        assert config.quantity_places == 3

    def test_checksum_covers_identity_and_settings(self):
        data = {"config_id": "site", "version": 2, "ledger": _settings()}

        config = parse_ledger_config(data)

        assert config.checksum == compute_checksum(
            {"config_id": "site", "version": 2, "ledger": config.settings()}
        )


def test_trace_record_emitted(captured_logs):
    config = get_active_config(overrides={"page_size": 25})

    [trace] = [r for r in captured_logs() if r["message"] == "STOCK_CONFIG_TRACE"]
    assert trace["logger"] == "stock_kernel.config"
    assert trace["checksum"] == config.checksum
    assert trace["override_keys"] == ["page_size"]
    assert trace["page_size"] == 25
    assert trace["cost_policy"] == "weighted_average"
