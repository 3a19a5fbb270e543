"""Test settings loading from TOML, overrides and environment."""

from __future__ import annotations

import pytest

from auric_atx.core.config import Settings, load_settings
from auric_atx.core.enums import StorageBackend


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings()
        assert settings.epochs.confirm_after == 3
        assert settings.storage.backend == StorageBackend.MEMORY
        assert settings.trend.default_limit == 30

    def test_weights_default_to_unit_sum(self):
        s = Settings().scoring
        total = (
            s.weight_discipline + s.weight_risk_integrity + s.weight_execution_stability
            + s.weight_behavioural_volatility + s.weight_consistency
        )
        assert total == pytest.approx(1.0)

    def test_toml(self, tmp_path):
        path = tmp_path / "atx.toml"
        path.write_text(
            "[epochs]\nconfirm_after = 5\n\n"
            "[storage]\nbackend = \"sql\"\nurl = \"sqlite+aiosqlite:///atx.db\"\n"
        )
        settings = load_settings(path)
        assert settings.epochs.confirm_after == 5
        assert settings.epochs.recovery_window == 3
        assert settings.storage.backend == StorageBackend.SQL

    def test_overrides_merge_sections(self, tmp_path):
        path = tmp_path / "atx.toml"
        path.write_text("[trend]\ndefault_limit = 10\nmax_limit = 50\n")
        settings = load_settings(path, overrides={"trend": {"max_limit": 90}})
        assert settings.trend.default_limit == 10
        assert settings.trend.max_limit == 90

    def test_missing_file_uses_defaults(self, tmp_path):
        assert load_settings(tmp_path / "absent.toml").api.port == 3000

    def test_env_nested(self, monkeypatch):
        monkeypatch.setenv("ATX_EPOCHS__RECOVERY_WINDOW", "7")
        monkeypatch.setenv("ATX_API__ENABLE_DEV_ROUTES", "false")
        settings = load_settings()
        assert settings.epochs.recovery_window == 7
        assert settings.api.enable_dev_routes is False

    def test_rejects_zero_confirmation(self):
        with pytest.raises(ValueError):
            load_settings(overrides={"epochs": {"confirm_after": 0}})
