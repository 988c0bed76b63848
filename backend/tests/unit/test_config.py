"""Tests for settings defaults, validation and YAML merging."""

import pytest
import yaml
from pydantic import ValidationError

from wager.config import EngineConfig, LedgerConfig, Settings


class TestEngineConfig:
    def test_defaults(self):
        config = EngineConfig()
        assert config.owner == "owner"
        assert config.resolver_account == "owner"
        assert config.fee_rate_bps == 250
        assert config.max_fee_rate_bps == 1000

    def test_explicit_resolver(self):
        assert EngineConfig(resolver="oracle").resolver_account == "oracle"

    def test_default_rate_above_cap(self):
        with pytest.raises(ValidationError):
            EngineConfig(fee_rate_bps=1500)

    def test_cap_cannot_exceed_ten_percent(self):
        with pytest.raises(ValidationError):
            EngineConfig(max_fee_rate_bps=1001)
        with pytest.raises(ValidationError):
            EngineConfig(max_fee_rate_bps=10_000, fee_rate_bps=250)

    def test_lower_cap_is_allowed(self):
        config = EngineConfig(max_fee_rate_bps=500, fee_rate_bps=100)
        assert config.max_fee_rate_bps == 500

    def test_engine_account_must_be_separate(self):
        with pytest.raises(ValidationError):
            EngineConfig(owner="house", engine_account="house")

    def test_negative_opening_balance(self):
        with pytest.raises(ValidationError):
            LedgerConfig(initial_balances={"alice": -10})


class TestYamlConfig:
    def test_missing_file_keeps_defaults(self, tmp_path):
        settings = Settings(data_dir=tmp_path)
        settings.load_yaml_config()
        assert settings.engine == EngineConfig()

    def test_sections_merge_over_defaults(self, tmp_path):
        (tmp_path / "config.yaml").write_text(
            yaml.safe_dump(
                {
                    "engine": {"owner": "house", "fee_rate_bps": 100},
                    "ledger": {"initial_balances": {"alice": 500}},
                }
            ),
            encoding="utf-8",
        )
        settings = Settings(data_dir=tmp_path)
        settings.load_yaml_config()

        assert settings.engine.owner == "house"
        assert settings.engine.fee_rate_bps == 100
        assert settings.engine.max_description_length == 256
        assert settings.ledger.initial_balances == {"alice": 500}

    def test_invalid_section_values_raise(self, tmp_path):
        (tmp_path / "config.yaml").write_text(
            yaml.safe_dump({"engine": {"fee_rate_bps": 5000}}), encoding="utf-8"
        )
        settings = Settings(data_dir=tmp_path)
        with pytest.raises(ValidationError):
            settings.load_yaml_config()

    def test_corrupt_yaml_raises(self, tmp_path):
        (tmp_path / "config.yaml").write_text("engine: [unclosed", encoding="utf-8")
        settings = Settings(data_dir=tmp_path)
        with pytest.raises(yaml.YAMLError):
            settings.load_yaml_config()

    def test_data_dir_is_resolved(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        settings = Settings(data_dir="data")
        assert settings.data_dir == (tmp_path / "data").resolve()
