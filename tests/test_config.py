"""
Unit tests for configuration loading and validation.
"""

import os
import tempfile

import pytest
import yaml

from gridbill.config.loader import (
    CONFIG_ENV_VAR,
    ApiConfig,
    AppConfig,
    BillingConfig,
    LoggingConfig,
    load_config,
)


class TestConfigLoading:
    """Test configuration loading and validation."""

    def setup_method(self):
        """Set up test environment."""
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        """Clean up test environment."""
        import shutil
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _write_config(self, config_data, filename: str = "gridbill.yaml") -> str:
        """Write configuration data to temporary file."""
        config_path = os.path.join(self.temp_dir, filename)
        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.dump(config_data, f)
        return config_path

    def test_full_config(self):
        path = self._write_config({
            "database": {"path": "/tmp/bills.db"},
            "billing": {"default_due_days": 30},
            "logging": {"level": "debug"},
            "api": {"host": "0.0.0.0", "port": 9000},
        })
        config = load_config(path)
        assert config.database.path == "/tmp/bills.db"
        assert config.billing.default_due_days == 30
        assert config.logging.level == "DEBUG"
        assert config.api.port == 9000

    def test_partial_config_uses_defaults(self):
        path = self._write_config({"billing": {"default_due_days": 10}})
        config = load_config(path)
        assert config.billing.default_due_days == 10
        assert config.database.path == "gridbill.db"
        assert config.api == ApiConfig()

    def test_empty_file(self):
        path = os.path.join(self.temp_dir, "empty.yaml")
        open(path, "w").close()
        assert load_config(path) == AppConfig()

    def test_explicit_missing_file(self):
        with pytest.raises(FileNotFoundError):
            load_config(os.path.join(self.temp_dir, "missing.yaml"))

    def test_implicit_missing_file(self, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, os.path.join(self.temp_dir, "missing.yaml"))
        assert load_config() == AppConfig()

    def test_env_var_path(self, monkeypatch):
        path = self._write_config({"api": {"port": 8123}})
        monkeypatch.setenv(CONFIG_ENV_VAR, path)
        assert load_config().api.port == 8123

    def test_unknown_top_level_key(self):
        path = self._write_config({"payments": {}})
        with pytest.raises(ValueError, match="Unknown configuration keys"):
            load_config(path)

    def test_unknown_section_key(self):
        path = self._write_config({"billing": {"tax_rate": 0.1}})
        with pytest.raises(ValueError, match="Unknown keys in billing"):
            load_config(path)

    def test_section_not_mapping(self):
        path = self._write_config({"database": "bills.db"})
        with pytest.raises(ValueError, match="must be a dictionary"):
            load_config(path)

    def test_wrong_type(self):
        path = self._write_config({"api": {"port": "8000"}})
        with pytest.raises(ValueError, match="must be an integer"):
            load_config(path)

    def test_not_a_mapping(self):
        path = self._write_config(["a", "b"])
        with pytest.raises(ValueError):
            load_config(path)

    def test_invalid_yaml(self):
        path = os.path.join(self.temp_dir, "bad.yaml")
        with open(path, "w", encoding="utf-8") as f:
            f.write("database: [unclosed")
        with pytest.raises(yaml.YAMLError):
            load_config(path)


class TestConfigValidation:
    """Validation in the config dataclasses."""

    def test_due_days_positive(self):
        with pytest.raises(ValueError):
            BillingConfig(default_due_days=0)

    def test_log_level(self):
        with pytest.raises(ValueError):
            LoggingConfig(level="VERBOSE")
        assert LoggingConfig(level="WARNING").numeric_level == 30

    def test_port_range(self):
        with pytest.raises(ValueError):
            ApiConfig(port=70000)
