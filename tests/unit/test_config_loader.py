"""
Unit tests for the healing configuration loader.
"""

from unittest.mock import patch

import pytest
import yaml

from locator_healing.core import config_loader as config_loader_module
from locator_healing.core.config import Settings, settings
from locator_healing.core.config_loader import HealingConfigLoader, get_healing_config
from locator_healing.core.exceptions import ConfigurationError
from locator_healing.core.models import HealingConfiguration, ProviderKind


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return str(path)


class TestLoadConfig:
    """Test loading and validation."""

    def test_defaults_when_file_missing(self, tmp_path):
        config = HealingConfigLoader(str(tmp_path / "missing.yaml")).load_config()

        assert config.to_dict() == HealingConfiguration().to_dict()

    def test_partial_override_is_merged(self, tmp_path):
        path = write_yaml(tmp_path / "healing.yaml", {
            "locator_healing": {
                "ranking": {"max_candidates": 3},
                "providers": {"enabled": ["failure-fallback", "attribute"]},
            }
        })

        config = HealingConfigLoader(path).load_config()

        assert config.max_candidates == 3
        assert config.providers == [ProviderKind.FAILURE_FALLBACK, ProviderKind.ATTRIBUTE]
        assert config.ml_timeout == 2.0
        assert config.history_limit == 5000

    @pytest.mark.parametrize("section, values", [
        ("ranking", {"max_candidates": 0}),
        ("providers", {"ml_timeout": 0.0}),
        ("providers", {"max_workers": 64}),
        ("providers", {"enabled": []}),
        ("providers", {"enabled": ["attribute", "attribute"]}),
        ("similar_elements", {"threshold": 1.5}),
        ("learning", {"history_limit": 10}),
        ("learning", {"recent_window_days": 365}),
    ])
    def test_invalid_values(self, tmp_path, section, values):
        path = write_yaml(tmp_path / "healing.yaml", {"locator_healing": {section: values}})

        with pytest.raises(ConfigurationError):
            HealingConfigLoader(path).load_config()

    def test_unknown_provider(self, tmp_path):
        path = write_yaml(tmp_path / "healing.yaml", {
            "locator_healing": {"providers": {"enabled": ["attribute", "teleport"]}}
        })

        with pytest.raises(ConfigurationError, match="Invalid provider kind"):
            HealingConfigLoader(path).load_config()

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "healing.yaml"
        path.write_text("locator_healing: [unclosed")

        with pytest.raises(ConfigurationError):
            HealingConfigLoader(str(path)).load_config()

    def test_non_mapping_document(self, tmp_path):
        path = tmp_path / "healing.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ConfigurationError):
            HealingConfigLoader(str(path)).load_config()

    def test_cached_until_forced(self, tmp_path):
        loader = HealingConfigLoader(str(tmp_path / "missing.yaml"))

        first = loader.load_config()
        assert loader.load_config() is first
        assert loader.load_config(force_reload=True) is not first


class TestSaveConfig:
    """Test writing configuration back to YAML."""

    def test_round_trip(self, tmp_path):
        path = str(tmp_path / "nested" / "healing.yaml")
        config = HealingConfiguration(
            max_candidates=5,
            providers=[ProviderKind.ATTRIBUTE, ProviderKind.ML_PREDICTION],
            ml_timeout=0.5,
            recent_window_days=14,
        )

        HealingConfigLoader(path).save_config(config)
        loaded = HealingConfigLoader(path).load_config()

        assert loaded.to_dict() == config.to_dict()

    def test_invalid_config_not_written(self, tmp_path):
        path = tmp_path / "healing.yaml"

        with pytest.raises(ConfigurationError):
            HealingConfigLoader(str(path)).save_config(HealingConfiguration(max_candidates=0))

        assert not path.exists()


class TestEnvironmentOverrides:
    """Test process-level overrides of the file configuration."""

    def test_global_disable(self, tmp_path):
        loader = HealingConfigLoader(str(tmp_path / "missing.yaml"))

        with patch.object(config_loader_module, "config_loader", loader), \
                patch.object(config_loader_module, "settings", Settings(SELF_HEALING_ENABLED=False)):
            config = get_healing_config(force_reload=True)

        assert config.enabled is False
        assert loader.load_config().enabled is True

    def test_explicit_ml_timeout(self, tmp_path):
        loader = HealingConfigLoader(str(tmp_path / "missing.yaml"))

        with patch.object(config_loader_module, "config_loader", loader), \
                patch.object(config_loader_module, "settings", Settings(ML_SCORER_TIMEOUT=0.25)):
            config = get_healing_config(force_reload=True)

        assert config.ml_timeout == 0.25


class TestSettings:
    """Test environment settings validation."""

    def test_log_level_normalized(self):
        assert Settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(ValueError):
            Settings(LOG_LEVEL="chatty")

    def test_invalid_timeout(self):
        with pytest.raises(ValueError):
            Settings(ML_SCORER_TIMEOUT=0)

    def test_module_settings(self):
        assert settings.HEALING_CONFIG_PATH
