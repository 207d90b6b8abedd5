"""Configuration loading and validation utilities for locator healing."""

import copy
from dataclasses import replace
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

from .models.healing_models import HealingConfiguration, ProviderKind
from .exceptions import ConfigurationError
from .config import settings

logger = logging.getLogger(__name__)


class HealingConfigLoader:
    """Loads and validates the locator healing configuration."""

    DEFAULT_CONFIG = {
        "locator_healing": {
            "enabled": True,
            "ranking": {
                "max_candidates": 8
            },
            "providers": {
                "enabled": [kind.value for kind in ProviderKind],
                "ml_timeout": 2.0,
                "max_workers": 4
            },
            "similar_elements": {
                "threshold": 0.5,
                "limit": 3
            },
            "learning": {
                "flush_batch_size": 10,
                "history_limit": 5000,
                "recent_window_days": 7
            }
        }
    }

    def __init__(self, config_path: Optional[str] = None):
        """Initialize config loader with optional custom path."""
        self.config_path = Path(config_path or settings.HEALING_CONFIG_PATH)
        self._config_cache: Optional[HealingConfiguration] = None
        self._config_file_mtime: Optional[float] = None

    def load_config(self, force_reload: bool = False) -> HealingConfiguration:
        """Load and validate the healing configuration.

        Args:
            force_reload: Force reload even if cached config exists

        Returns:
            HealingConfiguration: Validated configuration object

        Raises:
            ConfigurationError: If configuration is invalid
        """
        if not force_reload and self._config_cache and self._is_config_current():
            return self._config_cache

        try:
            config_data = self._load_config_file()
            healing_config = self._parse_healing_config(config_data)
            self._validate_config(healing_config)

            self._config_cache = healing_config
            self._config_file_mtime = (
                self.config_path.stat().st_mtime if self.config_path.exists() else None
            )

            logger.info(f"Loaded locator healing configuration from {self.config_path}")
            return healing_config

        except ConfigurationError as e:
            logger.error(f"Failed to load locator healing configuration: {e}")
            raise
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Failed to load locator healing configuration: {e}")
            raise ConfigurationError(f"Configuration loading failed: {e}") from e

    def save_config(self, config: HealingConfiguration) -> None:
        """Save configuration to file.

        Args:
            config: Configuration to save

        Raises:
            ConfigurationError: If validation or writing fails
        """
        self._validate_config(config)

        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)

            config_data = {"locator_healing": self._config_to_dict(config)}
            with open(self.config_path, 'w', encoding='utf-8') as f:
                yaml.dump(config_data, f, default_flow_style=False, indent=2, sort_keys=False)

            self._config_cache = config
            self._config_file_mtime = self.config_path.stat().st_mtime

            logger.info(f"Saved locator healing configuration to {self.config_path}")

        except OSError as e:
            logger.error(f"Failed to save locator healing configuration: {e}")
            raise ConfigurationError(f"Configuration saving failed: {e}") from e

    def _load_config_file(self) -> Dict[str, Any]:
        """Load configuration from file or return defaults."""
        if not self.config_path.exists():
            logger.info(f"Config file {self.config_path} not found, using defaults")
            return copy.deepcopy(self.DEFAULT_CONFIG)

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping at the top level")

        return self._deep_merge(copy.deepcopy(self.DEFAULT_CONFIG), config_data)

    def _parse_healing_config(self, config_data: Dict[str, Any]) -> HealingConfiguration:
        """Parse configuration data into a HealingConfiguration object."""
        section = config_data.get("locator_healing") or {}

        ranking = section.get("ranking", {})
        providers = section.get("providers", {})
        similar = section.get("similar_elements", {})
        learning = section.get("learning", {})

        provider_names = providers.get("enabled", [kind.value for kind in ProviderKind])
        try:
            provider_kinds = [ProviderKind(name) for name in provider_names]
        except ValueError as e:
            raise ConfigurationError(f"Invalid provider kind: {e}") from e

        return HealingConfiguration(
            enabled=section.get("enabled", True),
            max_candidates=ranking.get("max_candidates", 8),
            providers=provider_kinds,
            ml_timeout=float(providers.get("ml_timeout", 2.0)),
            max_workers=providers.get("max_workers", 4),
            similarity_threshold=float(similar.get("threshold", 0.5)),
            similar_element_limit=similar.get("limit", 3),
            flush_batch_size=learning.get("flush_batch_size", 10),
            history_limit=learning.get("history_limit", 5000),
            recent_window_days=learning.get("recent_window_days", 7),
        )

    def _config_to_dict(self, config: HealingConfiguration) -> Dict[str, Any]:
        """Convert HealingConfiguration to the nested YAML structure."""
        return {
            "enabled": config.enabled,
            "ranking": {
                "max_candidates": config.max_candidates
            },
            "providers": {
                "enabled": [kind.value for kind in config.providers],
                "ml_timeout": config.ml_timeout,
                "max_workers": config.max_workers
            },
            "similar_elements": {
                "threshold": config.similarity_threshold,
                "limit": config.similar_element_limit
            },
            "learning": {
                "flush_batch_size": config.flush_batch_size,
                "history_limit": config.history_limit,
                "recent_window_days": config.recent_window_days
            }
        }

    def _validate_config(self, config: HealingConfiguration) -> None:
        """Validate configuration values.

        Args:
            config: Configuration to validate

        Raises:
            ConfigurationError: If validation fails
        """
        errors = []

        if config.max_candidates < 1 or config.max_candidates > 50:
            errors.append("max_candidates must be between 1 and 50")

        if config.ml_timeout < 0.1 or config.ml_timeout > 60:
            errors.append("ml_timeout must be between 0.1 and 60 seconds")

        if config.similarity_threshold < 0.0 or config.similarity_threshold > 1.0:
            errors.append("similarity_threshold must be between 0.0 and 1.0")

        if config.similar_element_limit < 1 or config.similar_element_limit > 20:
            errors.append("similar_element_limit must be between 1 and 20")

        if config.max_workers < 1 or config.max_workers > 32:
            errors.append("max_workers must be between 1 and 32")

        if config.flush_batch_size < 1 or config.flush_batch_size > 1000:
            errors.append("flush_batch_size must be between 1 and 1000")

        if config.history_limit < 100 or config.history_limit > 100000:
            errors.append("history_limit must be between 100 and 100000")

        if config.recent_window_days < 1 or config.recent_window_days > 90:
            errors.append("recent_window_days must be between 1 and 90")

        if not config.providers:
            errors.append("At least one strategy provider must be enabled")

        if len(config.providers) != len(set(config.providers)):
            errors.append("Duplicate strategy providers are not allowed")

        if errors:
            raise ConfigurationError("Configuration validation failed: " + "; ".join(errors))

    def _is_config_current(self) -> bool:
        """Check if cached config is still current."""
        if not self.config_path.exists():
            return self._config_file_mtime is None

        return self._config_file_mtime == self.config_path.stat().st_mtime

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result


# Global config loader instance
config_loader = HealingConfigLoader()


def get_healing_config(force_reload: bool = False) -> HealingConfiguration:
    """Get the current locator healing configuration.

    The process-wide ``SELF_HEALING_ENABLED`` and ``ML_SCORER_TIMEOUT`` settings
    override the file values.
    """
    config = replace(config_loader.load_config(force_reload))
    if not settings.SELF_HEALING_ENABLED:
        config.enabled = False
    if "ML_SCORER_TIMEOUT" in settings.model_fields_set:
        config.ml_timeout = settings.ML_SCORER_TIMEOUT
    return config


def save_healing_config(config: HealingConfiguration) -> None:
    """Save locator healing configuration."""
    config_loader.save_config(config)
