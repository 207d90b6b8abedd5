"""
Core module for the locator healing engine.

This module contains:
- config.py: Process-level settings
- config_loader.py: YAML healing configuration
- logging_config.py: Logging configuration
- metrics.py: Metrics and monitoring
- exceptions.py: Error types
"""

__all__ = ["config", "config_loader", "logging_config", "metrics", "exceptions"]
