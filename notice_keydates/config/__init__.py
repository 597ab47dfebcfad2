"""
Configuration module.

Provides:
- YAML settings loading with validation
- Environment variable substitution
"""

from .loader import ConfigError, ConfigLoader, Settings, load_settings

__all__ = ["ConfigError", "ConfigLoader", "Settings", "load_settings"]
