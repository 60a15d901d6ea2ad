"""
Configuration module for the node agent reconciler.

Loads configuration from environment variables.
Supports plugin-based appliers with applier-specific configuration.
"""

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

PRECEDENCE_VALUES = ("base-first", "platform-first")


@dataclass
class ReconcilerConfig:
    """Reconciliation pass configuration."""

    # base-first keeps the historical precedence; platform-first lets the
    # platform profile win over Base for fields both define
    defaults_precedence: str = "base-first"
    applier: str = "memory"
    control_namespace: str = "logging"

    def __post_init__(self):
        if self.defaults_precedence not in PRECEDENCE_VALUES:
            raise ValueError(
                f"Invalid defaults precedence: {self.defaults_precedence}. "
                f"Expected one of: {', '.join(PRECEDENCE_VALUES)}"
            )

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            defaults_precedence=os.getenv("DEFAULTS_PRECEDENCE", "base-first"),
            applier=os.getenv("APPLIER", "memory"),
            control_namespace=os.getenv("CONTROL_NAMESPACE", "logging"),
        )


@dataclass
class LoggingConfig:
    """Log output configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO").upper(),
            format=os.getenv(
                "LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ),
        )


@dataclass
class PluginConfig:
    """Applier plugin configuration."""

    # Applier-specific configurations keyed by applier name
    plugin_configs: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_env(cls):
        """Load from environment variables."""
        plugin_configs = {}
        if os.getenv("PLUGIN_CONFIGS"):
            try:
                plugin_configs = json.loads(os.getenv("PLUGIN_CONFIGS"))
            except json.JSONDecodeError:
                pass

        return cls(plugin_configs=plugin_configs)

    def get_plugin_config(self, plugin_name: str) -> Dict[str, Any]:
        """Get configuration for a specific applier."""
        return self.plugin_configs.get(plugin_name, {})


@dataclass
class Config:
    """Main configuration object."""

    reconciler: ReconcilerConfig
    logging: LoggingConfig
    plugins: PluginConfig

    @classmethod
    def from_env(cls):
        """Load all configuration from environment variables."""
        return cls(
            reconciler=ReconcilerConfig.from_env(),
            logging=LoggingConfig.from_env(),
            plugins=PluginConfig.from_env(),
        )

    @classmethod
    def default(cls):
        """Return default configuration."""
        return cls(
            reconciler=ReconcilerConfig(),
            logging=LoggingConfig(),
            plugins=PluginConfig(),
        )


# Global config instance
config: Optional[Config] = None


def load_config() -> Config:
    """Load configuration (singleton pattern)."""
    global config
    if config is None:
        config = Config.from_env()
    return config


def get_config() -> Config:
    """Get the current configuration."""
    if config is None:
        return load_config()
    return config


def reset_config() -> None:
    """Reset configuration (mainly for testing)."""
    global config
    config = None
