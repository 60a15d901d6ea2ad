"""
Plugin Registry - Discovery and registration of applier plugins.

This module provides the central registry for appliers, handling
discovery, registration, and instantiation.
"""

from importlib.metadata import entry_points
from typing import Any, Dict, Optional, Type

from plugins.base import logger
from plugins.appliers.base import ResourceApplier

ENTRY_POINT_GROUP = "nodeagent_operator.appliers"


class PluginRegistry:
    """
    Central registry for applier plugins.

    Handles discovery, registration, and instantiation of appliers.
    """

    def __init__(self):
        # Registered applier classes (not instantiated)
        self._applier_plugins: Dict[str, Type[ResourceApplier]] = {}

        # Cached applier metadata (name, version) to avoid repeated instantiation
        self._applier_plugin_info: Dict[str, Dict[str, str]] = {}

        # Instantiated and initialized applier instances
        self._applier_instances: Dict[str, ResourceApplier] = {}

        # Applier configurations loaded from environment
        self._applier_plugin_configs: Dict[str, Dict[str, Any]] = {}

    def register_applier_plugin(self, plugin_class: Type[ResourceApplier]) -> None:
        """
        Register an applier plugin class.

        Args:
            plugin_class: The ResourceApplier subclass to register
        """
        # Create temporary instance to get name/version (only once at registration)
        temp_instance = plugin_class()
        name = temp_instance.name
        version = temp_instance.version

        if name in self._applier_plugins:
            logger.warning(f"Overwriting existing applier plugin: {name}")

        self._applier_plugins[name] = plugin_class
        self._applier_plugin_info[name] = {"name": name, "version": version}
        self._applier_plugin_configs[name] = plugin_class.load_config_from_env()
        logger.info(f"Registered applier plugin: {name} v{version}")

    async def get_applier(
        self, name: str, config: Optional[Dict[str, Any]] = None
    ) -> ResourceApplier:
        """
        Get an initialized applier instance.

        The environment configuration of the applier is used as a base and
        ``config`` values take precedence over it.

        Args:
            name: The applier name to retrieve
            config: Optional configuration to pass to initialize()

        Returns:
            An initialized ResourceApplier instance

        Raises:
            ValueError: If the applier name is not registered
        """
        if name not in self._applier_plugins:
            available = ", ".join(self._applier_plugins.keys()) or "none"
            raise ValueError(
                f"Unknown applier plugin: {name}. Available plugins: {available}"
            )

        if name not in self._applier_instances:
            plugin_config = dict(self._applier_plugin_configs.get(name, {}))
            if config:
                plugin_config.update(config)
            plugin = self._applier_plugins[name]()
            await plugin.initialize(plugin_config)
            self._applier_instances[name] = plugin
            logger.info(f"Initialized applier plugin: {name}")

        return self._applier_instances[name]

    def list_applier_plugins(self) -> list[str]:
        """List all registered applier plugin names."""
        return list(self._applier_plugins.keys())

    def has_applier_plugin(self, name: str) -> bool:
        """Check if an applier plugin is registered."""
        return name in self._applier_plugins

    def get_applier_plugin_info(self, name: str) -> Optional[Dict[str, str]]:
        """
        Get information about a registered applier plugin.

        Args:
            name: The plugin name

        Returns:
            Dictionary with 'name' and 'version', or None if not found
        """
        return self._applier_plugin_info.get(name)

    def get_applier_plugin_config(self, name: str) -> Dict[str, Any]:
        """Get the environment configuration loaded for an applier."""
        return self._applier_plugin_configs.get(name, {})


# Global registry instance
_registry: Optional[PluginRegistry] = None


def get_registry() -> PluginRegistry:
    """Get the global plugin registry singleton."""
    global _registry
    if _registry is None:
        _registry = PluginRegistry()
    return _registry


def reset_registry() -> None:
    """Reset the global registry (mainly for testing)."""
    global _registry
    _registry = None


def register_builtin_plugins() -> None:
    """
    Register the built-in applier and discover third party appliers
    via entry points.
    """
    registry = get_registry()

    from plugins.appliers.memory import MemoryApplier

    registry.register_applier_plugin(MemoryApplier)

    discovered = entry_points(group=ENTRY_POINT_GROUP)
    for ep in discovered:
        try:
            applier_class = ep.load()
            registry.register_applier_plugin(applier_class)
        except Exception as e:
            logger.warning(f"Could not load applier plugin {ep.name}: {e}")
