"""
Plugin system for the node agent reconciler.

This package provides the plugin architecture for pluggable appliers, the
components that converge one desired object against the resource store.
"""

from plugins.base import DesiredState, ManagedObject, RequeueRequest
from plugins.appliers.base import ResourceApplier
from plugins.registry import PluginRegistry, get_registry

__all__ = [
    "DesiredState",
    "ManagedObject",
    "RequeueRequest",
    "ResourceApplier",
    "PluginRegistry",
    "get_registry",
]
