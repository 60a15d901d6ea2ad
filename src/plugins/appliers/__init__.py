"""Applier plugins package."""

from plugins.appliers.base import ResourceApplier
from plugins.appliers.memory import MemoryApplier

__all__ = ["ResourceApplier", "MemoryApplier"]
