"""
Core plugin types and dataclasses.

This module contains shared types used across the plugin system and the
resource factories: the desired-state policy, the desired object produced
by a factory and the requeue signal returned by an applier.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import logging

logger = logging.getLogger(__name__)


class DesiredState(Enum):
    """Lifecycle stance an applier should enforce for an object."""

    PRESENT = "present"
    ABSENT = "absent"


@dataclass
class ManagedObject:
    """Desired Kubernetes object produced by a resource factory."""

    kind: str
    api_version: str
    name: str
    namespace: Optional[str] = None
    manifest: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[str, str, str]:
        """Identity used by appliers to track the live object."""
        return (self.kind, self.namespace or "", self.name)

    def describe(self) -> str:
        if self.namespace:
            return f"{self.kind} {self.namespace}/{self.name}"
        return f"{self.kind} {self.name}"


@dataclass
class RequeueRequest:
    """Signal from an applier that the pass should stop and be retried later."""

    after: Optional[float] = None
    reason: str = ""
