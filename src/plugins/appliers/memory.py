"""
In-memory applier.

Keeps live objects in a dict keyed by (kind, namespace, name). Useful for
dry runs from the CLI and as the store double in tests.
"""

import copy
import logging
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from plugins.appliers.base import ResourceApplier
from plugins.base import DesiredState, ManagedObject, RequeueRequest

logger = logging.getLogger(__name__)


@dataclass
class AppliedChange:
    """One side effect performed against the store."""

    action: str  # created, updated or deleted
    kind: str
    namespace: str
    name: str


class MemoryApplier(ResourceApplier):
    """
    Applier backed by an in-process object store.

    With ``requeue_on_change`` enabled every create or update asks for a
    requeue, which mimics an object that has to converge before the next
    one in the pipeline is attempted.
    """

    def __init__(self):
        self.objects: Dict[Tuple[str, str, str], Dict[str, Any]] = {}
        self.changes: List[AppliedChange] = []
        self.requeue_on_change = False
        self.requeue_after: Optional[float] = None

    @property
    def name(self) -> str:
        return "memory"

    @property
    def version(self) -> str:
        return "1.0.0"

    async def initialize(self, config: Dict[str, Any]) -> None:
        self.requeue_on_change = bool(config.get("requeue_on_change", False))
        requeue_after = config.get("requeue_after")
        self.requeue_after = float(requeue_after) if requeue_after else None

    async def apply(
        self, obj: ManagedObject, state: DesiredState
    ) -> Optional[RequeueRequest]:
        key = obj.key
        current = self.objects.get(key)

        if state is DesiredState.ABSENT:
            if current is not None:
                del self.objects[key]
                self._record("deleted", key)
            return None

        if current == obj.manifest:
            logger.debug(f"{obj.describe()} is up to date")
            return None

        self.objects[key] = copy.deepcopy(obj.manifest)
        self._record("created" if current is None else "updated", key)

        if self.requeue_on_change:
            return RequeueRequest(
                after=self.requeue_after,
                reason=f"waiting for {obj.describe()} to converge",
            )
        return None

    def get(
        self, kind: str, name: str, namespace: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        """Return the stored manifest for an object, if any."""
        return self.objects.get((kind, namespace or "", name))

    def reset_changes(self) -> None:
        self.changes = []

    def _record(self, action: str, key: Tuple[str, str, str]) -> None:
        kind, namespace, name = key
        self.changes.append(AppliedChange(action, kind, namespace, name))
        logger.info(f"{action} {kind} {namespace + '/' if namespace else ''}{name}")

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        config: Dict[str, Any] = {
            "requeue_on_change": os.getenv(
                "MEMORY_APPLIER_REQUEUE_ON_CHANGE", "false"
            ).lower()
            == "true",
        }
        if os.getenv("MEMORY_APPLIER_REQUEUE_AFTER"):
            config["requeue_after"] = float(os.getenv("MEMORY_APPLIER_REQUEUE_AFTER"))
        return config
