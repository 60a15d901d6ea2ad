"""
Applier Plugin Base - Abstract interface for the apply primitive.

An applier compares one desired object against live state and converges it
according to its desired-state policy. The reconcilers only ever talk to
the store through this interface.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from plugins.base import DesiredState, ManagedObject, RequeueRequest


class ResourceApplier(ABC):
    """
    Abstract base class for applier plugins.

    Implementations must be idempotent: applying the same desired object
    repeatedly with no external drift produces no further side effects and
    no requeue.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique identifier for this applier (e.g., 'memory')."""
        pass

    @property
    @abstractmethod
    def version(self) -> str:
        """Applier version string."""
        pass

    @abstractmethod
    async def initialize(self, config: Dict[str, Any]) -> None:
        """
        Initialize the applier with configuration.

        Called once when the applier is loaded.

        Args:
            config: Applier-specific configuration dictionary
        """
        pass

    @abstractmethod
    async def apply(
        self, obj: ManagedObject, state: DesiredState
    ) -> Optional[RequeueRequest]:
        """
        Converge one object toward its desired state.

        Args:
            obj: The desired object
            state: Whether the object must exist or must be absent

        Returns:
            A RequeueRequest when the caller should stop the pass and retry
            later, otherwise None.

        Raises:
            Exception: Any failure to talk to or update the store.
        """
        pass

    @classmethod
    def load_config_from_env(cls) -> Dict[str, Any]:
        """
        Load applier-specific configuration from environment variables.

        Override this method in subclasses to define how the applier
        loads its configuration from the environment.

        Returns:
            Dictionary of configuration values for this applier.
        """
        return {}
