"""
Node agent reconcilers.

NodeAgentReconciler walks the node agents of a Logging resource in declared
order. For each one it merges the default profiles into a copy of the user
spec and hands the merged instance to an InstanceReconciler, which applies
the managed objects one by one.

Both loops stop at the first requeue or failure. The outcome is threaded
back as a ReconcileResult; nothing already applied is rolled back, the next
pass re-applies idempotently.
"""

import copy
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from config import ReconcilerConfig
from defaults import DefaultsPrecedence, apply_defaults
from errors import ApplyError, ConstructionError, ReconcileError
from merge import MergeError
from models import Logging, NodeAgent
from plugins.appliers.base import ResourceApplier
from plugins.base import DesiredState, ManagedObject
from resources import (
    Factory,
    NodeAgentInstance,
    ResourceKind,
    build_resource,
    default_pipeline,
)

logger = logging.getLogger(__name__)


class Outcome(Enum):
    """Terminal states of a reconciliation pass."""

    CONTINUE = "continue"
    REQUEUE = "requeue"
    FAILURE = "failure"


@dataclass
class ReconcileResult:
    """Result of reconciling a node agent or a whole Logging resource."""

    outcome: Outcome = Outcome.CONTINUE
    message: str = ""
    requeue_after: Optional[float] = None
    error: Optional[ReconcileError] = None

    @classmethod
    def proceed(cls) -> "ReconcileResult":
        return cls()

    @classmethod
    def requeue(
        cls, after: Optional[float] = None, message: str = ""
    ) -> "ReconcileResult":
        return cls(outcome=Outcome.REQUEUE, requeue_after=after, message=message)

    @classmethod
    def failure(cls, error: ReconcileError) -> "ReconcileResult":
        return cls(outcome=Outcome.FAILURE, message=str(error), error=error)

    @property
    def success(self) -> bool:
        return self.outcome is Outcome.CONTINUE

    @property
    def requeued(self) -> bool:
        return self.outcome is Outcome.REQUEUE


class InstanceReconciler:
    """Applies the managed objects of one merged node agent, in order."""

    def __init__(
        self,
        instance: NodeAgentInstance,
        applier: ResourceApplier,
        pipeline: Optional[Sequence[Tuple[ResourceKind, Factory]]] = None,
    ):
        self.instance = instance
        self.applier = applier
        self.pipeline = list(pipeline) if pipeline is not None else default_pipeline()

    async def reconcile(self) -> ReconcileResult:
        """
        Run one pass over the pipeline.

        Stops at the first construction error, apply error or requeue; the
        remaining factories are not invoked until the next pass.
        """
        for kind, factory in self.pipeline:
            try:
                obj, state = build_resource(kind, factory, self.instance)
            except ConstructionError as e:
                logger.error(
                    f"Could not build {kind.value} for node agent "
                    f"'{self.instance.name}': {e}"
                )
                return ReconcileResult.failure(e)

            try:
                requeue = await self.applier.apply(obj, state)
            except Exception as e:
                error = ApplyError(
                    "failed to reconcile resource",
                    cause=e,
                    resource=obj.kind,
                    name=obj.name,
                    namespace=obj.namespace,
                )
                logger.error(f"Failed to apply {obj.describe()}: {e}")
                return ReconcileResult.failure(error)

            if requeue is not None:
                logger.info(
                    f"Requeue requested while applying {obj.describe()}"
                    + (f": {requeue.reason}" if requeue.reason else "")
                )
                return ReconcileResult.requeue(
                    after=requeue.after, message=requeue.reason
                )

        return ReconcileResult.proceed()


class NodeAgentReconciler:
    """
    Reconciles every node agent declared on a Logging resource.

    The Logging resource passed in is treated as a read-only snapshot: each
    pass merges defaults into deep copies of its node agent entries.
    """

    def __init__(
        self,
        logging_resource: Logging,
        applier: Optional[ResourceApplier],
        config: Optional[ReconcilerConfig] = None,
        pipeline: Optional[Sequence[Tuple[ResourceKind, Factory]]] = None,
    ):
        self.logging = logging_resource
        self.applier = applier
        self.config = config or ReconcilerConfig()
        self.pipeline = pipeline

    @property
    def precedence(self) -> DefaultsPrecedence:
        return DefaultsPrecedence(self.config.defaults_precedence)

    def merged_node_agent(self, node_agent: NodeAgent) -> NodeAgent:
        """
        Return a copy of ``node_agent`` with the default profiles merged in.

        Raises:
            MergeError: If a profile does not share the node agent's shape
        """
        return apply_defaults(copy.deepcopy(node_agent), self.precedence)

    def instance_for(self, node_agent: NodeAgent) -> NodeAgentInstance:
        return NodeAgentInstance(
            node_agent=self.merged_node_agent(node_agent),
            logging=self.logging,
            default_namespace=self.config.control_namespace,
        )

    def merged_node_agents(self) -> List[NodeAgent]:
        return [self.merged_node_agent(a) for a in self.logging.node_agents]

    def desired_objects(
        self,
    ) -> Dict[str, List[Tuple[ManagedObject, DesiredState]]]:
        """
        Build the desired objects of every node agent without applying them.

        Raises:
            MergeError: If a profile does not share a node agent's shape
            ConstructionError: If a factory fails
        """
        desired: Dict[str, List[Tuple[ManagedObject, DesiredState]]] = {}
        for node_agent in self.logging.node_agents:
            instance = self.instance_for(node_agent)
            pipeline = self.pipeline if self.pipeline is not None else default_pipeline()
            desired[node_agent.name] = [
                build_resource(kind, factory, instance) for kind, factory in pipeline
            ]
        return desired

    async def reconcile(self) -> ReconcileResult:
        """Run one pass over all node agents in declared order."""
        if self.applier is None:
            raise ValueError("An applier is required to reconcile")

        logger.info(
            f"Reconciling {len(self.logging.node_agents)} node agent(s) "
            f"of logging '{self.logging.name}'"
        )
        for node_agent in self.logging.node_agents:
            try:
                instance = self.instance_for(node_agent)
            except MergeError as e:
                error = ReconcileError(
                    "failed to merge node agent defaults",
                    cause=e,
                    node_agent=node_agent.name,
                )
                logger.error(f"{error}")
                return ReconcileResult.failure(error)

            result = await InstanceReconciler(
                instance, self.applier, self.pipeline
            ).reconcile()

            if result.outcome is Outcome.FAILURE:
                error = result.error.wrap(
                    "failed to reconcile instances", node_agent=node_agent.name
                )
                logger.error(
                    f"Node agent '{node_agent.name}' of logging "
                    f"'{self.logging.name}' failed: {error}"
                )
                return ReconcileResult.failure(error)

            if result.outcome is Outcome.REQUEUE:
                logger.info(
                    f"Node agent '{node_agent.name}' requested a requeue, "
                    f"stopping pass"
                )
                return result

            logger.debug(f"Node agent '{node_agent.name}' is up to date")

        return ReconcileResult.proceed()


def describe_error(error: ReconcileError) -> Dict[str, Any]:
    """Flatten an error into log/CLI friendly fields."""
    return {"error": str(error), **error.details}
