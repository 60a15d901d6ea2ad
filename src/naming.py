"""Naming and labeling conventions for objects owned by a node agent."""

from typing import Dict

from models import Logging, NodeAgent

DEFAULT_CONTROL_NAMESPACE = "logging"

NAME_LABEL = "app.kubernetes.io/name"
INSTANCE_LABEL = "app.kubernetes.io/instance"
MANAGED_BY_LABEL = "app.kubernetes.io/managed-by"


def qualified_name(logging: Logging, node_agent: NodeAgent, suffix: str) -> str:
    """Return ``<parent>-<node agent>-<suffix>``."""
    return f"{logging.name}-{node_agent.name}-{suffix}"


def merge_labels(*label_sets: Dict[str, str]) -> Dict[str, str]:
    """Combine label sets; keys from later sets win."""
    merged: Dict[str, str] = {}
    for labels in label_sets:
        if labels:
            merged.update(labels)
    return merged


def logging_ref_labels(logging_name: str) -> Dict[str, str]:
    return {MANAGED_BY_LABEL: logging_name}


def selector_labels(logging: Logging, node_agent: NodeAgent) -> Dict[str, str]:
    """
    Labels identifying the objects of one node agent.

    Combines the node agent's own labels, the fixed component identity and
    the parent association label. Identity and parent labels cannot be
    overridden by the node agent's labels.
    """
    return merge_labels(
        node_agent.metadata.labels,
        {NAME_LABEL: "fluentbit", INSTANCE_LABEL: node_agent.name},
        logging_ref_labels(logging.name),
    )


def control_namespace(
    logging: Logging, fallback: str = DEFAULT_CONTROL_NAMESPACE
) -> str:
    return logging.control_namespace or fallback
