"""Pytest configuration and fixtures."""

import pytest

from models import Logging, NodeAgent, ObjectMetadata
from plugins.appliers.memory import MemoryApplier


@pytest.fixture
def memory_applier():
    """An uninitialized in-memory applier (never requeues)."""
    return MemoryApplier()


@pytest.fixture
def logging_resource():
    """Logging resource with a single empty Linux node agent."""
    return Logging(
        name="cluster-logging",
        labels={"team": "platform"},
        control_namespace="logging-system",
        node_agents=[NodeAgent(name="default")],
    )


@pytest.fixture
def two_agent_logging():
    """Logging resource with a Linux and a Windows node agent."""
    return Logging(
        name="cluster-logging",
        control_namespace="logging-system",
        node_agents=[
            NodeAgent(name="first"),
            NodeAgent(
                name="second",
                type="windows",
                metadata=ObjectMetadata(labels={"os": "windows"}),
            ),
        ],
    )


@pytest.fixture
def sample_document():
    """Sample Logging document as read from YAML."""
    return {
        "apiVersion": "logging.banzaicloud.io/v1beta1",
        "kind": "Logging",
        "metadata": {"name": "cluster-logging", "labels": {"team": "platform"}},
        "spec": {
            "controlNamespace": "logging-system",
            "nodeAgents": [
                {
                    "name": "linux",
                    "metadata": {"labels": {"tier": "nodes"}},
                    "fluentbit": {
                        "logLevel": "debug",
                        "metrics": {"port": 2021, "serviceMonitor": True},
                    },
                },
                {
                    "name": "win",
                    "type": "windows",
                    "fluentbit": {
                        "daemonSetOverrides": {
                            "spec": {
                                "template": {
                                    "spec": {"nodeSelector": {"pool": "infra"}}
                                }
                            }
                        }
                    },
                },
            ],
        },
    }
