"""
Default profiles for node agents.

Three partial node agent specs fill the gaps of a user spec: the Base
profile, then exactly one platform profile chosen by the node agent's
``type``. Each profile is built by a function returning a new tree, so no
pass can change the defaults observed by another one.
"""

import logging
from enum import Enum

from merge import merge
from models import (
    BufferStorage,
    Container,
    DaemonSetOverrides,
    DaemonSetSpec,
    FilterAws,
    ForwardOptions,
    HTTPGetAction,
    InputTail,
    NodeAgent,
    NodeAgentFluentbit,
    PodSpec,
    PodTemplateSpec,
    Probe,
    ResourceRequirements,
    Security,
    Toleration,
)

logger = logging.getLogger(__name__)

CONTAINER_NAME = "fluent-bit"
DEFAULT_IMAGE = "fluent/fluent-bit:1.6.8"
METRICS_PORT = 2020
METRICS_PATH = "/api/v1/metrics/prometheus"


class DefaultsPrecedence(Enum):
    """Order in which the Base and platform profiles are merged."""

    # Base first: a field set by Base can never be changed by the platform
    # profile. This is the historical behaviour.
    BASE_FIRST = "base-first"
    # Platform first: platform values win over Base for fields both set.
    PLATFORM_FIRST = "platform-first"


def _daemon_set(pod_spec: PodSpec) -> DaemonSetOverrides:
    return DaemonSetOverrides(
        spec=DaemonSetSpec(template=PodTemplateSpec(spec=pod_spec))
    )


def base_profile() -> NodeAgent:
    """Defaults shared by every platform."""
    container = Container(
        name=CONTAINER_NAME,
        image=DEFAULT_IMAGE,
        image_pull_policy="IfNotPresent",
        resources=ResourceRequirements(
            limits={"memory": "100M", "cpu": "200m"},
            requests={"memory": "50M", "cpu": "100m"},
        ),
        liveness_probe=Probe(
            http_get=HTTPGetAction(path=METRICS_PATH, port=METRICS_PORT),
            initial_delay_seconds=10,
            period_seconds=10,
            failure_threshold=3,
        ),
    )
    return NodeAgent(
        fluentbit=NodeAgentFluentbit(
            daemon_set_overrides=_daemon_set(PodSpec(containers=[container])),
            flush=1,
            grace=5,
            log_level="info",
            coro_stack_size=24576,
            input_tail=InputTail(
                path="/var/log/containers/*.log",
                refresh_interval="5",
                skip_long_lines="On",
                db="/tail-db/tail-containers-state.db",
                mem_buf_limit="5MB",
                tag="kubernetes.*",
            ),
            security=Security(
                role_based_access_control_create=True,
                security_context={},
                pod_security_context={},
            ),
            mount_path="/var/lib/docker/containers",
            buffer_storage=BufferStorage(storage_path="/buffers"),
            filter_aws=FilterAws(
                imds_version="v2",
                az=True,
                ec2_instance_id=True,
                ec2_instance_type=False,
                private_ip=False,
                ami_id=False,
                account_id=False,
                hostname=False,
                vpc_id=False,
                match="*",
            ),
            forward_options=ForwardOptions(retry_limit="False"),
        )
    )


def linux_profile() -> NodeAgent:
    return NodeAgent(
        fluentbit=NodeAgentFluentbit(
            daemon_set_overrides=_daemon_set(
                PodSpec(node_selector={"kubernetes.io/os": "linux"})
            ),
            flush=3,
        )
    )


def windows_profile() -> NodeAgent:
    return NodeAgent(
        fluentbit=NodeAgentFluentbit(
            mount_path="C:\\ProgramData\\docker",
            daemon_set_overrides=_daemon_set(
                PodSpec(
                    node_selector={"kubernetes.io/os": "windows"},
                    tolerations=[
                        Toleration(
                            key="os",
                            operator="Equal",
                            value="windows",
                            effect="NoSchedule",
                        )
                    ],
                )
            ),
            flush=2,
        )
    )


def platform_profile(node_agent: NodeAgent) -> NodeAgent:
    """Select the platform profile; anything but "windows" means Linux."""
    if node_agent.type == "windows":
        return windows_profile()
    return linux_profile()


def apply_defaults(
    node_agent: NodeAgent,
    precedence: DefaultsPrecedence = DefaultsPrecedence.BASE_FIRST,
) -> NodeAgent:
    """
    Merge the Base and platform profiles into ``node_agent`` in place.

    Args:
        node_agent: The spec to fill; fields it already sets are kept
        precedence: Which profile is merged first

    Returns:
        The same ``node_agent``, for chaining

    Raises:
        MergeError: If a profile does not share the node agent's shape
    """
    profiles = [base_profile(), platform_profile(node_agent)]
    if precedence is DefaultsPrecedence.PLATFORM_FIRST:
        profiles.reverse()

    logger.debug(
        f"Applying {node_agent.platform} defaults to node agent "
        f"'{node_agent.name}' ({precedence.value})"
    )
    for profile in profiles:
        merge(node_agent, profile)
    return node_agent
