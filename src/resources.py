"""
Resource factories for a node agent.

Each factory turns a merged node agent instance into one desired object and
the desired-state policy for it. ``ResourceKind`` fixes the order in which
the objects are reconciled: a binding refers to a role and a service account
that come before it in the sequence.
"""

import base64
import hashlib
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Tuple

from errors import ConstructionError
from fluentbit_config import (
    CONFIG_FILE,
    CONFIG_MOUNT_PATH,
    TAIL_DB_MOUNT_PATH,
    render_config,
)
from defaults import CONTAINER_NAME, METRICS_PATH, METRICS_PORT
from models import Logging, NodeAgent, to_dict
from naming import (
    DEFAULT_CONTROL_NAMESPACE,
    control_namespace,
    merge_labels,
    qualified_name,
    selector_labels,
)
from plugins.base import DesiredState, ManagedObject

logger = logging.getLogger(__name__)

FLUENTBIT = "fluentbit"
PSP_SUFFIX = "fluentbit-psp"
METRICS_SUFFIX = "fluentbit-metrics"
METRICS_PORT_NAME = "http-metrics"


@dataclass
class NodeAgentInstance:
    """A merged node agent together with its parent resource."""

    node_agent: NodeAgent
    logging: Logging
    default_namespace: str = DEFAULT_CONTROL_NAMESPACE

    @property
    def name(self) -> str:
        return self.node_agent.name

    @property
    def spec(self):
        return self.node_agent.fluentbit

    @property
    def namespace(self) -> str:
        return control_namespace(self.logging, self.default_namespace)

    def qualified_name(self, suffix: str) -> str:
        return qualified_name(self.logging, self.node_agent, suffix)

    def labels(self) -> Dict[str, str]:
        return selector_labels(self.logging, self.node_agent)

    def metadata(self, suffix: str, namespaced: bool = True) -> Dict[str, Any]:
        meta: Dict[str, Any] = {
            "name": self.qualified_name(suffix),
            "labels": merge_labels(self.logging.labels, self.labels()),
        }
        if namespaced:
            meta["namespace"] = self.namespace
        return meta

    @property
    def enabled(self) -> bool:
        return self.spec.enabled is not False

    @property
    def rbac_enabled(self) -> bool:
        security = self.spec.security
        return bool(security and security.role_based_access_control_create)

    @property
    def psp_enabled(self) -> bool:
        security = self.spec.security
        return self.rbac_enabled and bool(
            security and security.pod_security_policy_create
        )

    def service_account_name(self) -> str:
        security = self.spec.security
        if security is not None and security.service_account:
            return security.service_account
        return self.qualified_name(FLUENTBIT)

    def config_secret_name(self) -> str:
        return self.spec.custom_config_secret or self.qualified_name(FLUENTBIT)

    def target_host(self) -> str:
        return f"{self.logging.name}-fluentd.{self.namespace}.svc.cluster.local"

    def present_if(self, condition: bool) -> DesiredState:
        if self.enabled and condition:
            return DesiredState.PRESENT
        return DesiredState.ABSENT


Factory = Callable[[NodeAgentInstance], Tuple[ManagedObject, DesiredState]]


class ResourceKind(Enum):
    """Managed objects of a node agent, in reconciliation order."""

    SERVICE_ACCOUNT = "service-account"
    CLUSTER_ROLE = "cluster-role"
    CLUSTER_ROLE_BINDING = "cluster-role-binding"
    POD_SECURITY_POLICY = "pod-security-policy"
    POD_SECURITY_POLICY_ROLE = "pod-security-policy-role"
    POD_SECURITY_POLICY_ROLE_BINDING = "pod-security-policy-role-binding"
    CONFIG_SECRET = "configuration-secret"
    DAEMON_SET = "daemon-workload"
    METRICS_SERVICE = "metrics-service"
    METRICS_SERVICE_MONITOR = "metrics-service-monitor"


def _object(
    kind: str, api_version: str, manifest: Dict[str, Any]
) -> ManagedObject:
    meta = manifest["metadata"]
    return ManagedObject(
        kind=kind,
        api_version=api_version,
        name=meta["name"],
        namespace=meta.get("namespace"),
        manifest={"apiVersion": api_version, "kind": kind, **manifest},
    )


def service_account(instance: NodeAgentInstance) -> Tuple[ManagedObject, DesiredState]:
    obj = _object("ServiceAccount", "v1", {"metadata": instance.metadata(FLUENTBIT)})
    external = bool(instance.spec.security and instance.spec.security.service_account)
    return obj, instance.present_if(instance.rbac_enabled and not external)


def cluster_role(instance: NodeAgentInstance) -> Tuple[ManagedObject, DesiredState]:
    obj = _object(
        "ClusterRole",
        "rbac.authorization.k8s.io/v1",
        {
            "metadata": instance.metadata(FLUENTBIT, namespaced=False),
            "rules": [
                {
                    "apiGroups": [""],
                    "resources": ["pods", "namespaces"],
                    "verbs": ["get", "list", "watch"],
                }
            ],
        },
    )
    return obj, instance.present_if(instance.rbac_enabled)


def _binding(
    instance: NodeAgentInstance, suffix: str, role_suffix: str
) -> ManagedObject:
    return _object(
        "ClusterRoleBinding",
        "rbac.authorization.k8s.io/v1",
        {
            "metadata": instance.metadata(suffix, namespaced=False),
            "roleRef": {
                "apiGroup": "rbac.authorization.k8s.io",
                "kind": "ClusterRole",
                "name": instance.qualified_name(role_suffix),
            },
            "subjects": [
                {
                    "kind": "ServiceAccount",
                    "name": instance.service_account_name(),
                    "namespace": instance.namespace,
                }
            ],
        },
    )


def cluster_role_binding(
    instance: NodeAgentInstance,
) -> Tuple[ManagedObject, DesiredState]:
    obj = _binding(instance, FLUENTBIT, FLUENTBIT)
    return obj, instance.present_if(instance.rbac_enabled)


def _host_paths(instance: NodeAgentInstance) -> List[str]:
    spec = instance.spec
    paths = [spec.mount_path, "/var/log", TAIL_DB_MOUNT_PATH]
    if spec.buffer_storage.storage_path:
        paths.append(spec.buffer_storage.storage_path)
    return [p for p in paths if p]


def pod_security_policy(
    instance: NodeAgentInstance,
) -> Tuple[ManagedObject, DesiredState]:
    obj = _object(
        "PodSecurityPolicy",
        "policy/v1beta1",
        {
            "metadata": instance.metadata(FLUENTBIT, namespaced=False),
            "spec": {
                "fsGroup": {"rule": "RunAsAny"},
                "runAsUser": {"rule": "RunAsAny"},
                "seLinux": {"rule": "RunAsAny"},
                "supplementalGroups": {"rule": "RunAsAny"},
                "volumes": ["configMap", "emptyDir", "secret", "hostPath"],
                "allowedHostPaths": [
                    {"pathPrefix": path, "readOnly": path == instance.spec.mount_path}
                    for path in _host_paths(instance)
                ],
            },
        },
    )
    return obj, instance.present_if(instance.psp_enabled)


def pod_security_policy_role(
    instance: NodeAgentInstance,
) -> Tuple[ManagedObject, DesiredState]:
    obj = _object(
        "ClusterRole",
        "rbac.authorization.k8s.io/v1",
        {
            "metadata": instance.metadata(PSP_SUFFIX, namespaced=False),
            "rules": [
                {
                    "apiGroups": ["policy"],
                    "resources": ["podsecuritypolicies"],
                    "resourceNames": [instance.qualified_name(FLUENTBIT)],
                    "verbs": ["use"],
                }
            ],
        },
    )
    return obj, instance.present_if(instance.psp_enabled)


def pod_security_policy_role_binding(
    instance: NodeAgentInstance,
) -> Tuple[ManagedObject, DesiredState]:
    obj = _binding(instance, PSP_SUFFIX, PSP_SUFFIX)
    return obj, instance.present_if(instance.psp_enabled)


def rendered_config(instance: NodeAgentInstance) -> str:
    return render_config(instance.spec, instance.target_host())


def config_secret(instance: NodeAgentInstance) -> Tuple[ManagedObject, DesiredState]:
    config = rendered_config(instance)
    obj = _object(
        "Secret",
        "v1",
        {
            "metadata": instance.metadata(FLUENTBIT),
            "data": {CONFIG_FILE: base64.b64encode(config.encode()).decode()},
        },
    )
    return obj, instance.present_if(not instance.spec.custom_config_secret)


def _container(instance: NodeAgentInstance, container) -> Dict[str, Any]:
    body = to_dict(container)
    if container.name != CONTAINER_NAME:
        return body

    spec = instance.spec
    mounts = [
        {"name": "varlibcontainers", "mountPath": spec.mount_path, "readOnly": True},
        {"name": "varlogs", "mountPath": "/var/log/"},
        {"name": "config", "mountPath": CONFIG_MOUNT_PATH},
        {"name": "positiondb", "mountPath": TAIL_DB_MOUNT_PATH},
    ]
    if spec.buffer_storage.storage_path:
        mounts.append(
            {"name": "buffers", "mountPath": spec.buffer_storage.storage_path}
        )
    body["volumeMounts"] = mounts
    if spec.metrics is not None:
        body["ports"] = [
            {
                "name": METRICS_PORT_NAME,
                "containerPort": spec.metrics.port or METRICS_PORT,
                "protocol": "TCP",
            }
        ]
    if spec.security is not None and spec.security.security_context:
        body["securityContext"] = spec.security.security_context
    return body


def _volumes(instance: NodeAgentInstance) -> List[Dict[str, Any]]:
    spec = instance.spec
    volumes = [
        {"name": "varlibcontainers", "hostPath": {"path": spec.mount_path}},
        {"name": "varlogs", "hostPath": {"path": "/var/log"}},
        {"name": "config", "secret": {"secretName": instance.config_secret_name()}},
        {"name": "positiondb", "emptyDir": {}},
    ]
    if spec.buffer_storage.storage_path:
        volumes.append({"name": "buffers", "emptyDir": {}})
    return volumes


def daemon_set(instance: NodeAgentInstance) -> Tuple[ManagedObject, DesiredState]:
    overrides = instance.spec.daemon_set_overrides
    template = overrides.spec.template
    pod = template.spec
    labels = instance.labels()

    annotations = dict(template.metadata.annotations)
    if not instance.spec.custom_config_secret:
        checksum = hashlib.sha256(rendered_config(instance).encode()).hexdigest()
        annotations["checksum/config"] = checksum

    pod_spec: Dict[str, Any] = {
        "serviceAccountName": instance.service_account_name(),
        "containers": [_container(instance, c) for c in pod.containers],
        "volumes": _volumes(instance),
    }
    if pod.node_selector:
        pod_spec["nodeSelector"] = dict(pod.node_selector)
    if pod.tolerations:
        pod_spec["tolerations"] = to_dict(pod.tolerations)
    if pod.priority_class_name:
        pod_spec["priorityClassName"] = pod.priority_class_name
    security = instance.spec.security
    if security is not None and security.pod_security_context:
        pod_spec["securityContext"] = security.pod_security_context

    metadata = instance.metadata(FLUENTBIT)
    metadata["labels"] = merge_labels(
        instance.logging.labels, overrides.metadata.labels, labels
    )
    if overrides.metadata.annotations:
        metadata["annotations"] = dict(overrides.metadata.annotations)

    obj = _object(
        "DaemonSet",
        "apps/v1",
        {
            "metadata": metadata,
            "spec": {
                "selector": {"matchLabels": labels},
                "template": {
                    "metadata": {
                        "labels": merge_labels(template.metadata.labels, labels),
                        "annotations": annotations,
                    },
                    "spec": pod_spec,
                },
            },
        },
    )
    return obj, instance.present_if(True)


def metrics_service(instance: NodeAgentInstance) -> Tuple[ManagedObject, DesiredState]:
    metrics = instance.spec.metrics
    port = (metrics.port if metrics else 0) or METRICS_PORT
    obj = _object(
        "Service",
        "v1",
        {
            "metadata": instance.metadata(METRICS_SUFFIX),
            "spec": {
                "type": "ClusterIP",
                "clusterIP": "None",
                "selector": instance.labels(),
                "ports": [
                    {
                        "name": METRICS_PORT_NAME,
                        "port": port,
                        "targetPort": port,
                        "protocol": "TCP",
                    }
                ],
            },
        },
    )
    return obj, instance.present_if(metrics is not None)


def metrics_service_monitor(
    instance: NodeAgentInstance,
) -> Tuple[ManagedObject, DesiredState]:
    metrics = instance.spec.metrics
    endpoint: Dict[str, Any] = {
        "port": METRICS_PORT_NAME,
        "path": (metrics.path if metrics else "") or METRICS_PATH,
    }
    if metrics is not None and metrics.interval:
        endpoint["interval"] = metrics.interval
    if metrics is not None and metrics.timeout:
        endpoint["scrapeTimeout"] = metrics.timeout

    metadata = instance.metadata(METRICS_SUFFIX)
    if metrics is not None:
        metadata["labels"] = merge_labels(
            metrics.service_monitor_labels, metadata["labels"]
        )
    obj = _object(
        "ServiceMonitor",
        "monitoring.coreos.com/v1",
        {
            "metadata": metadata,
            "spec": {
                "selector": {"matchLabels": instance.labels()},
                "namespaceSelector": {"matchNames": [instance.namespace]},
                "endpoints": [endpoint],
            },
        },
    )
    return obj, instance.present_if(metrics is not None and metrics.service_monitor)


FACTORIES: Dict[ResourceKind, Factory] = {
    ResourceKind.SERVICE_ACCOUNT: service_account,
    ResourceKind.CLUSTER_ROLE: cluster_role,
    ResourceKind.CLUSTER_ROLE_BINDING: cluster_role_binding,
    ResourceKind.POD_SECURITY_POLICY: pod_security_policy,
    ResourceKind.POD_SECURITY_POLICY_ROLE: pod_security_policy_role,
    ResourceKind.POD_SECURITY_POLICY_ROLE_BINDING: pod_security_policy_role_binding,
    ResourceKind.CONFIG_SECRET: config_secret,
    ResourceKind.DAEMON_SET: daemon_set,
    ResourceKind.METRICS_SERVICE: metrics_service,
    ResourceKind.METRICS_SERVICE_MONITOR: metrics_service_monitor,
}

_missing = [kind.value for kind in ResourceKind if kind not in FACTORIES]
if _missing:
    raise RuntimeError(f"No resource factory for: {', '.join(_missing)}")


def default_pipeline() -> List[Tuple[ResourceKind, Factory]]:
    """The factories of every resource kind, in reconciliation order."""
    return [(kind, FACTORIES[kind]) for kind in ResourceKind]


def build_resource(
    kind: ResourceKind, factory: Factory, instance: NodeAgentInstance
) -> Tuple[ManagedObject, DesiredState]:
    """
    Run one factory.

    Raises:
        ConstructionError: If the factory fails or returns no object
    """
    try:
        built = factory(instance)
    except Exception as e:
        raise ConstructionError(
            "failed to create desired object", cause=e, resource=kind.value
        ) from e

    obj, state = built if built is not None else (None, None)
    if obj is None or state is None:
        raise ConstructionError(
            f"resource factory {kind.value} returned no object", resource=kind.value
        )
    logger.debug(f"Built {obj.describe()} ({state.value})")
    return obj, state
