"""
Data model for the logging parent resource and its node agents.

Every node agent field may be left at its zero value, meaning "use the
default". How a field is filled by the defaults merge depends on how it is
declared here:

- scalar fields (str, int, bool) are unset while they hold the zero value;
- optional fields default to ``None`` and are unset only while ``None``;
- embedded sub-structures (declared with ``embedded()``) are always present
  and are merged field by field;
- lists and dicts are unset while empty.

Documents use camelCase keys (``nodeAgents``, ``daemonSetOverrides``) and
are converted to and from these dataclasses by ``from_dict``/``to_dict``.
"""

import dataclasses
import typing
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

EMBEDDED = "embedded"


def embedded(cls):
    """Declare a sub-structure that is always present and merged per field."""
    return field(default_factory=cls, metadata={EMBEDDED: True})


@dataclass
class ObjectMetadata:
    labels: Dict[str, str] = field(default_factory=dict)
    annotations: Dict[str, str] = field(default_factory=dict)


@dataclass
class Toleration:
    key: str = ""
    operator: str = ""
    value: str = ""
    effect: str = ""


@dataclass
class HTTPGetAction:
    path: str = ""
    port: int = 0


@dataclass
class Probe:
    http_get: Optional[HTTPGetAction] = None
    initial_delay_seconds: int = 0
    timeout_seconds: int = 0
    period_seconds: int = 0
    success_threshold: int = 0
    failure_threshold: int = 0


@dataclass
class ResourceRequirements:
    limits: Dict[str, str] = field(default_factory=dict)
    requests: Dict[str, str] = field(default_factory=dict)


@dataclass
class Container:
    name: str = ""
    image: str = ""
    image_pull_policy: str = ""
    resources: ResourceRequirements = embedded(ResourceRequirements)
    liveness_probe: Optional[Probe] = None
    env: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class PodSpec:
    node_selector: Dict[str, str] = field(default_factory=dict)
    tolerations: List[Toleration] = field(default_factory=list)
    containers: List[Container] = field(default_factory=list)
    priority_class_name: str = ""


@dataclass
class PodTemplateSpec:
    metadata: ObjectMetadata = embedded(ObjectMetadata)
    spec: PodSpec = embedded(PodSpec)


@dataclass
class DaemonSetSpec:
    template: PodTemplateSpec = embedded(PodTemplateSpec)


@dataclass
class DaemonSetOverrides:
    """Overrides applied on top of the generated daemon workload."""

    metadata: ObjectMetadata = embedded(ObjectMetadata)
    spec: DaemonSetSpec = embedded(DaemonSetSpec)


@dataclass
class InputTail:
    path: str = ""
    refresh_interval: str = ""
    skip_long_lines: str = ""
    db: Optional[str] = None
    mem_buf_limit: str = ""
    tag: str = ""


@dataclass
class Security:
    service_account: str = ""
    role_based_access_control_create: Optional[bool] = None
    pod_security_policy_create: bool = False
    security_context: Optional[Dict[str, Any]] = None
    pod_security_context: Optional[Dict[str, Any]] = None


@dataclass
class Metrics:
    port: int = 0
    path: str = ""
    service_monitor: bool = False
    interval: str = ""
    timeout: str = ""
    service_monitor_labels: Dict[str, str] = field(default_factory=dict)


@dataclass
class BufferStorage:
    storage_path: str = ""
    storage_sync: str = ""
    storage_checksum: str = ""
    storage_backlog_mem_limit: str = ""


@dataclass
class FilterAws:
    imds_version: str = ""
    az: Optional[bool] = None
    ec2_instance_id: Optional[bool] = None
    ec2_instance_type: Optional[bool] = None
    private_ip: Optional[bool] = None
    ami_id: Optional[bool] = None
    account_id: Optional[bool] = None
    hostname: Optional[bool] = None
    vpc_id: Optional[bool] = None
    match: str = ""


@dataclass
class ForwardOptions:
    time_as_integer: bool = False
    send_options: bool = False
    require_ack_response: bool = False
    tag: str = ""
    retry_limit: str = ""
    workers: int = 0


@dataclass
class NodeAgentFluentbit:
    enabled: Optional[bool] = None
    daemon_set_overrides: DaemonSetOverrides = embedded(DaemonSetOverrides)
    target_host: str = ""
    target_port: int = 0
    flush: int = 0
    grace: int = 0
    log_level: str = ""
    coro_stack_size: int = 0
    input_tail: InputTail = embedded(InputTail)
    security: Optional[Security] = None
    metrics: Optional[Metrics] = None
    mount_path: str = ""
    buffer_storage: BufferStorage = embedded(BufferStorage)
    filter_aws: Optional[FilterAws] = None
    forward_options: Optional[ForwardOptions] = None
    custom_config_secret: str = ""


@dataclass
class NodeAgent:
    """User-authored configuration of one per-node collection agent."""

    name: str = ""
    type: str = ""
    metadata: ObjectMetadata = embedded(ObjectMetadata)
    fluentbit: NodeAgentFluentbit = embedded(NodeAgentFluentbit)

    @property
    def platform(self) -> str:
        return "windows" if self.type == "windows" else "linux"


@dataclass
class Logging:
    """Parent resource owning an ordered list of node agents."""

    name: str
    labels: Dict[str, str] = field(default_factory=dict)
    control_namespace: str = ""
    node_agents: List[NodeAgent] = field(default_factory=list)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def _unwrap_optional(tp: Any) -> Any:
    if typing.get_origin(tp) is typing.Union:
        args = [a for a in typing.get_args(tp) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return tp


def _convert(tp: Any, value: Any) -> Any:
    if value is None:
        return None
    tp = _unwrap_optional(tp)
    if dataclasses.is_dataclass(tp):
        return from_dict(tp, value)
    if typing.get_origin(tp) in (list, List):
        (item_type,) = typing.get_args(tp) or (Any,)
        return [_convert(item_type, item) for item in value]
    return value


def from_dict(cls, data: Optional[Dict[str, Any]]):
    """
    Build a dataclass instance from a camelCase document.

    Unknown keys are ignored; missing keys keep the field default, so a
    partially specified document yields a partially populated tree. An
    explicit null for an embedded sub-structure is treated as missing.

    Args:
        cls: Target dataclass type
        data: Mapping with camelCase (or snake_case) keys

    Returns:
        A new instance of ``cls``
    """
    data = data or {}
    hints = typing.get_type_hints(cls)
    kwargs = {}
    for f in dataclasses.fields(cls):
        for key in (_camel(f.name), f.name):
            if key in data:
                # A null embedded sub-structure keeps its zero value
                if data[key] is None and f.metadata.get(EMBEDDED):
                    break
                kwargs[f.name] = _convert(hints[f.name], data[key])
                break
    return cls(**kwargs)


def to_dict(obj: Any, omit_empty: bool = True) -> Any:
    """Convert a dataclass tree to a camelCase document."""
    if dataclasses.is_dataclass(obj):
        result = {}
        for f in dataclasses.fields(obj):
            value = to_dict(getattr(obj, f.name), omit_empty)
            if omit_empty and (value is None or value == {} or value == []):
                continue
            result[_camel(f.name)] = value
        return result
    if isinstance(obj, list):
        return [to_dict(item, omit_empty) for item in obj]
    if isinstance(obj, dict):
        return {k: to_dict(v, omit_empty) for k, v in obj.items()}
    return obj


def logging_from_dict(document: Dict[str, Any]) -> Logging:
    """
    Load a Logging parent resource from a Kubernetes-style document.

    Accepts either a full object (``metadata`` + ``spec``) or the bare
    fields used by this package.
    """
    if "spec" in document or "metadata" in document:
        metadata = document.get("metadata") or {}
        spec = document.get("spec") or {}
        data = {
            "name": metadata.get("name", ""),
            "labels": metadata.get("labels") or {},
            "controlNamespace": spec.get("controlNamespace", ""),
            "nodeAgents": spec.get("nodeAgents") or [],
        }
    else:
        data = document
    return from_dict(Logging, data)
