"""
Fluent Bit configuration rendering.

Produces the ``fluent-bit.conf`` stored in the node agent's configuration
secret from a merged node agent spec.
"""

from typing import List, Optional, Tuple

from models import NodeAgentFluentbit

CONFIG_FILE = "fluent-bit.conf"
CONFIG_MOUNT_PATH = "/fluent-bit/etc"
TAIL_DB_MOUNT_PATH = "/tail-db"

DEFAULT_TARGET_PORT = 24240


def _section(name: str, options: List[Tuple[str, object]]) -> str:
    lines = [f"[{name}]"]
    for key, value in options:
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "On" if value else "Off"
        lines.append(f"    {key:<22} {value}")
    return "\n".join(lines)


def _filter_aws(spec: NodeAgentFluentbit) -> Optional[str]:
    aws = spec.filter_aws
    if aws is None:
        return None
    return _section(
        "FILTER",
        [
            ("Name", "aws"),
            ("Match", aws.match or "*"),
            ("imds_version", aws.imds_version),
            ("az", aws.az),
            ("ec2_instance_id", aws.ec2_instance_id),
            ("ec2_instance_type", aws.ec2_instance_type),
            ("private_ip", aws.private_ip),
            ("ami_id", aws.ami_id),
            ("account_id", aws.account_id),
            ("hostname", aws.hostname),
            ("vpc_id", aws.vpc_id),
        ],
    )


def _output(spec: NodeAgentFluentbit, target_host: str) -> str:
    options: List[Tuple[str, object]] = [
        ("Name", "forward"),
        ("Match", "*"),
        ("Host", target_host),
        ("Port", spec.target_port or DEFAULT_TARGET_PORT),
    ]
    forward = spec.forward_options
    if forward is not None:
        options += [
            ("Retry_Limit", forward.retry_limit),
            ("Tag", forward.tag),
            ("Workers", forward.workers or None),
        ]
        # Forward flags are only emitted when switched on
        if forward.time_as_integer:
            options.append(("Time_as_Integer", True))
        if forward.send_options:
            options.append(("Send_options", True))
        if forward.require_ack_response:
            options.append(("Require_ack_response", True))
    return _section("OUTPUT", options)


def render_config(spec: NodeAgentFluentbit, target_host: str) -> str:
    """
    Render the agent configuration.

    Args:
        spec: Merged Fluent Bit spec of a node agent
        target_host: Aggregator host used when the spec names none

    Returns:
        The configuration file contents
    """
    tail = spec.input_tail
    buffers = spec.buffer_storage
    sections = [
        _section(
            "SERVICE",
            [
                ("Flush", spec.flush),
                ("Grace", spec.grace),
                ("Daemon", "Off"),
                ("Log_Level", spec.log_level),
                ("Coro_Stack_Size", spec.coro_stack_size),
                ("Parsers_File", "parsers.conf"),
                ("HTTP_Server", "On" if spec.metrics is not None else None),
                ("HTTP_Listen", "0.0.0.0" if spec.metrics is not None else None),
                ("HTTP_Port", spec.metrics.port if spec.metrics else None),
                ("storage.path", buffers.storage_path),
                ("storage.sync", buffers.storage_sync),
                ("storage.checksum", buffers.storage_checksum),
                ("storage.backlog.mem_limit", buffers.storage_backlog_mem_limit),
            ],
        ),
        _section(
            "INPUT",
            [
                ("Name", "tail"),
                ("Path", tail.path),
                ("Refresh_Interval", tail.refresh_interval),
                ("Skip_Long_Lines", tail.skip_long_lines),
                ("DB", tail.db),
                ("Mem_Buf_Limit", tail.mem_buf_limit),
                ("Tag", tail.tag),
                ("Parser", "docker"),
            ],
        ),
        _section(
            "FILTER",
            [
                ("Name", "kubernetes"),
                ("Match", "kubernetes.*"),
                ("Kube_Tag_Prefix", "kubernetes.var.log.containers."),
            ],
        ),
    ]

    aws = _filter_aws(spec)
    if aws is not None:
        sections.append(aws)

    sections.append(_output(spec, spec.target_host or target_host))
    return "\n\n".join(sections) + "\n"
