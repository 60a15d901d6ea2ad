"""Unit tests for defaults.py - Default profiles and their merge order."""

import pytest

from defaults import (
    DEFAULT_IMAGE,
    DefaultsPrecedence,
    apply_defaults,
    base_profile,
    linux_profile,
    platform_profile,
    windows_profile,
)
from merge import merge
from models import NodeAgent, NodeAgentFluentbit, Security


def _pod(agent):
    return agent.fluentbit.daemon_set_overrides.spec.template.spec


class TestProfiles:
    """Tests for the profile literals."""

    def test_profiles_are_fresh_objects(self):
        first = base_profile()
        first.fluentbit.flush = 99
        _pod(first).containers[0].image = "mutated"

        second = base_profile()
        assert second.fluentbit.flush == 1
        assert _pod(second).containers[0].image == DEFAULT_IMAGE

    def test_platform_selection(self):
        assert platform_profile(NodeAgent(type="windows")) == windows_profile()
        assert platform_profile(NodeAgent(type="linux")) == linux_profile()
        assert platform_profile(NodeAgent()) == linux_profile()
        assert platform_profile(NodeAgent(type="darwin")) == linux_profile()

    def test_profiles_share_shape(self):
        agent = NodeAgent()
        merge(agent, base_profile())
        merge(agent, windows_profile())
        merge(agent, linux_profile())


class TestEmptyLinuxAgent:
    """An empty Linux node agent receives Base values verbatim."""

    @pytest.fixture
    def merged(self):
        return apply_defaults(NodeAgent(name="default"))

    def test_base_values(self, merged):
        spec = merged.fluentbit
        assert spec.flush == 1
        assert spec.grace == 5
        assert spec.log_level == "info"
        assert spec.coro_stack_size == 24576
        assert spec.buffer_storage.storage_path == "/buffers"
        assert spec.mount_path == "/var/lib/docker/containers"
        assert spec.input_tail.path == "/var/log/containers/*.log"
        assert spec.input_tail.db == "/tail-db/tail-containers-state.db"
        assert spec.security.role_based_access_control_create is True
        assert spec.filter_aws.imds_version == "v2"
        assert spec.forward_options.retry_limit == "False"

    def test_container(self, merged):
        (container,) = _pod(merged).containers
        assert container.name == "fluent-bit"
        assert container.image == DEFAULT_IMAGE
        assert container.resources.limits == {"memory": "100M", "cpu": "200m"}
        assert container.liveness_probe.http_get.port == 2020

    def test_linux_only_fields_applied_second(self, merged):
        assert _pod(merged).node_selector == {"kubernetes.io/os": "linux"}
        assert _pod(merged).tolerations == []

    def test_equals_field_union_base_winning(self, merged):
        expected = NodeAgent(name="default")
        expected.fluentbit = base_profile().fluentbit
        _pod(expected).node_selector = {"kubernetes.io/os": "linux"}
        assert merged == expected

    def test_merge_is_repeatable(self):
        assert apply_defaults(NodeAgent(name="a")) == apply_defaults(NodeAgent(name="a"))


class TestWindowsAgent:
    """Windows node agents receive the Windows profile after Base."""

    def test_user_node_selector_kept(self):
        agent = NodeAgent(name="win", type="windows")
        _pod(agent).node_selector = {"pool": "infra"}

        apply_defaults(agent)

        assert _pod(agent).node_selector == {"pool": "infra"}
        assert _pod(agent).tolerations[0].value == "windows"
        assert _pod(agent).containers[0].image == DEFAULT_IMAGE

    def test_windows_node_selector_default(self):
        agent = apply_defaults(NodeAgent(name="win", type="windows"))
        assert _pod(agent).node_selector == {"kubernetes.io/os": "windows"}
        assert _pod(agent).tolerations[0].effect == "NoSchedule"


class TestPrecedence:
    """Base-first keeps Base values even where the platform profile differs."""

    def test_base_first_platform_value_is_dead(self):
        linux = apply_defaults(NodeAgent(name="l"))
        windows = apply_defaults(NodeAgent(name="w", type="windows"))

        assert linux.fluentbit.flush == 1
        assert windows.fluentbit.flush == 1
        assert windows.fluentbit.mount_path == "/var/lib/docker/containers"

    def test_platform_first(self):
        linux = apply_defaults(NodeAgent(name="l"), DefaultsPrecedence.PLATFORM_FIRST)
        windows = apply_defaults(
            NodeAgent(name="w", type="windows"), DefaultsPrecedence.PLATFORM_FIRST
        )

        assert linux.fluentbit.flush == 3
        assert windows.fluentbit.flush == 2
        assert windows.fluentbit.mount_path == "C:\\ProgramData\\docker"
        # Base still fills what the platform profile leaves unset
        assert windows.fluentbit.log_level == "info"

    def test_user_values_win_in_both_modes(self):
        for precedence in DefaultsPrecedence:
            agent = NodeAgent(
                name="a",
                fluentbit=NodeAgentFluentbit(
                    flush=10, security=Security(service_account="mine")
                ),
            )
            apply_defaults(agent, precedence)
            assert agent.fluentbit.flush == 10
            assert agent.fluentbit.security == Security(service_account="mine")
