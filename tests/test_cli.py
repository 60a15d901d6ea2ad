"""Tests for the command line interface."""

import copy
import json

import pytest
import yaml
from click.testing import CliRunner

from cli import cli
from config import reset_config
from plugins.registry import reset_registry


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def document_file(tmp_path, sample_document):
    path = tmp_path / "logging.yaml"
    path.write_text(yaml.safe_dump(sample_document))
    return str(path)


class TestCli:
    """Tests for the CLI commands."""

    def setup_method(self):
        reset_config()
        reset_registry()

    def teardown_method(self):
        reset_config()
        reset_registry()

    def test_validate(self, runner, document_file):
        result = runner.invoke(cli, ["validate", document_file])
        assert result.exit_code == 0
        assert "Logging 'cluster-logging' is valid (2 node agents)" in result.output

    def test_validate_json(self, runner, tmp_path, sample_document):
        path = tmp_path / "logging.json"
        path.write_text(json.dumps(sample_document))
        result = runner.invoke(cli, ["validate", str(path)])
        assert result.exit_code == 0

    def test_unknown_platform_uses_linux_defaults(self, runner, tmp_path, sample_document):
        document = copy.deepcopy(sample_document)
        document["spec"]["nodeAgents"][0]["type"] = "darwin"
        path = tmp_path / "darwin.yaml"
        path.write_text(yaml.safe_dump(document))

        result = runner.invoke(cli, ["defaults", str(path)])
        assert result.exit_code == 0
        agent = yaml.safe_load(result.output)[0]
        assert agent["type"] == "darwin"
        pod = agent["fluentbit"]["daemonSetOverrides"]["spec"]["template"]["spec"]
        assert pod["nodeSelector"] == {"kubernetes.io/os": "linux"}

    def test_validate_invalid(self, runner, tmp_path, sample_document):
        document = copy.deepcopy(sample_document)
        document["spec"]["nodeAgents"][0]["fluentbit"]["flush"] = "fast"
        path = tmp_path / "invalid.yaml"
        path.write_text(yaml.safe_dump(document))

        result = runner.invoke(cli, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Invalid Logging document" in result.output

    def test_defaults(self, runner, document_file):
        result = runner.invoke(cli, ["defaults", document_file])
        assert result.exit_code == 0

        linux, win = yaml.safe_load(result.output)
        assert linux["fluentbit"]["logLevel"] == "debug"
        assert linux["fluentbit"]["flush"] == 1
        pod = win["fluentbit"]["daemonSetOverrides"]["spec"]["template"]["spec"]
        assert pod["nodeSelector"] == {"pool": "infra"}
        assert pod["containers"][0]["name"] == "fluent-bit"

    def test_defaults_platform_first(self, runner, document_file):
        result = runner.invoke(
            cli, ["defaults", document_file, "--precedence", "platform-first"]
        )
        assert result.exit_code == 0
        linux, win = yaml.safe_load(result.output)
        assert linux["fluentbit"]["flush"] == 3
        assert win["fluentbit"]["flush"] == 2

    def test_invalid_precedence(self, runner, document_file):
        result = runner.invoke(cli, ["defaults", document_file, "--precedence", "last"])
        assert result.exit_code == 2

    def test_render_yaml(self, runner, document_file):
        result = runner.invoke(cli, ["render", document_file])
        assert result.exit_code == 0

        manifests = [m for m in yaml.safe_load_all(result.output) if m]
        assert len(manifests) == 12
        names = [m["metadata"]["name"] for m in manifests if m["kind"] == "DaemonSet"]
        assert names == ["cluster-logging-linux-fluentbit", "cluster-logging-win-fluentbit"]

    def test_render_single_agent(self, runner, document_file):
        result = runner.invoke(cli, ["render", document_file, "--agent", "win"])
        assert result.exit_code == 0
        manifests = [m for m in yaml.safe_load_all(result.output) if m]
        assert len(manifests) == 5
        assert all("-win-" in m["metadata"]["name"] for m in manifests)

    def test_render_table(self, runner, document_file):
        result = runner.invoke(cli, ["render", document_file, "-o", "table"])
        assert result.exit_code == 0
        assert "Node agent" in result.output
        assert "cluster-logging-linux-fluentbit-psp" in result.output
        assert "absent" in result.output

    def test_reconcile(self, runner, document_file):
        result = runner.invoke(cli, ["reconcile", document_file], env={})
        assert result.exit_code == 0
        assert "12 change(s) applied" in result.output
        assert "All node agents are up to date" in result.output

    def test_reconcile_not_converged(self, runner, document_file):
        env = {"MEMORY_APPLIER_REQUEUE_ON_CHANGE": "true"}
        result = runner.invoke(cli, ["reconcile", document_file, "-n", "2"], env=env)
        assert result.exit_code == 2
        assert "Not converged after 2 passes" in result.output

    def test_reconcile_unknown_applier(self, runner, document_file):
        result = runner.invoke(
            cli, ["reconcile", document_file, "--applier", "kubernetes"]
        )
        assert result.exit_code == 1
        assert "Unknown applier plugin: kubernetes" in result.output
