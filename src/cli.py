#!/usr/bin/env python3
"""
CLI tool for the node agent reconciler.

Works on Logging documents stored as YAML or JSON files: shows the merged
node agent specs, renders the desired objects and runs reconciliation
passes against an applier plugin.
"""

import asyncio
import json
import logging
import sys

import click
import yaml
from tabulate import tabulate

from config import ReconcilerConfig, get_config
from errors import ReconcileError
from merge import MergeError
from models import logging_from_dict, to_dict
from plugins.base import DesiredState
from plugins.registry import get_registry, register_builtin_plugins
from reconciler import NodeAgentReconciler, Outcome, describe_error
from validation import validate_logging_document

logger = logging.getLogger(__name__)


def load_document(filename):
    """Read a Logging document from a YAML/JSON file and validate it."""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)

    is_valid, error = validate_logging_document(data)
    if not is_valid:
        raise click.ClickException(f"Invalid Logging document: {error}")
    return data


def reconciler_config(precedence):
    cfg = get_config().reconciler
    return ReconcilerConfig(
        defaults_precedence=precedence or cfg.defaults_precedence,
        applier=cfg.applier,
        control_namespace=cfg.control_namespace,
    )


precedence_option = click.option(
    "--precedence",
    type=click.Choice(["base-first", "platform-first"]),
    default=None,
    help="Order in which default profiles are merged",
)


@click.group()
def cli():
    """Node agent reconciler CLI"""
    log_cfg = get_config().logging
    logging.basicConfig(level=log_cfg.level, format=log_cfg.format)


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
def validate(filename):
    """Validate a Logging document"""
    data = load_document(filename)
    agents = data["spec"].get("nodeAgents") or []
    click.echo(f"Logging '{data['metadata']['name']}' is valid ({len(agents)} node agents)")


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@precedence_option
def defaults(filename, precedence):
    """Show node agent specs with defaults merged in"""
    resource = logging_from_dict(load_document(filename))
    reconciler = NodeAgentReconciler(resource, None, reconciler_config(precedence))
    try:
        merged = reconciler.merged_node_agents()
    except MergeError as e:
        raise click.ClickException(f"Could not merge defaults: {e}")
    click.echo(yaml.safe_dump([to_dict(a) for a in merged], sort_keys=False))


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@precedence_option
@click.option("--agent", "-a", default=None, help="Only render this node agent")
@click.option(
    "--output", "-o", type=click.Choice(["yaml", "table"]), default="yaml"
)
@click.option("--all", "show_all", is_flag=True, help="Include absent objects")
def render(filename, precedence, agent, output, show_all):
    """Render the desired objects of every node agent"""
    resource = logging_from_dict(load_document(filename))
    reconciler = NodeAgentReconciler(resource, None, reconciler_config(precedence))
    try:
        desired = reconciler.desired_objects()
    except (MergeError, ReconcileError) as e:
        raise click.ClickException(str(e))

    rows = []
    manifests = []
    for agent_name, objects in desired.items():
        if agent and agent_name != agent:
            continue
        for obj, state in objects:
            rows.append([agent_name, obj.kind, obj.namespace or "", obj.name, state.value])
            if show_all or state is DesiredState.PRESENT:
                manifests.append(obj.manifest)

    if output == "table":
        headers = ["Node agent", "Kind", "Namespace", "Name", "State"]
        click.echo(tabulate(rows, headers=headers, tablefmt="grid"))
    else:
        click.echo(yaml.safe_dump_all(manifests, sort_keys=False))


async def run_passes(reconciler, max_passes):
    results = []
    for _ in range(max_passes):
        result = await reconciler.reconcile()
        results.append(result)
        if result.outcome is not Outcome.REQUEUE:
            break
    return results


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@precedence_option
@click.option("--applier", default=None, help="Applier plugin to use")
@click.option(
    "--max-passes",
    "-n",
    default=20,
    type=click.IntRange(min=1),
    help="Stop after this many passes",
)
def reconcile(filename, precedence, applier, max_passes):
    """Run reconciliation passes until the Logging resource converges"""
    resource = logging_from_dict(load_document(filename))
    config = get_config()
    rec_config = reconciler_config(precedence)
    applier_name = applier or rec_config.applier

    register_builtin_plugins()
    registry = get_registry()

    async def run():
        plugin = await registry.get_applier(
            applier_name, config.plugins.get_plugin_config(applier_name)
        )
        return plugin, await run_passes(
            NodeAgentReconciler(resource, plugin, rec_config), max_passes
        )

    try:
        plugin, results = asyncio.run(run())
    except ValueError as e:
        raise click.ClickException(str(e))

    rows = [
        [i + 1, r.outcome.value, r.requeue_after or "", r.message]
        for i, r in enumerate(results)
    ]
    click.echo(
        tabulate(rows, headers=["Pass", "Outcome", "Requeue after", "Message"], tablefmt="grid")
    )

    changes = getattr(plugin, "changes", None)
    if changes:
        click.echo(f"\n{len(changes)} change(s) applied")

    last = results[-1]
    if last.outcome is Outcome.FAILURE:
        for key, value in describe_error(last.error).items():
            click.echo(f"{key}: {value}", err=True)
        sys.exit(1)
    if last.outcome is Outcome.REQUEUE:
        click.echo(f"Not converged after {max_passes} passes", err=True)
        sys.exit(2)
    click.echo("✓ All node agents are up to date")


if __name__ == "__main__":
    cli()
