"""State commands - inspect recorded resources."""

import json
from typing import Any, Dict
import click
from ...schema.registry import SchemaRegistry
from ...state.models import StateRecord
from ...utils.errors import StateError
from ...utils.logging import get_logger
from ..utils import fail, open_workspace, write_output

logger = get_logger("cli.state")

SENSITIVE = "(sensitive)"


@click.group()
def state():
    """Inspect the state store."""
    pass


@state.command('list')
@click.option('--json', 'as_json', is_flag=True, help='Output structured JSON')
@click.pass_context
def list_records(ctx, as_json):
    """List recorded resources in state order."""
    try:
        workspace = open_workspace(ctx)
        records = workspace.store.list()
        if as_json:
            rows = [
                {"logical_name": r.logical_name, "resource_type": r.resource_type, "provider_id": r.provider_id}
                for r in records
            ]
            write_output(json.dumps(rows, indent=2))
            return
        if not records:
            click.echo("State is empty.")
            return
        width = max(len(r.logical_name) for r in records)
        for record in records:
            click.echo(f"{record.logical_name:<{width}}  {record.provider_id}")
    except Exception as e:
        fail(e)


@state.command('show')
@click.argument('name')
@click.pass_context
def show(ctx, name):
    """Show the recorded attributes of NAME (e.g. cloud_vpc.main)."""
    try:
        workspace = open_workspace(ctx)
        record = workspace.store.get(name)
        if record is None:
            known = workspace.store.names()
            hint = f" Recorded: {', '.join(known)}" if known else " State is empty."
            raise StateError(f"No state record for '{name}'.{hint}")
        write_output(json.dumps(_masked(record, workspace.registry), indent=2, default=str))
    except Exception as e:
        fail(e)


def _masked(record: StateRecord, registry: SchemaRegistry) -> Dict[str, Any]:
    data = record.model_dump(mode="json")
    sensitive = set()
    if registry.has(record.resource_type):
        sensitive = set(registry.get(record.resource_type).sensitive_attributes)
    for section in ("config", "attributes", "outputs"):
        for key in data[section]:
            if key in sensitive:
                data[section][key] = SENSITIVE
    return data
