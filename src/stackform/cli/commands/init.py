"""Init command - create the .stackform working directory."""

import click
from ...utils.logging import get_logger
from ..utils import fail, open_workspace

logger = get_logger("cli.init")


@click.command()
@click.pass_context
def init(ctx):
    """
    Initialize a stackform working directory.

    Creates .stackform/ with a project config, an empty state file and a
    cache of the supported resource types. Existing config and state are
    kept.
    """
    try:
        workspace = open_workspace(ctx)
        created = workspace.initialize()
        for name, was_created in created.items():
            click.echo(f"  {name}: {'created' if was_created else 'exists'}")
        click.echo(f"✅ Initialized stackform in {workspace.base_dir / '.stackform'}")
    except Exception as e:
        fail(e)
