"""Main CLI entry point for stackform."""

import click
from .commands.init import init
from .commands.validate import validate
from .commands.plan import plan
from .commands.apply import apply
from .commands.destroy import destroy
from .commands.state import state
from .commands.output import output
from ..utils.logging import get_logger, setup_logging
from .. import __version__

logger = get_logger("cli.main")


@click.group()
@click.version_option(version=__version__, prog_name="stackform", message="%(prog)s version %(version)s")
@click.option('--verbose', '-v', is_flag=True, help='Enable debug logging')
@click.pass_context
def cli(ctx, verbose):
    """stackform - Declarative infrastructure reconciler."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    if verbose:
        setup_logging("DEBUG")
        logger.debug("Debug logging enabled")


cli.add_command(init)
cli.add_command(validate)
cli.add_command(plan)
cli.add_command(apply)
cli.add_command(destroy)
cli.add_command(state)
cli.add_command(output)

from .commands.version import version as version_command
cli.add_command(version_command)


if __name__ == "__main__":
    cli()
