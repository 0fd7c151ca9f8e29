"""Version command - show stackform version."""

import click
from ... import __version__


@click.command()
def version():
    """Show stackform version."""
    click.echo(f"stackform version {__version__}")
