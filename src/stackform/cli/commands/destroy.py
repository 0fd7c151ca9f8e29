"""Destroy command - delete every resource recorded in state."""

import click
from ..utils import variable_options
from .apply import run_apply


@click.command()
@click.argument('template', type=click.Path(exists=False))
@variable_options
@click.option('--auto-approve', is_flag=True, help='Skip the confirmation prompt')
@click.option('--parallelism', type=click.IntRange(1, 256), help='Maximum concurrent provider operations')
@click.pass_context
def destroy(ctx, template, var_files, assignments, auto_approve, parallelism):
    """Delete every recorded resource, dependents before their dependencies."""
    run_apply(ctx, template, var_files, assignments, destroy=True,
              auto_approve=auto_approve, parallelism=parallelism)
