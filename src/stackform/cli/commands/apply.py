"""Apply command - reconcile real infrastructure with a template."""

import sys
from typing import Iterable, Optional
import click
from ...planner.models import Plan
from ...presentation.formatter import format_apply_result, format_outputs, format_plan
from ...utils.errors import StackformError
from ...utils.logging import get_logger
from ..utils import fail, open_workspace, resolve_file_path, resolve_template, variable_options

logger = get_logger("cli.apply")


@click.command()
@click.argument('template', type=click.Path(exists=False))
@variable_options
@click.option('--refresh/--no-refresh', default=None,
              help='Read live resources from providers before planning (default: config plan.refresh)')
@click.option('--plan-file', type=click.Path(), help='Apply a plan saved with "plan --out"')
@click.option('--auto-approve', is_flag=True, help='Skip the confirmation prompt')
@click.option('--parallelism', type=click.IntRange(1, 256), help='Maximum concurrent provider operations')
@click.pass_context
def apply(ctx, template, var_files, assignments, refresh, plan_file, auto_approve, parallelism):
    """
    Plan and apply TEMPLATE.

    Independent resources are created concurrently. A failed action skips
    everything that depends on it; unrelated actions still run. The exit
    code is 1 if any action failed.
    """
    run_apply(ctx, template, var_files, assignments, destroy=False, refresh=refresh,
              plan_file=plan_file, auto_approve=auto_approve, parallelism=parallelism)


def run_apply(
    ctx: click.Context,
    template: str,
    var_files: Iterable[str],
    assignments: Iterable[str],
    destroy: bool,
    refresh: Optional[bool] = None,
    plan_file: Optional[str] = None,
    auto_approve: bool = False,
    parallelism: Optional[int] = None
) -> None:
    """Shared plan, confirm and execute flow of apply and destroy."""
    try:
        workspace = open_workspace(ctx)
        parsed = workspace.load(resolve_template(template), var_files, assignments)
        if plan_file:
            current = _load_plan(plan_file)
            workspace.check_plan(current, parsed)
        else:
            current = workspace.plan(parsed, destroy=destroy, refresh=refresh)

        secrets = parsed.sensitive_values()
        click.echo(format_plan(current, secrets))

        if current.is_empty():
            if not current.destroy:
                click.echo("")
                click.echo(format_outputs(workspace.outputs(parsed), secrets, workspace.sensitive_outputs(parsed)))
            return

        if not auto_approve:
            click.echo("")
            prompt = "Destroy all recorded resources?" if current.destroy else "Apply these changes?"
            if not click.confirm(prompt, default=False):
                click.echo("Apply canceled. No changes were made.")
                return

        result = workspace.apply(current, parallelism=parallelism)
        click.echo("")
        click.echo(format_apply_result(result))
        if not current.destroy:
            click.echo("")
            click.echo(format_outputs(workspace.outputs(parsed), secrets, workspace.sensitive_outputs(parsed)))
        if not result.ok:
            sys.exit(1)
    except click.Abort:
        raise
    except Exception as e:
        fail(e)


def _load_plan(plan_file: str) -> Plan:
    try:
        return Plan.load(resolve_file_path(plan_file))
    except FileNotFoundError as e:
        raise StackformError(str(e))
    except (OSError, ValueError) as e:
        raise StackformError(f"Cannot read plan file {plan_file}: {e}")
