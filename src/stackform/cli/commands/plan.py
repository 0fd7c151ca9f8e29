"""Plan command - show what apply would change."""

import click
from ...presentation.formatter import format_plan, format_plan_json
from ...utils.logging import get_logger
from ..utils import fail, open_workspace, resolve_template, variable_options, write_output

logger = get_logger("cli.plan")


@click.command()
@click.argument('template', type=click.Path(exists=False))
@variable_options
@click.option('--refresh/--no-refresh', default=None,
              help='Read live resources from providers before planning (default: config plan.refresh)')
@click.option('--destroy', is_flag=True, help='Plan the deletion of every recorded resource')
@click.option('--json', 'as_json', is_flag=True, help='Output structured JSON instead of human-readable')
@click.option('--out', type=click.Path(), help='Save the plan for "apply --plan-file"')
@click.option('--show-unchanged', is_flag=True, help='Also list resources without changes')
@click.pass_context
def plan(ctx, template, var_files, assignments, refresh, destroy, as_json, out, show_unchanged):
    """
    Compute the actions that reconcile state with TEMPLATE.

    Nothing is created, changed or deleted. Sensitive attributes and
    sensitive variable values are masked in the output.
    """
    try:
        workspace = open_workspace(ctx)
        parsed = workspace.load(resolve_template(template), var_files, assignments)
        computed = workspace.plan(parsed, destroy=destroy, refresh=refresh)
        secrets = parsed.sensitive_values()

        if as_json:
            write_output(format_plan_json(computed, secrets))
        else:
            write_output(format_plan(computed, secrets, show_unchanged=show_unchanged))

        if out:
            computed.save(out)
            click.echo(f"Plan saved to: {out}", err=True)
    except Exception as e:
        fail(e)
