"""Output command - show template outputs resolved against state."""

import json
import click
from ...presentation.formatter import SENSITIVE, format_outputs, mask_text
from ...utils.errors import StackformError
from ...utils.logging import get_logger
from ..utils import fail, open_workspace, resolve_template, variable_options, write_output

logger = get_logger("cli.output")


@click.command()
@click.argument('template', type=click.Path(exists=False))
@click.argument('name', required=False)
@variable_options
@click.option('--json', 'as_json', is_flag=True, help='Output structured JSON')
@click.option('--raw', is_flag=True, help='Print a single output value unquoted and unmasked (requires NAME)')
@click.pass_context
def output(ctx, template, name, var_files, assignments, as_json, raw):
    """
    Show the outputs of TEMPLATE using values recorded in state.

    Outputs referencing resources that have not been created yet show as
    not yet known.
    """
    try:
        workspace = open_workspace(ctx)
        parsed = workspace.load(resolve_template(template), var_files, assignments)
        values = workspace.outputs(parsed)
        secrets = parsed.sensitive_values()
        hidden = workspace.sensitive_outputs(parsed)

        if name is not None:
            if name not in values:
                raise StackformError(f"Output '{name}' is not defined in {template}")
            values = {name: values[name]}
        elif raw:
            raise StackformError("--raw requires an output NAME")

        if raw:
            value = values[name]
            write_output("" if value is None else str(value))
        elif as_json:
            write_output(json.dumps(
                {k: SENSITIVE if k in hidden and v is not None else mask_text(v, secrets) for k, v in values.items()},
                indent=2, default=str,
            ))
        else:
            write_output(format_outputs(values, secrets, hidden))
    except Exception as e:
        fail(e)
