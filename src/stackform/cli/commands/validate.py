"""Validate command - parse a template and check its dependency graph."""

import click
from ...graph.dependency_graph import DependencyGraph
from ...utils.logging import get_logger
from ..utils import fail, open_workspace, resolve_template, variable_options

logger = get_logger("cli.validate")


@click.command()
@click.argument('template', type=click.Path(exists=False))
@variable_options
@click.pass_context
def validate(ctx, template, var_files, assignments):
    """
    Validate a template without touching state or providers.

    Checks syntax, variables, resource schemas, references and cycles,
    then prints the creation order.
    """
    try:
        workspace = open_workspace(ctx)
        parsed = workspace.load(resolve_template(template), var_files, assignments)
        graph = DependencyGraph().build_from_instances(parsed.resources)

        click.echo(f"✅ Template is valid: {len(parsed.resources)} resource(s), {len(parsed.outputs)} output(s)")
        for position, name in enumerate(graph.topological_order(), start=1):
            dependencies = graph.direct_dependencies(name)
            suffix = f"  (after {', '.join(dependencies)})" if dependencies else ""
            click.echo(f"  {position}. {name}{suffix}")
    except Exception as e:
        fail(e)
