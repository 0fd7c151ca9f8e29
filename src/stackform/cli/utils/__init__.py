"""CLI utilities package."""

import logging
import sys
from pathlib import Path
from typing import Optional
import click
from ...utils.errors import MissingVariableError, StackformError, StalePlanError, StateError, TemplateLoadError
from ...utils.logging import get_logger
from ...workspace import Workspace
from .file_resolver import resolve_file_path

logger = get_logger("cli.utils")


def format_error(message: str, suggestion: Optional[str] = None) -> str:
    """
    Format error message with optional suggestion.

    Args:
        message: Error message
        suggestion: Optional suggestion or help text

    Returns:
        Formatted error string
    """
    error = f"❌ Error: {message}"
    if suggestion:
        error += f"\n💡 Tip: {suggestion}"
    return error


def variable_options(func):
    """Add the --var-file and --var options shared by template commands."""
    func = click.option(
        '--var', 'assignments', multiple=True, metavar='NAME=VALUE',
        help='Set a template variable (repeatable, highest precedence)'
    )(func)
    func = click.option(
        '--var-file', 'var_files', multiple=True, type=click.Path(),
        help='YAML file of variable values (repeatable, later files win)'
    )(func)
    return func


def open_workspace(ctx: click.Context) -> Workspace:
    """
    Create the Workspace for the current directory and apply its log level.

    --verbose on the command group takes precedence over the configured level.
    """
    workspace = Workspace(Path.cwd())
    if not (ctx.obj or {}).get("verbose"):
        logging.getLogger("stackform").setLevel(workspace.config.log_level)
    return workspace


def resolve_template(template: str) -> str:
    """Resolve the template argument, raising TemplateLoadError if it is missing."""
    try:
        return str(resolve_file_path(template))
    except FileNotFoundError as e:
        raise TemplateLoadError(str(e))


def write_output(text: str, output: Optional[str] = None) -> None:
    """Write ``text`` to ``output`` or stdout."""
    if output:
        output_path = Path(output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, 'w', encoding='utf-8') as f:
            f.write(text + "\n")
        click.echo(f"Output saved to: {output_path}", err=True)
        return
    try:
        click.echo(text)
    except UnicodeEncodeError:
        click.echo(text.encode('ascii', errors='replace').decode('ascii'))


def _suggestion(error: Exception) -> Optional[str]:
    if isinstance(error, MissingVariableError):
        return "Supply it with --var NAME=VALUE, --var-file or STACKFORM_VAR_<NAME>"
    if isinstance(error, StalePlanError):
        return "Run 'stackform plan --out' again and apply the new plan"
    if isinstance(error, StateError):
        return "Run 'stackform init' to create an empty state, or repair the state file"
    return None


def fail(error: Exception) -> None:
    """Report ``error`` on stderr and exit 1."""
    if isinstance(error, StackformError):
        click.echo(format_error(str(error), _suggestion(error)), err=True)
    else:
        logger.error(f"Unexpected error: {error}", exc_info=True)
        click.echo(format_error(f"Unexpected error: {error}"), err=True)
    sys.exit(1)


__all__ = ["fail", "format_error", "open_workspace", "resolve_file_path", "resolve_template", "variable_options", "write_output"]
