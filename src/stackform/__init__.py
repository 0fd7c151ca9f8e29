"""stackform - Declarative infrastructure reconciler."""

from pathlib import Path
from typing import Iterable, Optional
from .executor.models import ApplyResult
from .planner.models import Plan
from .utils.errors import StackformError
from .utils.logging import get_logger, setup_logging

__version__ = "0.1.0"

__all__ = ["plan", "apply", "destroy", "Workspace", "__version__"]

setup_logging()
logger = get_logger("stackform")

from .workspace import Workspace  # noqa: E402


def plan(
    template_path: str,
    var_files: Iterable[str] = (),
    assignments: Iterable[str] = (),
    destroy: bool = False,
    refresh: Optional[bool] = None,
    base_dir: Optional[Path] = None
) -> Plan:
    """Parse a template and compute the plan reconciling it with recorded state."""
    try:
        logger.info(f"Planning template: {template_path}")
        workspace = Workspace(base_dir)
        template = workspace.load(template_path, var_files, assignments)
        return workspace.plan(template, destroy=destroy, refresh=refresh)
    except StackformError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during planning: {e}", exc_info=True)
        raise StackformError(f"Planning failed: {e}") from e


def apply(
    template_path: str,
    var_files: Iterable[str] = (),
    assignments: Iterable[str] = (),
    destroy: bool = False,
    refresh: Optional[bool] = None,
    parallelism: Optional[int] = None,
    base_dir: Optional[Path] = None
) -> ApplyResult:
    """
    Plan and apply a template without confirmation.

    Failed actions are reported in the returned ApplyResult; call
    ``raise_for_failures()`` to turn them into an ApplyError.
    """
    try:
        workspace = Workspace(base_dir)
        template = workspace.load(template_path, var_files, assignments)
        current_plan = workspace.plan(template, destroy=destroy, refresh=refresh)
        result = workspace.apply(current_plan, parallelism=parallelism)
        logger.info(f"Apply of {template_path} finished: {result.summary()}")
        return result
    except StackformError:
        raise
    except Exception as e:
        logger.error(f"Unexpected error during apply: {e}", exc_info=True)
        raise StackformError(f"Apply failed: {e}") from e


def destroy(
    template_path: str,
    var_files: Iterable[str] = (),
    assignments: Iterable[str] = (),
    parallelism: Optional[int] = None,
    base_dir: Optional[Path] = None
) -> ApplyResult:
    """Delete every recorded resource, dependents first."""
    return apply(template_path, var_files, assignments, destroy=True, parallelism=parallelism, base_dir=base_dir)
