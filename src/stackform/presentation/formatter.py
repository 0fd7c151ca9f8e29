"""Human-friendly output formatter - converts plans and apply results to readable text."""

import json
import os
from typing import Any, Dict, Iterable, List, Optional
from ..executor.models import ActionStatus, ApplyResult
from ..planner.models import ActionType, AttributeChange, Plan, PlannedAction

SENSITIVE = "(sensitive)"
MASK = "****"

SYMBOLS = {
    "create": "+",
    "update": "~",
    "delete": "-",
    "replace": "-/+",
    "no-op": " ",
}


def _use_ascii(ascii_mode: Optional[bool] = None) -> bool:
    """Resolve whether to use ASCII output (checked at format time)."""
    if ascii_mode is not None:
        return bool(ascii_mode)
    return os.environ.get("STACKFORM_ASCII", "").lower() in ("1", "true", "yes")


def _rule(width: int = 65, ascii_mode: bool = False) -> str:
    return ("-" if ascii_mode else "─") * width


def mask_text(value: Any, sensitive_values: Iterable[str] = ()) -> Any:
    """Replace occurrences of sensitive variable values inside ``value``."""
    if isinstance(value, str):
        for secret in sensitive_values:
            if secret:
                value = value.replace(secret, MASK)
        return value
    if isinstance(value, dict):
        return {k: mask_text(v, sensitive_values) for k, v in value.items()}
    if isinstance(value, list):
        return [mask_text(v, sensitive_values) for v in value]
    return value


def _render(value: Any, sensitive_values: Iterable[str]) -> str:
    if value is None:
        return "null"
    value = mask_text(value, sensitive_values)
    if isinstance(value, str):
        if "\n" in value:
            first = value.splitlines()[0]
            return json.dumps(f"{first} ...") + f" ({len(value.splitlines())} lines)"
        return json.dumps(value)
    return json.dumps(value, sort_keys=True, default=str)


def _change_line(change: AttributeChange, kind: str, sensitive_values: List[str]) -> str:
    before = SENSITIVE if change.sensitive else _render(change.before, sensitive_values)
    after = SENSITIVE if change.sensitive else _render(change.after, sensitive_values)
    suffix = "  # forces replacement" if change.forces_replacement else ""

    if kind == "create":
        return f"      + {change.name} = {after}"
    if change.before is None:
        return f"      + {change.name} = {after}{suffix}"
    if change.after is None:
        return f"      - {change.name} = {before}{suffix}"
    return f"      ~ {change.name}: {before} -> {after}{suffix}"


def _display_kind(action: PlannedAction) -> str:
    if action.replace:
        return "replace"
    return action.action.value


def format_plan(
    plan: Plan,
    sensitive_values: Iterable[str] = (),
    show_unchanged: bool = False,
    ascii_mode: Optional[bool] = None
) -> str:
    """
    Format a plan for terminal display.

    A replacement is shown once at the position of its create, as ``-/+``,
    or ``+/-`` when the new resource is created before the old one is deleted.
    Sensitive attributes and sensitive variable values are masked.

    Args:
        plan: Plan to render
        sensitive_values: Literal values to mask wherever they appear
        show_unchanged: Also list no-op instances
        ascii_mode: Force ASCII rules (default: STACKFORM_ASCII env)

    Returns:
        Formatted multi-line string
    """
    ascii_mode = _use_ascii(ascii_mode)
    sensitive_values = [s for s in sensitive_values if s]
    lines = []

    if plan.is_empty():
        lines.append("No changes. Infrastructure matches the template.")
        return "\n".join(lines)

    header = "Destroy plan" if plan.destroy else "Execution plan"
    if plan.refreshed:
        header += " (state refreshed from providers)"
    lines.append(header)
    lines.append(_rule(ascii_mode=ascii_mode))
    lines.append("Symbols: + create, ~ update, - delete, -/+ replace, +/- replace (create first)")
    lines.append("")

    for action in plan.actions:
        kind = _display_kind(action)
        if action.replace and action.action == ActionType.DELETE:
            continue
        if kind == "no-op" and not show_unchanged:
            continue

        symbol = "+/-" if action.create_before_delete else SYMBOLS[kind]
        title = f"  {symbol} {action.logical_name}"
        if kind == "replace" and action.replace_reason:
            title += f"  (forces replacement: {', '.join(action.replace_reason)})"
        elif kind == "no-op":
            title += "  (unchanged)"
        lines.append(title)

        if kind == "delete":
            lines.append(f"      id = {json.dumps(action.prior.provider_id)}")
            continue
        change_kind = "create" if kind == "create" else "update"
        for change in action.changes:
            lines.append(_change_line(change, change_kind, sensitive_values))

    summary = plan.summary()
    lines.append("")
    lines.append(_rule(ascii_mode=ascii_mode))
    lines.append(
        f"Plan: {summary['create']} to create, {summary['update']} to update, "
        f"{summary['replace']} to replace, {summary['delete']} to delete."
    )
    return "\n".join(lines)


def plan_to_dict(plan: Plan, sensitive_values: Iterable[str] = ()) -> Dict[str, Any]:
    """Machine-readable plan view with sensitive values masked."""
    sensitive_values = [s for s in sensitive_values if s]
    actions = []
    for action in plan.actions:
        actions.append({
            "key": action.key,
            "logical_name": action.logical_name,
            "resource_type": action.resource_type,
            "action": action.action.value,
            "replace": action.replace,
            "replace_reason": action.replace_reason,
            "create_before_delete": action.create_before_delete,
            "requires": action.requires,
            "provider_id": action.prior.provider_id if action.prior else None,
            "changes": [
                {
                    "name": c.name,
                    "before": SENSITIVE if c.sensitive else mask_text(c.before, sensitive_values),
                    "after": SENSITIVE if c.sensitive else mask_text(c.after, sensitive_values),
                    "forces_replacement": c.forces_replacement,
                }
                for c in action.changes
            ],
        })
    return {
        "destroy": plan.destroy,
        "refreshed": plan.refreshed,
        "template_digest": plan.template_digest,
        "state_serial": plan.state_serial,
        "summary": plan.summary(),
        "actions": actions,
    }


def format_plan_json(plan: Plan, sensitive_values: Iterable[str] = ()) -> str:
    return json.dumps(plan_to_dict(plan, sensitive_values), indent=2, default=str)


def format_apply_result(result: ApplyResult, ascii_mode: Optional[bool] = None) -> str:
    """Format per-action outcomes and a totals line."""
    ascii_mode = _use_ascii(ascii_mode)
    marks = {
        ActionStatus.SUCCEEDED: "[ok]" if ascii_mode else "✓",
        ActionStatus.FAILED: "[FAILED]" if ascii_mode else "✗",
        ActionStatus.SKIPPED: "[skipped]" if ascii_mode else "↷",
        ActionStatus.CANCELED: "[canceled]" if ascii_mode else "⊘",
    }
    lines = []
    for outcome in result.outcomes:
        if outcome.status == ActionStatus.UNCHANGED:
            continue
        verb = f"{outcome.action.value}{' (replace)' if outcome.replace else ''}"
        line = f"  {marks[outcome.status]} {outcome.logical_name}: {verb} {outcome.status.value}"
        if outcome.provider_id and outcome.status == ActionStatus.SUCCEEDED:
            line += f" [{outcome.provider_id}]"
        if outcome.message:
            line += f" - {outcome.message}"
        if outcome.failed_dependency:
            line += f" (depends on {outcome.failed_dependency})"
        lines.append(line)

    counts = result.summary()
    if lines:
        lines.append("")
    status = "Apply complete" if result.ok else ("Apply canceled" if result.canceled else "Apply failed")
    lines.append(
        f"{status}: {counts['succeeded']} succeeded, {counts['failed']} failed, "
        f"{counts['skipped']} skipped, {counts['canceled']} canceled, {counts['unchanged']} unchanged."
    )
    return "\n".join(lines)


def format_outputs(
    values: Dict[str, Any],
    sensitive_values: Iterable[str] = (),
    sensitive_names: Iterable[str] = ()
) -> str:
    if not values:
        return "No outputs."
    sensitive_values = [s for s in sensitive_values if s]
    sensitive_names = set(sensitive_names)
    width = max(len(name) for name in values)
    lines = ["Outputs:"]
    for name, value in values.items():
        if value is None:
            shown = "(not yet known)"
        elif name in sensitive_names:
            shown = SENSITIVE
        else:
            shown = _render(value, sensitive_values)
        lines.append(f"  {name:<{width}} = {shown}")
    return "\n".join(lines)
