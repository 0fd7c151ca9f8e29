"""Presentation layer - human-friendly formatting."""

from .formatter import (
    format_apply_result,
    format_outputs,
    format_plan,
    format_plan_json,
    mask_text,
    plan_to_dict,
)

__all__ = ["format_apply_result", "format_outputs", "format_plan", "format_plan_json", "mask_text", "plan_to_dict"]
