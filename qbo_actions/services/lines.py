from __future__ import annotations

from typing import Any, Mapping, Sequence

from qbo_actions.services.errors import QuickBooksValidationError
from qbo_actions.services.resources import ResourceSchema


_BASE_LINE_FIELDS = ("DetailType", "Amount", "Description")


def validate_lines(schema: ResourceSchema, lines: Sequence[Mapping[str, Any]]) -> None:
    if not isinstance(lines, (list, tuple)):
        raise QuickBooksValidationError(f"Lines for the {schema.name} must be a list of line objects.")
    if not lines:
        raise QuickBooksValidationError(f"Please enter at least one line for the {schema.name}.")
    if not all(isinstance(line, Mapping) for line in lines):
        raise QuickBooksValidationError(f"Every line for the {schema.name} must be an object.")

    if any(line.get(name) is None for line in lines for name in _BASE_LINE_FIELDS):
        raise QuickBooksValidationError("Please enter detail type, amount and description for every line.")

    for line in lines:
        rule = schema.line_rules.get(line["DetailType"])
        if rule is not None and line.get(rule.parameter) in (None, ""):
            raise QuickBooksValidationError(f"Please enter {rule.label} for the associated line.")


def process_lines(schema: ResourceSchema, lines: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
    """Validate caller lines and nest their references the way QuickBooks expects.

    Line order is preserved; QuickBooks renders documents in line order.
    """
    validate_lines(schema, lines)

    processed: list[dict[str, Any]] = []
    for line in lines:
        detail_type = line["DetailType"]
        entry = {name: line[name] for name in _BASE_LINE_FIELDS}
        rule = schema.line_rules.get(detail_type)
        if rule is not None:
            entry[detail_type] = {rule.ref_key: {"value": line[rule.parameter]}}
        processed.append(entry)
    return processed
