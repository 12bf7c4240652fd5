from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence

from qbo_actions.services.errors import QuickBooksValidationError


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


class ParameterSource(Protocol):
    """Per-item parameter resolution provided by the workflow host."""

    def get_parameter(self, name: str, item_index: int, default: Any = MISSING) -> Any:
        ...


class ItemParameters:
    """Resolves parameters from one plain mapping per input item.

    Dotted names (`filters.query`) walk nested mappings.
    """

    def __init__(self, items: Sequence[Mapping[str, Any]]):
        self._items = list(items)

    def __len__(self) -> int:
        return len(self._items)

    def get_parameter(self, name: str, item_index: int, default: Any = MISSING) -> Any:
        try:
            value: Any = self._items[item_index]
        except IndexError as exc:
            raise QuickBooksValidationError(f"There is no input item at index {item_index}") from exc
        for part in name.split("."):
            if not isinstance(value, Mapping) or value.get(part) is None:
                if default is MISSING:
                    raise QuickBooksValidationError(
                        f"Missing required parameter '{name}' for item {item_index}"
                    )
                return default
            value = value[part]
        return value
