"""Body template rendering and dotted-path payload addressing."""

from __future__ import annotations

import copy
import json
from collections.abc import Mapping, Sequence
from typing import Any

from hookrelay.pipeline.types import ClassifiedError, FieldSpec


class _Missing:
    """Marker for an absent path; distinct from JSON null."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def split_path(path: str) -> list[str]:
    return path.split(".")


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dotted path through a JSON tree; any gap yields MISSING."""

    current = data
    for part in split_path(path):
        if isinstance(current, dict):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, list):
            if not part.isdecimal() or int(part) >= len(current):
                return MISSING
            current = current[int(part)]
        else:
            return MISSING
    return current


def assign_path(target: dict[str, Any], path: str, value: Any) -> None:
    """Write value at a dotted path, replacing missing or non-object segments with {}.

    A scalar or list sitting on an intermediate segment is overwritten, not merged.
    """
    parts = split_path(path)
    current = target
    for key in parts[:-1]:
        child = current.get(key)
        if not isinstance(child, dict):
            child = {}
            current[key] = child
        current = child
    current[parts[-1]] = value


class PayloadTransformer:
    """Render a webhook body template with caller-supplied and default field values."""

    def render(self, template: str, fields: Sequence[FieldSpec], caller_values: Mapping[str, Any]) -> Any:
        try:
            parsed = json.loads(template)
        except (TypeError, json.JSONDecodeError) as exc:
            raise ValueError("Invalid JSON template") from exc
        payload = copy.deepcopy(parsed)
        for spec in fields:
            if spec.key in caller_values:
                value = caller_values[spec.key]
            elif spec.has_default:
                value = spec.default_value
            else:
                continue
            if not isinstance(payload, dict):
                raise ValueError("JSON template root must be an object")
            assign_path(payload, spec.key, copy.deepcopy(value))
        return payload

    def render_safe(
        self,
        template: str,
        fields: Sequence[FieldSpec],
        caller_values: Mapping[str, Any],
    ) -> tuple[Any, ClassifiedError | None]:
        try:
            return self.render(template, fields, caller_values), None
        except ValueError as exc:
            return None, ClassifiedError(kind="ValidationError", message=str(exc))

    def build_payload(
        self,
        body_template: str | None,
        fields: Sequence[FieldSpec],
        caller_values: Mapping[str, Any],
    ) -> tuple[Any, ClassifiedError | None]:
        """Use the template when one is configured, otherwise the caller payload as-is."""

        if not body_template:
            return caller_values, None
        return self.render_safe(body_template, fields, caller_values)
