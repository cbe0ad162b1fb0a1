"""Field schema validation over arbitrary JSON payloads."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any

from hookrelay.pipeline.transformer import MISSING, resolve_path
from hookrelay.pipeline.types import FieldSpec, FieldValidationResult, ValidationRule


class FieldValidator:
    """Validate payload values against required/type/rule declarations."""

    def validate(self, payload: Any, fields: Sequence[FieldSpec]) -> list[FieldValidationResult]:
        return [self.validate_field(resolve_path(payload, spec.key), spec) for spec in fields]

    def validate_field(self, value: Any, spec: FieldSpec) -> FieldValidationResult:
        if _is_empty(value):
            if spec.required:
                return FieldValidationResult(field_key=spec.key, is_valid=False, errors=[f"{spec.key} is required"])
            return FieldValidationResult(field_key=spec.key, is_valid=True)

        errors: list[str] = []
        type_error = _check_type(value, spec)
        if type_error is not None:
            errors.append(type_error)
        for rule in spec.validation_rules:
            rule_error = _check_rule(value, spec.key, rule)
            if rule_error is not None:
                errors.append(rule_error)
        return FieldValidationResult(field_key=spec.key, is_valid=not errors, errors=errors)

    @staticmethod
    def is_valid(results: Sequence[FieldValidationResult]) -> bool:
        return all(result.is_valid for result in results)

    @staticmethod
    def errors(results: Sequence[FieldValidationResult]) -> list[str]:
        return [message for result in results if not result.is_valid for message in result.errors]


def _is_empty(value: Any) -> bool:
    return value is MISSING or value is None or value == ""


def _is_number(value: Any) -> bool:
    return isinstance(value, int | float) and not isinstance(value, bool)


def _check_type(value: Any, spec: FieldSpec) -> str | None:
    expected = spec.type
    if expected == "number" and not _is_number(value):
        return f"{spec.key} must be a number"
    if expected == "string" and not isinstance(value, str):
        return f"{spec.key} must be a string"
    if expected == "boolean" and not isinstance(value, bool):
        return f"{spec.key} must be a boolean"
    if expected == "array" and not isinstance(value, list):
        return f"{spec.key} must be an array"
    if expected == "object" and not isinstance(value, dict):
        return f"{spec.key} must be an object"
    return None


def _as_bound(raw: Any) -> float | None:
    if _is_number(raw):
        return float(raw)
    if isinstance(raw, str):
        try:
            return float(raw)
        except ValueError:
            return None
    return None


def _check_rule(value: Any, key: str, rule: ValidationRule) -> str | None:
    if rule.type in {"min", "max"}:
        bound = _as_bound(rule.value)
        if bound is None:
            return None
        if _is_number(value):
            measured, unit = float(value), ""
        elif isinstance(value, str):
            measured, unit = float(len(value)), " characters"
        else:
            return None
        if rule.type == "min" and measured < bound:
            return rule.message or f"{key} must be at least {rule.value}{unit}"
        if rule.type == "max" and measured > bound:
            return rule.message or f"{key} must be at most {rule.value}{unit}"
        return None
    if rule.type == "pattern":
        if not isinstance(value, str):
            return None
        try:
            matched = re.search(str(rule.value), value)
        except re.error:
            return rule.message or f"{key} has an invalid validation pattern"
        if matched is None:
            return rule.message or f"{key} does not match the required pattern"
        return None
    if rule.type == "enum":
        if isinstance(rule.value, list) and not _strict_contains(rule.value, value):
            return rule.message or f"{key} must be one of: {', '.join(str(item) for item in rule.value)}"
        return None
    # "custom" rules are accepted but not evaluated.
    return None


def _strict_contains(options: list[Any], value: Any) -> bool:
    for option in options:
        if _is_number(option) and _is_number(value):
            if option == value:
                return True
        elif type(option) is type(value) and option == value:
            return True
    return False
