"""Conversion between stored webhook documents and pipeline dataclasses."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from hookrelay.pipeline.types import (
    FieldSpec,
    UserException,
    ValidationRule,
    WebhookDefinition,
    WebhookPermissions,
)

HTTP_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}
FIELD_TYPES = {"string", "number", "boolean", "object", "array"}
RULE_TYPES = {"min", "max", "pattern", "enum", "custom"}


def rule_from_mapping(data: Mapping[str, Any]) -> ValidationRule:
    rule_type = str(data.get("type", ""))
    if rule_type not in RULE_TYPES:
        raise ValueError(f"unsupported validation rule type: {rule_type}")
    return ValidationRule(type=rule_type, value=data.get("value"), message=data.get("message"))  # type: ignore[arg-type]


def field_from_mapping(data: Mapping[str, Any]) -> FieldSpec:
    key = str(data.get("key", "")).strip()
    if not key:
        raise ValueError("field key is required")
    field_type = str(data.get("type", "string"))
    if field_type not in FIELD_TYPES:
        raise ValueError(f"unsupported field type for {key}: {field_type}")
    spec = FieldSpec(
        key=key,
        type=field_type,  # type: ignore[arg-type]
        required=bool(data.get("required", False)),
        validation_rules=[rule_from_mapping(item) for item in data.get("validationRules") or []],
        description=data.get("description"),
    )
    if "defaultValue" in data:
        spec.default_value = data["defaultValue"]
    return spec


def field_to_mapping(spec: FieldSpec) -> dict[str, Any]:
    data: dict[str, Any] = {
        "key": spec.key,
        "type": spec.type,
        "required": spec.required,
        "validationRules": [
            {key: value for key, value in (("type", rule.type), ("value", rule.value), ("message", rule.message)) if value is not None}
            for rule in spec.validation_rules
        ],
    }
    if spec.has_default:
        data["defaultValue"] = spec.default_value
    if spec.description:
        data["description"] = spec.description
    return data


def permissions_from_mapping(data: Mapping[str, Any] | None) -> WebhookPermissions | None:
    if data is None:
        return None
    return WebhookPermissions(
        allowed_roles={str(role) for role in data.get("allowedRoles") or []},
        user_exceptions=[
            UserException(
                user_id=str(item.get("userId", "")),
                email=str(item.get("email", "")),
                access="deny" if item.get("access") == "deny" else "allow",
            )
            for item in data.get("userExceptions") or []
        ],
    )


def permissions_to_mapping(permissions: WebhookPermissions | None) -> dict[str, Any] | None:
    if permissions is None:
        return None
    return {
        "allowedRoles": sorted(permissions.allowed_roles),
        "userExceptions": [
            {"userId": item.user_id, "email": item.email, "access": item.access} for item in permissions.user_exceptions
        ],
    }


def definition_from_mapping(data: Mapping[str, Any], *, webhook_id: str | None = None) -> WebhookDefinition:
    """Build a definition from a camelCase webhook document."""

    method = str(data.get("httpMethod", "POST")).upper()
    if method not in HTTP_METHODS:
        raise ValueError(f"unsupported http method: {method}")
    timeout = _timeout_from(data.get("timeoutSeconds"))
    return WebhookDefinition(
        id=str(webhook_id or data.get("id", "")),
        workspace_id=str(data.get("workspaceId", "")),
        created_by=str(data.get("createdBy", "")),
        name=str(data.get("name", "")),
        endpoint_url=str(data.get("endpointUrl", "")),
        http_method=method,  # type: ignore[arg-type]
        is_enabled=bool(data.get("isEnabled", True)),
        headers=dict(data.get("headers") or {}),
        secure_headers=dict(data.get("secureHeaders") or {}),
        body_template=data.get("bodyTemplate") or None,
        fields=[field_from_mapping(item) for item in data.get("fields") or []],
        timeout_seconds=timeout,
        permissions=permissions_from_mapping(data.get("permissions")),
        description=data.get("description"),
    )


def _timeout_from(raw: Any) -> int | None:
    """Whole seconds, rounded up; stored timeouts must be positive numbers."""

    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int | float) or not math.isfinite(raw) or raw <= 0:
        raise ValueError(f"timeoutSeconds must be a positive number: {raw!r}")
    return math.ceil(raw)
