"""Webhook execution data models shared by access, transform, validation and dispatch layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
FieldType = Literal["string", "number", "boolean", "object", "array"]
ValidationRuleType = Literal["min", "max", "pattern", "enum", "custom"]
Role = Literal["owner", "admin", "member"]
ExceptionAccess = Literal["allow", "deny"]
MemberStatus = Literal["active", "pending", "removed"]
ErrorKind = Literal["Timeout", "BadRequest", "ServerError", "NetworkError", "ValidationError"]
RejectionCode = Literal["NOT_FOUND", "PERMISSION_DENIED", "FAILED_PRECONDITION", "INTERNAL", "INVALID_ARGUMENT"]

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})

# Stored documents use the legacy upper-snake spelling.
LEGACY_ERROR_TYPES: dict[str, str] = {
    "Timeout": "TIMEOUT",
    "BadRequest": "BAD_REQUEST",
    "ServerError": "SERVER_ERROR",
    "NetworkError": "NETWORK_ERROR",
    "ValidationError": "VALIDATION_ERROR",
}


@dataclass(slots=True)
class ValidationRule:
    """One declarative check applied to a field value."""

    type: ValidationRuleType
    value: Any = None
    message: str | None = None


_UNSET: Any = object()


@dataclass(slots=True)
class FieldSpec:
    """Typed, optionally required key addressed by a dotted path into the payload."""

    key: str
    type: FieldType
    required: bool = False
    default_value: Any = _UNSET
    validation_rules: list[ValidationRule] = field(default_factory=list)
    description: str | None = None

    @property
    def has_default(self) -> bool:
        return self.default_value is not _UNSET


@dataclass(slots=True)
class UserException:
    """Per-user override of the role based permission list."""

    user_id: str
    email: str = ""
    access: ExceptionAccess = "allow"


@dataclass(slots=True)
class WebhookPermissions:
    """Role allow-list plus per-user overrides."""

    allowed_roles: set[str] = field(default_factory=set)
    user_exceptions: list[UserException] = field(default_factory=list)


@dataclass(slots=True)
class WebhookDefinition:
    """Stored description of an outbound HTTP call."""

    id: str
    workspace_id: str
    created_by: str
    name: str
    endpoint_url: str
    http_method: HttpMethod = "POST"
    is_enabled: bool = True
    headers: dict[str, str] = field(default_factory=dict)
    secure_headers: dict[str, str] = field(default_factory=dict)
    body_template: str | None = None
    fields: list[FieldSpec] = field(default_factory=list)
    timeout_seconds: int | None = None
    permissions: WebhookPermissions | None = None
    description: str | None = None


@dataclass(slots=True)
class WorkspaceMember:
    """Membership of a user in a workspace."""

    workspace_id: str
    user_id: str
    role: str
    status: MemberStatus = "active"
    email: str | None = None


@dataclass(slots=True)
class Workspace:
    """Workspace ownership record used for tier resolution."""

    id: str
    owner_id: str | None = None
    name: str = ""


@dataclass(slots=True)
class UserAccount:
    """User profile fields read by the pipeline."""

    id: str
    email: str | None = None
    plan_id: str | None = None


@dataclass(slots=True)
class FieldValidationResult:
    """Validation outcome for a single field."""

    field_key: str
    is_valid: bool
    errors: list[str] = field(default_factory=list)


@dataclass(slots=True)
class ClassifiedError:
    """Failure mapped into the closed error-kind taxonomy."""

    kind: ErrorKind
    message: str
    status_code: int | None = None
    response_body: Any = None


@dataclass(slots=True)
class RequestRejected:
    """Rejection raised before an execution context exists; never logged as an execution."""

    code: RejectionCode
    message: str


@dataclass(slots=True)
class AccessGrant:
    """Successful authorization outcome."""

    definition: WebhookDefinition
    workspace_id: str
    caller_role: str


@dataclass(slots=True)
class ExecutionResult:
    """Structured outcome returned to the caller for every resolved invocation."""

    success: bool
    duration_ms: int
    status: int | None = None
    data: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success, "duration": self.duration_ms}
        if self.status is not None:
            body["status"] = self.status
        if self.data is not None:
            body["data"] = self.data
        if self.error is not None:
            body["error"] = self.error
        if self.error_kind is not None:
            body["errorKind"] = self.error_kind
        return body


@dataclass(frozen=True, slots=True)
class ExecutionRecord:
    """Immutable audit fact describing one pipeline invocation."""

    workspace_id: str
    user_id: str
    conversation_id: str
    message_id: str
    webhook_id: str
    webhook_name: str
    request_payload: Any
    duration_ms: int
    response_status: int | None = None
    response_data: Any = None
    error: str | None = None
    error_kind: ErrorKind | None = None
    retry_count: int = 0
    executed_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_document(self) -> dict[str, Any]:
        """Serialize with the stored document field names."""

        return {
            "workspaceId": self.workspace_id,
            "userId": self.user_id,
            "conversationId": self.conversation_id,
            "messageId": self.message_id,
            "webhookId": self.webhook_id,
            "webhookName": self.webhook_name,
            "requestPayload": self.request_payload,
            "responseStatus": self.response_status,
            "responseData": self.response_data,
            "error": self.error,
            "errorType": None if self.error_kind is None else LEGACY_ERROR_TYPES[self.error_kind],
            "duration": self.duration_ms,
            "retryCount": self.retry_count,
            "executedAt": self.executed_at.isoformat(),
        }
