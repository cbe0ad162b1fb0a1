"""Webhook execution pipeline: access control, tiers, templating, validation, dispatch."""

from hookrelay.pipeline.access import AccessGate, is_permitted
from hookrelay.pipeline.analytics import WorkspaceAnalytics, get_workspace_analytics, summarize_executions
from hookrelay.pipeline.credentials import (
    MASKED_HEADER_VALUE,
    HeaderCipher,
    SecretDecryptionError,
    SecretResolver,
    mask_headers,
)
from hookrelay.pipeline.dispatcher import Dispatcher, DispatcherSettings, build_query_params
from hookrelay.pipeline.documents import definition_from_mapping, field_from_mapping
from hookrelay.pipeline.errors import ErrorClassifier, format_error_for_agent, is_retryable
from hookrelay.pipeline.execution_log import ExecutionLogger
from hookrelay.pipeline.tiers import DEFAULT_TIER_LIMITS, TierLimits, TierPolicy, TierResolver
from hookrelay.pipeline.transformer import MISSING, PayloadTransformer, assign_path, resolve_path
from hookrelay.pipeline.types import (
    AccessGrant,
    ClassifiedError,
    ErrorKind,
    ExecutionRecord,
    ExecutionResult,
    FieldSpec,
    FieldValidationResult,
    RequestRejected,
    UserAccount,
    UserException,
    ValidationRule,
    WebhookDefinition,
    WebhookPermissions,
    Workspace,
    WorkspaceMember,
)
from hookrelay.pipeline.validator import FieldValidator

__all__ = [
    "AccessGate",
    "AccessGrant",
    "ClassifiedError",
    "DEFAULT_TIER_LIMITS",
    "Dispatcher",
    "DispatcherSettings",
    "ErrorClassifier",
    "ErrorKind",
    "ExecutionLogger",
    "ExecutionRecord",
    "ExecutionResult",
    "FieldSpec",
    "FieldValidationResult",
    "FieldValidator",
    "HeaderCipher",
    "MASKED_HEADER_VALUE",
    "MISSING",
    "PayloadTransformer",
    "RequestRejected",
    "SecretDecryptionError",
    "SecretResolver",
    "TierLimits",
    "TierPolicy",
    "TierResolver",
    "UserAccount",
    "UserException",
    "ValidationRule",
    "WebhookDefinition",
    "WebhookPermissions",
    "Workspace",
    "WorkspaceAnalytics",
    "WorkspaceMember",
    "assign_path",
    "build_query_params",
    "definition_from_mapping",
    "field_from_mapping",
    "format_error_for_agent",
    "get_workspace_analytics",
    "is_permitted",
    "is_retryable",
    "mask_headers",
    "resolve_path",
    "summarize_executions",
]
