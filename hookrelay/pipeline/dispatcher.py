"""Webhook execution pipeline: authorize, shape, validate, call, classify, log."""

from __future__ import annotations

import asyncio
import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import httpx

from hookrelay.pipeline.access import AccessGate
from hookrelay.pipeline.credentials import SecretDecryptionError, SecretResolver
from hookrelay.pipeline.errors import ErrorClassifier, decode_response_body
from hookrelay.pipeline.execution_log import ExecutionLogger
from hookrelay.pipeline.tiers import TierPolicy, TierResolver
from hookrelay.pipeline.transformer import PayloadTransformer
from hookrelay.pipeline.types import (
    BODY_METHODS,
    AccessGrant,
    ClassifiedError,
    ExecutionRecord,
    ExecutionResult,
    RequestRejected,
    WebhookDefinition,
)
from hookrelay.pipeline.validator import FieldValidator

logger = logging.getLogger(__name__)

DRY_RUN_MESSAGE = "Dry run successful. Validation passed."


@dataclass(slots=True)
class DispatcherSettings:
    """Outbound client behaviour."""

    user_agent: str = "hookrelay/1.0"
    follow_redirects: bool = False
    background_logging: bool = True


@dataclass(slots=True)
class _Invocation:
    grant: AccessGrant
    caller_id: str
    conversation_id: str
    message_id: str
    started: float
    logged: bool = False

    @property
    def definition(self) -> WebhookDefinition:
        return self.grant.definition


class Dispatcher:
    """Run one webhook invocation end to end; never raises to the caller."""

    def __init__(
        self,
        *,
        access_gate: AccessGate,
        tier_resolver: TierResolver,
        tier_policy: TierPolicy,
        secret_resolver: SecretResolver,
        execution_logger: ExecutionLogger,
        transformer: PayloadTransformer | None = None,
        validator: FieldValidator | None = None,
        classifier: ErrorClassifier | None = None,
        settings: DispatcherSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._access_gate = access_gate
        self._tier_resolver = tier_resolver
        self._tier_policy = tier_policy
        self._secret_resolver = secret_resolver
        self._execution_logger = execution_logger
        self._transformer = transformer or PayloadTransformer()
        self._validator = validator or FieldValidator()
        self._classifier = classifier or ErrorClassifier()
        self._settings = settings or DispatcherSettings()
        self._transport = transport
        self._clock = clock

    async def execute(
        self,
        caller_id: str,
        webhook_id: str,
        payload: Any,
        *,
        conversation_id: str = "",
        message_id: str = "",
        dry_run: bool = False,
    ) -> ExecutionResult | RequestRejected:
        started = self._clock()
        if not webhook_id or not isinstance(payload, dict):
            return RequestRejected(code="INVALID_ARGUMENT", message="webhookId and payload are required")
        invocation: _Invocation | None = None
        try:
            authorized = await self._access_gate.authorize(caller_id, webhook_id)
            if isinstance(authorized, RequestRejected):
                return authorized
            invocation = _Invocation(
                grant=authorized,
                caller_id=caller_id,
                conversation_id=conversation_id,
                message_id=message_id,
                started=started,
            )
            return await self._run(invocation, payload, dry_run)
        except Exception as exc:
            logger.exception("webhook execution failed unexpectedly webhook=%s", webhook_id)
            error = ClassifiedError(kind="NetworkError", message=str(exc) or "Unknown error occurred")
            if invocation is not None and not invocation.logged:
                await self._log(invocation, payload, error=error)
            return self._failure(started, error)

    async def _run(self, invocation: _Invocation, payload: dict[str, Any], dry_run: bool) -> ExecutionResult | RequestRejected:
        definition = invocation.definition
        tier = await self._tier_resolver.resolve_tier(invocation.grant.workspace_id)
        timeout_seconds = self._tier_policy.resolve_timeout(tier, definition.timeout_seconds)
        logger.debug("resolved timeout webhook=%s tier=%s timeout=%ss", definition.id, tier, timeout_seconds)

        final_payload, error = self._transformer.build_payload(definition.body_template, definition.fields, payload)
        if error is None:
            results = self._validator.validate(final_payload, definition.fields)
            if not self._validator.is_valid(results):
                error = ClassifiedError(
                    kind="ValidationError",
                    message=f"Validation failed: {'; '.join(self._validator.errors(results))}",
                )
        if error is not None:
            logger.info("webhook payload rejected webhook=%s: %s", definition.id, error.message)
            await self._log(invocation, payload, error=error)
            return self._failure(invocation.started, error)

        if dry_run:
            await self._log(
                invocation,
                payload,
                response_status=200,
                response_data={"dryRun": True, "message": DRY_RUN_MESSAGE, "transformedPayload": final_payload},
            )
            return ExecutionResult(
                success=True,
                status=200,
                data={"dryRun": True, "transformedPayload": final_payload},
                duration_ms=self._elapsed_ms(invocation.started),
            )

        try:
            headers = await asyncio.to_thread(
                self._secret_resolver.resolve_headers, definition.headers, definition.secure_headers
            )
        except SecretDecryptionError as exc:
            logger.error("failed to decrypt secure headers webhook=%s: %s", definition.id, exc)
            return RequestRejected(code="INTERNAL", message="Failed to process secure credentials")
        headers.setdefault("User-Agent", self._settings.user_agent)

        try:
            response = await self._send(definition, headers, final_payload, timeout_seconds)
        except (httpx.HTTPError, asyncio.TimeoutError) as exc:
            error = self._classifier.classify(exc)
            logger.warning("webhook transport failure webhook=%s kind=%s: %s", definition.id, error.kind, error.message)
            await self._log(invocation, final_payload, error=error)
            return self._failure(invocation.started, error)

        body = decode_response_body(response)
        duration_ms = self._elapsed_ms(invocation.started)
        logger.info(
            "webhook call finished webhook=%s method=%s host=%s status=%s duration_ms=%s",
            definition.id,
            definition.http_method,
            response.url.host,
            response.status_code,
            duration_ms,
        )
        if 200 <= response.status_code < 300:
            await self._log(invocation, final_payload, response_status=response.status_code, response_data=body)
            return ExecutionResult(success=True, status=response.status_code, data=body, duration_ms=duration_ms)

        error = self._classifier.response_error(response.status_code, body)
        logger.warning("webhook returned error webhook=%s status=%s kind=%s", definition.id, response.status_code, error.kind)
        await self._log(invocation, final_payload, error=error, response_status=response.status_code, response_data=body)
        return ExecutionResult(
            success=False,
            status=response.status_code,
            error=error.message,
            error_kind=error.kind,
            duration_ms=duration_ms,
        )

    async def _send(
        self,
        definition: WebhookDefinition,
        headers: dict[str, str],
        payload: Any,
        timeout_seconds: float,
    ) -> httpx.Response:
        method = definition.http_method.upper()
        content: bytes | None = None
        params: dict[str, str] | None = None
        if method in BODY_METHODS:
            content = json.dumps(payload, ensure_ascii=False).encode("utf-8")
        elif method == "GET" and isinstance(payload, dict) and payload:
            params = build_query_params(payload)
        logger.info("calling webhook=%s method=%s timeout=%ss", definition.id, method, timeout_seconds)
        async with httpx.AsyncClient(
            timeout=timeout_seconds,
            transport=self._transport,
            follow_redirects=self._settings.follow_redirects,
        ) as client:
            request = client.request(method, definition.endpoint_url, headers=headers, content=content, params=params)
            return await asyncio.wait_for(request, timeout=timeout_seconds)

    async def _log(
        self,
        invocation: _Invocation,
        request_payload: Any,
        *,
        error: ClassifiedError | None = None,
        response_status: int | None = None,
        response_data: Any = None,
    ) -> None:
        definition = invocation.definition
        record = ExecutionRecord(
            workspace_id=invocation.grant.workspace_id,
            user_id=invocation.caller_id,
            conversation_id=invocation.conversation_id,
            message_id=invocation.message_id,
            webhook_id=definition.id,
            webhook_name=definition.name,
            request_payload=request_payload,
            duration_ms=self._elapsed_ms(invocation.started),
            response_status=response_status,
            response_data=response_data,
            error=None if error is None else error.message,
            error_kind=None if error is None else error.kind,
            retry_count=0,
        )
        invocation.logged = True
        if self._settings.background_logging:
            self._execution_logger.submit(record)
        else:
            await self._execution_logger.write(record)

    def _failure(self, started: float, error: ClassifiedError) -> ExecutionResult:
        return ExecutionResult(
            success=False,
            error=error.message,
            error_kind=error.kind,
            duration_ms=self._elapsed_ms(started),
        )

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int(round((self._clock() - started) * 1000)))


def build_query_params(payload: dict[str, Any]) -> dict[str, str]:
    """Flatten a payload into query parameters; nested values are sent as JSON text."""

    params: dict[str, str] = {}
    for key, value in payload.items():
        if value is None:
            continue
        if isinstance(value, bool):
            params[key] = "true" if value else "false"
        elif isinstance(value, dict | list):
            params[key] = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        else:
            params[key] = str(value)
    return params
