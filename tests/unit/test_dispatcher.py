"""Unit tests for end-to-end webhook execution."""

from __future__ import annotations

import asyncio
import json
import logging
import threading
from collections.abc import Callable
from typing import Any

import httpx
import pytest

from hookrelay.pipeline.credentials import HeaderCipher, SecretResolver
from hookrelay.pipeline.dispatcher import DRY_RUN_MESSAGE, Dispatcher, build_query_params
from hookrelay.pipeline.main import PipelineStores
from hookrelay.pipeline.tiers import TierLimits, TierPolicy
from hookrelay.pipeline.types import (
    ExecutionResult,
    FieldSpec,
    RequestRejected,
    UserAccount,
    ValidationRule,
    WebhookPermissions,
    Workspace,
    WorkspaceMember,
)
from tests.factories import TEST_ENCRYPTION_KEY, make_definition

DispatcherFactory = Callable[..., Dispatcher]


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"received": True})


@pytest.mark.asyncio
async def test_successful_post_sends_json_body_and_logs_once(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["body"] = json.loads(request.content)
        seen["headers"] = request.headers
        return httpx.Response(201, json={"orderId": "A-1"})

    result = await dispatcher_factory(seeded_stores, handler).execute(
        "user-1", "wh-1", {"sku": "X"}, conversation_id="c-1", message_id="m-1"
    )

    assert isinstance(result, ExecutionResult)
    assert result.success is True
    assert result.status == 201
    assert result.data == {"orderId": "A-1"}
    assert seen["method"] == "POST"
    assert seen["body"] == {"sku": "X"}
    assert seen["headers"]["content-type"] == "application/json"
    assert seen["headers"]["user-agent"] == "hookrelay/1.0"

    records = seeded_stores.executions.records
    assert len(records) == 1
    assert records[0].response_status == 201
    assert records[0].conversation_id == "c-1"
    assert records[0].message_id == "m-1"
    assert records[0].error_kind is None


@pytest.mark.asyncio
async def test_dry_run_validates_without_calling_endpoint(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    calls = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["count"] += 1
        return httpx.Response(200)

    await seeded_stores.webhooks.add(
        make_definition(
            id="wh-tpl",
            body_template=json.dumps({"order": {"id": None}, "source": "agent"}),
            fields=[FieldSpec(key="order.id", type="string", required=True)],
        )
    )
    result = await dispatcher_factory(seeded_stores, handler).execute(
        "user-1", "wh-tpl", {"order.id": "A-7"}, dry_run=True
    )

    assert isinstance(result, ExecutionResult)
    assert result.success is True
    assert result.status == 200
    assert result.data == {"dryRun": True, "transformedPayload": {"order": {"id": "A-7"}, "source": "agent"}}
    assert calls["count"] == 0
    record = seeded_stores.executions.records[0]
    assert record.response_status == 200
    assert record.response_data["message"] == DRY_RUN_MESSAGE
    assert record.request_payload == {"order.id": "A-7"}


@pytest.mark.asyncio
async def test_validation_failure_is_logged_without_request(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    await seeded_stores.webhooks.add(
        make_definition(
            id="wh-val",
            fields=[
                FieldSpec(key="email", type="string", required=True),
                FieldSpec(key="qty", type="number", validation_rules=[ValidationRule(type="min", value=1)]),
            ],
        )
    )

    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("endpoint must not be called")

    result = await dispatcher_factory(seeded_stores, handler).execute("user-1", "wh-val", {"qty": 0})

    assert isinstance(result, ExecutionResult)
    assert result.success is False
    assert result.error_kind == "ValidationError"
    assert result.error == "Validation failed: email is required; qty must be at least 1"
    assert result.status is None
    record = seeded_stores.executions.records[0]
    assert record.error_kind == "ValidationError"
    assert record.response_status is None


@pytest.mark.asyncio
async def test_invalid_template_is_validation_error(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    await seeded_stores.webhooks.add(make_definition(id="wh-bad", body_template="{broken"))
    result = await dispatcher_factory(seeded_stores, _ok).execute("user-1", "wh-bad", {})
    assert isinstance(result, ExecutionResult)
    assert result.error_kind == "ValidationError"
    assert result.error == "Invalid JSON template"


@pytest.mark.asyncio
async def test_rejections_do_not_write_records(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    await seeded_stores.webhooks.add(make_definition(id="wh-off", is_enabled=False))
    await seeded_stores.webhooks.add(
        make_definition(id="wh-owner", permissions=WebhookPermissions(allowed_roles={"owner"}))
    )
    dispatcher = dispatcher_factory(seeded_stores, _ok)

    outcomes = [
        await dispatcher.execute("user-1", "missing", {}),
        await dispatcher.execute("stranger", "wh-1", {}),
        await dispatcher.execute("user-1", "wh-off", {}),
        await dispatcher.execute("user-1", "wh-owner", {}),
        await dispatcher.execute("user-1", "", {}),
        await dispatcher.execute("user-1", "wh-1", ["not", "an", "object"]),
    ]

    assert [item.code for item in outcomes if isinstance(item, RequestRejected)] == [
        "NOT_FOUND",
        "PERMISSION_DENIED",
        "FAILED_PRECONDITION",
        "PERMISSION_DENIED",
        "INVALID_ARGUMENT",
        "INVALID_ARGUMENT",
    ]
    assert seeded_stores.executions.records == []


@pytest.mark.asyncio
async def test_get_sends_payload_as_query_params(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["params"] = dict(request.url.params)
        seen["content"] = request.content
        return httpx.Response(200, text="pong")

    await seeded_stores.webhooks.add(make_definition(id="wh-get", http_method="GET"))
    result = await dispatcher_factory(seeded_stores, handler).execute(
        "user-1", "wh-get", {"q": "shoes", "limit": 5, "active": True, "skip": None, "filter": {"a": 1}}
    )

    assert isinstance(result, ExecutionResult)
    assert result.success is True
    assert result.data == "pong"
    assert seen["params"] == {"q": "shoes", "limit": "5", "active": "true", "filter": '{"a":1}'}
    assert seen["content"] == b""


@pytest.mark.asyncio
async def test_delete_sends_no_body(seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory) -> None:
    seen: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content"] = request.content
        seen["query"] = request.url.query
        return httpx.Response(204)

    await seeded_stores.webhooks.add(make_definition(id="wh-del", http_method="DELETE"))
    result = await dispatcher_factory(seeded_stores, handler).execute("user-1", "wh-del", {"id": 1})
    assert isinstance(result, ExecutionResult)
    assert result.success is True
    assert result.status == 204
    assert seen == {"content": b"", "query": b""}


@pytest.mark.asyncio
async def test_connection_refused_is_network_error(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("[Errno 111] Connection refused", request=request)

    result = await dispatcher_factory(seeded_stores, handler).execute("user-1", "wh-1", {"a": 1})

    assert isinstance(result, ExecutionResult)
    assert result.success is False
    assert result.error_kind == "NetworkError"
    assert result.status is None
    record = seeded_stores.executions.records[0]
    assert record.error_kind == "NetworkError"
    assert record.response_status is None


@pytest.mark.asyncio
async def test_read_timeout_is_timeout(seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    result = await dispatcher_factory(seeded_stores, handler).execute("user-1", "wh-1", {})
    assert isinstance(result, ExecutionResult)
    assert result.error_kind == "Timeout"
    assert result.error == "Webhook request timed out"


@pytest.mark.asyncio
async def test_tier_timeout_bounds_slow_endpoint(stores: PipelineStores, dispatcher_factory: DispatcherFactory) -> None:
    await stores.workspaces.add(Workspace(id="ws-1", owner_id="owner-1"))
    await stores.users.add(UserAccount(id="owner-1", plan_id="free"))
    await stores.members.add(WorkspaceMember(workspace_id="ws-1", user_id="user-1", role="member"))
    await stores.webhooks.add(make_definition(timeout_seconds=30))

    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200)

    policy = TierPolicy({"free": TierLimits(max_webhooks=1, max_timeout_seconds=0.05, max_conversations=1)})  # type: ignore[arg-type]
    result = await dispatcher_factory(stores, handler, tier_policy=policy).execute("user-1", "wh-1", {})
    assert isinstance(result, ExecutionResult)
    assert result.error_kind == "Timeout"
    assert result.error == "Webhook request timed out"
    assert stores.executions.records[0].error_kind == "Timeout"


@pytest.mark.parametrize(
    ("status", "kind"),
    [(400, "BadRequest"), (404, "ServerError"), (500, "ServerError")],
)
@pytest.mark.asyncio
async def test_error_responses_are_classified(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory, status: int, kind: str
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json={"error": "missing sku"})

    result = await dispatcher_factory(seeded_stores, handler).execute("user-1", "wh-1", {})

    assert isinstance(result, ExecutionResult)
    assert result.success is False
    assert result.status == status
    assert result.error_kind == kind
    assert result.error == f'HTTP {status}: {{"error":"missing sku"}}'
    record = seeded_stores.executions.records[0]
    assert record.response_status == status
    assert record.response_data == {"error": "missing sku"}


@pytest.mark.asyncio
async def test_secure_headers_are_decrypted_for_the_request(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    sealed = HeaderCipher(TEST_ENCRYPTION_KEY).encrypt("Bearer t0k3n")
    await seeded_stores.webhooks.add(
        make_definition(id="wh-sec", headers={"User-Agent": "acme-bot"}, secure_headers={"Authorization": sealed})
    )
    seen: dict[str, str] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.headers)
        return httpx.Response(200)

    await dispatcher_factory(seeded_stores, handler).execute("user-1", "wh-sec", {})
    assert seen["authorization"] == "Bearer t0k3n"
    assert seen["user-agent"] == "acme-bot"


@pytest.mark.asyncio
async def test_secure_headers_are_decrypted_off_the_event_loop(
    seeded_stores: PipelineStores,
    dispatcher_factory: DispatcherFactory,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    loop_thread = threading.get_ident()
    seen: dict[str, int] = {}
    original = SecretResolver.resolve_headers

    def recording(self: SecretResolver, plain: Any, secure: Any) -> dict[str, str]:
        seen["thread"] = threading.get_ident()
        return original(self, plain, secure)

    monkeypatch.setattr(SecretResolver, "resolve_headers", recording)
    sealed = HeaderCipher(TEST_ENCRYPTION_KEY).encrypt("Bearer t0k3n")
    await seeded_stores.webhooks.add(make_definition(id="wh-sec", secure_headers={"Authorization": sealed}))

    result = await dispatcher_factory(seeded_stores, _ok).execute("user-1", "wh-sec", {})

    assert isinstance(result, ExecutionResult)
    assert result.success is True
    assert seen["thread"] != loop_thread


@pytest.mark.asyncio
async def test_undecryptable_secret_is_internal_rejection(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    await seeded_stores.webhooks.add(make_definition(id="wh-sec", secure_headers={"Authorization": "garbage"}))
    result = await dispatcher_factory(seeded_stores, _ok).execute("user-1", "wh-sec", {})
    assert result == RequestRejected(code="INTERNAL", message="Failed to process secure credentials")
    assert seeded_stores.executions.records == []


@pytest.mark.asyncio
async def test_unexpected_fault_becomes_network_error_and_is_logged_once(
    seeded_stores: PipelineStores,
    dispatcher_factory: DispatcherFactory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise ValueError("boom")

    caplog.set_level(logging.ERROR, logger="hookrelay.pipeline.dispatcher")
    result = await dispatcher_factory(seeded_stores, handler).execute("user-1", "wh-1", {})

    assert isinstance(result, ExecutionResult)
    assert result.success is False
    assert result.error_kind == "NetworkError"
    assert result.error == "boom"
    assert len(seeded_stores.executions.records) == 1
    assert "failed unexpectedly" in caplog.text


@pytest.mark.asyncio
async def test_log_failure_does_not_change_result(
    seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory
) -> None:
    async def broken_create(record: object) -> object:
        raise RuntimeError("store down")

    seeded_stores.executions.create = broken_create  # type: ignore[method-assign]
    result = await dispatcher_factory(seeded_stores, _ok).execute("user-1", "wh-1", {})
    assert isinstance(result, ExecutionResult)
    assert result.success is True


@pytest.mark.asyncio
async def test_duration_comes_from_clock(seeded_stores: PipelineStores, dispatcher_factory: DispatcherFactory) -> None:
    ticks = iter([10.0, 10.25, 10.25, 10.25])
    result = await dispatcher_factory(seeded_stores, _ok, clock=lambda: next(ticks, 10.25)).execute(
        "user-1", "wh-1", {}
    )
    assert isinstance(result, ExecutionResult)
    assert result.duration_ms == 250


def test_build_query_params_serialization() -> None:
    assert build_query_params({"a": None, "b": False, "c": [1, 2], "d": 1.5}) == {
        "b": "false",
        "c": "[1,2]",
        "d": "1.5",
    }
