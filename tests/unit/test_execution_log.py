"""Unit tests for best-effort execution logging."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import pytest

from hookrelay.pipeline.execution_log import ExecutionLogger
from hookrelay.pipeline.persistence.repositories import InMemoryExecutionRepository
from hookrelay.pipeline.types import ExecutionRecord


def _record(**overrides: object) -> ExecutionRecord:
    values: dict[str, object] = {
        "workspace_id": "ws-1",
        "user_id": "user-1",
        "conversation_id": "c-1",
        "message_id": "m-1",
        "webhook_id": "wh-1",
        "webhook_name": "Create order",
        "request_payload": {"a": 1},
        "duration_ms": 12,
        "response_status": 200,
    }
    values.update(overrides)
    return ExecutionRecord(**values)  # type: ignore[arg-type]


class _BrokenRepository(InMemoryExecutionRepository):
    async def create(self, record: ExecutionRecord) -> ExecutionRecord:
        raise RuntimeError("store unavailable")


@pytest.mark.asyncio
async def test_write_appends_record() -> None:
    repo = InMemoryExecutionRepository()
    await ExecutionLogger(repo).write(_record())
    assert len(repo.records) == 1


@pytest.mark.asyncio
async def test_write_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING, logger="hookrelay.pipeline.execution_log")
    await ExecutionLogger(_BrokenRepository()).write(_record())
    assert "failed to log webhook execution" in caplog.text
    assert "store unavailable" in caplog.text


@pytest.mark.asyncio
async def test_submit_runs_in_background_until_drained() -> None:
    repo = InMemoryExecutionRepository()
    execution_logger = ExecutionLogger(repo)
    task = execution_logger.submit(_record())
    execution_logger.submit(_record(webhook_id="wh-2"))
    await execution_logger.drain()
    assert task.done()
    assert {item.webhook_id for item in repo.records} == {"wh-1", "wh-2"}


@pytest.mark.asyncio
async def test_query_filters_and_orders_newest_first() -> None:
    repo = InMemoryExecutionRepository()
    execution_logger = ExecutionLogger(repo)
    now = datetime(2026, 3, 10, 12, tzinfo=timezone.utc)
    await execution_logger.write(_record(executed_at=now - timedelta(days=3)))
    await execution_logger.write(_record(executed_at=now - timedelta(hours=1)))
    await execution_logger.write(_record(executed_at=now, webhook_id="wh-2"))
    await execution_logger.write(_record(executed_at=now, workspace_id="ws-2"))

    recent = await execution_logger.query(workspace_id="ws-1", start_time=now - timedelta(days=1))
    assert [item.webhook_id for item in recent] == ["wh-2", "wh-1"]
    only_one = await execution_logger.query(workspace_id="ws-1", webhook_id="wh-1", limit=1)
    assert only_one[0].executed_at == now - timedelta(hours=1)


def test_record_document_uses_stored_field_names() -> None:
    document = _record(error="HTTP 400: x", error_kind="BadRequest", response_status=400).to_document()
    assert document["errorType"] == "BAD_REQUEST"
    assert document["duration"] == 12
    assert document["retryCount"] == 0
    assert document["webhookName"] == "Create order"
