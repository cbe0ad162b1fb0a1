"""Execution analytics for workspace dashboards."""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone, tzinfo

from hookrelay.pipeline.execution_log import ExecutionLogger
from hookrelay.pipeline.types import ExecutionRecord

RECENT_LIMIT = 50
LATENCY_WEBHOOK_LIMIT = 5


@dataclass(slots=True)
class WorkspaceAnalytics:
    """Aggregated execution statistics over a window of days."""

    total_executions: int
    success_rate: str
    avg_latency: str
    error_count: int
    activity: list[dict[str, object]] = field(default_factory=list)
    success_split: list[dict[str, object]] = field(default_factory=list)
    latency_by_webhook: list[dict[str, object]] = field(default_factory=list)
    recent: list[ExecutionRecord] = field(default_factory=list)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _day_key(moment: datetime, tz: tzinfo) -> str:
    local = moment.astimezone(tz)
    return f"{local.month}/{local.day}"


def _is_success(record: ExecutionRecord) -> bool:
    return record.response_status is not None and 200 <= record.response_status < 300


def _is_error(record: ExecutionRecord) -> bool:
    return not record.response_status or record.response_status >= 400


def summarize_executions(
    records: Iterable[ExecutionRecord],
    *,
    days: int = 7,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> WorkspaceAnalytics:
    """Summarize records; dry runs count as successes since they carry status 200.

    Activity buckets are calendar days in ``tz``; pass the viewer's zone to match a local dashboard.
    """

    current = now or datetime.now(timezone.utc)
    ordered = sorted(records, key=lambda item: item.executed_at, reverse=True)
    total = len(ordered)
    successes = sum(1 for item in ordered if _is_success(item))
    errors = sum(1 for item in ordered if _is_error(item))
    total_latency = sum(item.duration_ms for item in ordered)

    activity: dict[str, int] = {}
    for offset in range(days - 1, -1, -1):
        activity[_day_key(current - timedelta(days=offset), tz)] = 0
    for item in ordered:
        key = _day_key(item.executed_at, tz)
        if key in activity:
            activity[key] += 1

    latencies: dict[str, list[int]] = {}
    for item in ordered:
        bucket = latencies.setdefault(item.webhook_name or "Unknown", [0, 0])
        bucket[0] += item.duration_ms
        bucket[1] += 1

    return WorkspaceAnalytics(
        total_executions=total,
        success_rate=f"{_round_half_up(successes / total * 100)}%" if total else "0%",
        avg_latency=f"{_round_half_up(total_latency / total)}ms" if total else "0ms",
        error_count=errors,
        activity=[{"date": key, "executions": count} for key, count in activity.items()],
        success_split=[{"name": "Success", "value": successes}, {"name": "Failed", "value": errors}],
        latency_by_webhook=[
            {"webhook": name, "latency": _round_half_up(total_ms / count)}
            for name, (total_ms, count) in list(latencies.items())[:LATENCY_WEBHOOK_LIMIT]
        ],
        recent=ordered[:RECENT_LIMIT],
    )


async def get_workspace_analytics(
    execution_logger: ExecutionLogger,
    workspace_id: str,
    *,
    days: int = 7,
    now: datetime | None = None,
    tz: tzinfo = timezone.utc,
) -> WorkspaceAnalytics:
    current = now or datetime.now(timezone.utc)
    records = await execution_logger.query(workspace_id=workspace_id, start_time=current - timedelta(days=days))
    return summarize_executions(records, days=days, now=current, tz=tz)
