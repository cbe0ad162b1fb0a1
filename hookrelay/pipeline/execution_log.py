"""Best-effort persistence of execution records."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Protocol

from hookrelay.pipeline.types import ExecutionRecord

logger = logging.getLogger(__name__)


class ExecutionRepositoryProtocol(Protocol):
    """Append-only sink for execution records."""

    async def create(self, record: ExecutionRecord) -> ExecutionRecord: ...

    async def query(
        self,
        *,
        workspace_id: str,
        webhook_id: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int | None = None,
    ) -> list[ExecutionRecord]: ...


class ExecutionLogger:
    """Write execution records without ever failing or delaying the caller."""

    def __init__(self, repository: ExecutionRepositoryProtocol) -> None:
        self._repository = repository
        self._pending: set[asyncio.Task[None]] = set()

    async def write(self, record: ExecutionRecord) -> None:
        try:
            await self._repository.create(record)
        except Exception as exc:
            logger.warning("failed to log webhook execution webhook=%s: %s", record.webhook_id, exc)

    def submit(self, record: ExecutionRecord) -> asyncio.Task[None]:
        """Schedule a write in the background and return immediately."""

        task = asyncio.get_running_loop().create_task(self.write(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def drain(self) -> None:
        """Wait for background writes; used on shutdown and in tests."""

        while self._pending:
            await asyncio.gather(*list(self._pending))

    async def query(
        self,
        *,
        workspace_id: str,
        webhook_id: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int | None = None,
    ) -> list[ExecutionRecord]:
        return await self._repository.query(
            workspace_id=workspace_id,
            webhook_id=webhook_id,
            start_time=start_time,
            end_time=end_time,
            limit=limit,
        )
