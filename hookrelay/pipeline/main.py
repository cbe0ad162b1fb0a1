"""Pipeline bootstrap and dependency container."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
from fastapi import FastAPI

from hookrelay.config.models import HookRelayConfig
from hookrelay.pipeline.access import AccessGate
from hookrelay.pipeline.credentials import HeaderCipher, SecretResolver
from hookrelay.pipeline.dispatcher import Dispatcher, DispatcherSettings
from hookrelay.pipeline.execution_log import ExecutionLogger
from hookrelay.pipeline.http.app import create_pipeline_app
from hookrelay.pipeline.persistence.repositories import (
    InMemoryExecutionRepository,
    InMemoryMembershipRepository,
    InMemoryUserRepository,
    InMemoryWebhookRepository,
    InMemoryWorkspaceRepository,
)
from hookrelay.pipeline.tiers import TierPolicy, TierResolver


@dataclass(slots=True)
class PipelineStores:
    """External collaborators the pipeline reads from and appends to."""

    webhooks: Any
    members: Any
    workspaces: Any
    users: Any
    executions: Any


@dataclass(slots=True)
class PipelineApplication:
    """Assembled pipeline services."""

    config: HookRelayConfig
    stores: PipelineStores
    tier_policy: TierPolicy
    access_gate: AccessGate
    execution_logger: ExecutionLogger
    dispatcher: Dispatcher

    def build_http_app(self) -> FastAPI:
        return create_pipeline_app(dispatcher=self.dispatcher, execution_logger=self.execution_logger)

    async def stop(self) -> None:
        await self.execution_logger.drain()


def in_memory_stores() -> PipelineStores:
    return PipelineStores(
        webhooks=InMemoryWebhookRepository(),
        members=InMemoryMembershipRepository(),
        workspaces=InMemoryWorkspaceRepository(),
        users=InMemoryUserRepository(),
        executions=InMemoryExecutionRepository(),
    )


def build_pipeline_application(
    *,
    config: HookRelayConfig | None = None,
    stores: PipelineStores | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    background_logging: bool = True,
) -> PipelineApplication:
    """Factory wiring the pipeline; defaults to in-memory stores."""

    cfg = config or HookRelayConfig()
    backing = stores or in_memory_stores()
    tier_policy = TierPolicy(cfg.tier_limits())
    access_gate = AccessGate(backing.webhooks, backing.members, backing.users)
    execution_logger = ExecutionLogger(backing.executions)
    dispatcher = Dispatcher(
        access_gate=access_gate,
        tier_resolver=TierResolver(backing.workspaces, backing.users, tier_policy),
        tier_policy=tier_policy,
        secret_resolver=SecretResolver(HeaderCipher(cfg.encryption_key())),
        execution_logger=execution_logger,
        settings=DispatcherSettings(
            user_agent=cfg.http.user_agent,
            follow_redirects=cfg.http.follow_redirects,
            background_logging=background_logging,
        ),
        transport=transport,
    )
    return PipelineApplication(
        config=cfg,
        stores=backing,
        tier_policy=tier_policy,
        access_gate=access_gate,
        execution_logger=execution_logger,
        dispatcher=dispatcher,
    )
