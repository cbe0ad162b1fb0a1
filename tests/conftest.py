"""Shared test fixtures for HookRelay."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest
import pytest_asyncio

from hookrelay.pipeline.access import AccessGate
from hookrelay.pipeline.credentials import HeaderCipher, SecretResolver
from hookrelay.pipeline.dispatcher import Dispatcher, DispatcherSettings
from hookrelay.pipeline.execution_log import ExecutionLogger
from hookrelay.pipeline.main import PipelineStores, in_memory_stores
from hookrelay.pipeline.tiers import TierPolicy, TierResolver
from hookrelay.pipeline.types import UserAccount, Workspace, WorkspaceMember
from tests.factories import TEST_ENCRYPTION_KEY, make_definition


@pytest.fixture
def stores() -> PipelineStores:
    return in_memory_stores()


@pytest_asyncio.fixture
async def seeded_stores(stores: PipelineStores) -> PipelineStores:
    """Workspace ws-1 owned by a pro user, with an active member and a default webhook."""
    await stores.users.add(UserAccount(id="owner-1", email="owner@example.test", plan_id="pro"))
    await stores.users.add(UserAccount(id="user-1", email="user@example.test"))
    await stores.workspaces.add(Workspace(id="ws-1", owner_id="owner-1", name="Acme"))
    await stores.members.add(WorkspaceMember(workspace_id="ws-1", user_id="owner-1", role="owner"))
    await stores.members.add(WorkspaceMember(workspace_id="ws-1", user_id="user-1", role="member"))
    await stores.webhooks.add(make_definition())
    return stores


@pytest.fixture
def dispatcher_factory() -> Callable[..., Dispatcher]:
    """Build a dispatcher over the given stores with an inline execution logger."""

    def _build(
        stores: PipelineStores,
        handler: Callable[[httpx.Request], Any] | None = None,
        *,
        tier_policy: TierPolicy | None = None,
        encryption_key: str = TEST_ENCRYPTION_KEY,
        clock: Callable[[], float] | None = None,
    ) -> Dispatcher:
        policy = tier_policy or TierPolicy()
        kwargs: dict[str, Any] = {}
        if clock is not None:
            kwargs["clock"] = clock
        return Dispatcher(
            access_gate=AccessGate(stores.webhooks, stores.members, stores.users),
            tier_resolver=TierResolver(stores.workspaces, stores.users, policy),
            tier_policy=policy,
            secret_resolver=SecretResolver(HeaderCipher(encryption_key)),
            execution_logger=ExecutionLogger(stores.executions),
            settings=DispatcherSettings(background_logging=False),
            transport=None if handler is None else httpx.MockTransport(handler),
            **kwargs,
        )

    return _build
