"""Subscription tier limits and timeout resolution."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Protocol

from hookrelay.pipeline.types import UserAccount, Workspace

logger = logging.getLogger(__name__)

FALLBACK_TIER = "free"


@dataclass(frozen=True, slots=True)
class TierLimits:
    """Quota values for one subscription tier."""

    max_webhooks: int
    max_timeout_seconds: int
    max_conversations: int


# max_conversations is 5 on every tier in the stored plan table; kept literal.
DEFAULT_TIER_LIMITS: dict[str, TierLimits] = {
    "free": TierLimits(max_webhooks=2, max_timeout_seconds=5, max_conversations=5),
    "pro": TierLimits(max_webhooks=50, max_timeout_seconds=15, max_conversations=5),
    "premium": TierLimits(max_webhooks=200, max_timeout_seconds=60, max_conversations=5),
}


class TierPolicy:
    """Pure lookup over an injected tier table."""

    def __init__(self, limits: Mapping[str, TierLimits] | None = None) -> None:
        table = dict(DEFAULT_TIER_LIMITS if limits is None else limits)
        if FALLBACK_TIER not in table:
            raise ValueError(f"tier table must define '{FALLBACK_TIER}'")
        self._limits = table

    @property
    def tiers(self) -> dict[str, TierLimits]:
        return dict(self._limits)

    def limits_for(self, tier: str | None) -> TierLimits:
        if tier is None:
            return self._limits[FALLBACK_TIER]
        return self._limits.get(tier, self._limits[FALLBACK_TIER])

    def resolve_timeout(self, tier: str | None, requested_seconds: int | float | None = None) -> int | float:
        """Return the effective timeout: tier max, or the smaller requested value.

        A missing, zero or negative request falls back to the tier maximum.
        """
        tier_max = self.limits_for(tier).max_timeout_seconds
        if not requested_seconds or requested_seconds < 0:
            return tier_max
        return min(requested_seconds, tier_max)

    def can_create_webhook(self, tier: str | None, current_count: int) -> bool:
        return current_count < self.limits_for(tier).max_webhooks


class WorkspaceReaderProtocol(Protocol):
    async def get(self, workspace_id: str) -> Workspace | None: ...


class UserReaderProtocol(Protocol):
    async def get(self, user_id: str) -> UserAccount | None: ...


class TierResolver:
    """Follow workspace -> owner -> subscription plan, defaulting to free at every gap."""

    def __init__(
        self,
        workspaces: WorkspaceReaderProtocol,
        users: UserReaderProtocol,
        policy: TierPolicy,
    ) -> None:
        self._workspaces = workspaces
        self._users = users
        self._policy = policy

    async def resolve_tier(self, workspace_id: str) -> str:
        workspace = await self._workspaces.get(workspace_id)
        if workspace is None or not workspace.owner_id:
            return FALLBACK_TIER
        owner = await self._users.get(workspace.owner_id)
        if owner is None or not owner.plan_id:
            return FALLBACK_TIER
        if owner.plan_id not in self._policy.tiers:
            logger.debug("unknown plan id %s for workspace %s, using %s", owner.plan_id, workspace_id, FALLBACK_TIER)
            return FALLBACK_TIER
        return owner.plan_id
