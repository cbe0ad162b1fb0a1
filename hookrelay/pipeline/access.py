"""Caller authorization for webhook execution."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from hookrelay.pipeline.types import (
    AccessGrant,
    RequestRejected,
    UserAccount,
    WebhookDefinition,
    WebhookPermissions,
    WorkspaceMember,
)

logger = logging.getLogger(__name__)


class WebhookReaderProtocol(Protocol):
    async def get(self, webhook_id: str) -> WebhookDefinition | None: ...


class MembershipReaderProtocol(Protocol):
    async def get(self, workspace_id: str, user_id: str) -> WorkspaceMember | None: ...


class UserReaderProtocol(Protocol):
    async def get(self, user_id: str) -> UserAccount | None: ...


class AccessGate:
    """Resolve webhook, membership, enabled state and per-webhook permissions in order."""

    def __init__(
        self,
        webhooks: WebhookReaderProtocol,
        members: MembershipReaderProtocol,
        users: UserReaderProtocol | None = None,
    ) -> None:
        self._webhooks = webhooks
        self._members = members
        self._users = users

    async def authorize(self, caller_id: str, webhook_id: str) -> AccessGrant | RequestRejected:
        definition = await self._webhooks.get(webhook_id)
        if definition is None:
            return self._reject("NOT_FOUND", "Webhook not found", caller_id, webhook_id)
        member = await self._members.get(definition.workspace_id, caller_id)
        if member is None or member.status != "active":
            return self._reject(
                "PERMISSION_DENIED",
                "User is not an active member of this workspace",
                caller_id,
                webhook_id,
            )
        if not definition.is_enabled:
            return self._reject("FAILED_PRECONDITION", "Webhook is disabled", caller_id, webhook_id)
        if definition.permissions is not None:
            email = await self._caller_email(caller_id, member)
            if not is_permitted(definition.permissions, caller_id, email, member.role):
                return self._reject(
                    "PERMISSION_DENIED",
                    "User is not allowed to execute this webhook",
                    caller_id,
                    webhook_id,
                )
        return AccessGrant(definition=definition, workspace_id=definition.workspace_id, caller_role=member.role)

    def filter_authorized(
        self,
        definitions: Iterable[WebhookDefinition],
        caller_id: str,
        email: str | None,
        role: str,
    ) -> list[WebhookDefinition]:
        """Keep the enabled definitions the caller may execute."""

        return [
            item
            for item in definitions
            if item.is_enabled and (item.permissions is None or is_permitted(item.permissions, caller_id, email, role))
        ]

    async def _caller_email(self, caller_id: str, member: WorkspaceMember) -> str | None:
        if member.email:
            return member.email
        if self._users is None:
            return None
        user = await self._users.get(caller_id)
        return None if user is None else user.email

    @staticmethod
    def _reject(code: str, message: str, caller_id: str, webhook_id: str) -> RequestRejected:
        logger.info("webhook access rejected code=%s webhook=%s caller=%s", code, webhook_id, caller_id)
        return RequestRejected(code=code, message=message)  # type: ignore[arg-type]


def is_permitted(permissions: WebhookPermissions, caller_id: str, email: str | None, role: str) -> bool:
    """A matching user exception decides outright; otherwise the role must be allowed."""

    for exception in permissions.user_exceptions:
        if exception.user_id == caller_id or (email and exception.email == email):
            return exception.access == "allow"
    return role in permissions.allowed_roles
