"""Repository layer for webhook execution persistence."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hookrelay.pipeline.documents import (
    field_from_mapping,
    field_to_mapping,
    permissions_from_mapping,
    permissions_to_mapping,
)
from hookrelay.pipeline.persistence.models import (
    ExecutionModel,
    UserModel,
    WebhookModel,
    WorkspaceMemberModel,
    WorkspaceModel,
)
from hookrelay.pipeline.types import (
    LEGACY_ERROR_TYPES,
    ExecutionRecord,
    UserAccount,
    WebhookDefinition,
    Workspace,
    WorkspaceMember,
)

_ERROR_KINDS = {legacy: kind for kind, legacy in LEGACY_ERROR_TYPES.items()}


def webhook_to_model(definition: WebhookDefinition) -> WebhookModel:
    return WebhookModel(
        id=definition.id,
        workspace_id=definition.workspace_id,
        created_by=definition.created_by,
        name=definition.name,
        description=definition.description,
        endpoint_url=definition.endpoint_url,
        http_method=definition.http_method,
        is_enabled=definition.is_enabled,
        headers=dict(definition.headers),
        secure_headers=dict(definition.secure_headers),
        body_template=definition.body_template,
        fields=[field_to_mapping(spec) for spec in definition.fields],
        timeout_seconds=definition.timeout_seconds,
        permissions=permissions_to_mapping(definition.permissions),
    )


def webhook_from_model(model: WebhookModel) -> WebhookDefinition:
    return WebhookDefinition(
        id=model.id,
        workspace_id=model.workspace_id,
        created_by=model.created_by,
        name=model.name,
        description=model.description,
        endpoint_url=model.endpoint_url,
        http_method=model.http_method.upper(),  # type: ignore[arg-type]
        is_enabled=model.is_enabled,
        headers=dict(model.headers or {}),
        secure_headers=dict(model.secure_headers or {}),
        body_template=model.body_template,
        fields=[field_from_mapping(item) for item in model.fields or []],
        timeout_seconds=model.timeout_seconds,
        permissions=permissions_from_mapping(model.permissions),
    )


def execution_to_model(record: ExecutionRecord) -> ExecutionModel:
    return ExecutionModel(
        workspace_id=record.workspace_id,
        user_id=record.user_id,
        conversation_id=record.conversation_id,
        message_id=record.message_id,
        webhook_id=record.webhook_id,
        webhook_name=record.webhook_name,
        request_payload=record.request_payload,
        response_status=record.response_status,
        response_data=record.response_data,
        error=record.error,
        error_type=None if record.error_kind is None else LEGACY_ERROR_TYPES[record.error_kind],
        duration=record.duration_ms,
        retry_count=record.retry_count,
        executed_at=record.executed_at,
    )


def execution_from_model(model: ExecutionModel) -> ExecutionRecord:
    executed_at = model.executed_at
    if executed_at.tzinfo is None:
        executed_at = executed_at.replace(tzinfo=timezone.utc)
    return ExecutionRecord(
        workspace_id=model.workspace_id,
        user_id=model.user_id,
        conversation_id=model.conversation_id,
        message_id=model.message_id,
        webhook_id=model.webhook_id,
        webhook_name=model.webhook_name,
        request_payload=model.request_payload,
        duration_ms=model.duration,
        response_status=model.response_status,
        response_data=model.response_data,
        error=model.error,
        error_kind=None if model.error_type is None else _ERROR_KINDS.get(model.error_type),  # type: ignore[arg-type]
        retry_count=model.retry_count,
        executed_at=executed_at,
    )


class WebhookRepository:
    """Read webhook definitions; writes belong to the management UI."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, webhook_id: str) -> WebhookDefinition | None:
        async with self._session_factory() as session:
            model = await session.get(WebhookModel, webhook_id)
            return None if model is None else webhook_from_model(model)

    async def add(self, definition: WebhookDefinition) -> WebhookDefinition:
        async with self._session_factory() as session:
            session.add(webhook_to_model(definition))
            await session.commit()
        return definition

    async def list(self, *, workspace_id: str, enabled: bool | None = None) -> list[WebhookDefinition]:
        stmt = select(WebhookModel).where(WebhookModel.workspace_id == workspace_id)
        if enabled is not None:
            stmt = stmt.where(WebhookModel.is_enabled == enabled)
        async with self._session_factory() as session:
            result = await session.execute(stmt.order_by(WebhookModel.created_at.asc()))
            return [webhook_from_model(item) for item in result.scalars().all()]


class MembershipRepository:
    """Workspace membership lookups."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, workspace_id: str, user_id: str) -> WorkspaceMember | None:
        async with self._session_factory() as session:
            model = await session.get(WorkspaceMemberModel, (workspace_id, user_id))
        if model is None:
            return None
        return WorkspaceMember(
            workspace_id=model.workspace_id,
            user_id=model.user_id,
            role=model.role,
            status=model.status,  # type: ignore[arg-type]
            email=model.email,
        )

    async def add(self, member: WorkspaceMember) -> WorkspaceMember:
        async with self._session_factory() as session:
            session.add(
                WorkspaceMemberModel(
                    workspace_id=member.workspace_id,
                    user_id=member.user_id,
                    role=member.role,
                    status=member.status,
                    email=member.email,
                )
            )
            await session.commit()
        return member


class WorkspaceRepository:
    """Workspace ownership lookups."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, workspace_id: str) -> Workspace | None:
        async with self._session_factory() as session:
            model = await session.get(WorkspaceModel, workspace_id)
        return None if model is None else Workspace(id=model.id, owner_id=model.owner_id, name=model.name)

    async def add(self, workspace: Workspace) -> Workspace:
        async with self._session_factory() as session:
            session.add(WorkspaceModel(id=workspace.id, owner_id=workspace.owner_id, name=workspace.name))
            await session.commit()
        return workspace


class UserRepository:
    """User profile and plan lookups."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, user_id: str) -> UserAccount | None:
        async with self._session_factory() as session:
            model = await session.get(UserModel, user_id)
        return None if model is None else UserAccount(id=model.id, email=model.email, plan_id=model.plan_id)

    async def add(self, user: UserAccount) -> UserAccount:
        async with self._session_factory() as session:
            session.add(UserModel(id=user.id, email=user.email, plan_id=user.plan_id))
            await session.commit()
        return user


class ExecutionRepository:
    """Append-only repository for execution records; one session per write."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def create(self, record: ExecutionRecord) -> ExecutionRecord:
        async with self._session_factory() as session:
            session.add(execution_to_model(record))
            await session.commit()
        return record

    async def query(
        self,
        *,
        workspace_id: str,
        webhook_id: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int | None = None,
    ) -> list[ExecutionRecord]:
        stmt = select(ExecutionModel).where(ExecutionModel.workspace_id == workspace_id)
        if webhook_id is not None:
            stmt = stmt.where(ExecutionModel.webhook_id == webhook_id)
        if start_time is not None:
            stmt = stmt.where(ExecutionModel.executed_at >= start_time)
        if end_time is not None:
            stmt = stmt.where(ExecutionModel.executed_at <= end_time)
        stmt = stmt.order_by(ExecutionModel.executed_at.desc())
        if limit is not None:
            stmt = stmt.limit(max(1, limit))
        async with self._session_factory() as session:
            result = await session.execute(stmt)
            return [execution_from_model(item) for item in result.scalars().all()]


class InMemoryWebhookRepository:
    """In-memory webhook definitions for tests and local runs."""

    def __init__(self) -> None:
        self._items: dict[str, WebhookDefinition] = {}

    async def get(self, webhook_id: str) -> WebhookDefinition | None:
        return self._items.get(webhook_id)

    async def add(self, definition: WebhookDefinition) -> WebhookDefinition:
        self._items[definition.id] = definition
        return definition

    async def list(self, *, workspace_id: str, enabled: bool | None = None) -> list[WebhookDefinition]:
        items = [item for item in self._items.values() if item.workspace_id == workspace_id]
        if enabled is not None:
            items = [item for item in items if item.is_enabled == enabled]
        return items


class InMemoryMembershipRepository:
    """In-memory membership store keyed by (workspace, user)."""

    def __init__(self) -> None:
        self._items: dict[tuple[str, str], WorkspaceMember] = {}

    async def get(self, workspace_id: str, user_id: str) -> WorkspaceMember | None:
        return self._items.get((workspace_id, user_id))

    async def add(self, member: WorkspaceMember) -> WorkspaceMember:
        self._items[(member.workspace_id, member.user_id)] = member
        return member


class InMemoryWorkspaceRepository:
    """In-memory workspace store."""

    def __init__(self) -> None:
        self._items: dict[str, Workspace] = {}

    async def get(self, workspace_id: str) -> Workspace | None:
        return self._items.get(workspace_id)

    async def add(self, workspace: Workspace) -> Workspace:
        self._items[workspace.id] = workspace
        return workspace


class InMemoryUserRepository:
    """In-memory user store."""

    def __init__(self) -> None:
        self._items: dict[str, UserAccount] = {}

    async def get(self, user_id: str) -> UserAccount | None:
        return self._items.get(user_id)

    async def add(self, user: UserAccount) -> UserAccount:
        self._items[user.id] = user
        return user


class InMemoryExecutionRepository:
    """In-memory append-only execution log."""

    def __init__(self) -> None:
        self._items: list[ExecutionRecord] = []

    @property
    def records(self) -> list[ExecutionRecord]:
        return list(self._items)

    async def create(self, record: ExecutionRecord) -> ExecutionRecord:
        self._items.append(record)
        return record

    async def query(
        self,
        *,
        workspace_id: str,
        webhook_id: str | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
        limit: int | None = None,
    ) -> list[ExecutionRecord]:
        items = [item for item in self._items if item.workspace_id == workspace_id]
        if webhook_id is not None:
            items = [item for item in items if item.webhook_id == webhook_id]
        if start_time is not None:
            items = [item for item in items if item.executed_at >= start_time]
        if end_time is not None:
            items = [item for item in items if item.executed_at <= end_time]
        ordered = sorted(items, key=lambda item: item.executed_at, reverse=True)
        return ordered if limit is None else ordered[: max(1, limit)]
