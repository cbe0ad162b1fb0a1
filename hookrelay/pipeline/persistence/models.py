"""ORM models for webhook definitions, workspace membership and execution records."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from hookrelay.db import Base, JSONType


class WebhookModel(Base):
    """Stored webhook definition."""

    __tablename__ = "webhooks"
    __table_args__ = (Index("idx_webhooks_workspace_enabled", "workspace_id", "is_enabled"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_by: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    endpoint_url: Mapped[str] = mapped_column(Text, nullable=False)
    http_method: Mapped[str] = mapped_column(String(10), nullable=False, default="POST")
    is_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    headers: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    secure_headers: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    body_template: Mapped[str | None] = mapped_column(Text, nullable=True)
    fields: Mapped[list[Any]] = mapped_column(JSONType, nullable=False, default=list)
    timeout_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)
    permissions: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class WorkspaceModel(Base):
    """Workspace and its billing owner."""

    __tablename__ = "workspaces"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    owner_id: Mapped[str | None] = mapped_column(String(64), nullable=True)


class WorkspaceMemberModel(Base):
    """Membership of a user in a workspace."""

    __tablename__ = "workspace_members"

    workspace_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="member")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)


class UserModel(Base):
    """User profile with subscription plan."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    plan_id: Mapped[str | None] = mapped_column(String(32), nullable=True)


class ExecutionModel(Base):
    """Append-only webhook execution log."""

    __tablename__ = "webhook_executions"
    __table_args__ = (
        Index("idx_webhook_executions_workspace_executed", "workspace_id", "executed_at"),
        Index("idx_webhook_executions_webhook_executed", "webhook_id", "executed_at"),
    )

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    workspace_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    conversation_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    message_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    webhook_id: Mapped[str] = mapped_column(String(64), nullable=False)
    webhook_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    request_payload: Mapped[Any] = mapped_column(JSONType, nullable=True)
    response_status: Mapped[int | None] = mapped_column(Integer, nullable=True)
    response_data: Mapped[Any] = mapped_column(JSONType, nullable=True)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_type: Mapped[str | None] = mapped_column(String(32), nullable=True)
    duration: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    retry_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
