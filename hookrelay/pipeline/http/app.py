"""FastAPI gateway for webhook invocation."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from hookrelay.pipeline.dispatcher import Dispatcher
from hookrelay.pipeline.execution_log import ExecutionLogger
from hookrelay.pipeline.types import RequestRejected

REJECTION_STATUS = {
    "NOT_FOUND": 404,
    "PERMISSION_DENIED": 403,
    "FAILED_PRECONDITION": 412,
    "INTERNAL": 500,
    "INVALID_ARGUMENT": 400,
}


class ExecuteWebhookBody(BaseModel):
    """Invocation body sent by the agent or the test sandbox."""

    payload: Any = None
    conversation_id: str = Field(default="", alias="conversationId")
    message_id: str = Field(default="", alias="messageId")
    dry_run: bool = Field(default=False, alias="dryRun")


def create_pipeline_app(*, dispatcher: Dispatcher, execution_logger: ExecutionLogger) -> FastAPI:
    """Create FastAPI app bound to the dispatcher."""

    @asynccontextmanager
    async def _lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        await execution_logger.drain()

    app = FastAPI(title="HookRelay Webhook Gateway", lifespan=_lifespan)

    @app.get("/healthz")
    async def healthz() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/webhooks/{webhook_id}/execute")
    async def execute_webhook(
        webhook_id: str,
        body: ExecuteWebhookBody,
        x_caller_id: str | None = Header(default=None),
    ) -> JSONResponse:
        if not x_caller_id:
            return _rejection(RequestRejected(code="PERMISSION_DENIED", message="User must be authenticated"), status_code=401)
        outcome = await dispatcher.execute(
            x_caller_id,
            webhook_id,
            body.payload,
            conversation_id=body.conversation_id,
            message_id=body.message_id,
            dry_run=body.dry_run,
        )
        if isinstance(outcome, RequestRejected):
            return _rejection(outcome)
        return JSONResponse(status_code=200, content=outcome.to_dict())

    return app


def _rejection(rejection: RequestRejected, *, status_code: int | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or REJECTION_STATUS.get(rejection.code, 400),
        content={"error": {"code": rejection.code, "message": rejection.message}},
    )
