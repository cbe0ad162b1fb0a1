"""Failure classification into the webhook error-kind taxonomy."""

from __future__ import annotations

import asyncio
import json
from typing import Any

import httpx

from hookrelay.pipeline.types import ClassifiedError, ErrorKind


def stringify_body(body: Any) -> str:
    if isinstance(body, str):
        return body
    return json.dumps(body, separators=(",", ":"), ensure_ascii=False, default=str)


def decode_response_body(response: httpx.Response) -> Any:
    """Return parsed JSON when possible, otherwise the response text."""

    if not response.content:
        return ""
    try:
        return response.json()
    except ValueError:
        return response.text


class ErrorClassifier:
    """Map transport exceptions and HTTP responses onto ErrorKind values."""

    def classify(self, failure: BaseException | httpx.Response) -> ClassifiedError:
        if isinstance(failure, httpx.Response):
            return self._from_status(failure.status_code, decode_response_body(failure))
        if isinstance(failure, httpx.ConnectTimeout):
            return ClassifiedError(kind="NetworkError", message=f"Network error: {_message(failure)}")
        if isinstance(failure, httpx.TimeoutException | asyncio.TimeoutError | TimeoutError):
            return ClassifiedError(kind="Timeout", message="Webhook request timed out")
        if isinstance(failure, httpx.ConnectError | httpx.RemoteProtocolError | httpx.NetworkError):
            return ClassifiedError(kind="NetworkError", message=f"Network error: {_message(failure)}")
        if isinstance(failure, httpx.HTTPStatusError):
            return self._from_status(failure.response.status_code, decode_response_body(failure.response))
        message = str(failure)
        if "timeout" in message.lower():
            return ClassifiedError(kind="Timeout", message="Webhook request timed out")
        return ClassifiedError(kind="NetworkError", message=message or "Unknown error occurred")

    def response_error(self, status_code: int, body: Any) -> ClassifiedError:
        """Build the error for a received non-2xx response."""

        kind: ErrorKind = "BadRequest" if status_code == 400 else "ServerError"
        return ClassifiedError(
            kind=kind,
            message=f"HTTP {status_code}: {stringify_body(body)}",
            status_code=status_code,
            response_body=body,
        )

    @staticmethod
    def _from_status(status_code: int, body: Any) -> ClassifiedError:
        text = stringify_body(body)
        if status_code == 400:
            return ClassifiedError(kind="BadRequest", message=f"Bad Request: {text}", status_code=status_code, response_body=body)
        if status_code >= 500:
            return ClassifiedError(
                kind="ServerError",
                message=f"Server Error ({status_code}): {text}",
                status_code=status_code,
                response_body=body,
            )
        # 401/403/404 and other client statuses share the server-error kind.
        return ClassifiedError(
            kind="ServerError",
            message=f"HTTP Error ({status_code}): {text}",
            status_code=status_code,
            response_body=body,
        )


def is_retryable(kind: ErrorKind | None) -> bool:
    """Only a 400 is worth a payload-correction attempt by the caller."""

    return kind == "BadRequest"


def format_error_for_agent(error: ClassifiedError) -> str:
    """Render the explanation handed to the chat agent."""

    if error.kind == "Timeout":
        return "The webhook request timed out. The endpoint took too long to respond."
    if error.kind == "BadRequest":
        return (
            f"The webhook returned a 400 Bad Request error. Details: {error.message}. "
            "Please analyze the error and correct the payload if possible."
        )
    if error.kind == "ServerError":
        return (
            f"The webhook server returned an error ({error.status_code}). "
            f"This is likely a server-side issue. Details: {error.message}"
        )
    if error.kind == "NetworkError":
        return f"Could not connect to the webhook endpoint. Details: {error.message}"
    if error.kind == "ValidationError":
        return f"Payload validation failed: {error.message}"
    return f"An error occurred: {error.message}"


def _message(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__
