"""
Domain-specific exception hierarchy for the workflow engine.

All workflow exceptions inherit from WorkflowError so callers can catch
broadly or narrowly as needed.  Each exception carries structured context
(step id, execution id) and an optional ``output_data`` diagnostic payload
that the engine stores on the failed step log.
"""

from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base exception for all workflow errors."""

    def __init__(
        self,
        message: str,
        *,
        execution_id: str | None = None,
        step_id: str | None = None,
        details: dict | None = None,
        output_data: Any = None,
    ) -> None:
        self.execution_id = execution_id
        self.step_id = step_id
        self.details = details or {}
        self.output_data = output_data
        super().__init__(message)


class StepExecutionError(WorkflowError):
    """A step failed during execution."""
    pass


class TransportError(StepExecutionError):
    """An outbound HTTP exchange failed (status, empty or malformed body)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        response_body: str | None = None,
        **kwargs,
    ) -> None:
        self.status_code = status_code
        self.response_body = response_body
        super().__init__(message, **kwargs)


class ConfigurationError(StepExecutionError):
    """Required configuration (URL, credentials, provider) is missing."""
    pass


class AuthenticationError(ConfigurationError):
    """A login exchange failed or returned no token."""
    pass


class EmailDeliveryError(StepExecutionError):
    """The email provider rejected or failed to send a message."""
    pass


class PdfPageError(StepExecutionError):
    """A single page could not be extracted from the in-flight PDF."""
    pass


class WorkflowNotFoundError(WorkflowError):
    """The requested workflow has no steps."""
    pass
