"""
Error tracking and reporting.

Unhandled exceptions are reported to Sentry when a DSN is configured and
logged locally otherwise.
"""

from typing import Any

import sentry_sdk
import structlog
from sentry_sdk.integrations.asyncio import AsyncioIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from app.config import Settings

logger = structlog.get_logger(__name__)


class ErrorTracker:
    """Error tracking facade over the Sentry SDK."""

    def __init__(
        self,
        enabled: bool = False,
        dsn: str | None = None,
        environment: str = "development",
        traces_sample_rate: float = 0.1,
    ):
        self.enabled = bool(enabled and dsn)
        self.dsn = dsn

        if self.enabled:
            sentry_sdk.init(
                dsn=dsn,
                environment=environment,
                traces_sample_rate=traces_sample_rate,
                integrations=[
                    FastApiIntegration(),
                    SqlalchemyIntegration(),
                    AsyncioIntegration(),
                ],
            )
            logger.info("sentry_initialized", environment=environment)

    @classmethod
    def from_settings(cls, config: Settings) -> "ErrorTracker":
        return cls(
            enabled=config.sentry_enabled,
            dsn=config.sentry_dsn,
            environment=config.environment,
            traces_sample_rate=config.sentry_traces_sample_rate,
        )

    def capture_exception(
        self,
        exception: Exception,
        context: dict[str, Any] | None = None,
    ) -> str | None:
        """
        Capture and report an exception.

        Args:
            exception: The exception to report
            context: Additional context (request path, method, ...)

        Returns:
            Event ID from error tracker (or None)
        """
        if not self.enabled:
            logger.error(
                "exception_captured",
                exception=str(exception),
                exception_type=type(exception).__name__,
                context=context,
                exc_info=exception,
            )
            return None

        with sentry_sdk.new_scope() as scope:
            for key, value in (context or {}).items():
                scope.set_context(key, value)
            return sentry_sdk.capture_exception(exception)
