"""
Request context using contextvars.

Provides task-local context storage for:
- Request ID
- Trace ID
- User ID (identity-provider subject)
- Organization ID (resolved from the subdomain)
"""

import contextvars
from typing import Any

# Context variables
request_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "request_id", default=None
)
user_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "user_id", default=None
)
organization_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "organization_id", default=None
)
trace_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "trace_id", default=None
)


def set_request_context(
    request_id: str | None = None,
    user_id: str | None = None,
    organization_id: str | None = None,
    trace_id: str | None = None,
) -> None:
    """Set request context variables."""
    if request_id:
        request_id_var.set(request_id)
    if user_id:
        user_id_var.set(user_id)
    if organization_id:
        organization_id_var.set(organization_id)
    if trace_id:
        trace_id_var.set(trace_id)


def get_request_context() -> dict[str, Any]:
    """Get the populated request context as a dictionary."""
    context = {
        "request_id": request_id_var.get(),
        "user_id": user_id_var.get(),
        "organization_id": organization_id_var.get(),
        "trace_id": trace_id_var.get(),
    }
    return {key: value for key, value in context.items() if value is not None}


def clear_request_context() -> None:
    """Clear all context variables."""
    request_id_var.set(None)
    user_id_var.set(None)
    organization_id_var.set(None)
    trace_id_var.set(None)
