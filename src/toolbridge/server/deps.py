"""Dependency providers for FastAPI endpoints."""

from fastapi import HTTPException, Request

from toolbridge.core.orchestration.context import OrchestrationContext


def get_context(request: Request) -> OrchestrationContext:
    """Return the OrchestrationContext stored on app state.

    Raises:
        HTTPException: 503 if the context is missing or already closed.
    """
    context: OrchestrationContext | None = getattr(request.app.state, "context", None)
    if context is None or context.closed:
        raise HTTPException(status_code=503, detail="Orchestration context not available")
    return context
