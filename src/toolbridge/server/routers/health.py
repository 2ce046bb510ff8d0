"""Health check endpoint router."""

from fastapi import APIRouter, Depends

from toolbridge.core.orchestration.context import OrchestrationContext
from toolbridge.server.contracts import HealthResponse
from toolbridge.server.deps import get_context

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(context: OrchestrationContext = Depends(get_context)) -> HealthResponse:
    """Report status and the tool names currently exposed to the model."""
    return HealthResponse(
        status="ok",
        tools=context.catalog.names(),
        providers=context.catalog.providers,
    )
