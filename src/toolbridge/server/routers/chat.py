"""Query endpoint router."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from toolbridge.core.orchestration.context import OrchestrationContext
from toolbridge.server.contracts import ChatRequest, ChatResponse, ErrorResponse
from toolbridge.server.deps import get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def chat(
    body: ChatRequest,
    context: OrchestrationContext = Depends(get_context),
) -> ChatResponse | JSONResponse:
    """Answer one query, calling provider tools as the model requests.

    Failures surface as a generic error; details are only logged.
    """
    if not body.query.strip():
        return JSONResponse(status_code=400, content={"error": "Query is required"})

    try:
        response = await context.process_query(body.query)
    except Exception:
        logger.exception("Error processing query")
        return JSONResponse(status_code=500, content={"error": "Failed to process query"})
    return ChatResponse(response=response)
