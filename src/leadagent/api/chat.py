"""Chat endpoint — POST /api/chat → SSE stream.

Each event is exactly ``data: <json>\\n\\n`` with one of ``{"content": str}``,
``{"error": str}``, or ``{"done": true}``; no ``event:`` field is sent.
"""

import json
import logging
from collections.abc import AsyncIterator

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, StreamingResponse

from leadagent.api.schemas import ChatRequest
from leadagent.pipeline.orchestrator import ChatOrchestrator
from leadagent.retrieval.extractor import LLMParameterExtractor

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}

_orchestrator = ChatOrchestrator(LLMParameterExtractor())


def get_orchestrator() -> ChatOrchestrator:
    return _orchestrator


def sse_event(data: dict) -> str:
    """Format one default-type Server-Sent Event."""
    return f"data: {json.dumps(data)}\n\n"


async def _event_stream(events: AsyncIterator[dict]) -> AsyncIterator[str]:
    async for event in events:
        yield sse_event(event)


@router.post("/chat")
async def chat(
    request: ChatRequest,
    orchestrator: ChatOrchestrator = Depends(get_orchestrator),
):
    """Analyze a message and stream the answer."""
    message = request.message
    if not isinstance(message, str) or not message.strip():
        return JSONResponse(status_code=400, content={"error": "Message is required"})

    try:
        intent = await orchestrator.analyze(message)
    except Exception:
        logger.exception("Chat endpoint error")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    return StreamingResponse(
        _event_stream(orchestrator.respond(intent)),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
