"""Chat pipeline — one message in, a sequence of stream events out.

    Received → Extracting → (Searching | Declining) → Responding → Closed

Extraction happens before the response stream opens, so its failure can still
be reported as an HTTP error. Everything after that is reported in-stream:
each request yields zero or more ``{"content": ...}`` events, at most one
``{"error": ...}`` event, and always exactly one final ``{"done": True}``.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable

from leadagent.core.errors import UpstreamError
from leadagent.core.types import LeadSearchResult, SearchIntent
from leadagent.pipeline.formatter import format_leads
from leadagent.retrieval.extractor import ParameterExtractor
from leadagent.retrieval.leads import search_leads

logger = logging.getLogger(__name__)

CHUNK_SIZE = 50

DECLINE_MESSAGE = (
    "I can help you find leads. Please ask about properties in a specific location."
)
SEARCH_ERROR_MESSAGE = "Error processing leads request."
STREAM_ERROR_MESSAGE = "An error occurred processing your request"

SearchFn = Callable[..., Awaitable[LeadSearchResult]]


def chunk_text(text: str, size: int = CHUNK_SIZE) -> list[str]:
    """Split text into consecutive slices of at most ``size`` characters."""
    return [text[i:i + size] for i in range(0, len(text), size)]


def should_search(intent: SearchIntent) -> bool:
    """Search only when the model asked to AND every location field is present."""
    return intent.should_search and not intent.parameters.missing()


def search_error_message(exc: Exception) -> str:
    """User-facing text for a failed search."""
    # Only the specific status kinds get their own text; a plain
    # UpstreamError (e.g. 500) falls through to the generic message.
    if isinstance(exc, UpstreamError) and type(exc) is not UpstreamError:
        return exc.user_message
    return SEARCH_ERROR_MESSAGE


class ChatOrchestrator:
    """Coordinates extraction, search, and formatting for a single message."""

    def __init__(self, extractor: ParameterExtractor, search: SearchFn = search_leads):
        self._extractor = extractor
        self._search = search

    async def analyze(self, message: str) -> SearchIntent:
        """Run the extractor. ExtractionError propagates to the caller."""
        return await self._extractor.extract(message)

    async def respond(self, intent: SearchIntent) -> AsyncIterator[dict]:
        """Yield the stream events for an extracted intent."""
        try:
            if should_search(intent):
                async for event in self._search_events(intent):
                    yield event
            else:
                logger.info(
                    "Declining search (should_search=%s, missing=%s)",
                    intent.should_search, intent.parameters.missing(),
                    extra={"step": "decline"},
                )
                yield {"content": DECLINE_MESSAGE}
        except Exception:
            logger.exception("Chat stream failed after headers were sent")
            yield {"error": STREAM_ERROR_MESSAGE}

        yield {"done": True}

    async def _search_events(self, intent: SearchIntent) -> AsyncIterator[dict]:
        params = intent.parameters
        logger.info(
            "Processing chat lead search", extra={
                "step": "search", "city": params.city, "state": params.state,
            },
        )
        try:
            result = await self._search(**params.as_dict())
        except Exception as e:
            logger.error("Error processing lead search in chat: %s", e, exc_info=True)
            yield {"error": search_error_message(e)}
            return

        text = format_leads(result.leads, params)
        for chunk in chunk_text(text):
            yield {"content": chunk}
