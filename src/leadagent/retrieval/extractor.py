"""Search-parameter extraction via an OpenAI-compatible chat completions API.

The user's raw message goes to the model together with a fixed instruction
prompt; the JSON reply becomes a SearchIntent. Extraction rules (abbreviation
expansion, when to search, no guessing) live in the prompt, not here.
"""

import json
import logging
from typing import Protocol

import httpx

from leadagent.config import settings
from leadagent.core.errors import ExtractionError
from leadagent.core.types import REQUIRED_LOCATION_FIELDS, LocationParams, SearchIntent
from leadagent.observability.logging import pipeline_step
from leadagent.observability.prompts import get_active_prompt, get_prompt_version
from leadagent.observability.tracing import start_span, trace

logger = logging.getLogger(__name__)

PROMPT_NAME = "parameter_extraction"

# Accepted spellings for the decision keys, preferred first
SHOULD_SEARCH_KEYS = ("shouldSearch", "shouldSearchLeads")
REASON_KEYS = ("reason", "searchReason")


class ParameterExtractor(Protocol):
    """Anything that can turn a chat message into a SearchIntent."""

    async def extract(self, message: str) -> SearchIntent: ...


def _parse_llm_content(content: str) -> dict:
    """Parse LLM response content, stripping markdown fences if present."""
    content = content.strip()
    if content.startswith("```"):
        content = content.split("\n", 1)[1] if "\n" in content else content[3:]
    if content.endswith("```"):
        content = content[:-3]
    return json.loads(content.strip())


def _clean_param(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text or text.lower() == "null":
        return None
    return text


def parse_intent(content: str) -> SearchIntent:
    """Turn the model's reply text into a SearchIntent.

    Raises:
        ExtractionError: content is not JSON, or lacks parameters/shouldSearch.
    """
    try:
        data = _parse_llm_content(content)
    except json.JSONDecodeError as e:
        raise ExtractionError(f"Model reply is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ExtractionError("Model reply is not a JSON object")

    raw_params = data.get("parameters")
    if not isinstance(raw_params, dict):
        raise ExtractionError("Model reply is missing 'parameters'")

    should_key = next((k for k in SHOULD_SEARCH_KEYS if k in data), None)
    if should_key is None:
        raise ExtractionError("Model reply is missing 'shouldSearch'")
    should_search = data[should_key]
    if not isinstance(should_search, bool):
        raise ExtractionError(f"'{should_key}' must be a boolean, got {should_search!r}")

    reason = next((data[k] for k in REASON_KEYS if data.get(k)), "")

    params = LocationParams(**{
        name: _clean_param(raw_params.get(name)) for name in REQUIRED_LOCATION_FIELDS
    })
    return SearchIntent(parameters=params, should_search=should_search, reason=str(reason))


class LLMParameterExtractor:
    """ParameterExtractor backed by a chat completions endpoint.

    Settings are read at call time unless overridden, so a single instance
    can live for the whole process.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._model = model
        self._timeout = timeout
        self._transport = transport

    def _payload(self, message: str) -> dict:
        return {
            "model": self._model or settings.openai_model,
            "messages": [
                {"role": "system", "content": get_active_prompt(PROMPT_NAME)},
                {"role": "user", "content": message},
            ],
            "temperature": 0,
            "response_format": {"type": "json_object"},
        }

    @trace(name="extract_search_parameters", span_type="CHAT_MODEL")
    async def extract(self, message: str) -> SearchIntent:
        api_key = self._api_key if self._api_key is not None else settings.openai_api_key
        if not api_key:
            logger.error("OPENAI_API_KEY not set")
            raise ExtractionError("Extraction model API key is not configured")

        base_url = (self._base_url or settings.openai_base_url).rstrip("/")
        timeout = self._timeout if self._timeout is not None else settings.llm_timeout_seconds
        headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        payload = self._payload(message)

        logger.info("Analyzing user query (%d chars)", len(message), extra={"step": "extract"})
        with pipeline_step(logger, "extract"), \
                start_span(name="llm_parameter_extraction", span_type="CHAT_MODEL") as span:
            span.set_inputs({
                "model": payload["model"],
                "prompt_version": get_prompt_version(PROMPT_NAME),
                "message": message,
            })
            try:
                async with httpx.AsyncClient(timeout=timeout, transport=self._transport) as client:
                    resp = await client.post(
                        f"{base_url}/chat/completions", json=payload, headers=headers,
                    )
                    resp.raise_for_status()
                    data = resp.json()
                content = data["choices"][0]["message"]["content"]
            except httpx.HTTPStatusError as e:
                logger.error(
                    "Extraction model error %d: %s",
                    e.response.status_code, e.response.text[:200],
                )
                raise ExtractionError(f"Extraction model returned {e.response.status_code}") from e
            except httpx.HTTPError as e:
                logger.error("Extraction model request failed: %s", e)
                raise ExtractionError(f"Extraction model request failed: {e}") from e
            except (KeyError, IndexError, TypeError, ValueError) as e:
                logger.error("Unexpected extraction model response structure: %s", e)
                raise ExtractionError("Unexpected extraction model response structure") from e

            if not isinstance(content, str):
                raise ExtractionError("Extraction model returned no content")

            intent = parse_intent(content)
            span.set_outputs({
                "parameters": intent.parameters.as_dict(),
                "should_search": intent.should_search,
                "reason": intent.reason,
            })

        logger.info(
            "Extracted parameters: %s (should_search=%s, reason=%s)",
            intent.parameters.as_dict(), intent.should_search, intent.reason,
            extra={"step": "extract"},
        )
        return intent
