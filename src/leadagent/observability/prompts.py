"""Prompt registry — versioned system prompts.

Keeps prompt strings out of the client code so the active version can be
recorded on each extraction trace and compared across runs.
"""

import logging

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Prompt versions
# ---------------------------------------------------------------------------

PARAMETER_EXTRACTION_PROMPT_V1 = """\
You are a lead search parameter extractor. Extract location parameters from user messages.

Output format (JSON):
{
    "parameters": {
        "state": "two letter state code or null",
        "city": "city name or null",
        "zip": "5-digit zip code or null",
        "street": "street address or null"
    },
    "shouldSearch": boolean,
    "reason": "brief explanation"
}

Rules:
1. Convert location abbreviations to full names (e.g., "LA" -> "Los Angeles", "NYC" -> "New York").
2. Set shouldSearch to true ONLY if the user clearly wants to find, see, or get leads or properties.
3. Only include parameters that are explicitly present in the message. Use null for anything \
not stated. Never guess a missing city, state, zip, or street.
4. Always include a short reason explaining the decision.
5. Respond with the JSON object only.\
"""

# Registry: name → (version, prompt_text)
_PROMPT_REGISTRY: dict[str, tuple[str, str]] = {
    "parameter_extraction": ("v1", PARAMETER_EXTRACTION_PROMPT_V1),
}


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def get_active_prompt(name: str) -> str:
    """Return the active prompt text for a given prompt name.

    Raises:
        KeyError: If prompt name is not registered.
    """
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][1]


def get_prompt_version(name: str) -> str:
    """Return the version tag for a given prompt name."""
    if name not in _PROMPT_REGISTRY:
        raise KeyError(f"Unknown prompt: {name!r}. Available: {list(_PROMPT_REGISTRY.keys())}")
    return _PROMPT_REGISTRY[name][0]


def list_prompts() -> list[dict[str, str]]:
    """List all registered prompts with name and version."""
    return [{"name": name, "version": ver} for name, (ver, _) in _PROMPT_REGISTRY.items()]
