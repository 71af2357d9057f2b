"""Domain types for the lead-generation chat assistant.

All shared dataclasses live here to prevent circular imports and give the
extractor, search adapter, formatter, orchestrator, and client one source of
truth for the domain model.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

REQUIRED_LOCATION_FIELDS = ("state", "city", "zip", "street")


# ---------------------------------------------------------------------------
# Extraction types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LocationParams:
    """Location components extracted from a chat message."""

    state: str | None = None
    city: str | None = None
    zip: str | None = None
    street: str | None = None

    def missing(self) -> list[str]:
        """Names of required location fields that are empty, in canonical order."""
        return [name for name in REQUIRED_LOCATION_FIELDS if not getattr(self, name)]

    def as_dict(self) -> dict[str, str | None]:
        return {name: getattr(self, name) for name in REQUIRED_LOCATION_FIELDS}


@dataclass(frozen=True)
class SearchIntent:
    """Structured intent parsed from the model's JSON reply."""

    parameters: LocationParams
    should_search: bool
    reason: str = ""


# ---------------------------------------------------------------------------
# Lead types
# ---------------------------------------------------------------------------

@dataclass
class DeedTransfer:
    """One entry of a property's deed history."""

    buyers: list[str] = field(default_factory=list)
    sale_date: str = ""


@dataclass
class LeadRecord:
    """Canonical lead, normalized from a property-search API object."""

    street_address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    owner_full_name: str = ""
    owner_mailing_street: str = ""
    owner_mailing_city: str = ""
    owner_mailing_state: str = ""
    owner_mailing_zip: str = ""
    deed_history: list[DeedTransfer] = field(default_factory=list)


@dataclass
class LeadSearchResult:
    """One page of normalized leads plus paging metadata."""

    leads: list[LeadRecord]
    total: int
    page: int
    limit: int


# ---------------------------------------------------------------------------
# Client-side chat types
# ---------------------------------------------------------------------------

@dataclass
class ChatMessage:
    """A message in the client's display-ordered conversation."""

    text: str
    is_from_assistant: bool = False
    is_error: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
