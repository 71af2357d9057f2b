"""Core domain types shared across all leadagent modules."""

from leadagent.core.types import (
    ChatMessage,
    DeedTransfer,
    LeadRecord,
    LeadSearchResult,
    LocationParams,
    SearchIntent,
)

__all__ = [
    "ChatMessage",
    "DeedTransfer",
    "LeadRecord",
    "LeadSearchResult",
    "LocationParams",
    "SearchIntent",
]
