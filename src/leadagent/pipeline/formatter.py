"""Render canonical leads as a Markdown text block for the chat stream."""

from leadagent.core.types import LeadRecord, LocationParams


def _join_address(street: str, city: str, state: str, zip_code: str) -> str:
    """'street, city, state zip' with empty parts dropped."""
    tail = " ".join(p for p in (state, zip_code) if p)
    return ", ".join(p for p in (street, city, tail) if p)


def _owner(lead: LeadRecord) -> str:
    """Buyers of the most recent deed transfer.

    Records without deed history fall back to the owner name on the property
    record, and only then to "Unknown".
    """
    if lead.deed_history:
        buyers = lead.deed_history[-1].buyers
        if buyers:
            return ", ".join(buyers)
    return lead.owner_full_name or "Unknown"


def _format_lead(lead: LeadRecord) -> str:
    address = _join_address(lead.street_address, lead.city, lead.state, lead.zip)
    lines = [
        f"- **Address**: {address}",
        f"  **Owner**: {_owner(lead)}",
    ]
    mailing = _join_address(
        lead.owner_mailing_street,
        lead.owner_mailing_city,
        lead.owner_mailing_state,
        lead.owner_mailing_zip,
    )
    if mailing:
        lines.append(f"  **Mailing**: {mailing}")
    return "\n".join(lines)


def format_leads(leads: list[LeadRecord], location: LocationParams | dict | None = None) -> str:
    """Render leads, or a 'No leads available in <city> <state>' line when empty."""
    if not leads:
        if isinstance(location, LocationParams):
            location = location.as_dict()
        location = location or {}
        place = " ".join(p for p in (location.get("city"), location.get("state")) if p)
        return f"No leads available in {place}".strip()

    return "\n".join(_format_lead(lead) for lead in leads)
