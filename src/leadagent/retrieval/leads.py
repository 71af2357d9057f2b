"""BatchData property search — location parameters to canonical leads.

The search endpoint returns property objects whose field names vary between
records (address/street, owner_name/ownerName, ...), and sometimes nest the
address components under an ``address`` object. Normalization resolves each
canonical field through an ordered alias list instead of scattering fallbacks
through the formatting code.
"""

import logging

import httpx

from leadagent.config import settings
from leadagent.core.errors import (
    ConfigError,
    UpstreamError,
    ValidationError,
    upstream_error_for_status,
)
from leadagent.core.types import DeedTransfer, LeadRecord, LeadSearchResult
from leadagent.observability.logging import pipeline_step
from leadagent.observability.tracing import start_span, trace

logger = logging.getLogger(__name__)

PLACEHOLDER_TOKEN = "your_batchdata_api_token"
PAGE_SIZE = 10
PAGE_SKIP = 0

REQUEST_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json, application/xml",
}

# Canonical field → candidate upstream keys, tried in order
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "street_address": ("address", "street", "streetAddress", "street_address"),
    "city": ("city",),
    "state": ("state",),
    "zip": ("zip", "zipCode", "zip_code", "postalCode"),
    "owner_full_name": ("owner_name", "ownerName", "owner_full_name", "ownerFullName"),
    "owner_mailing_street": ("mailing_address", "mailingAddress", "mailing_street", "mailingStreet"),
    "owner_mailing_city": ("mailing_city", "mailingCity"),
    "owner_mailing_state": ("mailing_state", "mailingState"),
    "owner_mailing_zip": ("mailing_zip", "mailingZip"),
}

# Fields that may be found inside a nested ``address`` object
NESTED_ADDRESS_FIELDS = ("city", "state", "zip")


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------

def _resolve(source: dict, aliases: tuple[str, ...]) -> str:
    """Return the first non-empty scalar value among ``aliases``, else ''."""
    for key in aliases:
        val = source.get(key)
        if val is None or isinstance(val, (dict, list)):
            continue
        text = str(val).strip()
        if text:
            return text
    return ""


def _nested_street(address: dict) -> str:
    """'houseNumber' + 'street' from a nested address object."""
    parts = [_resolve(address, ("houseNumber", "house_number")),
             _resolve(address, ("street", "streetName"))]
    return " ".join(p for p in parts if p)


def _deed_history(prop: dict) -> list[DeedTransfer]:
    raw = prop.get("deedHistory") or prop.get("deed_history") or []
    if not isinstance(raw, list):
        return []
    history = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        buyers = entry.get("buyers") or []
        if isinstance(buyers, str):
            buyers = [buyers]
        history.append(DeedTransfer(
            buyers=[str(b).strip() for b in buyers if str(b).strip()],
            sale_date=_resolve(entry, ("saleDate", "sale_date", "recordingDate")),
        ))
    return history


def normalize_property(prop: dict) -> LeadRecord:
    """Build a canonical LeadRecord from one upstream property object."""
    values = {name: _resolve(prop, aliases) for name, aliases in FIELD_ALIASES.items()}

    nested = prop.get("address")
    if isinstance(nested, dict):
        if not values["street_address"]:
            values["street_address"] = _nested_street(nested)
        for name in NESTED_ADDRESS_FIELDS:
            if not values[name]:
                values[name] = _resolve(nested, FIELD_ALIASES[name])

    return LeadRecord(**values, deed_history=_deed_history(prop))


# ---------------------------------------------------------------------------
# Query building
# ---------------------------------------------------------------------------

def build_search_query(
    state: str | None = None,
    city: str | None = None,
    zip: str | None = None,
    street: str | None = None,
    query: str | None = None,
    take: int = PAGE_SIZE,
    skip: int = PAGE_SKIP,
) -> dict:
    """Build the BatchData search body.

    Raises:
        ValidationError: neither a free-text query nor any address component.
    """
    comp_address: dict[str, str] = {}
    if street:
        comp_address["street"] = street
    if city:
        comp_address["city"] = city
    if state:
        comp_address["state"] = state.upper()
    if zip:
        comp_address["zip"] = zip

    text_query = query or (f"{city}, {state}" if city and state else None)
    if not comp_address and not text_query:
        raise ValidationError(
            "Search requires either a query parameter or location details (city, state, etc.)"
        )

    criteria: dict = {"compAddress": comp_address}
    if text_query:
        criteria["query"] = text_query

    return {
        "searchCriteria": criteria,
        "options": {"useYearBuilt": True, "skip": skip, "take": take},
    }


def _api_token() -> str:
    token = settings.batchdata_api_token
    if not token or token == PLACEHOLDER_TOKEN:
        logger.error("BatchData API token not properly configured")
        raise ConfigError(
            "BatchData API token not properly configured. "
            "Please set BATCHDATA_API_TOKEN in .env file."
        )
    return token


def _error_details(resp: httpx.Response):
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:500]
    if isinstance(body, dict) and body.get("message"):
        return body["message"]
    return body


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------

@trace(name="search_leads", span_type="TOOL")
async def search_leads(
    state: str | None = None,
    city: str | None = None,
    zip: str | None = None,
    street: str | None = None,
    query: str | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LeadSearchResult:
    """Search BatchData for one page of leads.

    Raises:
        ConfigError: no API token configured.
        ValidationError: no query and no address component.
        UpstreamError: non-200 response (AuthError/NotFoundError/RateLimitError
            for 401/404/429) or transport failure.
    """
    token = _api_token()
    body = build_search_query(state=state, city=city, zip=zip, street=street, query=query)
    headers = {**REQUEST_HEADERS, "Authorization": f"Bearer {token}"}

    logger.info(
        "Sending lead search to BatchData: %s", body["searchCriteria"],
        extra={"step": "search", "city": city, "state": state},
    )
    with pipeline_step(logger, "search", city=city, state=state), \
            start_span(name="batchdata_search", span_type="TOOL") as span:
        span.set_inputs({"search_criteria": body["searchCriteria"], "options": body["options"]})
        try:
            async with httpx.AsyncClient(
                timeout=settings.search_timeout_seconds, transport=transport,
            ) as client:
                resp = await client.post(settings.batchdata_api_url, json=body, headers=headers)
        except httpx.HTTPError as e:
            logger.error("BatchData request failed: %s", e)
            span.set_outputs({"error": str(e)})
            raise UpstreamError(f"BatchData request failed: {e}") from e

        if resp.status_code != 200:
            details = _error_details(resp)
            logger.error(
                "BatchData API returned status %d: %s", resp.status_code, details,
                extra={"step": "search", "status_code": resp.status_code},
            )
            span.set_outputs({"error": f"http_{resp.status_code}"})
            raise upstream_error_for_status(resp.status_code, details)

        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError("BatchData returned a non-JSON body", status_code=200) from e
        if not isinstance(data, dict):
            data = {}

        properties = data.get("properties") or []
        leads = [normalize_property(p) for p in properties if isinstance(p, dict)]
        take = body["options"]["take"]
        total = data.get("total")
        result = LeadSearchResult(
            leads=leads,
            total=int(total) if isinstance(total, (int, float)) and total else len(leads),
            page=body["options"]["skip"] // take + 1,
            limit=take,
        )
        span.set_outputs({"lead_count": len(leads), "total": result.total})

    logger.info(
        "Found %d leads", len(leads),
        extra={"step": "search", "lead_count": len(leads)},
    )
    return result


async def check_connection(transport: httpx.AsyncBaseTransport | None = None) -> dict:
    """Probe the search endpoint with a one-result query.

    Upstream status codes are reported, not raised; only a missing token
    raises ConfigError.
    """
    token = _api_token()
    body = build_search_query(city="phoenix", state="AZ", query="Phoenix, AZ", take=1)
    headers = {**REQUEST_HEADERS, "Authorization": f"Bearer {token}"}

    try:
        async with httpx.AsyncClient(timeout=5.0, transport=transport) as client:
            resp = await client.post(settings.batchdata_api_url, json=body, headers=headers)
    except httpx.HTTPError as e:
        logger.error("BatchData connection test failed: %s", e)
        return {"success": False, "error": str(e)}

    try:
        data = resp.json()
    except ValueError:
        data = resp.text[:500]
    logger.info("BatchData connection test status %d", resp.status_code)
    return {"success": resp.status_code == 200, "status": resp.status_code, "data": data}
