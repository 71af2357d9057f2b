"""Lead search endpoints.

GET /api/leads — one page of normalized BatchData leads
GET /api/leads/test — BatchData connectivity probe
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from leadagent.api.schemas import LeadErrorResponse, LeadResponse, LeadSearchResponse
from leadagent.core.errors import ConfigError, UpstreamError, ValidationError
from leadagent.retrieval.leads import check_connection, search_leads

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/leads", tags=["leads"])

GENERIC_ERROR_MESSAGE = "Failed to fetch leads from BatchData"


def _error_response(status_code: int, message: str, details) -> JSONResponse:
    body = LeadErrorResponse(message=message, details=details)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@router.get(
    "",
    response_model=LeadSearchResponse,
    responses={
        400: {"model": LeadErrorResponse, "description": "No query or location given"},
        401: {"model": LeadErrorResponse, "description": "Invalid BatchData token"},
        404: {"model": LeadErrorResponse, "description": "BatchData endpoint not found"},
        429: {"model": LeadErrorResponse, "description": "BatchData rate limit"},
        500: {"model": LeadErrorResponse, "description": "Any other failure"},
    },
)
async def get_leads(
    state: str | None = None,
    city: str | None = None,
    zip: str | None = None,
    street: str | None = None,
    query: str | None = None,
):
    """Search leads by free text or address components."""
    try:
        result = await search_leads(state=state, city=city, zip=zip, street=street, query=query)
    except ValidationError as e:
        return _error_response(400, str(e), str(e))
    except UpstreamError as e:
        status = e.status_code if e.status_code in (401, 404, 429) else 500
        message = e.user_message if status != 500 else GENERIC_ERROR_MESSAGE
        return _error_response(status, message, e.details or str(e))
    except ConfigError as e:
        return _error_response(500, GENERIC_ERROR_MESSAGE, str(e))

    return LeadSearchResponse(
        leads=[LeadResponse(**{k: v for k, v in asdict(lead).items() if k != "deed_history"})
               for lead in result.leads],
        metadata={"total": result.total, "page": result.page, "limit": result.limit},
    )


@router.get("/test")
async def probe_connection():
    """Send a one-result probe query to BatchData and report the outcome."""
    try:
        results = await check_connection()
    except ConfigError as e:
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "BatchData API Test Failed", "message": str(e)},
        )
    return {"success": results["success"], "message": "Testing BatchData API", "results": results}
