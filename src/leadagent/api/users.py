"""User lookup — GET /api/user/get?accessToken=..."""

import logging

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from leadagent.api.schemas import UserResponse
from leadagent.storage.db import get_session, get_user_by_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/get", response_model=UserResponse)
async def get_user(access_token: str | None = Query(None, alias="accessToken")):
    """Return the stored user that owns ``accessToken``."""
    if not access_token:
        return JSONResponse(status_code=400, content={"error": "Access token is required"})

    session = None
    try:
        session = await get_session()
        user = await get_user_by_token(session, access_token)
    except Exception as e:
        logger.exception("Error fetching user")
        return JSONResponse(status_code=500, content={"error": str(e)})
    finally:
        if session:
            await session.close()

    if user is None:
        return JSONResponse(status_code=404, content={"data": "not found"})

    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        access_token=user.access_token,
        expires_in=user.expires_in,
        leads_per_week=user.leads_per_week,
        permissions=list(user.permissions or []),
    )
