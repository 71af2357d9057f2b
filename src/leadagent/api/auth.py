"""ClickFunnels OAuth endpoints.

GET /api/auth/clickfunnels — redirect to the provider's authorize page
GET /api/auth/callback — exchange the code, upsert the user, redirect back
                         to the frontend with the token in the query string
"""

import logging
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter
from fastapi.responses import JSONResponse, RedirectResponse

from leadagent.config import settings
from leadagent.storage.db import get_session, upsert_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

TOKEN_TIMEOUT = httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=5.0)


def authorize_url() -> str:
    params = {
        "client_id": settings.clickfunnels_client_id,
        "grant_type": "authorization_code",
        "redirect_uri": settings.clickfunnels_redirect_uri,
        "response_type": "code",
        "new_installation": "true",
    }
    return f"{settings.clickfunnels_authorize_url}?{urlencode(params)}"


@router.get("/clickfunnels")
async def login():
    return RedirectResponse(authorize_url())


async def _exchange_code(code: str) -> dict:
    async with httpx.AsyncClient(timeout=TOKEN_TIMEOUT) as client:
        resp = await client.post(
            settings.clickfunnels_token_url,
            json={
                "client_id": settings.clickfunnels_client_id,
                "client_secret": settings.clickfunnels_client_secret,
                "redirect_uri": settings.clickfunnels_redirect_uri,
                "code": code,
                "grant_type": "authorization_code",
            },
            headers={"Content-Type": "application/json"},
        )
        resp.raise_for_status()
        return resp.json()


@router.get("/callback")
async def callback(code: str | None = None):
    """Finish the OAuth flow and hand the access token to the frontend."""
    if not code:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Authorization code missing"},
        )

    try:
        data = await _exchange_code(code)
    except httpx.HTTPStatusError as e:
        logger.error("OAuth token exchange failed %d: %s", e.response.status_code, e.response.text[:200])
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    except (httpx.HTTPError, ValueError) as e:
        logger.error("OAuth error: %s", e)
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    access_token = data.get("access_token")
    if not access_token:
        return JSONResponse(status_code=400, content={"error": "Token exchange failed"})

    session = await get_session()
    try:
        await upsert_user(
            session,
            email=data.get("email"),
            name=data.get("team_name") or data.get("email") or "ClickFunnels user",
            access_token=access_token,
            expires_in=data.get("expires_in"),
        )
    except Exception as e:
        logger.exception("Failed to store user after OAuth callback")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})
    finally:
        await session.close()

    return RedirectResponse(f"{settings.website_uri}?{urlencode({'token': access_token})}")
