"""Pydantic request/response models for the LeadAgent API.

These are the API contract — decoupled from the internal domain dataclasses.
Route handlers bridge them with dataclasses.asdict().
"""

from typing import Any

from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Request body for POST /api/chat.

    ``message`` accepts any JSON value so that an absent, empty, or non-string
    message gets the endpoint's own 400 response instead of a 422.
    """

    message: Any = Field(
        None,
        examples=["Find me leads at 123 Main St, Phoenix, AZ 85001"],
    )


class LeadResponse(BaseModel):
    street_address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    owner_full_name: str = ""
    owner_mailing_street: str = ""
    owner_mailing_city: str = ""
    owner_mailing_state: str = ""
    owner_mailing_zip: str = ""


class LeadMetadata(BaseModel):
    total: int
    page: int
    limit: int


class LeadSearchResponse(BaseModel):
    """Response body for GET /api/leads."""

    leads: list[LeadResponse]
    metadata: LeadMetadata


class LeadErrorResponse(BaseModel):
    error: str = "BatchData API Error"
    message: str
    details: str | dict | list | None = None


class UserResponse(BaseModel):
    """A stored user, as returned by GET /api/user/get."""

    id: int
    name: str
    email: str | None = None
    access_token: str
    expires_in: int | None = None
    leads_per_week: int | None = None
    permissions: list[str] = []
