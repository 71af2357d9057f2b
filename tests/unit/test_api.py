"""Unit tests for the LeadAgent API endpoints.

Uses httpx.AsyncClient with ASGITransport to test FastAPI endpoints
without starting a real server. Upstream calls and the DB are mocked.
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from leadagent.api.chat import get_orchestrator, sse_event
from leadagent.api.main import app
from leadagent.core.errors import (
    AuthError,
    ConfigError,
    ExtractionError,
    RateLimitError,
    UpstreamError,
    ValidationError,
)
from leadagent.core.types import LeadRecord, LeadSearchResult, LocationParams, SearchIntent
from leadagent.pipeline.orchestrator import DECLINE_MESSAGE, ChatOrchestrator

FULL_PARAMS = LocationParams(state="AZ", city="Phoenix", zip="85001", street="100 W Washington St")


class FakeExtractor:
    def __init__(self, intent: SearchIntent | None = None, error: Exception | None = None):
        self.intent = intent
        self.error = error
        self.messages: list[str] = []

    async def extract(self, message: str) -> SearchIntent:
        self.messages.append(message)
        if self.error:
            raise self.error
        return self.intent


def _parse_events(body: str) -> list[dict]:
    frames = [f for f in body.split("\n\n") if f]
    assert all(f.startswith("data: ") for f in frames)
    return [json.loads(f[len("data: "):]) for f in frames]


@pytest.fixture
def transport():
    return ASGITransport(app=app)


@pytest.fixture
async def client(transport):
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def use_orchestrator():
    """Install an orchestrator for /api/chat; removed after the test."""

    def install(orchestrator: ChatOrchestrator) -> None:
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator

    yield install
    app.dependency_overrides.pop(get_orchestrator, None)


def test_sse_event_framing():
    assert sse_event({"done": True}) == 'data: {"done": true}\n\n'


# ---------------------------------------------------------------------------
# POST /api/chat
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {}, {"message": ""}, {"message": "   "}, {"message": None}, {"message": 123}, {"message": ["hi"]},
])
async def test_chat_requires_message(client, use_orchestrator, body):
    extractor = FakeExtractor()
    extractor.extract = AsyncMock()
    use_orchestrator(ChatOrchestrator(extractor))

    resp = await client.post("/api/chat", json=body)

    assert resp.status_code == 400
    assert resp.json() == {"error": "Message is required"}
    extractor.extract.assert_not_called()


@pytest.mark.asyncio
async def test_chat_accepts_long_message(client, use_orchestrator):
    extractor = FakeExtractor(SearchIntent(LocationParams(), False))
    use_orchestrator(ChatOrchestrator(extractor))
    message = "find leads " * 300

    resp = await client.post("/api/chat", json={"message": message})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert _parse_events(resp.text) == [{"content": DECLINE_MESSAGE}, {"done": True}]
    assert extractor.messages == [message]


@pytest.mark.asyncio
async def test_chat_extraction_failure_is_http_500(client, use_orchestrator):
    use_orchestrator(ChatOrchestrator(FakeExtractor(error=ExtractionError("bad json"))))
    resp = await client.post("/api/chat", json={"message": "find leads"})
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error"}


@pytest.mark.asyncio
async def test_chat_declines_partial_location(client, use_orchestrator):
    intent = SearchIntent(LocationParams(city="Phoenix", state="AZ"), should_search=True)
    search = AsyncMock()
    use_orchestrator(ChatOrchestrator(FakeExtractor(intent), search=search))

    resp = await client.post("/api/chat", json={"message": "find me leads in Phoenix, AZ"})

    assert resp.status_code == 200
    assert resp.headers["content-type"].startswith("text/event-stream")
    assert resp.headers["cache-control"] == "no-cache"
    assert resp.headers["connection"] == "keep-alive"
    assert _parse_events(resp.text) == [{"content": DECLINE_MESSAGE}, {"done": True}]
    search.assert_not_called()


@pytest.mark.asyncio
async def test_chat_streams_search_results(client, use_orchestrator):
    leads = [LeadRecord(street_address="100 W Washington St", city="Phoenix", state="AZ",
                        zip="85001", owner_full_name="Maricopa County")]
    search = AsyncMock(return_value=LeadSearchResult(leads=leads, total=1, page=1, limit=10))
    use_orchestrator(ChatOrchestrator(FakeExtractor(SearchIntent(FULL_PARAMS, True)), search=search))

    resp = await client.post("/api/chat", json={"message": "leads at 100 W Washington St"})

    events = _parse_events(resp.text)
    assert events[-1] == {"done": True}
    text = "".join(e["content"] for e in events[:-1])
    assert "100 W Washington St, Phoenix, AZ 85001" in text
    assert "Maricopa County" in text


@pytest.mark.asyncio
async def test_chat_rate_limit_is_in_stream_error(client, use_orchestrator):
    search = AsyncMock(side_effect=RateLimitError("429", status_code=429))
    use_orchestrator(ChatOrchestrator(FakeExtractor(SearchIntent(FULL_PARAMS, True)), search=search))

    resp = await client.post("/api/chat", json={"message": "leads please"})

    assert resp.status_code == 200
    assert _parse_events(resp.text) == [
        {"error": "BatchData API rate limit exceeded. Please try again later."},
        {"done": True},
    ]


@pytest.mark.asyncio
async def test_chat_sets_request_id(client, use_orchestrator):
    use_orchestrator(ChatOrchestrator(FakeExtractor(SearchIntent(LocationParams(), False))))
    resp = await client.post(
        "/api/chat", json={"message": "hello"}, headers={"X-Request-ID": "req-42"},
    )
    assert resp.headers["x-request-id"] == "req-42"


# ---------------------------------------------------------------------------
# GET /api/leads
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_leads_success(client):
    result = LeadSearchResult(
        leads=[LeadRecord(street_address="1 Main St", city="Mesa", state="AZ", owner_full_name="Jane")],
        total=40,
        page=1,
        limit=10,
    )
    with patch("leadagent.api.leads.search_leads", new_callable=AsyncMock, return_value=result) as mock:
        resp = await client.get("/api/leads", params={"city": "Mesa", "state": "AZ"})

    assert resp.status_code == 200
    data = resp.json()
    assert data["metadata"] == {"total": 40, "page": 1, "limit": 10}
    assert data["leads"][0]["street_address"] == "1 Main St"
    assert data["leads"][0]["owner_full_name"] == "Jane"
    assert "deed_history" not in data["leads"][0]
    mock.assert_awaited_once_with(state="AZ", city="Mesa", zip=None, street=None, query=None)


@pytest.mark.asyncio
@pytest.mark.parametrize(("error", "status", "message"), [
    (AuthError("x", status_code=401), 401, AuthError.user_message),
    (RateLimitError("x", status_code=429), 429, RateLimitError.user_message),
    (UpstreamError("x", status_code=502), 500, "Failed to fetch leads from BatchData"),
    (ConfigError("no token"), 500, "Failed to fetch leads from BatchData"),
    (ValidationError("need a location"), 400, "need a location"),
])
async def test_leads_errors(client, error, status, message):
    with patch("leadagent.api.leads.search_leads", new_callable=AsyncMock, side_effect=error):
        resp = await client.get("/api/leads", params={"city": "Mesa"})
    assert resp.status_code == status
    body = resp.json()
    assert body["error"] == "BatchData API Error"
    assert body["message"] == message


@pytest.mark.asyncio
async def test_leads_connection_check(client):
    outcome = {"success": True, "status": 200, "data": {}}
    with patch("leadagent.api.leads.check_connection", new_callable=AsyncMock, return_value=outcome):
        resp = await client.get("/api/leads/test")
    assert resp.status_code == 200
    assert resp.json()["results"] == outcome


# ---------------------------------------------------------------------------
# GET /api/user/get
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_user_requires_token(client):
    resp = await client.get("/api/user/get")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_user_not_found(client):
    with patch("leadagent.api.users.get_session", new_callable=AsyncMock, return_value=AsyncMock()), \
         patch("leadagent.api.users.get_user_by_token", new_callable=AsyncMock, return_value=None):
        resp = await client.get("/api/user/get", params={"accessToken": "nope"})
    assert resp.status_code == 404
    assert resp.json() == {"data": "not found"}


@pytest.mark.asyncio
async def test_user_found(client):
    user = SimpleNamespace(
        id=1, name="Acme Team", email="ops@acme.test", access_token="tok",
        expires_in=7200, leads_per_week=None, permissions=["leads"],
    )
    session = AsyncMock()
    with patch("leadagent.api.users.get_session", new_callable=AsyncMock, return_value=session), \
         patch("leadagent.api.users.get_user_by_token", new_callable=AsyncMock, return_value=user) as lookup:
        resp = await client.get("/api/user/get", params={"accessToken": "tok"})
    assert resp.status_code == 200
    assert resp.json()["name"] == "Acme Team"
    lookup.assert_awaited_once_with(session, "tok")
    session.close.assert_awaited_once()


# ---------------------------------------------------------------------------
# OAuth
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_auth_redirects_to_provider(client):
    resp = await client.get("/api/auth/clickfunnels")
    assert resp.status_code == 307
    location = resp.headers["location"]
    assert location.startswith("https://accounts.myclickfunnels.com/oauth/authorize?")
    assert "response_type=code" in location


@pytest.mark.asyncio
async def test_callback_requires_code(client):
    resp = await client.get("/api/auth/callback")
    assert resp.status_code == 400
    assert resp.json() == {"success": False, "error": "Authorization code missing"}


@pytest.mark.asyncio
async def test_callback_stores_user_and_redirects(client):
    token_data = {"access_token": "cf-token", "expires_in": 7200,
                  "email": "ops@acme.test", "team_name": "Acme Team"}
    session = AsyncMock()
    with patch("leadagent.api.auth._exchange_code", new_callable=AsyncMock, return_value=token_data), \
         patch("leadagent.api.auth.get_session", new_callable=AsyncMock, return_value=session), \
         patch("leadagent.api.auth.upsert_user", new_callable=AsyncMock) as upsert, \
         patch("leadagent.api.auth.settings.website_uri", "https://app.example.com"):
        resp = await client.get("/api/auth/callback", params={"code": "abc"})

    assert resp.status_code == 307
    assert resp.headers["location"] == "https://app.example.com?token=cf-token"
    upsert.assert_awaited_once_with(
        session, email="ops@acme.test", name="Acme Team",
        access_token="cf-token", expires_in=7200,
    )


@pytest.mark.asyncio
async def test_callback_without_token(client):
    with patch("leadagent.api.auth._exchange_code", new_callable=AsyncMock, return_value={}):
        resp = await client.get("/api/auth/callback", params={"code": "abc"})
    assert resp.status_code == 400
    assert resp.json() == {"error": "Token exchange failed"}


@pytest.mark.asyncio
async def test_callback_exchange_failure(client):
    request = httpx.Request("POST", "https://accounts.myclickfunnels.com/oauth/token")
    error = httpx.ConnectError("refused", request=request)
    with patch("leadagent.api.auth._exchange_code", new_callable=AsyncMock, side_effect=error):
        resp = await client.get("/api/auth/callback", params={"code": "abc"})
    assert resp.status_code == 500
    assert resp.json()["success"] is False
