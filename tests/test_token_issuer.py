import asyncio
from datetime import timedelta
from urllib.parse import parse_qs

import httpx
import pytest

from pushgate.core.exceptions import AuthFailure, ErrorKind, MalformedTokenResponse, TransportFailure
from pushgate.services.token_issuer import AccessToken, TokenIssuer, token_endpoint_for

TOKEN_ENDPOINT = token_endpoint_for("login.microsoftonline.com", "tenant-id")
SCOPE = "https://wns.windows.com/.default"


async def _fetch(issuer, scope=SCOPE):
    return await issuer.fetch_oauth_token(TOKEN_ENDPOINT, "client-id", "client-secret", scope)


def test_token_endpoint_template():
    assert TOKEN_ENDPOINT == "https://login.microsoftonline.com/tenant-id/oauth2/v2.0/token"


@pytest.mark.asyncio
async def test_client_credentials_form(network, clock):
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        token = await _fetch(TokenIssuer(http_client, clock=clock))

    assert token.value == "token-1"
    assert token.expires_at == clock.now + timedelta(seconds=3600)
    request = network.token_requests[0]
    assert request.method == "POST"
    assert request.headers["content-type"] == "application/x-www-form-urlencoded"
    form = parse_qs(request.content.decode())
    assert form == {
        "grant_type": ["client_credentials"],
        "client_id": ["client-id"],
        "client_secret": ["client-secret"],
        "scope": [SCOPE],
    }


@pytest.mark.asyncio
async def test_cached_token_is_reused(network, clock):
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        issuer = TokenIssuer(http_client, clock=clock)
        first = await _fetch(issuer)
        clock.advance(minutes=50)
        second = await _fetch(issuer)

    assert first == second
    assert len(network.token_requests) == 1


@pytest.mark.asyncio
async def test_token_refreshed_inside_safety_margin(network, clock):
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        issuer = TokenIssuer(http_client, clock=clock, safety_margin=timedelta(minutes=5))
        await _fetch(issuer)
        clock.advance(minutes=56)
        network.token_body = {"access_token": "token-2", "expires_in": 3600}
        refreshed = await _fetch(issuer)

    assert refreshed.value == "token-2"
    assert len(network.token_requests) == 2


@pytest.mark.asyncio
async def test_each_scope_has_its_own_entry(network, clock):
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        issuer = TokenIssuer(http_client, clock=clock)
        await _fetch(issuer)
        await _fetch(issuer, scope="https://other.example.com/.default")
        await _fetch(issuer)

    assert len(network.token_requests) == 2


@pytest.mark.asyncio
async def test_unauthorized_raises_auth_failure(network, clock):
    network.token_status = 401
    network.token_body = "invalid_client"
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        with pytest.raises(AuthFailure) as exc_info:
            await _fetch(TokenIssuer(http_client, clock=clock))

    assert exc_info.value.status_code == 401
    assert exc_info.value.kind is ErrorKind.AUTH_FAILURE
    assert "invalid_client" in exc_info.value.body


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    ["not json", {"token_type": "Bearer"}, {"access_token": ""}, ["token"], {"access_token": "x", "expires_in": "soon"}],
)
async def test_malformed_token_response(network, clock, body):
    network.token_body = body
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        with pytest.raises(MalformedTokenResponse):
            await _fetch(TokenIssuer(http_client, clock=clock))


@pytest.mark.asyncio
async def test_missing_expires_in_defaults_to_an_hour(network, clock):
    network.token_body = {"access_token": "token-1"}
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        token = await _fetch(TokenIssuer(http_client, clock=clock))

    assert token.expires_at == clock.now + timedelta(hours=1)


@pytest.mark.asyncio
async def test_failures_are_not_cached(network, clock):
    network.token_status = 500
    network.token_body = "unavailable"
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        issuer = TokenIssuer(http_client, clock=clock)
        with pytest.raises(AuthFailure):
            await _fetch(issuer)

        network.token_status = 200
        network.token_body = {"access_token": "token-1", "expires_in": 3600}
        token = await _fetch(issuer)

    assert token.value == "token-1"
    assert len(network.token_requests) == 2


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_request(network, clock):
    network.token_delay = 0.05
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        issuer = TokenIssuer(http_client, clock=clock)
        tokens = await asyncio.gather(*[_fetch(issuer) for _ in range(5)])

    assert {token.value for token in tokens} == {"token-1"}
    assert len(network.token_requests) == 1


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_abort_shared_request(network, clock):
    network.token_delay = 0.1
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        issuer = TokenIssuer(http_client, clock=clock)
        patient = asyncio.create_task(_fetch(issuer))
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(_fetch(issuer), timeout=0.01)
        token = await patient
        cached = await _fetch(issuer)

    assert token.value == cached.value == "token-1"
    assert len(network.token_requests) == 1


@pytest.mark.asyncio
async def test_timeout_raises_transport_failure(clock):
    async def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        with pytest.raises(TransportFailure):
            await _fetch(TokenIssuer(http_client, clock=clock))


@pytest.mark.asyncio
async def test_invalidate_forces_new_request(network, clock):
    async with httpx.AsyncClient(transport=httpx.MockTransport(network)) as http_client:
        issuer = TokenIssuer(http_client, clock=clock)
        await _fetch(issuer)
        await issuer.invalidate(TOKEN_ENDPOINT, "client-id", SCOPE)
        await _fetch(issuer)

    assert len(network.token_requests) == 2


def test_access_token_repr_is_redacted(clock):
    token = AccessToken(value="x" * 200, expires_at=clock.now)
    assert "x" * 200 not in repr(token)
    assert not token.is_valid(clock.now)
