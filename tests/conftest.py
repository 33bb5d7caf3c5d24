"""Pytest fixtures: stub push authority, fake clock, service and API clients."""
import httpx
import pytest
from fastapi.testclient import TestClient

from pushgate.core.config import Settings
from pushgate.main import create_application
from pushgate.services.encryption import WebPushPayloadEncryptor
from pushgate.services.keys import generate_key_pair
from pushgate.services.push_service import PushDispatchService
from pushgate.services.token_issuer import OAuthCredentials, TokenIssuer
from tests.stubs import VAPID_SUBJECT, FakeClock, StubPushNetwork


@pytest.fixture
def network():
    return StubPushNetwork()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(scope="session")
def key_pair():
    return generate_key_pair()


@pytest.fixture
def oauth():
    return OAuthCredentials(tenant_id="tenant-id", client_id="client-id", client_secret="client-secret")


@pytest.fixture
def make_service(oauth):
    """Factory: build a PushDispatchService around an httpx client."""

    def factory(http_client: httpx.AsyncClient, clock=None, **overrides) -> PushDispatchService:
        options = dict(
            oauth=oauth,
            vapid_subject=VAPID_SUBJECT,
            timeout=5.0,
            encryptor=WebPushPayloadEncryptor(),
        )
        if clock is not None:
            options["token_issuer"] = TokenIssuer(http_client, timeout=5.0, clock=clock)
        options.update(overrides)
        return PushDispatchService(http_client, **options)

    return factory


@pytest.fixture
def test_settings():
    return Settings(
        _env_file=None,
        WNS_TENANT_ID="tenant-id",
        WNS_CLIENT_ID="client-id",
        WNS_CLIENT_SECRET="client-secret",
        VAPID_SUBJECT=VAPID_SUBJECT,
        RATE_LIMIT_DEFAULT="1000/minute",
    )


@pytest.fixture
def client(test_settings, network):
    """TestClient; the lifespan opens the outbound client on the stub network."""
    app = create_application(test_settings, transport=httpx.MockTransport(network))
    with TestClient(app) as c:
        yield c
