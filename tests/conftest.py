"""Shared fixtures: in-memory services, a controllable clock and real wallet keys."""

from datetime import timedelta

import pytest
from eth_account import Account
from eth_account.messages import encode_defunct
from fastapi.testclient import TestClient

from api import build_services, create_app
from config import DEFAULTS, validate_settings
from utils import utcnow

class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or utcnow()

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)

class Wallet:
    """A throwaway key pair that signs like a browser wallet's signMessage."""

    def __init__(self):
        self.account = Account.create()

    @property
    def address(self) -> str:
        # Checksummed, the way wallet providers report it
        return self.account.address

    @property
    def normalized(self) -> str:
        return self.account.address.lower()

    def sign(self, text: str) -> str:
        signed = Account.sign_message(encode_defunct(text=text), private_key=self.account.key)
        return "0x" + bytes(signed.signature).hex()

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def settings():
    return validate_settings({
        **DEFAULTS,
        'storage': 'memory',
        'access_token_secret': 'test-access-secret',
        'refresh_token_secret': 'test-refresh-secret',
    })

@pytest.fixture
def services(settings, clock):
    return build_services(settings, clock=clock)

@pytest.fixture
def app(services):
    return create_app(services, run_workers=False)

@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client

@pytest.fixture
def make_wallet():
    return Wallet

@pytest.fixture
def sign_in(client):
    """Run the challenge/verify flow over HTTP and return the verify response."""
    def sign_in(wallet, display_name=None, role=None, signer=None):
        response = client.post("/auth/challenge", json={"wallet": wallet.address})
        assert response.status_code == 200
        challenge = response.json()["challenge"]

        body = {"wallet": wallet.address, "signature": (signer or wallet).sign(challenge)}
        if display_name is not None:
            body["displayName"] = display_name
        if role is not None:
            body["role"] = role
        return client.post("/auth/verify", json=body)
    return sign_in

@pytest.fixture
def auth_headers(sign_in):
    """Sign a wallet in (registering it if needed) and return bearer headers."""
    def auth_headers(wallet, display_name="Tester", role="employer"):
        response = sign_in(wallet, display_name=display_name, role=role)
        assert response.status_code == 200, response.text
        return {"Authorization": f"Bearer {response.json()['accessToken']}"}
    return auth_headers
