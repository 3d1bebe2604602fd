import json
import os
from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

# Must be set before didauth.core.db builds its engine.
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.asymmetric.utils import Prehashed, decode_dss_signature
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from didauth.core.config import settings
from didauth.core.db import Base
from didauth.core.deps import get_challenge_store, get_db
from didauth.domains.did_auth.signing import (
    CURVE,
    COMPONENT_HEX_LENGTH,
    digest_message,
    generate_private_key_hex,
    load_private_key,
    public_key_hex,
)
from didauth.domains.did_auth.store import SqlChallengeStore
from didauth.main import app


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


def sign_payload_rs(
    private_key: ec.EllipticCurvePrivateKey,
    raw_data: str,
    component_length: int = COMPONENT_HEX_LENGTH,
) -> str:
    """Produce the wallet-style ``r || s`` hex signature for ``raw_data``."""
    der = private_key.sign(digest_message(raw_data), ec.ECDSA(Prehashed(hashes.SHA256())))
    r, s = decode_dss_signature(der)
    return format(r, f"0{component_length}x") + format(s, f"0{component_length}x")


def verify_app_id(public_key_hex_value: str, app_id: str, signature_hex: str) -> bool:
    """What the wallet does with the descriptor's ``Signature`` field."""
    try:
        key = ec.EllipticCurvePublicKey.from_encoded_point(CURVE, bytes.fromhex(public_key_hex_value))
        key.verify(bytes.fromhex(signature_hex), app_id.encode("utf-8"), ec.ECDSA(hashes.SHA256()))
    except (InvalidSignature, ValueError):
        return False
    return True


class Wallet:
    """Plays the phone: signs Data blobs the way the wallet app does."""

    def __init__(self, did: str = "iXxFsEtpt8krhcNbVL7gzRfNqrJdRT4bSw") -> None:
        self.private_key = load_private_key(generate_private_key_hex())
        self.public_key = public_key_hex(self.private_key)
        self.did = did

    def assertion(self, state: str, **extra) -> tuple[str, str]:
        payload = {
            "PublicKey": self.public_key,
            "DID": self.did,
            "RandomNumber": int(state),
            "Nickname": "satoshi",
            "Email": "satoshi@example.com",
        }
        payload.update(extra)
        # Wallets post pretty-printed JSON; the signature covers these exact bytes.
        raw = json.dumps(payload, indent=4)
        return raw, sign_payload_rs(self.private_key, raw)


def state_from_scan_url(scan_url: str) -> str:
    return parse_qs(urlparse(scan_url).query)["RandomNumber"][0]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def did_settings(monkeypatch):
    app_key = generate_private_key_hex()
    monkeypatch.setattr(settings, "did_private_key", app_key)
    monkeypatch.setattr(settings, "did_public_key", public_key_hex(load_private_key(app_key)))
    monkeypatch.setattr(settings, "did_app_id", "test-app-id")
    monkeypatch.setattr(settings, "did_app_did", "iTestAppDid0000000000000000000000")
    monkeypatch.setattr(settings, "did_app_name", "Test App")
    monkeypatch.setattr(settings, "did_callback_url", "https://example.test/auth/did/callback")
    return settings


@pytest.fixture
def wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory, clock, did_settings):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _get_store(db: Session = Depends(get_db)):
        return SqlChallengeStore(db, clock=clock)

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_challenge_store] = _get_store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
