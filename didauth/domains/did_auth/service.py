import json
import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session

from didauth.core.config import Settings, settings as default_settings
from didauth.core.session import SessionBridge
from didauth.domains.accounts.models import Account
from didauth.domains.accounts.service import create_account
from didauth.domains.did_auth.errors import (
    ChallengeNotFound,
    DIDAuthNotConfigured,
    NoPendingChallenge,
    SignatureInvalid,
    StateCollisionError,
)
from didauth.domains.did_auth.models import DIDAuthRequest
from didauth.domains.did_auth.signing import sign_app_id, verify_payload
from didauth.domains.did_auth.store import ChallengeStore
from didauth.utils.qr import build_scan_url

logger = logging.getLogger(__name__)

LOGIN_COMPLETE_PATH = "/auth/did/complete"
REGISTER_COMPLETE_PATH = "/register/did/complete"

# Fields the wallet must include in its signed Data blob.
REQUIRED_ASSERTION_FIELDS = ("PublicKey", "DID", "RandomNumber")


@dataclass(frozen=True)
class IssuedChallenge:
    state: str
    scan_url: str
    expires_in_seconds: int


@dataclass(frozen=True)
class PollResult:
    redirect: str
    did: str


def generate_state(cfg: Settings = default_settings) -> str:
    return str(cfg.state_min + secrets.randbelow(cfg.state_max - cfg.state_min + 1))


def sign_application(cfg: Settings = default_settings) -> str:
    missing = cfg.did_missing_fields()
    if missing:
        raise DIDAuthNotConfigured(missing)
    try:
        return sign_app_id(cfg.did_private_key, cfg.did_app_id)
    except ValueError as exc:
        raise DIDAuthNotConfigured(["DID_PRIVATE_KEY"]) from exc


def build_request_descriptor(state: str, app_signature: str, cfg: Settings = default_settings) -> dict:
    """Query fields the wallet reads from the QR deep link."""
    return {
        "CallbackUrl": cfg.did_callback_url,
        "Description": cfg.did_description,
        "AppID": cfg.did_app_id,
        "PublicKey": cfg.did_public_key,
        "Signature": app_signature,
        "DID": cfg.did_app_did,
        "RandomNumber": state,
        "AppName": cfg.did_app_name,
        "RequestInfo": cfg.did_request_info,
    }


def _insert_pending(store: ChallengeStore, cfg: Settings) -> str:
    state = generate_state(cfg)
    try:
        store.insert(state, {"auth": False})
    except StateCollisionError:
        logger.warning("DID state collision; retrying with a fresh token")
        state = generate_state(cfg)
        store.insert(state, {"auth": False})
    return state


def issue_challenge(
    store: ChallengeStore,
    session: SessionBridge,
    cfg: Settings = default_settings,
) -> IssuedChallenge:
    # Sign before inserting: a misconfigured deployment must not leave pending rows behind.
    app_signature = sign_application(cfg)

    state = _insert_pending(store, cfg)
    scan_url = build_scan_url(cfg.did_uri_scheme, build_request_descriptor(state, app_signature, cfg))

    store.purge_older_than(timedelta(seconds=cfg.purge_window_seconds))

    session.pending_state = state
    session.resolved_challenge = None
    logger.info("Issued DID challenge")
    return IssuedChallenge(state=state, scan_url=scan_url, expires_in_seconds=cfg.verify_window_seconds)


def parse_assertion(raw_data: str) -> dict:
    try:
        data = json.loads(raw_data)
    except (TypeError, ValueError) as exc:
        raise SignatureInvalid("Data is not valid JSON") from exc
    if not isinstance(data, dict):
        raise SignatureInvalid("Data must be a JSON object")
    missing = [k for k in REQUIRED_ASSERTION_FIELDS if data.get(k) in (None, "")]
    if missing:
        raise SignatureInvalid(f"Data missing fields: {','.join(missing)}")
    if not isinstance(data["DID"], str) or not data["DID"].strip():
        raise SignatureInvalid("DID must be a non-empty string")
    return data


def normalize_state(value) -> str:
    """
    Canonical decimal form of an echoed ``RandomNumber``.

    Wallets may send the number back as an int, an integral float or a digit
    string; anything else cannot name a challenge.
    """
    if isinstance(value, bool):
        raise SignatureInvalid("RandomNumber must be numeric")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, str) and value.isascii() and value.isdigit():
        return str(int(value))
    raise SignatureInvalid("RandomNumber must be numeric")


def handle_callback(
    store: ChallengeStore,
    raw_data: str | None,
    sign: str | None,
    cfg: Settings = default_settings,
) -> DIDAuthRequest:
    """
    Verify a wallet assertion and mark its challenge verified.

    ``raw_data`` is hashed exactly as received. Any failure raises
    ``SignatureInvalid`` or ``ChallengeNotFound``; the record is only touched
    once both the signature and the freshness check pass.
    """
    if not raw_data or not sign:
        raise SignatureInvalid("Data and Sign are required")

    data = parse_assertion(raw_data)
    if not isinstance(data["PublicKey"], str) or not verify_payload(
        raw_data, sign, data["PublicKey"], cfg.signature_component_length
    ):
        raise SignatureInvalid("Signature verification failed")

    state = normalize_state(data["RandomNumber"])
    record = store.find_fresh(state, timedelta(seconds=cfg.verify_window_seconds))
    if record is None:
        raise ChallengeNotFound("No fresh challenge for state")

    merged = dict(record.data or {})
    merged["did"] = data["DID"]
    merged["auth"] = True
    merged.update(data)
    record.data = merged
    record.verified = True
    store.update(record)

    logger.info("DID challenge verified did=%s", data["DID"])
    return record


def poll_challenge(
    store: ChallengeStore,
    session: SessionBridge,
    is_known_identity: Callable[[str], bool],
    cfg: Settings = default_settings,
) -> PollResult:
    state = session.pending_state
    if not state:
        raise NoPendingChallenge("No challenge issued for this session")

    record = store.find_verified_fresh(state, timedelta(seconds=cfg.poll_window_seconds))
    if record is None or not record.did:
        raise ChallengeNotFound("Token not found")

    session.resolved_challenge = record.to_snapshot()

    did = record.did
    redirect = LOGIN_COMPLETE_PATH if is_known_identity(did) else REGISTER_COMPLETE_PATH
    return PollResult(redirect=redirect, did=did)


def _resolved_did(session: SessionBridge) -> tuple[dict, str]:
    snapshot = session.resolved_challenge
    if not snapshot:
        raise NoPendingChallenge("No resolved challenge in session")
    data = snapshot.get("data") or {}
    did = data.get("DID") or data.get("did")
    if not did:
        raise NoPendingChallenge("Resolved challenge carries no DID")
    return snapshot, str(did)


def complete_login(
    store: ChallengeStore,
    session: SessionBridge,
    find_account: Callable[[str], Account | None],
) -> Account:
    snapshot, did = _resolved_did(session)
    account = find_account(did)
    if account is None:
        raise NoPendingChallenge("No account for resolved DID")

    store.delete_by_state(str(snapshot["state"]))
    session.login(account.id)
    logger.info("DID login completed account_id=%s", account.id)
    return account


def registration_prefill(session: SessionBridge) -> dict:
    snapshot, did = _resolved_did(session)
    data = snapshot.get("data") or {}
    nickname = data.get("Nickname")
    email = data.get("Email")
    return {
        "did": did,
        "nickname": str(nickname) if nickname is not None else None,
        "email": str(email) if email is not None else None,
    }


def complete_registration(
    db: Session,
    store: ChallengeStore,
    session: SessionBridge,
    *,
    name: str,
    email: str | None,
) -> Account:
    snapshot, did = _resolved_did(session)
    account = create_account(db, did=did, name=name, email=email)

    store.delete_by_state(str(snapshot["state"]))
    session.login(account.id)
    logger.info("DID registration completed account_id=%s", account.id)
    return account
