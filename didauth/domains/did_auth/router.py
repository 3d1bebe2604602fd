import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy.orm import Session

from didauth.core.deps import get_challenge_store, get_db, get_session_bridge
from didauth.core.security import create_access_token
from didauth.core.session import SessionBridge
from didauth.domains.accounts.schemas import RegistrationIn
from didauth.domains.accounts.service import get_account_by_did
from didauth.domains.did_auth.errors import (
    ChallengeNotFound,
    DIDAuthNotConfigured,
    NoPendingChallenge,
    SignatureInvalid,
)
from didauth.domains.did_auth.schemas import (
    AuthCompleteOut,
    ChallengeOut,
    MessageOut,
    PollOut,
    RegistrationPrefillOut,
)
from didauth.domains.did_auth.service import (
    complete_login,
    complete_registration,
    handle_callback,
    issue_challenge,
    poll_challenge,
    registration_prefill,
)
from didauth.domains.did_auth.store import ChallengeStore
from didauth.utils.qr import qr_png_base64

logger = logging.getLogger(__name__)

router = APIRouter()


def _unauthorized() -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"message": "Unauthorized"})


async def callback_fields(request: Request) -> dict[str, str]:
    # Wallets post either a form or a JSON body; only string fields are usable
    # since Data must be hashed exactly as sent.
    content_type = request.headers.get("content-type") or ""
    if content_type.startswith("application/json"):
        try:
            body = await request.json()
        except ValueError:
            return {}
        items = body.items() if isinstance(body, dict) else []
    else:
        form = await request.form()
        items = form.items()
    return {k: v for k, v in items if isinstance(v, str)}


@router.get("/auth/did", response_model=ChallengeOut)
@router.get("/register/did", response_model=ChallengeOut)
def start_did_auth(
    store: ChallengeStore = Depends(get_challenge_store),
    session: SessionBridge = Depends(get_session_bridge),
) -> ChallengeOut:
    try:
        issued = issue_challenge(store, session)
    except DIDAuthNotConfigured as exc:
        logger.error("DID auth not configured; missing=%s", ",".join(exc.missing))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "DID_AUTH_NOT_CONFIGURED", "missing": exc.missing},
        )
    return ChallengeOut(
        scan_url=issued.scan_url,
        qr_png_base64=qr_png_base64(issued.scan_url),
        expires_in_seconds=issued.expires_in_seconds,
    )


@router.post("/auth/did/callback", responses={401: {"model": MessageOut}})
def did_callback(
    fields: dict[str, str] = Depends(callback_fields),
    store: ChallengeStore = Depends(get_challenge_store),
) -> Response:
    try:
        handle_callback(store, fields.get("Data"), fields.get("Sign"))
    except SignatureInvalid as exc:
        logger.warning("DID callback rejected (signature): %s", exc)
        return _unauthorized()
    except ChallengeNotFound as exc:
        logger.warning("DID callback rejected (challenge): %s", exc)
        return _unauthorized()
    return Response(status_code=status.HTTP_200_OK)


@router.get("/auth/did/check", response_model=PollOut, responses={404: {"model": MessageOut}})
def check_did_auth(
    store: ChallengeStore = Depends(get_challenge_store),
    session: SessionBridge = Depends(get_session_bridge),
    db: Session = Depends(get_db),
):
    try:
        result = poll_challenge(store, session, lambda did: get_account_by_did(db, did) is not None)
    except NoPendingChallenge:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=False)
    except ChallengeNotFound:
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"message": "Token not found"})
    return PollOut(redirect=result.redirect)


@router.get("/auth/did/complete", response_model=AuthCompleteOut)
def complete_did_login(
    store: ChallengeStore = Depends(get_challenge_store),
    session: SessionBridge = Depends(get_session_bridge),
    db: Session = Depends(get_db),
):
    try:
        account = complete_login(store, session, lambda did: get_account_by_did(db, did))
    except NoPendingChallenge:
        return RedirectResponse("/", status_code=status.HTTP_303_SEE_OTHER)
    return AuthCompleteOut(access_token=create_access_token(sub=account.id, did=account.did))


@router.get("/register/did/complete", response_model=RegistrationPrefillOut)
def registration_form(session: SessionBridge = Depends(get_session_bridge)):
    try:
        return RegistrationPrefillOut(**registration_prefill(session))
    except NoPendingChallenge:
        return RedirectResponse("/register/did", status_code=status.HTTP_303_SEE_OTHER)


@router.post("/register/did/complete", response_model=AuthCompleteOut)
def submit_registration(
    payload: RegistrationIn,
    store: ChallengeStore = Depends(get_challenge_store),
    session: SessionBridge = Depends(get_session_bridge),
    db: Session = Depends(get_db),
):
    try:
        account = complete_registration(db, store, session, name=payload.name, email=payload.email)
    except NoPendingChallenge:
        return RedirectResponse("/register/did", status_code=status.HTTP_303_SEE_OTHER)
    return AuthCompleteOut(access_token=create_access_token(sub=account.id, did=account.did))


@router.post("/auth/logout")
def logout(session: SessionBridge = Depends(get_session_bridge)) -> dict:
    session.clear()
    return {"ok": True}
