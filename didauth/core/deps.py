from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from didauth.core.db import SessionLocal
from didauth.core.security import Principal, decode_bearer_token
from didauth.core.session import SessionBridge
from didauth.domains.did_auth.store import ChallengeStore, SqlChallengeStore


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_session_bridge(request: Request) -> SessionBridge:
    return SessionBridge(request.session)


def get_challenge_store(db: Session = Depends(get_db)) -> ChallengeStore:
    return SqlChallengeStore(db)


def get_principal(request: Request) -> Principal:
    auth = request.headers.get("authorization") or ""
    prefix = "bearer "
    if not auth.lower().startswith(prefix):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing bearer token")
    token = auth[len(prefix) :].strip()
    try:
        return decode_bearer_token(token)
    except Exception:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
