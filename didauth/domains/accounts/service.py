from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from didauth.domains.accounts.models import Account


def get_account_by_did(db: Session, did: str) -> Account | None:
    return db.query(Account).filter(Account.did == did).one_or_none()


def get_account(db: Session, account_id: str) -> Account:
    account = db.get(Account, account_id)
    if account is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Account not found")
    return account


def create_account(db: Session, *, did: str, name: str, email: str | None) -> Account:
    if get_account_by_did(db, did) is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="DID already registered")
    account = Account(did=did, name=name.strip(), email=(email or "").strip() or None)
    db.add(account)
    db.commit()
    db.refresh(account)
    return account
