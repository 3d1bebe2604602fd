from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from didauth.core.deps import get_db, get_principal
from didauth.core.security import Principal
from didauth.domains.accounts.schemas import AccountOut
from didauth.domains.accounts.service import get_account


router = APIRouter(prefix="/auth")


@router.get("/me", response_model=AccountOut)
def me(principal: Principal = Depends(get_principal), db: Session = Depends(get_db)) -> AccountOut:
    account = get_account(db, principal.sub)
    return AccountOut(account_id=account.id, did=account.did, name=account.name, email=account.email)
