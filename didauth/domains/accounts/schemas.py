from pydantic import BaseModel, Field


class AccountOut(BaseModel):
    account_id: str
    did: str
    name: str | None = None
    email: str | None = None


class RegistrationIn(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    email: str | None = Field(default=None, max_length=255)
