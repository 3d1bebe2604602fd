from pydantic import BaseModel


class ChallengeOut(BaseModel):
    scan_url: str
    qr_png_base64: str
    expires_in_seconds: int


class PollOut(BaseModel):
    redirect: str


class MessageOut(BaseModel):
    message: str


class RegistrationPrefillOut(BaseModel):
    did: str
    nickname: str | None = None
    email: str | None = None


class AuthCompleteOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    redirect: str = "/home"
