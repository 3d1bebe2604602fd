import logging

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.sessions import SessionMiddleware

from didauth.core.config import settings
from didauth.core.db import Base, engine
from didauth.domains.accounts.router import router as accounts_router
from didauth.domains.did_auth.router import router as did_auth_router

logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name)


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request, exc: RequestValidationError):
    # Helpful for debugging 422s in dev. Do not log full bodies in prod.
    if settings.env == "dev":
        try:
            body = await request.body()
        except Exception:
            body = b""
        logger.info("[422] path=%s errors=%s body=%r", request.url.path, exc.errors(), body[:500])
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


origins = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins if origins else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
# The pending state and the resolved challenge live in this cookie.
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    session_cookie=settings.session_cookie,
    max_age=settings.session_max_age_seconds,
    https_only=settings.session_https_only,
    same_site="lax",
)


@app.on_event("startup")
def _startup() -> None:
    # Tables are created on boot; there are no migrations yet.
    Base.metadata.create_all(bind=engine)
    missing = settings.did_missing_fields()
    if missing:
        logger.warning("DID signing not configured; missing=%s", ",".join(missing))


@app.get("/health")
def health() -> dict:
    return {
        "ok": True,
        "service": settings.app_name,
        "env": settings.env,
        "did_signing_configured": settings.did_signing_configured,
        "did_missing": settings.did_missing_fields(),
    }


app.include_router(did_auth_router, tags=["did-auth"])
app.include_router(accounts_router, tags=["accounts"])
