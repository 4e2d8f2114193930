from __future__ import annotations

import uuid

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from noteai.api.v1.routes import contacts, health, labels, onboarding, session, subscription
from noteai.core.config import get_settings
from noteai.core.errors import AuthenticationError, BusyError, RemoteCallError
from noteai.core.logging import configure_logging
from noteai.services.session import AppSession, SessionRegistry


def _open_session(owner_id: uuid.UUID, access_token: str | None) -> AppSession:
    return AppSession.from_settings(get_settings(), owner_id, access_token=access_token)


configure_logging()
settings = get_settings()
app = FastAPI(title=settings.app_name)
app.state.sessions = SessionRegistry(_open_session)


@app.exception_handler(BusyError)
def busy_handler(_request: Request, exc: BusyError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": exc.message})


@app.exception_handler(AuthenticationError)
def authentication_handler(_request: Request, exc: AuthenticationError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": exc.message})


@app.exception_handler(RemoteCallError)
def remote_call_handler(_request: Request, exc: RemoteCallError) -> JSONResponse:
    return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": exc.message})


@app.on_event("shutdown")
def on_shutdown() -> None:
    app.state.sessions.close_all()


app.include_router(health.router, prefix=settings.api_prefix)
app.include_router(session.router, prefix=settings.api_prefix)
app.include_router(contacts.router, prefix=settings.api_prefix)
app.include_router(labels.router, prefix=settings.api_prefix)
app.include_router(onboarding.router, prefix=settings.api_prefix)
app.include_router(subscription.router, prefix=settings.api_prefix)
