import logging
from typing import Optional
from urllib.parse import urlencode

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse

from skilllink.auth import current_session, ensure_client_key, issue_client_key, resolve_client_key
from skilllink.errors import AuthError
from skilllink.models import AuthResult, LoginRequest, MagicLinkRequest, Navigation, Session, SessionStatus
from skilllink.notices import (
    DASHBOARD_PATH,
    LOGIN_PATH,
    login_succeeded,
    magic_link_sent,
    session_view,
)
from skilllink.services.session_client import (
    CALLBACK_ERROR_COPY,
    describe_callback_error,
    session_client,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])
callback_router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=AuthResult)
async def login(payload: LoginRequest, client_key: str = Depends(ensure_client_key)):
    session = await session_client.sign_in_with_password(client_key, payload.email, payload.password)
    return login_succeeded(session)


@router.post("/magic-link", response_model=AuthResult)
async def request_magic_link(payload: MagicLinkRequest, client_key: str = Depends(ensure_client_key)):
    await session_client.sign_in_with_magic_link(client_key, payload.email, payload.redirect_to)
    return magic_link_sent()


@router.post("/logout", response_model=AuthResult)
async def logout(client_key: Optional[str] = Depends(resolve_client_key)):
    if client_key:
        await session_client.sign_out(client_key)
    return AuthResult(navigation=Navigation(href=LOGIN_PATH, replace=True))


@router.get("/session", response_model=SessionStatus)
def get_session(session: Optional[Session] = Depends(current_session)):
    if not session:
        return SessionStatus(authenticated=False)
    return SessionStatus(authenticated=True, session=session_view(session))


@router.get("/callback-error", response_model=AuthResult)
def callback_error(
    error: Optional[str] = Query(default=None),
    message: Optional[str] = Query(default=None),
):
    notice = describe_callback_error(error, message)
    if not notice:
        return AuthResult()
    # Replace the location so a refresh does not show the error again.
    return AuthResult(notice=notice, navigation=Navigation(href=LOGIN_PATH, replace=True))


def _login_error_redirect(code: str, message: str) -> RedirectResponse:
    query = urlencode({"error": code, "message": message})
    return RedirectResponse(url=f"{LOGIN_PATH}?{query}", status_code=303)


@callback_router.get("/callback")
async def auth_callback(
    token_hash: Optional[str] = Query(default=None),
    otp_type: str = Query(default="magiclink", alias="type"),
    error: Optional[str] = Query(default=None),
    error_code: Optional[str] = Query(default=None),
    error_description: Optional[str] = Query(default=None),
    client_key: Optional[str] = Depends(resolve_client_key),
):
    code = error_code or error
    if code:
        return _login_error_redirect(code, error_description or code)
    if not token_hash:
        return _login_error_redirect("session_error", "The sign-in link is missing its token.")

    redirect = RedirectResponse(url=DASHBOARD_PATH, status_code=303)
    key = issue_client_key(redirect, client_key)
    try:
        await session_client.complete_magic_link(key, token_hash, otp_type)
    except AuthError as exc:
        logger.warning("Magic link verification failed: %s", exc)
        callback_code = exc.code if exc.code in CALLBACK_ERROR_COPY else "session_error"
        return _login_error_redirect(callback_code, str(exc))
    return redirect
