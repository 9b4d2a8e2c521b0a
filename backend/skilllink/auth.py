import secrets
from typing import Optional

from fastapi import Cookie, Depends, Request, Response

from skilllink import config
from skilllink.models import Session
from skilllink.services.session_client import session_client


def resolve_client_key(
    client_key: Optional[str] = Cookie(default=None, alias=config.SESSION_COOKIE_NAME),
) -> Optional[str]:
    if not client_key or not client_key.strip():
        return None
    return client_key.strip()


def set_client_cookie(response: Response, client_key: str) -> None:
    response.set_cookie(
        config.SESSION_COOKIE_NAME,
        client_key,
        httponly=True,
        samesite="lax",
        secure=config.SESSION_COOKIE_SECURE,
    )


def issue_client_key(response: Response, client_key: Optional[str]) -> str:
    if client_key:
        return client_key
    new_key = secrets.token_urlsafe(24)
    set_client_cookie(response, new_key)
    return new_key


def ensure_client_key(
    request: Request,
    response: Response,
    client_key: Optional[str] = Depends(resolve_client_key),
) -> str:
    """Cookie key for this browser, minting one on first contact.

    A freshly minted key is kept on ``request.state`` so error responses
    built outside the handler can still hand it to the browser.
    """
    key = issue_client_key(response, client_key)
    if key != client_key:
        request.state.issued_client_key = key
    return key


def current_session(client_key: Optional[str] = Depends(resolve_client_key)) -> Optional[Session]:
    return session_client.get_current_session(client_key)
