"""Turns service outcomes into what the browser shows.

Services return results or raise ``SkillLinkError``; only this module decides
which transient notice, navigation or terminal page state the user gets.
"""

import logging
from typing import List

from fastapi import Request
from fastapi.responses import JSONResponse

from skilllink.auth import set_client_cookie
from skilllink.errors import (
    AuthError,
    FetchError,
    FlowNotFoundError,
    FlowStateError,
    NotifyError,
    PaymentError,
    PermissionDeniedError,
    ProviderNotFoundError,
    SkillLinkError,
)
from skilllink.models import (
    AuthResult,
    ErrorBody,
    Navigation,
    Notice,
    Session,
    SessionView,
    TerminalAction,
)
from skilllink.services.booking_orchestrator import BookingOutcome
from skilllink.services.payment_finalizer import PaymentOutcome

logger = logging.getLogger(__name__)

DASHBOARD_PATH = "/dashboard"
LOGIN_PATH = "/login"
EXPLORE_PATH = "/explore"

GENERIC_FAILURE_FALLBACK = "Something went wrong. Please try again."
PROVIDER_LOAD_FAILED = "Failed to load provider details."


def session_view(session: Session) -> SessionView:
    return SessionView(user_id=session.user_id, email=session.email, expires_at=session.expires_at)


def login_succeeded(session: Session) -> AuthResult:
    return AuthResult(
        notice=Notice(title="Welcome back!", description="You have successfully logged in."),
        navigation=Navigation(href=DASHBOARD_PATH, replace=True),
        session=session_view(session),
    )


def magic_link_sent() -> AuthResult:
    return AuthResult(
        notice=Notice(
            title="Magic link sent!",
            description="Please check your email for the login link. The link will expire in 24 hours.",
        )
    )


def booking_notices(outcome: BookingOutcome) -> List[Notice]:
    if not outcome.notified:
        return [
            Notice(
                title="Warning",
                description="Booking created but notification could not be sent.",
                variant="destructive",
            )
        ]
    notification = outcome.flow.notification
    title = notification.title if notification else "Request sent"
    return [Notice(title=title, description="Your request has been sent successfully.")]


def payment_notices(outcome: PaymentOutcome) -> List[Notice]:
    if outcome.already_confirmed:
        return []
    return [
        Notice(
            title="Booking confirmed",
            description="Your booking has been successfully confirmed and added to your dashboard.",
        )
    ]


def _error_notice(description: str) -> Notice:
    return Notice(title="Error", description=description, variant="destructive")


def _auth_status(exc: AuthError) -> int:
    if exc.code == "request_in_progress":
        return 409
    if exc.code == "timeout":
        return 504
    if exc.code == "unavailable":
        return 503
    if exc.code == "malformed_response":
        return 502
    if exc.status and 400 <= exc.status < 500:
        return exc.status
    return 401


def error_response(exc: SkillLinkError) -> JSONResponse:
    logger.warning("Request failed with %s: %s", type(exc).__name__, exc)
    message = str(exc) or GENERIC_FAILURE_FALLBACK
    if isinstance(exc, ProviderNotFoundError):
        status_code = 404
        body = ErrorBody(
            state="not_found",
            title="Provider not found",
            action=TerminalAction(label="Back to Explore", href=EXPLORE_PATH),
        )
    elif isinstance(exc, FetchError):
        status_code = 502
        body = ErrorBody(state="error", notice=_error_notice(PROVIDER_LOAD_FAILED))
    elif isinstance(exc, AuthError):
        status_code = _auth_status(exc)
        body = ErrorBody(notice=_error_notice(message), detail={"code": exc.code, "loading": False})
    elif isinstance(exc, PermissionDeniedError):
        status_code = 403
        body = ErrorBody(notice=_error_notice(message))
    elif isinstance(exc, FlowNotFoundError):
        status_code = 404
        body = ErrorBody(notice=_error_notice(message))
    elif isinstance(exc, FlowStateError):
        status_code = 409
        body = ErrorBody(notice=_error_notice(message))
    elif isinstance(exc, PaymentError):
        status_code = 400
        body = ErrorBody(notice=_error_notice(message))
    elif isinstance(exc, NotifyError):
        status_code = 502
        body = ErrorBody(notice=_error_notice(message))
    else:
        status_code = 400
        body = ErrorBody(notice=_error_notice(message))
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json", exclude_none=True))


async def skilllink_error_handler(request: Request, exc: SkillLinkError) -> JSONResponse:
    response = error_response(exc)
    issued_key = getattr(request.state, "issued_client_key", None)
    if issued_key:
        set_client_cookie(response, issued_key)
    return response
