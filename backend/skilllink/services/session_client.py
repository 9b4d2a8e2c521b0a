import logging
import time
from contextlib import contextmanager
from threading import Lock
from typing import Dict, Iterator, Optional, Set

from skilllink import config
from skilllink.errors import AuthError, BackendError, BackendResponseError, BackendTimeoutError
from skilllink.models import Notice, Session
from skilllink.services.backend_client import BackendClient, backend_client

logger = logging.getLogger(__name__)

GENERIC_CALLBACK_ERROR_TITLE = "Authentication Error"
MAX_SESSIONS = 5000

# error code -> (title, description); None keeps the message from the redirect.
CALLBACK_ERROR_COPY: Dict[str, tuple[str, Optional[str]]] = {
    "otp_expired": (
        "Link Expired",
        "The email verification link has expired. Please request a new one.",
    ),
    "access_denied": (
        "Access Denied",
        "The authentication link is invalid or has already been used.",
    ),
    "session_error": ("Session Error", None),
}


def describe_callback_error(error: Optional[str], message: Optional[str]) -> Optional[Notice]:
    if not error or not message:
        return None
    title, description = CALLBACK_ERROR_COPY.get(error, (GENERIC_CALLBACK_ERROR_TITLE, None))
    return Notice(title=title, description=description or message, variant="destructive")


def _to_auth_error(exc: BackendError, fallback_code: str) -> AuthError:
    if isinstance(exc, BackendTimeoutError):
        return AuthError("The authentication service did not respond in time. Please try again.", code="timeout")
    if isinstance(exc, BackendResponseError):
        return AuthError(str(exc), code=exc.code or fallback_code, status=exc.status)
    return AuthError("The authentication service is unavailable. Please try again.", code="unavailable")


class SessionClient:
    """Per-browser sessions against the hosted identity provider.

    Sessions are keyed by the browser's session cookie. The map is the only
    shared mutable state in the service, so every access goes through the lock.
    """

    def __init__(self, backend: BackendClient, max_sessions: int = MAX_SESSIONS):
        self._backend = backend
        self._lock = Lock()
        self._sessions: Dict[str, Session] = {}
        self._max_sessions = max_sessions
        self._in_flight: Set[str] = set()

    def is_loading(self, client_key: str) -> bool:
        with self._lock:
            return client_key in self._in_flight

    @contextmanager
    def _loading(self, client_key: str) -> Iterator[None]:
        with self._lock:
            if client_key in self._in_flight:
                raise AuthError("A sign-in request is already in progress.", code="request_in_progress")
            self._in_flight.add(client_key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(client_key)

    def get_current_session(self, client_key: Optional[str]) -> Optional[Session]:
        if not client_key:
            return None
        with self._lock:
            session = self._sessions.get(client_key)
            if session and session.expires_at <= int(time.time()):
                self._sessions.pop(client_key, None)
                return None
            return session

    def _store(self, client_key: str, session: Session) -> None:
        now = int(time.time())
        with self._lock:
            for key in [key for key, stored in self._sessions.items() if stored.expires_at <= now]:
                del self._sessions[key]
            self._sessions.pop(client_key, None)
            self._sessions[client_key] = session
            while len(self._sessions) > self._max_sessions:
                self._sessions.pop(next(iter(self._sessions)))

    def session_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    async def clear_local_session(self, client_key: str) -> None:
        with self._lock:
            session = self._sessions.pop(client_key, None)
        if not session:
            return
        try:
            await self._backend.sign_out(session.access_token, scope="local")
        except BackendError as exc:
            logger.warning("Local sign-out for user %s failed: %s", session.user_id, exc)

    async def sign_in_with_password(self, client_key: str, email: str, password: str) -> Session:
        with self._loading(client_key):
            await self.clear_local_session(client_key)
            try:
                session = await self._backend.sign_in_with_password(email.strip(), password)
            except BackendError as exc:
                raise _to_auth_error(exc, fallback_code="invalid_credentials") from exc
            self._store(client_key, session)
            logger.info("User %s signed in with password", session.user_id)
            return session

    async def sign_in_with_magic_link(
        self,
        client_key: str,
        email: str,
        redirect_target: Optional[str] = None,
    ) -> str:
        """Ask the identity provider to email a sign-in link.

        Returns the redirect target embedded in the link. Success only means
        the provider accepted the request, not that the link was delivered.
        """
        target = redirect_target or config.magic_link_redirect_target()
        with self._loading(client_key):
            try:
                await self._backend.sign_in_with_otp(email.strip(), redirect_to=target)
            except BackendError as exc:
                raise _to_auth_error(exc, fallback_code="otp_error") from exc
        logger.info("Magic link requested (redirect=%s)", target)
        return target

    async def complete_magic_link(self, client_key: str, token_hash: str, otp_type: str) -> Session:
        await self.clear_local_session(client_key)
        try:
            session = await self._backend.verify_otp(token_hash, otp_type)
        except BackendError as exc:
            raise _to_auth_error(exc, fallback_code="session_error") from exc
        self._store(client_key, session)
        logger.info("User %s signed in with magic link", session.user_id)
        return session

    async def sign_out(self, client_key: str) -> None:
        await self.clear_local_session(client_key)


session_client = SessionClient(backend_client)
