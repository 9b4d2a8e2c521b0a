import logging
import time
from typing import Any, Dict, List, Optional, Tuple

import httpx

from skilllink import config
from skilllink.errors import (
    BackendResponseError,
    BackendTimeoutError,
    BackendUnavailableError,
    RecordNotFoundError,
)
from skilllink.models import Session

logger = logging.getLogger(__name__)

SINGLE_OBJECT_MEDIA_TYPE = "application/vnd.pgrst.object+json"
NO_ROWS_ERROR_CODE = "PGRST116"
MALFORMED_RESPONSE_CODE = "malformed_response"


def _extract_error(response: httpx.Response) -> Tuple[str, Optional[str]]:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    message = None
    code = None
    if isinstance(payload, dict):
        message = (
            payload.get("msg")
            or payload.get("error_description")
            or payload.get("message")
            or payload.get("error")
        )
        code = payload.get("error_code") or payload.get("code") or payload.get("error")
    if not message:
        message = response.text.strip() or f"HTTP {response.status_code}"
    return str(message), (str(code) if code is not None else None)


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        logger.warning(
            "Backend %s %s returned a non-JSON body (%s)",
            response.request.method,
            response.request.url.path,
            response.headers.get("content-type", "unknown"),
        )
        raise BackendResponseError(
            response.status_code, "Malformed response from backend", MALFORMED_RESPONSE_CODE
        ) from exc


def session_from_token_payload(payload: Any, status: int = 200) -> Session:
    if not isinstance(payload, dict) or not payload.get("access_token"):
        raise BackendResponseError(status, "Malformed response from backend", MALFORMED_RESPONSE_CODE)
    user = payload.get("user") or {}
    expires_at = payload.get("expires_at")
    if expires_at is None:
        expires_at = int(time.time()) + int(payload.get("expires_in") or 3600)
    return Session(
        access_token=str(payload["access_token"]),
        refresh_token=str(payload.get("refresh_token") or ""),
        expires_at=int(expires_at),
        user_id=str(user.get("id", "")),
        email=user.get("email"),
    )


class BackendClient:
    """Thin async client for the hosted identity (GoTrue) and data (PostgREST) APIs."""

    def __init__(
        self,
        base_url: str,
        anon_key: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.anon_key = anon_key
        self.timeout = timeout
        self.transport = transport

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
        access_token: Optional[str] = None,
        single: bool = False,
    ) -> httpx.Response:
        request_headers = {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {access_token or self.anon_key}",
        }
        if headers:
            request_headers.update(headers)
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method,
                    path,
                    params=params,
                    json=json,
                    headers=request_headers,
                )
        except httpx.TimeoutException as exc:
            raise BackendTimeoutError(f"{method} {path} timed out after {self.timeout:g}s") from exc
        except httpx.HTTPError as exc:
            raise BackendUnavailableError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            message, code = _extract_error(response)
            logger.debug("Backend %s %s -> %s (%s)", method, path, response.status_code, code)
            if code == NO_ROWS_ERROR_CODE or (single and response.status_code == 406):
                raise RecordNotFoundError(response.status_code, message, code)
            raise BackendResponseError(response.status_code, message, code)
        return response

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        response = await self._request(
            "POST",
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return session_from_token_payload(_json(response), response.status_code)

    async def sign_in_with_otp(self, email: str, redirect_to: str) -> None:
        await self._request(
            "POST",
            "/auth/v1/otp",
            params={"redirect_to": redirect_to},
            json={"email": email, "create_user": True},
        )

    async def verify_otp(self, token_hash: str, otp_type: str) -> Session:
        response = await self._request(
            "POST",
            "/auth/v1/verify",
            json={"type": otp_type, "token_hash": token_hash},
        )
        return session_from_token_payload(_json(response), response.status_code)

    async def sign_out(self, access_token: str, scope: str = "local") -> None:
        await self._request(
            "POST",
            "/auth/v1/logout",
            params={"scope": scope},
            access_token=access_token,
        )

    async def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Dict[str, Any]] = None,
        *,
        single: bool = False,
        access_token: Optional[str] = None,
    ) -> Any:
        params: Dict[str, Any] = {"select": "".join(columns.split())}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        headers = {"Accept": SINGLE_OBJECT_MEDIA_TYPE} if single else None
        response = await self._request(
            "GET",
            f"/rest/v1/{table}",
            params=params,
            headers=headers,
            access_token=access_token,
            single=single,
        )
        return _json(response)

    async def insert(
        self,
        table: str,
        rows: List[Dict[str, Any]],
        *,
        access_token: Optional[str] = None,
    ) -> None:
        await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=minimal"},
            access_token=access_token,
        )


backend_client = BackendClient(
    base_url=config.SUPABASE_URL,
    anon_key=config.SUPABASE_ANON_KEY,
    timeout=config.BACKEND_TIMEOUT_SECONDS,
)
