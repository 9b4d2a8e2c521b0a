import asyncio
import os
import sys
import time

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from fake_backend import FakeBackend, seed_marketplace
from skilllink.errors import AuthError
from skilllink.models import Session
from skilllink.services.session_client import SessionClient, describe_callback_error


def _client():
    backend = FakeBackend()
    seed_marketplace(backend)
    return backend, SessionClient(backend.client())


def test_callback_error_copy_per_code():
    expired = describe_callback_error("otp_expired", "Email link is invalid or has expired")
    assert expired.title == "Link Expired"
    assert expired.description == "The email verification link has expired. Please request a new one."
    assert expired.variant == "destructive"

    denied = describe_callback_error("access_denied", "whatever")
    assert denied.title == "Access Denied"
    assert denied.description == "The authentication link is invalid or has already been used."

    session_error = describe_callback_error("session_error", "Could not restore session")
    assert session_error.title == "Session Error"
    assert session_error.description == "Could not restore session"


def test_unknown_callback_error_passes_message_through():
    notice = describe_callback_error("flow_state_not_found", "Raw provider message")
    assert notice.title == "Authentication Error"
    assert notice.description == "Raw provider message"


def test_callback_error_needs_code_and_message():
    assert describe_callback_error("otp_expired", None) is None
    assert describe_callback_error(None, "message") is None


def test_wrong_password_raises_and_resets_loading():
    _, client = _client()
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(client.sign_in_with_password("browser", "a@x.com", "wrong"))
    assert str(exc_info.value) == "Invalid login credentials"
    assert client.is_loading("browser") is False
    assert client.get_current_session("browser") is None


def test_password_sign_in_stores_session():
    _, client = _client()
    session = asyncio.run(client.sign_in_with_password("browser", " a@x.com ", "correct-horse"))
    assert session.user_id == "alice-id"
    assert client.get_current_session("browser") == session
    assert client.get_current_session("other-browser") is None


def test_sign_in_clears_previous_local_session_first():
    backend, client = _client()
    first = asyncio.run(client.sign_in_with_password("browser", "a@x.com", "correct-horse"))
    asyncio.run(client.sign_in_with_password("browser", "carol@x.com", "carol-pass"))

    assert backend.sign_outs == [{"scope": "local", "authorization": f"Bearer {first.access_token}"}]
    assert backend.calls.index("POST /auth/v1/logout") < len(backend.calls) - 1
    assert client.get_current_session("browser").user_id == "carol-id"


def test_failed_local_sign_out_does_not_block_sign_in():
    backend, client = _client()
    asyncio.run(client.sign_in_with_password("browser", "a@x.com", "correct-horse"))
    backend.timeout_paths.add("/auth/v1/logout")
    session = asyncio.run(client.sign_in_with_password("browser", "a@x.com", "correct-horse"))
    assert client.get_current_session("browser") == session


def test_sign_in_timeout_maps_to_auth_error():
    backend, client = _client()
    backend.timeout_paths.add("/auth/v1/token")
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(client.sign_in_with_password("browser", "a@x.com", "correct-horse"))
    assert exc_info.value.code == "timeout"
    assert client.is_loading("browser") is False


def test_concurrent_submission_is_rejected():
    backend, client = _client()

    async def scenario():
        gate = asyncio.Event()
        original = client._backend.sign_in_with_password

        async def slow_sign_in(email, password):
            await gate.wait()
            return await original(email, password)

        client._backend.sign_in_with_password = slow_sign_in
        first = asyncio.create_task(client.sign_in_with_password("browser", "a@x.com", "correct-horse"))
        await asyncio.sleep(0)
        with pytest.raises(AuthError) as exc_info:
            await client.sign_in_with_password("browser", "a@x.com", "correct-horse")
        gate.set()
        await first
        return exc_info.value

    error = asyncio.run(scenario())
    assert error.code == "request_in_progress"
    assert client.is_loading("browser") is False


def test_magic_link_returns_after_dispatch():
    backend, client = _client()
    target = asyncio.run(client.sign_in_with_magic_link("browser", "a@x.com", "https://app.test/api/auth/callback"))
    assert target == "https://app.test/api/auth/callback"
    assert backend.magic_link_requests == [{"email": "a@x.com", "redirect_to": "https://app.test/api/auth/callback"}]
    assert client.get_current_session("browser") is None


def test_magic_link_completion_stores_session():
    backend, client = _client()
    backend.valid_token_hashes["hash-1"] = "a@x.com"
    session = asyncio.run(client.complete_magic_link("browser", "hash-1", "magiclink"))
    assert session.user_id == "alice-id"

    with pytest.raises(AuthError) as exc_info:
        asyncio.run(client.complete_magic_link("browser", "hash-1", "magiclink"))
    assert exc_info.value.code == "otp_expired"


def test_expired_session_reads_as_none():
    _, client = _client()
    client._store("browser", Session(access_token="old", expires_at=int(time.time()) - 1, user_id="alice-id"))
    assert client.get_current_session("browser") is None


def test_token_reply_without_access_token_is_auth_error():
    backend, client = _client()
    backend.canned_responses["/auth/v1/token"] = httpx.Response(200, json={"user": {}})
    with pytest.raises(AuthError) as exc_info:
        asyncio.run(client.sign_in_with_password("browser", "a@x.com", "correct-horse"))
    assert exc_info.value.code == "malformed_response"
    assert client.get_current_session("browser") is None
    assert client.is_loading("browser") is False


def test_storing_a_session_sweeps_expired_ones():
    _, client = _client()
    client._store("gone", Session(access_token="old", expires_at=int(time.time()) - 1, user_id="carol-id"))
    client._store("browser", Session(access_token="new", expires_at=int(time.time()) + 600, user_id="alice-id"))
    assert client.session_count() == 1
    assert client.get_current_session("browser").access_token == "new"


def test_session_map_evicts_oldest_browser_first():
    backend = FakeBackend()
    client = SessionClient(backend.client(), max_sessions=2)
    expires_at = int(time.time()) + 600
    for key in ("first", "second", "third"):
        client._store(key, Session(access_token=key, expires_at=expires_at, user_id=key))
    assert client.session_count() == 2
    assert client.get_current_session("first") is None
    assert client.get_current_session("third").access_token == "third"
