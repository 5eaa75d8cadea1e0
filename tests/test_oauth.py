import dataclasses
import logging
import socket
import threading
import time
from typing import Callable, List
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest

from reddit_oauth.errors import (
    AuthorizationTimeoutError,
    BrowserLaunchError,
    CallbackProtocolError,
    ConfigError,
    NotRefreshableError,
    RevokeCredentialError,
    StateMismatchError,
)
from reddit_oauth.models import BearerToken, OAuthState
from reddit_oauth.oauth import RedditOAuth, build_authorize_url, validate_state
from reddit_oauth.scopes import Duration, RedditApiScope
from reddit_oauth.token_client import TokenClient

TOKEN_JSON = {
    "access_token": "bearer-abc",
    "token_type": "bearer",
    "expires_in": 3600,
    "scope": "identity",
    "refresh_token": "refresh-abc",
}


class FakeBrowser:
    """Stands in for the user: "visits" the consent page and follows the redirect."""

    def __init__(self, port: int, send: Callable, query: Callable[[dict], str] = None):
        self.port = port
        self.send = send
        self.query = query
        self.urls: List[str] = []

    def __call__(self, url: str) -> None:
        self.urls.append(url)
        if self.query is None:
            return
        params = {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}
        self.send(self.port, "/?" + self.query(params))


def _session(settings, transport, browser, **kwargs) -> RedditOAuth:
    return RedditOAuth(
        settings,
        token_client=TokenClient(settings, transport=transport),
        browser=browser,
        headless=False,
        **kwargs,
    )


def test_build_authorize_url_encodes_every_parameter() -> None:
    url = build_authorize_url(
        scopes=[RedditApiScope.IDENTITY, RedditApiScope.READ],
        duration=Duration.TEMPORARY,
        client_id="my id",
        redirect_uri="http://localhost:8080",
        state_token="abc123",
    )

    assert url == (
        "https://www.reddit.com/api/v1/authorize?"
        "response_type=code&duration=temporary&scope=identity%20read&state=abc123"
        "&client_id=my%20id&redirect_uri=http%3A%2F%2Flocalhost%3A8080"
    )


def test_build_authorize_url_accepts_joined_scope_string() -> None:
    url = build_authorize_url("identity submit", "permanent", "id", "http://localhost:1", "s")
    params = parse_qs(urlsplit(url).query)

    assert params["scope"] == ["identity submit"]
    assert params["duration"] == ["permanent"]


def test_validate_state_is_exact() -> None:
    validate_state("abc123", "abc123")

    for received in ("ABC123", "abc123 ", " abc123", "abc12", ""):
        with pytest.raises(StateMismatchError):
            validate_state("abc123", received)


def test_new_session_is_idle_with_fresh_state(settings) -> None:
    first = RedditOAuth(settings)
    second = RedditOAuth(settings)

    assert first.oauth_state is OAuthState.IDLE
    assert first.error_string is None
    assert len(first.state_string) == 10
    assert first.state_string != second.state_string


@pytest.mark.parametrize("overrides", [{"redirect_uri": ""}, {"redirect_uri": "localhost:8080"}])
def test_session_fails_fast_on_bad_config(settings, overrides) -> None:
    with pytest.raises(ConfigError):
        RedditOAuth(dataclasses.replace(settings, **overrides))


def test_session_rejects_empty_state_string(settings) -> None:
    with pytest.raises(ConfigError):
        RedditOAuth(settings, state_string="")


@pytest.mark.asyncio
async def test_authorize_end_to_end(settings, free_port, browser_redirect, make_transport) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    browser = FakeBrowser(free_port, browser_redirect, lambda p: "state=abc123&code=XYZ9")
    session = _session(settings, transport, browser, state_string="abc123")

    token = await session.authorize([RedditApiScope.IDENTITY], Duration.PERMANENT)

    assert token == BearerToken.from_response(TOKEN_JSON)
    assert session.oauth_state is OAuthState.AUTHORIZED
    assert session.bearer_token == token
    assert len(browser.urls) == 1
    assert "state=abc123" in browser.urls[0]
    assert len(transport.requests) == 1
    form = parse_qs(transport.requests[0].content.decode())
    assert form["code"] == ["XYZ9"]
    assert form["grant_type"] == ["authorization_code"]


@pytest.mark.asyncio
async def test_state_mismatch_never_reaches_exchange(
    settings, free_port, browser_redirect, make_transport
) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    browser = FakeBrowser(free_port, browser_redirect, lambda p: "state=S2&code=ABC")
    session = _session(settings, transport, browser, state_string="S1")

    with pytest.raises(StateMismatchError):
        await session.authorize("identity")

    assert transport.requests == []
    assert session.oauth_state is OAuthState.ERROR
    assert "State string" in session.error_string


@pytest.mark.asyncio
async def test_provider_error_redirect(settings, free_port, browser_redirect, make_transport) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    browser = FakeBrowser(
        free_port, browser_redirect, lambda p: f"state={p['state']}&error=access_denied"
    )
    session = _session(settings, transport, browser)

    with pytest.raises(CallbackProtocolError) as exc_info:
        await session.authorize("identity")

    assert exc_info.value.error_code == "access_denied"
    assert transport.requests == []
    assert session.oauth_state is OAuthState.ERROR


@pytest.mark.asyncio
async def test_authorize_times_out(settings, free_port, make_transport) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    session = _session(
        dataclasses.replace(settings, auth_time=1), transport, FakeBrowser(free_port, None)
    )

    started = time.monotonic()
    with pytest.raises(AuthorizationTimeoutError) as exc_info:
        await session.authorize("identity")
    elapsed = time.monotonic() - started

    assert isinstance(exc_info.value, TimeoutError)
    assert str(exc_info.value) == "Reached timeout; user did not authorize in time."
    assert elapsed < 5
    assert session.oauth_state is OAuthState.ERROR
    assert transport.requests == []


@pytest.mark.asyncio
async def test_browser_failure_aborts_and_releases_port(settings, free_port, make_transport) -> None:
    def broken_browser(url: str) -> None:
        raise BrowserLaunchError("Could not open browser. Is a default browser set?")

    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    session = _session(settings, transport, broken_browser)

    with pytest.raises(BrowserLaunchError):
        await session.authorize("identity")

    assert session.oauth_state is OAuthState.ERROR
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(("127.0.0.1", free_port))


@pytest.mark.asyncio
async def test_headless_mode_prints_url_instead_of_opening_browser(
    settings, free_port, browser_redirect, make_transport
) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    browser = FakeBrowser(free_port, browser_redirect)
    session = RedditOAuth(
        settings,
        state_string="abc123",
        token_client=TokenClient(settings, transport=transport),
        browser=browser,
        headless=True,
    )
    # The user opens the URL on another machine and the redirect arrives later
    timer = threading.Timer(0.3, browser_redirect, args=(free_port, "/?state=abc123&code=XYZ9"))
    timer.start()

    try:
        token = await session.authorize("identity")
    finally:
        timer.cancel()

    assert token.access_token == "bearer-abc"
    assert browser.urls == []


@pytest.mark.asyncio
async def test_session_cannot_be_reused(settings, free_port, browser_redirect, make_transport) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    browser = FakeBrowser(free_port, browser_redirect, lambda p: f"state={p['state']}&code=C")
    session = _session(settings, transport, browser)
    await session.authorize("identity")

    with pytest.raises(ConfigError):
        await session.authorize("identity")

    assert session.oauth_state is OAuthState.AUTHORIZED


@pytest.mark.asyncio
async def test_refresh_token_not_refreshable(settings, make_transport) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    session = _session(settings, transport, FakeBrowser(0, None))

    with pytest.raises(NotRefreshableError):
        await session.refresh_token(BearerToken("a", "bearer", 3600, "identity"))

    assert transport.requests == []
    assert session.oauth_state is OAuthState.ERROR


@pytest.mark.asyncio
async def test_refresh_token_updates_session_token(settings, make_transport) -> None:
    response_json = {k: v for k, v in TOKEN_JSON.items() if k != "refresh_token"}
    transport = make_transport(lambda request: httpx.Response(200, json=response_json))
    session = _session(settings, transport, FakeBrowser(0, None))
    old = BearerToken("old", "bearer", 3600, "identity", refresh_token="refresh-old")

    new = await session.refresh_token(old)

    assert new.access_token == "bearer-abc"
    assert new.refresh_token == "refresh-old"
    assert session.bearer_token == new


@pytest.mark.asyncio
async def test_revoke_token(settings, make_transport) -> None:
    transport = make_transport(lambda request: httpx.Response(401, text='{"error": 401}'))
    session = _session(settings, transport, FakeBrowser(0, None))

    with pytest.raises(RevokeCredentialError):
        await session.revoke_token(BearerToken("a", "bearer", 3600, "identity"))

    assert session.error_string is not None


@pytest.mark.asyncio
async def test_revoke_without_token_is_a_config_error(settings) -> None:
    session = RedditOAuth(settings)

    with pytest.raises(ConfigError):
        await session.revoke_token()


@pytest.mark.asyncio
async def test_failures_are_written_to_failure_log(
    settings, free_port, browser_redirect, make_transport, caplog: pytest.LogCaptureFixture
) -> None:
    transport = make_transport(lambda request: httpx.Response(200, json=TOKEN_JSON))
    browser = FakeBrowser(free_port, browser_redirect, lambda p: "state=wrong&code=ABC")
    session = _session(settings, transport, browser, state_string="right-state")

    with caplog.at_level(logging.ERROR, logger="reddit_oauth.failures"):
        with pytest.raises(StateMismatchError):
            await session.authorize("identity")

    records = [r for r in caplog.records if r.name == "reddit_oauth.failures"]
    assert len(records) == 1
    assert records[0].msg["stage"] == "authorize"
    assert records[0].msg["error_type"] == "StateMismatchError"
    assert records[0].msg["state_ending"] == "...tate"
