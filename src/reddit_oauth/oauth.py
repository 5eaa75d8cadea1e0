# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/oauth.py
"""
Reddit OAuth2 authorization-code flow for desktop and script clients.

The consent page is opened in the user's browser and the redirect is caught
by a short-lived listener on the redirect URI's host:port, so no public HTTPS
endpoint is needed.
"""

import asyncio
import hmac
import logging
from typing import Callable, Iterable, Optional, Union
from urllib.parse import quote, urlencode

from rich.console import Console
from rich.markup import escape as rich_escape
from rich.panel import Panel
from rich.text import Text

from .callback_server import CallbackRace
from .config import DEFAULT_BASE_URL, AUTHORIZE_PATH, OAuthSettings, listener_address
from .errors import (
    AuthorizationTimeoutError,
    CallbackProtocolError,
    ConfigError,
    OAuthError,
    StateMismatchError,
)
from .failure_logger import log_failure
from .models import (
    AuthorizationAttempt,
    BearerToken,
    CallbackProtocolFailure,
    CallbackResult,
    CallbackTimeout,
    OAuthState,
)
from .scopes import (
    Duration,
    ScopeLike,
    duration_to_wire,
    join_scopes,
    parse_duration,
    scope_to_wire,
)
from .token_client import TokenClient
from .utils.browser import is_headless_environment, open_browser
from .utils.state_token import generate_state_string

lib_logger = logging.getLogger("reddit_oauth")
console = Console()

Scopes = Union[str, Iterable[ScopeLike]]


def build_authorize_url(
    scopes: Scopes,
    duration: Union[Duration, str],
    client_id: str,
    redirect_uri: str,
    state_token: str,
    authorize_url: str = DEFAULT_BASE_URL + AUTHORIZE_PATH,
) -> str:
    """
    Compose the consent page URL.

    ``scopes`` may be an already space-joined string or a sequence of scopes,
    which is joined in the given order. Every value is percent-encoded.
    """
    scope_string = scopes if isinstance(scopes, str) else join_scopes(scopes)
    params = {
        "response_type": "code",
        "duration": duration_to_wire(parse_duration(duration)),
        "scope": scope_string,
        "state": state_token,
        "client_id": client_id,
        "redirect_uri": redirect_uri,
    }
    return f"{authorize_url}?{urlencode(params, quote_via=quote)}"


def validate_state(expected: str, received: str) -> None:
    """Exact comparison of the attempt's state token with the callback's."""
    if not hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8")):
        raise StateMismatchError(
            "State string of response is not the same. Cannot trust the bearer token."
        )


class RedditOAuth:
    """
    One authorization session.

    A session starts IDLE with a fresh state string and makes at most one
    authorization attempt: it ends AUTHORIZED after a successful exchange or
    ERROR on any failure. To retry, create a new session.

    Example:
        settings = OAuthSettings.from_env()
        session = RedditOAuth(settings)
        token = await session.authorize([RedditApiScope.IDENTITY], Duration.PERMANENT)
    """

    def __init__(
        self,
        settings: OAuthSettings,
        state_string: Optional[str] = None,
        token_client: Optional[TokenClient] = None,
        browser: Callable[[str], None] = open_browser,
        headless: Optional[bool] = None,
    ):
        self.settings = settings
        self.state_string = (
            generate_state_string() if state_string is None else state_string
        )
        self.oauth_state = OAuthState.IDLE
        # Last error message while in ERROR state
        self.error_string: Optional[str] = None
        self.bearer_token: Optional[BearerToken] = None

        if not settings.redirect_uri or not self.state_string:
            raise ConfigError("`redirect_uri` and `state_string` have to be set")
        settings.validate()
        self._listen_host, self._listen_port, self._listen_path = listener_address(
            settings.redirect_uri
        )

        self.token_client = token_client or TokenClient(settings)
        self._browser = browser
        self._headless = headless

    def build_authorize_url(self, attempt: AuthorizationAttempt) -> str:
        return build_authorize_url(
            scopes=attempt.scopes,
            duration=attempt.duration,
            client_id=self.settings.credentials.client_id,
            redirect_uri=attempt.redirect_uri,
            state_token=attempt.state_token,
            authorize_url=self.settings.authorize_url,
        )

    def _fail(self, stage: str, error: Exception) -> None:
        self.oauth_state = OAuthState.ERROR
        self.error_string = str(error)
        lib_logger.error(f"Reddit OAuth {stage} failed: {error}")
        log_failure(stage, error, self.state_string)

    def _present_url(self, url: str) -> None:
        headless = is_headless_environment() if self._headless is None else self._headless

        if headless:
            panel_text = Text.from_markup(
                "Running in headless environment.\n"
                "Please open the URL below in a browser to authorize:\n"
            )
        else:
            panel_text = Text.from_markup(
                "Opening browser for authorization...\n"
                "If browser doesn't open, please visit the URL below manually:\n"
            )
        console.print(Panel(panel_text, title="Reddit OAuth", style="bold blue"))
        console.print(f"[bold]URL:[/bold] [link={url}]{rich_escape(url)}[/link]\n")

        if not headless:
            self._browser(url)

    @staticmethod
    def _code_from_result(result: CallbackResult, attempt: AuthorizationAttempt) -> str:
        if isinstance(result, CallbackTimeout):
            raise AuthorizationTimeoutError(result.message)
        if isinstance(result, CallbackProtocolFailure):
            raise CallbackProtocolError(result.message, error_code=result.error_code)
        validate_state(attempt.state_token, result.state)
        return result.code

    async def _run_attempt(self, attempt: AuthorizationAttempt) -> BearerToken:
        url = self.build_authorize_url(attempt)

        # Listen before the browser opens so the redirect cannot be missed
        race = CallbackRace(
            self._listen_host,
            self._listen_port,
            self._listen_path,
            auth_time=self.settings.auth_time,
        )
        race.start()
        try:
            self._present_url(url)
            lib_logger.info(
                f"Waiting up to {self.settings.auth_time}s for the OAuth callback"
            )
            result = await asyncio.to_thread(race.wait)
        finally:
            await asyncio.to_thread(race.close)

        code = self._code_from_result(result, attempt)
        return await self.token_client.exchange_code(code)

    async def authorize(
        self,
        scopes: Scopes,
        duration: Union[Duration, str] = Duration.PERMANENT,
    ) -> BearerToken:
        """
        Run the authorization-code flow and return the bearer token.

        Blocks (asynchronously) until the user answers the consent page or
        ``settings.auth_time`` elapses.

        Raises:
            ConfigError: session already used, or invalid duration
            BrowserLaunchError: no default browser could be opened
            CallbackProtocolError: listener could not bind, or the provider redirected with an error
            AuthorizationTimeoutError: the user did not authorize in time
            StateMismatchError: the callback's state does not match this attempt
            TokenExchangeError: the code could not be exchanged
        """
        if self.oauth_state is not OAuthState.IDLE:
            raise ConfigError(
                f"Session is {self.oauth_state.value}; create a new RedditOAuth "
                f"(with a new state string) for another attempt"
            )

        try:
            attempt = AuthorizationAttempt(
                state_token=self.state_string,
                redirect_uri=self.settings.redirect_uri,
                scopes=(
                    tuple(scopes.split())
                    if isinstance(scopes, str)
                    else tuple(scope_to_wire(scope) for scope in scopes)
                ),
                duration=parse_duration(duration),
            )
            token = await self._run_attempt(attempt)
        except OAuthError as e:
            self._fail("authorize", e)
            raise

        self.oauth_state = OAuthState.AUTHORIZED
        self.error_string = None
        self.bearer_token = token
        lib_logger.info("Reddit OAuth authorization successful")
        return token

    async def refresh_token(self, token: Optional[BearerToken] = None) -> BearerToken:
        """Refresh ``token`` (default: the token obtained by this session)."""
        to_refresh = token or self.bearer_token
        if to_refresh is None:
            raise ConfigError("No bearer token to refresh")

        try:
            new_token = await self.token_client.refresh(to_refresh)
        except OAuthError as e:
            self._fail("refresh", e)
            raise

        self.bearer_token = new_token
        return new_token

    async def revoke_token(self, token: Optional[BearerToken] = None) -> None:
        """Revoke ``token`` (default: the token obtained by this session)."""
        to_revoke = token or self.bearer_token
        if to_revoke is None:
            raise ConfigError("No bearer token to revoke")

        try:
            await self.token_client.revoke(to_revoke)
        except OAuthError as e:
            self.error_string = str(e)
            log_failure("revoke", e, self.state_string)
            raise

        if to_revoke is self.bearer_token:
            self.bearer_token = None
