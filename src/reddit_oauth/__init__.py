# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

from .callback_server import CallbackRace, parse_callback_query, wait_for_callback
from .config import ClientCredentials, OAuthSettings, __version__
from .errors import (
    AuthorizationTimeoutError,
    BrowserLaunchError,
    CallbackProtocolError,
    ConfigError,
    NotRefreshableError,
    OAuthError,
    RevokeCredentialError,
    StateMismatchError,
    TokenExchangeError,
)
from .models import (
    AuthorizationAttempt,
    BearerToken,
    CallbackProtocolFailure,
    CallbackSuccess,
    CallbackTimeout,
    OAuthState,
)
from .oauth import RedditOAuth, build_authorize_url, validate_state
from .scopes import Duration, RedditApiScope, join_scopes
from .token_client import TokenClient
from .utils.state_token import generate_state_string

__all__ = [
    "RedditOAuth",
    "TokenClient",
    "OAuthSettings",
    "ClientCredentials",
    "BearerToken",
    "AuthorizationAttempt",
    "OAuthState",
    "Duration",
    "RedditApiScope",
    "join_scopes",
    "build_authorize_url",
    "validate_state",
    "generate_state_string",
    "CallbackRace",
    "parse_callback_query",
    "wait_for_callback",
    "CallbackSuccess",
    "CallbackProtocolFailure",
    "CallbackTimeout",
    # Errors
    "OAuthError",
    "ConfigError",
    "BrowserLaunchError",
    "CallbackProtocolError",
    "AuthorizationTimeoutError",
    "StateMismatchError",
    "TokenExchangeError",
    "NotRefreshableError",
    "RevokeCredentialError",
    "__version__",
]
