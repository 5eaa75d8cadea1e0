# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/errors.py

from typing import Optional


class OAuthError(Exception):
    """Base class for every failure of an authorization attempt or token operation."""


class ConfigError(OAuthError):
    """Missing or malformed configuration, raised before any network or browser activity."""


class BrowserLaunchError(OAuthError):
    pass


class CallbackProtocolError(OAuthError):
    """
    The redirect could not be received, or the provider redirected back with an
    error (e.g. the user pressed "decline" on the consent page).
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.error_code = error_code


class AuthorizationTimeoutError(OAuthError, TimeoutError):
    """The user did not complete the consent page within ``auth_time`` seconds."""


class StateMismatchError(OAuthError):
    """The callback's ``state`` does not match the one generated for this attempt."""


class TokenExchangeError(OAuthError):
    """
    The token endpoint could not be reached, answered with an error, or returned
    a body that is not a bearer token.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_body = response_body


class NotRefreshableError(OAuthError):
    """The token carries no refresh_token (it was issued for a temporary duration)."""


class RevokeCredentialError(OAuthError):
    pass


def is_user_facing_error(e: Exception) -> bool:
    """Checks if the exception is one the user can fix by retrying the consent flow."""
    return isinstance(
        e, (AuthorizationTimeoutError, CallbackProtocolError, StateMismatchError)
    )
