# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/models.py

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Tuple, Union

from .errors import TokenExchangeError
from .scopes import Duration


class OAuthState(Enum):
    IDLE = "idle"
    AUTHORIZED = "authorized"
    ERROR = "error"


@dataclass(frozen=True)
class AuthorizationAttempt:
    """One pass through the consent page. Never reused."""

    state_token: str
    redirect_uri: str
    scopes: Tuple[str, ...]
    duration: Duration


@dataclass
class BearerToken:
    access_token: str
    token_type: str
    expires_in: int
    scope: str
    # Empty for tokens issued with a temporary duration
    refresh_token: str = ""

    @property
    def is_refreshable(self) -> bool:
        return bool(self.refresh_token)

    def authorization_header(self) -> Dict[str, str]:
        """Header for ordinary authenticated API calls."""
        return {"Authorization": f"bearer {self.access_token}"}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_response(cls, payload: Any) -> "BearerToken":
        """
        Build a token from a decoded token endpoint response.

        Raises TokenExchangeError when the payload is not a token, including
        the provider's ``{"error": ...}`` bodies that come back with HTTP 200.
        """
        if not isinstance(payload, dict):
            raise TokenExchangeError(
                f"Token response is not a JSON object: {type(payload).__name__}"
            )
        if "error" in payload:
            raise TokenExchangeError(f"Token endpoint returned error: {payload['error']}")

        missing = [
            key
            for key in ("access_token", "token_type", "expires_in", "scope")
            if key not in payload
        ]
        if missing:
            raise TokenExchangeError(
                f"Token response is missing fields: {', '.join(missing)}"
            )

        access_token = payload["access_token"]
        if not isinstance(access_token, str) or not access_token:
            raise TokenExchangeError("Token response has an empty access_token")

        try:
            expires_in = int(payload["expires_in"])
        except (TypeError, ValueError):
            raise TokenExchangeError(
                f"Token response has a non-numeric expires_in: {payload['expires_in']!r}"
            )

        return cls(
            access_token=access_token,
            token_type=str(payload["token_type"]),
            expires_in=expires_in,
            scope=str(payload["scope"]),
            refresh_token=payload.get("refresh_token") or "",
        )


@dataclass(frozen=True)
class CallbackSuccess:
    code: str
    state: str


@dataclass(frozen=True)
class CallbackProtocolFailure:
    message: str
    error_code: str = ""


@dataclass(frozen=True)
class CallbackTimeout:
    message: str


CallbackResult = Union[CallbackSuccess, CallbackProtocolFailure, CallbackTimeout]
