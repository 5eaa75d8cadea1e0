# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/config.py

import base64
import logging
import os
from dataclasses import dataclass, field
from typing import Optional, Tuple
from urllib.parse import urlsplit

from dotenv import load_dotenv

from .errors import ConfigError

lib_logger = logging.getLogger("reddit_oauth")

__version__ = "0.2.0"

DEFAULT_BASE_URL = "https://www.reddit.com"
DEFAULT_AUTH_TIME_SECONDS = 120
DEFAULT_HTTP_TIMEOUT_SECONDS = 30.0
DEFAULT_USER_AGENT = f"reddit_oauth/{__version__}"

AUTHORIZE_PATH = "/api/v1/authorize"
ACCESS_TOKEN_PATH = "/api/v1/access_token"
REVOKE_TOKEN_PATH = "/api/v1/revoke_token"

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _get_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        lib_logger.warning(f"Invalid {name} value: {raw}, using {default}")
        return default


@dataclass(frozen=True)
class ClientCredentials:
    """Credentials of the registered Reddit application."""

    client_id: str
    client_secret: str = field(repr=False)

    def basic_auth_value(self) -> str:
        """base64 of ``client_id:client_secret`` for the Basic Authorization header."""
        raw = f"{self.client_id}:{self.client_secret}".encode("utf-8")
        return base64.b64encode(raw).decode("ascii")

    @classmethod
    def from_env(cls) -> "ClientCredentials":
        load_dotenv()
        return cls(
            client_id=(os.getenv("CLIENT_ID") or "").strip(),
            client_secret=(os.getenv("CLIENT_SECRET") or "").strip(),
        )


@dataclass(frozen=True)
class OAuthSettings:
    credentials: ClientCredentials
    redirect_uri: str
    auth_time: int = DEFAULT_AUTH_TIME_SECONDS
    user_agent: str = DEFAULT_USER_AGENT
    base_url: str = DEFAULT_BASE_URL
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    @property
    def authorize_url(self) -> str:
        return self.base_url.rstrip("/") + AUTHORIZE_PATH

    @property
    def access_token_url(self) -> str:
        return self.base_url.rstrip("/") + ACCESS_TOKEN_PATH

    @property
    def revoke_token_url(self) -> str:
        return self.base_url.rstrip("/") + REVOKE_TOKEN_PATH

    def validate(self) -> None:
        """Raises ConfigError listing everything that is missing."""
        invalid_reasons: list[str] = []
        if not self.credentials.client_id:
            invalid_reasons.append("CLIENT_ID is missing")
        if not self.redirect_uri:
            invalid_reasons.append("REDIRECT_URI is missing")
        if self.auth_time < 1:
            invalid_reasons.append("auth_time must be at least 1 second")

        if invalid_reasons:
            raise ConfigError(
                "Invalid OAuth configuration: " + "; ".join(invalid_reasons) + "."
            )

    @classmethod
    def from_env(
        cls, credentials: Optional[ClientCredentials] = None
    ) -> "OAuthSettings":
        """
        Build settings from the environment (and a .env file, if present).

        Environment variables:
        - CLIENT_ID / CLIENT_SECRET (unless ``credentials`` is given)
        - REDIRECT_URI (required), e.g. http://localhost:8080
        - REDDIT_OAUTH_AUTH_TIME (optional, seconds to wait for the user)
        - REDDIT_OAUTH_USER_AGENT (optional)
        """
        load_dotenv()
        return cls(
            credentials=credentials or ClientCredentials.from_env(),
            redirect_uri=(os.getenv("REDIRECT_URI") or "").strip(),
            auth_time=_get_int_env("REDDIT_OAUTH_AUTH_TIME", DEFAULT_AUTH_TIME_SECONDS),
            user_agent=(os.getenv("REDDIT_OAUTH_USER_AGENT") or "").strip()
            or DEFAULT_USER_AGENT,
        )


def listener_address(redirect_uri: str) -> Tuple[str, int, str]:
    """
    Derive the local bind address from a redirect URI.

    The scheme prefix is stripped; the listener works at the socket level and
    only needs host and port. Returns ``(host, port, path)`` where ``path`` is
    the request path the provider will redirect to ("/" when empty).
    """
    if not redirect_uri:
        raise ConfigError("Redirect URI is empty")

    parts = urlsplit(redirect_uri)
    if parts.scheme not in _DEFAULT_PORTS or not parts.netloc:
        raise ConfigError(
            f"Redirect URI '{redirect_uri}' must start with http:// or https:// "
            f"and include a host"
        )

    try:
        port = parts.port
    except ValueError:
        raise ConfigError(f"Redirect URI '{redirect_uri}' has an invalid port")

    host = parts.hostname
    if not host:
        raise ConfigError(f"Redirect URI '{redirect_uri}' has no host")

    return host, port or _DEFAULT_PORTS[parts.scheme], parts.path or "/"
