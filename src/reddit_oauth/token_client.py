# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/reddit_oauth/token_client.py

import logging
from typing import Any, Dict, Optional

import httpx

from .config import OAuthSettings
from .errors import NotRefreshableError, RevokeCredentialError, TokenExchangeError
from .models import BearerToken

lib_logger = logging.getLogger("reddit_oauth")

INVALID_CLIENT_CREDENTIALS_MESSAGE = (
    "Client credentials sent as HTTP Basic Authorization were invalid"
)


class TokenClient:
    """
    Talks to the provider's token endpoints: code exchange, refresh, revoke.

    Every request authenticates the application with HTTP Basic auth built
    from the client id and secret. Nothing is retried; a failed call fails
    the operation.
    """

    def __init__(
        self,
        settings: OAuthSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        # Injected in tests to stub out the network
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Basic {self.settings.credentials.basic_auth_value()}",
            "User-Agent": self.settings.user_agent,
            "Content-Type": "application/x-www-form-urlencoded",
            "Accept": "application/json",
        }

    async def _post(self, url: str, data: Dict[str, str]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self.settings.http_timeout, transport=self._transport
        ) as client:
            return await client.post(url, headers=self._headers(), data=data)

    async def _request_token(self, data: Dict[str, str]) -> BearerToken:
        grant_type = data["grant_type"]
        try:
            response = await self._post(self.settings.access_token_url, data)
        except httpx.HTTPError as e:
            lib_logger.error(f"Token request ({grant_type}) failed: {e}")
            raise TokenExchangeError(f"Token request failed: {e}")

        if response.status_code != 200:
            error_text = response.text
            lib_logger.error(
                f"Token request ({grant_type}) failed: {response.status_code} {error_text}"
            )
            raise TokenExchangeError(
                f"Token request failed: {response.status_code} {error_text}",
                status_code=response.status_code,
                response_body=error_text,
            )

        try:
            payload: Any = response.json()
        except ValueError as e:
            raise TokenExchangeError(
                f"Token response is not valid JSON: {e}",
                status_code=response.status_code,
                response_body=response.text,
            )

        try:
            return BearerToken.from_response(payload)
        except TokenExchangeError as e:
            e.status_code = response.status_code
            e.response_body = response.text
            raise

    async def exchange_code(self, code: str) -> BearerToken:
        """Exchanges an authorization code for a bearer token."""
        lib_logger.debug("Exchanging authorization code for bearer token")
        token = await self._request_token(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.settings.redirect_uri,
            }
        )
        lib_logger.info(f"Received bearer token (scope: {token.scope})")
        return token

    async def refresh(self, old: BearerToken) -> BearerToken:
        """
        Refresh ``old`` using its refresh_token.

        The provider does not send the refresh_token again, so the previous
        value is carried over to the new token whenever the response omits it.
        """
        if not old.refresh_token:
            raise NotRefreshableError("Token not refreshable: `refresh_token` is empty")

        lib_logger.debug("Refreshing bearer token")
        new_token = await self._request_token(
            {
                "grant_type": "refresh_token",
                "refresh_token": old.refresh_token,
            }
        )
        if not new_token.refresh_token:
            new_token.refresh_token = old.refresh_token

        lib_logger.info("Successfully refreshed bearer token")
        return new_token

    async def revoke(self, token: BearerToken) -> None:
        """
        Revoke ``token``'s access token.

        The provider answers an accepted revocation with an empty body; the
        only documented reason for a non-empty body is invalid client
        credentials.
        """
        try:
            response = await self._post(
                self.settings.revoke_token_url,
                {
                    "token": token.access_token,
                    "token_type_hint": "access_token",
                },
            )
        except httpx.HTTPError as e:
            lib_logger.error(f"Token revocation request failed: {e}")
            raise RevokeCredentialError(f"Token revocation request failed: {e}")

        if response.text != "":
            lib_logger.error(
                f"Token revocation rejected: {response.status_code} {response.text}"
            )
            raise RevokeCredentialError(INVALID_CLIENT_CREDENTIALS_MESSAGE)

        lib_logger.info("Bearer token revoked")
