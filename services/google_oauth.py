"""
google_oauth.py

Helper for obtaining a Google refresh token for the `refresh_token` Drive
auth mode. `/auth-google` redirects the operator to the consent screen and
`/auth-google/callback` exchanges the returned code for tokens, which are
shown once so the refresh token can be copied into the environment.
"""

from __future__ import annotations

from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from domain.errors import OAuthExchangeError
from logger import get_logger
from services.drive_client import DRIVE_SCOPES, GOOGLE_TOKEN_URI

log = get_logger("Google OAuth")

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"


class GoogleOAuthHelper:
    def __init__(self, client_id: str, client_secret: str, redirect_uri: str, timeout_sec: float = 30.0,
                 transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.timeout_sec = timeout_sec
        self._transport = transport

    def authorization_url(self) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "access_type": "offline",
            "prompt": "consent",
            "scope": " ".join(DRIVE_SCOPES),
        }
        return f"{GOOGLE_AUTH_URI}?{urlencode(params)}"

    async def exchange_code(self, code: str) -> Dict[str, Any]:
        data = {
            "code": code,
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "redirect_uri": self.redirect_uri,
            "grant_type": "authorization_code",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout_sec, transport=self._transport) as client:
                rsp = await client.post(GOOGLE_TOKEN_URI, data=data)
        except httpx.HTTPError as e:
            raise OAuthExchangeError(f"Google token exchange failed: {e}") from e

        if not rsp.is_success:
            log.error("Token exchange rejected | status=%d | body=%r", rsp.status_code, rsp.text[:500])
            raise OAuthExchangeError(f"Google token exchange failed: {rsp.text}")
        try:
            tokens = rsp.json()
        except ValueError as e:
            raise OAuthExchangeError(f"Google token exchange failed: unexpected response {rsp.text[:500]}") from e
        if not isinstance(tokens, dict):
            raise OAuthExchangeError(f"Google token exchange failed: unexpected response {rsp.text[:500]}")
        return tokens
