"""
Per-request credential contexts for taste sources.

A session object is created by the caller (the API builds one from request
headers) and passed into the taste client explicitly; nothing is stored at
module level.
"""
from __future__ import annotations

import base64
import logging
import time
from typing import Callable, Dict, Optional

import requests

from tunedin.retry_helper import RetryableError
from tunedin.taste.errors import NotConnectedError, ProviderAPIError, TasteSourceError
from tunedin.taste.http import DEFAULT_TIMEOUT, request_json

logger = logging.getLogger(__name__)

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"


class SpotifySession:
    """
    Spotify user credential with optional refresh.

    Args:
        access_token: Bearer token for the Web API (None = not connected)
        refresh_token: Used to mint a new access token once expired or rejected
        expires_at: Epoch seconds after which access_token is stale (None = unknown)
        client_id / client_secret: App credentials required for refresh
        http: requests.Session to use (one is created if omitted)
        clock: Time source, epoch seconds
    """

    def __init__(
        self,
        access_token: Optional[str] = None,
        *,
        refresh_token: Optional[str] = None,
        expires_at: Optional[float] = None,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        http: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        clock: Callable[[], float] = time.time,
    ):
        self.access_token = (access_token or "").strip() or None
        self.refresh_token = (refresh_token or "").strip() or None
        self.expires_at = expires_at
        self.client_id = client_id or None
        self.client_secret = client_secret or None
        self.http = http or requests.Session()
        self.timeout = timeout
        self._clock = clock
        # set once a refresh succeeds so callers can hand the new token back to the client
        self.refreshed = False
        self._retried_after_rejection = False

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self._clock() > self.expires_at

    def _refresh(self) -> bool:
        if not self.refresh_token:
            logger.info("Spotify token expired and no refresh token is available")
            return False
        if not self.client_id or not self.client_secret:
            logger.warning("Spotify token expired but client credentials are not configured")
            return False

        basic = base64.b64encode(f"{self.client_id}:{self.client_secret}".encode("utf-8")).decode("ascii")
        try:
            payload = request_json(
                self.http,
                "POST",
                SPOTIFY_TOKEN_URL,
                provider="Spotify",
                endpoint="token refresh",
                headers={
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Authorization": f"Basic {basic}",
                },
                data={"grant_type": "refresh_token", "refresh_token": self.refresh_token},
                timeout=self.timeout,
            )
        except (TasteSourceError, RetryableError) as e:
            logger.warning("Spotify token refresh failed: %s", e)
            return False

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            logger.warning("Spotify token refresh returned no access_token")
            return False

        self.access_token = token
        self.expires_at = self._clock() + float(payload.get("expires_in", 3600))
        if payload.get("refresh_token"):
            self.refresh_token = payload["refresh_token"]
        self.refreshed = True
        logger.debug("Spotify access token refreshed; expires in %ss", payload.get("expires_in", 3600))
        return True

    def get_access_token(self) -> str:
        """
        Return a valid access token, refreshing it when expired.

        Raises:
            NotConnectedError: No token, or the token expired and refresh failed
        """
        if not self.access_token:
            raise NotConnectedError("Spotify not connected.")
        if self.is_expired and not self._refresh():
            raise NotConnectedError("Spotify not connected.")
        return self.access_token

    def refresh_after_rejection(self) -> bool:
        """
        Refresh once after Spotify answered 401 for the current token.

        Clients without an expiry only find out the token is stale when a call
        is rejected. Returns True if the caller should retry with the new token;
        a second rejection in the same session is final.
        """
        if self._retried_after_rejection or not self.refresh_token:
            return False
        self._retried_after_rejection = True
        logger.info("Spotify rejected the access token; attempting refresh")
        return self._refresh()

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.get_access_token()}"}


class AppleMusicSession:
    """
    Apple Music credentials: the app's developer token plus the user's music token.

    Raises NotConnectedError from headers() when the user token is missing; a
    missing developer token is a server configuration problem.
    """

    def __init__(self, developer_token: Optional[str], user_token: Optional[str] = None):
        self.developer_token = (developer_token or "").strip() or None
        self.user_token = (user_token or "").strip() or None

    def headers(self) -> Dict[str, str]:
        if not self.user_token:
            raise NotConnectedError("Apple Music not connected.")
        if not self.developer_token:
            raise ProviderAPIError("Apple Music", "developer token", 500, "developer token is not configured")
        return {
            "Authorization": f"Bearer {self.developer_token}",
            "Music-User-Token": self.user_token,
        }
