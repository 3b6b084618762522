"""Minimal client for the Pocket v3 API: OAuth login and adding items."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import requests

from .errors import (
    AuthError,
    FeedsToPocketError,
    MissingAccessToken,
    MissingConsumerKey,
    ProtocolError,
    TransportError,
)
from .models import Configuration

logger = logging.getLogger(__name__)

OAUTH_REQUEST_URL = "https://getpocket.com/v3/oauth/request"
OAUTH_AUTHORIZE_URL = "https://getpocket.com/v3/oauth/authorize"
ADD_URL = "https://getpocket.com/v3/add"
AUTHORIZE_PAGE_URL = "https://getpocket.com/auth/authorize"

# The final period is encoded as %2E because some terminals leave a trailing
# period out of the URL when it is ctrl+clicked.
REDIRECT_URI = (
    "data:text/plain,Return%20to%20feeds-to-pocket%20and%20press%20Enter%20to%20finish%2E"
)

X_ERROR = "X-Error"
X_ERROR_CODE = "X-Error-Code"
REQUEST_TIMEOUT = 30.0


class PocketClient:
    """A Pocket session for one consumer key and, once logged in, one user."""

    def __init__(
        self,
        consumer_key: str,
        access_token: Optional[str] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.consumer_key = consumer_key
        self.access_token = access_token
        self.code: Optional[str] = None
        self.session = session or requests.Session()

    @classmethod
    def from_config(
        cls,
        config: Configuration,
        require_access_token: bool = True,
        session: Optional[requests.Session] = None,
    ) -> "PocketClient":
        """Build a client from the stored credentials, failing before any request."""
        if not config.consumer_key:
            raise MissingConsumerKey()
        if require_access_token and not config.access_token:
            raise MissingAccessToken()
        return cls(config.consumer_key, config.access_token, session=session)

    def _request(self, url: str, payload: Dict[str, Any]) -> requests.Response:
        try:
            response = self.session.post(
                url,
                json=payload,
                headers={"X-Accept": "application/json"},
                timeout=REQUEST_TIMEOUT,
            )
        except requests.RequestException as exc:
            raise TransportError(f"request to {url} failed") from exc

        # Pocket reports errors through headers; they take precedence over the status.
        code = response.headers.get(X_ERROR_CODE)
        if code is not None:
            raise ProtocolError(
                code,
                response.headers.get(X_ERROR, "unknown protocol error"),
                response.text or None,
            )

        if not 200 <= response.status_code < 300:
            status = f"{response.status_code} {response.reason or ''}".strip()
            raise TransportError(f"{status} for url {url}", response.text or None)

        return response

    def _request_json(self, url: str, payload: Dict[str, Any], *fields: str) -> Dict[str, Any]:
        response = self._request(url, payload)
        try:
            data = response.json()
        except ValueError as exc:
            raise ProtocolError("response", "Pocket returned a body that is not JSON", response.text) from exc

        missing = [name for name in fields if not isinstance(data, dict) or name not in data]
        if missing:
            raise ProtocolError(
                "response",
                f"Pocket response is missing {', '.join(missing)}",
                response.text,
            )
        return data

    def get_auth_url(self) -> str:
        """Request an authorization code and return the page where the user grants access."""
        try:
            data = self._request_json(
                OAUTH_REQUEST_URL,
                {"consumer_key": self.consumer_key, "redirect_uri": REDIRECT_URI},
                "code",
            )
        except FeedsToPocketError as exc:
            raise AuthError("Pocket did not issue an authorization code") from exc

        self.code = data["code"]
        query = urlencode({"request_token": self.code, "redirect_uri": REDIRECT_URI})
        return f"{AUTHORIZE_PAGE_URL}?{query}"

    def authorize(self) -> str:
        """Exchange the pending authorization code for an access token.

        Returns the Pocket username. Raises AuthError until the user has
        granted access on the page returned by get_auth_url().
        """
        if self.code is None:
            raise AuthError("no authorization code has been requested yet")

        try:
            data = self._request_json(
                OAUTH_AUTHORIZE_URL,
                {"consumer_key": self.consumer_key, "code": self.code},
                "access_token",
            )
        except FeedsToPocketError as exc:
            raise AuthError("Pocket did not grant an access token") from exc

        self.access_token = data["access_token"]
        username = data.get("username", "")
        logger.info("Authorized Pocket access for %s", username or "unknown user")
        return username

    def add(self, url: str, tags: Optional[str] = None) -> None:
        """Save ``url`` to the user's list."""
        if not self.access_token:
            raise MissingAccessToken()

        payload = {
            "consumer_key": self.consumer_key,
            "access_token": self.access_token,
            "url": url,
        }
        if tags:
            payload["tags"] = tags

        self._request(ADD_URL, payload)
        logger.debug("Pocket accepted %s", url)
