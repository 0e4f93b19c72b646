import logging
import time
from dataclasses import dataclass
from typing import Any

import httpx

from ..config import BenchConfig
from ..config.settings import (
    DEFAULT_POLL_INTERVAL_SECONDS,
    GITHUB_API_VERSION,
    GITHUB_API_VERSION_HEADER,
    USER_AGENT,
)
from ..errors import AuthNetworkError, DeviceFlowDenied

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT = "urn:ietf:params:oauth:grant-type:device_code"


@dataclass(frozen=True)
class DeviceFlowSession:
    """One device authorization attempt (RFC 8628 §3.2 response)."""

    device_code: str
    user_code: str
    verification_uri: str
    interval: float
    expires_at: float
    verification_uri_complete: str | None = None

    @classmethod
    def from_response(cls, data: dict[str, Any], now: float) -> "DeviceFlowSession":
        try:
            device_code = data["device_code"]
            user_code = data["user_code"]
            verification_uri = data.get("verification_uri") or data["verification_url"]
            expires_in = float(data["expires_in"])
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthNetworkError(f"Malformed device code response: missing {exc}") from exc
        interval = data.get("interval")
        return cls(
            device_code=str(device_code),
            user_code=str(user_code),
            verification_uri=str(verification_uri),
            interval=float(interval) if interval else DEFAULT_POLL_INTERVAL_SECONDS,
            expires_at=now + expires_in,
            verification_uri_complete=data.get("verification_uri_complete"),
        )


class DeviceFlowClient:
    """HTTP calls against the identity provider.

    Token endpoint replies are returned as parsed JSON, including OAuth error
    replies such as ``{"error": "authorization_pending"}``; interpreting them is
    the caller's job. Only transport failures and unreadable replies raise.
    """

    def __init__(self, config: BenchConfig) -> None:
        self._config = config

    @property
    def device_code_url(self) -> str:
        return f"{self._config.auth_base_url.rstrip('/')}/device/code"

    @property
    def token_url(self) -> str:
        return f"{self._config.auth_base_url.rstrip('/')}/oauth/access_token"

    def _post_form(self, url: str, form: dict[str, str]) -> dict[str, Any]:
        headers = {"Accept": "application/json", "User-Agent": USER_AGENT}
        started_at = time.monotonic()
        try:
            with httpx.Client(timeout=self._config.http_timeout) as client:
                resp = client.post(url, data=form, headers=headers)
        except httpx.TimeoutException as exc:
            raise AuthNetworkError(
                f"Identity provider timed out after {self._config.http_timeout:.0f}s"
            ) from exc
        except httpx.RequestError as exc:
            raise AuthNetworkError(f"Network error: {exc}") from exc
        latency_ms = int((time.monotonic() - started_at) * 1000)
        logger.debug("POST %s (status=%d, latency=%dms)", url, resp.status_code, latency_ms)

        if resp.status_code >= 500:
            raise AuthNetworkError(f"Identity provider error (status={resp.status_code})")
        try:
            data = resp.json()
        except ValueError as exc:
            raise AuthNetworkError(
                f"Identity provider returned non-JSON response (status={resp.status_code})"
            ) from exc
        if not isinstance(data, dict):
            raise AuthNetworkError("Identity provider returned an unexpected response")
        # RFC 8628 error replies arrive as 400; GitHub sends them as 200.
        if not resp.is_success and "error" not in data:
            raise AuthNetworkError(f"Identity provider rejected the request (status={resp.status_code})")
        return data

    def request_session(self, *, now: float, scope: str = "") -> DeviceFlowSession:
        form = {"client_id": self._config.client_id}
        if scope:
            form["scope"] = scope
        data = self._post_form(self.device_code_url, form)
        if "error" in data:
            raise DeviceFlowDenied(
                f"Device code request refused: {data.get('error_description') or data['error']}"
            )
        return DeviceFlowSession.from_response(data, now)

    def poll_token(self, session: DeviceFlowSession) -> dict[str, Any]:
        return self._post_form(
            self.token_url,
            {
                "client_id": self._config.client_id,
                "device_code": session.device_code,
                "grant_type": DEVICE_CODE_GRANT,
            },
        )

    def refresh_token(self, refresh_token: str) -> dict[str, Any]:
        return self._post_form(
            self.token_url,
            {
                "client_id": self._config.client_id,
                "refresh_token": refresh_token,
                "grant_type": "refresh_token",
            },
        )

    def fetch_login(self, access_token: str) -> str:
        """Return the provider login that owns the token.

        Raises:
            AuthNetworkError: On transport failure or a response without a login.
        """
        # User-Agent is required, GitHub rejects requests without one with a 403
        headers = {
            "User-Agent": USER_AGENT,
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {access_token}",
            GITHUB_API_VERSION_HEADER: GITHUB_API_VERSION,
        }
        url = f"{self._config.api_base_url.rstrip('/')}/user"
        try:
            with httpx.Client(timeout=self._config.http_timeout) as client:
                resp = client.get(url, headers=headers)
            data = resp.json()
        except httpx.RequestError as exc:
            raise AuthNetworkError(f"Network error: {exc}") from exc
        except ValueError as exc:
            raise AuthNetworkError("User endpoint returned non-JSON response") from exc
        login = data.get("login") if isinstance(data, dict) else None
        if not resp.is_success or not isinstance(login, str) or not login:
            raise AuthNetworkError(f"Username not found in the response (status={resp.status_code})")
        return login
