import logging
import threading
import time
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from ..config import BenchConfig
from ..config.settings import SLOW_DOWN_INCREMENT_SECONDS
from ..errors import (
    AuthCancelled,
    AuthFailure,
    AuthFailureReason,
    AuthNetworkError,
    DeviceFlowDenied,
    DeviceFlowExpired,
    NotAuthenticated,
)
from ..observability import log_event
from .device_flow import DeviceFlowClient, DeviceFlowSession
from .store import AuthToken, TokenStore

logger = logging.getLogger(__name__)


class FlowState(str, Enum):
    IDLE = "idle"
    REQUESTING = "requesting"
    AWAITING_USER_ACTION = "awaiting_user_action"
    POLLING = "polling"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class CancelToken:
    """Cancellable wait used between polls."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep up to ``seconds``. Returns True if cancelled meanwhile."""
        return self._event.wait(max(seconds, 0.0))


class AuthManager:
    """OAuth 2.0 device authorization flow plus token cache management.

    The token store and the provider client are passed in, so nothing here
    reads global state. ``clock`` and ``wait`` exist for deterministic tests.
    """

    def __init__(
        self,
        config: BenchConfig,
        store: TokenStore,
        *,
        client: DeviceFlowClient | None = None,
        clock: Callable[[], float] = time.time,
        cancel: CancelToken | None = None,
        wait: Callable[[float], bool] | None = None,
    ) -> None:
        self.config = config
        self.store = store
        self.client = client or DeviceFlowClient(config)
        self._clock = clock
        self.cancel_token = cancel or CancelToken()
        self._wait = wait or self.cancel_token.wait
        self._lock = threading.RLock()
        self.state = FlowState.IDLE
        self.failure_reason: AuthFailureReason | None = None
        self.state_history: list[FlowState] = [FlowState.IDLE]

    @property
    def provider_id(self) -> str:
        return self.config.provider_id

    @property
    def token_path(self) -> Path:
        return self.store.path_for(self.provider_id)

    def _transition(self, state: FlowState) -> None:
        logger.debug("Device flow: %s -> %s", self.state.value, state.value)
        self.state = state
        self.state_history.append(state)

    def _fail(self, exc: AuthFailure) -> AuthFailure:
        self.failure_reason = exc.reason
        self._transition(FlowState.FAILED)
        log_event(
            {
                "kind": "auth_error",
                "provider": self.provider_id,
                "error_type": exc.reason.value,
                "error": exc.message,
            }
        )
        return exc

    def authenticate(
        self, on_prompt: Callable[[DeviceFlowSession], None] | None = None
    ) -> AuthToken:
        """Run the device flow to completion and persist the token.

        Args:
            on_prompt: Called once with the session so the operator can open
                the verification URI and enter the user code.

        Raises:
            DeviceFlowExpired: The session expired before approval.
            DeviceFlowDenied: The user or provider refused authorization.
            AuthNetworkError: Transport failure talking to the provider.
            AuthCancelled: Interrupted by the user; nothing is persisted.
        """
        with self._lock:
            self.state = FlowState.IDLE
            self.failure_reason = None
            self.state_history = [FlowState.IDLE]
            self.cancel_token.reset()

            try:
                self._transition(FlowState.REQUESTING)
                session = self.client.request_session(now=self._clock())
                self._transition(FlowState.AWAITING_USER_ACTION)
                if on_prompt is not None:
                    on_prompt(session)
                token = self._poll(session)
            except AuthFailure as exc:
                self._fail(exc)
                raise
            except KeyboardInterrupt:
                raise self._fail(AuthCancelled("Authentication interrupted by user")) from None

            try:
                self.store.save(self.provider_id, token)
            except OSError as exc:
                raise self._fail(AuthNetworkError(f"Failed to persist token: {exc}")) from exc

            self._transition(FlowState.AUTHENTICATED)
            log_event({"kind": "auth_complete", "provider": self.provider_id})
            return token

    def _poll(self, session: DeviceFlowSession) -> AuthToken:
        interval = session.interval
        while True:
            remaining = session.expires_at - self._clock()
            if remaining <= 0:
                raise DeviceFlowExpired("The device code expired before authorization was granted")
            if self._wait(min(interval, remaining)):
                raise AuthCancelled("Authentication cancelled")
            if self._clock() >= session.expires_at:
                raise DeviceFlowExpired("The device code expired before authorization was granted")

            data = self.client.poll_token(session)
            error = data.get("error")
            if error is None:
                try:
                    return AuthToken.from_token_response(data, self._clock())
                except ValueError as exc:
                    raise AuthNetworkError(f"Malformed token response: {exc}") from exc

            if error == "authorization_pending":
                self._transition(FlowState.POLLING)
                continue
            if error == "slow_down":
                new_interval = data.get("interval")
                interval = (
                    float(new_interval)
                    if new_interval
                    else interval + SLOW_DOWN_INCREMENT_SECONDS
                )
                logger.debug("Provider asked to slow down; interval now %.0fs", interval)
                self._transition(FlowState.POLLING)
                continue
            if error == "expired_token":
                raise DeviceFlowExpired("The device code expired before authorization was granted")
            if error == "access_denied":
                raise DeviceFlowDenied("Authorization was denied by the user")

            description = data.get("error_description") or error
            raise DeviceFlowDenied(f"Authorization failed: {description}")

    def get_valid_token(self) -> AuthToken:
        """Return the cached token, refreshing it if expired and refreshable.

        No network call is made when the cached token is still valid.

        Raises:
            NotAuthenticated: No usable token; run ``authenticate()`` first.
        """
        with self._lock:
            token = self.store.load(self.provider_id)
            if token is None:
                raise NotAuthenticated("Not authenticated. Run `backend-bench auth` first.")

            now = self._clock()
            if not token.is_expired(now):
                return token

            if not token.can_refresh(now) or token.refresh_token is None:
                raise NotAuthenticated("The cached token has expired. Run `backend-bench auth`.")

            try:
                data = self.client.refresh_token(token.refresh_token)
                if "error" in data:
                    raise DeviceFlowDenied(
                        f"Refresh refused: {data.get('error_description') or data['error']}"
                    )
                refreshed = AuthToken.from_token_response(data, self._clock())
            except (AuthFailure, ValueError) as exc:
                logger.warning("Token refresh failed: %s", exc)
                raise NotAuthenticated(
                    "The cached token has expired and could not be refreshed. "
                    "Run `backend-bench auth`."
                ) from exc

            try:
                self.store.save(self.provider_id, refreshed)
            except OSError as exc:
                raise AuthNetworkError(f"Failed to persist refreshed token: {exc}") from exc
            logger.info("Refreshed access token for '%s'", self.provider_id)
            return refreshed

    def ensure_token(
        self, on_prompt: Callable[[DeviceFlowSession], None] | None = None
    ) -> AuthToken:
        """Cached/refreshed token if the provider still accepts it, otherwise a fresh device flow.

        Tokens without an expiry can be revoked server-side, so a cached token
        is checked against the user endpoint before it is reused.
        """
        with self._lock:
            try:
                token = self.get_valid_token()
            except NotAuthenticated:
                logger.info("No valid cached token; starting device flow")
            else:
                if self.is_token_valid(token):
                    return token
                logger.info("Cached token was rejected by the provider; starting device flow")
            return self.authenticate(on_prompt)

    def whoami(self, token: AuthToken) -> str | None:
        try:
            return self.client.fetch_login(token.access_token)
        except AuthFailure as exc:
            logger.warning("Could not resolve user identity: %s", exc)
            return None

    def is_token_valid(self, token: AuthToken) -> bool:
        return self.whoami(token) is not None

    def logout(self) -> bool:
        with self._lock:
            return self.store.clear(self.provider_id)
