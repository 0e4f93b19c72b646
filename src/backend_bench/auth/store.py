import json
import logging
import os
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from ..utils import atomic_write, sanitize_name

logger = logging.getLogger(__name__)

# Tokens are treated as expired slightly early so a request never races the deadline.
EXPIRY_LEEWAY_SECONDS = 60.0

# Serializes read-modify-write on the cache within this process.
_STORE_LOCK = threading.RLock()


@dataclass(frozen=True)
class AuthToken:
    access_token: str
    token_type: str = "bearer"
    expires_at: float | None = None
    refresh_token: str | None = None
    refresh_expires_at: float | None = None
    scope: str = ""

    def is_expired(self, now: float) -> bool:
        if self.expires_at is None:
            return False
        return now >= self.expires_at - EXPIRY_LEEWAY_SECONDS

    def can_refresh(self, now: float) -> bool:
        if not self.refresh_token:
            return False
        if self.refresh_expires_at is None:
            return True
        return now < self.refresh_expires_at - EXPIRY_LEEWAY_SECONDS

    @classmethod
    def from_token_response(cls, data: dict[str, Any], now: float) -> "AuthToken":
        """Build a token from an OAuth token endpoint response.

        Raises:
            ValueError: If the response carries no access token.
        """
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("token response has no access_token")

        expires_in = data.get("expires_in")
        refresh_expires_in = data.get("refresh_token_expires_in")
        refresh_token = data.get("refresh_token")
        return cls(
            access_token=access_token,
            token_type=str(data.get("token_type") or "bearer"),
            expires_at=now + float(expires_in) if expires_in else None,
            refresh_token=refresh_token if isinstance(refresh_token, str) and refresh_token else None,
            refresh_expires_at=now + float(refresh_expires_in) if refresh_expires_in else None,
            scope=str(data.get("scope") or ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuthToken":
        access_token = data.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise ValueError("cached token has no access_token")
        return cls(
            access_token=access_token,
            token_type=data.get("token_type") or "bearer",
            expires_at=_optional_timestamp(data.get("expires_at")),
            refresh_token=data.get("refresh_token") or None,
            refresh_expires_at=_optional_timestamp(data.get("refresh_expires_at")),
            scope=data.get("scope") or "",
        )


def _optional_timestamp(value: Any) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError(f"invalid timestamp: {value!r}")
    return float(value)


class TokenStore:
    """On-disk token cache, one file per provider identity.

    Files are replaced atomically, so a reader sees either the previous token
    or the new one. Missing, empty or malformed files read as "no token".
    """

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, provider_id: str) -> Path:
        return self.directory / f"{sanitize_name(provider_id)}.token.json"

    def load(self, provider_id: str) -> AuthToken | None:
        path = self.path_for(provider_id)
        with _STORE_LOCK:
            if not path.exists():
                logger.debug("No cached token for '%s'", provider_id)
                return None
            try:
                with open(path, encoding="utf-8") as f:
                    data = json.load(f)
                if not isinstance(data, dict):
                    raise ValueError("token file is not a JSON object")
                if data.get("provider") not in (None, provider_id):
                    logger.warning(
                        "Token cache collision: requested '%s' but file contains '%s'. "
                        "Treating as not found.",
                        provider_id,
                        data.get("provider"),
                    )
                    return None
                return AuthToken.from_dict(data.get("token") or {})
            except (OSError, json.JSONDecodeError, ValueError, TypeError) as exc:
                logger.warning("Ignoring unreadable token cache %s: %s", path, exc)
                return None

    def save(self, provider_id: str, token: AuthToken) -> Path:
        """Persist a token, replacing any previous one for this provider.

        Raises:
            OSError: If the cache cannot be written. The previous file is left intact.
        """
        path = self.path_for(provider_id)
        payload = {"provider": provider_id, "token": token.to_dict()}
        with _STORE_LOCK:
            path.parent.mkdir(parents=True, exist_ok=True)
            if os.name == "posix":
                try:
                    path.parent.chmod(0o700)
                except OSError:
                    pass
            # On unix systems the cache is readable only by the current user
            atomic_write(path, json.dumps(payload, indent=2) + "\n", mode=0o600)
        logger.debug("Saved token for '%s' at %s", provider_id, path)
        return path

    def clear(self, provider_id: str) -> bool:
        """Remove the cached token. Returns True if a file was removed."""
        path = self.path_for(provider_id)
        with _STORE_LOCK:
            existed = path.exists()
            path.unlink(missing_ok=True)
        return existed
