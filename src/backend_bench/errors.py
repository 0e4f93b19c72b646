from enum import Enum


class UnknownSelector(ValueError):
    """A benchmark or backend name that is not registered.

    Attributes:
        kind: "benchmark" or "backend".
        name: The offending identifier.
    """

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"Unknown {kind}: {name!r}")


class ExecutionFailure(RuntimeError):
    """One execution unit failed; recorded in its result, never fatal to the run."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(reason)


class AuthFailureReason(str, Enum):
    EXPIRED = "expired"
    DENIED = "denied"
    NETWORK_ERROR = "network_error"
    NOT_AUTHENTICATED = "not_authenticated"
    CANCELLED = "cancelled"


class AuthFailure(Exception):
    """Authentication failed; fatal only to the sharing step."""

    reason: AuthFailureReason = AuthFailureReason.NETWORK_ERROR
    recommended_action = "Run `backend-bench auth` and retry."

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DeviceFlowExpired(AuthFailure):
    reason = AuthFailureReason.EXPIRED
    recommended_action = "The code expired before approval. Run `backend-bench auth` again."


class DeviceFlowDenied(AuthFailure):
    reason = AuthFailureReason.DENIED
    recommended_action = "Authorization was denied. Run `backend-bench auth` and approve access."


class AuthNetworkError(AuthFailure):
    reason = AuthFailureReason.NETWORK_ERROR
    recommended_action = "Check network connectivity and run `backend-bench auth` again."


class NotAuthenticated(AuthFailure):
    reason = AuthFailureReason.NOT_AUTHENTICATED
    recommended_action = "No valid token is cached. Run `backend-bench auth` first."


class AuthCancelled(AuthFailure):
    reason = AuthFailureReason.CANCELLED
    recommended_action = "Authentication was interrupted. Run `backend-bench auth` to retry."


class UploadFailure(Exception):
    """Submitting a report failed (transport or server-side rejection)."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def recommended_action(self) -> str:
        if self.status_code in {401, 403}:
            return "The results service rejected the token. Run `backend-bench auth` and retry."
        if self.status_code is None:
            return "Check network connectivity and BACKEND_BENCH_RESULTS_ENDPOINT, then rerun with --share."
        return "Rerun with --share to upload again."
