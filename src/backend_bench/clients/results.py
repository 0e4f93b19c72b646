import json
import logging
import time
from typing import Any

import httpx

from ..config import BenchConfig
from ..config.settings import USER_AGENT
from ..errors import UploadFailure
from ..results import Report

logger = logging.getLogger(__name__)

MISSING_ENDPOINT_MESSAGE = "No results endpoint configured; set BACKEND_BENCH_RESULTS_ENDPOINT"


def _error_message(resp: httpx.Response) -> str:
    text = resp.text
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return text.strip() or resp.reason_phrase
    if isinstance(data, dict):
        for key in ("message", "detail", "error"):
            value = data.get(key)
            if isinstance(value, str) and value:
                return value
    return text.strip() or resp.reason_phrase


def _raise_for_status(resp: httpx.Response) -> None:
    if resp.is_success:
        return

    message = _error_message(resp)
    if resp.status_code in {401, 403}:
        raise UploadFailure(f"Upload rejected: {message}", status_code=resp.status_code)
    if resp.status_code == 413:
        raise UploadFailure("Upload rejected: report too large", status_code=resp.status_code)
    if 400 <= resp.status_code < 500:
        raise UploadFailure(f"Upload rejected: {message}", status_code=resp.status_code)
    raise UploadFailure(f"Results service error: {message}", status_code=resp.status_code)


class ResultsClient:
    """Submits reports to the shared results service.

    Uploads are attempted once; a failure is reported and never retried.
    """

    def __init__(self, config: BenchConfig) -> None:
        self._config = config

    @property
    def is_configured(self) -> bool:
        return bool(self._config.results_endpoint)

    def upload(self, report: Report, token: str) -> dict[str, Any]:
        """Upload a report with a bearer token.

        Returns:
            The service's JSON response, or an empty dict when the body is not JSON.

        Raises:
            UploadFailure: Endpoint missing, transport error, or non-2xx response.
        """
        endpoint = self._config.results_endpoint
        if not endpoint:
            raise UploadFailure(MISSING_ENDPOINT_MESSAGE)

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }

        started_at = time.monotonic()
        try:
            with httpx.Client(timeout=self._config.http_timeout) as client:
                resp = client.post(endpoint, json=report.to_dict(), headers=headers)
        except httpx.TimeoutException as exc:
            raise UploadFailure(
                f"Upload timed out after {self._config.http_timeout:.0f}s"
            ) from exc
        except httpx.RequestError as exc:
            raise UploadFailure(f"Network error: {exc}") from exc
        latency_ms = int((time.monotonic() - started_at) * 1000)

        try:
            _raise_for_status(resp)
        except UploadFailure as exc:
            logger.error(
                "Results upload failed (status=%d, latency=%dms): %s",
                resp.status_code,
                latency_ms,
                exc.message,
            )
            raise

        logger.info(
            "Results upload succeeded (status=%d, latency=%dms, units=%d)",
            resp.status_code,
            latency_ms,
            report.total,
        )
        try:
            body = resp.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {"response": body}
