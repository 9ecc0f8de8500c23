"""
Codeforces API client.

Thin httpx wrapper around the two public endpoints the planner needs:
- user.status: a user's full submission history (newest first)
- problemset.problems: the rated problem catalog

Hardening:
- Configurable timeout with bounded retries and exponential backoff
- Transport errors and 5xx responses are retried
- A FAILED API status (unknown handle) is not retried

Usage:
    with CodeforcesClient() as client:
        attempts = client.user_status("tourist")
"""

from __future__ import annotations

import time
from datetime import UTC, datetime
from typing import Any

import httpx
from loguru import logger

from cfplanner.core.exceptions import HandleNotFoundError, JudgeUnavailableError
from cfplanner.core.models import AttemptRecord
from config import get_settings

DEFAULT_BACKOFF_FACTOR = 0.5  # 0.5, 1.0, 2.0 seconds between retries
RETRY_STATUS_CODES = {500, 502, 503, 504}


class CodeforcesClient:
    """Synchronous client for the Codeforces public API."""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        retries: int | None = None,
        backoff_factor: float = DEFAULT_BACKOFF_FACTOR,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API root (default from config)
            timeout: Request timeout in seconds (default from config)
            retries: Attempts before giving up (default from config)
            backoff_factor: Base delay for exponential backoff
            transport: Optional httpx transport (tests use ``httpx.MockTransport``)
        """
        settings = get_settings()
        self.base_url = (base_url or settings.codeforces_api_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.codeforces_timeout_seconds
        self.retries = max(1, retries if retries is not None else settings.codeforces_retries)
        self.backoff_factor = backoff_factor
        self._client = httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=transport)

    def __enter__(self) -> CodeforcesClient:
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    # =========================================================================
    # Transport
    # =========================================================================

    def _call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """
        GET an API method and return the decoded envelope.

        Raises:
            JudgeUnavailableError: After retries are exhausted or on a malformed body
        """
        last_error: Exception | None = None
        for attempt in range(self.retries):
            try:
                response = self._client.get(f"/{method}", params=params)
                if response.status_code in RETRY_STATUS_CODES:
                    raise httpx.HTTPStatusError(
                        f"server error {response.status_code}",
                        request=response.request,
                        response=response,
                    )
                payload = response.json()
                if not isinstance(payload, dict) or "status" not in payload:
                    raise JudgeUnavailableError(f"{method}: malformed response")
                return payload
            except (httpx.TransportError, httpx.HTTPStatusError) as e:
                last_error = e
                if attempt < self.retries - 1:
                    delay = self.backoff_factor * (2**attempt)
                    logger.warning(
                        "Codeforces {} failed (attempt {}/{}), retrying in {:.1f}s: {}",
                        method,
                        attempt + 1,
                        self.retries,
                        delay,
                        e,
                    )
                    time.sleep(delay)
            except ValueError as e:
                raise JudgeUnavailableError(f"{method}: invalid JSON") from e

        logger.error("Codeforces {} failed after {} attempts: {}", method, self.retries, last_error)
        raise JudgeUnavailableError(f"{method}: {last_error}") from last_error

    # =========================================================================
    # Endpoints
    # =========================================================================

    def user_status(self, handle: str) -> list[AttemptRecord]:
        """
        Full submission history of ``handle``, newest first.

        Raises:
            HandleNotFoundError: If the API reports the handle as unknown
            JudgeUnavailableError: If the API cannot be reached
        """
        payload = self._call("user.status", {"handle": handle})
        if payload["status"] != "OK":
            raise HandleNotFoundError(handle, payload.get("comment"))

        records = [parse_submission(item) for item in payload.get("result", [])]
        logger.debug("Fetched {} submissions for {}", len(records), handle)
        return records

    def problemset_problems(self) -> list[dict[str, Any]]:
        """Raw problem entries of the full problemset."""
        payload = self._call("problemset.problems")
        if payload["status"] != "OK":
            raise JudgeUnavailableError(f"problemset.problems: {payload.get('comment')}")
        return list(payload.get("result", {}).get("problems", []))


def parse_submission(item: dict[str, Any]) -> AttemptRecord:
    """Convert one user.status entry into an ``AttemptRecord``."""
    problem = item.get("problem", {})
    return AttemptRecord(
        contest_id=int(problem.get("contestId", 0)),
        index=str(problem.get("index", "")),
        verdict=item.get("verdict", "TESTING"),
        created_at=datetime.fromtimestamp(int(item.get("creationTimeSeconds", 0)), tz=UTC),
        name=problem.get("name", ""),
        rating=int(problem.get("rating", 0)),
        tags=tuple(problem.get("tags", ())),
    )
