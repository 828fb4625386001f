"""Codeforces contest list adapter.

Implements the core ContestSourcePort over the public `contest.list` API.
Every failure (transport, HTTP status, payload shape) is folded into a
FetchResult so the scheduler never sees an exception from here.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import aiohttp

from core.errors import FetchError
from core.models import ContestRecord, FetchResult

LOGGER = logging.getLogger(__name__)

DEFAULT_API_URL = "https://codeforces.com/api/contest.list"


def _require_int(entry: dict, key: str) -> int:
    value = entry.get(key)
    # bool is an int subclass but never a valid timestamp or id.
    if isinstance(value, bool) or not isinstance(value, int):
        raise FetchError(f"Contest field {key!r} is not an integer: {value!r}")
    return value


def parse_contest(entry: Any) -> ContestRecord:
    """Validate one API contest object and map it to a ContestRecord."""

    if not isinstance(entry, dict):
        raise FetchError(f"Contest entry is not an object: {entry!r}")

    contest_id = entry.get("id")
    if isinstance(contest_id, bool) or not isinstance(contest_id, (int, str)) or contest_id == "":
        raise FetchError(f"Contest id is missing or invalid: {contest_id!r}")

    name = entry.get("name")
    if not isinstance(name, str):
        raise FetchError(f"Contest {contest_id} has no name")

    start_seconds = _require_int(entry, "startTimeSeconds")
    duration_seconds = _require_int(entry, "durationSeconds")
    if duration_seconds < 0:
        raise FetchError(f"Contest {contest_id} has a negative duration")

    return ContestRecord(
        contest_id=contest_id,
        name=name,
        start=datetime.fromtimestamp(start_seconds, tz=timezone.utc),
        duration=timedelta(seconds=duration_seconds),
    )


def parse_contest_payload(payload: Any) -> Tuple[ContestRecord, ...]:
    """Return the contests of a decoded `contest.list` response.

    The API wraps results as ``{"status": "OK", "result": [...]}``; anything
    else, including a single malformed entry, is treated as a failed fetch.
    """

    if not isinstance(payload, dict):
        raise FetchError("Response payload is not an object")
    status = payload.get("status")
    if status != "OK":
        comment = payload.get("comment") or "no comment"
        raise FetchError(f"API status {status!r}: {comment}")
    result = payload.get("result")
    if not isinstance(result, list):
        raise FetchError("Response payload has no result list")
    return tuple(parse_contest(entry) for entry in result)


class CodeforcesClient:
    """Fetches the contest list with a bounded aiohttp request."""

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        self._api_url = api_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "CodeforcesClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None or getattr(self._session, "closed", False):
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def fetch_contests(self) -> FetchResult:
        """Perform one GET and return the parsed contests or the failure."""

        try:
            payload = await self._get_json()
            contests = parse_contest_payload(payload)
        except FetchError as exc:
            return FetchResult.failure(exc)
        LOGGER.debug("Fetched %s contests", len(contests))
        return FetchResult.success(contests)

    async def _get_json(self) -> Any:
        session = self._ensure_session()
        try:
            async with session.get(self._api_url, timeout=self._timeout) as response:
                if not 200 <= response.status < 300:
                    raise FetchError(f"HTTP {response.status} from {self._api_url}")
                try:
                    return await response.json(content_type=None)
                except ValueError as exc:
                    raise FetchError("Response body is not valid JSON") from exc
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise FetchError(f"Transport failure: {exc!r}") from exc
