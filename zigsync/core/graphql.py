"""GitHub GraphQL transport that surfaces throttling as its own signal."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

LOGGER = logging.getLogger(__name__)

THROTTLE_STATUSES = {403, 429}
RATE_LIMIT_HEADER = "x-ratelimit-reset"
DEFAULT_RATE_LIMIT_WAIT = timedelta(hours=1)


class TransportError(Exception):
    """Raised for remote failures that are not rate limits."""


class RateLimited(Exception):
    """Raised when the API asks the caller to back off until `resume_at`."""

    def __init__(self, resume_at: datetime) -> None:
        self.resume_at = resume_at
        super().__init__(f"Rate limited until {resume_at.isoformat()}")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def resume_time_from_headers(
    headers: httpx.Headers, now: datetime
) -> datetime:
    """Read the reset epoch header, defaulting to one hour from `now`."""
    raw = headers.get(RATE_LIMIT_HEADER)
    if raw:
        try:
            return datetime.fromtimestamp(int(raw), tz=timezone.utc)
        except (TypeError, ValueError, OverflowError):
            LOGGER.debug("Ignoring malformed %s header: %r", RATE_LIMIT_HEADER, raw)
    return now + DEFAULT_RATE_LIMIT_WAIT


class GraphQLTransport:
    """Sends one GraphQL request per call; never retries on its own."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.client = client
        self.url = url
        self.clock = clock

    async def send(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self.client.post(
                self.url, json={"query": query, "variables": variables}
            )
        except httpx.HTTPError as exc:
            raise TransportError(f"GraphQL request failed: {exc}") from exc

        if response.status_code >= 400:
            if response.status_code in THROTTLE_STATUSES:
                raise RateLimited(resume_time_from_headers(response.headers, self.clock()))
            raise TransportError(
                f"GraphQL Error: {response.status_code} {response.reason_phrase}"
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise TransportError(f"GraphQL response was not JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise TransportError("GraphQL response was not an object")

        errors = payload.get("errors")
        if errors:
            if any(isinstance(err, dict) and err.get("type") == "RATE_LIMITED" for err in errors):
                raise RateLimited(self.clock() + DEFAULT_RATE_LIMIT_WAIT)
            messages = ", ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            raise TransportError(f"GraphQL Query Errors: {messages}")

        data = payload.get("data")
        if not isinstance(data, dict):
            raise TransportError("GraphQL response missing data")
        return data


def build_client(token: str, user_agent: str, timeout_s: float) -> httpx.AsyncClient:
    """Create the shared async client with auth headers."""
    headers = {
        "Authorization": f"Bearer {token}",
        "Content-Type": "application/json",
        "User-Agent": user_agent,
    }
    return httpx.AsyncClient(headers=headers, timeout=httpx.Timeout(timeout_s))
