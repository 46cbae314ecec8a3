"""Paginated repository discovery through the GitHub search API."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from zigsync.core.graphql import GraphQLTransport, RateLimited, TransportError, utc_now

LOGGER = logging.getLogger(__name__)

DISCOVERY_QUERY = """
query ($query: String!, $cursor: String, $first: Int!) {
  search(query: $query, type: REPOSITORY, first: $first, after: $cursor) {
    repositoryCount
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      ... on Repository {
        id
        name
        nameWithOwner
        updatedAt
        defaultBranchRef {
          target {
            ... on Commit {
              oid
            }
          }
        }
        owner {
          login
        }
      }
    }
  }
}
"""

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class DiscoveryRecord:
    id: str
    name: str
    owner: str
    name_with_owner: str
    updated_at: str
    commit_hash: str | None = None


def head_commit(node: dict[str, Any]) -> str | None:
    """Return the default branch head oid, or None for empty repositories."""
    ref = node.get("defaultBranchRef") or {}
    target = ref.get("target") or {}
    oid = target.get("oid")
    return str(oid) if oid else None


def record_from_node(node: dict[str, Any]) -> DiscoveryRecord | None:
    # Search may return non-repository nodes as empty objects.
    if not node or not node.get("id"):
        return None
    owner = (node.get("owner") or {}).get("login", "")
    return DiscoveryRecord(
        id=str(node["id"]),
        name=str(node.get("name") or ""),
        owner=str(owner),
        name_with_owner=str(node.get("nameWithOwner") or f"{owner}/{node.get('name')}"),
        updated_at=str(node.get("updatedAt") or ""),
        commit_hash=head_commit(node),
    )


def dedupe_records(*groups: list[DiscoveryRecord]) -> list[DiscoveryRecord]:
    """Merge record lists by id, keeping the first occurrence's order."""
    merged: dict[str, DiscoveryRecord] = {}
    for group in groups:
        for record in group:
            merged.setdefault(record.id, record)
    return list(merged.values())


async def wait_until(
    resume_at: datetime,
    sleep: Sleep,
    clock: Callable[[], datetime] = utc_now,
    margin_s: float = 1.0,
) -> None:
    """Sleep until `resume_at` plus a safety margin."""
    wait_s = (resume_at - clock()).total_seconds() + margin_s
    if wait_s > 0:
        await sleep(wait_s)


class DiscoveryEngine:
    def __init__(
        self,
        transport: GraphQLTransport,
        sleep: Sleep,
        page_size: int = 100,
        page_delay_s: float = 0.5,
        rate_limit_margin_s: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.transport = transport
        self.sleep = sleep
        self.page_size = page_size
        self.page_delay_s = page_delay_s
        self.rate_limit_margin_s = rate_limit_margin_s
        self.clock = clock

    async def discover(self, search_query: str) -> list[DiscoveryRecord]:
        """Page through search results; partial results on non-rate-limit failure."""
        LOGGER.info("[Discovery] Searching for: %s", search_query)
        cursor: str | None = None
        records: list[DiscoveryRecord] = []

        while True:
            try:
                data = await self.transport.send(
                    DISCOVERY_QUERY,
                    {"query": search_query, "cursor": cursor, "first": self.page_size},
                )
            except RateLimited as exc:
                LOGGER.warning(
                    "[Discovery] Rate limit reached. Waiting until %s...",
                    exc.resume_at.isoformat(),
                )
                await wait_until(exc.resume_at, self.sleep, self.clock, self.rate_limit_margin_s)
                continue
            except TransportError as exc:
                LOGGER.error("[Discovery] Error: %s", exc)
                break

            search = data.get("search") or {}
            for node in search.get("nodes") or []:
                record = record_from_node(node)
                if record is not None:
                    records.append(record)
            LOGGER.info("[Discovery] Found %d repos...", len(records))

            page_info = search.get("pageInfo") or {}
            if not page_info.get("hasNextPage"):
                break
            cursor = page_info.get("endCursor")
            await self.sleep(self.page_delay_s)

        LOGGER.info("[Discovery] Complete. Found %d total.", len(records))
        return records
