"""Bulk detail fetch and normalisation into catalog entries."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from zigsync.analyzers.zon_manifest import extract_zon_metadata
from zigsync.core.catalog import (
    CatalogEntry,
    DependencyRecord,
    ReleaseAsset,
    ReleaseRecord,
    write_catalog_entry,
)
from zigsync.core.graphql import GraphQLTransport, utc_now
from zigsync.core.ledger import Ledger, LedgerEntry
from zigsync.fetchers.discovery import head_commit

LOGGER = logging.getLogger(__name__)

PACKAGE_TOPIC = "zig-package"
APPLICATION_TOPIC = "zig-application"
NO_LICENSE_SENTINEL = "NOASSERTION"
CATEGORY_KEYWORDS = (
    "game-engine",
    "graphics",
    "audio",
    "gui",
    "web",
    "networking",
    "database",
    "embedded",
    "math",
    "physics",
    "parser",
    "compiler",
    "system",
    "cli",
    "tui",
    "filesystem",
    "crypto",
    "security",
)

REPO_FRAGMENT = """
fragment RepoDetails on Repository {
  id
  name
  nameWithOwner
  url
  description
  homepageUrl
  stargazerCount
  forkCount
  watchers { totalCount }
  pushedAt
  createdAt
  updatedAt
  defaultBranchRef {
    target {
      ... on Commit {
        oid
      }
    }
  }
  isArchived
  isDisabled
  isFork
  primaryLanguage { name }
  licenseInfo { spdxId name }
  owner {
    login
    avatarUrl
    ... on User {
      name
      bio
      company
      location
      websiteUrl
      twitterUsername
      followers { totalCount }
      following { totalCount }
      createdAt
    }
    ... on Organization {
      name
      description
      location
      websiteUrl
      twitterUsername
      createdAt
    }
  }
  repositoryTopics(first: 10) {
    nodes {
      topic { name }
    }
  }
  releases(first: 20, orderBy: {field: CREATED_AT, direction: DESC}) {
    nodes {
      tagName
      name
      description
      isPrerelease
      publishedAt
      url
      releaseAssets(first: 20) {
        nodes {
          name
          downloadUrl
          size
          contentType
        }
      }
    }
  }
  zon: object(expression: "HEAD:build.zig.zon") {
    ... on Blob { text }
  }
  readme: object(expression: "HEAD:README.md") {
    ... on Blob { text }
  }
  readmeLower: object(expression: "HEAD:readme.md") {
    ... on Blob { text }
  }
}
"""

DETAILS_QUERY = (
    """
query ($ids: [ID!]!) {
  nodes(ids: $ids) {
    ... on Repository {
      ...RepoDetails
    }
  }
}
"""
    + REPO_FRAGMENT
)


@dataclass(slots=True)
class BatchResult:
    written: int = 0
    skipped: int = 0


@dataclass(frozen=True, slots=True)
class TypeSignals:
    has_manifest: bool
    has_package_topic: bool
    has_application_topic: bool


def _blob_text(blob: dict[str, Any] | None) -> str | None:
    if not blob:
        return None
    return blob.get("text") or None


def _total(connection: dict[str, Any] | None) -> int | None:
    if not connection:
        return None
    return connection.get("totalCount")


def _nodes(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    if not connection:
        return []
    return [node for node in connection.get("nodes") or [] if node]


def topic_names(repo: dict[str, Any]) -> list[str]:
    return [
        node["topic"]["name"]
        for node in _nodes(repo.get("repositoryTopics"))
        if (node.get("topic") or {}).get("name")
    ]


def determine_category(topics: list[str], is_application: bool) -> str:
    """First whitelisted topic wins, else a default by discovery origin."""
    for topic in topics:
        lowered = topic.lower()
        if lowered in CATEGORY_KEYWORDS:
            return lowered
    return "cli" if is_application else "library"


def determine_type(signals: TypeSignals) -> str:
    # TODO: map manifest/topic signals to "package"/"application" once the
    # web catalog filters on them; every entry is published as "project" today.
    return "project"


def license_id(repo: dict[str, Any]) -> str | None:
    spdx = (repo.get("licenseInfo") or {}).get("spdxId")
    if not spdx or spdx == NO_LICENSE_SENTINEL:
        return None
    return spdx


def readme_text(repo: dict[str, Any]) -> str | None:
    return _blob_text(repo.get("readme")) or _blob_text(repo.get("readmeLower"))


def normalize_releases(repo: dict[str, Any]) -> list[ReleaseRecord]:
    releases: list[ReleaseRecord] = []
    for node in _nodes(repo.get("releases")):
        releases.append(
            ReleaseRecord(
                tag_name=node.get("tagName") or "",
                name=node.get("name"),
                body=node.get("description"),
                prerelease=bool(node.get("isPrerelease")),
                published_at=node.get("publishedAt"),
                html_url=node.get("url"),
                assets=[
                    ReleaseAsset(
                        name=asset.get("name") or "",
                        url=asset.get("downloadUrl") or "",
                        size=asset.get("size") or 0,
                        content_type=asset.get("contentType"),
                    )
                    for asset in _nodes(node.get("releaseAssets"))
                ],
            )
        )
    return releases


def build_catalog_entry(repo: dict[str, Any], is_application: bool) -> CatalogEntry:
    """Map one GraphQL repository node onto the catalog entry shape."""
    owner = repo.get("owner") or {}
    topics = topic_names(repo)
    topic_set = {topic.lower() for topic in topics}
    zon_text = _blob_text(repo.get("zon"))
    signals = TypeSignals(
        has_manifest=zon_text is not None,
        has_package_topic=PACKAGE_TOPIC in topic_set,
        has_application_topic=APPLICATION_TOPIC in topic_set,
    )
    zon = extract_zon_metadata(zon_text)

    return CatalogEntry(
        name=repo["name"],
        owner=owner.get("login", ""),
        repo=repo["name"],
        description=repo.get("description") or "",
        type=determine_type(signals),
        category=determine_category(
            topics, is_application or signals.has_application_topic
        ),
        license=license_id(repo),
        homepage=repo.get("homepageUrl") or None,
        readme=readme_text(repo),
        dependencies=[
            DependencyRecord(name=dep.name, url=dep.url, hash=dep.hash)
            for dep in zon.dependencies
        ]
        or None,
        minimum_zig_version=zon.minimum_zig_version,
        topics=topics,
        stars=repo.get("stargazerCount") or 0,
        forks=repo.get("forkCount") or 0,
        watchers=_total(repo.get("watchers")) or 0,
        updated_at=repo.get("updatedAt") or "",
        owner_avatar_url=owner.get("avatarUrl"),
        # Organizations expose `description` where users expose `bio`.
        owner_bio=owner.get("bio") or owner.get("description"),
        owner_company=owner.get("company"),
        owner_location=owner.get("location"),
        owner_blog=owner.get("websiteUrl"),
        owner_twitter_username=owner.get("twitterUsername"),
        owner_followers=_total(owner.get("followers")),
        owner_following=_total(owner.get("following")),
        owner_created_at=owner.get("createdAt"),
        releases=normalize_releases(repo),
    )


class DetailFetcher:
    """Fetches a batch of repositories and writes their catalog files."""

    def __init__(
        self,
        transport: GraphQLTransport,
        output_dir: Path,
        application_ids: set[str] | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.transport = transport
        self.output_dir = output_dir
        self.application_ids = application_ids or set()
        self.clock = clock

    async def fetch(self, ids: list[str]) -> list[dict[str, Any] | None]:
        data = await self.transport.send(DETAILS_QUERY, {"ids": ids})
        return list(data.get("nodes") or [])

    async def process(self, ids: list[str], ledger: Ledger) -> BatchResult:
        """Write one catalog file per surviving repository and update the ledger."""
        result = BatchResult()
        for repo in await self.fetch(ids):
            if not repo or not repo.get("id"):
                result.skipped += 1
                continue
            if repo.get("isArchived") or repo.get("isDisabled"):
                LOGGER.debug("Skipping archived/disabled %s", repo.get("nameWithOwner"))
                result.skipped += 1
                continue

            entry = build_catalog_entry(repo, repo["id"] in self.application_ids)
            LOGGER.info("Updating %s/%s", entry.owner, entry.name)
            write_catalog_entry(self.output_dir, entry)

            ledger.record(
                LedgerEntry(
                    id=str(repo["id"]),
                    name=entry.name,
                    owner=entry.owner,
                    type=entry.type,
                    updated_at=entry.updated_at,
                    commit_hash=head_commit(repo),
                    last_synced=self.clock().isoformat(),
                )
            )
            result.written += 1
        return result
