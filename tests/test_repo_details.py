from __future__ import annotations

import asyncio
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

from zigsync.core.catalog import catalog_path
from zigsync.core.graphql import TransportError
from zigsync.core.ledger import Ledger, LedgerEntry
from zigsync.fetchers.repo_details import (
    DetailFetcher,
    build_catalog_entry,
    determine_category,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class NodesTransport:
    def __init__(self, nodes: list[dict[str, Any] | None] | Exception) -> None:
        self.nodes = nodes
        self.calls: list[list[str]] = []

    async def send(self, query: str, variables: dict[str, Any]) -> dict[str, Any]:
        self.calls.append(list(variables["ids"]))
        if isinstance(self.nodes, Exception):
            raise self.nodes
        return {"nodes": self.nodes}


def test_determine_category_whitelist_and_defaults() -> None:
    assert determine_category(["zig", "GUI", "web"], False) == "gui"
    assert determine_category(["zig-package"], False) == "library"
    assert determine_category(["zig-application"], True) == "cli"


def test_build_catalog_entry_maps_fields(repo_node) -> None:
    zon = '.{ .minimum_zig_version = "0.13.0", .dependencies = .{ .zap = .{ .url = "https://x/zap.tgz", .hash = "1220ab" } } }'
    node = repo_node(
        "R1",
        "zap-demo",
        homepageUrl="https://zap.example",
        zon={"text": zon},
        repositoryTopics={"nodes": [{"topic": {"name": "zig-package"}}, {"topic": {"name": "Networking"}}]},
        releases={
            "nodes": [
                {
                    "tagName": "v1.0.0",
                    "name": "First",
                    "description": "notes",
                    "isPrerelease": False,
                    "publishedAt": "2025-04-01T00:00:00Z",
                    "url": "https://github.com/acme/zap-demo/releases/tag/v1.0.0",
                    "releaseAssets": {
                        "nodes": [
                            {
                                "name": "zap-linux.tar.gz",
                                "downloadUrl": "https://dl.example/zap-linux.tar.gz",
                                "size": 2048,
                                "contentType": "application/gzip",
                            }
                        ]
                    },
                }
            ]
        },
    )

    entry = build_catalog_entry(node, is_application=False)
    dumped = entry.model_dump(exclude_none=True)

    assert dumped["type"] == "project"
    assert dumped["category"] == "networking"
    assert dumped["license"] == "MIT"
    assert dumped["homepage"] == "https://zap.example"
    assert dumped["readme"] == "# zap-demo"
    assert dumped["minimum_zig_version"] == "0.13.0"
    assert dumped["dependencies"] == [{"name": "zap", "url": "https://x/zap.tgz", "hash": "1220ab"}]
    assert dumped["topics"] == ["zig-package", "Networking"]
    assert (dumped["stars"], dumped["forks"], dumped["watchers"]) == (12, 3, 4)
    assert dumped["owner_followers"] == 10
    assert "owner_company" not in dumped
    assert dumped["releases"][0]["tag_name"] == "v1.0.0"
    assert dumped["releases"][0]["assets"][0] == {
        "name": "zap-linux.tar.gz",
        "url": "https://dl.example/zap-linux.tar.gz",
        "size": 2048,
        "content_type": "application/gzip",
    }


def test_build_catalog_entry_optional_fallbacks(repo_node) -> None:
    node = repo_node(
        "R2",
        "tool",
        owner="zigorg",
        description=None,
        licenseInfo={"spdxId": "NOASSERTION", "name": "Other"},
        readme=None,
        readmeLower={"text": "lowercase readme"},
        repositoryTopics={"nodes": []},
    )
    node["owner"] = {
        "login": "zigorg",
        "avatarUrl": "https://avatars.example/zigorg",
        "name": "Zig Org",
        "description": "An organization",
        "location": None,
        "websiteUrl": "https://zigorg.dev",
        "twitterUsername": "zigorg",
        "createdAt": "2019-01-01T00:00:00Z",
    }

    dumped = build_catalog_entry(node, is_application=True).model_dump(exclude_none=True)

    assert dumped["description"] == ""
    assert "license" not in dumped
    assert "dependencies" not in dumped
    assert dumped["readme"] == "lowercase readme"
    assert dumped["category"] == "cli"
    assert dumped["owner_bio"] == "An organization"
    assert dumped["owner_blog"] == "https://zigorg.dev"
    assert "owner_followers" not in dumped


def test_process_writes_files_and_updates_ledger(tmp_path: Path, repo_node) -> None:
    nodes = [
        repo_node("R1", "alpha"),
        repo_node("R2", "archived", isArchived=True),
        repo_node("R3", "disabled", isDisabled=True),
        None,
    ]
    transport = NodesTransport(nodes)
    fetcher = DetailFetcher(transport, tmp_path, clock=lambda: NOW)
    ledger = Ledger()

    result = asyncio.run(fetcher.process(["R1", "R2", "R3", "R4"], ledger))

    assert (result.written, result.skipped) == (1, 3)
    assert transport.calls == [["R1", "R2", "R3", "R4"]]
    assert catalog_path(tmp_path, "acme", "alpha").exists()
    assert not catalog_path(tmp_path, "acme", "archived").exists()
    assert set(ledger.repos) == {"R1"}
    tracked = ledger.repos["R1"]
    assert tracked.commit_hash == "sha-R1"
    assert tracked.updated_at == "2025-05-01T10:00:00Z"
    assert tracked.last_synced == NOW.isoformat()


def test_archived_repo_leaves_stale_ledger_entry_untouched(tmp_path: Path, repo_node) -> None:
    stale = LedgerEntry(
        id="R2",
        name="archived",
        owner="acme",
        type="project",
        updated_at="2024-01-01T00:00:00Z",
        last_synced="2024-01-02T00:00:00+00:00",
        commit_hash="old",
    )
    ledger = Ledger(repos={"R2": stale})
    fetcher = DetailFetcher(
        NodesTransport([repo_node("R2", "archived", isArchived=True)]), tmp_path, clock=lambda: NOW
    )

    asyncio.run(fetcher.process(["R2"], ledger))

    assert ledger.repos["R2"] is stale
    assert not catalog_path(tmp_path, "acme", "archived").exists()


def test_reprocessing_is_byte_identical(tmp_path: Path, repo_node) -> None:
    transport = NodesTransport([repo_node("R1", "alpha", zon={"text": '.{ .minimum_zig_version = "0.12.0" }'})])
    ledger = Ledger()
    path = catalog_path(tmp_path, "acme", "alpha")

    asyncio.run(DetailFetcher(transport, tmp_path, clock=lambda: NOW).process(["R1"], ledger))
    first = path.read_bytes()
    first_entry = ledger.repos["R1"]

    later = datetime(2025, 6, 2, tzinfo=timezone.utc)
    asyncio.run(DetailFetcher(transport, tmp_path, clock=lambda: later).process(["R1"], ledger))

    assert path.read_bytes() == first
    assert json.loads(first)["minimum_zig_version"] == "0.12.0"
    second_entry = ledger.repos["R1"]
    assert (second_entry.commit_hash, second_entry.updated_at) == (
        first_entry.commit_hash,
        first_entry.updated_at,
    )
    assert second_entry.last_synced != first_entry.last_synced


def test_application_origin_defaults_category_to_cli(tmp_path: Path, repo_node) -> None:
    node = repo_node("R9", "runner", repositoryTopics={"nodes": []})
    fetcher = DetailFetcher(NodesTransport([node]), tmp_path, application_ids={"R9"}, clock=lambda: NOW)

    asyncio.run(fetcher.process(["R9"], Ledger()))

    written = json.loads(catalog_path(tmp_path, "acme", "runner").read_text(encoding="utf-8"))
    assert written["category"] == "cli"


def test_transport_failure_propagates_without_writes(tmp_path: Path) -> None:
    fetcher = DetailFetcher(NodesTransport(TransportError("boom")), tmp_path, clock=lambda: NOW)
    ledger = Ledger()

    with pytest.raises(TransportError):
        asyncio.run(fetcher.process(["R1"], ledger))
    assert len(ledger) == 0
    assert list(tmp_path.iterdir()) == []
