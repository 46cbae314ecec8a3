"""Persisted sync ledger: remote id -> last processed state."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

LOGGER = logging.getLogger(__name__)


class LedgerError(Exception):
    """Raised when an existing ledger file cannot be read."""


@dataclass(slots=True)
class LedgerEntry:
    id: str
    name: str
    owner: str
    type: str
    updated_at: str
    last_synced: str
    commit_hash: str | None = None

    def to_json(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "owner": self.owner,
            "type": self.type,
            "updatedAt": self.updated_at,
        }
        if self.commit_hash:
            payload["commitHash"] = self.commit_hash
        payload["lastSynced"] = self.last_synced
        return payload

    @classmethod
    def from_json(cls, payload: dict[str, Any]) -> LedgerEntry:
        return cls(
            id=str(payload["id"]),
            name=str(payload["name"]),
            owner=str(payload["owner"]),
            type=str(payload.get("type") or "project"),
            updated_at=str(payload.get("updatedAt") or ""),
            last_synced=str(payload.get("lastSynced") or ""),
            commit_hash=payload.get("commitHash") or None,
        )


@dataclass(slots=True)
class Ledger:
    """In-memory ledger owned by a single sync run."""

    repos: dict[str, LedgerEntry] = field(default_factory=dict)
    last_sync: str = ""

    def get(self, repo_id: str) -> LedgerEntry | None:
        return self.repos.get(repo_id)

    def record(self, entry: LedgerEntry) -> None:
        self.repos[entry.id] = entry

    def __len__(self) -> int:
        return len(self.repos)

    def to_json(self) -> dict[str, Any]:
        return {
            "lastSync": self.last_sync,
            "repos": {repo_id: entry.to_json() for repo_id, entry in self.repos.items()},
        }


def load_ledger(path: Path) -> Ledger:
    """Load the ledger file, or an empty ledger when it does not exist."""
    if not path.exists():
        return Ledger()
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        repos = payload.get("repos", {})
        if not isinstance(repos, dict):
            raise TypeError("'repos' must be an object")
        return Ledger(
            repos={
                str(repo_id): LedgerEntry.from_json(raw)
                for repo_id, raw in repos.items()
            },
            last_sync=str(payload.get("lastSync") or ""),
        )
    except (ValueError, TypeError, KeyError, AttributeError) as exc:
        raise LedgerError(f"Unreadable ledger {path}: {exc}") from exc


def save_ledger(path: Path, ledger: Ledger) -> None:
    """Overwrite the ledger file through a temp file + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.tmp")
    tmp_path.write_text(
        json.dumps(ledger.to_json(), indent=2, ensure_ascii=False), encoding="utf-8"
    )
    os.replace(tmp_path, path)
    LOGGER.debug("Saved ledger with %d repos to %s", len(ledger), path)
