"""Classify discovered repositories against the ledger."""

from __future__ import annotations

from dataclasses import dataclass, field

from zigsync.core.ledger import Ledger
from zigsync.fetchers.discovery import DiscoveryRecord


@dataclass(slots=True)
class ReconcileResult:
    new: list[DiscoveryRecord] = field(default_factory=list)
    updated: list[DiscoveryRecord] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)


def is_changed(record: DiscoveryRecord, commit_hash: str | None, updated_at: str) -> bool:
    """Commit hash decides when discovery has one; otherwise fall back to updatedAt."""
    if record.commit_hash:
        return record.commit_hash != commit_hash
    return record.updated_at != updated_at


def reconcile(records: list[DiscoveryRecord], ledger: Ledger) -> ReconcileResult:
    """Split records into new/updated and list ledger ids no longer discovered."""
    result = ReconcileResult()
    seen: set[str] = set()
    for record in records:
        seen.add(record.id)
        tracked = ledger.get(record.id)
        if tracked is None:
            result.new.append(record)
        elif is_changed(record, tracked.commit_hash, tracked.updated_at):
            result.updated.append(record)

    result.removed = [repo_id for repo_id in ledger.repos if repo_id not in seen]
    return result
