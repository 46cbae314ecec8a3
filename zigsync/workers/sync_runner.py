"""Batch orchestration for a full registry sync run."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from zigsync.core.config import APPLICATION_QUERY, PACKAGE_QUERY, SyncConfig
from zigsync.core.graphql import (
    GraphQLTransport,
    RateLimited,
    build_client,
    utc_now,
)
from zigsync.core.ledger import Ledger, load_ledger, save_ledger
from zigsync.core.reconcile import reconcile
from zigsync.fetchers.discovery import (
    DiscoveryEngine,
    DiscoveryRecord,
    Sleep,
    dedupe_records,
    wait_until,
)
from zigsync.fetchers.repo_details import DetailFetcher

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SyncSummary:
    discovered: int = 0
    new: int = 0
    updated: int = 0
    removed: int = 0
    written: int = 0
    skipped: int = 0
    failed_batches: int = 0
    removed_repos: list[str] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "discovered": self.discovered,
            "new": self.new,
            "updated": self.updated,
            "removed": self.removed,
            "written": self.written,
            "skipped": self.skipped,
            "failed_batches": self.failed_batches,
            "removed_repos": list(self.removed_repos),
        }


def chunk_ids(records: list[DiscoveryRecord], size: int) -> list[list[str]]:
    ids = [record.id for record in records]
    return [ids[i : i + size] for i in range(0, len(ids), size)]


class BatchOrchestrator:
    def __init__(
        self,
        fetcher: DetailFetcher,
        ledger: Ledger,
        save: Callable[[Ledger], None],
        sleep: Sleep,
        batch_size: int = 20,
        batch_delay_s: float = 1.0,
        rate_limit_margin_s: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.fetcher = fetcher
        self.ledger = ledger
        self.save = save
        self.sleep = sleep
        self.batch_size = max(1, batch_size)
        self.batch_delay_s = batch_delay_s
        self.rate_limit_margin_s = rate_limit_margin_s
        self.clock = clock

    async def process_queue(
        self, records: list[DiscoveryRecord], label: str, summary: SyncSummary
    ) -> None:
        """Run every batch; rate limits retry the same batch, other errors skip it."""
        batches = chunk_ids(records, self.batch_size)
        LOGGER.info("[%s] Processing %d repos in %d batches...", label, len(records), len(batches))

        for index, ids in enumerate(batches, start=1):
            while True:
                try:
                    result = await self.fetcher.process(ids, self.ledger)
                except RateLimited as exc:
                    LOGGER.warning(
                        "[%s] Rate limit reached. Waiting until %s...",
                        label,
                        exc.resume_at.isoformat(),
                    )
                    await wait_until(exc.resume_at, self.sleep, self.clock, self.rate_limit_margin_s)
                    continue
                except Exception as exc:  # noqa: BLE001
                    LOGGER.error("[%s] Error processing batch %d: %s", label, index, exc)
                    summary.failed_batches += 1
                    break

                self.save(self.ledger)
                summary.written += result.written
                summary.skipped += result.skipped
                LOGGER.info("[%s] Batch %d/%d done.", label, index, len(batches))
                await self.sleep(self.batch_delay_s)
                break
        LOGGER.info("[%s] Complete.", label)


def describe_removed(ledger: Ledger, removed: list[str]) -> list[str]:
    lines = []
    for repo_id in removed:
        entry = ledger.repos[repo_id]
        lines.append(f"{entry.owner}/{entry.name} ({repo_id})")
    return lines


async def run_sync(
    config: SyncConfig,
    transport: GraphQLTransport | None = None,
    sleep: Sleep = asyncio.sleep,
    clock: Callable[[], datetime] = utc_now,
    dry_run: bool = False,
) -> SyncSummary:
    """Discover, reconcile and sync; returns counts for the run."""
    if transport is None:
        async with build_client(config.token, config.user_agent, config.timeout_s) as client:
            return await run_sync(
                config,
                GraphQLTransport(client, config.graphql_url, clock=clock),
                sleep=sleep,
                clock=clock,
                dry_run=dry_run,
            )

    ledger = load_ledger(config.ledger_path)
    LOGGER.info("Loaded state: %d tracked repos.", len(ledger))

    discovery = DiscoveryEngine(
        transport,
        sleep,
        page_size=config.page_size,
        page_delay_s=config.page_delay_s,
        rate_limit_margin_s=config.rate_limit_margin_s,
        clock=clock,
    )
    packages = await discovery.discover(PACKAGE_QUERY)
    applications = await discovery.discover(APPLICATION_QUERY)
    discovered = dedupe_records(packages, applications)

    plan = reconcile(discovered, ledger)
    summary = SyncSummary(
        discovered=len(discovered),
        new=len(plan.new),
        updated=len(plan.updated),
        removed=len(plan.removed),
        removed_repos=describe_removed(ledger, plan.removed),
    )
    LOGGER.info(
        "[Plan] New: %d Updated: %d Removed: %d",
        summary.new,
        summary.updated,
        summary.removed,
    )

    if not dry_run:
        config.output_dir.mkdir(parents=True, exist_ok=True)
        fetcher = DetailFetcher(
            transport,
            config.output_dir,
            application_ids={record.id for record in applications},
            clock=clock,
        )
        orchestrator = BatchOrchestrator(
            fetcher,
            ledger,
            save=lambda state: save_ledger(config.ledger_path, state),
            sleep=sleep,
            batch_size=config.batch_size,
            batch_delay_s=config.batch_delay_s,
            rate_limit_margin_s=config.rate_limit_margin_s,
            clock=clock,
        )
        if plan.new:
            await orchestrator.process_queue(plan.new, "New Repos", summary)
        if plan.updated:
            await orchestrator.process_queue(plan.updated, "Updated Repos", summary)

    if summary.removed_repos:
        LOGGER.info("[Removed] The following repos are no longer found in search:")
        for line in summary.removed_repos:
            LOGGER.info(" - %s", line)

    if not dry_run:
        ledger.last_sync = clock().isoformat()
        save_ledger(config.ledger_path, ledger)
    return summary
