#!/usr/bin/env python3
"""
Sync Zig packages and applications from GitHub into the local registry.

Usage:
  python scripts/sync_registry.py
  python scripts/sync_registry.py --dry-run
  python scripts/sync_registry.py --output-dir database --ledger registry.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from zigsync.core.config import ConfigurationError, SyncConfig  # noqa: E402
from zigsync.core.ledger import LedgerError  # noqa: E402
from zigsync.workers.sync_runner import run_sync  # noqa: E402

LOGGER = logging.getLogger("sync_registry")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Incrementally sync the Zig registry.")
    parser.add_argument("--output-dir", type=Path, default=None, help="Catalog output directory.")
    parser.add_argument("--ledger", type=Path, default=None, help="Sync ledger JSON file.")
    parser.add_argument("--batch-size", type=int, default=20, help="Repositories per detail request.")
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Discover and reconcile only; write no catalog files or ledger.",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level.",
    )
    return parser.parse_args()


async def run() -> int:
    args = parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    try:
        config = SyncConfig.from_env(
            REPO_ROOT,
            output_dir=args.output_dir,
            ledger_path=args.ledger,
            batch_size=args.batch_size,
        )
    except ConfigurationError as exc:
        LOGGER.error("Error: %s", exc)
        return 1
    LOGGER.info("Token found: %s...", config.token[:10])

    try:
        summary = await run_sync(config, dry_run=args.dry_run)
    except LedgerError as exc:
        LOGGER.error("Error: %s", exc)
        return 1
    print(json.dumps({"summary": summary.to_json()}, ensure_ascii=False))
    return 0 if summary.failed_batches == 0 else 1


if __name__ == "__main__":
    raise SystemExit(asyncio.run(run()))
