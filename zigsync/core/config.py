"""Runtime configuration for the registry sync."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

GRAPHQL_URL = "https://api.github.com/graphql"
PACKAGE_QUERY = "topic:zig-package fork:false"
APPLICATION_QUERY = "topic:zig-application fork:false"
TOKEN_ENV_VARS = ("GH_TOKEN", "GITHUB_TOKEN")


class ConfigurationError(RuntimeError):
    """Raised when a required setting is missing."""


@dataclass(frozen=True, slots=True)
class SyncConfig:
    token: str
    output_dir: Path
    ledger_path: Path
    graphql_url: str = GRAPHQL_URL
    batch_size: int = 20
    page_size: int = 100
    page_delay_s: float = 0.5
    batch_delay_s: float = 1.0
    rate_limit_margin_s: float = 1.0
    timeout_s: float = 30.0
    user_agent: str = "Zig-Registry-Generator"

    @classmethod
    def from_env(
        cls,
        root: Path,
        output_dir: Path | None = None,
        ledger_path: Path | None = None,
        batch_size: int = 20,
    ) -> SyncConfig:
        """Build config from `root/.env` and the process environment."""
        load_dotenv(root / ".env")
        token = read_token()
        if not token:
            raise ConfigurationError(
                f"{' or '.join(TOKEN_ENV_VARS)} is not set in the environment or .env file"
            )
        return cls(
            token=token,
            output_dir=output_dir or root / "database",
            ledger_path=ledger_path or root / "registry.json",
            batch_size=max(1, batch_size),
        )


def read_token() -> str:
    """Return the first non-empty token from the supported env vars."""
    for name in TOKEN_ENV_VARS:
        value = os.environ.get(name, "").strip()
        if value:
            return value
    return ""
