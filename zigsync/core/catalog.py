"""Catalog entry documents written one file per repository."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

EntryType = Literal["package", "application", "project"]


class DependencyRecord(BaseModel):
    name: str
    url: str
    hash: str | None = None


class ReleaseAsset(BaseModel):
    name: str
    url: str
    size: int = 0
    content_type: str | None = None


class ReleaseRecord(BaseModel):
    tag_name: str
    name: str | None = None
    body: str | None = None
    prerelease: bool = False
    published_at: str | None = None
    html_url: str | None = None
    assets: list[ReleaseAsset] = Field(default_factory=list)


class CatalogEntry(BaseModel):
    name: str
    owner: str
    repo: str
    description: str = ""
    type: EntryType = "project"
    category: str | None = None
    license: str | None = None
    homepage: str | None = None
    readme: str | None = None
    dependencies: list[DependencyRecord] | None = None
    minimum_zig_version: str | None = None
    topics: list[str] = Field(default_factory=list)
    stars: int = 0
    forks: int = 0
    watchers: int = 0
    updated_at: str
    owner_avatar_url: str | None = None
    owner_bio: str | None = None
    owner_company: str | None = None
    owner_location: str | None = None
    owner_blog: str | None = None
    owner_twitter_username: str | None = None
    owner_followers: int | None = None
    owner_following: int | None = None
    owner_created_at: str | None = None
    releases: list[ReleaseRecord] = Field(default_factory=list)


def catalog_path(root: Path, owner: str, name: str) -> Path:
    """Deterministic location of a repository's catalog file."""
    return root / owner / f"{name}.json"


def render_entry(entry: CatalogEntry) -> str:
    return json.dumps(entry.model_dump(exclude_none=True), indent=2, ensure_ascii=False)


def write_catalog_entry(root: Path, entry: CatalogEntry) -> Path:
    """Overwrite the entry's file, creating the owner directory on demand."""
    path = catalog_path(root, entry.owner, entry.repo)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_entry(entry), encoding="utf-8")
    return path
