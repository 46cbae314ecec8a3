from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest


def build_repo_node(
    repo_id: str,
    name: str,
    owner: str = "acme",
    **overrides: Any,
) -> dict[str, Any]:
    node: dict[str, Any] = {
        "id": repo_id,
        "name": name,
        "nameWithOwner": f"{owner}/{name}",
        "url": f"https://github.com/{owner}/{name}",
        "description": f"{name} for Zig",
        "homepageUrl": None,
        "stargazerCount": 12,
        "forkCount": 3,
        "watchers": {"totalCount": 4},
        "updatedAt": "2025-05-01T10:00:00Z",
        "defaultBranchRef": {"target": {"oid": f"sha-{repo_id}"}},
        "isArchived": False,
        "isDisabled": False,
        "isFork": False,
        "primaryLanguage": {"name": "Zig"},
        "licenseInfo": {"spdxId": "MIT", "name": "MIT License"},
        "owner": {
            "login": owner,
            "avatarUrl": f"https://avatars.example/{owner}",
            "name": owner.title(),
            "bio": "Writes Zig",
            "company": None,
            "location": "Berlin",
            "websiteUrl": None,
            "twitterUsername": None,
            "followers": {"totalCount": 10},
            "following": {"totalCount": 2},
            "createdAt": "2020-01-01T00:00:00Z",
        },
        "repositoryTopics": {"nodes": [{"topic": {"name": "zig-package"}}]},
        "releases": {"nodes": []},
        "zon": None,
        "readme": {"text": f"# {name}"},
        "readmeLower": None,
    }
    node.update(overrides)
    return node


@pytest.fixture
def repo_node() -> Callable[..., dict[str, Any]]:
    return build_repo_node
