from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from app.adminflow.modules.directory_sync.clients.base import DirectoryClient
from app.adminflow.modules.directory_sync.clients.github import github_client_from_config
from app.adminflow.modules.directory_sync.clients.slack import slack_client_from_config

DIRECTORIES = ("github", "slack")


def build_client(directory: str, config: Mapping[str, Any]) -> DirectoryClient:
    """Build a client for `directory`; demo/live mode is decided here, once."""
    if directory == "github":
        return github_client_from_config(config)
    if directory == "slack":
        return slack_client_from_config(config)
    raise ValueError(f"Unknown directory {directory!r}; expected one of {', '.join(DIRECTORIES)}")
