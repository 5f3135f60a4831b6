from __future__ import annotations

import json
import logging
import time
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from app.adminflow.audit import record_event
from app.adminflow.models import User
from app.adminflow.modules.directory_sync.clients import DIRECTORIES, build_client
from app.adminflow.modules.directory_sync.clients.base import DirectoryClient
from app.adminflow.modules.directory_sync.models import DirectorySyncRun
from app.adminflow.modules.directory_sync.reconciler import LocalUser, ReconciliationResult, reconcile

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def _external_id(user: User, directory: str) -> str | None:
    if directory == "github":
        return (user.github_username or "").strip() or None
    return (user.email or "").strip() or None


def local_users_for(s: "Session", directory: str) -> list[LocalUser]:
    """Snapshot every local user (active or not) keyed for `directory`."""
    users = s.query(User).order_by(User.id.asc()).all()
    return [
        LocalUser(external_id=_external_id(u, directory), is_active=bool(u.is_active), display_name=u.display_name)
        for u in users
    ]


def directory_status(config: Mapping[str, Any]) -> list[dict[str, Any]]:
    """Config-only view of each directory (no network calls)."""
    status = []
    for directory in DIRECTORIES:
        client = build_client(directory, config)
        if directory == "github":
            ident_key, ident_value = "GITHUB_ORGANIZATION", config.get("GITHUB_ORGANIZATION")
            token_set = bool(config.get("GITHUB_PAT"))
        else:
            ident_key, ident_value = "SLACK_TEAM_ID", config.get("SLACK_TEAM_ID")
            token_set = bool(config.get("SLACK_BOT_TOKEN"))
        status.append(
            {
                "directory": directory,
                "mode": "demo" if client.demo else "live",
                "token_set": token_set,
                "identifier_key": ident_key,
                "identifier": ident_value or "",
                "ready": client.demo or (token_set and bool(ident_value)),
            }
        )
    return status


def directory_config_errors(config: Mapping[str, Any]) -> list[str]:
    """Live credentials without their organization/team id; demo and unset tokens are fine."""
    return [
        f"{row['directory']} token is set but {row['identifier_key']} is missing"
        for row in directory_status(config)
        if row["token_set"] and not row["ready"]
    ]


def _details(result: ReconciliationResult) -> str:
    return json.dumps(
        {
            "added": list(result.added),
            "removed": list(result.removed),
            "failures": [{"action": f.action, "identity": f.identity, "reason": f.reason} for f in result.failures],
        }
    )[:20000]


def run_directory_sync(
    s: "Session",
    *,
    user: User | None,
    directory: str,
    config: Mapping[str, Any],
    client: DirectoryClient | None = None,
) -> tuple[DirectorySyncRun, ReconciliationResult]:
    """
    Admin- or script-triggered reconciliation pass for one directory.
    - Client (and so demo/live mode) is built once per run from config
    - Records a DirectorySyncRun row plus start/finish audit events
    - Caller commits
    """
    if directory not in DIRECTORIES:
        raise ValueError(f"Unknown directory {directory!r}")
    client = client or build_client(directory, config)
    max_workers = int(config.get("DIRECTORY_MAX_WORKERS") or 4)

    record_event(
        s,
        actor=user,
        action="directory_sync.started",
        entity_type="DirectorySync",
        entity_id=directory,
        metadata={"demo": client.demo, "max_workers": max_workers},
    )

    local_users = local_users_for(s, directory)
    start = time.time()
    result = reconcile(client, local_users, max_workers=max_workers)
    duration = int(time.time() - start)

    run = DirectorySyncRun(
        directory=directory,
        demo_mode=client.demo,
        fetch_failed=result.fetch_failed,
        added_count=len(result.added),
        removed_count=len(result.removed),
        failed_count=len(result.failures),
        duration_seconds=duration,
        details_json=_details(result),
        message=result.message,
        triggered_by_user_id=user.id if user else None,
    )
    s.add(run)
    s.flush()

    record_event(
        s,
        actor=user,
        action="directory_sync.aborted" if result.fetch_failed else "directory_sync.completed",
        entity_type="DirectorySyncRun",
        entity_id=str(run.id),
        reason=result.message if result.fetch_failed else None,
        metadata={
            "directory": directory,
            "added": len(result.added),
            "removed": len(result.removed),
            "failed": len(result.failures),
        },
    )
    logger.info("SYNC %s: run id=%s %s (%ss)", directory, run.id, result.message, duration)
    return run, result
