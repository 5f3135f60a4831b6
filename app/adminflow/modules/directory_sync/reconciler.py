"""
Membership reconciliation: make a directory's members equal the set of active
local users that have an identity in that directory.

Best-effort convergence, not a transaction:
- every add finishes before the first remove is issued
- a failed add/remove is recorded and the pass keeps going
- if the current member list cannot be fetched, nothing is touched
"""
from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

from app.adminflow.modules.directory_sync.clients.base import DirectoryClient, DirectoryOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocalUser:
    external_id: str | None
    is_active: bool
    display_name: str = ""


@dataclass(frozen=True)
class FailedOperation:
    action: str  # "add" | "remove"
    identity: str
    reason: str


@dataclass(frozen=True)
class ReconciliationResult:
    directory: str
    added: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()
    fetch_failed: bool = False
    failures: tuple[FailedOperation, ...] = ()
    message: str | None = None

    @property
    def is_noop(self) -> bool:
        return not self.added and not self.removed


def desired_identities(client: DirectoryClient, users: Iterable[LocalUser]) -> dict[str, LocalUser]:
    """Normalized identity -> first active local user carrying it."""
    desired: dict[str, LocalUser] = {}
    for u in users:
        if not u.is_active or not u.external_id:
            continue
        key = client.normalize_identity(u.external_id)
        if key and key not in desired:
            desired[key] = u
    return desired


def _run_phase(
    action: str,
    items: list[tuple[str, Callable[[], DirectoryOutcome]]],
    *,
    max_workers: int,
) -> tuple[list[str], list[FailedOperation]]:
    done: list[str] = []
    failed: list[FailedOperation] = []
    if not items:
        return done, failed

    def _safe(call: Callable[[], DirectoryOutcome]) -> DirectoryOutcome:
        # Clients report failures as outcomes; a raise here still must not stop the phase.
        try:
            return call()
        except Exception as e:
            logger.exception("Unexpected error during directory %s", action)
            return DirectoryOutcome.failure(f"unexpected error: {e}")

    if max_workers <= 1:
        outcomes = [_safe(call) for _, call in items]
    else:
        with ThreadPoolExecutor(max_workers=min(max_workers, len(items))) as pool:
            outcomes = list(pool.map(_safe, [call for _, call in items]))

    for (identity, _), outcome in zip(items, outcomes):
        if outcome:
            done.append(identity)
        else:
            failed.append(FailedOperation(action, identity, outcome.reason or "unknown error"))
    return done, failed


def reconcile(
    client: DirectoryClient,
    users: Iterable[LocalUser],
    *,
    max_workers: int = 4,
) -> ReconciliationResult:
    users = tuple(users)
    listing = client.list_members()
    if not listing.ok:
        message = f"{client.name} directory unreachable; no changes made ({listing.reason or 'unknown error'})"
        logger.error("SYNC %s: %s", client.name, message)
        return ReconciliationResult(directory=client.name, fetch_failed=True, message=message)

    desired = desired_identities(client, users)
    present: dict[str, str] = {}
    for member in listing:
        key = client.normalize_identity(member.identity)
        if key:
            present.setdefault(key, member.identity)

    to_add = sorted(set(desired) - set(present))
    to_remove = sorted(set(present) - set(desired))
    logger.info(
        "SYNC %s: %d local users, %d desired, %d present, %d to add, %d to remove",
        client.name,
        len(users),
        len(desired),
        len(present),
        len(to_add),
        len(to_remove),
    )

    def _add(identity: str) -> Callable[[], DirectoryOutcome]:
        local = desired[identity]
        attributes = {"real_name": local.display_name} if local.display_name else {}
        return lambda: client.add_member(identity, attributes)

    def _remove(identity: str) -> Callable[[], DirectoryOutcome]:
        return lambda: client.remove_member(present[identity])

    # The add phase drains completely before any remove is issued.
    added, add_failures = _run_phase("add", [(i, _add(i)) for i in to_add], max_workers=max_workers)
    removed, remove_failures = _run_phase("remove", [(i, _remove(i)) for i in to_remove], max_workers=max_workers)

    failures = tuple(add_failures + remove_failures)
    for f in failures:
        logger.warning("SYNC %s: %s %s failed: %s", client.name, f.action, f.identity, f.reason)

    return ReconciliationResult(
        directory=client.name,
        added=tuple(sorted(added)),
        removed=tuple(sorted(removed)),
        failures=failures,
        message=f"added={len(added)} removed={len(removed)} failed={len(failures)}",
    )
