from __future__ import annotations

import logging
import urllib.parse
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

from app.adminflow.modules.directory_sync.clients.base import (
    AmbiguousMembershipError,
    DirectoryConfigurationError,
    DirectoryError,
    DirectoryMember,
    DirectoryOutcome,
    MemberListing,
    TransientDirectoryError,
    is_demo_credential,
)
from app.adminflow.modules.directory_sync.clients.http import DirectoryHTTPError, build_url, request_json

logger = logging.getLogger(__name__)

DEMO_MARKER = "placeholder"
DEMO_ROSTER: tuple[tuple[str, str], ...] = (
    ("demo-user", "member"),
    ("test-user", "member"),
    ("admin-user", "admin"),
)
VALID_ROLES = ("admin", "member")


def _quote(value: str) -> str:
    return urllib.parse.quote(value, safe="")


@dataclass(frozen=True)
class GitHubOrgClient:
    """
    GitHub organization membership, keyed by login. Logins are compared as-is.
    """

    token: str
    organization: str
    demo: bool = False
    base_url: str = "https://api.github.com"
    timeout_seconds: float = 15
    page_size: int = 100
    max_pages: int = 50

    name: ClassVar[str] = "github"

    def normalize_identity(self, identity: str) -> str:
        return (identity or "").strip()

    def _require_config(self) -> None:
        if not self.organization:
            raise DirectoryConfigurationError("GITHUB_ORGANIZATION is not set.")
        if not self.token:
            raise DirectoryConfigurationError("GITHUB_PAT is not set.")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "User-Agent": "adminflow-directory-sync",
        }

    def _call(self, method: str, path: str, *, params: dict[str, Any] | None = None, body: dict[str, Any] | None = None):
        self._require_config()
        url = build_url(self.base_url, f"/orgs/{_quote(self.organization)}{path}", params)
        return request_json(method, url, headers=self._headers(), body=body, timeout=self.timeout_seconds)

    def is_member(self, identity: str) -> bool:
        username = self.normalize_identity(identity)
        if not username:
            return False
        if self.demo:
            logger.info("[DEMO] Checking if %s is in organization %s", username, self.organization)
            return username in {login for login, _ in DEMO_ROSTER}
        try:
            # 204 = member, 404 = not a member. urllib follows the 302 GitHub sends a non-member token to
            # /public_members/{user}, so a private membership surfaces as 404 and fails closed.
            status, _ = self._call("GET", f"/members/{_quote(username)}")
            if status != 204:
                raise AmbiguousMembershipError(f"Unexpected status {status} checking {username}")
            return True
        except DirectoryHTTPError as e:
            if e.status != 404:
                logger.warning("GitHub membership check for %s failed: %s", username, e)
            return False
        except DirectoryError as e:
            logger.warning("GitHub membership check for %s inconclusive: %s", username, e)
            return False

    def add_member(self, identity: str, attributes: Mapping[str, Any] | None = None) -> DirectoryOutcome:
        username = self.normalize_identity(identity)
        role = str((attributes or {}).get("role") or "member").strip().lower()
        if role not in VALID_ROLES:
            return DirectoryOutcome.failure(f"Invalid role {role!r}; expected one of {', '.join(VALID_ROLES)}")
        if self.demo:
            logger.info("[DEMO] Adding %s to organization %s with role %s", username, self.organization, role)
            return DirectoryOutcome.success()
        try:
            self._call("PUT", f"/memberships/{_quote(username)}", body={"role": role})
        except DirectoryError as e:
            logger.error("Failed to add %s to organization %s: %s", username, self.organization, e)
            return DirectoryOutcome.failure(str(e))
        logger.info("Added %s to organization %s (role=%s)", username, self.organization, role)
        return DirectoryOutcome.success()

    def remove_member(self, identity: str) -> DirectoryOutcome:
        username = self.normalize_identity(identity)
        if self.demo:
            logger.info("[DEMO] Removing %s from organization %s", username, self.organization)
            return DirectoryOutcome.success()
        try:
            self._call("DELETE", f"/memberships/{_quote(username)}")
        except DirectoryError as e:
            logger.error("Failed to remove %s from organization %s: %s", username, self.organization, e)
            return DirectoryOutcome.failure(str(e))
        logger.info("Removed %s from organization %s", username, self.organization)
        return DirectoryOutcome.success()

    def _list_logins(self, *, role: str | None = None) -> list[str]:
        logins: list[str] = []
        for page in range(1, self.max_pages + 1):
            _, payload = self._call("GET", "/members", params={"role": role, "per_page": self.page_size, "page": page})
            if not isinstance(payload, list):
                raise TransientDirectoryError(f"Malformed member page {page} from organization {self.organization}")
            logins.extend(str(m["login"]) for m in payload if isinstance(m, dict) and m.get("login"))
            if len(payload) < self.page_size:
                return logins
        # A truncated roster would look like departed members; refuse it.
        raise DirectoryError(f"Member list exceeds {self.max_pages} pages of {self.page_size}")

    def list_members(self) -> MemberListing:
        if self.demo:
            logger.info("[DEMO] Listing members of organization %s", self.organization)
            return MemberListing.of(DirectoryMember(login, {"role": role}) for login, role in DEMO_ROSTER)
        try:
            logins = self._list_logins()
            admins = set(self._list_logins(role="admin"))
        except DirectoryError as e:
            logger.error("Failed to list members of organization %s: %s", self.organization, e)
            return MemberListing.failed(str(e))
        return MemberListing.of(
            DirectoryMember(login, {"role": "admin" if login in admins else "member"}) for login in logins
        )


def github_client_from_config(config: Mapping[str, Any]) -> GitHubOrgClient:
    token = (config.get("GITHUB_PAT") or "").strip()
    return GitHubOrgClient(
        token=token,
        organization=(config.get("GITHUB_ORGANIZATION") or "").strip(),
        demo=is_demo_credential(token, DEMO_MARKER),
        base_url=(config.get("GITHUB_API_URL") or "https://api.github.com").strip(),
        timeout_seconds=float(config.get("DIRECTORY_TIMEOUT_SECONDS") or 15),
    )
