"""
Shared contract for external membership directories (GitHub org, Slack workspace).

Clients never raise across their public methods. Mutations return a
DirectoryOutcome (truthy on success) and listings return a MemberListing whose
``ok`` flag separates "directory is empty" from "fetch failed".
"""
from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol


class DirectoryError(RuntimeError):
    pass


class TransientDirectoryError(DirectoryError):
    """Network or API failure on a single directory call."""


class AmbiguousMembershipError(DirectoryError):
    """The directory could not say whether an identity is a member (e.g. private membership)."""


class DirectoryConfigurationError(DirectoryError):
    """Live mode without the token or org/workspace id needed to build a request."""


def is_demo_credential(value: str | None, marker: str) -> bool:
    return bool(value) and str(value).strip().startswith(marker)


@dataclass(frozen=True)
class DirectoryMember:
    identity: str
    attributes: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class DirectoryOutcome:
    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> "DirectoryOutcome":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "DirectoryOutcome":
        return cls(ok=False, reason=reason)

    def __bool__(self) -> bool:
        return self.ok


@dataclass(frozen=True)
class MemberListing:
    ok: bool
    members: tuple[DirectoryMember, ...] = ()
    reason: str | None = None

    @classmethod
    def of(cls, members) -> "MemberListing":
        return cls(ok=True, members=tuple(members))

    @classmethod
    def failed(cls, reason: str) -> "MemberListing":
        return cls(ok=False, members=(), reason=reason)

    def __iter__(self) -> Iterator[DirectoryMember]:
        return iter(self.members)

    def __len__(self) -> int:
        return len(self.members)


class DirectoryClient(Protocol):
    name: str
    demo: bool

    def normalize_identity(self, identity: str) -> str:
        ...

    def is_member(self, identity: str) -> bool:
        ...

    def add_member(self, identity: str, attributes: Mapping[str, Any] | None = None) -> DirectoryOutcome:
        ...

    def remove_member(self, identity: str) -> DirectoryOutcome:
        ...

    def list_members(self) -> MemberListing:
        ...
