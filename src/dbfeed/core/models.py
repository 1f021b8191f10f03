"""
Data models shared by the scanners, resolvers and sinks.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Iterable, Optional


@dataclass(frozen=True, order=True)
class DocId:
    """Opaque, stable identifier of one document."""

    unique_id: str

    def __str__(self) -> str:
        return self.unique_id


@dataclass(frozen=True)
class DocumentRecord:
    """
    One entry pushed to the document sink.

    Attributes:
        doc_id: Identifier of the document
        crawl_immediately: Ask the index to re-fetch the document right away
    """

    doc_id: DocId
    crawl_immediately: bool = False


@dataclass(frozen=True, order=True)
class UserPrincipal:
    """A named user identity."""

    name: str


@dataclass(frozen=True, order=True)
class GroupPrincipal:
    """A named group identity."""

    name: str


@dataclass(frozen=True)
class Acl:
    """
    Access control list of one document.

    An Acl with no principals at all still marks the document as secure;
    the absence of an Acl is what leaves a document public.
    """

    permit_users: frozenset[UserPrincipal] = field(default_factory=frozenset)
    deny_users: frozenset[UserPrincipal] = field(default_factory=frozenset)
    permit_groups: frozenset[GroupPrincipal] = field(default_factory=frozenset)
    deny_groups: frozenset[GroupPrincipal] = field(default_factory=frozenset)

    @classmethod
    def build(
        cls,
        permit_users: Iterable[str] = (),
        deny_users: Iterable[str] = (),
        permit_groups: Iterable[str] = (),
        deny_groups: Iterable[str] = (),
    ) -> "Acl":
        """Build an Acl from plain principal names."""
        return cls(
            permit_users=frozenset(UserPrincipal(n) for n in permit_users),
            deny_users=frozenset(UserPrincipal(n) for n in deny_users),
            permit_groups=frozenset(GroupPrincipal(n) for n in permit_groups),
            deny_groups=frozenset(GroupPrincipal(n) for n in deny_groups),
        )

    @property
    def is_empty(self) -> bool:
        return not (
            self.permit_users or self.deny_users or self.permit_groups or self.deny_groups
        )

    def to_dict(self) -> dict[str, list[str]]:
        """Serialize to sorted name lists, used for feed output and display."""
        return {
            "permit_users": sorted(p.name for p in self.permit_users),
            "deny_users": sorted(p.name for p in self.deny_users),
            "permit_groups": sorted(p.name for p in self.permit_groups),
            "deny_groups": sorted(p.name for p in self.deny_groups),
        }


class Watermark:
    """
    Boundary timestamp of the last successful incremental scan.

    Starts at "now" on construction and has no persistence across
    restarts. Only `advance()` moves it, and every advance is strictly
    greater than the value it replaces.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or datetime.now
        self._value = self._clock()

    @property
    def value(self) -> datetime:
        return self._value

    def advance(self) -> datetime:
        """Move the watermark to the current time and return it."""
        now = self._clock()
        if now <= self._value:
            now = self._value + timedelta(microseconds=1)
        self._value = now
        return now

    def __repr__(self) -> str:
        return f"Watermark({self._value.isoformat()})"
