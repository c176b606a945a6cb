"""
Identity types (``workflow_kernel.domain.identity``).

Responsibility
--------------
Member and group value objects, the ``IdentityProvider`` protocol through
which authorizers resolve group memberships and permission grants, and an
in-memory directory implementation.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  The kernel
remains identity-agnostic: it never authenticates anybody; callers supply
a member id and an IdentityProvider.

Invariants enforced
-------------------
* ``has_permission`` answers for *direct* grants only and
  ``group_has_permission`` for a single group; combining them is the
  authorizer's job.
* Any code in ``ADMINISTRATIVE_OVERRIDE_CODES``, granted directly or via a
  group, is an administrative override.  Overrides carry no precedence.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

ADMIN_PERMISSION = "ADMIN"
BYPASS_WORKFLOW_ACL_PERMISSION = "BYPASS_WORKFLOW_ACL"

ADMINISTRATIVE_OVERRIDE_CODES: frozenset[str] = frozenset({
    ADMIN_PERMISSION,
    BYPASS_WORKFLOW_ACL_PERMISSION,
})


@dataclass(frozen=True)
class Member:
    """A directory member."""

    member_id: UUID
    email: str
    first_name: str = ""
    surname: str = ""

    @property
    def display_name(self) -> str:
        name = f"{self.first_name} {self.surname}".strip()
        return name or self.email


@dataclass(frozen=True)
class Group:
    """A directory group; ``code`` is its stable, human-facing key."""

    group_id: UUID
    code: str
    title: str = ""


class IdentityProvider(Protocol):
    """Resolves memberships and permission grants for authorizers."""

    def groups_of(self, member_id: UUID) -> frozenset[UUID]:
        """Return the ids of every group the member belongs to."""
        ...

    def has_permission(self, member_id: UUID, code: str) -> bool:
        """Return True if ``code`` is granted directly to the member."""
        ...

    def group_has_permission(self, group_id: UUID, code: str) -> bool:
        """Return True if ``code`` is granted to the group."""
        ...

    def has_administrative_override(self, member_id: UUID) -> bool:
        """Return True if the member bypasses workflow access checks."""
        ...


class StaticDirectory:
    """In-memory IdentityProvider for embedding and tests."""

    def __init__(self) -> None:
        self._members: dict[UUID, Member] = {}
        self._groups: dict[UUID, Group] = {}
        self._memberships: dict[UUID, set[UUID]] = {}
        self._member_grants: dict[UUID, set[str]] = {}
        self._group_grants: dict[UUID, set[str]] = {}

    def add_member(self, member: Member, permissions: Iterable[str] = ()) -> Member:
        self._members[member.member_id] = member
        self._member_grants.setdefault(member.member_id, set()).update(permissions)
        return member

    def add_group(
        self,
        group: Group,
        members: Iterable[UUID] = (),
        permissions: Iterable[str] = (),
    ) -> Group:
        self._groups[group.group_id] = group
        self._group_grants.setdefault(group.group_id, set()).update(permissions)
        for member_id in members:
            self.add_to_group(member_id, group.group_id)
        return group

    def add_to_group(self, member_id: UUID, group_id: UUID) -> None:
        self._memberships.setdefault(member_id, set()).add(group_id)

    def remove_from_group(self, member_id: UUID, group_id: UUID) -> None:
        self._memberships.get(member_id, set()).discard(group_id)

    def grant(self, member_id: UUID, code: str) -> None:
        self._member_grants.setdefault(member_id, set()).add(code)

    def grant_group(self, group_id: UUID, code: str) -> None:
        self._group_grants.setdefault(group_id, set()).add(code)

    def get_member(self, member_id: UUID) -> Member | None:
        return self._members.get(member_id)

    def members_of(self, group_id: UUID) -> frozenset[UUID]:
        return frozenset(
            member_id
            for member_id, groups in self._memberships.items()
            if group_id in groups
        )

    # IdentityProvider

    def groups_of(self, member_id: UUID) -> frozenset[UUID]:
        return frozenset(self._memberships.get(member_id, ()))

    def has_permission(self, member_id: UUID, code: str) -> bool:
        return code in self._member_grants.get(member_id, ())

    def group_has_permission(self, group_id: UUID, code: str) -> bool:
        return code in self._group_grants.get(group_id, ())

    def has_administrative_override(self, member_id: UUID) -> bool:
        for code in ADMINISTRATIVE_OVERRIDE_CODES:
            if self.has_permission(member_id, code):
                return True
            if any(self.group_has_permission(g, code) for g in self.groups_of(member_id)):
                return True
        return False
