"""
Module: workflow_kernel.models.identity
Responsibility: ORM persistence for the member/group directory and permission
    grants consumed by the IdentitySelector.

Architecture position: Kernel > Models.  May import from db/base.py only
    (plus domain types for DTO conversion).

Invariants enforced:
    - Member email and group code are unique.
    - A permission grant targets exactly one principal: a member OR a group.
    - UNIQUE(member_id, group_id, code) prevents duplicate grants.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    String,
    Table,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workflow_kernel.db.base import Base, UUIDString
from workflow_kernel.domain.identity import Group, Member

group_members = Table(
    "workflow_group_members",
    Base.metadata,
    Column("group_id", UUIDString(), ForeignKey("workflow_groups.id"), primary_key=True),
    Column("member_id", UUIDString(), ForeignKey("workflow_members.id"), primary_key=True),
)


class MemberModel(Base):
    """Persistent directory member."""

    __tablename__ = "workflow_members"

    email: Mapped[str] = mapped_column(String(254), nullable=False, unique=True)
    first_name: Mapped[str] = mapped_column(String(100), default="", nullable=False)
    surname: Mapped[str] = mapped_column(String(100), default="", nullable=False)

    groups: Mapped[list["GroupModel"]] = relationship(
        "GroupModel",
        secondary=group_members,
        back_populates="members",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Member {self.id} {self.email}>"

    def to_dto(self) -> Member:
        return Member(
            member_id=self.id,
            email=self.email,
            first_name=self.first_name,
            surname=self.surname,
        )


class GroupModel(Base):
    """Persistent directory group."""

    __tablename__ = "workflow_groups"

    code: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    title: Mapped[str] = mapped_column(String(200), default="", nullable=False)

    members: Mapped[list[MemberModel]] = relationship(
        MemberModel,
        secondary=group_members,
        back_populates="groups",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Group {self.id} {self.code}>"

    def to_dto(self) -> Group:
        return Group(group_id=self.id, code=self.code, title=self.title)


class PermissionGrantModel(Base):
    """A permission code granted to a member or to a group."""

    __tablename__ = "workflow_permission_grants"

    __table_args__ = (
        CheckConstraint(
            "(member_id IS NULL) <> (group_id IS NULL)",
            name="ck_permission_grants_one_principal",
        ),
        UniqueConstraint(
            "member_id", "group_id", "code",
            name="uq_permission_grants_principal_code",
        ),
        Index("ix_permission_grants_code", "code"),
    )

    member_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_members.id"), nullable=True,
    )
    group_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_groups.id"), nullable=True,
    )
    code: Mapped[str] = mapped_column(String(100), nullable=False)

    def __repr__(self) -> str:
        principal = f"member={self.member_id}" if self.member_id else f"group={self.group_id}"
        return f"<PermissionGrant {self.code} {principal}>"
