"""
Module: workflow_kernel.selectors.identity_selector
Responsibility: Read-only access to the member/group directory and permission
    grants.  SQL-backed IdentityProvider.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - ``has_permission`` answers for direct member grants only;
      ``group_has_permission`` for one group.  The TransitionAuthorizer
      combines them.
    - ``has_administrative_override`` is True when any code in
      ADMINISTRATIVE_OVERRIDE_CODES is granted to the member or to one of
      the member's groups.  Unknown members have no groups and no grants.
"""

from uuid import UUID

from sqlalchemy import exists, or_, select
from sqlalchemy.orm import Session

from workflow_kernel.domain.identity import ADMINISTRATIVE_OVERRIDE_CODES, Group, Member
from workflow_kernel.models.identity import (
    GroupModel,
    MemberModel,
    PermissionGrantModel,
    group_members,
)
from workflow_kernel.selectors.base import BaseSelector


class IdentitySelector(BaseSelector[MemberModel]):
    """Selector for the identity directory (IdentityProvider)."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_member(self, member_id: UUID) -> Member | None:
        model = self.session.get(MemberModel, member_id)
        return model.to_dto() if model is not None else None

    def find_member_by_email(self, email: str) -> Member | None:
        model = self.session.execute(
            select(MemberModel).where(MemberModel.email == email)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def get_group(self, group_id: UUID) -> Group | None:
        model = self.session.get(GroupModel, group_id)
        return model.to_dto() if model is not None else None

    def find_group_by_code(self, code: str) -> Group | None:
        model = self.session.execute(
            select(GroupModel).where(GroupModel.code == code)
        ).scalar_one_or_none()
        return model.to_dto() if model is not None else None

    def members_of(self, group_id: UUID) -> frozenset[UUID]:
        rows = self.session.execute(
            select(group_members.c.member_id).where(group_members.c.group_id == group_id)
        ).scalars().all()
        return frozenset(rows)

    # IdentityProvider

    def groups_of(self, member_id: UUID) -> frozenset[UUID]:
        rows = self.session.execute(
            select(group_members.c.group_id).where(group_members.c.member_id == member_id)
        ).scalars().all()
        return frozenset(rows)

    def has_permission(self, member_id: UUID, code: str) -> bool:
        return bool(self.session.execute(
            select(exists().where(
                PermissionGrantModel.member_id == member_id,
                PermissionGrantModel.code == code,
            ))
        ).scalar())

    def group_has_permission(self, group_id: UUID, code: str) -> bool:
        return bool(self.session.execute(
            select(exists().where(
                PermissionGrantModel.group_id == group_id,
                PermissionGrantModel.code == code,
            ))
        ).scalar())

    def has_administrative_override(self, member_id: UUID) -> bool:
        member_groups = select(group_members.c.group_id).where(
            group_members.c.member_id == member_id
        )
        return bool(self.session.execute(
            select(exists().where(
                PermissionGrantModel.code.in_(ADMINISTRATIVE_OVERRIDE_CODES),
                or_(
                    PermissionGrantModel.member_id == member_id,
                    PermissionGrantModel.group_id.in_(member_groups),
                ),
            ))
        ).scalar())
