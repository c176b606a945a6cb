"""
Module: workflow_kernel.models.workflow
Responsibility: ORM persistence for workflow definitions, actions, transitions,
    running instances and their action history.

Architecture position: Kernel > Models.  May import from db/base.py only
    (plus domain types for DTO conversion and the exception hierarchy).

Invariants enforced:
    - Action titles are unique within a definition (templates key by title).
    - Actions and transitions carry an explicit ``sort``; every read path
      orders by it, which preserves definition-time order.
    - History is append-only: UNIQUE(instance_id, sequence) rejects a
      divergent concurrent append, and ORM listeners reject UPDATE/DELETE
      of action-instance rows.
    - Instance status is limited to the InstanceStatus values.

Failure modes:
    - IntegrityError on a duplicate (instance_id, sequence) append.
    - ImmutabilityViolationError on action-instance UPDATE/DELETE.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from workflow_kernel.db.base import Base, UUIDString
from workflow_kernel.domain.workflow import (
    ActionKind,
    InstanceStatus,
    WorkflowAction,
    WorkflowActionInstance,
    WorkflowDefinition,
    WorkflowInstance,
    WorkflowTransition,
)
from workflow_kernel.exceptions import ImmutabilityViolationError
from workflow_kernel.models.identity import GroupModel, MemberModel


def _link_table(name: str, owner: str, owner_table: str, target: str, target_table: str) -> Table:
    return Table(
        name,
        Base.metadata,
        Column(owner, UUIDString(), ForeignKey(f"{owner_table}.id"), primary_key=True),
        Column(target, UUIDString(), ForeignKey(f"{target_table}.id"), primary_key=True),
    )


action_assigned_members = _link_table(
    "workflow_action_assigned_members",
    "action_id", "workflow_actions", "member_id", "workflow_members",
)
action_assigned_groups = _link_table(
    "workflow_action_assigned_groups",
    "action_id", "workflow_actions", "group_id", "workflow_groups",
)
transition_restricted_members = _link_table(
    "workflow_transition_members",
    "transition_id", "workflow_transitions", "member_id", "workflow_members",
)
transition_restricted_groups = _link_table(
    "workflow_transition_groups",
    "transition_id", "workflow_transitions", "group_id", "workflow_groups",
)
history_assigned_members = _link_table(
    "workflow_action_instance_members",
    "action_instance_id", "workflow_action_instances", "member_id", "workflow_members",
)
history_assigned_groups = _link_table(
    "workflow_action_instance_groups",
    "action_instance_id", "workflow_action_instances", "group_id", "workflow_groups",
)


def _ids(models) -> frozenset[UUID]:
    return frozenset(m.id for m in models)


class WorkflowDefinitionModel(Base):
    """Persistent workflow definition (template graph header)."""

    __tablename__ = "workflow_definitions"

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)
    sort: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    template_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    template_version: Mapped[str | None] = mapped_column(String(50), nullable=True)

    actions: Mapped[list["WorkflowActionModel"]] = relationship(
        "WorkflowActionModel",
        back_populates="definition",
        order_by="WorkflowActionModel.sort",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowDefinition {self.id} {self.title!r}>"

    def to_dto(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            definition_id=self.id,
            title=self.title,
            description=self.description,
            sort=self.sort,
            actions=tuple(a.to_dto() for a in self.actions),
        )


class WorkflowActionModel(Base):
    """Persistent workflow action (graph node)."""

    __tablename__ = "workflow_actions"

    __table_args__ = (
        UniqueConstraint("definition_id", "title", name="uq_workflow_actions_title"),
        CheckConstraint(
            "kind IN ('step', 'assign_users', 'notify', 'publish', 'cancel')",
            name="ck_workflow_actions_valid_kind",
        ),
        Index("ix_workflow_actions_definition_sort", "definition_id", "sort"),
    )

    definition_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_definitions.id"), nullable=False,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sort: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    kind: Mapped[str] = mapped_column(String(50), default=ActionKind.STEP.value, nullable=False)

    definition: Mapped[WorkflowDefinitionModel] = relationship(
        WorkflowDefinitionModel, back_populates="actions",
    )
    assigned_members: Mapped[list[MemberModel]] = relationship(
        MemberModel, secondary=action_assigned_members, lazy="selectin",
    )
    assigned_groups: Mapped[list[GroupModel]] = relationship(
        GroupModel, secondary=action_assigned_groups, lazy="selectin",
    )
    transitions: Mapped[list["WorkflowTransitionModel"]] = relationship(
        "WorkflowTransitionModel",
        foreign_keys="WorkflowTransitionModel.action_id",
        back_populates="action",
        order_by="WorkflowTransitionModel.sort",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<WorkflowAction {self.id} {self.title!r} kind={self.kind}>"

    def to_dto(self) -> WorkflowAction:
        return WorkflowAction(
            action_id=self.id,
            definition_id=self.definition_id,
            title=self.title,
            sort=self.sort,
            kind=ActionKind(self.kind),
            assigned_member_ids=_ids(self.assigned_members),
            assigned_group_ids=_ids(self.assigned_groups),
        )


class WorkflowTransitionModel(Base):
    """Persistent workflow transition (graph edge)."""

    __tablename__ = "workflow_transitions"

    __table_args__ = (
        Index("ix_workflow_transitions_action_sort", "action_id", "sort"),
    )

    action_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_actions.id"), nullable=False,
    )
    next_action_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_actions.id"), nullable=True,
    )
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    sort: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    required_permission: Mapped[str | None] = mapped_column(String(100), nullable=True)

    action: Mapped[WorkflowActionModel] = relationship(
        WorkflowActionModel,
        foreign_keys=[action_id],
        back_populates="transitions",
    )
    next_action: Mapped[WorkflowActionModel | None] = relationship(
        WorkflowActionModel, foreign_keys=[next_action_id],
    )
    restricted_members: Mapped[list[MemberModel]] = relationship(
        MemberModel, secondary=transition_restricted_members, lazy="selectin",
    )
    restricted_groups: Mapped[list[GroupModel]] = relationship(
        GroupModel, secondary=transition_restricted_groups, lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowTransition {self.id} {self.title!r} "
            f"{self.action_id} -> {self.next_action_id}>"
        )

    def to_dto(self) -> WorkflowTransition:
        return WorkflowTransition(
            transition_id=self.id,
            action_id=self.action_id,
            title=self.title,
            next_action_id=self.next_action_id,
            sort=self.sort,
            required_permission=self.required_permission,
            restricted_member_ids=_ids(self.restricted_members),
            restricted_group_ids=_ids(self.restricted_groups),
        )


class WorkflowInstanceModel(Base):
    """Persistent running workflow instance bound to a content record."""

    __tablename__ = "workflow_instances"

    __table_args__ = (
        CheckConstraint(
            "status IN ('active', 'complete', 'cancelled')",
            name="ck_workflow_instances_valid_status",
        ),
        Index("ix_workflow_instances_target", "target_type", "target_id", "status"),
    )

    definition_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_definitions.id"), nullable=False,
    )
    target_type: Mapped[str] = mapped_column(String(100), nullable=False)
    target_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)
    current_action_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_actions.id"), nullable=True,
    )
    status: Mapped[str] = mapped_column(
        String(20), default=InstanceStatus.ACTIVE.value, nullable=False,
    )
    initiator_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    history: Mapped[list["WorkflowActionInstanceModel"]] = relationship(
        "WorkflowActionInstanceModel",
        back_populates="instance",
        order_by="WorkflowActionInstanceModel.sequence",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowInstance {self.id} {self.target_type}/{self.target_id} "
            f"status={self.status}>"
        )

    def to_dto(self) -> WorkflowInstance:
        return WorkflowInstance(
            instance_id=self.id,
            definition_id=self.definition_id,
            target_type=self.target_type,
            target_id=self.target_id,
            current_action_id=self.current_action_id,
            status=InstanceStatus(self.status),
            initiator_id=self.initiator_id,
            created_at=self.created_at,
        )


class WorkflowActionInstanceModel(Base):
    """Persistent history entry. Append-only.

    Assigned members and groups are a snapshot taken when the action
    executed; later edits to the action's assignment do not rewrite history.
    """

    __tablename__ = "workflow_action_instances"

    __table_args__ = (
        UniqueConstraint("instance_id", "sequence", name="uq_workflow_history_sequence"),
    )

    instance_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_instances.id"), nullable=False,
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    base_action_id: Mapped[UUID] = mapped_column(
        UUIDString(), ForeignKey("workflow_actions.id"), nullable=False,
    )
    executed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    actor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    comment: Mapped[str] = mapped_column(Text, default="", nullable=False)

    instance: Mapped[WorkflowInstanceModel] = relationship(
        WorkflowInstanceModel, back_populates="history",
    )
    base_action: Mapped[WorkflowActionModel] = relationship(
        WorkflowActionModel, lazy="selectin",
    )
    assigned_members: Mapped[list[MemberModel]] = relationship(
        MemberModel, secondary=history_assigned_members, lazy="selectin",
    )
    assigned_groups: Mapped[list[GroupModel]] = relationship(
        GroupModel, secondary=history_assigned_groups, lazy="selectin",
    )

    def __repr__(self) -> str:
        return (
            f"<WorkflowActionInstance {self.id} instance={self.instance_id} "
            f"seq={self.sequence}>"
        )

    def to_dto(self) -> WorkflowActionInstance:
        return WorkflowActionInstance(
            action_instance_id=self.id,
            instance_id=self.instance_id,
            sequence=self.sequence,
            base_action=self.base_action.to_dto(),
            executed_at=self.executed_at,
            assigned_member_ids=_ids(self.assigned_members),
            assigned_group_ids=_ids(self.assigned_groups),
            actor_id=self.actor_id,
            comment=self.comment,
        )


# =============================================================================
# ORM-Level Immutability for History (Append-Only)
# =============================================================================


@event.listens_for(WorkflowActionInstanceModel, "before_update")
def prevent_history_update(mapper, connection, target):
    """Prevent updates to action history records."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowActionInstance",
        entity_id=str(target.id),
        reason="Action history is append-only -- cannot modify",
    )


@event.listens_for(WorkflowActionInstanceModel, "before_delete")
def prevent_history_delete(mapper, connection, target):
    """Prevent deletion of action history records."""
    raise ImmutabilityViolationError(
        entity_type="WorkflowActionInstance",
        entity_id=str(target.id),
        reason="Action history is append-only -- cannot delete",
    )
