"""
workflow_kernel.services.definition_service -- Definition graph writer.

Responsibility:
    Persists workflow definitions, their actions (graph nodes) and
    transitions (graph edges).  Used by template import and by callers
    that build definitions programmatically.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.

Invariants enforced:
    - ``sort`` of a new action / transition is its insertion index within
      the definition / origin action, so definition-time order survives.
    - A transition's next action belongs to the same definition as its
      origin action.
    - Assignment and restriction references resolve to existing members
      and groups.

Failure modes:
    - DefinitionNotFoundError / ActionNotFoundError on unknown parents.
    - MemberNotFoundError / GroupNotFoundError on unknown principals.
    - TemplateGraphError on a cross-definition transition.
"""

from __future__ import annotations

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select

from workflow_kernel.domain.workflow import (
    ActionKind,
    WorkflowAction,
    WorkflowDefinition,
    WorkflowTransition,
)
from workflow_kernel.exceptions import (
    ActionNotFoundError,
    DefinitionNotFoundError,
    GroupNotFoundError,
    MemberNotFoundError,
    TemplateGraphError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.identity import GroupModel, MemberModel
from workflow_kernel.models.workflow import (
    WorkflowActionModel,
    WorkflowDefinitionModel,
    WorkflowTransitionModel,
)
from workflow_kernel.services.base import BaseService

logger = get_logger("services.definition")


class WorkflowDefinitionService(BaseService[WorkflowDefinitionModel]):
    """Creates definitions and grows their action graph."""

    def create_definition(
        self,
        title: str,
        description: str = "",
        sort: int = 0,
        template_name: str | None = None,
        template_version: str | None = None,
    ) -> WorkflowDefinition:
        model = WorkflowDefinitionModel(
            title=title,
            description=description,
            sort=sort,
            template_name=template_name,
            template_version=template_version,
        )
        self.session.add(model)
        self.session.flush()

        logger.info(
            "definition_created",
            extra={"definition_id": str(model.id), "title": title},
        )
        return model.to_dto()

    def add_action(
        self,
        definition_id: UUID,
        title: str,
        kind: ActionKind = ActionKind.STEP,
        assigned_member_ids: Iterable[UUID] = (),
        assigned_group_ids: Iterable[UUID] = (),
    ) -> WorkflowAction:
        """Append an action to the end of a definition's action order."""
        definition = self.session.get(WorkflowDefinitionModel, definition_id)
        if definition is None:
            raise DefinitionNotFoundError(str(definition_id))

        model = WorkflowActionModel(
            definition=definition,
            title=title,
            sort=self._next_sort(
                WorkflowActionModel.sort,
                WorkflowActionModel.definition_id == definition_id,
            ),
            kind=ActionKind(kind).value,
            assigned_members=self._load_members(assigned_member_ids),
            assigned_groups=self._load_groups(assigned_group_ids),
        )
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def add_transition(
        self,
        action_id: UUID,
        title: str,
        next_action_id: UUID | None = None,
        required_permission: str | None = None,
        restricted_member_ids: Iterable[UUID] = (),
        restricted_group_ids: Iterable[UUID] = (),
    ) -> WorkflowTransition:
        """Append an outgoing transition to an action.

        ``next_action_id=None`` creates a terminal edge.
        """
        action = self.session.get(WorkflowActionModel, action_id)
        if action is None:
            raise ActionNotFoundError(str(action_id))

        if next_action_id is not None:
            next_action = self.session.get(WorkflowActionModel, next_action_id)
            if next_action is None:
                raise ActionNotFoundError(str(next_action_id))
            if next_action.definition_id != action.definition_id:
                raise TemplateGraphError(
                    action.definition.title,
                    [
                        f"transition '{title}' leads to action '{next_action.title}' "
                        f"of another definition"
                    ],
                )

        model = WorkflowTransitionModel(
            action=action,
            next_action_id=next_action_id,
            title=title,
            sort=self._next_sort(
                WorkflowTransitionModel.sort,
                WorkflowTransitionModel.action_id == action_id,
            ),
            required_permission=required_permission,
            restricted_members=self._load_members(restricted_member_ids),
            restricted_groups=self._load_groups(restricted_group_ids),
        )
        self.session.add(model)
        self.session.flush()
        return model.to_dto()

    def _next_sort(self, sort_column, criterion) -> int:
        current = self.session.execute(
            select(func.max(sort_column)).where(criterion)
        ).scalar()
        return 0 if current is None else current + 1

    def _load_members(self, member_ids: Iterable[UUID]) -> list[MemberModel]:
        members = []
        for member_id in member_ids:
            model = self.session.get(MemberModel, member_id)
            if model is None:
                raise MemberNotFoundError(str(member_id))
            members.append(model)
        return members

    def _load_groups(self, group_ids: Iterable[UUID]) -> list[GroupModel]:
        groups = []
        for group_id in group_ids:
            model = self.session.get(GroupModel, group_id)
            if model is None:
                raise GroupNotFoundError(str(group_id))
            groups.append(model)
        return groups
