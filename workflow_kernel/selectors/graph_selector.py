"""
Module: workflow_kernel.selectors.graph_selector
Responsibility: Read-only access to workflow definitions, actions and
    transitions.  SQL-backed ActionGraphReader.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - Actions and transitions are returned ordered by ``sort`` (definition-
      time order).
    - ``actions_of`` / ``transitions_of`` return empty tuples for unknown ids;
      the ``get_*`` lookups raise typed NotFound errors.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_kernel.domain.workflow import (
    WorkflowAction,
    WorkflowDefinition,
    WorkflowTransition,
)
from workflow_kernel.exceptions import (
    ActionNotFoundError,
    DefinitionNotFoundError,
    TransitionNotFoundError,
)
from workflow_kernel.models.workflow import (
    WorkflowActionModel,
    WorkflowDefinitionModel,
    WorkflowTransitionModel,
)
from workflow_kernel.selectors.base import BaseSelector


class WorkflowGraphSelector(BaseSelector[WorkflowDefinitionModel]):
    """Selector for the definition graph (ActionGraphReader)."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_definition(self, definition_id: UUID) -> WorkflowDefinition:
        model = self.session.get(WorkflowDefinitionModel, definition_id)
        if model is None:
            raise DefinitionNotFoundError(str(definition_id))
        return model.to_dto()

    def list_definitions(self) -> list[WorkflowDefinition]:
        models = self.session.execute(
            select(WorkflowDefinitionModel).order_by(
                WorkflowDefinitionModel.sort, WorkflowDefinitionModel.title,
            )
        ).scalars().all()
        return [m.to_dto() for m in models]

    def find_definition_by_title(self, title: str) -> WorkflowDefinition | None:
        model = self.session.execute(
            select(WorkflowDefinitionModel).where(WorkflowDefinitionModel.title == title)
        ).scalars().first()
        return model.to_dto() if model is not None else None

    def get_action(self, action_id: UUID) -> WorkflowAction:
        model = self.session.get(WorkflowActionModel, action_id)
        if model is None:
            raise ActionNotFoundError(str(action_id))
        return model.to_dto()

    def get_transition(self, transition_id: UUID) -> WorkflowTransition:
        model = self.session.get(WorkflowTransitionModel, transition_id)
        if model is None:
            raise TransitionNotFoundError(str(transition_id))
        return model.to_dto()

    def actions_of(self, definition_id: UUID) -> tuple[WorkflowAction, ...]:
        models = self.session.execute(
            select(WorkflowActionModel)
            .where(WorkflowActionModel.definition_id == definition_id)
            .order_by(WorkflowActionModel.sort)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def transitions_of(self, action_id: UUID) -> tuple[WorkflowTransition, ...]:
        models = self.session.execute(
            select(WorkflowTransitionModel)
            .where(WorkflowTransitionModel.action_id == action_id)
            .order_by(WorkflowTransitionModel.sort)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)

    def transitions_of_definition(
        self,
        definition_id: UUID,
    ) -> dict[UUID, tuple[WorkflowTransition, ...]]:
        """All transitions of a definition, keyed by origin action id."""
        return {
            action.action_id: self.transitions_of(action.action_id)
            for action in self.actions_of(definition_id)
        }
