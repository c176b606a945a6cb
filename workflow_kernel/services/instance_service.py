"""
workflow_kernel.services.instance_service -- Running instance lifecycle.

Responsibility:
    Starts workflow instances against a content record, advances them along
    a transition, and cancels them.  Every executed action is appended to
    the instance's history.

Architecture position:
    Kernel > Services.  May import from domain/, models/, db/.
    Authorization is NOT decided here; WorkflowExecutor re-validates before
    calling ``advance()``.

Invariants enforced:
    - Single writer per instance: ``advance()`` and ``cancel()`` load the
      instance row with ``SELECT ... FOR UPDATE`` before mutating it.
    - A transition is only applied when it leaves the *current* action;
      otherwise StaleTransitionError.
    - History is append-only with a gap-free ``sequence`` per instance;
      UNIQUE(instance_id, sequence) rejects a concurrent divergent append.
    - ASSIGN_USERS entries snapshot the action's assigned members and
      groups at execution time.
    - A terminal transition (no next action) or arrival at an action with
      no outgoing transitions completes the instance.

Failure modes:
    - DefinitionNotFoundError, InstanceNotFoundError on unknown ids.
    - EmptyDefinitionError when starting a definition without actions.
    - InstanceNotActiveError when advancing / cancelling a finished instance.
    - StaleTransitionError when the transition no longer applies.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import func, select

from workflow_kernel.domain.workflow import (
    ActionKind,
    InstanceStatus,
    TERMINAL_INSTANCE_STATUSES,
    TransitionResult,
    WorkflowInstance,
    WorkflowTransition,
)
from workflow_kernel.exceptions import (
    ActionNotFoundError,
    DefinitionNotFoundError,
    EmptyDefinitionError,
    InstanceNotActiveError,
    InstanceNotFoundError,
    StaleTransitionError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.workflow import (
    WorkflowActionInstanceModel,
    WorkflowActionModel,
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
)
from workflow_kernel.services.base import BaseService

logger = get_logger("services.instance")


class WorkflowInstanceService(BaseService[WorkflowInstanceModel]):
    """Persists instance state changes and their action history."""

    def start(
        self,
        definition_id: UUID,
        target_type: str,
        target_id: UUID,
        initiator_id: UUID | None = None,
    ) -> WorkflowInstance:
        """Create an instance positioned at the definition's entry action.

        The entry action is executed immediately and recorded as the first
        history entry.
        """
        definition = self.session.get(WorkflowDefinitionModel, definition_id)
        if definition is None:
            raise DefinitionNotFoundError(str(definition_id))
        if not definition.actions:
            raise EmptyDefinitionError(str(definition_id))

        entry_action = definition.actions[0]
        now = self._clock.now()

        model = WorkflowInstanceModel(
            definition_id=definition_id,
            target_type=target_type,
            target_id=target_id,
            current_action_id=entry_action.id,
            status=InstanceStatus.ACTIVE.value,
            initiator_id=initiator_id,
            created_at=now,
        )
        self.session.add(model)
        self.session.flush()

        self._append_history(model, entry_action, actor_id=initiator_id)
        if not entry_action.transitions:
            model.status = InstanceStatus.COMPLETE.value
            model.updated_at = now
        self.session.flush()

        logger.info(
            "instance_started",
            extra={
                "instance_id": str(model.id),
                "definition_id": str(definition_id),
                "target_type": target_type,
                "target_id": str(target_id),
                "entry_action": entry_action.title,
            },
        )
        return model.to_dto()

    def advance(
        self,
        instance_id: UUID,
        transition: WorkflowTransition,
        actor_id: UUID | None,
        comment: str = "",
    ) -> TransitionResult:
        """Apply a transition to the instance under a row lock."""
        model = self._lock_instance(instance_id)
        self._require_active(model)

        if transition.action_id != model.current_action_id:
            raise StaleTransitionError(
                str(instance_id),
                str(transition.transition_id),
                str(model.current_action_id) if model.current_action_id else None,
            )

        from_action_id = model.current_action_id
        now = self._clock.now()
        entry = None

        if transition.next_action_id is None:
            model.status = InstanceStatus.COMPLETE.value
        else:
            next_action = self.session.get(WorkflowActionModel, transition.next_action_id)
            if next_action is None:
                raise ActionNotFoundError(str(transition.next_action_id))
            entry = self._append_history(model, next_action, actor_id, comment)
            model.current_action_id = next_action.id
            if not next_action.transitions:
                model.status = InstanceStatus.COMPLETE.value

        model.updated_at = now
        self.session.flush()

        logger.info(
            "transition_applied",
            extra={
                "instance_id": str(instance_id),
                "transition_id": str(transition.transition_id),
                "from_action_id": str(from_action_id),
                "to_action_id": str(transition.next_action_id),
                "status": model.status,
            },
        )

        return TransitionResult(
            success=True,
            instance_id=instance_id,
            transition_id=transition.transition_id,
            from_action_id=from_action_id,
            to_action_id=transition.next_action_id,
            status=InstanceStatus(model.status),
            action_instance_id=entry.id if entry is not None else None,
        )

    def cancel(self, instance_id: UUID, actor_id: UUID | None) -> WorkflowInstance:
        model = self._lock_instance(instance_id)
        self._require_active(model)

        model.status = InstanceStatus.CANCELLED.value
        model.updated_at = self._clock.now()
        self.session.flush()

        logger.info(
            "instance_cancelled",
            extra={
                "instance_id": str(instance_id),
                "actor_id": str(actor_id) if actor_id else None,
            },
        )
        return model.to_dto()

    def _lock_instance(self, instance_id: UUID) -> WorkflowInstanceModel:
        model = self.session.execute(
            select(WorkflowInstanceModel)
            .where(WorkflowInstanceModel.id == instance_id)
            .with_for_update()
        ).scalar_one_or_none()
        if model is None:
            raise InstanceNotFoundError(str(instance_id))
        return model

    @staticmethod
    def _require_active(model: WorkflowInstanceModel) -> None:
        if InstanceStatus(model.status) in TERMINAL_INSTANCE_STATUSES:
            raise InstanceNotActiveError(str(model.id), model.status)

    def _append_history(
        self,
        instance: WorkflowInstanceModel,
        action: WorkflowActionModel,
        actor_id: UUID | None,
        comment: str = "",
    ) -> WorkflowActionInstanceModel:
        last_sequence = self.session.execute(
            select(func.max(WorkflowActionInstanceModel.sequence)).where(
                WorkflowActionInstanceModel.instance_id == instance.id
            )
        ).scalar()

        entry = WorkflowActionInstanceModel(
            instance_id=instance.id,
            sequence=(last_sequence or 0) + 1,
            base_action=action,
            executed_at=self._clock.now(),
            actor_id=actor_id,
            comment=comment,
        )
        if action.kind == ActionKind.ASSIGN_USERS.value:
            entry.assigned_members = list(action.assigned_members)
            entry.assigned_groups = list(action.assigned_groups)

        self.session.add(entry)
        self.session.flush()
        return entry
