"""
workflow_services.workflow_executor -- Workflow instance coordination.

Responsibility:
    Answers the per-member questions about a running instance (most recent
    relevant action, view access, valid transitions) and fires transitions
    with fire-time re-validation.  Thin coordinator -- decisions are made by
    the pure engines in workflow_engines, reads go through the kernel
    selectors, persistence through WorkflowInstanceService.

Architecture position:
    Services layer.  May import from workflow_engines/ (pure resolvers)
    and workflow_kernel/ (domain, selectors, services).

Invariants enforced:
    - Listing transitions and firing one are separate calls; firing
      re-validates against the current graph, history and identity state.
    - A transition that does not exist raises TransitionNotFoundError; one
      that no longer leaves the current action raises StaleTransitionError;
      a member who neither started nor may view the instance gets
      InstanceAccessDeniedError; one the member may not take raises
      TransitionNotAuthorizedError.  All of these are AuthorizationErrors.
    - Listing and firing apply the same instance access gate.
    - Every fire attempt emits one structured ``workflow_transition`` trace
      record, including the failed ones.
"""

from __future__ import annotations

import time
from typing import Any, Callable
from uuid import UUID

from sqlalchemy.orm import Session

from workflow_engines import (
    HistoryResolver,
    InstanceAuthorizer,
    TransitionAuthorizer,
    ValidTransitionsResolver,
)
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.identity import IdentityProvider
from workflow_kernel.domain.workflow import (
    TransitionResult,
    WorkflowActionInstance,
    WorkflowInstance,
    WorkflowTransition,
)
from workflow_kernel.exceptions import (
    InstanceAccessDeniedError,
    InstanceNotActiveError,
    StaleTransitionError,
    TransitionNotAuthorizedError,
)
from workflow_kernel.logging_config import LogContext, get_logger
from workflow_kernel.selectors import (
    IdentitySelector,
    WorkflowGraphSelector,
    WorkflowHistorySelector,
)
from workflow_kernel.services.instance_service import WorkflowInstanceService

logger = get_logger("services.workflow_executor")

# Trace message and outcome codes for structured logging and traceability
TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_NOT_AUTHORIZED = "not_authorized"
OUTCOME_STALE = "stale"
OUTCOME_NOT_ACTIVE = "not_active"


class WorkflowExecutor:
    """Coordinates read-side resolution and fire-time execution for instances.

    ``identity`` defaults to the SQL-backed IdentitySelector on the same
    session.  An injected provider must also offer ``members_of(group_id)``
    for ``assigned_members()``.
    """

    def __init__(
        self,
        session: Session,
        identity: IdentityProvider | None = None,
        clock: Clock | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._outcome_sink = outcome_sink

        self._graph = WorkflowGraphSelector(session)
        self._instances = WorkflowHistorySelector(session)
        self._identity = identity or IdentitySelector(session)

        self._history = HistoryResolver(self._instances, self._identity)
        self._transition_authorizer = TransitionAuthorizer(self._identity)
        self._instance_authorizer = InstanceAuthorizer(self._history, self._identity)
        self._resolver = ValidTransitionsResolver(self._graph, self._transition_authorizer)
        self._instance_service = WorkflowInstanceService(session, self._clock)

    # ------------------------------------------------------------------
    # Read-side questions
    # ------------------------------------------------------------------

    def get_instance(self, instance_id: UUID) -> WorkflowInstance:
        return self._instances.get_instance(instance_id)

    def most_recent_action_for(
        self,
        instance_id: UUID,
        member_id: UUID,
    ) -> WorkflowActionInstance | None:
        """Newest assignment entry naming the member directly or via a group."""
        instance = self._instances.get_instance(instance_id)
        return self._history.most_recent_relevant_action(instance, member_id)

    def can_view(self, instance_id: UUID, member_id: UUID) -> bool:
        instance = self._instances.get_instance(instance_id)
        return self._instance_authorizer.can_view(instance, member_id)

    def valid_transitions(
        self,
        instance_id: UUID,
        member_id: UUID,
    ) -> tuple[WorkflowTransition, ...]:
        """Outgoing transitions of the current action the member may take.

        Definition-time order is preserved.  Finished instances, and members
        who neither started nor may view the instance, yield ().
        """
        instance = self._instances.get_instance(instance_id)
        if not self._instance_authorizer.may_act(instance, member_id):
            return ()
        return self._resolver.valid_transitions(instance, member_id)

    def assigned_members(self, instance_id: UUID) -> frozenset[UUID]:
        """Members named by the most recent assignment, groups expanded."""
        for entry in reversed(self._instances.history_of(instance_id)):
            if entry.base_action.is_assignment:
                members = set(entry.assigned_member_ids)
                for group_id in entry.assigned_group_ids:
                    members |= self._identity.members_of(group_id)
                return frozenset(members)
        return frozenset()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start_workflow(
        self,
        definition_id: UUID,
        target_type: str,
        target_id: UUID,
        initiator_id: UUID | None = None,
    ) -> WorkflowInstance:
        return self._instance_service.start(
            definition_id, target_type, target_id, initiator_id,
        )

    def cancel_workflow(self, instance_id: UUID, member_id: UUID) -> WorkflowInstance:
        """Cancel an instance.

        Allowed for administrators, the initiator, and anyone who may view
        the instance.
        """
        instance = self._instances.get_instance(instance_id)
        if not self._instance_authorizer.may_act(instance, member_id):
            logger.warning(
                "cancel_denied",
                extra={"instance_id": str(instance_id), "member_id": str(member_id)},
            )
            raise InstanceAccessDeniedError(str(instance_id), str(member_id), "cancel")
        return self._instance_service.cancel(instance_id, member_id)

    def execute_transition(
        self,
        instance_id: UUID,
        transition_id: UUID,
        member_id: UUID,
        comment: str = "",
    ) -> TransitionResult:
        """Fire a transition on behalf of a member.

        The member's right to take the transition is re-evaluated here, not
        trusted from an earlier ``valid_transitions()`` listing.

        Raises:
            InstanceNotFoundError / TransitionNotFoundError: unknown ids.
            InstanceNotActiveError: the instance is completed or cancelled.
            StaleTransitionError: the transition does not leave the current
                action (the instance advanced since it was listed).
            InstanceAccessDeniedError: the member neither started nor may
                view the instance.
            TransitionNotAuthorizedError: the member may not take it.

        Every failure after the lookups is an ``AuthorizationError``.
        """
        with LogContext.bind(instance_id=str(instance_id), member_id=str(member_id)):
            t0 = time.monotonic()
            instance = self._instances.get_instance(instance_id)
            transition = self._graph.get_transition(transition_id)

            if not instance.is_active:
                self._emit_trace(
                    instance, transition, member_id, OUTCOME_NOT_ACTIVE,
                    f"Instance is {instance.status.value}", t0,
                )
                raise InstanceNotActiveError(str(instance_id), instance.status.value)

            if transition.action_id != instance.current_action_id:
                self._emit_trace(
                    instance, transition, member_id, OUTCOME_STALE,
                    "Transition does not leave the current action", t0,
                )
                raise StaleTransitionError(
                    str(instance_id), str(transition_id), str(instance.current_action_id),
                )

            if not self._instance_authorizer.may_act(instance, member_id):
                self._emit_trace(
                    instance, transition, member_id, OUTCOME_NOT_AUTHORIZED,
                    "Member may not act on this instance", t0,
                )
                logger.warning(
                    "transition_denied",
                    extra={
                        "transition_id": str(transition_id),
                        "transition": transition.title,
                    },
                )
                raise InstanceAccessDeniedError(
                    str(instance_id), str(member_id), "transition",
                )

            if not self._resolver.is_valid_transition(instance, transition_id, member_id):
                self._emit_trace(
                    instance, transition, member_id, OUTCOME_NOT_AUTHORIZED,
                    "Member may not take this transition", t0,
                )
                logger.warning(
                    "transition_denied",
                    extra={
                        "transition_id": str(transition_id),
                        "transition": transition.title,
                    },
                )
                raise TransitionNotAuthorizedError(str(transition_id), str(member_id))

            try:
                result = self._instance_service.advance(
                    instance_id, transition, member_id, comment,
                )
            except StaleTransitionError:
                # Lost the race for the row lock
                self._emit_trace(
                    instance, transition, member_id, OUTCOME_STALE,
                    "Instance advanced concurrently", t0,
                )
                raise

            self._emit_trace(
                instance, transition, member_id, OUTCOME_SUCCESS, "", t0,
                result=result,
            )
            logger.info(
                "transition_fired",
                extra={
                    "transition_id": str(transition_id),
                    "transition": transition.title,
                    "status": result.status.value if result.status else None,
                },
            )
            return result

    def _emit_trace(
        self,
        instance: WorkflowInstance,
        transition: WorkflowTransition,
        member_id: UUID,
        outcome: str,
        reason: str,
        t0: float,
        result: TransitionResult | None = None,
    ) -> None:
        """Emit a structured workflow transition record for traceability."""
        record: dict[str, Any] = {
            "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
            "ts": self._clock.now().isoformat(),
            "definition_id": str(instance.definition_id),
            "target_type": instance.target_type,
            "target_id": str(instance.target_id),
            "transition_id": str(transition.transition_id),
            "transition": transition.title,
            "from_action_id": str(instance.current_action_id),
            "actor_id": str(member_id),
            "outcome": outcome,
            "reason": reason,
            "duration_ms": round((time.monotonic() - t0) * 1000, 3),
        }
        if result is not None:
            record["to_action_id"] = (
                str(result.to_action_id) if result.to_action_id else None
            )
            record["status"] = result.status.value if result.status else None
        record.update(LogContext.get_all())
        logger.info("workflow_transition", extra=record)
        record["message"] = "workflow_transition"
        if self._outcome_sink is not None:
            self._outcome_sink(record)
