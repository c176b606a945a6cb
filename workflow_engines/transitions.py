"""
workflow_engines.transitions -- Valid-transitions resolution.

Responsibility:
    Compute, per member, the transition function of an instance's state
    machine: the outgoing transitions of the current action that the
    member is authorized to take.

Architecture position:
    Engines -- pure resolver layer, zero I/O.  Graph reads go through the
    constructor-injected ``ActionGraphReader``.

Invariants enforced:
    - Definition-time transition order is preserved; the authorized subset
      is never reordered.
    - A completed or cancelled instance, an instance without a current
      action, and a terminal action all yield ``()``.
    - ``is_valid_transition`` answers from the same computation as
      ``valid_transitions`` so fire-time re-validation cannot diverge from
      the listing.

Failure modes:
    - None.  "Nothing allowed" is an empty tuple.
"""

from __future__ import annotations

from uuid import UUID

from workflow_engines.authorization import TransitionAuthorizer
from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.workflow import (
    ActionGraphReader,
    WorkflowInstance,
    WorkflowTransition,
)


class ValidTransitionsResolver:
    """Filters an instance's outgoing transitions down to those a member may take."""

    def __init__(self, graph: ActionGraphReader, authorizer: TransitionAuthorizer) -> None:
        self._graph = graph
        self._authorizer = authorizer

    def outgoing_transitions(self, instance: WorkflowInstance) -> tuple[WorkflowTransition, ...]:
        """All transitions leaving the current action, unfiltered."""
        if not instance.is_active or instance.current_action_id is None:
            return ()
        return tuple(self._graph.transitions_of(instance.current_action_id))

    @traced_engine("valid_transitions", "1.0", fingerprint_fields=("instance", "member_id"))
    def valid_transitions(
        self,
        instance: WorkflowInstance,
        member_id: UUID,
    ) -> tuple[WorkflowTransition, ...]:
        return tuple(
            transition
            for transition in self.outgoing_transitions(instance)
            if self._authorizer.may_transition(transition, member_id)
        )

    def is_valid_transition(
        self,
        instance: WorkflowInstance,
        transition_id: UUID,
        member_id: UUID,
    ) -> bool:
        return any(
            t.transition_id == transition_id
            for t in self.valid_transitions(instance, member_id)
        )
