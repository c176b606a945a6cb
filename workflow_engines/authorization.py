"""
workflow_engines.authorization -- Transition and instance authorizers.

Responsibility:
    Decide whether a member may take a transition (permission code and
    optional member/group restriction) and whether a member may view or
    act on an instance (relevant assignment history).

Architecture position:
    Engines -- pure resolver layer, zero I/O.  Capability lookups go
    through the constructor-injected ``IdentityProvider``.

Invariants enforced:
    - Administrative override is checked first and always grants.
    - A permission code is held if granted directly or to any of the
      member's groups.
    - A transition with a permission code AND a restriction requires both.
    - ``can_view`` is True iff the history resolver finds a relevant entry
      (absent an override).  Record ownership grants nothing.
    - ``may_act`` additionally admits the instance initiator, so the member
      who started an instance can move it out of an unassigned first step.

Failure modes:
    - None.  Denial is a ``False`` return, never an exception.
"""

from __future__ import annotations

from uuid import UUID

from workflow_engines.history import HistoryResolver
from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.identity import IdentityProvider
from workflow_kernel.domain.workflow import WorkflowInstance, WorkflowTransition


class TransitionAuthorizer:
    """Decides whether a member is permitted to take a transition."""

    def __init__(self, identity: IdentityProvider) -> None:
        self._identity = identity

    def holds_permission(self, member_id: UUID, code: str) -> bool:
        """True if ``code`` is granted to the member directly or via a group."""
        if self._identity.has_permission(member_id, code):
            return True
        return any(
            self._identity.group_has_permission(group_id, code)
            for group_id in self._identity.groups_of(member_id)
        )

    @traced_engine("transition_authorizer", "1.0", fingerprint_fields=("transition", "member_id"))
    def may_transition(self, transition: WorkflowTransition, member_id: UUID) -> bool:
        if self._identity.has_administrative_override(member_id):
            return True

        if transition.required_permission is not None:
            if not self.holds_permission(member_id, transition.required_permission):
                return False

        if transition.is_restricted:
            if member_id in transition.restricted_member_ids:
                return True
            groups = self._identity.groups_of(member_id)
            return not transition.restricted_group_ids.isdisjoint(groups)

        return True


class InstanceAuthorizer:
    """Decides whether a member may view or act on a workflow instance."""

    def __init__(self, history: HistoryResolver, identity: IdentityProvider) -> None:
        self._history = history
        self._identity = identity

    @traced_engine("instance_authorizer", "1.0", fingerprint_fields=("instance", "member_id"))
    def can_view(self, instance: WorkflowInstance, member_id: UUID) -> bool:
        if self._identity.has_administrative_override(member_id):
            return True
        return self._history.most_recent_relevant_action(instance, member_id) is not None

    def may_act(self, instance: WorkflowInstance, member_id: UUID) -> bool:
        """Initiator or viewer.  Gates firing, listing and cancelling."""
        if member_id is not None and instance.initiator_id == member_id:
            return True
        return self.can_view(instance, member_id)
