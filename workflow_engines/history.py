"""
workflow_engines.history -- Most-recent relevant action resolution.

Responsibility:
    Scan an instance's action history newest-first and return the most
    recent assignment entry that targets a given member, either directly
    or through one of the member's groups.

Architecture position:
    Engines -- pure resolver layer, zero I/O.
    May only import workflow_kernel/domain/ types.

Invariants enforced:
    - Recency dominates: the newest relevant entry wins regardless of
      whether it matched directly or through a group.
    - Only ``ActionKind.ASSIGN_USERS`` entries are candidates.
    - No partial matches: an entry assigning a foreign member and a
      foreign group is not relevant.

Failure modes:
    - None.  Absence of a relevant entry returns ``None``.
"""

from __future__ import annotations

from collections.abc import Sequence
from uuid import UUID

from workflow_engines.tracer import traced_engine
from workflow_kernel.domain.identity import IdentityProvider
from workflow_kernel.domain.workflow import (
    HistoryReader,
    WorkflowActionInstance,
    WorkflowInstance,
)


def is_relevant(
    entry: WorkflowActionInstance,
    member_id: UUID,
    member_group_ids: frozenset[UUID],
) -> bool:
    """True if an assignment entry targets the member directly or via a group."""
    if not entry.base_action.is_assignment:
        return False
    if member_id in entry.assigned_member_ids:
        return True
    return not entry.assigned_group_ids.isdisjoint(member_group_ids)


@traced_engine("history", "1.0", fingerprint_fields=("member_id", "member_group_ids"))
def most_recent_relevant_action(
    history: Sequence[WorkflowActionInstance],
    member_id: UUID,
    member_group_ids: frozenset[UUID],
) -> WorkflowActionInstance | None:
    """Return the newest history entry relevant to the member, or None.

    Args:
        history: The instance's history, oldest first.
        member_id: The querying member.
        member_group_ids: Every group the member belongs to.
    """
    for entry in reversed(history):
        if is_relevant(entry, member_id, member_group_ids):
            return entry
    return None


class HistoryResolver:
    """Resolves a member's most recent relevant action on an instance."""

    def __init__(self, history: HistoryReader, identity: IdentityProvider) -> None:
        self._history = history
        self._identity = identity

    def most_recent_relevant_action(
        self,
        instance: WorkflowInstance,
        member_id: UUID,
    ) -> WorkflowActionInstance | None:
        history = self._history.history_of(instance.instance_id)
        if not history:
            return None
        return most_recent_relevant_action(
            history, member_id, self._identity.groups_of(member_id),
        )
