"""
Canonical workflow types (``workflow_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for workflow definitions (actions and transitions),
running instances and their append-only action history, plus the reader
protocols through which the engines consume a materialized graph.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``models/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* ``ActionGraph.actions_of`` / ``transitions_of`` return definition-time
  order (``sort`` ascending, insertion order for ties).
* ``InMemoryHistory.append`` rejects a non-increasing ``sequence`` --
  history is strictly ordered and append-only.
* A transition's ``next_action_id`` belongs to the same definition as its
  origin action (enforced at template import, assumed here).
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Protocol
from uuid import UUID


class ActionKind(str, Enum):
    """Variant tag for workflow actions."""

    STEP = "step"
    ASSIGN_USERS = "assign_users"
    NOTIFY = "notify"
    PUBLISH = "publish"
    CANCEL = "cancel"


class InstanceStatus(str, Enum):
    """Lifecycle states of a running workflow instance."""

    ACTIVE = "active"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


TERMINAL_INSTANCE_STATUSES: frozenset[InstanceStatus] = frozenset({
    InstanceStatus.COMPLETE,
    InstanceStatus.CANCELLED,
})


# =========================================================================
# Definition graph
# =========================================================================


@dataclass(frozen=True)
class WorkflowAction:
    """A node in a definition graph.

    ``assigned_member_ids`` / ``assigned_group_ids`` are only meaningful for
    ``ActionKind.ASSIGN_USERS``; they are snapshotted onto the history entry
    when the action executes.
    """

    action_id: UUID
    definition_id: UUID
    title: str
    sort: int = 0
    kind: ActionKind = ActionKind.STEP
    assigned_member_ids: frozenset[UUID] = frozenset()
    assigned_group_ids: frozenset[UUID] = frozenset()

    @property
    def is_assignment(self) -> bool:
        return self.kind == ActionKind.ASSIGN_USERS


@dataclass(frozen=True)
class WorkflowTransition:
    """A directed, optionally permission-gated edge between two actions.

    ``next_action_id`` of None marks a terminal edge.  When
    ``restricted_member_ids`` or ``restricted_group_ids`` is non-empty the
    transition is further limited to those members / group members.
    """

    transition_id: UUID
    action_id: UUID
    title: str
    next_action_id: UUID | None = None
    sort: int = 0
    required_permission: str | None = None
    restricted_member_ids: frozenset[UUID] = frozenset()
    restricted_group_ids: frozenset[UUID] = frozenset()

    @property
    def is_terminal(self) -> bool:
        return self.next_action_id is None

    @property
    def is_restricted(self) -> bool:
        return bool(self.restricted_member_ids or self.restricted_group_ids)


@dataclass(frozen=True)
class WorkflowDefinition:
    """A named workflow template; owns an ordered set of actions."""

    definition_id: UUID
    title: str
    actions: tuple[WorkflowAction, ...] = ()
    description: str = ""
    sort: int = 0

    @property
    def entry_action(self) -> WorkflowAction | None:
        """The initial state: first action in definition order."""
        if not self.actions:
            return None
        return _ordered(self.actions)[0]


# =========================================================================
# Running instances
# =========================================================================


@dataclass(frozen=True)
class WorkflowInstance:
    """A live execution of a definition against one content record."""

    instance_id: UUID
    definition_id: UUID
    target_type: str
    target_id: UUID
    current_action_id: UUID | None
    status: InstanceStatus = InstanceStatus.ACTIVE
    initiator_id: UUID | None = None
    created_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == InstanceStatus.ACTIVE


@dataclass(frozen=True)
class WorkflowActionInstance:
    """One immutable history record: an action executed on an instance."""

    action_instance_id: UUID
    instance_id: UUID
    sequence: int
    base_action: WorkflowAction
    executed_at: datetime | None = None
    assigned_member_ids: frozenset[UUID] = frozenset()
    assigned_group_ids: frozenset[UUID] = frozenset()
    actor_id: UUID | None = None
    comment: str = ""


@dataclass(frozen=True)
class TransitionResult:
    """Result of firing a transition on an instance."""

    success: bool
    instance_id: UUID
    transition_id: UUID
    from_action_id: UUID | None = None
    to_action_id: UUID | None = None
    status: InstanceStatus | None = None
    action_instance_id: UUID | None = None
    reason: str = ""


# =========================================================================
# Reader protocols
# =========================================================================


class ActionGraphReader(Protocol):
    """Read contract of the action graph store."""

    def actions_of(self, definition_id: UUID) -> Sequence[WorkflowAction]:
        """Return the definition's actions in definition order."""
        ...

    def transitions_of(self, action_id: UUID) -> Sequence[WorkflowTransition]:
        """Return the action's outgoing transitions in definition order."""
        ...


class HistoryReader(Protocol):
    """Read contract of the instance history log."""

    def history_of(self, instance_id: UUID) -> Sequence[WorkflowActionInstance]:
        """Return the instance's history, oldest first."""
        ...


# =========================================================================
# In-memory implementations
# =========================================================================


def _ordered(items: Iterable) -> list:
    # sorted() is stable, so equal sort values keep insertion order
    return sorted(items, key=lambda item: item.sort)


class ActionGraph:
    """Materialized, in-memory ActionGraphReader.

    Built from fully-loaded definitions and transitions (for example the
    output of a template import or a test fixture).
    """

    def __init__(
        self,
        definitions: Iterable[WorkflowDefinition] = (),
        transitions: Iterable[WorkflowTransition] = (),
    ) -> None:
        self._actions_by_definition: dict[UUID, tuple[WorkflowAction, ...]] = {}
        self._actions: dict[UUID, WorkflowAction] = {}
        self._transitions_by_action: dict[UUID, list[WorkflowTransition]] = {}
        for definition in definitions:
            self.add_definition(definition)
        for transition in transitions:
            self.add_transition(transition)

    def add_definition(self, definition: WorkflowDefinition) -> None:
        actions = tuple(_ordered(definition.actions))
        self._actions_by_definition[definition.definition_id] = actions
        for action in actions:
            self._actions[action.action_id] = action

    def add_transition(self, transition: WorkflowTransition) -> None:
        self._transitions_by_action.setdefault(transition.action_id, []).append(
            transition
        )

    def get_action(self, action_id: UUID) -> WorkflowAction | None:
        return self._actions.get(action_id)

    def actions_of(self, definition_id: UUID) -> tuple[WorkflowAction, ...]:
        return self._actions_by_definition.get(definition_id, ())

    def transitions_of(self, action_id: UUID) -> tuple[WorkflowTransition, ...]:
        return tuple(_ordered(self._transitions_by_action.get(action_id, ())))


class InMemoryHistory:
    """Append-only, in-memory HistoryReader."""

    def __init__(self, entries: Iterable[WorkflowActionInstance] = ()) -> None:
        self._entries: dict[UUID, list[WorkflowActionInstance]] = {}
        for entry in entries:
            self.append(entry)

    def append(self, entry: WorkflowActionInstance) -> None:
        log = self._entries.setdefault(entry.instance_id, [])
        if log and entry.sequence <= log[-1].sequence:
            raise ValueError(
                f"History sequence must increase: {entry.sequence} "
                f"after {log[-1].sequence} on instance {entry.instance_id}"
            )
        log.append(entry)

    def history_of(self, instance_id: UUID) -> tuple[WorkflowActionInstance, ...]:
        return tuple(self._entries.get(instance_id, ()))
