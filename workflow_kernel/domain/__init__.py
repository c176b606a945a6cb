"""
Pure domain layer.

This module contains pure value objects and reader protocols with NO
dependencies on:
- ORM (SQLAlchemy)
- Database
- I/O

All domain objects are immutable and deterministic.
"""

from workflow_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from workflow_kernel.domain.identity import (
    ADMIN_PERMISSION,
    ADMINISTRATIVE_OVERRIDE_CODES,
    BYPASS_WORKFLOW_ACL_PERMISSION,
    Group,
    IdentityProvider,
    Member,
    StaticDirectory,
)
from workflow_kernel.domain.workflow import (
    TERMINAL_INSTANCE_STATUSES,
    ActionGraph,
    ActionGraphReader,
    ActionKind,
    HistoryReader,
    InMemoryHistory,
    InstanceStatus,
    TransitionResult,
    WorkflowAction,
    WorkflowActionInstance,
    WorkflowDefinition,
    WorkflowInstance,
    WorkflowTransition,
)

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "ADMIN_PERMISSION",
    "ADMINISTRATIVE_OVERRIDE_CODES",
    "BYPASS_WORKFLOW_ACL_PERMISSION",
    "Group",
    "IdentityProvider",
    "Member",
    "StaticDirectory",
    "TERMINAL_INSTANCE_STATUSES",
    "ActionGraph",
    "ActionGraphReader",
    "ActionKind",
    "HistoryReader",
    "InMemoryHistory",
    "InstanceStatus",
    "TransitionResult",
    "WorkflowAction",
    "WorkflowActionInstance",
    "WorkflowDefinition",
    "WorkflowInstance",
    "WorkflowTransition",
]
