"""
Module: workflow_engines
Responsibility:
    Package entrypoint that re-exports the pure workflow resolvers.  This is
    the canonical import surface for higher layers (workflow_services).

Architecture position:
    Engines -- pure resolver layer, zero I/O.
    May only import workflow_kernel/domain (and sibling engine modules).
    MUST NOT import workflow_services, workflow_config, or kernel
    persistence (db/, models/, selectors/, services/).

Invariants enforced:
    - Determinism: identical graph, history and identity inputs always
      produce identical decisions.
    - Absence is never an error: resolvers return None, () or False.

Usage:
    from workflow_engines import (
        HistoryResolver,
        InstanceAuthorizer,
        TransitionAuthorizer,
        ValidTransitionsResolver,
    )
"""

from workflow_engines.authorization import InstanceAuthorizer, TransitionAuthorizer
from workflow_engines.history import (
    HistoryResolver,
    is_relevant,
    most_recent_relevant_action,
)
from workflow_engines.transitions import ValidTransitionsResolver

__all__ = [
    "HistoryResolver",
    "InstanceAuthorizer",
    "TransitionAuthorizer",
    "ValidTransitionsResolver",
    "is_relevant",
    "most_recent_relevant_action",
]
