"""Selectors for the workflow kernel (read side)."""

from workflow_kernel.selectors.graph_selector import WorkflowGraphSelector
from workflow_kernel.selectors.history_selector import WorkflowHistorySelector
from workflow_kernel.selectors.identity_selector import IdentitySelector

__all__ = [
    "IdentitySelector",
    "WorkflowGraphSelector",
    "WorkflowHistorySelector",
]
