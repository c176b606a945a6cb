"""Write-side services for the workflow kernel (flush-only)."""

from workflow_kernel.services.definition_service import WorkflowDefinitionService
from workflow_kernel.services.instance_service import WorkflowInstanceService

__all__ = [
    "WorkflowDefinitionService",
    "WorkflowInstanceService",
]
