"""ORM models for the workflow kernel."""

from workflow_kernel.models.identity import (
    GroupModel,
    MemberModel,
    PermissionGrantModel,
    group_members,
)
from workflow_kernel.models.template import ImportedTemplateModel
from workflow_kernel.models.workflow import (
    WorkflowActionInstanceModel,
    WorkflowActionModel,
    WorkflowDefinitionModel,
    WorkflowInstanceModel,
    WorkflowTransitionModel,
)

__all__ = [
    "GroupModel",
    "MemberModel",
    "PermissionGrantModel",
    "group_members",
    "ImportedTemplateModel",
    "WorkflowActionInstanceModel",
    "WorkflowActionModel",
    "WorkflowDefinitionModel",
    "WorkflowInstanceModel",
    "WorkflowTransitionModel",
]
