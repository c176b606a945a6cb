"""
Workflow services (``workflow_services``).

Coordinators that wire the pure resolvers in ``workflow_engines`` to the
kernel's selectors and write services.

Usage:
    from workflow_services import TemplateService, WorkflowExecutor
"""

from workflow_services.template_service import TemplateService
from workflow_services.workflow_executor import WorkflowExecutor

__all__ = [
    "TemplateService",
    "WorkflowExecutor",
]
