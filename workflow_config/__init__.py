"""
Workflow template import/export (``workflow_config``).

Template documents are the portable form of a workflow definition: a
``---`` delimited metadata header and a YAML body describing actions and
transitions by title.  The loader parses and validates them; the exporter
renders stored definitions back into the same format.
"""

from workflow_config.exporter import export_definition, header_name_for
from workflow_config.loader import (
    compute_checksum,
    parse_template,
    split_document,
    validate_template,
)
from workflow_config.schema import (
    TemplateAction,
    TemplateMetadata,
    TemplateTransition,
    WorkflowTemplate,
)

__all__ = [
    "TemplateAction",
    "TemplateMetadata",
    "TemplateTransition",
    "WorkflowTemplate",
    "compute_checksum",
    "export_definition",
    "header_name_for",
    "parse_template",
    "split_document",
    "validate_template",
]
