"""
workflow_services.template_service -- Template import and export.

Responsibility:
    Imports template documents as persisted definition graphs, lists the
    templates imported so far, and exports stored definitions back into
    template documents.

Architecture position:
    Services layer.  Coordinates workflow_config (parse / validate /
    render) with the kernel selectors and WorkflowDefinitionService.

Invariants enforced:
    - A template is parsed and its graph validated before anything is
      written; an import either persists the whole graph or raises.
    - Member emails and group codes resolve against the directory; an
      unknown reference fails the import.
    - Template names are unique across imports.

Failure modes:
    - InvalidTemplateError: malformed document or a name already imported.
    - TemplateGraphError: inconsistent action graph.
    - MemberNotFoundError / GroupNotFoundError: unknown references.
    - DefinitionNotFoundError: exporting an unknown definition.
"""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_config.exporter import export_definition
from workflow_config.loader import compute_checksum, parse_template, validate_template
from workflow_config.schema import WorkflowTemplate
from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.workflow import ActionKind, WorkflowDefinition
from workflow_kernel.exceptions import (
    GroupNotFoundError,
    InvalidTemplateError,
    MemberNotFoundError,
)
from workflow_kernel.logging_config import get_logger
from workflow_kernel.models.template import ImportedTemplateModel
from workflow_kernel.selectors import IdentitySelector, WorkflowGraphSelector
from workflow_kernel.services.definition_service import WorkflowDefinitionService

logger = get_logger("services.template")


class TemplateService:
    """Imports, lists and exports workflow templates."""

    def __init__(self, session: Session, clock: Clock | None = None) -> None:
        self._session = session
        self._clock = clock or SystemClock()
        self._definitions = WorkflowDefinitionService(session, self._clock)
        self._graph = WorkflowGraphSelector(session)
        self._identity = IdentitySelector(session)

    def import_template(
        self,
        source: str,
        created_by: UUID | None = None,
        filename: str | None = None,
    ) -> WorkflowDefinition:
        """Parse, validate and persist a template document as a definition."""
        template = parse_template(source)
        validate_template(template)

        if self._find_imported(template.name) is not None:
            raise InvalidTemplateError(
                f"Template '{template.name}' has already been imported.",
                detail=template.name,
            )

        member_ids = self._resolve_members(template)
        group_ids = self._resolve_groups(template)

        definition = self._definitions.create_definition(
            title=template.name,
            description=template.metadata.description,
            sort=template.metadata.sort,
            template_name=template.name,
            template_version=template.metadata.version or None,
        )

        action_ids: dict[str, UUID] = {}
        for action in template.actions:
            created = self._definitions.add_action(
                definition.definition_id,
                action.title,
                kind=ActionKind(action.kind),
                assigned_member_ids=[member_ids[e] for e in action.users],
                assigned_group_ids=[group_ids[c] for c in action.groups],
            )
            action_ids[action.title] = created.action_id

        for action in template.actions:
            for transition in action.transitions:
                self._definitions.add_transition(
                    action_ids[action.title],
                    transition.title,
                    next_action_id=(
                        action_ids[transition.next_action]
                        if transition.next_action is not None
                        else None
                    ),
                    required_permission=transition.required_permission,
                    restricted_member_ids=[member_ids[e] for e in transition.restricted_users],
                    restricted_group_ids=[group_ids[c] for c in transition.restricted_groups],
                )

        record = ImportedTemplateModel(
            name=template.name,
            filename=filename,
            content=source,
            checksum=compute_checksum(template),
            definition_id=definition.definition_id,
            imported_by_id=created_by,
            imported_at=self._clock.now(),
        )
        self._session.add(record)
        self._session.flush()

        logger.info(
            "template_imported",
            extra={
                "template": template.name,
                "definition_id": str(definition.definition_id),
                "actions": len(template.actions),
                "checksum": record.checksum,
            },
        )
        return self._graph.get_definition(definition.definition_id)

    def get_imported_workflows(
        self,
        name: str | None = None,
    ) -> list[WorkflowTemplate] | WorkflowTemplate | None:
        """
        Templates imported so far.

        With ``name``, the single template of that name (None when absent);
        otherwise a list of every imported template, oldest first.
        """
        if name is not None:
            model = self._find_imported(name)
            return parse_template(model.content) if model is not None else None

        models = self._session.execute(
            select(ImportedTemplateModel).order_by(
                ImportedTemplateModel.imported_at, ImportedTemplateModel.name,
            )
        ).scalars().all()
        return [parse_template(m.content) for m in models]

    def export(self, definition_id: UUID, exported_by: UUID | None = None) -> str:
        """Render a stored definition as a template document."""
        definition = self._graph.get_definition(definition_id)
        transitions = self._graph.transitions_of_definition(definition_id)

        member_refs: set[UUID] = set()
        group_refs: set[UUID] = set()
        for action in definition.actions:
            member_refs |= action.assigned_member_ids
            group_refs |= action.assigned_group_ids
        for outgoing in transitions.values():
            for transition in outgoing:
                member_refs |= transition.restricted_member_ids
                group_refs |= transition.restricted_group_ids

        member_emails = {}
        for member_id in member_refs:
            member = self._identity.get_member(member_id)
            if member is None:
                raise MemberNotFoundError(str(member_id))
            member_emails[member_id] = member.email

        group_codes = {}
        for group_id in group_refs:
            group = self._identity.get_group(group_id)
            if group is None:
                raise GroupNotFoundError(str(group_id))
            group_codes[group_id] = group.code

        exporter = self._identity.get_member(exported_by) if exported_by else None
        document = export_definition(
            definition,
            transitions,
            exported_by=exporter,
            clock=self._clock,
            member_emails=member_emails,
            group_codes=group_codes,
        )

        logger.info(
            "definition_exported",
            extra={"definition_id": str(definition_id), "title": definition.title},
        )
        return document

    def _find_imported(self, name: str) -> ImportedTemplateModel | None:
        return self._session.execute(
            select(ImportedTemplateModel).where(ImportedTemplateModel.name == name)
        ).scalar_one_or_none()

    def _resolve_members(self, template: WorkflowTemplate) -> dict[str, UUID]:
        resolved = {}
        for email in sorted(template.member_emails):
            member = self._identity.find_member_by_email(email)
            if member is None:
                raise MemberNotFoundError(email)
            resolved[email] = member.member_id
        return resolved

    def _resolve_groups(self, template: WorkflowTemplate) -> dict[str, UUID]:
        resolved = {}
        for code in sorted(template.group_codes):
            group = self._identity.find_group_by_code(code)
            if group is None:
                raise GroupNotFoundError(code)
            resolved[code] = group.group_id
        return resolved
