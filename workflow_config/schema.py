"""
Workflow template schema.

Defines the portable, human-authored form of a workflow definition.
Template documents are parsed into these types by the loader, validated,
and persisted as a definition graph by TemplateService.  The exporter
renders a stored definition back into the same document format.

Actions and transitions reference each other by *title*, not by id, so a
template can move between installations.  Members are referenced by
email and groups by code for the same reason.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class TemplateMetadata:
    """Template header data.

    ``header_name`` is the ``Name:`` of the ``---`` delimited document
    header; ``name`` is the template's own name and keys imports.
    """

    name: str
    description: str = ""
    version: str = ""
    remote_version: int = 0
    sort: int = 0
    header_name: str = ""


@dataclass(frozen=True)
class TemplateTransition:
    """An outgoing edge; ``next_action`` of None is a terminal edge."""

    title: str
    next_action: str | None = None
    required_permission: str | None = None
    restricted_users: tuple[str, ...] = ()  # member emails
    restricted_groups: tuple[str, ...] = ()  # group codes


@dataclass(frozen=True)
class TemplateAction:
    """A graph node.  ``users`` / ``groups`` apply to assignment actions."""

    title: str
    kind: str = "step"
    transitions: tuple[TemplateTransition, ...] = ()
    users: tuple[str, ...] = ()  # member emails
    groups: tuple[str, ...] = ()  # group codes


@dataclass(frozen=True)
class WorkflowTemplate:
    """A complete template: metadata plus actions in definition order."""

    metadata: TemplateMetadata
    actions: tuple[TemplateAction, ...] = ()

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def action_titles(self) -> tuple[str, ...]:
        return tuple(a.title for a in self.actions)

    def get_action(self, title: str) -> TemplateAction | None:
        for action in self.actions:
            if action.title == title:
                return action
        return None

    @property
    def member_emails(self) -> frozenset[str]:
        """Every member email referenced by actions or transitions."""
        emails: set[str] = set()
        for action in self.actions:
            emails.update(action.users)
            for transition in action.transitions:
                emails.update(transition.restricted_users)
        return frozenset(emails)

    @property
    def group_codes(self) -> frozenset[str]:
        """Every group code referenced by actions or transitions."""
        codes: set[str] = set()
        for action in self.actions:
            codes.update(action.groups)
            for transition in action.transitions:
                codes.update(transition.restricted_groups)
        return frozenset(codes)
