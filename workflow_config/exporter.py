"""
Template Exporter (``workflow_config.exporter``).

Responsibility
--------------
Renders a stored workflow definition as a template document that
``workflow_config.loader.parse_template`` reads back.

Architecture position
---------------------
**Config layer** -- export boundary tooling.  Works on kernel domain
DTOs; the caller (TemplateService) supplies the id -> email / code maps
so this module performs no I/O.

Invariants enforced
-------------------
* Output contains no blank lines.
* Actions and transitions are written in definition order.
* Members are written by email and groups by code, never by id.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any
from uuid import UUID

import yaml

from workflow_kernel.domain.clock import Clock, SystemClock
from workflow_kernel.domain.identity import Member
from workflow_kernel.domain.workflow import (
    WorkflowAction,
    WorkflowDefinition,
    WorkflowTransition,
)

DEFAULT_HEADER_NAME = "exportedworkflow"


def header_name_for(title: str) -> str:
    """Slug used as the ``Name:`` of the document header."""
    slug = re.sub(r"[^a-z0-9]+", "", title.lower())
    return slug or DEFAULT_HEADER_NAME


def export_definition(
    definition: WorkflowDefinition,
    transitions: Mapping[UUID, Sequence[WorkflowTransition]],
    exported_by: Member | None = None,
    clock: Clock | None = None,
    member_emails: Mapping[UUID, str] | None = None,
    group_codes: Mapping[UUID, str] | None = None,
    version: str = "1.0",
    remote_version: int = 0,
    host: str = "localhost",
) -> str:
    """
    Render a definition as a template document.

    Args:
        definition: The definition, with its actions.
        transitions: Outgoing transitions keyed by origin action id.
        exported_by: Member recorded in the export description.
        clock: Clock for the export timestamp.
        member_emails: Member id -> email for assignment / restriction refs.
        group_codes: Group id -> code for assignment / restriction refs.

    Raises:
        KeyError: if an assigned or restricting member / group id is
            missing from ``member_emails`` / ``group_codes``.
    """
    clock = clock or SystemClock()
    member_emails = member_emails or {}
    group_codes = group_codes or {}
    titles = {a.action_id: a.title for a in definition.actions}

    exported_at = clock.now().strftime("%d/%m/%Y %H:%M:%S")
    by = exported_by.display_name if exported_by is not None else "unknown"
    description = f"Exported from {host} on {exported_at} by {by}"

    structure: dict[str, Any] = {}
    for action in definition.actions:
        structure[action.title] = _action_entry(
            action,
            transitions.get(action.action_id, ()),
            titles,
            member_emails,
            group_codes,
        )

    body = {
        "template": {
            "name": definition.title,
            "description": description,
            "version": version,
            "remote_version": remote_version,
            "sort": definition.sort,
            "structure": structure,
        }
    }
    rendered = yaml.safe_dump(
        body,
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
        width=10_000,
    )
    header = f"---\nName: {header_name_for(definition.title)}\n---\n"
    return header + rendered


def _action_entry(
    action: WorkflowAction,
    transitions: Sequence[WorkflowTransition],
    titles: Mapping[UUID, str],
    member_emails: Mapping[UUID, str],
    group_codes: Mapping[UUID, str],
) -> dict[str, Any]:
    entry: dict[str, Any] = {"type": action.kind.value}
    if action.assigned_member_ids:
        entry["users"] = sorted(member_emails[m] for m in action.assigned_member_ids)
    if action.assigned_group_ids:
        entry["groups"] = sorted(group_codes[g] for g in action.assigned_group_ids)
    if transitions:
        entry["transitions"] = [
            _transition_entry(t, titles, member_emails, group_codes)
            for t in transitions
        ]
    return entry


def _transition_entry(
    transition: WorkflowTransition,
    titles: Mapping[UUID, str],
    member_emails: Mapping[UUID, str],
    group_codes: Mapping[UUID, str],
) -> dict[str, Any]:
    next_title = (
        titles[transition.next_action_id]
        if transition.next_action_id is not None
        else None
    )
    simple = (
        transition.required_permission is None
        and not transition.is_restricted
        and transition.title != "title"
    )
    if simple:
        return {transition.title: next_title}

    entry: dict[str, Any] = {"title": transition.title, "next": next_title}
    if transition.required_permission is not None:
        entry["permission"] = transition.required_permission
    if transition.restricted_member_ids:
        entry["users"] = sorted(member_emails[m] for m in transition.restricted_member_ids)
    if transition.restricted_group_ids:
        entry["groups"] = sorted(group_codes[g] for g in transition.restricted_group_ids)
    return entry
