"""
Template Loader (``workflow_config.loader``).

Responsibility
--------------
Parses workflow template documents into typed ``workflow_config.schema``
dataclass instances and validates the action graph they describe.

A template document is a ``---`` delimited metadata header followed by a
YAML body::

    ---
    Name: exportedworkflow
    ---
    template:
      name: 'My Workflow'
      version: '1.0'
      structure:
        'Step One':
          type: step
          transitions:
            - 'Step One T1': 'Step Two'
        'Step Two':
          type: assign_users
          users:
            - 'editor@example.com'
          groups:
            - 'content-authors'

Transitions use the short ``title: next action`` form, or the long form
with ``title``, ``next``, ``permission``, ``users`` and ``groups`` keys
when the edge is permission-gated or restricted.

Architecture position
---------------------
**Config layer** -- import boundary tooling.  Consumed by
``workflow_services.template_service``.  Depends on the kernel only for
the exception hierarchy and the ActionKind vocabulary.

Invariants enforced
-------------------
* A document without the metadata header is rejected with
  ``InvalidTemplateError("Invalid YAML format.")``.
* A body PyYAML cannot parse, or one that repeats a mapping key (such as
  two actions with the same title), is rejected with
  ``InvalidTemplateError("Invalid YAML format. Unable to parse.")``.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash for
  template identity and change detection.

Failure modes
-------------
* Missing header / unparseable YAML / missing required keys
  -> ``InvalidTemplateError``.
* Inconsistent graph (see ``validate_template``) -> ``TemplateGraphError``.
"""

from __future__ import annotations

import dataclasses
import hashlib
import json
import re
from collections.abc import Hashable
from typing import Any

import yaml

from workflow_config.schema import (
    TemplateAction,
    TemplateMetadata,
    TemplateTransition,
    WorkflowTemplate,
)
from workflow_kernel.domain.workflow import ActionKind
from workflow_kernel.exceptions import InvalidTemplateError, TemplateGraphError

INVALID_FORMAT_MESSAGE = "Invalid YAML format."
UNPARSEABLE_MESSAGE = "Invalid YAML format. Unable to parse."

_DOCUMENT_PATTERN = re.compile(
    r"\A---[ \t]*\r?\n(?P<header>.*?)\r?\n---[ \t]*(?:\r?\n(?P<body>.*))?\Z",
    re.DOTALL,
)

_KNOWN_KINDS = frozenset(kind.value for kind in ActionKind)


class _UniqueKeyLoader(yaml.SafeLoader):
    """SafeLoader that rejects duplicate mapping keys instead of keeping the last."""

    def construct_mapping(self, node, deep=False):
        seen = set()
        for key_node, _ in node.value:
            key = self.construct_object(key_node, deep=deep)
            if isinstance(key, Hashable):
                if key in seen:
                    raise yaml.constructor.ConstructorError(
                        "while constructing a mapping",
                        node.start_mark,
                        f"found duplicate key {key!r}",
                        key_node.start_mark,
                    )
                seen.add(key)
        return super().construct_mapping(node, deep=deep)


def _load(text: str) -> Any:
    return yaml.load(text, Loader=_UniqueKeyLoader)


def split_document(source: str) -> tuple[dict[str, Any], str]:
    """
    Split a template document into its parsed header and raw body.

    Raises:
        InvalidTemplateError: if the ``---`` header is missing or has no
            ``Name``.
    """
    match = _DOCUMENT_PATTERN.match(source.lstrip())
    if match is None:
        raise InvalidTemplateError(INVALID_FORMAT_MESSAGE, detail="missing metadata header")

    try:
        header = _load(match.group("header"))
    except yaml.YAMLError as exc:
        raise InvalidTemplateError(INVALID_FORMAT_MESSAGE, detail=str(exc)) from exc
    if not isinstance(header, dict) or not header.get("Name"):
        raise InvalidTemplateError(INVALID_FORMAT_MESSAGE, detail="header has no Name")

    return header, match.group("body") or ""


def parse_template(source: str) -> WorkflowTemplate:
    """
    Parse a template document.

    Postconditions:
        - Returns a ``WorkflowTemplate`` with actions in document order.
        - The graph is NOT validated; call ``validate_template``.
    Raises:
        InvalidTemplateError: on a missing header, unparseable YAML or a
            body without the required ``template.name``.
    """
    header, body = split_document(source)

    try:
        data = _load(body)
    except yaml.YAMLError as exc:
        raise InvalidTemplateError(UNPARSEABLE_MESSAGE, detail=str(exc)) from exc

    try:
        return parse_template_data(data, header_name=str(header["Name"]))
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise InvalidTemplateError(INVALID_FORMAT_MESSAGE, detail=repr(exc)) from exc


def parse_template_data(data: dict[str, Any], header_name: str = "") -> WorkflowTemplate:
    """Parse a ``WorkflowTemplate`` from an already-loaded YAML body."""
    tpl = data["template"]
    metadata = TemplateMetadata(
        name=str(tpl["name"]),
        description=str(tpl.get("description") or ""),
        version=str(tpl.get("version") or ""),
        remote_version=int(tpl.get("remote_version", 0)),
        sort=int(tpl.get("sort", 0)),
        header_name=header_name,
    )
    structure = tpl.get("structure") or {}
    actions = tuple(
        parse_action(str(title), entry or {})
        for title, entry in structure.items()
    )
    return WorkflowTemplate(metadata=metadata, actions=actions)


def parse_action(title: str, data: dict[str, Any]) -> TemplateAction:
    """Parse one ``structure`` entry."""
    return TemplateAction(
        title=title,
        kind=str(data.get("type", ActionKind.STEP.value)),
        transitions=tuple(parse_transition(t) for t in data.get("transitions") or ()),
        users=_string_tuple(data.get("users")),
        groups=_string_tuple(data.get("groups")),
    )


def parse_transition(data: dict[str, Any]) -> TemplateTransition:
    """
    Parse a transition in either form.

    Short form is a single-key mapping ``{title: next action}``; long form
    has a ``title`` key.
    """
    if "title" in data:
        next_action = data.get("next")
        return TemplateTransition(
            title=str(data["title"]),
            next_action=str(next_action) if next_action is not None else None,
            required_permission=data.get("permission"),
            restricted_users=_string_tuple(data.get("users")),
            restricted_groups=_string_tuple(data.get("groups")),
        )

    if len(data) != 1:
        raise ValueError(f"Transition must be a single 'title: next' pair, got {data!r}")
    (title, next_action), = data.items()
    return TemplateTransition(
        title=str(title),
        next_action=str(next_action) if next_action is not None else None,
    )


def _string_tuple(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def validate_template(template: WorkflowTemplate) -> None:
    """
    Validate the action graph a template describes.

    Checks:
        - at least one action;
        - action titles are unique (only reachable for templates built in
          code; the loader already rejects repeated keys);
        - action types are known ActionKind values;
        - every transition leads to an action of the same template
          (or nowhere, for a terminal edge);
        - transition titles are unique per action.

    Raises:
        TemplateGraphError: listing every problem found.
    """
    errors: list[str] = []

    if not template.actions:
        errors.append("template defines no actions")

    titles = template.action_titles
    seen: set[str] = set()
    for title in titles:
        if title in seen:
            errors.append(f"duplicate action title '{title}'")
        seen.add(title)

    for action in template.actions:
        if action.kind not in _KNOWN_KINDS:
            errors.append(f"action '{action.title}' has unknown type '{action.kind}'")

        transition_titles: set[str] = set()
        for transition in action.transitions:
            if transition.title in transition_titles:
                errors.append(
                    f"action '{action.title}' has duplicate transition '{transition.title}'"
                )
            transition_titles.add(transition.title)

            if transition.next_action is not None and transition.next_action not in seen:
                errors.append(
                    f"transition '{transition.title}' of '{action.title}' leads to "
                    f"unknown action '{transition.next_action}'"
                )

    if errors:
        raise TemplateGraphError(template.name, errors)


def compute_checksum(template: WorkflowTemplate) -> str:
    """
    Compute SHA-256 checksum of the template's canonical JSON serialization.

    Postconditions:
        - Identical templates always produce identical checksums, however
          the source document was formatted.
    """
    canonical = json.dumps(dataclasses.asdict(template), sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
