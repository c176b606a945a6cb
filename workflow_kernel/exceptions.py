"""
Typed Exception Hierarchy for the Workflow Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (admin screens, APIs, batch jobs) must be able to tell
"you may not do this" apart from "this does not exist" without parsing
message strings.  Every error therefore:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (not just a message string)

Absence is NOT an error in this kernel.  "No relevant history", "no valid
transitions" and "view denied" are normal outcomes returned as ``None``,
``()`` or ``False``.  Exceptions are reserved for operations that were asked
to *do* something and could not.

Example - RIGHT way:
    try:
        executor.execute_transition(instance_id, transition_id, member_id)
    except TransitionNotAuthorizedError as e:
        api_response(403, code=e.code, transition=str(e.transition_id))
    except StaleTransitionError as e:
        api_response(409, code=e.code)
    except NotFoundError as e:
        api_response(404, code=e.code)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    WorkflowKernelError (base)
    |
    +-- NotFoundError
    |   +-- DefinitionNotFoundError
    |   +-- ActionNotFoundError
    |   +-- TransitionNotFoundError
    |   +-- InstanceNotFoundError
    |   +-- MemberNotFoundError
    |   +-- GroupNotFoundError
    |
    +-- AuthorizationError
    |   +-- TransitionNotAuthorizedError
    |   +-- InstanceAccessDeniedError
    |   +-- InstanceNotActiveError      (also InstanceStateError)
    |   +-- StaleTransitionError        (also InstanceStateError)
    |
    +-- InstanceStateError
    |   +-- InstanceNotActiveError
    |   +-- StaleTransitionError
    |   +-- EmptyDefinitionError
    |
    +-- TemplateError
    |   +-- InvalidTemplateError
    |   +-- TemplateGraphError
    |
    +-- ImmutabilityViolationError

A transition that fails fire-time re-validation always raises an
AuthorizationError, whichever check failed.  The two state errors keep the
InstanceStateError base so lifecycle callers can still catch them by state.

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                        | When Raised
----------------|-----------------------------|-----------------------------------------
Not found       | DEFINITION_NOT_FOUND        | Definition ID doesn't exist
                | ACTION_NOT_FOUND            | Action ID doesn't exist
                | TRANSITION_NOT_FOUND        | Transition ID doesn't exist
                | INSTANCE_NOT_FOUND          | Instance ID doesn't exist
                | MEMBER_NOT_FOUND            | Member ID / email doesn't exist
                | GROUP_NOT_FOUND             | Group ID / code doesn't exist
----------------|-----------------------------|-----------------------------------------
Authorization   | TRANSITION_NOT_AUTHORIZED   | Fire-time re-validation failed
                | INSTANCE_ACCESS_DENIED      | Member may not view / act on instance
----------------|-----------------------------|-----------------------------------------
Instance state  | INSTANCE_NOT_ACTIVE         | Instance completed or cancelled
                | STALE_TRANSITION            | Transition does not leave current action
                | DEFINITION_EMPTY            | Starting a definition without actions
----------------|-----------------------------|-----------------------------------------
Template        | INVALID_TEMPLATE            | Missing header / unparseable YAML
                | TEMPLATE_GRAPH_INVALID      | Inconsistent action/transition graph
----------------|-----------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION      | Modifying an action history record
"""


class WorkflowKernelError(Exception):
    """
    Base exception for all workflow kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "WORKFLOW_KERNEL_ERROR"


# Lookup exceptions


class NotFoundError(WorkflowKernelError):
    """Base exception for missing workflow records."""

    code: str = "NOT_FOUND"


class DefinitionNotFoundError(NotFoundError):
    """Workflow definition was not found."""

    code: str = "DEFINITION_NOT_FOUND"

    def __init__(self, definition_id: str):
        self.definition_id = definition_id
        super().__init__(f"Workflow definition not found: {definition_id}")


class ActionNotFoundError(NotFoundError):
    """Workflow action was not found."""

    code: str = "ACTION_NOT_FOUND"

    def __init__(self, action_id: str):
        self.action_id = action_id
        super().__init__(f"Workflow action not found: {action_id}")


class TransitionNotFoundError(NotFoundError):
    """Workflow transition was not found."""

    code: str = "TRANSITION_NOT_FOUND"

    def __init__(self, transition_id: str):
        self.transition_id = transition_id
        super().__init__(f"Workflow transition not found: {transition_id}")


class InstanceNotFoundError(NotFoundError):
    """Workflow instance was not found."""

    code: str = "INSTANCE_NOT_FOUND"

    def __init__(self, instance_id: str):
        self.instance_id = instance_id
        super().__init__(f"Workflow instance not found: {instance_id}")


class MemberNotFoundError(NotFoundError):
    """Member was not found in the identity directory."""

    code: str = "MEMBER_NOT_FOUND"

    def __init__(self, member_ref: str):
        self.member_ref = member_ref
        super().__init__(f"Member not found: {member_ref}")


class GroupNotFoundError(NotFoundError):
    """Group was not found in the identity directory."""

    code: str = "GROUP_NOT_FOUND"

    def __init__(self, group_ref: str):
        self.group_ref = group_ref
        super().__init__(f"Group not found: {group_ref}")


# Authorization exceptions


class AuthorizationError(WorkflowKernelError):
    """Base exception for denied workflow operations."""

    code: str = "AUTHORIZATION_ERROR"


class TransitionNotAuthorizedError(AuthorizationError):
    """
    Member attempted to fire a transition they are not authorized to take.

    Raised by fire-time re-validation.  Listing valid transitions and firing
    one are separate calls; permissions or group memberships may change in
    between.
    """

    code: str = "TRANSITION_NOT_AUTHORIZED"

    def __init__(self, transition_id: str, member_id: str):
        self.transition_id = transition_id
        self.member_id = member_id
        super().__init__(
            f"Member {member_id} is not authorized to take transition {transition_id}"
        )


class InstanceAccessDeniedError(AuthorizationError):
    """Member may not view or act on the workflow instance."""

    code: str = "INSTANCE_ACCESS_DENIED"

    def __init__(self, instance_id: str, member_id: str, operation: str):
        self.instance_id = instance_id
        self.member_id = member_id
        self.operation = operation
        super().__init__(
            f"Member {member_id} may not {operation} workflow instance {instance_id}"
        )


# Instance state exceptions


class InstanceStateError(WorkflowKernelError):
    """Base exception for operations invalid in the instance's current state."""

    code: str = "INSTANCE_STATE_ERROR"


class InstanceNotActiveError(InstanceStateError, AuthorizationError):
    """Workflow instance is completed or cancelled."""

    code: str = "INSTANCE_NOT_ACTIVE"

    def __init__(self, instance_id: str, status: str):
        self.instance_id = instance_id
        self.status = status
        super().__init__(
            f"Workflow instance {instance_id} is not active (status={status})"
        )


class StaleTransitionError(InstanceStateError, AuthorizationError):
    """
    Transition does not originate from the instance's current action.

    The instance advanced after the caller listed its valid transitions.
    """

    code: str = "STALE_TRANSITION"

    def __init__(
        self,
        instance_id: str,
        transition_id: str,
        current_action_id: str | None,
    ):
        self.instance_id = instance_id
        self.transition_id = transition_id
        self.current_action_id = current_action_id
        super().__init__(
            f"Transition {transition_id} does not leave the current action "
            f"{current_action_id} of instance {instance_id}"
        )


class EmptyDefinitionError(InstanceStateError):
    """Workflow definition has no actions, so no instance can be started."""

    code: str = "DEFINITION_EMPTY"

    def __init__(self, definition_id: str):
        self.definition_id = definition_id
        super().__init__(
            f"Workflow definition {definition_id} has no actions to start from"
        )


# Template exceptions


class TemplateError(WorkflowKernelError):
    """Base exception for workflow template import errors."""

    code: str = "TEMPLATE_ERROR"


class InvalidTemplateError(TemplateError):
    """Template document is malformed (missing header or unparseable YAML)."""

    code: str = "INVALID_TEMPLATE"

    def __init__(self, message: str, detail: str | None = None):
        self.detail = detail
        super().__init__(message)


class TemplateGraphError(TemplateError):
    """
    Template parsed but describes an inconsistent action graph.

    Examples: a transition pointing at an action outside the template,
    duplicate action titles, an unknown action type.
    """

    code: str = "TEMPLATE_GRAPH_INVALID"

    def __init__(self, template_name: str, errors: list[str]):
        self.template_name = template_name
        self.errors = errors
        super().__init__(
            f"Template '{template_name}' is invalid: {'; '.join(errors)}"
        )


# Immutability exceptions


class ImmutabilityViolationError(WorkflowKernelError):
    """Attempted to modify or delete an append-only history record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
