"""
Tests for WorkflowExecutor (workflow_services.workflow_executor).

Covers:
- most_recent_action_for() / can_view() / assigned_members() over a
  persisted instance
- valid_transitions() listing per member, including group grants
- execute_transition(): success, fire-time re-validation after a grant or
  membership change, stale and finished instances, unknown ids
- Structured ``workflow_transition`` records for every fire attempt
- cancel_workflow() permissions

Test infrastructure:
- session fixture (auto-rollback), DeterministicClock
- review_workflow fixture: Draft -> Review (assigns editors) -> Published
"""

from uuid import uuid4

import pytest

from workflow_kernel.domain.identity import ADMIN_PERMISSION, BYPASS_WORKFLOW_ACL_PERMISSION
from workflow_kernel.domain.workflow import InstanceStatus
from workflow_kernel.exceptions import (
    AuthorizationError,
    InstanceAccessDeniedError,
    InstanceNotActiveError,
    InstanceNotFoundError,
    StaleTransitionError,
    TransitionNotAuthorizedError,
    TransitionNotFoundError,
)
from workflow_services.workflow_executor import (
    OUTCOME_NOT_ACTIVE,
    OUTCOME_NOT_AUTHORIZED,
    OUTCOME_STALE,
    OUTCOME_SUCCESS,
    TRACE_TYPE_WORKFLOW_TRANSITION,
    WorkflowExecutor,
)


@pytest.fixture
def outcomes():
    return []


@pytest.fixture
def recording_executor(session, deterministic_clock, outcomes):
    return WorkflowExecutor(session, clock=deterministic_clock, outcome_sink=outcomes.append)


@pytest.fixture
def instance(review_workflow, executor):
    """An instance started by the outsider, sitting at Draft."""
    return executor.start_workflow(
        review_workflow["definition"].definition_id,
        "Page",
        uuid4(),
        initiator_id=review_workflow["outsider"].id,
    )


@pytest.fixture
def in_review(instance, review_workflow, executor):
    """The instance after the outsider submitted it for review."""
    executor.execute_transition(
        instance.instance_id,
        review_workflow["submit"].transition_id,
        review_workflow["outsider"].id,
    )
    return instance


def titles(transitions):
    return [t.title for t in transitions]


# ---------------------------------------------------------------------------
# Read-side questions
# ---------------------------------------------------------------------------


class TestHistoryQueries:
    def test_no_assignment_yet(self, instance, review_workflow, executor):
        editor = review_workflow["editor"].id
        assert executor.most_recent_action_for(instance.instance_id, editor) is None
        assert not executor.can_view(instance.instance_id, editor)
        assert executor.assigned_members(instance.instance_id) == frozenset()

    def test_editor_sees_review_assignment(self, in_review, review_workflow, executor):
        editor = review_workflow["editor"].id
        entry = executor.most_recent_action_for(in_review.instance_id, editor)

        assert entry is not None
        assert entry.base_action.action_id == review_workflow["review"].action_id
        assert entry.sequence == 2
        assert executor.can_view(in_review.instance_id, editor)

    def test_outsider_has_no_relevant_action(self, in_review, review_workflow, executor):
        outsider = review_workflow["outsider"].id
        assert executor.most_recent_action_for(in_review.instance_id, outsider) is None
        assert not executor.can_view(in_review.instance_id, outsider)

    def test_admin_can_view(self, in_review, directory, executor):
        admin = directory.member("admin@example.com", permissions=(ADMIN_PERMISSION,))
        assert executor.can_view(in_review.instance_id, admin.id)

    def test_membership_is_evaluated_now(self, in_review, review_workflow, directory, executor):
        """Joining the assigned group after the fact makes the entry relevant."""
        outsider = review_workflow["outsider"]
        directory.join(outsider, review_workflow["editors"])

        entry = executor.most_recent_action_for(in_review.instance_id, outsider.id)
        assert entry is not None
        assert entry.base_action.title == "Review"

    def test_assigned_members_expands_groups(self, in_review, review_workflow, executor):
        assert executor.assigned_members(in_review.instance_id) == frozenset(
            {review_workflow["editor"].id}
        )

    def test_unknown_instance(self, review_workflow, executor):
        with pytest.raises(InstanceNotFoundError):
            executor.can_view(uuid4(), review_workflow["editor"].id)


class TestValidTransitions:
    def test_initiator_sees_ungated_transition(self, instance, review_workflow, executor):
        outsider = review_workflow["outsider"].id
        assert titles(executor.valid_transitions(instance.instance_id, outsider)) == ["Submit"]

    def test_stranger_lists_nothing(self, in_review, directory, executor):
        """Ungated transitions are offered only to members who may act on the instance."""
        stranger = directory.member("stranger@example.com")
        assert executor.valid_transitions(in_review.instance_id, stranger.id) == ()

    def test_permission_gate(self, in_review, review_workflow, directory, executor):
        editor = review_workflow["editor"]
        assert titles(executor.valid_transitions(in_review.instance_id, editor.id)) == ["Reject"]

        directory.grant_group(review_workflow["editors"], "APPROVE")
        assert titles(executor.valid_transitions(in_review.instance_id, editor.id)) == [
            "Approve",
            "Reject",
        ]

    def test_bypass_sees_everything(self, in_review, directory, executor):
        bypass = directory.member("bypass@example.com", permissions=(BYPASS_WORKFLOW_ACL_PERMISSION,))
        assert titles(executor.valid_transitions(in_review.instance_id, bypass.id)) == [
            "Approve",
            "Reject",
        ]

    def test_finished_instance_has_none(self, instance, review_workflow, executor):
        executor.cancel_workflow(instance.instance_id, review_workflow["outsider"].id)
        assert executor.valid_transitions(instance.instance_id, review_workflow["editor"].id) == ()


# ---------------------------------------------------------------------------
# execute_transition()
# ---------------------------------------------------------------------------


class TestExecuteTransition:
    def test_submit_then_approve(self, in_review, review_workflow, directory, executor):
        editor = review_workflow["editor"]
        directory.grant(editor, "APPROVE")

        result = executor.execute_transition(
            in_review.instance_id, review_workflow["approve"].transition_id, editor.id,
        )

        assert result.success
        assert result.to_action_id == review_workflow["published"].action_id
        assert result.status == InstanceStatus.COMPLETE
        current = executor.get_instance(in_review.instance_id)
        assert current.status == InstanceStatus.COMPLETE
        assert current.current_action_id == review_workflow["published"].action_id

    def test_not_authorized(self, in_review, review_workflow, executor):
        with pytest.raises(TransitionNotAuthorizedError) as exc_info:
            executor.execute_transition(
                in_review.instance_id,
                review_workflow["approve"].transition_id,
                review_workflow["editor"].id,
            )
        assert exc_info.value.code == "TRANSITION_NOT_AUTHORIZED"
        assert executor.get_instance(in_review.instance_id).current_action_id == (
            review_workflow["review"].action_id
        )

    def test_revalidates_after_listing(self, in_review, review_workflow, directory, executor):
        """A group grant lost between listing and firing denies the fire."""
        editor = review_workflow["editor"]
        editors = review_workflow["editors"]
        directory.grant_group(editors, "APPROVE")
        listed = executor.valid_transitions(in_review.instance_id, editor.id)
        assert review_workflow["approve"].transition_id in [t.transition_id for t in listed]

        directory.leave(editor, editors)

        with pytest.raises(AuthorizationError):
            executor.execute_transition(
                in_review.instance_id, review_workflow["approve"].transition_id, editor.id,
            )

    def test_revoked_grant(self, in_review, review_workflow, directory, executor):
        editor = review_workflow["editor"]
        grant = directory.grant(editor, "APPROVE")
        directory.revoke(grant)

        with pytest.raises(TransitionNotAuthorizedError):
            executor.execute_transition(
                in_review.instance_id, review_workflow["approve"].transition_id, editor.id,
            )

    def test_stale_transition(self, in_review, review_workflow, executor):
        with pytest.raises(StaleTransitionError):
            executor.execute_transition(
                in_review.instance_id,
                review_workflow["submit"].transition_id,
                review_workflow["outsider"].id,
            )

    def test_stale_transition_is_authorization_error(self, in_review, review_workflow, executor):
        with pytest.raises(AuthorizationError) as exc_info:
            executor.execute_transition(
                in_review.instance_id,
                review_workflow["submit"].transition_id,
                review_workflow["outsider"].id,
            )
        assert exc_info.value.code == "STALE_TRANSITION"

    def test_finished_instance(self, instance, review_workflow, executor):
        outsider = review_workflow["outsider"].id
        executor.cancel_workflow(instance.instance_id, outsider)

        with pytest.raises(InstanceNotActiveError):
            executor.execute_transition(
                instance.instance_id, review_workflow["submit"].transition_id, outsider,
            )
        with pytest.raises(AuthorizationError):
            executor.execute_transition(
                instance.instance_id, review_workflow["submit"].transition_id, outsider,
            )

    def test_non_participant_may_not_fire_ungated(self, review_workflow, executor):
        """Reject carries no permission code but still requires access to the instance."""
        editor = review_workflow["editor"].id
        outsider = review_workflow["outsider"].id
        started = executor.start_workflow(
            review_workflow["definition"].definition_id, "Page", uuid4(), initiator_id=editor,
        )
        executor.execute_transition(
            started.instance_id, review_workflow["submit"].transition_id, editor,
        )
        assert not executor.can_view(started.instance_id, outsider)

        with pytest.raises(InstanceAccessDeniedError) as exc_info:
            executor.execute_transition(
                started.instance_id, review_workflow["reject"].transition_id, outsider,
            )
        assert isinstance(exc_info.value, AuthorizationError)
        assert exc_info.value.operation == "transition"
        assert executor.get_instance(started.instance_id).current_action_id == (
            review_workflow["review"].action_id
        )

    def test_unknown_transition(self, instance, review_workflow, executor):
        with pytest.raises(TransitionNotFoundError):
            executor.execute_transition(
                instance.instance_id, uuid4(), review_workflow["outsider"].id,
            )

    def test_unknown_instance(self, review_workflow, executor):
        with pytest.raises(InstanceNotFoundError):
            executor.execute_transition(
                uuid4(), review_workflow["submit"].transition_id, review_workflow["outsider"].id,
            )


class TestTransitionRecords:
    def test_success_record(self, instance, review_workflow, recording_executor, outcomes):
        outsider = review_workflow["outsider"].id
        recording_executor.execute_transition(
            instance.instance_id, review_workflow["submit"].transition_id, outsider,
        )

        assert len(outcomes) == 1
        record = outcomes[0]
        assert record["trace_type"] == TRACE_TYPE_WORKFLOW_TRANSITION
        assert record["outcome"] == OUTCOME_SUCCESS
        assert record["transition"] == "Submit"
        assert record["actor_id"] == str(outsider)
        assert record["instance_id"] == str(instance.instance_id)
        assert record["from_action_id"] == str(review_workflow["draft"].action_id)
        assert record["to_action_id"] == str(review_workflow["review"].action_id)
        assert record["status"] == InstanceStatus.ACTIVE.value
        assert record["target_type"] == "Page"

    def test_denied_record(self, in_review, review_workflow, recording_executor, outcomes):
        with pytest.raises(TransitionNotAuthorizedError):
            recording_executor.execute_transition(
                in_review.instance_id,
                review_workflow["approve"].transition_id,
                review_workflow["outsider"].id,
            )
        assert [r["outcome"] for r in outcomes] == [OUTCOME_NOT_AUTHORIZED]
        assert "to_action_id" not in outcomes[0]

    def test_access_denied_record(self, in_review, review_workflow, directory, recording_executor, outcomes):
        stranger = directory.member("stranger@example.com")
        with pytest.raises(InstanceAccessDeniedError):
            recording_executor.execute_transition(
                in_review.instance_id, review_workflow["reject"].transition_id, stranger.id,
            )
        assert [r["outcome"] for r in outcomes] == [OUTCOME_NOT_AUTHORIZED]
        assert outcomes[0]["reason"] == "Member may not act on this instance"

    def test_stale_record(self, in_review, review_workflow, recording_executor, outcomes):
        with pytest.raises(StaleTransitionError):
            recording_executor.execute_transition(
                in_review.instance_id,
                review_workflow["submit"].transition_id,
                review_workflow["outsider"].id,
            )
        assert [r["outcome"] for r in outcomes] == [OUTCOME_STALE]

    def test_not_active_record(self, instance, review_workflow, recording_executor, outcomes):
        outsider = review_workflow["outsider"].id
        recording_executor.cancel_workflow(instance.instance_id, outsider)
        with pytest.raises(InstanceNotActiveError):
            recording_executor.execute_transition(
                instance.instance_id, review_workflow["submit"].transition_id, outsider,
            )
        assert [r["outcome"] for r in outcomes] == [OUTCOME_NOT_ACTIVE]

    def test_records_are_logged(self, instance, review_workflow, executor, captured_logs):
        outsider = review_workflow["outsider"].id
        executor.execute_transition(
            instance.instance_id, review_workflow["submit"].transition_id, outsider,
        )

        logs = captured_logs()
        traces = [r for r in logs if r["message"] == "workflow_transition"]
        assert len(traces) == 1
        assert traces[0]["outcome"] == OUTCOME_SUCCESS
        fired = [r for r in logs if r["message"] == "transition_fired"]
        assert len(fired) == 1
        assert fired[0]["instance_id"] == str(instance.instance_id)
        assert fired[0]["member_id"] == str(outsider)

    def test_denial_logged_as_warning(self, in_review, review_workflow, executor, captured_logs):
        with pytest.raises(TransitionNotAuthorizedError):
            executor.execute_transition(
                in_review.instance_id,
                review_workflow["approve"].transition_id,
                review_workflow["outsider"].id,
            )
        denied = [r for r in captured_logs() if r["message"] == "transition_denied"]
        assert len(denied) == 1
        assert denied[0]["level"] == "WARNING"
        assert denied[0]["transition"] == "Approve"


# ---------------------------------------------------------------------------
# cancel_workflow()
# ---------------------------------------------------------------------------


class TestCancelWorkflow:
    def test_initiator_may_cancel(self, instance, review_workflow, executor):
        cancelled = executor.cancel_workflow(instance.instance_id, review_workflow["outsider"].id)
        assert cancelled.status == InstanceStatus.CANCELLED

    def test_viewer_may_cancel(self, in_review, review_workflow, executor):
        cancelled = executor.cancel_workflow(in_review.instance_id, review_workflow["editor"].id)
        assert cancelled.status == InstanceStatus.CANCELLED

    def test_admin_may_cancel(self, instance, directory, executor):
        admin = directory.member("admin@example.com", permissions=(ADMIN_PERMISSION,))
        assert executor.cancel_workflow(instance.instance_id, admin.id).status == (
            InstanceStatus.CANCELLED
        )

    def test_stranger_may_not_cancel(self, instance, directory, executor):
        stranger = directory.member("stranger@example.com")
        with pytest.raises(InstanceAccessDeniedError) as exc_info:
            executor.cancel_workflow(instance.instance_id, stranger.id)
        assert exc_info.value.operation == "cancel"
        assert executor.get_instance(instance.instance_id).is_active
