"""
Module: workflow_kernel.selectors.history_selector
Responsibility: Read-only access to workflow instances and their action
    history.  SQL-backed HistoryReader.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - ``history_of`` returns entries ordered by ``sequence`` ascending
      (oldest first); resolvers reverse it for newest-first scans.
    - Readers take no locks; each append is a single committed row, so a
      reader never observes a partially written entry.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from workflow_kernel.domain.workflow import (
    InstanceStatus,
    WorkflowActionInstance,
    WorkflowInstance,
)
from workflow_kernel.exceptions import InstanceNotFoundError
from workflow_kernel.models.workflow import (
    WorkflowActionInstanceModel,
    WorkflowInstanceModel,
)
from workflow_kernel.selectors.base import BaseSelector


class WorkflowHistorySelector(BaseSelector[WorkflowInstanceModel]):
    """Selector for instances and their append-only history (HistoryReader)."""

    def __init__(self, session: Session):
        super().__init__(session)

    def get_instance(self, instance_id: UUID) -> WorkflowInstance:
        model = self.session.get(WorkflowInstanceModel, instance_id)
        if model is None:
            raise InstanceNotFoundError(str(instance_id))
        return model.to_dto()

    def instances_for_target(
        self,
        target_type: str,
        target_id: UUID,
        active_only: bool = True,
    ) -> list[WorkflowInstance]:
        stmt = select(WorkflowInstanceModel).where(
            WorkflowInstanceModel.target_type == target_type,
            WorkflowInstanceModel.target_id == target_id,
        )
        if active_only:
            stmt = stmt.where(WorkflowInstanceModel.status == InstanceStatus.ACTIVE.value)
        models = self.session.execute(
            stmt.order_by(WorkflowInstanceModel.created_at)
        ).scalars().all()
        return [m.to_dto() for m in models]

    def history_of(self, instance_id: UUID) -> tuple[WorkflowActionInstance, ...]:
        models = self.session.execute(
            select(WorkflowActionInstanceModel)
            .where(WorkflowActionInstanceModel.instance_id == instance_id)
            .order_by(WorkflowActionInstanceModel.sequence)
        ).scalars().all()
        return tuple(m.to_dto() for m in models)
