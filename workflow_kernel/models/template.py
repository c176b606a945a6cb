"""
Module: workflow_kernel.models.template
Responsibility: ORM persistence for imported workflow template documents.

Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Template names are unique; re-importing a name is rejected.
    - ``content`` stores the raw document exactly as imported, with a
      SHA-256 ``checksum`` for change detection.
"""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from workflow_kernel.db.base import Base, UUIDString


class ImportedTemplateModel(Base):
    """A workflow template document that has been imported."""

    __tablename__ = "workflow_imported_templates"

    name: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    checksum: Mapped[str] = mapped_column(String(64), nullable=False)
    definition_id: Mapped[UUID | None] = mapped_column(
        UUIDString(), ForeignKey("workflow_definitions.id"), nullable=True,
    )
    imported_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    imported_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<ImportedTemplate {self.id} {self.name!r}>"
