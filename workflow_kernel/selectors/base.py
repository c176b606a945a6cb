"""
Module: workflow_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side of the kernel and the SQL-backed
    implementations of the engines' reader protocols (ActionGraphReader,
    HistoryReader, IdentityProvider).
Architecture position: Kernel > Selectors.  May import from db/base.py,
    models/ and domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors accept a Session from the caller but MUST
      NOT call session.add(), session.delete(), session.commit(), or
      session.flush().
    - DTO return convention: selectors return frozen domain dataclasses,
      never ORM model instances, so no lazy relation proxy reaches an engine.
    - Session ownership: the caller owns the session and its transaction.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from workflow_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return domain DTOs.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session
