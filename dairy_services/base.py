"""
BaseService -- abstract base for all dairy services.

Responsibility:
    Provides the common constructor and session-handling contract.  All
    concrete services receive a SQLAlchemy ``Session`` and persist through
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Services -- imperative shell around the pure engines.  Every service in
    ``dairy_services/`` that touches the row store extends this class.

Invariants enforced:
    - Transaction boundaries belong to the caller (``session_scope()`` or a
      test fixture); services never commit or roll back.

Failure modes:
    - A subclass that commits on its own breaks the atomicity of
      multi-step workflows such as activating a rate table (deactivate
      siblings, then upsert).
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from dairy_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all dairy services.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
    """

    def __init__(self, session: Session):
        """
        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
