"""
BaseService -- abstract base for kernel write services.

Responsibility:
    Common constructor and session-handling contract.  Services receive a
    SQLAlchemy ``Session`` and use ``session.flush()`` -- never
    ``session.commit()``.  The caller (HTTP handler, scan driver, CLI
    ``session_scope``, test) owns commit and rollback.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
"""

from abc import ABC
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy.orm import Session

from revcon_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)

# Actor recorded for writes with no human behind them (scheduled scan,
# maintenance scripts).
SYSTEM_ACTOR_ID = UUID("00000000-0000-0000-0000-000000000000")


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()`` on the outer transaction.  SAVEPOINTs it
          opens itself are committed or rolled back locally.
    """

    def __init__(self, session: Session):
        self.session = session
