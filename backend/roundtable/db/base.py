"""SQLAlchemy Declarative Base: shared base class for local-state ORM models.

Invariants:
    - All models inherit from Base
    - Base is the single source of truth for table metadata
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all Round Table ORM models."""
    pass
