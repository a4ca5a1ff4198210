"""Speaker Snapshot ORM: facilitator's speaker queue per (team, session).

Invariants:
    - (team, session) is the composite primary key
    - state holds SpeakerQueueState.to_dict() as JSON

Design Decisions:
    - JSON column over normalized rows: the queue is always read and written whole
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from roundtable.db.base import Base


class SpeakerSnapshot(Base):
    __tablename__ = "speaker_snapshots"

    team: Mapped[str] = mapped_column(String(200), primary_key=True)
    session: Mapped[str] = mapped_column(String(100), primary_key=True)
    state: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
