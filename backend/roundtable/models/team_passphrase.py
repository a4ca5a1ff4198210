"""Team Passphrase ORM: passphrases this device has verified, one row per team.

Invariants:
    - team is the primary key (one cached passphrase per team)
    - An empty passphrase row means "nothing cached"
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from roundtable.db.base import Base


class TeamPassphrase(Base):
    __tablename__ = "team_passphrases"

    team: Mapped[str] = mapped_column(String(200), primary_key=True)
    passphrase: Mapped[str] = mapped_column(Text, nullable=False, default="")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )
