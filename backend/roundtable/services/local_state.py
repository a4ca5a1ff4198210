"""Local State Repository: passphrase cache and speaker queue snapshots in SQLite.

Invariants:
    - Passphrases and speaker queues stay on this device; nothing here reaches the store
    - Missing rows read as defaults ("" / empty SpeakerQueueState), never None
    - Writes are upserts keyed by team (and session)
"""

from roundtable.core.speaker_queue import SpeakerQueueState
from roundtable.infrastructure.database import DatabaseSessionManager
from roundtable.models.speaker_snapshot import SpeakerSnapshot
from roundtable.models.team_passphrase import TeamPassphrase


class SqlLocalStateRepository:
    """LocalStateRepository backed by DatabaseSessionManager."""

    def __init__(self, db: DatabaseSessionManager):
        self._db = db

    async def get_passphrase(self, team: str) -> str:
        async with self._db.session() as session:
            row = await session.get(TeamPassphrase, team)
            return row.passphrase if row else ""

    async def set_passphrase(self, team: str, passphrase: str) -> None:
        async with self._db.session() as session:
            row = await session.get(TeamPassphrase, team)
            if row is None:
                session.add(TeamPassphrase(team=team, passphrase=passphrase))
            else:
                row.passphrase = passphrase
            await session.commit()

    async def load_speaker_state(
        self, team: str, session: str,
    ) -> SpeakerQueueState:
        async with self._db.session() as db:
            row = await db.get(SpeakerSnapshot, (team, session))
            return SpeakerQueueState.from_dict(row.state if row else None)

    async def save_speaker_state(
        self, team: str, session: str, state: SpeakerQueueState,
    ) -> None:
        async with self._db.session() as db:
            row = await db.get(SpeakerSnapshot, (team, session))
            if row is None:
                db.add(SpeakerSnapshot(team=team, session=session, state=state.to_dict()))
            else:
                row.state = state.to_dict()
            await db.commit()
