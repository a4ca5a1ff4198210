"""ORM Models: device-local state that is never synchronized to the content store.

Invariants:
    - All models inherit from Base (db/base.py)
    - Rows are keyed by team (and session) names, opaque to the remote store

Design Decisions:
    - All models imported here so metadata.create_all sees every table
"""

from roundtable.models.team_passphrase import TeamPassphrase  # noqa: F401
from roundtable.models.speaker_snapshot import SpeakerSnapshot  # noqa: F401
