"""Local state repository tests (in-memory SQLite)."""

from roundtable.core.speaker_queue import SpeakerQueueState


async def test_missing_rows_read_as_defaults(local_state):
    assert await local_state.get_passphrase("Alpha") == ""
    assert await local_state.load_speaker_state("Alpha", "s1") == SpeakerQueueState()


async def test_passphrase_upsert(local_state):
    await local_state.set_passphrase("Alpha", "one")
    await local_state.set_passphrase("Alpha", "two")
    assert await local_state.get_passphrase("Alpha") == "two"
    assert await local_state.get_passphrase("Beta") == ""


async def test_speaker_state_scoped_by_team_and_session(local_state):
    state = SpeakerQueueState(spoken=["A"], speaking_now="B", ready_order=["B", "C"])
    await local_state.save_speaker_state("Alpha", "s1", state)
    await local_state.save_speaker_state("Alpha", "s1", state)

    assert await local_state.load_speaker_state("Alpha", "s1") == state
    assert await local_state.load_speaker_state("Alpha", "s2") == SpeakerQueueState()
    assert await local_state.load_speaker_state("Beta", "s1") == SpeakerQueueState()


async def test_health_check(db_manager):
    assert await db_manager.health_check() is True
