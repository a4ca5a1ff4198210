"""Boundary Protocols: contracts between core/services and the IO shell.

Invariants:
    - Services depend on these Protocols, never on httpx or SQLAlchemy directly
    - Implementations provided by the Runtime via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async in Protocol: boundary methods are async because implementations do IO
"""

from collections.abc import Callable
from typing import Any, Protocol

from roundtable.core.speaker_queue import SpeakerQueueState


class ObjectStore(Protocol):
    """Contract for the versioned remote store: implemented by ContentsClient."""
    async def read(self, path: str, parse: Callable[[str], Any] = ...) -> Any: ...
    async def fetch(self, path: str) -> Any: ...
    async def list_dir(self, directory: str, suffix: str) -> list: ...
    async def write(
        self, path: str, text: str, sha: str | None, message: str,
    ) -> str: ...
    async def delete(self, path: str, sha: str, message: str) -> None: ...


class LocalStateRepository(Protocol):
    """Contract for device-local, unreplicated state: implemented by the shell."""
    async def get_passphrase(self, team: str) -> str: ...
    async def set_passphrase(self, team: str, passphrase: str) -> None: ...
    async def load_speaker_state(
        self, team: str, session: str,
    ) -> SpeakerQueueState: ...
    async def save_speaker_state(
        self, team: str, session: str, state: SpeakerQueueState,
    ) -> None: ...
