"""Caller-owned registry of live sessions addressed by numeric handles."""

import logging
from typing import Dict, List, Optional, Union

from dendrite.core.clock import Clock, SystemClock
from dendrite.core.errors import SessionNotFoundError
from dendrite.core.serialization import load_commit
from dendrite.models.commit import CommitRef
from dendrite.models.profile import SessionStats
from dendrite.models.session import Session

logger = logging.getLogger(__name__)


class SessionRegistry:
    """Owns the live sessions of one host.

    Handles start at 1 and are never reused within a registry. All sessions
    created here share the registry's clock. The registry is single-writer:
    callers serialize access themselves.
    """

    def __init__(self, clock: Optional[Clock] = None):
        self.clock = clock or SystemClock()
        self._sessions: Dict[int, Session] = {}
        self._next_id = 1

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, handle: int) -> bool:
        return handle in self._sessions

    def handles(self) -> List[int]:
        return list(self._sessions)

    def create(self) -> int:
        """Start a new session and return its handle."""
        handle = self._next_id
        self._next_id += 1
        self._sessions[handle] = Session.start(handle, clock=self.clock)
        logger.debug("Started session %s", handle)
        return handle

    def get(self, handle: int) -> Session:
        try:
            return self._sessions[handle]
        except KeyError:
            raise SessionNotFoundError(handle) from None

    def record_keystroke(self, handle: int) -> None:
        self.get(handle).record_keystroke()

    def record_file_edit(self, handle: int, file_path: str, language: str) -> None:
        self.get(handle).record_file_edit(file_path, language)

    def mark_idle(self, handle: int) -> None:
        self.get(handle).mark_idle()

    def resume_from_idle(self, handle: int) -> None:
        self.get(handle).resume_from_idle()

    def pause(self, handle: int) -> None:
        self.get(handle).pause()

    def resume(self, handle: int) -> None:
        self.get(handle).resume()

    def end(self, handle: int) -> SessionStats:
        """End the session and return its final stats. The session stays registered."""
        session = self.get(handle)
        session.end()
        return SessionStats.from_session(session)

    def add_commit(self, handle: int, commit: Union[CommitRef, str]) -> None:
        """Attach a commit, given as a ``CommitRef`` or its JSON form."""
        session = self.get(handle)
        if isinstance(commit, str):
            commit = load_commit(commit)
        session.add_commit(commit)

    def stats(self, handle: int) -> SessionStats:
        """Stats for a live or ended session (live values move with the clock)."""
        return SessionStats.from_session(self.get(handle))

    def serialize(self, handle: int) -> str:
        return self.get(handle).model_dump_json()

    def remove(self, handle: int) -> Session:
        """Drop a session from the registry and hand it back."""
        session = self.get(handle)
        del self._sessions[handle]
        return session
