"""Replay a JSON-lines stream of editor events into a growth profile.

Each line is one event::

    {"event": "file_edit", "session": "s1", "timestamp": "2024-06-10T09:00:01Z",
     "file_path": "src/main.rs", "language": "rust"}

Sessions are named by free-form labels in the stream and mapped onto
registry handles. Ended sessions are merged into the profile as soon as
their ``end`` event is seen.
"""

import datetime as dt
import logging
from typing import Dict, Iterable, List, Literal, Optional

from pydantic import BaseModel, ValidationError, field_validator

from dendrite.core.clock import ManualClock, ensure_utc
from dendrite.core.errors import DeserializationError
from dendrite.core.registry import SessionRegistry
from dendrite.models.commit import CommitRef
from dendrite.models.profile import GrowthProfile, SessionStats

logger = logging.getLogger(__name__)

EventType = Literal[
    "start",
    "keystroke",
    "file_edit",
    "idle",
    "resume_from_idle",
    "pause",
    "resume",
    "commit",
    "end",
]


class EditorEvent(BaseModel):
    """A single line of the event stream."""

    event: EventType
    session: str
    timestamp: dt.datetime
    file_path: Optional[str] = None
    language: Optional[str] = None
    commit: Optional[CommitRef] = None

    @field_validator("timestamp")
    @classmethod
    def _utc(cls, value: dt.datetime) -> dt.datetime:
        return ensure_utc(value)


class ReplayResult(BaseModel):
    """Outcome of a replay."""

    merged: Dict[str, SessionStats] = {}
    open_sessions: Dict[str, int] = {}
    events_processed: int = 0


def _apply(event: EditorEvent, handle: int, registry: SessionRegistry) -> None:
    if event.event == "keystroke":
        registry.record_keystroke(handle)
    elif event.event == "file_edit":
        if not event.file_path or not event.language:
            raise ValueError("file_edit needs file_path and language")
        registry.record_file_edit(handle, event.file_path, event.language)
    elif event.event == "idle":
        registry.mark_idle(handle)
    elif event.event == "resume_from_idle":
        registry.resume_from_idle(handle)
    elif event.event == "pause":
        registry.pause(handle)
    elif event.event == "resume":
        registry.resume(handle)
    elif event.event == "commit":
        if event.commit is None:
            raise ValueError("commit event needs a commit object")
        registry.add_commit(handle, event.commit)


def replay_events(
    lines: Iterable[str],
    profile: GrowthProfile,
    registry: Optional[SessionRegistry] = None,
    today: Optional[dt.date] = None,
) -> ReplayResult:
    """Drive sessions through ``registry`` from ``lines`` and merge the ended ones.

    The registry must run on a ``ManualClock`` (one is created when no
    registry is given); the clock is moved to each event's timestamp, so
    timestamps must never go backwards.
    """
    if registry is None:
        registry = SessionRegistry(clock=ManualClock(dt.datetime.min))
    if not isinstance(registry.clock, ManualClock):
        raise TypeError("replay_events needs a registry driven by a ManualClock")

    result = ReplayResult()
    handles: Dict[str, int] = {}

    for line_number, line in enumerate(lines, start=1):
        if not line.strip():
            continue

        try:
            event = EditorEvent.model_validate_json(line)
        except ValidationError as e:
            raise DeserializationError("event", str(e), line=line_number) from e

        try:
            registry.clock.set(event.timestamp)
        except ValueError as e:
            raise DeserializationError("event", str(e), line=line_number) from e

        if event.event == "start":
            if event.session in handles:
                raise DeserializationError(
                    "event", f"session '{event.session}' already started", line=line_number
                )
            handles[event.session] = registry.create()
            result.events_processed += 1
            continue

        handle = handles.get(event.session)
        if handle is None:
            raise DeserializationError(
                "event", f"unknown session '{event.session}'", line=line_number
            )

        try:
            if event.event == "end":
                result.merged[event.session] = registry.end(handle)
                profile.add_session(registry.remove(handle), today=today)
                del handles[event.session]
            else:
                _apply(event, handle, registry)
        except ValueError as e:
            raise DeserializationError("event", str(e), line=line_number) from e

        result.events_processed += 1

    if handles:
        logger.warning("%s sessions still open after replay", len(handles))
    result.open_sessions = handles
    return result
