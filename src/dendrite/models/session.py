"""Session model for tracking a period of editor activity."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, PrivateAttr, field_validator

from dendrite.core.clock import Clock, SystemClock, elapsed_ms, ensure_utc
from dendrite.core.config import ACTIVITY_GAP_THRESHOLD_MS, LANGUAGE_CREDIT_MS
from dendrite.core.errors import InvalidTransitionError
from dendrite.models.commit import CommitRef

logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    """Lifecycle state of a session."""

    ACTIVE = "active"
    IDLE = "idle"
    PAUSED = "paused"
    ENDED = "ended"


class IdlePeriod(BaseModel):
    """A gap in activity during a session."""

    started_at: datetime
    ended_at: Optional[datetime] = None
    duration_ms: int = Field(default=0, ge=0)

    @field_validator("started_at", "ended_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @property
    def is_open(self) -> bool:
        return self.ended_at is None

    def close(self, ended_at: datetime) -> None:
        self.ended_at = ended_at
        self.duration_ms = max(0, elapsed_ms(self.started_at, ended_at))


class Session(BaseModel):
    """A tracked period of focused work.

    Only the fields below are persisted. The lifecycle state, the instant of
    the last counted activity and the open idle interval are call-time state
    held in private attributes; a session parsed from JSON rebuilds them from
    ``ended_at`` and ``idle_periods``.
    """

    id: int
    started_at: datetime
    ended_at: Optional[datetime] = None
    active_time_ms: int = Field(default=0, ge=0)
    keystroke_count: int = Field(default=0, ge=0)
    files_edited: List[str] = []
    languages: Dict[str, int] = {}
    idle_periods: List[IdlePeriod] = []
    commits: List[CommitRef] = []

    _state: SessionState = PrivateAttr(default=SessionState.ACTIVE)
    _last_activity: Optional[datetime] = PrivateAttr(default=None)
    _current_idle: Optional[IdlePeriod] = PrivateAttr(default=None)
    _clock: Clock = PrivateAttr(default_factory=SystemClock)

    @field_validator("started_at", "ended_at")
    @classmethod
    def _utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @field_validator("files_edited")
    @classmethod
    def _unique_files(cls, value: List[str]) -> List[str]:
        if len(set(value)) != len(value):
            raise ValueError("files_edited contains duplicate paths")
        return value

    def model_post_init(self, __context: Any) -> None:
        if self.ended_at is not None:
            self._state = SessionState.ENDED
        else:
            self._state = SessionState.ACTIVE
        self._last_activity = self._latest_persisted_instant()

    @classmethod
    def start(cls, session_id: int, clock: Optional[Clock] = None) -> "Session":
        """Begin a new active session at the clock's current time."""
        clock = clock or SystemClock()
        session = cls(id=session_id, started_at=clock.now())
        session.attach_clock(clock)
        return session

    def attach_clock(self, clock: Clock) -> None:
        self._clock = clock

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_ended(self) -> bool:
        return self._state == SessionState.ENDED

    @property
    def current_idle(self) -> Optional[IdlePeriod]:
        return self._current_idle

    def record_keystroke(self) -> None:
        self._ensure_not_ended("record keystroke")
        self.keystroke_count += 1
        self._update_activity_time()

    def record_file_edit(self, file_path: str, language: str) -> None:
        self._ensure_not_ended("record file edit")
        if file_path not in self.files_edited:
            self.files_edited.append(file_path)
        self._update_activity_time()
        self.languages[language] = self.languages.get(language, 0) + LANGUAGE_CREDIT_MS

    def mark_idle(self) -> None:
        self._ensure_not_ended("mark idle")
        if self._state != SessionState.ACTIVE:
            return
        self._state = SessionState.IDLE
        self._current_idle = IdlePeriod(started_at=self._clock.now())
        logger.debug("Session %s went idle", self.id)

    def resume_from_idle(self) -> None:
        self._ensure_not_ended("resume from idle")
        if self._state != SessionState.IDLE:
            return
        now = self._clock.now()
        self._close_idle(now)
        self._state = SessionState.ACTIVE
        self._last_activity = now
        logger.debug("Session %s resumed from idle", self.id)

    def pause(self) -> None:
        self._ensure_not_ended("pause")
        if self._state == SessionState.ACTIVE:
            self._state = SessionState.PAUSED

    def resume(self) -> None:
        self._ensure_not_ended("resume")
        if self._state == SessionState.PAUSED:
            self._state = SessionState.ACTIVE
            self._last_activity = self._clock.now()

    def end(self) -> None:
        """End the session. Irreversible."""
        self._ensure_not_ended("end")
        now = self._clock.now()
        self._close_idle(now)
        self.ended_at = now
        self._state = SessionState.ENDED
        logger.debug("Session %s ended after %sms", self.id, self.total_duration_ms())

    def add_commit(self, commit: CommitRef) -> None:
        self._ensure_not_ended("add commit")
        self.commits.append(commit)

    def total_duration_ms(self) -> int:
        """Duration in ms; live (re-read from the clock) until the session ends."""
        end = self.ended_at if self.ended_at is not None else self._clock.now()
        return max(0, elapsed_ms(self.started_at, end))

    def active_percentage(self) -> float:
        """Fraction of the duration spent active, between 0.0 and 1.0."""
        total = self.total_duration_ms()
        if total == 0:
            return 0.0
        return self.active_time_ms / total

    def primary_language(self) -> Optional[str]:
        """Language with the most credited time; ties go to the smallest name."""
        if not self.languages:
            return None
        return min(self.languages.items(), key=lambda item: (-item[1], item[0]))[0]

    def _ensure_not_ended(self, operation: str) -> None:
        if self._state == SessionState.ENDED:
            raise InvalidTransitionError(self.id, operation)

    def _close_idle(self, now: datetime) -> None:
        if self._current_idle is None:
            return
        idle = self._current_idle
        idle.close(now)
        self.idle_periods.append(idle)
        self._current_idle = None

    def _update_activity_time(self) -> None:
        if self._state != SessionState.ACTIVE:
            return
        now = self._clock.now()
        if self._last_activity is not None:
            delta = elapsed_ms(self._last_activity, now)
            if 0 <= delta < ACTIVITY_GAP_THRESHOLD_MS:
                self.active_time_ms += delta
        self._last_activity = now

    def _latest_persisted_instant(self) -> datetime:
        if self.ended_at is not None:
            return self.ended_at
        closed = [p.ended_at for p in self.idle_periods if p.ended_at is not None]
        return max([self.started_at] + closed)
