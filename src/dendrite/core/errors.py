"""Error types raised by the Dendrite core."""

from typing import Optional


class DendriteError(Exception):
    """Base class for all recoverable Dendrite failures."""


class DeserializationError(DendriteError, ValueError):
    """Persisted or incoming data is malformed or does not match the schema."""

    def __init__(self, what: str, detail: str, line: Optional[int] = None):
        self.what = what
        self.detail = detail
        self.line = line
        location = f" (line {line})" if line is not None else ""
        super().__init__(f"Invalid {what}{location}: {detail}")


class SessionNotFoundError(DendriteError, LookupError):
    """An operation referenced a session handle the registry does not know."""

    def __init__(self, handle: int):
        self.handle = handle
        super().__init__(f"Session {handle} not found")


class InvalidTransitionError(DendriteError, RuntimeError):
    """A session was asked to change after it already ended."""

    def __init__(self, session_id: int, operation: str):
        self.session_id = session_id
        self.operation = operation
        super().__init__(f"Cannot {operation}: session {session_id} has ended")


class ConfigError(DendriteError):
    """The configuration file could not be read or validated."""


class ProfileNotInitializedError(DendriteError):
    """No profile exists in the data directory yet."""
