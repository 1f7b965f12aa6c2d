"""JSON boundary for sessions, commits and profiles.

Every parse failure is raised as ``DeserializationError``; nothing here
falls back to an empty or default value.
"""

import datetime as dt
from typing import Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

from dendrite.core.errors import DeserializationError
from dendrite.core.export import ExportOptions
from dendrite.models.commit import CommitRef
from dendrite.models.profile import GrowthProfile, SessionStats
from dendrite.models.session import Session

ModelT = TypeVar("ModelT", bound=BaseModel)


def _parse(model: Type[ModelT], data: str, what: str) -> ModelT:
    try:
        return model.model_validate_json(data)
    except ValidationError as e:
        raise DeserializationError(what, str(e)) from e


def load_profile(data: str) -> GrowthProfile:
    return _parse(GrowthProfile, data, "profile")


def load_session(data: str) -> Session:
    return _parse(Session, data, "session")


def load_commit(data: str) -> CommitRef:
    return _parse(CommitRef, data, "commit")


def load_export_options(data: str) -> ExportOptions:
    return _parse(ExportOptions, data, "export options")


def dump_profile(profile: GrowthProfile, indent: Optional[int] = None) -> str:
    return profile.to_json(indent=indent)


def dump_stats(stats: SessionStats) -> str:
    return stats.model_dump_json()


def create_empty_profile() -> str:
    """JSON for a brand new profile with a fresh identifier."""
    return GrowthProfile.new().to_json()


def merge_session_json(
    profile_json: str, session_json: str, today: Optional[dt.date] = None
) -> str:
    """Parse both documents, merge the session and return the new profile JSON."""
    profile = load_profile(profile_json)
    session = load_session(session_json)
    profile.add_session(session, today=today)
    return profile.to_json()
