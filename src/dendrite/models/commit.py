"""Commit reference model."""

from datetime import datetime
from typing import Tuple

from pydantic import BaseModel, computed_field, field_validator

from dendrite.core.clock import ensure_utc


class CommitRef(BaseModel):
    """A git commit made while a session was running."""

    hash: str
    message: str
    timestamp: datetime
    files_changed: Tuple[str, ...] = ()

    model_config = {"frozen": True}

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @computed_field
    @property
    def short_hash(self) -> str:
        """First 7 characters of the commit hash."""
        return self.hash[:7]
