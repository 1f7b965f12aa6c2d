"""Git commit references and their correlation with sessions."""

import logging
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from git import Repo
from pydantic import BaseModel

from dendrite.core.clock import ensure_utc
from dendrite.models.commit import CommitRef
from dendrite.models.profile import GrowthProfile

logger = logging.getLogger(__name__)


class CommitCorrelation(BaseModel):
    """A commit together with the session it was made in."""

    commit: CommitRef
    session_id: int
    session_duration_ms: int
    files_in_common: List[str]


def get_commit_correlations(profile: GrowthProfile) -> List[CommitCorrelation]:
    """Pair every commit in the profile with its session and the files both touched."""
    correlations = []

    for stored in profile.sessions:
        session = stored.session
        for commit in session.commits:
            changed = set(commit.files_changed)
            files_in_common = [f for f in session.files_edited if f in changed]
            correlations.append(
                CommitCorrelation(
                    commit=commit,
                    session_id=session.id,
                    session_duration_ms=session.total_duration_ms(),
                    files_in_common=files_in_common,
                )
            )

    return correlations


def _to_commit_ref(commit) -> CommitRef:
    return CommitRef(
        hash=commit.hexsha,
        message=commit.message.strip(),
        timestamp=ensure_utc(commit.committed_datetime),
        files_changed=tuple(sorted(str(path) for path in commit.stats.files)),
    )


def commit_ref_from_git(repo_path: Path, rev: str = "HEAD") -> CommitRef:
    """Build a ``CommitRef`` for ``rev`` in the repository at ``repo_path``."""
    repo = Repo(repo_path, search_parent_directories=True)
    return _to_commit_ref(repo.commit(rev))


def commits_between(
    repo_path: Path,
    since: datetime,
    until: Optional[datetime] = None,
    rev: str = "HEAD",
) -> List[CommitRef]:
    """Commits reachable from ``rev`` made in ``[since, until]``, oldest first."""
    repo = Repo(repo_path, search_parent_directories=True)
    since = ensure_utc(since)
    until = ensure_utc(until) if until is not None else None

    refs = []
    for commit in repo.iter_commits(rev):
        committed = ensure_utc(commit.committed_datetime)
        if committed < since:
            continue
        if until is not None and committed > until:
            continue
        refs.append(_to_commit_ref(commit))

    refs.reverse()
    logger.debug("Found %s commits between %s and %s", len(refs), since, until)
    return refs
