"""Data structures for the revision matching pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from git.objects import Commit

    from revision_matcher.records import TestRun


class MatchStatus(str, Enum):
    """Outcome of resolving a single test run."""

    FOUND = "found"
    MISSING = "missing"  # well-formed revision, no matching commit
    MALFORMED = "malformed"  # only produced when strict revisions are disabled


@dataclass
class RunMatch:
    """Result slot for one test run, addressed by its input position."""

    run: TestRun
    status: MatchStatus
    commit: Commit | None = None
    error: str | None = None

    @property
    def found(self) -> bool:
        return self.status is MatchStatus.FOUND


@dataclass
class MatchingResult:
    """Overall statistics from the matching process."""

    total_runs: int
    found: int
    missing: int
    malformed: int
    commits_indexed: int
    suffix_collisions: int
    matches: list[RunMatch] = field(default_factory=list)

    @property
    def match_rate(self) -> float:
        """Fraction of runs resolved to a commit."""
        if self.total_runs == 0:
            return 0.0
        return self.found / self.total_runs

    @property
    def missing_revisions(self) -> list[str]:
        return [m.run.revision for m in self.matches if m.status is MatchStatus.MISSING]
