"""Revision matcher exception hierarchy.

All revision matcher exceptions inherit from RevisionMatcherError.
"""


class RevisionMatcherError(Exception):
    """Base exception for all revision matcher errors."""


class ConfigError(RevisionMatcherError):
    """Raised when the configuration file cannot be read or is invalid."""


class MirrorError(RevisionMatcherError):
    """Raised when the local repository mirror cannot be cloned, opened or pulled."""


class RecordSourceError(RevisionMatcherError):
    """Raised when test runs cannot be fetched or parsed."""


class IndexBuildError(RevisionMatcherError):
    """Raised when commits cannot be enumerated from the mirror."""


class MalformedRevisionError(RevisionMatcherError):
    """Raised when a revision is not valid hex or has the wrong length."""

    def __init__(self, revision: str, reason: str) -> None:
        self.revision = revision
        self.reason = reason
        super().__init__(f"Malformed revision {revision!r}: {reason}")


class UnresolvedRevisionsError(RevisionMatcherError):
    """Raised when runs could not be matched and misses are configured as fatal."""

    def __init__(self, revisions: list[str]) -> None:
        self.revisions = revisions
        preview = ", ".join(revisions[:5])
        if len(revisions) > 5:
            preview += f", ... ({len(revisions) - 5} more)"
        super().__init__(f"Failed to find {len(revisions)} revision(s): {preview}")
