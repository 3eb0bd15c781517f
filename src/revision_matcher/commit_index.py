"""Sorted index over every commit in the mirror, searchable by hash suffix.

Commits are kept in ascending order of their full binary hash. Suffix lookups
go through a second ordering of the same commits keyed by their trailing
bytes, so a binary search over truncated keys stays exact even though the
suffixes do not follow the full-hash order.
"""

import bisect
import logging
from collections.abc import Iterable, Iterator
from operator import attrgetter

from git import Repo
from git.exc import GitError
from git.objects import Commit

from revision_matcher.exceptions import IndexBuildError

logger = logging.getLogger(__name__)

SUFFIX_LENGTH = 5


class CommitIndex:
    """Immutable, hash-sorted sequence of commits with suffix lookup.

    Anything with a ``binsha`` bytes attribute can be indexed. Once built the
    index is never mutated, so concurrent lookups need no locking.
    """

    def __init__(self, commits: Iterable[Commit], suffix_length: int = SUFFIX_LENGTH) -> None:
        if suffix_length <= 0:
            raise ValueError(f"suffix_length must be positive, got {suffix_length}")
        self._suffix_length = suffix_length
        self._commits = tuple(sorted(commits, key=attrgetter("binsha")))

        # Stable sort: commits sharing a suffix stay in full-hash order.
        order = sorted(
            range(len(self._commits)),
            key=lambda i: self._commits[i].binsha[-suffix_length:],
        )
        self._suffix_positions = tuple(order)
        self._suffix_keys = tuple(self._commits[i].binsha[-suffix_length:] for i in order)

    @property
    def suffix_length(self) -> int:
        return self._suffix_length

    @property
    def commits(self) -> tuple[Commit, ...]:
        return self._commits

    def __len__(self) -> int:
        return len(self._commits)

    def __getitem__(self, position: int) -> Commit:
        return self._commits[position]

    def __iter__(self) -> Iterator[Commit]:
        return iter(self._commits)

    def _check_suffix(self, suffix: bytes) -> None:
        if len(suffix) != self._suffix_length:
            raise ValueError(
                f"Expected a {self._suffix_length}-byte suffix, got {len(suffix)} bytes"
            )

    def lookup(self, suffix: bytes) -> int | None:
        """Find the position of a commit whose hash ends with suffix.

        Args:
            suffix: Trailing hash bytes, exactly suffix_length long.

        Returns:
            Position in full-hash order, or None if no commit matches. When
            several commits share the suffix, the one with the lowest full
            hash is returned.
        """
        self._check_suffix(suffix)
        i = bisect.bisect_left(self._suffix_keys, suffix)
        if i < len(self._suffix_keys) and self._suffix_keys[i] == suffix:
            return self._suffix_positions[i]
        return None

    def lookup_all(self, suffix: bytes) -> list[int]:
        """Positions of every commit whose hash ends with suffix, in hash order."""
        self._check_suffix(suffix)
        lo = bisect.bisect_left(self._suffix_keys, suffix)
        hi = bisect.bisect_right(self._suffix_keys, suffix, lo=lo)
        return list(self._suffix_positions[lo:hi])

    def find(self, suffix: bytes) -> Commit | None:
        """Commit whose hash ends with suffix, or None."""
        position = self.lookup(suffix)
        if position is None:
            return None
        return self._commits[position]

    def collisions(self) -> dict[bytes, list[Commit]]:
        """Suffixes shared by more than one commit."""
        shared: dict[bytes, list[Commit]] = {}
        keys = self._suffix_keys
        for i in range(1, len(keys)):
            if keys[i] == keys[i - 1]:
                bucket = shared.setdefault(keys[i], [self._commits[self._suffix_positions[i - 1]]])
                bucket.append(self._commits[self._suffix_positions[i]])
        return shared


def _stream_lines(repo: Repo, command: str, *args: str) -> Iterator[str]:
    """Yield the stdout lines of a git command as they are produced.

    The exit status is checked once output is exhausted; a failure raises
    GitCommandError.
    """
    proc = getattr(repo.git, command)(*args, as_process=True)
    for raw in proc.stdout:
        line = raw.decode("ascii").strip()
        if line:
            yield line
    proc.wait()


def iter_commit_objects(repo: Repo) -> Iterator[Commit]:
    """Yield every commit object in the repository's object database.

    This includes commits no longer reachable from any ref.
    """
    for line in _stream_lines(
        repo,
        "cat_file",
        "--batch-all-objects",
        "--unordered",
        "--batch-check=%(objectname) %(objecttype)",
    ):
        hexsha, _, object_type = line.partition(" ")
        if object_type == "commit":
            yield Commit(repo, bytes.fromhex(hexsha))


def iter_ref_commits(repo: Repo) -> Iterator[Commit]:
    """Yield every commit reachable from any ref."""
    for hexsha in _stream_lines(repo, "rev_list", "--all"):
        yield Commit(repo, bytes.fromhex(hexsha))


def build_commit_index(
    repo: Repo, suffix_length: int = SUFFIX_LENGTH, scope: str = "objects"
) -> CommitIndex:
    """Enumerate the mirror's commits and build a sorted index.

    Args:
        repo: GitPython repository object.
        suffix_length: Number of trailing hash bytes used for lookups.
        scope: "objects" for every commit object, "refs" for commits
            reachable from refs.

    Returns:
        Fully built CommitIndex.

    Raises:
        IndexBuildError: If commits cannot be enumerated.
    """
    if scope == "objects":
        enumerate_commits = iter_commit_objects
    elif scope == "refs":
        enumerate_commits = iter_ref_commits
    else:
        raise ValueError(f"Unknown history scope: {scope}")

    logger.info("Gathering commits")
    try:
        commits = list(enumerate_commits(repo))
    except (GitError, OSError, ValueError) as e:
        raise IndexBuildError(f"Failed to enumerate commits in {repo.git_dir}: {e}") from e
    logger.info(f"Gathered {len(commits)} commits")

    logger.info("Sorting commits")
    index = CommitIndex(commits, suffix_length)

    collisions = index.collisions()
    if collisions:
        logger.warning(
            f"{len(collisions)} hash suffix(es) are shared by more than one commit; "
            "lookups return the lowest full hash"
        )
        for suffix, shared in list(collisions.items())[:10]:
            logger.debug(f"  {suffix.hex()}: {', '.join(c.hexsha[:12] for c in shared)}")

    return index
