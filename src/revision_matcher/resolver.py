"""Concurrent resolution of test run revisions against the commit index."""

import binascii
import logging
from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, wait

from revision_matcher.commit_index import SUFFIX_LENGTH, CommitIndex
from revision_matcher.exceptions import MalformedRevisionError
from revision_matcher.records import TestRun
from revision_matcher.structures import MatchingResult, MatchStatus, RunMatch

logger = logging.getLogger(__name__)

DEFAULT_MAX_WORKERS = 32


def decode_revision(revision: str, suffix_length: int = SUFFIX_LENGTH) -> bytes:
    """Decode a hex revision into its binary hash suffix.

    Args:
        revision: Hex string, exactly 2 * suffix_length characters.
        suffix_length: Expected decoded length in bytes.

    Returns:
        Decoded suffix.

    Raises:
        MalformedRevisionError: If revision is not hex or decodes to the
            wrong number of bytes.
    """
    try:
        suffix = binascii.unhexlify(revision)
    except (binascii.Error, ValueError) as e:
        raise MalformedRevisionError(revision, str(e)) from e
    if len(suffix) != suffix_length:
        raise MalformedRevisionError(revision, f"Unexpected hash length: {len(suffix)} bytes")
    return suffix


def resolve_run(run: TestRun, index: CommitIndex, strict: bool = True) -> RunMatch:
    """Resolve one run against the index.

    Raises:
        MalformedRevisionError: If the revision is malformed and strict is set.
    """
    try:
        suffix = decode_revision(run.revision, index.suffix_length)
    except MalformedRevisionError as e:
        if strict:
            raise
        logger.warning(f"Skipping malformed revision {run.revision!r}: {e.reason}")
        return RunMatch(run=run, status=MatchStatus.MALFORMED, error=e.reason)

    commit = index.find(suffix)
    if commit is None:
        logger.warning(f"Failed to find revision for {run.revision}")
        return RunMatch(run=run, status=MatchStatus.MISSING)

    logger.info(f"Found commit for {run.revision}: {commit.hexsha[:12]}")
    return RunMatch(run=run, status=MatchStatus.FOUND, commit=commit)


def resolve_all(
    runs: Iterable[TestRun],
    index: CommitIndex,
    *,
    strict: bool = True,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> list[RunMatch]:
    """Resolve every run concurrently, returning results in input order.

    Every run is processed before this returns, even when one of them fails.

    Args:
        runs: Runs to resolve.
        index: Fully built commit index, shared read-only by all workers.
        strict: Treat a malformed revision as fatal for the whole batch.
        max_workers: Upper bound on concurrent resolutions.

    Returns:
        One RunMatch per run, at the run's input position.

    Raises:
        MalformedRevisionError: In strict mode, for the first malformed
            revision in input order.
    """
    runs = list(runs)
    if not runs:
        return []

    logger.info(f"Matching commits for {len(runs)} runs")
    with ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="resolve") as pool:
        futures = [pool.submit(resolve_run, run, index, strict) for run in runs]
        wait(futures)

    # Slots are filled by position; result() re-raises a worker's exception.
    return [future.result() for future in futures]


def summarize(matches: list[RunMatch], index: CommitIndex) -> MatchingResult:
    """Aggregate per-run outcomes into batch statistics."""
    counts = {status: 0 for status in MatchStatus}
    for match in matches:
        counts[match.status] += 1

    return MatchingResult(
        total_runs=len(matches),
        found=counts[MatchStatus.FOUND],
        missing=counts[MatchStatus.MISSING],
        malformed=counts[MatchStatus.MALFORMED],
        commits_indexed=len(index),
        suffix_collisions=len(index.collisions()),
        matches=matches,
    )
