"""Metrics and reporting for matching results."""

import logging

from revision_matcher.structures import MatchingResult, MatchStatus

logger = logging.getLogger(__name__)


def print_matching_summary(result: MatchingResult) -> None:
    """Print summary of matching results.

    Args:
        result: Matching result with statistics.
    """
    print("\n" + "=" * 70)
    print("MATCHING SUMMARY")
    print("=" * 70)

    print(f"Commits indexed:      {result.commits_indexed}")
    print(f"Suffix collisions:    {result.suffix_collisions}")
    print(f"Test runs:            {result.total_runs}")
    print(f"Matched:              {result.found}")
    print(f"Not found:            {result.missing}")
    print(f"Malformed:            {result.malformed}")

    if result.total_runs > 0:
        print(f"Match rate:           {result.match_rate:.1%}")

    missing = result.missing_revisions
    if missing:
        print("\nUnresolved revisions:")
        for revision in missing[:10]:
            print(f"  {revision}")
        if len(missing) > 10:
            print(f"  ... and {len(missing) - 10} more")

    print("=" * 70)

    logger.info(f"Matching completed: {result.found}/{result.total_runs} runs matched")
    logger.info(f"Not found: {result.missing}, malformed: {result.malformed}")


def print_lookup_line(revision: str, hexsha: str | None) -> None:
    """Print one lookup result as "revision sha" or "revision NOT FOUND"."""
    print(f"{revision} {hexsha if hexsha else 'NOT FOUND'}")


def status_counts(result: MatchingResult) -> dict[str, int]:
    """Match counts keyed by status name."""
    return {
        MatchStatus.FOUND.value: result.found,
        MatchStatus.MISSING.value: result.missing,
        MatchStatus.MALFORMED.value: result.malformed,
    }
