"""Test run revision matching pipeline.

This module matches recorded test runs, each tagged with a short hex revision,
to the commits they were run against in a local mirror of the tested
repository.
"""

import logging
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, wait

from revision_matcher.commit_index import CommitIndex, build_commit_index
from revision_matcher.config import Config, setup_logging
from revision_matcher.exceptions import UnresolvedRevisionsError
from revision_matcher.jsonl_writer import write_matches
from revision_matcher.metrics import print_matching_summary, status_counts
from revision_matcher.mirror import obtain
from revision_matcher.records import TestRun, fetch_runs, open_record_source
from revision_matcher.resolver import resolve_all, summarize
from revision_matcher.structures import MatchingResult

logger = logging.getLogger(__name__)


def prepare_inputs(config: Config) -> tuple[list[TestRun], CommitIndex]:
    """Fetch runs and sync the mirror in parallel, then index the mirror.

    A failure in either setup task is logged as soon as it happens, but is
    raised only after the other task finishes; a running clone or pull cannot
    be interrupted safely.

    Args:
        config: Configuration object.

    Returns:
        Tuple of (runs most recent first, fully built commit index).
    """
    source = open_record_source(config)

    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="setup") as pool:
        runs_future = pool.submit(fetch_runs, source)
        repo_future = pool.submit(
            obtain,
            config.mirror.path,
            config.mirror.remote_url,
            config.mirror.remote_name,
        )
        stages = {runs_future: "Loading test runs", repo_future: "Syncing the mirror"}
        done, _ = wait(stages, return_when=FIRST_EXCEPTION)
        for future in done:
            exc = future.exception()
            if exc is not None:
                logger.error(f"{stages[future]} failed: {exc}; waiting for the other setup task")
        runs = runs_future.result()
        repo = repo_future.result()

    index = build_commit_index(
        repo,
        suffix_length=config.matching.suffix_length,
        scope=config.mirror.history_scope,
    )
    return runs, index


def run_matching(config: Config | None = None) -> MatchingResult:
    """Run the revision matching pipeline.

    Args:
        config: Configuration object. Loaded from the default file if None.

    Returns:
        MatchingResult with per-run matches in run order.

    Raises:
        RevisionMatcherError: On any fatal setup, index or decode failure, or
            on unresolved runs when matching.fail_on_missing is set.
    """
    if config is None:
        config = Config.from_file()

    setup_logging(config)
    logger.info("Starting revision matching")
    logger.info(f"Remote: {config.mirror.remote_url}")
    logger.info(f"Caching data in {config.data.path}")
    config.data.path.mkdir(mode=0o755, parents=True, exist_ok=True)

    runs, index = prepare_inputs(config)

    matches = resolve_all(
        runs,
        index,
        strict=config.matching.strict_revisions,
        max_workers=config.matching.max_workers,
    )
    result = summarize(matches, index)
    logger.info(f"Match counts: {status_counts(result)}")

    if config.output.jsonl_path:
        write_matches(result.matches, config.output.jsonl_path)
        print(f"\nWrote {len(result.matches)} matches to {config.output.jsonl_path}")

    print_matching_summary(result)

    if config.matching.fail_on_missing and result.missing:
        raise UnresolvedRevisionsError(result.missing_revisions)

    return result


__all__ = [
    "run_matching",
    "prepare_inputs",
]
