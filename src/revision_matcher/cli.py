"""CLI for matching test run revisions to commits."""

from pathlib import Path

import typer
from dotenv import load_dotenv

from revision_matcher import run_matching
from revision_matcher.commit_index import build_commit_index
from revision_matcher.config import Config, setup_logging
from revision_matcher.exceptions import MalformedRevisionError, RevisionMatcherError
from revision_matcher.metrics import print_lookup_line
from revision_matcher.mirror import obtain, open_mirror
from revision_matcher.resolver import decode_revision

# Load .env file if present
load_dotenv()

app = typer.Typer(help="Match recorded test runs to commits in a repository mirror")


def load_config(
    config_path: Path | None,
    mirror: Path | None,
    remote: str | None,
    verbose: bool,
) -> Config:
    """Load configuration and apply the options shared by all commands."""
    config = Config.from_file(config_path)
    if mirror:
        config.mirror.path = mirror
    if remote:
        config.mirror.remote_url = remote
    if verbose:
        config.logging.level = "DEBUG"
    return config


@app.command()
def run(
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML configuration file",
    ),
    mirror: Path = typer.Option(
        None,
        "--mirror",
        "-m",
        help="Path to the local repository mirror",
    ),
    remote: str = typer.Option(
        None,
        "--remote",
        "-r",
        help="URL of the remote repository",
    ),
    data_dir: Path = typer.Option(
        None,
        "--data-dir",
        help="Directory for cached data",
    ),
    records: Path = typer.Option(
        None,
        "--records",
        help="Local JSONL file of test runs",
    ),
    dataset: str = typer.Option(
        None,
        "--dataset",
        "-d",
        help="Hugging Face dataset holding the test runs file",
    ),
    output: Path = typer.Option(
        None,
        "--output",
        "-o",
        help="Output JSONL file for matches",
    ),
    max_runs: int = typer.Option(
        None,
        "--max-runs",
        "-n",
        help="Max most recent runs to match (-1 = all)",
    ),
    workers: int = typer.Option(
        None,
        "--workers",
        "-w",
        help="Max concurrent resolutions",
    ),
    lenient: bool = typer.Option(
        False,
        "--lenient",
        help="Report malformed revisions per run instead of aborting",
    ),
    fail_on_missing: bool = typer.Option(
        False,
        "--fail-on-missing",
        help="Exit with an error if any revision is not found",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Sync the mirror, load test runs and match each run to its commit."""
    try:
        config = load_config(config_path, mirror, remote, verbose)
        if data_dir:
            config.data.path = data_dir
        if records:
            config.records.path = records
            config.records.dataset = None
        if dataset:
            config.records.dataset = dataset
            config.records.path = None
        if output:
            config.output.jsonl_path = output
        if max_runs is not None:
            config.records.max_runs = max_runs
        if workers is not None:
            config.matching.max_workers = workers
        if lenient:
            config.matching.strict_revisions = False
        if fail_on_missing:
            config.matching.fail_on_missing = True
        config.validate()

        result = run_matching(config)
    except RevisionMatcherError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Matched {result.found}/{result.total_runs} runs")


@app.command()
def lookup(
    revisions: list[str] = typer.Argument(..., help="Hex revisions to resolve"),
    config_path: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML configuration file",
    ),
    mirror: Path = typer.Option(
        None,
        "--mirror",
        "-m",
        help="Path to the local repository mirror",
    ),
    remote: str = typer.Option(
        None,
        "--remote",
        "-r",
        help="URL of the remote repository",
    ),
    no_sync: bool = typer.Option(
        False,
        "--no-sync",
        help="Use the mirror as-is without pulling",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging",
    ),
) -> None:
    """Resolve individual revisions against the mirror."""
    try:
        config = load_config(config_path, mirror, remote, verbose)
        setup_logging(config)

        if no_sync:
            repo = open_mirror(config.mirror.path)
            if repo is None:
                typer.echo(f"No mirror at {config.mirror.path}", err=True)
                raise typer.Exit(1)
        else:
            repo = obtain(config.mirror.path, config.mirror.remote_url, config.mirror.remote_name)

        index = build_commit_index(
            repo,
            suffix_length=config.matching.suffix_length,
            scope=config.mirror.history_scope,
        )

        missing = 0
        for revision in revisions:
            try:
                commit = index.find(decode_revision(revision, index.suffix_length))
            except MalformedRevisionError as e:
                typer.echo(f"Error: {e}", err=True)
                raise typer.Exit(1)
            print_lookup_line(revision, commit.hexsha if commit is not None else None)
            if commit is None:
                missing += 1
    except RevisionMatcherError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)

    if missing:
        raise typer.Exit(2)


def main() -> None:
    """Entry point."""
    app()


if __name__ == "__main__":
    main()
