"""
Pytest configuration for revision matcher tests.

Git fixtures are real repositories created in tmp_path with GitPython.
"""
import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from types import SimpleNamespace

import pytest
from git import Actor, Repo

from revision_matcher.records import TestRun

AUTHOR = Actor("Test User", "test@example.com")
BASE_TIME = datetime(2018, 1, 1, tzinfo=timezone.utc)


def fake_commit(hexsha: str) -> SimpleNamespace:
    """Stand-in for a GitPython commit: the index only needs binsha/hexsha."""
    return SimpleNamespace(binsha=bytes.fromhex(hexsha), hexsha=hexsha)


def make_run(revision: str, minutes: int = 0, **fields) -> TestRun:
    """Build a test run created `minutes` after BASE_TIME."""
    return TestRun(revision=revision, created_at=BASE_TIME + timedelta(minutes=minutes), **fields)


def add_commit(repo: Repo, name: str, content: str, message: str | None = None):
    """Write a file into repo's working tree and commit it."""
    path = Path(repo.working_tree_dir) / name
    path.write_text(content, encoding="utf-8")
    repo.index.add([name])
    return repo.index.commit(message or f"Add {name}", author=AUTHOR, committer=AUTHOR)


def write_runs(path: Path, runs: list[dict]) -> Path:
    """Write raw run dictionaries as JSONL."""
    with open(path, "w", encoding="utf-8") as f:
        for run in runs:
            f.write(json.dumps(run) + "\n")
    return path


@pytest.fixture
def upstream(tmp_path):
    """Upstream repository with three commits."""
    repo = Repo.init(tmp_path / "upstream")
    for i in range(3):
        add_commit(repo, f"file{i}.txt", f"content {i}\n")
    return repo


@pytest.fixture
def upstream_commits(upstream):
    """Commits of the upstream repository, oldest first."""
    return list(reversed(list(upstream.iter_commits())))


@pytest.fixture(autouse=True)
def restore_logging():
    """Drop handlers installed by setup_logging so they do not outlive the test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in root.handlers[:]:
        if type(handler) in (logging.StreamHandler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
