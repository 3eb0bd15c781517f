"""Local mirror of the remote repository.

The mirror is a normal clone kept on disk between runs. It is cloned once and
fast-forwarded on every later run, so a run never pays for a full re-clone.
"""

import logging
from pathlib import Path

from git import Repo
from git.exc import GitCommandError, GitError, InvalidGitRepositoryError, NoSuchPathError

from revision_matcher.exceptions import MirrorError

logger = logging.getLogger(__name__)


def open_mirror(local_path: Path) -> Repo | None:
    """Open an existing mirror.

    Args:
        local_path: Path to the mirror working tree.

    Returns:
        Repository, or None if no repository exists at local_path.
    """
    try:
        return Repo(local_path)
    except (NoSuchPathError, InvalidGitRepositoryError):
        return None


def clone_mirror(local_path: Path, remote_url: str) -> Repo:
    """Clone remote_url into local_path.

    Raises:
        MirrorError: If the clone fails.
    """
    logger.info(f"Cloning {remote_url} into {local_path}")
    try:
        repo = Repo.clone_from(remote_url, local_path)
    except (GitError, OSError) as e:
        raise MirrorError(f"Failed to clone {remote_url} into {local_path}: {e}") from e
    logger.info(f"Cloned {remote_url}")
    return repo


def pull_mirror(repo: Repo, remote_name: str = "origin") -> None:
    """Fast-forward the mirror's current branch from its remote.

    An already up-to-date mirror is not an error.

    Raises:
        MirrorError: If the remote is missing or the pull fails.
    """
    try:
        remote = repo.remote(remote_name)
    except ValueError as e:
        raise MirrorError(f"Mirror {repo.working_dir} has no remote '{remote_name}'") from e

    before = repo.head.commit.hexsha if repo.head.is_valid() else None
    try:
        remote.pull(ff_only=True)
        after = repo.head.commit.hexsha if repo.head.is_valid() else None
    except (GitCommandError, ValueError) as e:
        raise MirrorError(f"Failed to pull {remote_name} into {repo.working_dir}: {e}") from e

    if after is None:
        logger.warning(f"Mirror at {repo.working_dir} has no commits after pulling {remote_name}")
    elif before == after:
        logger.info(f"Mirror already up to date at {after[:8]}")
    else:
        logger.info(f"Mirror updated {before[:8] if before else 'empty'} -> {after[:8]}")


def obtain(local_path: Path, remote_url: str, remote_name: str = "origin") -> Repo:
    """Open and refresh the mirror at local_path, cloning it if absent.

    Args:
        local_path: Path to the mirror working tree.
        remote_url: URL of the remote repository.
        remote_name: Name of the remote to pull from.

    Returns:
        Up-to-date repository. A fresh clone is returned as-is.

    Raises:
        MirrorError: On any transport, filesystem or repository error.
    """
    logger.info(f"Loading and storing checkout in {local_path}")

    try:
        repo = open_mirror(local_path)
    except (GitError, OSError) as e:
        raise MirrorError(f"Failed to open mirror at {local_path}: {e}") from e

    if repo is None:
        return clone_mirror(local_path, remote_url)

    try:
        urls = list(repo.remote(remote_name).urls)
    except ValueError:
        urls = []
    except GitCommandError as e:
        raise MirrorError(f"Failed to read remotes of {local_path}: {e}") from e
    if urls and remote_url not in urls:
        logger.warning(
            f"Mirror remote '{remote_name}' points at {urls[0]}, not {remote_url}; "
            "using the mirror's remote"
        )

    pull_mirror(repo, remote_name)
    return repo
