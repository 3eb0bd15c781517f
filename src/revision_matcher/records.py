"""Test run records.

Runs are read from JSONL, either a local file or a file in a Hugging Face
dataset repository, and are always returned most recent first.
"""

import json
import logging
import os
from collections.abc import Iterator
from datetime import datetime
from pathlib import Path
from typing import Protocol

from huggingface_hub import hf_hub_download
from huggingface_hub.errors import HfHubHTTPError
from pydantic import BaseModel, ConfigDict, ValidationError

from revision_matcher.config import Config
from revision_matcher.exceptions import RecordSourceError

logger = logging.getLogger(__name__)


class TestRun(BaseModel):
    """One recorded test execution."""

    model_config = ConfigDict(extra="ignore", frozen=True)
    __test__ = False  # not a pytest test class

    revision: str  # hex-encoded hash suffix
    created_at: datetime
    browser_name: str | None = None
    browser_version: str | None = None
    os_name: str | None = None
    os_version: str | None = None
    results_url: str | None = None


class RecordSource(Protocol):
    """Read-only supplier of test runs, most recent first."""

    def query(self) -> Iterator[TestRun]: ...


def read_runs(input_path: Path) -> Iterator[TestRun]:
    """Parse test runs from a JSONL file in file order.

    Args:
        input_path: Path to JSONL file.

    Yields:
        Parsed runs.

    Raises:
        RecordSourceError: If the file cannot be read or a line is invalid.
    """
    try:
        with open(input_path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    yield TestRun.model_validate(json.loads(line))
                except (json.JSONDecodeError, ValidationError) as e:
                    raise RecordSourceError(
                        f"Invalid test run at {input_path}:{line_number}: {e}"
                    ) from e
    except (OSError, UnicodeDecodeError) as e:
        raise RecordSourceError(f"Failed to read test runs from {input_path}: {e}") from e


def order_runs(runs: Iterator[TestRun], max_runs: int = -1) -> list[TestRun]:
    """Sort runs by creation time, most recent first, keeping at most max_runs."""
    ordered = sorted(runs, key=lambda run: run.created_at, reverse=True)
    if max_runs >= 0:
        ordered = ordered[:max_runs]
    return ordered


class JsonlRecordSource:
    """Test runs stored in a local JSONL file."""

    def __init__(self, path: Path, max_runs: int = -1) -> None:
        self.path = path
        self.max_runs = max_runs

    def query(self) -> Iterator[TestRun]:
        logger.info(f"Loading test runs from {self.path}")
        return iter(order_runs(read_runs(self.path), self.max_runs))


class HubRecordSource:
    """Test runs stored as a JSONL file in a Hugging Face dataset repository.

    The file is downloaded into cache_dir and then read like a local file.
    """

    def __init__(
        self,
        dataset: str,
        filename: str,
        cache_dir: Path,
        token: str | None = None,
        max_runs: int = -1,
    ) -> None:
        self.dataset = dataset
        self.filename = filename
        self.cache_dir = cache_dir
        self.token = token
        self.max_runs = max_runs

    def download(self) -> Path:
        """Fetch the runs file and return its local path."""
        logger.info(f"Downloading {self.filename} from dataset {self.dataset}")
        try:
            local_path = hf_hub_download(
                repo_id=self.dataset,
                filename=self.filename,
                repo_type="dataset",
                cache_dir=self.cache_dir,
                token=self.token,
            )
        except (HfHubHTTPError, OSError) as e:
            raise RecordSourceError(
                f"Failed to download {self.filename} from {self.dataset}: {e}"
            ) from e
        logger.info(f"Downloaded test runs to {local_path}")
        return Path(local_path)

    def query(self) -> Iterator[TestRun]:
        return iter(order_runs(read_runs(self.download()), self.max_runs))


def load_token(credentials_file: Path) -> str | None:
    """Read an access token from credentials_file, falling back to HF_TOKEN.

    The token is the first non-empty line of the file.
    """
    if credentials_file.is_file():
        try:
            for line in credentials_file.read_text(encoding="utf-8").splitlines():
                if line.strip():
                    return line.strip()
        except (OSError, UnicodeDecodeError) as e:
            raise RecordSourceError(
                f"Failed to read credentials file {credentials_file}: {e}"
            ) from e
    return os.getenv("HF_TOKEN")


def open_record_source(config: Config) -> RecordSource:
    """Create the record source named by the records section.

    Raises:
        RecordSourceError: If no source is configured.
    """
    records = config.records
    if records.path is not None:
        return JsonlRecordSource(records.path, records.max_runs)
    if records.dataset is not None:
        return HubRecordSource(
            dataset=records.dataset,
            filename=records.filename,
            cache_dir=config.data.path,
            token=load_token(records.credentials_file),
            max_runs=records.max_runs,
        )
    raise RecordSourceError("No record source configured; set records.path or records.dataset")


def fetch_runs(source: RecordSource) -> list[TestRun]:
    """Materialize every run from source, preserving its order."""
    runs = list(source.query())
    logger.info(f"Loaded {len(runs)} test runs")
    return runs
