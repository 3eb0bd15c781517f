"""JSONL output generation for matched test runs."""

import json
import logging
from pathlib import Path

from revision_matcher.structures import RunMatch

logger = logging.getLogger(__name__)


def format_match_jsonl(match: RunMatch) -> dict:
    """Convert a RunMatch to the JSONL schema.

    Output schema:
    {
      "revision": "0123456789",
      "status": "found" | "missing" | "malformed",
      "commit": "40-char hex sha" | null,
      "error": "reason" | null,
      "run": {
        "browser_name": "chrome",
        "browser_version": "63.0",
        "os_name": "linux",
        "os_version": "*",
        "results_url": "...",
        "created_at": "2018-01-01T00:00:00+00:00"
      }
    }

    Args:
        match: Match to convert.

    Returns:
        Dictionary in JSONL format.
    """
    return {
        "revision": match.run.revision,
        "status": match.status.value,
        "commit": match.commit.hexsha if match.commit is not None else None,
        "error": match.error,
        "run": match.run.model_dump(mode="json", exclude={"revision"}),
    }


def write_matches(matches: list[RunMatch], output_path: Path) -> None:
    """Write matches to a JSONL file, one line per run in input order.

    Args:
        matches: Matches to write.
        output_path: Path to output JSONL file.
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Writing {len(matches)} matches to {output_path}")

    with open(output_path, "w", encoding="utf-8") as f:
        for match in matches:
            json_line = json.dumps(format_match_jsonl(match), ensure_ascii=False)
            f.write(json_line + "\n")

    logger.info(f"Successfully wrote {len(matches)} matches")


def read_matches(input_path: Path) -> list[dict]:
    """Read matches back from a JSONL file.

    Args:
        input_path: Path to JSONL file.

    Returns:
        List of match dictionaries.
    """
    matches = []

    with open(input_path, encoding="utf-8") as f:
        for line in f:
            if line.strip():
                matches.append(json.loads(line))

    return matches
