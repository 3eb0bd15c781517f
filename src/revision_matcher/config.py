"""Configuration loading and logging setup.

Configuration is read from a YAML file into nested dataclasses. Every key is
optional; anything missing falls back to the defaults below.
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from revision_matcher.exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("revision_matcher.yaml")
DEFAULT_REMOTE_URL = "https://github.com/w3c/web-platform-tests.git"

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s"

HISTORY_SCOPES = ("objects", "refs")


@dataclass
class MirrorConfig:
    """Local mirror of the remote repository."""

    path: Path = Path(".wpt")
    remote_url: str = DEFAULT_REMOTE_URL
    remote_name: str = "origin"
    history_scope: str = "objects"  # "objects" = every commit object, "refs" = reachable from refs


@dataclass
class DataConfig:
    """Local cache directory for downloaded data."""

    path: Path = Path(".cache/migration")


@dataclass
class RecordsConfig:
    """Where test runs are read from."""

    path: Path | None = None  # local JSONL file
    dataset: str | None = None  # Hugging Face dataset repo id
    filename: str = "test_runs.jsonl"
    credentials_file: Path = Path("client-secret.json")
    max_runs: int = -1  # -1 = all


@dataclass
class MatchingConfig:
    """Revision resolution settings."""

    suffix_length: int = 5
    max_workers: int = 32
    strict_revisions: bool = True
    fail_on_missing: bool = False


@dataclass
class OutputConfig:
    jsonl_path: Path | None = None


@dataclass
class LoggingConfig:
    level: str = "INFO"
    file: Path | None = None


_SECTIONS = {
    "mirror": MirrorConfig,
    "data": DataConfig,
    "records": RecordsConfig,
    "matching": MatchingConfig,
    "output": OutputConfig,
    "logging": LoggingConfig,
}


def _build_section(section_cls: type, raw: Any, section_name: str) -> Any:
    """Instantiate a config section dataclass from a raw YAML mapping."""
    if raw is None:
        return section_cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"Config section '{section_name}' must be a mapping")

    known = {f.name for f in fields(section_cls)}
    kwargs = {}
    for key, value in raw.items():
        if key not in known:
            logger.warning(f"Ignoring unknown config key: {section_name}.{key}")
            continue
        kwargs[key] = value

    try:
        return TypeAdapter(section_cls).validate_python(kwargs)
    except ValidationError as e:
        raise ConfigError(f"Invalid config section '{section_name}': {e}") from e


@dataclass
class Config:
    """Top-level configuration, constructed once and passed to each stage."""

    mirror: MirrorConfig = field(default_factory=MirrorConfig)
    data: DataConfig = field(default_factory=DataConfig)
    records: RecordsConfig = field(default_factory=RecordsConfig)
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Config":
        """Build a Config from a parsed YAML document.

        Args:
            raw: Mapping of section name -> section mapping.

        Returns:
            Config with defaults filled in for missing keys.

        Raises:
            ConfigError: If a section has the wrong shape or a value is invalid.
        """
        kwargs = {}
        for name, value in raw.items():
            section_cls = _SECTIONS.get(name)
            if section_cls is None:
                logger.warning(f"Ignoring unknown config section: {name}")
                continue
            kwargs[name] = _build_section(section_cls, value, name)

        config = cls(**kwargs)
        config.validate()
        return config

    @classmethod
    def from_file(cls, path: Path | None = None) -> "Config":
        """Load configuration from a YAML file.

        Args:
            path: Config file path. Defaults to revision_matcher.yaml in the
                working directory. A missing default file yields defaults; a
                missing explicit file is an error.

        Returns:
            Loaded configuration.
        """
        explicit = path is not None
        config_path = path if explicit else DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if explicit:
                raise ConfigError(f"Config file not found: {config_path}")
            return cls()

        try:
            with open(config_path, encoding="utf-8") as f:
                raw = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to read config file {config_path}: {e}") from e

        if raw is None:
            return cls()
        if not isinstance(raw, dict):
            raise ConfigError(f"Invalid config structure in {config_path}")

        return cls.from_dict(raw)

    def validate(self) -> None:
        """Check value ranges that the dataclasses cannot express."""
        if self.mirror.history_scope not in HISTORY_SCOPES:
            raise ConfigError(
                f"mirror.history_scope must be one of {HISTORY_SCOPES}, "
                f"got {self.mirror.history_scope!r}"
            )
        if self.matching.suffix_length <= 0:
            raise ConfigError("matching.suffix_length must be positive")
        if self.matching.max_workers <= 0:
            raise ConfigError("matching.max_workers must be positive")
        if self.records.path is not None and self.records.dataset is not None:
            raise ConfigError("Set only one of records.path and records.dataset")


def setup_logging(config: Config) -> None:
    """Configure root logging from the logging section.

    Args:
        config: Configuration object.
    """
    level = getattr(logging, config.logging.level.upper(), None)
    if not isinstance(level, int):
        raise ConfigError(f"Unknown log level: {config.logging.level}")

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if config.logging.file:
        config.logging.file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(config.logging.file, encoding="utf-8"))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers, force=True)
