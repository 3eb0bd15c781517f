"""
Unit tests for test run record sources.
"""
from pathlib import Path

import pytest

from conftest import write_runs
from revision_matcher import records
from revision_matcher.config import Config
from revision_matcher.exceptions import RecordSourceError
from revision_matcher.records import (
    HubRecordSource,
    JsonlRecordSource,
    fetch_runs,
    load_token,
    open_record_source,
    read_runs,
)

RUNS = [
    {"revision": "1111111111", "created_at": "2018-01-02T00:00:00Z", "browser_name": "chrome"},
    {"revision": "3333333333", "created_at": "2018-01-03T00:00:00Z", "browser_name": "firefox"},
    {"revision": "2222222222", "created_at": "2018-01-01T00:00:00Z", "unknown_field": 1},
]


class TestReadRuns:
    """Test parsing JSONL runs."""

    def test_file_order(self, tmp_path):
        path = write_runs(tmp_path / "runs.jsonl", RUNS)
        assert [r.revision for r in read_runs(path)] == ["1111111111", "3333333333", "2222222222"]

    def test_optional_fields(self, tmp_path):
        path = write_runs(tmp_path / "runs.jsonl", RUNS)
        runs = list(read_runs(path))
        assert runs[0].browser_name == "chrome"
        assert runs[2].browser_name is None

    def test_blank_lines_skipped(self, tmp_path):
        path = tmp_path / "runs.jsonl"
        path.write_text('\n{"revision": "1111111111", "created_at": "2018-01-01T00:00:00Z"}\n\n')
        assert len(list(read_runs(path))) == 1

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "runs.jsonl"
        path.write_text("{not json}\n")
        with pytest.raises(RecordSourceError, match="runs.jsonl:1"):
            list(read_runs(path))

    def test_missing_revision(self, tmp_path):
        path = write_runs(tmp_path / "runs.jsonl", [{"created_at": "2018-01-01T00:00:00Z"}])
        with pytest.raises(RecordSourceError):
            list(read_runs(path))

    def test_not_utf8(self, tmp_path):
        """Undecodable bytes should surface as RecordSourceError."""
        path = tmp_path / "runs.jsonl"
        path.write_bytes(b'{"revision": "\xff\xfe", "created_at": "2018-01-01T00:00:00Z"}\n')
        with pytest.raises(RecordSourceError, match="Failed to read"):
            list(read_runs(path))

    def test_missing_file(self, tmp_path):
        with pytest.raises(RecordSourceError, match="Failed to read"):
            list(read_runs(tmp_path / "missing.jsonl"))


class TestJsonlRecordSource:
    """Test the local JSONL source."""

    def test_most_recent_first(self, tmp_path):
        source = JsonlRecordSource(write_runs(tmp_path / "runs.jsonl", RUNS))
        assert [r.revision for r in source.query()] == ["3333333333", "1111111111", "2222222222"]

    def test_max_runs(self, tmp_path):
        source = JsonlRecordSource(write_runs(tmp_path / "runs.jsonl", RUNS), max_runs=2)
        assert [r.revision for r in source.query()] == ["3333333333", "1111111111"]

    def test_zero_runs(self, tmp_path):
        path = tmp_path / "runs.jsonl"
        path.write_text("")
        assert fetch_runs(JsonlRecordSource(path)) == []


class TestHubRecordSource:
    """Test the Hugging Face dataset source."""

    def test_downloads_then_reads(self, tmp_path, monkeypatch):
        local = write_runs(tmp_path / "downloaded.jsonl", RUNS)
        calls = {}

        def fake_download(**kwargs):
            calls.update(kwargs)
            return str(local)

        monkeypatch.setattr(records, "hf_hub_download", fake_download)
        source = HubRecordSource("org/runs", "runs.jsonl", tmp_path / "cache", token="secret")

        assert [r.revision for r in source.query()][0] == "3333333333"
        assert calls["repo_id"] == "org/runs"
        assert calls["filename"] == "runs.jsonl"
        assert calls["repo_type"] == "dataset"
        assert calls["token"] == "secret"
        assert calls["cache_dir"] == tmp_path / "cache"

    def test_download_failure(self, tmp_path, monkeypatch):
        def broken(**kwargs):
            raise OSError("network unreachable")

        monkeypatch.setattr(records, "hf_hub_download", broken)
        source = HubRecordSource("org/runs", "runs.jsonl", tmp_path)
        with pytest.raises(RecordSourceError, match="network unreachable"):
            fetch_runs(source)


class TestLoadToken:
    """Test credential loading."""

    def test_from_file(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HF_TOKEN", raising=False)
        credentials = tmp_path / "client-secret.json"
        credentials.write_text("\n  hf_abc  \nignored\n")
        assert load_token(credentials) == "hf_abc"

    def test_from_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HF_TOKEN", "hf_env")
        assert load_token(tmp_path / "missing") == "hf_env"

    def test_none(self, tmp_path, monkeypatch):
        monkeypatch.delenv("HF_TOKEN", raising=False)
        assert load_token(tmp_path / "missing") is None


class TestOpenRecordSource:
    """Test choosing a source from configuration."""

    def test_local_path(self):
        config = Config()
        config.records.path = Path("runs.jsonl")
        config.records.max_runs = 5
        source = open_record_source(config)
        assert isinstance(source, JsonlRecordSource)
        assert source.max_runs == 5

    def test_dataset(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HF_TOKEN", "hf_env")
        config = Config()
        config.records.dataset = "org/runs"
        config.records.credentials_file = tmp_path / "missing"
        config.data.path = tmp_path / "cache"
        source = open_record_source(config)
        assert isinstance(source, HubRecordSource)
        assert source.token == "hf_env"
        assert source.cache_dir == tmp_path / "cache"

    def test_nothing_configured(self):
        with pytest.raises(RecordSourceError, match="No record source"):
            open_record_source(Config())
