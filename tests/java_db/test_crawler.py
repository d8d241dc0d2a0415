"""Tests for the crawler against an in-memory repository.

Tests cover:
- Artifact discovery and cache layout
- Snapshot, classifier and missing-version handling
- Missing and malformed checksums
- Failure isolation and tolerance
- Cancellation leaving completed units intact
- Byte-identical re-crawls
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from JavaDB.cache import CrawlCache
from JavaDB.cancellation import CancellationToken
from JavaDB.crawler import Crawler, CrawlerOption
from JavaDB.errors import CrawlError, UserConfigError
from JavaDB.types import ArchiveType
from tests.java_db.support import FakeRepository, add_artifact, metadata_xml, sha1_of


def _tree() -> dict:
    files: dict = {}
    add_artifact(
        files,
        "org.example",
        "lib",
        {"1.0": ["jar"], "1.1": ["jar", "war"], "2.0-SNAPSHOT": ["jar"]},
    )
    add_artifact(files, "org.other", "lib", {"1.0": ["jar"]})
    add_artifact(files, "com.acme.tools", "cli", {"3.0": ["jar"]})
    # group-level metadata (plugin listing) must not stop the descent
    files["org/example/maven-metadata.xml"] = "<metadata><plugins/></metadata>"
    files["org/example/lib/1.1/lib-1.1-sources.jar"] = "src"
    return files


def _crawl(tmp_path: Path, repo: FakeRepository, *, limit: int = 4, token=None, **kwargs):
    option = CrawlerOption(limit=limit, cache_dir=tmp_path, **kwargs)
    return Crawler(option, repository=repo).crawl(token)


def _snapshot(cache_dir: Path) -> dict:
    cache = CrawlCache(cache_dir)
    return {p.relative_to(cache_dir).as_posix(): p.read_bytes() for p in cache.iter_unit_files()}


class TestCrawlerOption:
    @pytest.mark.parametrize("kwargs", [{"limit": 0}, {"limit": 1, "tolerance": 1.5}])
    def test_invalid_options(self, tmp_path, kwargs):
        with pytest.raises(UserConfigError):
            CrawlerOption(cache_dir=tmp_path, **kwargs)


class TestDiscovery:
    def test_writes_one_unit_per_artifact(self, tmp_path):
        report = _crawl(tmp_path, FakeRepository(_tree()))

        assert sorted(_snapshot(tmp_path)) == [
            "indexes/com/acme/tools/cli.json",
            "indexes/org/example/lib.json",
            "indexes/org/other/lib.json",
        ]
        assert report.artifacts_written == 3
        assert report.indexes_found == 5
        assert report.failures == []
        assert not report.cancelled

    def test_unit_content(self, tmp_path):
        _crawl(tmp_path, FakeRepository(_tree()))

        entry = CrawlCache(tmp_path).read("org.example", "lib")
        assert [(f.version, f.archive_type) for f in entry.files] == [
            ("1.0", ArchiveType.JAR),
            ("1.1", ArchiveType.JAR),
            ("1.1", ArchiveType.WAR),
        ]
        assert entry.files[0].sha1 == sha1_of(b"org.example:lib:1.0:jar")

    def test_snapshots_are_never_requested(self, tmp_path):
        repo = FakeRepository(_tree())
        _crawl(tmp_path, repo)
        assert not any("SNAPSHOT" in path for path in repo.requests)

    def test_version_listed_but_missing_is_skipped(self, tmp_path):
        files = _tree()
        files["org/other/lib/maven-metadata.xml"] = metadata_xml("org.other", "lib", ["0.9", "1.0"])

        report = _crawl(tmp_path, FakeRepository(files))

        assert report.failures == []
        entry = CrawlCache(tmp_path).read("org.other", "lib")
        assert [f.version for f in entry.files] == ["1.0"]

    def test_nested_artifact_inside_artifact_directory(self, tmp_path):
        files = _tree()
        add_artifact(files, "org.example.lib", "plugin", {"0.1": ["hpi"]})

        _crawl(tmp_path, FakeRepository(files))

        nested = CrawlCache(tmp_path).read("org.example.lib", "plugin")
        assert nested.files[0].archive_type is ArchiveType.HPI

    def test_artifact_without_archives_writes_nothing(self, tmp_path):
        files = {
            "org/pom/parent/maven-metadata.xml": metadata_xml("org.pom", "parent", ["1"]),
            "org/pom/parent/1/parent-1.pom": "<project/>",
        }
        report = _crawl(tmp_path, FakeRepository(files))
        assert report.artifacts_written == 0
        assert _snapshot(tmp_path) == {}


class TestChecksums:
    def test_missing_sidecar_is_skipped(self, tmp_path):
        files = _tree()
        del files["org/example/lib/1.1/lib-1.1.war.sha1"]

        report = _crawl(tmp_path, FakeRepository(files))

        assert report.failures == []
        entry = CrawlCache(tmp_path).read("org.example", "lib")
        assert ("1.1", ArchiveType.WAR) not in [(f.version, f.archive_type) for f in entry.files]

    def test_missing_sidecar_computed_when_enabled(self, tmp_path):
        files = _tree()
        del files["org/example/lib/1.1/lib-1.1.war.sha1"]
        repo = FakeRepository(files)
        repo.binary["org/example/lib/1.1/lib-1.1.war"] = b"war-content"

        _crawl(tmp_path, repo, compute_missing=True)

        entry = CrawlCache(tmp_path).read("org.example", "lib")
        war = [f for f in entry.files if f.archive_type is ArchiveType.WAR]
        assert war[0].sha1 == sha1_of(b"war-content")

    def test_malformed_sidecar_fails_the_unit(self, tmp_path):
        files = _tree()
        files["org/other/lib/1.0/lib-1.0.jar.sha1"] = "<html>not found</html>"

        with pytest.raises(CrawlError) as excinfo:
            _crawl(tmp_path, FakeRepository(files))

        assert [f.path for f in excinfo.value.failures] == ["org/other/lib/"]
        assert "indexes/org/example/lib.json" in _snapshot(tmp_path)
        assert "indexes/org/other/lib.json" not in _snapshot(tmp_path)


class TestFailureIsolation:
    def test_failure_fails_crawl_by_default(self, tmp_path):
        repo = FakeRepository(_tree())
        repo.failing = {"org/other/"}

        with pytest.raises(CrawlError) as excinfo:
            _crawl(tmp_path, repo)

        error = excinfo.value
        assert not error.cancelled
        assert [f.path for f in error.failures] == ["org/other/"]
        assert error.failures[0].cause.status_code == 500
        # siblings still completed
        assert sorted(_snapshot(tmp_path)) == [
            "indexes/com/acme/tools/cli.json",
            "indexes/org/example/lib.json",
        ]

    def test_failures_within_tolerance_return_report(self, tmp_path):
        repo = FakeRepository(_tree())
        repo.failing = {"org/other/"}

        report = _crawl(tmp_path, repo, tolerance=0.5)

        assert len(report.failures) == 1
        assert report.units_visited == 9
        assert report.artifacts_written == 2

    def test_root_failure(self, tmp_path):
        repo = FakeRepository(_tree())
        repo.failing = {""}
        with pytest.raises(CrawlError) as excinfo:
            _crawl(tmp_path, repo)
        assert [f.path for f in excinfo.value.failures] == ["/"]


class TestCancellation:
    def test_cancel_keeps_completed_units_and_writes_no_partial_files(self, tmp_path):
        repo = FakeRepository(_tree())
        token = CancellationToken()

        def cancel_midway(path: str) -> None:
            if path == "org/other/lib/1.0/lib-1.0.jar.sha1":
                token.cancel()

        repo.on_request = cancel_midway

        with pytest.raises(CrawlError) as excinfo:
            _crawl(tmp_path, repo, limit=1, token=token)

        assert excinfo.value.cancelled
        assert list(_snapshot(tmp_path)) == ["indexes/org/example/lib.json"]
        json.loads((tmp_path / "indexes/org/example/lib.json").read_text())
        leftovers = [p for p in tmp_path.rglob("*") if p.name.startswith(".")]
        assert leftovers == []
        # queued units were drained without issuing requests
        assert not any(path.startswith("com/acme/tools/cli/") for path in repo.requests)

    def test_cancel_before_start(self, tmp_path):
        repo = FakeRepository(_tree())
        token = CancellationToken()
        token.cancel()

        with pytest.raises(CrawlError) as excinfo:
            _crawl(tmp_path, repo, token=token)

        assert excinfo.value.cancelled
        assert repo.requests == []


class TestIdempotence:
    def test_recrawl_is_byte_identical(self, tmp_path):
        _crawl(tmp_path, FakeRepository(_tree()))
        first = _snapshot(tmp_path)

        _crawl(tmp_path, FakeRepository(_tree()), limit=1)

        assert _snapshot(tmp_path) == first

    def test_recrawl_replaces_unit_wholesale(self, tmp_path):
        _crawl(tmp_path, FakeRepository(_tree()))
        files = _tree()
        add_artifact(files, "org.other", "lib", {"2.0": ["aar"]})

        _crawl(tmp_path, FakeRepository(files))

        entry = CrawlCache(tmp_path).read("org.other", "lib")
        assert [(f.version, f.archive_type) for f in entry.files] == [("2.0", ArchiveType.AAR)]

    def test_recrawl_without_checksums_removes_entry(self, tmp_path):
        _crawl(tmp_path, FakeRepository(_tree()))
        assert CrawlCache(tmp_path).read("org.other", "lib") is not None
        files = _tree()
        del files["org/other/lib/1.0/lib-1.0.jar.sha1"]

        report = _crawl(tmp_path, FakeRepository(files))

        assert report.failures == []
        assert CrawlCache(tmp_path).read("org.other", "lib") is None

    def test_recrawl_after_artifact_withdrawn_removes_entry(self, tmp_path):
        _crawl(tmp_path, FakeRepository(_tree()))
        files = {k: v for k, v in _tree().items() if not k.startswith("org/other/lib/")}
        # the directory survives as a plain listing without maven-metadata.xml
        files["org/other/lib/README.txt"] = "moved"

        _crawl(tmp_path, FakeRepository(files))

        assert CrawlCache(tmp_path).read("org.other", "lib") is None
        assert CrawlCache(tmp_path).read("com.acme.tools", "cli") is not None

    def test_failed_recrawl_keeps_previous_entry(self, tmp_path):
        _crawl(tmp_path, FakeRepository(_tree()))
        before = _snapshot(tmp_path)
        repo = FakeRepository(_tree())
        repo.failing.add("org/other/lib/1.0/")

        report = _crawl(tmp_path, repo, tolerance=1.0)

        assert [f.path for f in report.failures] == ["org/other/lib/"]
        assert _snapshot(tmp_path) == before


class TestUnusualNames:
    def test_identifiers_outside_plain_charset_are_cached(self, tmp_path):
        files: dict = {}
        add_artifact(files, "org.example", "lib+extra", {"1.0~rc1": ["jar"]})

        report = _crawl(tmp_path, FakeRepository(files))

        assert report.failures == []
        entry = CrawlCache(tmp_path).read("org.example", "lib+extra")
        assert [f.version for f in entry.files] == ["1.0~rc1"]
