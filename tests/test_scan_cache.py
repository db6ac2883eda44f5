"""Tests for the per-file scan cache and its JSON persistence."""

import json
import os

from bonsaicss.cache import ScanCache
from bonsaicss.cache.scan_cache import (
    CACHE_FILE,
    file_signature,
    load_scan_cache,
    resolve_cache_path,
    save_scan_cache,
    write_cache_entry,
)
from bonsaicss.core import scanner
from bonsaicss.core.types import FileScan, PrunerOptions


def count_heuristic_runs(monkeypatch):
    calls = []
    original = scanner.scan_with_heuristics

    def counting(content, options=None, source_label=None):
        calls.append(source_label)
        return original(content, options, source_label)

    monkeypatch.setattr(scanner, "scan_with_heuristics", counting)
    return calls


class TestFileSignature:
    def test_includes_mode_and_stat(self, tmp_path):
        path = tmp_path / "a.html"
        path.write_text("abc", encoding="utf-8")
        stat = os.stat(path)

        assert file_signature(str(path), False) == f"builtin:false:{stat.st_mtime_ns}:3"
        assert file_signature(str(path), True).startswith("builtin:true:")

    def test_cwd_changes_signature(self, tmp_path):
        path = tmp_path / "a.html"
        path.write_text("abc", encoding="utf-8")
        stat = os.stat(path)

        here = file_signature(str(path), False, str(tmp_path))
        elsewhere = file_signature(str(path), False, str(tmp_path / "sub"))

        assert here != elsewhere
        assert here.startswith("builtin:false:")
        assert here.endswith(f":{stat.st_mtime_ns}:3")
        assert here == file_signature(str(path), False, str(tmp_path))

    def test_missing_file(self, tmp_path):
        assert file_signature(str(tmp_path / "nope"), False) is None


class TestScanCacheReuse:
    def test_unchanged_file_is_not_rescanned(self, make_project, monkeypatch):
        root = make_project({"a.html": '<div class="a"></div>'})
        calls = count_heuristic_runs(monkeypatch)
        cache = ScanCache()
        path = str(root / "a.html")

        first = scanner.scan_files([path], cwd=str(root), cache=cache)
        second = scanner.scan_files([path], cwd=str(root), cache=cache)

        assert calls == ["a.html"]
        assert first.classes == second.classes == frozenset({"a"})
        assert second.class_origins["a"] == frozenset({"a.html:1"})
        assert second.files_scanned == 1
        assert cache.get_stats() == {"cache_type": "memory", "entries": 1, "hits": 1, "misses": 1}

    def test_changed_file_is_rescanned(self, make_project, monkeypatch):
        root = make_project({"a.html": '<div class="a"></div>'})
        calls = count_heuristic_runs(monkeypatch)
        cache = ScanCache()
        path = root / "a.html"

        scanner.scan_files([str(path)], cwd=str(root), cache=cache)
        path.write_text('<div class="a b"></div>', encoding="utf-8")
        summary = scanner.scan_files([str(path)], cwd=str(root), cache=cache)

        assert len(calls) == 2
        assert summary.classes == frozenset({"a", "b"})

    def test_mtime_change_invalidates(self, make_project, monkeypatch):
        root = make_project({"a.html": '<div class="a"></div>'})
        calls = count_heuristic_runs(monkeypatch)
        cache = ScanCache()
        path = str(root / "a.html")

        scanner.scan_files([path], cwd=str(root), cache=cache)
        stat = os.stat(path)
        os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))
        scanner.scan_files([path], cwd=str(root), cache=cache)

        assert len(calls) == 2

    def test_dynamic_mode_is_part_of_signature(self, make_project, monkeypatch):
        root = make_project({"a.html": "<div className={'btn-' + size}></div>"})
        calls = count_heuristic_runs(monkeypatch)
        cache = ScanCache()
        path = str(root / "a.html")

        plain = scanner.scan_files([path], cwd=str(root), cache=cache)
        dynamic = scanner.scan_files([path], PrunerOptions(keep_dynamic_patterns=True), cwd=str(root), cache=cache)

        assert len(calls) == 2
        assert plain.dynamic_patterns == ()
        assert dynamic.dynamic_patterns

    def test_origins_follow_cwd(self, make_project, monkeypatch):
        root = make_project({"src/a.html": '<div class="a"></div>'})
        calls = count_heuristic_runs(monkeypatch)
        cache = ScanCache()
        path = str(root / "src" / "a.html")

        outer = scanner.scan_files([path], cwd=str(root), cache=cache)
        inner = scanner.scan_files([path], cwd=str(root / "src"), cache=cache)

        assert len(calls) == 2
        assert outer.class_origins["a"] == frozenset({"src/a.html:1"})
        assert inner.class_origins["a"] == frozenset({"a.html:1"})

    def test_extractors_bypass_cache(self, make_project):
        root = make_project({"a.html": "x"})
        cache = ScanCache()
        options = PrunerOptions(extractors=[lambda ctx: {"classes": ["custom"]}])

        summary = scanner.scan_files([str(root / "a.html")], options, cwd=str(root), cache=cache)

        assert summary.classes == frozenset({"custom"})
        assert cache.keys() == []

    def test_clear(self, make_project):
        root = make_project({"a.html": '<p class="x"></p>'})
        cache = ScanCache()
        scanner.scan_files([str(root / "a.html")], cwd=str(root), cache=cache)
        cache.clear()
        assert cache.keys() == []


class TestPersistence:
    def test_round_trip(self, make_project, monkeypatch):
        root = make_project({"a.html": "<div className={'btn-' + size} class=\"a\"></div>"})
        cache_path = resolve_cache_path(str(root / ".cache"))
        path = str(root / "a.html")
        options = PrunerOptions(keep_dynamic_patterns=True)

        writer = ScanCache(cache_path)
        scanner.scan_files([path], options, cwd=str(root), cache=writer)
        writer.save()
        assert os.path.basename(cache_path) == CACHE_FILE

        calls = count_heuristic_runs(monkeypatch)
        reader = ScanCache(cache_path)
        summary = scanner.scan_files([path], options, cwd=str(root), cache=reader)

        assert calls == []
        assert "a" in summary.classes
        assert [p.pattern for p in summary.dynamic_patterns] == ["^btn\\-"]
        assert reader.get_stats()["cache_type"] == "persistent"
        assert reader.get_stats()["hits"] == 1

    def test_file_layout(self, tmp_path):
        path = str(tmp_path / "cache.json")
        entries = {}
        scan = FileScan()
        scan.add_class("btn", "a.html:3")
        write_cache_entry(entries, str(tmp_path / "a.html"), "sig", scan)
        save_scan_cache(path, entries)

        with open(path, encoding="utf-8") as handle:
            data = json.load(handle)
        assert data["version"] == 1
        entry = data["entries"][str(tmp_path / "a.html")]
        assert entry == {
            "signature": "sig",
            "classes": ["btn"],
            "dynamicPatterns": [],
            "classOrigins": {"btn": ["a.html:3"]},
            "warnings": [],
        }

    def test_missing_file(self, tmp_path):
        assert load_scan_cache(str(tmp_path / "absent.json")) == {}

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text("{not json", encoding="utf-8")
        assert load_scan_cache(str(path)) == {}

    def test_version_mismatch(self, tmp_path):
        path = tmp_path / "cache.json"
        path.write_text(json.dumps({"version": 2, "entries": {}}), encoding="utf-8")
        assert load_scan_cache(str(path)) == {}

    def test_malformed_entry(self, tmp_path):
        path = tmp_path / "cache.json"
        payload = {"version": 1, "entries": {"/a.html": {"signature": "s", "classes": "not-a-list"}}}
        path.write_text(json.dumps(payload), encoding="utf-8")
        assert load_scan_cache(str(path)) == {}

    def test_corrupt_cache_falls_back_to_scanning(self, make_project, monkeypatch):
        root = make_project({"a.html": '<p class="x"></p>', ".cache/" + CACHE_FILE: "garbage"})
        calls = count_heuristic_runs(monkeypatch)
        cache = ScanCache(resolve_cache_path(str(root / ".cache")))

        summary = scanner.scan_files([str(root / "a.html")], cwd=str(root), cache=cache)

        assert calls == ["a.html"]
        assert summary.classes == frozenset({"x"})

    def test_save_failure_is_logged(self, tmp_path, caplog):
        blocker = tmp_path / "blocker"
        blocker.write_text("", encoding="utf-8")
        save_scan_cache(str(blocker / "cache.json"), {})
        assert "Failed to save scan cache" in caplog.text
