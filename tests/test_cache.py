"""Tests for the file-backed prompt cache and its performance monitor."""

from __future__ import annotations

import hashlib
import json

import pytest

from docsmith.cache import CacheManager, CachePerformanceMonitor, estimate_inference_time
from docsmith.config import CacheConfig
from docsmith.errors import CacheIOError
from docsmith.llm.types import TokenUsage
from docsmith.models import CodeDossier


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(tmp_path, clock) -> CacheManager:
    return CacheManager(
        CacheConfig(cache_dir=tmp_path / "cache", expire_hours=1),
        monitor=CachePerformanceMonitor(quiet=True),
        clock=clock,
    )


class TestCacheLayout:
    def test_entry_path_is_category_and_md5(self, cache, tmp_path):
        path = cache.cache_path("docs/overview", "the prompt")
        digest = hashlib.md5(b"the prompt").hexdigest()
        assert path == tmp_path / "cache" / "docs" / "overview" / f"{digest}.json"

    def test_entry_file_contents(self, cache, clock):
        cache.set_with_tokens("cat", "p", {"title": "X"}, TokenUsage(input_tokens=1, output_tokens=2), "small")
        entry = json.loads(cache.cache_path("cat", "p").read_text(encoding="utf-8"))
        assert entry["data"] == {"title": "X"}
        assert entry["timestamp"] == int(clock.now)
        assert entry["prompt_hash"] == CacheManager.hash_prompt("p")
        assert entry["token_usage"] == {"input_tokens": 1, "output_tokens": 2}
        assert entry["model_name"] == "small"


class TestCacheReadWrite:
    def test_round_trip_with_model(self, cache):
        dossier = CodeDossier(name="main.py", file_path="app/main.py", importance_score=7.5)
        cache.set("insights", "prompt", dossier)
        assert cache.get("insights", "prompt", CodeDossier) == dossier

    def test_missing_entry_is_a_miss(self, cache):
        assert cache.get("cat", "never stored") is None
        report = cache.generate_report()
        assert report.cache_misses == 1
        assert report.cache_hits == 0

    def test_scenario_hit_then_expiry(self, cache, clock):
        cache.set_with_tokens(
            "docs/overview", "prompt", {"title": "X"},
            TokenUsage(input_tokens=100, output_tokens=50), "gpt-4o-mini",
        )

        assert cache.get("docs/overview", "prompt") == {"title": "X"}
        report = cache.generate_report()
        assert report.cache_hits == 1
        assert report.input_tokens_saved == 100
        assert report.output_tokens_saved == 50
        assert report.inference_time_saved > 0
        assert report.cost_saved > 0

        clock.now += 3601
        assert cache.get("docs/overview", "prompt") is None
        report = cache.generate_report()
        assert report.cache_misses == 1
        assert not cache.cache_path("docs/overview", "prompt").exists()

    def test_entry_at_exact_ttl_is_still_fresh(self, cache, clock):
        cache.set("cat", "p", "value")
        clock.now += 3600
        assert cache.get("cat", "p") == "value"

    def test_hit_without_token_usage_records_no_savings(self, cache):
        cache.set("cat", "p", "value")
        assert cache.get("cat", "p") == "value"
        report = cache.generate_report()
        assert report.cache_hits == 1
        assert report.input_tokens_saved == 0
        assert report.inference_time_saved == 0

    def test_overwrite_replaces_value(self, cache):
        cache.set("cat", "p", "old")
        cache.set("cat", "p", "new")
        assert cache.get("cat", "p") == "new"

    def test_compression_cache(self, cache):
        assert cache.get_compression_cache("long text", "README") is None
        cache.set_compression_cache("long text", "README", "short")
        assert cache.get_compression_cache("long text", "README") == "short"
        assert cache.get_compression_cache("long text", "code insights") is None


class TestCacheDisabled:
    def test_disabled_cache_never_reads_or_writes(self, tmp_path):
        cache = CacheManager(
            CacheConfig(enabled=False, cache_dir=tmp_path / "cache"),
            monitor=CachePerformanceMonitor(quiet=True),
        )
        cache.set_with_tokens("cat", "p", "value", TokenUsage(input_tokens=1))
        assert cache.get("cat", "p") is None
        assert not (tmp_path / "cache").exists()

        report = cache.generate_report()
        assert report.total_operations == 0
        assert report.cache_writes == 0


class TestCacheErrors:
    def test_corrupt_entry_counts_an_error(self, cache):
        path = cache.cache_path("cat", "p")
        path.parent.mkdir(parents=True)
        path.write_text("{not json", encoding="utf-8")

        assert cache.get("cat", "p") is None
        report = cache.generate_report()
        assert report.cache_errors == 1
        assert report.cache_misses == 0

    def test_entry_not_matching_model_counts_an_error(self, cache):
        cache.set("cat", "p", {"unexpected": 1})
        assert cache.get("cat", "p", CodeDossier) is None
        assert cache.generate_report().cache_errors == 1
        assert cache.cache_path("cat", "p").exists()

    def test_stale_entry_is_a_miss_even_when_model_differs(self, cache, clock):
        cache.set("cat", "p", {"unexpected": 1})
        clock.now += 3601

        assert cache.get("cat", "p", CodeDossier) is None
        report = cache.generate_report()
        assert report.cache_misses == 1
        assert report.cache_errors == 0
        assert not cache.cache_path("cat", "p").exists()

    def test_category_outside_cache_dir_is_refused(self, cache, tmp_path):
        with pytest.raises(CacheIOError, match="escapes"):
            cache.cache_path("../../escaped", "p")

        cache.set("../../escaped", "p", "value")
        assert cache.get("../../escaped", "p") is None
        assert not (tmp_path.parent / "escaped").exists()
        report = cache.generate_report()
        assert report.cache_errors == 2
        assert report.cache_writes == 0

    def test_unwritable_directory_is_recovered(self, cache, tmp_path):
        # A file where the category directory should be.
        (tmp_path / "cache").mkdir()
        (tmp_path / "cache" / "cat").write_text("blocker", encoding="utf-8")

        cache.set("cat", "p", "value")
        report = cache.generate_report()
        assert report.cache_errors == 1
        assert report.cache_writes == 0


class TestCacheMaintenance:
    def test_clear_one_category(self, cache):
        cache.set("a", "p", 1)
        cache.set("b", "p", 2)
        cache.clear("a")
        assert cache.get("a", "p") is None
        assert cache.get("b", "p") == 2

    def test_clear_everything(self, cache, tmp_path):
        cache.set("a", "p", 1)
        cache.clear()
        assert not (tmp_path / "cache").exists()


class TestPerformanceMonitor:
    def test_hit_rate_and_categories(self):
        monitor = CachePerformanceMonitor(quiet=True)
        monitor.record_cache_hit("a", 2.5, TokenUsage(input_tokens=10, output_tokens=5), "gpt-4o")
        monitor.record_cache_miss("a")
        monitor.record_cache_miss("b")
        monitor.record_cache_write("a")

        report = monitor.generate_report()
        assert report.total_operations == 3
        assert report.hit_rate == pytest.approx(1 / 3)
        assert report.cache_writes == 1
        assert report.inference_time_saved == pytest.approx(2.5)
        assert report.category_stats["a"].hit_rate == pytest.approx(0.5)
        assert report.category_stats["b"].hits == 0

    def test_empty_report(self):
        report = CachePerformanceMonitor(quiet=True).generate_report()
        assert report.hit_rate == 0.0
        assert report.total_operations == 0

    def test_inference_time_estimate_is_capped(self):
        assert estimate_inference_time("") == 2.0
        assert estimate_inference_time("x" * 5000) == pytest.approx(7.0)
        assert estimate_inference_time("x" * 1_000_000) == 12.0
