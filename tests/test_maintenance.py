"""Tests for pruning, export and import."""

import json
from datetime import timedelta
from pathlib import Path

import pytest
import pytest_asyncio

from mender.core.errors import StorageCorruptedError
from mender.store import (
    FeedbackEntry,
    ImportResult,
    ImportStrategy,
    InMemoryPatternStore,
    PatternStore,
)
from tests.helpers import FIXED_NOW, FakeClock, make_pattern


# =============================================================================
# Pruning
# =============================================================================


@pytest.mark.asyncio
class TestPruneOldPatterns:
    async def test_prunes_only_stale(self, store: PatternStore):
        await store.save_pattern(make_pattern("a", last_used=FIXED_NOW - timedelta(hours=2)))
        await store.save_pattern(make_pattern("b", last_used=FIXED_NOW))

        removed = await store.prune_old_patterns(timedelta(hours=1))

        assert removed == 1
        assert await store.load_pattern("a") is None
        assert await store.load_pattern("b") is not None

    async def test_high_confidence_is_not_protected(self, store: PatternStore):
        await store.save_pattern(
            make_pattern("proven", success_count=50, last_used=FIXED_NOW - timedelta(days=60))
        )
        assert await store.prune_old_patterns(timedelta(days=30)) == 1

    async def test_boundary_is_kept(self, store: PatternStore):
        await store.save_pattern(make_pattern("edge", last_used=FIXED_NOW - timedelta(hours=1)))
        assert await store.prune_old_patterns(timedelta(hours=1)) == 0
        assert await store.load_pattern("edge") is not None

    async def test_idempotent(self, store: PatternStore):
        await store.save_pattern(make_pattern("a", last_used=FIXED_NOW - timedelta(days=3)))
        assert await store.prune_old_patterns(timedelta(days=1)) == 1
        assert await store.prune_old_patterns(timedelta(days=1)) == 0

    async def test_zero_age_prunes_everything_older_than_now(
        self, store: PatternStore, clock: FakeClock
    ):
        await store.save_pattern(make_pattern("a"))
        clock.advance(timedelta(seconds=1))
        assert await store.prune_old_patterns(timedelta(0)) == 1

    async def test_negative_age_rejected(self, store: PatternStore):
        with pytest.raises(ValueError, match="max_age"):
            await store.prune_old_patterns(timedelta(hours=-1))

    async def test_nothing_to_prune_does_not_write(self, json_store, store_path: Path):
        assert await json_store.prune_old_patterns(timedelta(days=1)) == 0
        assert not store_path.exists()


# =============================================================================
# Export / import
# =============================================================================


@pytest.mark.asyncio
class TestExportImport:
    async def test_export_writes_portable_document(self, store: PatternStore, tmp_path: Path):
        await store.save_pattern(make_pattern("p-1", success_count=2))
        await store.update_common_issue("oom", "production")
        target = tmp_path / "export" / "patterns-export.json"

        count = await store.export_patterns(target)

        assert count == 1
        data = json.loads(target.read_text())
        assert data["schemaVersion"] == 1
        assert [p["id"] for p in data["patterns"]] == ["p-1"]
        assert [i["signature"] for i in data["commonIssues"]] == ["oom"]
        assert data["exportedAt"].startswith("2025-06-01T12:00:00")

    async def test_import_into_empty_store(self, store: PatternStore, tmp_path: Path, clock):
        source = InMemoryPatternStore(clock=clock)
        await source.save_pattern(make_pattern("p-1", success_count=3, failure_count=1))
        await source.update_common_issue("oom", "production")
        export_path = tmp_path / "export.json"
        await source.export_patterns(export_path)

        result = await store.import_patterns(export_path)

        assert result == ImportResult(imported=1)
        assert result.written == 1
        loaded = await store.load_pattern("p-1")
        assert loaded is not None
        assert loaded.confidence == pytest.approx(0.75)
        assert await store.load_common_issue("oom") is not None

    async def test_import_invalid_file(self, store: PatternStore, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text("[1, 2")

        with pytest.raises(StorageCorruptedError) as exc_info:
            await store.import_patterns(bad)
        assert exc_info.value.error_type == "json_decode"

    async def test_import_wrong_shape(self, store: PatternStore, tmp_path: Path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"patterns": [{"id": "x"}]}))

        with pytest.raises(StorageCorruptedError) as exc_info:
            await store.import_patterns(bad)
        assert exc_info.value.error_type == "validation"

    async def test_import_missing_file(self, store: PatternStore, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            await store.import_patterns(tmp_path / "absent.json")

    async def test_unknown_strategy_rejected(self, store: PatternStore, tmp_path: Path):
        await store.export_patterns(tmp_path / "export.json")
        with pytest.raises(ValueError):
            await store.import_patterns(tmp_path / "export.json", strategy="overwrite")


# =============================================================================
# Export filters
# =============================================================================


@pytest.mark.asyncio
class TestExportFilters:
    @pytest_asyncio.fixture
    async def seeded(self, store: PatternStore) -> PatternStore:
        await store.save_pattern(make_pattern("proven", success_count=3, failure_count=1))
        await store.save_pattern(
            make_pattern("flaky", problem_type="disk", success_count=1, failure_count=3)
        )
        await store.save_pattern(make_pattern("untried", problem_type="auth"))
        await store.update_common_issue("oom", "production")
        return store

    @staticmethod
    def _exported_ids(path: Path) -> list[str]:
        return [p["id"] for p in json.loads(path.read_text())["patterns"]]

    async def test_min_confidence(self, seeded: PatternStore, tmp_path: Path):
        target = tmp_path / "export.json"

        count = await seeded.export_patterns(target, min_confidence=0.5)

        assert count == 2
        assert self._exported_ids(target) == ["proven", "untried"]

    async def test_min_success_count(self, seeded: PatternStore, tmp_path: Path):
        target = tmp_path / "export.json"

        count = await seeded.export_patterns(target, min_success_count=2)

        assert count == 1
        assert self._exported_ids(target) == ["proven"]

    async def test_problem_types(self, seeded: PatternStore, tmp_path: Path):
        target = tmp_path / "export.json"

        count = await seeded.export_patterns(target, problem_types=["disk", "auth"])

        assert count == 2
        assert self._exported_ids(target) == ["flaky", "untried"]

    async def test_empty_problem_types_exports_everything(
        self, seeded: PatternStore, tmp_path: Path
    ):
        assert await seeded.export_patterns(tmp_path / "export.json", problem_types=[]) == 3

    async def test_filters_combine(self, seeded: PatternStore, tmp_path: Path):
        target = tmp_path / "export.json"

        count = await seeded.export_patterns(
            target,
            min_confidence=0.2,
            min_success_count=1,
            problem_types={"disk", "network"},
        )

        assert count == 2
        assert self._exported_ids(target) == ["proven", "flaky"]

    async def test_common_issues_not_filtered(self, seeded: PatternStore, tmp_path: Path):
        target = tmp_path / "export.json"

        assert await seeded.export_patterns(target, min_success_count=100) == 0

        data = json.loads(target.read_text())
        assert data["patterns"] == []
        assert [i["signature"] for i in data["commonIssues"]] == ["oom"]


# =============================================================================
# Import strategies
# =============================================================================

# Ten distinct tokens. Adding one more gives Jaccard 10/11, dropping one 9/10.
BASE_SIGNATURE = "connection timeout to database server on port 5432 after retry"


async def _export(tmp_path: Path, clock: FakeClock, *patterns) -> Path:
    source = InMemoryPatternStore(clock=clock)
    for pattern in patterns:
        await source.save_pattern(pattern)
    path = tmp_path / "incoming.json"
    await source.export_patterns(path)
    return path


@pytest.mark.asyncio
class TestImportMerge:
    async def test_same_id_sums_statistics(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.save_pattern(
            make_pattern("p-1", success_count=3, average_resolution_time_ms=1000)
        )
        await store.add_feedback("p-1", FeedbackEntry(rating=5, successful=True))
        incoming = make_pattern(
            "p-1",
            success_count=1,
            failure_count=2,
            average_resolution_time_ms=3000,
        )
        incoming.user_feedback.append(FeedbackEntry(rating=2, successful=False))
        path = await _export(tmp_path, clock, incoming)

        result = await store.import_patterns(path)

        assert result == ImportResult(merged=1)
        loaded = await store.load_pattern("p-1")
        assert loaded is not None
        assert loaded.success_count == 4
        assert loaded.failure_count == 2
        assert loaded.average_resolution_time_ms == pytest.approx(1500)
        assert [f.rating for f in loaded.user_feedback] == [5, 2]

    async def test_zero_successes_on_both_sides(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.save_pattern(make_pattern("p-1", failure_count=1))
        path = await _export(tmp_path, clock, make_pattern("p-1", failure_count=2))

        result = await store.import_patterns(path)

        assert result.merged == 1
        loaded = await store.load_pattern("p-1")
        assert loaded is not None
        assert loaded.failure_count == 3
        assert loaded.average_resolution_time_ms == 0
        assert loaded.confidence == 0.0

    async def test_near_duplicate_signature_merges_into_existing(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.save_pattern(make_pattern("local", signature=BASE_SIGNATURE, success_count=2))
        path = await _export(
            tmp_path,
            clock,
            make_pattern("remote", signature=BASE_SIGNATURE + " loop", success_count=5),
        )

        result = await store.import_patterns(path)

        assert result == ImportResult(merged=1)
        assert await store.load_pattern("remote") is None
        loaded = await store.load_pattern("local")
        assert loaded is not None
        assert loaded.success_count == 7
        assert loaded.problem_signature == BASE_SIGNATURE

    async def test_similarity_at_threshold_is_not_a_duplicate(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.save_pattern(make_pattern("local", signature=BASE_SIGNATURE))
        shorter = BASE_SIGNATURE.rsplit(" ", 1)[0]
        path = await _export(tmp_path, clock, make_pattern("remote", signature=shorter))

        result = await store.import_patterns(path)

        assert result == ImportResult(imported=1)
        assert await store.load_pattern("remote") is not None

    async def test_dissimilar_signature_imported_as_new(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.save_pattern(make_pattern("local", signature=BASE_SIGNATURE))
        path = await _export(
            tmp_path,
            clock,
            make_pattern("remote", signature="disk quota exceeded on /var/lib/postgresql"),
        )

        result = await store.import_patterns(path)

        assert result == ImportResult(imported=1)
        stats = await store.get_pattern_statistics()
        assert stats.total_patterns == 2

    async def test_common_issues_combined(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.update_common_issue("oom", "production")
        await store.update_common_issue("oom", "production")
        source = InMemoryPatternStore(clock=clock)
        await source.update_common_issue("oom", "staging")
        await source.update_common_issue("disk-full", "staging")
        await source.export_patterns(tmp_path / "incoming.json")

        await store.import_patterns(tmp_path / "incoming.json")

        oom = await store.load_common_issue("oom")
        assert oom is not None
        assert oom.occurrences == 3
        assert oom.contexts == ["production", "staging"]
        assert await store.load_common_issue("disk-full") is not None


@pytest.mark.asyncio
class TestImportSkipAndReplace:
    async def test_skip_keeps_existing(self, store: PatternStore, tmp_path: Path):
        await store.save_pattern(make_pattern("p-1", success_count=10))
        await store.export_patterns(tmp_path / "export.json")
        await store.update_pattern_failure("p-1")

        result = await store.import_patterns(tmp_path / "export.json", strategy="skip")

        assert result == ImportResult(skipped=1)
        assert result.written == 0
        loaded = await store.load_pattern("p-1")
        assert loaded is not None
        assert loaded.success_count == 10
        assert loaded.failure_count == 1

    async def test_skip_still_adds_unknown(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.save_pattern(make_pattern("p-1", signature=BASE_SIGNATURE))
        path = await _export(
            tmp_path,
            clock,
            make_pattern("p-1", signature=BASE_SIGNATURE),
            make_pattern("p-2", signature="certificate expired for internal registry"),
        )

        result = await store.import_patterns(path, strategy=ImportStrategy.SKIP)

        assert result == ImportResult(imported=1, skipped=1)

    async def test_skip_leaves_common_issue(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.update_common_issue("oom", "production")
        source = InMemoryPatternStore(clock=clock)
        await source.update_common_issue("oom", "staging")
        await source.export_patterns(tmp_path / "incoming.json")

        await store.import_patterns(tmp_path / "incoming.json", strategy="skip")

        oom = await store.load_common_issue("oom")
        assert oom is not None
        assert oom.contexts == ["production"]

    async def test_replace_overwrites_same_id(self, store: PatternStore, tmp_path: Path):
        await store.save_pattern(make_pattern("p-1", success_count=10))
        await store.export_patterns(tmp_path / "export.json")
        await store.update_pattern_failure("p-1")

        result = await store.import_patterns(
            tmp_path / "export.json", strategy=ImportStrategy.REPLACE
        )

        assert result == ImportResult(replaced=1)
        loaded = await store.load_pattern("p-1")
        assert loaded is not None
        assert loaded.failure_count == 0

    async def test_replace_near_duplicate_swaps_id(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.save_pattern(make_pattern("local", signature=BASE_SIGNATURE, success_count=2))
        path = await _export(
            tmp_path,
            clock,
            make_pattern("remote", signature=BASE_SIGNATURE + " loop", success_count=5),
        )

        result = await store.import_patterns(path, strategy="replace")

        assert result == ImportResult(replaced=1)
        assert await store.load_pattern("local") is None
        remote = await store.load_pattern("remote")
        assert remote is not None
        assert remote.success_count == 5

    async def test_replace_overwrites_common_issue(
        self, store: PatternStore, tmp_path: Path, clock: FakeClock
    ):
        await store.update_common_issue("oom", "production")
        source = InMemoryPatternStore(clock=clock)
        await source.update_common_issue("oom", "staging")
        await source.export_patterns(tmp_path / "incoming.json")

        await store.import_patterns(tmp_path / "incoming.json", strategy="replace")

        oom = await store.load_common_issue("oom")
        assert oom is not None
        assert oom.contexts == ["staging"]


@pytest.mark.asyncio
class TestAnonymizedExport:
    async def test_scrubs_signature_payload_and_comments(self, store: PatternStore, tmp_path: Path):
        await store.save_pattern(make_pattern(
            "p-1",
            signature="timeout calling https://api.internal.example/v1 from 10.0.0.12",
            data={"cmd": "rotate", "api_key": "sk-live-123", "nested": {"password": "hunter2"}},
        ))
        await store.add_feedback("p-1", FeedbackEntry(
            rating=4,
            successful=True,
            comments="ping ops@example.org if it recurs",
            context={"auth_header": "Bearer abc"},
        ))
        target = tmp_path / "anon.json"

        await store.export_patterns(target, anonymize=True)

        exported = json.loads(target.read_text())["patterns"][0]
        assert "10.0.0.12" not in exported["problemSignature"]
        assert "api.internal.example" not in exported["problemSignature"]
        assert exported["solution"]["data"] == {
            "cmd": "rotate",
            "api_key": "[REDACTED]",
            "nested": {"password": "[REDACTED]"},
        }
        feedback = exported["userFeedback"][0]
        assert "ops@example.org" not in feedback["comments"]
        assert feedback["context"] == {"auth_header": "[REDACTED]"}

    async def test_store_itself_untouched(self, store: PatternStore, tmp_path: Path):
        await store.save_pattern(make_pattern("p-1", signature="error at 192.168.1.1"))
        await store.export_patterns(tmp_path / "anon.json", anonymize=True)

        loaded = await store.load_pattern("p-1")
        assert loaded is not None
        assert loaded.problem_signature == "error at 192.168.1.1"
