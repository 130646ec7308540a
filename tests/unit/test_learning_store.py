"""Unit tests for the learning store"""

import json
import threading

import pytest

from nl2cli.models.command import CommandSource
from nl2cli.models.correction import CorrectionType
from nl2cli.models.pipeline_config import LearningConfig
from nl2cli.services.learning_store import (
    LearningStore,
    classify_error,
    extract_failed_command,
    is_correctable_error,
)


@pytest.fixture
def log_path(tmp_path):
    return tmp_path / "learning" / "corrections.jsonl"


class TestLookup:
    """Test exact and fuzzy matching"""

    def test_lookup_returns_recorded_correction(self, learning_store):
        learning_store.record("list my databases", "tool resource service-instances")

        command = learning_store.lookup("list my databases")

        assert command.text == "tool resource service-instances"
        assert command.source == CommandSource.LEARNED
        assert command.attempts == 0
        assert command.quality.acceptable is True

    def test_lookup_normalizes_query(self, learning_store):
        learning_store.record("list my databases", "tool db list")

        assert learning_store.lookup("  List   MY databases ").text == "tool db list"

    def test_most_recent_correction_wins(self, learning_store):
        learning_store.record("list my databases", "tool db list")
        learning_store.record("List my databases", "tool resource service-instances")

        assert learning_store.lookup("list my databases").text == "tool resource service-instances"

    def test_lookup_miss_returns_none(self, learning_store):
        learning_store.record("list my databases", "tool db list")

        assert learning_store.lookup("delete the cluster") is None
        assert learning_store.lookup("   ") is None

    def test_fuzzy_match_above_threshold(self, learning_store):
        learning_store.record("list all my resource groups", "ibmcloud resource groups")

        # 4 of 5 words shared
        command = learning_store.lookup("list my resource groups")

        assert command.text == "ibmcloud resource groups"

    def test_fuzzy_match_below_threshold(self, learning_store):
        learning_store.record("list all my resource groups", "ibmcloud resource groups")

        assert learning_store.lookup("show resource groups") is None

    def test_fuzzy_tie_prefers_recent_record(self, learning_store):
        learning_store.record("list my aws buckets now", "aws s3 ls")
        learning_store.record("list my gcp buckets now", "gcloud storage buckets list")

        # 4 of 5 words shared with both
        command = learning_store.lookup("list my buckets now")

        assert command.text == "gcloud storage buckets list"

    def test_fuzzy_threshold_is_configurable(self):
        store = LearningStore(LearningConfig(fuzzy_threshold=0.3))
        store.record("list all my resource groups", "ibmcloud resource groups")

        assert store.lookup("show resource groups").text == "ibmcloud resource groups"

    def test_related_orders_by_overlap(self, learning_store):
        learning_store.record("list resource groups", "ibmcloud resource groups")
        learning_store.record("list buckets", "aws s3 ls")
        learning_store.record("create a vm", "az vm create")

        related = learning_store.related("list my resource groups", limit=2)

        assert [record.corrected_command for record in related] == [
            "ibmcloud resource groups",
            "aws s3 ls",
        ]


class TestRecord:
    """Test appending, idempotency and persistence"""

    def test_record_is_idempotent(self, learning_store):
        first = learning_store.record("list my databases", "tool db list")
        second = learning_store.record("List my databases ", "tool db list")

        assert second == first
        assert learning_store.count() == 1

    def test_record_rejects_empty_values(self, learning_store):
        with pytest.raises(ValueError):
            learning_store.record("", "tool db list")
        with pytest.raises(ValueError):
            learning_store.record("list my databases", "  ")

    def test_record_classifies_error(self, learning_store):
        record = learning_store.record(
            "list services",
            "ibmcloud resource service-instances",
            failed_command="ibmcloud services",
            error_message="'services' is not a registered command. See 'ibmcloud help'.",
        )

        assert record.correction_type == CorrectionType.COMMAND_NOT_FOUND
        assert record.failed_command == "ibmcloud services"

    def test_corrections_survive_restart(self, log_path):
        store = LearningStore(LearningConfig(path=str(log_path)))
        store.record("list my databases", "tool db list")
        store.record("list my databases", "tool resource service-instances")
        store.record("show vms", "govc ls /dc/vm", provider="vmware")

        reloaded = LearningStore(LearningConfig(path=str(log_path)))

        assert reloaded.count() == 3
        assert reloaded.lookup("list my databases").text == "tool resource service-instances"
        assert reloaded.lookup("show vms").provider == "vmware"

    def test_corrupt_record_is_skipped(self, log_path, caplog):
        store = LearningStore(LearningConfig(path=str(log_path)))
        store.record("list my databases", "tool db list")
        with open(log_path, "a", encoding="utf-8") as f:
            f.write("{not json\n")
            f.write(json.dumps({"query": "missing command"}) + "\n")
            f.write("\n")
        store.record("show vms", "govc ls /dc/vm")

        reloaded = LearningStore(LearningConfig(path=str(log_path)))

        assert reloaded.count() == 2
        assert reloaded.lookup("show vms").text == "govc ls /dc/vm"
        assert "Corrupt correction record" in caplog.text

    def test_torn_final_line_does_not_swallow_next_record(self, log_path, caplog):
        log_path.parent.mkdir(parents=True)
        log_path.write_text('{"query": "list my dat', encoding="utf-8")

        LearningStore(LearningConfig(path=str(log_path))).record("list buckets", "aws s3 ls")
        reloaded = LearningStore(LearningConfig(path=str(log_path)))

        assert reloaded.count() == 1
        assert reloaded.lookup("list buckets").text == "aws s3 ls"
        assert "Corrupt correction record" in caplog.text
        assert log_path.read_text(encoding="utf-8").endswith("\n")

    def test_append_to_empty_log_adds_no_blank_line(self, log_path):
        log_path.parent.mkdir(parents=True)
        log_path.touch()

        LearningStore(LearningConfig(path=str(log_path))).record("list buckets", "aws s3 ls")

        assert log_path.read_text(encoding="utf-8").count("\n") == 1

    def test_memory_only_store_writes_nothing(self, tmp_path):
        store = LearningStore(LearningConfig(path=None))
        store.record("list my databases", "tool db list")

        assert list(tmp_path.iterdir()) == []
        assert store.count() == 1

    def test_concurrent_appends_are_all_kept(self, log_path):
        store = LearningStore(LearningConfig(path=str(log_path)))

        def append(worker: int):
            for i in range(25):
                store.record(f"query {worker} number {i}", f"tool run {worker} {i}")

        threads = [threading.Thread(target=append, args=(n,)) for n in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert store.count() == 100
        assert LearningStore(LearningConfig(path=str(log_path))).count() == 100

    def test_stats(self, learning_store):
        learning_store.record("list my databases", "tool db list")
        learning_store.record("list my databases", "tool resource service-instances")
        learning_store.record("bad args", "tool x", error_message="invalid argument --foo")

        stats = learning_store.stats()

        assert stats["total_corrections"] == 3
        assert stats["unique_queries"] == 2
        assert stats["by_type"] == {"command_fix": 2, "parameter_error": 1}
        assert stats["patterns"] == 1
        assert stats["last_updated"] is not None


class TestSuggestions:
    """Test suggestions for failed commands"""

    NOT_REGISTERED = "'services' is not a registered command. See 'ibmcloud help'."

    def test_exact_failed_command_match(self, learning_store):
        learning_store.record(
            "list services",
            "ibmcloud resource service-instances",
            failed_command="ibmcloud services",
            error_message=self.NOT_REGISTERED,
        )
        learning_store.record(
            "show buckets", "ibmcloud cos buckets", failed_command="ibmcloud cos list"
        )

        assert learning_store.suggestions("ibmcloud  cos list") == ["ibmcloud cos buckets"]

    def test_pattern_from_error_message(self, learning_store):
        learning_store.record(
            "list services",
            "ibmcloud resource service-instances",
            failed_command="ibmcloud services",
            error_message=self.NOT_REGISTERED,
        )

        assert learning_store.suggestions(
            "ibmcloud services --all", "'services' is not a registered command"
        ) == ["ibmcloud resource service-instances"]
        assert learning_store.suggestions("ibmcloud services --all") == [
            "ibmcloud resource service-instances"
        ]
        assert learning_store.suggestions("ibmcloud resource groups") == []

    def test_pattern_from_failed_command_word(self, learning_store):
        learning_store.record(
            "list vms",
            "gcloud compute instances list",
            failed_command="gcloud vms list",
            error_message="gcloud: command not found",
        )

        assert learning_store.suggestions("gcloud vms describe") == [
            "gcloud compute instances list"
        ]

    def test_general_corrections_are_not_pattern_matched(self, learning_store):
        learning_store.record("list buckets", "aws s3 ls", failed_command="aws s3 list")

        assert learning_store.suggestions("aws general unknown") == []

    def test_newest_first_deduplicated_and_limited(self, learning_store):
        for i, fix in enumerate(["tool a", "tool b", "tool a", "tool c", "tool d"]):
            learning_store.record(
                f"query {i}",
                fix,
                failed_command="tool services",
                error_message=self.NOT_REGISTERED,
            )

        assert learning_store.suggestions("tool services") == ["tool d", "tool c", "tool a"]
        assert learning_store.suggestions("tool services", limit=5) == [
            "tool d",
            "tool c",
            "tool a",
            "tool b",
        ]

    def test_empty_failed_command(self, learning_store):
        assert learning_store.suggestions("   ") == []

    def test_patterns_survive_restart(self, log_path):
        store = LearningStore(LearningConfig(path=str(log_path)))
        store.record(
            "list services",
            "ibmcloud resource service-instances",
            failed_command="ibmcloud services",
            error_message=self.NOT_REGISTERED,
        )

        reloaded = LearningStore(LearningConfig(path=str(log_path)))

        assert reloaded.suggestions("ibmcloud services ls") == [
            "ibmcloud resource service-instances"
        ]


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        (None, CorrectionType.COMMAND_FIX),
        ("'services' is not a registered command", CorrectionType.COMMAND_NOT_FOUND),
        ("bash: gcloud: command not found", CorrectionType.COMMAND_NOT_FOUND),
        ("Invalid syntax near --name", CorrectionType.INVALID_SYNTAX),
        ("Plugin 'code-engine' is not installed", CorrectionType.MISSING_PLUGIN),
        ("unknown subcommand 'lst'", CorrectionType.WRONG_SUBCOMMAND),
        ("missing required parameter --bucket", CorrectionType.PARAMETER_ERROR),
        ("quota exceeded", CorrectionType.OTHER),
    ],
)
def test_classify_error(message, expected):
    assert classify_error(message) == expected


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("'services' is not a registered command", True),
        ("bash: gcloud: command not found", True),
        ("Invalid syntax near --name", True),
        ("Plugin 'code-engine' is not installed", True),
        ("unknown subcommand 'lst'", True),
        ("Not logged in. Use 'ibmcloud login' to log in.", False),
        ("", False),
        (None, False),
    ],
)
def test_is_correctable_error(message, expected):
    assert is_correctable_error(message) is expected


@pytest.mark.parametrize(
    ("message", "expected"),
    [
        ("'services' is not a registered command. See 'ibmcloud help'.", "services"),
        ("Plugin 'code-engine' is not installed", "code-engine"),
        ("bash: gcloud: command not found", None),
        ("'' is not a registered command", None),
        (None, None),
    ],
)
def test_extract_failed_command(message, expected):
    assert extract_failed_command(message) == expected
