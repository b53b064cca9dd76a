"""Tests for run records, status transitions and the run stores."""

from pathlib import Path
from unittest.mock import patch

import pytest

from research_assistant.errors import RunNotFoundError, StateError
from research_assistant.results import ResearchRequest
from research_assistant.run_store import (
    InMemoryRunStore,
    Run,
    RunStatus,
    YamlRunStore,
    _RunStoreBase,
    atomic_write,
    check_transition,
)


@pytest.fixture(params=["memory", "yaml"])
def store(request, tmp_path):
    """Each lifecycle test runs against both store implementations."""
    if request.param == "memory":
        return InMemoryRunStore()
    return YamlRunStore(tmp_path / "runs")


class TestCheckTransition:

    @pytest.mark.parametrize("current,new", [
        (RunStatus.PENDING, RunStatus.PROCESSING),
        (RunStatus.PENDING, RunStatus.FAILED),
        (RunStatus.PROCESSING, RunStatus.COMPLETED),
        (RunStatus.PROCESSING, RunStatus.FAILED),
    ])
    def test_legal(self, current, new):
        check_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        (RunStatus.PENDING, RunStatus.COMPLETED),
        (RunStatus.PROCESSING, RunStatus.PENDING),
        (RunStatus.COMPLETED, RunStatus.FAILED),
        (RunStatus.COMPLETED, RunStatus.PROCESSING),
        (RunStatus.FAILED, RunStatus.COMPLETED),
        (RunStatus.FAILED, RunStatus.FAILED),
    ])
    def test_illegal(self, current, new):
        with pytest.raises(StateError, match="Illegal run status transition"):
            check_transition(current, new)

    def test_terminal_states(self):
        assert RunStatus.COMPLETED.is_terminal
        assert RunStatus.FAILED.is_terminal
        assert not RunStatus.PENDING.is_terminal
        assert not RunStatus.PROCESSING.is_terminal


class TestRunRecord:

    def test_from_dict_rejects_missing_fields(self):
        with pytest.raises(StateError, match="Malformed run record"):
            Run.from_dict({"session_id": "s"})

    def test_from_dict_rejects_unknown_status(self):
        with pytest.raises(StateError, match="Malformed run record"):
            Run.from_dict({"id": "a", "session_id": "s", "status": "paused"})

    def test_parent_only_serialized_when_set(self):
        assert "parent_run_id" not in Run(id="a", session_id="s", input={}).to_dict()
        assert Run(id="b", session_id="s", input={}, parent_run_id="a").to_dict()["parent_run_id"] == "a"


class TestRunLifecycle:
    """Store behaviour shared by the in-memory and YAML implementations."""

    def test_create_is_pending(self, store):
        run_id = store.create("s1", ResearchRequest(query="graph databases", depth="quick"))
        run = store.get(run_id)

        assert run.status is RunStatus.PENDING
        assert run.input == {"query": "graph databases", "depth": "quick"}
        assert run.output == {}
        assert run.created_at == run.updated_at
        assert run.created_at.endswith("+00:00")

    def test_full_success_path(self, store):
        run_id = store.create("s1", {"query": "q", "depth": "deep"})
        store.update_status(run_id, RunStatus.PROCESSING, logs=("Started",))
        store.update_output(run_id, {"report": "# R"}, RunStatus.COMPLETED, logs=("Started", "Done"))

        run = store.get(run_id)
        assert run.status is RunStatus.COMPLETED
        assert run.output == {"report": "# R"}
        assert run.logs == ("Started", "Done")

    def test_update_status_keeps_logs_when_not_given(self, store):
        run_id = store.create("s1", {"query": "q"})
        store.update_status(run_id, RunStatus.PROCESSING, logs=("a",))
        store.update_status(run_id, RunStatus.FAILED)
        assert store.get(run_id).logs == ("a",)

    def test_illegal_transition_leaves_run_unchanged(self, store):
        run_id = store.create("s1", {"query": "q"})
        with pytest.raises(StateError):
            store.update_output(run_id, {"report": "x"}, RunStatus.COMPLETED)
        run = store.get(run_id)
        assert run.status is RunStatus.PENDING
        assert run.output == {}

    def test_terminal_runs_cannot_change(self, store):
        run_id = store.create("s1", {"query": "q"})
        store.update_status(run_id, RunStatus.FAILED)
        with pytest.raises(StateError):
            store.update_status(run_id, RunStatus.PROCESSING)

    def test_missing_run(self, store):
        with pytest.raises(RunNotFoundError, match="Research run not found: nope") as exc_info:
            store.get("nope")
        assert exc_info.value.run_id == "nope"

    def test_parent_run_id_recorded(self, store):
        parent = store.create("s1", {"query": "q"})
        child = store.create("s1", {"query": "q"}, parent_run_id=parent)
        assert store.get(child).parent_run_id == parent

    def test_list_and_latest_by_session(self, store):
        stamps = iter([
            "2026-01-01T00:00:01+00:00",
            "2026-01-01T00:00:02+00:00",
            "2026-01-01T00:00:03+00:00",
        ])
        with patch("research_assistant.run_store._now", side_effect=lambda: next(stamps)):
            first = store.create("s1", {"query": "a"})
            other = store.create("s2", {"query": "b"})
            second = store.create("s1", {"query": "c"})

        assert [r.id for r in store.list_runs("s1")] == [first, second]
        assert [r.id for r in store.list_runs()] == [first, other, second]
        assert store.latest_for_session("s1").id == second
        assert store.latest_for_session("unknown") is None


class TestYamlRunStore:
    """Tests specific to the file-backed store."""

    def test_one_file_per_run(self, tmp_path):
        store = YamlRunStore(tmp_path)
        run_id = store.create("s1", {"query": "q"})
        assert (tmp_path / f"{run_id}.yaml").exists()

    def test_survives_reopen(self, tmp_path):
        run_id = YamlRunStore(tmp_path).create("s1", {"query": "café ☕"})
        run = YamlRunStore(tmp_path).get(run_id)
        assert run.input["query"] == "café ☕"

    @pytest.mark.parametrize("run_id", ["../etc/passwd", "a/b", "", "run.yaml"])
    def test_path_like_ids_are_not_found(self, tmp_path, run_id):
        with pytest.raises(RunNotFoundError):
            YamlRunStore(tmp_path).get(run_id)

    def test_unreadable_files_skipped_in_listing(self, tmp_path):
        store = YamlRunStore(tmp_path)
        run_id = store.create("s1", {"query": "q"})
        (tmp_path / "broken.yaml").write_text("key: [unclosed", encoding="utf-8")
        (tmp_path / "scalar.yaml").write_text("just a string", encoding="utf-8")

        assert [r.id for r in store.list_runs()] == [run_id]

    def test_invalid_yaml_raises_state_error_on_get(self, tmp_path):
        (tmp_path / "broken.yaml").write_text("key: [unclosed", encoding="utf-8")
        with pytest.raises(StateError, match="Invalid YAML"):
            YamlRunStore(tmp_path).get("broken")

    def test_missing_directory_lists_nothing(self, tmp_path):
        assert YamlRunStore(tmp_path / "absent").list_runs() == []


class TestRunStoreBase:
    def test_cannot_instantiate_base(self):
        with pytest.raises(TypeError):
            _RunStoreBase()

    def test_subclass_must_implement_storage_hooks(self):
        class Partial(_RunStoreBase):
            def _load(self, run_id):
                raise RunNotFoundError(run_id)

        with pytest.raises(TypeError, match="_all"):
            Partial()


class TestAtomicWrite:
    def test_creates_file_and_parents(self, tmp_path):
        target = tmp_path / "deep" / "nested" / "run.yaml"
        atomic_write(target, "hello")
        assert target.read_text() == "hello"

    def test_overwrites_existing(self, tmp_path):
        target = tmp_path / "run.yaml"
        target.write_text("old")
        atomic_write(str(target), "new")
        assert Path(target).read_text() == "new"

    def test_failure_leaves_original_and_no_temp_files(self, tmp_path):
        target = tmp_path / "run.yaml"
        target.write_text("original")

        with patch("research_assistant.run_store.os.fdopen", side_effect=OSError("disk full")):
            with pytest.raises(StateError, match="Failed to write") as exc_info:
                atomic_write(target, "should not appear")

        assert isinstance(exc_info.value.__cause__, OSError)
        assert target.read_text() == "original"
        assert list(tmp_path.glob("*.tmp")) == []
