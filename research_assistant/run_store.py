"""Run records and their persistence: in-memory and atomic YAML-file stores."""

import logging
import os
import re
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

import yaml

from .errors import RunNotFoundError, StateError
from .results import ResearchRequest

logger = logging.getLogger(__name__)

DEFAULT_RUNS_DIR = Path("runs")

_RUN_ID_RE = re.compile(r"^[A-Za-z0-9_-]+$")


class RunStatus(Enum):
    """Lifecycle state of a run."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)


_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.PROCESSING, RunStatus.FAILED}),
    RunStatus.PROCESSING: frozenset({RunStatus.COMPLETED, RunStatus.FAILED}),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
}


def check_transition(current: RunStatus, new: RunStatus) -> None:
    """Raise StateError unless current -> new is a legal transition."""
    if new not in _TRANSITIONS[current]:
        raise StateError(f"Illegal run status transition: {current.value} -> {new.value}")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Run:
    """A persisted research or refinement run."""

    id: str
    session_id: str
    input: dict[str, Any]
    output: dict[str, Any] = field(default_factory=dict)
    status: RunStatus = RunStatus.PENDING
    created_at: str = ""
    updated_at: str = ""
    logs: tuple[str, ...] = ()
    parent_run_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "session_id": self.session_id,
            "status": self.status.value,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "input": self.input,
            "output": self.output,
            "logs": list(self.logs),
        }
        if self.parent_run_id is not None:
            data["parent_run_id"] = self.parent_run_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Run":
        try:
            return cls(
                id=data["id"],
                session_id=data["session_id"],
                input=dict(data.get("input") or {}),
                output=dict(data.get("output") or {}),
                status=RunStatus(data.get("status", "pending")),
                created_at=data.get("created_at", ""),
                updated_at=data.get("updated_at", ""),
                logs=tuple(data.get("logs") or ()),
                parent_run_id=data.get("parent_run_id"),
            )
        except (KeyError, ValueError, TypeError) as exc:
            raise StateError(f"Malformed run record: {exc}") from exc


class _RunStoreBase(ABC):
    """Shared run lifecycle logic; subclasses implement _load/_save/_all."""

    @abstractmethod
    def _load(self, run_id: str) -> Run: ...

    @abstractmethod
    def _save(self, run: Run) -> None: ...

    @abstractmethod
    def _all(self) -> list[Run]: ...

    def create(
        self,
        session_id: str,
        request: ResearchRequest | dict[str, Any],
        parent_run_id: str | None = None,
    ) -> str:
        """Create a pending run and return its id."""
        if isinstance(request, ResearchRequest):
            request = request.to_dict()
        timestamp = _now()
        run = Run(
            id=uuid.uuid4().hex,
            session_id=session_id,
            input=dict(request),
            created_at=timestamp,
            updated_at=timestamp,
            parent_run_id=parent_run_id,
        )
        self._save(run)
        return run.id

    def get(self, run_id: str) -> Run:
        """Load a run.

        Raises:
            RunNotFoundError: If no run has this id.
        """
        return self._load(run_id)

    def update_status(
        self,
        run_id: str,
        status: RunStatus,
        logs: tuple[str, ...] | None = None,
    ) -> Run:
        """Move a run to a new status.

        Raises:
            RunNotFoundError: If no run has this id.
            StateError: If the transition is illegal.
        """
        run = self._load(run_id)
        check_transition(run.status, status)
        changes: dict[str, Any] = {"status": status, "updated_at": _now()}
        if logs is not None:
            changes["logs"] = tuple(logs)
        updated = replace(run, **changes)
        self._save(updated)
        return updated

    def update_output(
        self,
        run_id: str,
        output: dict[str, Any],
        status: RunStatus,
        logs: tuple[str, ...] = (),
    ) -> Run:
        """Store a run's output together with its terminal status and logs."""
        run = self._load(run_id)
        check_transition(run.status, status)
        updated = replace(
            run,
            output=dict(output),
            status=status,
            logs=tuple(logs),
            updated_at=_now(),
        )
        self._save(updated)
        return updated

    def list_runs(self, session_id: str | None = None) -> list[Run]:
        """Runs ordered oldest first, optionally limited to one session."""
        runs = [r for r in self._all() if session_id is None or r.session_id == session_id]
        return sorted(runs, key=lambda r: r.created_at)

    def latest_for_session(self, session_id: str) -> Run | None:
        runs = self.list_runs(session_id)
        return runs[-1] if runs else None


class InMemoryRunStore(_RunStoreBase):
    """Process-local run store."""

    def __init__(self) -> None:
        self._runs: dict[str, Run] = {}

    def _load(self, run_id: str) -> Run:
        try:
            return self._runs[run_id]
        except KeyError:
            raise RunNotFoundError(run_id) from None

    def _save(self, run: Run) -> None:
        self._runs[run.id] = run

    def _all(self) -> list[Run]:
        return list(self._runs.values())


def atomic_write(path: Path | str, content: str, encoding: str = "utf-8") -> None:
    """Write content via a temp file in the same directory, then rename.

    If the write fails the original file is unchanged.

    Raises:
        StateError: If the write fails (wraps the underlying OSError).
    """
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path = None
    try:
        fd, tmp_path = tempfile.mkstemp(dir=target.parent, suffix=".tmp")
        with os.fdopen(fd, "w", encoding=encoding) as f:
            fd = None  # os.fdopen owns the descriptor now
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, target)
    except OSError as exc:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        if fd is not None:
            os.close(fd)
        raise StateError(f"Failed to write {target}: {exc}") from exc


class YamlRunStore(_RunStoreBase):
    """One ``<run_id>.yaml`` file per run under a directory."""

    def __init__(self, directory: Path | str = DEFAULT_RUNS_DIR) -> None:
        self.directory = Path(directory)

    def _path(self, run_id: str) -> Path:
        if not _RUN_ID_RE.match(run_id or ""):
            raise RunNotFoundError(run_id)
        return self.directory / f"{run_id}.yaml"

    def _read(self, path: Path) -> Run:
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            raise StateError(f"Invalid YAML in {path}: {exc}") from exc
        except OSError as exc:
            raise StateError(f"Failed to read {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StateError(f"Run file {path} does not contain a mapping")
        return Run.from_dict(data)

    def _load(self, run_id: str) -> Run:
        path = self._path(run_id)
        if not path.exists():
            raise RunNotFoundError(run_id)
        return self._read(path)

    def _save(self, run: Run) -> None:
        content = yaml.safe_dump(
            run.to_dict(), default_flow_style=False, sort_keys=False, allow_unicode=True,
        )
        atomic_write(self._path(run.id), content)

    def _all(self) -> list[Run]:
        if not self.directory.is_dir():
            return []
        runs = []
        for path in sorted(self.directory.glob("*.yaml")):
            try:
                runs.append(self._read(path))
            except StateError as e:
                logger.warning("Skipping unreadable run file %s: %s", path, e)
        return runs
