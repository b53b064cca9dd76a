"""Per-run progress log, persisted with the run and mirrored to logging."""

import logging

logger = logging.getLogger(__name__)


class RunLog:
    """Ordered, human-readable progress lines for one run.

    Each entry is also forwarded to the module logger tagged with the run id,
    so a run's history is visible both in the store and in process logs.
    """

    def __init__(self, run_id: str = "", entries: tuple[str, ...] | list[str] = ()) -> None:
        self.run_id = run_id
        self._entries: list[str] = list(entries)

    def _record(self, level: int, message: str, args: tuple) -> None:
        text = message % args if args else message
        self._entries.append(text)
        logger.log(level, "[%s] %s", self.run_id or "-", text)

    def info(self, message: str, *args) -> None:
        self._record(logging.INFO, message, args)

    def warning(self, message: str, *args) -> None:
        self._record(logging.WARNING, message, args)

    def error(self, message: str, *args) -> None:
        self._record(logging.ERROR, message, args)

    @property
    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
