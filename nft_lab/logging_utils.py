from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional, TextIO

from rich.console import Console
from rich.theme import Theme

# Run phases in the order a generation run walks through them.
PHASES = ("BOOT", "SETUP", "GENERATE", "CREATE", "UPLOAD", "SAVE", "DONE", "FATAL")

_LOG_LEVELS = {"DEBUG": 10, "INFO": 20, "WARN": 30, "ERROR": 40}

_STYLES = {"DEBUG": "dim", "INFO": "white", "WARN": "yellow", "ERROR": "bold red"}

_PHASE_WIDTH = max(len(name) for name in PHASES)


def _normalize_level(level: str) -> str:
    level = level.upper().strip()
    if level == "WARNING":
        return "WARN"
    if level == "CRITICAL":
        return "ERROR"
    return level


@dataclass(slots=True)
class PhaseTimer:
    """Elapsed-time handle yielded by :meth:`RunLogger.phase`."""

    logger: "RunLogger"
    name: str
    started: float = field(default_factory=time.perf_counter)
    finished: bool = False

    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self.started) * 1000.0

    def done(self, message: str, level: str = "INFO") -> None:
        self.finished = True
        self.logger.log(self.name, message, level=level, elapsed_ms=self.elapsed_ms())


@dataclass(slots=True)
class RunLogger:
    """Phase-tagged narration of a generation run, mirrored to ``log.txt``."""

    console: Console
    level: str = "INFO"
    logfile: Optional[Path] = None
    _plain_file: Optional[TextIO] = field(init=False, repr=False, default=None)

    def __post_init__(self) -> None:
        self.level = _normalize_level(self.level)
        if self.logfile:
            self.logfile.parent.mkdir(parents=True, exist_ok=True)
            self._plain_file = self.logfile.open("a", encoding="utf-8")

    def close(self) -> None:
        if self._plain_file:
            self._plain_file.close()
            self._plain_file = None

    def enabled_for(self, level: str) -> bool:
        return _LOG_LEVELS.get(_normalize_level(level), 100) >= _LOG_LEVELS.get(self.level, 20)

    def log(
        self,
        phase: str,
        message: str,
        level: str = "INFO",
        elapsed_ms: Optional[float] = None,
    ) -> None:
        level = _normalize_level(level)
        if not self.enabled_for(level):
            return
        now = datetime.now().strftime("%H:%M:%S.%f")[:-3]
        suffix = f" (ms={elapsed_ms:.0f})" if elapsed_ms is not None else ""
        line = f"[{now}] [{level:<5}] [{phase.upper():<{_PHASE_WIDTH}}] {message}{suffix}"
        self.console.print(line, style=_STYLES.get(level, "white"), highlight=False, soft_wrap=True, markup=False)
        if self._plain_file:
            self._plain_file.write(line + "\n")
            self._plain_file.flush()

    def item(
        self,
        phase: str,
        index: int,
        total: int,
        asset_name: str,
        message: str,
        level: str = "INFO",
    ) -> None:
        """Log one NFT's progress as ``[index/total] asset_name message``."""

        width = len(str(total))
        self.log(phase, f"[{index:>{width}}/{total}] {asset_name} {message}", level=level)

    @contextmanager
    def phase(self, name: str, message: Optional[str] = None) -> Iterator[PhaseTimer]:
        """Time a run phase; failures are logged with their elapsed time and re-raised."""

        if message:
            self.log(name, message)
        timer = PhaseTimer(self, name)
        try:
            yield timer
        except Exception as exc:
            self.log(name, f"failed: {exc}", level="ERROR", elapsed_ms=timer.elapsed_ms())
            raise
        if not timer.finished:
            timer.done("done")


class _RunLoggerHandler(logging.Handler):
    """Route ``nft.*`` library records through the run logger."""

    def __init__(self, run_logger: RunLogger) -> None:
        super().__init__()
        self._run_logger = run_logger

    def emit(self, record: logging.LogRecord) -> None:
        phase = record.name.rsplit(".", 1)[-1]
        self._run_logger.log(phase, record.getMessage(), level=record.levelname)


def create_logger(level: str, logfile: Optional[Path]) -> RunLogger:
    return RunLogger(console=Console(theme=Theme({"repr.number": "cyan"})), level=level, logfile=logfile)


def attach_library_logging(run_logger: RunLogger) -> logging.Handler:
    """Forward records from the ``nft`` logger hierarchy to *run_logger*."""

    handler = _RunLoggerHandler(run_logger)
    library = logging.getLogger("nft")
    library.addHandler(handler)
    library.setLevel(_LOG_LEVELS.get(run_logger.level, 20))
    library.propagate = False
    return handler


def detach_library_logging(handler: logging.Handler) -> None:
    library = logging.getLogger("nft")
    library.removeHandler(handler)
    library.setLevel(logging.NOTSET)
    library.propagate = True


__all__ = [
    "PHASES",
    "PhaseTimer",
    "RunLogger",
    "attach_library_logging",
    "create_logger",
    "detach_library_logging",
]
