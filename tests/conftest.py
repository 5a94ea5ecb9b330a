from __future__ import annotations

from collections.abc import Callable
from pathlib import Path
from typing import BinaryIO

import pytest

from tfrunner.invocation import Invocation
from tfrunner.types import Phase


class RecordingRunner:
    """ProcessRunner stand-in that records invocations and replays scripted results."""

    def __init__(self) -> None:
        self.invocations: list[Invocation] = []
        self.sinks: list[tuple[BinaryIO | None, BinaryIO | None]] = []
        self.stdout_by_phase: dict[Phase, bytes] = {}
        self.stderr_by_phase: dict[Phase, bytes] = {}
        self.returncodes: dict[Phase, int] = {}
        self.start_errors: dict[Phase, OSError] = {}
        self.side_effects: dict[Phase, Callable[[Invocation], None]] = {}

    def run(
        self,
        invocation: Invocation,
        *,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ) -> int:
        self.invocations.append(invocation)
        self.sinks.append((stdout, stderr))
        phase = invocation.phase
        if phase in self.start_errors:
            raise self.start_errors[phase]
        if phase in self.side_effects:
            self.side_effects[phase](invocation)
        if stdout is not None and phase in self.stdout_by_phase:
            stdout.write(self.stdout_by_phase[phase])
        if stderr is not None and phase in self.stderr_by_phase:
            stderr.write(self.stderr_by_phase[phase])
        return self.returncodes.get(phase, 0)

    @property
    def phases(self) -> list[Phase]:
        return [invocation.phase for invocation in self.invocations]


class RecordingLogger:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, dict[str, object]]] = []

    def _record(self, level: str, event: str, **payload: object) -> None:
        self.events.append((level, event, payload))

    def debug(self, event: str, **payload: object) -> None:
        self._record("debug", event, **payload)

    def info(self, event: str, **payload: object) -> None:
        self._record("info", event, **payload)

    def error(self, event: str, **payload: object) -> None:
        self._record("error", event, **payload)

    def names(self) -> list[str]:
        return [event for _, event, _ in self.events]


@pytest.fixture()
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture()
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture()
def workdir(tmp_path: Path) -> Path:
    directory = tmp_path / "workdir"
    directory.mkdir()
    return directory
