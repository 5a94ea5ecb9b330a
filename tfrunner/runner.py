"""Process runners used to execute Terraform invocations."""

from __future__ import annotations

import io

# Bandit: subprocess usage is limited to the configured terraform binary.
import subprocess  # nosec B404
import threading
from typing import IO, BinaryIO, Protocol

from .invocation import Invocation

_CHUNK_SIZE = 8192


class ProcessRunner(Protocol):
    """Spawn an invocation, forward its streams and return the exit code."""

    def run(
        self,
        invocation: Invocation,
        *,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ) -> int:  # pragma: no cover - interface
        """Block until the process exits.

        Raises ``OSError`` when the process cannot be started.
        """


def _binary_sink(sink: IO | None) -> BinaryIO | None:
    if isinstance(sink, io.TextIOBase):
        buffer = getattr(sink, "buffer", None)
        if buffer is None:
            raise TypeError(
                f"{type(sink).__name__} has no binary buffer; pass a binary sink"
            )
        return buffer
    return sink


def _pump(source: BinaryIO, sink: BinaryIO, lock: threading.Lock) -> None:
    read = getattr(source, "read1", source.read)
    try:
        for chunk in iter(lambda: read(_CHUNK_SIZE), b""):
            with lock:
                sink.write(chunk)
                flush = getattr(sink, "flush", None)
                if flush is not None:
                    flush()
    finally:
        source.close()


class SubprocessRunner:
    """Run invocations with :mod:`subprocess`, streaming output to sinks live.

    A ``None`` sink discards the stream; a text sink must expose a binary
    ``buffer`` or ``TypeError`` is raised. Each forwarded stream gets its own
    helper thread so a busy stderr cannot stall a captured stdout.
    """

    def run(
        self,
        invocation: Invocation,
        *,
        stdout: BinaryIO | None = None,
        stderr: BinaryIO | None = None,
    ) -> int:
        out_sink = _binary_sink(stdout)
        err_sink = _binary_sink(stderr)
        process = subprocess.Popen(  # nosec B603
            list(invocation.args),
            cwd=str(invocation.cwd),
            env=dict(invocation.env),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE if out_sink is not None else subprocess.DEVNULL,
            stderr=subprocess.PIPE if err_sink is not None else subprocess.DEVNULL,
        )
        lock = threading.Lock()
        pumps = [
            threading.Thread(target=_pump, args=(stream, sink, lock), daemon=True)
            for stream, sink in ((process.stdout, out_sink), (process.stderr, err_sink))
            if stream is not None and sink is not None
        ]
        for pump in pumps:
            pump.start()
        try:
            returncode = process.wait()
        finally:
            for pump in pumps:
                pump.join()
        return returncode
