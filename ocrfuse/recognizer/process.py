"""
Bounded supervision of the recognizer subprocess.

Tesseract occasionally hangs after writing its result file, so a plain
blocking wait on the process can stall the calling thread forever.
Every invocation is therefore watched by a guard thread:

1. The guard polls every ``poll_interval`` seconds, up to ``timeout``.
2. Once the expected result file exists and is newer than the process
   start, the remaining wait shrinks to ``tail`` to allow for flush
   latency instead of cancelling right away.
3. When the budget runs out, the guard sets the invocation's
   cancellation token; the calling thread stops waiting and terminates
   the process.

The cancellation token is a fresh threading.Event per invocation, so
a cancellation can never leak into a later, unrelated wait.
"""

from __future__ import annotations

import logging
import subprocess
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from ocrfuse.config import RecognizerConfig
from ocrfuse.exceptions import RecognizerLaunchError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of one recognizer invocation."""

    exit_observed: bool
    timed_out: bool
    output_path: Path
    return_code: int | None = None
    elapsed: float = 0.0

    @property
    def has_output(self) -> bool:
        return self.output_path.is_file()


class RecognizerProcess:
    """
    Runs the recognizer executable under a bounded wait.

    Example:
        >>> process = RecognizerProcess(RecognizerConfig(timeout=10.0))
        >>> result = process.run(Path("block.0001.png"), Path("block.0001"), ".hocr")
        >>> result.timed_out
        False
    """

    def __init__(self, config: RecognizerConfig | None = None):
        self.config = config or RecognizerConfig()

    def run(
        self,
        image_path: Path,
        output_base: Path,
        result_suffix: str,
        args: Sequence[str] = (),
    ) -> ProcessResult:
        """
        Run the recognizer on one raster and wait for it, bounded.

        Args:
            image_path: Input raster.
            output_base: Output path without suffix; the recognizer appends one.
            result_suffix: Suffix of the result file the recognizer writes.
            args: Extra trailing arguments (config names).

        Returns:
            ProcessResult describing how the wait ended.

        Raises:
            RecognizerLaunchError: If the executable cannot be started.
        """
        cfg = self.config
        cfg.cache_dir.mkdir(parents=True, exist_ok=True)
        output_path = Path(f"{output_base}{result_suffix}")
        output_path.unlink(missing_ok=True)
        command = [*cfg.command, str(image_path), str(output_base), *args]

        start_wall = time.time()
        start = time.monotonic()
        try:
            process = subprocess.Popen(
                command,
                cwd=cfg.cache_dir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            raise RecognizerLaunchError(f"Could not start recognizer {command[0]!r}: {e}") from e
        logger.debug("Recognizer started on %s (pid %d)", image_path.name, process.pid)

        finished = threading.Event()
        cancel = threading.Event()
        guard = threading.Thread(
            target=self._guard,
            args=(output_path, start, start_wall, finished, cancel),
            name=f"recognizer-guard-{process.pid}",
            daemon=True,
        )
        guard.start()
        return_code = None
        try:
            return_code = self._wait(process, cancel)
        finally:
            finished.set()
            guard.join()
            if return_code is None:
                self._stop(process)

        timed_out = return_code is None
        if timed_out:
            logger.warning(
                "Recognizer on %s exceeded %.1fs, terminated", image_path.name, cfg.timeout
            )
        elif return_code != 0:
            logger.warning("Recognizer on %s exited with code %d", image_path.name, return_code)

        elapsed = time.monotonic() - start
        logger.debug("Recognizer on %s done after %.2fs", image_path.name, elapsed)
        return ProcessResult(
            exit_observed=not timed_out,
            timed_out=timed_out,
            output_path=output_path,
            return_code=return_code,
            elapsed=elapsed,
        )

    def _wait(self, process: subprocess.Popen, cancel: threading.Event) -> int | None:
        """Wait for the process until it exits (return code) or is cancelled (None)."""
        while True:
            try:
                return process.wait(timeout=self.config.poll_interval)
            except subprocess.TimeoutExpired:
                if cancel.is_set():
                    return None

    def _guard(
        self,
        output_path: Path,
        start: float,
        start_wall: float,
        finished: threading.Event,
        cancel: threading.Event,
    ) -> None:
        cfg = self.config
        deadline = start + cfg.timeout
        tail_started = False
        while not finished.wait(cfg.poll_interval):
            now = time.monotonic()
            if not tail_started and _is_fresh(output_path, start_wall):
                tail_started = True
                if now + cfg.tail < deadline:
                    deadline = now + cfg.tail
                    logger.debug("Result file %s exists, waiting %.1fs more", output_path.name, cfg.tail)
            if now >= deadline:
                cancel.set()
                return

    def _stop(self, process: subprocess.Popen) -> None:
        process.terminate()
        try:
            process.wait(timeout=self.config.kill_grace)
        except subprocess.TimeoutExpired:
            logger.warning("Recognizer (pid %d) ignored termination, killing", process.pid)
            process.kill()
            process.wait()


def _is_fresh(path: Path, since: float) -> bool:
    """True if the file exists and was modified after ``since`` (file system granularity allowed)."""
    try:
        return path.stat().st_mtime >= int(since)
    except OSError:
        return False
