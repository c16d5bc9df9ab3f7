"""
External engine (ffmpeg) invocation.

One call to run_engine() is one subprocess. Stdin is fed and stderr drained
on helper threads while the calling thread reads stdout to EOF; the exit
status is only collected after stdout is fully drained, so every output
chunk has been delivered before the caller acts on the result.
"""

import logging
import shlex
import shutil
import signal as signal_module
import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import BinaryIO, Callable, List, Optional, Sequence, Union

from audiosprite.errors import EngineNotFoundError, EngineTimeoutError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

StdinSource = Union[bytes, bytearray, memoryview, BinaryIO, None]


@dataclass
class EngineResult:
    """Exit detail of a finished engine process."""

    cmd: List[str]
    returncode: int
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def exit_code(self) -> Optional[int]:
        """Exit code, or None when the process was killed by a signal."""
        return self.returncode if self.returncode >= 0 else None

    @property
    def signal(self) -> Optional[str]:
        if self.returncode >= 0:
            return None
        try:
            return signal_module.Signals(-self.returncode).name
        except ValueError:
            return str(-self.returncode)

    @property
    def command_line(self) -> str:
        return format_command(self.cmd)


def build_command(engine_path: str, args: Sequence[object]) -> List[str]:
    """Engine command line with every argument stringified."""
    return [engine_path] + [str(arg) for arg in args]


def format_command(cmd: Sequence[str]) -> str:
    return shlex.join(cmd)


def _feed_stdin(pipe: BinaryIO, source: StdinSource) -> None:
    """Write the stdin source to the process and close the pipe."""
    try:
        if isinstance(source, (bytes, bytearray, memoryview)):
            view = memoryview(source)
            for offset in range(0, len(view), CHUNK_SIZE):
                pipe.write(view[offset:offset + CHUNK_SIZE])
        elif source is not None:
            shutil.copyfileobj(source, pipe, CHUNK_SIZE)
    except (BrokenPipeError, ConnectionResetError):
        # The engine stopped reading; its exit status reports the failure
        logger.debug("Engine closed stdin before all input was written")
    finally:
        try:
            pipe.close()
        except OSError:
            pass


def _drain_stderr(pipe: BinaryIO, chunks: List[bytes], echo: bool) -> None:
    for chunk in iter(lambda: pipe.read1(CHUNK_SIZE), b""):
        chunks.append(chunk)
        if echo:
            sys.stderr.write(chunk.decode("utf-8", errors="replace"))
            sys.stderr.flush()


def run_engine(
    engine_path: str,
    args: Sequence[object],
    *,
    stdin: StdinSource = None,
    on_stdout: Optional[Callable[[bytes], object]] = None,
    timeout_seconds: Optional[float] = None,
    echo_stderr: bool = False,
) -> EngineResult:
    """
    Run the engine once and wait for it to finish.

    Args:
        engine_path: Engine executable
        args: Engine arguments
        stdin: Bytes-like or binary stream fed to the engine's stdin
        on_stdout: Receives stdout chunks in arrival order; stdout is
            discarded when None
        timeout_seconds: Kill the process after this many seconds
        echo_stderr: Copy engine stderr to our stderr as it arrives

    Returns:
        EngineResult with return code and captured stderr

    Raises:
        EngineNotFoundError: If the process could not be spawned
        EngineTimeoutError: If the timeout expired
    """
    cmd = build_command(engine_path, args)
    logger.debug(f"Running engine: {format_command(cmd)}")

    try:
        proc = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE if stdin is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE if on_stdout is not None else subprocess.DEVNULL,
            stderr=subprocess.PIPE,
        )
    except OSError as e:
        logger.error(f"Error spawning command [{engine_path}]: {e}")
        raise EngineNotFoundError(engine_path, str(e))

    timed_out = threading.Event()

    def _kill() -> None:
        timed_out.set()
        proc.kill()

    timer = None
    if timeout_seconds:
        timer = threading.Timer(timeout_seconds, _kill)
        timer.daemon = True
        timer.start()

    stderr_chunks: List[bytes] = []
    helpers = [
        threading.Thread(
            target=_drain_stderr,
            args=(proc.stderr, stderr_chunks, echo_stderr),
            daemon=True,
        )
    ]
    if stdin is not None:
        helpers.append(
            threading.Thread(target=_feed_stdin, args=(proc.stdin, stdin), daemon=True)
        )
    for helper in helpers:
        helper.start()

    try:
        if on_stdout is not None:
            for chunk in iter(lambda: proc.stdout.read1(CHUNK_SIZE), b""):
                on_stdout(chunk)
        for helper in helpers:
            helper.join()
        returncode = proc.wait()
    except BaseException:
        proc.kill()
        proc.wait()
        for helper in helpers:
            helper.join()
        raise
    finally:
        if timer is not None:
            timer.cancel()
        if proc.stdout is not None:
            proc.stdout.close()
        proc.stderr.close()

    if timed_out.is_set() and returncode < 0:
        logger.error(f"Engine timed out after {timeout_seconds}s: {format_command(cmd)}")
        raise EngineTimeoutError(format_command(cmd), timeout_seconds)

    stderr = b"".join(stderr_chunks).decode("utf-8", errors="replace")
    logger.debug(f"Engine exited with {returncode}: {cmd[0]}")
    return EngineResult(cmd=cmd, returncode=returncode, stderr=stderr)


def probe_engine(engine_path: str, timeout_seconds: Optional[float] = None) -> str:
    """
    Check that the engine can be executed by asking for its version.

    Returns:
        First line of the version banner

    Raises:
        EngineNotFoundError: If the engine is missing or exits with an error
    """
    banner: List[bytes] = []
    result = run_engine(
        engine_path,
        ["-version"],
        on_stdout=banner.append,
        timeout_seconds=timeout_seconds,
    )
    if not result.ok:
        logger.error(f"Engine version probe failed (retcode={result.returncode}): {engine_path}")
        raise EngineNotFoundError(engine_path, f"version probe exited with {result.returncode}")

    text = b"".join(banner).decode("utf-8", errors="replace")
    first_line = text.splitlines()[0] if text.strip() else ""
    logger.info(f"✅ Engine available: {first_line or engine_path}")
    return first_line
