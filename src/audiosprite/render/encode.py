"""
Encode stage: export the sprite buffer through the engine.

File outputs go through a temporary WAV first, because some engine builds
cannot reliably write every container from a pipe. Stream outputs are
encoded in a single pass from stdin to stdout.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import BinaryIO, List, Optional, Sequence

from audiosprite.build.decode import PCM_FORMAT
from audiosprite.config import SpriteOptions
from audiosprite.errors import EncodeError, InvalidRawArgumentsError, UnsupportedFormatError
from audiosprite.render.engine import EngineResult, run_engine
from audiosprite.render.formats import format_args

logger = logging.getLogger(__name__)

INPUT_PIPE = "pipe:0"
OUTPUT_PIPES = ("pipe:", "pipe:1", "-")


def pcm_input_args(options: SpriteOptions) -> List[str]:
    """Arguments describing the raw PCM fed on stdin."""
    return [
        "-ar", str(options.sample_rate),
        "-ac", str(options.channel_count),
        "-f", PCM_FORMAT,
        "-i", INPUT_PIPE,
    ]


def _as_argument_list(raw_arguments: Sequence[object]) -> List[str]:
    if isinstance(raw_arguments, (str, bytes)) or not isinstance(raw_arguments, (list, tuple)):
        raise InvalidRawArgumentsError(
            f"Raw arguments must be a list of strings, got {type(raw_arguments).__name__}"
        )
    return [str(arg) for arg in raw_arguments]


def output_args(
    options: SpriteOptions,
    format: str,
    raw_arguments: Optional[Sequence[object]] = None,
) -> List[str]:
    """
    Format profile arguments, or the caller's raw arguments verbatim.

    Raises:
        UnsupportedFormatError: If the format has no profile and no raw
            arguments were given
    """
    if raw_arguments is not None:
        return _as_argument_list(raw_arguments)
    args = format_args(format, options)
    if args is None:
        raise UnsupportedFormatError(format)
    return args


def pipe_args(
    options: SpriteOptions,
    format: str,
    raw_arguments: Optional[Sequence[object]] = None,
) -> List[str]:
    """
    Full argument list for a single-pass stdin-to-stdout encode.

    Raw arguments replace the whole list and must name both pipes.

    Raises:
        InvalidRawArgumentsError: If raw arguments lack a pipe marker
        UnsupportedFormatError: If the format has no profile
    """
    if raw_arguments is None:
        return ["-y"] + pcm_input_args(options) + output_args(options, format) + ["pipe:"]

    args = _as_argument_list(raw_arguments)
    if INPUT_PIPE not in args:
        raise InvalidRawArgumentsError(f"Raw arguments must read from {INPUT_PIPE}: {args}")
    if not any(marker in args for marker in OUTPUT_PIPES):
        raise InvalidRawArgumentsError(
            f"Raw arguments must write to one of {', '.join(OUTPUT_PIPES)}: {args}"
        )
    return args


def _check(result: EngineResult, format: str) -> None:
    if result.ok:
        return
    logger.error(
        f"Error exporting {format} (retcode={result.exit_code}, signal={result.signal}): "
        f"{result.command_line}"
    )
    raise EncodeError(format, result.exit_code, result.signal, result.command_line, result.stderr)


def encode_file(
    options: SpriteOptions,
    pcm: memoryview,
    file: str,
    *,
    format: str,
    raw_arguments: Optional[Sequence[object]] = None,
    output_stderr: bool = False,
) -> None:
    """
    Export PCM to a file via a temporary WAV.

    The temporary WAV is removed afterwards whether or not the export
    succeeded; a failed removal is only logged.

    Raises:
        UnsupportedFormatError: Before any process is spawned
        EncodeError: If either engine pass fails
    """
    final_args = output_args(options, format, raw_arguments)

    out_dir = os.path.dirname(file)
    if out_dir:
        os.makedirs(out_dir, exist_ok=True)

    fd, temp_path = tempfile.mkstemp(prefix="audiosprite_", suffix=".wav")
    os.close(fd)

    try:
        result = run_engine(
            options.engine_path,
            ["-y"] + pcm_input_args(options) + ["-f", "wav", temp_path],
            stdin=pcm,
            timeout_seconds=options.timeout_seconds,
            echo_stderr=output_stderr,
        )
        _check(result, format)

        result = run_engine(
            options.engine_path,
            ["-y", "-i", temp_path] + final_args + [file],
            timeout_seconds=options.timeout_seconds,
            echo_stderr=output_stderr,
        )
        _check(result, format)
    finally:
        try:
            Path(temp_path).unlink()
            logger.debug(f"Cleaned up temp file: {temp_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Failed to clean up temp file {temp_path}: {e}")

    logger.debug(f"Exported {len(pcm)} PCM bytes to {file} as {format}")


def encode_stream(
    options: SpriteOptions,
    pcm: memoryview,
    stream: BinaryIO,
    *,
    format: str,
    raw_arguments: Optional[Sequence[object]] = None,
    output_stderr: bool = False,
) -> int:
    """
    Export PCM in one pass, writing the encoded bytes to a binary stream.

    Returns:
        Number of encoded bytes written to the stream

    Raises:
        UnsupportedFormatError: Before any process is spawned
        InvalidRawArgumentsError: Before any process is spawned
        EncodeError: If the engine fails
    """
    args = pipe_args(options, format, raw_arguments)
    written = 0

    def _write(chunk: bytes) -> None:
        nonlocal written
        stream.write(chunk)
        written += len(chunk)

    result = run_engine(
        options.engine_path,
        args,
        stdin=pcm,
        on_stdout=_write,
        timeout_seconds=options.timeout_seconds,
        echo_stderr=output_stderr,
    )
    _check(result, format)
    return written
