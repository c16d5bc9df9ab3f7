"""
Decode stage: turn one encoded clip into raw PCM inside the sprite buffer.
"""

import logging
from typing import List

from audiosprite.build.accumulator import ByteAccumulator
from audiosprite.config import SpriteOptions
from audiosprite.errors import DecodeError
from audiosprite.render.engine import StdinSource, run_engine

logger = logging.getLogger(__name__)

PCM_FORMAT = "s16le"


def decode_args(options: SpriteOptions) -> List[str]:
    """Read any format from stdin, write raw PCM to stdout."""
    return [
        "-i", "pipe:0",
        "-ar", str(options.sample_rate),
        "-ac", str(options.channel_count),
        "-f", PCM_FORMAT,
        "pipe:",
    ]


def decode_clip(
    options: SpriteOptions,
    accumulator: ByteAccumulator,
    source: StdinSource,
    clip_name: str,
    *,
    output_stderr: bool = False,
) -> int:
    """
    Decode a clip through the engine, appending PCM to the accumulator.

    Chunks are appended as they arrive. When the engine fails, bytes already
    appended stay in the buffer.

    Args:
        options: Session options
        accumulator: Sprite buffer receiving the PCM
        source: Encoded clip as bytes or a binary stream
        clip_name: Clip name, used in errors and logs
        output_stderr: Echo engine stderr while decoding

    Returns:
        Number of PCM bytes appended

    Raises:
        DecodeError: If the engine exits with an error or is killed
    """
    written = 0

    def _append(chunk: bytes) -> None:
        nonlocal written
        written += accumulator.append(chunk)

    result = run_engine(
        options.engine_path,
        decode_args(options),
        stdin=source,
        on_stdout=_append,
        timeout_seconds=options.timeout_seconds,
        echo_stderr=output_stderr,
    )

    if not result.ok:
        logger.error(
            f"Decode failed for {clip_name} (retcode={result.exit_code}, signal={result.signal}); "
            f"{written} bytes were already appended"
        )
        raise DecodeError(clip_name, result.exit_code, result.signal, result.stderr)

    logger.debug(f"Decoded {clip_name}: {written} bytes")
    return written
