"""
AudioSprite session: feed clips in, export the sprite and its manifest.

A session owns one sprite buffer and one timeline. Operations are expected
to run one at a time; each returns once its engine process has exited and
its output is fully drained. Separate sessions share nothing and may run
concurrently.

Example:
    sprite = AudioSprite(SpriteOptions(track_gap=0.5))
    sprite.input_file(["boom.ogg", "click.wav"])
    sprite.input_silence(2.0, name="pause")
    sprite.output_file(["out/sprite.ogg", "out/sprite.mp3"])
    sprite.output_json_file("out/sprite.json", "howler2")
"""

import logging
import os
from pathlib import Path
from typing import Any, BinaryIO, Dict, List, Optional, Sequence, Union

from audiosprite.build.accumulator import ByteAccumulator
from audiosprite.build.decode import decode_clip
from audiosprite.build.timeline import ClipEntry, Timeline, record_clip, record_silence
from audiosprite.config import SpriteOptions
from audiosprite.errors import InputMissingError
from audiosprite.manifest import build_manifest, write_manifest
from audiosprite.render.encode import encode_file, encode_stream
from audiosprite.render.engine import StdinSource, probe_engine
from audiosprite.render.formats import resolve_format

logger = logging.getLogger(__name__)

FileOrFiles = Union[str, os.PathLike, Sequence[Union[str, os.PathLike]]]
StreamOrStreams = Union[BinaryIO, Sequence[BinaryIO]]


def _is_batch(target: object) -> bool:
    return isinstance(target, (list, tuple))


class AudioSprite:
    """Builds one audio sprite from many clips."""

    def __init__(self, options: Optional[SpriteOptions] = None):
        """
        Args:
            options: Session options; defaults to SpriteOptions()
        """
        self._options = options or SpriteOptions()
        self._accumulator = ByteAccumulator(
            self._options.sample_rate,
            self._options.channel_count,
            initial_size=self._options.buffer_initial_size,
            increment_size=self._options.buffer_increment_size,
        )
        self._timeline = Timeline()
        self._engine_checked = False

    @property
    def options(self) -> SpriteOptions:
        return self._options

    @property
    def timeline(self) -> Timeline:
        return self._timeline

    @property
    def position_in_seconds(self) -> float:
        return self._accumulator.position_in_seconds()

    def _check_engine(self) -> None:
        # Probe once per session; a failed probe is retried on the next input
        if not self._engine_checked:
            probe_engine(self._options.engine_path, self._options.timeout_seconds)
            self._engine_checked = True

    # ---------------------------------------------------------------- input

    def input(
        self,
        source: StdinSource,
        *,
        name: str = "default",
        autoplay: bool = False,
        loop: bool = False,
        output_stderr: bool = False,
    ) -> ClipEntry:
        """
        Decode a clip from bytes or a binary stream and append it.

        Args:
            source: Encoded audio as bytes or a readable binary stream
            name: Clip name in the manifest
            autoplay: Clips added without this flag become the autoplay clip
            loop: Mark the clip as looping (autoplay clips always loop)
            output_stderr: Echo engine stderr

        Returns:
            The recorded ClipEntry

        Raises:
            EngineNotFoundError: If the engine cannot be executed
            DecodeError: If the engine fails on this clip
        """
        self._check_engine()

        start = self._accumulator.position_in_seconds()
        decode_clip(
            self._options,
            self._accumulator,
            source,
            name,
            output_stderr=output_stderr,
        )
        current = self._accumulator.position_in_seconds()

        self._timeline.note_autoplay(name, autoplay)
        entry, silence = record_clip(
            start,
            current,
            loop=bool(autoplay or loop),
            min_track_length=self._options.min_track_length,
            track_gap=self._options.track_gap,
        )
        self._timeline.set_clip(name, entry)
        self._accumulator.append_silence(silence)

        logger.info(f"✅ Added {name}: {entry.start:.3f}s - {entry.end:.3f}s")
        return entry

    def input_file(
        self,
        file: FileOrFiles,
        *,
        name: Optional[str] = None,
        autoplay: bool = False,
        loop: bool = False,
        output_stderr: bool = False,
    ) -> Union[ClipEntry, List[ClipEntry]]:
        """
        Decode one file, or a list of files in order, into the sprite.

        A list stops at the first failing file. Each clip is named after its
        file (without extension) unless `name` is given.

        Raises:
            InputMissingError: If a file does not exist
            EngineNotFoundError: If the engine cannot be executed
            DecodeError: If the engine fails on a file
        """
        if _is_batch(file):
            return [
                self._input_file(f, name=name, autoplay=autoplay, loop=loop, output_stderr=output_stderr)
                for f in file
            ]
        return self._input_file(file, name=name, autoplay=autoplay, loop=loop, output_stderr=output_stderr)

    def _input_file(
        self,
        file: Union[str, os.PathLike],
        *,
        name: Optional[str],
        autoplay: bool,
        loop: bool,
        output_stderr: bool,
    ) -> ClipEntry:
        path = Path(file)
        clip_name = name or path.stem
        if not path.exists():
            logger.error(f"Input file does not exist: {file}")
            raise InputMissingError(str(file))

        with open(path, "rb") as f:
            return self.input(f, name=clip_name, autoplay=autoplay, loop=loop, output_stderr=output_stderr)

    def input_silence(
        self,
        duration: float,
        *,
        name: str = "silence",
        autoplay: bool = False,
    ) -> ClipEntry:
        """
        Append a silent, looping clip of exactly `duration` seconds.

        Raises:
            ValueError: If duration is negative or not finite
        """
        now = self._accumulator.position_in_seconds()
        entry, silence = record_silence(now, duration, track_gap=self._options.track_gap)

        # Buffer first so a rejected write leaves the timeline as it was
        self._accumulator.append_silence(silence)
        self._timeline.set_clip(name, entry)
        self._timeline.note_autoplay(name, autoplay)

        logger.info(f"✅ Added silence {name}: {entry.start:.3f}s - {entry.end:.3f}s")
        return entry

    # --------------------------------------------------------------- output

    def output(
        self,
        stream: StreamOrStreams,
        *,
        format: Optional[str] = None,
        raw_arguments: Optional[Sequence[object]] = None,
        name: Optional[str] = None,
        output_stderr: bool = False,
    ) -> Union[str, List[str]]:
        """
        Encode the sprite in one pass and write it to a binary stream, or to
        a list of streams in order.

        A list stops at the first failing stream.

        Args:
            stream: Writable binary stream, or a list of them
            format: Output format (defaults to ogg)
            raw_arguments: Full engine argument list; must read pipe:0 and
                write to pipe:, pipe:1 or -
            name: Resource name for the manifest (defaults to "default")
            output_stderr: Echo engine stderr

        Returns:
            Resource name(s) recorded in the manifest

        Raises:
            UnsupportedFormatError: Unknown format without raw arguments
            InvalidRawArgumentsError: Raw arguments without pipe markers
            EncodeError: If the engine fails
        """
        if _is_batch(stream):
            return [
                self._output(s, format=format, raw_arguments=raw_arguments, name=name, output_stderr=output_stderr)
                for s in stream
            ]
        return self._output(stream, format=format, raw_arguments=raw_arguments, name=name, output_stderr=output_stderr)

    def _output(
        self,
        stream: BinaryIO,
        *,
        format: Optional[str],
        raw_arguments: Optional[Sequence[object]],
        name: Optional[str],
        output_stderr: bool,
    ) -> str:
        fmt = resolve_format(None, format)
        resource = name or "default"

        written = encode_stream(
            self._options,
            self._accumulator.snapshot(),
            stream,
            format=fmt,
            raw_arguments=raw_arguments,
            output_stderr=output_stderr,
        )
        self._timeline.add_resource(resource)

        logger.info(f"✅ Exported {resource} ({fmt}, {written} bytes)")
        return resource

    def output_file(
        self,
        file: FileOrFiles,
        *,
        format: Optional[str] = None,
        raw_arguments: Optional[Sequence[object]] = None,
        name: Optional[str] = None,
        output_stderr: bool = False,
    ) -> Union[str, List[str]]:
        """
        Encode the sprite to one file, or to a list of files in order.

        The format is taken from `format`, else the file extension, else
        ogg. A list stops at the first failing file.

        Returns:
            Resource name(s) recorded in the manifest

        Raises:
            UnsupportedFormatError: Unknown format without raw arguments
            EncodeError: If the engine fails
        """
        if _is_batch(file):
            return [
                self._output_file(f, format=format, raw_arguments=raw_arguments, name=name, output_stderr=output_stderr)
                for f in file
            ]
        return self._output_file(file, format=format, raw_arguments=raw_arguments, name=name, output_stderr=output_stderr)

    def _output_file(
        self,
        file: Union[str, os.PathLike],
        *,
        format: Optional[str],
        raw_arguments: Optional[Sequence[object]],
        name: Optional[str],
        output_stderr: bool,
    ) -> str:
        file = os.fspath(file)
        resource = name or os.path.basename(file)
        fmt = resolve_format(file, format)

        encode_file(
            self._options,
            self._accumulator.snapshot(),
            file,
            format=fmt,
            raw_arguments=raw_arguments,
            output_stderr=output_stderr,
        )
        self._timeline.add_resource(resource)

        logger.info(f"✅ Exported {file} ({fmt})")
        return resource

    # ------------------------------------------------------------- manifest

    def output_json(self, format: Optional[str] = None) -> Dict[str, Any]:
        """Manifest in the given consumer format (jukebox by default)."""
        return build_manifest(self._timeline, format)

    def output_json_file(self, file: Union[str, os.PathLike], format: Optional[str] = None) -> Dict[str, Any]:
        """Write the manifest to `file` and return it."""
        manifest = self.output_json(format)
        write_manifest(manifest, os.fspath(file))
        return manifest

    def __repr__(self) -> str:
        return f"AudioSprite(clips={len(self._timeline)}, seconds={self.position_in_seconds:.3f})"
