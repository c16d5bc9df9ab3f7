#!/usr/bin/env python3
"""
Build Audio Sprite Script

Main entrypoint: audiosprite [options] file1.ogg file2.wav ...

- Decodes every input in order into one sprite buffer
- Exports the sprite once per requested format
- Writes <output>.json manifest next to the exports
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from audiosprite.config import Config, ConfigError
from audiosprite.errors import AudioSpriteError
from audiosprite.manifest import MANIFEST_FORMATS
from audiosprite.render.formats import SUPPORTED_FORMATS
from audiosprite.sprite import AudioSprite

logger = logging.getLogger(__name__)

DEFAULT_EXPORT = "ogg,m4a,mp3,ac3"


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="audiosprite",
        description="Concatenate audio files into one sprite and write a JSON offset manifest",
    )
    parser.add_argument("files", nargs="+", help="Input audio files")
    parser.add_argument("-o", "--output", default="output", help="Output basename (default: output)")
    parser.add_argument(
        "-e", "--export", default=DEFAULT_EXPORT,
        help=f"Comma-separated export formats (default: {DEFAULT_EXPORT})",
    )
    parser.add_argument(
        "-f", "--format", default="jukebox", choices=MANIFEST_FORMATS,
        help="Manifest format (default: jukebox)",
    )
    parser.add_argument("-c", "--config", default=None, help="Path to audiosprite.toml")
    parser.add_argument("--ffmpeg", default=None, help="Path to the ffmpeg executable")
    parser.add_argument("-g", "--gap", type=float, default=None, help="Silence gap between clips in seconds")
    parser.add_argument("-m", "--minlength", type=float, default=None, help="Minimum clip length in seconds")
    parser.add_argument("-b", "--bitrate", type=int, default=None, help="Bit rate in kbps")
    parser.add_argument("-v", "--vbr", type=int, default=None, help="MP3 VBR quality [0-9], -1 disables")
    parser.add_argument("-r", "--samplerate", type=int, default=None, help="Sample rate in Hz")
    parser.add_argument("-n", "--channels", type=int, default=None, help="Channel count (1 or 2)")
    parser.add_argument("-s", "--silence", type=float, default=0.0, help="Add a leading silent clip of N seconds")
    parser.add_argument("-l", "--loop", action="append", default=[], metavar="NAME", help="Mark clip NAME as looping")
    parser.add_argument("--log-level", default="INFO", help="Log level (e.g. INFO, DEBUG)")
    return parser.parse_args(argv)


def _export_formats(export: str) -> List[str]:
    formats = [fmt.strip().lower() for fmt in export.split(",") if fmt.strip()]
    unsupported = [fmt for fmt in formats if fmt not in SUPPORTED_FORMATS]
    if unsupported:
        raise ConfigError(
            f"Unsupported export format(s): {', '.join(unsupported)} "
            f"(supported: {', '.join(SUPPORTED_FORMATS)})"
        )
    if not formats:
        raise ConfigError("No export formats given")
    return formats


def main(argv: Optional[List[str]] = None) -> int:
    """Main sprite-building entrypoint."""
    args = parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s",
    )

    try:
        logger.info("🔊 Starting sprite build...")

        formats = _export_formats(args.export)
        config = Config.load(args.config)
        options = config.to_options(
            engine_path=args.ffmpeg,
            track_gap=args.gap,
            min_track_length=args.minlength,
            bit_rate=args.bitrate,
            vbr=args.vbr,
            sample_rate=args.samplerate,
            channel_count=args.channels,
        )
        logger.info(f"Options: {options}")

        sprite = AudioSprite(options)

        if args.silence > 0:
            sprite.input_silence(args.silence, name="silence")

        loops = set(args.loop)
        for file in args.files:
            sprite.input_file(file, loop=Path(file).stem in loops)

        sprite.output_file([f"{args.output}.{fmt}" for fmt in formats])
        sprite.output_json_file(f"{args.output}.json", args.format)

        logger.info(f"✅ Sprite built: {len(sprite.timeline)} clips, {sprite.position_in_seconds:.2f}s")
        return 0

    except KeyboardInterrupt:
        logger.warning("Sprite build interrupted by user")
        return 130
    except (AudioSpriteError, ConfigError) as e:
        logger.error(f"Sprite build failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
