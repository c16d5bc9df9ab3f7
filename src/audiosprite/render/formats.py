"""
Output format profiles: engine arguments per container/codec.
"""

import logging
import os
from typing import List, Optional

from audiosprite.config import SpriteOptions

logger = logging.getLogger(__name__)

DEFAULT_FORMAT = "ogg"

SUPPORTED_FORMATS = ("aiff", "caf", "wav", "ac3", "mp3", "mp4", "m4a", "ogg")


def is_supported(format: Optional[str]) -> bool:
    return format in SUPPORTED_FORMATS


def format_args(format: str, options: SpriteOptions) -> Optional[List[str]]:
    """
    Engine output arguments for a format.

    Args:
        format: Format name, e.g. "mp3"
        options: Session options (sample rate, channels, bit rate, VBR)

    Returns:
        Argument list, or None if the format has no profile
    """
    rate = str(options.sample_rate)
    channels = str(options.channel_count)
    bitrate = f"{options.bit_rate}k"

    if format in ("aiff", "caf", "wav"):
        return ["-ar", rate, "-ac", channels, "-f", format]
    if format == "ac3":
        return ["-acodec", "ac3", "-b:a", bitrate, "-f", "ac3"]
    if format == "mp3":
        # VBR quality level replaces the constant bit rate
        if options.vbr_enabled:
            return ["-ar", rate, "-f", "mp3", "-aq", str(options.vbr)]
        return ["-ar", rate, "-f", "mp3", "-b:a", bitrate]
    if format == "mp4":
        return ["-b:a", bitrate, "-f", "mpegts"]
    if format == "m4a":
        return ["-b:a", bitrate, "-c:a", "aac", "-strict", "-2", "-f", "mp4"]
    if format == "ogg":
        return ["-acodec", "libvorbis", "-f", "ogg", "-b:a", bitrate]
    return None


def format_from_extension(file: str) -> Optional[str]:
    """Format named by the file extension, if it has a profile."""
    ext = os.path.splitext(file)[1].replace(".", "").lower()
    return ext if is_supported(ext) else None


def resolve_format(file: Optional[str], format: Optional[str] = None) -> str:
    """Explicit format, else the file extension's, else DEFAULT_FORMAT."""
    if format:
        return format
    if file:
        detected = format_from_extension(file)
        if detected:
            return detected
        logger.debug(f"No format profile for extension of {file}, using {DEFAULT_FORMAT}")
    return DEFAULT_FORMAT
