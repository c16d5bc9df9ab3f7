"""
Exception hierarchy for audiosprite.

Engine failures carry the process exit detail so callers can report or retry.
Programmer errors (bad format names, malformed raw arguments) also derive from
ValueError and are raised before any process is spawned.
"""

from typing import Optional


class AudioSpriteError(Exception):
    """Base error for the audio sprite builder."""


class EngineNotFoundError(AudioSpriteError):
    """Raised when the external engine cannot be probed or spawned."""

    def __init__(self, engine_path: str, reason: str = ""):
        self.engine_path = engine_path
        message = f"Could not execute engine [{engine_path}]. Is the path correct?"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class EngineTimeoutError(AudioSpriteError):
    """Raised when an engine invocation exceeds the configured timeout."""

    def __init__(self, cmd: str, timeout_seconds: float):
        self.cmd = cmd
        self.timeout_seconds = timeout_seconds
        super().__init__(f"Engine timed out after {timeout_seconds}s: {cmd}")


class DecodeError(AudioSpriteError):
    """Raised when a clip could not be decoded into the sprite buffer."""

    def __init__(
        self,
        clip: str,
        returncode: Optional[int],
        signal: Optional[str] = None,
        stderr: str = "",
    ):
        self.clip = clip
        self.returncode = returncode
        self.signal = signal
        self.stderr = stderr
        super().__init__(
            f"File could not be added: {clip} (retcode={returncode}, signal={signal})"
        )


class EncodeError(AudioSpriteError):
    """Raised when exporting the sprite buffer fails in either encode phase."""

    def __init__(
        self,
        format: str,
        returncode: Optional[int],
        signal: Optional[str],
        cmd: str,
        stderr: str = "",
    ):
        self.format = format
        self.returncode = returncode
        self.signal = signal
        self.cmd = cmd
        self.stderr = stderr
        super().__init__(
            f"Error exporting file as {format} (retcode={returncode}, signal={signal}): {cmd}"
        )


class InputMissingError(AudioSpriteError, FileNotFoundError):
    """Raised when an input file does not exist."""

    def __init__(self, file: str):
        self.file = file
        super().__init__(f"File does not exist: {file}")


class UnsupportedFormatError(AudioSpriteError, ValueError):
    """Raised for an output format with no profile and no raw arguments."""

    def __init__(self, format: str):
        self.format = format
        super().__init__(f"Unsupported output format '{format}'")


class InvalidRawArgumentsError(AudioSpriteError, ValueError):
    """Raised when raw engine arguments lack the required pipe markers."""
