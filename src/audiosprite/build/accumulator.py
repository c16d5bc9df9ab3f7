"""
Sprite buffer: a growable raw PCM store with a write cursor.

All sprite timing derives from the number of bytes actually written here,
never from wall-clock time. Samples are signed 16-bit little-endian.
"""

import logging
import math

logger = logging.getLogger(__name__)

BYTES_PER_SAMPLE = 2


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for positives."""
    return int(math.floor(value + 0.5))


class ByteAccumulator:
    """Contiguous PCM byte buffer that grows in fixed-size increments."""

    def __init__(
        self,
        sample_rate: int,
        channel_count: int,
        initial_size: int = 300 * 1024,
        increment_size: int = 100 * 1024,
    ):
        """
        Args:
            sample_rate: PCM sample rate in Hz
            channel_count: Number of interleaved channels
            initial_size: Initial capacity in bytes (may be 0)
            increment_size: Growth chunk in bytes (must be positive)
        """
        if increment_size <= 0:
            raise ValueError(f"increment_size must be positive, got {increment_size}")
        if initial_size < 0:
            raise ValueError(f"initial_size must not be negative, got {initial_size}")

        self.sample_rate = sample_rate
        self.channel_count = channel_count
        self.increment_size = increment_size
        self._buffer = bytearray(initial_size)
        self._position = 0

    @property
    def position(self) -> int:
        """Number of meaningful PCM bytes written so far."""
        return self._position

    @property
    def capacity(self) -> int:
        return len(self._buffer)

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * BYTES_PER_SAMPLE * self.channel_count

    def position_in_seconds(self) -> float:
        """Current write cursor expressed in seconds of audio."""
        return self._position / self.sample_rate / self.channel_count / BYTES_PER_SAMPLE

    def ensure_capacity(self, additional: int) -> None:
        """
        Make room for `additional` bytes past the cursor.

        Capacity grows by the smallest whole number of increments covering
        the deficit. Bytes before the cursor are carried over; the buffer
        never shrinks.
        """
        available = len(self._buffer) - self._position
        if additional <= available:
            return

        deficit = additional - available
        chunks = -(-deficit // self.increment_size)
        new_size = len(self._buffer) + chunks * self.increment_size
        new_buffer = bytearray(new_size)
        new_buffer[:self._position] = self._buffer[:self._position]
        logger.debug(f"Sprite buffer grown: {len(self._buffer)} -> {new_size} bytes")
        self._buffer = new_buffer

    def append(self, data: bytes) -> int:
        """
        Copy `data` at the cursor and advance it.

        Returns:
            Number of bytes written
        """
        length = len(data)
        if not length:
            return 0
        self.ensure_capacity(length)
        self._buffer[self._position:self._position + length] = data
        self._position += length
        return length

    def append_silence(self, duration: float) -> int:
        """
        Append `duration` seconds of zeroed samples.

        Args:
            duration: Seconds of silence, finite and not negative

        Returns:
            Number of bytes written

        Raises:
            ValueError: If duration is negative or not finite
        """
        if not math.isfinite(duration) or duration < 0:
            raise ValueError(f"Silence duration must be finite and not negative, got {duration}")

        # Not aligned to the sample frame: an odd gap in mono shifts later clips by one byte
        size = round_half_up(self.bytes_per_second * duration)
        if not size:
            return 0
        self.ensure_capacity(size)
        self._buffer[self._position:self._position + size] = bytes(size)
        self._position += size
        return size

    def snapshot(self) -> memoryview:
        """Read-only view of the written bytes, without copying."""
        return memoryview(self._buffer).toreadonly()[:self._position]

    def __len__(self) -> int:
        return self._position

    def __repr__(self) -> str:
        return (
            f"ByteAccumulator(position={self._position}, capacity={len(self._buffer)}, "
            f"seconds={self.position_in_seconds():.3f})"
        )
