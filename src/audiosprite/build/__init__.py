"""
Build Module: accumulate decoded clips into one raw PCM sprite buffer.

- Sprite buffer grows in fixed increments, never shrinks
- Clip offsets derive from bytes written, never from wall-clock time
- One engine process per input clip
"""

__all__ = ["accumulator", "timeline", "decode"]
