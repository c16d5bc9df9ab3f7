"""
Render Module: export the sprite buffer through the external engine.

- One engine invocation for stream outputs, two for file outputs
- Temporary WAV always removed after a file export
- Format profiles for aiff, caf, wav, ac3, mp3, mp4, m4a, ogg
"""

__all__ = ["engine", "formats", "encode"]
