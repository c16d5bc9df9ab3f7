"""
Sprite timeline: clip offsets, output resources and autoplay bookkeeping.

The record_* functions are pure: they take the cursor times read from the
sprite buffer and return the clip entry plus the silence (in seconds) that
must be appended after it.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ClipEntry:
    """Offsets of one clip within the sprite, in seconds."""

    start: float
    end: float
    loop: bool = False

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> Dict[str, object]:
        return {"start": self.start, "end": self.end, "loop": self.loop}


def record_clip(
    start: float,
    current_time: float,
    *,
    loop: bool,
    min_track_length: float,
    track_gap: float,
) -> Tuple[ClipEntry, float]:
    """
    Finalize a decoded clip.

    The clip is padded up to min_track_length. The trailing silence then
    rounds the cursor up to the next whole second before adding the track
    gap, so clips following a gap start on second boundaries.

    Args:
        start: Cursor time before the clip's bytes were written
        current_time: Cursor time after the clip's bytes were written
        loop: Loop flag for the entry
        min_track_length: Minimum clip duration in seconds
        track_gap: Gap inserted after the clip in seconds

    Returns:
        Tuple of (entry, seconds of silence to append)
    """
    measured = current_time - start
    extra = max(0.0, min_track_length - measured)
    entry = ClipEntry(start=start, end=start + measured + extra, loop=loop)
    silence = extra + math.ceil(current_time) - current_time + track_gap
    return entry, silence


def record_silence(now: float, duration: float, *, track_gap: float) -> Tuple[ClipEntry, float]:
    """Entry for an explicit silent clip; always looping, never padded."""
    if not math.isfinite(duration) or duration < 0:
        raise ValueError(f"Silence duration must be finite and not negative, got {duration}")
    entry = ClipEntry(start=now, end=now + duration, loop=True)
    return entry, duration + track_gap


@dataclass
class Timeline:
    """Ordered spritemap plus the resources encoded from it."""

    spritemap: Dict[str, ClipEntry] = field(default_factory=dict)
    resources: List[str] = field(default_factory=list)
    autoplay: Optional[str] = None

    def set_clip(self, name: str, entry: ClipEntry) -> None:
        # Same name replaces the previous entry
        self.spritemap[name] = entry

    def note_autoplay(self, name: str, autoplay: bool) -> None:
        """Every clip added without the autoplay flag becomes the autoplay clip."""
        if not autoplay:
            self.autoplay = name

    def add_resource(self, name: str) -> None:
        self.resources.append(name)

    def __contains__(self, name: str) -> bool:
        return name in self.spritemap

    def __getitem__(self, name: str) -> ClipEntry:
        return self.spritemap[name]

    def __len__(self) -> int:
        return len(self.spritemap)
