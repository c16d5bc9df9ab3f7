"""
Sprite manifests for audio playback libraries.

build_manifest() projects a Timeline into the JSON shape a consumer expects;
it never returns references into the timeline itself.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from audiosprite.build.timeline import Timeline

logger = logging.getLogger(__name__)

MANIFEST_FORMATS = ("jukebox", "howler", "howler2", "createjs")


def _howler_sprite(timeline: Timeline) -> Dict[str, List[Any]]:
    """Offsets and durations in milliseconds, with a trailing true for loops."""
    sprite = {}
    for name, entry in timeline.spritemap.items():
        item: List[Any] = [entry.start * 1000, entry.duration * 1000]
        if entry.loop:
            item.append(True)
        sprite[name] = item
    return sprite


def _jukebox(timeline: Timeline) -> Dict[str, Any]:
    manifest: Dict[str, Any] = {
        "resources": list(timeline.resources),
        "spritemap": {name: entry.to_dict() for name, entry in timeline.spritemap.items()},
    }
    if timeline.autoplay is not None:
        manifest["autoplay"] = timeline.autoplay
    return manifest


def build_manifest(timeline: Timeline, format: Optional[str] = None) -> Dict[str, Any]:
    """
    Build the manifest for a consumer library.

    Args:
        timeline: Sprite timeline
        format: jukebox (default), howler, howler2 or createjs

    Returns:
        JSON-serializable manifest
    """
    if format == "howler":
        return {"urls": list(timeline.resources), "sprite": _howler_sprite(timeline)}

    if format == "howler2":
        return {"src": list(timeline.resources), "sprite": _howler_sprite(timeline)}

    if format == "createjs":
        manifest: Dict[str, Any] = {}
        if timeline.resources:
            manifest["src"] = timeline.resources[0]
        manifest["data"] = {
            "audioSprite": [
                {
                    "id": name,
                    "startTime": entry.start * 1000,
                    "duration": entry.duration * 1000,
                }
                for name, entry in timeline.spritemap.items()
            ]
        }
        return manifest

    if format not in (None, "jukebox"):
        logger.warning(f"Unknown manifest format: {format}, defaulting to jukebox")
    return _jukebox(timeline)


def write_manifest(manifest: Dict[str, Any], file: str) -> None:
    """Write a manifest as tab-indented UTF-8 JSON."""
    path = Path(file)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, indent="\t", ensure_ascii=False), encoding="utf-8")
    logger.info(f"✅ Manifest written: {file}")
