# audiosprite: build audio sprites by orchestrating an external ffmpeg engine
# Package: audiosprite

__version__ = "0.4.0"
__description__ = "Concatenate audio clips into one sprite with an offset manifest"

# Module structure:
#   - audiosprite.build     : Sprite buffer, timeline arithmetic, clip decoding
#   - audiosprite.render    : Engine subprocesses, format profiles, encoding
#   - audiosprite.manifest  : JSON manifests for playback libraries
#   - audiosprite.sprite    : AudioSprite session
#   - audiosprite.config    : Configuration management
#   - audiosprite.cli       : Command-line interface

from audiosprite.config import Config, ConfigError, SpriteOptions
from audiosprite.sprite import AudioSprite

__all__ = ["AudioSprite", "Config", "ConfigError", "SpriteOptions"]
