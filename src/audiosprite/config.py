"""
Configuration management for audiosprite.

Loads and validates TOML config against strict bounds. Session options are
built once from the validated config and stay immutable for the life of an
AudioSprite session.
"""

import copy
import math
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
import toml
import logging

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when config validation fails."""
    pass


# Parameters that must be whole numbers (sizes, rates, levels)
INTEGER_PARAMS = {
    "sample_rate",
    "channel_count",
    "bit_rate",
    "vbr",
    "initial_size",
    "increment_size",
}


def _check_param(name: str, value: Any, bounds: Tuple[float, float]) -> None:
    """
    Check one numeric parameter against its bounds.

    Raises:
        ConfigError: If the value is not a finite number, not an integer where
            one is required, or outside [min, max].
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"Parameter {name}={value!r} is not a number")
    if not math.isfinite(value):
        raise ConfigError(f"Parameter {name}={value!r} is not finite")
    if name.rsplit(".", 1)[-1] in INTEGER_PARAMS and int(value) != value:
        raise ConfigError(f"Parameter {name}={value!r} must be an integer")

    min_val, max_val = bounds
    if not (min_val <= value <= max_val):
        raise ConfigError(
            f"Parameter {name}={value} out of bounds [{min_val}, {max_val}]"
        )


class Config:
    """Configuration loader and validator."""

    PARAM_BOUNDS = {
        "engine": {
            "path": None,  # String type
            "timeout_seconds": (0, 86400),  # 0 disables the timeout
        },
        "sprite": {
            "sample_rate": (8000, 192000),
            "channel_count": (1, 2),
            "bit_rate": (8, 512),
            "vbr": (-1, 9),
            "track_gap": (0.0, 60.0),
            "min_track_length": (0.0, 3600.0),
        },
        "buffer": {
            "initial_size": (0, 1 << 31),
            "increment_size": (1, 1 << 31),
        },
    }

    DEFAULT_CONFIG = {
        "config_version": "1.0",
        "engine": {
            "path": "ffmpeg",
            "timeout_seconds": 0,
        },
        "sprite": {
            "sample_rate": 44100,
            "channel_count": 1,
            "bit_rate": 128,
            "vbr": -1,
            "track_gap": 1.0,
            "min_track_length": 0.0,
        },
        "buffer": {
            "initial_size": 300 * 1024,
            "increment_size": 100 * 1024,
        },
    }

    def __init__(self, config_dict: Dict[str, Any]):
        """Initialize config from dictionary."""
        self.data = config_dict
        self._validate()

    @classmethod
    def defaults(cls) -> "Config":
        """Config built from DEFAULT_CONFIG only."""
        return cls(copy.deepcopy(cls.DEFAULT_CONFIG))

    @classmethod
    def load(cls, config_path: Optional[str] = None) -> "Config":
        """
        Load config from TOML file.

        Args:
            config_path: Path to audiosprite.toml. If None, uses the
                        AUDIOSPRITE_CONFIG_PATH env var or defaults to
                        configs/audiosprite.toml.

        Returns:
            Config instance.

        Raises:
            ConfigError: If config is invalid or unreadable.
        """
        if config_path is None:
            config_path = os.getenv("AUDIOSPRITE_CONFIG_PATH", "configs/audiosprite.toml")

        config_path = Path(config_path)

        if not config_path.exists():
            logger.warning(f"Config file not found: {config_path}. Using defaults.")
            return cls.defaults()

        try:
            config_dict = toml.load(config_path)
        except (OSError, toml.TomlDecodeError) as e:
            raise ConfigError(f"Failed to load config from {config_path}: {e}")

        logger.info(f"Loaded config from {config_path}")
        return cls(config_dict)

    def _validate(self) -> None:
        """
        Validate all config parameters against PARAM_BOUNDS.

        Missing sections and parameters are filled from DEFAULT_CONFIG.

        Raises:
            ConfigError: If any parameter is out of bounds or mistyped.
        """
        for section, params in self.PARAM_BOUNDS.items():
            if section not in self.data:
                logger.warning(f"Missing config section: {section}. Using defaults.")
                self.data[section] = copy.deepcopy(self.DEFAULT_CONFIG[section])
                continue

            section_data = self.data[section]
            if not isinstance(section_data, dict):
                raise ConfigError(f"Config section {section} must be a table")

            for param, bounds in params.items():
                if param not in section_data:
                    default_val = self.DEFAULT_CONFIG[section][param]
                    logger.warning(f"Missing param {section}.{param}. Using default: {default_val}")
                    section_data[param] = default_val
                    continue

                value = section_data[param]

                # String parameters only need a non-empty value
                if bounds is None:
                    if not isinstance(value, str) or not value.strip():
                        raise ConfigError(f"Parameter {section}.{param} must be a non-empty string")
                    continue

                _check_param(f"{section}.{param}", value, bounds)

        logger.debug("✅ Config validation passed")

    def get(self, section: str, param: str, default: Any = None) -> Any:
        """Get a config parameter safely."""
        return self.data.get(section, {}).get(param, default)

    def __getitem__(self, section: str) -> Dict[str, Any]:
        """Allow dict-like access: config["sprite"]"""
        return self.data.get(section, {})

    def __repr__(self) -> str:
        version = self.data.get('config_version', 'unknown')
        return f"Config(version={version})"

    def to_options(self, **overrides: Any) -> "SpriteOptions":
        """
        Build immutable session options from this config.

        Args:
            **overrides: SpriteOptions field values that take precedence over
                the config file (None values are ignored).

        Returns:
            Validated SpriteOptions.
        """
        timeout = self.get("engine", "timeout_seconds")
        values = {
            "engine_path": self.get("engine", "path"),
            "timeout_seconds": timeout or None,
            "sample_rate": self.get("sprite", "sample_rate"),
            "channel_count": self.get("sprite", "channel_count"),
            "bit_rate": self.get("sprite", "bit_rate"),
            "vbr": self.get("sprite", "vbr"),
            "track_gap": self.get("sprite", "track_gap"),
            "min_track_length": self.get("sprite", "min_track_length"),
            "buffer_initial_size": self.get("buffer", "initial_size"),
            "buffer_increment_size": self.get("buffer", "increment_size"),
        }
        known = {f.name for f in fields(SpriteOptions)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigError(f"Unknown option: {key}")
            if value is not None:
                values[key] = value
        return SpriteOptions(**values)


# SpriteOptions field -> (config section, param) used for bounds checks
_OPTION_PARAMS = {
    "sample_rate": ("sprite", "sample_rate"),
    "channel_count": ("sprite", "channel_count"),
    "bit_rate": ("sprite", "bit_rate"),
    "vbr": ("sprite", "vbr"),
    "track_gap": ("sprite", "track_gap"),
    "min_track_length": ("sprite", "min_track_length"),
    "buffer_initial_size": ("buffer", "initial_size"),
    "buffer_increment_size": ("buffer", "increment_size"),
}


@dataclass(frozen=True)
class SpriteOptions:
    """Immutable per-session settings for building a sprite."""

    engine_path: str = "ffmpeg"
    sample_rate: int = 44100
    channel_count: int = 1
    bit_rate: int = 128
    vbr: int = -1
    track_gap: float = 1.0
    min_track_length: float = 0.0
    buffer_initial_size: int = 300 * 1024
    buffer_increment_size: int = 100 * 1024
    timeout_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if not isinstance(self.engine_path, str) or not self.engine_path.strip():
            raise ConfigError("engine_path must be a non-empty string")

        for field_name, (section, param) in _OPTION_PARAMS.items():
            bounds = Config.PARAM_BOUNDS[section][param]
            _check_param(f"{section}.{param}", getattr(self, field_name), bounds)

        if self.timeout_seconds is not None:
            _check_param("engine.timeout_seconds", self.timeout_seconds, (0, 86400))
            if self.timeout_seconds == 0:
                raise ConfigError("timeout_seconds must be positive (use None to disable)")

    @property
    def vbr_enabled(self) -> bool:
        return 0 <= self.vbr <= 9
