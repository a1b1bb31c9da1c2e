"""Settings loaded from hid-peq.toml

Example:

    [timing]
    write_delay = 0.03        # seconds between band writes
    read_delay = 0.05         # after version/gain read requests
    band_read_delay = 0.04    # between band read requests

    [device]
    read_timeout_ms = 100
    vendor_ids = [0x0661, 0x262A, 0x2FC6, 0x2972]

    [profile]
    device_label = "JM98MAX"
"""

import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import List, Optional, Union

try:
    import tomllib  # Python 3.11+
except ImportError:
    import tomli as tomllib  # Fallback for older Python

from .base import ConfigurationError
from .protocols import SUPPORTED_VENDOR_IDS

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "hid-peq.toml"

_SECTIONS = {
    "timing": ("write_delay", "read_delay", "band_read_delay"),
    "device": ("read_timeout_ms", "vendor_ids"),
    "profile": ("device_label",),
}


@dataclass
class Settings:
    write_delay: float = 0.03
    read_delay: float = 0.05
    band_read_delay: float = 0.04
    read_timeout_ms: int = 100
    vendor_ids: List[int] = field(default_factory=lambda: list(SUPPORTED_VENDOR_IDS))
    device_label: str = "JM98MAX"

    def __post_init__(self):
        for name in ("write_delay", "read_delay", "band_read_delay"):
            if getattr(self, name) < 0:
                raise ConfigurationError(f"{name} must not be negative")
        if self.read_timeout_ms <= 0:
            raise ConfigurationError("read_timeout_ms must be positive")

    @classmethod
    def no_delay(cls) -> "Settings":
        """Settings with all pauses disabled (for dry runs and tests)"""
        return cls(write_delay=0.0, read_delay=0.0, band_read_delay=0.0)


def load_settings(path: Optional[Union[str, Path]] = None) -> Settings:
    """Load settings from a TOML file

    Args:
        path: Explicit config path. When None, ./hid-peq.toml is used if present.

    Raises:
        ConfigurationError: If the file is unreadable, malformed, or has unknown keys
    """
    explicit = path is not None
    config_path = Path(path) if explicit else Path.cwd() / DEFAULT_CONFIG_FILE

    if not config_path.is_file():
        if explicit:
            raise ConfigurationError(f"Config file not found: {config_path}")
        return Settings()

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigurationError(f"Invalid config file {config_path}: {e}") from e

    values = {}
    for section, table in data.items():
        if section not in _SECTIONS or not isinstance(table, dict):
            raise ConfigurationError(f"Unknown config section [{section}]")
        for key, value in table.items():
            if key not in _SECTIONS[section]:
                raise ConfigurationError(f"Unknown config key {section}.{key}")
            values[key] = value

    known = {f.name for f in fields(Settings)}
    settings = Settings(**{k: v for k, v in values.items() if k in known})
    logger.debug("Loaded settings from %s: %s", config_path, settings)
    return settings
