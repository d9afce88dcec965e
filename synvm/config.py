"""
synvm — Run Configuration

Settings for one machine run. Values come from (lowest to highest
priority) the dataclass defaults, an optional JSON file, and command-line
flags:

    {
        "image": "challenge.bin",
        "max_steps": null,
        "trace": false,
        "encoding": "latin-1",
        "serial_port": null,
        "baudrate": 9600
    }
"""

import codecs
import json
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Optional

from .errors import ConfigError

DEFAULT_ENCODING = 'latin-1'
DEFAULT_BAUDRATE = 9600


@dataclass(frozen=True)
class RunConfig:
    image: Optional[str] = None
    max_steps: Optional[int] = None       # None = run until halt
    trace: bool = False
    encoding: str = DEFAULT_ENCODING      # terminal text <-> input bytes
    serial_port: Optional[str] = None     # None = stdin/stdout
    baudrate: int = DEFAULT_BAUDRATE

    def __post_init__(self):
        if self.max_steps is not None and self.max_steps < 0:
            raise ConfigError(f"max_steps must be >= 0, got {self.max_steps}")
        if self.baudrate <= 0:
            raise ConfigError(f"baudrate must be positive, got {self.baudrate}")
        try:
            codecs.lookup(self.encoding)
        except LookupError as e:
            raise ConfigError(f"unknown encoding {self.encoding!r}") from e

    @classmethod
    def from_dict(cls, data: dict) -> 'RunConfig':
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**data)
        except TypeError as e:
            raise ConfigError(str(e)) from e

    @classmethod
    def from_file(cls, path) -> 'RunConfig':
        path = Path(path)
        try:
            with open(path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"cannot read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"config {path} must contain a JSON object")
        return cls.from_dict(data)

    def merged(self, **overrides) -> 'RunConfig':
        """Copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})
