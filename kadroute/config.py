"""
Configuration Management

Handles loading routing-table settings from environment variables and
config files.
"""

import os
import json
from pathlib import Path
from dataclasses import dataclass, asdict
from typing import Optional

from dotenv import load_dotenv

from .bucket import K, BUCKET_REFRESH_INTERVAL, STALE_TIMEOUT
from .metric import METRICS, DistanceMetric, get_metric
from .utils import ID_BITS, id_bytes_for

ENV_PREFIX = 'KADROUTE_'
LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _env_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class Config:
    """
    Routing table configuration.

    Configuration priority (highest to lowest):
    1. Environment variables (KADROUTE_*)
    2. Config file (JSON)
    3. Default values
    """
    # Identifier space
    id_bits: int = ID_BITS
    metric: str = 'prefix'

    # Buckets
    bucket_size: int = K
    expand_to_bucket_zero: bool = True

    # Maintenance (seconds)
    refresh_interval: float = BUCKET_REFRESH_INTERVAL
    stale_timeout: float = STALE_TIMEOUT

    # Logging
    log_level: str = 'INFO'

    def validate(self) -> 'Config':
        """Raise ValueError on settings the table cannot work with."""
        id_bytes_for(self.id_bits)
        if self.metric not in METRICS:
            raise ValueError(f"Unknown metric {self.metric!r}, expected one of {sorted(METRICS)}")
        if self.bucket_size < 1:
            raise ValueError(f"bucket_size must be at least 1, got {self.bucket_size}")
        if self.refresh_interval < 0 or self.stale_timeout < 0:
            raise ValueError("refresh_interval and stale_timeout must not be negative")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level {self.log_level!r}")
        return self

    def make_metric(self) -> DistanceMetric:
        return get_metric(self.metric, self.id_bits)

    @classmethod
    def from_env(cls, base: Optional['Config'] = None) -> 'Config':
        """Load configuration from environment variables (and a .env file)."""
        load_dotenv()

        config = base or cls()

        config.id_bits = int(os.getenv(ENV_PREFIX + 'ID_BITS', config.id_bits))
        config.metric = os.getenv(ENV_PREFIX + 'METRIC', config.metric)
        config.bucket_size = int(os.getenv(ENV_PREFIX + 'BUCKET_SIZE', config.bucket_size))

        expand = os.getenv(ENV_PREFIX + 'EXPAND_TO_BUCKET_ZERO')
        if expand is not None:
            config.expand_to_bucket_zero = _env_bool(expand)

        config.refresh_interval = float(
            os.getenv(ENV_PREFIX + 'REFRESH_INTERVAL', config.refresh_interval)
        )
        config.stale_timeout = float(os.getenv(ENV_PREFIX + 'STALE_TIMEOUT', config.stale_timeout))

        config.log_level = os.getenv(ENV_PREFIX + 'LOG_LEVEL', config.log_level)

        return config.validate()

    @classmethod
    def from_file(cls, path: Path) -> 'Config':
        """Load configuration from a JSON file."""
        if not path.exists():
            return cls()

        with open(path) as f:
            data = json.load(f)

        config = cls()
        for key in asdict(config):
            if key in data:
                setattr(config, key, data[key])

        return config.validate()

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return asdict(self)

    def save(self, path: Path):
        """Save configuration to a JSON file."""
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def load_config(config_path: Optional[Path] = None) -> Config:
    """
    Load configuration from file and environment.

    Environment variables override file settings.
    """
    config = Config()

    if config_path and config_path.exists():
        config = Config.from_file(config_path)

    return Config.from_env(base=config)
