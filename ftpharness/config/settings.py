"""Harness settings for the FTP server image harness.

Provides HarnessSettings dataclass, populated from FTPHARNESS_*
environment variables.
"""

import os
from dataclasses import asdict, dataclass, fields
from typing import Mapping, Optional

from ftpharness.utils.validators import validate_host, validate_timeout


ENV_PREFIX = "FTPHARNESS_"


@dataclass
class HarnessSettings:
    """Tunables shared by every scenario run."""

    # Docker daemon URL, empty to use the docker client's own environment
    docker_host: str = ""

    # Host used to reach published container ports, empty to ask testcontainers
    host: str = ""

    # Connect + login retry budget
    connect_max_time: float = 60.0
    connect_max_tries: int = 10

    # Readiness polling
    ready_timeout: float = 60.0
    poll_interval: float = 0.5

    log_level: str = "INFO"
    log_file: str = ""

    def __post_init__(self):
        """Validate settings after initialization."""
        if self.host:
            is_valid, error = validate_host(self.host)
            if not is_valid:
                raise ValueError(error)
        is_valid, error = validate_timeout(self.connect_max_time)
        if not is_valid:
            raise ValueError(f"connect_max_time: {error}")
        is_valid, error = validate_timeout(self.ready_timeout)
        if not is_valid:
            raise ValueError(f"ready_timeout: {error}")
        if self.connect_max_tries < 1:
            raise ValueError(f"connect_max_tries must be at least 1, got {self.connect_max_tries}")
        if not 0 < self.poll_interval <= 10:
            raise ValueError(f"poll_interval must be between 0 and 10 seconds, got {self.poll_interval}")

    def to_dict(self) -> dict:
        """Convert settings to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "HarnessSettings":
        """Create settings from dictionary, ignoring unknown keys."""
        valid_fields = {f.name for f in fields(cls)}
        filtered = {k: v for k, v in data.items() if k in valid_fields}
        return cls(**filtered)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "HarnessSettings":
        """
        Create settings from FTPHARNESS_* environment variables.

        FTPHARNESS_CONNECT_MAX_TIME=30 sets connect_max_time, and so on.
        Values are converted to the type of the field's default.

        Args:
            environ: Mapping to read from, defaults to os.environ

        Returns:
            HarnessSettings instance

        Raises:
            ValueError: If a value cannot be converted or fails validation
        """
        environ = os.environ if environ is None else environ
        data = {}
        for f in fields(cls):
            raw = environ.get(ENV_PREFIX + f.name.upper())
            if raw is None:
                continue
            field_type = type(f.default)
            try:
                data[f.name] = field_type(raw)
            except ValueError:
                raise ValueError(f"{ENV_PREFIX}{f.name.upper()} must be {field_type.__name__}, got {raw!r}")
        return cls.from_dict(data)
