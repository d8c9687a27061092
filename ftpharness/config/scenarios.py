"""Server scenarios for the FTP server image harness.

Provides the TLSMode enum, the ServerScenario dataclass describing one
FTP server image under test, and the built-in scenario table.
"""

import ssl
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from ftpharness.utils.validators import (
    validate_env_name,
    validate_image_reference,
    validate_port,
    validate_port_range,
    validate_timeout,
)


class TLSMode(Enum):
    """How the client secures the control channel."""
    NONE = "none"
    EXPLICIT = "explicit"
    IMPLICIT = "implicit"


@dataclass(frozen=True)
class ServerScenario:
    """Immutable description of one FTP server image under test."""
    name: str
    repository: str
    tag: str = "latest"
    tls_mode: TLSMode = TLSMode.NONE
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    username: str = "anonymous"
    password: str = ""
    pasv_min_port: int = 0
    pasv_max_port: int = 0
    control_port: int = 21

    # Client dial options
    timeout: float = 5
    disable_epsv: bool = True

    # TLS trust configuration, verification is off for self-signed test servers
    tls_verify: bool = False
    tls_min_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1
    tls_max_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_3

    # Host directory -> container directory
    volumes: Tuple[Tuple[str, str], ...] = ()

    # Optional container log line signalling readiness
    ready_log: Optional[str] = None

    def __post_init__(self):
        """Validate scenario after initialization."""
        if not self.name:
            raise ValueError("Scenario name is required")

        is_valid, error = validate_image_reference(self.repository, self.tag)
        if not is_valid:
            raise ValueError(error)

        is_valid, error = validate_port(self.control_port)
        if not is_valid:
            raise ValueError(error)

        is_valid, error = validate_port_range(self.pasv_min_port, self.pasv_max_port)
        if not is_valid:
            raise ValueError(error)

        is_valid, error = validate_timeout(self.timeout, minimum=1, maximum=300)
        if not is_valid:
            raise ValueError(error)

        for key in self.env:
            is_valid, error = validate_env_name(key)
            if not is_valid:
                raise ValueError(error)

        # Read-only copy, scenarios in the built-in table are shared
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

        if self.tls_min_version > self.tls_max_version:
            raise ValueError("TLS minimum version is greater than maximum version")

    @property
    def image(self) -> str:
        """Full image reference (repository:tag)."""
        return f"{self.repository}:{self.tag}"

    @property
    def use_tls(self) -> bool:
        """True if the control channel is secured with TLS."""
        return self.tls_mode != TLSMode.NONE

    @property
    def passive_ports(self) -> range:
        """Inclusive passive-mode port range, empty if none is configured."""
        if not self.pasv_min_port:
            return range(0)
        return range(self.pasv_min_port, self.pasv_max_port + 1)

    @property
    def env_list(self) -> List[str]:
        """Environment as KEY=VALUE strings."""
        return [f"{key}={value}" for key, value in self.env.items()]


# Built-in scenario table
SCENARIOS: List[ServerScenario] = [
    ServerScenario(
        name="FTPS (with TLS)",
        repository="bfren/ftps",
        tag="latest",
        tls_mode=TLSMode.EXPLICIT,
        env={
            "BF_FTPS_EXTERNAL_IP": "127.0.0.1",
            "BF_FTPS_VSFTPD_USER": "ftps",
            "BF_FTPS_VSFTPD_PASS": "pass",
            "BF_FTPS_VSFTPD_UID": "1000",
            "BF_FTPS_VSFTPD_MIN_PORT": "60000",
            "BF_FTPS_VSFTPD_MAX_PORT": "60010",
        },
        username="ftps",
        password="pass",
        pasv_min_port=60000,
        pasv_max_port=60010,
    ),
    ServerScenario(
        name="FTP (plain)",
        repository="garethflowers/ftp-server",
        tag="latest",
        tls_mode=TLSMode.NONE,
        env={
            "FTP_USER": "ftps",
            "FTP_PASS": "pass",
            "UID": "1000",
            "GID": "1000",
            "PUBLIC_IP": "127.0.0.1",
        },
        username="ftps",
        password="pass",
        pasv_min_port=40000,
        pasv_max_port=40009,
    ),
]


def get_scenario(name: str) -> ServerScenario:
    """
    Look up a built-in scenario by name.

    Args:
        name: Scenario name (case-sensitive)

    Returns:
        Matching ServerScenario

    Raises:
        KeyError: If no scenario has that name
    """
    for scenario in SCENARIOS:
        if scenario.name == name:
            return scenario
    raise KeyError(f"Unknown scenario: {name!r}")


def scenario_names() -> List[str]:
    """Names of all built-in scenarios, in table order."""
    return [scenario.name for scenario in SCENARIOS]
