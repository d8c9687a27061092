"""Input validators for the FTP server image harness.

Provides validation functions for scenario and settings values like
ports, passive port ranges, image references and hosts.
"""

import re
from typing import Optional, Tuple


# Docker repository: optional registry host, then lowercase path components
REPOSITORY_PATTERN = re.compile(
    r'^(?:[a-zA-Z0-9.-]+(?::[0-9]+)?/)?'
    r'[a-z0-9]+(?:[._-][a-z0-9]+)*(?:/[a-z0-9]+(?:[._-][a-z0-9]+)*)*$'
)

# Docker tag
TAG_PATTERN = re.compile(r'^[A-Za-z0-9_][A-Za-z0-9_.-]{0,127}$')

# Environment variable name
ENV_NAME_PATTERN = re.compile(r'^[A-Za-z_][A-Za-z0-9_]*$')

# Hostname pattern (simplified)
HOSTNAME_PATTERN = re.compile(
    r'^(?=.{1,253}$)(?!-)[A-Za-z0-9-]{1,63}(?<!-)(\.[A-Za-z0-9-]{1,63})*$'
)


def validate_port(port: int) -> Tuple[bool, Optional[str]]:
    """
    Validate a port number.

    Args:
        port: Port number to validate

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(port, int):
        try:
            port = int(port)
        except (ValueError, TypeError):
            return False, "Port must be a number"

    if port < 1 or port > 65535:
        return False, f"Port must be between 1 and 65535, got {port}"

    return True, None


def validate_port_range(min_port: int, max_port: int) -> Tuple[bool, Optional[str]]:
    """
    Validate an inclusive passive-mode port range.

    A range of (0, 0) means "no passive range" and is valid.

    Args:
        min_port: First port of the range
        max_port: Last port of the range

    Returns:
        Tuple of (is_valid, error_message)
    """
    if min_port == 0 and max_port == 0:
        return True, None

    if min_port == 0 or max_port == 0:
        return False, "Passive port range requires both a minimum and a maximum"

    for port in (min_port, max_port):
        is_valid, error = validate_port(port)
        if not is_valid:
            return False, error

    if min_port > max_port:
        return False, f"Passive port range is inverted: {min_port} > {max_port}"

    return True, None


def validate_image_reference(repository: str, tag: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a container image repository and tag.

    Args:
        repository: Image repository (e.g. "bfren/ftps")
        tag: Image tag (e.g. "latest")

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not repository or not repository.strip():
        return False, "Image repository is required"

    if not REPOSITORY_PATTERN.match(repository):
        return False, f"Invalid image repository: {repository}"

    if not tag or not TAG_PATTERN.match(tag):
        return False, f"Invalid image tag: {tag!r}"

    return True, None


def validate_env_name(name: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a container environment variable name.

    Args:
        name: Variable name

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not name or not ENV_NAME_PATTERN.match(name):
        return False, f"Invalid environment variable name: {name!r}"

    return True, None


def validate_host(host: str) -> Tuple[bool, Optional[str]]:
    """
    Validate a host used to reach published container ports.

    Args:
        host: Hostname or IPv4 address

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not host or not host.strip():
        return False, "Host is required"

    # IPv4 addresses also match the simplified hostname pattern
    if HOSTNAME_PATTERN.match(host.strip()):
        return True, None

    return False, f"Invalid host: {host}. Must be a valid IP address or hostname."


def validate_timeout(timeout: float, minimum: float = 1, maximum: float = 600) -> Tuple[bool, Optional[str]]:
    """
    Validate a timeout value in seconds.

    Args:
        timeout: Timeout in seconds
        minimum: Smallest accepted value
        maximum: Largest accepted value

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(timeout, (int, float)):
        try:
            timeout = float(timeout)
        except (ValueError, TypeError):
            return False, "Timeout must be a number"

    if timeout < minimum or timeout > maximum:
        return False, f"Timeout must be between {minimum} and {maximum} seconds, got {timeout}"

    return True, None
