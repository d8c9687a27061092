"""Container runtime exceptions for the FTP server image harness.

Infrastructure failures: the Docker daemon cannot be reached, or a
server container cannot be started or never becomes reachable.
"""


class ContainerError(Exception):
    """Base exception for all container-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class DockerUnavailableError(ContainerError):
    """The Docker daemon could not be reached."""

    def __init__(self, original_error: Exception = None):
        super().__init__("Could not connect to docker daemon", original_error)


class ContainerStartError(ContainerError):
    """The server container could not be created or started."""

    def __init__(self, image: str, original_error: Exception = None):
        self.image = image
        message = f"Could not start container from image '{image}'"
        super().__init__(message, original_error)


class ContainerNotReadyError(ContainerError):
    """The server container never accepted FTP connections."""

    def __init__(self, image: str, address: str, timeout: float, original_error: Exception = None):
        self.image = image
        self.address = address
        self.timeout = timeout
        message = f"Container '{image}' not reachable at {address} after {timeout} seconds"
        super().__init__(message, original_error)
