"""FTP-specific exceptions for the FTP server image harness.

Custom exception hierarchy for client session failures. Everything
raised here aborts the running scenario.
"""


class FTPError(Exception):
    """Base exception for all FTP-related errors."""

    def __init__(self, message: str, original_error: Exception = None):
        super().__init__(message)
        self.message = message
        self.original_error = original_error

    def __str__(self) -> str:
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class FTPConnectionError(FTPError):
    """Failed to establish FTP connection."""

    def __init__(self, host: str, port: int, original_error: Exception = None):
        self.host = host
        self.port = port
        message = f"Failed to connect to {host}:{port}"
        super().__init__(message, original_error)


class FTPAuthenticationError(FTPError):
    """FTP authentication (login) failed."""

    def __init__(self, username: str, original_error: Exception = None):
        self.username = username
        message = f"Authentication failed for user '{username}'"
        super().__init__(message, original_error)


class FTPNotConnectedError(FTPError):
    """Operation attempted without active FTP connection."""

    def __init__(self, operation: str = "Operation"):
        message = f"{operation} requires an active FTP connection"
        super().__init__(message)


class FTPTimeoutError(FTPError):
    """FTP operation timed out."""

    def __init__(self, operation: str = "Operation", timeout: float = 30):
        self.timeout = timeout
        message = f"{operation} timed out after {timeout} seconds"
        super().__init__(message)


class FTPTransferError(FTPError):
    """Upload (STOR) or download (RETR) failed."""

    def __init__(self, remote_path: str, direction: str, original_error: Exception = None):
        self.remote_path = remote_path
        self.direction = direction
        message = f"Failed to {direction} '{remote_path}'"
        super().__init__(message, original_error)


class FTPPathError(FTPError):
    """FTP path operation failed (make directory, change directory, list, delete)."""

    def __init__(self, path: str, operation: str, original_error: Exception = None):
        self.path = path
        self.operation = operation
        message = f"Failed to {operation} path '{path}'"
        super().__init__(message, original_error)


class FTPCommandError(FTPError):
    """A protocol command was rejected by the server."""

    def __init__(self, command: str, path: str = "", original_error: Exception = None):
        self.command = command
        self.path = path
        target = f" for '{path}'" if path else ""
        message = f"{command} command failed{target}"
        super().__init__(message, original_error)


class FTPCommandNotSupportedError(FTPCommandError):
    """An optional command (SIZE, MDTM) is not supported by the server."""

    def __init__(self, command: str, path: str = "", original_error: Exception = None):
        super().__init__(command, path, original_error)
        self.message = f"{command} command is NOT supported"
