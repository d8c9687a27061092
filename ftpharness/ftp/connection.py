"""FTP connection management for the FTP server image harness.

Provides ConnectionState enum, FTPConnectionConfig dataclass, the
ftplib client classes used for plain, explicit TLS and implicit TLS
sessions, and FTPConnectionManager which drives a single session.
"""

import io
import logging
import socket
import ssl
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from ftplib import (
    FTP,
    FTP_TLS,
    all_errors,
    error_perm,
    error_proto,
    error_reply,
    error_temp,
    parse227,
)
from typing import List, Optional, Set

import backoff

from ftpharness.config.scenarios import ServerScenario, TLSMode
from ftpharness.ftp.exceptions import (
    FTPAuthenticationError,
    FTPCommandError,
    FTPCommandNotSupportedError,
    FTPConnectionError,
    FTPNotConnectedError,
    FTPPathError,
    FTPTimeoutError,
    FTPTransferError,
)
from ftpharness.ftp.listing import ListEntry, entry_from_facts, parse_list_output

logger = logging.getLogger("ftpharness.connection")

# Errors worth another connect + login attempt while a container boots
RETRYABLE_ERRORS = (FTPConnectionError, FTPAuthenticationError, FTPTimeoutError)


class ConnectionState(Enum):
    """FTP connection state."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


def build_ssl_context(
    verify: bool = False,
    min_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1,
    max_version: ssl.TLSVersion = ssl.TLSVersion.TLSv1_3,
) -> ssl.SSLContext:
    """
    Create a client SSL context for FTPS sessions.

    Args:
        verify: Validate the server certificate and hostname
        min_version: Lowest TLS version to offer
        max_version: Highest TLS version to offer

    Returns:
        Configured SSLContext
    """
    ctx = ssl.create_default_context(ssl.Purpose.SERVER_AUTH)
    if not verify:
        # Must disable check_hostname before setting verify_mode to CERT_NONE
        ctx.check_hostname = False
        ctx.verify_mode = ssl.CERT_NONE
    ctx.minimum_version = min_version
    ctx.maximum_version = max_version
    return ctx


class PassiveOnlyMixin:
    """Negotiate data connections with PASV even on IPv6 control connections."""

    disable_epsv = False

    def makepasv(self):
        if not self.disable_epsv or self.af == socket.AF_INET:
            return super().makepasv()
        # The PASV host is not trusted, the control connection peer is used instead
        _, port = parse227(self.sendcmd("PASV"))
        return self.sock.getpeername()[0], port


class HarnessFTP(PassiveOnlyMixin, FTP):
    """Plain FTP client."""


class HarnessFTP_TLS(PassiveOnlyMixin, FTP_TLS):
    """Explicit FTPS client (AUTH TLS on the control port)."""

    def ntransfercmd(self, cmd, rest=None):
        conn, size = FTP.ntransfercmd(self, cmd, rest)
        if self._prot_p:
            # vsftpd requires the data channel to reuse the control channel session
            conn = self.context.wrap_socket(
                conn,
                server_hostname=self.host,
                session=self.sock.session,
            )
        return conn, size


class ImplicitFTP_TLS(HarnessFTP_TLS):
    """Implicit FTPS client (TLS from the first byte)."""

    def __init__(self, *args, **kwargs):
        self._sock = None
        super().__init__(*args, **kwargs)

    @property
    def sock(self):
        return self._sock

    @sock.setter
    def sock(self, value):
        if value is not None and not isinstance(value, ssl.SSLSocket):
            value = self.context.wrap_socket(value, server_hostname=self.host)
        self._sock = value


@dataclass
class FTPConnectionConfig:
    """FTP connection configuration."""
    host: str
    port: int = 21
    username: str = "anonymous"
    passive_mode: bool = True
    timeout: float = 30
    tls_mode: TLSMode = TLSMode.NONE
    disable_epsv: bool = True
    ssl_context: Optional[ssl.SSLContext] = None

    def __post_init__(self):
        """Validate configuration after initialization."""
        if not self.host:
            raise ValueError("Host is required")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"Port must be between 1 and 65535, got {self.port}")
        if not 1 <= self.timeout <= 300:
            raise ValueError(f"Timeout must be between 1 and 300, got {self.timeout}")
        if self.tls_mode != TLSMode.NONE and self.ssl_context is None:
            self.ssl_context = build_ssl_context()

    @classmethod
    def from_scenario(cls, scenario: ServerScenario, host: str, port: int) -> "FTPConnectionConfig":
        """
        Build the client configuration for a provisioned scenario.

        Args:
            scenario: Scenario providing credentials and dial options
            host: Host the control port is published on
            port: Published control port

        Returns:
            FTPConnectionConfig instance
        """
        ssl_context = None
        if scenario.use_tls:
            ssl_context = build_ssl_context(
                verify=scenario.tls_verify,
                min_version=scenario.tls_min_version,
                max_version=scenario.tls_max_version,
            )
        return cls(
            host=host,
            port=port,
            username=scenario.username,
            timeout=scenario.timeout,
            tls_mode=scenario.tls_mode,
            disable_epsv=scenario.disable_epsv,
            ssl_context=ssl_context,
        )


def _log_backoff(details: dict) -> None:
    logger.warning(
        f"Connection attempt {details['tries']} failed ({details.get('exception')}), "
        f"retrying in {details['wait']:.1f} seconds"
    )


def _log_giveup(details: dict) -> None:
    logger.error(
        f"Giving up connecting after {details['tries']} attempts "
        f"in {details['elapsed']:.1f} seconds"
    )


class FTPConnectionManager:
    """Manages FTP connection lifecycle."""

    def __init__(self):
        """Initialize the connection manager."""
        self._ftp: Optional[FTP] = None
        self._config: Optional[FTPConnectionConfig] = None
        self._state = ConnectionState.DISCONNECTED
        self._connected_at: Optional[datetime] = None
        self._features: Optional[Set[str]] = None

    @property
    def state(self) -> ConnectionState:
        """Current connection state."""
        return self._state

    @property
    def is_connected(self) -> bool:
        """True if currently connected."""
        return self._state == ConnectionState.CONNECTED

    @property
    def config(self) -> Optional[FTPConnectionConfig]:
        """Current connection configuration."""
        return self._config

    @property
    def connected_at(self) -> Optional[datetime]:
        """Timestamp when connection was established."""
        return self._connected_at

    @property
    def ftp(self) -> FTP:
        """
        Get the underlying FTP object.

        Raises:
            FTPNotConnectedError: If not connected
        """
        if not self.is_connected or self._ftp is None:
            raise FTPNotConnectedError("FTP access")
        return self._ftp

    def _create_client(self, config: FTPConnectionConfig) -> FTP:
        """Instantiate the ftplib client matching the TLS mode."""
        if config.tls_mode == TLSMode.EXPLICIT:
            client = HarnessFTP_TLS(context=config.ssl_context)
        elif config.tls_mode == TLSMode.IMPLICIT:
            client = ImplicitFTP_TLS(context=config.ssl_context)
        else:
            client = HarnessFTP()
        client.disable_epsv = config.disable_epsv
        client.set_debuglevel(0)
        return client

    def connect(self, config: FTPConnectionConfig, password: str = "") -> None:
        """
        Establish FTP connection and log in.

        Args:
            config: Connection configuration
            password: FTP password

        Raises:
            FTPConnectionError: If connection fails
            FTPAuthenticationError: If login fails
            FTPTimeoutError: If connection times out
        """
        self._config = config
        self._state = ConnectionState.CONNECTING
        self._features = None

        try:
            self._ftp = self._create_client(config)

            # Connect to server
            try:
                self._ftp.connect(
                    host=config.host,
                    port=config.port,
                    timeout=config.timeout
                )
            except socket.timeout:
                raise FTPTimeoutError("Connection", config.timeout)
            except (OSError, EOFError, error_temp, error_reply, error_proto) as e:
                raise FTPConnectionError(config.host, config.port, e)

            # Login, explicit TLS negotiates AUTH TLS first
            try:
                self._ftp.login(user=config.username, passwd=password)
            except error_perm as e:
                raise FTPAuthenticationError(config.username, e)
            except socket.timeout:
                raise FTPTimeoutError("Login", config.timeout)
            except (OSError, EOFError, error_temp, error_reply, error_proto) as e:
                raise FTPConnectionError(config.host, config.port, e)

            try:
                if config.tls_mode != TLSMode.NONE:
                    self._ftp.prot_p()
                self._ftp.voidcmd("TYPE I")
            except all_errors as e:
                raise FTPConnectionError(config.host, config.port, e)

            self._ftp.set_pasv(config.passive_mode)

            self._state = ConnectionState.CONNECTED
            self._connected_at = datetime.now()
            logger.debug(f"Connected to {config.host}:{config.port} as {config.username}")

        except (FTPConnectionError, FTPAuthenticationError, FTPTimeoutError):
            self._state = ConnectionState.ERROR
            self._close_client()
            raise
        except Exception as e:
            self._state = ConnectionState.ERROR
            self._close_client()
            raise FTPConnectionError(config.host, config.port, e)

    def connect_with_retry(
        self,
        config: FTPConnectionConfig,
        password: str = "",
        max_time: float = 60,
        max_tries: int = 10,
        interval: float = 0.5,
    ) -> None:
        """
        Connect and log in, retrying with exponential backoff.

        A freshly started container may refuse connections, drop them or
        reject the login until its entrypoint has finished.

        Args:
            config: Connection configuration
            password: FTP password
            max_time: Total retry budget in seconds
            max_tries: Maximum number of attempts
            interval: Wait before the second attempt, doubled after each failure

        Raises:
            FTPConnectionError, FTPAuthenticationError, FTPTimeoutError:
                The last error once the retry budget is exhausted
        """
        retrying_connect = backoff.on_exception(
            backoff.expo,
            RETRYABLE_ERRORS,
            max_tries=max_tries,
            max_time=max_time,
            jitter=None,
            on_backoff=_log_backoff,
            on_giveup=_log_giveup,
            logger=None,
            factor=interval,
            max_value=5,
        )(self.connect)
        retrying_connect(config, password)

    def _close_client(self) -> None:
        """Drop the socket without a QUIT exchange."""
        if self._ftp:
            self._ftp.close()
        self._ftp = None

    def disconnect(self) -> None:
        """Close FTP connection gracefully."""
        if self._ftp:
            try:
                self._ftp.quit()
            except all_errors as e:
                logger.debug(f"QUIT failed, closing socket: {e}")
                self._ftp.close()

        self._ftp = None
        self._state = ConnectionState.DISCONNECTED
        self._connected_at = None
        self._features = None

    def __enter__(self) -> "FTPConnectionManager":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.disconnect()

    def features(self) -> Set[str]:
        """
        Keywords advertised by FEAT, cached per connection.

        Returns:
            Upper-case feature keywords (empty if FEAT is not supported)
        """
        if self._features is None:
            try:
                response = self.ftp.sendcmd("FEAT")
            except (error_perm, error_reply):
                self._features = set()
            else:
                self._features = {
                    line.strip().split(" ")[0].upper()
                    for line in response.splitlines()[1:-1]
                    if line.strip()
                }
        return self._features

    def make_directory(self, path: str) -> None:
        """
        Create a directory (MKD).

        Raises:
            FTPPathError: If the server rejects the directory
        """
        try:
            self.ftp.mkd(path)
        except all_errors as e:
            raise FTPPathError(path, "create", e)

    def change_directory(self, path: str) -> None:
        """
        Change current working directory (CWD).

        Raises:
            FTPPathError: If the directory cannot be entered
        """
        try:
            self.ftp.cwd(path)
        except all_errors as e:
            raise FTPPathError(path, "change to", e)

    def get_current_directory(self) -> str:
        """
        Get current working directory (PWD).

        Returns:
            Current directory path
        """
        try:
            return self.ftp.pwd()
        except all_errors as e:
            raise FTPCommandError("PWD", original_error=e)

    def upload_bytes(self, remote_path: str, data: bytes) -> int:
        """
        Store bytes as a remote file (STOR).

        Args:
            remote_path: Destination path, relative to the working directory
            data: File content

        Returns:
            Number of bytes sent

        Raises:
            FTPTransferError: If the upload fails
        """
        try:
            self.ftp.storbinary(f"STOR {remote_path}", io.BytesIO(data))
        except all_errors as e:
            raise FTPTransferError(remote_path, "upload", e)
        logger.debug(f"Uploaded {len(data)} bytes to {remote_path}")
        return len(data)

    def download_bytes(self, remote_path: str) -> bytes:
        """
        Retrieve a remote file (RETR).

        Args:
            remote_path: Source path, relative to the working directory

        Returns:
            Full file content

        Raises:
            FTPTransferError: If the download fails
        """
        chunks: List[bytes] = []
        try:
            self.ftp.retrbinary(f"RETR {remote_path}", chunks.append)
        except all_errors as e:
            raise FTPTransferError(remote_path, "download", e)
        return b"".join(chunks)

    def list_directory(self, path: str = "") -> List[str]:
        """
        List directory names only (NLST).

        Args:
            path: Directory path to list, empty for the working directory

        Returns:
            List of file/directory names
        """
        try:
            return self.ftp.nlst(*([path] if path else []))
        except all_errors as e:
            raise FTPPathError(path or ".", "list", e)

    def list_entries(self, path: str = "") -> List[ListEntry]:
        """
        List directory entries, using MLSD when the server advertises MLST.

        Args:
            path: Directory path to list, empty for the working directory

        Returns:
            List of ListEntry objects

        Raises:
            FTPPathError: If the directory cannot be listed
        """
        try:
            if "MLST" in self.features():
                entries = []
                for name, facts in self.ftp.mlsd(path):
                    entry = entry_from_facts(name, facts)
                    if entry is not None:
                        entries.append(entry)
                return entries

            lines: List[str] = []
            command = f"LIST {path}" if path else "LIST"
            self.ftp.retrlines(command, lines.append)
            return parse_list_output(lines)
        except all_errors as e:
            raise FTPPathError(path or ".", "list", e)

    def file_size(self, remote_path: str) -> int:
        """
        Query a file's size in bytes (SIZE).

        Listings switch the session to ASCII (retrlines sends TYPE A) and
        many servers refuse SIZE in ASCII mode, so TYPE I is sent first.

        Raises:
            FTPCommandNotSupportedError: If the server rejects SIZE or
                replies with something other than a number
        """
        try:
            self.ftp.voidcmd("TYPE I")
            size = self.ftp.size(remote_path)
        except (error_perm, error_reply, ValueError) as e:
            raise FTPCommandNotSupportedError("SIZE", remote_path, e)
        except all_errors as e:
            raise FTPCommandError("SIZE", remote_path, e)
        if size is None:
            raise FTPCommandNotSupportedError("SIZE", remote_path)
        return size

    def modification_time(self, remote_path: str) -> datetime:
        """
        Query a file's modification time (MDTM).

        Returns:
            Timezone-aware UTC datetime

        Raises:
            FTPCommandNotSupportedError: If the server rejects MDTM or replies
                with something other than a timestamp
        """
        try:
            response = self.ftp.sendcmd(f"MDTM {remote_path}")
        except (error_perm, error_reply) as e:
            raise FTPCommandNotSupportedError("MDTM", remote_path, e)
        except all_errors as e:
            raise FTPCommandError("MDTM", remote_path, e)

        if not response.startswith("213"):
            raise FTPCommandNotSupportedError("MDTM", remote_path, error_reply(response))
        try:
            return parse_mdtm(response)
        except ValueError as e:
            raise FTPCommandNotSupportedError("MDTM", remote_path, e)

    def delete_file(self, remote_path: str) -> None:
        """
        Delete a remote file (DELE).

        Raises:
            FTPPathError: If the file cannot be deleted
        """
        try:
            self.ftp.delete(remote_path)
        except all_errors as e:
            raise FTPPathError(remote_path, "delete", e)


def parse_mdtm(response: str) -> datetime:
    """
    Parse an MDTM reply such as "213 20240101120000" or "213 20240101120000.123".

    Raises:
        ValueError: If the reply holds no valid timestamp
    """
    value = response[3:].strip()
    timestamp, _, fraction = value.partition(".")
    parsed = datetime.strptime(timestamp, "%Y%m%d%H%M%S")
    if fraction:
        parsed = parsed.replace(microsecond=int(fraction[:6].ljust(6, "0")))
    return parsed.replace(tzinfo=timezone.utc)
