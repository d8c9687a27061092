"""Server container provisioning for the FTP server image harness.

Starts FTP server images with testcontainers, publishes the control
port and the passive port range, waits until the server greets
clients, and purges the container afterwards.
"""

import logging
import socket
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import backoff
import docker
import requests
from docker.errors import DockerException, NotFound
from testcontainers.core.container import DockerContainer
from testcontainers.core.waiting_utils import wait_for_logs

from ftpharness.config.scenarios import ServerScenario, TLSMode
from ftpharness.config.settings import HarnessSettings
from ftpharness.containers.exceptions import (
    ContainerNotReadyError,
    ContainerStartError,
    DockerUnavailableError,
)

logger = logging.getLogger("ftpharness.provisioner")

DOCKER_ERRORS = (DockerException, requests.exceptions.RequestException)


@dataclass
class ProvisionedServer:
    """A running server container and the address its control port is published on."""
    scenario: ServerScenario
    container: DockerContainer
    host: str
    control_port: int

    @property
    def address(self) -> str:
        """host:port of the published control port."""
        return f"{self.host}:{self.control_port}"


def read_greeting(host: str, port: int, timeout: float) -> str:
    """
    Open a TCP connection and read the server's first reply line.

    Docker's userland proxy accepts connections before the server inside
    the container listens, so an accepted connection alone proves nothing.

    Raises:
        ConnectionError: If the connection closes or the greeting is not 220
        OSError: If the connection cannot be established
    """
    with socket.create_connection((host, port), timeout=timeout) as sock:
        data = b""
        while not data.endswith(b"\n"):
            chunk = sock.recv(1024)
            if not chunk:
                raise ConnectionError(f"{host}:{port} closed the connection before greeting")
            data += chunk
    line = data.decode("latin-1").strip()
    if not line.startswith("220"):
        raise ConnectionError(f"Unexpected greeting from {host}:{port}: {line}")
    return line


def check_accepts(host: str, port: int, timeout: float) -> None:
    """Open and close a TCP connection, used where the greeting is encrypted."""
    with socket.create_connection((host, port), timeout=timeout):
        pass


class ServerProvisioner:
    """Starts and purges FTP server containers."""

    def __init__(self, settings: Optional[HarnessSettings] = None):
        """
        Initialize the provisioner.

        Args:
            settings: Harness settings, defaults to HarnessSettings()
        """
        self._settings = settings or HarnessSettings()

    @property
    def settings(self) -> HarnessSettings:
        """Harness settings in use."""
        return self._settings

    def _docker_client_kw(self) -> dict:
        if self._settings.docker_host:
            return {"base_url": self._settings.docker_host}
        return {}

    def ping(self) -> None:
        """
        Check that the Docker daemon is reachable.

        Raises:
            DockerUnavailableError: If the daemon cannot be reached
        """
        try:
            client = self._docker_client()
            try:
                client.ping()
            finally:
                client.close()
        except DOCKER_ERRORS as e:
            raise DockerUnavailableError(e)

    def _docker_client(self) -> docker.DockerClient:
        if self._settings.docker_host:
            return docker.DockerClient(base_url=self._settings.docker_host)
        return docker.from_env()

    def _remove_by_name(self, name: str) -> None:
        """Force-remove a container that was created but never started."""
        try:
            client = self._docker_client()
            try:
                client.containers.get(name).remove(force=True)
            finally:
                client.close()
        except NotFound:
            return
        except DOCKER_ERRORS as e:
            logger.warning(f"Could not purge container {name}: {e}")
            return
        logger.debug(f"Removed unstarted container {name}")

    def start(self, scenario: ServerScenario) -> ProvisionedServer:
        """
        Create and start the server container for a scenario.

        The control port is published on a free host port chosen by
        Docker, each passive port is published 1:1.

        Args:
            scenario: Scenario describing the image and its configuration

        Returns:
            ProvisionedServer handle

        Raises:
            ContainerStartError: If the container cannot be started
        """
        container = DockerContainer(scenario.image, docker_client_kw=self._docker_client_kw())
        # Named so a container that was created but failed to start can be found again
        name = f"ftpharness-{uuid.uuid4().hex[:12]}"
        container.with_name(name)
        for key, value in scenario.env.items():
            container.with_env(key, value)

        container.with_exposed_ports(scenario.control_port)
        for port in scenario.passive_ports:
            container.with_bind_ports(port, port)

        for host_dir, container_dir in scenario.volumes:
            container.with_volume_mapping(host_dir, container_dir, mode="rw")

        container.with_kwargs(auto_remove=True, restart_policy={"Name": "no"})

        logger.info(f"Starting {scenario.image} for {scenario.name}")
        try:
            container.start()
        except DOCKER_ERRORS as e:
            self._remove_by_name(name)
            raise ContainerStartError(scenario.image, e)

        try:
            host = self._settings.host or container.get_container_host_ip()
            control_port = int(container.get_exposed_port(scenario.control_port))
        except Exception as e:
            self._remove(container, scenario.image)
            raise ContainerStartError(scenario.image, e)

        server = ProvisionedServer(
            scenario=scenario,
            container=container,
            host=host,
            control_port=control_port,
        )
        logger.info(f"FTP server {scenario.name} started on port {control_port}")
        return server

    def wait_until_reachable(self, server: ProvisionedServer) -> str:
        """
        Poll the control port until the server greets clients.

        Args:
            server: Server returned by start()

        Returns:
            The greeting line, or "" for implicit TLS servers

        Raises:
            ContainerNotReadyError: If the server is not ready within ready_timeout
        """
        scenario = server.scenario
        timeout = self._settings.ready_timeout

        if scenario.ready_log:
            try:
                wait_for_logs(server.container, scenario.ready_log, timeout=timeout)
            except (TimeoutError, RuntimeError) as e:
                raise ContainerNotReadyError(scenario.image, server.address, timeout, e)

        @backoff.on_exception(
            backoff.expo,
            OSError,
            max_time=timeout,
            jitter=None,
            logger=None,
            factor=self._settings.poll_interval,
            max_value=5,
        )
        def greet() -> str:
            if scenario.tls_mode == TLSMode.IMPLICIT:
                check_accepts(server.host, server.control_port, scenario.timeout)
                return ""
            return read_greeting(server.host, server.control_port, scenario.timeout)

        try:
            greeting = greet()
        except OSError as e:
            raise ContainerNotReadyError(scenario.image, server.address, timeout, e)

        logger.debug(f"{scenario.name} is reachable at {server.address}: {greeting}")
        return greeting

    def _remove(self, container: DockerContainer, image: str) -> None:
        try:
            container.stop()
        except DOCKER_ERRORS as e:
            logger.warning(f"Could not purge container for {image}: {e}")

    def purge(self, server: ProvisionedServer) -> None:
        """
        Stop and remove the server container, logging failures.

        Args:
            server: Server returned by start()
        """
        logger.debug(f"Purging container for {server.scenario.name}")
        self._remove(server.container, server.scenario.image)

    @contextmanager
    def provision(self, scenario: ServerScenario) -> Iterator[ProvisionedServer]:
        """
        Provision a reachable server for the duration of a with-block.

        The container is purged on every exit path.

        Raises:
            DockerUnavailableError: If the daemon cannot be reached
            ContainerStartError: If the container cannot be started
            ContainerNotReadyError: If the server never becomes reachable
        """
        self.ping()
        server = self.start(scenario)
        try:
            self.wait_until_reachable(server)
            yield server
        finally:
            self.purge(server)
