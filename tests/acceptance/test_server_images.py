"""Acceptance tests against real FTP server container images.

Each built-in scenario starts its image, connects with ftplib and runs
the operation script. Requires a Docker daemon and free host ports for
every scenario's passive range; skipped when Docker is unavailable.
"""

import pytest

from ftpharness.checks.expectations import CheckReport
from ftpharness.config.scenarios import SCENARIOS
from ftpharness.config.settings import HarnessSettings
from ftpharness.containers.exceptions import DockerUnavailableError
from ftpharness.containers.provisioner import ServerProvisioner
from ftpharness.scenario import ScenarioResult, ScenarioRunner, run_operation_script

pytestmark = pytest.mark.docker


@pytest.fixture(scope="module")
def settings() -> HarnessSettings:
    return HarnessSettings.from_env()


@pytest.fixture(scope="module")
def provisioner(settings) -> ServerProvisioner:
    """Provisioner for the configured Docker daemon, skipping without one."""
    provisioner = ServerProvisioner(settings)
    try:
        provisioner.ping()
    except DockerUnavailableError as e:
        pytest.skip(str(e))
    return provisioner


@pytest.fixture(params=SCENARIOS, ids=[scenario.name for scenario in SCENARIOS])
def provisioned_server(request, provisioner):
    """Start the scenario's container and purge it after the test."""
    server = provisioner.start(request.param)
    try:
        provisioner.wait_until_reachable(server)
        yield server
    finally:
        provisioner.purge(server)


@pytest.fixture
def ftp_session(provisioned_server, settings, provisioner):
    """Authenticated session to the provisioned server."""
    session = ScenarioRunner(settings, provisioner).connect(provisioned_server)
    yield session
    session.disconnect()


def test_operation_script(provisioned_server, ftp_session):
    """Every check of the operation script passes."""
    name = provisioned_server.scenario.name
    result = ScenarioResult(scenario=name, report=CheckReport(name))

    run_operation_script(ftp_session, result)

    result.report.raise_for_failures()
