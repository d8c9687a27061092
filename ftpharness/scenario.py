"""Scenario execution for the FTP server image harness.

Runs one server scenario end to end: provision the container, connect
with retry, run the operation script, collect check failures, and tear
everything down again.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional

from ftpharness.checks.expectations import (
    CheckReport,
    check_absent,
    check_present,
    compare_content,
    compare_size,
)
from ftpharness.config.scenarios import ServerScenario
from ftpharness.config.settings import HarnessSettings
from ftpharness.containers.exceptions import ContainerError
from ftpharness.containers.provisioner import ProvisionedServer, ServerProvisioner
from ftpharness.ftp.connection import FTPConnectionConfig, FTPConnectionManager
from ftpharness.ftp.exceptions import FTPCommandError, FTPError
from ftpharness.ftp.listing import entry_names

logger = logging.getLogger("ftpharness.scenario")


# Fixture data uploaded and checked by the operation script
COMMAND_TEST_FILE = "test_cmd.txt"
COMMAND_TEST_CONTENT = b"Test file for commands"

SUBDIRECTORY = "dir1"
SUBDIRECTORY_FILE = "file1.txt"
SUBDIRECTORY_CONTENT = b"This is file1 in dir1"

ROOT_FILES: Dict[str, bytes] = {
    "file2.txt": b"This is file2 in root",
    "file3.txt": b"This is file3 in root",
}
SIZE_CHECK_FILE = "file2.txt"


class ScenarioStep(Enum):
    """Progress marker, the last step a scenario reached."""
    PROVISION = "provision"
    CONNECT = "connect"
    COMMAND_SUPPORT = "command_support"
    CREATE = "create"
    LIST = "list"
    SIZE = "size"
    READ = "read"
    DONE = "done"


@dataclass
class ScenarioResult:
    """Outcome of one scenario run."""
    scenario: str
    report: CheckReport
    step: ScenarioStep = ScenarioStep.PROVISION
    fatal_error: Optional[str] = None
    address: Optional[str] = None

    @property
    def passed(self) -> bool:
        """True if the script ran to completion and no check failed."""
        return self.fatal_error is None and self.report.passed

    def summary(self) -> str:
        """One-line outcome followed by any failure details."""
        if self.fatal_error:
            return f"{self.scenario}: aborted during {self.step.value}: {self.fatal_error}"
        return self.report.summary()


def run_operation_script(session: FTPConnectionManager, result: ScenarioResult) -> None:
    """
    Run the scripted FTP operations against a logged-in session.

    Check failures are recorded on result.report. Failures of required
    operations raise and abort the script.

    Args:
        session: Connected and authenticated session
        result: Result to record progress and check failures on

    Raises:
        FTPError: If a required operation fails
    """
    name = result.scenario
    report = result.report

    result.step = ScenarioStep.COMMAND_SUPPORT
    logger.info(f"Step 0: Checking SIZE and MDTM support for {name}")
    session.upload_bytes(COMMAND_TEST_FILE, COMMAND_TEST_CONTENT)

    try:
        session.file_size(COMMAND_TEST_FILE)
    except FTPCommandError as e:
        report.fail("size_support", str(e))

    try:
        session.modification_time(COMMAND_TEST_FILE)
    except FTPCommandError as e:
        report.fail("mdtm_support", str(e))

    try:
        session.delete_file(COMMAND_TEST_FILE)
    except FTPError as e:
        logger.warning(f"Could not remove {COMMAND_TEST_FILE}: {e}")

    result.step = ScenarioStep.CREATE
    logger.info(f"Step 1: Creating directory and files for {name}")
    session.make_directory(SUBDIRECTORY)
    session.change_directory(SUBDIRECTORY)
    session.upload_bytes(SUBDIRECTORY_FILE, SUBDIRECTORY_CONTENT)
    session.change_directory("/")
    for file_name, content in ROOT_FILES.items():
        session.upload_bytes(file_name, content)

    result.step = ScenarioStep.LIST
    logger.info(f"Step 2: Listing directories for {name}")
    root_names = entry_names(session.list_entries(""))
    report.extend(check_present(
        "root_listing", "root directory", root_names, [SUBDIRECTORY, *ROOT_FILES]
    ))
    report.extend(check_absent(
        "root_listing", "root directory", root_names, [SUBDIRECTORY_FILE]
    ))

    subdirectory_names = entry_names(session.list_entries(SUBDIRECTORY))
    location = f"{SUBDIRECTORY} directory"
    report.extend(check_present(
        "subdirectory_listing", location, subdirectory_names, [SUBDIRECTORY_FILE]
    ))
    report.extend(check_absent(
        "subdirectory_listing", location, subdirectory_names, list(ROOT_FILES)
    ))

    result.step = ScenarioStep.SIZE
    logger.info(f"Step 3: Checking file size for {name}")
    size = session.file_size(SIZE_CHECK_FILE)
    report.record(compare_size("file_size", SIZE_CHECK_FILE, ROOT_FILES[SIZE_CHECK_FILE], size))

    result.step = ScenarioStep.READ
    logger.info(f"Step 4: Reading file content for {name}")
    remote_path = f"{SUBDIRECTORY}/{SUBDIRECTORY_FILE}"
    content = session.download_bytes(remote_path)
    report.record(compare_content("file_content", remote_path, SUBDIRECTORY_CONTENT, content))

    result.step = ScenarioStep.DONE


class ScenarioRunner:
    """Runs server scenarios one at a time, each in its own container."""

    def __init__(
        self,
        settings: Optional[HarnessSettings] = None,
        provisioner: Optional[ServerProvisioner] = None,
    ):
        """
        Initialize the runner.

        Args:
            settings: Harness settings, defaults to HarnessSettings()
            provisioner: Container provisioner, defaults to one built from settings
        """
        self._settings = settings or HarnessSettings()
        self._provisioner = provisioner or ServerProvisioner(self._settings)

    def connect(self, server: ProvisionedServer) -> FTPConnectionManager:
        """
        Open an authenticated session to a provisioned server, retrying while it boots.

        Raises:
            FTPConnectionError, FTPAuthenticationError, FTPTimeoutError:
                Once the retry budget is exhausted
        """
        scenario = server.scenario
        config = FTPConnectionConfig.from_scenario(scenario, server.host, server.control_port)
        session = FTPConnectionManager()
        session.connect_with_retry(
            config,
            password=scenario.password,
            max_time=self._settings.connect_max_time,
            max_tries=self._settings.connect_max_tries,
            interval=self._settings.poll_interval,
        )
        logger.info(f"Successfully connected to {scenario.name} server")
        return session

    def run(self, scenario: ServerScenario) -> ScenarioResult:
        """
        Run one scenario end to end.

        Infrastructure and session failures abort the scenario and are
        stored as fatal_error; check failures are collected on the report.
        The container is purged and the session closed on every path.

        Args:
            scenario: Scenario to run

        Returns:
            ScenarioResult
        """
        result = ScenarioResult(scenario=scenario.name, report=CheckReport(scenario.name))

        try:
            with self._provisioner.provision(scenario) as server:
                result.address = server.address
                result.step = ScenarioStep.CONNECT
                with self.connect(server) as session:
                    run_operation_script(session, result)
        except (ContainerError, FTPError) as e:
            result.fatal_error = str(e)
            logger.error(f"{scenario.name} aborted during {result.step.value}: {e}")

        if result.passed:
            logger.info(f"{scenario.name}: all checks passed")
        elif result.fatal_error is None:
            logger.warning(result.report.summary())
        return result
