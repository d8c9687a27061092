"""Unit tests for the operation script and ScenarioRunner.

The FTP session and the provisioner are mocked; the integration suite
runs the same code against a real server.
"""

from contextlib import contextmanager
from unittest.mock import MagicMock, call, patch

import pytest

from ftpharness.checks.expectations import CheckReport
from ftpharness.containers.exceptions import ContainerStartError
from ftpharness.containers.provisioner import ProvisionedServer
from ftpharness.ftp.connection import FTPConnectionManager
from ftpharness.ftp.exceptions import (
    FTPCommandError,
    FTPCommandNotSupportedError,
    FTPConnectionError,
    FTPPathError,
)
from ftpharness.ftp.listing import EntryType, ListEntry
from ftpharness.scenario import (
    COMMAND_TEST_CONTENT,
    COMMAND_TEST_FILE,
    ROOT_FILES,
    SUBDIRECTORY_CONTENT,
    ScenarioResult,
    ScenarioRunner,
    ScenarioStep,
    run_operation_script,
)


ROOT_LISTING = [
    ListEntry("dir1", EntryType.DIRECTORY),
    ListEntry("file2.txt", EntryType.FILE, 21),
    ListEntry("file3.txt", EntryType.FILE, 21),
]
SUBDIRECTORY_LISTING = [ListEntry("file1.txt", EntryType.FILE, 21)]


def listing(root=ROOT_LISTING, subdirectory=SUBDIRECTORY_LISTING):
    """side_effect for list_entries returning fixed listings per directory."""
    def list_entries(path=""):
        return list(subdirectory if path == "dir1" else root)
    return list_entries


@pytest.fixture
def session() -> MagicMock:
    """Session mock behaving like a compliant server."""
    mock_session = MagicMock(spec=FTPConnectionManager)
    mock_session.list_entries.side_effect = listing()
    mock_session.file_size.return_value = 21
    mock_session.download_bytes.return_value = SUBDIRECTORY_CONTENT
    return mock_session


@pytest.fixture
def result() -> ScenarioResult:
    return ScenarioResult(scenario="FTP (plain)", report=CheckReport("FTP (plain)"))


class TestOperationScript:
    """Tests for run_operation_script."""

    def test_compliant_server_passes(self, session, result):
        run_operation_script(session, result)

        assert result.step == ScenarioStep.DONE
        assert result.report.passed, result.report.summary()
        assert result.passed is True

    def test_operation_order(self, session, result):
        run_operation_script(session, result)

        uploads = [c.args for c in session.upload_bytes.call_args_list]
        assert uploads == [
            (COMMAND_TEST_FILE, COMMAND_TEST_CONTENT),
            ("file1.txt", SUBDIRECTORY_CONTENT),
            ("file2.txt", ROOT_FILES["file2.txt"]),
            ("file3.txt", ROOT_FILES["file3.txt"]),
        ]
        session.delete_file.assert_called_once_with(COMMAND_TEST_FILE)
        session.make_directory.assert_called_once_with("dir1")
        assert session.change_directory.call_args_list == [call("dir1"), call("/")]
        assert session.list_entries.call_args_list == [call(""), call("dir1")]
        assert session.file_size.call_args_list == [call(COMMAND_TEST_FILE), call("file2.txt")]
        session.modification_time.assert_called_once_with(COMMAND_TEST_FILE)
        session.download_bytes.assert_called_once_with("dir1/file1.txt")

    def test_unsupported_mdtm_is_a_check_failure(self, session, result):
        session.modification_time.side_effect = FTPCommandNotSupportedError("MDTM", COMMAND_TEST_FILE)

        run_operation_script(session, result)

        assert result.step == ScenarioStep.DONE
        assert [str(f) for f in result.report.failures] == ["[mdtm_support] MDTM command is NOT supported"]

    def test_failing_support_commands_are_check_failures(self, session, result):
        """Any SIZE/MDTM error in the support step is reported, not fatal."""
        session.file_size.side_effect = [
            FTPCommandError("SIZE", COMMAND_TEST_FILE, EOFError()),
            21,
        ]
        session.modification_time.side_effect = FTPCommandError("MDTM", COMMAND_TEST_FILE)

        run_operation_script(session, result)

        assert result.step == ScenarioStep.DONE
        assert [f.check for f in result.report.failures] == ["size_support", "mdtm_support"]

    def test_unsupported_size_fails_at_size_step(self, session, result):
        session.file_size.side_effect = FTPCommandNotSupportedError("SIZE", COMMAND_TEST_FILE)

        with pytest.raises(FTPCommandNotSupportedError):
            run_operation_script(session, result)

        assert result.step == ScenarioStep.SIZE
        assert [f.check for f in result.report.failures] == ["size_support"]

    def test_cleanup_failure_is_not_fatal(self, session, result):
        session.delete_file.side_effect = FTPPathError(COMMAND_TEST_FILE, "delete")

        run_operation_script(session, result)

        assert result.passed is True

    def test_missing_root_entry(self, session, result):
        session.list_entries.side_effect = listing(root=ROOT_LISTING[:2])

        run_operation_script(session, result)

        assert [str(f) for f in result.report.failures] == [
            "[root_listing] Expected entry 'file3.txt' not found in root directory"
        ]

    def test_file_in_wrong_directory(self, session, result):
        """A server ignoring CWD puts file1.txt in root and leaves dir1 empty."""
        session.list_entries.side_effect = listing(
            root=ROOT_LISTING + [ListEntry("file1.txt", EntryType.FILE, 21)],
            subdirectory=[],
        )

        run_operation_script(session, result)

        assert [str(f) for f in result.report.failures] == [
            "[root_listing] Unexpected entry 'file1.txt' found in root directory",
            "[subdirectory_listing] Expected entry 'file1.txt' not found in dir1 directory",
        ]

    def test_root_files_leaking_into_subdirectory(self, session, result):
        session.list_entries.side_effect = listing(subdirectory=SUBDIRECTORY_LISTING + ROOT_LISTING[1:])

        run_operation_script(session, result)

        assert [f.check for f in result.report.failures] == ["subdirectory_listing", "subdirectory_listing"]

    def test_listed_paths_are_reduced_to_names(self, session, result):
        session.list_entries.side_effect = listing(subdirectory=[ListEntry("dir1/file1.txt")])

        run_operation_script(session, result)

        assert result.report.passed

    def test_size_mismatch(self, session, result):
        session.file_size.return_value = 22

        run_operation_script(session, result)

        assert [str(f) for f in result.report.failures] == [
            "[file_size] file2.txt size mismatch: got 22, expected 21"
        ]

    def test_content_mismatch(self, session, result):
        session.download_bytes.return_value = b"This is file1 in dir1\r\n"

        run_operation_script(session, result)

        assert [f.check for f in result.report.failures] == ["file_content"]
        assert result.step == ScenarioStep.DONE

    def test_required_operation_failure_aborts(self, session, result):
        session.make_directory.side_effect = FTPPathError("dir1", "create")

        with pytest.raises(FTPPathError):
            run_operation_script(session, result)

        assert result.step == ScenarioStep.CREATE
        session.list_entries.assert_not_called()


class FakeProvisioner:
    """Provisioner double yielding a fixed server."""

    def __init__(self, server=None, error=None):
        self.server = server
        self.error = error
        self.purged = False

    @contextmanager
    def provision(self, scenario):
        try:
            if self.error:
                raise self.error
            yield self.server
        finally:
            self.purged = True


class TestScenarioRunner:
    """Tests for ScenarioRunner."""

    @pytest.fixture
    def server(self, plain_scenario):
        return ProvisionedServer(scenario=plain_scenario, container=None, host="127.0.0.1", control_port=32768)

    def test_connect_uses_settings_budget(self, server, fast_settings):
        runner = ScenarioRunner(fast_settings, FakeProvisioner())

        with patch("ftpharness.scenario.FTPConnectionManager") as mock_manager_class:
            session = runner.connect(server)

        assert session is mock_manager_class.return_value
        config = session.connect_with_retry.call_args[0][0]
        assert (config.host, config.port, config.username) == ("127.0.0.1", 32768, "testuser")
        assert session.connect_with_retry.call_args[1] == {
            "password": "testpass",
            "max_time": 5,
            "max_tries": 3,
            "interval": 0.05,
        }

    def test_run_success(self, server, fast_settings, session, plain_scenario):
        provisioner = FakeProvisioner(server)
        runner = ScenarioRunner(fast_settings, provisioner)
        session.__enter__.return_value = session

        with patch.object(runner, "connect", return_value=session):
            result = runner.run(plain_scenario)

        assert result.passed is True
        assert result.address == "127.0.0.1:32768"
        assert provisioner.purged is True
        session.__exit__.assert_called_once()

    def test_run_check_failures_are_not_fatal(self, server, fast_settings, session, plain_scenario):
        session.__enter__.return_value = session
        session.file_size.return_value = 99
        runner = ScenarioRunner(fast_settings, FakeProvisioner(server))

        with patch.object(runner, "connect", return_value=session):
            result = runner.run(plain_scenario)

        assert result.passed is False
        assert result.fatal_error is None
        assert result.step == ScenarioStep.DONE
        assert "size mismatch" in result.summary()

    def test_run_connection_failure(self, server, fast_settings, plain_scenario):
        provisioner = FakeProvisioner(server)
        runner = ScenarioRunner(fast_settings, provisioner)
        error = FTPConnectionError("127.0.0.1", 32768, ConnectionRefusedError("refused"))

        with patch.object(runner, "connect", side_effect=error):
            result = runner.run(plain_scenario)

        assert result.step == ScenarioStep.CONNECT
        assert result.fatal_error == "Failed to connect to 127.0.0.1:32768: refused"
        assert result.summary().startswith("test plain: aborted during connect:")
        assert provisioner.purged is True

    def test_run_container_failure(self, fast_settings, plain_scenario):
        provisioner = FakeProvisioner(error=ContainerStartError(plain_scenario.image))
        runner = ScenarioRunner(fast_settings, provisioner)

        result = runner.run(plain_scenario)

        assert result.step == ScenarioStep.PROVISION
        assert result.address is None
        assert "Could not start container" in result.fatal_error

    def test_unexpected_errors_propagate(self, server, fast_settings, plain_scenario):
        provisioner = FakeProvisioner(server)
        runner = ScenarioRunner(fast_settings, provisioner)

        with patch.object(runner, "connect", side_effect=RuntimeError("bug")):
            with pytest.raises(RuntimeError):
                runner.run(plain_scenario)

        assert provisioner.purged is True
