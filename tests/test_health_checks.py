"""Unit tests for utils/health_checks.py"""

from unittest.mock import MagicMock

import pytest

from fake_engine import FakeEngine, scripted_prompt


def _client(engine):
    from utils.docker_client import DockerClient

    return DockerClient(runner=engine, binary="docker")


class TestDetectOs:
    """Tests for platform detection"""

    @pytest.mark.parametrize("system,expected", [
        ("Darwin", "macos"),
        ("Linux", "linux"),
        ("Windows", "windows"),
        ("CYGWIN_NT-10.0", "windows"),
        ("MINGW64_NT-10.0", "windows"),
        ("SunOS", "unknown"),
    ])
    def test_detect_os(self, system, expected):
        """Test mapping of platform names"""
        from utils.health_checks import detect_os

        assert detect_os(system) == expected


class TestHealthCheckResult:
    """Tests for HealthCheckResult dataclass"""

    def test_health_check_result_without_details(self):
        """Test creating a HealthCheckResult without details"""
        from utils.health_checks import HealthCheckResult

        result = HealthCheckResult(name="engine", status=False, message="Test failed")

        assert result.status is False
        assert result.details is None


class TestEngineCheck:
    """Tests for engine reachability"""

    def test_engine_running(self):
        """Test a healthy engine"""
        from utils.health_checks import HealthChecker

        result = HealthChecker(_client(FakeEngine()), os_name="linux").check_engine()

        assert result.status is True
        assert result.message == "Docker is running and accessible"
        assert result.details["server_version"] == "24.0.7"

    def test_binary_missing(self):
        """Test a machine without the docker client"""
        from utils.health_checks import HealthChecker

        result = HealthChecker(_client(FakeEngine(installed=())), os_name="linux").check_engine()

        assert result.status is False
        assert result.message == "Docker is not installed or not in PATH"

    def test_daemon_down(self):
        """Test an installed client whose daemon does not answer"""
        from utils.health_checks import HealthChecker

        engine = FakeEngine()
        engine.down = True

        result = HealthChecker(_client(engine), os_name="linux").check_engine()

        assert result.status is False
        assert result.message == "Docker command found but not responding. Is Docker running?"
        assert result.details["suggestions"]

    def test_remote_engine_skips_local_binary_check(self):
        """Test that the local PATH is irrelevant for a remote engine"""
        from utils.health_checks import HealthChecker

        engine = FakeEngine(context="ssh://root@host:22", installed=())

        assert HealthChecker(_client(engine), os_name="linux").check_engine().status is True


class TestColimaCheck:
    """Tests for the macOS Colima runtime"""

    def _runner(self, installed=True, status_ok=True, start_ok=True):
        from utils.command_runner import CommandResult

        runner = MagicMock()
        runner.describe.return_value = "local"
        runner.which.side_effect = lambda program: f"/opt/homebrew/bin/{program}" if installed else None

        def _run(args):
            if args == ["colima", "status"]:
                return CommandResult("", "colima is running", 0) if status_ok else CommandResult("", "colima is not running", 1)
            if args == ["colima", "start"]:
                return CommandResult("", "", 0) if start_ok else CommandResult("", "vm failed", 1)
            return CommandResult("24.0.7\n", "", 0)

        runner.run.side_effect = _run
        return runner

    def test_not_installed(self):
        """Test missing Colima"""
        from utils.docker_client import DockerClient
        from utils.health_checks import HealthChecker

        checker = HealthChecker(DockerClient(runner=self._runner(installed=False)), os_name="macos")
        result = checker.check_and_start_colima()

        assert result.status is False
        assert result.message == "Colima is not installed. Please install it first."

    def test_already_running(self):
        """Test Colima that is already up"""
        from utils.docker_client import DockerClient
        from utils.health_checks import HealthChecker

        runner = self._runner()
        result = HealthChecker(DockerClient(runner=runner), os_name="macos").check_and_start_colima()

        assert result.message == "Colima is already running"
        assert ["colima", "start"] not in [call[0][0] for call in runner.run.call_args_list]

    def test_started_on_demand(self):
        """Test that a stopped Colima is started"""
        from utils.docker_client import DockerClient
        from utils.health_checks import HealthChecker

        runner = self._runner(status_ok=False)
        result = HealthChecker(DockerClient(runner=runner), os_name="macos").check_and_start_colima()

        assert result.status is True
        assert result.message == "Colima started successfully"

    def test_start_failure(self):
        """Test a Colima VM that will not start"""
        from utils.docker_client import DockerClient
        from utils.health_checks import HealthChecker

        runner = self._runner(status_ok=False, start_ok=False)
        result = HealthChecker(DockerClient(runner=runner), os_name="macos").check_and_start_colima()

        assert result.status is False
        assert result.details["error"] == "vm failed"

    def test_run_all_checks_on_macos(self):
        """Test that macOS checks Colima before the engine"""
        from utils.docker_client import DockerClient
        from utils.health_checks import HealthChecker

        results = HealthChecker(DockerClient(runner=self._runner()), os_name="macos").run_all_checks()

        assert [result.name for result in results] == ["colima", "engine"]

    def test_run_all_checks_on_linux(self):
        """Test that Linux only checks the engine"""
        from utils.health_checks import HealthChecker

        results = HealthChecker(_client(FakeEngine()), os_name="linux").run_all_checks()

        assert [result.name for result in results] == ["engine"]


class TestHealthReport:
    """Tests for printing health results"""

    def test_print_health_report(self):
        """Test success/error lines and suggestions"""
        from utils.health_checks import HealthCheckResult, HealthChecker

        prompt = scripted_prompt()
        HealthChecker(MagicMock(), os_name="linux").print_health_report(
            [
                HealthCheckResult("colima", True, "Colima is already running"),
                HealthCheckResult("engine", False, "Docker is not installed or not in PATH",
                                  {"suggestions": ["Install Docker"]}),
            ],
            prompt,
        )

        assert prompt.output == [
            "✓ Colima is already running",
            "❌ Docker is not installed or not in PATH",
            "   Install Docker",
        ]
