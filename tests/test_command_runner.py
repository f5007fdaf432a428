"""Unit tests for utils/command_runner.py"""

import itertools
import subprocess
from unittest.mock import MagicMock, patch

import paramiko
import pytest


class _ScriptedChannel:
    """paramiko Channel stand-in that hands out output in chunks and records call order."""

    def __init__(self, stdout=b"", stderr=b"", exit_status=0, chunk=4):
        self._stdout = [stdout[i:i + chunk] for i in range(0, len(stdout), chunk)]
        self._stderr = [stderr[i:i + chunk] for i in range(0, len(stderr), chunk)]
        self._exit_status = exit_status
        self.events = []
        self.finished = True
        self.closed = False

    def recv_ready(self):
        return bool(self._stdout)

    def recv_stderr_ready(self):
        return bool(self._stderr)

    def recv(self, size):
        self.events.append("recv")
        return self._stdout.pop(0)

    def recv_stderr(self, size):
        self.events.append("recv_stderr")
        return self._stderr.pop(0)

    def exit_status_ready(self):
        # Like a real command, it cannot exit while its output is unread
        return self.finished and not self._stdout and not self._stderr

    def recv_exit_status(self):
        self.events.append("recv_exit_status")
        return self._exit_status

    def close(self):
        self.closed = True


def _mock_ssh_client(stdout=b"", stderr=b"", exit_status=0, channel=None):
    ssh_client = MagicMock()
    stdout_file = MagicMock()
    stdout_file.channel = channel or _ScriptedChannel(stdout, stderr, exit_status)
    ssh_client.exec_command.return_value = (MagicMock(), stdout_file, MagicMock())
    return ssh_client


def _fast_retry_config(max_retries=2):
    cm = MagicMock()
    cm.get_max_retries.return_value = max_retries
    cm.get_retry_initial_delay.return_value = 0.01
    cm.get_retry_max_delay.return_value = 0.01
    cm.get_retry_exponential_base.return_value = 2.0
    cm.get_retry_jitter.return_value = False
    return cm


class TestLocalRunner:
    """Tests for subprocess-backed command execution"""

    def test_run_captures_output(self):
        """Test that stdout, stderr and exit status are returned"""
        from utils.command_runner import LocalRunner

        completed = subprocess.CompletedProcess(["docker", "ps"], 0, stdout="out\n", stderr="")
        with patch("utils.command_runner.subprocess.run", return_value=completed) as mock_run:
            result = LocalRunner(timeout=30).run(["docker", "ps"])

        assert result.ok is True
        assert result.stdout == "out\n"
        mock_run.assert_called_once_with(
            ["docker", "ps"], capture_output=True, text=True, timeout=30
        )

    def test_missing_binary_is_exit_127(self):
        """Test that a missing executable is reported, not raised"""
        from utils.command_runner import EXIT_NOT_FOUND, LocalRunner

        with patch("utils.command_runner.subprocess.run", side_effect=FileNotFoundError()):
            result = LocalRunner().run(["docker", "ps"])

        assert result.exit_status == EXIT_NOT_FOUND
        assert result.stderr == "docker: command not found"

    def test_timeout_is_exit_124(self):
        """Test that a hung command is reported as timed out"""
        from utils.command_runner import EXIT_TIMEOUT, LocalRunner

        with patch("utils.command_runner.subprocess.run", side_effect=subprocess.TimeoutExpired(["docker"], 5)):
            result = LocalRunner(timeout=5).run(["docker", "info"])

        assert result.exit_status == EXIT_TIMEOUT
        assert "timed out" in result.stderr

    def test_run_shell_splits_like_a_shell(self):
        """Test that custom command lines are split with shell quoting rules"""
        from utils.command_runner import LocalRunner

        runner = LocalRunner()
        with patch.object(runner, "run") as mock_run:
            runner.run_shell("docker ps --format '{{.Names}} {{.Status}}'")

        mock_run.assert_called_once_with(["docker", "ps", "--format", "{{.Names}} {{.Status}}"])

    def test_run_interactive_returns_exit_status(self):
        """Test that interactive runs are attached to the terminal"""
        from utils.command_runner import LocalRunner

        completed = subprocess.CompletedProcess(["docker"], 3)
        with patch("utils.command_runner.subprocess.run", return_value=completed) as mock_run:
            assert LocalRunner().run_interactive(["docker", "run", "-it", "alpine"]) == 3

        mock_run.assert_called_once_with(["docker", "run", "-it", "alpine"])


class TestRemoteRunner:
    """Tests for paramiko-backed command execution"""

    def test_run_shell_returns_remote_output(self):
        """Test exec_command output decoding and exit status"""
        from utils.command_runner import RemoteRunner

        ssh_client = _mock_ssh_client(stdout=b"Connection successful\n")
        runner = RemoteRunner("10.0.0.1", "root", ssh_client=ssh_client, command_timeout=30)

        result = runner.run_shell("echo 'Connection successful'")

        assert result.ok is True
        assert result.stdout == "Connection successful\n"
        ssh_client.exec_command.assert_called_once_with("echo 'Connection successful'", timeout=30)

    def test_connect_uses_keys_without_password(self):
        """Test that key lookup is enabled only when no password is given"""
        from utils.command_runner import RemoteRunner

        ssh_client = _mock_ssh_client()
        RemoteRunner("host", "alice", port=2222, key_filename="/keys/id", ssh_client=ssh_client).connect()

        kwargs = ssh_client.connect.call_args.kwargs
        assert kwargs["hostname"] == "host"
        assert kwargs["port"] == 2222
        assert kwargs["password"] is None
        assert kwargs["key_filename"] == "/keys/id"
        assert kwargs["look_for_keys"] is True

    def test_connect_with_password(self):
        """Test that password authentication is passed straight to paramiko"""
        from utils.command_runner import RemoteRunner

        ssh_client = _mock_ssh_client()
        RemoteRunner("host", "alice", password="s3cret", ssh_client=ssh_client).connect()

        kwargs = ssh_client.connect.call_args.kwargs
        assert kwargs["password"] == "s3cret"
        assert kwargs["look_for_keys"] is False

    def test_connect_happens_once(self):
        """Test that repeated commands reuse the session"""
        from utils.command_runner import RemoteRunner

        ssh_client = _mock_ssh_client()
        runner = RemoteRunner("host", "alice", ssh_client=ssh_client)

        runner.run(["docker", "ps"])
        runner.run(["docker", "images"])

        assert ssh_client.connect.call_count == 1
        assert ssh_client.exec_command.call_args_list[1][0][0] == "docker images"

    def test_auth_failure_is_actionable_and_not_retried(self):
        """Test that bad credentials fail fast with guidance"""
        from utils.command_runner import RemoteRunner
        from utils.error_utils import ActionableError, ErrorCategory

        ssh_client = _mock_ssh_client()
        ssh_client.connect.side_effect = paramiko.AuthenticationException("Authentication failed.")
        runner = RemoteRunner("host", "alice", ssh_client=ssh_client, config_manager=_fast_retry_config())

        with pytest.raises(ActionableError) as exc_info:
            runner.connect()

        assert exc_info.value.category == ErrorCategory.AUTHENTICATION
        assert ssh_client.connect.call_count == 1

    def test_network_failure_is_retried(self):
        """Test that refused connections are retried before giving up"""
        from utils.command_runner import RemoteRunner
        from utils.error_utils import ActionableError, ErrorCategory

        ssh_client = _mock_ssh_client()
        ssh_client.connect.side_effect = ConnectionRefusedError("Connection refused")
        runner = RemoteRunner("host", "alice", ssh_client=ssh_client, config_manager=_fast_retry_config(2))

        with patch("utils.retry_utils.time.sleep"):
            with pytest.raises(ActionableError) as exc_info:
                runner.connect()

        assert exc_info.value.category == ErrorCategory.CONNECTION
        assert ssh_client.connect.call_count == 3

    def test_transport_error_is_a_failed_result(self):
        """Test that a dropped session becomes exit -1 and forces a reconnect"""
        from utils.command_runner import EXIT_TRANSPORT_ERROR, RemoteRunner

        ssh_client = _mock_ssh_client()
        ssh_client.exec_command.side_effect = paramiko.SSHException("Socket is closed")
        runner = RemoteRunner("host", "alice", ssh_client=ssh_client)

        result = runner.run_shell("docker ps")

        assert result.exit_status == EXIT_TRANSPORT_ERROR
        assert result.stderr == "ssh transport error: Socket is closed"
        assert runner._connected is False

    def test_output_is_read_before_exit_status(self):
        """Test that both streams are drained before the exit status is requested"""
        from utils.command_runner import RemoteRunner

        channel = _ScriptedChannel(stdout=b'{"Id": "sha256:aaaa"}\n' * 50, stderr=b"warning\n", exit_status=0)
        runner = RemoteRunner("host", "alice", ssh_client=_mock_ssh_client(channel=channel))

        result = runner.run(["docker", "image", "inspect", "aaaa"])

        assert result.stdout == '{"Id": "sha256:aaaa"}\n' * 50
        assert result.stderr == "warning\n"
        assert channel.events[-1] == "recv_exit_status"
        assert channel.events.count("recv_exit_status") == 1
        assert "recv" in channel.events and "recv_stderr" in channel.events

    def test_non_zero_exit_keeps_stderr(self):
        """Test that a failed remote command reports its status and stderr"""
        from utils.command_runner import RemoteRunner

        ssh_client = _mock_ssh_client(stderr=b"Error: No such image: deadbeef\n", exit_status=1)
        result = RemoteRunner("host", "alice", ssh_client=ssh_client).run(["docker", "rmi", "deadbeef"])

        assert result.exit_status == 1
        assert result.stdout == ""
        assert result.stderr == "Error: No such image: deadbeef\n"

    def test_command_that_never_exits_times_out(self):
        """Test that a hung remote command becomes exit 124 and its channel is closed"""
        from utils.command_runner import EXIT_TIMEOUT, RemoteRunner

        channel = _ScriptedChannel()
        channel.finished = False
        runner = RemoteRunner("host", "alice", ssh_client=_mock_ssh_client(channel=channel), command_timeout=30)

        with patch("utils.command_runner.time.monotonic", side_effect=itertools.chain([0.0, 10.0, 20.0], itertools.repeat(31.0))), \
                patch("utils.command_runner.time.sleep") as mock_sleep:
            result = runner.run_shell("docker ps")

        assert result.exit_status == EXIT_TIMEOUT
        assert result.stderr == "command timed out after 30s"
        assert channel.closed is True
        assert "recv_exit_status" not in channel.events
        assert mock_sleep.call_count == 2

    def test_run_quotes_arguments(self):
        """Test that argument lists are shell-quoted for the remote side"""
        from utils.command_runner import RemoteRunner

        ssh_client = _mock_ssh_client()
        RemoteRunner("host", "alice", ssh_client=ssh_client).run(["docker", "ps", "--format", "{{json .}}"])

        assert ssh_client.exec_command.call_args[0][0] == "docker ps --format '{{json .}}'"

    def test_interactive_is_local_only(self):
        """Test that interactive sessions are refused over SSH"""
        from utils.command_runner import RemoteRunner

        with pytest.raises(NotImplementedError):
            RemoteRunner("host", "alice").run_interactive(["docker", "run", "-it", "alpine"])

    def test_which_on_remote(self):
        """Test program lookup on the remote host"""
        from utils.command_runner import RemoteRunner

        runner = RemoteRunner("host", "alice", ssh_client=_mock_ssh_client(stdout=b"/usr/bin/docker\n"))
        assert runner.which("docker") == "/usr/bin/docker"

        missing = RemoteRunner("host", "alice", ssh_client=_mock_ssh_client(exit_status=1))
        assert missing.which("docker") is None

    def test_from_config_explicit_values_win(self):
        """Test that CLI/prompt values override configuration, empty ones do not"""
        from utils.command_runner import RemoteRunner

        cm = MagicMock()
        cm.get_ssh_hostname.return_value = "config-host"
        cm.get_ssh_username.return_value = "config-user"
        cm.get_ssh_port.return_value = 22
        cm.get_ssh_password.return_value = None
        cm.get_ssh_key_filename.return_value = "/keys/id"
        cm.get_ssh_connect_timeout.return_value = 5
        cm.get_engine_timeout.return_value = 60
        cm.get_ssh_strict_host_key_checking.return_value = True

        runner = RemoteRunner.from_config(cm, hostname="cli-host", username=None, port=2222, password=None)

        assert runner.hostname == "cli-host"
        assert runner.username == "config-user"
        assert runner.port == 2222
        assert runner.password is None
        assert runner.key_filename == "/keys/id"
        assert runner.command_timeout == 60
        assert runner.describe() == "ssh://config-user@cli-host:2222"

    @pytest.mark.parametrize("strict,policy", [(True, paramiko.RejectPolicy), (False, paramiko.WarningPolicy)])
    def test_host_key_policy(self, strict, policy):
        """Test that strict checking rejects unknown host keys"""
        from utils.command_runner import RemoteRunner

        with patch("utils.command_runner.SSHClient") as mock_client_class:
            RemoteRunner("host", "alice", strict_host_key_checking=strict)._build_client()

        client = mock_client_class.return_value
        client.load_system_host_keys.assert_called_once()
        assert isinstance(client.set_missing_host_key_policy.call_args[0][0], policy)

    def test_context_manager_closes(self):
        """Test that leaving the with-block closes the session"""
        from utils.command_runner import RemoteRunner

        ssh_client = _mock_ssh_client()
        with RemoteRunner("host", "alice", ssh_client=ssh_client) as runner:
            assert runner.test_connection() is False

        ssh_client.close.assert_called_once()
