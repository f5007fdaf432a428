"""
Command runners for executing engine commands locally or on a remote host.

Both runners return the same CommandResult shape so callers can treat a local
engine and an SSH-reachable engine identically.
"""

import shlex
import shutil
import socket
import subprocess
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import paramiko
from paramiko.client import SSHClient

from utils.error_utils import create_ssh_auth_error, create_ssh_connection_error
from utils.logging_utils import get_logger
from utils.retry_utils import retry_with_backoff

logger = get_logger(__name__)

# Conventional shell exit codes, used when the command never ran
EXIT_NOT_FOUND = 127
EXIT_TIMEOUT = 124
EXIT_TRANSPORT_ERROR = -1

READ_CHUNK = 32768
POLL_INTERVAL = 0.05


@dataclass
class CommandResult:
    """Outcome of a single command"""

    stdout: str
    stderr: str
    exit_status: int

    @property
    def ok(self) -> bool:
        return self.exit_status == 0


class LocalRunner:
    """Runs commands on this machine via subprocess."""

    def __init__(self, timeout: Optional[int] = 120):
        self.timeout = timeout

    def describe(self) -> str:
        return "local"

    def run(self, args: List[str]) -> CommandResult:
        """Run a command and capture its output. Never raises for command failures."""
        logger.debug(f"[local] Running: {shlex.join(args)}")
        try:
            result = subprocess.run(
                args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError:
            return CommandResult("", f"{args[0]}: command not found", EXIT_NOT_FOUND)
        except subprocess.TimeoutExpired:
            logger.error(f"[local] Command timed out after {self.timeout}s: {shlex.join(args)}")
            return CommandResult("", f"command timed out after {self.timeout}s", EXIT_TIMEOUT)

        logger.debug(f"[local] Exit {result.returncode}, stderr: {result.stderr.strip()[:200]}")
        return CommandResult(result.stdout, result.stderr, result.returncode)

    def run_shell(self, command: str) -> CommandResult:
        """Run a free-form command line (e.g. a custom docker command)."""
        return self.run(shlex.split(command))

    def run_interactive(self, args: List[str]) -> int:
        """Run a command attached to the current terminal and return its exit status."""
        logger.debug(f"[local] Running interactively: {shlex.join(args)}")
        try:
            return subprocess.run(args).returncode
        except FileNotFoundError:
            return EXIT_NOT_FOUND

    def which(self, program: str) -> Optional[str]:
        return shutil.which(program)

    def close(self) -> None:
        pass


class RemoteRunner:
    """
    Runs commands on a remote host over SSH using paramiko.

    Authentication is key-based by default (ssh-agent, ~/.ssh keys or an
    explicit key file); a password is used when one is supplied.
    """

    def __init__(
        self,
        hostname: str,
        username: str,
        port: int = 22,
        password: Optional[str] = None,
        key_filename: Optional[str] = None,
        connect_timeout: int = 10,
        command_timeout: Optional[int] = 120,
        strict_host_key_checking: bool = False,
        config_manager=None,
        ssh_client: Optional[SSHClient] = None,
    ):
        self.hostname = hostname
        self.username = username
        self.port = int(port)
        self.password = password or None
        self.key_filename = key_filename or None
        self.connect_timeout = connect_timeout
        self.command_timeout = command_timeout
        self.strict_host_key_checking = strict_host_key_checking
        self.config_manager = config_manager
        self.ssh_client = ssh_client
        self._connected = False

    @classmethod
    def from_config(cls, config_manager, **overrides) -> "RemoteRunner":
        """Build a runner from configuration, letting explicit values (CLI flags, prompts) win."""
        params = {
            "hostname": config_manager.get_ssh_hostname(),
            "username": config_manager.get_ssh_username(),
            "port": config_manager.get_ssh_port(),
            "password": config_manager.get_ssh_password(),
            "key_filename": config_manager.get_ssh_key_filename(),
            "connect_timeout": config_manager.get_ssh_connect_timeout(),
            "command_timeout": config_manager.get_engine_timeout(),
            "strict_host_key_checking": config_manager.get_ssh_strict_host_key_checking(),
        }
        params.update({key: value for key, value in overrides.items() if value})
        return cls(config_manager=config_manager, **params)

    def describe(self) -> str:
        return f"ssh://{self.username}@{self.hostname}:{self.port}"

    def _build_client(self) -> SSHClient:
        client = SSHClient()
        client.load_system_host_keys()
        if self.strict_host_key_checking:
            client.set_missing_host_key_policy(paramiko.RejectPolicy())
        else:
            client.set_missing_host_key_policy(paramiko.WarningPolicy())
        return client

    def connect(self) -> None:
        """Open the SSH session, retrying transient network failures."""
        if self._connected:
            return

        retry_kwargs = {}
        if self.config_manager is not None:
            retry_kwargs = {
                "max_retries": self.config_manager.get_max_retries(),
                "initial_delay": self.config_manager.get_retry_initial_delay(),
                "max_delay": self.config_manager.get_retry_max_delay(),
                "exponential_base": self.config_manager.get_retry_exponential_base(),
                "jitter": self.config_manager.get_retry_jitter(),
            }

        @retry_with_backoff(**retry_kwargs)
        def _connect():
            if self.ssh_client is None:
                self.ssh_client = self._build_client()
            self.ssh_client.connect(
                hostname=self.hostname,
                port=self.port,
                username=self.username,
                password=self.password,
                key_filename=self.key_filename,
                timeout=self.connect_timeout,
                allow_agent=True,
                look_for_keys=self.password is None,
            )

        logger.info(f"Connecting to {self.describe()}")
        try:
            _connect()
        except paramiko.AuthenticationException as e:
            raise create_ssh_auth_error(self.username, self.hostname, e)
        except (paramiko.SSHException, OSError) as e:
            raise create_ssh_connection_error(self.hostname, self.port, e)
        self._connected = True

    def run_shell(self, command: str) -> CommandResult:
        """Run a command line on the remote host."""
        self.connect()
        logger.debug(f"[{self.describe()}] Running: {command}")
        channel = None
        try:
            _, stdout, _ = self.ssh_client.exec_command(command, timeout=self.command_timeout)
            channel = stdout.channel
            stdout_bytes, stderr_bytes, exit_status = self._drain(channel)
        except socket.timeout:
            logger.error(f"[{self.describe()}] Command timed out after {self.command_timeout}s: {command}")
            if channel is not None:
                channel.close()
            return CommandResult("", f"command timed out after {self.command_timeout}s", EXIT_TIMEOUT)
        except (paramiko.SSHException, OSError) as e:
            logger.error(f"[{self.describe()}] Error executing remote command '{command}': {e}")
            self._connected = False
            return CommandResult("", f"ssh transport error: {e}", EXIT_TRANSPORT_ERROR)

        stdout_data = stdout_bytes.decode("utf-8", errors="replace")
        stderr_data = stderr_bytes.decode("utf-8", errors="replace")
        logger.debug(f"[{self.describe()}] Exit {exit_status}, stderr: {stderr_data.strip()[:200]}")
        return CommandResult(stdout_data, stderr_data, exit_status)

    def _drain(self, channel) -> Tuple[bytes, bytes, int]:
        """Read stdout and stderr as they arrive, then collect the exit status.

        Unread output holds the SSH window shut and stalls the remote command,
        so the exit status is only requested once both streams are empty.

        Raises:
            socket.timeout: if the command runs longer than command_timeout
        """
        deadline = time.monotonic() + self.command_timeout if self.command_timeout else None
        stdout_chunks: List[bytes] = []
        stderr_chunks: List[bytes] = []
        while True:
            received = False
            if channel.recv_ready():
                stdout_chunks.append(channel.recv(READ_CHUNK))
                received = True
            if channel.recv_stderr_ready():
                stderr_chunks.append(channel.recv_stderr(READ_CHUNK))
                received = True
            if received:
                continue
            if channel.exit_status_ready():
                # Output that landed after the readiness checks above
                while channel.recv_ready():
                    stdout_chunks.append(channel.recv(READ_CHUNK))
                while channel.recv_stderr_ready():
                    stderr_chunks.append(channel.recv_stderr(READ_CHUNK))
                break
            if deadline is not None and time.monotonic() > deadline:
                raise socket.timeout(f"no exit status after {self.command_timeout}s")
            time.sleep(POLL_INTERVAL)
        return b"".join(stdout_chunks), b"".join(stderr_chunks), channel.recv_exit_status()

    def run(self, args: List[str]) -> CommandResult:
        return self.run_shell(shlex.join(args))

    def run_interactive(self, args: List[str]) -> int:
        raise NotImplementedError("Interactive sessions are only supported on the local engine")

    def which(self, program: str) -> Optional[str]:
        result = self.run_shell(f"command -v {shlex.quote(program)}")
        if not result.ok:
            return None
        return result.stdout.strip() or None

    def test_connection(self) -> bool:
        """Round-trip a trivial command to prove the session works."""
        result = self.run_shell("echo 'Connection successful'")
        return result.ok and "Connection successful" in result.stdout

    def close(self) -> None:
        if self.ssh_client is not None:
            self.ssh_client.close()
        self._connected = False

    def __enter__(self) -> "RemoteRunner":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
