"""
Health check utilities for verifying the container engine is usable.

This module provides health checks for:
- Docker engine reachability (local or remote)
- The Colima VM runtime on macOS (checked and started on demand)
"""

import platform
from dataclasses import dataclass
from typing import Dict, List, Optional

from utils.error_utils import ActionableError
from utils.logging_utils import get_logger

logger = get_logger(__name__)


def detect_os(system: Optional[str] = None) -> str:
    """Return 'macos', 'linux', 'windows' or 'unknown' for the current platform."""
    system = system if system is not None else platform.system()
    if system.startswith("Darwin"):
        return "macos"
    if system.startswith("Linux"):
        return "linux"
    if system.startswith(("Windows", "CYGWIN", "MINGW", "MSYS")):
        return "windows"
    return "unknown"


@dataclass
class HealthCheckResult:
    """Result of a health check"""

    name: str
    status: bool  # True if healthy, False if unhealthy
    message: str
    details: Optional[Dict] = None


class HealthChecker:
    """Performs health checks on the container engine"""

    def __init__(self, client, os_name: Optional[str] = None):
        self.client = client
        self.os_name = os_name or detect_os()
        self.logger = get_logger(self.__class__.__name__)

    def check_engine(self) -> HealthCheckResult:
        """Check if the Docker engine answers

        Returns:
            HealthCheckResult indicating engine reachability
        """
        if not self.client.is_remote and not self.client.runner.which(self.client.binary):
            return HealthCheckResult(
                name="engine",
                status=False,
                message="Docker is not installed or not in PATH",
                details={"binary": self.client.binary},
            )

        try:
            version = self.client.ping()
            return HealthCheckResult(
                name="engine",
                status=True,
                message="Docker is running and accessible",
                details={"context": self.client.context, "server_version": version},
            )
        except ActionableError as e:
            self.logger.debug(f"Engine check failed: {e.message}")
            return HealthCheckResult(
                name="engine",
                status=False,
                message="Docker command found but not responding. Is Docker running?",
                details={
                    "context": self.client.context,
                    "error": e.details.get("error_message", e.message),
                    "suggestions": e.suggestions,
                },
            )

    def check_and_start_colima(self) -> HealthCheckResult:
        """Check the Colima VM on macOS and start it if it is not running

        Returns:
            HealthCheckResult indicating whether Colima is (now) running
        """
        runner = self.client.runner
        if not runner.which("colima"):
            return HealthCheckResult(
                name="colima",
                status=False,
                message="Colima is not installed. Please install it first.",
                details={"suggestions": ["Visit: https://github.com/abiosoft/colima", "Install via: brew install colima"]},
            )

        status = runner.run(["colima", "status"])
        if status.ok:
            return HealthCheckResult(
                name="colima",
                status=True,
                message="Colima is already running",
                details={"status": (status.stdout or status.stderr).strip()},
            )

        self.logger.warning("Colima is not running. Starting Colima...")
        started = runner.run(["colima", "start"])
        if started.ok:
            return HealthCheckResult(name="colima", status=True, message="Colima started successfully")
        return HealthCheckResult(
            name="colima",
            status=False,
            message="Failed to start Colima",
            details={"error": started.stderr.strip()},
        )

    def run_all_checks(self) -> List[HealthCheckResult]:
        """Run the checks that apply to this platform"""
        results = []
        if self.os_name == "macos" and not self.client.is_remote:
            results.append(self.check_and_start_colima())
        results.append(self.check_engine())
        return results

    def print_health_report(self, results: List[HealthCheckResult], prompt) -> None:
        """Print health check results through the operator prompt"""
        for result in results:
            if result.status:
                prompt.success(result.message)
            else:
                prompt.error(result.message)
            for suggestion in (result.details or {}).get("suggestions", []):
                prompt.say(f"   {suggestion}")
