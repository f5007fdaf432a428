"""
Error message utilities for providing actionable guidance to users.

This module provides the error taxonomy used by the console (engine
unavailable, resource not found, deletion blocked, remediation declined) and
factory functions that attach suggested fixes and troubleshooting details.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCategory(Enum):
    """Categories of errors for better error handling"""
    CONNECTION = "connection"
    AUTHENTICATION = "authentication"
    CONFIGURATION = "configuration"
    PERMISSION = "permission"
    RESOURCE = "resource"
    NETWORK = "network"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ActionableError(Exception):
    """Exception with actionable guidance for users"""

    def __init__(self, message: str, category: ErrorCategory = ErrorCategory.UNKNOWN,
                 suggestions: Optional[List[str]] = None, details: Optional[Dict[str, Any]] = None):
        """Initialize actionable error

        Args:
            message: Primary error message
            category: Error category for classification
            suggestions: List of suggested fixes
            details: Additional context information
        """
        self.message = message
        self.category = category
        self.suggestions = suggestions or []
        self.details = details or {}
        super().__init__(self.format_message())

    def format_message(self) -> str:
        """Format the complete error message with suggestions"""
        lines = [f"❌ {self.message}"]

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        if self.details:
            lines.append("\n📋 Additional details:")
            for key, value in self.details.items():
                lines.append(f"   {key}: {value}")

        return "\n".join(lines)


class EngineUnavailable(ActionableError):
    """The container engine cannot be reached at all (fatal for the current operation)."""


class ResourceNotFound(ActionableError):
    """An image or container vanished between query and action; treated as already satisfied."""

    def __init__(self, resource_id: str, resource_type: str = "image"):
        self.resource_id = resource_id
        self.resource_type = resource_type
        super().__init__(
            message=f"{resource_type.capitalize()} not found (may have already been removed): {resource_id}",
            category=ErrorCategory.RESOURCE,
        )


class DeleteBlocked(ActionableError):
    """The engine refused a deletion because other resources depend on the image."""

    def __init__(self, image_id: str, causes: List[str], engine_message: str = ""):
        self.image_id = image_id
        self.causes = list(causes)
        details = {"causes": ", ".join(self.causes)}
        if engine_message:
            details["engine_message"] = engine_message
        super().__init__(
            message=f"Deletion of image {image_id} is blocked",
            category=ErrorCategory.RESOURCE,
            suggestions=[
                "Remove the containers created from this image",
                "Delete the child images layered on top of it first",
                "Force delete the image if the dependents are disposable",
            ],
            details=details,
        )


class RemediationDeclined(ActionableError):
    """The operator chose not to escalate; the affected images are kept."""

    def __init__(self, step: str, image_ids: List[str]):
        self.step = step
        self.image_ids = list(image_ids)
        super().__init__(
            message=f"Operator declined {step} for {len(self.image_ids)} image(s)",
            category=ErrorCategory.RESOURCE,
        )


def create_engine_unavailable_error(context: str, error: Any) -> EngineUnavailable:
    """Create actionable error when the Docker engine cannot be reached"""
    error_str = str(error).lower()

    suggestions = [
        "Check that Docker is installed and on the PATH",
        "Verify the Docker daemon is running (docker info)",
        "Check that your user may access the Docker socket (docker group membership)",
    ]

    if "not found" in error_str or "no such file" in error_str:
        suggestions.insert(0, "Install Docker or set DOCKER_BINARY / engine.binary to the client path")

    if "colima" in error_str or "docker.sock" in error_str:
        suggestions.insert(1, "On macOS, start the Colima VM first (menu option 0)")

    if "timed out" in error_str or "timeout" in error_str:
        suggestions.insert(0, "Increase engine.timeout in config.yaml if the engine is slow to respond")

    if context.startswith("ssh://"):
        suggestions.append("Verify the SSH session to the remote host is still alive")

    return EngineUnavailable(
        message=f"Docker engine is not reachable ({context})",
        category=ErrorCategory.CONNECTION,
        suggestions=suggestions,
        details={
            "context": context,
            "error_message": str(error).strip(),
        }
    )


def create_ssh_connection_error(hostname: str, port: int, error: Exception) -> ActionableError:
    """Create actionable error for SSH connection failures"""
    error_str = str(error).lower()

    suggestions = [
        f"Verify the host is reachable: {hostname}:{port}",
        "Check that the SSH server is running on the remote host",
        "Verify firewall rules allow access to the SSH port",
    ]

    if "timed out" in error_str or "timeout" in error_str:
        suggestions.insert(1, "Increase ssh.connect_timeout in config.yaml")

    if "name or service not known" in error_str or "nodename" in error_str:
        suggestions.insert(0, "Verify DNS resolution for the remote hostname")

    if "host key" in error_str:
        suggestions.insert(0, "Add the host to ~/.ssh/known_hosts or set ssh.strict_host_key_checking to false")

    return ActionableError(
        message=f"Failed to connect to remote host {hostname}:{port}",
        category=ErrorCategory.CONNECTION,
        suggestions=suggestions,
        details={
            "hostname": hostname,
            "port": port,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )


def create_ssh_auth_error(username: str, hostname: str, error: Exception) -> ActionableError:
    """Create actionable error for SSH authentication failures"""
    return ActionableError(
        message=f"Failed to authenticate as {username}@{hostname}",
        category=ErrorCategory.AUTHENTICATION,
        suggestions=[
            "Verify the username is correct",
            "Load your key into ssh-agent or set SSH_KEY_FILE / ssh.key_filename",
            "If using a password, verify SSH_PASSWORD or the -p flag",
            "Check that the remote sshd allows the chosen authentication method",
        ],
        details={
            "username": username,
            "hostname": hostname,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    )


def create_config_error(field: str, value: Any, expected: str) -> ActionableError:
    """Create actionable error for configuration issues"""
    return ActionableError(
        message=f"Invalid configuration value for {field}",
        category=ErrorCategory.CONFIGURATION,
        suggestions=[
            f"Set {field} to {expected}",
            "Check config.yaml (or the file named by CONFIG_FILE) for typos",
            "Check environment variables that override config.yaml",
        ],
        details={
            "field": field,
            "current_value": value,
            "expected": expected
        }
    )
