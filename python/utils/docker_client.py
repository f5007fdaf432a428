"""
Docker client for container-engine operations.

This module provides a standardized client for the docker CLI. It runs on top
of a command runner, so the same client drives a local engine or an engine on
a remote host reached over SSH.
"""

import json
from typing import Any, Dict, List, Optional

from utils.command_runner import (
    EXIT_NOT_FOUND,
    EXIT_TIMEOUT,
    EXIT_TRANSPORT_ERROR,
    CommandResult,
    LocalRunner,
)
from utils.error_utils import ResourceNotFound, create_engine_unavailable_error
from utils.logging_utils import get_logger

logger = get_logger(__name__)

UNAVAILABLE_INDICATORS = (
    "cannot connect to the docker daemon",
    "is the docker daemon running",
    "error during connect",
    "permission denied while trying to connect",
    "command not found",
    "timed out",
    "ssh transport error",
)

NOT_FOUND_INDICATORS = (
    "no such image",
    "no such container",
    "no such object",
)


def is_engine_unavailable(result: CommandResult) -> bool:
    """Return True when a failed command shows the engine itself was unreachable."""
    if result.ok:
        return False
    if result.exit_status in (EXIT_NOT_FOUND, EXIT_TIMEOUT, EXIT_TRANSPORT_ERROR):
        return True
    stderr = result.stderr.lower()
    return any(indicator in stderr for indicator in UNAVAILABLE_INDICATORS)


def is_not_found(result: CommandResult) -> bool:
    stderr = result.stderr.lower()
    return any(indicator in stderr for indicator in NOT_FOUND_INDICATORS)


def _parse_json_lines(output: str) -> List[Dict[str, Any]]:
    rows = []
    for line in output.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            rows.append(json.loads(line))
        except json.JSONDecodeError:
            logger.warning(f"Skipping unparseable engine output line: {line[:120]}")
    return rows


class DockerClient:
    """Standardized docker CLI client for image and container operations."""

    def __init__(self, runner=None, config_manager=None, binary: Optional[str] = None):
        """Initialize DockerClient.

        Args:
            runner: LocalRunner or RemoteRunner executing the commands (default: LocalRunner)
            config_manager: ConfigManager instance for binary name and timeouts
            binary: Docker client binary, overriding configuration
        """
        self.config_manager = config_manager
        if runner is None:
            timeout = config_manager.get_engine_timeout() if config_manager else 120
            runner = LocalRunner(timeout=timeout)
        self.runner = runner
        if binary:
            self.binary = binary
        elif config_manager is not None:
            self.binary = config_manager.get_docker_binary()
        else:
            self.binary = "docker"
        # Last engine message per reference whose deletion/removal failed
        self.last_errors: Dict[str, str] = {}

    @property
    def context(self) -> str:
        return self.runner.describe()

    @property
    def is_remote(self) -> bool:
        return self.context != "local"

    def run_docker_command(self, args: List[str]) -> CommandResult:
        """Run a docker subcommand, raising EngineUnavailable if the engine is unreachable."""
        result = self.runner.run([self.binary] + args)
        if is_engine_unavailable(result):
            logger.error(f"Docker engine unreachable ({self.context}): {result.stderr.strip()}")
            raise create_engine_unavailable_error(self.context, result.stderr or f"exit status {result.exit_status}")
        return result

    def _require_ok(self, result: CommandResult, action: str) -> CommandResult:
        # Listing failures mean we cannot see the engine's inventory at all
        if not result.ok:
            logger.error(f"Failed to {action}: {result.stderr.strip()}")
            raise create_engine_unavailable_error(self.context, result.stderr or f"failed to {action}")
        return result

    # Engine status
    def ping(self) -> str:
        """Return the engine server version, raising EngineUnavailable if it does not answer."""
        result = self.run_docker_command(["info", "--format", "{{.ServerVersion}}"])
        self._require_ok(result, "query engine info")
        return result.stdout.strip()

    # Images
    def list_image_ids(self, dangling: bool = False, all_layers: bool = False) -> List[str]:
        """List full image IDs in engine order, without duplicates."""
        args = ["images", "-q", "--no-trunc"]
        if all_layers:
            args.append("-a")
        if dangling:
            args.extend(["--filter", "dangling=true"])

        result = self._require_ok(self.run_docker_command(args), "list images")
        image_ids = []
        seen = set()
        for line in result.stdout.splitlines():
            image_id = line.strip()
            if image_id and image_id not in seen:
                seen.add(image_id)
                image_ids.append(image_id)
        return image_ids

    def inspect_images(self, image_ids: List[str]) -> List[Dict[str, Any]]:
        """Inspect images. IDs that no longer exist are silently omitted."""
        if not image_ids:
            return []

        result = self.run_docker_command(["image", "inspect"] + list(image_ids))
        if not result.ok and not is_not_found(result):
            self._require_ok(result, "inspect images")
        if not result.stdout.strip():
            return []
        try:
            return json.loads(result.stdout)
        except json.JSONDecodeError:
            logger.error(f"Failed to parse image inspection for {len(image_ids)} image(s)")
            return []

    def list_image_rows(self, dangling: bool = False) -> List[Dict[str, Any]]:
        """List images as the engine's table rows (Repository, Tag, ID, CreatedSince, Size)."""
        args = ["images", "--format", "{{json .}}"]
        if dangling:
            args.extend(["--filter", "dangling=true"])
        result = self._require_ok(self.run_docker_command(args), "list images")
        return _parse_json_lines(result.stdout)

    def list_image_refs(self) -> List[str]:
        """List images as REPOSITORY:TAG references, skipping untagged ones."""
        refs = []
        for row in self.list_image_rows():
            repository, tag = row.get("Repository", "<none>"), row.get("Tag", "<none>")
            if repository != "<none>" and tag != "<none>":
                refs.append(f"{repository}:{tag}")
        return refs

    def delete_image(self, image_ref: str) -> bool:
        """Delete an image. An image that is already gone counts as deleted."""
        return self._remove(["rmi", image_ref], image_ref, "image")

    def force_delete_image(self, image_ref: str) -> bool:
        """Force delete an image, bypassing the engine's in-use check."""
        return self._remove(["rmi", "-f", image_ref], image_ref, "image")

    def prune_images(self) -> CommandResult:
        return self.run_docker_command(["image", "prune", "-f"])

    def delete_all_images(self) -> CommandResult:
        """Force delete every image on the engine."""
        image_ids = self.list_image_ids()
        if not image_ids:
            return CommandResult("", "", 0)
        return self.run_docker_command(["rmi", "-f"] + image_ids)

    # Containers
    def list_containers(self, all_containers: bool = True, filters: Optional[Dict[str, str]] = None) -> List[Dict[str, Any]]:
        """List containers as parsed rows (ID, Names, Image, Status, State, ...)."""
        args = ["ps", "--no-trunc", "--format", "{{json .}}"]
        if all_containers:
            args.append("-a")
        for key, value in (filters or {}).items():
            args.extend(["--filter", f"{key}={value}"])
        result = self._require_ok(self.run_docker_command(args), "list containers")
        return _parse_json_lines(result.stdout)

    def containers_by_ancestor(self, image_id: str) -> List[Dict[str, Any]]:
        """List every container (running or stopped) created from the image."""
        return self.list_containers(all_containers=True, filters={"ancestor": image_id})

    def container_status(self, container_ref: str) -> Optional[str]:
        """Return the status text of a container looked up by ID, then by name."""
        for key in ("id", "name"):
            rows = self.list_containers(all_containers=True, filters={key: container_ref})
            if rows:
                return rows[0].get("Status", "")
        return None

    def remove_container(self, container_ref: str) -> bool:
        return self._remove(["rm", container_ref], container_ref, "container")

    def force_remove_container(self, container_ref: str) -> bool:
        """Force remove a container, stopping it first if it is running."""
        return self._remove(["rm", "-f", container_ref], container_ref, "container")

    def prune_containers(self) -> CommandResult:
        return self.run_docker_command(["container", "prune", "-f"])

    def system_prune(self) -> CommandResult:
        return self.run_docker_command(["system", "prune", "-f"])

    # Pass-through
    def run_custom(self, command: str) -> CommandResult:
        """Run an operator-supplied command line as-is."""
        return self.runner.run_shell(command)

    def run_interactive(self, args: List[str]) -> int:
        return self.runner.run_interactive([self.binary] + args)

    def _remove(self, args: List[str], ref: str, resource_type: str) -> bool:
        result = self.run_docker_command(args)
        if result.ok:
            self.last_errors.pop(ref, None)
            logger.info(f"Removed {resource_type} {ref} ({' '.join(args[:-1])})")
            return True
        if is_not_found(result):
            self.last_errors.pop(ref, None)
            logger.info(ResourceNotFound(ref, resource_type).message)
            return True
        self.last_errors[ref] = result.stderr.strip()
        logger.warning(f"Failed to remove {resource_type} {ref}: {result.stderr.strip()}")
        return False
