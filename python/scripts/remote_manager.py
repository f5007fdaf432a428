#!/usr/bin/env python3
"""
Remote Docker management over SSH.

Connects to a remote host with paramiko, then offers the same image and
container operations as the local console, run by the remote engine.

Usage examples:
  # Prompt for everything
  python -m scripts.remote_manager

  # Key-based login on a non-standard port
  python -m scripts.remote_manager -u root -h 10.0.0.1 -P 2222
"""

import argparse
import sys
from typing import Optional

from utils.command_runner import RemoteRunner
from utils.config_manager import config_manager as default_config_manager
from utils.docker_client import DockerClient
from utils.error_utils import ActionableError
from utils.logging_utils import get_logger, set_log_level
from utils.prompts import OperatorPrompt
from utils.report_utils import format_container_rows, format_image_rows
from scripts.delete_images import reconcile_dangling_images

logger = get_logger(__name__)

REMOTE_OPTIONS = [
    ("1", "List Remote Docker Images"),
    ("2", "List Remote Docker Processes"),
    ("3", "Remove Remote Docker Image"),
    ("4", "Remove Remote Docker Container"),
    ("5", "Remove All Stopped Containers"),
    ("6", "Docker System Prune"),
    ("7", "Execute Custom Docker Command"),
    ("8", "Delete All <none>:<none> Images"),
    ("0", "Back to main menu"),
]


def collect_connection_details(prompt: OperatorPrompt, config_manager, username=None, password=None, hostname=None, port=None):
    """Fill in whatever the command line and configuration left out by asking the operator.

    Returns:
        (username, password, hostname, port), or None if a required value is empty
    """
    hostname = hostname or config_manager.get_ssh_hostname() or prompt.ask("Enter hostname or IP address: ")
    if not hostname:
        prompt.error("Hostname cannot be empty")
        return None

    username = username or config_manager.get_ssh_username() or prompt.ask("Enter username: ")
    if not username:
        prompt.error("Username cannot be empty")
        return None

    if port is None:
        port_input = prompt.ask(f"Enter port (default: {config_manager.get_ssh_port()}): ")
        port = port_input or config_manager.get_ssh_port()
    try:
        port = int(port)
    except (TypeError, ValueError):
        prompt.error(f"Invalid port: {port}")
        return None

    if not password and not config_manager.get_ssh_password():
        password = prompt.ask_password("Enter password (leave empty to use SSH keys): ") or None
    return username, password, hostname, port


def _remove_image(client: DockerClient, prompt: OperatorPrompt) -> None:
    prompt.info("Remote Docker images:")
    prompt.say(format_image_rows(client.list_image_rows()))
    image_ref = prompt.ask("\nEnter IMAGE ID or REPOSITORY:TAG to remove: ")
    if not image_ref:
        prompt.error("Image reference cannot be empty")
        return
    prompt.warning(f"About to remove image: {image_ref} from remote host")
    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return
    if client.delete_image(image_ref):
        prompt.success("Image removed successfully")
    else:
        prompt.error(f"Failed to remove image: {client.last_errors.get(image_ref, 'unknown error')}")


def _remove_container(client: DockerClient, prompt: OperatorPrompt) -> None:
    prompt.info("Remote Docker containers:")
    prompt.say(format_container_rows(client.list_containers(all_containers=True)))
    container_ref = prompt.ask("\nEnter CONTAINER ID or NAME to remove: ")
    if not container_ref:
        prompt.error("Container reference cannot be empty")
        return
    prompt.warning(f"About to remove container: {container_ref} from remote host")
    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return
    if client.force_remove_container(container_ref):
        prompt.success("Container removed successfully")
    else:
        prompt.error(f"Failed to remove container: {client.last_errors.get(container_ref, 'unknown error')}")


def _run_prune(prompt: OperatorPrompt, warning: str, prune, done: str) -> None:
    prompt.warning(warning)
    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return
    result = prune()
    if result.stdout.strip():
        prompt.say(result.stdout.rstrip())
    if result.ok:
        prompt.success(done)
    else:
        prompt.error(result.stderr.strip() or "Prune failed")


def _run_custom_command(client: DockerClient, prompt: OperatorPrompt) -> None:
    command = prompt.ask("Enter custom Docker command (e.g., 'docker ps', 'docker stats --no-stream'): ")
    if not command:
        prompt.error("Command cannot be empty")
        return
    prompt.info(f"Executing: {command}")
    prompt.say("")
    result = client.run_custom(command)
    if result.stdout:
        prompt.say(result.stdout.rstrip())
    if not result.ok:
        prompt.error(f"Command exited with status {result.exit_status}: {result.stderr.strip()}")


def remote_menu_loop(client: DockerClient, prompt: OperatorPrompt) -> int:
    """Run the remote menu until the operator goes back. Returns the exit status."""
    while True:
        choice = prompt.choose_option(f"Remote Docker Management ({client.context})", REMOTE_OPTIONS)
        try:
            if choice == "0":
                return 0
            elif choice == "1":
                prompt.info("Listing remote Docker images...")
                prompt.say(format_image_rows(client.list_image_rows()))
            elif choice == "2":
                prompt.info("Listing remote Docker processes...")
                prompt.say(format_container_rows(client.list_containers(all_containers=True)))
            elif choice == "3":
                _remove_image(client, prompt)
            elif choice == "4":
                _remove_container(client, prompt)
            elif choice == "5":
                _run_prune(
                    prompt,
                    "About to remove all stopped containers on remote host",
                    client.prune_containers,
                    "Stopped containers removed",
                )
            elif choice == "6":
                _run_prune(
                    prompt,
                    "This will clean up unused Docker data on remote host",
                    client.system_prune,
                    "System prune completed",
                )
            elif choice == "7":
                _run_custom_command(client, prompt)
            elif choice == "8":
                reconcile_dangling_images(client, prompt)
            else:
                prompt.error("Invalid choice")
        except ActionableError as e:
            logger.error(f"Remote action {choice} failed: {e.message}")
            prompt.say(str(e))
        prompt.pause()


def run_remote_manager(
    prompt: OperatorPrompt,
    config_manager=None,
    username: Optional[str] = None,
    password: Optional[str] = None,
    hostname: Optional[str] = None,
    port: Optional[int] = None,
    ssh_client=None,
) -> int:
    """Connect to a remote engine and run the remote management menu.

    Returns:
        0 when the operator leaves the menu, 1 if the connection could not be made
    """
    config_manager = config_manager or default_config_manager
    prompt.info("Remote Docker Management")
    prompt.say("")

    details = collect_connection_details(prompt, config_manager, username, password, hostname, port)
    if details is None:
        return 1
    username, password, hostname, port = details

    runner = RemoteRunner.from_config(
        config_manager,
        hostname=hostname,
        username=username,
        port=port,
        password=password,
        ssh_client=ssh_client,
    )
    prompt.info(f"Testing connection to: {username}@{hostname}:{port}")
    try:
        if not runner.test_connection():
            prompt.error("Failed to connect to remote host")
            return 1
    except ActionableError as e:
        prompt.error("Failed to connect to remote host")
        prompt.say(str(e))
        return 1
    prompt.success("Connected successfully")

    try:
        return remote_menu_loop(DockerClient(runner=runner, config_manager=config_manager), prompt)
    finally:
        runner.close()


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Manage a remote Docker engine over SSH", add_help=False)
    parser.add_argument("-u", dest="username", help="SSH username")
    parser.add_argument("-p", dest="password", help="SSH password (prefer SSH keys)")
    parser.add_argument("-h", dest="hostname", help="Remote hostname or IP address")
    parser.add_argument("-P", dest="port", type=int, help="SSH port (default: 22)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    return parser.parse_args()


def main() -> int:
    set_log_level(default_config_manager.get_log_level())
    args = parse_arguments()
    if args.verbose:
        set_log_level("DEBUG")
    return run_remote_manager(
        OperatorPrompt(),
        username=args.username,
        password=args.password,
        hostname=args.hostname,
        port=args.port,
    )


if __name__ == "__main__":
    sys.exit(main())
