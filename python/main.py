#!/usr/bin/env python3
"""
Interactive Docker management console.

Lists, deletes and inspects local Docker images and containers, reconciles
stubborn <none>:<none> images, and manages a remote engine over SSH.

Usage examples:
  # Interactive mode
  docker-console

  # Remote Docker management
  docker-console -u john -h 192.168.1.100
  docker-console -u admin -p 'myp@ss' -h server.example.com
  docker-console -u root -h 10.0.0.1 -P 2222
"""

import argparse
import os
import sys
from typing import List, Optional

from utils.config_manager import ConfigManager, ConfigValidationError, config_manager as default_config_manager
from utils.docker_client import DockerClient
from utils.error_utils import ActionableError, create_config_error
from utils.health_checks import HealthChecker, detect_os
from utils.logging_utils import get_logger, log_exception, set_log_level
from utils.prompts import OperatorPrompt
from scripts.delete_images import run_delete_menu
from scripts.interactive_shell import run_interactive_shell
from scripts.listing import list_containers, list_images
from scripts.remote_manager import run_remote_manager

logger = get_logger(__name__)

EPILOG = """
Configuration:
  Defaults come from config.yaml (or the file named by --config / CONFIG_FILE).
  Environment variables override it:
  - DOCKER_BINARY, DOCKER_TIMEOUT: Docker client binary and per-command timeout
  - SSH_HOSTNAME, SSH_USERNAME, SSH_PORT, SSH_PASSWORD, SSH_KEY_FILE
  - LOG_LEVEL: DEBUG, INFO, WARNING or ERROR

Notes:
  - Using -p to pass passwords via CLI is insecure. Prefer SSH keys.
  - Use single quotes around passwords with special characters.
  - The remote host must have Docker installed.
"""


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    # -h is the remote hostname, so argparse's own -h/--help is disabled
    parser = argparse.ArgumentParser(
        description="Docker management console with remote Docker management via SSH",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=EPILOG,
        add_help=False,
    )
    parser.add_argument("-u", dest="username", help="SSH username for remote Docker management")
    parser.add_argument("-p", dest="password", help="SSH password (optional, not recommended for security)")
    parser.add_argument("-h", dest="hostname", help="Remote hostname or IP address")
    parser.add_argument("-P", dest="port", type=int, help="SSH port (default: 22)")
    parser.add_argument("--config", help="Path to configuration YAML file")
    parser.add_argument("--show-config", action="store_true", help="Print the effective configuration and exit")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    return parser.parse_args(argv)


def main_menu_options(os_name: str):
    status_label = "Check/Start Colima (macOS)" if os_name == "macos" else "Check Docker Status"
    return [
        ("0", status_label),
        ("1", "List Docker Images"),
        ("2", "List Docker Processes"),
        ("3", "Delete Docker Images"),
        ("4", "Interactive Shell"),
        ("5", "Remote Docker Management (SSH)"),
        ("q", "Quit"),
    ]


def check_status(client: DockerClient, prompt: OperatorPrompt, os_name: str) -> bool:
    checker = HealthChecker(client, os_name=os_name)
    results = checker.run_all_checks()
    checker.print_health_report(results, prompt)
    return all(result.status for result in results)


def interactive_mode(client: DockerClient, prompt: OperatorPrompt, config_manager, os_name: str, stdin=None) -> int:
    """Run the main menu until the operator quits. Returns the exit status."""
    stdin = stdin or sys.stdin
    if not stdin.isatty():
        prompt.error("This script requires an interactive terminal")
        return 1

    actions = {
        "0": lambda: check_status(client, prompt, os_name),
        "1": lambda: list_images(client, prompt),
        "2": lambda: list_containers(client, prompt),
        "3": lambda: run_delete_menu(client, prompt),
        "4": lambda: run_interactive_shell(client, prompt),
        "5": lambda: run_remote_manager(prompt, config_manager) == 0,
    }

    while True:
        prompt.banner("Docker Management Script")
        choice = prompt.choose_option("", main_menu_options(os_name))
        if choice.lower() == "q":
            prompt.info("Exiting...")
            return 0

        action = actions.get(choice)
        if action is None:
            prompt.error("Invalid choice. Please try again.")
        else:
            try:
                action()
            except ActionableError as e:
                logger.error(f"Menu action {choice} failed: {e.message}")
                prompt.say(str(e))
        prompt.pause()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    prompt = OperatorPrompt()

    try:
        if args.config and not os.path.exists(args.config):
            raise create_config_error("--config", args.config, "the path of an existing YAML file")
        config_manager = ConfigManager(config_file=args.config) if args.config else default_config_manager
    except ConfigValidationError as e:
        prompt.error(str(e))
        return 1
    except ActionableError as e:
        prompt.say(str(e))
        return 1

    set_log_level("DEBUG" if args.verbose else config_manager.get_log_level())
    if args.show_config:
        config_manager.print_config()
        return 0

    os_name = detect_os()
    logger.debug(f"Detected OS: {os_name}")

    if args.hostname:
        return run_remote_manager(
            prompt,
            config_manager,
            username=args.username,
            password=args.password,
            hostname=args.hostname,
            port=args.port,
        )

    client = DockerClient(config_manager=config_manager)
    try:
        return interactive_mode(client, prompt, config_manager, os_name)
    except KeyboardInterrupt:
        prompt.say("")
        prompt.info("Exiting...")
        return 130
    except Exception as e:
        log_exception(logger, "Error in main", exc_info=e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
