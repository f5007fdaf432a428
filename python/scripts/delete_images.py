#!/usr/bin/env python3
"""
Delete Docker images: by ID, by REPOSITORY:TAG, prune, all dangling images
(with stubborn-image reconciliation) or everything.

Usage examples:
  # Interactive deletion menu
  python -m scripts.delete_images

  # Go straight to reconciling <none>:<none> images
  python -m scripts.delete_images --dangling
"""

import argparse
import sys
from typing import Optional

from utils.config_manager import config_manager
from utils.docker_client import DockerClient
from utils.error_utils import ActionableError
from utils.inventory import ImageFilter, ImageInventory
from utils.logging_utils import get_logger, set_log_level
from utils.prompts import OperatorPrompt
from utils.reconciliation import ReconciliationDriver, ReconciliationReport
from utils.report_utils import format_image_rows, format_images_table

logger = get_logger(__name__)

DELETE_OPTIONS = [
    ("1", "Delete image by IMAGE ID"),
    ("2", "Delete image by REPOSITORY:TAG"),
    ("3", "Delete all unused images (prune)"),
    ("4", "Delete all <none>:<none> images"),
    ("5", "Delete all images (DANGEROUS)"),
    ("0", "Back to main menu"),
]


def delete_image_by_ref(client: DockerClient, prompt: OperatorPrompt, label: str) -> bool:
    """Delete one image named by the operator, offering -f when the plain delete fails."""
    image_ref = prompt.ask(f"Enter {label}: ")
    if not image_ref:
        prompt.error(f"{label} cannot be empty")
        return False

    prompt.warning(f"About to delete image: {image_ref}")
    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return True

    if client.delete_image(image_ref):
        prompt.success("Image deleted successfully")
        return True

    prompt.error(f"Failed to delete image: {client.last_errors.get(image_ref, 'unknown error')}")
    if prompt.confirm("Try with -f flag?"):
        if client.force_delete_image(image_ref):
            prompt.success("Image force deleted")
            return True
        prompt.error("Failed even with force")
    return False


def prune_unused_images(client: DockerClient, prompt: OperatorPrompt) -> bool:
    prompt.warning("This will delete all dangling images...")
    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return True
    result = client.prune_images()
    if result.stdout.strip():
        prompt.say(result.stdout.rstrip())
    if not result.ok:
        prompt.error(f"Failed to prune images: {result.stderr.strip()}")
        return False
    prompt.success("Unused images pruned")
    return True


def reconcile_dangling_images(client: DockerClient, prompt: OperatorPrompt) -> Optional[ReconciliationReport]:
    """Delete every <none>:<none> image, walking the operator through stubborn ones.

    Returns the reconciliation report, or None when the operator cancelled before
    anything was attempted.

    Raises:
        EngineUnavailable: if the engine cannot be reached
    """
    inventory = ImageInventory(client)
    driver = ReconciliationDriver(client, prompt, inventory=inventory)

    prompt.warning("This will delete all <none>:<none> images...")
    images = inventory.list_images(ImageFilter.DANGLING)
    if not images:
        return driver.run([])

    prompt.info("Images to be deleted:")
    prompt.say(format_images_table(images))
    prompt.say("")

    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return None

    return driver.run([image.id for image in images])


def delete_all_images(client: DockerClient, prompt: OperatorPrompt) -> bool:
    if not prompt.confirm_phrase("This will delete ALL Docker images!", "DELETE ALL"):
        prompt.info("Operation cancelled")
        return True
    result = client.delete_all_images()
    if not result.ok:
        prompt.error(f"Some images could not be deleted: {result.stderr.strip()}")
        return False
    prompt.success("All images deleted")
    return True


def run_delete_menu(client: DockerClient, prompt: OperatorPrompt) -> bool:
    """Show the images, then run the deletion option the operator picks."""
    prompt.info("Docker Image Deletion Menu")
    prompt.say(format_image_rows(client.list_image_rows()))

    choice = prompt.choose_option("Select deletion option:", DELETE_OPTIONS)
    if choice == "1":
        return delete_image_by_ref(client, prompt, "IMAGE ID")
    if choice == "2":
        return delete_image_by_ref(client, prompt, "REPOSITORY:TAG (e.g., nginx:latest)")
    if choice == "3":
        return prune_unused_images(client, prompt)
    if choice == "4":
        report = reconcile_dangling_images(client, prompt)
        return report is None or report.kept_count == 0
    if choice == "5":
        return delete_all_images(client, prompt)
    if choice == "0":
        return True
    prompt.error("Invalid choice")
    return False


def parse_arguments() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Delete Docker images, reconciling stubborn ones")
    parser.add_argument("--dangling", action="store_true", help="Reconcile all <none>:<none> images without showing the menu")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def main() -> int:
    set_log_level(config_manager.get_log_level())
    args = parse_arguments()
    if args.verbose:
        set_log_level("DEBUG")

    client = DockerClient(config_manager=config_manager)
    prompt = OperatorPrompt()
    try:
        if args.dangling:
            report = reconcile_dangling_images(client, prompt)
            return 0 if report is None or report.kept_count == 0 else 1
        return 0 if run_delete_menu(client, prompt) else 1
    except ActionableError as e:
        prompt.say(str(e))
        return 1


if __name__ == "__main__":
    sys.exit(main())
