"""Read-only listings of images and containers."""

from utils.docker_client import DockerClient
from utils.prompts import OperatorPrompt
from utils.report_utils import format_container_rows, format_image_rows
from scripts.containers import run_container_menu


def list_images(client: DockerClient, prompt: OperatorPrompt) -> bool:
    prompt.info("Listing Docker images...")
    prompt.say(format_image_rows(client.list_image_rows()))
    return True


def list_containers(client: DockerClient, prompt: OperatorPrompt) -> bool:
    """Show running containers; on request show all of them and offer container management."""
    prompt.info("Listing Docker Processes (Containers)...")
    prompt.say("")
    prompt.info("Running containers:")
    prompt.say(format_container_rows(client.list_containers(all_containers=False)))
    prompt.say("")

    if not prompt.confirm("Show all containers (including stopped)?"):
        return True

    prompt.say("")
    prompt.info("All containers (including stopped):")
    prompt.say(format_container_rows(client.list_containers(all_containers=True)))
    return run_container_menu(client, prompt)
