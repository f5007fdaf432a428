"""
Container management: remove stopped containers by ID or name, prune all
stopped containers, or force remove a running one.
"""

from utils.docker_client import DockerClient
from utils.logging_utils import get_logger
from utils.prompts import OperatorPrompt
from utils.report_utils import format_container_rows

logger = get_logger(__name__)

CONTAINER_OPTIONS = [
    ("1", "Remove stopped container by ID"),
    ("2", "Remove stopped container by name"),
    ("3", "Remove all stopped containers"),
    ("4", "Force remove running container"),
    ("0", "Back to main menu"),
]


def remove_container(client: DockerClient, prompt: OperatorPrompt, label: str, lookup: str) -> bool:
    """Remove one container, offering a force removal when the plain removal fails."""
    container_ref = prompt.ask(f"Enter CONTAINER {label}: ")
    if not container_ref:
        prompt.error(f"CONTAINER {label} cannot be empty")
        return False

    rows = client.list_containers(all_containers=True, filters={lookup: container_ref})
    if not rows:
        prompt.error(f"Container not found: {container_ref}")
        return False

    prompt.warning(f"About to remove container: {container_ref}")
    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return True

    if client.remove_container(container_ref):
        prompt.success("Container removed successfully")
        return True

    prompt.error(f"Failed to remove container: {client.last_errors.get(container_ref, 'unknown error')}")
    if prompt.confirm("Try force remove?"):
        if client.force_remove_container(container_ref):
            prompt.success("Container force removed")
            return True
        prompt.error("Failed to force remove container")
    return False


def remove_stopped_containers(client: DockerClient, prompt: OperatorPrompt) -> bool:
    stopped = client.list_containers(all_containers=True, filters={"status": "exited"})
    if not stopped:
        prompt.info("No stopped containers found")
        return True

    prompt.say("")
    prompt.info("Stopped containers:")
    prompt.say(format_container_rows(stopped))
    prompt.say("")

    prompt.warning("This will remove ALL stopped containers")
    if not prompt.confirm("Are you sure?"):
        prompt.info("Operation cancelled")
        return True

    prompt.info("Removing stopped containers...")
    result = client.prune_containers()
    if not result.ok:
        prompt.error(f"Failed to remove stopped containers: {result.stderr.strip()}")
        return False
    prompt.success("All stopped containers removed successfully")
    return True


def force_remove_running_container(client: DockerClient, prompt: OperatorPrompt) -> bool:
    container_ref = prompt.ask("Enter CONTAINER ID or NAME to force remove: ")
    if not container_ref:
        prompt.error("CONTAINER reference cannot be empty")
        return False

    if client.container_status(container_ref) is None:
        prompt.error(f"Container not found: {container_ref}")
        return False

    if not prompt.confirm_phrase("This will force remove a container (even if running)", "FORCE REMOVE"):
        prompt.info("Operation cancelled")
        return True

    if client.force_remove_container(container_ref):
        prompt.success("Container force removed successfully")
        return True
    prompt.error("Failed to force remove container")
    return False


def run_container_menu(client: DockerClient, prompt: OperatorPrompt) -> bool:
    choice = prompt.choose_option("Container Management Options:", CONTAINER_OPTIONS)
    if choice == "1":
        return remove_container(client, prompt, "ID", "id")
    if choice == "2":
        return remove_container(client, prompt, "NAME", "name")
    if choice == "3":
        return remove_stopped_containers(client, prompt)
    if choice == "4":
        return force_remove_running_container(client, prompt)
    if choice != "0":
        prompt.info("No action selected")
    return True
