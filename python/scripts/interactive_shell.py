"""Start an interactive shell in a throwaway container from a chosen image."""

from utils.docker_client import DockerClient
from utils.logging_utils import get_logger
from utils.prompts import OperatorPrompt

logger = get_logger(__name__)

SHELLS = ("/bin/bash", "/bin/sh")


def run_interactive_shell(client: DockerClient, prompt: OperatorPrompt) -> bool:
    if client.is_remote:
        prompt.error("Interactive shells are only available for the local engine")
        return False

    prompt.info("Interactive Shell - Select Docker Image")
    image_refs = client.list_image_refs()
    if not image_refs:
        prompt.error("No Docker images found")
        return False

    options = [(str(number), ref) for number, ref in enumerate(image_refs, 1)]
    options.append(("0", "Back to main menu"))
    selection = prompt.choose_option("Available Docker images:", options, prompt="Enter image number: ")

    if selection == "0":
        return True
    if not selection.isdigit():
        prompt.error("Invalid selection. Please enter a number.")
        return False
    index = int(selection) - 1
    if not 0 <= index < len(image_refs):
        prompt.error("Invalid selection")
        return False

    selected_image = image_refs[index]
    prompt.info(f"Starting interactive shell for image: {selected_image}")
    prompt.warning("You will be placed in a shell inside the container.")
    prompt.info("Type 'exit' to return to this menu.")
    prompt.ask("Press Enter to continue...")

    for shell in SHELLS:
        exit_status = client.run_interactive(["run", "-it", "--rm", selected_image, shell])
        if exit_status == 0:
            prompt.success("Shell session ended")
            return True
        logger.debug(f"{shell} exited with status {exit_status} in {selected_image}")
        if shell != SHELLS[-1]:
            prompt.warning(f"{shell} not available, trying {SHELLS[-1]}...")

    prompt.error("Failed to start interactive shell")
    return False
