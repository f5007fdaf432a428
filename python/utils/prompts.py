"""
Operator prompt surface for the interactive console.

All reads from the operator go through OperatorPrompt so that scripts and the
reconciliation driver can be exercised with scripted answers in tests.
"""

import getpass
from typing import Callable, List, Optional, Sequence, Tuple


class OperatorPrompt:
    """Asks the operator questions and prints status lines."""

    def __init__(
        self,
        input_func: Callable[[str], str] = input,
        output_func: Callable[..., None] = print,
        password_func: Callable[[str], str] = getpass.getpass,
    ):
        self._input = input_func
        self._output = output_func
        self._password = password_func

    # Output
    def say(self, message: str = "") -> None:
        self._output(message)

    def info(self, message: str) -> None:
        self._output(f"ℹ️  {message}")

    def success(self, message: str) -> None:
        self._output(f"✓ {message}")

    def warning(self, message: str) -> None:
        self._output(f"⚠️  {message}")

    def error(self, message: str) -> None:
        self._output(f"❌ {message}")

    def banner(self, title: str, lines: Sequence[str] = ()) -> None:
        self._output("\n" + "=" * 40)
        self._output(f"   {title}")
        for line in lines:
            self._output(f"   {line}")
        self._output("=" * 40)

    # Input
    def ask(self, prompt: str, default: Optional[str] = None) -> str:
        """Read a line of input, returning default when the operator just presses Enter."""
        try:
            answer = self._input(prompt).strip()
        except EOFError:
            answer = ""
        if not answer and default is not None:
            return default
        return answer

    def ask_password(self, prompt: str) -> str:
        try:
            return self._password(prompt)
        except EOFError:
            return ""

    def confirm(self, question: str) -> bool:
        """Ask a yes/no question until the operator answers one or the other."""
        while True:
            try:
                response = self._input(f"{question} (y/n): ").lower().strip()
            except EOFError:
                # Closed stdin never counts as consent
                return False
            if response in ["yes", "y"]:
                return True
            elif response in ["no", "n"]:
                return False
            else:
                self._output("Please enter 'yes' or 'no'.")

    def confirm_phrase(self, warning: str, phrase: str) -> bool:
        """Require the operator to type an exact phrase (e.g. 'DELETE ALL') for dangerous operations."""
        self.error(f"WARNING: {warning}")
        return self.ask(f"Type '{phrase}' to confirm: ") == phrase

    def choose_option(self, title: str, options: List[Tuple[str, str]], prompt: str = "Enter your choice: ") -> str:
        """Show a menu of (key, label) options and return the key the operator typed.

        The raw answer is returned even when it matches no option so callers can
        report "Invalid choice" in their own words.
        """
        self._output("")
        self._output(title)
        for key, label in options:
            self._output(f"  {key}) {label}")
        self._output("")
        return self.ask(prompt)

    def pause(self) -> None:
        self.ask("\nPress Enter to continue...")
