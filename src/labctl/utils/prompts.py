"""Operator input providers.

Every interactive question the provisioning sequence asks goes through an
InputProvider, so tests and unattended runs can swap the console for a
scripted or non-interactive implementation.
"""

import os
from collections.abc import Iterable
from typing import Protocol

from rich.prompt import Prompt

from labctl.errors import OperatorInputRequired
from labctl.utils.output import console, warn


class InputProvider(Protocol):
    """Capabilities the provisioning steps need from an operator."""

    interactive: bool

    def read_secret(self, prompt: str) -> str:
        """Read a value without echoing it."""
        ...

    def read_text(self, prompt: str, default: str | None = None) -> str:
        """Read a visible value."""
        ...

    def acknowledge(self, message: str) -> None:
        """Block until the operator confirms they are done."""
        ...


class ConsoleInput:
    """Prompts on the terminal using rich."""

    interactive = True

    def read_secret(self, prompt: str) -> str:
        return Prompt.ask(prompt, password=True, console=console)

    def read_text(self, prompt: str, default: str | None = None) -> str:
        if default is None:
            return Prompt.ask(prompt, console=console)
        return Prompt.ask(prompt, default=default, console=console)

    def acknowledge(self, message: str) -> None:
        Prompt.ask(f"{message} [dim](press Enter)[/dim]", default="", show_default=False, console=console)


class NonInteractiveInput:
    """Answers from the environment; anything else is an error.

    Secrets are looked up as ``LAB_SECRET_<NAME>`` where the prompt key is
    upper-cased with dashes turned into underscores.
    """

    interactive = False

    def __init__(self, environ: dict[str, str] | None = None) -> None:
        self.environ = dict(os.environ if environ is None else environ)

    @staticmethod
    def env_key(name: str) -> str:
        return "LAB_SECRET_" + name.upper().replace("-", "_")

    def read_secret(self, prompt: str) -> str:
        key = self.env_key(prompt)
        value = self.environ.get(key, "")
        if not value:
            raise OperatorInputRequired(f"{prompt} is required; set {key} in non-interactive mode")
        return value

    def read_text(self, prompt: str, default: str | None = None) -> str:
        if default is None:
            raise OperatorInputRequired(f"No value for '{prompt}' in non-interactive mode")
        return default

    def acknowledge(self, message: str) -> None:
        raise OperatorInputRequired(f"Manual step needs an operator: {message}")


class ScriptedInput:
    """Replays a fixed list of answers, in order.

    Intended for tests and for driving the sequence from another program.
    """

    interactive = True

    def __init__(self, answers: Iterable[str]) -> None:
        self._answers = list(answers)
        self.prompts: list[str] = []
        self.acknowledged: list[str] = []

    def _next(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if not self._answers:
            raise OperatorInputRequired(f"No scripted answer left for '{prompt}'")
        return self._answers.pop(0)

    def read_secret(self, prompt: str) -> str:
        return self._next(prompt)

    def read_text(self, prompt: str, default: str | None = None) -> str:
        answer = self._next(prompt)
        if not answer and default is not None:
            return default
        return answer

    def acknowledge(self, message: str) -> None:
        self.acknowledged.append(message)


def read_confirmed_secret(provider: InputProvider, name: str, label: str, *, confirm: bool) -> str:
    """Ask for a secret until it is non-empty and, if required, confirmed.

    There is no retry limit: a secret never falls through with a wrong
    value.
    """
    if not provider.interactive:
        return provider.read_secret(name)

    while True:
        value = provider.read_secret(label)
        if not value:
            warn(f"{label} must not be empty")
            continue
        if not confirm:
            return value
        again = provider.read_secret(f"{label} (again)")
        if again == value:
            return value
        warn(f"{label} entries did not match, try again")


def confirm_destructive(provider: InputProvider, token: str, description: str) -> bool:
    """Return True only if the operator types ``token`` exactly."""
    answer = provider.read_text(f"{description}\nType [bold]{token}[/bold] to continue")
    return answer.strip() == token
