"""Operator input for the interactive decision points of the pipeline."""

import abc
import sys

import click

from pisurveillance.errors import OperatorInputError


class Operator(abc.ABC):
    """Source of operator decisions.

    The pipeline never reads the terminal directly, so tests and unattended
    runs can supply answers through another implementation.
    """

    @abc.abstractmethod
    def is_attended(self) -> bool:
        """Return whether someone is available to answer prompts."""
        pass

    @abc.abstractmethod
    def choose(self, prompt: str, options: dict[str, str]) -> str:
        """Present a menu and return the key the operator entered (may be invalid)."""
        pass

    @abc.abstractmethod
    def ask(self, prompt: str) -> str:
        """Ask for a plain value; may return an empty string."""
        pass

    @abc.abstractmethod
    def ask_secret(self, prompt: str) -> str:
        """Ask for a value without echoing it; may return an empty string."""
        pass


class ClickOperator(Operator):
    """Operator prompts on the controlling terminal.

    A prompt that hits end of input or is interrupted raises
    OperatorInputError instead of click.Abort.
    """

    def is_attended(self) -> bool:
        """Check if stdin is a TTY (interactive)."""
        return sys.stdin.isatty()

    @staticmethod
    def _prompt(text: str, hide_input: bool = False) -> str:
        try:
            answer = click.prompt(text, default="", show_default=False, hide_input=hide_input)
        except click.Abort as e:
            raise OperatorInputError(f"No answer to '{text}': input closed or interrupted.") from e
        return answer.strip()

    def choose(self, prompt: str, options: dict[str, str]) -> str:
        """Print a numbered menu and read one choice."""
        click.echo(f"\n{prompt}:")
        for key, label in options.items():
            click.echo(f"  {key}) {label}")
        keys = list(options)
        return self._prompt(f"Enter choice [{keys[0]}-{keys[-1]}]")

    def ask(self, prompt: str) -> str:
        """Read a value from the terminal."""
        return self._prompt(prompt)

    def ask_secret(self, prompt: str) -> str:
        """Read a value from the terminal without echo."""
        return self._prompt(prompt, hide_input=True)
