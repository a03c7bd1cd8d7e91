"""tanker prompts - interactive questions answered synchronously.

The navigation layer only sees this small interface: ask a question, get a
typed answer, or get PromptAborted when the user interrupts.
"""

from __future__ import annotations

from collections.abc import Callable

import click
import questionary

from tanker.errors import PromptAborted, ValidationError

Validator = Callable[[str], None]


def _questionary_validator(validate: Validator | None):
    if validate is None:
        return None

    def _check(value: str) -> bool | str:
        try:
            validate(value)
        except ValidationError as e:
            return str(e)
        return True

    return _check


def _ask(question):
    try:
        answer = question.unsafe_ask()
    except KeyboardInterrupt as e:
        raise PromptAborted() from e
    except EOFError as e:
        raise PromptAborted("end of input", eof=True) from e
    if answer is None:
        raise PromptAborted()
    return answer


def required(value: str) -> None:
    if not value.strip():
        raise ValidationError("Value is required")


class Prompter:
    """questionary-backed prompts plus click's external editor."""

    def select(self, message: str, choices: list[str], default: str | None = None) -> str:
        return _ask(questionary.select(message, choices=choices, default=default))

    def text(
        self,
        message: str,
        default: str = "",
        validate: Validator | None = None,
    ) -> str:
        return _ask(
            questionary.text(
                message,
                default=default,
                validate=_questionary_validator(validate),
            ),
        )

    def password(self, message: str) -> str:
        return _ask(questionary.password(message))

    def confirm(self, message: str, default: bool = False) -> bool:
        return _ask(questionary.confirm(message, default=default))

    def edit(self, text: str, extension: str = ".json") -> str:
        """Open text in $EDITOR and return the saved content."""
        edited = click.edit(text=text, extension=extension, require_save=False)
        return text if edited is None else edited
