"""Session-scoped configuration for error analysis requests.

The configuration lives for the lifetime of the kernel and is never written
to disk. A single :class:`ConfigStore` is created by the owning
:class:`~error_button.extension.ErrorButtonContext` and handed by reference to
every component that reads it, so an edit made through the dialog is seen by
all subsequent requests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from typing import Any

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


DEFAULT_LANGUAGE = "KR"
DEFAULT_PROMPT = """
  파이썬 에러메시지 보고 에러의 이유를 요약해서 알려줘 (형식: 에러 이유: ~~ \n 해결 방법 : ~~)
  """
DEFAULT_MODEL = "gpt-3.5-turbo"
DEFAULT_ENDPOINT = "https://api.openai.com/v1/chat/completions"


@dataclass
class Configuration:
    """Editable settings used to build and authorize analysis requests.

    Parameters
    ----------
    credential : str
        Bearer token for the completion endpoint. Empty means "not configured"
        and makes the runner prompt for it before issuing a request.
    target_language : str
        Language code the user wants explanations in.
    prompt_template : str
        Text prepended verbatim to the error text to form the request prompt.
    model : str
        Chat-completion model name sent with every request.
    endpoint : str
        URL of the chat-completion API.
    """

    credential: str = ""
    target_language: str = DEFAULT_LANGUAGE
    prompt_template: str = DEFAULT_PROMPT
    model: str = DEFAULT_MODEL
    endpoint: str = DEFAULT_ENDPOINT

    @property
    def has_credential(self) -> bool:
        return bool(self.credential)

    def build_prompt(self, error_text: str | None) -> str:
        """Return ``prompt_template`` followed by ``error_text``."""
        return self.prompt_template + ("" if error_text is None else str(error_text))


_FIELD_NAMES = frozenset(f.name for f in fields(Configuration))


class ConfigStore:
    """Owner of the one live :class:`Configuration` record.

    ``get`` returns the shared record itself rather than a copy. No validation
    is performed on ``set``; an empty credential is valid and simply means
    requests will prompt first.
    """

    def __init__(self, initial: Configuration | None = None) -> None:
        self._config = initial if initial is not None else Configuration()

    def get(self) -> Configuration:
        return self._config

    def set(self, partial: Configuration | None = None, **changes: Any) -> Configuration:
        """Overwrite fields of the live record.

        Parameters
        ----------
        partial : Configuration, optional
            A full record whose values replace the current ones.
        **changes : Any
            Individual fields to overwrite, e.g. ``credential="sk-..."``.

        Returns
        -------
        Configuration
            The (same) live record after the update.

        Raises
        ------
        TypeError
            If a keyword does not name a configuration field.
        """
        unknown = set(changes) - _FIELD_NAMES
        if unknown:
            raise TypeError(f"Unknown configuration field(s): {', '.join(sorted(unknown))}")

        values: dict[str, Any] = {}
        if partial is not None:
            values.update({name: getattr(partial, name) for name in _FIELD_NAMES})
        values.update(changes)

        for name, value in values.items():
            setattr(self._config, name, "" if value is None else str(value))
        logger.debug(
            "configuration updated fields=%s credential_set=%s",
            sorted(values),
            self._config.has_credential,
        )
        return self._config

    def snapshot(self) -> Configuration:
        """Return a detached copy, e.g. to seed a dialog."""
        return replace(self._config)
