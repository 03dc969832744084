"""Modal configuration dialog.

``ModalHost`` presents one dialog at a time inside a container box and
resolves an awaitable with the button the user chose. ``ConfigDialog`` builds
the three-field configuration form on top of it.
"""

from __future__ import annotations

import asyncio
import html
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, replace
from typing import Optional

import ipywidgets as widgets
from IPython.display import display

from .config import ConfigStore, Configuration

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

DIALOG_TITLE = "Config Error Button"


@dataclass(frozen=True)
class DialogResult:
    """Outcome of a dialog; ``value`` must be ignored when ``accepted`` is false."""

    accepted: bool
    value: Configuration


class ModalHost:
    """Show accept/cancel dialogs in ``container`` one at a time.

    Parameters
    ----------
    container : ipywidgets.Box, optional
        Box whose children are replaced by the dialog while it is open. When
        omitted the dialog is displayed in the current cell output instead.
    lock : asyncio.Lock, optional
        Lock serializing dialogs. Hosts sharing a lock never show two dialogs
        at once.
    """

    def __init__(self, container: Optional[widgets.Box] = None, *, lock: Optional[asyncio.Lock] = None) -> None:
        self.container = container
        self.current: Optional[widgets.VBox] = None
        self.ok_button: Optional[widgets.Button] = None
        self.cancel_button: Optional[widgets.Button] = None
        self._lock: Optional[asyncio.Lock] = lock

    @property
    def is_open(self) -> bool:
        return self.current is not None

    async def show(
        self,
        title: str,
        body: widgets.Widget,
        *,
        ok_label: str = "OK",
        cancel_label: str = "Cancel",
    ) -> bool:
        """Present ``body`` and wait for a button; returns ``True`` on accept.

        A second call made while a dialog is open waits until the first one
        has been closed.
        """
        async with self.hold():
            return await self.present(title, body, ok_label=ok_label, cancel_label=cancel_label)

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[None]:
        """Own the dialog slot; use :meth:`present` inside to show dialogs."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            yield

    async def present(
        self,
        title: str,
        body: widgets.Widget,
        *,
        ok_label: str = "OK",
        cancel_label: str = "Cancel",
    ) -> bool:
        """Show ``body`` without taking the lock; callers hold it via :meth:`hold`."""
        loop = asyncio.get_running_loop()
        choice: asyncio.Future[bool] = loop.create_future()

        cancel_button = widgets.Button(description=cancel_label)
        ok_button = widgets.Button(description=ok_label, button_style="primary")
        cancel_button.add_class("error-button-dialog-cancel")
        ok_button.add_class("error-button-dialog-ok")

        def _resolve(accepted: bool) -> None:
            if not choice.done():
                choice.set_result(accepted)

        cancel_button.on_click(lambda _b: _resolve(False))
        ok_button.on_click(lambda _b: _resolve(True))

        dialog = widgets.VBox(
            [
                widgets.HTML(f"<b>{html.escape(title)}</b>"),
                body,
                widgets.HBox([cancel_button, ok_button]),
            ],
            layout=widgets.Layout(border="1px solid #999", padding="8px"),
        )
        dialog.add_class("error-button-dialog")
        self.current = dialog
        self.cancel_button = cancel_button
        self.ok_button = ok_button

        if self.container is not None:
            previous = tuple(self.container.children)
            self.container.children = previous + (dialog,)
        else:
            display(dialog)

        try:
            return await choice
        finally:
            if self.container is not None:
                self.container.children = tuple(c for c in self.container.children if c is not dialog)
            else:
                dialog.close()
            self.current = None

    def accept(self) -> None:
        """Press OK on the open dialog."""
        if self.ok_button is not None and self.current is not None:
            self.ok_button.click()

    def cancel(self) -> None:
        """Press Cancel on the open dialog."""
        if self.cancel_button is not None and self.current is not None:
            self.cancel_button.click()


class ConfigForm:
    """Editable fields seeded from a configuration."""

    def __init__(self, initial: Configuration) -> None:
        self.initial = replace(initial)
        self.credential = widgets.Password(value=initial.credential, description="Secret Key:")
        self.language = widgets.Text(value=initial.target_language, description="Language:")
        self.prompt = widgets.Textarea(
            value=initial.prompt_template,
            description="Prompt:",
            rows=5,
            layout=widgets.Layout(width="40em"),
        )
        self.widget = widgets.VBox([self.credential, self.language, self.prompt])
        self.widget.add_class("myInputWidget")

    def get_value(self) -> Configuration:
        return replace(
            self.initial,
            credential=self.credential.value,
            target_language=self.language.value,
            prompt_template=self.prompt.value,
        )


class ConfigDialog:
    """Modal form for editing the session configuration."""

    def __init__(self, modal: Optional[ModalHost] = None, *, title: str = DIALOG_TITLE) -> None:
        self.modal = modal if modal is not None else ModalHost()
        self.title = title
        self.form: Optional[ConfigForm] = None

    async def open(self, initial: Configuration) -> DialogResult:
        """Show the form seeded with ``initial`` and wait for OK or Cancel."""
        async with self.modal.hold():
            return await self._present(initial)

    async def _present(self, initial: Configuration) -> DialogResult:
        form = ConfigForm(initial)
        self.form = form
        try:
            accepted = await self.modal.present(self.title, form.widget)
        finally:
            self.form = None
        return DialogResult(accepted=accepted, value=form.get_value())

    async def edit(self, store: ConfigStore, *, only_if_missing_credential: bool = False) -> bool:
        """Open the dialog for ``store`` and apply the values on accept.

        The form is seeded from the store once the dialog slot is free, so a
        dialog queued behind another one shows the values accepted there.
        With ``only_if_missing_credential`` the dialog is skipped (and ``True``
        returned) when a credential was set while waiting.
        """
        async with self.modal.hold():
            if only_if_missing_credential and store.get().has_credential:
                logger.debug("credential set while waiting; skipping dialog")
                return True
            result = await self._present(store.snapshot())
            if result.accepted:
                store.set(result.value)
                logger.info("configuration accepted (credential_set=%s)", store.get().has_credential)
            else:
                logger.debug("configuration dialog cancelled")
        return result.accepted
