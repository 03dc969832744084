"""Per-notebook toolbar button that opens the configuration dialog."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import ipywidgets as widgets

from .config import ConfigStore
from .dialog import ConfigDialog
from .notebook_model import Notebook
from .scheduling import schedule

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

TOOLBAR_ITEM_NAME = "errorButtonConfig"
DEFAULT_TOOLBAR_POSITION = 10


class ToolbarConfigButton:
    """Button in a notebook toolbar that edits the shared configuration."""

    def __init__(
        self,
        notebook: Notebook,
        store: ConfigStore,
        dialog: ConfigDialog,
        *,
        position: int = DEFAULT_TOOLBAR_POSITION,
    ) -> None:
        self.notebook = notebook
        self.store = store
        self.dialog = dialog
        self.position = position
        self.widget = widgets.Button(
            description="",
            icon="star",
            tooltip="Configure error analysis",
            layout=widgets.Layout(width="auto"),
        )
        self.widget.add_class("error-button-util")
        self.widget.on_click(self._on_click)

    def attach(self) -> bool:
        """Insert the button into the notebook toolbar; ``False`` if already there."""
        return self.notebook.toolbar.insert_item(self.position, TOOLBAR_ITEM_NAME, self.widget)

    def _on_click(self, _button: widgets.Button) -> Optional[asyncio.Task]:
        logger.debug("opening configuration dialog for %r", self.notebook.path)
        return schedule(self.dialog.edit(self.store), name=f"config-dialog-{self.notebook.path}")
