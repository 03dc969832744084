"""Owning context that wires the error-analysis components together."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .completion import CompletionClient
from .config import ConfigStore, Configuration
from .dialog import ConfigDialog, ModalHost
from .notebook_model import NotebookTracker
from .runner import AnalysisRunner
from .toolbar import DEFAULT_TOOLBAR_POSITION
from .watcher import NotebookWatcher

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


class ErrorButtonContext:
    """Create and own the configuration store and every component using it.

    One context is created per kernel session. The store is handed to the
    dialog, runner and watcher by reference, so a configuration accepted in
    any notebook applies to every later request.

    Parameters
    ----------
    tracker : NotebookTracker, optional
        Notebooks to watch. A fresh, empty tracker is created when omitted.
    config : Configuration, optional
        Initial configuration; defaults apply when omitted.
    client : CompletionClient, optional
        Transport for completion requests.
    toolbar_position : int
        Index at which each notebook's configuration button is inserted.

    Examples
    --------
    >>> ctx = ErrorButtonContext()  # doctest: +SKIP
    >>> ctx.activate()  # doctest: +SKIP
    >>> ctx.tracker.add(notebook)  # doctest: +SKIP
    """

    def __init__(
        self,
        tracker: Optional[NotebookTracker] = None,
        *,
        config: Optional[Configuration] = None,
        client: Optional[CompletionClient] = None,
        toolbar_position: int = DEFAULT_TOOLBAR_POSITION,
    ) -> None:
        self.tracker = tracker if tracker is not None else NotebookTracker()
        self.store = ConfigStore(config)
        self.modal_lock = asyncio.Lock()
        self.dialog = ConfigDialog(ModalHost(lock=self.modal_lock))
        self.client = client if client is not None else CompletionClient(
            endpoint=self.store.get().endpoint, model=self.store.get().model
        )
        self.runner = AnalysisRunner(self.store, self.dialog, self.client)
        self.watcher = NotebookWatcher(
            self.tracker,
            self.store,
            self.runner,
            toolbar_position=toolbar_position,
            modal_lock=self.modal_lock,
        )
        self.active = False

    def activate(self) -> "ErrorButtonContext":
        if not self.active:
            self.watcher.start()
            self.active = True
            logger.info("error-button extension is activated")
        return self

    def close(self) -> None:
        if self.active:
            self.watcher.stop()
            self.active = False
            logger.info("error-button extension is deactivated")

    def __enter__(self) -> "ErrorButtonContext":
        return self.activate()

    def __exit__(self, *exc_info: object) -> None:
        self.close()
