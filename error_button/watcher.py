"""Keep error controls in sync with the open notebooks.

The watcher observes the tracker for newly opened notebooks. For each one it
attaches the toolbar button, scans the existing cells, and then re-scans the
notebook whenever its cell list changes or any code cell's outputs change.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .config import ConfigStore
from .dialog import ConfigDialog, ModalHost
from .injector import ErrorActionInjector
from .notebook_model import Cell, Notebook, NotebookTracker
from .runner import AnalysisRunner
from .scanner import scan
from .toolbar import DEFAULT_TOOLBAR_POSITION, ToolbarConfigButton

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())


@dataclass
class _WatchedNotebook:
    notebook: Notebook
    dialog: ConfigDialog
    injector: ErrorActionInjector
    button: ToolbarConfigButton
    output_handlers: dict[str, tuple[Cell, Callable[[Any], None]]] = field(default_factory=dict)
    cells_handler: Optional[Callable[[Any], None]] = None
    model_handler: Optional[Callable[[Any], None]] = None


class NotebookWatcher:
    """Observe a :class:`NotebookTracker` and decorate errored cells.

    Parameters
    ----------
    tracker : NotebookTracker
        Collection of open notebooks.
    store : ConfigStore
        Shared configuration edited by the toolbar buttons.
    runner : AnalysisRunner
        Runs analyses when a control is clicked.
    toolbar_position : int
        Toolbar index for the configuration button.
    modal_lock : asyncio.Lock, optional
        Shared by every notebook's dialog so only one is open at a time.
    """

    def __init__(
        self,
        tracker: NotebookTracker,
        store: ConfigStore,
        runner: AnalysisRunner,
        *,
        toolbar_position: int = DEFAULT_TOOLBAR_POSITION,
        modal_lock: Optional[asyncio.Lock] = None,
    ) -> None:
        self.tracker = tracker
        self.store = store
        self.runner = runner
        self.toolbar_position = toolbar_position
        self.modal_lock = modal_lock if modal_lock is not None else asyncio.Lock()
        self._watched: dict[int, _WatchedNotebook] = {}
        self._started = False

    # Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        if self._started:
            return
        self._started = True
        self.tracker.observe(self._on_notebooks_changed, names="notebooks")
        for notebook in self.tracker.notebooks:
            self.attach(notebook)

    def stop(self) -> None:
        if not self._started:
            return
        self._started = False
        self.tracker.unobserve(self._on_notebooks_changed, names="notebooks")
        for key in list(self._watched):
            self._detach(key)

    def injector_for(self, notebook: Notebook) -> Optional[ErrorActionInjector]:
        watched = self._watched.get(id(notebook))
        return None if watched is None else watched.injector

    def dialog_for(self, notebook: Notebook) -> Optional[ConfigDialog]:
        watched = self._watched.get(id(notebook))
        return None if watched is None else watched.dialog

    # Attach / detach -------------------------------------------------------

    def attach(self, notebook: Notebook) -> None:
        """Start watching ``notebook``; repeated calls are ignored."""
        key = id(notebook)
        if key in self._watched:
            return

        dialog = ConfigDialog(ModalHost(notebook.modal_area, lock=self.modal_lock))
        button = ToolbarConfigButton(notebook, self.store, dialog, position=self.toolbar_position)
        button.attach()
        watched = _WatchedNotebook(
            notebook=notebook,
            dialog=dialog,
            injector=ErrorActionInjector(self.runner, dialog=dialog),
            button=button,
        )
        self._watched[key] = watched
        logger.info("watching notebook %r", notebook.path)

        def _on_model(change: Any) -> None:
            old = change["old"]
            if old is not None and watched.cells_handler is not None:
                old.unobserve(watched.cells_handler, names="cells")
            self._watch_model(watched)

        watched.model_handler = _on_model
        notebook.observe(_on_model, names="model")
        self._watch_model(watched)

    def _watch_model(self, watched: _WatchedNotebook) -> None:
        model = watched.notebook.model
        if model is None:
            return

        def _on_cells(_change: Any) -> None:
            self._sync_subscriptions(watched)
            self.rescan(watched.notebook)

        watched.cells_handler = _on_cells
        model.observe(_on_cells, names="cells")
        self._sync_subscriptions(watched)
        self.rescan(watched.notebook)

    def _detach(self, key: int) -> None:
        watched = self._watched.pop(key, None)
        if watched is None:
            return
        for cell, handler in watched.output_handlers.values():
            cell.unobserve(handler, names="outputs")
        watched.output_handlers.clear()
        if watched.model_handler is not None:
            watched.notebook.unobserve(watched.model_handler, names="model")
        model = watched.notebook.model
        if model is not None and watched.cells_handler is not None:
            model.unobserve(watched.cells_handler, names="cells")
        logger.info("stopped watching notebook %r", watched.notebook.path)

    def _sync_subscriptions(self, watched: _WatchedNotebook) -> None:
        """Subscribe to outputs of new code cells and drop removed cells."""
        current = {cell.cell_id: cell for cell in watched.notebook.cells}

        for cell_id in list(watched.output_handlers):
            if cell_id not in current:
                cell, handler = watched.output_handlers.pop(cell_id)
                cell.unobserve(handler, names="outputs")
                watched.injector.forget(cell_id)

        for cell_id, cell in current.items():
            if cell_id in watched.output_handlers or not cell.is_code:
                continue

            def _on_outputs(_change: Any, _notebook: Notebook = watched.notebook) -> None:
                self.rescan(_notebook)

            cell.observe(_on_outputs, names="outputs")
            watched.output_handlers[cell_id] = (cell, _on_outputs)

    # Scanning --------------------------------------------------------------

    def rescan(self, notebook: Notebook) -> None:
        """Scan every cell of ``notebook`` and update its controls."""
        watched = self._watched.get(id(notebook))
        if watched is None or notebook.model is None:
            return
        for cell in notebook.cells:
            try:
                watched.injector.apply(cell, scan(cell))
            except Exception:
                logger.exception("cell %s: scan failed", cell.cell_id)
        logger.debug("rescanned %d cells in %r", len(notebook.cells), notebook.path)

    def _on_notebooks_changed(self, change: Any) -> None:
        new = change["new"]
        for notebook in new:
            self.attach(notebook)
        new_ids = {id(nb) for nb in new}
        for key in [k for k in self._watched if k not in new_ids]:
            self._detach(key)
