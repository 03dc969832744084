"""Run the error button inside an IPython kernel.

Each executed cell becomes a :class:`~error_button.notebook_model.Cell` of a
kernel-side notebook. An uncaught exception is recorded as an ``error``
output whose stderr payload is the formatted traceback, and the cell's render
region is displayed under the traceback so the "Analyze Error" control shows
up where the error did.

Load with ``%load_ext error_button`` or call :func:`setup`.
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Optional

from IPython.display import display

from .completion import CompletionClient
from .config import Configuration
from .extension import ErrorButtonContext
from .notebook_model import Cell, Notebook, OutputEntry
from .scanner import scan

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

DEFAULT_HISTORY = 200

_ACTIVE: Optional["KernelNotebookHost"] = None


def error_output(exc: BaseException) -> OutputEntry:
    """Build an ``error`` output entry for ``exc``."""
    lines = traceback.format_exception(type(exc), exc, exc.__traceback__)
    return OutputEntry.error(
        "".join(lines),
        ename=type(exc).__name__,
        evalue=str(exc),
        traceback=[line.rstrip("\n") for line in lines],
    )


class KernelNotebookHost:
    """Mirror executed cells of an IPython shell into a watched notebook.

    Parameters
    ----------
    shell : IPython.core.interactiveshell.InteractiveShell
        Shell whose ``pre_run_cell``/``post_run_cell`` events are observed.
    context : ErrorButtonContext
        Context whose tracker receives the kernel notebook.
    history : int
        Number of executed cells kept; older cells are dropped.
    """

    def __init__(self, shell: Any, context: ErrorButtonContext, *, history: int = DEFAULT_HISTORY) -> None:
        self.shell = shell
        self.context = context
        self.history = max(1, int(history))
        self.notebook = Notebook.with_cells(path="<kernel>")
        self._current: Optional[Cell] = None
        self._registered = False

    def register(self, *, show_toolbar: bool = True) -> None:
        if self._registered:
            return
        self.context.activate()
        self.context.tracker.add(self.notebook)
        self.shell.events.register("pre_run_cell", self.pre_run_cell)
        self.shell.events.register("post_run_cell", self.post_run_cell)
        self._registered = True
        if show_toolbar:
            display(self.notebook.toolbar.widget, self.notebook.modal_area)

    def unregister(self) -> None:
        if not self._registered:
            return
        self.shell.events.unregister("pre_run_cell", self.pre_run_cell)
        self.shell.events.unregister("post_run_cell", self.post_run_cell)
        self.context.tracker.remove(self.notebook)
        self.context.close()
        self._registered = False

    def pre_run_cell(self, info: Any) -> None:
        cell_id = getattr(info, "cell_id", None)
        existing = self.notebook.model.get_cell(cell_id) if cell_id else None
        if existing is not None:
            existing.source = getattr(info, "raw_cell", "") or ""
            existing.clear_outputs()
            self._current = existing
        else:
            self._current = Cell(getattr(info, "raw_cell", "") or "", cell_id=cell_id)

    def post_run_cell(self, result: Any) -> None:
        cell = self._current
        self._current = None
        if cell is None:
            cell = Cell(getattr(getattr(result, "info", None), "raw_cell", "") or "")

        exc = getattr(result, "error_before_exec", None) or getattr(result, "error_in_exec", None)
        outputs = [error_output(exc)] if exc is not None else []

        model = self.notebook.model
        if model.get_cell(cell.cell_id) is None:
            cell.set_outputs(outputs)
            model.append_cell(cell)
            self._trim()
        else:
            cell.set_outputs(outputs)

        if scan(cell) is not None:
            display(cell.region)

    def _trim(self) -> None:
        model = self.notebook.model
        overflow = len(model.cells) - self.history
        if overflow > 0:
            model.cells = model.cells[overflow:]


def setup(
    *,
    verbose: bool = True,
    config: Optional[Configuration] = None,
    client: Optional[CompletionClient] = None,
    shell: Any = None,
    history: int = DEFAULT_HISTORY,
) -> KernelNotebookHost:
    """Enable the error button in the running IPython kernel.

    Calling it again replaces the previous host (and its configuration).

    Raises
    ------
    RuntimeError
        If no IPython shell is available.
    """
    global _ACTIVE

    if shell is None:
        from IPython import get_ipython

        shell = get_ipython()
    if shell is None:
        raise RuntimeError("error_button.setup() must be called from an IPython/Jupyter kernel.")

    if _ACTIVE is not None:
        _ACTIVE.unregister()

    host = KernelNotebookHost(shell, ErrorButtonContext(config=config, client=client), history=history)
    host.register()
    _ACTIVE = host
    if verbose:
        print("[error_button] Errors now get an 'Analyze Error' button. Use the ★ button to configure.")
    return host


def teardown() -> None:
    global _ACTIVE
    if _ACTIVE is not None:
        _ACTIVE.unregister()
        _ACTIVE = None


def load_ipython_extension(ipython: Any) -> None:
    setup(shell=ipython, verbose=False)


def unload_ipython_extension(ipython: Any) -> None:
    teardown()
