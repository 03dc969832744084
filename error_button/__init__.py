"""Explain notebook errors with a chat-completion model.

Every code cell whose first output is an error gets an "Analyze Error"
button. Clicking it sends the configured prompt plus the error text to a
chat-completion endpoint and shows the answer below the cell.

>>> %load_ext error_button  # doctest: +SKIP

or, from Python:

>>> import error_button  # doctest: +SKIP
>>> error_button.setup()  # doctest: +SKIP
"""

from .completion import CompletionClient
from .config import ConfigStore, Configuration
from .dialog import ConfigDialog, DialogResult, ModalHost
from .errors import CompletionError, ErrorButtonError
from .extension import ErrorButtonContext
from .injector import ErrorActionInjector
from .ipython_host import (
    KernelNotebookHost,
    load_ipython_extension,
    setup,
    teardown,
    unload_ipython_extension,
)
from .notebook_model import Cell, Notebook, NotebookModel, NotebookTracker, OutputEntry
from .runner import (
    AnalysisCancelled,
    AnalysisFailed,
    AnalysisRejected,
    AnalysisRunner,
    AnalysisState,
    AnalysisSucceeded,
    ResultRegion,
)
from .scanner import ErrorInfo, scan
from .toolbar import ToolbarConfigButton
from .watcher import NotebookWatcher

__all__ = [
    "AnalysisCancelled",
    "AnalysisFailed",
    "AnalysisRejected",
    "AnalysisRunner",
    "AnalysisState",
    "AnalysisSucceeded",
    "Cell",
    "CompletionClient",
    "CompletionError",
    "ConfigDialog",
    "ConfigStore",
    "Configuration",
    "DialogResult",
    "ErrorActionInjector",
    "ErrorButtonContext",
    "ErrorButtonError",
    "ErrorInfo",
    "KernelNotebookHost",
    "ModalHost",
    "Notebook",
    "NotebookModel",
    "NotebookTracker",
    "NotebookWatcher",
    "OutputEntry",
    "ResultRegion",
    "ToolbarConfigButton",
    "load_ipython_extension",
    "scan",
    "setup",
    "teardown",
    "unload_ipython_extension",
]
