"""Request lifecycle for one error analysis.

Each activation walks a per-cell state machine::

    IDLE -> AWAITING_CREDENTIAL (credential empty) -> LOADING -> SUCCEEDED | FAILED -> IDLE

States are kept in a mapping keyed by cell id, so a second activation on a
cell that is not idle is rejected instead of issuing another request. Cells
are independent of each other; the only shared state is the configuration,
which is read once before the request is sent.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

import ipywidgets as widgets

from .completion import CompletionClient
from .config import ConfigStore
from .dialog import ConfigDialog
from .notebook_model import Cell
from .scheduling import schedule

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

LOADING_TEXT = "Loading..."
RESULT_REGION_CLASS = "error-button-result"


class AnalysisState(enum.Enum):
    IDLE = "idle"
    AWAITING_CREDENTIAL = "awaiting_credential"
    LOADING = "loading"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class AnalysisSucceeded:
    text: str


@dataclass(frozen=True)
class AnalysisFailed:
    reason: str


@dataclass(frozen=True)
class AnalysisCancelled:
    """The user closed the credential dialog without accepting."""


@dataclass(frozen=True)
class AnalysisRejected:
    """An analysis for the same cell was already running."""

    state: AnalysisState


AnalysisOutcome = Union[AnalysisSucceeded, AnalysisFailed, AnalysisCancelled, AnalysisRejected]


class ResultRegion:
    """Output area below a cell showing loading, result or failure text.

    Every state change replaces the whole content with a single stdout
    stream entry.
    """

    def __init__(self) -> None:
        self.widget = widgets.Output()
        self.widget.add_class(RESULT_REGION_CLASS)

    @property
    def text(self) -> str:
        return "".join(
            str(o.get("text", "")) for o in self.widget.outputs if o.get("output_type") == "stream"
        )

    def _replace(self, text: str) -> None:
        self.widget.outputs = ({"output_type": "stream", "name": "stdout", "text": text},)

    def show_loading(self) -> None:
        self._replace(LOADING_TEXT)

    def show_result(self, text: str) -> None:
        self._replace(text)

    def show_error(self, message: str) -> None:
        self._replace(message)


class AnalysisRunner:
    """Run analyses for errored cells against the completion endpoint.

    Parameters
    ----------
    store : ConfigStore
        Shared configuration; read at request time.
    dialog : ConfigDialog
        Opened when the credential is missing.
    client : CompletionClient
        Anything with an async ``complete(prompt, credential, *, model, endpoint)``.
    """

    def __init__(self, store: ConfigStore, dialog: ConfigDialog, client: CompletionClient) -> None:
        self.store = store
        self.dialog = dialog
        self.client = client
        self._states: dict[str, AnalysisState] = {}
        self._last_outcome: dict[str, AnalysisOutcome] = {}
        self._runs: dict[str, object] = {}

    def state(self, cell_id: str) -> AnalysisState:
        return self._states.get(cell_id, AnalysisState.IDLE)

    def last_outcome(self, cell_id: str) -> Optional[AnalysisOutcome]:
        return self._last_outcome.get(cell_id)

    def forget(self, cell_id: str) -> None:
        """Drop bookkeeping for a cell; an in-flight request still completes."""
        self._last_outcome.pop(cell_id, None)
        self._runs.pop(cell_id, None)
        if self.state(cell_id) is AnalysisState.IDLE:
            self._states.pop(cell_id, None)

    def _set_state(self, cell_id: str, state: AnalysisState) -> None:
        logger.debug("cell %s: %s -> %s", cell_id, self.state(cell_id).value, state.value)
        if state is AnalysisState.IDLE:
            self._states.pop(cell_id, None)
        else:
            self._states[cell_id] = state

    async def run(
        self,
        cell: Cell,
        control: widgets.Button,
        error_text: Optional[str],
        *,
        dialog: Optional[ConfigDialog] = None,
        on_region: Optional[Callable[[ResultRegion], None]] = None,
    ) -> AnalysisOutcome:
        """Analyze ``error_text`` for ``cell`` and render the outcome below it.

        ``dialog`` overrides the runner's dialog for the credential prompt,
        e.g. to show it in the cell's own notebook. ``on_region`` receives the
        result region once it has been added to the cell.
        """
        key = cell.cell_id
        current = self.state(key)
        if current is not AnalysisState.IDLE:
            logger.info("cell %s: analysis already %s; ignoring activation", key, current.value)
            return AnalysisRejected(current)

        token = object()
        self._runs[key] = token

        if not self.store.get().has_credential:
            self._set_state(key, AnalysisState.AWAITING_CREDENTIAL)
            try:
                accepted = await (dialog or self.dialog).edit(self.store, only_if_missing_credential=True)
            except BaseException:
                self._drop_run(key, token)
                self._set_state(key, AnalysisState.IDLE)
                raise
            if not accepted:
                self._set_state(key, AnalysisState.IDLE)
                outcome: AnalysisOutcome = AnalysisCancelled()
                self._record(key, token, outcome)
                return outcome

        self._set_state(key, AnalysisState.LOADING)
        control.disabled = True
        region = ResultRegion()
        region.show_loading()
        cell.append_to_region(region.widget)
        if on_region is not None:
            on_region(region)

        config = self.store.get()
        prompt = config.build_prompt(error_text)
        credential = config.credential
        try:
            text = await self.client.complete(
                prompt, credential, model=config.model, endpoint=config.endpoint
            )
        except asyncio.CancelledError:
            self._drop_run(key, token)
            self._set_state(key, AnalysisState.IDLE)
            raise
        except Exception as exc:
            reason = str(exc) or exc.__class__.__name__
            logger.error("cell %s: error analysis failed: %s", key, reason, exc_info=True)
            region.show_error(reason)
            self._set_state(key, AnalysisState.FAILED)
            outcome = AnalysisFailed(reason)
        else:
            region.show_result(text)
            self._set_state(key, AnalysisState.SUCCEEDED)
            outcome = AnalysisSucceeded(text)
        finally:
            control.disabled = False

        self._record(key, token, outcome)
        self._set_state(key, AnalysisState.IDLE)
        return outcome

    def _record(self, key: str, token: object, outcome: AnalysisOutcome) -> None:
        # Cells forgotten mid-run keep no outcome.
        if self._runs.get(key) is token:
            del self._runs[key]
            self._last_outcome[key] = outcome

    def _drop_run(self, key: str, token: object) -> None:
        if self._runs.get(key) is token:
            del self._runs[key]

    def activate(
        self,
        cell: Cell,
        control: widgets.Button,
        error_text: Optional[str],
        *,
        dialog: Optional[ConfigDialog] = None,
        on_region: Optional[Callable[[ResultRegion], None]] = None,
    ) -> Optional[asyncio.Task]:
        """Start :meth:`run` from a synchronous click handler.

        Returns the scheduled task, or ``None`` when no event loop is running.
        """
        return schedule(
            self.run(cell, control, error_text, dialog=dialog, on_region=on_region),
            name=f"error-analysis-{cell.cell_id}",
        )
