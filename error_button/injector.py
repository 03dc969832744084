"""Attach one "Analyze Error" control to each errored cell."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Optional

import ipywidgets as widgets

from .dialog import ConfigDialog
from .notebook_model import Cell
from .runner import AnalysisRunner, ResultRegion
from .scanner import ErrorInfo

logger = logging.getLogger(__name__)
if not logger.handlers:
    logger.addHandler(logging.NullHandler())

CONTROL_LABEL = "Analyze Error"
CONTROL_CLASS = "error-button"


@dataclass
class _Decoration:
    snapshot: str
    error_text: str
    control: widgets.Button
    regions: list[ResultRegion] = field(default_factory=list)


class ErrorActionInjector:
    """Keep at most one live control per cell, bound to the cell's current error.

    Decorations are recorded per cell id together with the error snapshot they
    were built for. Re-applying the same snapshot is a no-op; a new snapshot
    replaces the control; ``None`` removes the control and any result regions.
    """

    def __init__(self, runner: AnalysisRunner, *, dialog: Optional[ConfigDialog] = None) -> None:
        self.runner = runner
        self.dialog = dialog
        self._decorations: dict[str, _Decoration] = {}

    def control_for(self, cell: Cell) -> Optional[widgets.Button]:
        decoration = self._decorations.get(cell.cell_id)
        return None if decoration is None else decoration.control

    def bound_text(self, cell: Cell) -> Optional[str]:
        decoration = self._decorations.get(cell.cell_id)
        return None if decoration is None else decoration.error_text

    def result_regions(self, cell: Cell) -> list[ResultRegion]:
        decoration = self._decorations.get(cell.cell_id)
        return [] if decoration is None else list(decoration.regions)

    def apply(self, cell: Cell, info: Optional[ErrorInfo]) -> None:
        key = cell.cell_id
        current = self._decorations.get(key)

        if info is None:
            if current is not None:
                logger.debug("cell %s: error cleared; removing control", key)
                self._clear(cell)
            return

        if (
            current is not None
            and current.snapshot == info.snapshot
            and any(w is current.control for w in cell.region.children)
        ):
            return

        self._clear(cell)
        control = widgets.Button(description=CONTROL_LABEL, tooltip="Explain this error")
        control.add_class(CONTROL_CLASS)
        decoration = _Decoration(snapshot=info.snapshot, error_text=info.text, control=control)
        control.on_click(lambda _button: self._on_click(cell, decoration))
        self._decorations[key] = decoration
        cell.append_to_region(control)
        logger.debug("cell %s: control attached for snapshot %s", key, info.snapshot)

    def forget(self, cell_id: str) -> None:
        self._decorations.pop(cell_id, None)
        self.runner.forget(cell_id)

    def _clear(self, cell: Cell) -> None:
        decoration = self._decorations.pop(cell.cell_id, None)
        if decoration is None:
            return
        stale = {id(region.widget) for region in decoration.regions}
        stale.add(id(decoration.control))
        cell.region.children = tuple(w for w in cell.region.children if id(w) not in stale)

    def _on_click(self, cell: Cell, decoration: _Decoration) -> None:
        if self._decorations.get(cell.cell_id) is not decoration:
            logger.debug("cell %s: ignoring click on a replaced control", cell.cell_id)
            return
        try:
            self.runner.activate(
                cell,
                decoration.control,
                decoration.error_text,
                dialog=self.dialog,
                on_region=decoration.regions.append,
            )
        except Exception:
            logger.exception("cell %s: could not start error analysis", cell.cell_id)
