"""Observable notebook documents, cells and outputs.

These classes are the host surface the error-analysis components work
against. Every piece of state the watcher reacts to is a ``traitlets`` trait,
so structural changes (cells added/removed, outputs replaced) arrive as
ordinary trait notifications. Lists are stored as tuples and always replaced
wholesale, which is what makes the notifications fire.

Each cell owns a render region (an ``ipywidgets.VBox``) where controls and
result areas are appended, and each notebook owns a toolbar and a modal area.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Optional

import ipywidgets as widgets
from traitlets import HasTraits, Instance, Tuple, Unicode

STDERR_MIME = "application/vnd.jupyter.stderr"


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class OutputEntry:
    """One structured result produced by executing a cell.

    ``output_id`` is unique per entry and identifies an error snapshot: two
    entries with the same text but different ids are different snapshots.
    """

    output_type: str
    data: Mapping[str, Any] = field(default_factory=dict)
    ename: str = ""
    evalue: str = ""
    traceback: tuple[str, ...] = ()
    output_id: str = field(default_factory=_new_id)

    @classmethod
    def error(
        cls,
        text: str | None = None,
        *,
        ename: str = "",
        evalue: str = "",
        traceback: Iterable[str] = (),
    ) -> "OutputEntry":
        """Build an ``error`` entry, with ``text`` stored under the stderr key."""
        data = {} if text is None else {STDERR_MIME: text}
        return cls("error", data=data, ename=ename, evalue=evalue, traceback=tuple(traceback))

    @classmethod
    def stream(cls, text: str, *, name: str = "stdout") -> "OutputEntry":
        return cls("stream", data={"name": name, "text": text})

    @classmethod
    def from_nbformat(cls, payload: Mapping[str, Any]) -> "OutputEntry":
        """Convert an nbformat-style output dict (``output_type`` key) to an entry."""
        output_type = str(payload.get("output_type") or payload.get("type") or "")
        data = dict(payload.get("data") or {})
        if output_type == "stream":
            data.setdefault("name", payload.get("name", "stdout"))
            data.setdefault("text", payload.get("text", ""))
        return cls(
            output_type,
            data=data,
            ename=str(payload.get("ename", "")),
            evalue=str(payload.get("evalue", "")),
            traceback=tuple(payload.get("traceback", ())),
        )


class Cell(HasTraits):
    """A notebook cell: stable id, type, observable outputs and a render region."""

    cell_id = Unicode()
    cell_type = Unicode("code")
    source = Unicode("")
    outputs = Tuple()
    region = Instance(widgets.VBox)

    def __init__(
        self,
        source: str = "",
        *,
        cell_type: str = "code",
        outputs: Iterable[OutputEntry] = (),
        cell_id: Optional[str] = None,
    ) -> None:
        super().__init__(
            cell_id=cell_id or _new_id(),
            cell_type=cell_type,
            source=source,
            outputs=tuple(outputs),
        )
        self.region = widgets.VBox(layout=widgets.Layout(width="100%"))
        self.region.add_class("error-button-cell-region")

    @property
    def is_code(self) -> bool:
        return self.cell_type == "code"

    def append_output(self, entry: OutputEntry) -> None:
        self.outputs = self.outputs + (entry,)

    def set_outputs(self, entries: Iterable[OutputEntry]) -> None:
        self.outputs = tuple(entries)

    def clear_outputs(self) -> None:
        self.outputs = ()

    # Render region helpers -------------------------------------------------

    def append_to_region(self, widget: widgets.Widget) -> None:
        self.region.children = tuple(self.region.children) + (widget,)

    def remove_from_region(self, widget: widgets.Widget) -> None:
        self.region.children = tuple(w for w in self.region.children if w is not widget)

    def __repr__(self) -> str:
        return f"Cell(id={self.cell_id!r}, type={self.cell_type!r}, outputs={len(self.outputs)})"


class NotebookModel(HasTraits):
    """Ordered, observable cell collection of one notebook."""

    cells = Tuple()

    def insert_cell(self, index: int, cell: Cell) -> Cell:
        cells = list(self.cells)
        cells.insert(index, cell)
        self.cells = tuple(cells)
        return cell

    def append_cell(self, cell: Cell) -> Cell:
        self.cells = self.cells + (cell,)
        return cell

    def remove_cell(self, cell: Cell) -> None:
        self.cells = tuple(c for c in self.cells if c is not cell)

    def get_cell(self, cell_id: str) -> Optional[Cell]:
        for cell in self.cells:
            if cell.cell_id == cell_id:
                return cell
        return None


class Toolbar:
    """Named, ordered toolbar items rendered into an ``HBox``."""

    def __init__(self) -> None:
        self.widget = widgets.HBox(layout=widgets.Layout(width="100%"))
        self._names: list[str] = []

    @property
    def names(self) -> tuple[str, ...]:
        return tuple(self._names)

    def insert_item(self, index: int, name: str, item: widgets.Widget) -> bool:
        """Insert ``item`` at ``index`` (clamped to the end); ``False`` if ``name`` exists."""
        if name in self._names:
            return False
        index = max(0, min(int(index), len(self._names)))
        children = list(self.widget.children)
        children.insert(index, item)
        self._names.insert(index, name)
        self.widget.children = tuple(children)
        return True

    def get_item(self, name: str) -> Optional[widgets.Widget]:
        if name not in self._names:
            return None
        return self.widget.children[self._names.index(name)]


class Notebook(HasTraits):
    """An open notebook document.

    ``model`` may be ``None`` for a document whose content has not loaded; the
    watcher treats such a notebook as a no-op.
    """

    path = Unicode("")
    model = Instance(NotebookModel, allow_none=True)

    def __init__(self, path: str = "", *, model: Optional[NotebookModel] = None) -> None:
        super().__init__(path=path, model=model)
        self.toolbar = Toolbar()
        self.modal_area = widgets.VBox()
        self.modal_area.add_class("error-button-modal-area")

    @classmethod
    def with_cells(cls, cells: Iterable[Cell] = (), *, path: str = "") -> "Notebook":
        return cls(path, model=NotebookModel(cells=tuple(cells)))

    @property
    def cells(self) -> tuple[Cell, ...]:
        return () if self.model is None else tuple(self.model.cells)

    def code_cells(self) -> list[Cell]:
        return [c for c in self.cells if c.is_code]


class NotebookTracker(HasTraits):
    """Collection of open notebooks; appending is the "opened" notification."""

    notebooks = Tuple()

    def add(self, notebook: Notebook) -> Notebook:
        if any(nb is notebook for nb in self.notebooks):
            return notebook
        self.notebooks = self.notebooks + (notebook,)
        return notebook

    def remove(self, notebook: Notebook) -> None:
        self.notebooks = tuple(nb for nb in self.notebooks if nb is not notebook)

    def __iter__(self):
        return iter(self.notebooks)

    def __len__(self) -> int:
        return len(self.notebooks)
