"""Detect whether a cell currently shows an error result."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from .notebook_model import STDERR_MIME, Cell, OutputEntry


@dataclass(frozen=True)
class ErrorInfo:
    """Diagnostic text of a cell's error output.

    ``snapshot`` identifies the output entry the text was read from, so a
    re-executed cell that fails the same way still counts as a new error.
    """

    text: str
    snapshot: str


def _error_text(entry: OutputEntry) -> str:
    payload: Any = entry.data.get(STDERR_MIME) if entry.data else None
    if payload is not None:
        if isinstance(payload, (list, tuple)):
            return "".join(str(part) for part in payload)
        return str(payload)

    # nbformat-style error entries carry ename/evalue/traceback instead.
    if entry.ename or entry.evalue:
        head = f"{entry.ename}: {entry.evalue}" if entry.ename else entry.evalue
        return "\n".join([head, *entry.traceback]) if entry.traceback else head
    if entry.traceback:
        return "\n".join(entry.traceback)
    return ""


def scan(cell: Cell) -> Optional[ErrorInfo]:
    """Return the cell's :class:`ErrorInfo`, or ``None`` if it shows no error.

    Only the first output is inspected. Errors that appear after other
    outputs (e.g. after printed text) are not detected.
    """
    if not cell.is_code:
        return None
    outputs = cell.outputs
    if not outputs:
        return None
    first = outputs[0]
    if first.output_type != "error":
        return None
    return ErrorInfo(text=_error_text(first), snapshot=first.output_id)
