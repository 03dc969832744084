from __future__ import annotations

from hypothesis import given
from hypothesis import strategies as st

from error_button.notebook_model import STDERR_MIME, Cell, OutputEntry
from error_button.scanner import ErrorInfo, scan


def test_error_as_first_output_is_detected() -> None:
    entry = OutputEntry.error("ZeroDivisionError: division by zero")
    cell = Cell("1/0", outputs=[entry])

    assert scan(cell) == ErrorInfo(text="ZeroDivisionError: division by zero", snapshot=entry.output_id)


def test_cells_without_error_first_are_not_flagged() -> None:
    assert scan(Cell("x = 1")) is None
    assert scan(Cell("print(1)", outputs=[OutputEntry.stream("1\n")])) is None
    # Only the first output is inspected.
    assert scan(Cell("print(1); 1/0", outputs=[OutputEntry.stream("1\n"), OutputEntry.error("boom")])) is None


def test_non_code_cells_are_never_flagged() -> None:
    cell = Cell("# title", cell_type="markdown", outputs=[OutputEntry.error("boom")])
    assert scan(cell) is None


def test_missing_payload_scans_as_empty_text() -> None:
    cell = Cell("1/0", outputs=[OutputEntry("error")])
    info = scan(cell)
    assert info is not None
    assert info.text == ""


def test_nbformat_error_fields_are_used_without_stderr_payload() -> None:
    entry = OutputEntry.from_nbformat(
        {
            "output_type": "error",
            "ename": "ValueError",
            "evalue": "bad value",
            "traceback": ["Traceback (most recent call last):", "ValueError: bad value"],
        }
    )
    info = scan(Cell("raise ValueError('bad value')", outputs=[entry]))
    assert info is not None
    assert info.text.splitlines()[0] == "ValueError: bad value"
    assert "Traceback (most recent call last):" in info.text


def test_list_payload_is_joined() -> None:
    entry = OutputEntry("error", data={STDERR_MIME: ["line 1\n", "line 2\n"]})
    assert scan(Cell("", outputs=[entry])).text == "line 1\nline 2\n"


def test_same_text_from_a_new_execution_is_a_new_snapshot() -> None:
    first = scan(Cell("", outputs=[OutputEntry.error("boom")]))
    second = scan(Cell("", outputs=[OutputEntry.error("boom")]))
    assert first.text == second.text
    assert first.snapshot != second.snapshot


_OUTPUTS = st.lists(
    st.one_of(
        st.builds(OutputEntry.error, st.one_of(st.none(), st.text())),
        st.builds(OutputEntry.stream, st.text()),
    ),
    max_size=4,
)


@given(outputs=_OUTPUTS, cell_type=st.sampled_from(["code", "markdown", "raw"]))
def test_scan_is_idempotent_and_matches_first_output(outputs, cell_type) -> None:
    cell = Cell("", cell_type=cell_type, outputs=outputs)

    first = scan(cell)
    second = scan(cell)

    assert first == second
    flagged = cell_type == "code" and bool(outputs) and outputs[0].output_type == "error"
    assert (first is not None) == flagged
