"""Control attachment across notebook and output changes."""

from __future__ import annotations

import asyncio

import ipywidgets as widgets
from hypothesis import given, settings
from hypothesis import strategies as st

from error_button.extension import ErrorButtonContext
from error_button.injector import CONTROL_LABEL
from error_button.notebook_model import Cell, Notebook, NotebookModel, NotebookTracker, OutputEntry
from error_button.runner import AnalysisSucceeded
from error_button.toolbar import TOOLBAR_ITEM_NAME

from conftest import settle


def _controls(cell: Cell) -> list:
    return [w for w in cell.region.children if isinstance(w, widgets.Button)]


def _regions(cell: Cell) -> list:
    return [w for w in cell.region.children if isinstance(w, widgets.Output)]


def _open(cells=(), *, client=None) -> tuple[ErrorButtonContext, Notebook]:
    ctx = ErrorButtonContext(client=client).activate()
    notebook = Notebook.with_cells(cells, path="demo.ipynb")
    ctx.tracker.add(notebook)
    return ctx, notebook


def test_existing_errored_cells_get_one_control_on_open() -> None:
    ok = Cell("x = 1")
    printed = Cell("print(1)", outputs=[OutputEntry.stream("1\n")])
    failed = Cell("1/0", outputs=[OutputEntry.error("ZeroDivisionError: division by zero")])
    ctx, notebook = _open([ok, printed, failed])

    assert _controls(ok) == []
    assert _controls(printed) == []
    [control] = _controls(failed)
    assert control.description == CONTROL_LABEL
    assert ctx.watcher.injector_for(notebook).bound_text(failed) == "ZeroDivisionError: division by zero"


def test_toolbar_button_is_added_once_per_notebook() -> None:
    ctx, notebook = _open()
    ctx.watcher.attach(notebook)
    ctx.tracker.add(notebook)

    assert notebook.toolbar.names == (TOOLBAR_ITEM_NAME,)
    item = notebook.toolbar.get_item(TOOLBAR_ITEM_NAME)
    assert isinstance(item, widgets.Button)
    assert item.icon == "star"


def test_notebooks_open_before_activation_are_watched() -> None:
    tracker = NotebookTracker()
    failed = Cell("1/0", outputs=[OutputEntry.error("boom")])
    tracker.add(Notebook.with_cells([failed]))

    ErrorButtonContext(tracker).activate()

    assert len(_controls(failed)) == 1


def test_unrelated_output_changes_do_not_duplicate_controls() -> None:
    failed = Cell("1/0", outputs=[OutputEntry.error("boom")])
    other = Cell("print(1)")
    _ctx, notebook = _open([failed, other])

    for i in range(5):
        other.append_output(OutputEntry.stream(f"{i}\n"))
    notebook.model.append_cell(Cell("y = 2"))

    assert len(_controls(failed)) == 1


def test_new_error_output_is_detected_and_new_snapshot_rebinds() -> None:
    cell = Cell("1/0")
    ctx, notebook = _open([cell])
    injector = ctx.watcher.injector_for(notebook)
    assert _controls(cell) == []

    cell.set_outputs([OutputEntry.error("first failure")])
    [first] = _controls(cell)
    assert injector.bound_text(cell) == "first failure"

    cell.set_outputs([OutputEntry.error("second failure")])
    [second] = _controls(cell)
    assert second is not first
    assert injector.bound_text(cell) == "second failure"


def test_cleared_error_removes_control_and_result_regions(fake_client) -> None:
    async def scenario():
        cell = Cell("1/0", outputs=[OutputEntry.error("boom")])
        ctx, _notebook = _open([cell], client=fake_client)
        ctx.store.set(credential="k")
        _controls(cell)[0].click()
        await settle()
        fake_client.pending[0].set_result("because")
        await settle()
        before = (len(_controls(cell)), [r.outputs[0]["text"] for r in _regions(cell)])
        cell.set_outputs([OutputEntry.stream("fixed\n")])
        return before, _controls(cell), _regions(cell)

    before, controls, regions = asyncio.run(scenario())
    assert before == (1, ["because"])
    assert controls == []
    assert regions == []


def test_cells_added_later_are_scanned_and_observed() -> None:
    _ctx, notebook = _open([Cell("x = 1")])
    added = notebook.model.insert_cell(0, Cell("1/0", outputs=[OutputEntry.error("boom")]))
    assert len(_controls(added)) == 1

    late = notebook.model.append_cell(Cell("2/0"))
    late.append_output(OutputEntry.error("late"))
    assert len(_controls(late)) == 1


def test_removed_cells_stop_being_observed() -> None:
    cell = Cell("1/0", outputs=[OutputEntry.error("boom")])
    ctx, notebook = _open([cell])
    injector = ctx.watcher.injector_for(notebook)

    notebook.model.remove_cell(cell)
    assert injector.control_for(cell) is None

    cell.set_outputs([OutputEntry.error("after removal")])
    assert injector.control_for(cell) is None


def test_notebook_without_model_is_a_no_op_until_model_arrives() -> None:
    ctx, _ = _open()
    empty = Notebook("loading.ipynb")
    ctx.tracker.add(empty)
    assert empty.toolbar.names == (TOOLBAR_ITEM_NAME,)

    failed = Cell("1/0", outputs=[OutputEntry.error("boom")])
    empty.model = NotebookModel(cells=(failed,))
    assert len(_controls(failed)) == 1


def test_closed_notebooks_are_detached() -> None:
    cell = Cell("1/0")
    ctx, notebook = _open([cell])
    ctx.tracker.remove(notebook)

    cell.set_outputs([OutputEntry.error("boom")])
    assert _controls(cell) == []
    assert ctx.watcher.injector_for(notebook) is None


def test_full_flow_with_credential_prompt(fake_client) -> None:
    async def scenario():
        cell = Cell("1/0", outputs=[OutputEntry.error("ZeroDivisionError: division by zero")])
        ctx, notebook = _open([cell], client=fake_client)
        [control] = _controls(cell)

        control.click()
        await settle()
        dialog = ctx.watcher.dialog_for(notebook)
        assert len(notebook.modal_area.children) == 1
        dialog.form.credential.value = "sk-test"
        dialog.modal.accept()
        await settle()

        loading = ([r.outputs[0]["text"] for r in _regions(cell)], control.disabled)
        fake_client.pending[0].set_result("Error reason: division by zero\nFix: check denominator")
        await settle()
        outcome = ctx.runner.last_outcome(cell.cell_id)
        return loading, outcome, [r.outputs[0]["text"] for r in _regions(cell)], control.disabled, ctx

    loading, outcome, texts, disabled, ctx = asyncio.run(scenario())
    assert loading == (["Loading..."], True)
    assert outcome == AnalysisSucceeded("Error reason: division by zero\nFix: check denominator")
    assert texts == ["Error reason: division by zero\nFix: check denominator"]
    assert disabled is False
    assert ctx.store.get().credential == "sk-test"


def test_toolbar_button_opens_config_dialog() -> None:
    async def scenario():
        ctx, notebook = _open()
        notebook.toolbar.get_item(TOOLBAR_ITEM_NAME).click()
        await settle()
        dialog = ctx.watcher.dialog_for(notebook)
        dialog.form.language.value = "EN"
        dialog.modal.accept()
        await settle()
        return ctx.store.get().target_language, notebook.modal_area.children

    language, modal_children = asyncio.run(scenario())
    assert language == "EN"
    assert modal_children == ()


@settings(max_examples=30, deadline=None)
@given(
    steps=st.lists(
        st.tuples(st.integers(min_value=0, max_value=2), st.sampled_from(["error", "stream", "clear"])),
        max_size=12,
    )
)
def test_at_most_one_control_per_cell_under_any_mutations(steps) -> None:
    cells = [Cell(f"cell {i}") for i in range(3)]
    _ctx, _notebook = _open(cells)

    for index, action in steps:
        cell = cells[index]
        if action == "error":
            cell.set_outputs([OutputEntry.error(f"error in {index}")])
        elif action == "stream":
            cell.append_output(OutputEntry.stream("text"))
        else:
            cell.clear_outputs()

    for cell in cells:
        errored = bool(cell.outputs) and cell.outputs[0].output_type == "error"
        assert len(_controls(cell)) == (1 if errored else 0)


def test_injector_tracks_result_regions_until_error_changes(fake_client) -> None:
    async def scenario():
        cell = Cell("1/0", outputs=[OutputEntry.error("boom")])
        ctx, notebook = _open([cell], client=fake_client)
        injector = ctx.watcher.injector_for(notebook)
        ctx.store.set(credential="k")
        _controls(cell)[0].click()
        await settle()
        fake_client.pending[0].set_result("because")
        await settle()
        tracked = [region.text for region in injector.result_regions(cell)]
        shown = [w is region.widget for w, region in zip(_regions(cell), injector.result_regions(cell))]
        cell.set_outputs([OutputEntry.error("boom again")])
        return tracked, shown, injector.result_regions(cell), _regions(cell), len(_controls(cell))

    tracked, shown, tracked_after, regions_after, controls_after = asyncio.run(scenario())
    assert tracked == ["because"]
    assert shown == [True]
    assert tracked_after == []
    assert regions_after == []
    assert controls_after == 1
