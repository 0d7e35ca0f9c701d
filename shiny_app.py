"""Shiny UI for the synthesis path finder."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from shiny import App, Inputs, Outputs, Session, reactive, render, ui

import synthesis_path


def load_graph_data(data_path: Path | None = None) -> synthesis_path.SynthesisGraph:
    """Build the synthesis graph using ``synthesis_path``.

    Parameters
    ----------
    data_path:
        Optional override path for the items CSV file. When omitted the value from
        :mod:`synthesis_path` is used.
    """

    target_path = Path(data_path) if data_path is not None else synthesis_path.DATA_FILE
    return synthesis_path.load_graph(target_path)


def resolve_query_state(
    start: str, goal: str, graph: synthesis_path.SynthesisGraph
) -> dict[str, Any]:
    """Return metadata describing the state of a start/goal query."""

    state: dict[str, Any] = {
        "start": start,
        "goal": goal,
        "path": None,
        "suggestions": [],
    }
    if not start.strip() or not goal.strip():
        state["status"] = "empty"
        return state

    for key in ("start", "goal"):
        if graph.find_item(state[key]) is None:
            state["status"] = f"{key}_not_found"
            state["suggestions"] = synthesis_path.find_matching_items(state[key], graph)
            return state

    labels = synthesis_path.shortest_path(graph, state["start"], state["goal"])
    if labels is None:
        state["status"] = "no_path"
        return state

    state["status"] = "found"
    state["path"] = labels
    return state


app_ui = ui.page_fluid(
    ui.h2("Synthesis Path Finder"),
    ui.input_text("start", "Start item", placeholder="Enter an item name"),
    ui.input_text("goal", "Goal item", placeholder="Enter an item name"),
    ui.br(),
    ui.output_ui("path_result"),
)


def server(input: Inputs, output: Outputs, session: Session) -> None:
    load_error: str | None = None
    try:
        initial_graph = load_graph_data()
    except (synthesis_path.DatasetError, FileNotFoundError) as exc:
        initial_graph = synthesis_path.SynthesisGraph()
        load_error = str(exc)

    graph_store = reactive.value(initial_graph)
    error_store = reactive.value(load_error)

    @reactive.calc
    def query_state() -> dict[str, Any]:
        error = error_store()
        if error:
            return {"status": "error", "error": error}
        return resolve_query_state(input.start(), input.goal(), graph_store())

    def _suggestion_list(names: list[str]) -> Any:
        if not names:
            return ui.div()
        return ui.div(
            ui.p("Did you mean:"),
            ui.tags.ul(*[ui.tags.li(name) for name in names[:10]]),
        )

    @output
    @render.ui
    def path_result() -> Any:
        state = query_state()
        status = state.get("status")
        if status == "error":
            return ui.div(
                ui.strong("Failed to load items."),
                ui.p(state.get("error", "Unknown error")),
            )
        if status == "empty":
            return ui.div("Type a start and a goal item to begin.")
        if status in ("start_not_found", "goal_not_found"):
            name = state["start"] if status == "start_not_found" else state["goal"]
            return ui.div(
                ui.strong(f"No item named {name!r}."),
                _suggestion_list(state.get("suggestions", [])),
            )
        if status == "no_path":
            return ui.div(
                ui.strong(f"{state['goal']} cannot be made from {state['start']}.")
            )
        steps = [ui.tags.li(label) for label in state.get("path") or []]
        return ui.card(
            ui.card_header("Shortest path"),
            ui.p(synthesis_path.render_path(state["path"])),
            ui.tags.ol(*steps),
        )


app = App(app_ui, server)


if __name__ == "__main__":  # pragma: no cover - manual launch helper
    app.run()
