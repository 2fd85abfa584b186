"""LangGraph StateGraph definition for the screen generation pipeline.

clarifier -> design_system -> architect -> designer -> save_screen -> parallel_designer -> END
                                      \\-> parallel_designer (resume)

Every conditional edge can also end the run early: that is how the pipeline
waits for the user (a pending question, an unchosen design system, an
unapproved plan). The next request carries the user's answer in its state and
re-enters at the clarifier; completed checkpoints are skipped.
"""

from langgraph.graph import END, StateGraph

from screenflow.agents.architect import architect_node
from screenflow.agents.clarifier import clarifier_node
from screenflow.agents.design_system import design_system_node
from screenflow.agents.designer import designer_node
from screenflow.agents.parallel_designer import parallel_designer_node
from screenflow.state import SessionState, apply_update, has_feedback, is_resume

STAGES = ("clarifier", "design_system", "architect", "designer", "save_screen", "parallel_designer")


def _checkpoint_passed(state: SessionState) -> bool:
    """A later checkpoint was already reached in an earlier turn."""
    return bool(
        state.get("design_system_complete")
        or has_feedback(state)
        or state.get("design_approved")
    )


def _route_after_clarifier(state: SessionState) -> str:
    """Conditional edge: continue once clarification is done, else wait for the answer."""
    if state.get("clarification_complete") or _checkpoint_passed(state):
        return "design_system"
    return "end"


def _route_after_design_system(state: SessionState) -> str:
    """Conditional edge: continue once a design system is settled, else wait for a choice.

    Priority order:
    1. a later checkpoint already passed → architect
    2. the stage marked itself complete (skipped, selected or no options) → architect
    3. options proposed but nothing selected → end (waiting on the user)
    """
    if _checkpoint_passed(state) or state.get("design_system_complete"):
        return "architect"
    if state.get("design_system_options") and not state.get("selected_design_system"):
        return "end"
    return "architect"


def _route_after_architect(state: SessionState) -> str:
    """Conditional edge: resume straight into the parallel stage, build screen 0, or wait for approval."""
    if is_resume(state):
        return "parallel_designer"
    if state.get("design_approved"):
        return "designer"
    return "end"


def _route_after_save(state: SessionState) -> str:
    """Conditional edge: fan out to the remaining screens if there are any."""
    if len(state.get("planned_screens", [])) > 1:
        return "parallel_designer"
    return "end"


def save_screen_node(state: SessionState) -> dict:
    """Bookkeeping node: commit the screen the designer just produced and advance the cursor.

    The first committed screen becomes the reference for the rest of the run
    (the reference_html reducer keeps an existing value).
    """
    index = state.get("current_screen_index", 0)
    screens = state.get("planned_screens", [])
    if index >= len(screens):
        return {}
    screen = screens[index]
    html = state.get("current_screen_html", "")

    return {
        "generated_screens": [{"id": screen["id"], "name": screen["name"], "html": html}],
        "reference_html": html,
        "current_screen_index": index + 1,
        "current_screen_html": "",
    }


# --- Build the graph ---

workflow = StateGraph(SessionState)

workflow.add_node("clarifier", clarifier_node)
workflow.add_node("design_system", design_system_node)
workflow.add_node("architect", architect_node)
workflow.add_node("designer", designer_node)
workflow.add_node("save_screen", save_screen_node)
workflow.add_node("parallel_designer", parallel_designer_node)

workflow.set_entry_point("clarifier")

workflow.add_conditional_edges(
    "clarifier",
    _route_after_clarifier,
    {"design_system": "design_system", "end": END},
)
workflow.add_conditional_edges(
    "design_system",
    _route_after_design_system,
    {"architect": "architect", "end": END},
)
workflow.add_conditional_edges(
    "architect",
    _route_after_architect,
    {"parallel_designer": "parallel_designer", "designer": "designer", "end": END},
)
workflow.add_edge("designer", "save_screen")
workflow.add_conditional_edges(
    "save_screen",
    _route_after_save,
    {"parallel_designer": "parallel_designer", "end": END},
)
workflow.add_edge("parallel_designer", END)

graph = workflow.compile()


# --- Step-execution helpers for the manual HITL loop ---

_NODE_FNS = {
    "clarifier": clarifier_node,
    "design_system": design_system_node,
    "architect": architect_node,
    "designer": designer_node,
    "save_screen": save_screen_node,
    "parallel_designer": parallel_designer_node,
}

_ROUTES = {
    "clarifier": _route_after_clarifier,
    "design_system": _route_after_design_system,
    "architect": _route_after_architect,
    "designer": lambda state: "save_screen",
    "save_screen": _route_after_save,
    "parallel_designer": lambda state: "end",
}


async def run_single_step(state: SessionState, node_name: str) -> SessionState:
    """Run a single node and return the updated state.

    Used by tests and the CLI for step-by-step execution outside the compiled
    graph. Updates are merged with the graph's reducers.
    """
    node_fn = _NODE_FNS[node_name]
    updates = node_fn(state)
    if hasattr(updates, "__await__"):
        updates = await updates
    return apply_update(state, updates)


def next_stage(state: SessionState, node_name: str) -> str:
    """Public wrapper: the stage that follows *node_name* for this state ("end" to halt)."""
    return _ROUTES[node_name](state)
