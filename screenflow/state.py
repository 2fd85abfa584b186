"""Session State — single source of truth passed through the graph.

The caller owns persistence: every turn sends the previous state back in and
receives the updated state out. Nothing here is kept server-side.
"""

import operator
from typing import Annotated, Literal, NotRequired, TypedDict


class Question(TypedDict):
    id: str
    question: str
    options: list[str]


class Turn(TypedDict):
    kind: Literal["qa", "plan_feedback"]
    question: NotRequired[str]
    answer: NotRequired[str]
    feedback: NotRequired[str]


class FontOption(TypedDict):
    id: str
    name: str
    description: str
    category: str


class VibeOption(TypedDict):
    id: str
    name: str
    description: str
    keywords: list[str]
    emoji: str


class DesignSystemOptions(TypedDict):
    fonts: list[FontOption]
    vibes: list[VibeOption]


class DesignSystemSelection(TypedDict):
    font: FontOption
    vibe: VibeOption


class Screen(TypedDict):
    id: str  # Join key for flows and generated screens. Stable once planned.
    name: str
    description: str


# "from" is a keyword, so Flow uses the functional syntax.
Flow = TypedDict("Flow", {"id": str, "from": str, "to": str, "label": str})


class GeneratedScreen(TypedDict):
    id: str
    name: str
    html: str


AUTO_VIBE_ID = "auto"


def merge_screens(existing: list[GeneratedScreen], new: list[GeneratedScreen]) -> list[GeneratedScreen]:
    """Append-only merge keyed by screen id. A stored screen is never replaced."""
    seen = {s["id"] for s in existing}
    merged = list(existing)
    for screen in new:
        if screen["id"] not in seen:
            merged.append(screen)
            seen.add(screen["id"])
    return merged


def _keep_first(existing: str, new: str) -> str:
    """Reference HTML is frozen once set."""
    return existing or new


class SessionState(TypedDict):
    user_request: str  # Original prompt. Immutable after init.
    conversation_history: Annotated[list[Turn], operator.add]  # Append-only.
    current_question: Question | None
    clarification_complete: bool
    skip_to_planning: bool
    enriched_request: str
    design_system_options: DesignSystemOptions | None
    selected_design_system: DesignSystemSelection | None
    design_system_complete: Annotated[bool, operator.or_]  # Monotonic.
    design_approved: Annotated[bool, operator.or_]  # Monotonic.
    plan_feedback: str
    planned_screens: list[Screen]
    planned_flows: list[Flow]
    plan_issues: list[str]
    current_screen_index: int
    reference_html: Annotated[str, _keep_first]
    current_screen_html: str
    generated_screens: Annotated[list[GeneratedScreen], merge_screens]


_REDUCERS = {
    "conversation_history": operator.add,
    "design_system_complete": operator.or_,
    "design_approved": operator.or_,
    "reference_html": _keep_first,
    "generated_screens": merge_screens,
}


def new_session(user_request: str, **overrides) -> SessionState:
    """Build a fresh state for a brand-new conversation."""
    state: SessionState = {
        "user_request": user_request,
        "conversation_history": [],
        "current_question": None,
        "clarification_complete": False,
        "skip_to_planning": False,
        "enriched_request": "",
        "design_system_options": None,
        "selected_design_system": None,
        "design_system_complete": False,
        "design_approved": False,
        "plan_feedback": "",
        "planned_screens": [],
        "planned_flows": [],
        "plan_issues": [],
        "current_screen_index": 0,
        "reference_html": "",
        "current_screen_html": "",
        "generated_screens": [],
    }
    state.update(overrides)
    return state


def apply_update(state: SessionState, update: dict | None) -> SessionState:
    """Merge a stage's partial update using the same reducers as the graph."""
    if not update:
        return state
    merged = dict(state)
    for key, value in update.items():
        reducer = _REDUCERS.get(key)
        if reducer is not None and key in merged:
            merged[key] = reducer(merged[key], value)
        else:
            merged[key] = value
    return merged


def has_feedback(state: SessionState) -> bool:
    return bool((state.get("plan_feedback") or "").strip())


def is_resume(state: SessionState) -> bool:
    """True when part of the screen output already exists."""
    return state.get("current_screen_index", 0) > 0 or bool(state.get("generated_screens"))


def qa_turns(state: SessionState) -> list[Turn]:
    return [t for t in state.get("conversation_history", []) if t.get("kind") == "qa"]


def generated_ids(state: SessionState) -> set[str]:
    return {s["id"] for s in state.get("generated_screens", [])}
