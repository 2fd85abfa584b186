"""Architect Agent — turns the clarified request into a tree of screens and navigation flows.

The Architect outputs a JSON plan: an ordered list of screens (the first one is
the entry point) and forward-only flows between them. The model is told that
no two flows may target the same screen; check_plan reports it when the model
ignores that, but the plan is returned as produced.
"""

import logging
import re

from langchain_core.runnables import RunnableConfig
from pydantic import AliasChoices, BaseModel, Field

from screenflow.config import get_config
from screenflow.llm import get_llm
from screenflow.state import Flow, Screen, SessionState, has_feedback, is_resume
from screenflow.utils.parsing import extract_structured_block, invoke_with_timeout
from screenflow.utils.plan_check import check_plan

logger = logging.getLogger(__name__)

_ID_CHARS_RE = re.compile(r"[^a-z0-9]+")


class PlannedScreen(BaseModel):
    id: str = ""
    name: str
    description: str = ""


class PlannedFlow(BaseModel):
    id: str = ""
    source: str = Field(validation_alias=AliasChoices("from", "source"))
    target: str = Field(validation_alias=AliasChoices("to", "target"))
    label: str = ""


class ArchitectReply(BaseModel):
    screens: list[PlannedScreen] = Field(default_factory=list)
    flows: list[PlannedFlow] = Field(default_factory=list)


SYSTEM_PROMPT = """\
You are an expert Product Architect & UX Lead.

YOUR GOAL: Design a COMPLETE, PRODUCTION-READY WEB APPLICATION flow with navigation transitions.

Requirements:
1. Focus on core screens: all the screens necessary for the app to be functional.
2. Quality over quantity: each screen must be essential to the user journey.
3. Order: the FIRST screen is the main entry point (login, landing page, or main view).
4. Navigation flows: define forward transitions between screens, from start to end of the journey.

Format your response:

<thinking>
[Brief analysis of the user journey, screen selection and navigation flows]
</thinking>

```json
{
  "screens": [
    {"id": "screen_id", "name": "Screen Name",
     "description": "What this screen shows and its purpose, in as much detail as possible."}
  ],
  "flows": [
    {"id": "flow_1", "from": "source_screen_id", "to": "target_screen_id",
     "label": "Action description (e.g. 'Signs in', 'Views product')"}
  ]
}
```

Flows MUST form a TREE:
- Only forward navigation paths (no logout, no back buttons).
- One screen can lead to MULTIPLE screens (branching).
- NO TWO FLOWS MAY TARGET THE SAME SCREEN. If two paths lead to similar content,
  create two distinct screens instead of converging on one.
- The first screen has no incoming flow; every other screen has exactly one.
- Use short, action-oriented labels.
- Screen ids are lowercase snake_case and unique.

EXAMPLE TREE:
Landing -> Auth -> [Dashboard, Admin Panel]
Dashboard -> [Cart, Profile, Settings]
Cart -> [Payment Success, Payment Failed]
"""


def _slug_id(name: str) -> str:
    return _ID_CHARS_RE.sub("_", name.lower()).strip("_") or "screen"


def _build_user_prompt(state: SessionState) -> str:
    """Construct the user prompt from state."""
    request = state.get("enriched_request") or state["user_request"]
    parts = [f'User Request: "{request}"']

    existing_screens = state.get("planned_screens", [])
    if has_feedback(state) and existing_screens:
        screens_text = "\n".join(f"- {s['name']} ({s['id']}): {s['description']}" for s in existing_screens)
        flows_text = "\n".join(
            f"- {f['from']} -> {f['to']}: \"{f['label']}\"" for f in state.get("planned_flows", [])
        )
        parts.append(
            f"\nPREVIOUS PLAN:\n{screens_text}\n\nPREVIOUS FLOWS:\n{flows_text or '- (none)'}\n\n"
            f"USER FEEDBACK ON THIS PLAN: \"{state['plan_feedback']}\"\n\n"
            "You MUST update the plan to comply STRICTLY with this feedback. Add, remove or modify "
            "screens and flows exactly as requested. If the user asks for a specific number of "
            "screens, return exactly that number, even if you think more would be more complete. "
            "Keep the ids of screens that are unchanged."
        )

    return "\n".join(parts)


def _normalize(reply: ArchitectReply) -> tuple[list[Screen], list[Flow]]:
    """Fill missing ids and convert to state shapes. Content is otherwise left untouched."""
    screens: list[Screen] = []
    for screen in reply.screens:
        sid = screen.id.strip() or _slug_id(screen.name)
        if not screen.id.strip():
            logger.info("[Architect] Screen '%s' had no id; using '%s'.", screen.name, sid)
        screens.append({"id": sid, "name": screen.name, "description": screen.description})

    flows: list[Flow] = []
    for i, flow in enumerate(reply.flows, 1):
        flows.append({
            "id": flow.id.strip() or f"flow_{i}",
            "from": flow.source,
            "to": flow.target,
            "label": flow.label,
        })
    return screens, flows


def _plan_update(screens: list[Screen], flows: list[Flow], screen_index: int) -> dict:
    issues = check_plan(screens, flows) if screens else []
    for issue in issues:
        logger.warning("[Architect] Plan issue: %s", issue)
    return {
        "planned_screens": screens,
        "planned_flows": flows,
        "plan_issues": issues,
        "current_screen_index": screen_index,
    }


async def architect_node(state: SessionState, config: RunnableConfig | None = None) -> dict:
    """Architect node for the LangGraph StateGraph.

    Returns the approved plan unchanged once the design is approved, keeping
    the screen cursor when resuming so the first screen is never rebuilt.
    Otherwise calls the configured Architect model and returns a new plan;
    an unusable reply yields an empty plan.
    """
    existing_screens = state.get("planned_screens", [])
    if state.get("design_approved") and existing_screens:
        screen_index = state.get("current_screen_index", 0) if is_resume(state) else 0
        return _plan_update(existing_screens, state.get("planned_flows", []), screen_index)

    settings = get_config()
    messages = [
        {"role": "system", "content": SYSTEM_PROMPT},
        {"role": "user", "content": _build_user_prompt(state)},
    ]

    try:
        llm = get_llm("architect")
        content = await invoke_with_timeout(
            llm, messages, timeout=settings.get("llm_timeout_seconds", 60), config=config
        )
    except Exception as exc:
        logger.warning("[Architect] Model call failed (%r); returning an empty plan.", exc)
        return _plan_update([], [], 0)

    result = extract_structured_block(content, ArchitectReply)
    if not result.ok:
        logger.warning("[Architect] Unusable reply (%s); returning an empty plan.", result.reason)
        return _plan_update([], [], 0)

    screens, flows = _normalize(result.value)
    logger.info("[Architect] Planned %d screens, %d flows.", len(screens), len(flows))
    return _plan_update(screens, flows, 0)
