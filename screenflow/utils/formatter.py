"""Output Formatter — writes a finished run to disk: plan overview, screens and flow graph."""

import json
import re
from pathlib import Path

from screenflow.config import get_config
from screenflow.state import AUTO_VIBE_ID, SessionState

_FILENAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def _render_markdown(state: SessionState) -> str:
    """Render the plan, design choices and generation status as Markdown."""
    lines = []

    lines.append("# Screen Plan")
    lines.append("")

    # Request; the enriched version carries the clarifications
    request = state.get("enriched_request") or state.get("user_request", "")
    if request:
        lines.append("## Request")
        lines.append("")
        lines.append(request)
        lines.append("")

    # Design System
    selection = state.get("selected_design_system")
    if selection:
        font = selection.get("font", {})
        vibe = selection.get("vibe", {})
        lines.append("## Design System")
        lines.append("")
        if font.get("name"):
            lines.append(f"- **Font:** {font['name']}")
        if vibe.get("id") == AUTO_VIBE_ID:
            lines.append("- **Vibe:** auto (designer's choice)")
        elif vibe.get("name"):
            emoji = f"{vibe['emoji']} " if vibe.get("emoji") else ""
            lines.append(f"- **Vibe:** {emoji}{vibe['name']}: {vibe.get('description', '')}")
        lines.append("")

    # Screens
    screens = state.get("planned_screens", [])
    generated = {s["id"]: s for s in state.get("generated_screens", [])}
    if screens:
        lines.append("## Screens")
        lines.append("")
        for i, screen in enumerate(screens, 1):
            stored = generated.get(screen["id"])
            if stored is None:
                status = "not generated"
            elif not stored.get("html"):
                status = "failed"
            else:
                status = f"[{screen['id']}.html]({_screen_filename(screen['id'])})"
            lines.append(f"### {i}. {screen['name']}")
            lines.append("")
            lines.append(f"- **Id:** `{screen['id']}`")
            lines.append(f"- **Output:** {status}")
            lines.append("")
            if screen.get("description"):
                lines.append(screen["description"])
                lines.append("")

    # Flows
    flows = state.get("planned_flows", [])
    if flows:
        names = {s["id"]: s["name"] for s in screens}
        lines.append("## Navigation Flows")
        lines.append("")
        lines.append("| From | To | Action |")
        lines.append("|------|----|--------|")
        for flow in flows:
            src = names.get(flow["from"], flow["from"])
            dst = names.get(flow["to"], flow["to"])
            label = flow.get("label", "").replace("|", "\\|")
            lines.append(f"| {src} | {dst} | {label} |")
        lines.append("")

    # Plan issues from the structural check
    issues = state.get("plan_issues", [])
    if issues:
        lines.append("## Plan Issues")
        lines.append("")
        for issue in issues:
            lines.append(f"- {issue}")
        lines.append("")

    # Decisions taken during the conversation
    history = state.get("conversation_history", [])
    if history:
        lines.append("## Conversation")
        lines.append("")
        for turn in history:
            if turn.get("kind") == "qa":
                lines.append(f"- **{turn.get('question', '')}** {turn.get('answer', '')}")
            else:
                lines.append(f"- *Plan feedback:* {turn.get('feedback', '')}")
        lines.append("")

    return "\n".join(lines)


def _screen_filename(screen_id: str) -> str:
    return (_FILENAME_RE.sub("_", screen_id).strip("._") or "screen") + ".html"


def write_project(state: SessionState, output_dir: str | Path | None = None) -> Path:
    """Write plan.md, flows.json and one HTML file per generated screen.

    Defaults to the configured ``output_dir``. Screens with empty HTML (failed
    generations) are listed in plan.md but get no file.

    Returns the Path to the written plan.md.
    """
    if output_dir is None:
        output_dir = Path(get_config().get("output_dir", "./output"))
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    for screen in state.get("generated_screens", []):
        if screen.get("html"):
            (output_dir / _screen_filename(screen["id"])).write_text(screen["html"], encoding="utf-8")

    graph = {
        "screens": [{"id": s["id"], "name": s["name"]} for s in state.get("planned_screens", [])],
        "flows": state.get("planned_flows", []),
    }
    (output_dir / "flows.json").write_text(json.dumps(graph, indent=2, ensure_ascii=False), encoding="utf-8")

    plan_path = output_dir / "plan.md"
    plan_path.write_text(_render_markdown(state), encoding="utf-8")
    return plan_path
