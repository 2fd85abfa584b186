"""Entry point: validates input, runs pipeline turns with terminal HITL, writes the output."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

from screenflow.coordinator import run_turn
from screenflow.logging_setup import configure_logging
from screenflow.state import AUTO_VIBE_ID, SessionState, new_session
from screenflow.streaming.wire import state_from_wire, state_to_wire
from screenflow.utils.formatter import write_project
from screenflow.utils.validator import validate_prompt

AUTO_VIBE = {"id": AUTO_VIBE_ID, "name": "Auto", "description": "Let the designer decide", "keywords": [], "emoji": ""}


def _choose(label: str, options: list[str], allow_custom: bool = True) -> tuple[int | None, str]:
    """Prompt for a numbered choice. Returns (index, text); index is None for custom text."""
    for i, option in enumerate(options, 1):
        print(f"  {i}. {option}")
    if allow_custom:
        print(f"  {len(options) + 1}. Custom (type your own)")
    limit = len(options) + (1 if allow_custom else 0)

    while True:
        choice = input(f"{label} (number): ").strip()
        try:
            choice_num = int(choice)
        except ValueError:
            print("Please enter a number.")
            continue

        if 1 <= choice_num <= len(options):
            return choice_num - 1, options[choice_num - 1]
        if allow_custom and choice_num == len(options) + 1:
            return None, input("Your answer: ").strip()
        print(f"Please enter a number between 1 and {limit}.")


def _answer_question(state: SessionState) -> SessionState:
    question = state["current_question"]
    print(f"\n--- {question['question']} ---")
    _, answer = _choose("Your choice", question["options"])
    return {
        **state,
        "conversation_history": state["conversation_history"]
        + [{"kind": "qa", "question": question["question"], "answer": answer}],
        "current_question": None,
    }


def _select_design_system(state: SessionState) -> SessionState:
    options = state["design_system_options"]
    print("\n--- Pick a font ---")
    font_idx, _ = _choose(
        "Font", [f"{f['name']} ({f.get('category', '')}): {f.get('description', '')}" for f in options["fonts"]],
        allow_custom=False,
    )
    print("\n--- Pick a vibe ---")
    vibes = options["vibes"]
    vibe_idx, _ = _choose(
        "Vibe",
        [f"{v.get('emoji', '')} {v['name']}: {v.get('description', '')}" for v in vibes] + ["Auto (designer decides)"],
        allow_custom=False,
    )
    vibe = vibes[vibe_idx] if vibe_idx < len(vibes) else AUTO_VIBE
    return {
        **state,
        "selected_design_system": {"font": options["fonts"][font_idx], "vibe": vibe},
        "design_system_complete": True,
    }


def _review_plan(state: SessionState) -> SessionState:
    print("\n--- Proposed screens ---")
    for i, screen in enumerate(state["planned_screens"], 1):
        print(f"  {i}. {screen['name']} — {screen['description']}")
    for flow in state["planned_flows"]:
        print(f"     {flow['from']} -> {flow['to']}: {flow['label']}")
    for issue in state.get("plan_issues", []):
        print(f"  [!] {issue}")

    feedback = input("\nPress Enter to approve, or describe the changes you want: ").strip()
    if not feedback:
        return {**state, "design_approved": True, "plan_feedback": ""}
    return {
        **state,
        "plan_feedback": feedback,
        "conversation_history": state["conversation_history"] + [{"kind": "plan_feedback", "feedback": feedback}],
    }


async def _run_one_turn(state: SessionState) -> SessionState | None:
    """Run a pipeline turn, echoing progress. Returns the new state, or None on error."""
    final = None
    async for item in run_turn(state):
        kind, data = item["type"], item["data"]
        if kind == "thought":
            print(data, end="", flush=True)
        elif kind == "step":
            extra = f" ({data['screenName']})" if data.get("screenName") else ""
            print(f"\n[screenflow] {data['name']}{extra}: {data['status']}")
        elif kind == "parallel_screens_start":
            print(f"[screenflow] Generating {len(data['screens'])} screens in parallel...")
        elif kind == "screen_complete":
            print(f"[screenflow] Screen ready: {data['screenId']}")
        elif kind == "error":
            print(f"[screenflow] Error: {data.get('message')}", file=sys.stderr)
        elif kind == "done":
            final = state_from_wire(data["state"])
    return final


async def run(state: SessionState, state_file: Path | None = None) -> SessionState:
    """Drive turns until all screens are generated or the pipeline cannot progress."""
    while True:
        result = await _run_one_turn(state)
        if result is None:
            return state
        state = result
        if state_file:
            state_file.write_text(json.dumps(state_to_wire(state), ensure_ascii=False), encoding="utf-8")

        if state.get("current_question") and not state.get("clarification_complete"):
            state = _answer_question(state)
            continue

        if (
            state.get("design_system_options")
            and not state.get("selected_design_system")
            and not state.get("design_system_complete")
        ):
            state = _select_design_system(state)
            continue

        if state.get("planned_screens") and not state.get("design_approved"):
            state = _review_plan(state)
            continue

        if not state.get("planned_screens"):
            print("[screenflow] The planner returned no screens; stopping.", file=sys.stderr)
        return state


def main() -> None:
    """CLI entry point — accepts the product idea as argument or from stdin."""
    parser = argparse.ArgumentParser(prog="screenflow", description="Generate UI screens from a product idea.")
    parser.add_argument("idea", nargs="*", help="Product idea (read from stdin when omitted)")
    parser.add_argument("--skip-questions", action="store_true", help="Go straight to planning")
    parser.add_argument("--resume", type=Path, help="State file from a previous run")
    parser.add_argument("--state-file", type=Path, help="Where to save the state after each turn")
    parser.add_argument("--output", type=Path, help="Output directory (defaults to config output_dir)")
    args = parser.parse_args()

    configure_logging()

    if args.resume:
        state = state_from_wire(json.loads(args.resume.read_text(encoding="utf-8")))
    else:
        if args.idea:
            idea = " ".join(args.idea)
        else:
            print("Enter your product idea (Ctrl+D / Ctrl+Z to submit):")
            idea = sys.stdin.read()
        state = new_session(validate_prompt(idea), skip_to_planning=args.skip_questions)

    final_state = asyncio.run(run(state, state_file=args.state_file or args.resume))

    output_path = write_project(final_state, args.output)
    generated = final_state.get("generated_screens", [])
    print(f"[screenflow] Screens generated: {sum(1 for s in generated if s.get('html'))}/{len(final_state.get('planned_screens', []))}")
    print(f"[screenflow] Output written to: {output_path}")


if __name__ == "__main__":
    main()
