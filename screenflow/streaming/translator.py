"""Event Translator — turns execution signals into the client event protocol.

Two incremental buffers do the stream demultiplexing:

    ThinkingExtractor   buffer += chunk; once "<thinking>" is seen, forward
                        everything up to "</thinking>", then go quiet.
    CodeStreamDetector  buffer += chunk; once "<!DOCTYPE" / "<html" is seen,
                        drop the prose before it and forward the rest verbatim.

There is one CodeStreamDetector per screen id, so interleaved parallel streams
never share state. Lifecycle signals become "step" events plus the stage's
structured payload; raw model text is never forwarded outside those buffers.
"""

import re

from screenflow.agents.clarifier import question_index
from screenflow.agents.parallel_designer import pending_screens
from screenflow.state import has_feedback
from screenflow.streaming.signals import StageCompleted, StageEntered, Token

THINKING_OPEN = "<thinking>"
THINKING_CLOSE = "</thinking>"
THINKING_STAGES = frozenset({"clarifier", "design_system", "architect"})

_DOCUMENT_START_RE = re.compile(r"<!DOCTYPE|<html", re.IGNORECASE)


def event(kind: str, data=None) -> dict:
    return {"type": kind, "data": {} if data is None else data}


def _partial_marker(text: str, marker: str) -> int:
    """Length of the longest suffix of *text* that is a proper prefix of *marker*."""
    for size in range(min(len(marker) - 1, len(text)), 0, -1):
        if text.endswith(marker[:size]):
            return size
    return 0


class ThinkingExtractor:
    """Extract the body of the first <thinking>...</thinking> segment from a token stream.

    Markers may be split across fragments: a tail that could be the start of a
    marker is held back until the next fragment decides it.
    """

    def __init__(self):
        self.buffer = ""
        self.inside = False
        self.finished = False

    def feed(self, fragment: str) -> str:
        """Feed one fragment; return the thinking text it releases (possibly "")."""
        if self.finished or not fragment:
            return ""
        self.buffer += fragment

        if not self.inside:
            start = self.buffer.find(THINKING_OPEN)
            if start == -1:
                keep = _partial_marker(self.buffer, THINKING_OPEN)
                self.buffer = self.buffer[len(self.buffer) - keep:] if keep else ""
                return ""
            self.inside = True
            self.buffer = self.buffer[start + len(THINKING_OPEN):]

        end = self.buffer.find(THINKING_CLOSE)
        if end != -1:
            released = self.buffer[:end]
            self.buffer = ""
            self.inside = False
            self.finished = True
            return released

        keep = _partial_marker(self.buffer, THINKING_CLOSE)
        cut = len(self.buffer) - keep
        released, self.buffer = self.buffer[:cut], self.buffer[cut:]
        return released


class CodeStreamDetector:
    """Forward a screen's markup from the first document-start marker onwards."""

    def __init__(self):
        self.buffer = ""
        self.streaming = False

    def feed(self, fragment: str) -> str:
        """Feed one fragment; return the markup it releases (possibly "")."""
        if not fragment:
            return ""
        if self.streaming:
            return fragment
        self.buffer += fragment
        match = _DOCUMENT_START_RE.search(self.buffer)
        if match is None:
            return ""
        self.streaming = True
        released = self.buffer[match.start():]
        self.buffer = ""
        return released


class EventTranslator:
    """Stateful, synchronous mapping from signals to client events.

    One translator per pipeline run. ``feed`` returns the events for one
    signal, in order; ``pause_running`` relabels unfinished steps when the run
    is cancelled.
    """

    def __init__(self):
        self._thinking: ThinkingExtractor | None = None
        self._thinking_stage: str | None = None
        self._code: dict[str, CodeStreamDetector] = {}
        self._designer_screen: str | None = None
        self._planning_step: str | None = None
        self._running: dict[str, dict] = {}

    # --- helpers ---

    def _step(self, name: str, status: str, **extra) -> dict:
        payload = {"name": name, "status": status, **extra}
        if status == "started":
            self._running[name] = payload
        else:
            self._running.pop(name, None)
        return event("step", payload)

    def _start_thinking(self, stage: str) -> None:
        self._thinking = ThinkingExtractor()
        self._thinking_stage = stage

    def _stop_thinking(self) -> None:
        self._thinking = None
        self._thinking_stage = None

    def _code_chunk(self, screen_id: str, fragment: str) -> list[dict]:
        detector = self._code.setdefault(screen_id, CodeStreamDetector())
        released = detector.feed(fragment)
        if not released:
            return []
        return [event("code_chunk", {"screenId": screen_id, "content": released})]

    # --- public API ---

    def feed(self, signal) -> list[dict]:
        if isinstance(signal, Token):
            return self._on_token(signal)
        if isinstance(signal, StageEntered):
            return self._on_entered(signal)
        if isinstance(signal, StageCompleted):
            return self._on_completed(signal)
        raise TypeError(f"Unknown signal: {signal!r}")

    def pause_running(self) -> list[dict]:
        """Relabel every step still marked "started" as completed (paused)."""
        events = [
            event("step", {**payload, "status": "completed", "paused": True})
            for payload in self._running.values()
        ]
        self._running.clear()
        self._stop_thinking()
        return events

    # --- tokens ---

    def _on_token(self, token: Token) -> list[dict]:
        if token.screen_id:
            return self._code_chunk(token.screen_id, token.content)

        if token.stage == "designer" and self._designer_screen:
            return self._code_chunk(self._designer_screen, token.content)

        if token.stage in THINKING_STAGES and self._thinking and token.stage == self._thinking_stage:
            released = self._thinking.feed(token.content)
            if released:
                return [event("thought", released)]
        return []

    # --- lifecycle ---

    def _on_entered(self, signal: StageEntered) -> list[dict]:
        stage, state = signal.stage, signal.state

        if stage == "clarifier":
            self._start_thinking(stage)
            return [self._step("clarifying", "started")]

        if stage == "design_system":
            self._start_thinking(stage)
            return [self._step("design_system", "started")]

        if stage == "architect":
            self._start_thinking(stage)
            if state.get("design_approved") and state.get("planned_screens"):
                # Approved plan is replayed, not re-planned.
                self._planning_step = None
                return []
            replanning = has_feedback(state) and bool(state.get("planned_screens"))
            self._planning_step = "replanning" if replanning else "planning"
            return [self._step(self._planning_step, "started")]

        if stage == "designer":
            self._stop_thinking()
            screens = state.get("planned_screens", [])
            index = state.get("current_screen_index", 0)
            if index >= len(screens):
                return []
            screen = screens[index]
            self._designer_screen = screen["id"]
            self._code[screen["id"]] = CodeStreamDetector()
            return [
                event("screen_start", {"screenId": screen["id"], "screenName": screen["name"], "screenIndex": index}),
                self._step(
                    "designing_screen", "started",
                    screenName=screen["name"], screenIndex=index, totalScreens=len(screens),
                ),
            ]

        if stage == "parallel_designer":
            self._stop_thinking()
            pending = pending_screens(state)
            for _, screen in pending:
                self._code[screen["id"]] = CodeStreamDetector()
            total = len(state.get("planned_screens", []))
            return [
                event("parallel_screens_start", {
                    "screens": [
                        {"screenId": s["id"], "screenName": s["name"], "screenIndex": i} for i, s in pending
                    ],
                    "totalScreens": total,
                }),
                self._step("designing_screens", "started", totalScreens=total),
            ]

        return []

    def _on_completed(self, signal: StageCompleted) -> list[dict]:
        stage, output, state = signal.stage, signal.output, signal.state

        if stage == "clarifier":
            self._stop_thinking()
            question = output.get("current_question")
            if question:
                return [
                    self._step("clarifying", "waiting"),
                    event("clarification_question", {**question, "questionIndex": question_index(state)}),
                ]
            return [self._step("clarifying", "completed")]

        if stage == "design_system":
            self._stop_thinking()
            options = output.get("design_system_options")
            if options and not state.get("design_system_complete") and not state.get("selected_design_system"):
                return [
                    event("design_system_options", options),
                    self._step("design_system", "waiting"),
                ]
            return [self._step("design_system", "completed")]

        if stage == "architect":
            self._stop_thinking()
            screens = state.get("planned_screens", [])
            flows = state.get("planned_flows", [])
            events = [event("plan", screens), event("flows", flows)]
            if self._planning_step and not state.get("design_approved"):
                events.append(self._step(self._planning_step, "completed"))
                events.append(event("plan_ready", {
                    "plannedScreens": screens,
                    "plannedFlows": flows,
                    "planIssues": state.get("plan_issues", []),
                }))
            elif self._planning_step:
                events.append(self._step(self._planning_step, "completed"))
            return events

        if stage == "designer":
            self._designer_screen = None
            return []

        if stage == "save_screen":
            saved = output.get("generated_screens") or []
            if not saved:
                return []
            index = output.get("current_screen_index", 1) - 1
            screens = state.get("planned_screens", [])
            return [
                event("screen_complete", {"screenId": saved[0]["id"], "screenIndex": index}),
                self._step(
                    "designing_screen", "completed",
                    screenName=saved[0]["name"], screenIndex=index, totalScreens=len(screens),
                ),
            ]

        if stage == "parallel_designer":
            produced = output.get("generated_screens") or []
            positions = {s["id"]: i for i, s in enumerate(state.get("planned_screens", []))}
            events = [
                event("screen_complete", {"screenId": s["id"], "screenIndex": positions.get(s["id"])})
                for s in produced
            ]
            events.append(event("parallel_screens_complete", {"screens": produced}))
            events.append(self._step("designing_screens", "completed"))
            return events

        return []
