"""Tests for the coordinator: signal adaptation, cancellation, and full pipeline turns."""

import asyncio
from unittest.mock import patch

from langchain_core.language_models.fake_chat_models import GenericFakeChatModel
from langchain_core.messages import AIMessage, AIMessageChunk

from screenflow.coordinator import PipelineRun, RunRegistry, SignalAdapter, run_turn
from screenflow.state import new_session
from screenflow.streaming.signals import StageCompleted, StageEntered, Token
from screenflow.streaming.wire import state_from_wire


def _chain(kind, name, run_id="r1", node=None, output=None):
    raw = {"event": kind, "name": name, "run_id": run_id, "metadata": {"langgraph_node": node or name}, "data": {}}
    if output is not None:
        raw["data"]["output"] = output
    return raw


def _collect(state, run=None):
    async def scenario():
        return [item async for item in run_turn(state, run)]
    return asyncio.run(scenario())


def _types(events):
    return [e["type"] for e in events]


class _ChunkStreamer:
    """Designer model for the parallel stage: streams fixed chunks per screen."""

    def __init__(self, replies: dict[str, str]):
        self.replies = replies

    async def astream(self, messages, config=None):
        prompt = messages[0]["content"]
        html = next(h for name, h in self.replies.items() if f"SCREEN: {name}\n" in prompt)
        for i in range(0, len(html), 7):
            await asyncio.sleep(0)
            yield AIMessageChunk(content=html[i:i + 7])


class _HangingGraph:
    """Enters the clarifier, then blocks until cancelled."""

    def __init__(self):
        self.torn_down = False

    async def astream_events(self, state, version, config):
        yield _chain("on_chain_start", "clarifier")
        try:
            await asyncio.sleep(3600)
        finally:
            self.torn_down = True


class _BacklogGraph:
    """Streams a burst of parallel screen chunks without yielding to the loop."""

    async def astream_events(self, state, version, config):
        yield _chain("on_chain_start", "parallel_designer")
        for i in range(20):
            yield {
                "event": "on_custom_event",
                "name": "screen_chunk",
                "run_id": "c",
                "metadata": {"langgraph_node": "parallel_designer"},
                "data": {"screen_id": "task_list", "content": "<!DOCTYPE html>" if i == 0 else f"<p>{i}</p>"},
            }


class _BrokenGraph:
    async def astream_events(self, state, version, config):
        raise RuntimeError("graph exploded")
        yield  # pragma: no cover


class TestRunRegistry:
    def test_open_get_close(self):
        registry = RunRegistry()
        run = registry.open()
        assert registry.get(run.run_id) is run
        assert len(registry) == 1
        registry.close(run)
        assert registry.get(run.run_id) is None
        assert len(registry) == 0


class TestSignalAdapter:
    def test_stage_lifecycle_merges_state(self, base_state):
        adapter = SignalAdapter(base_state)

        entered = adapter.convert(_chain("on_chain_start", "clarifier"))
        completed = adapter.convert(_chain("on_chain_end", "clarifier", output={"clarification_complete": True}))

        assert isinstance(entered[0], StageEntered)
        assert isinstance(completed[0], StageCompleted)
        assert completed[0].output == {"clarification_complete": True}
        assert adapter.state["clarification_complete"] is True

    def test_nested_runnable_with_same_name_ignored(self, base_state):
        adapter = SignalAdapter(base_state)
        adapter.convert(_chain("on_chain_start", "architect", run_id="outer"))

        assert adapter.convert(_chain("on_chain_start", "architect", run_id="inner")) == []
        assert adapter.convert(_chain("on_chain_end", "architect", run_id="inner", output={})) == []
        assert len(adapter.convert(_chain("on_chain_end", "architect", run_id="outer", output={}))) == 1

    def test_non_stage_chains_ignored(self, base_state):
        adapter = SignalAdapter(base_state)
        assert adapter.convert(_chain("on_chain_start", "LangGraph", node="")) == []
        assert adapter.convert(_chain("on_chain_start", "_route_after_clarifier", node="clarifier")) == []

    def test_model_tokens(self, base_state):
        adapter = SignalAdapter(base_state)
        raw = {
            "event": "on_chat_model_stream",
            "name": "ChatGoogleGenerativeAI",
            "metadata": {"langgraph_node": "architect"},
            "data": {"chunk": AIMessageChunk(content="<thinking>")},
        }
        assert adapter.convert(raw) == [Token("architect", "<thinking>")]

    def test_parallel_model_tokens_come_from_custom_channel(self, base_state):
        adapter = SignalAdapter(base_state)
        model_token = {
            "event": "on_chat_model_stream",
            "name": "ChatGoogleGenerativeAI",
            "metadata": {"langgraph_node": "parallel_designer"},
            "data": {"chunk": AIMessageChunk(content="<html>")},
        }
        custom = {
            "event": "on_custom_event",
            "name": "screen_chunk",
            "metadata": {"langgraph_node": "parallel_designer"},
            "data": {"screen_id": "cart", "content": "<html>"},
        }
        assert adapter.convert(model_token) == []
        assert adapter.convert(custom) == [Token("parallel_designer", "<html>", screen_id="cart")]


class TestCancellation:
    def test_cancel_pauses_running_steps_and_tears_down(self, base_state):
        fake_graph = _HangingGraph()
        run = PipelineRun()

        async def scenario():
            events = []
            async for item in run_turn(base_state, run):
                events.append(item)
                if item["type"] == "step" and item["data"]["status"] == "started":
                    run.cancel()
                    run.cancel()
            return events

        with patch("screenflow.coordinator.graph", fake_graph):
            events = asyncio.run(scenario())

        assert events == [
            {"type": "step", "data": {"name": "clarifying", "status": "started"}},
            {"type": "step", "data": {"name": "clarifying", "status": "completed", "paused": True}},
        ]
        assert run.cancelled is True
        assert fake_graph.torn_down is True

    def test_cancel_skips_queued_backlog(self, planned_state):
        planned_state.update({
            "design_approved": True,
            "current_screen_index": 1,
            "generated_screens": [{"id": "home", "name": "Home", "html": "<html>home</html>"}],
        })
        run = PipelineRun()

        async def scenario():
            events = []
            async for item in run_turn(planned_state, run):
                events.append(item)
                if item["type"] == "code_chunk":
                    run.cancel()
            return events

        with patch("screenflow.coordinator.graph", _BacklogGraph()):
            events = asyncio.run(scenario())

        first_chunk = _types(events).index("code_chunk")
        assert events[first_chunk + 1:] == [
            {"type": "step", "data": {"name": "designing_screens", "status": "completed", "paused": True, "totalScreens": 3}},
        ]
        assert "done" not in _types(events)

    def test_graph_failure_yields_error(self, base_state):
        with patch("screenflow.coordinator.graph", _BrokenGraph()):
            events = _collect(base_state)
        assert events == [{"type": "error", "data": {"message": "graph exploded"}}]


class TestPipelineTurns:
    """Full turns through the compiled graph with fake chat models."""

    def test_planning_then_generation(self, selection, valid_plan_reply, mock_config):
        state = new_session(
            "A todo app for small teams",
            skip_to_planning=True,
            selected_design_system=selection,
            design_system_complete=True,
        )

        # Turn 1: straight to a plan, then wait for approval.
        architect_llm = GenericFakeChatModel(messages=iter([AIMessage(content=valid_plan_reply)]))
        with patch("screenflow.agents.architect.get_llm", return_value=architect_llm):
            events = _collect(state)

        types = _types(events)
        assert "plan_ready" in types
        assert types[-1] == "done"
        assert "designing_screen" not in {e["data"].get("name") for e in events if e["type"] == "step"}
        thoughts = "".join(e["data"] for e in events if e["type"] == "thought")
        assert thoughts.strip() == "Todo app with a list and a detail screen."

        state = state_from_wire(events[-1]["data"]["state"])
        assert [s["id"] for s in state["planned_screens"]] == ["home", "task_list", "task_detail"]
        assert state["design_approved"] is False

        # Turn 2: approve and generate every screen.
        state["design_approved"] = True
        home_html = "<!DOCTYPE html><html><body>Home</body></html>"
        designer_llm = GenericFakeChatModel(messages=iter([AIMessage(content=home_html)]))
        streamer = _ChunkStreamer({
            "Task List": "<!DOCTYPE html><html><body>List</body></html>",
            "Task Detail": "Sure!\n<!DOCTYPE html><html><body>Detail</body></html>",
        })
        with patch("screenflow.agents.designer.get_llm", return_value=designer_llm), \
                patch("screenflow.agents.parallel_designer.get_llm", return_value=streamer):
            events = _collect(state)

        types = _types(events)
        assert "plan_ready" not in types
        assert types.index("screen_start") < types.index("parallel_screens_start")
        assert types.index("parallel_screens_start") < types.index("parallel_screens_complete")
        assert types[-1] == "done"

        code = {}
        for e in events:
            if e["type"] == "code_chunk":
                code[e["data"]["screenId"]] = code.get(e["data"]["screenId"], "") + e["data"]["content"]
        assert code["home"] == home_html
        assert code["task_list"] == "<!DOCTYPE html><html><body>List</body></html>"
        assert code["task_detail"] == "<!DOCTYPE html><html><body>Detail</body></html>"

        completed = [e["data"]["screenId"] for e in events if e["type"] == "screen_complete"]
        assert sorted(completed) == ["home", "task_detail", "task_list"]

        final = state_from_wire(events[-1]["data"]["state"])
        assert final["current_screen_index"] == 3
        assert final["reference_html"] == home_html
        assert {s["id"]: s["html"] for s in final["generated_screens"]}["home"] == home_html
        assert len(final["generated_screens"]) == 3

    def test_clarifier_question_ends_turn(self, base_state, mock_config):
        reply = '{"ready": false, "question": {"id": "q1", "question": "Who?", "options": ["Teams", "Solo"]}}'
        clarifier_llm = GenericFakeChatModel(messages=iter([AIMessage(content=reply)]))
        with patch("screenflow.agents.clarifier.get_llm", return_value=clarifier_llm):
            events = _collect(base_state)

        assert _types(events) == ["step", "step", "clarification_question", "done"]
        assert events[2]["data"]["questionIndex"] == 1
        final = state_from_wire(events[-1]["data"]["state"])
        assert final["current_question"]["id"] == "q1"
        assert final["planned_screens"] == []
