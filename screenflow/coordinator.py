"""Coordinator — runs the stage graph once per request and streams client events.

The graph runs in a pump task that forwards raw LangGraph events into the
run's queue. The consumer converts them into signals, feeds the translator and
yields client events. Cancelling the run drops a sentinel into the same queue.
The consumer then relabels running steps, cancels the pump (which tears down
any in-flight model calls) and stops.
"""

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator

from screenflow.agents.parallel_designer import SCREEN_CHUNK_EVENT
from screenflow.graph import STAGES, graph
from screenflow.state import SessionState, apply_update
from screenflow.streaming.signals import StageCompleted, StageEntered, Token
from screenflow.streaming.translator import EventTranslator, event
from screenflow.streaming.wire import state_to_wire
from screenflow.utils.parsing import response_text

logger = logging.getLogger(__name__)

_CANCELLED = object()
_FINISHED = object()


class _PumpFailure:
    def __init__(self, error: BaseException):
        self.error = error


class PipelineRun:
    """Per-request cancellation handle."""

    def __init__(self, run_id: str | None = None):
        self.run_id = run_id or uuid.uuid4().hex
        self.cancelled = False
        self.queue: asyncio.Queue = asyncio.Queue()

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self.queue.put_nowait(_CANCELLED)


class RunRegistry:
    """In-flight runs by id, so a separate request can cancel one."""

    def __init__(self):
        self._runs: dict[str, PipelineRun] = {}

    def open(self) -> PipelineRun:
        run = PipelineRun()
        self.add(run)
        return run

    def add(self, run: PipelineRun) -> None:
        self._runs[run.run_id] = run

    def get(self, run_id: str) -> PipelineRun | None:
        return self._runs.get(run_id)

    def close(self, run: PipelineRun) -> None:
        self._runs.pop(run.run_id, None)

    def __len__(self) -> int:
        return len(self._runs)


class SignalAdapter:
    """Turns raw ``astream_events`` (v2) events into translator signals.

    Keeps the running session state by merging each completed stage's update,
    so the final state can be returned to the caller.
    """

    def __init__(self, state: SessionState):
        self.state = state
        self._open: dict[str, str] = {}  # stage -> run_id of its open invocation

    def convert(self, raw: dict) -> list:
        kind = raw.get("event")
        name = raw.get("name", "")
        node = (raw.get("metadata") or {}).get("langgraph_node")
        data = raw.get("data") or {}

        if kind == "on_chain_start" and name in STAGES and node == name and name not in self._open:
            self._open[name] = raw.get("run_id", "")
            return [StageEntered(name, self.state)]

        if kind == "on_chain_end" and name in STAGES and self._open.get(name) == raw.get("run_id", ""):
            del self._open[name]
            output = data.get("output")
            if not isinstance(output, dict):
                output = {}
            self.state = apply_update(self.state, output)
            return [StageCompleted(name, output, self.state)]

        if kind == "on_chat_model_stream":
            # The parallel stage publishes on per-screen channels instead.
            if node == "parallel_designer":
                return []
            text = response_text(data.get("chunk"))
            return [Token(node or "", text)] if text else []

        if kind == "on_custom_event" and name == SCREEN_CHUNK_EVENT:
            return [Token("parallel_designer", data.get("content", ""), screen_id=data.get("screen_id"))]

        return []


async def _pump(state: SessionState, run: PipelineRun, recursion_limit: int) -> None:
    try:
        async for raw in graph.astream_events(state, version="v2", config={"recursion_limit": recursion_limit}):
            run.queue.put_nowait(raw)
    except Exception as exc:
        run.queue.put_nowait(_PumpFailure(exc))
    else:
        run.queue.put_nowait(_FINISHED)


async def run_turn(
    state: SessionState,
    run: PipelineRun | None = None,
    recursion_limit: int = 25,
) -> AsyncIterator[dict]:
    """Run the pipeline once for *state*, yielding client events.

    Ends with ``done`` (carrying the full updated state), ``error`` on a
    failure that escaped the stages, or the paused-step relabels when *run*
    is cancelled.
    """
    run = run or PipelineRun()
    translator = EventTranslator()
    adapter = SignalAdapter(state)
    pump = asyncio.create_task(_pump(state, run, recursion_limit))
    logger.info("[Coordinator] Run %s started.", run.run_id)

    try:
        while True:
            item = await run.queue.get()

            if run.cancelled:
                logger.info("[Coordinator] Run %s cancelled.", run.run_id)
                for paused in translator.pause_running():
                    yield paused
                return

            if item is _FINISHED:
                yield event("done", {"state": state_to_wire(adapter.state)})
                logger.info("[Coordinator] Run %s finished.", run.run_id)
                return

            if isinstance(item, _PumpFailure):
                logger.error("[Coordinator] Run %s failed: %r", run.run_id, item.error)
                yield event("error", {"message": str(item.error) or type(item.error).__name__})
                return

            for signal in adapter.convert(item):
                for out in translator.feed(signal):
                    if run.cancelled:
                        break
                    yield out
    finally:
        if not pump.done():
            pump.cancel()
            await asyncio.wait({pump})
