"""Parallel Screen Synthesizer — generates every remaining screen concurrently.

Each screen gets its own model invocation, started eagerly and joined at the
end. Tokens are published on a per-screen channel (a ``screen_chunk`` custom
event keyed by screen id) as they arrive, so clients see every screen take
shape before the whole batch finishes.
"""

import asyncio
import contextlib
import logging

from langchain_core.callbacks import adispatch_custom_event
from langchain_core.runnables import RunnableConfig

from screenflow.agents.designer import build_screen_prompt, reference_for
from screenflow.config import get_config
from screenflow.llm import get_llm
from screenflow.state import GeneratedScreen, Screen, SessionState, generated_ids
from screenflow.utils.parsing import response_text, strip_html_fences

logger = logging.getLogger(__name__)

SCREEN_CHUNK_EVENT = "screen_chunk"


def pending_screens(state: SessionState) -> list[tuple[int, Screen]]:
    """Planned screens after the reference screen that have not been generated yet."""
    done = generated_ids(state)
    return [
        (i, screen)
        for i, screen in enumerate(state.get("planned_screens", []))
        if i >= 1 and screen["id"] not in done
    ]


async def publish_chunk(screen_id: str, content: str, config: RunnableConfig | None) -> None:
    """Send one token fragment on the screen's channel."""
    if config is None:
        # Called outside a graph run (run_single_step, tests): nobody is listening.
        return
    await adispatch_custom_event(
        SCREEN_CHUNK_EVENT, {"screen_id": screen_id, "content": content}, config=config
    )


def _worker_gate(limit: int):
    if limit and limit > 0:
        return asyncio.Semaphore(limit)
    return contextlib.nullcontext()


async def _synthesize(
    llm,
    screen: Screen,
    prompt: str,
    gate,
    timeout: float,
    config: RunnableConfig | None,
) -> GeneratedScreen:
    parts: list[str] = []

    async def _stream():
        async for chunk in llm.astream([{"role": "user", "content": prompt}], config=config):
            text = response_text(chunk)
            if text:
                parts.append(text)
                await publish_chunk(screen["id"], text, config)

    async with gate:
        try:
            await asyncio.wait_for(_stream(), timeout=timeout)
        except Exception as exc:
            logger.warning("[ParallelDesigner] Generation failed for '%s' (%r).", screen["id"], exc)
            return {"id": screen["id"], "name": screen["name"], "html": ""}

    html = strip_html_fences("".join(parts))
    logger.info("[ParallelDesigner] Screen '%s' generated (%d chars).", screen["id"], len(html))
    return {"id": screen["id"], "name": screen["name"], "html": html}


async def parallel_designer_node(state: SessionState, config: RunnableConfig | None = None) -> dict:
    """Parallel designer node for the LangGraph StateGraph.

    Fans out one invocation per pending screen (bounded by
    ``max_parallel_screens``), waits for all of them, and returns the new
    generated_screens entries. A failed screen comes back with empty html;
    the rest of the batch is unaffected.
    """
    planned = state.get("planned_screens", [])
    pending = pending_screens(state)
    if not pending:
        return {"current_screen_index": len(planned)}

    settings = get_config()
    reference_html = reference_for(state)
    gate = _worker_gate(settings.get("max_parallel_screens", 0))
    timeout = settings.get("designer_timeout_seconds", 120)

    try:
        llm = get_llm("designer")
    except Exception as exc:
        logger.warning("[ParallelDesigner] Could not build the designer model (%r).", exc)
        return {
            "generated_screens": [{"id": s["id"], "name": s["name"], "html": ""} for _, s in pending],
            "current_screen_index": len(planned),
        }

    logger.info("[ParallelDesigner] Starting %d screens.", len(pending))
    tasks = [
        asyncio.create_task(
            _synthesize(llm, screen, build_screen_prompt(state, screen, reference_html), gate, timeout, config)
        )
        for _, screen in pending
    ]
    results = await asyncio.gather(*tasks)

    return {"generated_screens": list(results), "current_screen_index": len(planned)}
