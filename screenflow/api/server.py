"""HTTP surface: streams pipeline events as NDJSON, one event per line."""

import json
import logging

from fastapi import FastAPI, HTTPException, status
from fastapi.responses import StreamingResponse

from screenflow.agents.design_doc import document_design_system, extract_project_name
from screenflow.api.schemas import (
    DesignDocResponse,
    GenerateRequest,
    HtmlRequest,
    ProjectNameResponse,
)
from screenflow.config import get_config
from screenflow.coordinator import PipelineRun, RunRegistry, run_turn
from screenflow.logging_setup import configure_logging
from screenflow.utils.validator import validate_prompt

logger = logging.getLogger(__name__)

app = FastAPI(title="screenflow", version="0.1.0")
runs = RunRegistry()


@app.get("/api/health")
def health() -> dict:
    return {"status": "ok", "activeRuns": len(runs)}


@app.post("/api/generate", response_class=StreamingResponse)
async def generate(request: GenerateRequest):
    try:
        validate_prompt(request.prompt)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    state = request.to_session_state()
    run = PipelineRun()

    async def event_stream():
        runs.add(run)
        try:
            async for item in run_turn(state, run):
                yield json.dumps(item, ensure_ascii=False) + "\n"
        finally:
            runs.close(run)

    headers = {
        "Cache-Control": "no-cache, no-transform",
        "X-Accel-Buffering": "no",
        "X-Run-Id": run.run_id,
    }
    return StreamingResponse(event_stream(), media_type="application/x-ndjson", headers=headers)


@app.post("/api/runs/{run_id}/cancel", status_code=status.HTTP_202_ACCEPTED)
def cancel_run(run_id: str) -> dict:
    run = runs.get(run_id)
    if run is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Run not found")
    run.cancel()
    return {"runId": run_id, "cancelled": True}


@app.post("/api/design-system", response_model=DesignDocResponse)
async def design_system_doc(payload: HtmlRequest) -> DesignDocResponse:
    if not payload.html.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No HTML provided")
    try:
        markdown = await document_design_system(payload.html)
    except Exception as exc:
        logger.error("[DesignDoc] Generation failed: %r", exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to generate design system",
        ) from exc
    return DesignDocResponse(markdown=markdown)


@app.post("/api/extract-name", response_model=ProjectNameResponse)
async def extract_name(payload: HtmlRequest) -> ProjectNameResponse:
    if not payload.html.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No HTML provided")
    return ProjectNameResponse(name=await extract_project_name(payload.html))


def serve() -> None:
    """Console entry point: run the API with uvicorn using config host/port."""
    import uvicorn

    config = get_config()
    configure_logging()
    uvicorn.run(app, host=config.get("server_host", "127.0.0.1"), port=config.get("server_port", 8000))
