"""HTTP routes: the analysis endpoint and the internal session exposure endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse, JSONResponse

from pageaudit.audits.orchestrator import AnalysisOrchestrator
from pageaudit.errors import SessionNotFound
from pageaudit.schemas.analysis import AnalysisRequest, AnalysisResult
from pageaudit.shared.sessions import EXPOSURE_PATH, SessionRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    return request.app.state.orchestrator


def get_registry(request: Request) -> SessionRegistry:
    return request.app.state.registry


@router.post("/analyse", response_model=AnalysisResult, response_model_by_alias=True)
async def analyse(
    body: AnalysisRequest,
    performance_required: bool = Query(False, alias="performanceRequired"),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
) -> AnalysisResult:
    """Run the accessibility scan, the responsiveness sweep and, on request,
    a Lighthouse audit. Failed stages come back empty or null with a 200."""
    analysis = body.model_copy(update={"performance_required": performance_required})
    return await orchestrator.analyse(analysis)


@router.get(EXPOSURE_PATH + "/{session_id}", include_in_schema=False)
async def session_exposure(
    session_id: str,
    registry: SessionRegistry = Depends(get_registry),
):
    """Serve published HTML to the Lighthouse browser."""
    try:
        html = registry.resolve(session_id)
    except SessionNotFound:
        return JSONResponse(status_code=404, content={"error": "Session not found"})
    return HTMLResponse(content=html)


@router.get("/health", tags=["Info"])
async def health() -> dict[str, str]:
    return {"status": "ok"}
