from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from fastapi import APIRouter, File, HTTPException, Request, UploadFile
from fastapi.responses import HTMLResponse, Response
from starlette.concurrency import run_in_threadpool

from capture.camera import CameraUnavailable

from ..errors import (
    AnalysisError,
    AnalysisInProgress,
    NoImageSelected,
    user_message,
)
from ..session import AnalyzerSession


logger = logging.getLogger(__name__)

router = APIRouter(tags=["ui"])

INDEX_HTML = Path(__file__).parent / "templates" / "index.html"

_NO_STORE = {"Cache-Control": "no-store"}


def _session(request: Request) -> AnalyzerSession:
    session = getattr(request.app.state, "session", None)
    if session is None:
        raise HTTPException(status_code=500, detail="Analyzer session not configured")
    return session


@router.get("/ui", response_class=HTMLResponse)
async def ui_root() -> HTMLResponse:
    if not INDEX_HTML.exists():
        raise HTTPException(status_code=500, detail="UI template missing")
    return HTMLResponse(INDEX_HTML.read_text(encoding="utf-8"))


@router.get("/ui/state")
async def ui_state(request: Request) -> dict[str, Any]:
    return await run_in_threadpool(_session(request).snapshot)


@router.post("/ui/upload")
async def upload_image(request: Request, file: UploadFile = File(...)) -> dict[str, Any]:
    session = _session(request)
    data = await file.read()
    await run_in_threadpool(
        session.upload_file,
        data,
        mime=file.content_type or None,
        filename=file.filename or None,
    )
    return await run_in_threadpool(session.snapshot)


@router.post("/ui/camera")
async def open_camera(request: Request) -> dict[str, Any]:
    session = _session(request)
    try:
        await run_in_threadpool(session.open_camera)
    except CameraUnavailable as exc:
        raise HTTPException(status_code=503, detail=user_message(exc)) from exc
    return await run_in_threadpool(session.snapshot)


@router.get("/ui/camera/preview")
async def camera_preview(request: Request) -> Response:
    frame = await run_in_threadpool(_session(request).preview)
    if frame is None:
        raise HTTPException(status_code=404, detail="Camera is not open")
    return Response(content=frame.data, media_type=frame.mime, headers=_NO_STORE)


@router.post("/ui/camera/capture")
async def capture_frame(request: Request) -> dict[str, Any]:
    session = _session(request)
    await run_in_threadpool(session.capture)
    return await run_in_threadpool(session.snapshot)


@router.post("/ui/camera/close")
async def close_camera(request: Request) -> dict[str, Any]:
    session = _session(request)
    await run_in_threadpool(session.close_camera)
    return await run_in_threadpool(session.snapshot)


@router.post("/ui/clear")
async def clear_image(request: Request) -> dict[str, Any]:
    session = _session(request)
    await run_in_threadpool(session.clear)
    return await run_in_threadpool(session.snapshot)


@router.post("/ui/analyze")
async def analyze_image(request: Request) -> dict[str, Any]:
    session = _session(request)
    try:
        await run_in_threadpool(session.analyze)
    except NoImageSelected as exc:
        raise HTTPException(status_code=400, detail=exc.user_message) from exc
    except AnalysisInProgress as exc:
        raise HTTPException(status_code=409, detail=exc.user_message) from exc
    except AnalysisError as exc:
        raise HTTPException(status_code=502, detail=exc.user_message) from exc
    return await run_in_threadpool(session.snapshot)


@router.get("/ui/image/{display_id}")
async def serve_image(display_id: str, request: Request) -> Response:
    source = _session(request).controller.lookup(display_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=source.data, media_type=source.mime, headers=_NO_STORE)


__all__ = ["router"]
