from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from capture.camera import CameraFactory, build_camera_factory

from ..client import AnalysisApi, TongueApiHttpClient
from ..config import AnalyzerConfig
from ..session import AnalyzerSession
from . import register_ui


logger = logging.getLogger(__name__)


def create_app(
    api_client: AnalysisApi | None = None,
    camera_factory: CameraFactory | None = None,
    config: AnalyzerConfig | None = None,
) -> FastAPI:
    cfg = config or AnalyzerConfig()
    client = api_client or TongueApiHttpClient.from_config(cfg)
    factory = camera_factory or build_camera_factory("stub", "")
    session = AnalyzerSession(api=client, camera_factory=factory)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Tongue analyzer UI ready; analysis endpoint %s", cfg.analyze_url)
        try:
            yield
        finally:
            session.close()
            close_client = getattr(client, "close", None)
            if callable(close_client):
                close_client()
            logger.info("Tongue analyzer UI stopped; camera released")

    app = FastAPI(title="Tongue Analyzer", lifespan=lifespan)
    app.state.session = session
    app.state.api_client = client
    app.state.config = cfg

    @app.get("/", include_in_schema=False)
    async def index() -> RedirectResponse:
        return RedirectResponse(url="/ui")

    register_ui(app)
    return app


__all__ = ["create_app"]
