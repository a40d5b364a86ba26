"""Client configuration.

The analysis endpoint defaults to ``DEFAULT_API_BASE_URL``. A ``.env`` file or
the process environment may override it, and command line flags override both.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://127.0.0.1:8000"
ANALYZE_PATH = "/analyze"
DEFAULT_API_TIMEOUT = 60.0

# Detection thresholds forwarded to the analysis service with every request.
DEFAULT_CONF = "0.001"
DEFAULT_IOU = "0.99"

ENV_API_URL = "TONGUE_API_URL"
ENV_API_TIMEOUT = "TONGUE_API_TIMEOUT"
ENV_CAMERA_SOURCE = "TONGUE_CAMERA_SOURCE"
ENV_CAMERA_BACKEND = "TONGUE_CAMERA_BACKEND"


@dataclass
class AnalyzerConfig:
    api_base_url: str = DEFAULT_API_BASE_URL
    api_timeout: float = DEFAULT_API_TIMEOUT
    conf: str = DEFAULT_CONF
    iou: str = DEFAULT_IOU
    camera_source: str = "0"
    camera_backend: str | None = None

    @property
    def analyze_url(self) -> str:
        return f"{self.api_base_url.rstrip('/')}{ANALYZE_PATH}"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> AnalyzerConfig:
        env = os.environ if environ is None else environ
        config = cls()
        api_url = (env.get(ENV_API_URL) or "").strip()
        if api_url:
            config.api_base_url = api_url
        timeout = (env.get(ENV_API_TIMEOUT) or "").strip()
        if timeout:
            try:
                config.api_timeout = float(timeout)
            except ValueError:
                logger.warning("Ignoring invalid %s=%r", ENV_API_TIMEOUT, timeout)
        camera_source = (env.get(ENV_CAMERA_SOURCE) or "").strip()
        if camera_source:
            config.camera_source = camera_source
        camera_backend = (env.get(ENV_CAMERA_BACKEND) or "").strip()
        if camera_backend:
            config.camera_backend = camera_backend
        return config


__all__ = [
    "ANALYZE_PATH",
    "AnalyzerConfig",
    "DEFAULT_API_BASE_URL",
    "DEFAULT_API_TIMEOUT",
    "DEFAULT_CONF",
    "DEFAULT_IOU",
]
