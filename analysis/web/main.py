from __future__ import annotations

import argparse
import logging
import sys
from typing import Sequence

import uvicorn
from dotenv import load_dotenv

from capture.camera import (
    build_camera_factory,
    check_backend,
    parse_backend,
    parse_resolution,
)

from ..config import AnalyzerConfig
from ..main import add_api_arguments, add_camera_arguments, build_api_client, config_from_args
from .server import create_app

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Serve the tongue analyzer page",
        epilog="TONGUE_API_URL and related variables may be set in a .env file; "
        "CLI arguments override them.",
    )
    parser.add_argument("--host", default="127.0.0.1", help="interface to bind")
    parser.add_argument("--port", type=int, default=8080, help="port to listen on")
    add_api_arguments(parser)
    add_camera_arguments(parser, default_kind="opencv")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.INFO,
            format="%(levelname)s [%(name)s] %(message)s",
        )

    cfg: AnalyzerConfig = config_from_args(args)
    try:
        resolution = parse_resolution(args.camera_resolution)
        backend = parse_backend(cfg.camera_backend)
        if args.camera == "opencv":
            check_backend(backend)
    except ValueError as exc:
        parser.error(str(exc))
    camera_factory = build_camera_factory(
        args.camera,
        cfg.camera_source,
        resolution,
        backend,
        args.camera_warmup,
    )

    app = create_app(
        api_client=build_api_client(args, cfg),
        camera_factory=camera_factory,
        config=cfg,
    )
    logger.info("Serving UI on http://%s:%s/ui", args.host, args.port)
    try:
        uvicorn.run(app, host=args.host, port=args.port, log_level="info")
    except KeyboardInterrupt:  # pragma: no cover - interactive stop
        sys.exit(0)


if __name__ == "__main__":
    main()
