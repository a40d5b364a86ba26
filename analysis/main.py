from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Sequence

from dotenv import load_dotenv

from capture.acquisition import ImageSource
from capture.camera import (
    CameraUnavailable,
    build_camera_factory,
    check_backend,
    parse_backend,
    parse_resolution,
)

from .client import AnalysisApi, TongueApiHttpClient
from .config import AnalyzerConfig
from .errors import AnalysisError, NoImageSelected
from .mock import MockTongueApi
from .render import render_text
from .session import AnalyzerSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ANALYSIS_FAILED = 1
EXIT_NO_IMAGE = 2


def add_api_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--api",
        choices=["mock", "http"],
        default="http",
        help="analysis backend to use",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="base URL of the analysis service (default: TONGUE_API_URL or built-in)",
    )
    parser.add_argument(
        "--api-timeout", type=float, default=None, help="HTTP timeout in seconds"
    )


def add_camera_arguments(
    parser: argparse.ArgumentParser, default_kind: str = "stub"
) -> None:
    parser.add_argument(
        "--camera",
        choices=["stub", "opencv"],
        default=default_kind,
        help="camera backend to use",
    )
    parser.add_argument(
        "--camera-source",
        default=None,
        help="camera source index or URL (OpenCV) or sample image path (stub)",
    )
    parser.add_argument(
        "--camera-resolution",
        default=None,
        help="force camera resolution WIDTHxHEIGHT (only for OpenCV backend)",
    )
    parser.add_argument(
        "--camera-backend",
        default=None,
        help="preferred OpenCV backend (e.g. dshow, msmf, v4l2, 700)",
    )
    parser.add_argument(
        "--camera-warmup",
        type=int,
        default=2,
        help="number of frames to discard after opening the camera",
    )


def config_from_args(args: argparse.Namespace) -> AnalyzerConfig:
    cfg = AnalyzerConfig.from_env()
    if args.api_url:
        cfg.api_base_url = args.api_url
    if args.api_timeout is not None:
        cfg.api_timeout = args.api_timeout
    if args.camera_source is not None:
        cfg.camera_source = args.camera_source
    elif args.camera == "stub" and cfg.camera_source == "0":
        cfg.camera_source = ""
    if args.camera_backend is not None:
        cfg.camera_backend = args.camera_backend
    return cfg


def build_api_client(args: argparse.Namespace, cfg: AnalyzerConfig) -> AnalysisApi:
    if args.api == "http":
        return TongueApiHttpClient.from_config(cfg)
    return MockTongueApi()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Analyze a tongue photograph with the remote analysis service"
    )
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--image", default=None, help="path of an image file to upload")
    source.add_argument(
        "--capture", action="store_true", help="take a photo with the camera"
    )
    add_api_arguments(parser)
    add_camera_arguments(parser)
    parser.add_argument(
        "--save-frames-dir",
        default="",
        help="directory to store captured frames (empty string disables)",
    )
    parser.add_argument(
        "--json", action="store_true", help="print the raw analysis result as JSON"
    )
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def save_frame(source: ImageSource, directory: Path) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    frame_path = directory / f"{source.display_id}_{source.upload_name}"
    frame_path.write_bytes(source.data)
    logger.info("Saved frame to %s", frame_path)
    return frame_path


def run(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose else logging.WARNING,
            format="%(levelname)s [%(name)s] %(message)s",
        )

    cfg = config_from_args(args)
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
    session = AnalyzerSession(
        api=build_api_client(args, cfg), camera_factory=camera_factory
    )

    try:
        if args.image:
            image_path = Path(args.image)
            try:
                data = image_path.read_bytes()
            except OSError as exc:
                print(f"[analyzer] Cannot read {image_path}: {exc}", file=sys.stderr)
                return EXIT_NO_IMAGE
            session.upload_file(data, filename=image_path.name)
        elif args.capture:
            try:
                session.open_camera()
            except CameraUnavailable:
                print(f"[analyzer] {session.error}", file=sys.stderr)
                return EXIT_NO_IMAGE
            source = session.capture()
            if source is None:
                print("[analyzer] Failed to capture a frame", file=sys.stderr)
                return EXIT_NO_IMAGE
            if args.save_frames_dir:
                save_frame(source, Path(args.save_frames_dir))

        try:
            result = session.analyze()
        except NoImageSelected:
            print(f"[analyzer] {session.error}", file=sys.stderr)
            return EXIT_NO_IMAGE
        except AnalysisError as exc:
            print(f"[analyzer] {exc.user_message}", file=sys.stderr)
            return EXIT_ANALYSIS_FAILED

        if args.json:
            print(json.dumps(result.model_dump(), indent=2))
        else:
            print(render_text(result))
        return EXIT_OK
    finally:
        session.close()


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
