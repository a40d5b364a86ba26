from __future__ import annotations

import io
import unittest

from PIL import Image

from capture.acquisition import (
    CAPTURED_FRAME,
    UPLOADED_FILE,
    AcquisitionController,
    CameraMode,
    IdleMode,
    ImageMode,
    sniff_mime,
)
from capture.camera import CameraUnavailable, Frame, StubCamera


def _png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color="pink").save(buffer, format="PNG")
    return buffer.getvalue()


class _FailingCamera(StubCamera):
    def read_frame(self) -> Frame:
        raise RuntimeError("sensor offline")


class _CameraPool:
    """Factory that hands out stub cameras and remembers them."""

    def __init__(self, camera_cls=StubCamera) -> None:
        self.opened: list[StubCamera] = []
        self._camera_cls = camera_cls

    def __call__(self) -> StubCamera:
        camera = self._camera_cls()
        self.opened.append(camera)
        return camera


def _denied() -> StubCamera:
    raise CameraUnavailable("permission denied")


class AcquisitionControllerTests(unittest.TestCase):
    def test_upload_sets_source_and_display_url(self) -> None:
        controller = AcquisitionController(camera_factory=_CameraPool())

        source = controller.upload_file(b"raw-bytes", mime="image/png", filename="tongue.png")

        self.assertIsInstance(controller.mode, ImageMode)
        self.assertIs(controller.source, source)
        self.assertEqual(source.kind, UPLOADED_FILE)
        self.assertEqual(source.mime, "image/png")
        self.assertEqual(source.upload_name, "tongue.png")
        self.assertTrue(source.display_url.startswith("/ui/image/"))
        self.assertIs(controller.lookup(source.display_id), source)

    def test_new_source_discards_previous_display_url(self) -> None:
        controller = AcquisitionController(camera_factory=_CameraPool())
        first = controller.upload_file(b"one", mime="image/jpeg")
        second = controller.upload_file(b"two", mime="image/jpeg")

        self.assertNotEqual(first.display_id, second.display_id)
        self.assertIsNone(controller.lookup(first.display_id))
        self.assertIs(controller.lookup(second.display_id), second)

    def test_upload_sniffs_mime_when_missing(self) -> None:
        controller = AcquisitionController(camera_factory=_CameraPool())
        source = controller.upload_file(_png_bytes())
        self.assertEqual(source.mime, "image/png")

    def test_open_camera_clears_image(self) -> None:
        pool = _CameraPool()
        controller = AcquisitionController(camera_factory=pool)
        uploaded = controller.upload_file(b"img", mime="image/jpeg")

        controller.open_camera()

        self.assertIsInstance(controller.mode, CameraMode)
        self.assertIsNone(controller.source)
        self.assertIsNone(controller.lookup(uploaded.display_id))
        self.assertEqual(len(pool.opened), 1)

    def test_capture_sets_frame_and_releases_camera(self) -> None:
        pool = _CameraPool()
        controller = AcquisitionController(camera_factory=pool)
        controller.open_camera()

        source = controller.capture()

        self.assertIsNotNone(source)
        self.assertEqual(source.kind, CAPTURED_FRAME)
        self.assertEqual(source.mime, "image/jpeg")
        self.assertTrue(source.data.startswith(b"\xff\xd8"))
        self.assertEqual(source.upload_name, "captured.jpg")
        self.assertTrue(pool.opened[0].released)
        self.assertFalse(controller.camera_open)

    def test_capture_without_camera_is_noop(self) -> None:
        controller = AcquisitionController(camera_factory=_CameraPool())
        self.assertIsNone(controller.capture())
        self.assertIsInstance(controller.mode, IdleMode)

    def test_failed_frame_still_releases_camera(self) -> None:
        pool = _CameraPool(camera_cls=_FailingCamera)
        controller = AcquisitionController(camera_factory=pool)
        controller.open_camera()

        self.assertIsNone(controller.capture())
        self.assertTrue(pool.opened[0].released)
        self.assertIsInstance(controller.mode, IdleMode)

    def test_close_camera_releases_without_image(self) -> None:
        pool = _CameraPool()
        controller = AcquisitionController(camera_factory=pool)
        controller.open_camera()

        controller.close_camera()

        self.assertTrue(pool.opened[0].released)
        self.assertIsInstance(controller.mode, IdleMode)
        self.assertIsNone(controller.source)

    def test_upload_while_camera_open_releases_camera(self) -> None:
        pool = _CameraPool()
        controller = AcquisitionController(camera_factory=pool)
        controller.open_camera()

        controller.upload_file(b"img", mime="image/jpeg")

        self.assertTrue(pool.opened[0].released)
        self.assertFalse(controller.camera_open)

    def test_reopening_camera_releases_previous_session(self) -> None:
        pool = _CameraPool()
        controller = AcquisitionController(camera_factory=pool)
        controller.open_camera()
        controller.open_camera()

        self.assertTrue(pool.opened[0].released)
        self.assertFalse(pool.opened[1].released)
        controller.close()
        self.assertTrue(pool.opened[1].released)

    def test_camera_unavailable_returns_to_idle(self) -> None:
        controller = AcquisitionController(camera_factory=_denied)
        controller.upload_file(b"img", mime="image/jpeg")

        with self.assertRaises(CameraUnavailable):
            controller.open_camera()

        self.assertIsInstance(controller.mode, IdleMode)
        self.assertIsNone(controller.source)

    def test_bad_camera_settings_surface_as_unavailable(self) -> None:
        def misconfigured() -> StubCamera:
            raise ValueError("Unknown OpenCV backend alias: 'bogus'")

        controller = AcquisitionController(camera_factory=misconfigured)

        with self.assertRaises(CameraUnavailable):
            controller.open_camera()

        self.assertIsInstance(controller.mode, IdleMode)

    def test_preview_reads_without_leaving_camera_mode(self) -> None:
        pool = _CameraPool()
        controller = AcquisitionController(camera_factory=pool)
        self.assertIsNone(controller.preview())

        controller.open_camera()
        frame = controller.preview()

        self.assertIsNotNone(frame)
        self.assertTrue(controller.camera_open)
        self.assertFalse(pool.opened[0].released)

    def test_clear_resets_source_and_picker(self) -> None:
        controller = AcquisitionController(camera_factory=_CameraPool())
        controller.upload_file(b"img", mime="image/jpeg")
        token = controller.picker_token
        generation = controller.generation

        controller.clear()

        self.assertIsNone(controller.source)
        self.assertNotEqual(controller.picker_token, token)
        self.assertGreater(controller.generation, generation)


class SniffMimeTests(unittest.TestCase):
    def test_falls_back_to_extension_then_octet_stream(self) -> None:
        self.assertEqual(sniff_mime(b"not an image", "photo.jpg"), "image/jpeg")
        self.assertEqual(sniff_mime(b"not an image"), "application/octet-stream")


if __name__ == "__main__":
    unittest.main()
