import asyncio
import io
import time
import unittest

import httpx
from fastapi.testclient import TestClient
from PIL import Image

from analysis.errors import TransportError
from analysis.mock import MockTongueApi
from analysis.web.server import create_app
from capture.acquisition import ImageSource
from capture.camera import CameraUnavailable, StubCamera


def _jpeg_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (32, 32), color=(180, 90, 100)).save(buffer, format="JPEG")
    return buffer.getvalue()


class _StatusApi:
    def __init__(self, error: Exception) -> None:
        self.error = error

    def analyze(self, source: ImageSource):
        raise self.error


class UiRoutesTests(unittest.TestCase):
    def setUp(self) -> None:
        self.cameras: list[StubCamera] = []
        self.api = MockTongueApi()

    def _camera_factory(self) -> StubCamera:
        camera = StubCamera()
        self.cameras.append(camera)
        return camera

    def _app(self, api=None, camera_factory=None):
        return create_app(
            api_client=api or self.api,
            camera_factory=camera_factory or self._camera_factory,
        )

    def test_page_and_initial_state(self) -> None:
        with TestClient(self._app()) as client:
            page = client.get("/ui")
            self.assertEqual(page.status_code, 200)
            self.assertIn("Tongue Image Analysis", page.text)

            css = client.get("/ui/static/style.css")
            self.assertEqual(css.status_code, 200)

            state = client.get("/ui/state").json()
            self.assertEqual(state["mode"], "idle")
            self.assertIsNone(state["image"])
            self.assertEqual(state["request"], {"state": "idle", "message": None})
            self.assertFalse(state["can_analyze"])

    def test_upload_analyze_and_clear(self) -> None:
        with TestClient(self._app()) as client:
            upload = client.post(
                "/ui/upload", files={"file": ("tongue.jpg", _jpeg_bytes(), "image/jpeg")}
            )
            self.assertEqual(upload.status_code, 200)
            image = upload.json()["image"]
            self.assertEqual(image["filename"], "tongue.jpg")
            self.assertEqual(image["mime"], "image/jpeg")

            served = client.get(image["url"])
            self.assertEqual(served.status_code, 200)
            self.assertEqual(served.headers["content-type"], "image/jpeg")

            analyzed = client.post("/ui/analyze")
            self.assertEqual(analyzed.status_code, 200)
            payload = analyzed.json()
            self.assertEqual(payload["request"]["state"], "succeeded")
            self.assertEqual(payload["result"]["ncf"]["text"], "Fissure (0.82)")
            self.assertEqual(payload["result"]["crack"]["color"], "green")
            self.assertEqual(self.api.records[0].filename, "tongue.jpg")

            cleared = client.post("/ui/clear").json()
            self.assertIsNone(cleared["image"])
            self.assertIsNone(cleared["result"])
            self.assertEqual(cleared["request"]["state"], "idle")
            self.assertEqual(client.get(image["url"]).status_code, 404)

    def test_analyze_without_image_is_bad_request(self) -> None:
        with TestClient(self._app()) as client:
            response = client.post("/ui/analyze")
            self.assertEqual(response.status_code, 400)
            self.assertEqual(response.json()["detail"], "Please upload or capture an image first")
            self.assertFalse(self.api.records)

    def test_api_failure_maps_to_bad_gateway(self) -> None:
        app = self._app(api=_StatusApi(TransportError("connection refused")))
        with TestClient(app) as client:
            client.post("/ui/upload", files={"file": ("t.jpg", _jpeg_bytes(), "image/jpeg")})
            response = client.post("/ui/analyze")
            self.assertEqual(response.status_code, 502)
            self.assertIn("connection refused", response.json()["detail"])

            state = client.get("/ui/state").json()
            self.assertEqual(state["request"]["state"], "failed")
            self.assertTrue(state["can_analyze"])
            self.assertIsNotNone(state["image"])

    def test_malformed_mock_response_maps_to_bad_gateway(self) -> None:
        app = self._app(api=MockTongueApi(response={"ncf": {"predicted_class": None}}))
        with TestClient(app) as client:
            client.post("/ui/upload", files={"file": ("t.jpg", _jpeg_bytes(), "image/jpeg")})
            response = client.post("/ui/analyze")
            self.assertEqual(response.status_code, 502)
            self.assertIn("API error: 200", response.json()["detail"])
            self.assertEqual(client.get("/ui/state").json()["request"]["state"], "failed")

    def test_camera_preview_capture_flow(self) -> None:
        with TestClient(self._app()) as client:
            self.assertEqual(client.get("/ui/camera/preview").status_code, 404)

            opened = client.post("/ui/camera")
            self.assertEqual(opened.status_code, 200)
            self.assertTrue(opened.json()["camera_open"])

            preview = client.get("/ui/camera/preview")
            self.assertEqual(preview.status_code, 200)
            self.assertEqual(preview.headers["content-type"], "image/jpeg")

            captured = client.post("/ui/camera/capture").json()
            self.assertFalse(captured["camera_open"])
            self.assertEqual(captured["image"]["kind"], "captured")
            self.assertTrue(self.cameras[0].released)

    def test_close_camera_and_shutdown_release(self) -> None:
        with TestClient(self._app()) as client:
            client.post("/ui/camera")
            closed = client.post("/ui/camera/close").json()
            self.assertEqual(closed["mode"], "idle")
            self.assertTrue(self.cameras[0].released)

            client.post("/ui/camera")
        self.assertTrue(self.cameras[1].released)

    def test_camera_unavailable_is_service_unavailable(self) -> None:
        def denied() -> StubCamera:
            raise CameraUnavailable("permission denied")

        with TestClient(self._app(camera_factory=denied)) as client:
            response = client.post("/ui/camera")
            self.assertEqual(response.status_code, 503)
            state = client.get("/ui/state").json()
            self.assertEqual(state["error"], "Camera access denied or not available")
            self.assertFalse(state["camera_open"])

    def test_slow_camera_open_keeps_event_loop_responsive(self) -> None:
        def slow_camera() -> StubCamera:
            time.sleep(1.0)
            return self._camera_factory()

        app = self._app(camera_factory=slow_camera)

        async def scenario() -> tuple[float, int, int]:
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(transport=transport, base_url="http://ui") as client:

                async def read_state() -> httpx.Response:
                    await asyncio.sleep(0.1)
                    return await client.get("/ui/state")

                async def unrelated_work() -> float:
                    started = time.monotonic()
                    await asyncio.sleep(0.2)
                    return time.monotonic() - started

                opened, state, elapsed = await asyncio.gather(
                    client.post("/ui/camera"), read_state(), unrelated_work()
                )
            return elapsed, opened.status_code, state.status_code

        elapsed, open_status, state_status = asyncio.run(scenario())

        self.assertEqual(open_status, 200)
        self.assertEqual(state_status, 200)
        self.assertLess(elapsed, 0.6)
        self.assertEqual(len(self.cameras), 1)
        app.state.session.close()
        self.assertTrue(self.cameras[0].released)


if __name__ == "__main__":
    unittest.main()
