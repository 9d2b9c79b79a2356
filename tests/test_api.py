"""
Tests for the HTTP surface.
"""

import socket
import threading

import httpx
import pytest
import uvicorn
from fastapi.testclient import TestClient

from depthcam.api import server
from depthcam.api.server import create_app, set_components
from depthcam.camera.camera_service import CameraService
from depthcam.capture.orchestrator import CaptureOrchestrator
from depthcam.hardware.tilt import TiltController
from depthcam.state import RenderMode


@pytest.fixture
def camera(mock_source, state, stop_event):
    camera = CameraService(mock_source, state, stop_event=stop_event, day_probe_seconds=0)
    yield camera
    camera.cleanup()


@pytest.fixture
def orchestrator(camera, state, recorder, capture_dir):
    """Capture orchestrator reading the camera's live frame cell, as wired in main."""
    orch = CaptureOrchestrator(
        frame_cell=camera.frame_cell,
        state=state,
        recorder=recorder,
        output_dir=capture_dir,
        audio_seconds=1,
    )
    yield orch
    recorder.wait(timeout=5.0)


@pytest.fixture
def components(state, camera, orchestrator, mock_source):
    tilt = TiltController(mock_source, state, cooldown_seconds=0.0)
    stream_stop = threading.Event()
    stream_stop.set()
    set_components(
        state=state,
        camera=camera,
        capture=orchestrator,
        tilt=tilt,
        stop_event=stream_stop,
    )
    yield {"state": state, "camera": camera, "capture": orchestrator, "tilt": tilt}
    set_components(stop_event=threading.Event())


@pytest.fixture
def client(components, tmp_path):
    app = create_app(username="", password="", frame_interval=0.01, web_dir=tmp_path / "web")
    return TestClient(app)


class TestLiveView:
    """Tests for /latest.jpg, /stream and /stream-jpg."""

    def test_latest_before_first_frame(self, client):
        assert client.get("/latest.jpg").status_code == 503

    def test_latest_jpeg(self, client, camera, rgb_frame):
        camera.frame_cell.publish(rgb_frame)
        response = client.get("/latest.jpg")

        assert response.status_code == 200
        assert response.headers["content-type"] == "image/jpeg"
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert response.content[:2] == b"\xff\xd8"

    def test_stream_content_type(self, client, camera, rgb_frame):
        camera.frame_cell.publish(rgb_frame)
        response = client.get("/stream")

        assert response.status_code == 200
        assert response.headers["content-type"] == "multipart/x-mixed-replace; boundary=frame"

    def test_stream_jpg_page(self, client):
        response = client.get("/stream-jpg")
        assert response.status_code == 200
        assert "/latest.jpg" in response.text


def free_port() -> int:
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def read_parts(chunks, count: int) -> bytes:
    """Read from a streaming body until ``count`` multipart boundaries arrived."""
    data = b""
    while data.count(b"--frame\r\n") < count:
        data += next(chunks)
    return data


@pytest.fixture
def live_server(components, wait_until, tmp_path):
    """Real uvicorn server on a background thread with a running stream."""
    stream_stop = threading.Event()
    set_components(stop_event=stream_stop, **components)

    port = free_port()
    app = create_app(username="", password="", frame_interval=0.01, web_dir=tmp_path / "web")
    uv = uvicorn.Server(uvicorn.Config(app, host="127.0.0.1", port=port, log_level="warning"))
    thread = threading.Thread(target=uv.run, name="TestServerThread", daemon=True)
    thread.start()
    assert wait_until(lambda: uv.started, timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    stream_stop.set()
    uv.should_exit = True
    thread.join(timeout=5.0)


class TestLiveStreaming:
    """Tests for MJPEG fan-out over real HTTP connections."""

    def test_two_clients_independent(self, live_server, camera, rgb_frame):
        """Test both clients get parts and one disconnecting leaves the other streaming."""
        camera.frame_cell.publish(rgb_frame)

        with httpx.Client(base_url=live_server, timeout=5.0) as first, httpx.Client(
            base_url=live_server, timeout=5.0
        ) as second:
            with second.stream("GET", "/stream") as kept:
                assert kept.headers["content-type"] == "multipart/x-mixed-replace; boundary=frame"
                kept_chunks = kept.iter_bytes()

                with first.stream("GET", "/stream") as dropped:
                    data = read_parts(dropped.iter_bytes(), 2)
                    assert b"Content-Type: image/jpeg" in data
                    assert b"\xff\xd8" in data

                assert b"\xff\xd8" in read_parts(kept_chunks, 2)
                # First client is gone; the second keeps receiving frames
                assert b"\xff\xd8" in read_parts(kept_chunks, 3)


class TestControl:
    """Tests for /api/status and /api/set."""

    def test_status_fields(self, client):
        data = client.get("/api/status").json()

        assert data["mode"] == "RGB"
        assert data["autoNight"] is True
        assert data["night"] == 36
        assert data["day"] == 44
        assert data["jpeg"] == 60
        assert data["lastCapture"] == ""
        assert data["lastAudio"] == ""
        assert data["recording"] is False
        assert data["tilt"] == 0

    def test_set_tuning(self, client, state):
        data = client.get("/api/set", params={"jpeg": "5", "night": "50"}).json()

        assert data["jpeg"] == 10
        assert data["night"] == 50
        assert data["day"] == 51
        assert state.jpeg_quality == 10

    def test_set_mode(self, client, state, mock_source):
        data = client.get("/api/set", params={"mode": "ir"}).json()

        assert data["mode"] == "IR"
        assert data["autoNight"] is False
        assert mock_source.color_mode is RenderMode.INFRARED

    def test_set_tilt_abs(self, client, mock_source):
        data = client.get("/api/set", params={"tiltAbs": "50"}).json()
        assert data["tilt"] == 27
        assert mock_source.elevation_angle == 27

    def test_set_snap(self, client, camera, rgb_frame, capture_dir):
        camera.frame_cell.publish(rgb_frame)
        data = client.get("/api/set", params={"snap": "1"}).json()

        snapshots = list(capture_dir.glob("*.jpg"))
        assert len(snapshots) == 1
        assert data["lastCapture"] == str(snapshots[0])

    def test_malformed_values_ignored(self, client):
        data = client.get("/api/set", params={"jpeg": "high", "auto": "maybe"}).json()
        assert data["jpeg"] == 60
        assert data["autoNight"] is True

    def test_status_without_state(self, client):
        set_components(state=None)
        assert client.get("/api/status").status_code == 503


class TestCaptures:
    """Tests for audio and capture file endpoints."""

    def test_last_wav_missing(self, client):
        assert client.get("/last.wav").status_code == 404

    def test_last_wav_after_recording(self, client, recorder):
        client.get("/api/set", params={"record": "1"})
        assert recorder.wait(5.0)

        response = client.get("/last.wav")
        assert response.status_code == 200
        assert response.headers["content-type"] == "audio/wav"
        assert response.content[:4] == b"RIFF"

        audios = client.get("/api/audios").json()["audios"]
        assert audios == [recorder.last_audio_path.name]

    def test_snapshot_listing_and_serving(self, client, capture_dir):
        (capture_dir / "20240101_000000_001.jpg").write_bytes(b"\xff\xd8a")
        (capture_dir / "20240101_000000_002.jpg").write_bytes(b"\xff\xd8b")

        names = client.get("/api/snapshots").json()["snapshots"]
        assert names == ["20240101_000000_002.jpg", "20240101_000000_001.jpg"]

        response = client.get("/captures/20240101_000000_001.jpg")
        assert response.status_code == 200
        assert response.content == b"\xff\xd8a"

    @pytest.mark.parametrize("name", ["missing.jpg", ".hidden", "..%2Fsecret.jpg"])
    def test_capture_not_found(self, client, capture_dir, name):
        (capture_dir / ".hidden").write_bytes(b"x")
        (capture_dir.parent / "secret.jpg").write_bytes(b"x")
        assert client.get(f"/captures/{name}").status_code == 404


class TestService:
    """Tests for root, UI redirect and health."""

    def test_root_banner(self, client):
        data = client.get("/").json()
        assert data["service"] == "DepthCam"
        assert data["mode"] == "RGB"

    def test_root_redirects_to_ui(self, components, tmp_path):
        web = tmp_path / "web"
        web.mkdir()
        (web / "ui.html").write_text("<html></html>")
        client = TestClient(create_app(username="", password="", web_dir=web))

        response = client.get("/", follow_redirects=False)
        assert response.status_code == 307
        assert response.headers["location"] == "/ui"
        assert client.get("/ui").status_code == 200

    def test_health(self, client):
        data = client.get("/health").json()
        assert data["status"] == "healthy"
        assert data["camera"]["frame_version"] == 0


class TestAuth:
    """Tests for optional Basic authentication."""

    @pytest.fixture
    def secured(self, components, tmp_path):
        app = create_app(username="admin", password="s3cret", web_dir=tmp_path / "web")
        return TestClient(app)

    def test_missing_credentials(self, secured):
        response = secured.get("/api/status")
        assert response.status_code == 401
        assert response.headers["www-authenticate"].startswith("Basic")

    def test_wrong_password(self, secured):
        assert secured.get("/api/status", auth=("admin", "nope")).status_code == 401

    def test_valid_credentials(self, secured):
        assert secured.get("/api/status", auth=("admin", "s3cret")).status_code == 200

    def test_health_is_open(self, secured):
        assert secured.get("/health").status_code == 200


def test_components_reset():
    """Test set_components keeps the previous stop event when none is given."""
    event = server._stop_event
    set_components()
    assert server._stop_event is event
