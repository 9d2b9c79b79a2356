"""
FastAPI Server - live view, media and control surface

Provides HTTP endpoints for:
- MJPEG live stream and single-frame JPEG
- Last recorded audio and capture file listing/serving
- JSON status and query-string commands (/api/set)
- Health checks

Security: optional HTTP Basic authentication when api.username and
api.password are configured. Designed for local network or VPN access.
"""

import logging
import secrets
import threading
from datetime import datetime
from pathlib import Path

import psutil
import uvicorn
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, Response
from fastapi.responses import FileResponse, HTMLResponse, JSONResponse, RedirectResponse, StreamingResponse
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel

from depthcam import __version__
from depthcam.api.commands import apply_commands
from depthcam.api.streaming import mjpeg_frames
from depthcam.camera.encoding import encode_jpeg
from depthcam.capture.files import AUDIO_PATTERN, SNAPSHOT_PATTERN, list_capture_files

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}

STREAM_JPG_PAGE = """<html><head><title>DepthCam</title></head>
<body style="margin:0;background:#111">
<img id="cam" src="/latest.jpg" style="width:100%">
<script>
const img = document.getElementById("cam");
setInterval(() => {{ img.src = "/latest.jpg?t=" + Date.now(); }}, {refresh_ms});
</script>
</body></html>"""


class StatusResponse(BaseModel):
    """Control-surface status."""

    mode: str
    autoNight: bool
    tint: bool
    smooth: bool
    jpeg: int
    night: int
    day: int
    lastCapture: str
    lastAudio: str
    tilt: int
    recording: bool
    skeleton: bool


# Global component references
_state = None
_camera = None
_capture = None
_tilt = None
_motion = None
_stop_event = threading.Event()
_start_time = datetime.now()


def set_components(
    state=None,
    camera=None,
    capture=None,
    tilt=None,
    motion=None,
    stop_event: threading.Event | None = None,
) -> None:
    """Set references to system components."""
    global _state, _camera, _capture, _tilt, _motion, _stop_event
    _state = state
    _camera = camera
    _capture = capture
    _tilt = tilt
    _motion = motion
    if stop_event is not None:
        _stop_event = stop_event


def build_status() -> dict:
    """Status fields from the state, capture and tilt components."""
    if _state is None:
        raise HTTPException(status_code=503, detail="Device state not available")

    status = _state.get_status()
    capture = _capture.get_status() if _capture else {}
    status["lastCapture"] = capture.get("lastCapture", "")
    status["lastAudio"] = capture.get("lastAudio", "")
    status["recording"] = capture.get("recording", False)
    if _tilt is not None:
        status["tilt"] = _tilt.angle
    return status


def _output_dir() -> Path:
    if _capture is not None:
        return _capture.output_dir
    from depthcam.config import capture_config

    return Path(capture_config.output_dir)


def create_app(
    username: str | None = None,
    password: str | None = None,
    frame_interval: float | None = None,
    boundary: str | None = None,
    web_dir: Path | None = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Unset arguments fall back to the api/stream settings.
    """
    from depthcam.config import WEB_DIR, api_config, stream_config

    username = api_config.username if username is None else username
    password = api_config.password if password is None else password
    frame_interval = stream_config.frame_interval_seconds if frame_interval is None else frame_interval
    boundary = stream_config.boundary if boundary is None else boundary
    web_dir = WEB_DIR if web_dir is None else Path(web_dir)
    ui_page = web_dir / "ui.html"

    app = FastAPI(
        title="DepthCam API",
        description="Depth-sensor network camera: live view, captures and control",
        version=__version__,
    )

    basic = HTTPBasic(auto_error=False)

    def require_auth(credentials: HTTPBasicCredentials | None = Depends(basic)) -> None:
        if not username and not password:
            return
        valid = credentials is not None and (
            secrets.compare_digest(credentials.username.encode(), username.encode())
            and secrets.compare_digest(credentials.password.encode(), password.encode())
        )
        if not valid:
            raise HTTPException(
                status_code=401,
                detail="Unauthorized",
                headers={"WWW-Authenticate": 'Basic realm="DepthCam"'},
            )

    protected = APIRouter(dependencies=[Depends(require_auth)])

    # ==================== Status Endpoints ====================

    @app.get("/health")
    async def health():
        """Health check endpoint with basic system metrics."""
        return {
            "status": "healthy",
            "timestamp": datetime.now().isoformat(),
            "cpu_percent": psutil.cpu_percent(),
            "memory_percent": psutil.virtual_memory().percent,
            "uptime_seconds": (datetime.now() - _start_time).total_seconds(),
            "camera": _camera.get_status() if _camera else None,
            "motion": _motion.get_status() if _motion else None,
        }

    @protected.get("/")
    async def root():
        """Redirect to the control UI, or report the service banner."""
        if ui_page.exists():
            return RedirectResponse(url="/ui")
        return {
            "service": "DepthCam",
            "version": __version__,
            "status": "running",
            "mode": _state.mode.label if _state else None,
            "endpoints": ["/stream", "/stream-jpg", "/latest.jpg", "/last.wav", "/api/status"],
        }

    @protected.get("/ui")
    async def ui():
        if not ui_page.exists():
            raise HTTPException(status_code=404, detail="UI not installed")
        return FileResponse(ui_page, media_type="text/html")

    @protected.get("/api/status", response_model=StatusResponse)
    async def api_status():
        """Get control-surface status."""
        return build_status()

    @protected.get("/api/set", response_model=StatusResponse)
    def api_set(request: Request):
        """Apply query-string commands, then return the resulting status."""
        if _state is None:
            raise HTTPException(status_code=503, detail="Device state not available")
        apply_commands(
            dict(request.query_params),
            _state,
            camera=_camera,
            capture=_capture,
            tilt=_tilt,
        )
        return build_status()

    # ==================== Live View ====================

    @protected.get("/stream")
    async def stream():
        """MJPEG live stream, one independent generator per client."""
        if _camera is None or _state is None:
            raise HTTPException(status_code=503, detail="Camera not available")
        frames = mjpeg_frames(
            _camera.frame_cell,
            quality=lambda: _state.jpeg_quality,
            stop_event=_stop_event,
            interval=frame_interval,
            boundary=boundary,
        )
        return StreamingResponse(
            frames,
            media_type=f"multipart/x-mixed-replace; boundary={boundary}",
            headers=NO_CACHE_HEADERS,
        )

    @protected.get("/latest.jpg")
    def latest_jpg():
        """Current frame as a single JPEG."""
        frame = _camera.frame_cell.snapshot() if _camera else None
        if frame is None:
            raise HTTPException(status_code=503, detail="No frame available yet")
        quality = _state.jpeg_quality if _state else 60
        return Response(
            content=encode_jpeg(frame, quality),
            media_type="image/jpeg",
            headers=NO_CACHE_HEADERS,
        )

    @protected.get("/stream-jpg")
    async def stream_jpg():
        """Alternative live view: page that keeps reloading /latest.jpg."""
        refresh_ms = max(50, int(frame_interval * 1000 * 4))
        return HTMLResponse(STREAM_JPG_PAGE.format(refresh_ms=refresh_ms))

    # ==================== Captures ====================

    @protected.get("/last.wav")
    async def last_wav():
        """Most recent audio recording."""
        path = _capture.last_audio if _capture else None
        if path is None or not Path(path).is_file():
            raise HTTPException(status_code=404, detail="No recording available")
        return FileResponse(path, media_type="audio/wav", headers=NO_CACHE_HEADERS)

    @protected.get("/api/audios")
    async def api_audios():
        """Audio recordings, newest first."""
        return {"audios": [p.name for p in list_capture_files(_output_dir(), AUDIO_PATTERN)]}

    @protected.get("/api/snapshots")
    async def api_snapshots():
        """Snapshots, newest first."""
        return {"snapshots": [p.name for p in list_capture_files(_output_dir(), SNAPSHOT_PATTERN)]}

    @protected.get("/captures/{name}")
    async def capture_file(name: str):
        """Serve a file from the capture directory."""
        if "/" in name or "\\" in name or name.startswith("."):
            raise HTTPException(status_code=404, detail="Not found")
        base = _output_dir().resolve()
        path = (base / name).resolve()
        if path.parent != base or not path.is_file():
            raise HTTPException(status_code=404, detail="Not found")
        return FileResponse(path, headers=NO_CACHE_HEADERS)

    app.include_router(protected)

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})

    return app


async def start_server(
    host: str = "0.0.0.0",
    port: int = 8080,
    state=None,
    camera=None,
    capture=None,
    tilt=None,
    motion=None,
    stop_event: threading.Event | None = None,
) -> None:
    """
    Start the API server.

    Args:
        host: Bind host
        port: Bind port
        state: Device state
        camera: Camera service instance
        capture: Capture orchestrator instance
        tilt: Tilt controller instance
        motion: Motion detector instance
        stop_event: Shared shutdown flag observed by streaming clients
    """
    # Set component references
    set_components(state, camera, capture, tilt, motion, stop_event)

    # Create app
    app = create_app()

    # Configure uvicorn
    config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info",
        access_log=True,
    )

    server = uvicorn.Server(config)

    logger.info(f"Starting API server on {host}:{port}")
    await server.serve()
