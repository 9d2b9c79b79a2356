"""
DepthCam Main Controller

Wires the pipeline together and runs it until SIGINT/SIGTERM:

    sensor -> CameraService (ingest, transform, publish) -> frame cell -> HTTP
    sensor depth -> MotionDetector -> CaptureOrchestrator (snapshot, audio)

Coordinates:
- Frame source (sensor collaborator)
- Camera service and day/night mode switching
- Depth motion detection
- Snapshot/audio capture and retention cleanup
- Tilt control
- REST API / MJPEG server
"""

import asyncio
import logging
import signal
import sys
import threading

logger = logging.getLogger(__name__)


class DepthCamController:
    """
    Main controller owning every component and the shared stop event.

    The stop event is the single running flag observed by the ingestion
    threads, the streaming generators and the retention thread.
    """

    def __init__(self):
        """Initialize the controller."""
        self._running = False
        self._stop_event = threading.Event()

        # Component instances (initialized in start())
        self._source = None
        self._state = None
        self._camera = None
        self._motion = None
        self._recorder = None
        self._capture = None
        self._retention = None
        self._tilt = None

        # Background async tasks (for proper cancellation on shutdown)
        self._background_tasks: list[asyncio.Task] = []

        logger.info("DepthCamController initialized")

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the DepthCam system and idle until shutdown."""
        logger.info("=== Starting DepthCam ===")

        from depthcam.config import api_config, ensure_runtime_dirs, setup_logging

        setup_logging()
        ensure_runtime_dirs()

        await self._init_components()
        self._setup_signal_handlers()
        self._running = True

        if self._retention:
            self._retention.start()

        if self._camera:
            try:
                self._camera.start()
            except Exception as e:
                logger.error(f"Failed to start camera: {e}")

        if api_config.enabled:
            from depthcam.api.server import start_server

            task = asyncio.create_task(
                start_server(
                    host=api_config.host,
                    port=api_config.port,
                    state=self._state,
                    camera=self._camera,
                    capture=self._capture,
                    tilt=self._tilt,
                    motion=self._motion,
                    stop_event=self._stop_event,
                ),
                name="api_server",
            )
            self._background_tasks.append(task)
            logger.info(f"API server task started on {api_config.host}:{api_config.port}")

        logger.info("=== DepthCam Running ===")

        # Main loop - wait for shutdown
        try:
            while self._running:
                await asyncio.sleep(1)
        except asyncio.CancelledError:
            logger.info("Main loop cancelled")

        await self._shutdown()

    async def _init_components(self) -> None:
        """Initialize all components. A failed component is logged and left as None."""
        logger.info("Initializing components...")

        from depthcam.config import capture_config, render_config, sensor_config

        # Device state
        from depthcam.state import create_default_state

        self._state = create_default_state()

        # Sensor
        try:
            from depthcam.sensor.source import create_frame_source

            self._source = create_frame_source(sensor_config.backend)
            logger.info(f"Frame source initialized ({sensor_config.backend})")
        except Exception as e:
            logger.error(f"Failed to initialize frame source: {e}")

        # Motion detector
        try:
            from depthcam.motion.detector import create_motion_detector

            self._motion = create_motion_detector()
            logger.info("Motion detector initialized")
        except Exception as e:
            logger.error(f"Failed to initialize motion detector: {e}")

        # Camera service
        if self._source is not None:
            try:
                from depthcam.camera.camera_service import CameraService

                motion_recent = None
                if self._motion is not None:
                    label_seconds = render_config.motion_label_seconds
                    motion_recent = lambda: self._motion.motion_recent(label_seconds)  # noqa: E731

                self._camera = CameraService(
                    source=self._source,
                    state=self._state,
                    stop_event=self._stop_event,
                    motion_recent=motion_recent,
                    luma_step=render_config.luma_sample_step,
                    ir_step=render_config.ir_sample_step,
                    blur_passes=render_config.blur_passes,
                    day_probe_seconds=render_config.day_probe_seconds,
                )
                if render_config.placeholder_on_start:
                    self._camera.publish_placeholder()
                logger.info("Camera service initialized")
            except Exception as e:
                logger.error(f"Failed to initialize camera: {e}")

        # Capture: recorder + orchestrator
        if self._camera is not None:
            try:
                from depthcam.capture.audio_recorder import AudioRecorder
                from depthcam.capture.orchestrator import create_capture_orchestrator

                self._recorder = AudioRecorder(
                    audio_source=self._source.audio_source,
                    output_dir=capture_config.output_dir,
                    chunk_bytes=capture_config.audio_chunk_bytes,
                )
                self._capture = create_capture_orchestrator(
                    self._camera.frame_cell, self._state, self._recorder
                )
                logger.info("Capture orchestrator initialized")
            except Exception as e:
                logger.error(f"Failed to initialize capture: {e}")

        # Wire depth -> motion -> capture
        if self._camera and self._motion:
            self._camera.on_depth(self._motion.process)
            if self._capture:
                self._motion.on_motion(self._capture.handle_motion)

        # Retention
        try:
            from depthcam.capture.retention import RetentionManager

            self._retention = RetentionManager(
                output_dir=capture_config.output_dir,
                max_snapshot_files=capture_config.max_snapshot_files,
                max_audio_files=capture_config.max_audio_files,
                interval_seconds=capture_config.cleanup_interval_minutes * 60,
                stop_event=self._stop_event,
            )
            logger.info("Retention manager initialized")
        except Exception as e:
            logger.error(f"Failed to initialize retention: {e}")

        # Tilt
        if self._source is not None:
            try:
                from depthcam.hardware.tilt import create_tilt_controller

                self._tilt = create_tilt_controller(self._source, self._state)
                self._state.set_tilt_angle(self._tilt.angle)
                logger.info("Tilt controller initialized")
            except Exception as e:
                logger.error(f"Failed to initialize tilt: {e}")

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""

        def signal_handler(signum, frame):
            logger.info(f"Signal {signum} received, initiating shutdown...")
            self._running = False

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

    async def _shutdown(self) -> None:
        """Clean shutdown of all components."""
        logger.info("Initiating shutdown...")

        # Streaming generators, ingestion and retention observe this
        self._stop_event.set()

        if self._background_tasks:
            logger.info(f"Cancelling {len(self._background_tasks)} background tasks...")
            for task in self._background_tasks:
                if not task.done():
                    task.cancel()
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._background_tasks, return_exceptions=True),
                    timeout=5.0,
                )
                logger.info("Background tasks cancelled successfully")
            except asyncio.TimeoutError:
                logger.warning("Background tasks did not cancel within 5s")
            self._background_tasks.clear()

        if self._camera:
            self._camera.cleanup()

        if self._retention:
            self._retention.stop()

        # In-flight recordings run to completion on their own thread
        if self._recorder and self._recorder.is_recording:
            logger.info("Audio recording still in progress, leaving it to finish")

        logger.info("Shutdown complete")

    def get_status(self) -> dict:
        """Get full system status."""
        return {
            "running": self._running,
            "device": self._state.get_status() if self._state else None,
            "camera": self._camera.get_status() if self._camera else None,
            "motion": self._motion.get_status() if self._motion else None,
            "capture": self._capture.get_status() if self._capture else None,
            "retention": self._retention.get_status() if self._retention else None,
            "tilt": self._tilt.get_status() if self._tilt else None,
        }


# ==================== Entry Point ====================


async def app() -> None:
    """Main application entry point."""
    controller = DepthCamController()
    await controller.start()


def main() -> None:
    """CLI entry point."""
    print("=== DepthCam ===")
    print("Depth-sensor network camera")
    print()

    try:
        asyncio.run(app())
    except KeyboardInterrupt:
        print("\nShutdown requested by user")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
