from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import List, Optional

from alerts.audio import AudioCue, NullAudioCue, ToneCue
from analysis.motion import config as runtime_cfg
from analysis.motion.model import MotionConfig, motion_config_from_cfg
from analysis.motion.pipeline import MotionPipeline
from analysis.motion.roi import RegionOfInterest
from analysis.motion.sidecar import MotionSidecarWriter
from capture.nonblocking_adapter import wrap_nonblocking
from capture.reader import ReaderConfig, ReaderFactory
from capture.video_source import CameraUnavailableError
from record.backend import (
    BackendConfig,
    BackendError,
    RealtimeDbClient,
    StorageClient,
    backend_config_from_cfg,
)
from record.sink import AlertSink, BackendAlertSink, FanoutAlertSink
from record.snapshot import SnapshotError, SnapshotRecorder
from telemetry.feed import TelemetryFeed

_LOG = logging.getLogger(__name__)


def _parse_roi(text: str) -> RegionOfInterest:
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 4:
        raise argparse.ArgumentTypeError("ROI must be x,y,width,height")
    try:
        x, y, w, h = (int(float(p)) for p in parts)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid ROI {text!r}: {exc}") from exc
    return RegionOfInterest(x=x, y=y, width=max(1, w), height=max(1, h))


def build_arg_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Run the baby-monitor motion detection pipeline on a camera feed.",
    )
    ap.add_argument(
        "--camera",
        type=str,
        default=str(runtime_cfg.CAMERA_INDEX),
        help="Camera index, device path or stream URL.",
    )
    ap.add_argument(
        "--prefer",
        type=str,
        choices=["camera", "synthetic"],
        default="camera",
        help='Frame source ("camera" for a real device, "synthetic" for black frames).',
    )
    ap.add_argument("--width", type=int, default=runtime_cfg.CAMERA_WIDTH)
    ap.add_argument("--height", type=int, default=runtime_cfg.CAMERA_HEIGHT)
    ap.add_argument(
        "--fps",
        type=float,
        default=float(runtime_cfg.TARGET_FPS),
        help="Target analysis rate (cycles per second).",
    )
    ap.add_argument(
        "--max-seconds",
        type=int,
        default=0,
        help="If > 0, stop after this many seconds; otherwise run until Ctrl+C.",
    )

    # Detection tuning
    ap.add_argument(
        "--threshold", type=int, default=None, help="Pixel difference threshold (5-60)."
    )
    ap.add_argument(
        "--min-area", type=int, default=None, help="Minimum contour area in px (200-20000)."
    )
    ap.add_argument(
        "--cooldown-ms", type=int, default=None, help="Minimum gap between events (300-5000)."
    )
    ap.add_argument(
        "--use-roi", action="store_true", help="Restrict analysis to a region of interest."
    )
    ap.add_argument(
        "--roi",
        type=_parse_roi,
        default=None,
        help="ROI as x,y,width,height (implies --use-roi). Default: centred 60%% box.",
    )
    ap.add_argument(
        "--beep", action="store_true", help="Play a tone on motion events and abnormal alerts."
    )
    ap.add_argument(
        "--audio-device",
        type=int,
        default=None,
        help="PyAudio output device index for --beep (default: system default).",
    )

    # Persistence
    ap.add_argument(
        "--database-url",
        type=str,
        default=runtime_cfg.DATABASE_URL,
        help="Realtime database root URL; empty disables remote persistence.",
    )
    ap.add_argument("--storage-bucket", type=str, default=runtime_cfg.STORAGE_BUCKET)
    ap.add_argument("--auth-token", type=str, default=runtime_cfg.BACKEND_AUTH_TOKEN)
    ap.add_argument(
        "--sidecar",
        type=str,
        default=None,
        help="Optional JSONL file that journals motion events and alerts.",
    )
    ap.add_argument(
        "--snapshot-on-event",
        action="store_true",
        help="Upload an annotated snapshot after each motion event (needs --storage-bucket).",
    )
    ap.add_argument(
        "--status-interval-ms",
        type=int,
        default=runtime_cfg.TELEMETRY_POLL_MS,
        help="How often to log status and poll incubator telemetry.",
    )

    ap.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging.",
    )
    return ap


def motion_config_from_args(args: argparse.Namespace) -> MotionConfig:
    cfg = motion_config_from_cfg(runtime_cfg)
    if args.threshold is not None:
        cfg.threshold = args.threshold
    if args.min_area is not None:
        cfg.min_area = args.min_area
    if args.cooldown_ms is not None:
        cfg.cooldown_ms = args.cooldown_ms
    if args.use_roi or args.roi is not None:
        cfg.use_roi = True
    cfg.roi = args.roi
    if args.beep:
        cfg.beep_enabled = True
    return cfg.clamped()


def _audio_cue(args: argparse.Namespace, enabled: bool) -> AudioCue:
    if not enabled:
        return NullAudioCue()
    try:
        return ToneCue(output_device_index=args.audio_device)
    except RuntimeError as exc:
        _LOG.warning("audio cues disabled: %s", exc)
        return NullAudioCue()


def _backend_config(args: argparse.Namespace) -> Optional[BackendConfig]:
    base = backend_config_from_cfg(runtime_cfg)
    if not args.database_url:
        return None
    if base is None:
        base = BackendConfig(database_url=args.database_url)
    base.database_url = args.database_url
    base.storage_bucket = args.storage_bucket or ""
    base.auth_token = args.auth_token or None
    return base


def main(argv: Optional[List[str]] = None) -> int:
    ap = build_arg_parser()
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    motion_cfg = motion_config_from_args(args)

    # ------------------------------------------------------------------ sinks

    sinks: List[AlertSink] = []
    db: Optional[RealtimeDbClient] = None
    storage: Optional[StorageClient] = None
    backend_cfg = _backend_config(args)
    if backend_cfg is not None:
        db = RealtimeDbClient(backend_cfg)
        sinks.append(BackendAlertSink(db))
        if backend_cfg.storage_bucket:
            storage = StorageClient(backend_cfg)
        _LOG.info("persisting motion records to %s", backend_cfg.database_url)

    sidecar: Optional[MotionSidecarWriter] = None
    if args.sidecar:
        sidecar = MotionSidecarWriter(Path(args.sidecar))
        sidecar.open()
        sidecar.write_meta(motion_cfg)
        sinks.append(sidecar)
        _LOG.info("journaling motion records to %s", args.sidecar)

    sink = FanoutAlertSink(sinks)
    snapshots = SnapshotRecorder(db=db, storage=storage) if args.snapshot_on_event else None
    telemetry = TelemetryFeed(db) if db is not None else None

    # ------------------------------------------------------------------ source + pipeline

    reader_cfg = ReaderConfig(
        prefer=args.prefer,
        device=args.camera,
        width=args.width,
        height=args.height,
        fps=args.fps,
    )
    source = wrap_nonblocking(ReaderFactory.from_config(reader_cfg))
    audio = _audio_cue(args, motion_cfg.beep_enabled)
    pipeline = MotionPipeline(
        source=source,
        config=motion_cfg,
        sink=sink,
        audio=audio,
        target_fps=args.fps,
    )

    try:
        pipeline.start()
    except CameraUnavailableError as exc:
        sys.stderr.write(f"error: {exc}\n")
        sink.close()
        audio.close()
        return 2

    # ------------------------------------------------------------------ status loop

    t0 = time.monotonic()
    interval_s = max(args.status_interval_ms, 50) / 1000.0
    seen_events = 0
    try:
        while pipeline.running:
            time.sleep(interval_s)
            st = pipeline.status

            frame = pipeline.last_frame
            if snapshots is not None and st.event_count > seen_events and frame is not None:
                try:
                    snapshots.capture(frame, pipeline.last_boxes, pipeline.active_roi())
                except (SnapshotError, BackendError) as exc:
                    _LOG.warning("snapshot failed: %s", exc)
            seen_events = st.event_count

            reading = telemetry.poll() if telemetry is not None else None
            _LOG.info(
                "fps=%d motion=%s events=%d rate=%d/min abnormal=%s%s",
                st.fps,
                "yes" if st.has_motion else "no",
                st.event_count,
                st.rate_per_minute,
                st.abnormal_alert,
                ""
                if reading is None
                else f" temp={reading.temperature_c} humidity={reading.humidity_pct}",
            )

            if args.max_seconds > 0 and (time.monotonic() - t0) >= args.max_seconds:
                _LOG.info("Reached max-seconds=%d, exiting loop.", args.max_seconds)
                break
    except KeyboardInterrupt:
        _LOG.info("KeyboardInterrupt received, shutting down.")
    finally:
        pipeline.stop()
        sink.close()
        audio.close()

    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
