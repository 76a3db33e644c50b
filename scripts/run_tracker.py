"""CLI to run live angle tracking and print host messages as JSON lines."""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from threading import Thread

from pose_tracker.bridge import JsonLinesBridge, snapshot_from_query
from pose_tracker.pose import PoseEstimator
from pose_tracker.service import CameraSource, CameraUnavailableError, TrackerStartupError, TrackingRunner
from pose_tracker.tracking import ConfigError, ConfigStore
from pose_tracker.tracking.session import TrackingSession


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Track a joint angle from a camera feed with MediaPipe Pose.")
    parser.add_argument("--camera", default="0", help="Camera index or video path passed to OpenCV.")
    parser.add_argument("--width", type=int, default=640)
    parser.add_argument("--height", type=int, default=480)
    parser.add_argument("--num-angle", type=int, default=1, help="Expected number of angle rules.")
    parser.add_argument("--angle-true", type=float, default=150.0, help="Threshold for the 'true' state.")
    parser.add_argument("--angle-false", type=float, default=120.0, help="Threshold for the 'false' state.")
    parser.add_argument("--cond-true", choices=("<", ">"), default=">")
    parser.add_argument("--cond-false", choices=("<", ">"), default="<")
    parser.add_argument(
        "--focus-points",
        type=Path,
        help="JSON file with a list of focus points ({points, threshold?, condition?, name?}).",
    )
    parser.add_argument(
        "--smoothing-alpha",
        type=float,
        default=0.0,
        help="Extra exponential smoothing on landmarks (0 disables).",
    )
    parser.add_argument(
        "--stdin-commands",
        action="store_true",
        help="Read host messages (SET_TRACKING, PAUSE_TRACKING, ...) as JSON lines from stdin.",
    )
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after N seconds (0 runs until Ctrl+C).")
    parser.add_argument("--log-level", default="INFO")
    return parser


def build_query(args: argparse.Namespace) -> dict[str, str]:
    query = {
        "num_angle": str(args.num_angle),
        "angleTrue": str(args.angle_true),
        "angleFalse": str(args.angle_false),
        "condTrue": args.cond_true,
        "condFalse": args.cond_false,
    }
    if args.focus_points:
        query["focusPoints"] = json.dumps(json.loads(args.focus_points.read_text(encoding="utf-8")))
    return query


def read_commands(session: TrackingSession, stream) -> None:
    for line in stream:
        line = line.strip()
        if line:
            session.handle_message(line)


def main() -> None:
    parser = build_parser()
    args = parser.parse_args()
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        snapshot = snapshot_from_query(build_query(args))
    except ConfigError as exc:
        parser.error(str(exc))

    session = TrackingSession(JsonLinesBridge(sys.stdout), store=ConfigStore(snapshot))
    device = int(args.camera) if args.camera.isdigit() else args.camera
    runner = TrackingRunner(
        session,
        estimator=PoseEstimator(smoothing_alpha=args.smoothing_alpha),
        camera=CameraSource(device, width=args.width, height=args.height),
    )

    try:
        runner.start()
    except (TrackerStartupError, CameraUnavailableError) as exc:
        print(f"Tracking failed to start: {exc}", file=sys.stderr)
        sys.exit(1)

    if args.stdin_commands:
        Thread(target=read_commands, args=(session, sys.stdin), name="stdin-commands", daemon=True).start()

    started = time.monotonic()
    try:
        while runner.running:
            if args.duration and time.monotonic() - started >= args.duration:
                break
            time.sleep(0.2)
    except KeyboardInterrupt:
        pass
    finally:
        runner.stop()


if __name__ == "__main__":
    main()
