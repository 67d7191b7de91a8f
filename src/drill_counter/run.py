import argparse
import asyncio
import csv
import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

import cv2
import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np

from .catalog import Drill, exercise_choices, get_drill
from .config import DrillConfig, RoiConfig, config_dict, load_config, with_overrides
from .dispatcher import FrameDispatcher
from .errors import DrillError
from .models import FrameQuality, LandmarkFrame, Metric, OverlayState
from .pose_source import MediaPipePoseSource
from .session import DrillSession

logger = logging.getLogger(__name__)

POSE_CONNECTIONS = [
    (11, 12),
    (11, 13),
    (13, 15),
    (12, 14),
    (14, 16),
    (11, 23),
    (12, 24),
    (23, 24),
    (23, 25),
    (24, 26),
    (25, 27),
    (26, 28),
]

QUALITY_COLORS = {
    FrameQuality.GOOD: (80, 220, 80),
    FrameQuality.OK: (0, 200, 255),
    FrameQuality.BAD: (60, 60, 230),
}


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Live pose-based drill counter.")
    parser.add_argument("--input", help="Path to input video (default: camera).")
    parser.add_argument("--camera", type=int, default=0, help="Camera index when no --input is given.")
    parser.add_argument("--exercise", choices=exercise_choices(), required=True, help="Drill to evaluate.")
    parser.add_argument("--config", default=None, help="JSON file with threshold overrides.")
    parser.add_argument(
        "--landscape",
        action="store_true",
        help="Use the landscape framing region instead of the portrait one.",
    )
    parser.add_argument(
        "--time-limit",
        type=float,
        default=None,
        help="Stop after this many seconds (default: the drill's own limit, 0 disables).",
    )
    parser.add_argument("--feet-apart-ratio", type=float, default=None, help="Jumping jack feet/shoulder ratio.")
    parser.add_argument("--hip-center-tolerance", type=float, default=None, help="Plank hip deviation tolerance.")
    parser.add_argument("--visibility-threshold", type=float, default=None, help="Min landmark visibility.")
    parser.add_argument("--model-complexity", type=int, default=None, choices=[0, 1, 2], help="MediaPipe Pose complexity.")
    parser.add_argument(
        "--model",
        default=None,
        help="Pose Landmarker model path (used when MediaPipe solutions API is unavailable).",
    )
    parser.add_argument(
        "--preview",
        action=argparse.BooleanOptionalAction,
        default=False,
        help="Show a preview window with framing overlay ('q' stops, 'r' resets).",
    )
    parser.add_argument("--output-dir", default="results", help="Directory for outputs.")
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    return parser.parse_args(argv)


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def save_csv(path: str, rows: List[Dict[str, object]]) -> None:
    if not rows:
        return
    fieldnames: List[str] = []
    for row in rows:
        for key in row:
            if key not in fieldnames:
                fieldnames.append(key)
    with open(path, "w", newline="", encoding="utf-8") as file:
        writer = csv.DictWriter(file, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)


def save_json(path: str, rows: List[Dict[str, object]]) -> None:
    with open(path, "w", encoding="utf-8") as file:
        json.dump(rows, file, indent=2)


def save_plot(path: str, session: DrillSession, title: str, unit: str) -> None:
    times = [row["timestamp_s"] for row in session.rows]
    values = [row["value"] for row in session.rows]

    plt.figure(figsize=(12, 5))
    plt.step(times, values, where="post", label=f"Value ({unit})")
    for event_time in session.rep_events():
        plt.axvline(event_time, color="tab:green", linestyle="--", alpha=0.5)
    plt.xlabel("Time (s)")
    plt.ylabel(unit)
    plt.title(title)
    plt.legend()
    plt.tight_layout()
    plt.savefig(path)
    plt.close()


def draw_preview(
    image: np.ndarray,
    frame: Optional[LandmarkFrame],
    overlay: OverlayState,
    metric: Optional[Metric],
    roi: RoiConfig,
    title: str,
) -> np.ndarray:
    annotated = image.copy()
    height, width = annotated.shape[:2]

    color = QUALITY_COLORS[overlay.frame_quality]
    cv2.rectangle(
        annotated,
        (int(roi.left * width), int(roi.top * height)),
        (int(roi.right * width), int(roi.bottom * height)),
        color,
        2,
    )
    if overlay.horizon_y is not None:
        y = int(overlay.horizon_y * height)
        cv2.line(annotated, (0, y), (width, y), (255, 255, 255), 1, cv2.LINE_AA)

    if frame is not None:
        for start_idx, end_idx in POSE_CONNECTIONS:
            start = frame.get(start_idx)
            end = frame.get(end_idx)
            if start is None or end is None:
                continue
            cv2.line(
                annotated,
                (int(start.x * width), int(start.y * height)),
                (int(end.x * width), int(end.y * height)),
                (80, 220, 80),
                2,
            )
        for landmark in frame.present():
            cv2.circle(annotated, (int(landmark.x * width), int(landmark.y * height)), 3, (0, 200, 255), -1)

    lines = [title]
    if metric is not None:
        lines.append(f"{metric.value} {metric.unit}")
    for hint in (overlay.distance_hint, overlay.posture_hint):
        if hint:
            lines.append(hint)
    draw_panel(annotated, lines)
    return annotated


def draw_panel(image: np.ndarray, lines: List[str], origin: Tuple[int, int] = (15, 15), alpha: float = 0.5) -> None:
    """Translucent dark box with one white text line per entry, drawn in place."""
    font = cv2.FONT_HERSHEY_SIMPLEX
    sizes = [cv2.getTextSize(line, font, 0.6, 2) for line in lines]
    row_height = max(size[1] + size[0][1] for size in sizes) + 6
    x, y = origin
    right = min(x + max(size[0][0] for size in sizes) + 24, image.shape[1] - 5)
    bottom = min(y + row_height * len(lines) + 14, image.shape[0] - 5)

    backdrop = image.copy()
    cv2.rectangle(backdrop, (x, y), (right, bottom), (20, 20, 20), -1)
    cv2.addWeighted(backdrop, alpha, image, 1 - alpha, 0, image)
    for idx, line in enumerate(lines):
        baseline_y = y + 10 + row_height * (idx + 1) - 6
        cv2.putText(image, line, (x + 12, baseline_y), font, 0.6, (255, 255, 255), 2, cv2.LINE_AA)


def build_config(args: argparse.Namespace) -> DrillConfig:
    config = load_config(args.config)
    return with_overrides(
        config,
        feet_apart_ratio=args.feet_apart_ratio,
        hip_center_tolerance=args.hip_center_tolerance,
        visibility_threshold=args.visibility_threshold,
        model_complexity=args.model_complexity,
        model_path=args.model,
    )


def make_after_frame(
    dispatcher: FrameDispatcher,
    source: MediaPipePoseSource,
    session: DrillSession,
    drill: Drill,
    time_limit: Optional[float],
    preview: bool = False,
) -> Callable[[Optional[LandmarkFrame]], None]:
    """
    Host hook run after every frame: records the session row, draws the
    preview ('q' stops, 'r' resets) and stops once `time_limit` seconds of
    source time have elapsed.
    """

    def after_frame(frame: Optional[LandmarkFrame]) -> None:
        session.record(frame, dispatcher.metrics.latest(), dispatcher.overlay.latest())
        if preview and source.last_image is not None:
            annotated = draw_preview(
                source.last_image,
                frame,
                dispatcher.overlay.latest() or OverlayState(),
                dispatcher.metrics.latest(),
                dispatcher.advisor.roi,
                drill.title,
            )
            cv2.imshow(drill.title, annotated)
            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                dispatcher.stop()
            elif key == ord("r"):
                dispatcher.reset()
        if time_limit and dispatcher.is_live and source.last_timestamp >= time_limit:
            logger.info("Time limit of %.0fs reached", time_limit)
            dispatcher.stop()

    return after_frame


def open_source(args: argparse.Namespace, config: DrillConfig) -> MediaPipePoseSource:
    source_name = args.input if args.input else args.camera
    capture = cv2.VideoCapture(source_name)
    if not capture.isOpened():
        raise DrillError(f"Unable to open video source: {source_name}")
    try:
        # Recorded clips run on their own time; cameras on the monotonic clock.
        return MediaPipePoseSource(capture, config.pose, video_clock=bool(args.input))
    except DrillError:
        capture.release()
        raise


def run_drill(
    args: argparse.Namespace,
    config: DrillConfig,
    source: Optional[MediaPipePoseSource] = None,
) -> Dict[str, object]:
    drill = get_drill(args.exercise)
    time_limit = drill.time_limit_s if args.time_limit is None else args.time_limit

    dispatcher = FrameDispatcher(config, portrait=not args.landscape)
    # Validate the selector before opening any capture device.
    dispatcher.start(drill.id)

    source_name = args.input if args.input else args.camera
    if source is None:
        try:
            source = open_source(args, config)
        except DrillError:
            dispatcher.stop()
            raise

    session = DrillSession(exercise=drill.id.value)
    after_frame = make_after_frame(dispatcher, source, session, drill, time_limit, preview=args.preview)

    try:
        final = asyncio.run(dispatcher.run(source, after_frame=after_frame))
    except KeyboardInterrupt:
        # The dispatch loop has already released the source on its way out.
        logger.info("Stopped by user")
        final = dispatcher.stop()
    finally:
        if args.preview:
            cv2.destroyAllWindows()

    output_dir = Path(args.output_dir) / drill.id.value
    ensure_dir(str(output_dir))
    outputs = {
        "csv": output_dir / "metrics.csv",
        "json": output_dir / "metrics.json",
        "plot": output_dir / "metric.png",
        "summary": output_dir / "summary.json",
    }
    save_csv(str(outputs["csv"]), session.rows)
    save_json(str(outputs["json"]), session.rows)
    save_plot(str(outputs["plot"]), session, drill.title, drill.unit)

    summary = session.summary(final)
    summary.update(
        {
            "input": str(source_name),
            "title": drill.title,
            "time_limit_s": time_limit,
            "output_csv": str(outputs["csv"]),
            "output_json": str(outputs["json"]),
            "output_plot": str(outputs["plot"]),
            "config": config_dict(config),
            "generated_at": datetime.now().isoformat(),
        }
    )
    with open(outputs["summary"], "w", encoding="utf-8") as file:
        json.dump(summary, file, indent=2)

    print(f"Done. {drill.title}: {summary['final_value']} {drill.unit}")
    print(f"CSV:     {outputs['csv']}")
    print(f"JSON:    {outputs['json']}")
    print(f"Plot:    {outputs['plot']}")
    print(f"Summary: {outputs['summary']}")
    return summary


def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, str(args.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    config = build_config(args)
    run_drill(args, config)


if __name__ == "__main__":
    main()
