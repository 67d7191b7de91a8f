import csv
import json
from types import SimpleNamespace

import cv2
import numpy as np
import pytest

from frames import FakeCapture, FakePose, pushup_frame

from drill_counter import run as cli
from drill_counter.catalog import get_drill
from drill_counter.dispatcher import FrameDispatcher
from drill_counter.pose_source import MediaPipePoseSource
from drill_counter.session import DrillSession


def _args(tmp_path, *extra):
    return cli.parse_args(["--exercise", "plank", "--input", "clip.mp4", "--output-dir", str(tmp_path), *extra])


def _clip_source(frames: int) -> MediaPipePoseSource:
    return MediaPipePoseSource(FakeCapture(frames, fps=30.0), video_clock=True, pose=FakePose())


def test_save_csv_uses_union_of_fields(tmp_path):
    path = tmp_path / "rows.csv"
    cli.save_csv(str(path), [{"value": 1, "phase": "top"}, {"value": 2, "elbow_angle": 90.0}])
    with open(path, newline="", encoding="utf-8") as file:
        rows = list(csv.DictReader(file))
    assert list(rows[0].keys()) == ["value", "phase", "elbow_angle"]
    assert rows[0]["elbow_angle"] == ""
    assert rows[1]["elbow_angle"] == "90.0"


def test_save_csv_skips_empty_rows(tmp_path):
    path = tmp_path / "rows.csv"
    cli.save_csv(str(path), [])
    assert not path.exists()


def test_build_config_applies_file_then_flags(tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"jumpingjacks": {"feet_apart_ratio": 1.4}, "plank": {"hip_center_tolerance": 0.03}}),
        encoding="utf-8",
    )
    args = cli.parse_args(
        ["--exercise", "plank", "--config", str(config_path), "--hip-center-tolerance", "0.05", "--model", "pose.task"]
    )
    config = cli.build_config(args)
    assert config.jumpingjacks.feet_apart_ratio == 1.4
    assert config.plank.hip_center_tolerance == 0.05
    assert config.pose.model_path == "pose.task"


def test_run_drill_times_recorded_clip_and_writes_outputs(tmp_path):
    args = _args(tmp_path, "--time-limit", "0")
    summary = cli.run_drill(args, cli.build_config(args), source=_clip_source(150))

    assert summary["final_value"] == 4
    assert summary["unit"] == "seconds"
    assert summary["mean_rep_interval_s"] is None
    assert summary["input"] == "clip.mp4"
    output_dir = tmp_path / "plank"
    for name in ("metrics.csv", "metrics.json", "metric.png", "summary.json"):
        assert (output_dir / name).exists()
    saved = json.loads((output_dir / "summary.json").read_text(encoding="utf-8"))
    assert saved["final_value"] == 4


def test_run_drill_stops_at_time_limit_of_clip(tmp_path):
    args = _args(tmp_path, "--time-limit", "3")
    summary = cli.run_drill(args, cli.build_config(args), source=_clip_source(150))

    # Frame 90 is the first at 3.0 s of clip time; the hold began after the 0.4 s gate.
    assert summary["frames"] == 91
    assert summary["final_value"] == 2
    assert summary["time_limit_s"] == 3.0


def _live_pushups():
    dispatcher = FrameDispatcher()
    dispatcher.start("pushups")
    for frame in (pushup_frame(170, 0.0), pushup_frame(60, 0.5), pushup_frame(170, 1.0)):
        dispatcher.dispatch(frame)
    assert dispatcher.metrics.latest().value == 1
    return dispatcher


def _preview_hook(dispatcher, monkeypatch, key, last_timestamp=0.0, time_limit=None):
    shown = []
    monkeypatch.setattr(cv2, "imshow", lambda title, image: shown.append(image.shape))
    monkeypatch.setattr(cv2, "waitKey", lambda delay: key)
    source = SimpleNamespace(last_image=np.zeros((240, 320, 3), dtype=np.uint8), last_timestamp=last_timestamp)
    session = DrillSession(exercise="pushups")
    hook = cli.make_after_frame(dispatcher, source, session, get_drill("pushups"), time_limit, preview=True)
    return hook, session, shown


def test_reset_key_zeroes_count_and_keeps_session(monkeypatch):
    dispatcher = _live_pushups()
    hook, session, shown = _preview_hook(dispatcher, monkeypatch, ord("r"))
    hook(pushup_frame(170, 1.1))
    assert shown == [(240, 320, 3)]
    assert dispatcher.is_live
    assert dispatcher.metrics.latest().value == 0
    assert len(session.rows) == 1


def test_quit_key_stops_session(monkeypatch):
    dispatcher = _live_pushups()
    hook, _, _ = _preview_hook(dispatcher, monkeypatch, ord("q"))
    hook(pushup_frame(170, 1.1))
    assert not dispatcher.is_live
    assert dispatcher.metrics.latest().value == 1


@pytest.mark.parametrize("last_timestamp, live", [(59.9, True), (60.0, False)])
def test_time_limit_follows_source_time(monkeypatch, last_timestamp, live):
    dispatcher = _live_pushups()
    hook, _, _ = _preview_hook(dispatcher, monkeypatch, 255, last_timestamp=last_timestamp, time_limit=60.0)
    hook(pushup_frame(170, 1.1))
    assert dispatcher.is_live is live
