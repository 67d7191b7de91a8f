import asyncio

import pytest

from frames import FakeCapture, FakePose

from drill_counter.dispatcher import FrameDispatcher
from drill_counter.errors import PoseSourceClosed, PoseSourceError
from drill_counter.pose_source import MediaPipePoseSource


def test_video_clock_stamps_frames_by_fps():
    source = MediaPipePoseSource(FakeCapture(3, fps=25.0), video_clock=True, pose=FakePose())
    stamps = [source.next_frame().timestamp for _ in range(3)]
    assert stamps == pytest.approx([0.0, 0.04, 0.08])
    assert source.last_timestamp == pytest.approx(0.08)
    with pytest.raises(PoseSourceClosed):
        source.next_frame()


def test_video_clock_falls_back_to_30_fps():
    source = MediaPipePoseSource(FakeCapture(2, fps=0.0), video_clock=True, pose=FakePose())
    source.next_frame()
    assert source.fps == 30.0
    assert source.next_frame().timestamp == pytest.approx(1 / 30)


def test_camera_clock_starts_at_first_frame():
    source = MediaPipePoseSource(FakeCapture(2), pose=FakePose())
    first = source.next_frame().timestamp
    second = source.next_frame().timestamp
    assert first == 0.0
    assert second >= first


def test_recorded_plank_clip_is_timed_by_video_time():
    capture = FakeCapture(150, fps=30.0)
    pose = FakePose()
    source = MediaPipePoseSource(capture, video_clock=True, pose=pose)
    dispatcher = FrameDispatcher()
    dispatcher.start("plank")

    final = asyncio.run(dispatcher.run(source))

    assert final.value == 4
    assert final.extras["phase"] == "holding"
    assert dispatcher.frames_dispatched == 150
    assert capture.released
    assert pose.close_calls == 1


def test_frame_without_subject_is_none():
    source = MediaPipePoseSource(FakeCapture(1), pose=FakePose(points=None))
    assert source.next_frame() is None
    assert source.last_image is not None


def test_low_visibility_landmarks_are_absent():
    source = MediaPipePoseSource(FakeCapture(1), pose=FakePose())
    frame = source.next_frame()
    assert frame.get(12) is not None
    assert frame.get(11) is None


def test_detection_failure_is_wrapped():
    source = MediaPipePoseSource(FakeCapture(1), pose=FakePose(fail=True))
    with pytest.raises(PoseSourceError):
        source.next_frame()


def test_close_is_idempotent_and_ends_stream():
    capture = FakeCapture(5)
    pose = FakePose()
    source = MediaPipePoseSource(capture, pose=pose)
    source.close()
    source.close()
    assert pose.close_calls == 1
    assert capture.released
    with pytest.raises(PoseSourceClosed):
        source.next_frame()
