"""Synthetic landmark frames and capture fakes for the tests."""

import math
from types import SimpleNamespace
from typing import Dict, Optional, Tuple

import cv2
import numpy as np

from drill_counter.models import NUM_LANDMARKS, LandmarkFrame

Point = Tuple[float, float]


def ray(vertex: Point, direction_deg: float, length: float = 0.15) -> Point:
    radians = math.radians(direction_deg)
    return vertex[0] + length * math.cos(radians), vertex[1] + length * math.sin(radians)


def pushup_frame(elbow_angle: float, timestamp: float, hip_drop: float = 0.0) -> LandmarkFrame:
    shoulder = (0.3, 0.5)
    elbow = (0.3, 0.6)
    # Shoulder sits straight up (-90 deg) from the elbow; the wrist opens from there.
    wrist = ray(elbow, -90.0 + elbow_angle)
    points: Dict[int, Point] = {
        12: shoulder,
        14: elbow,
        16: wrist,
        24: (0.5, 0.5 + hip_drop),
        28: (0.7, 0.5),
    }
    return LandmarkFrame.from_points(points, timestamp)


def squat_frame(knee_angle: float, timestamp: float) -> LandmarkFrame:
    knee = (0.5, 0.6)
    ankle = (0.5, 0.8)
    hip = ray(knee, 90.0 - knee_angle, 0.2)
    return LandmarkFrame.from_points({24: hip, 26: knee, 28: ankle}, timestamp)


def jack_frame(
    open_pose: bool,
    timestamp: float,
    shoulder_width: float = 0.1,
    shoulders: bool = True,
    head: bool = True,
) -> LandmarkFrame:
    points: Dict[int, Point] = {}
    if shoulders:
        points[11] = (0.5 - shoulder_width / 2, 0.3)
        points[12] = (0.5 + shoulder_width / 2, 0.3)
    if head:
        points[0] = (0.5, 0.2)
    if open_pose:
        points[15] = (0.4, 0.1)
        points[16] = (0.6, 0.1)
        points[27] = (0.4, 0.9)
        points[28] = (0.6, 0.9)
    else:
        points[15] = (0.4, 0.5)
        points[16] = (0.6, 0.5)
        points[27] = (0.48, 0.9)
        points[28] = (0.52, 0.9)
    return LandmarkFrame.from_points(points, timestamp)


def plank_frame(good: bool, timestamp: float, hip_offset: Optional[float] = None) -> LandmarkFrame:
    if hip_offset is None:
        hip_offset = 0.0 if good else 0.1
    points = {12: (0.3, 0.5), 24: (0.5, 0.5 + hip_offset), 28: (0.7, 0.5)}
    return LandmarkFrame.from_points(points, timestamp)


def box_frame(min_x: float, min_y: float, max_x: float, max_y: float, timestamp: float = 0.0) -> LandmarkFrame:
    points = {0: (min_x, min_y), 28: (max_x, max_y), 23: ((min_x + max_x) / 2, (min_y + max_y) / 2)}
    return LandmarkFrame.from_points(points, timestamp)


PLANK_POINTS = {12: (0.3, 0.5), 24: (0.5, 0.5), 28: (0.7, 0.5)}


class FakeCapture:
    """Stands in for cv2.VideoCapture over a recorded clip."""

    def __init__(self, frames: int, fps: float = 30.0) -> None:
        self.remaining = frames
        self.fps = fps
        self.released = False

    def isOpened(self) -> bool:
        return not self.released

    def get(self, prop):
        return self.fps if prop == cv2.CAP_PROP_FPS else 0.0

    def read(self):
        if self.remaining <= 0:
            return False, None
        self.remaining -= 1
        return True, np.zeros((240, 320, 3), dtype=np.uint8)

    def release(self) -> None:
        self.released = True


class FakePose:
    """Solutions-style estimator returning the same landmarks every frame."""

    def __init__(self, points=PLANK_POINTS, fail: bool = False) -> None:
        self.points = points
        self.fail = fail
        self.close_calls = 0

    def process(self, image_rgb):
        if self.fail:
            raise RuntimeError("graph error")
        if self.points is None:
            return SimpleNamespace(pose_landmarks=None)
        landmarks = []
        for index in range(NUM_LANDMARKS):
            x, y = self.points.get(index, (0.0, 0.0))
            landmarks.append(SimpleNamespace(x=x, y=y, visibility=1.0 if index in self.points else 0.0))
        return SimpleNamespace(pose_landmarks=SimpleNamespace(landmark=landmarks))

    def close(self) -> None:
        self.close_calls += 1
