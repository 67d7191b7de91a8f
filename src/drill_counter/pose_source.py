from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Iterable, List, Optional

import cv2
import numpy as np

from .config import PoseSourceConfig
from .errors import PoseSourceClosed, PoseSourceError
from .models import LandmarkFrame

logger = logging.getLogger(__name__)


class PoseSource(ABC):
    """
    Frame producer pulled by the dispatch loop.

    `next_frame` returns None when no subject was detected, raises
    PoseSourceError for a failed detection and PoseSourceClosed once the
    producer is gone.
    """

    @abstractmethod
    def next_frame(self) -> Optional[LandmarkFrame]: ...

    @abstractmethod
    def close(self) -> None: ...


class ReplayPoseSource(PoseSource):
    def __init__(self, frames: Iterable[Optional[LandmarkFrame]]) -> None:
        self._frames: List[Optional[LandmarkFrame]] = list(frames)
        self._index = 0
        self.closed = False

    def next_frame(self) -> Optional[LandmarkFrame]:
        if self.closed or self._index >= len(self._frames):
            raise PoseSourceClosed("Replay exhausted")
        frame = self._frames[self._index]
        self._index += 1
        return frame

    def close(self) -> None:
        self.closed = True


class MediaPipePoseSource(PoseSource):
    """
    Pulls BGR frames from an OpenCV capture and runs MediaPipe Pose on them.

    Frames from a camera are stamped with the monotonic clock. With
    `video_clock=True` (recorded clips) they are stamped with the clip's own
    time, `frame_index / fps`, so debounce windows and the plank gate follow
    the footage rather than the processing speed. `pose` accepts a ready
    estimator with a solutions-style `process(image_rgb)`.
    """

    def __init__(
        self,
        capture: "cv2.VideoCapture",
        config: Optional[PoseSourceConfig] = None,
        video_clock: bool = False,
        pose: Any = None,
    ) -> None:
        self.config = config or PoseSourceConfig()
        self.capture = capture
        self.video_clock = video_clock
        self.fps = float(capture.get(cv2.CAP_PROP_FPS) or 30.0) if video_clock else None
        self.frame_index = 0
        self.last_image: Optional[np.ndarray] = None
        self.last_timestamp = 0.0
        self._closed = False
        self._clock_origin: Optional[float] = None
        self._mp = None
        self.use_tasks = False
        if pose is not None:
            self.pose = pose
            return

        try:
            import mediapipe as mp
        except ImportError as exc:
            raise PoseSourceError("MediaPipe is not installed. Install it with: pip install mediapipe") from exc

        self._mp = mp
        self.use_tasks = not hasattr(mp, "solutions")
        if self.use_tasks:
            from mediapipe.tasks import python as mp_tasks
            from mediapipe.tasks.python import vision

            if not self.config.model_path:
                raise PoseSourceError("MediaPipe solutions API not available. Provide model_path for tasks API.")
            base_options = mp_tasks.BaseOptions(model_asset_path=self.config.model_path)
            options = vision.PoseLandmarkerOptions(
                base_options=base_options,
                running_mode=vision.RunningMode.VIDEO,
                num_poses=1,
                min_pose_detection_confidence=self.config.min_detection_confidence,
                min_pose_presence_confidence=0.5,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )
            self.pose = vision.PoseLandmarker.create_from_options(options)
        else:
            self.pose = mp.solutions.pose.Pose(
                static_image_mode=False,
                model_complexity=self.config.model_complexity,
                smooth_landmarks=True,
                min_detection_confidence=self.config.min_detection_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
            )

    def _next_timestamp(self) -> float:
        if self.video_clock:
            timestamp_s = self.frame_index / self.fps
        else:
            now = time.monotonic()
            if self._clock_origin is None:
                self._clock_origin = now
            timestamp_s = now - self._clock_origin
        self.frame_index += 1
        return timestamp_s

    def _detect_landmarks(self, image_rgb: np.ndarray, timestamp_s: float):
        if self.use_tasks:
            mp_image = self._mp.Image(image_format=self._mp.ImageFormat.SRGB, data=image_rgb)
            results = self.pose.detect_for_video(mp_image, int(timestamp_s * 1000))
            return results.pose_landmarks[0] if results.pose_landmarks else None

        results = self.pose.process(image_rgb)
        return results.pose_landmarks.landmark if results.pose_landmarks else None

    def next_frame(self) -> Optional[LandmarkFrame]:
        if self._closed or not self.capture.isOpened():
            raise PoseSourceClosed("Capture is closed")
        ret, frame = self.capture.read()
        if not ret:
            raise PoseSourceClosed("Capture exhausted")
        self.last_image = frame
        timestamp_s = self._next_timestamp()
        self.last_timestamp = timestamp_s

        try:
            image_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            landmarks = self._detect_landmarks(image_rgb, timestamp_s)
        except (cv2.error, RuntimeError, ValueError) as exc:
            raise PoseSourceError(f"Pose detection failed: {exc}") from exc

        if not landmarks:
            return None
        return LandmarkFrame.from_mediapipe(landmarks, timestamp_s, self.config.visibility_threshold)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.pose.close()
        self.capture.release()
        logger.info("Pose source released after %d frames", self.frame_index)
