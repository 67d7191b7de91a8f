from __future__ import annotations

from typing import Optional, Tuple, Union

from .config import FramingConfig, RoiConfig
from .models import LANDMARK_INDEX, ExerciseId, FrameQuality, LandmarkFrame, OverlayState
from .utils import bounding_box, calculate_angle, distance

Box = Tuple[float, float, float, float]


def classify_frame(box: Optional[Box], roi: RoiConfig, margin: float) -> FrameQuality:
    if box is None:
        return FrameQuality.BAD
    min_x, min_y, max_x, max_y = box
    if min_x >= roi.left and max_x <= roi.right and min_y >= roi.top and max_y <= roi.bottom:
        return FrameQuality.GOOD
    if (
        min_x >= roi.left - margin
        and max_x <= roi.right + margin
        and min_y >= roi.top - margin
        and max_y <= roi.bottom + margin
    ):
        return FrameQuality.OK
    return FrameQuality.BAD


class FramingAdvisor:
    """
    Camera framing hints for the operator, recomputed at most every
    `min_interval_s` regardless of how fast frames arrive.
    """

    def __init__(self, config: Optional[FramingConfig] = None, portrait: bool = True) -> None:
        self.config = config or FramingConfig()
        self.portrait = portrait
        self.last_update: Optional[float] = None

    @property
    def roi(self) -> RoiConfig:
        return self.config.portrait_roi if self.portrait else self.config.landscape_roi

    def reset(self) -> None:
        self.last_update = None

    def update(
        self,
        frame: LandmarkFrame,
        exercise: Union[str, ExerciseId, None] = None,
        now: Optional[float] = None,
    ) -> Optional[OverlayState]:
        now = frame.timestamp if now is None else now
        if self.last_update is not None and now - self.last_update < self.config.min_interval_s:
            return None
        self.last_update = now
        return self.compute(frame, exercise)

    def compute(self, frame: LandmarkFrame, exercise: Union[str, ExerciseId, None] = None) -> OverlayState:
        roi = self.roi
        quality = classify_frame(bounding_box(frame.landmarks), roi, self.config.roi_margin)
        return OverlayState(
            frame_quality=quality,
            horizon_y=self._horizon(frame),
            distance_hint=self._distance_hint(frame, roi),
            posture_hint=self._posture_hint(frame) if exercise == ExerciseId.SQUATS else None,
        )

    @staticmethod
    def _horizon(frame: LandmarkFrame) -> Optional[float]:
        left_hip = frame.get(LANDMARK_INDEX["LEFT_HIP"])
        right_hip = frame.get(LANDMARK_INDEX["RIGHT_HIP"])
        if left_hip is not None and right_hip is not None:
            return (left_hip.y + right_hip.y) / 2.0
        if left_hip is not None:
            return left_hip.y
        if right_hip is not None:
            return right_hip.y
        return None

    def _distance_hint(self, frame: LandmarkFrame, roi: RoiConfig) -> Optional[str]:
        shoulder_width = distance(
            frame.get(LANDMARK_INDEX["LEFT_SHOULDER"]), frame.get(LANDMARK_INDEX["RIGHT_SHOULDER"])
        )
        if not shoulder_width or roi.width <= 0.0:
            return None
        coverage = shoulder_width / roi.width
        if coverage > self.config.step_back_ratio:
            return "Step back"
        if coverage < self.config.step_closer_ratio:
            return "Step closer"
        return None

    def _posture_hint(self, frame: LandmarkFrame) -> Optional[str]:
        hip = frame.first_present(LANDMARK_INDEX["RIGHT_HIP"], LANDMARK_INDEX["LEFT_HIP"])
        knee = frame.first_present(LANDMARK_INDEX["RIGHT_KNEE"], LANDMARK_INDEX["LEFT_KNEE"])
        ankle = frame.first_present(LANDMARK_INDEX["RIGHT_ANKLE"], LANDMARK_INDEX["LEFT_ANKLE"])
        if hip is None or knee is None or ankle is None:
            return None
        knee_angle = calculate_angle(hip, knee, ankle)
        if knee_angle > self.config.go_lower_angle:
            return "Go lower"
        if knee_angle < self.config.rise_up_angle:
            return "Rise up"
        return "Good"
