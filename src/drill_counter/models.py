from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

NUM_LANDMARKS = 33

LANDMARK_INDEX = {
    "NOSE": 0,
    "LEFT_EAR": 7,
    "RIGHT_EAR": 8,
    "LEFT_SHOULDER": 11,
    "RIGHT_SHOULDER": 12,
    "LEFT_ELBOW": 13,
    "RIGHT_ELBOW": 14,
    "LEFT_WRIST": 15,
    "RIGHT_WRIST": 16,
    "LEFT_HIP": 23,
    "RIGHT_HIP": 24,
    "LEFT_KNEE": 25,
    "RIGHT_KNEE": 26,
    "LEFT_ANKLE": 27,
    "RIGHT_ANKLE": 28,
}


class ExerciseId(str, Enum):
    PUSHUPS = "pushups"
    SQUATS = "squats"
    JUMPING_JACKS = "jumpingjacks"
    PLANK = "plank"


class FrameQuality(str, Enum):
    GOOD = "good"
    OK = "ok"
    BAD = "bad"


@dataclass(frozen=True)
class Landmark:
    """A single keypoint in normalized image coordinates (origin top-left)."""

    x: float
    y: float
    visibility: float = 1.0


@dataclass(frozen=True)
class LandmarkFrame:
    """
    One detection cycle of the pose source.

    `landmarks` always holds NUM_LANDMARKS entries; an entry is None when the
    estimator did not report that keypoint. `timestamp` is monotonic seconds.
    """

    landmarks: Tuple[Optional[Landmark], ...]
    timestamp: float

    def __post_init__(self) -> None:
        points = tuple(self.landmarks)
        if len(points) < NUM_LANDMARKS:
            points = points + (None,) * (NUM_LANDMARKS - len(points))
        object.__setattr__(self, "landmarks", points[:NUM_LANDMARKS])

    def get(self, index: int) -> Optional[Landmark]:
        if 0 <= index < len(self.landmarks):
            return self.landmarks[index]
        return None

    def first_present(self, *indices: int) -> Optional[Landmark]:
        for index in indices:
            landmark = self.get(index)
            if landmark is not None:
                return landmark
        return None

    def present(self) -> List[Landmark]:
        return [landmark for landmark in self.landmarks if landmark is not None]

    @property
    def has_subject(self) -> bool:
        return any(landmark is not None for landmark in self.landmarks)

    @classmethod
    def from_points(
        cls, points: Mapping[int, Tuple[float, float]], timestamp: float
    ) -> "LandmarkFrame":
        landmarks: List[Optional[Landmark]] = [None] * NUM_LANDMARKS
        for index, (x, y) in points.items():
            if 0 <= index < NUM_LANDMARKS:
                landmarks[index] = Landmark(float(x), float(y))
        return cls(tuple(landmarks), float(timestamp))

    @classmethod
    def from_mediapipe(
        cls, landmarks: Iterable[Any], timestamp: float, visibility_threshold: float = 0.5
    ) -> "LandmarkFrame":
        points: List[Optional[Landmark]] = []
        for landmark in landmarks:
            visibility = getattr(landmark, "visibility", None)
            if visibility is None:
                visibility = getattr(landmark, "presence", 1.0)
            visibility = float(visibility)
            if visibility < visibility_threshold:
                points.append(None)
            else:
                points.append(Landmark(float(landmark.x), float(landmark.y), visibility))
        return cls(tuple(points), float(timestamp))

    @classmethod
    def empty(cls, timestamp: float) -> "LandmarkFrame":
        return cls((None,) * NUM_LANDMARKS, float(timestamp))


@dataclass(frozen=True)
class Metric:
    exercise_id: ExerciseId
    value: int
    unit: str  # "reps" or "seconds"
    extras: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "exercise_id": self.exercise_id.value,
            "value": self.value,
            "unit": self.unit,
            "extras": dict(self.extras),
        }


@dataclass(frozen=True)
class OverlayState:
    frame_quality: FrameQuality = FrameQuality.BAD
    horizon_y: Optional[float] = None
    distance_hint: Optional[str] = None
    posture_hint: Optional[str] = None
