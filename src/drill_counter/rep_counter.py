from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Optional, Type, Union

from .catalog import parse_exercise_id
from .config import DrillConfig, JumpingJackConfig, PlankConfig, PushupConfig, SquatConfig
from .models import LANDMARK_INDEX, ExerciseId, LandmarkFrame, Metric
from .utils import calculate_angle, distance

logger = logging.getLogger(__name__)


def _debounced(last_toggle: float, timestamp_s: float, debounce_s: float) -> bool:
    return last_toggle < 0 or (timestamp_s - last_toggle) >= debounce_s


@dataclass
class PushupState:
    config: PushupConfig = field(default_factory=PushupConfig)
    stage: str = "top"
    rep_count: int = 0
    last_toggle: float = -1.0
    elbow_angle: float = 180.0
    good_plank: bool = False

    exercise_id = ExerciseId.PUSHUPS
    unit = "reps"

    def evaluate(self, frame: LandmarkFrame) -> Metric:
        shoulder = frame.get(LANDMARK_INDEX["RIGHT_SHOULDER"])
        elbow = frame.get(LANDMARK_INDEX["RIGHT_ELBOW"])
        wrist = frame.get(LANDMARK_INDEX["RIGHT_WRIST"])
        hip = frame.get(LANDMARK_INDEX["RIGHT_HIP"])
        ankle = frame.get(LANDMARK_INDEX["RIGHT_ANKLE"])

        config = self.config
        self.elbow_angle = calculate_angle(shoulder, elbow, wrist)
        torso_angle = calculate_angle(shoulder, hip, ankle)
        self.good_plank = config.torso_min_angle < torso_angle < config.torso_max_angle
        timestamp_s = frame.timestamp

        if self.stage == "top":
            if (
                self.elbow_angle < config.down_elbow_angle
                and self.good_plank
                and _debounced(self.last_toggle, timestamp_s, config.debounce_s)
            ):
                self.stage = "bottom"
                self.last_toggle = timestamp_s
        elif self.elbow_angle > config.up_elbow_angle and _debounced(
            self.last_toggle, timestamp_s, config.debounce_s
        ):
            self.stage = "top"
            self.last_toggle = timestamp_s
            self.rep_count += 1
            logger.debug("Push-up rep %d at %.3fs", self.rep_count, timestamp_s)

        return self.snapshot()

    def snapshot(self) -> Metric:
        return Metric(
            self.exercise_id,
            self.rep_count,
            self.unit,
            {"elbow_angle": self.elbow_angle, "good_plank": self.good_plank, "phase": self.stage},
        )


@dataclass
class SquatState:
    config: SquatConfig = field(default_factory=SquatConfig)
    stage: str = "top"
    rep_count: int = 0
    last_toggle: float = -1.0
    knee_angle: float = 180.0

    exercise_id = ExerciseId.SQUATS
    unit = "reps"

    def evaluate(self, frame: LandmarkFrame) -> Metric:
        hip = frame.get(LANDMARK_INDEX["RIGHT_HIP"])
        knee = frame.get(LANDMARK_INDEX["RIGHT_KNEE"])
        ankle = frame.get(LANDMARK_INDEX["RIGHT_ANKLE"])

        config = self.config
        self.knee_angle = calculate_angle(hip, knee, ankle)
        timestamp_s = frame.timestamp

        if self.stage == "top":
            if self.knee_angle < config.down_knee_angle and _debounced(
                self.last_toggle, timestamp_s, config.debounce_s
            ):
                self.stage = "bottom"
                self.last_toggle = timestamp_s
        elif self.knee_angle > config.up_knee_angle and _debounced(
            self.last_toggle, timestamp_s, config.debounce_s
        ):
            self.stage = "top"
            self.last_toggle = timestamp_s
            self.rep_count += 1
            logger.debug("Squat rep %d at %.3fs", self.rep_count, timestamp_s)

        return self.snapshot()

    def snapshot(self) -> Metric:
        return Metric(
            self.exercise_id,
            self.rep_count,
            self.unit,
            {"knee_angle": self.knee_angle, "phase": self.stage},
        )


@dataclass
class JumpingJackState:
    config: JumpingJackConfig = field(default_factory=JumpingJackConfig)
    stage: str = "closed"
    rep_count: int = 0
    last_toggle: float = -1.0
    baseline_shoulder_width: Optional[float] = None
    feet_apart: bool = False
    hands_up: bool = False

    exercise_id = ExerciseId.JUMPING_JACKS
    unit = "reps"

    def update_baseline(self, shoulder_width: float) -> None:
        if shoulder_width <= 0.0:
            return
        if self.baseline_shoulder_width is None:
            self.baseline_shoulder_width = shoulder_width
            return
        weight = self.config.baseline_smoothing
        self.baseline_shoulder_width = weight * self.baseline_shoulder_width + (1.0 - weight) * shoulder_width

    def evaluate(self, frame: LandmarkFrame) -> Metric:
        left_wrist = frame.get(LANDMARK_INDEX["LEFT_WRIST"])
        right_wrist = frame.get(LANDMARK_INDEX["RIGHT_WRIST"])
        left_ankle = frame.get(LANDMARK_INDEX["LEFT_ANKLE"])
        right_ankle = frame.get(LANDMARK_INDEX["RIGHT_ANKLE"])
        left_shoulder = frame.get(LANDMARK_INDEX["LEFT_SHOULDER"])
        right_shoulder = frame.get(LANDMARK_INDEX["RIGHT_SHOULDER"])
        head = frame.first_present(
            LANDMARK_INDEX["NOSE"], LANDMARK_INDEX["LEFT_EAR"], LANDMARK_INDEX["RIGHT_EAR"]
        )

        config = self.config
        shoulder_width = distance(left_shoulder, right_shoulder)
        self.update_baseline(shoulder_width)

        baseline = self.baseline_shoulder_width or shoulder_width
        self.feet_apart = bool(baseline) and distance(left_ankle, right_ankle) >= config.feet_apart_ratio * baseline
        hand_line = head.y - config.hands_margin if head is not None else None
        self.hands_up = (
            hand_line is not None
            and left_wrist is not None
            and right_wrist is not None
            and left_wrist.y < hand_line
            and right_wrist.y < hand_line
        )
        timestamp_s = frame.timestamp

        if self.stage == "closed":
            if (
                self.feet_apart
                and self.hands_up
                and _debounced(self.last_toggle, timestamp_s, config.debounce_s)
            ):
                self.stage = "open"
                self.last_toggle = timestamp_s
        elif (
            not self.feet_apart
            and not self.hands_up
            and _debounced(self.last_toggle, timestamp_s, config.debounce_s)
        ):
            self.stage = "closed"
            self.last_toggle = timestamp_s
            self.rep_count += 1
            logger.debug("Jumping jack rep %d at %.3fs", self.rep_count, timestamp_s)

        return self.snapshot()

    def snapshot(self) -> Metric:
        return Metric(
            self.exercise_id,
            self.rep_count,
            self.unit,
            {
                "feet_apart": self.feet_apart,
                "hands_up": self.hands_up,
                "baseline": self.baseline_shoulder_width,
                "phase": self.stage,
            },
        )


@dataclass
class PlankState:
    """
    Tracks the longest continuous good-form hold of the session.

    Good form has to last `gate_s` before the hold timer starts, and any bad
    frame drops back to resting. Breaks discard the running hold; only the
    best hold so far is kept.
    """

    config: PlankConfig = field(default_factory=PlankConfig)
    stage: str = "resting"  # resting, gated, holding
    gate_started: float = -1.0
    hold_started: float = -1.0
    current_hold_s: float = 0.0
    max_hold_s: float = 0.0
    good: bool = False

    exercise_id = ExerciseId.PLANK
    unit = "seconds"

    def good_form(self, frame: LandmarkFrame) -> bool:
        shoulder = frame.first_present(LANDMARK_INDEX["RIGHT_SHOULDER"], LANDMARK_INDEX["LEFT_SHOULDER"])
        hip = frame.first_present(LANDMARK_INDEX["RIGHT_HIP"], LANDMARK_INDEX["LEFT_HIP"])
        ankle = frame.first_present(LANDMARK_INDEX["RIGHT_ANKLE"], LANDMARK_INDEX["LEFT_ANKLE"])
        if shoulder is None or hip is None or ankle is None:
            return False

        config = self.config
        line_angle = calculate_angle(shoulder, hip, ankle)
        mid_y = (shoulder.y + ankle.y) / 2.0
        hip_centered = abs(hip.y - mid_y) <= config.hip_center_tolerance
        return config.torso_min_angle <= line_angle <= config.torso_max_angle and hip_centered

    def evaluate(self, frame: LandmarkFrame) -> Metric:
        timestamp_s = frame.timestamp
        self.good = self.good_form(frame)

        if not self.good:
            if self.stage == "holding":
                logger.debug("Plank hold broken after %.2fs", self.current_hold_s)
            self.stage = "resting"
            self.gate_started = -1.0
            self.hold_started = -1.0
            self.current_hold_s = 0.0
            return self.snapshot()

        if self.stage == "resting":
            self.stage = "gated"
            self.gate_started = timestamp_s
        if self.stage == "gated" and timestamp_s - self.gate_started >= self.config.gate_s:
            self.stage = "holding"
            self.hold_started = timestamp_s
        if self.stage == "holding":
            self.current_hold_s = timestamp_s - self.hold_started
            if self.current_hold_s > self.max_hold_s:
                if math.floor(self.current_hold_s) > math.floor(self.max_hold_s):
                    logger.debug("Plank best hold now %ds", math.floor(self.current_hold_s))
                self.max_hold_s = self.current_hold_s

        return self.snapshot()

    def snapshot(self) -> Metric:
        return Metric(
            self.exercise_id,
            int(math.floor(self.max_hold_s)),
            self.unit,
            {"good": self.good, "phase": self.stage, "current_hold": self.current_hold_s},
        )


Evaluator = Union[PushupState, SquatState, JumpingJackState, PlankState]

EVALUATORS: Dict[ExerciseId, Type] = {
    ExerciseId.PUSHUPS: PushupState,
    ExerciseId.SQUATS: SquatState,
    ExerciseId.JUMPING_JACKS: JumpingJackState,
    ExerciseId.PLANK: PlankState,
}


def new_evaluator(exercise: Union[str, ExerciseId], config: Optional[DrillConfig] = None) -> Evaluator:
    exercise_id = parse_exercise_id(exercise)
    config = config or DrillConfig()
    return EVALUATORS[exercise_id](config=getattr(config, exercise_id.value))
