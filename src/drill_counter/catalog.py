from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Union

from .errors import ConfigurationError
from .models import ExerciseId


@dataclass(frozen=True)
class Drill:
    id: ExerciseId
    title: str
    description: str
    unit: str
    time_limit_s: float


DRILLS: Dict[ExerciseId, Drill] = {
    ExerciseId.PUSHUPS: Drill(
        ExerciseId.PUSHUPS, "Push-ups (60s)", "Max correct push-ups in 60 seconds.", "reps", 60.0
    ),
    ExerciseId.SQUATS: Drill(
        ExerciseId.SQUATS, "Bodyweight Squats (60s)", "Max full-depth squats in 60 seconds.", "reps", 60.0
    ),
    ExerciseId.JUMPING_JACKS: Drill(
        ExerciseId.JUMPING_JACKS,
        "Jumping Jacks (30s)",
        "Max full-extension jumping jacks in 30 seconds.",
        "reps",
        30.0,
    ),
    ExerciseId.PLANK: Drill(
        ExerciseId.PLANK, "Forearm Plank Hold", "Hold a straight plank as long as possible.", "seconds", 60.0
    ),
}


def parse_exercise_id(exercise: Union[str, ExerciseId]) -> ExerciseId:
    if isinstance(exercise, ExerciseId):
        return exercise
    try:
        return ExerciseId(str(exercise).strip().lower())
    except ValueError:
        choices = ", ".join(item.value for item in ExerciseId)
        raise ConfigurationError(f"Unknown exercise '{exercise}'. Choose one of: {choices}") from None


def get_drill(exercise: Union[str, ExerciseId]) -> Drill:
    return DRILLS[parse_exercise_id(exercise)]


def exercise_choices() -> List[str]:
    return [item.value for item in ExerciseId]
