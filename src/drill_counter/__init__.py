"""Exercise metrics (rep counts and plank holds) from a live stream of pose landmarks."""

from .dispatcher import FrameDispatcher
from .models import ExerciseId, FrameQuality, Landmark, LandmarkFrame, Metric, OverlayState

__all__ = [
    "ExerciseId",
    "FrameDispatcher",
    "FrameQuality",
    "Landmark",
    "LandmarkFrame",
    "Metric",
    "OverlayState",
]
