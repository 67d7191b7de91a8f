from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np

from .models import FrameQuality, LandmarkFrame, Metric, OverlayState
from .utils import safe_mean


@dataclass
class DrillSession:
    """Per-frame history of one drill, used for the CSV/JSON outputs and the summary."""

    exercise: str
    rows: List[Dict[str, object]] = field(default_factory=list)
    quality_counts: Dict[str, int] = field(default_factory=lambda: {q.value: 0 for q in FrameQuality})
    frames_total: int = 0
    frames_without_subject: int = 0
    first_timestamp: Optional[float] = None
    last_timestamp: Optional[float] = None

    def record(
        self,
        frame: Optional[LandmarkFrame],
        metric: Optional[Metric],
        overlay: Optional[OverlayState],
    ) -> None:
        self.frames_total += 1
        if frame is None or not frame.has_subject:
            self.frames_without_subject += 1
            return
        if self.first_timestamp is None:
            self.first_timestamp = frame.timestamp
        self.last_timestamp = frame.timestamp
        if overlay is not None:
            self.quality_counts[overlay.frame_quality.value] += 1
        if metric is None:
            return

        row: Dict[str, object] = {
            "timestamp_s": round(frame.timestamp, 4),
            "value": metric.value,
            "unit": metric.unit,
        }
        for key, value in metric.extras.items():
            row[key] = round(value, 3) if isinstance(value, float) else value
        row["frame_quality"] = overlay.frame_quality.value if overlay is not None else None
        self.rows.append(row)

    @property
    def duration_s(self) -> float:
        if self.first_timestamp is None or self.last_timestamp is None:
            return 0.0
        return self.last_timestamp - self.first_timestamp

    @property
    def unit(self) -> Optional[str]:
        return str(self.rows[-1]["unit"]) if self.rows else None

    def rep_events(self) -> List[float]:
        """Timestamps at which the rep count went up. Timed holds have none."""
        events: List[float] = []
        if self.unit != "reps":
            return events
        previous = 0
        for row in self.rows:
            value = int(row["value"])
            if value > previous:
                events.append(float(row["timestamp_s"]))
            previous = value
        return events

    def summary(self, final: Optional[Metric]) -> Dict[str, object]:
        evaluated = len(self.rows)
        quality_total = sum(self.quality_counts.values())
        quality_ratios = {
            key: round(count / quality_total, 3) if quality_total else 0.0
            for key, count in self.quality_counts.items()
        }
        interval = float("nan")
        events = self.rep_events()
        if len(events) > 1:
            interval = safe_mean(np.diff(events).tolist())
        return {
            "exercise": self.exercise,
            "final_value": final.value if final is not None else 0,
            "unit": final.unit if final is not None else None,
            "frames": self.frames_total,
            "frames_evaluated": evaluated,
            "frames_without_subject": self.frames_without_subject,
            "duration_s": round(self.duration_s, 3),
            "mean_rep_interval_s": None if np.isnan(interval) else round(interval, 3),
            "frame_quality": quality_ratios,
        }
