from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .errors import ConfigurationError


@dataclass(frozen=True)
class PushupConfig:
    down_elbow_angle: float = 80.0
    up_elbow_angle: float = 155.0
    torso_min_angle: float = 165.0
    torso_max_angle: float = 195.0
    debounce_s: float = 0.25


@dataclass(frozen=True)
class SquatConfig:
    down_knee_angle: float = 85.0
    up_knee_angle: float = 165.0
    debounce_s: float = 0.3


@dataclass(frozen=True)
class JumpingJackConfig:
    # Feet count as apart at this multiple of the smoothed shoulder width.
    feet_apart_ratio: float = 1.25
    baseline_smoothing: float = 0.9
    hands_margin: float = 0.02
    debounce_s: float = 0.22


@dataclass(frozen=True)
class PlankConfig:
    torso_min_angle: float = 168.0
    torso_max_angle: float = 192.0
    hip_center_tolerance: float = 0.045
    gate_s: float = 0.4


@dataclass(frozen=True)
class RoiConfig:
    left: float
    right: float
    top: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left


@dataclass(frozen=True)
class FramingConfig:
    min_interval_s: float = 0.1
    roi_margin: float = 0.03
    portrait_roi: RoiConfig = field(default_factory=lambda: RoiConfig(0.10, 0.90, 0.06, 0.94))
    landscape_roi: RoiConfig = field(default_factory=lambda: RoiConfig(0.12, 0.88, 0.08, 0.92))
    step_back_ratio: float = 0.36
    step_closer_ratio: float = 0.16
    go_lower_angle: float = 130.0
    rise_up_angle: float = 95.0


@dataclass(frozen=True)
class PoseSourceConfig:
    visibility_threshold: float = 0.5
    model_complexity: int = 1
    model_path: Optional[str] = None
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5


@dataclass(frozen=True)
class DrillConfig:
    pushups: PushupConfig = field(default_factory=PushupConfig)
    squats: SquatConfig = field(default_factory=SquatConfig)
    jumpingjacks: JumpingJackConfig = field(default_factory=JumpingJackConfig)
    plank: PlankConfig = field(default_factory=PlankConfig)
    framing: FramingConfig = field(default_factory=FramingConfig)
    pose: PoseSourceConfig = field(default_factory=PoseSourceConfig)


def _coerce(value: Any, default: Any) -> Any:
    if default is None:
        return None if value is None else str(value)
    if isinstance(default, bool):
        if isinstance(value, str):
            return value.strip().lower() in ("1", "true", "yes", "on")
        return bool(value)
    if isinstance(default, int):
        return int(value)
    if isinstance(default, float):
        return float(value)
    return value


def _merge(section: Any, raw: Any, path: str) -> Any:
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Config section '{path}' must be an object")
    updates: Dict[str, Any] = {}
    for item in fields(section):
        if item.name not in raw:
            continue
        current = getattr(section, item.name)
        value = raw[item.name]
        if is_dataclass(current):
            updates[item.name] = _merge(current, value, f"{path}.{item.name}")
            continue
        try:
            updates[item.name] = _coerce(value, current)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(f"Invalid value for '{path}.{item.name}': {value!r}") from exc
    return replace(section, **updates)


def load_config(path: Optional[Union[str, Path]] = None) -> DrillConfig:
    """
    Load thresholds from a JSON file laid out like DrillConfig.

    A missing file gives the defaults; unknown keys are ignored.
    """
    if path is None:
        return DrillConfig()
    config_path = Path(path).expanduser()
    if not config_path.exists():
        return DrillConfig()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Unable to read config {config_path}: {exc}") from exc
    return _merge(DrillConfig(), raw, "config")


def with_overrides(
    config: DrillConfig,
    feet_apart_ratio: Optional[float] = None,
    hip_center_tolerance: Optional[float] = None,
    visibility_threshold: Optional[float] = None,
    model_complexity: Optional[int] = None,
    model_path: Optional[str] = None,
) -> DrillConfig:
    if feet_apart_ratio is not None:
        config = replace(config, jumpingjacks=replace(config.jumpingjacks, feet_apart_ratio=feet_apart_ratio))
    if hip_center_tolerance is not None:
        config = replace(config, plank=replace(config.plank, hip_center_tolerance=hip_center_tolerance))
    pose_updates: Dict[str, Any] = {}
    if visibility_threshold is not None:
        pose_updates["visibility_threshold"] = visibility_threshold
    if model_complexity is not None:
        pose_updates["model_complexity"] = model_complexity
    if model_path is not None:
        pose_updates["model_path"] = model_path
    if pose_updates:
        config = replace(config, pose=replace(config.pose, **pose_updates))
    return config


def config_dict(config: DrillConfig) -> Dict[str, Any]:
    return asdict(config)
