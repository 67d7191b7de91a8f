from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Union

from .catalog import parse_exercise_id
from .channel import LatestValue
from .config import DrillConfig
from .errors import PoseSourceClosed, PoseSourceError
from .framing import FramingAdvisor
from .models import ExerciseId, LandmarkFrame, Metric, OverlayState
from .pose_source import PoseSource
from .rep_counter import Evaluator, new_evaluator

logger = logging.getLogger(__name__)


class FrameDispatcher:
    """
    Routes landmark frames to the active exercise evaluator and the framing
    advisor, and hands their snapshots to the consumer through single-slot
    channels.

    All state is mutated from one loop only. `stop()` clears the liveness flag,
    after which every frame, including one already in flight, is ignored.
    """

    def __init__(self, config: Optional[DrillConfig] = None, portrait: bool = True) -> None:
        self.config = config or DrillConfig()
        self.advisor = FramingAdvisor(self.config.framing, portrait=portrait)
        self.metrics: LatestValue[Metric] = LatestValue()
        self.overlay: LatestValue[OverlayState] = LatestValue()
        self.frames_dispatched = 0
        self._evaluator: Optional[Evaluator] = None
        self._exercise: Optional[ExerciseId] = None
        self._alive = False

    @property
    def active_exercise(self) -> Optional[ExerciseId]:
        return self._exercise

    @property
    def is_live(self) -> bool:
        return self._alive

    @property
    def evaluator(self) -> Optional[Evaluator]:
        return self._evaluator

    def start(self, exercise: Union[str, ExerciseId]) -> None:
        exercise_id = parse_exercise_id(exercise)
        self._exercise = exercise_id
        self._evaluator = new_evaluator(exercise_id, self.config)
        self.frames_dispatched = 0
        self.advisor.reset()
        self.metrics.clear()
        self.overlay.publish(OverlayState())
        self._alive = True
        logger.info("Session started: %s", exercise_id.value)

    def reset(self) -> None:
        if self._exercise is None:
            return
        self._evaluator = new_evaluator(self._exercise, self.config)
        self.metrics.publish(self._evaluator.snapshot())
        logger.info("Session reset: %s", self._exercise.value)

    def stop(self) -> Optional[Metric]:
        if not self._alive:
            return self.metrics.latest()
        self._alive = False
        if self._evaluator is None:
            return None
        final = self._evaluator.snapshot()
        self.metrics.publish(final)
        logger.info("Session stopped: %s = %d %s", final.exercise_id.value, final.value, final.unit)
        return final

    def dispatch(self, frame: Optional[LandmarkFrame]) -> Optional[Metric]:
        if not self._alive or self._evaluator is None:
            return None
        if frame is None or not frame.has_subject:
            return None

        overlay = self.advisor.update(frame, self._exercise)
        if overlay is not None:
            self.overlay.publish(overlay)

        metric = self._evaluator.evaluate(frame)
        self.metrics.publish(metric)
        self.frames_dispatched += 1
        return metric

    async def run(
        self,
        source: PoseSource,
        after_frame: Optional[Callable[[Optional[LandmarkFrame]], None]] = None,
    ) -> Optional[Metric]:
        """
        Pull frames from `source` until the session stops or the source closes.

        `after_frame` runs on the loop after each dispatched frame; the host uses
        it for presentation and may call `stop()` from it.

        The source is closed on exit. When the loop is cancelled mid-pull the
        close waits for the worker thread to leave `next_frame` first.
        """
        pull: Optional[asyncio.Future] = None
        try:
            while self._alive:
                pull = asyncio.ensure_future(asyncio.to_thread(source.next_frame))
                try:
                    frame = await asyncio.shield(pull)
                except PoseSourceClosed:
                    logger.info("Pose source closed")
                    break
                except PoseSourceError as exc:
                    logger.warning("Pose source failure: %s", exc)
                    await asyncio.sleep(0)
                    continue

                if self._alive:
                    self.dispatch(frame)
                    if after_frame is not None:
                        after_frame(frame)
                await asyncio.sleep(0)
        finally:
            if pull is not None and not pull.done():
                await asyncio.wait([pull])
                if not pull.cancelled():
                    pull.exception()
            source.close()
        return self.stop()
