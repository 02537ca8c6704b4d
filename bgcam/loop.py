"""Capture, segment, composite and display loop."""

import logging
import time
from enum import Enum
from typing import Optional

import numpy as np

from bgcam.camera import Camera
from bgcam.compositing import BackgroundCache, EffectMode, composite, remove_background
from bgcam.config import Config
from bgcam.display import NO_KEY, Display
from bgcam.mask import check_mask_matches, extract_person_mask
from bgcam.metrics import PerformanceMetrics
from bgcam.segmentation.base import Segmenter
from bgcam.utils import BgcamError, ConfigError, FrameReadError

logger = logging.getLogger(__name__)


class LoopState(Enum):
    IDLE = "idle"
    CAMERA_OPEN = "camera_open"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class FrameRenderer:
    """Turn a raw frame into the composited output for the current mode.

    Shared by the live loop and the video file processor.
    """

    def __init__(self, config: Config, segmenter: Segmenter, background: Optional[BackgroundCache] = None):
        self.config = config
        self.segmenter = segmenter
        self.background = background or BackgroundCache()
        self._warned_no_background = False

    def render(self, frame: np.ndarray, mode: EffectMode) -> np.ndarray:
        """Segment the frame and apply the effect.

        Raises:
            SegmentationError, InvalidInput, CompositingError: For this frame only
        """
        label_map = self.segmenter.segment(frame)
        mask = extract_person_mask(label_map, self.config.person_label)
        check_mask_matches(mask, frame)

        if mode is EffectMode.REPLACE:
            if not self.background.available:
                if not self._warned_no_background:
                    logger.warning("No usable background image - showing remove effect instead")
                    self._warned_no_background = True
                return remove_background(frame, mask)
            return composite(mode, frame, mask, background=self.background.resized_for(frame))

        return composite(mode, frame, mask, blur_kernel=self.config.blur_kernel)


class BackgroundReplacementLoop:
    """Live webcam background replacement.

    States move IDLE -> CAMERA_OPEN -> RUNNING -> STOPPED, or to FAILED when
    the camera or the model cannot be opened. Only start-up is fatal; everything
    that goes wrong with a single frame is logged and the tick skipped.

    Keys: exit_key (Esc) stops, toggle_key (Tab) cycles remove -> replace ->
    blur. Other keys are ignored.
    """

    def __init__(
        self,
        config: Config,
        segmenter: Segmenter,
        camera: Optional[Camera] = None,
        display: Optional[Display] = None,
        background: Optional[BackgroundCache] = None,
        metrics: Optional[PerformanceMetrics] = None,
    ):
        """Initialize the loop.

        Args:
            config: Configuration object
            segmenter: Model producing label maps
            camera: Frame source (built from config if not provided)
            display: Output window (built from config if not provided)
            background: Background for the replace effect (loaded from config if not provided)
            metrics: FPS overlay (created when config.show_metrics is set)
        """
        self.config = config
        self.camera = camera or Camera.from_config(config)
        self.display = display or Display(config.window_name, config.wait_ms)
        if background is None:
            background = BackgroundCache.load(config.background_path)
        if metrics is None and config.show_metrics:
            metrics = PerformanceMetrics()
        self.metrics = metrics
        self.renderer = FrameRenderer(config, segmenter, background)

        try:
            self.mode = EffectMode.from_name(config.initial_mode)
        except ValueError as e:
            raise ConfigError(str(e))
        self.state = LoopState.IDLE
        self.frames_shown = 0
        self.frames_skipped = 0
        self.ticks = 0

    def run(self) -> int:
        """Run until the exit key is pressed.

        Returns:
            Process exit status: 0 on clean stop, 1 if the camera or model failed to open
        """
        try:
            with self.camera, self.display:
                self.state = LoopState.CAMERA_OPEN
                self.renderer.segmenter.load()

                self.state = LoopState.RUNNING
                logger.info("Running - %s effect. Tab: next effect, Esc: quit", self.mode.value)

                while self.state is LoopState.RUNNING:
                    self.tick()
        except BgcamError as e:
            self.state = LoopState.FAILED
            logger.error("%s", e)
            return 1
        except KeyboardInterrupt:
            logger.info("Interrupted")
            self.state = LoopState.STOPPED

        logger.info("Stopped after %d frames (%d skipped)", self.frames_shown, self.frames_skipped)
        return 0

    def tick(self) -> None:
        """Process one frame and handle at most one key press."""
        self.ticks += 1
        start = time.perf_counter()

        try:
            frame = self.camera.read()
            output = self.renderer.render(frame, self.mode)
        except FrameReadError as e:
            self.frames_skipped += 1
            logger.warning("%s - skipping", e)
        except BgcamError as e:
            self.frames_skipped += 1
            logger.warning("Frame %d skipped: %s", self.ticks, e)
        else:
            if self.metrics is not None:
                self.metrics.update(start, output)
            self.display.show(output)
            self.frames_shown += 1

        self.handle_key(self.display.poll_key())
        if self.state is LoopState.RUNNING and not self.display.is_visible():
            logger.info("Window closed")
            self.state = LoopState.STOPPED
        self._check_limits()

    def handle_key(self, key: int) -> None:
        if key == NO_KEY:
            return
        if key == self.config.exit_key:
            self.state = LoopState.STOPPED
        elif key == self.config.toggle_key:
            self.mode = self.mode.next()
            logger.info("Effect: %s", self.mode.value)

    def _check_limits(self) -> None:
        max_frames = self.config.max_frames
        if max_frames is not None and self.ticks >= max_frames and self.state is LoopState.RUNNING:
            self.state = LoopState.STOPPED
