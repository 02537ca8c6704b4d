"""Frame rate and latency overlay."""

import time
from typing import Optional

import cv2
import numpy as np


class PerformanceMetrics:
    """Track FPS and per-frame latency and draw them onto frames.

    Averages are refreshed once per window so the overlay stays readable.
    """

    def __init__(self, window_seconds: float = 1.0):
        self.window_seconds = window_seconds
        self.fps = 0.0
        self.latency_ms = 0.0
        self.total_frames = 0
        self._window_start: Optional[float] = None
        self._window_frames = 0
        self._window_latency = 0.0

    def update(
        self,
        start_time: float,
        frame: Optional[np.ndarray] = None,
        position: tuple[int, int] = (10, 22),
        font_scale: float = 0.65,
        now: Optional[float] = None,
    ) -> None:
        """Record a finished frame and optionally paint the overlay.

        Args:
            start_time: time.perf_counter() when work on the frame started
            frame: Frame to draw on in place (skipped when None)
            position: Top-left anchor of the text
            font_scale: OpenCV font scale
            now: Current time, defaults to time.perf_counter()
        """
        now = time.perf_counter() if now is None else now

        if self._window_start is None:
            self._window_start = start_time

        self.total_frames += 1
        self._window_frames += 1
        self._window_latency += now - start_time

        elapsed = now - self._window_start
        if elapsed >= self.window_seconds or self.total_frames == 1:
            self.fps = self._window_frames / elapsed if elapsed > 0 else 0.0
            self.latency_ms = self._window_latency / self._window_frames * 1000
            if elapsed >= self.window_seconds:
                self._window_start = now
                self._window_frames = 0
                self._window_latency = 0.0

        if frame is not None:
            self.paint(frame, position, font_scale)

    def paint(self, frame: np.ndarray, position: tuple[int, int] = (10, 22), font_scale: float = 0.65) -> None:
        x, y = position
        line_height = int(30 * font_scale)
        for i, text in enumerate((f"Latency: {self.latency_ms:.1f} ms", f"FPS: {self.fps:.1f}")):
            org = (x, y + i * line_height)
            cv2.putText(frame, text, org, cv2.FONT_HERSHEY_COMPLEX, font_scale, (200, 10, 10), 2)
