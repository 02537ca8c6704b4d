"""Webcam capture for bgcam."""

import logging
from typing import Optional

import cv2
import numpy as np

from bgcam.utils import DeviceOpenError, FrameReadError

logger = logging.getLogger(__name__)


class Camera:
    """Read frames from a webcam.

    Capture settings are applied once when the device is opened. Use as a
    context manager so the device is released on every exit path.
    """

    def __init__(
        self,
        index: int = 0,
        width: int = 640,
        height: int = 480,
        buffer_size: int = 1,
        autofocus: bool = True,
        fourcc: str = "MJPG",
    ):
        """Initialize camera.

        Args:
            index: Device index passed to cv2.VideoCapture
            width: Requested frame width
            height: Requested frame height
            buffer_size: Driver-side frame queue length (1 = lowest latency)
            autofocus: Enable autofocus
            fourcc: Requested pixel format
        """
        self.index = index
        self.width = width
        self.height = height
        self.buffer_size = buffer_size
        self.autofocus = autofocus
        self.fourcc = fourcc
        self._cap: Optional[cv2.VideoCapture] = None

    @classmethod
    def from_config(cls, config) -> "Camera":
        return cls(
            index=config.camera_index,
            width=config.frame_width,
            height=config.frame_height,
            buffer_size=config.buffer_size,
            autofocus=config.autofocus,
            fourcc=config.fourcc,
        )

    def __enter__(self) -> "Camera":
        self.open()
        return self

    def __exit__(self, *args) -> None:
        self.release()

    def open(self) -> None:
        """Open the device and apply capture settings.

        Raises:
            DeviceOpenError: If the device is missing or rejects configuration
        """
        try:
            self._cap = cv2.VideoCapture(self.index)
            if not self._cap.isOpened():
                raise DeviceOpenError(f"Camera {self.index} is not opened, try another index")

            self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
            self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
            self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self.buffer_size)
            self._cap.set(cv2.CAP_PROP_AUTOFOCUS, 1 if self.autofocus else 0)
            self._cap.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*self.fourcc))
        except cv2.error as e:
            self.release()
            raise DeviceOpenError(f"Failed to open camera {self.index}: {e}")
        except DeviceOpenError:
            self.release()
            raise

        logger.info(
            "Camera %d opened at %dx%d",
            self.index,
            int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
            int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)),
        )

    @property
    def is_opened(self) -> bool:
        return self._cap is not None and self._cap.isOpened()

    def read(self) -> np.ndarray:
        """Grab one frame (blocking).

        Raises:
            FrameReadError: If the camera returns no frame
        """
        if self._cap is None:
            raise RuntimeError("Camera not opened. Use 'with' statement.")

        ok, frame = self._cap.read()
        if not ok or frame is None or frame.size == 0:
            raise FrameReadError(f"Failed to read frame from camera {self.index}")
        return frame

    def release(self) -> None:
        if self._cap is not None:
            self._cap.release()
            self._cap = None
