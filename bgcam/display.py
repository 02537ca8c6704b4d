"""On-screen preview window and keyboard polling."""

import cv2
import numpy as np

NO_KEY = -1


class Display:
    """OpenCV window showing composited frames."""

    def __init__(self, window_name: str = "Video", wait_ms: int = 1):
        self.window_name = window_name
        self.wait_ms = wait_ms
        self._opened = False

    def __enter__(self) -> "Display":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def show(self, frame: np.ndarray) -> None:
        cv2.imshow(self.window_name, frame)
        self._opened = True

    def poll_key(self) -> int:
        """Wait up to wait_ms for a single key press; NO_KEY if none."""
        key = cv2.waitKey(self.wait_ms)
        if key == -1:
            return NO_KEY
        return key & 0xFF

    def is_visible(self) -> bool:
        """False once the user closed the window with the title bar button."""
        if not self._opened:
            return True
        try:
            return cv2.getWindowProperty(self.window_name, cv2.WND_PROP_VISIBLE) >= 1
        except cv2.error:
            return False

    def close(self) -> None:
        if self._opened:
            try:
                cv2.destroyWindow(self.window_name)
            except cv2.error:
                # already destroyed by the window manager
                pass
            self._opened = False
