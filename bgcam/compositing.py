"""Mask-selected compositing of webcam frames.

All effects keep person pixels from the frame and only differ in what fills
the background:

    remove   black (zero in every channel, transparent with alpha)
    replace  a static image stretched to the frame size
    blur     a box blur of the background with the person zeroed out first

None of the functions mutate their inputs.
"""

import logging
from enum import Enum
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from bgcam.utils import CompositingError

logger = logging.getLogger(__name__)

DEFAULT_BLUR_KERNEL = 21


class EffectMode(Enum):
    """Active compositing effect, cycled at runtime."""

    REMOVE = "remove"
    REPLACE = "replace"
    BLUR = "blur"

    def next(self) -> "EffectMode":
        """Return the mode after this one, wrapping around."""
        members = list(EffectMode)
        return members[(members.index(self) + 1) % len(members)]

    @classmethod
    def from_name(cls, name: str) -> "EffectMode":
        try:
            return cls(name.lower())
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown effect '{name}'. Choose from: {choices}")


def _check_inputs(frame: np.ndarray, mask: np.ndarray) -> None:
    if frame is None or frame.size == 0:
        raise CompositingError("Empty frame")
    if mask is None or mask.shape[:2] != frame.shape[:2]:
        mask_shape = None if mask is None else mask.shape
        raise CompositingError(
            f"Mask shape {mask_shape} does not match frame shape {frame.shape[:2]}"
        )


def _select(frame: np.ndarray, mask: np.ndarray, fill: np.ndarray | int) -> np.ndarray:
    """Take frame pixels where mask is set and fill pixels elsewhere."""
    keep = mask.astype(bool)
    if frame.ndim == 3:
        keep = keep[:, :, None]
    return np.where(keep, frame, fill).astype(frame.dtype)


def _channels(image: np.ndarray) -> int:
    return 1 if image.ndim == 2 else image.shape[2]


def _match_channels(background: np.ndarray, frame: np.ndarray) -> np.ndarray:
    src, dst = _channels(background), _channels(frame)
    if src == dst:
        return background

    conversions = {
        (1, 3): cv2.COLOR_GRAY2BGR,
        (1, 4): cv2.COLOR_GRAY2BGRA,
        (3, 1): cv2.COLOR_BGR2GRAY,
        (3, 4): cv2.COLOR_BGR2BGRA,
        (4, 1): cv2.COLOR_BGRA2GRAY,
        (4, 3): cv2.COLOR_BGRA2BGR,
    }
    if (src, dst) not in conversions:
        raise CompositingError(f"Cannot composite a {src}-channel background onto a {dst}-channel frame")

    if background.ndim == 3 and src == 1:
        background = background[:, :, 0]
    return cv2.cvtColor(background, conversions[(src, dst)])


def fit_background(background: np.ndarray, frame: np.ndarray) -> np.ndarray:
    """Stretch a background image to the frame's size and channel layout.

    The aspect ratio is not preserved: the image is stretched, never letterboxed.
    """
    if background is None or background.size == 0:
        raise CompositingError("Background image is missing")

    height, width = frame.shape[:2]
    if background.shape[:2] != (height, width):
        background = cv2.resize(background, (width, height), interpolation=cv2.INTER_LINEAR)

    background = _match_channels(background, frame)
    if background.ndim != frame.ndim:
        background = background.reshape(frame.shape)
    if background.dtype != frame.dtype:
        background = background.astype(frame.dtype)
    return background


def remove_background(frame: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Black out every background pixel.

    Args:
        frame: Image of shape (H, W) or (H, W, C)
        mask: Boolean person mask of shape (H, W)

    Returns:
        New image where background pixels are zero in all channels
    """
    _check_inputs(frame, mask)
    return _select(frame, mask, 0)


def replace_background(frame: np.ndarray, background: np.ndarray, mask: np.ndarray) -> np.ndarray:
    """Replace background pixels with a static image.

    Args:
        frame: Image of shape (H, W) or (H, W, C)
        background: Background image of any size
        mask: Boolean person mask of shape (H, W)

    Returns:
        New image with person pixels from frame and the rest from the background

    Raises:
        CompositingError: If the background is missing or shapes do not line up
    """
    _check_inputs(frame, mask)
    fitted = fit_background(background, frame)
    return _select(frame, mask, fitted)


def blur_background(frame: np.ndarray, mask: np.ndarray, kernel_size: int = DEFAULT_BLUR_KERNEL) -> np.ndarray:
    """Box-blur the background while keeping the person sharp.

    Person pixels are zeroed before blurring so their colours do not bleed
    into the blurred background along the mask edge. Borders use OpenCV's
    default BORDER_REFLECT_101 (mirror without repeating the edge pixel),
    which affects the outer kernel_size // 2 rows and columns.

    Args:
        frame: Image of shape (H, W) or (H, W, C)
        mask: Boolean person mask of shape (H, W)
        kernel_size: Width and height of the box kernel

    Returns:
        New image with person pixels from frame and blurred background elsewhere
    """
    _check_inputs(frame, mask)
    if kernel_size < 1:
        raise CompositingError(f"Blur kernel must be positive, got {kernel_size}")

    background_only = _select(frame, ~mask.astype(bool), 0)
    blurred = cv2.blur(background_only, (kernel_size, kernel_size), borderType=cv2.BORDER_REFLECT_101)
    if blurred.ndim != background_only.ndim:
        blurred = blurred.reshape(background_only.shape)
    return _select(frame, mask, blurred)


def composite(
    mode: EffectMode,
    frame: np.ndarray,
    mask: np.ndarray,
    background: Optional[np.ndarray] = None,
    blur_kernel: int = DEFAULT_BLUR_KERNEL,
) -> np.ndarray:
    """Apply the effect selected by mode."""
    if mode is EffectMode.REMOVE:
        return remove_background(frame, mask)
    if mode is EffectMode.REPLACE:
        return replace_background(frame, background, mask)
    if mode is EffectMode.BLUR:
        return blur_background(frame, mask, blur_kernel)
    raise CompositingError(f"Unsupported effect mode: {mode!r}")


class BackgroundCache:
    """Background image decoded once and stretched once per frame size."""

    def __init__(self, image: Optional[np.ndarray] = None, source: Optional[Path] = None):
        """Initialize the cache.

        Args:
            image: Decoded background image, or None when unavailable
            source: Path the image was read from (for messages)
        """
        self.source = source
        self._image = image if image is not None and image.size > 0 else None
        self._resized: Optional[np.ndarray] = None
        self._resized_key: Optional[tuple] = None
        self.resize_count = 0

    @classmethod
    def load(cls, path: Optional[str | Path]) -> "BackgroundCache":
        """Read a background image from disk.

        A missing or undecodable file gives an unavailable cache instead of
        an error, so the replace effect can degrade to remove.
        """
        if path is None:
            return cls()

        path = Path(path)
        image = cv2.imread(str(path)) if path.is_file() else None
        if image is None:
            logger.warning("Cannot read background image %s - replace effect unavailable", path)
            return cls(source=path)

        logger.info("Loaded background %s (%dx%d)", path.name, image.shape[1], image.shape[0])
        return cls(image, source=path)

    @property
    def available(self) -> bool:
        return self._image is not None

    def resized_for(self, frame: np.ndarray) -> np.ndarray:
        """Return the background fitted to the frame, reusing the last resize."""
        if self._image is None:
            raise CompositingError(f"Background image unavailable: {self.source or 'not set'}")

        key = (frame.shape[:2], _channels(frame), frame.dtype)
        if self._resized is None or self._resized_key != key:
            self._resized = fit_background(self._image, frame)
            self._resized_key = key
            self.resize_count += 1
        return self._resized
