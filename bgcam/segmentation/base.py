"""Base segmenter interface."""

from abc import ABC, abstractmethod
from typing import Optional, TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from bgcam.config import Config


class Segmenter(ABC):
    """Interface for per-pixel semantic segmentation models.

    A segmenter turns a BGR frame into a label map with the frame's height
    and width, where each cell holds a class index from the model's label
    table.
    """

    MODEL_ID: str = ""
    MODEL_NAME: str = ""

    def __init__(self, config: Optional["Config"] = None):
        """Initialize segmenter with configuration.

        Args:
            config: Configuration object
        """
        from bgcam.config import Config
        self.config = config or Config.from_env()
        self._model = None

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def load(self) -> None:
        """Load the model once; later calls are no-ops."""
        if self._model is None:
            self._load_model()

    @abstractmethod
    def _load_model(self) -> None:
        """Load the underlying model into self._model."""

    @abstractmethod
    def segment(self, frame: np.ndarray) -> np.ndarray:
        """Classify every pixel of a BGR frame.

        Args:
            frame: BGR image of shape (H, W, 3)

        Returns:
            Integer label map of shape (H, W)
        """

    def get_info(self) -> dict:
        """Get model information."""
        return {
            "model": self.MODEL_NAME,
            "model_id": self.MODEL_ID,
            "person_label": self.config.person_label,
            "device": self.config.device,
        }
