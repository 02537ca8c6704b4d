"""Segmentation models loaded from disk with OpenCV DNN."""

import logging
from pathlib import Path
from typing import Optional

import cv2
import numpy as np

from bgcam.config import Config
from bgcam.segmentation.base import Segmenter
from bgcam.utils import ModelNotFoundError, SegmentationError

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = {".onnx", ".xml", ".pb"}


class OpenCVSegmenter(Segmenter):
    """Semantic segmentation from a model file using cv2.dnn.

    Handles ONNX exports, OpenVINO IR (.xml with its .bin beside it) and
    frozen TensorFlow graphs. The network may output either class scores of
    shape (1, C, h, w) or class ids of shape (1, h, w) / (1, 1, h, w).

    Defaults match the public DeepLabV3 (513x513, RGB, scaled to [-1, 1]).
    """

    MODEL_ID = "opencv-dnn"
    MODEL_NAME = "OpenCV DNN"

    def __init__(
        self,
        model_path: str | Path,
        config: Optional[Config] = None,
        input_size: tuple[int, int] = (513, 513),
        mean: float = 127.5,
        scale: float = 1 / 127.5,
        swap_rb: bool = True,
    ):
        """Initialize the segmenter.

        Args:
            model_path: Path to the model file
            config: Configuration object
            input_size: Network input (width, height)
            mean: Value subtracted from every channel
            scale: Factor applied after mean subtraction
            swap_rb: Feed RGB instead of OpenCV's BGR
        """
        super().__init__(config)
        self.model_path = Path(model_path)
        self.input_size = input_size
        self.mean = mean
        self.scale = scale
        self.swap_rb = swap_rb

    def _load_model(self) -> None:
        if not self.model_path.is_file():
            raise ModelNotFoundError(f"Model file not found: {self.model_path}")
        if self.model_path.suffix.lower() not in SUPPORTED_SUFFIXES:
            raise ModelNotFoundError(
                f"Unsupported model format '{self.model_path.suffix}'. "
                f"Use one of: {', '.join(sorted(SUPPORTED_SUFFIXES))}"
            )

        logger.info("Loading %s from %s...", self.MODEL_NAME, self.model_path.name)

        try:
            net = cv2.dnn.readNet(str(self.model_path))
        except cv2.error as e:
            raise ModelNotFoundError(f"Failed to load {self.model_path}: {e}")

        if self.config.device == "cuda":
            net.setPreferableBackend(cv2.dnn.DNN_BACKEND_CUDA)
            net.setPreferableTarget(cv2.dnn.DNN_TARGET_CUDA)

        self._model = net
        logger.info("%s loaded successfully", self.MODEL_NAME)

    def segment(self, frame: np.ndarray) -> np.ndarray:
        self.load()

        try:
            blob = cv2.dnn.blobFromImage(
                frame,
                scalefactor=self.scale,
                size=self.input_size,
                mean=(self.mean, self.mean, self.mean),
                swapRB=self.swap_rb,
                crop=False,
            )
            self._model.setInput(blob)
            output = self._model.forward()
        except cv2.error as e:
            raise SegmentationError(f"{self.MODEL_NAME} inference failed: {e}")

        labels = decode_output(output)
        height, width = frame.shape[:2]
        if labels.shape != (height, width):
            labels = cv2.resize(labels, (width, height), interpolation=cv2.INTER_NEAREST)
        return labels

    def get_info(self) -> dict:
        """Get model information."""
        info = super().get_info()
        info.update({
            "model_path": str(self.model_path),
            "input_size": self.input_size,
            "opencv_version": cv2.__version__,
        })
        return info


def decode_output(output: np.ndarray) -> np.ndarray:
    """Turn raw network output into a 2-D int32 label map.

    Raises:
        SegmentationError: If the output layout is not recognised
    """
    output = np.asarray(output)

    if output.ndim == 4 and output.shape[1] > 1:
        labels = output[0].argmax(axis=0)
    elif output.ndim == 4 and output.shape[1] == 1:
        labels = output[0, 0]
    elif output.ndim == 3:
        labels = output[0]
    elif output.ndim == 2:
        labels = output
    else:
        raise SegmentationError(f"Unexpected segmentation output shape {output.shape}")

    if labels.size == 0:
        raise SegmentationError("Segmentation output is empty")
    return labels.astype(np.int32)
