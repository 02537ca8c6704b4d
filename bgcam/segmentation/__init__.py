"""Semantic segmentation backends."""

from pathlib import Path
from typing import Optional

from bgcam.config import Config
from bgcam.segmentation.base import Segmenter
from bgcam.segmentation.deeplab import DeepLabV3Segmenter
from bgcam.segmentation.opencv_dnn import OpenCVSegmenter
from bgcam.utils import ModelNotFoundError

__all__ = ["Segmenter", "DeepLabV3Segmenter", "OpenCVSegmenter", "create_segmenter"]


def create_segmenter(config: Config, model: Optional[str] = None) -> Segmenter:
    """Create a segmenter for a built-in model name or a model file.

    Args:
        config: Configuration object
        model: Model name or path (defaults to config.model)

    Returns:
        Unloaded Segmenter instance
    """
    model = model or config.model

    if Path(model).is_file():
        return OpenCVSegmenter(model, config)

    if model in DeepLabV3Segmenter.BACKBONES:
        return DeepLabV3Segmenter(config, variant=model)

    raise ModelNotFoundError(
        f"Unknown model '{model}': not a file and not one of {', '.join(DeepLabV3Segmenter.BACKBONES)}"
    )
