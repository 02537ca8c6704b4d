"""DeepLabV3 semantic segmentation via torchvision."""

import logging
from typing import Optional

import cv2
import numpy as np

from bgcam.config import Config
from bgcam.segmentation.base import Segmenter
from bgcam.utils import ModelNotFoundError, SegmentationError

logger = logging.getLogger(__name__)

# ImageNet statistics expected by the torchvision backbones
_MEAN = (0.485, 0.456, 0.406)
_STD = (0.229, 0.224, 0.225)


class DeepLabV3Segmenter(Segmenter):
    """Semantic segmentation using torchvision's DeepLabV3.

    Weights are trained on COCO with the 21 Pascal VOC labels, where
    0 is background and 15 is person.

    Docs: https://pytorch.org/vision/stable/models/deeplabv3.html
    """

    MODEL_ID = "deeplabv3-mobilenet"
    MODEL_NAME = "DeepLabV3"

    BACKBONES = {
        "deeplabv3-mobilenet": ("deeplabv3_mobilenet_v3_large", "DeepLabV3_MobileNet_V3_Large_Weights"),
        "deeplabv3-resnet50": ("deeplabv3_resnet50", "DeepLabV3_ResNet50_Weights"),
    }

    def __init__(self, config: Optional[Config] = None, variant: str = "deeplabv3-mobilenet"):
        """Initialize DeepLabV3 segmenter.

        Args:
            config: Configuration object
            variant: Key of BACKBONES
        """
        super().__init__(config)
        if variant not in self.BACKBONES:
            raise ModelNotFoundError(
                f"Unknown model '{variant}'. Choose from: {', '.join(self.BACKBONES)}"
            )
        self.variant = variant
        self.MODEL_ID = variant

    def _load_model(self) -> None:
        try:
            import torch
            from torchvision.models import segmentation
        except ImportError:
            raise ModelNotFoundError("PyTorch/torchvision not installed. Run: pip install torch torchvision")

        builder_name, weights_name = self.BACKBONES[self.variant]
        logger.info("Loading %s (%s) on %s...", self.MODEL_NAME, self.variant, self.config.device)

        try:
            torch.hub.set_dir(str(self.config.get_model_dir("torch")))
            weights = getattr(segmentation, weights_name).COCO_WITH_VOC_LABELS_V1
            model = getattr(segmentation, builder_name)(weights=weights)
            model.to(self.config.device)
            model.eval()
        except Exception as e:
            raise ModelNotFoundError(f"Failed to load {self.MODEL_NAME} ({self.variant}): {e}")

        self._mean = torch.tensor(_MEAN, device=self.config.device).view(1, 3, 1, 1)
        self._std = torch.tensor(_STD, device=self.config.device).view(1, 3, 1, 1)
        self._model = model
        logger.info("%s loaded successfully", self.MODEL_NAME)

    def segment(self, frame: np.ndarray) -> np.ndarray:
        self.load()

        import torch

        try:
            rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            src = torch.from_numpy(rgb).to(self.config.device)
            src = src.permute(2, 0, 1).unsqueeze(0).float() / 255
            src = (src - self._mean) / self._std

            with torch.no_grad():
                logits = self._model(src)["out"]

            labels = logits.argmax(1)[0].to(torch.int32).cpu().numpy()
        except (RuntimeError, cv2.error) as e:
            raise SegmentationError(f"{self.MODEL_NAME} inference failed: {e}")

        height, width = frame.shape[:2]
        if labels.shape != (height, width):
            labels = cv2.resize(labels, (width, height), interpolation=cv2.INTER_NEAREST)
        return labels

    def get_info(self) -> dict:
        """Get model information."""
        import torch

        info = super().get_info()
        info.update({
            "variant": self.variant,
            "labels": "Pascal VOC (21 classes)",
            "pytorch_version": torch.__version__,
            "cuda_available": torch.cuda.is_available(),
        })
        return info
