"""Person mask extraction from segmentation label maps."""

import numbers

import numpy as np

from bgcam.utils import InvalidInput


def extract_person_mask(label_map: np.ndarray, person_label: int) -> np.ndarray:
    """Derive a boolean person mask from a per-pixel label map.

    Args:
        label_map: Integer class labels, shape (H, W) or (H, W, 1)
        person_label: Label value of the person class in the model's table

    Returns:
        Boolean array of shape (H, W), True where the label equals person_label

    Raises:
        InvalidInput: If the label map is empty or not 2-D, or the label is invalid
    """
    if isinstance(person_label, bool) or not isinstance(person_label, numbers.Integral):
        raise InvalidInput(f"person_label must be an integer, got {person_label!r}")
    if person_label < 0:
        raise InvalidInput(f"person_label must be non-negative, got {person_label}")

    labels = np.asarray(label_map)
    if labels.size == 0:
        raise InvalidInput(f"Empty label map with shape {labels.shape}")
    if labels.ndim == 3 and labels.shape[2] == 1:
        labels = labels[:, :, 0]
    if labels.ndim != 2:
        raise InvalidInput(f"Label map must be 2-D, got shape {labels.shape}")

    return labels == person_label


def check_mask_matches(mask: np.ndarray, frame: np.ndarray) -> None:
    """Ensure a mask covers exactly the frame's pixels.

    Raises:
        InvalidInput: If the mask's (H, W) differs from the frame's
    """
    if mask.shape[:2] != frame.shape[:2]:
        raise InvalidInput(
            f"Mask shape {mask.shape[:2]} does not match frame shape {frame.shape[:2]}"
        )
