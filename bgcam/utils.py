"""Utility functions for bgcam."""

import re
from pathlib import Path
from typing import Optional


class BgcamError(Exception):
    """Base exception for bgcam."""
    pass


class ConfigError(BgcamError):
    """Raised when a configuration value is invalid."""
    pass


class DeviceOpenError(BgcamError):
    """Raised when the camera cannot be opened or configured."""
    pass


class FrameReadError(BgcamError):
    """Raised when a single capture read fails."""
    pass


class InvalidInput(BgcamError):
    """Raised for empty label maps or mask/frame dimension mismatches."""
    pass


class CompositingError(BgcamError):
    """Raised when a frame cannot be composited."""
    pass


class SegmentationError(BgcamError):
    """Raised when the segmentation model fails on a frame."""
    pass


class ModelNotFoundError(BgcamError):
    """Raised when a segmentation model cannot be found or loaded."""
    pass


def sanitize_filename(name: str) -> str:
    """Sanitize a string for use as a filename.

    Args:
        name: Input string

    Returns:
        Sanitized string safe for filenames
    """
    sanitized = re.sub(r"[^\w\-]", "_", name)
    sanitized = re.sub(r"_+", "_", sanitized)
    sanitized = sanitized.strip("_")
    return sanitized.lower()


def get_output_filename(
    input_path: Path,
    effect: str,
    output_dir: Path,
    suffix: Optional[str] = None,
) -> Path:
    """Generate output filename for a processed video.

    Args:
        input_path: Original video file path
        effect: Effect name (e.g., "remove", "blur")
        output_dir: Output directory
        suffix: Optional extra suffix (e.g., background name)

    Returns:
        Path for the output video file
    """
    stem = input_path.stem
    safe_effect = sanitize_filename(effect)

    if suffix:
        filename = f"{stem}_bgcam_{safe_effect}_{sanitize_filename(suffix)}.mp4"
    else:
        filename = f"{stem}_bgcam_{safe_effect}.mp4"

    return output_dir / filename


def format_duration(seconds: float) -> str:
    """Format duration in seconds to human-readable string.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string (e.g., "1h 23m 45s")
    """
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if hours:
        parts.append(f"{hours}h")
    if minutes:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")

    return " ".join(parts)


def get_video_info(video_path: Path) -> dict:
    """Get basic video information using OpenCV.

    Args:
        video_path: Path to video file

    Returns:
        Dictionary with video info (width, height, fps, frame_count, duration)
    """
    import cv2

    cap = cv2.VideoCapture(str(video_path))
    if not cap.isOpened():
        raise FileNotFoundError(f"Cannot open video: {video_path}")

    try:
        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        fps = cap.get(cv2.CAP_PROP_FPS)
        frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        duration = frame_count / fps if fps > 0 else 0

        return {
            "width": width,
            "height": height,
            "fps": fps,
            "frame_count": frame_count,
            "duration": duration,
            "duration_str": format_duration(duration),
        }
    finally:
        cap.release()


# Built-in segmentation models. Model files (.onnx, .xml, .pb) go through OpenCV DNN.
AVAILABLE_MODELS = {
    "deeplabv3-mobilenet": {
        "name": "DeepLabV3 MobileNetV3-Large",
        "desc": "torchvision, VOC labels (person=15), fast",
    },
    "deeplabv3-resnet50": {
        "name": "DeepLabV3 ResNet-50",
        "desc": "torchvision, VOC labels (person=15), accurate",
    },
}


def list_models() -> str:
    """Get formatted list of available segmentation models.

    Returns:
        Formatted string with model information
    """
    lines = ["Available Models", "=" * 50, ""]

    for model_id, info in AVAILABLE_MODELS.items():
        lines.append(f"  {model_id:<22} {info['name']} - {info['desc']}")

    lines.append("")
    lines.append("  <path>.onnx|.xml|.pb    Any model file readable by OpenCV DNN")
    lines.append("")

    return "\n".join(lines)
