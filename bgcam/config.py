"""Configuration management for bgcam."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from bgcam.utils import ConfigError

# Pascal VOC class table used by DeepLabV3: 0=background, ..., 15=person
VOC_PERSON_LABEL = 15

EFFECT_NAMES = ("remove", "replace", "blur")


@dataclass
class Config:
    """Configuration for bgcam."""

    # Camera
    camera_index: int = 0
    frame_width: int = 640
    frame_height: int = 480
    buffer_size: int = 1
    autofocus: bool = True
    fourcc: str = "MJPG"

    # Background image for the replace effect
    background_path: Optional[Path] = None

    # Built-in model name or path to a model file readable by OpenCV DNN
    model: str = "deeplabv3-mobilenet"

    # Label value of the "person" class in the model's label table
    person_label: int = VOC_PERSON_LABEL

    # Model cache path (torch hub checkpoints)
    cache_dir: Path = field(default_factory=lambda: Path.home() / ".cache" / "bgcam")

    # Device for inference (cuda or cpu)
    device: str = "cuda"

    # Compositing
    initial_mode: str = "remove"
    blur_kernel: int = 21

    # Display / keyboard
    window_name: str = "Video"
    wait_ms: int = 1
    exit_key: int = 27  # Esc
    toggle_key: int = 9  # Tab
    show_metrics: bool = True

    # Stop after this many ticks (None = run until the exit key)
    max_frames: Optional[int] = None

    # Default output directory for processed video files
    output_dir: Path = field(default_factory=lambda: Path("./output"))

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration from environment variables."""
        load_dotenv()

        background = os.getenv("BGCAM_BACKGROUND")
        cache_dir = os.getenv("BGCAM_CACHE_DIR")
        output_dir = os.getenv("BGCAM_OUTPUT_DIR")

        try:
            return cls(
                camera_index=int(os.getenv("BGCAM_CAMERA_INDEX", "0")),
                frame_width=int(os.getenv("BGCAM_FRAME_WIDTH", "640")),
                frame_height=int(os.getenv("BGCAM_FRAME_HEIGHT", "480")),
                background_path=Path(background) if background else None,
                model=os.getenv("BGCAM_MODEL", "deeplabv3-mobilenet"),
                person_label=int(os.getenv("BGCAM_PERSON_LABEL", str(VOC_PERSON_LABEL))),
                cache_dir=Path(cache_dir) if cache_dir else Path.home() / ".cache" / "bgcam",
                device=os.getenv("BGCAM_DEVICE", "cuda"),
                initial_mode=os.getenv("BGCAM_MODE", "remove").lower(),
                blur_kernel=int(os.getenv("BGCAM_BLUR_KERNEL", "21")),
                output_dir=Path(output_dir) if output_dir else Path("./output"),
                log_level=os.getenv("BGCAM_LOG_LEVEL", "INFO"),
            )
        except ValueError as e:
            raise ConfigError(f"Invalid BGCAM_* environment value: {e}")

    def validate(self) -> list[str]:
        """Validate configuration and return list of warnings.

        Raises:
            ConfigError: If a value can never work
        """
        if isinstance(self.person_label, bool) or not isinstance(self.person_label, int):
            raise ConfigError(f"person_label must be an integer, got {self.person_label!r}")
        if self.person_label < 0:
            raise ConfigError(f"person_label must be non-negative, got {self.person_label}")
        if self.blur_kernel < 1:
            raise ConfigError(f"blur_kernel must be positive, got {self.blur_kernel}")
        if self.frame_width <= 0 or self.frame_height <= 0:
            raise ConfigError(f"Invalid resolution {self.frame_width}x{self.frame_height}")
        if self.initial_mode not in EFFECT_NAMES:
            raise ConfigError(
                f"Unknown mode '{self.initial_mode}'. Choose from: {', '.join(EFFECT_NAMES)}"
            )
        if len(self.fourcc) != 4:
            raise ConfigError(f"fourcc must be 4 characters, got '{self.fourcc}'")

        warnings = []

        if self.background_path is None:
            warnings.append("No background image set - replace effect falls back to remove")
        elif not Path(self.background_path).is_file():
            warnings.append(f"Background image not found: {self.background_path}")

        if self.device == "cuda":
            try:
                import torch
                if not torch.cuda.is_available():
                    warnings.append("CUDA requested but not available - falling back to CPU")
                    self.device = "cpu"
            except ImportError:
                warnings.append("PyTorch not installed")

        return warnings

    def ensure_dirs(self) -> None:
        """Create required directories."""
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def get_model_dir(self, model_name: str) -> Path:
        """Get directory for a specific model's checkpoints.

        Args:
            model_name: Name of the model (e.g., "deeplabv3-mobilenet")

        Returns:
            Path to model's checkpoint directory
        """
        model_dir = self.cache_dir / model_name
        model_dir.mkdir(parents=True, exist_ok=True)
        return model_dir
