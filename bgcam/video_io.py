"""Apply background effects to recorded video files."""

import json
import logging
from pathlib import Path
from typing import Generator, Optional

import cv2
import numpy as np
from tqdm import tqdm

from bgcam.compositing import BackgroundCache, EffectMode
from bgcam.config import Config
from bgcam.loop import FrameRenderer
from bgcam.segmentation.base import Segmenter
from bgcam.utils import BgcamError, get_output_filename, get_video_info

logger = logging.getLogger(__name__)


class VideoReader:
    """Read BGR video frames from a file."""

    def __init__(self, video_path: Path, max_frames: Optional[int] = None):
        """Initialize video reader.

        Args:
            video_path: Path to input video
            max_frames: Maximum frames to read (None = all)
        """
        self.video_path = Path(video_path)
        self.max_frames = max_frames
        self._cap: Optional[cv2.VideoCapture] = None
        self._info: Optional[dict] = None

    @property
    def info(self) -> dict:
        """Get video information."""
        if self._info is None:
            self._info = get_video_info(self.video_path)
        return self._info

    def __enter__(self) -> "VideoReader":
        self._cap = cv2.VideoCapture(str(self.video_path))
        if not self._cap.isOpened():
            raise FileNotFoundError(f"Cannot open video: {self.video_path}")
        return self

    def __exit__(self, *args) -> None:
        if self._cap:
            self._cap.release()

    def frames(self) -> Generator[tuple[int, np.ndarray], None, None]:
        """Iterate over video frames.

        Yields:
            Tuple of (frame_index, BGR frame)
        """
        if self._cap is None:
            raise RuntimeError("VideoReader not opened. Use 'with' statement.")

        frame_idx = 0
        while True:
            if self.max_frames and frame_idx >= self.max_frames:
                break

            ret, frame = self._cap.read()
            if not ret:
                break

            yield frame_idx, frame
            frame_idx += 1


class VideoWriter:
    """Write BGR video frames to file."""

    def __init__(
        self,
        output_path: Path,
        width: int,
        height: int,
        fps: float,
        codec: str = "mp4v",
    ):
        """Initialize video writer.

        Args:
            output_path: Path for output video
            width: Frame width
            height: Frame height
            fps: Frames per second
            codec: Video codec (default: mp4v)
        """
        self.output_path = Path(output_path)
        self.width = width
        self.height = height
        self.fps = fps
        self.codec = codec
        self._writer: Optional[cv2.VideoWriter] = None
        self.frame_count = 0

    def __enter__(self) -> "VideoWriter":
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        fourcc = cv2.VideoWriter_fourcc(*self.codec)
        self._writer = cv2.VideoWriter(
            str(self.output_path),
            fourcc,
            self.fps,
            (self.width, self.height),
        )
        return self

    def __exit__(self, *args) -> None:
        if self._writer:
            self._writer.release()

    def write_frame(self, frame: np.ndarray) -> None:
        if self._writer is None:
            raise RuntimeError("VideoWriter not opened. Use 'with' statement.")

        if frame.ndim == 2:
            frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
        self._writer.write(frame)
        self.frame_count += 1


class ProcessingResult:
    """Container for processing results."""

    def __init__(self, video_path: Path, output_dir: Path, mode: EffectMode):
        self.video_path = video_path
        self.output_dir = output_dir
        self.mode = mode
        self.output_path: Optional[Path] = None
        self.frame_count = 0
        self.skipped_frames: list[int] = []

    def save_metadata(self) -> Path:
        """Save processing metadata to JSON file.

        Returns:
            Path to metadata file
        """
        metadata = {
            "input_video": str(self.video_path),
            "effect": self.mode.value,
            "output_path": str(self.output_path) if self.output_path else None,
            "frame_count": self.frame_count,
            "skipped_frames": self.skipped_frames,
        }

        metadata_path = self.output_dir / f"{self.video_path.stem}_metadata.json"
        with open(metadata_path, "w") as f:
            json.dump(metadata, f, indent=2)

        return metadata_path


class VideoEffectProcessor:
    """Run the live-loop rendering over every frame of a video file."""

    def __init__(self, config: Optional[Config] = None, segmenter: Optional[Segmenter] = None):
        """Initialize processor.

        Args:
            config: Configuration object
            segmenter: Segmentation model (created from config if not provided)
        """
        self.config = config or Config.from_env()
        if segmenter is None:
            from bgcam.segmentation import create_segmenter
            segmenter = create_segmenter(self.config)
        self.segmenter = segmenter

    def process(
        self,
        video_path: str | Path,
        mode: EffectMode,
        background_path: Optional[Path] = None,
        output_dir: Optional[Path] = None,
        show_progress: bool = True,
    ) -> ProcessingResult:
        """Apply one effect to a whole video.

        Frames that fail to render are written unchanged and listed in the
        metadata as skipped.

        Args:
            video_path: Path to input video
            mode: Effect to apply
            background_path: Background image for the replace effect
            output_dir: Output directory

        Returns:
            ProcessingResult with path to the composited video
        """
        video_path = Path(video_path)
        output_dir = Path(output_dir or self.config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        background = BackgroundCache.load(background_path or self.config.background_path)
        renderer = FrameRenderer(self.config, self.segmenter, background)
        self.segmenter.load()

        result = ProcessingResult(video_path, output_dir, mode)
        suffix = background.source.stem if mode is EffectMode.REPLACE and background.available else None
        result.output_path = get_output_filename(video_path, mode.value, output_dir, suffix)

        with VideoReader(video_path, self.config.max_frames) as reader:
            info = reader.info
            logger.info("Video: %dx%d @ %.1ffps", info["width"], info["height"], info["fps"])
            total = self.config.max_frames or info["frame_count"]

            with VideoWriter(
                result.output_path, info["width"], info["height"], info["fps"] or 30.0
            ) as writer:
                for frame_idx, frame in tqdm(
                    reader.frames(), total=total, desc=f"Applying {mode.value}", disable=not show_progress
                ):
                    try:
                        output = renderer.render(frame, mode)
                    except BgcamError as e:
                        logger.warning("Frame %d written unchanged: %s", frame_idx, e)
                        result.skipped_frames.append(frame_idx)
                        output = frame
                    writer.write_frame(output)

            result.frame_count = writer.frame_count

        result.save_metadata()
        logger.info("Created: %s", result.output_path.name)
        return result
