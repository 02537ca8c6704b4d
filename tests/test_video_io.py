"""Tests for applying effects to video files."""

import json

import cv2
import numpy as np
import pytest

from bgcam.compositing import EffectMode
from bgcam.config import Config
from bgcam.segmentation.base import Segmenter
from bgcam.utils import SegmentationError
from bgcam.video_io import VideoEffectProcessor, VideoReader


class StripeSegmenter(Segmenter):
    """Marks the left half of every frame as person; fails on one call."""

    MODEL_ID = "stripe"
    MODEL_NAME = "Stripe"

    def __init__(self, config, fail_on=()):
        super().__init__(config)
        self.fail_on = set(fail_on)
        self.calls = 0

    def _load_model(self):
        self._model = object()

    def segment(self, frame):
        self.calls += 1
        if self.calls in self.fail_on:
            raise SegmentationError("inference failed")
        labels = np.zeros(frame.shape[:2], dtype=np.uint8)
        labels[:, : frame.shape[1] // 2] = 15
        return labels


@pytest.fixture
def sample_video(tmp_path):
    path = tmp_path / "clip.avi"
    writer = cv2.VideoWriter(str(path), cv2.VideoWriter_fourcc(*"MJPG"), 10.0, (64, 48))
    for i in range(6):
        writer.write(np.full((48, 64, 3), 40 * i, dtype=np.uint8))
    writer.release()
    return path


class TestVideoReader:
    def test_reads_all_frames(self, sample_video):
        with VideoReader(sample_video) as reader:
            frames = [frame for _, frame in reader.frames()]
        assert len(frames) == 6
        assert frames[0].shape == (48, 64, 3)

    def test_max_frames(self, sample_video):
        with VideoReader(sample_video, max_frames=2) as reader:
            assert len(list(reader.frames())) == 2

    def test_missing_video(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            with VideoReader(tmp_path / "missing.avi"):
                pass


class TestVideoEffectProcessor:
    def test_process_writes_metadata(self, sample_video, tmp_path):
        config = Config(device="cpu", output_dir=tmp_path / "out")
        processor = VideoEffectProcessor(config, StripeSegmenter(config, fail_on={3}))

        result = processor.process(sample_video, EffectMode.REMOVE, show_progress=False)

        assert result.frame_count == 6
        assert result.skipped_frames == [2]
        assert result.output_path.name == "clip_bgcam_remove.mp4"

        metadata = json.loads((tmp_path / "out" / "clip_metadata.json").read_text())
        assert metadata["effect"] == "remove"
        assert metadata["frame_count"] == 6
        assert metadata["skipped_frames"] == [2]

    def test_replace_names_output_after_background(self, sample_video, tmp_path):
        background = tmp_path / "Beach.png"
        cv2.imwrite(str(background), np.full((10, 10, 3), 90, dtype=np.uint8))
        config = Config(device="cpu", output_dir=tmp_path / "out")
        processor = VideoEffectProcessor(config, StripeSegmenter(config))

        result = processor.process(
            sample_video, EffectMode.REPLACE, background_path=background, show_progress=False
        )

        assert result.output_path.name == "clip_bgcam_replace_beach.mp4"
        assert result.skipped_frames == []
