"""Tests for the capture/segment/display loop and its collaborators."""

import cv2
import numpy as np
import pytest

from bgcam.camera import Camera
from bgcam.compositing import BackgroundCache, EffectMode
from bgcam.config import Config
from bgcam.display import NO_KEY, Display
from bgcam.loop import BackgroundReplacementLoop, LoopState
from bgcam.mask import extract_person_mask
from bgcam.metrics import PerformanceMetrics
from bgcam.segmentation import DeepLabV3Segmenter, OpenCVSegmenter, create_segmenter
from bgcam.segmentation.base import Segmenter
from bgcam.segmentation.opencv_dnn import decode_output
from bgcam.utils import (
    BgcamError,
    ConfigError,
    DeviceOpenError,
    FrameReadError,
    ModelNotFoundError,
    SegmentationError,
)

ESC = 27
TAB = 9


def frame_of(value=200, height=4, width=4):
    return np.full((height, width, 3), value, dtype=np.uint8)


class FakeCamera:
    """Camera yielding scripted frames; None entries fail the read."""

    def __init__(self, frames=None, fail_open=False):
        self.frames = list(frames or [])
        self.fail_open = fail_open
        self.opened = False
        self.released = False

    def __enter__(self):
        if self.fail_open:
            raise DeviceOpenError("Camera 0 is not opened")
        self.opened = True
        return self

    def __exit__(self, *args):
        self.released = True

    def read(self):
        frame = self.frames.pop(0) if self.frames else frame_of()
        if frame is None:
            raise FrameReadError("Failed to read frame from camera 0")
        return frame


class FakeDisplay:
    """Display recording shown frames and replaying scripted keys."""

    def __init__(self, keys=None):
        self.keys = list(keys or [])
        self.shown = []
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.closed = True

    def show(self, frame):
        self.shown.append(frame)

    def poll_key(self):
        return self.keys.pop(0) if self.keys else NO_KEY

    def is_visible(self):
        return True


class FakeSegmenter(Segmenter):
    """Segmenter returning a fixed label, or raising for scripted calls."""

    MODEL_ID = "fake"
    MODEL_NAME = "Fake"

    def __init__(self, config, label=15, fail_on=(), shape=None):
        super().__init__(config)
        self.label = label
        self.fail_on = set(fail_on)
        self.shape = shape
        self.calls = 0

    def _load_model(self):
        self._model = object()

    def segment(self, frame):
        self.calls += 1
        if self.calls in self.fail_on:
            raise SegmentationError("inference failed")
        shape = self.shape or frame.shape[:2]
        return np.full(shape, self.label, dtype=np.uint8)


@pytest.fixture
def config():
    return Config(device="cpu", show_metrics=False)


def make_loop(config, camera=None, display=None, segmenter=None, background=None):
    return BackgroundReplacementLoop(
        config,
        segmenter or FakeSegmenter(config),
        camera=camera or FakeCamera(),
        display=display or FakeDisplay(),
        background=background or BackgroundCache(),
    )


class TestLoopLifecycle:
    def test_exit_key_stops_cleanly(self, config):
        camera, display = FakeCamera(), FakeDisplay([NO_KEY, ESC])
        loop = make_loop(config, camera, display)

        assert loop.state is LoopState.IDLE
        assert loop.run() == 0
        assert loop.state is LoopState.STOPPED
        assert len(display.shown) == 2
        assert camera.released
        assert display.closed

    def test_device_open_failure_is_fatal(self, config):
        display = FakeDisplay()
        loop = make_loop(config, FakeCamera(fail_open=True), display)

        assert loop.run() == 1
        assert loop.state is LoopState.FAILED
        assert display.shown == []

    def test_model_load_failure_is_fatal(self, config):
        class BrokenSegmenter(FakeSegmenter):
            def _load_model(self):
                raise ModelNotFoundError("no weights")

        camera = FakeCamera()
        loop = make_loop(config, camera, segmenter=BrokenSegmenter(config))
        assert loop.run() == 1
        assert loop.state is LoopState.FAILED
        assert camera.released

    def test_missing_inference_runtime_is_fatal(self, config):
        class NoRuntimeSegmenter(FakeSegmenter):
            def _load_model(self):
                raise BgcamError("PyTorch/torchvision not installed")

        camera = FakeCamera()
        loop = make_loop(config, camera, segmenter=NoRuntimeSegmenter(config))
        assert loop.run() == 1
        assert loop.state is LoopState.FAILED
        assert camera.released

    def test_unknown_initial_mode(self, config):
        config.initial_mode = "sepia"
        with pytest.raises(ConfigError):
            make_loop(config)

    def test_closed_window_stops(self, config):
        class ClosedDisplay(FakeDisplay):
            def is_visible(self):
                return False

        display = ClosedDisplay()
        loop = make_loop(config, display=display)
        assert loop.run() == 0
        assert loop.state is LoopState.STOPPED
        assert loop.ticks == 1

    def test_compositing_failure_is_skipped(self, config):
        config.max_frames = 2
        config.initial_mode = "replace"
        two_channel = np.zeros((4, 4, 2), dtype=np.uint8)
        display = FakeDisplay()
        loop = make_loop(
            config,
            FakeCamera([two_channel, frame_of()]),
            display,
            segmenter=FakeSegmenter(config, label=0),
            background=BackgroundCache(np.full((8, 8, 3), 33, dtype=np.uint8)),
        )

        assert loop.run() == 0
        assert loop.frames_skipped == 1
        assert loop.frames_shown == 1
        assert (display.shown[0] == 33).all()

    def test_max_frames(self, config):
        config.max_frames = 5
        display = FakeDisplay()
        loop = make_loop(config, display=display)
        assert loop.run() == 0
        assert loop.ticks == 5
        assert len(display.shown) == 5

    def test_read_failures_are_skipped(self, config):
        config.max_frames = 4
        camera = FakeCamera([None, frame_of(), None, frame_of()])
        display = FakeDisplay()
        loop = make_loop(config, camera, display)

        assert loop.run() == 0
        assert loop.frames_shown == 2
        assert loop.frames_skipped == 2

    def test_exit_key_honoured_after_read_failure(self, config):
        camera = FakeCamera([None])
        display = FakeDisplay([ESC])
        loop = make_loop(config, camera, display)
        assert loop.run() == 0
        assert loop.ticks == 1

    def test_segmentation_failure_is_skipped(self, config):
        config.max_frames = 3
        display = FakeDisplay()
        loop = make_loop(config, display=display, segmenter=FakeSegmenter(config, fail_on={2}))

        assert loop.run() == 0
        assert loop.frames_shown == 2
        assert loop.frames_skipped == 1

    def test_mismatched_label_map_is_skipped(self, config):
        config.max_frames = 2
        display = FakeDisplay()
        loop = make_loop(config, display=display, segmenter=FakeSegmenter(config, shape=(2, 2)))

        assert loop.run() == 0
        assert display.shown == []
        assert loop.frames_skipped == 2


class TestLoopKeys:
    def test_toggle_cycles_three_modes(self, config):
        loop = make_loop(config)
        assert loop.mode is EffectMode.REMOVE
        modes = []
        for _ in range(3):
            loop.handle_key(TAB)
            modes.append(loop.mode)
        assert modes == [EffectMode.REPLACE, EffectMode.BLUR, EffectMode.REMOVE]

    def test_other_keys_ignored(self, config):
        loop = make_loop(config)
        loop.state = LoopState.RUNNING
        for key in (NO_KEY, ord("a"), ord("q"), 13):
            loop.handle_key(key)
        assert loop.mode is EffectMode.REMOVE
        assert loop.state is LoopState.RUNNING

    def test_mode_is_per_loop(self, config):
        first, second = make_loop(config), make_loop(config)
        first.handle_key(TAB)
        assert first.mode is EffectMode.REPLACE
        assert second.mode is EffectMode.REMOVE

    def test_initial_mode_from_config(self, config):
        config.initial_mode = "blur"
        assert make_loop(config).mode is EffectMode.BLUR

    def test_toggle_changes_rendering(self, config):
        display = FakeDisplay([TAB, TAB, ESC])
        loop = make_loop(config, display=display, segmenter=FakeSegmenter(config, label=0))
        loop.run()

        remove_out, replace_out, blur_out = display.shown
        assert not remove_out.any()
        # no background configured: replace falls back to remove
        assert not replace_out.any()
        assert (blur_out == 200).all()


class TestLoopRendering:
    def test_person_everywhere_passes_frame(self, config):
        frame = np.zeros((4, 4, 3), dtype=np.uint8)
        frame[:, :] = (0, 0, 255)
        display = FakeDisplay([ESC])
        loop = make_loop(config, FakeCamera([frame]), display)
        loop.run()
        assert np.array_equal(display.shown[0], frame)

    def test_replace_uses_background(self, config):
        config.initial_mode = "replace"
        background = np.full((8, 8, 3), 33, dtype=np.uint8)
        display = FakeDisplay([ESC])
        loop = make_loop(
            config,
            display=display,
            segmenter=FakeSegmenter(config, label=0),
            background=BackgroundCache(background),
        )
        loop.run()
        assert (display.shown[0] == 33).all()

    def test_person_label_is_configurable(self, config):
        config.person_label = 1
        display = FakeDisplay([ESC])
        loop = make_loop(config, display=display, segmenter=FakeSegmenter(config, label=1))
        loop.run()
        assert (display.shown[0] == 200).all()

    def test_metrics_drawn_on_output(self, config):
        display = FakeDisplay([ESC])
        loop = BackgroundReplacementLoop(
            config,
            FakeSegmenter(config, label=0),
            camera=FakeCamera([frame_of(0, 60, 200)]),
            display=display,
            background=BackgroundCache(),
            metrics=PerformanceMetrics(),
        )
        loop.run()
        assert display.shown[0].any()
        assert loop.metrics.total_frames == 1


class TestPerformanceMetrics:
    def test_window_averages(self):
        metrics = PerformanceMetrics(window_seconds=1.0)
        metrics.update(0.0, now=0.1)
        assert metrics.fps == pytest.approx(10.0)
        assert metrics.latency_ms == pytest.approx(100.0)

        metrics.update(0.5, now=1.0)
        assert metrics.fps == pytest.approx(2.0)
        assert metrics.latency_ms == pytest.approx(300.0)

    def test_paints_text(self):
        frame = np.zeros((60, 200, 3), dtype=np.uint8)
        PerformanceMetrics().update(0.0, frame, now=0.05)
        assert frame.any()


class FakeCapture:
    def __init__(self, index, opened=True, frames=None):
        self.index = index
        self.opened = opened
        self.frames = list(frames or [])
        self.props = {}
        self.released = False

    def isOpened(self):
        return self.opened and not self.released

    def set(self, prop, value):
        self.props[prop] = value
        return True

    def get(self, prop):
        return self.props.get(prop, 0)

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self):
        self.released = True


class TestCamera:
    def test_open_applies_settings(self, monkeypatch):
        captures = []

        def factory(index):
            cap = FakeCapture(index, frames=[frame_of()])
            captures.append(cap)
            return cap

        monkeypatch.setattr(cv2, "VideoCapture", factory)

        with Camera(index=1, width=320, height=240, buffer_size=1, autofocus=True) as camera:
            assert camera.is_opened
            assert camera.read().shape == (4, 4, 3)
            with pytest.raises(FrameReadError):
                camera.read()

        cap = captures[0]
        assert cap.index == 1
        assert cap.props[cv2.CAP_PROP_FRAME_WIDTH] == 320
        assert cap.props[cv2.CAP_PROP_FRAME_HEIGHT] == 240
        assert cap.props[cv2.CAP_PROP_BUFFERSIZE] == 1
        assert cap.props[cv2.CAP_PROP_AUTOFOCUS] == 1
        assert cap.props[cv2.CAP_PROP_FOURCC] == cv2.VideoWriter_fourcc(*"MJPG")
        assert cap.released

    def test_open_failure(self, monkeypatch):
        captures = []

        def factory(index):
            cap = FakeCapture(index, opened=False)
            captures.append(cap)
            return cap

        monkeypatch.setattr(cv2, "VideoCapture", factory)

        with pytest.raises(DeviceOpenError):
            with Camera(index=7):
                pass
        assert captures[0].released

    def test_read_before_open(self):
        with pytest.raises(RuntimeError):
            Camera().read()


class TestSegmenters:
    def test_create_builtin(self, config):
        segmenter = create_segmenter(config, "deeplabv3-resnet50")
        assert isinstance(segmenter, DeepLabV3Segmenter)
        assert segmenter.variant == "deeplabv3-resnet50"
        assert not segmenter.loaded

    def test_create_from_file(self, config, tmp_path):
        model_file = tmp_path / "deeplabv3.onnx"
        model_file.write_bytes(b"")
        segmenter = create_segmenter(config, str(model_file))
        assert isinstance(segmenter, OpenCVSegmenter)
        assert segmenter.model_path == model_file

    def test_create_unknown(self, config):
        with pytest.raises(ModelNotFoundError):
            create_segmenter(config, "no-such-model")

    def test_opencv_missing_file(self, config, tmp_path):
        with pytest.raises(ModelNotFoundError):
            OpenCVSegmenter(tmp_path / "missing.onnx", config).load()

    def test_opencv_unsupported_format(self, config, tmp_path):
        model_file = tmp_path / "model.tflite"
        model_file.write_bytes(b"")
        with pytest.raises(ModelNotFoundError):
            OpenCVSegmenter(model_file, config).load()

    def test_decode_class_scores(self):
        scores = np.zeros((1, 21, 2, 3), dtype=np.float32)
        scores[0, 15, 0, :] = 1.0
        labels = decode_output(scores)
        assert labels.shape == (2, 3)
        assert (labels[0] == 15).all()
        assert (labels[1] == 0).all()

    def test_decode_class_ids(self):
        ids = np.array([[[0, 15], [15, 3]]], dtype=np.int32)
        assert np.array_equal(decode_output(ids), [[0, 15], [15, 3]])
        assert decode_output(ids[:, None]).shape == (2, 2)

    def test_decode_bad_shape(self):
        with pytest.raises(SegmentationError):
            decode_output(np.zeros((1, 1, 1, 2, 2)))

    def test_decode_keeps_labels_above_255(self):
        ids = np.array([[[0, 300], [300, 7]]], dtype=np.int64)
        labels = decode_output(ids)
        assert labels[0, 1] == 300
        assert np.array_equal(extract_person_mask(labels, 300), [[False, True], [True, False]])


class TestDisplay:
    def test_poll_key_none(self, monkeypatch):
        waits = []
        monkeypatch.setattr(cv2, "waitKey", lambda ms: waits.append(ms) or -1)
        assert Display(wait_ms=5).poll_key() == NO_KEY
        assert waits == [5]

    def test_poll_key_masks_modifier_bits(self, monkeypatch):
        monkeypatch.setattr(cv2, "waitKey", lambda ms: 0x10001B)
        assert Display().poll_key() == ESC

    def test_visible_until_closed(self, monkeypatch):
        visible = [1.0]
        monkeypatch.setattr(cv2, "imshow", lambda name, frame: None)
        monkeypatch.setattr(cv2, "getWindowProperty", lambda name, prop: visible[0])

        display = Display("Preview")
        assert display.is_visible()
        display.show(frame_of())
        assert display.is_visible()
        visible[0] = 0.0
        assert not display.is_visible()

    def test_destroyed_window_is_not_visible(self, monkeypatch):
        def gone(name, prop):
            raise cv2.error("NULL window")

        monkeypatch.setattr(cv2, "imshow", lambda name, frame: None)
        monkeypatch.setattr(cv2, "getWindowProperty", gone)

        display = Display()
        display.show(frame_of())
        assert not display.is_visible()

    def test_close_tolerates_missing_window(self, monkeypatch):
        destroyed = []

        def destroy(name):
            destroyed.append(name)
            raise cv2.error("NULL window")

        monkeypatch.setattr(cv2, "imshow", lambda name, frame: None)
        monkeypatch.setattr(cv2, "destroyWindow", destroy)

        with Display("Preview") as display:
            display.show(frame_of())
        assert destroyed == ["Preview"]

        display.close()
        assert destroyed == ["Preview"]

    def test_close_without_show_skips_destroy(self, monkeypatch):
        destroyed = []
        monkeypatch.setattr(cv2, "destroyWindow", destroyed.append)
        Display().close()
        assert destroyed == []
