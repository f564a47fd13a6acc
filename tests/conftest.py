import threading
import time

import numpy as np
import pytest

from yolo_overlay.core.errors import ModelLoadError, ModelNotReady
from yolo_overlay.core.types import PlaybackState


def wait_for(predicate, timeout=3.0, interval=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


def make_frame(width=64, height=48, seed=0):
    rng = np.random.default_rng(seed)
    return rng.integers(0, 255, size=(height, width, 3), dtype=np.uint8)


class FakeFrameSource:
    """Synthetic stand-in for a video surface."""

    def __init__(self, frame=None, state=PlaybackState.PLAYING):
        self.frame = make_frame() if frame is None else frame
        self._state = state
        self._listeners = []

    def current_frame(self):
        return None if self.frame is None else self.frame.copy()

    def playback_state(self):
        return self._state

    def on_playback_state_changed(self, callback):
        self._listeners.append(callback)

    def set_state(self, state):
        self._state = state
        for callback in list(self._listeners):
            callback(state)


class FakeDetector:
    """Detector double with an optional gate to hold detect() open."""

    def __init__(self, detections=(), ready=True, load_error=None):
        self.detections = list(detections)
        self.error = None
        self.gate = None
        self.load_error = load_error
        self.load_calls = 0
        self.device = 'cpu'
        self.calls = []
        self.active = 0
        self.max_active = 0
        self.entered = threading.Event()
        self._ready = ready
        self._lock = threading.Lock()

    @property
    def is_ready(self):
        return self._ready

    def load_model(self, accelerator=None):
        self.load_calls += 1
        if self.load_error is not None:
            raise ModelLoadError(str(self.load_error))
        self._ready = True

    def detect(self, handle):
        if not self._ready:
            raise ModelNotReady("not loaded")
        with self._lock:
            self.calls.append(handle)
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        self.entered.set()
        try:
            if self.gate is not None:
                assert self.gate.wait(5.0), "detect gate was never released"
            if self.error is not None:
                raise self.error
            return list(self.detections)
        finally:
            with self._lock:
                self.active -= 1


class FakeTensor:
    def __init__(self, values):
        self._values = np.asarray(values, dtype=np.float32)

    def cpu(self):
        return self

    def numpy(self):
        return self._values


class FakeBoxes:
    def __init__(self, xyxy, conf, cls):
        self.xyxy = FakeTensor(np.asarray(xyxy, dtype=np.float32).reshape(-1, 4))
        self.conf = FakeTensor(conf)
        self.cls = FakeTensor(cls)

    def __len__(self):
        return len(self.xyxy.numpy())


class FakeResult:
    def __init__(self, boxes):
        self.boxes = boxes


class FakeYoloModel:
    """Mimics the parts of ultralytics.YOLO the detector service touches."""

    def __init__(self, boxes=None, names=None, error=None):
        self.names = names if names is not None else {0: 'person', 2: 'car'}
        self.boxes = boxes if boxes is not None else FakeBoxes([], [], [])
        self.error = error
        self.predict_calls = []

    def predict(self, image, **kwargs):
        self.predict_calls.append((image.shape, kwargs))
        if self.error is not None:
            raise self.error
        return [FakeResult(self.boxes)]


@pytest.fixture
def frame_source():
    return FakeFrameSource()


@pytest.fixture
def fake_detector():
    return FakeDetector()


@pytest.fixture
def capture_dir(tmp_path):
    path = tmp_path / "frames"
    return str(path)
