"""
Pipeline sessions and their binding to playback.

A PipelineSession is one sampling run: it owns a Sampler (timer, single-flight
slot, generation token) and drives capture -> detect -> reduce on every
dispatched cycle. The PipelineController creates a session whenever playback
starts and tears it down when playback pauses or stops, so nothing from one run
leaks into the next.
"""
import itertools
import threading
from dataclasses import dataclass

from yolo_overlay import config
from yolo_overlay.core.errors import SourceUnavailable
from yolo_overlay.core.sampler import Sampler
from yolo_overlay.core.types import DetectionBatch, OverlayState, PlaybackState
from yolo_overlay.processing.frame_cache import FrameCache
from yolo_overlay.processing.frame_capture import FrameCaptureService
from yolo_overlay.processing.overlay_reducer import reduce
from yolo_overlay.utils.logger_setup import log_debug, log_warning

_session_ids = itertools.count(1)


@dataclass
class PipelineSettings:
    interval_ms: int = config.SAMPLING_INTERVAL_MS
    accelerator: str = config.ACCELERATOR
    retention: int = config.FRAME_CACHE_RETENTION
    capture_dir: str = config.FRAME_CAPTURE_DIR
    image_format: str = config.FRAME_IMAGE_FORMAT

    @classmethod
    def from_config(cls):
        # Read at call time so run_app.py overrides are picked up
        return cls(
            interval_ms=config.SAMPLING_INTERVAL_MS,
            accelerator=config.ACCELERATOR,
            retention=config.FRAME_CACHE_RETENTION,
            capture_dir=config.FRAME_CAPTURE_DIR,
            image_format=config.FRAME_IMAGE_FORMAT,
        )


class PipelineSession:
    def __init__(self, frame_source, capture_service, detector, frame_cache, interval_ms=None, accelerator=None):
        self.session_id = next(_session_ids)
        self.frame_source = frame_source
        self.capture_service = capture_service
        self.detector = detector
        self.frame_cache = frame_cache
        self.interval_ms = config.SAMPLING_INTERVAL_MS if interval_ms is None else interval_ms
        self.accelerator = config.ACCELERATOR if accelerator is None else accelerator
        self._sampler = Sampler(frame_source.playback_state, on_error=self._report_error,
                                name=f"Sampler-{self.session_id}")
        self._publish_lock = threading.RLock()
        self._overlay_state = OverlayState.empty()
        self._overlay_listeners = []
        self._error_listeners = []
        self.cycles_completed = 0
        self.results_discarded = 0

    @property
    def sampler(self):
        return self._sampler

    @property
    def is_running(self):
        return self._sampler.is_running

    @property
    def overlay_state(self):
        with self._publish_lock:
            return self._overlay_state

    def add_overlay_listener(self, callback):
        self._overlay_listeners.append(callback)

    def add_error_listener(self, callback):
        self._error_listeners.append(callback)

    def start(self):
        """Start sampling once the detector is ready.

        Blocks while the model loads if it has not been loaded yet; a load
        failure is raised as ModelLoadError and the sampler is never started.
        """
        if not self.detector.is_ready:
            log_debug(f"Session {self.session_id}: waiting for detector to load before sampling.")
            self.detector.load_model(self.accelerator)
        self._sampler.start(self.interval_ms, self._run_cycle)
        log_debug(f"Session {self.session_id} started.")

    def stop(self, wait=False):
        """Stop sampling. Once this returns no overlay is published or forwarded.

        With wait=True, also wait for a cycle that is still capturing or
        detecting to return, so nothing touches the frame cache afterwards.
        """
        with self._publish_lock:
            self._sampler.stop()
        if wait:
            self._sampler.stop(wait=True)
        log_debug(f"Session {self.session_id} stopped. cycles={self.cycles_completed} discarded={self.results_discarded}")

    def dispose(self):
        self.stop(wait=True)
        self._overlay_listeners.clear()
        self._error_listeners.clear()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.dispose()

    def _run_cycle(self, token):
        handle = self.capture_service.capture()
        if not self._sampler.is_current(token):
            log_debug(f"Session {self.session_id}: stopped during capture of frame {handle.sequence}; dropping it.")
            self.frame_cache.discard(handle)
            return
        self.frame_cache.record(handle)
        detections = self.detector.detect(handle)
        overlay = reduce(DetectionBatch(frame_handle=handle, detections=tuple(detections)))
        self._publish(token, overlay)

    def _publish(self, token, overlay):
        with self._publish_lock:
            if not self._sampler.is_current(token):
                self.results_discarded += 1
                log_debug(f"Session {self.session_id}: discarding stale result for frame {overlay.frame_handle.sequence}.")
                return False
            self._overlay_state = overlay
            self.cycles_completed += 1
            # Delivered under the lock, so stop() returns only after delivery ends.
            # Listeners must never wait on the thread that calls stop().
            for callback in list(self._overlay_listeners):
                try:
                    callback(overlay)
                except Exception as e:
                    log_warning(f"Overlay listener failed: {e}", exc_info=True)
        return True

    def _report_error(self, error):
        if isinstance(error, SourceUnavailable):
            log_debug(f"Session {self.session_id}: frame source unavailable, skipping tick.")
        else:
            log_warning(f"Session {self.session_id}: cycle failed with {type(error).__name__}: {error}")
        for callback in list(self._error_listeners):
            try:
                callback(error)
            except Exception as e:
                log_warning(f"Error listener failed: {e}", exc_info=True)


class PipelineController:
    """Keeps one PipelineSession alive exactly while the frame source is playing.

    The detector, capture service and frame cache outlive individual sessions;
    the model is loaded once by prepare().
    """

    def __init__(self, frame_source, detector, settings=None, capture_service=None, frame_cache=None):
        self.frame_source = frame_source
        self.detector = detector
        self.settings = settings or PipelineSettings.from_config()
        self.capture_service = capture_service or FrameCaptureService(
            frame_source, capture_dir=self.settings.capture_dir, image_format=self.settings.image_format)
        self.frame_cache = frame_cache or FrameCache(retention=self.settings.retention)
        self.load_error = None
        self._session = None
        self._lock = threading.Lock()
        self._overlay_listeners = []
        self._error_listeners = []
        self._last_overlay = OverlayState.empty()
        self._bound = False

    @property
    def session(self):
        return self._session

    @property
    def overlay_state(self):
        return self._last_overlay

    def add_overlay_listener(self, callback):
        self._overlay_listeners.append(callback)

    def add_error_listener(self, callback):
        self._error_listeners.append(callback)

    def prepare(self):
        """Load the detector model. ModelLoadError is recorded and re-raised for the caller to show."""
        try:
            self.detector.load_model(self.settings.accelerator)
        except Exception as e:
            self.load_error = e
            raise
        self.load_error = None

    def bind(self):
        """Follow playback: start a session on PLAYING, stop it on anything else."""
        if not self._bound:
            self.frame_source.on_playback_state_changed(self._on_playback_state_changed)
            self._bound = True
        if self.frame_source.playback_state() == PlaybackState.PLAYING:
            self.start_session()

    def _on_playback_state_changed(self, state):
        if state == PlaybackState.PLAYING:
            if self.load_error is not None:
                log_debug("Playback started but detector failed to load; pipeline stays idle.")
                return
            self.start_session()
        else:
            self.stop_session()

    def start_session(self):
        with self._lock:
            if self._session is not None and self._session.is_running:
                return self._session
            if self._session is not None:
                self._session.dispose()
            session = PipelineSession(self.frame_source, self.capture_service, self.detector, self.frame_cache,
                                      interval_ms=self.settings.interval_ms, accelerator=self.settings.accelerator)
            session.add_overlay_listener(self._forward_overlay)
            session.add_error_listener(self._forward_error)
            self._session = session
        session.start()
        return session

    def stop_session(self):
        with self._lock:
            session = self._session
        if session is not None:
            session.stop()

    def dispose(self):
        with self._lock:
            session = self._session
            self._session = None
        if session is not None:
            session.dispose()
        self.frame_cache.clear()

    def _forward_overlay(self, overlay):
        self._last_overlay = overlay
        for callback in list(self._overlay_listeners):
            callback(overlay)

    def _forward_error(self, error):
        for callback in list(self._error_listeners):
            callback(error)
