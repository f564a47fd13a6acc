"""
Frame sources: the playback side of the pipeline.

The sampler only ever needs three things from a source, described by
FrameSourceAdapter. VideoFileSource is the OpenCV-backed implementation used by
the player; tests use synthetic sources with the same shape.
"""
import threading
import time
from typing import Callable, List, Optional, Protocol

import cv2
import numpy as np

from yolo_overlay import config
from yolo_overlay.core.types import PlaybackState
from yolo_overlay.utils.logger_setup import log_debug, log_warning


class FrameSourceAdapter(Protocol):
    def current_frame(self) -> Optional[np.ndarray]:
        ...

    def playback_state(self) -> PlaybackState:
        ...

    def on_playback_state_changed(self, callback: Callable[[PlaybackState], None]) -> None:
        ...


class VideoFileSource:
    """Plays a video file on a background thread, paced to the file's FPS.

    The most recently decoded frame is kept for capture; `current_frame()`
    returns a copy of it, or None until the first frame has been decoded.
    """

    def __init__(self, video_path, loop=None):
        self.video_path = video_path
        self.loop = config.LOOP_VIDEO if loop is None else loop
        self.fps = 0.0
        self.total_frames = 0
        self.frame_size = (0, 0)
        self._capture = None
        self._capture_lock = threading.Lock()
        self._frame_lock = threading.Lock()
        self._latest_frame = None
        self._state = PlaybackState.STOPPED
        self._state_lock = threading.Lock()
        self._listeners: List[Callable[[PlaybackState], None]] = []
        self._stop_flag = threading.Event()
        self._paused_flag = threading.Event()
        self._thread = None
        # Set when a run ended (stop() or end of file); the next play() starts from frame 0
        self._rewind_on_play = False

    def open(self):
        """Open the file and decode the first frame. Returns False if the file cannot be read."""
        log_debug(f"Opening video source {self.video_path}")
        cap = cv2.VideoCapture(self.video_path)
        if not cap.isOpened():
            log_warning(f"Could not open video at {self.video_path}")
            return False

        fps = cap.get(cv2.CAP_PROP_FPS)
        self.fps = fps if fps and fps > 0 else 30.0
        self.total_frames = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        self.frame_size = (int(cap.get(cv2.CAP_PROP_FRAME_WIDTH)), int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))

        ret, frame = cap.read()
        if not ret:
            log_warning(f"Video at {self.video_path} has no decodable frames")
            cap.release()
            return False

        with self._capture_lock:
            self._capture = cap
        with self._frame_lock:
            self._latest_frame = frame
        log_debug(f"Video properties: {self.fps} FPS, {self.total_frames} frames, {self.frame_size[0]}x{self.frame_size[1]}")
        return True

    @property
    def is_opened(self):
        with self._capture_lock:
            return self._capture is not None

    def current_frame(self):
        with self._frame_lock:
            if self._latest_frame is None:
                return None
            return self._latest_frame.copy()

    def playback_state(self):
        with self._state_lock:
            return self._state

    def on_playback_state_changed(self, callback):
        self._listeners.append(callback)

    def _set_state(self, new_state):
        with self._state_lock:
            if self._state == new_state:
                return
            self._state = new_state
        log_debug(f"Playback state -> {new_state.value}")
        for callback in list(self._listeners):
            try:
                callback(new_state)
            except Exception as e:
                log_warning(f"Playback state listener failed: {e}", exc_info=True)

    def play(self):
        if not self.is_opened:
            log_debug("play() ignored: video source is not opened.")
            return
        self._paused_flag.clear()
        thread = self._thread
        with self._capture_lock:
            ended = self._rewind_on_play
        if ended and thread is not None and thread.is_alive() and thread is not threading.current_thread():
            # The previous run has hit the end and is on its way out
            thread.join(timeout=2.0)
        start_thread = ended or thread is None or not thread.is_alive()
        if start_thread:
            self._stop_flag.clear()
            with self._capture_lock:
                if ended and self._capture is not None:
                    log_debug("Restarting playback from the first frame.")
                    self._capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
                self._rewind_on_play = False
        # Published before the thread starts so an immediate end of file still lands on STOPPED
        self._set_state(PlaybackState.PLAYING)
        if start_thread:
            self._thread = threading.Thread(target=self._playback_loop, name="VideoPlayback", daemon=True)
            self._thread.start()

    def pause(self):
        if self.playback_state() != PlaybackState.PLAYING:
            return
        self._paused_flag.set()
        self._set_state(PlaybackState.PAUSED)

    def toggle(self):
        if self.playback_state() == PlaybackState.PLAYING:
            self.pause()
        else:
            self.play()

    def stop(self):
        self._stop_flag.set()
        self._paused_flag.clear()
        thread = self._thread
        if thread is not None and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2.0)
        self._thread = None
        with self._capture_lock:
            self._rewind_on_play = True
        self._set_state(PlaybackState.STOPPED)

    def release(self):
        self.stop()
        with self._capture_lock:
            if self._capture is not None:
                self._capture.release()
                self._capture = None
        with self._frame_lock:
            self._latest_frame = None
        log_debug(f"Released video source {self.video_path}")

    def _rewind(self):
        # Caller holds _capture_lock
        self._capture.set(cv2.CAP_PROP_POS_FRAMES, 0)
        return self._capture.read()

    def _playback_loop(self):
        log_debug("Video playback thread started.")
        target_frame_duration = 1.0 / self.fps
        next_frame_time = time.perf_counter()
        reached_end = False
        try:
            while not self._stop_flag.is_set():
                if self._paused_flag.is_set():
                    time.sleep(0.05)
                    next_frame_time = time.perf_counter()
                    continue

                with self._capture_lock:
                    if self._capture is None or not self._capture.isOpened():
                        log_debug("Video capture closed during playback. Exiting thread.")
                        break
                    ret, frame = self._capture.read()
                    if not ret and self.loop:
                        log_debug("End of video reached. Looping.")
                        ret, frame = self._rewind()

                if not ret:
                    log_debug("End of video reached or read error.")
                    with self._capture_lock:
                        self._rewind_on_play = True
                    reached_end = True
                    break

                with self._frame_lock:
                    self._latest_frame = frame

                next_frame_time += target_frame_duration
                sleep_duration = next_frame_time - time.perf_counter()
                if sleep_duration > 0.001:
                    time.sleep(sleep_duration)
                elif sleep_duration < -target_frame_duration:
                    # Lagging by more than a frame; re-anchor instead of racing to catch up
                    next_frame_time = time.perf_counter()
        except cv2.error as e:
            log_warning(f"Error in video playback thread: {e}", exc_info=True)
        finally:
            log_debug("Video playback thread ending.")
        if reached_end:
            self._set_state(PlaybackState.STOPPED)
