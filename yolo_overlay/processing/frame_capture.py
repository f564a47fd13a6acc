import os
import threading
import time

import cv2
import numpy as np

from yolo_overlay import config
from yolo_overlay.core.errors import CaptureError, EncodeFailed, SourceUnavailable
from yolo_overlay.core.types import FrameHandle
from yolo_overlay.utils.logger_setup import log_debug

SUPPORTED_FORMATS = ('.png', '.jpg')


class FrameCaptureService:
    """Pulls the current frame from a source, encodes it and writes it to disk.

    Every successful capture() writes exactly one new file and returns a
    FrameHandle for it. File names combine a monotonic millisecond timestamp
    with a sequence number so two captures never collide, even within the
    same millisecond.
    """

    def __init__(self, frame_source, capture_dir=None, image_format=None, jpeg_quality=None):
        self.frame_source = frame_source
        self.capture_dir = capture_dir or config.FRAME_CAPTURE_DIR
        self.image_format = (image_format or config.FRAME_IMAGE_FORMAT).lower()
        if self.image_format == '.jpeg':
            self.image_format = '.jpg'
        if self.image_format not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported frame format {self.image_format!r}; expected one of {SUPPORTED_FORMATS}")
        self.jpeg_quality = jpeg_quality if jpeg_quality is not None else config.FRAME_JPEG_QUALITY
        self._lock = threading.Lock()
        self._sequence = 0
        self._last_timestamp_ns = 0

    def _next_identity(self):
        with self._lock:
            now_ns = time.time_ns()
            # Wall clock can step backwards; handles must not.
            timestamp_ns = max(now_ns, self._last_timestamp_ns + 1)
            self._last_timestamp_ns = timestamp_ns
            self._sequence += 1
            return timestamp_ns, self._sequence

    def _encode(self, frame):
        if not isinstance(frame, np.ndarray) or frame.size == 0 or frame.ndim not in (2, 3):
            raise EncodeFailed(f"Frame is not an encodable image (got {type(frame).__name__})")
        params = []
        if self.image_format == '.jpg':
            params = [int(cv2.IMWRITE_JPEG_QUALITY), int(self.jpeg_quality)]
        try:
            ok, buffer = cv2.imencode(self.image_format, frame, params)
        except cv2.error as e:
            raise EncodeFailed(f"OpenCV could not encode frame: {e}") from e
        if not ok:
            raise EncodeFailed(f"OpenCV could not encode frame as {self.image_format}")
        return buffer.tobytes()

    def capture(self):
        frame = self.frame_source.current_frame()
        if frame is None:
            raise SourceUnavailable("Frame source has no frame to capture yet")

        image_bytes = self._encode(frame)
        timestamp_ns, sequence = self._next_identity()
        file_name = f"frame_{timestamp_ns // 1_000_000}_{sequence:06d}{self.image_format}"
        file_path = os.path.join(self.capture_dir, file_name)

        try:
            os.makedirs(self.capture_dir, exist_ok=True)
            # 'xb' so an existing artifact is never overwritten
            with open(file_path, 'xb') as f:
                f.write(image_bytes)
        except OSError as e:
            raise CaptureError(f"Could not write frame to {file_path}: {e}") from e

        log_debug(f"Captured frame {sequence} to {file_path} ({len(image_bytes)} bytes)")
        return FrameHandle(path=file_path, captured_at_ns=timestamp_ns, sequence=sequence)
