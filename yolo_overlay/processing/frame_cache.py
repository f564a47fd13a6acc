import os
import threading
from collections import deque

from yolo_overlay import config
from yolo_overlay.utils.logger_setup import log_debug, log_warning


class FrameCache:
    """Bounded ledger of captured frame handles, oldest first.

    When more than `retention` handles are held, the oldest are dropped and
    their files deleted. Used for diagnostics only; the live overlay never
    reads from it.
    """

    def __init__(self, retention=None, delete_artifacts=True):
        retention = config.FRAME_CACHE_RETENTION if retention is None else retention
        if retention < 1:
            raise ValueError(f"Frame cache retention must be at least 1, got {retention}")
        self.retention = retention
        self.delete_artifacts = delete_artifacts
        self.evicted_count = 0
        self._entries = deque()
        self._lock = threading.Lock()

    def record(self, handle):
        with self._lock:
            self._entries.append(handle)
            evicted = []
            while len(self._entries) > self.retention:
                evicted.append(self._entries.popleft())
            self.evicted_count += len(evicted)
            # Deleting under the lock keeps list() from handing out paths that are about to vanish
            for old in evicted:
                self._delete_artifact(old)

    def list(self):
        with self._lock:
            return tuple(self._entries)

    def latest(self):
        with self._lock:
            return self._entries[-1] if self._entries else None

    def __len__(self):
        with self._lock:
            return len(self._entries)

    def discard(self, handle):
        """Delete the artifact of a handle that will never be recorded."""
        self._delete_artifact(handle, force=True)

    def clear(self, delete_artifacts=None):
        delete = self.delete_artifacts if delete_artifacts is None else delete_artifacts
        with self._lock:
            entries = list(self._entries)
            self._entries.clear()
            if delete:
                for handle in entries:
                    self._delete_artifact(handle, force=True)
        log_debug(f"Frame cache cleared ({len(entries)} entries, artifacts deleted: {delete})")

    def _delete_artifact(self, handle, force=False):
        if not (self.delete_artifacts or force):
            return
        try:
            os.unlink(handle.path)
            log_debug(f"Evicted frame artifact {handle.path}")
        except FileNotFoundError:
            log_debug(f"Frame artifact already gone: {handle.path}")
        except OSError as e:
            log_warning(f"Could not delete frame artifact {handle.path}: {e}")
