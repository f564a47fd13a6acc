"""
Data types shared by the sampling pipeline.

All of them are immutable: a FrameHandle or an OverlayState is never edited
after it has been produced, only replaced.
"""
import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class PlaybackState(Enum):
    STOPPED = "stopped"
    PLAYING = "playing"
    PAUSED = "paused"


@dataclass(frozen=True)
class FrameHandle:
    """One persisted frame artifact.

    captured_at_ns and sequence both strictly increase for handles produced by
    the same FrameCaptureService.
    """
    path: str
    captured_at_ns: int
    sequence: int


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def is_degenerate(self):
        values = (self.x, self.y, self.width, self.height)
        if not all(math.isfinite(v) for v in values):
            return True
        return self.width <= 0 or self.height <= 0

    @classmethod
    def from_xyxy(cls, x1, y1, x2, y2):
        return cls(float(x1), float(y1), float(x2) - float(x1), float(y2) - float(y1))

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.x + self.width, self.y + self.height)

    def scaled(self, sx, sy):
        return BoundingBox(self.x * sx, self.y * sy, self.width * sx, self.height * sy)


@dataclass(frozen=True)
class Detection:
    label: str
    confidence: float
    box: BoundingBox

    @property
    def has_valid_confidence(self):
        return math.isfinite(self.confidence) and 0.0 < self.confidence <= 1.0


@dataclass(frozen=True)
class DetectionBatch:
    frame_handle: FrameHandle
    detections: Tuple[Optional[Detection], ...]
    produced_at: float = field(default_factory=time.time)


@dataclass(frozen=True)
class OverlayElement:
    label: str
    confidence: float
    box: BoundingBox

    @property
    def caption(self):
        return f"{self.label} {self.confidence:.2f}"


@dataclass(frozen=True)
class OverlayState:
    frame_handle: Optional[FrameHandle]
    elements: Tuple[OverlayElement, ...] = ()
    produced_at: float = 0.0

    @classmethod
    def empty(cls):
        return cls(frame_handle=None, elements=(), produced_at=0.0)

    @property
    def is_empty(self):
        return not self.elements

    def __len__(self):
        return len(self.elements)

    def scaled(self, sx, sy):
        """Project the overlay into a display whose size differs from the source frame."""
        elements = tuple(
            OverlayElement(e.label, e.confidence, e.box.scaled(sx, sy)) for e in self.elements
        )
        return OverlayState(self.frame_handle, elements, self.produced_at)
