"""
Core package: pipeline data types, error taxonomy, sampler and session lifecycle.
"""
from .errors import (
    PipelineError, CaptureError, SourceUnavailable, EncodeFailed,
    DetectError, ModelNotReady, InvalidInput, InferenceFailure,
    ModelLoadError, AssetProvisioningError,
)
from .types import (
    PlaybackState, FrameHandle, BoundingBox, Detection, DetectionBatch,
    OverlayElement, OverlayState,
)

__all__ = [
    'PipelineError', 'CaptureError', 'SourceUnavailable', 'EncodeFailed',
    'DetectError', 'ModelNotReady', 'InvalidInput', 'InferenceFailure',
    'ModelLoadError', 'AssetProvisioningError',
    'PlaybackState', 'FrameHandle', 'BoundingBox', 'Detection', 'DetectionBatch',
    'OverlayElement', 'OverlayState',
]
