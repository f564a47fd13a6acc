"""
Error taxonomy for the sampling pipeline.

Capture and detect errors are per-cycle: the sampler logs them and keeps going.
ModelLoadError is the only one that is meant to reach the caller.
"""


class PipelineError(Exception):
    pass


class CaptureError(PipelineError):
    pass


class SourceUnavailable(CaptureError):
    """The frame source cannot produce a frame right now (not opened, no frame decoded yet)."""


class EncodeFailed(CaptureError):
    pass


class DetectError(PipelineError):
    pass


class ModelNotReady(DetectError):
    pass


class InvalidInput(DetectError):
    """The frame handle does not resolve to a decodable image."""


class InferenceFailure(DetectError):
    pass


class ModelLoadError(PipelineError):
    pass


class AssetProvisioningError(PipelineError):
    pass
