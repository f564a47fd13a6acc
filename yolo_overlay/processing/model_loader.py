import os

import torch
from ultralytics import YOLO

from yolo_overlay import config
from yolo_overlay.core.errors import AssetProvisioningError, ModelLoadError
from yolo_overlay.processing.asset_provisioner import provision_asset
from yolo_overlay.utils.logger_setup import log_debug

ACCELERATORS = ('cpu', 'gpu')


def select_device(accelerator):
    """Map an accelerator preference onto a torch device string."""
    if accelerator not in ACCELERATORS:
        raise ValueError(f"Unknown accelerator {accelerator!r}; expected one of {ACCELERATORS}")
    if accelerator == 'gpu':
        if torch.cuda.is_available():
            log_debug("CUDA is available. Using GPU.")
            return 'cuda'
        mps_backend = getattr(torch.backends, 'mps', None)
        if mps_backend is not None and mps_backend.is_available():
            log_debug("MPS is available. Using Apple GPU.")
            return 'mps'
        log_debug("GPU requested but not available. Using CPU.")
    return 'cpu'


def resolve_model_path(model_asset_path=None, writable_root=None):
    """Materialize the packaged model weights into the writable root and return that path.

    An absolute path that already exists is used in place.
    """
    model_asset_path = model_asset_path or config.MODEL_ASSET_PATH
    if os.path.isabs(model_asset_path) and os.path.isfile(model_asset_path):
        return model_asset_path
    try:
        return provision_asset(model_asset_path, writable_root=writable_root)
    except AssetProvisioningError as e:
        raise ModelLoadError(f"Model weights unavailable: {e}") from e


def load_yolo_model(model_path, accelerator):
    """Load YOLO weights onto the preferred device; returns (model, device).

    Falls back to CPU when moving onto the GPU fails.
    """
    log_debug(f"Attempting to load model: {model_path} (accelerator={accelerator})")
    device = select_device(accelerator)
    try:
        model = YOLO(model_path)
    except Exception as e:
        raise ModelLoadError(f"Error loading model {model_path}: {e}") from e

    try:
        model.to(device)
    except Exception as e_device:
        log_debug(f"Error moving model to {device}: {e_device}. Falling back to CPU if applicable.", exc_info=True)
        if device == 'cpu':
            raise ModelLoadError(f"Could not place model {model_path} on CPU: {e_device}") from e_device
        device = 'cpu'
        try:
            model.to(device)
        except Exception as e_cpu_fallback:
            raise ModelLoadError(f"Error moving model to CPU during fallback: {e_cpu_fallback}") from e_cpu_fallback

    class_names = getattr(model, 'names', {}) or {}
    log_debug(f"Model '{model_path}' loaded. Classes: {len(class_names)}. Configured to run on: {device}.")
    return model, device
