"""
Copy-on-first-use materialization of packaged assets.

Packaged assets (model weights) sit next to the code and may be read-only.
provision_asset() copies one into the writable root the first time it is
asked for and returns the writable path; later calls find the copy in place
and return immediately.
"""
import os
import shutil
import tempfile
import threading

from yolo_overlay import config
from yolo_overlay.core.errors import AssetProvisioningError
from yolo_overlay.utils.logger_setup import log_debug

_provision_lock = threading.Lock()


def resolve_destination(asset_path, writable_root=None):
    writable_root = writable_root or config.WRITABLE_ROOT
    if os.path.isabs(asset_path):
        relative = os.path.basename(asset_path)
    else:
        relative = os.path.normpath(asset_path)
        if relative.startswith('..'):
            raise AssetProvisioningError(f"Asset path escapes the asset root: {asset_path}")
    return os.path.join(writable_root, relative)


def provision_asset(asset_path, writable_root=None, asset_root=None):
    """Return a writable copy of `asset_path`, copying it only if the destination does not exist yet.

    Relative asset paths are resolved against `asset_root` (config.ASSET_ROOT by default).
    """
    asset_root = asset_root or config.ASSET_ROOT
    source = asset_path if os.path.isabs(asset_path) else os.path.join(asset_root, asset_path)
    destination = resolve_destination(asset_path, writable_root)

    with _provision_lock:
        if os.path.exists(destination):
            log_debug(f"Asset already provisioned at {destination}")
            return destination

        if not os.path.isfile(source):
            raise AssetProvisioningError(f"Packaged asset not found: {source}")

        dest_dir = os.path.dirname(destination)
        tmp_path = None
        try:
            os.makedirs(dest_dir, exist_ok=True)
            # Copy to a temp file in the same directory, then rename, so a crash never leaves a partial asset behind
            fd, tmp_path = tempfile.mkstemp(dir=dest_dir, prefix='.provision-')
            os.close(fd)
            shutil.copyfile(source, tmp_path)
            os.replace(tmp_path, destination)
            tmp_path = None
        except OSError as e:
            raise AssetProvisioningError(f"Could not provision {source} to {destination}: {e}") from e
        finally:
            if tmp_path and os.path.exists(tmp_path):
                os.unlink(tmp_path)

    log_debug(f"Provisioned asset {source} -> {destination}")
    return destination
