import hashlib
import os

import pytest

from yolo_overlay.core.errors import AssetProvisioningError
from yolo_overlay.processing import asset_provisioner
from yolo_overlay.processing.asset_provisioner import provision_asset


@pytest.fixture
def asset_root(tmp_path):
    root = tmp_path / "assets"
    (root / "models").mkdir(parents=True)
    (root / "models" / "best.pt").write_bytes(b"weights-v1")
    return str(root)


def _sha256(path):
    with open(path, "rb") as f:
        return hashlib.sha256(f.read()).hexdigest()


def test_second_call_is_a_no_op(tmp_path, asset_root, monkeypatch):
    writable = str(tmp_path / "support")
    copies = []
    real_copyfile = asset_provisioner.shutil.copyfile

    def counting_copyfile(src, dst, **kwargs):
        copies.append((src, dst))
        return real_copyfile(src, dst, **kwargs)

    monkeypatch.setattr(asset_provisioner.shutil, "copyfile", counting_copyfile)

    first = provision_asset(os.path.join("models", "best.pt"), writable_root=writable, asset_root=asset_root)
    mtime = os.stat(first).st_mtime_ns
    digest = _sha256(first)

    second = provision_asset(os.path.join("models", "best.pt"), writable_root=writable, asset_root=asset_root)

    assert first == second == os.path.join(writable, "models", "best.pt")
    assert len(copies) == 1
    assert os.stat(second).st_mtime_ns == mtime
    assert _sha256(second) == digest


def test_existing_destination_is_not_overwritten(tmp_path, asset_root):
    writable = tmp_path / "support"
    (writable / "models").mkdir(parents=True)
    (writable / "models" / "best.pt").write_bytes(b"already-here")

    path = provision_asset(os.path.join("models", "best.pt"), writable_root=str(writable), asset_root=asset_root)

    with open(path, "rb") as f:
        assert f.read() == b"already-here"


def test_missing_asset_raises(tmp_path, asset_root):
    with pytest.raises(AssetProvisioningError):
        provision_asset("models/missing.pt", writable_root=str(tmp_path / "support"), asset_root=asset_root)


def test_rejects_paths_escaping_asset_root(tmp_path, asset_root):
    with pytest.raises(AssetProvisioningError):
        provision_asset("../secrets.txt", writable_root=str(tmp_path / "support"), asset_root=asset_root)


def test_no_temp_files_left_behind(tmp_path, asset_root):
    writable = tmp_path / "support"
    provision_asset("models/best.pt", writable_root=str(writable), asset_root=asset_root)

    assert os.listdir(writable / "models") == ["best.pt"]
