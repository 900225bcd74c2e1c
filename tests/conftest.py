"""Shared test fixtures: temporary storage/asset trees and a fake qemu-img."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from vmdeck.config import StoreConfig
from vmdeck.models import VMRecord

FIRMWARE_ASSETS = {
    "efi/x86_64/code.fd": b"x86_64-code",
    "efi/aarch64/code.fd": b"aarch64-code",
    "share/qemu/edk2-i386-vars.fd": b"i386-vars",
    "share/qemu/edk2-arm-vars.fd": b"arm-vars",
}


@pytest.fixture
def storage_root(tmp_path) -> Path:
    root = tmp_path / "vms"
    root.mkdir()
    return root


@pytest.fixture
def asset_root(tmp_path) -> Path:
    """Asset tree laid out the way the firmware provisioner expects it."""
    root = tmp_path / "assets"
    for rel, content in FIRMWARE_ASSETS.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
    return root


@pytest.fixture
def store_config(storage_root, asset_root, tmp_path) -> StoreConfig:
    return StoreConfig(
        storage_root=storage_root,
        asset_root=asset_root,
        qemu_img="qemu-img",
        kvm_device=tmp_path / "kvm",
    )


def _fake_qemu_img(cmd, check=True, **kwargs):
    # qemu-img create -f qcow2 <path> <size>
    Path(cmd[4]).write_bytes(b"QFI\xfb")
    return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")


@pytest.fixture
def fake_qemu_img():
    """Patch the subprocess wrapper so disk creation just writes a stub image."""
    with patch("vmdeck.disk.run", side_effect=_fake_qemu_img) as mock_run:
        yield mock_run


@pytest.fixture
def sample_record() -> VMRecord:
    return VMRecord(
        storage_path="/var/lib/vmdeck/5b0c3b7e-0d7a-4e53-9d55-0f2f9a1f7c11",
        description="Debian testing",
        arch="x86_64",
        cores=2,
        memory_mib=2048,
        hdd_path="/var/lib/vmdeck/5b0c3b7e-0d7a-4e53-9d55-0f2f9a1f7c11/hdd.qcow2",
        dvd_path="/home/user/debian.iso",
        flash1_path="/var/lib/vmdeck/5b0c3b7e-0d7a-4e53-9d55-0f2f9a1f7c11/efi.fd",
        flash2_path="/var/lib/vmdeck/5b0c3b7e-0d7a-4e53-9d55-0f2f9a1f7c11/efi_nvram.fd",
    )
