"""UEFI firmware provisioning for VM directories."""

from __future__ import annotations

import shutil
from pathlib import Path

from vmdeck.constants import (
    DEFAULT_VARS_ARCH,
    FIRMWARE_CODE_FILE_NAME,
    FIRMWARE_CODE_TEMPLATE,
    FIRMWARE_VARS_FILE_NAME,
    FIRMWARE_VARS_TEMPLATE,
    VARS_ARCH_FAMILIES,
)
from vmdeck.exceptions import ProvisioningError
from vmdeck.utils import log


def vars_arch(arch: str) -> str:
    """Map a VM architecture to its NVRAM template family."""
    return VARS_ARCH_FAMILIES.get(arch, DEFAULT_VARS_ARCH)


def firmware_code_source(asset_root: Path, arch: str) -> Path:
    return asset_root / FIRMWARE_CODE_TEMPLATE.format(arch=arch)


def firmware_vars_source(asset_root: Path, arch: str) -> Path:
    return asset_root / FIRMWARE_VARS_TEMPLATE.format(vars_arch=vars_arch(arch))


def _replace_with_copy(source: Path, target: Path, label: str) -> Path:
    if target.exists():
        log("DEBUG", f"Attempting to remove existing target {target}")
        try:
            target.unlink()
        except OSError as exc:
            log("WARN", f"Failed to remove existing target {target}: {exc}")

    if not source.is_file():
        raise ProvisioningError(
            f"{label} not found at {source}",
            path=str(target.parent),
        )
    try:
        shutil.copyfile(source, target)
    except OSError as exc:
        raise ProvisioningError(
            f"Failed to copy {label} {source} to {target}",
            detail=str(exc),
            path=str(target.parent),
        )
    return target


def provision_firmware_code(target_dir: Path, arch: str, asset_root: Path) -> Path:
    """Copy the UEFI code image for ``arch`` into ``target_dir/efi.fd``."""
    return _replace_with_copy(
        firmware_code_source(asset_root, arch),
        target_dir / FIRMWARE_CODE_FILE_NAME,
        "EFI firmware",
    )


def provision_firmware_vars(target_dir: Path, arch: str, asset_root: Path) -> Path:
    """Copy a fresh NVRAM template into ``target_dir/efi_nvram.fd``."""
    return _replace_with_copy(
        firmware_vars_source(asset_root, arch),
        target_dir / FIRMWARE_VARS_FILE_NAME,
        "EFI NVRAM",
    )
