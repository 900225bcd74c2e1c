"""Global constants and path configuration for vmdeck."""

from __future__ import annotations

import os
from pathlib import Path

# Persisted metadata keys
KEY_DESC = "description"
KEY_ARCH = "arch"
KEY_CORES = "cores"
KEY_MEM = "mem"
KEY_DVD = "dvd"
KEY_HDD = "hdd"
KEY_FLASH1 = "flash1"
KEY_FLASH2 = "flash2"
KEY_VIRGLRENDERER = "useVirglrenderer"
KEY_ENABLE_FILE_SHARING = "enableFileSharing"
KEY_EXTERNAL_WINDOW_ONLY = "externalWindowOnly"

# Checked in this order; the first missing one is reported.
REQUIRED_KEYS = (
    KEY_DESC,
    KEY_ARCH,
    KEY_CORES,
    KEY_MEM,
    KEY_HDD,
    KEY_DVD,
    KEY_FLASH1,
    KEY_FLASH2,
)
OPTIONAL_BOOL_KEYS = (
    KEY_VIRGLRENDERER,
    KEY_ENABLE_FILE_SHARING,
    KEY_EXTERNAL_WINDOW_ONLY,
)

VALID_ARCHES = ("x86_64", "aarch64")

ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
    "arm64": "aarch64",
    "armv8": "aarch64",
}

# Per-VM directory layout
METADATA_FILE_NAME = "info.json"
HDD_FILE_NAME = "hdd.qcow2"
FIRMWARE_CODE_FILE_NAME = "efi.fd"
FIRMWARE_VARS_FILE_NAME = "efi_nvram.fd"

DISK_IMAGE_FORMAT = "qcow2"

# Firmware assets, relative to the asset root
FIRMWARE_CODE_TEMPLATE = "efi/{arch}/code.fd"
FIRMWARE_VARS_TEMPLATE = "share/qemu/edk2-{vars_arch}-vars.fd"
VARS_ARCH_FAMILIES = {
    "aarch64": "arm",
}
DEFAULT_VARS_ARCH = "i386"

# Host limits
MEMORY_RESERVE_MIB = 2048
FALLBACK_MAX_MEMORY_MIB = 4096
FALLBACK_MAX_DISK_GIB = 32
CORES_RESERVED_FOR_HOST = 1

KVM_DEVICE = Path("/dev/kvm")

TRUTHY = {"1", "true", "yes", "on"}

_XDG_DATA_HOME = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
_XDG_CONFIG_HOME = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
DEFAULT_STORAGE_ROOT = Path(_XDG_DATA_HOME) / "vmdeck"
DEFAULT_CONFIG_PATH = Path(_XDG_CONFIG_HOME) / "vmdeck" / "config.yaml"
DEFAULT_ASSET_ROOT = Path("/usr/share/vmdeck")
DEFAULT_QEMU_IMG = "qemu-img"

_LOG_VERBOSE = os.environ.get("VMDECK_LOG_VERBOSE", "").lower() in TRUTHY
