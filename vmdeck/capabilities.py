"""Host capability probes: hardware virtualization support and resource limits."""

from __future__ import annotations

import os
import platform
from pathlib import Path

from vmdeck.constants import (
    ARCH_ALIASES,
    CORES_RESERVED_FOR_HOST,
    FALLBACK_MAX_DISK_GIB,
    FALLBACK_MAX_MEMORY_MIB,
    KVM_DEVICE,
    MEMORY_RESERVE_MIB,
)
from vmdeck.exceptions import CapabilityError
from vmdeck.models import HostLimits
from vmdeck.utils import log, nearest_existing_parent

MIB = 1024 * 1024
GIB = 1024 * MIB


def normalize_arch(name: str) -> str:
    lowered = name.strip().lower()
    return ARCH_ALIASES.get(lowered, lowered)


def host_arch() -> str:
    """Return the host CPU architecture using the VM record spelling."""
    return normalize_arch(platform.machine())


def check_virtualization(target_arch: str, device: Path = KVM_DEVICE) -> None:
    """Raise CapabilityError unless ``target_arch`` can run accelerated here."""
    if not device.exists():
        raise CapabilityError(f"KVM is not enabled on this kernel or device ({device} missing)")
    if not os.access(device, os.R_OK):
        raise CapabilityError(f"{device} is not readable")
    if not os.access(device, os.W_OK):
        raise CapabilityError(f"{device} is not writable")
    machine = host_arch()
    if machine != target_arch:
        raise CapabilityError(f"Host architecture {machine} cannot accelerate {target_arch}")


def can_virtualize(target_arch: str, device: Path = KVM_DEVICE) -> bool:
    try:
        check_virtualization(target_arch, device)
    except CapabilityError as exc:
        log("WARN", exc.message)
        return False
    return True


def max_memory_mib() -> int:
    """Total host RAM minus a fixed reserve for the host itself."""
    try:
        total = os.sysconf("SC_PAGE_SIZE") * os.sysconf("SC_PHYS_PAGES")
    except (ValueError, OSError, AttributeError):
        return FALLBACK_MAX_MEMORY_MIB
    if total <= 0:
        return FALLBACK_MAX_MEMORY_MIB
    return max(total // MIB - MEMORY_RESERVE_MIB, 0)


def max_cores() -> int:
    try:
        configured = os.sysconf("SC_NPROCESSORS_CONF")
    except (ValueError, OSError, AttributeError):
        configured = os.cpu_count() or 1
    # A single-CPU host still offers one core; a zero limit would forbid any VM.
    return max(configured - CORES_RESERVED_FOR_HOST, 1)


def max_disk_gib(path: Path) -> int:
    """Free space in GiB on the filesystem that backs ``path``."""
    try:
        stat = os.statvfs(nearest_existing_parent(path))
    except (OSError, AttributeError):
        return FALLBACK_MAX_DISK_GIB
    return (stat.f_bavail * stat.f_frsize) // GIB


def host_limits(storage_root: Path) -> HostLimits:
    return HostLimits(
        memory_mib=max_memory_mib(),
        cores=max_cores(),
        disk_gib=max_disk_gib(storage_root),
    )
