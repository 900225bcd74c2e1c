"""Virtual disk creation through qemu-img."""

from __future__ import annotations

from pathlib import Path

from vmdeck.constants import DEFAULT_QEMU_IMG, DISK_IMAGE_FORMAT, HDD_FILE_NAME
from vmdeck.exceptions import ProvisioningError, ValidationError
from vmdeck.utils import log, run


def create_disk(target_dir: Path, size_gib: int, qemu_img: str = DEFAULT_QEMU_IMG) -> Path:
    """Create ``target_dir/hdd.qcow2`` of ``size_gib`` GiB.

    Blocks until qemu-img exits; there is no timeout and no retry.
    """
    if isinstance(size_gib, bool) or not isinstance(size_gib, int) or size_gib < 1:
        raise ValidationError(f"Disk size must be a positive number of GiB (got {size_gib!r})")

    hdd_path = target_dir / HDD_FILE_NAME
    cmd = [qemu_img, "create", "-f", DISK_IMAGE_FORMAT, str(hdd_path), f"{size_gib}G"]
    log("INFO", f"Creating {DISK_IMAGE_FORMAT} image {hdd_path} ({size_gib}G)")
    try:
        result = run(cmd, check=False, capture_output=True)
    except OSError as exc:
        raise ProvisioningError(
            f"Failed to execute {qemu_img}",
            detail=str(exc),
            path=str(target_dir),
        )
    if result.returncode != 0:
        diagnostic = (result.stderr or result.stdout or "").strip()
        raise ProvisioningError(
            f"qemu-img failed with exit status {result.returncode}",
            detail=diagnostic,
            path=str(target_dir),
        )
    return hdd_path
