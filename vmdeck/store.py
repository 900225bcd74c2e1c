"""On-disk VM catalog: scanning, creation, editing and deletion of VM directories."""

from __future__ import annotations

import dataclasses
import os
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Iterator, Optional, Tuple

from vmdeck.codec import encode, read_record, validate_arch, validate_record
from vmdeck.config import StoreConfig
from vmdeck.constants import METADATA_FILE_NAME
from vmdeck.disk import create_disk
from vmdeck.exceptions import StorageError, ValidationError, VMDeckError
from vmdeck.firmware import provision_firmware_code, provision_firmware_vars
from vmdeck.models import (
    CatalogEntry,
    CatalogSnapshot,
    Outcome,
    ScanState,
    VMDraft,
    VMRecord,
)
from vmdeck.utils import ensure_directory, log


def _current_umask() -> int:
    # os.umask can only be read by setting it.
    mask = os.umask(0)
    os.umask(mask)
    return mask


def _validate_draft(draft: VMDraft) -> None:
    if not isinstance(draft.description, str) or not draft.description.strip():
        raise ValidationError("A VM needs a non-empty description")
    validate_arch(draft.arch)
    for name, value in (
        ("cores", draft.cores),
        ("memory", draft.memory_mib),
        ("disk size", draft.hdd_size_gib),
    ):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            raise ValidationError(f"VM {name} must be a positive integer (got {value!r})")


class VMStore:
    """Owns the directory tree below ``storage_root``.

    Public operations never raise for expected failures; they return an
    :class:`Outcome` whose ``failure`` names the error kind. The store keeps
    no lock, so callers must serialize writers on the same VM directory.
    """

    def __init__(self, config: StoreConfig) -> None:
        self.cfg = config
        self.root = Path(config.storage_root)

    # -- reading -------------------------------------------------------

    def list_all(self) -> Iterator[CatalogEntry]:
        """Yield every decodable VM below the storage root.

        Broken, half-written or vanished entries are skipped.
        """
        if not self.root.is_dir():
            log("DEBUG", f"Storage root {self.root} does not exist yet")
            return
        for dirpath, _dirnames, filenames in os.walk(self.root):
            if METADATA_FILE_NAME not in filenames:
                continue
            source = Path(dirpath) / METADATA_FILE_NAME
            try:
                record = read_record(source)
            except (VMDeckError, OSError) as exc:
                log("DEBUG", f"Skipping {source}: {exc}")
                continue
            yield CatalogEntry(record=record, source_path=source)

    def read(self, storage_path: str) -> Outcome[VMRecord]:
        try:
            return Outcome.success(read_record(Path(storage_path) / METADATA_FILE_NAME))
        except VMDeckError as exc:
            return Outcome.error(exc)

    # -- writing -------------------------------------------------------

    def _write_metadata(self, record: VMRecord) -> Path:
        vm_dir = Path(record.storage_path)
        target = vm_dir / METADATA_FILE_NAME
        payload = encode(record)
        tmp_path: Optional[Path] = None
        try:
            with tempfile.NamedTemporaryFile(
                delete=False, dir=vm_dir, prefix=".info.", suffix=".tmp"
            ) as tmp:
                tmp_path = Path(tmp.name)
                tmp.write(payload)
                tmp.flush()
                os.fsync(tmp.fileno())
            tmp_path.chmod(0o666 & ~_current_umask())
            tmp_path.replace(target)
        except OSError as exc:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
            raise StorageError(f"Failed to write {target}: {exc}", path=str(vm_dir))
        return target

    def _allocate_directory(self) -> Path:
        vm_dir = self.root / str(uuid.uuid4())
        try:
            ensure_directory(self.root)
            vm_dir.mkdir()
        except OSError as exc:
            raise StorageError(f"Failed to create VM directory {vm_dir}: {exc}")
        return vm_dir.resolve()

    def _create(self, draft: VMDraft) -> VMRecord:
        _validate_draft(draft)
        vm_dir = self._allocate_directory()
        log("INFO", f"Creating VM '{draft.description}' ({draft.arch}) in {vm_dir}")
        try:
            hdd = create_disk(vm_dir, draft.hdd_size_gib, qemu_img=self.cfg.qemu_img)
            flash1 = provision_firmware_code(vm_dir, draft.arch, self.cfg.asset_root)
            flash2 = provision_firmware_vars(vm_dir, draft.arch, self.cfg.asset_root)
            record = VMRecord(
                storage_path=str(vm_dir),
                description=draft.description,
                arch=draft.arch,
                cores=draft.cores,
                memory_mib=draft.memory_mib,
                hdd_path=str(hdd),
                dvd_path=draft.dvd_path,
                flash1_path=str(flash1),
                flash2_path=str(flash2),
                use_gpu_acceleration=draft.use_gpu_acceleration,
                enable_file_sharing=draft.enable_file_sharing,
                external_display_only=draft.external_display_only,
            )
            self._write_metadata(record)
        except VMDeckError as exc:
            if exc.path is None:
                exc.path = str(vm_dir)
            raise
        log("SUCCESS", f"Created VM {record.vm_id}")
        return record

    def create(self, draft: VMDraft) -> Outcome[VMRecord]:
        """Allocate, provision and persist a new VM.

        Without ``rollback_failed_create`` a failing step leaves the partial
        directory in place; its path is reported in ``failure.path``.
        """
        try:
            return Outcome.success(self._create(draft))
        except VMDeckError as exc:
            log("ERROR", f"Failed to create VM: {exc.message}")
            if exc.path and self.cfg.rollback_failed_create:
                log("INFO", f"Removing partially created {exc.path}")
                shutil.rmtree(exc.path, ignore_errors=True)
            return Outcome.error(exc)

    def update(self, record: VMRecord) -> Outcome[VMRecord]:
        """Rewrite only the metadata file; provisioned assets are untouched."""
        try:
            validate_record(record)
            self._write_metadata(record)
        except VMDeckError as exc:
            log("ERROR", f"Failed to update VM {record.storage_path}: {exc.message}")
            return Outcome.error(exc)
        return Outcome.success(record)

    def reset_firmware(self, record: VMRecord, code: bool = True, nvram: bool = True) -> Outcome[VMRecord]:
        """Re-copy firmware code and/or a pristine NVRAM into an existing VM."""
        vm_dir = Path(record.storage_path)
        updated = record
        try:
            if not vm_dir.is_dir():
                raise StorageError(f"VM directory {vm_dir} does not exist", path=str(vm_dir))
            validate_arch(record.arch)
            if code:
                flash1 = provision_firmware_code(vm_dir, record.arch, self.cfg.asset_root)
                updated = dataclasses.replace(updated, flash1_path=str(flash1))
            if nvram:
                flash2 = provision_firmware_vars(vm_dir, record.arch, self.cfg.asset_root)
                updated = dataclasses.replace(updated, flash2_path=str(flash2))
            self._write_metadata(updated)
        except VMDeckError as exc:
            log("ERROR", f"Failed to reset firmware for {vm_dir}: {exc.message}")
            return Outcome.error(exc)
        return Outcome.success(updated)

    def delete(self, record: VMRecord) -> Outcome[None]:
        """Recursively remove the VM directory. Unrecoverable."""
        vm_dir = Path(record.storage_path)
        log("INFO", f"Deleting: {vm_dir}")
        try:
            if not record.storage_path or self.root.resolve() not in vm_dir.resolve().parents:
                raise ValidationError(
                    f"Refusing to delete {vm_dir}: not inside storage root {self.root}",
                    path=record.storage_path,
                )
            if not vm_dir.exists():
                log("WARN", f"{vm_dir} is already gone")
                return Outcome.success()
            if not (vm_dir / METADATA_FILE_NAME).is_file():
                raise ValidationError(
                    f"Refusing to delete {vm_dir}: no {METADATA_FILE_NAME}, not a VM directory",
                    path=record.storage_path,
                )
            try:
                shutil.rmtree(vm_dir)
            except OSError as exc:
                raise StorageError(f"Failed to delete {vm_dir}: {exc}", path=str(vm_dir))
        except VMDeckError as exc:
            log("ERROR", exc.message)
            return Outcome.error(exc)
        return Outcome.success()


class Catalog:
    """Caller-owned view of the store with an explicit scan state.

    ``refresh`` returns the snapshots taken before and after a rescan so the
    host layer can decide how to propagate the change.
    """

    def __init__(self, store: VMStore) -> None:
        self.store = store
        self.state = ScanState.IDLE
        self.entries: Tuple[CatalogEntry, ...] = ()

    def snapshot(self) -> CatalogSnapshot:
        return CatalogSnapshot(state=self.state, entries=self.entries)

    def refresh(self) -> Tuple[CatalogSnapshot, CatalogSnapshot]:
        before = self.snapshot()
        self.state = ScanState.SCANNING
        try:
            self.entries = tuple(self.store.list_all())
        finally:
            self.state = ScanState.IDLE
        return before, self.snapshot()
