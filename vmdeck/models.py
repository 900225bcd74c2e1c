"""Data models for vmdeck."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Generic, NamedTuple, Optional, Tuple, TypeVar

from vmdeck.exceptions import ErrorKind, SchemaError, VMDeckError

T = TypeVar("T")


@dataclass
class VMRecord:
    """One persisted VM definition.

    ``storage_path`` is derived from where ``info.json`` lives on disk and is
    never read from the file itself.
    """

    storage_path: str
    description: str
    arch: str
    cores: int
    memory_mib: int
    hdd_path: str
    dvd_path: str
    flash1_path: str
    flash2_path: str
    use_gpu_acceleration: bool = False
    enable_file_sharing: bool = False
    external_display_only: bool = False

    @property
    def vm_id(self) -> str:
        return Path(self.storage_path).name


@dataclass
class VMDraft:
    description: str
    arch: str
    cores: int
    memory_mib: int
    hdd_size_gib: int
    dvd_path: str = ""
    use_gpu_acceleration: bool = False
    enable_file_sharing: bool = False
    external_display_only: bool = False


class CatalogEntry(NamedTuple):
    record: VMRecord
    source_path: Path


class ScanState(str, Enum):
    IDLE = "idle"
    SCANNING = "scanning"


@dataclass(frozen=True)
class CatalogSnapshot:
    state: ScanState
    entries: Tuple[CatalogEntry, ...] = ()


@dataclass(frozen=True)
class HostLimits:
    memory_mib: int
    cores: int
    disk_gib: int


@dataclass(frozen=True)
class Failure:
    kind: ErrorKind
    message: str
    field: Optional[str] = None
    detail: str = ""
    path: Optional[str] = None

    @classmethod
    def from_error(cls, exc: VMDeckError) -> "Failure":
        return cls(
            kind=exc.kind,
            message=exc.message,
            field=exc.field if isinstance(exc, SchemaError) else None,
            detail=exc.detail,
            path=exc.path,
        )


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Success/failure result returned by every public store operation."""

    value: Optional[T] = None
    failure: Optional[Failure] = field(default=None)

    @property
    def ok(self) -> bool:
        return self.failure is None

    @classmethod
    def success(cls, value: Optional[T] = None) -> "Outcome[T]":
        return cls(value=value)

    @classmethod
    def error(cls, exc: VMDeckError) -> "Outcome[T]":
        return cls(failure=Failure.from_error(exc))
