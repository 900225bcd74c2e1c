"""Conversion between ``info.json`` payloads and :class:`VMRecord`."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Union

from vmdeck.constants import (
    KEY_ARCH,
    KEY_CORES,
    KEY_DESC,
    KEY_DVD,
    KEY_ENABLE_FILE_SHARING,
    KEY_EXTERNAL_WINDOW_ONLY,
    KEY_FLASH1,
    KEY_FLASH2,
    KEY_HDD,
    KEY_MEM,
    KEY_VIRGLRENDERER,
    REQUIRED_KEYS,
    VALID_ARCHES,
)
from vmdeck.exceptions import FormatError, SchemaError, StorageError, ValidationError
from vmdeck.models import VMRecord


def _require_string(key: str, value: Any) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"'{key}' must be a string (got {type(value).__name__})")
    return value


def _check_positive(key: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(f"'{key}' must be a positive integer (got {value!r})")
    return value


def _parse_int(key: str, value: Any) -> int:
    # Integers are persisted as strings; plain JSON numbers are tolerated.
    if isinstance(value, bool):
        raise ValidationError(f"'{key}' must be an integer (got {value!r})")
    if isinstance(value, int):
        return _check_positive(key, value)
    if isinstance(value, str):
        try:
            parsed = int(value.strip())
        except ValueError:
            pass
        else:
            return _check_positive(key, parsed)
    raise ValidationError(f"'{key}' must be an integer (got {value!r})")


def _parse_bool(key: str, data: Dict[str, Any]) -> bool:
    if key not in data:
        return False
    value = data[key]
    if not isinstance(value, bool):
        raise ValidationError(f"'{key}' must be a boolean (got {value!r})")
    return value


def validate_arch(arch: Any) -> str:
    if arch not in VALID_ARCHES:
        supported = ", ".join(VALID_ARCHES)
        raise ValidationError(f"Invalid architecture '{arch}'. Supported: {supported}")
    return arch


def validate_record(record: VMRecord) -> None:
    """Check an in-memory record before it is written to disk."""
    if not isinstance(record.description, str) or not record.description.strip():
        raise ValidationError("'description' must be a non-empty string")
    validate_arch(record.arch)
    _check_positive(KEY_CORES, record.cores)
    _check_positive(KEY_MEM, record.memory_mib)
    for key, value in (
        (KEY_HDD, record.hdd_path),
        (KEY_DVD, record.dvd_path),
        (KEY_FLASH1, record.flash1_path),
        (KEY_FLASH2, record.flash2_path),
    ):
        _require_string(key, value)


def decode(payload: Union[bytes, str], storage_path: str = "") -> VMRecord:
    """Parse an ``info.json`` payload into a :class:`VMRecord`.

    Raises :class:`FormatError` for malformed JSON, :class:`SchemaError` for
    the first missing required key and :class:`ValidationError` for present
    but invalid values. Optional booleans default to ``False``.
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FormatError(f"Metadata is not valid UTF-8: {exc}")
    try:
        data = json.loads(payload)
    except (ValueError, RecursionError) as exc:
        raise FormatError(f"Metadata is not valid JSON: {exc}")
    if not isinstance(data, dict):
        raise FormatError("Invalid VM information: expected a JSON object")

    for key in REQUIRED_KEYS:
        if key not in data:
            raise SchemaError(key)
        if key == KEY_ARCH:
            validate_arch(data[KEY_ARCH])

    description = _require_string(KEY_DESC, data[KEY_DESC])
    if not description.strip():
        raise ValidationError("'description' must not be empty")

    return VMRecord(
        storage_path=storage_path,
        description=description,
        arch=data[KEY_ARCH],
        cores=_parse_int(KEY_CORES, data[KEY_CORES]),
        memory_mib=_parse_int(KEY_MEM, data[KEY_MEM]),
        hdd_path=_require_string(KEY_HDD, data[KEY_HDD]),
        dvd_path=_require_string(KEY_DVD, data[KEY_DVD]),
        flash1_path=_require_string(KEY_FLASH1, data[KEY_FLASH1]),
        flash2_path=_require_string(KEY_FLASH2, data[KEY_FLASH2]),
        use_gpu_acceleration=_parse_bool(KEY_VIRGLRENDERER, data),
        enable_file_sharing=_parse_bool(KEY_ENABLE_FILE_SHARING, data),
        external_display_only=_parse_bool(KEY_EXTERNAL_WINDOW_ONLY, data),
    )


def encode(record: VMRecord) -> bytes:
    """Serialize a record; always emits every key, integers as strings."""
    data = {
        KEY_DESC: record.description,
        KEY_ARCH: record.arch,
        KEY_CORES: str(record.cores),
        KEY_MEM: str(record.memory_mib),
        KEY_DVD: record.dvd_path,
        KEY_HDD: record.hdd_path,
        KEY_FLASH1: record.flash1_path,
        KEY_FLASH2: record.flash2_path,
        KEY_VIRGLRENDERER: bool(record.use_gpu_acceleration),
        KEY_ENABLE_FILE_SHARING: bool(record.enable_file_sharing),
        KEY_EXTERNAL_WINDOW_ONLY: bool(record.external_display_only),
    }
    return (json.dumps(data, indent=4) + "\n").encode("utf-8")


def read_record(metadata_path: Path) -> VMRecord:
    """Load ``info.json``; ``storage_path`` is its resolved parent directory."""
    try:
        payload = metadata_path.read_bytes()
    except OSError as exc:
        raise StorageError(f"Cannot read {metadata_path}: {exc}", path=str(metadata_path.parent))
    return decode(payload, storage_path=str(metadata_path.resolve().parent))
