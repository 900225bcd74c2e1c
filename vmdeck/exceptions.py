"""Custom exceptions for vmdeck."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    FORMAT = "format"
    SCHEMA = "schema"
    VALIDATION = "validation"
    PROVISIONING = "provisioning"
    IO = "io"
    CAPABILITY = "capability"
    CONFIG = "config"


class VMDeckError(RuntimeError):
    """Base class for every error raised by vmdeck.

    ``detail`` holds diagnostic text captured from an external tool and
    ``path`` the VM directory the failure relates to, when there is one.
    """

    kind = ErrorKind.IO

    def __init__(self, message: str, *, detail: str = "", path: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.path = path


class FormatError(VMDeckError):
    """Metadata payload is not well-formed JSON."""

    kind = ErrorKind.FORMAT


class SchemaError(VMDeckError):
    """A required metadata key is missing."""

    kind = ErrorKind.SCHEMA

    def __init__(self, field: str) -> None:
        super().__init__(f"Missing '{field}'")
        self.field = field


class ValidationError(VMDeckError):
    """A field is present but semantically invalid."""

    kind = ErrorKind.VALIDATION


class ProvisioningError(VMDeckError):
    """Firmware copy or disk image creation failed."""

    kind = ErrorKind.PROVISIONING


class StorageError(VMDeckError):
    """A VM directory or file could not be created, written or removed."""

    kind = ErrorKind.IO


class CapabilityError(VMDeckError):
    """The host cannot run the requested architecture with acceleration."""

    kind = ErrorKind.CAPABILITY


class ConfigError(VMDeckError):
    """Configuration file or environment is invalid."""

    kind = ErrorKind.CONFIG
