"""Configuration loading and environment variable parsing for vmdeck."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from vmdeck.constants import (
    DEFAULT_ASSET_ROOT,
    DEFAULT_CONFIG_PATH,
    DEFAULT_QEMU_IMG,
    DEFAULT_STORAGE_ROOT,
    KVM_DEVICE,
    TRUTHY,
)
from vmdeck.exceptions import ConfigError
from vmdeck.utils import get_env, get_env_bool, log


@dataclass
class StoreConfig:
    storage_root: Path = DEFAULT_STORAGE_ROOT
    asset_root: Path = DEFAULT_ASSET_ROOT
    qemu_img: str = DEFAULT_QEMU_IMG
    kvm_device: Path = KVM_DEVICE
    # Remove the half-built directory when create() fails.
    rollback_failed_create: bool = False


_KNOWN_KEYS = {"storage_root", "asset_root", "qemu_img", "kvm_device", "rollback_failed_create"}


def _load_file(config_path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(config_path.read_text())
    except yaml.YAMLError as exc:
        raise ConfigError(f"{config_path} contains invalid YAML: {exc}")
    except OSError as exc:
        raise ConfigError(f"Cannot read {config_path}: {exc}")
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{config_path} must contain a YAML mapping, got {type(data).__name__}")
    unknown = sorted(set(data) - _KNOWN_KEYS)
    if unknown:
        raise ConfigError(f"Unknown keys in {config_path}: {', '.join(unknown)}")
    return data


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in TRUTHY
    raise ConfigError(f"{name} must be a boolean (got {value!r})")


def load_config(config_path: Optional[Path] = None) -> StoreConfig:
    """Build a StoreConfig from an optional YAML file plus VMDECK_* overrides."""
    explicit = config_path is not None
    if config_path is None:
        env_path = get_env("VMDECK_CONFIG")
        if env_path:
            config_path = Path(env_path).expanduser()
            explicit = True
        else:
            config_path = DEFAULT_CONFIG_PATH

    data: Dict[str, Any] = {}
    if config_path.exists():
        data = _load_file(config_path)
        log("DEBUG", f"Loaded configuration from {config_path}")
    elif explicit:
        raise ConfigError(f"Configuration file missing: {config_path}")

    cfg = StoreConfig()
    if "storage_root" in data:
        cfg.storage_root = Path(str(data["storage_root"])).expanduser()
    if "asset_root" in data:
        cfg.asset_root = Path(str(data["asset_root"])).expanduser()
    if "qemu_img" in data:
        cfg.qemu_img = str(data["qemu_img"])
    if "kvm_device" in data:
        cfg.kvm_device = Path(str(data["kvm_device"]))
    if "rollback_failed_create" in data:
        cfg.rollback_failed_create = _as_bool("rollback_failed_create", data["rollback_failed_create"])

    storage_env = get_env("VMDECK_STORAGE_ROOT")
    if storage_env:
        cfg.storage_root = Path(storage_env).expanduser()
    asset_env = get_env("VMDECK_ASSET_ROOT")
    if asset_env:
        cfg.asset_root = Path(asset_env).expanduser()
    qemu_img_env = get_env("VMDECK_QEMU_IMG")
    if qemu_img_env:
        cfg.qemu_img = qemu_img_env.strip()
    kvm_env = get_env("VMDECK_KVM_DEVICE")
    if kvm_env:
        cfg.kvm_device = Path(kvm_env)
    cfg.rollback_failed_create = get_env_bool("VMDECK_ROLLBACK", cfg.rollback_failed_create)

    return cfg
