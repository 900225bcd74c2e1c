"""CLI entry points for vmdeck."""

from __future__ import annotations

import argparse
import dataclasses
from pathlib import Path
from typing import List, Optional

from vmdeck import __version__
from vmdeck.capabilities import can_virtualize, host_arch, host_limits
from vmdeck.config import StoreConfig, load_config
from vmdeck.constants import VALID_ARCHES
from vmdeck.exceptions import VMDeckError
from vmdeck.models import Failure, VMDraft
from vmdeck.store import Catalog, VMStore
from vmdeck.utils import log


def report_failure(failure: Failure) -> int:
    log("ERROR", f"{failure.message} ({failure.kind.value})")
    if failure.detail:
        for line in failure.detail.splitlines():
            print(f"    {line}", flush=True)
    if failure.path:
        log("INFO", f"Affected directory: {failure.path}")
    return 1


def resolve_vm_dir(cfg: StoreConfig, ref: str) -> str:
    """Accept either a VM directory path or a bare VM id below the storage root."""
    candidate = Path(ref).expanduser()
    if candidate.is_dir():
        return str(candidate.resolve())
    return str(Path(cfg.storage_root) / ref)


def cmd_list(cfg: StoreConfig, args: argparse.Namespace) -> int:
    catalog = Catalog(VMStore(cfg))
    _, after = catalog.refresh()
    if not after.entries:
        log("INFO", f"No VMs found in {cfg.storage_root}")
        return 0
    for entry in sorted(after.entries, key=lambda e: e.record.description.lower()):
        rec = entry.record
        print(f"  {rec.vm_id}  {rec.description}  (arch={rec.arch}, cores={rec.cores}, mem={rec.memory_mib} MiB)")
    return 0


def cmd_show(cfg: StoreConfig, args: argparse.Namespace) -> int:
    outcome = VMStore(cfg).read(resolve_vm_dir(cfg, args.vm))
    if not outcome.ok:
        return report_failure(outcome.failure)
    for field in dataclasses.fields(outcome.value):
        print(f"  {field.name}: {getattr(outcome.value, field.name)}")
    return 0


def _warn_if_over_limits(cfg: StoreConfig, cores: int, memory_mib: int, disk_gib: Optional[int]) -> None:
    limits = host_limits(Path(cfg.storage_root))
    if cores > limits.cores:
        log("WARN", f"Requested {cores} cores; host can spare {limits.cores}")
    if memory_mib > limits.memory_mib:
        log("WARN", f"Requested {memory_mib} MiB; host can spare {limits.memory_mib} MiB")
    if disk_gib is not None and disk_gib > limits.disk_gib:
        log("WARN", f"Requested {disk_gib}G disk; {limits.disk_gib}G free in {cfg.storage_root}")


def cmd_create(cfg: StoreConfig, args: argparse.Namespace) -> int:
    if not can_virtualize(args.arch, cfg.kvm_device):
        log("WARN", f"{args.arch} guests cannot be accelerated on this host")
    _warn_if_over_limits(cfg, args.cores, args.memory, args.disk)
    draft = VMDraft(
        description=args.name,
        arch=args.arch,
        cores=args.cores,
        memory_mib=args.memory,
        hdd_size_gib=args.disk,
        dvd_path=args.dvd or "",
        use_gpu_acceleration=args.gpu,
        enable_file_sharing=args.file_sharing,
        external_display_only=args.external_display,
    )
    outcome = VMStore(cfg).create(draft)
    if not outcome.ok:
        return report_failure(outcome.failure)
    print(outcome.value.storage_path)
    return 0


def cmd_edit(cfg: StoreConfig, args: argparse.Namespace) -> int:
    store = VMStore(cfg)
    current = store.read(resolve_vm_dir(cfg, args.vm))
    if not current.ok:
        return report_failure(current.failure)
    changes = {}
    if args.name is not None:
        changes["description"] = args.name
    if args.cores is not None:
        changes["cores"] = args.cores
    if args.memory is not None:
        changes["memory_mib"] = args.memory
    if args.dvd is not None:
        changes["dvd_path"] = args.dvd
    if args.gpu is not None:
        changes["use_gpu_acceleration"] = args.gpu
    if args.file_sharing is not None:
        changes["enable_file_sharing"] = args.file_sharing
    if args.external_display is not None:
        changes["external_display_only"] = args.external_display
    if not changes:
        log("WARN", "Nothing to change")
        return 0
    record = dataclasses.replace(current.value, **changes)
    _warn_if_over_limits(cfg, record.cores, record.memory_mib, None)
    outcome = store.update(record)
    if not outcome.ok:
        return report_failure(outcome.failure)
    log("SUCCESS", f"Updated {record.vm_id}")
    return 0


def cmd_delete(cfg: StoreConfig, args: argparse.Namespace) -> int:
    store = VMStore(cfg)
    current = store.read(resolve_vm_dir(cfg, args.vm))
    if not current.ok:
        return report_failure(current.failure)
    outcome = store.delete(current.value)
    if not outcome.ok:
        return report_failure(outcome.failure)
    log("SUCCESS", f"Deleted {current.value.vm_id}")
    return 0


def cmd_reset_firmware(cfg: StoreConfig, args: argparse.Namespace) -> int:
    store = VMStore(cfg)
    current = store.read(resolve_vm_dir(cfg, args.vm))
    if not current.ok:
        return report_failure(current.failure)
    outcome = store.reset_firmware(current.value, code=not args.nvram_only, nvram=not args.code_only)
    if not outcome.ok:
        return report_failure(outcome.failure)
    log("SUCCESS", f"Firmware reset for {current.value.vm_id}")
    return 0


def cmd_limits(cfg: StoreConfig, args: argparse.Namespace) -> int:
    limits = host_limits(Path(cfg.storage_root))
    print(f"  arch:   {host_arch()}")
    print(f"  cores:  {limits.cores}")
    print(f"  memory: {limits.memory_mib} MiB")
    print(f"  disk:   {limits.disk_gib} GiB")
    return 0


def cmd_check(cfg: StoreConfig, args: argparse.Namespace) -> int:
    if can_virtualize(args.arch, cfg.kvm_device):
        log("SUCCESS", f"KVM: {args.arch} guests can be accelerated")
        return 0
    return 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vmdeck", description="Manage local KVM virtual machine definitions")
    parser.add_argument("--version", action="version", version=f"vmdeck {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="Path to a YAML configuration file")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("list", help="List VMs in the storage root")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="Show one VM")
    p.add_argument("vm", help="VM directory or id")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("create", help="Create and provision a new VM")
    p.add_argument("--name", required=True, help="Display name")
    native = host_arch()
    p.add_argument("--arch", choices=VALID_ARCHES, default=native if native in VALID_ARCHES else "x86_64")
    p.add_argument("--cores", type=int, default=2)
    p.add_argument("--memory", type=int, default=2048, help="Memory in MiB")
    p.add_argument("--disk", type=int, default=16, help="Disk size in GiB")
    p.add_argument("--dvd", default=None, help="Installer ISO path")
    p.add_argument("--gpu", action="store_true", help="Enable virgl GPU acceleration")
    p.add_argument("--file-sharing", action="store_true")
    p.add_argument("--external-display", action="store_true")
    p.set_defaults(func=cmd_create)

    p = sub.add_parser("edit", help="Edit VM metadata")
    p.add_argument("vm", help="VM directory or id")
    p.add_argument("--name", default=None)
    p.add_argument("--cores", type=int, default=None)
    p.add_argument("--memory", type=int, default=None, help="Memory in MiB")
    p.add_argument("--dvd", default=None)
    p.add_argument("--gpu", action=argparse.BooleanOptionalAction, default=None)
    p.add_argument("--file-sharing", action=argparse.BooleanOptionalAction, default=None)
    p.add_argument("--external-display", action=argparse.BooleanOptionalAction, default=None)
    p.set_defaults(func=cmd_edit)

    p = sub.add_parser("delete", help="Delete a VM and all of its files")
    p.add_argument("vm", help="VM directory or id")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("reset-firmware", help="Re-copy UEFI firmware into a VM")
    p.add_argument("vm", help="VM directory or id")
    group = p.add_mutually_exclusive_group()
    group.add_argument("--code-only", action="store_true")
    group.add_argument("--nvram-only", action="store_true")
    p.set_defaults(func=cmd_reset_firmware)

    p = sub.add_parser("limits", help="Show host resources available to new VMs")
    p.set_defaults(func=cmd_limits)

    p = sub.add_parser("check", help="Check whether an architecture can be accelerated")
    p.add_argument("arch", choices=VALID_ARCHES)
    p.set_defaults(func=cmd_check)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = load_config(args.config)
    except VMDeckError as exc:
        log("ERROR", str(exc))
        return 1
    return args.func(cfg, args)
