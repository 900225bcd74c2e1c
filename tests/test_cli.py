"""Tests for vmdeck.cli module."""

from __future__ import annotations

import subprocess
from pathlib import Path
from unittest.mock import patch

import pytest

from vmdeck import cli
from vmdeck.exceptions import ConfigError
from vmdeck.models import HostLimits
from vmdeck.store import VMStore


@pytest.fixture
def cli_env(store_config):
    """Run the CLI against the temporary store with generous host limits."""
    with (
        patch("vmdeck.cli.load_config", return_value=store_config),
        patch("vmdeck.cli.can_virtualize", return_value=True),
        patch("vmdeck.cli.host_limits", return_value=HostLimits(memory_mib=65536, cores=32, disk_gib=500)),
    ):
        yield store_config


def _create(capsys, *extra) -> str:
    assert cli.main(["create", "--name", "Debian", "--arch", "x86_64", "--disk", "8", *extra]) == 0
    return capsys.readouterr().out.strip().splitlines()[-1]


class TestCreateAndList:
    def test_create_prints_directory(self, cli_env, capsys, fake_qemu_img):
        vm_dir = Path(_create(capsys))
        assert (vm_dir / "info.json").is_file()
        assert fake_qemu_img.call_args[0][0][-1] == "8G"

    def test_list_shows_created_vm(self, cli_env, capsys, fake_qemu_img):
        _create(capsys, "--cores", "3", "--memory", "3072")
        assert cli.main(["list"]) == 0
        out = capsys.readouterr().out
        assert "Debian" in out
        assert "cores=3" in out
        assert "mem=3072 MiB" in out

    def test_list_empty(self, cli_env):
        with patch("vmdeck.cli.log") as mock_log:
            assert cli.main(["list"]) == 0
        level, message = mock_log.call_args[0]
        assert level == "INFO"
        assert "No VMs found" in message

    def test_create_failure_reports_diagnostics(self, cli_env, capsys):
        failed = subprocess.CompletedProcess([], 1, stdout="", stderr="qemu-img: disk full")
        with patch("vmdeck.disk.run", return_value=failed):
            assert cli.main(["create", "--name", "Debian", "--arch", "x86_64"]) == 1
        out = capsys.readouterr().out
        assert "provisioning" in out
        assert "qemu-img: disk full" in out

    def test_create_warns_when_over_limits(self, cli_env, fake_qemu_img):
        with (
            patch("vmdeck.cli.host_limits", return_value=HostLimits(memory_mib=1024, cores=1, disk_gib=4)),
            patch("vmdeck.cli.log") as mock_log,
        ):
            cli.main(["create", "--name", "Big", "--arch", "x86_64", "--cores", "4", "--disk", "8"])
        warnings = [c.args[1] for c in mock_log.call_args_list if c.args[0] == "WARN"]
        assert any("4 cores" in w for w in warnings)
        assert any("2048 MiB" in w for w in warnings)
        assert any("8G disk" in w for w in warnings)


class TestEditDelete:
    def test_edit_updates_metadata(self, cli_env, capsys, fake_qemu_img):
        vm_dir = _create(capsys)
        assert cli.main(["edit", vm_dir, "--cores", "6", "--gpu", "--name", "Renamed"]) == 0
        record = VMStore(cli_env).read(vm_dir).value
        assert record.cores == 6
        assert record.description == "Renamed"
        assert record.use_gpu_acceleration is True

    def test_edit_accepts_bare_id(self, cli_env, capsys, fake_qemu_img):
        vm_dir = Path(_create(capsys, "--file-sharing"))
        assert cli.main(["edit", vm_dir.name, "--no-file-sharing"]) == 0
        assert VMStore(cli_env).read(str(vm_dir)).value.enable_file_sharing is False

    def test_edit_missing_vm(self, cli_env):
        assert cli.main(["edit", "does-not-exist", "--cores", "2"]) == 1

    def test_show_prints_fields(self, cli_env, capsys, fake_qemu_img):
        vm_dir = _create(capsys)
        assert cli.main(["show", vm_dir]) == 0
        out = capsys.readouterr().out
        assert "description: Debian" in out
        assert "memory_mib: 2048" in out

    def test_delete(self, cli_env, capsys, fake_qemu_img):
        vm_dir = _create(capsys)
        assert cli.main(["delete", vm_dir]) == 0
        assert not Path(vm_dir).exists()

    def test_reset_firmware_nvram_only(self, cli_env, capsys, fake_qemu_img):
        vm_dir = Path(_create(capsys))
        (vm_dir / "efi_nvram.fd").write_bytes(b"dirty")
        (vm_dir / "efi.fd").write_bytes(b"patched")
        assert cli.main(["reset-firmware", str(vm_dir), "--nvram-only"]) == 0
        assert (vm_dir / "efi_nvram.fd").read_bytes() == b"i386-vars"
        assert (vm_dir / "efi.fd").read_bytes() == b"patched"


class TestHostCommands:
    def test_limits(self, cli_env, capsys):
        assert cli.main(["limits"]) == 0
        out = capsys.readouterr().out
        assert "cores:  32" in out
        assert "memory: 65536 MiB" in out
        assert "disk:   500 GiB" in out

    def test_check_capable(self, cli_env):
        assert cli.main(["check", "x86_64"]) == 0

    def test_check_not_capable(self, cli_env):
        with patch("vmdeck.cli.can_virtualize", return_value=False):
            assert cli.main(["check", "aarch64"]) == 1

    def test_config_error_exits_non_zero(self):
        with (
            patch("vmdeck.cli.load_config", side_effect=ConfigError("bad config")),
            patch("vmdeck.cli.log") as mock_log,
        ):
            assert cli.main(["list"]) == 1
        mock_log.assert_called_once_with("ERROR", "bad config")
