"""Tests for vmdeck.disk module."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from vmdeck.disk import create_disk
from vmdeck.exceptions import ProvisioningError, ValidationError


class TestCreateDisk:
    def test_invokes_qemu_img_with_qcow2_and_size(self, tmp_path):
        done = subprocess.CompletedProcess([], 0, stdout="", stderr="")
        with patch("vmdeck.disk.run", return_value=done) as mock_run:
            path = create_disk(tmp_path, 8, qemu_img="/opt/bin/qemu-img")
        assert path == tmp_path / "hdd.qcow2"
        cmd = mock_run.call_args[0][0]
        assert cmd == ["/opt/bin/qemu-img", "create", "-f", "qcow2", str(tmp_path / "hdd.qcow2"), "8G"]
        assert mock_run.call_args.kwargs["check"] is False
        assert mock_run.call_args.kwargs["capture_output"] is True

    def test_non_zero_exit_carries_stderr(self, tmp_path):
        failed = subprocess.CompletedProcess([], 1, stdout="", stderr="qemu-img: Could not create: No space left\n")
        with patch("vmdeck.disk.run", return_value=failed):
            with pytest.raises(ProvisioningError, match="exit status 1") as exc:
                create_disk(tmp_path, 8)
        assert exc.value.detail == "qemu-img: Could not create: No space left"
        assert exc.value.path == str(tmp_path)

    def test_missing_binary(self, tmp_path):
        with patch("vmdeck.disk.run", side_effect=FileNotFoundError("qemu-img")):
            with pytest.raises(ProvisioningError, match="Failed to execute"):
                create_disk(tmp_path, 8)

    @pytest.mark.parametrize("size", [0, -4, True, "8"])
    def test_rejects_bad_size(self, tmp_path, size):
        with patch("vmdeck.disk.run") as mock_run:
            with pytest.raises(ValidationError):
                create_disk(tmp_path, size)
        mock_run.assert_not_called()
