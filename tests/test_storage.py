"""Tests for partition layout, formatting and mounting."""

import pytest

from archtui_installer.errors import FormatError, MountError, PlanningError, UserAborted
from archtui_installer.gate import Category
from archtui_installer.lib.storage import (
    apply_layout,
    format_partitions,
    layout_argv,
    mkfs_argv,
    mount_targets,
    plan_layout,
    settle_partitions,
)
from archtui_installer.model import Filesystem, FirmwareMode

from conftest import MKFS_PROGRAMS, ScriptedPrompter, approved_gate


def _auth(category, paths):
    gate = approved_gate(ScriptedPrompter(confirms=[True]), category)
    return gate.authorize(category, paths, "test")


class TestPlanLayout:
    def test_efi_layout_on_sata_disk(self):
        layout = plan_layout("/dev/sda", FirmwareMode.EFI)
        assert layout.label == "gpt"
        assert layout.path_for("esp") == "/dev/sda1"
        assert layout.path_for("root") == "/dev/sda2"
        esp, root = layout.partitions
        assert (esp.start, esp.end) == ("1MiB", "551MiB")
        assert (root.start, root.end) == ("551MiB", "100%")

    def test_efi_layout_on_nvme(self):
        layout = plan_layout("/dev/nvme0n1", FirmwareMode.EFI)
        assert layout.path_for("esp") == "/dev/nvme0n1p1"
        assert layout.path_for("root") == "/dev/nvme0n1p2"

    def test_bios_layout_is_single_partition(self):
        layout = plan_layout("/dev/vda", FirmwareMode.BIOS)
        assert layout.label == "msdos"
        assert layout.path_for("root") == "/dev/vda1"
        assert layout.path_for("esp") is None

    def test_custom_esp_size(self):
        layout = plan_layout("/dev/sda", FirmwareMode.EFI, esp_size_mib=1024)
        assert layout.partitions[0].end == "1025MiB"

    def test_layout_commands(self):
        cmds = layout_argv(plan_layout("/dev/sda", FirmwareMode.EFI))
        assert cmds[0] == ["parted", "-s", "/dev/sda", "mklabel", "gpt"]
        assert ["parted", "-s", "/dev/sda", "set", "1", "esp", "on"] in cmds
        assert sum(1 for c in cmds if "mkpart" in c) == 2


class TestApplyLayout:
    def test_requires_partition_authorization(self, fake_run):
        layout = plan_layout("/dev/sda", FirmwareMode.BIOS)
        auth = _auth(Category.FORMAT, ["/dev/sda"])
        with pytest.raises(UserAborted):
            apply_layout(layout, auth)
        assert fake_run.calls == []

    def test_authorization_must_cover_the_disk(self, fake_run):
        layout = plan_layout("/dev/sda", FirmwareMode.BIOS)
        auth = _auth(Category.PARTITION, ["/dev/sdb"])
        with pytest.raises(UserAborted):
            apply_layout(layout, auth)
        assert not fake_run.ran("parted")

    def test_parted_failure_stops_immediately(self, fake_run):
        layout = plan_layout("/dev/sda", FirmwareMode.EFI)
        fake_run.fail_when("mklabel")
        with pytest.raises(PlanningError):
            apply_layout(layout, _auth(Category.PARTITION, ["/dev/sda"]))
        assert len(fake_run.commands("parted")) == 1

    def test_settle_waits_for_each_partition(self, fake_run, devices_present):
        layout = plan_layout("/dev/sda", FirmwareMode.EFI)
        settle_partitions(layout, attempts=2, delay=0)
        assert fake_run.ran("partprobe")
        assert fake_run.ran("udevadm")


class TestFormat:
    @pytest.mark.parametrize(
        "fs,argv",
        [
            (Filesystem.EXT4, ["mkfs.ext4", "-F", "/dev/sda2"]),
            (Filesystem.BTRFS, ["mkfs.btrfs", "-f", "/dev/sda2"]),
            (Filesystem.XFS, ["mkfs.xfs", "-f", "/dev/sda2"]),
        ],
    )
    def test_mkfs_argv(self, fs, argv):
        assert mkfs_argv("/dev/sda2", fs) == argv

    def test_formats_root_and_new_esp(self, fake_run):
        auth = _auth(Category.FORMAT, ["/dev/sda2", "/dev/sda1"])
        done = format_partitions(root_part="/dev/sda2", root_fs=Filesystem.EXT4, esp_part="/dev/sda1", auth=auth)
        assert done == ["/dev/sda2", "/dev/sda1"]
        assert fake_run.commands("mkfs.fat") == [["mkfs.fat", "-F32", "/dev/sda1"]]

    def test_esp_must_be_authorized(self, fake_run):
        auth = _auth(Category.FORMAT, ["/dev/sda2"])
        with pytest.raises(UserAborted):
            format_partitions(root_part="/dev/sda2", root_fs=Filesystem.EXT4, esp_part="/dev/sda1", auth=auth)
        assert not any(fake_run.ran(p) for p in MKFS_PROGRAMS)

    def test_mkfs_failure(self, fake_run):
        fake_run.fail_when("mkfs.xfs")
        auth = _auth(Category.FORMAT, ["/dev/sda2"])
        with pytest.raises(FormatError):
            format_partitions(root_part="/dev/sda2", root_fs=Filesystem.XFS, esp_part=None, auth=auth)


class TestMount:
    def test_mounts_root_then_esp(self, fake_run, tmp_path):
        fake_run.on_prefix(["findmnt"], stdout="/dev/x\n")
        mounts = mount_targets(target_root=str(tmp_path), root_part="/dev/sda2", esp_part="/dev/sda1")
        assert mounts == [("/dev/sda2", str(tmp_path)), ("/dev/sda1", str(tmp_path / "boot/efi"))]
        assert fake_run.commands("mount") == [
            ["mount", "/dev/sda2", str(tmp_path)],
            ["mount", "/dev/sda1", str(tmp_path / "boot/efi")],
        ]

    def test_mount_failure(self, fake_run, tmp_path):
        fake_run.on_prefix(["mount"], returncode=32, stderr="wrong fs type")
        with pytest.raises(MountError):
            mount_targets(target_root=str(tmp_path), root_part="/dev/sda2", esp_part=None)

    def test_unverified_mount_is_an_error(self, fake_run, tmp_path):
        fake_run.on_prefix(["findmnt"], returncode=1)
        with pytest.raises(MountError, match="not a live mount point"):
            mount_targets(target_root=str(tmp_path), root_part="/dev/sda2", esp_part=None)
