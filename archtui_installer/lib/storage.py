from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple

from ..errors import FormatError, MountError, PlanningError
from ..gate import Authorization, Category
from ..model import Filesystem, FirmwareMode, Partition, PartitionLayout
from .block import is_mounted, wait_for_device
from .command import CommandError, run_cmd
from .selection import split_partition, partition_path

logger = logging.getLogger(__name__)

ESP_START_MIB = 1
EFI_MOUNT = "boot/efi"


def plan_layout(disk: str, firmware: FirmwareMode, *, esp_size_mib: int = 550) -> PartitionLayout:
    """Compute the automatic layout without touching the disk.

    Layout:
    - EFI: GPT; p1 ESP (FAT32, esp flag); p2 root, rest of disk
    - BIOS: MS-DOS; p1 root, whole disk
    """

    if firmware is FirmwareMode.EFI:
        esp_end = f"{ESP_START_MIB + esp_size_mib}MiB"
        label = "gpt"
        partitions = (
            Partition(1, partition_path(disk, 1), "esp", f"{ESP_START_MIB}MiB", esp_end, "fat32"),
            Partition(2, partition_path(disk, 2), "root", esp_end, "100%", "ext4"),
        )
    elif firmware is FirmwareMode.BIOS:
        label = "msdos"
        partitions = (Partition(1, partition_path(disk, 1), "root", f"{ESP_START_MIB}MiB", "100%", "ext4"),)
    else:
        raise PlanningError(f"Unsupported firmware mode: {firmware}")

    for p in partitions:
        if split_partition(p.path) != (disk, p.number):
            raise PlanningError(f"Derived partition path {p.path} does not belong to {disk}")

    layout = PartitionLayout(disk=disk, label=label, partitions=partitions)
    logger.info("Planned layout: %s", layout.describe())
    return layout


def layout_argv(layout: PartitionLayout) -> List[List[str]]:
    cmds = [["parted", "-s", layout.disk, "mklabel", layout.label]]
    for p in layout.partitions:
        cmds.append(["parted", "-s", layout.disk, "mkpart", "primary", p.fs_hint, p.start, p.end])
        if p.role == "esp":
            cmds.append(["parted", "-s", layout.disk, "set", str(p.number), "esp", "on"])
    return cmds


def apply_layout(layout: PartitionLayout, auth: Authorization, *, dry_run: bool = False) -> None:
    """Write the partition table. Any failing command leaves no usable layout."""

    auth.require(Category.PARTITION, [layout.disk])
    logger.info("Creating partition table on %s", layout.disk)
    for argv in layout_argv(layout):
        try:
            run_cmd(argv, dry_run=dry_run)
        except CommandError as e:
            raise PlanningError(f"Partitioning {layout.disk} failed: {e}") from e


def settle_partitions(
    layout: PartitionLayout,
    *,
    attempts: int,
    delay: float,
    dry_run: bool = False,
) -> None:
    """Ask the kernel to re-read the table and wait for the new nodes."""

    run_cmd(["partprobe", layout.disk], check=False, dry_run=dry_run)
    run_cmd(["udevadm", "settle"], check=False, dry_run=dry_run)
    for p in layout.partitions:
        wait_for_device(p.path, attempts=attempts, delay=delay, dry_run=dry_run)


def mkfs_argv(dev: str, fs: Filesystem) -> List[str]:
    if fs is Filesystem.EXT4:
        return ["mkfs.ext4", "-F", dev]
    if fs is Filesystem.BTRFS:
        return ["mkfs.btrfs", "-f", dev]
    if fs is Filesystem.XFS:
        return ["mkfs.xfs", "-f", dev]
    raise FormatError(f"Unsupported filesystem: {fs}")


def format_partitions(
    *,
    root_part: str,
    root_fs: Filesystem,
    esp_part: Optional[str],
    auth: Authorization,
    dry_run: bool = False,
) -> List[str]:
    """Create filesystems. Returns the formatted device paths."""

    targets: List[Tuple[str, List[str]]] = [(root_part, mkfs_argv(root_part, root_fs))]
    if esp_part:
        targets.append((esp_part, ["mkfs.fat", "-F32", esp_part]))

    auth.require(Category.FORMAT, [dev for dev, _ in targets])

    done: List[str] = []
    for dev, argv in targets:
        try:
            run_cmd(argv, dry_run=dry_run)
        except CommandError as e:
            raise FormatError(f"Formatting {dev} failed: {e}") from e
        done.append(dev)
    return done


def mount_targets(
    *,
    target_root: str,
    root_part: str,
    esp_part: Optional[str],
    dry_run: bool = False,
) -> List[Tuple[str, str]]:
    """Mount root (and ESP under /boot/efi), verifying each mount point."""

    mounts: List[Tuple[str, str]] = [(root_part, target_root)]
    if esp_part:
        mounts.append((esp_part, str(Path(target_root) / EFI_MOUNT)))

    for dev, mountpoint in mounts:
        try:
            run_cmd(["mkdir", "-p", mountpoint], dry_run=dry_run)
            run_cmd(["mount", dev, mountpoint], dry_run=dry_run)
        except CommandError as e:
            raise MountError(f"Failed to mount {dev} on {mountpoint}: {e}") from e
        if not is_mounted(mountpoint, dry_run=dry_run):
            raise MountError(f"{mountpoint} is not a live mount point after mounting {dev}")
        logger.info("Mounted %s on %s", dev, mountpoint)

    return mounts