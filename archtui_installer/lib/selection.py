"""Device path syntax and the selection resolver.

Two naming conventions exist for partitions:

- NVMe / MMC / loop devices end in a digit, so partitions get a ``p``
  separator: ``/dev/nvme0n1`` -> ``/dev/nvme0n1p2``.
- SCSI / virtio style devices end in a letter: ``/dev/sda`` -> ``/dev/sda2``.
"""

from __future__ import annotations

import logging
import re
from typing import Optional, Sequence, Tuple

from ..errors import SelectionError
from ..model import AutoPartition, TargetSpec
from .block import BlockDevice

logger = logging.getLogger(__name__)

_P_DISK = r"/dev/(?:nvme\d+n\d+|mmcblk\d+|loop\d+)"
_PLAIN_DISK = r"/dev/(?:sd|vd|hd|xvd)[a-z]+"

_P_DISK_RE = re.compile(rf"^{_P_DISK}$")
_PLAIN_DISK_RE = re.compile(rf"^{_PLAIN_DISK}$")
_P_PART_RE = re.compile(rf"^(?P<disk>{_P_DISK})p(?P<num>[1-9]\d*)$")
_PLAIN_PART_RE = re.compile(rf"^(?P<disk>{_PLAIN_DISK})(?P<num>[1-9]\d*)$")


def uses_p_separator(disk: str) -> bool:
    return bool(_P_DISK_RE.match(disk))


def is_whole_disk(path: str) -> bool:
    return bool(_P_DISK_RE.match(path) or _PLAIN_DISK_RE.match(path))


def split_partition(path: str) -> Optional[Tuple[str, int]]:
    """Return (disk, number) for a partition path, None otherwise."""

    m = _P_PART_RE.match(path) or _PLAIN_PART_RE.match(path)
    if not m:
        return None
    return m.group("disk"), int(m.group("num"))


def partition_path(disk: str, number: int) -> str:
    if number < 1:
        raise ValueError(f"Partition numbers start at 1, got {number}")
    if uses_p_separator(disk):
        return f"{disk}p{number}"
    if _PLAIN_DISK_RE.match(disk):
        return f"{disk}{number}"
    raise SelectionError(f"Unsupported disk name: {disk}")


def disk_of(partition: str) -> str:
    split = split_partition(partition)
    if split is None:
        raise SelectionError(f"Not a partition path: {partition}")
    return split[0]


def resolve_selection(chosen: str, devices: Sequence[BlockDevice]) -> TargetSpec:
    """Turn the operator's device choice into a TargetSpec.

    A whole disk leaves the root partition empty and marks automatic
    partitioning as pending; the operator must confirm it before planning
    can continue.
    """

    if not devices:
        raise SelectionError("No block devices found")

    chosen = chosen.strip()
    if chosen not in {d.path for d in devices}:
        raise SelectionError(f"{chosen} is not one of the detected devices")

    split = split_partition(chosen)
    if split is not None:
        disk, num = split
        logger.info("Selected partition %s (disk=%s, number=%s)", chosen, disk, num)
        return TargetSpec(disk=disk, root_partition=chosen, auto_partition=AutoPartition.NO)

    if is_whole_disk(chosen):
        logger.info("Selected whole disk %s; automatic partitioning pending", chosen)
        return TargetSpec(disk=chosen, root_partition="", auto_partition=AutoPartition.PENDING)

    raise SelectionError(f"Cannot tell whether {chosen} is a disk or a partition")


def partitions_on(disk: str, devices: Sequence[BlockDevice], *, exclude: Sequence[str] = ()) -> list[BlockDevice]:
    return [
        d
        for d in devices
        if d.kind == "part" and d.path not in exclude and split_partition(d.path) is not None and disk_of(d.path) == disk
    ]
