from __future__ import annotations

import json
import logging
import os
import stat
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List

from ..errors import DeviceTimeout, SelectionError
from .command import CommandError, run_cmd

logger = logging.getLogger(__name__)

SUPPORTED_PREFIXES = ("/dev/sd", "/dev/vd", "/dev/hd", "/dev/xvd", "/dev/nvme", "/dev/mmcblk")


@dataclass(frozen=True)
class BlockDevice:
    path: str
    size: str
    kind: str  # disk|part
    model: str = ""

    def label(self) -> str:
        parts = [self.path, f"({self.size})", self.kind]
        if self.model:
            parts.append(self.model)
        return " ".join(parts)


def _flatten(nodes: Iterable[Dict[str, Any]]) -> Iterable[Dict[str, Any]]:
    for node in nodes:
        yield node
        yield from _flatten(node.get("children") or [])


def parse_lsblk(raw: str) -> List[BlockDevice]:
    data = json.loads(raw or "{}")
    devices: List[BlockDevice] = []
    for node in _flatten(data.get("blockdevices") or []):
        path = str(node.get("name") or "")
        kind = str(node.get("type") or "")
        if kind not in {"disk", "part"} or not path.startswith(SUPPORTED_PREFIXES):
            continue
        devices.append(
            BlockDevice(
                path=path,
                size=str(node.get("size") or "?"),
                kind=kind,
                model=str(node.get("model") or "").strip(),
            )
        )
    return devices


def list_block_devices() -> List[BlockDevice]:
    """Enumerate disks and partitions the installer can target."""

    try:
        r = run_cmd(["lsblk", "-J", "-p", "-o", "NAME,SIZE,TYPE,MODEL"])
        devices = parse_lsblk(r.stdout)
    except CommandError as e:
        raise SelectionError(f"Device discovery failed: {e}") from e
    except json.JSONDecodeError as e:
        raise SelectionError(f"Unreadable lsblk output: {e}") from e
    logger.info("Detected %d block devices", len(devices))
    return devices


def get_uuid(dev: str, *, dry_run: bool = False) -> str:
    """Return filesystem UUID for a block device."""

    r = run_cmd(["blkid", "-s", "UUID", "-o", "value", dev], dry_run=dry_run)
    uuid = (r.stdout or "").strip()
    if not uuid and not dry_run:
        raise RuntimeError(f"Unable to determine UUID for {dev}")
    return uuid or "DRY-RUN-UUID"


def get_fstype(dev: str, *, dry_run: bool = False) -> str:
    r = run_cmd(["blkid", "-s", "TYPE", "-o", "value", dev], dry_run=dry_run)
    fstype = (r.stdout or "").strip()
    if not fstype and not dry_run:
        raise RuntimeError(f"No filesystem found on {dev}")
    return fstype or "auto"


def device_present(path: str) -> bool:
    try:
        return stat.S_ISBLK(os.stat(path).st_mode)
    except OSError:
        return False


def wait_for_device(
    path: str,
    *,
    attempts: int = 10,
    delay: float = 1.0,
    sleep: Callable[[float], None] = time.sleep,
    dry_run: bool = False,
) -> None:
    """Poll until a block device node exists.

    Checks at most ``attempts`` times with ``delay`` seconds in between, then
    raises DeviceTimeout.
    """

    if dry_run:
        logger.info("Would wait for %s", path)
        return

    for attempt in range(1, attempts + 1):
        if device_present(path):
            logger.info("Device %s present (attempt %d/%d)", path, attempt, attempts)
            return
        if attempt < attempts:
            logger.debug("Waiting for %s (attempt %d/%d)", path, attempt, attempts)
            sleep(delay)

    raise DeviceTimeout(path, attempts, delay)


def is_mounted(mountpoint: str, *, dry_run: bool = False) -> bool:
    if dry_run:
        return True
    r = run_cmd(["findmnt", "-n", "-o", "SOURCE", "--mountpoint", mountpoint], check=False)
    return r.returncode == 0 and bool(r.stdout.strip())
