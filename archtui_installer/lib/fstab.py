from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

from .block import get_fstype, get_uuid

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FstabEntry:
    spec: str
    mountpoint: str
    fstype: str
    options: str
    dump: int
    passno: int


def render_fstab(entries: Sequence[FstabEntry]) -> str:
    lines = ["# /etc/fstab: generated by archtui-installer", "# <spec> <mountpoint> <type> <options> <dump> <pass>"]
    for e in entries:
        lines.append(f"{e.spec}\t{e.mountpoint}\t{e.fstype}\t{e.options}\t{e.dump} {e.passno}")
    return "\n".join(lines) + "\n"


def entries_for_mounts(
    target_root: str,
    mounts: Sequence[Tuple[str, str]],
    *,
    dry_run: bool = False,
) -> List[FstabEntry]:
    """Build mount-by-UUID entries for (device, host mountpoint) pairs."""

    root = Path(target_root)
    entries: List[FstabEntry] = []
    for dev, host_mountpoint in mounts:
        rel = Path(host_mountpoint).relative_to(root)
        mountpoint = "/" + str(rel) if str(rel) != "." else "/"
        fstype = get_fstype(dev, dry_run=dry_run)
        is_root = mountpoint == "/"
        if fstype == "vfat":
            options = "umask=0077"
        elif fstype == "btrfs":
            options = "defaults,noatime"
        else:
            options = "defaults"
        entries.append(
            FstabEntry(
                spec=f"UUID={get_uuid(dev, dry_run=dry_run)}",
                mountpoint=mountpoint,
                fstype=fstype,
                options=options,
                dump=0,
                # fsck is not meaningful for btrfs/xfs
                passno=0 if fstype in {"btrfs", "xfs"} else (1 if is_root else 2),
            )
        )
    return entries


def write_fstab(target_root: str, entries: Sequence[FstabEntry], *, dry_run: bool = False) -> Path:
    fstab_path = Path(target_root) / "etc/fstab"
    contents = render_fstab(entries)
    if dry_run:
        logger.info("Would write %s:\n%s", str(fstab_path), contents)
    else:
        fstab_path.parent.mkdir(parents=True, exist_ok=True)
        fstab_path.write_text(contents, encoding="utf-8")
        logger.info("Wrote %s (%d entries)", str(fstab_path), len(entries))
    return fstab_path
