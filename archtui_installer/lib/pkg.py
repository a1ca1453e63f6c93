from __future__ import annotations

import logging

from ..model import PackageSet
from .chroot import chroot_cmd
from .command import run_cmd

logger = logging.getLogger(__name__)


def pacstrap(target_root: str, packages: PackageSet, *, dry_run: bool = False) -> None:
    if not packages:
        raise ValueError("pacstrap needs at least one package")
    run_cmd(["pacstrap", "-K", target_root, *packages.as_list()], dry_run=dry_run)


def pacman_install(
    target_root: str,
    packages: PackageSet,
    *,
    refresh: bool = False,
    dry_run: bool = False,
) -> None:
    if not packages:
        return
    sync = "-Syu" if refresh else "-S"
    chroot_cmd(
        target_root,
        ["pacman", sync, "--noconfirm", "--needed", *packages.as_list()],
        dry_run=dry_run,
    )
    logger.info("Installed %d packages", len(packages))


def enable_service(target_root: str, unit: str, *, dry_run: bool = False) -> None:
    chroot_cmd(target_root, ["systemctl", "enable", unit], dry_run=dry_run)
