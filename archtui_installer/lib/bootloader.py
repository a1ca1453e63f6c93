"""The two bootloader strategies.

systemd-boot (EFI only) and GRUB (EFI or BIOS). BIOS GRUB is always written
to the whole-disk device, never a partition.
"""

from __future__ import annotations

import logging
from pathlib import Path

from ..errors import BootloaderError
from ..model import BootloaderChoice, FirmwareMode, KernelVariant, PackageSet
from .chroot import chroot_cmd
from .command import CommandError
from .pkg import pacman_install
from .selection import is_whole_disk

logger = logging.getLogger(__name__)

EFI_DIR = "/boot/efi"
LOADER_ENTRY = "arch.conf"
ESP_SYNC_HOOK = "/etc/pacman.d/hooks/95-archtui-esp-kernel.hook"
GRUB_CFG = "/boot/grub/grub.cfg"


def select_strategy(firmware: FirmwareMode, choice: BootloaderChoice) -> BootloaderChoice:
    if firmware is FirmwareMode.BIOS:
        if choice is not BootloaderChoice.GRUB:
            raise BootloaderError(f"{choice.value} cannot boot a BIOS system")
        return BootloaderChoice.GRUB
    if firmware is FirmwareMode.EFI:
        return choice
    raise BootloaderError(f"Unsupported firmware mode: {firmware}")


def render_loader_entry(kernel: KernelVariant, root_uuid: str) -> str:
    return (
        "title   Arch Linux\n"
        f"linux   /{kernel.image}\n"
        f"initrd  /{kernel.initramfs}\n"
        f"options root=UUID={root_uuid} rw\n"
    )


def render_esp_sync_hook(kernel: KernelVariant) -> str:
    """Pacman hook that re-copies the kernel images onto the ESP.

    Sorted after mkinitcpio's 90-mkinitcpio-install.hook so the fresh
    initramfs exists when it runs.
    """

    return (
        "[Trigger]\n"
        "Type = Path\n"
        "Operation = Install\n"
        "Operation = Upgrade\n"
        "Target = usr/lib/modules/*/vmlinuz\n"
        "Target = usr/lib/initcpio/*\n"
        "\n"
        "[Action]\n"
        "Description = Copying kernel images to the EFI system partition...\n"
        "When = PostTransaction\n"
        f"Exec = /usr/bin/cp -f /boot/{kernel.image} /boot/{kernel.initramfs} {EFI_DIR}/\n"
    )


def install_systemd_boot(
    *,
    target_root: str,
    kernel: KernelVariant,
    root_uuid: str,
    dry_run: bool = False,
) -> Path:
    """Install systemd-boot into the ESP and write a default loader entry.

    The ESP is mounted at /boot/efi, so the kernel and initramfs are copied
    onto it where the boot manager can read them, and a pacman hook repeats
    the copy on every kernel or initramfs change.
    """

    if not root_uuid:
        raise BootloaderError("Root filesystem UUID is unknown")

    try:
        chroot_cmd(target_root, ["bootctl", f"--esp-path={EFI_DIR}", "install"], dry_run=dry_run)
        for image in (kernel.image, kernel.initramfs):
            chroot_cmd(target_root, ["cp", f"/boot/{image}", f"{EFI_DIR}/{image}"], dry_run=dry_run)
    except CommandError as e:
        raise BootloaderError(f"systemd-boot install failed: {e}") from e

    esp = Path(target_root) / EFI_DIR.lstrip("/")
    entry = esp / "loader/entries" / LOADER_ENTRY
    loader_conf = esp / "loader/loader.conf"
    hook = Path(target_root) / ESP_SYNC_HOOK.lstrip("/")
    if dry_run:
        logger.info("Would write %s, %s and %s", str(entry), str(loader_conf), str(hook))
        return entry

    try:
        entry.parent.mkdir(parents=True, exist_ok=True)
        entry.write_text(render_loader_entry(kernel, root_uuid), encoding="utf-8")
        loader_conf.write_text(f"default {LOADER_ENTRY}\ntimeout 3\n", encoding="utf-8")
        hook.parent.mkdir(parents=True, exist_ok=True)
        hook.write_text(render_esp_sync_hook(kernel), encoding="utf-8")
    except OSError as e:
        raise BootloaderError(f"Writing loader entry failed: {e}") from e

    logger.info("systemd-boot installed (entry=%s)", str(entry))
    return entry


def grub_install_argv(firmware: FirmwareMode, disk: str) -> list[str]:
    if firmware is FirmwareMode.EFI:
        return [
            "grub-install",
            "--target=x86_64-efi",
            f"--efi-directory={EFI_DIR}",
            "--bootloader-id=GRUB",
            "--recheck",
        ]
    if firmware is FirmwareMode.BIOS:
        if not is_whole_disk(disk):
            raise BootloaderError(f"BIOS GRUB must target a whole disk, got {disk}")
        return ["grub-install", "--target=i386-pc", "--recheck", disk]
    raise BootloaderError(f"Unsupported firmware mode: {firmware}")


def install_grub(
    *,
    target_root: str,
    firmware: FirmwareMode,
    disk: str,
    packages: PackageSet,
    dry_run: bool = False,
) -> None:
    argv = grub_install_argv(firmware, disk)
    try:
        pacman_install(target_root, packages, dry_run=dry_run)
        chroot_cmd(target_root, argv, dry_run=dry_run)
        # Regenerated from the kernels actually installed in the target.
        chroot_cmd(target_root, ["grub-mkconfig", "-o", GRUB_CFG], dry_run=dry_run)
    except CommandError as e:
        raise BootloaderError(f"GRUB install failed: {e}") from e
    logger.info("GRUB installed (firmware=%s)", firmware.value)
