"""Interactive planning phase.

Collects every decision up front, resolves concrete device paths, and freezes
the result into an InstallPlan the operator reviews before anything runs.
Nothing in here mutates the system.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from pathlib import Path
from typing import Optional, Sequence, Tuple

from .errors import SelectionError, UserAborted
from .gate import Category, DestructiveActionGate
from .lib.block import BlockDevice
from .lib.env import InstallerConfig
from .lib.firmware import Environment
from .lib.manifests import Catalog
from .lib.selection import partitions_on, resolve_selection
from .lib.storage import plan_layout
from .model import (
    AutoPartition,
    BootloaderChoice,
    Filesystem,
    FirmwareMode,
    FormatPlan,
    InstallPlan,
    PackageSet,
    PartitionLayout,
    SystemSettings,
    TargetSpec,
)
from .prompts import Prompter

logger = logging.getLogger(__name__)

HOSTNAME_RE = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
USERNAME_RE = re.compile(r"^[a-z_][a-z0-9_-]{0,31}$")
TIMEZONE_RE = re.compile(r"^[A-Za-z0-9_+\-]+(/[A-Za-z0-9_+\-]+)*$")
LOCALE_RE = re.compile(r"^[A-Za-z]{2,3}(_[A-Z]{2})?(\.[A-Za-z0-9-]+)?(@\w+)?$")


def choose_target(prompter: Prompter, devices: Sequence[BlockDevice]) -> TargetSpec:
    if not devices:
        raise SelectionError("No block devices found")
    chosen = prompter.choose(
        "Select disk or partition for root (whole disk = automatic partitioning)",
        [(d.path, d.label()) for d in devices],
    )
    return resolve_selection(chosen, devices)


def choose_firmware(prompter: Prompter, detected: FirmwareMode) -> FirmwareMode:
    use_efi = prompter.confirm(
        f"Use EFI mode? (detected by live system: {'EFI' if detected is FirmwareMode.EFI else 'BIOS'})"
    )
    return FirmwareMode.EFI if use_efi else FirmwareMode.BIOS


def resolve_partitioning(
    target: TargetSpec,
    firmware: FirmwareMode,
    *,
    gate: DestructiveActionGate,
    esp_size_mib: int,
) -> Tuple[TargetSpec, Optional[PartitionLayout]]:
    """Settle a pending automatic partitioning request.

    Declining is fatal: the installer does not guess a layout.
    """

    if target.auto_partition is AutoPartition.NO:
        return target, None
    if target.auto_partition is not AutoPartition.PENDING:
        raise SelectionError(f"Unexpected partitioning state: {target.auto_partition}")

    if not gate.request(
        Category.PARTITION,
        f"You selected the whole disk {target.disk}. Create partitions automatically on it?",
    ):
        raise UserAborted("Automatic partitioning declined; pre-create partitions and re-run the installer")

    layout = plan_layout(target.disk, firmware, esp_size_mib=esp_size_mib)
    resolved = dataclasses.replace(
        target,
        root_partition=layout.path_for("root") or "",
        efi_partition=layout.path_for("esp"),
        efi_created=layout.path_for("esp") is not None,
        auto_partition=AutoPartition.YES,
    )
    return resolved, layout


def choose_esp(prompter: Prompter, target: TargetSpec, devices: Sequence[BlockDevice]) -> TargetSpec:
    candidates = partitions_on(target.disk, devices, exclude=[target.root_partition])
    if not candidates:
        raise SelectionError(f"EFI mode needs an existing EFI system partition on {target.disk}")
    esp = prompter.choose("Select the existing EFI system partition", [(d.path, d.label()) for d in candidates])
    return dataclasses.replace(target, efi_partition=esp, efi_created=False)


def choose_format(prompter: Prompter, gate: DestructiveActionGate, target: TargetSpec) -> FormatPlan:
    paths = [target.root_partition]
    if target.efi_created and target.efi_partition:
        paths.append(target.efi_partition)

    granted = gate.request(
        Category.FORMAT,
        f"Format {' and '.join(paths)}? WARNING: this erases data on these partitions",
    )
    if not granted:
        if target.auto_partition is AutoPartition.YES:
            raise UserAborted("Newly created partitions must be formatted")
        return FormatPlan(do_format=False)

    fs = prompter.choose(
        "Filesystem for root",
        [
            (Filesystem.EXT4.value, "EXT4 filesystem (recommended)"),
            (Filesystem.BTRFS.value, "BTRFS filesystem (advanced)"),
            (Filesystem.XFS.value, "XFS filesystem"),
        ],
        default=Filesystem.EXT4.value,
    )
    return FormatPlan(do_format=True, root_filesystem=Filesystem(fs))


def choose_bootloader(prompter: Prompter, firmware: FirmwareMode) -> BootloaderChoice:
    if firmware is FirmwareMode.BIOS:
        logger.info("BIOS mode selected; using GRUB")
        return BootloaderChoice.GRUB
    picked = prompter.choose(
        "Select bootloader",
        [
            (BootloaderChoice.SYSTEMD_BOOT.value, "systemd-boot (EFI simple)"),
            (BootloaderChoice.GRUB.value, "GRUB (works BIOS+EFI)"),
        ],
    )
    return BootloaderChoice(picked)


def _ask_valid(prompter: Prompter, question: str, pattern: "re.Pattern[str]", *, default: Optional[str] = None) -> str:
    while True:
        value = prompter.ask(question, default=default).strip()
        if pattern.match(value):
            return value
        logger.warning("Invalid value %r for: %s", value, question)


def _ask_timezone(prompter: Prompter, zoneinfo_dir: Optional[str]) -> str:
    """Ask until the zone exists in the live system's zoneinfo database.

    Pacstrap installs the same tzdata into the target, so a zone found here
    will resolve there too.
    """

    if zoneinfo_dir and not Path(zoneinfo_dir).is_dir():
        logger.warning("[WARN] %s not found; timezone is only checked for syntax", zoneinfo_dir)
        zoneinfo_dir = None
    while True:
        value = _ask_valid(prompter, "Timezone (e.g. UTC or Europe/Berlin)", TIMEZONE_RE, default="UTC")
        if zoneinfo_dir is None or (Path(zoneinfo_dir) / value).is_file():
            return value
        logger.warning("Unknown timezone %r (not in %s)", value, zoneinfo_dir)


def ask_settings(prompter: Prompter, *, zoneinfo_dir: Optional[str] = None) -> SystemSettings:
    hostname = _ask_valid(prompter, "Hostname (e.g. arch-vbox)", HOSTNAME_RE)
    username = _ask_valid(prompter, "Username", USERNAME_RE)
    root_password = prompter.ask_secret("Root password")
    user_password = prompter.ask_secret(f"Password for {username}")
    timezone = _ask_timezone(prompter, zoneinfo_dir)
    locale = _ask_valid(prompter, "Locale (e.g. en_US.UTF-8)", LOCALE_RE, default="en_US.UTF-8")
    return SystemSettings(
        hostname=hostname,
        username=username,
        timezone=timezone,
        locale=locale,
        root_password=root_password,
        user_password=user_password,
    )


def gather_plan(
    *,
    prompter: Prompter,
    gate: DestructiveActionGate,
    env: Environment,
    devices: Sequence[BlockDevice],
    catalog: Catalog,
    config: InstallerConfig,
) -> InstallPlan:
    target = choose_target(prompter, devices)
    firmware = choose_firmware(prompter, env.firmware)

    target, layout = resolve_partitioning(target, firmware, gate=gate, esp_size_mib=config.esp_size_mib)
    if firmware is FirmwareMode.EFI and not target.efi_partition:
        target = choose_esp(prompter, target, devices)

    fmt = choose_format(prompter, gate, target)

    kernel = catalog.kernel(prompter.choose("Select kernel", catalog.kernel_choices(), default="linux"))
    bootloader = choose_bootloader(prompter, firmware)

    desktop = prompter.choose(
        "Choose desktop environment", catalog.desktop_choices(), default=catalog.default_desktop()
    )
    audio = prompter.confirm("Install PipeWire audio?")
    optional = prompter.choose_many("Optional packages", catalog.optional_choices())
    packages = catalog.selection(desktop, audio=audio, optional=optional)

    install_nvidia = False
    if env.nvidia_gpu:
        install_nvidia = prompter.confirm("NVIDIA GPU detected. Install proprietary drivers?")

    settings = ask_settings(prompter, zoneinfo_dir=config.zoneinfo_dir)

    return InstallPlan(
        target=target,
        firmware=firmware,
        format=fmt,
        layout=layout,
        kernel=kernel,
        bootloader=bootloader,
        packages=packages,
        install_nvidia=install_nvidia,
        nvidia_packages=catalog.nvidia_packages() if install_nvidia else PackageSet(),
        virtualization=env.virtualization,
        settings=settings,
    )


def review(prompter: Prompter, plan: InstallPlan) -> None:
    """Show the frozen plan; declining ends the run before any change."""

    prompter.show("Installation summary", plan.summary())
    if not prompter.confirm("Install now? This will make changes to the disk/partitions listed above"):
        raise UserAborted("Installation cancelled at review")
