"""Typed values built during planning and consumed read-only by the pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import FrozenSet, Iterable, Optional, Tuple

from .errors import SelectionError


class FirmwareMode(enum.Enum):
    BIOS = "bios"
    EFI = "efi"


class VirtPlatform(enum.Enum):
    NONE = "none"
    VIRTUALBOX = "virtualbox"
    VMWARE = "vmware"
    KVM = "kvm"
    HYPERV = "hyperv"
    UNKNOWN = "unknown"


class AutoPartition(enum.Enum):
    NO = "no"
    PENDING = "pending"
    YES = "yes"


class Filesystem(enum.Enum):
    EXT4 = "ext4"
    BTRFS = "btrfs"
    XFS = "xfs"


class BootloaderChoice(enum.Enum):
    SYSTEMD_BOOT = "systemd-boot"
    GRUB = "grub"


@dataclass(frozen=True)
class VirtualizationContext:
    platform: VirtPlatform
    raw: str = ""


@dataclass(frozen=True)
class TargetSpec:
    disk: str
    root_partition: str = ""
    efi_partition: Optional[str] = None
    auto_partition: AutoPartition = AutoPartition.NO
    # ESP is created (and may be formatted) by this run.
    efi_created: bool = False


@dataclass(frozen=True)
class FormatPlan:
    do_format: bool
    root_filesystem: Optional[Filesystem] = None

    def __post_init__(self) -> None:
        if self.do_format and self.root_filesystem is None:
            raise SelectionError("A root filesystem is required when formatting")


@dataclass(frozen=True)
class PackageSet:
    """Immutable set of package names; build through Catalog.package_set()."""

    names: FrozenSet[str] = frozenset()

    def __bool__(self) -> bool:
        return bool(self.names)

    def __iter__(self):
        return iter(sorted(self.names))

    def __len__(self) -> int:
        return len(self.names)

    def union(self, other: "PackageSet") -> "PackageSet":
        return PackageSet(self.names | other.names)

    def as_list(self) -> list[str]:
        return sorted(self.names)


@dataclass(frozen=True)
class PackageSelection:
    desktop_tag: str
    desktop: PackageSet
    audio: PackageSet
    optional: PackageSet
    display_manager: Optional[str] = None


@dataclass(frozen=True)
class KernelVariant:
    package: str
    headers: str

    @property
    def image(self) -> str:
        return f"vmlinuz-{self.package}"

    @property
    def initramfs(self) -> str:
        return f"initramfs-{self.package}.img"


@dataclass(frozen=True)
class Partition:
    number: int
    path: str
    role: str  # esp|root
    start: str
    end: str
    fs_hint: str


@dataclass(frozen=True)
class PartitionLayout:
    disk: str
    label: str  # gpt|msdos
    partitions: Tuple[Partition, ...]

    def path_for(self, role: str) -> Optional[str]:
        for p in self.partitions:
            if p.role == role:
                return p.path
        return None

    def describe(self) -> str:
        parts = ", ".join(f"{p.path} ({p.role}, {p.start}-{p.end})" for p in self.partitions)
        return f"{self.disk}: new {self.label} label; {parts}"


@dataclass(frozen=True)
class SystemSettings:
    hostname: str
    username: str
    timezone: str
    locale: str
    root_password: str = field(repr=False, default="")
    user_password: str = field(repr=False, default="")


@dataclass(frozen=True)
class InstallPlan:
    target: TargetSpec
    firmware: FirmwareMode
    format: FormatPlan
    kernel: KernelVariant
    bootloader: BootloaderChoice
    packages: PackageSelection
    virtualization: VirtualizationContext
    settings: SystemSettings
    layout: Optional[PartitionLayout] = None
    install_nvidia: bool = False
    nvidia_packages: PackageSet = PackageSet()

    def __post_init__(self) -> None:
        if not self.target.root_partition:
            raise SelectionError("Root partition is not resolved")
        if self.target.auto_partition is AutoPartition.PENDING:
            raise SelectionError("Automatic partitioning was never confirmed")
        if self.firmware is FirmwareMode.EFI and not self.target.efi_partition:
            raise SelectionError("EFI mode requires an EFI system partition")
        if self.firmware is FirmwareMode.BIOS and self.bootloader is not BootloaderChoice.GRUB:
            raise SelectionError("BIOS installs only support GRUB")

    def destructive_paths(self) -> list[str]:
        """Partitions that the format stage would erase."""
        paths = [self.target.root_partition]
        if self.target.efi_created and self.target.efi_partition:
            paths.append(self.target.efi_partition)
        return paths

    def summary(self) -> list[Tuple[str, str]]:
        def _names(ps: Iterable[str]) -> str:
            return " ".join(ps) or "none"

        t = self.target
        rows = [
            ("Disk", t.disk),
            ("Partition table", self.layout.describe() if self.layout else "keep existing"),
            ("Root partition", t.root_partition),
            ("EFI partition", t.efi_partition or "none"),
            ("Firmware", self.firmware.value.upper()),
            ("Format", ", ".join(self.destructive_paths()) if self.format.do_format else "no"),
            (
                "Filesystem",
                self.format.root_filesystem.value if self.format.root_filesystem else "existing",
            ),
            ("Kernel", self.kernel.package),
            ("Bootloader", self.bootloader.value),
            ("Desktop", self.packages.desktop_tag),
            ("Desktop pkgs", _names(self.packages.desktop)),
            ("Audio pkgs", _names(self.packages.audio)),
            ("Optional pkgs", _names(self.packages.optional)),
            ("Display manager", self.packages.display_manager or "none"),
            ("NVIDIA driver", "yes" if self.install_nvidia else "no"),
            ("Virtualization", self.virtualization.platform.value),
            ("Hostname", self.settings.hostname),
            ("User", self.settings.username),
            ("Timezone", self.settings.timezone),
            ("Locale", self.settings.locale),
        ]
        return rows
