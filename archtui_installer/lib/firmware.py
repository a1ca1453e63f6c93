from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from ..model import FirmwareMode, VirtPlatform, VirtualizationContext
from .command import run_cmd

logger = logging.getLogger(__name__)

EFI_SYSFS = "/sys/firmware/efi"

_VIRT_MAP = {
    "oracle": VirtPlatform.VIRTUALBOX,
    "virtualbox": VirtPlatform.VIRTUALBOX,
    "vmware": VirtPlatform.VMWARE,
    "kvm": VirtPlatform.KVM,
    "qemu": VirtPlatform.KVM,
    "microsoft": VirtPlatform.HYPERV,
    "hyperv": VirtPlatform.HYPERV,
    "none": VirtPlatform.NONE,
    "": VirtPlatform.NONE,
}

_NVIDIA_RE = re.compile(r"nvidia|geforce", re.IGNORECASE)


def detect_firmware_mode(efi_sysfs: str = EFI_SYSFS) -> FirmwareMode:
    """Detect firmware type for the *currently running* environment."""

    if Path(efi_sysfs).exists():
        return FirmwareMode.EFI
    return FirmwareMode.BIOS


def classify_virt(raw: str) -> VirtPlatform:
    return _VIRT_MAP.get(raw.strip().lower(), VirtPlatform.UNKNOWN)


def detect_virtualization() -> VirtualizationContext:
    # systemd-detect-virt exits 1 and prints "none" on bare metal.
    r = run_cmd(["systemd-detect-virt"], check=False)
    raw = (r.stdout or "").strip()
    return VirtualizationContext(platform=classify_virt(raw), raw=raw or "none")


def detect_nvidia_gpu() -> bool:
    r = run_cmd(["lspci", "-nn"], check=False)
    return any(_NVIDIA_RE.search(line) for line in (r.stdout or "").splitlines())


@dataclass(frozen=True)
class Environment:
    firmware: FirmwareMode
    virtualization: VirtualizationContext
    nvidia_gpu: bool


def probe_environment() -> Environment:
    env = Environment(
        firmware=detect_firmware_mode(),
        virtualization=detect_virtualization(),
        nvidia_gpu=detect_nvidia_gpu(),
    )
    logger.info(
        "Environment: firmware=%s virtualization=%s nvidia=%s",
        env.firmware.value,
        env.virtualization.raw,
        env.nvidia_gpu,
    )
    return env
