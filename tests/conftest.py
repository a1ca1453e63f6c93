"""
Pytest configuration and shared fixtures for archtui-installer tests.

No test touches a real disk: every external command goes through
``archtui_installer.lib.command.run_cmd``, which calls ``subprocess.run``;
the ``fake_run`` fixture replaces that call and records the argv.
"""

import subprocess
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from archtui_installer.gate import Category, DestructiveActionGate
from archtui_installer.lib import block
from archtui_installer.lib.env import InstallerConfig
from archtui_installer.lib.firmware import Environment
from archtui_installer.lib.manifests import load_catalog
from archtui_installer.lib.storage import plan_layout
from archtui_installer.model import (
    AutoPartition,
    BootloaderChoice,
    Filesystem,
    FirmwareMode,
    FormatPlan,
    InstallPlan,
    SystemSettings,
    TargetSpec,
    VirtPlatform,
    VirtualizationContext,
)
from archtui_installer.pipeline import InstallContext


# ==============================================================================
# Command runner
# ==============================================================================


Handler = Callable[[List[str], Optional[str]], Tuple[int, str, str]]


class FakeRunner:
    """Stand-in for subprocess.run.

    Rules are (predicate, handler) pairs; the first matching rule answers.
    Unmatched commands succeed with empty output.
    """

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.inputs: List[Optional[str]] = []
        self._rules: List[Tuple[Callable[[List[str]], bool], Handler]] = []
        # blkid TYPE answers for the live_system fixture; ext4 otherwise.
        self.fstypes: Dict[str, str] = {}

    def on(self, predicate: Callable[[List[str]], bool], handler: Handler) -> None:
        self._rules.insert(0, (predicate, handler))

    def on_prefix(self, prefix: Sequence[str], returncode: int = 0, stdout: str = "", stderr: str = "") -> None:
        prefix = list(prefix)
        self.on(lambda argv: argv[: len(prefix)] == prefix, lambda argv, _in: (returncode, stdout, stderr))

    def fail_when(self, needle: str, stderr: str = "boom") -> None:
        """Fail any command whose argv contains ``needle``."""
        self.on(lambda argv: needle in argv, lambda argv, _in: (1, "", stderr))

    def __call__(self, argv, input=None, **kwargs):
        argv = list(argv)
        self.calls.append(argv)
        self.inputs.append(input)
        for predicate, handler in self._rules:
            if predicate(argv):
                rc, out, err = handler(argv, input)
                break
        else:
            rc, out, err = 0, "", ""
        return subprocess.CompletedProcess(argv, rc, stdout=out, stderr=err)

    # Query helpers -----------------------------------------------------------

    def commands(self, program: str) -> List[List[str]]:
        """Calls running ``program`` directly or through arch-chroot."""
        found = []
        for argv in self.calls:
            if argv and argv[0] == program:
                found.append(argv)
            elif len(argv) > 2 and argv[0] == "arch-chroot" and argv[2] == program:
                found.append(argv[2:])
        return found

    def ran(self, program: str) -> bool:
        return bool(self.commands(program))


MKFS_PROGRAMS = ("mkfs.ext4", "mkfs.btrfs", "mkfs.xfs", "mkfs.fat")


@pytest.fixture
def fake_run(monkeypatch) -> FakeRunner:
    runner = FakeRunner()
    monkeypatch.setattr(subprocess, "run", runner)
    return runner


@pytest.fixture
def devices_present(monkeypatch):
    """Every device node exists immediately."""
    monkeypatch.setattr(block, "device_present", lambda path: True)


@pytest.fixture
def target_root(tmp_path) -> Path:
    root = tmp_path / "mnt"
    root.mkdir()
    return root


def populate_target(root: Path) -> None:
    for rel in ("etc", "usr/bin", "boot"):
        (root / rel).mkdir(parents=True, exist_ok=True)
    zone = root / "usr/share/zoneinfo/UTC"
    zone.parent.mkdir(parents=True, exist_ok=True)
    zone.write_text("TZif", encoding="utf-8")


@pytest.fixture
def live_system(fake_run: FakeRunner, target_root: Path, devices_present) -> FakeRunner:
    """A fake live environment where every command succeeds.

    pacstrap populates the target, findmnt reports mounts and blkid returns a
    UUID and a filesystem type.
    """

    def _pacstrap(argv, _in):
        populate_target(target_root)
        return 0, "", ""

    fake_run.on(lambda argv: argv[:1] == ["pacstrap"], _pacstrap)
    fake_run.on_prefix(["findmnt"], stdout="/dev/fake\n")
    fake_run.on_prefix(["blkid", "-s", "UUID"], stdout="0a1b2c3d-uuid\n")
    fake_run.on(
        lambda argv: argv[:3] == ["blkid", "-s", "TYPE"],
        lambda argv, _in: (0, fake_run.fstypes.get(argv[-1], "ext4") + "\n", ""),
    )
    return fake_run


# ==============================================================================
# Prompts
# ==============================================================================


class ScriptedPrompter:
    """Answers prompts from queues and records every question asked."""

    def __init__(
        self,
        *,
        confirms: Sequence[bool] = (),
        choices: Sequence[str] = (),
        many: Sequence[Sequence[str]] = (),
        asks: Sequence[str] = (),
        secrets: Sequence[str] = (),
    ) -> None:
        self.confirms = list(confirms)
        self.choices = list(choices)
        self.many = [list(m) for m in many]
        self.asks = list(asks)
        self.secrets = list(secrets)
        self.questions: List[str] = []
        self.danger_questions: List[str] = []
        self.shown: List[Tuple[str, list]] = []

    def confirm(self, question: str, *, danger: bool = False) -> bool:
        self.questions.append(question)
        if danger:
            self.danger_questions.append(question)
        if not self.confirms:
            raise AssertionError(f"Unexpected confirmation: {question}")
        return self.confirms.pop(0)

    def choose(self, title, choices, *, default=None) -> str:
        self.questions.append(title)
        answer = self.choices.pop(0)
        assert answer in [tag for tag, _ in choices], f"{answer} not offered for {title}"
        return answer

    def choose_many(self, title, choices) -> List[str]:
        self.questions.append(title)
        return self.many.pop(0) if self.many else []

    def ask(self, question, *, default=None) -> str:
        self.questions.append(question)
        return self.asks.pop(0)

    def ask_secret(self, question) -> str:
        self.questions.append(question)
        return self.secrets.pop(0)

    def show(self, title, rows) -> None:
        self.shown.append((title, list(rows)))


@pytest.fixture
def yes_prompter() -> ScriptedPrompter:
    """Confirms every final gate."""
    return ScriptedPrompter(confirms=[True] * 10)


# ==============================================================================
# Plans and contexts
# ==============================================================================


@pytest.fixture
def catalog():
    return load_catalog()


SETTINGS = SystemSettings(
    hostname="arch-vbox",
    username="alice",
    timezone="UTC",
    locale="en_US.UTF-8",
    root_password="rootpw",
    user_password="userpw",
)


def make_plan(
    catalog,
    *,
    disk: str = "/dev/sda",
    root_partition: Optional[str] = None,
    efi_partition: Optional[str] = None,
    firmware: FirmwareMode = FirmwareMode.BIOS,
    do_format: bool = True,
    filesystem: Filesystem = Filesystem.EXT4,
    bootloader: BootloaderChoice = BootloaderChoice.GRUB,
    desktop: str = "XFCE",
    audio: bool = True,
    optional: Sequence[str] = (),
    platform: VirtPlatform = VirtPlatform.NONE,
    install_nvidia: bool = False,
) -> InstallPlan:
    """Build a plan the way planning does. ``root_partition=None`` means auto-partition."""

    layout = None
    if root_partition is None:
        layout = plan_layout(disk, firmware)
        target = TargetSpec(
            disk=disk,
            root_partition=layout.path_for("root"),
            efi_partition=layout.path_for("esp"),
            auto_partition=AutoPartition.YES,
            efi_created=layout.path_for("esp") is not None,
        )
    else:
        target = TargetSpec(
            disk=disk,
            root_partition=root_partition,
            efi_partition=efi_partition,
            auto_partition=AutoPartition.NO,
        )

    return InstallPlan(
        target=target,
        firmware=firmware,
        format=FormatPlan(do_format=do_format, root_filesystem=filesystem if do_format else None),
        layout=layout,
        kernel=catalog.kernel("linux"),
        bootloader=bootloader,
        packages=catalog.selection(desktop, audio=audio, optional=optional),
        install_nvidia=install_nvidia,
        nvidia_packages=catalog.nvidia_packages() if install_nvidia else catalog.package_set([]),
        virtualization=VirtualizationContext(platform=platform, raw=platform.value),
        settings=SETTINGS,
    )


def approved_gate(prompter, *categories: Category) -> DestructiveActionGate:
    """A gate whose planning-time requests were granted."""
    planning = ScriptedPrompter(confirms=[True] * len(categories))
    gate = DestructiveActionGate(planning)
    for category in categories:
        gate.request(category, f"{category.value}?")
    gate._prompter = prompter
    return gate


LIVE_ZONES = ("UTC", "Europe/Berlin")


def make_config(target_root: Path, **overrides) -> InstallerConfig:
    if "zoneinfo_dir" not in overrides:
        zoneinfo = target_root.parent / "live-zoneinfo"
        for zone in LIVE_ZONES:
            (zoneinfo / zone).parent.mkdir(parents=True, exist_ok=True)
            (zoneinfo / zone).write_text("TZif", encoding="utf-8")
        overrides["zoneinfo_dir"] = str(zoneinfo)
    overrides.setdefault("device_wait_attempts", 3)
    overrides.setdefault("device_wait_delay", 0.0)
    return InstallerConfig(
        target_root=str(target_root),
        log_path=str(target_root.parent / "install.log"),
        outcome_path=str(target_root.parent / "outcome.json"),
        **overrides,
    )


def make_context(plan, catalog, target_root: Path, gate: DestructiveActionGate, **overrides) -> InstallContext:
    return InstallContext(plan=plan, config=make_config(target_root, **overrides), gate=gate, catalog=catalog)


def environment(firmware=FirmwareMode.BIOS, platform=VirtPlatform.NONE, nvidia=False) -> Environment:
    return Environment(
        firmware=firmware,
        virtualization=VirtualizationContext(platform=platform, raw=platform.value),
        nvidia_gpu=nvidia,
    )


def lsblk_json(devices: Dict[str, List[str]]) -> str:
    """{disk: [partitions]} -> lsblk -J -p output."""
    import json

    nodes = []
    for disk, parts in devices.items():
        nodes.append(
            {
                "name": disk,
                "size": "20G",
                "type": "disk",
                "model": "VBOX HARDDISK",
                "children": [{"name": p, "size": "10G", "type": "part", "model": None} for p in parts],
            }
        )
    return json.dumps({"blockdevices": nodes})
