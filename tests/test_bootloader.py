"""Tests for the bootloader strategies."""

import pytest

from archtui_installer.errors import BootloaderError
from archtui_installer.lib.bootloader import (
    grub_install_argv,
    install_grub,
    install_systemd_boot,
    render_esp_sync_hook,
    render_loader_entry,
    select_strategy,
)
from archtui_installer.model import BootloaderChoice, FirmwareMode, KernelVariant, PackageSet

LTS = KernelVariant(package="linux-lts", headers="linux-lts-headers")


class TestStrategy:
    def test_bios_only_allows_grub(self):
        assert select_strategy(FirmwareMode.BIOS, BootloaderChoice.GRUB) is BootloaderChoice.GRUB
        with pytest.raises(BootloaderError):
            select_strategy(FirmwareMode.BIOS, BootloaderChoice.SYSTEMD_BOOT)

    @pytest.mark.parametrize("choice", list(BootloaderChoice))
    def test_efi_honours_the_choice(self, choice):
        assert select_strategy(FirmwareMode.EFI, choice) is choice


class TestGrubArgv:
    @pytest.mark.parametrize("disk", ["/dev/sda", "/dev/vdb", "/dev/nvme0n1", "/dev/mmcblk0"])
    def test_bios_targets_whole_disk(self, disk):
        argv = grub_install_argv(FirmwareMode.BIOS, disk)
        assert argv[-1] == disk
        assert "--target=i386-pc" in argv

    @pytest.mark.parametrize("partition", ["/dev/sda1", "/dev/nvme0n1p2", "/dev/mmcblk0p1"])
    def test_bios_refuses_partitions(self, partition):
        with pytest.raises(BootloaderError):
            grub_install_argv(FirmwareMode.BIOS, partition)

    def test_efi_installs_into_efi_directory(self):
        argv = grub_install_argv(FirmwareMode.EFI, "/dev/sda")
        assert "--target=x86_64-efi" in argv
        assert "--efi-directory=/boot/efi" in argv
        assert "/dev/sda" not in argv


def test_install_grub_order(fake_run):
    install_grub(
        target_root="/mnt",
        firmware=FirmwareMode.EFI,
        disk="/dev/sda",
        packages=PackageSet(frozenset({"grub", "efibootmgr"})),
    )
    programs = [argv[2] for argv in fake_run.calls]
    assert programs == ["pacman", "grub-install", "grub-mkconfig"]
    assert fake_run.calls[-1][-2:] == ["-o", "/boot/grub/grub.cfg"]


def test_install_grub_failure(fake_run):
    fake_run.on_prefix(["arch-chroot", "/mnt", "grub-mkconfig"], returncode=1)
    with pytest.raises(BootloaderError):
        install_grub(
            target_root="/mnt",
            firmware=FirmwareMode.BIOS,
            disk="/dev/sda",
            packages=PackageSet(frozenset({"grub"})),
        )


def test_loader_entry():
    entry = render_loader_entry(LTS, "abcd")
    assert entry.splitlines() == [
        "title   Arch Linux",
        "linux   /vmlinuz-linux-lts",
        "initrd  /initramfs-linux-lts.img",
        "options root=UUID=abcd rw",
    ]


def test_install_systemd_boot_writes_entry(fake_run, tmp_path):
    entry = install_systemd_boot(target_root=str(tmp_path), kernel=LTS, root_uuid="abcd")

    assert entry == tmp_path / "boot/efi/loader/entries/arch.conf"
    assert "root=UUID=abcd" in entry.read_text()
    assert (tmp_path / "boot/efi/loader/loader.conf").read_text() == "default arch.conf\ntimeout 3\n"
    assert fake_run.commands("bootctl") == [["bootctl", "--esp-path=/boot/efi", "install"]]
    assert ["cp", "/boot/vmlinuz-linux-lts", "/boot/efi/vmlinuz-linux-lts"] in fake_run.commands("cp")


def test_systemd_boot_keeps_esp_kernel_current(fake_run, tmp_path):
    install_systemd_boot(target_root=str(tmp_path), kernel=LTS, root_uuid="abcd")

    hook = tmp_path / "etc/pacman.d/hooks/95-archtui-esp-kernel.hook"
    text = hook.read_text()
    assert text == render_esp_sync_hook(LTS)
    assert "Target = usr/lib/modules/*/vmlinuz" in text
    assert "When = PostTransaction" in text
    assert "Exec = /usr/bin/cp -f /boot/vmlinuz-linux-lts /boot/initramfs-linux-lts.img /boot/efi/" in text


def test_systemd_boot_needs_root_uuid(fake_run, tmp_path):
    with pytest.raises(BootloaderError):
        install_systemd_boot(target_root=str(tmp_path), kernel=LTS, root_uuid="")
    assert fake_run.calls == []


def test_dry_run_writes_nothing(fake_run, tmp_path):
    install_systemd_boot(target_root=str(tmp_path), kernel=LTS, root_uuid="abcd", dry_run=True)
    assert fake_run.calls == []
    assert not (tmp_path / "boot").exists()
    assert not (tmp_path / "etc").exists()
