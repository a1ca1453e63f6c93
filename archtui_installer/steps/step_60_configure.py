from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from ..errors import ConfigurationError
from ..lib.chroot import chroot_cmd
from ..lib.command import CommandError
from ..lib.pkg import enable_service
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


def _write_file(root: str, rel: str, contents: str, *, mode: Optional[int] = None, dry_run: bool) -> None:
    p = Path(root) / rel.lstrip("/")
    if dry_run:
        logger.info("Would write %s", str(p))
        return
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(contents, encoding="utf-8")
    if mode is not None:
        os.chmod(p, mode)


def locale_gen_line(locale: str) -> str:
    """en_US.UTF-8 -> 'en_US.UTF-8 UTF-8'; de_DE -> 'de_DE ISO-8859-1'."""

    if "." in locale:
        return f"{locale} {locale.split('.', 1)[1]}"
    return f"{locale} ISO-8859-1"


class ConfigureStep:
    step_id = "60_configure"
    # A half-configured system still gets a bootloader; failures are listed
    # in the final summary.
    required = False

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        return None

    @staticmethod
    def _set_timezone(root: str, timezone: str, *, dry_run: bool) -> None:
        zoneinfo = Path(root) / "usr/share/zoneinfo" / timezone
        if not dry_run and not zoneinfo.is_file():
            raise ConfigurationError(f"Unknown timezone: {timezone}")
        chroot_cmd(root, ["ln", "-sf", f"/usr/share/zoneinfo/{timezone}", "/etc/localtime"], dry_run=dry_run)

    def run(self, ctx: InstallContext) -> str:
        s = ctx.plan.settings
        root = ctx.target_root
        dry_run = ctx.dry_run
        best_effort = ctx.outcome.best_effort

        try:
            _write_file(root, "/etc/hostname", s.hostname + "\n", dry_run=dry_run)
            _write_file(
                root,
                "/etc/hosts",
                "\n".join(
                    [
                        "127.0.0.1\tlocalhost",
                        "::1\t\tlocalhost",
                        f"127.0.1.1\t{s.hostname}.localdomain\t{s.hostname}",
                        "",
                    ]
                ),
                dry_run=dry_run,
            )

            with best_effort(self.step_id, f"set timezone {s.timezone}"):
                self._set_timezone(root, s.timezone, dry_run=dry_run)
                with best_effort(self.step_id, "sync hardware clock"):
                    chroot_cmd(root, ["hwclock", "--systohc"], dry_run=dry_run)

            _write_file(root, "/etc/locale.gen", locale_gen_line(s.locale) + "\n", dry_run=dry_run)
            chroot_cmd(root, ["locale-gen"], dry_run=dry_run)
            _write_file(root, "/etc/locale.conf", f"LANG={s.locale}\n", dry_run=dry_run)

            # Passwords go through stdin so they never reach argv or the log.
            chroot_cmd(root, ["chpasswd"], input_text=f"root:{s.root_password}\n", dry_run=dry_run)
            with best_effort(self.step_id, f"create user {s.username}"):
                chroot_cmd(root, ["useradd", "-m", "-G", "wheel", "-s", "/bin/bash", s.username], dry_run=dry_run)
            chroot_cmd(root, ["chpasswd"], input_text=f"{s.username}:{s.user_password}\n", dry_run=dry_run)
        except (CommandError, OSError) as e:
            raise ConfigurationError(f"System configuration failed: {e}") from e

        with best_effort(self.step_id, "grant wheel group sudo"):
            _write_file(root, "/etc/sudoers.d/10-wheel", "%wheel ALL=(ALL:ALL) ALL\n", mode=0o440, dry_run=dry_run)
        with best_effort(self.step_id, "enable NetworkManager"):
            enable_service(root, "NetworkManager", dry_run=dry_run)

        logger.info("Configured hostname=%s user=%s timezone=%s locale=%s", s.hostname, s.username, s.timezone, s.locale)
        return f"hostname={s.hostname} user={s.username} timezone={s.timezone} locale={s.locale}"
