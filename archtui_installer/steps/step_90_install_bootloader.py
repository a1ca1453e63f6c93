from __future__ import annotations

import logging
from typing import Optional

from ..errors import BootloaderError
from ..lib.block import get_uuid
from ..lib.bootloader import install_grub, install_systemd_boot, select_strategy
from ..model import BootloaderChoice, FirmwareMode
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class InstallBootloaderStep:
    step_id = "90_install_bootloader"
    # Failures are listed in the final summary for manual repair.
    required = False

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        return None

    def run(self, ctx: InstallContext) -> str:
        plan = ctx.plan
        strategy = select_strategy(plan.firmware, plan.bootloader)

        if strategy is BootloaderChoice.SYSTEMD_BOOT:
            try:
                # Read back from the formatted partition, never assumed.
                ctx.root_uuid = get_uuid(plan.target.root_partition, dry_run=ctx.dry_run)
            except RuntimeError as e:
                raise BootloaderError(f"Cannot read root filesystem UUID: {e}") from e
            entry = install_systemd_boot(
                target_root=ctx.target_root,
                kernel=plan.kernel,
                root_uuid=ctx.root_uuid,
                dry_run=ctx.dry_run,
            )
            return f"systemd-boot, entry {entry}"

        if strategy is BootloaderChoice.GRUB:
            install_grub(
                target_root=ctx.target_root,
                firmware=plan.firmware,
                disk=plan.target.disk,
                packages=ctx.catalog.grub_packages(plan.firmware),
                dry_run=ctx.dry_run,
            )
            where = plan.target.disk if plan.firmware is FirmwareMode.BIOS else "ESP"
            return f"GRUB ({plan.firmware.value}) on {where}"

        raise BootloaderError(f"Unhandled bootloader: {strategy}")
