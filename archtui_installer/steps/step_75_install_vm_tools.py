from __future__ import annotations

import logging
from typing import Optional

from ..errors import ConfigurationError
from ..lib.command import CommandError
from ..lib.pkg import enable_service, pacman_install
from ..model import VirtPlatform
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class InstallVmToolsStep:
    step_id = "75_install_vm_tools"
    required = False

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        platform = ctx.plan.virtualization.platform
        if platform is VirtPlatform.NONE:
            return "not running in a virtual machine"
        if platform is VirtPlatform.UNKNOWN:
            return f"no guest tools known for {ctx.plan.virtualization.raw}"
        if platform in (VirtPlatform.VIRTUALBOX, VirtPlatform.VMWARE, VirtPlatform.KVM, VirtPlatform.HYPERV):
            return None
        raise ConfigurationError(f"Unhandled virtualization platform: {platform}")

    def run(self, ctx: InstallContext) -> str:
        platform = ctx.plan.virtualization.platform
        packages, services = ctx.catalog.vm_guest_tools(platform)
        if not packages:
            raise ConfigurationError(f"Catalog has no guest tools for {platform.value}")

        try:
            pacman_install(ctx.target_root, packages, dry_run=ctx.dry_run)
        except CommandError as e:
            raise ConfigurationError(f"Guest tools install failed for {platform.value}: {e}") from e

        for unit in services:
            with ctx.outcome.best_effort(self.step_id, f"enable {unit}"):
                enable_service(ctx.target_root, unit, dry_run=ctx.dry_run)

        logger.info("VM guest tools installed for %s", platform.value)
        return f"{platform.value}: {' '.join(packages)}"
