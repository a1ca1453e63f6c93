from __future__ import annotations

import logging
from typing import Optional

from ..errors import ConfigurationError
from ..lib.command import CommandError
from ..lib.pkg import pacman_install
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class InstallNvidiaStep:
    step_id = "70_install_nvidia"
    required = False

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        if not ctx.plan.install_nvidia:
            return "NVIDIA driver not requested"
        return None

    def run(self, ctx: InstallContext) -> str:
        # nvidia-dkms builds against the headers installed with the base system.
        packages = ctx.plan.nvidia_packages
        try:
            pacman_install(ctx.target_root, packages, dry_run=ctx.dry_run)
        except CommandError as e:
            raise ConfigurationError(f"NVIDIA driver install failed: {e}") from e
        return " ".join(packages)
