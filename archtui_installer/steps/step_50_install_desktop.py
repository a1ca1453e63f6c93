from __future__ import annotations

import logging
from typing import Optional

from ..errors import ConfigurationError
from ..lib.command import CommandError
from ..lib.pkg import pacman_install
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class InstallDesktopStep:
    step_id = "50_install_desktop"
    required = False

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        pkgs = ctx.plan.packages
        if not pkgs.desktop and not pkgs.audio:
            return "no desktop or audio packages selected"
        return None

    def run(self, ctx: InstallContext) -> str:
        pkgs = ctx.plan.packages
        packages = pkgs.desktop.union(pkgs.audio)
        try:
            pacman_install(ctx.target_root, packages, refresh=True, dry_run=ctx.dry_run)
        except CommandError as e:
            raise ConfigurationError(f"Installing {pkgs.desktop_tag} desktop failed: {e}") from e

        logger.info("Desktop stack installed (desktop=%s audio=%s)", pkgs.desktop_tag, bool(pkgs.audio))
        return f"{pkgs.desktop_tag}: {len(packages)} packages"
