from __future__ import annotations

import logging
from typing import Optional

from ..errors import ConfigurationError
from ..lib.command import CommandError
from ..lib.pkg import pacman_install
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class InstallOptionalStep:
    step_id = "55_install_optional"
    required = False

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        if not ctx.plan.packages.optional:
            return "no optional packages selected"
        return None

    def run(self, ctx: InstallContext) -> str:
        optional = ctx.plan.packages.optional
        try:
            pacman_install(ctx.target_root, optional, dry_run=ctx.dry_run)
        except CommandError as e:
            raise ConfigurationError(f"Some optional packages failed to install: {e}") from e
        return " ".join(optional)
