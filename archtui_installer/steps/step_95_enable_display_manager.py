from __future__ import annotations

import logging
from typing import Optional

from ..errors import ConfigurationError
from ..lib.command import CommandError
from ..lib.pkg import enable_service
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class EnableDisplayManagerStep:
    step_id = "95_enable_display_manager"
    required = False

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        if not ctx.plan.packages.display_manager:
            return "no display manager selected"
        return None

    def run(self, ctx: InstallContext) -> str:
        dm = ctx.plan.packages.display_manager or ""
        try:
            enable_service(ctx.target_root, dm, dry_run=ctx.dry_run)
        except CommandError as e:
            raise ConfigurationError(f"Failed to enable display manager {dm}: {e}") from e
        return dm
