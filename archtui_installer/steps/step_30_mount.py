from __future__ import annotations

import logging
from typing import Optional

from ..lib.storage import mount_targets
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class MountStep:
    step_id = "30_mount"
    required = True

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        return None

    def run(self, ctx: InstallContext) -> str:
        target = ctx.plan.target
        ctx.mounts = mount_targets(
            target_root=ctx.target_root,
            root_part=target.root_partition,
            esp_part=target.efi_partition,
            dry_run=ctx.dry_run,
        )
        return ", ".join(f"{dev} -> {mp}" for dev, mp in ctx.mounts)
