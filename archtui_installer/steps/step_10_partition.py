from __future__ import annotations

import logging
from typing import Optional

from ..errors import PlanningError
from ..gate import Category
from ..lib.storage import apply_layout, settle_partitions
from ..model import AutoPartition
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class PartitionStep:
    step_id = "10_partition"
    required = True

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        if ctx.plan.target.auto_partition is not AutoPartition.YES:
            return f"using existing partition {ctx.plan.target.root_partition}"
        return None

    def run(self, ctx: InstallContext) -> str:
        target = ctx.plan.target
        layout = ctx.plan.layout
        if layout is None or layout.disk != target.disk:
            raise PlanningError(f"No partition layout planned for {target.disk}")

        # The target must point at the partitions this layout creates.
        if layout.path_for("root") != target.root_partition or layout.path_for("esp") != (
            target.efi_partition if target.efi_created else None
        ):
            raise PlanningError(f"Target paths do not match the planned layout on {target.disk}")

        auth = ctx.gate.authorize(
            Category.PARTITION,
            [layout.disk, *(p.path for p in layout.partitions)],
            f"About to wipe the partition table on {layout.disk} and create:\n{layout.describe()}",
        )
        apply_layout(layout, auth, dry_run=ctx.dry_run)
        settle_partitions(
            layout,
            attempts=ctx.config.device_wait_attempts,
            delay=ctx.config.device_wait_delay,
            dry_run=ctx.dry_run,
        )

        logger.info("Partitions created: root=%s efi=%s", target.root_partition, target.efi_partition or "<none>")
        return layout.describe()
