from __future__ import annotations

import logging
from typing import Optional

from ..errors import FormatError
from ..gate import Category
from ..lib.storage import format_partitions
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)


class FormatStep:
    step_id = "20_format"
    required = True

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        if not ctx.plan.format.do_format:
            return "keeping existing filesystems"
        return None

    def run(self, ctx: InstallContext) -> str:
        plan = ctx.plan
        fs = plan.format.root_filesystem
        if fs is None:
            raise FormatError("No root filesystem chosen")

        what = f"{fs.value} on root"
        if plan.target.efi_created:
            what += ", FAT32 on the new ESP"
        auth = ctx.gate.authorize(
            Category.FORMAT,
            plan.destructive_paths(),
            f"About to create filesystems ({what}):",
        )
        done = format_partitions(
            root_part=plan.target.root_partition,
            root_fs=fs,
            esp_part=plan.target.efi_partition if plan.target.efi_created else None,
            auth=auth,
            dry_run=ctx.dry_run,
        )
        return "formatted " + ", ".join(done)
