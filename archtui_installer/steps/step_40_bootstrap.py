from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ..errors import BootstrapError
from ..lib.block import is_mounted
from ..lib.fstab import entries_for_mounts, write_fstab
from ..lib.pkg import pacstrap
from ..pipeline import InstallContext

logger = logging.getLogger(__name__)

# A populated root has at least these.
MUST_EXIST = ("etc", "usr/bin")


class BootstrapStep:
    step_id = "40_bootstrap"
    required = True

    def skip_reason(self, ctx: InstallContext) -> Optional[str]:
        return None

    def run(self, ctx: InstallContext) -> str:
        target_root = ctx.target_root
        if not ctx.mounts or not is_mounted(target_root, dry_run=ctx.dry_run):
            raise BootstrapError(f"{target_root} is not mounted; refusing to bootstrap")

        packages = ctx.catalog.base_packages(ctx.plan.kernel)
        try:
            pacstrap(target_root, packages, dry_run=ctx.dry_run)
        except RuntimeError as e:
            raise BootstrapError(f"pacstrap failed: {e}") from e

        if not ctx.dry_run:
            missing = [rel for rel in MUST_EXIST if not (Path(target_root) / rel).is_dir()]
            if missing:
                raise BootstrapError(f"Base system not populated under {target_root}: missing {', '.join(missing)}")

        try:
            entries = entries_for_mounts(target_root, ctx.mounts, dry_run=ctx.dry_run)
            fstab_path = write_fstab(target_root, entries, dry_run=ctx.dry_run)
        except (RuntimeError, OSError, ValueError) as e:
            raise BootstrapError(f"Generating fstab failed: {e}") from e

        logger.info("Base system installed at %s", target_root)
        return f"{len(packages)} base packages; fstab at {fstab_path}"
