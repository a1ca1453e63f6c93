from __future__ import annotations

import argparse
import logging
from typing import List, Optional, Sequence

from rich.console import Console
from rich.panel import Panel

from .errors import ConfigError, InstallerError, UserAborted
from .gate import DestructiveActionGate
from .lib.block import list_block_devices
from .lib.env import InstallerConfig, load_config
from .lib.firmware import probe_environment
from .lib.manifests import load_catalog
from .logging_utils import DEFAULT_LOG_PATH, configure_logging
from .outcome import PipelineOutcome, RunState
from .pipeline import InstallContext, PipelineResult, Stage, run_pipeline
from .planning import gather_plan, review
from .prompts import Prompter, RichPrompter
from .state_store import save_outcome
from .steps import (
    BootstrapStep,
    ConfigureStep,
    EnableDisplayManagerStep,
    FormatStep,
    InstallBootloaderStep,
    InstallDesktopStep,
    InstallNvidiaStep,
    InstallOptionalStep,
    InstallVmToolsStep,
    MountStep,
    PartitionStep,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ABORTED = 2


def build_stages() -> List[Stage]:
    return [
        PartitionStep(),
        FormatStep(),
        MountStep(),
        BootstrapStep(),
        InstallDesktopStep(),
        InstallOptionalStep(),
        ConfigureStep(),
        InstallNvidiaStep(),
        InstallVmToolsStep(),
        InstallBootloaderStep(),
        EnableDisplayManagerStep(),
    ]


def report(console: Console, result: PipelineResult, *, target_root: str, log_path: str) -> None:
    outcome = result.outcome
    lines = [f"{e.status.value.upper():9} {e.stage}  {e.detail}" for e in outcome.entries]

    remediation = outcome.remediation_items()
    if remediation:
        lines += ["", "Needs manual attention after install:"]
        lines += [f"  - {item}" for item in remediation]

    if result.state is RunState.COMPLETED:
        lines += ["", f"Next steps: umount -R {target_root} && reboot"]
        style = "yellow" if remediation else "green"
    elif result.state is RunState.ABORTED:
        style = "yellow"
    else:
        lines += ["", f"Failed stage: {result.failed_stage}", f"Error: {result.error}"]
        style = "red"

    lines += ["", f"Full log: {log_path}"]
    console.print(Panel("\n".join(lines), title=f"Installation {result.state.value}", border_style=style))


def run(
    *,
    config: Optional[InstallerConfig] = None,
    prompter: Optional[Prompter] = None,
    console: Optional[Console] = None,
) -> int:
    """Plan interactively, then run the pipeline. Returns the exit code."""

    console = console or Console()
    if config is None:
        try:
            config = load_config()
        except ConfigError as e:
            configure_logging(log_path=DEFAULT_LOG_PATH)
            logger.error("[FAILED] configuration: %s", e)
            console.print(f"[bold red]ERROR:[/] {e}")
            return EXIT_FAILED
    prompter = prompter or RichPrompter(console)

    log_path = configure_logging(log_path=config.log_path)
    if config.dry_run:
        logger.info("Dry run: commands are logged, not executed")

    gate = DestructiveActionGate(prompter)
    outcome = PipelineOutcome()

    try:
        env = probe_environment()
        catalog = load_catalog()
        devices = list_block_devices()
        plan = gather_plan(
            prompter=prompter,
            gate=gate,
            env=env,
            devices=devices,
            catalog=catalog,
            config=config,
        )
        review(prompter, plan)
    except UserAborted as e:
        logger.warning("[ABORTED] %s", e)
        console.print(f"[yellow]Aborted:[/] {e}")
        return EXIT_ABORTED
    except InstallerError as e:
        logger.error("[FAILED] planning: %s", e)
        console.print(f"[bold red]ERROR:[/] {e}")
        return EXIT_FAILED

    summary = plan.summary()

    def checkpoint(o: PipelineOutcome) -> None:
        save_outcome(config.outcome_path, o, plan_summary=summary)

    ctx = InstallContext(plan=plan, config=config, gate=gate, catalog=catalog, outcome=outcome)
    try:
        result = run_pipeline(ctx, build_stages(), checkpoint=checkpoint)
    except Exception:
        logger.exception("Installer crashed")
        outcome.state = RunState.FAILED
        raise
    finally:
        checkpoint(outcome)

    report(console, result, target_root=config.target_root, log_path=log_path)

    if result.state is RunState.COMPLETED:
        return EXIT_OK
    if result.state is RunState.ABORTED:
        return EXIT_ABORTED
    return EXIT_FAILED


def main(argv: Optional[Sequence[str]] = None) -> int:
    p = argparse.ArgumentParser(
        prog="archtui-installer",
        description=(
            "Interactive Arch Linux installer. All choices are made through prompts; "
            "paths and dry-run mode come from ARCHTUI_* environment variables."
        ),
    )
    p.parse_args(argv)
    return run()
