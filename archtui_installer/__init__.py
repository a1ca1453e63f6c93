"""Arch Linux TUI installer.

Core design goals:
- Plan everything interactively, then run one forward-only pass
- Two confirmations before anything is erased
- Fail fast on load-bearing stages, record and continue on the rest
- Centralized logging and a persisted outcome record
"""

__all__ = []
