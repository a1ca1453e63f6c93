"""Two-stage confirmation for everything that erases data.

Stage one happens during planning (``request``): the operator agrees to a
category of action. Stage two happens immediately before the command runs
(``authorize``): the operator sees the exact device paths and confirms again.
Destructive helpers only accept an ``Authorization`` issued by ``authorize``.
Approvals live in the gate instance, so nothing carries over between runs.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Sequence, Set, Tuple

from .errors import UserAborted
from .prompts import Prompter

logger = logging.getLogger(__name__)

_ISSUER = object()


class Category(enum.Enum):
    PARTITION = "partition"
    FORMAT = "format"


@dataclass(frozen=True)
class Authorization:
    category: Category
    paths: Tuple[str, ...]
    issuer: object = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.issuer is not _ISSUER:
            raise UserAborted("Authorization must come from the destructive action gate")

    def require(self, category: Category, paths: Sequence[str]) -> None:
        if category is not self.category:
            raise UserAborted(f"{category.value} is not covered by a {self.category.value} authorization")
        missing = [p for p in paths if p not in self.paths]
        if missing:
            raise UserAborted(f"Not authorized for {', '.join(missing)}")


class DestructiveActionGate:
    def __init__(self, prompter: Prompter) -> None:
        self._prompter = prompter
        self._requested: Set[Category] = set()

    def request(self, category: Category, question: str) -> bool:
        """Planning-time confirmation for a category of destructive action."""

        granted = self._prompter.confirm(question)
        logger.info("Gate request %s: %s", category.value, "granted" if granted else "declined")
        if granted:
            self._requested.add(category)
        else:
            self._requested.discard(category)
        return granted

    def is_requested(self, category: Category) -> bool:
        return category in self._requested

    def authorize(self, category: Category, paths: Sequence[str], description: str) -> Authorization:
        """Final confirmation, showing the concrete paths about to be erased."""

        if category not in self._requested:
            raise UserAborted(f"{category.value} was not approved during planning")
        if not paths or any(not p for p in paths):
            raise UserAborted(f"Refusing to confirm {category.value} without concrete device paths")

        listing = "\n".join(f"  {p}" for p in paths)
        question = (
            f"{description}\n\n{listing}\n\n"
            "This is irreversible and will erase data. Are you 100% sure?"
        )
        if not self._prompter.confirm(question, danger=True):
            logger.warning("[ABORTED] Final %s confirmation declined for %s", category.value, ", ".join(paths))
            raise UserAborted(f"Operator declined {category.value} of {', '.join(paths)}")

        logger.info("Gate authorized %s for %s", category.value, ", ".join(paths))
        return Authorization(category=category, paths=tuple(paths), issuer=_ISSUER)
