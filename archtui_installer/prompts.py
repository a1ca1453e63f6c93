from __future__ import annotations

import logging
from typing import List, Optional, Protocol, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .errors import UserAborted

logger = logging.getLogger(__name__)

Choice = Tuple[str, str]  # (tag, description)


class Prompter(Protocol):
    """Blocking operator input. Every method may raise UserAborted."""

    def confirm(self, question: str, *, danger: bool = False) -> bool:
        ...

    def choose(self, title: str, choices: Sequence[Choice], *, default: Optional[str] = None) -> str:
        ...

    def choose_many(self, title: str, choices: Sequence[Choice]) -> List[str]:
        ...

    def ask(self, question: str, *, default: Optional[str] = None) -> str:
        ...

    def ask_secret(self, question: str) -> str:
        ...

    def show(self, title: str, rows: Sequence[Tuple[str, str]]) -> None:
        ...


class RichPrompter:
    """Terminal prompts rendered with rich."""

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console()

    def _guard(self, fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (KeyboardInterrupt, EOFError) as e:
            self.console.print()
            raise UserAborted("Cancelled") from e

    def confirm(self, question: str, *, danger: bool = False) -> bool:
        if danger:
            self.console.print(Panel(question, title="WARNING", border_style="red"))
            return bool(self._guard(Confirm.ask, "[bold red]Proceed?[/]", console=self.console, default=False))
        return bool(self._guard(Confirm.ask, question, console=self.console))

    def _table(self, title: str, choices: Sequence[Choice]) -> None:
        table = Table(title=title, show_header=False)
        table.add_column("#", justify="right", style="cyan")
        table.add_column("Option", style="bold")
        table.add_column("Description")
        for i, (tag, desc) in enumerate(choices, 1):
            table.add_row(str(i), tag, desc)
        self.console.print(table)

    def _resolve(self, answer: str, choices: Sequence[Choice]) -> Optional[str]:
        answer = answer.strip()
        tags = [tag for tag, _ in choices]
        if answer in tags:
            return answer
        if answer.isdigit() and 1 <= int(answer) <= len(tags):
            return tags[int(answer) - 1]
        return None

    def choose(self, title: str, choices: Sequence[Choice], *, default: Optional[str] = None) -> str:
        if not choices:
            raise UserAborted(f"Nothing to choose for: {title}")
        self._table(title, choices)
        while True:
            answer = self._guard(Prompt.ask, "Select", console=self.console, default=default)
            picked = self._resolve(answer or "", choices)
            if picked is not None:
                return picked
            self.console.print(f"[red]Invalid choice:[/] {answer}")

    def choose_many(self, title: str, choices: Sequence[Choice]) -> List[str]:
        self._table(title, choices)
        while True:
            answer = self._guard(
                Prompt.ask, "Select (space separated, empty for none)", console=self.console, default=""
            )
            picked: List[str] = []
            invalid: List[str] = []
            for token in (answer or "").replace(",", " ").split():
                tag = self._resolve(token, choices)
                if tag is None:
                    invalid.append(token)
                elif tag not in picked:
                    picked.append(tag)
            if not invalid:
                return picked
            self.console.print(f"[red]Invalid choices:[/] {' '.join(invalid)}")

    def ask(self, question: str, *, default: Optional[str] = None) -> str:
        while True:
            answer = (self._guard(Prompt.ask, question, console=self.console, default=default) or "").strip()
            if answer:
                return answer
            self.console.print("[red]A value is required[/]")

    def ask_secret(self, question: str) -> str:
        while True:
            first = self._guard(Prompt.ask, question, console=self.console, password=True) or ""
            second = self._guard(Prompt.ask, "Repeat to confirm", console=self.console, password=True) or ""
            if first and first == second:
                return first
            self.console.print("[red]Passwords are empty or do not match[/]")

    def show(self, title: str, rows: Sequence[Tuple[str, str]]) -> None:
        table = Table(title=title, show_header=False)
        table.add_column("Setting", style="bold cyan")
        table.add_column("Value")
        for key, value in rows:
            table.add_row(key, value)
        self.console.print(table)
