"""Interactive terminal selector for decisions and merges.

The selector shows what the model recommends and lets the user accept it,
pick an alternative, adjust the message or branch name, or cancel. It
returns ``None`` on cancellation and never runs git itself.
"""
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from .commit_message import strategy_for
from .models import ActionType, Decision, MergeStrategy

EXECUTABLE_ACTIONS = (ActionType.COMMIT_DIRECT, ActionType.CREATE_BRANCH, ActionType.MERGE)

CONFIDENCE_STYLES = {"high": "green", "medium": "yellow", "low": "red"}

MERGE_STRATEGY_CHOICES = [
    MergeStrategy.REGULAR.value,
    MergeStrategy.SQUASH.value,
    MergeStrategy.FAST_FORWARD.value,
    MergeStrategy.REBASE.value,
]


class DecisionSelector:
    """Prompts the user to accept, adjust or reject a :class:`Decision`.

    Attributes:
        console (Console): Rich console for output and prompts
        auto_accept (bool): Accept decisions that do not require review
            without asking
        use_conventional (bool): Parse edited messages as conventional commits
    """

    def __init__(
        self,
        console: Optional[Console] = None,
        auto_accept: bool = False,
        use_conventional: bool = False,
    ):
        self.console = console or Console()
        self.auto_accept = auto_accept
        self.use_conventional = use_conventional

    def show(self, decision: Decision) -> None:
        level = decision.confidence_level
        style = CONFIDENCE_STYLES[level]
        lines = [
            f"[bold]Action:[/bold] {decision.action.value}",
            f"[bold]Confidence:[/bold] [{style}]{decision.confidence:.0%} ({level})[/{style}]",
        ]
        if decision.branch_name:
            lines.append(f"[bold]Branch:[/bold] {decision.branch_name}")
        if decision.target_branch:
            lines.append(f"[bold]Merge into:[/bold] {decision.target_branch}")
        lines.append(f"[bold]Reasoning:[/bold] {decision.reasoning}")
        if decision.suggested_message:
            lines.append("")
            lines.append(f"[green]{decision.suggested_message.full_message}[/green]")
        self.console.print(Panel("\n".join(lines), title="Recommendation", expand=False))

        if decision.alternatives and decision.should_show_alternatives:
            table = Table(title="Alternatives")
            table.add_column("#", justify="right")
            table.add_column("Action")
            table.add_column("Confidence", justify="right")
            table.add_column("Description")
            for i, alt in enumerate(decision.alternatives, 1):
                table.add_row(str(i), alt.action.value, f"{alt.confidence:.0%}", alt.description)
            self.console.print(table)

        if decision.requires_review:
            self.console.print("[yellow]This recommendation needs your review before it runs.[/yellow]")

    def _choices(self, decision: Decision) -> List[str]:
        choices = ["a", "m", "b", "c"]
        if decision.should_show_alternatives:
            choices.extend(str(i) for i in range(1, len(decision.alternatives) + 1))
        return choices

    def _pick_alternative(self, decision: Decision, index: int) -> Decision:
        alt = decision.alternatives[index]
        return decision.model_copy(
            update={
                "action": alt.action,
                "confidence": alt.confidence,
                "reasoning": alt.description,
                "branch_name": alt.branch_name or decision.branch_name,
                "alternatives": (),
                "review_requested": False,
            }
        )

    def _edit_message(self, decision: Decision) -> Decision:
        current = decision.suggested_message.full_message if decision.suggested_message else ""
        text = Prompt.ask("Commit message", default=current or None, console=self.console)
        try:
            message = strategy_for(self.use_conventional).build(text or "")
        except ValueError as e:
            self.console.print(f"[red]Invalid commit message: {e}[/red]")
            return decision
        return decision.model_copy(update={"suggested_message": message})

    def _edit_branch(self, decision: Decision) -> Decision:
        name = Prompt.ask("Branch name", default=decision.branch_name, console=self.console)
        name = (name or "").strip()
        if not name:
            return decision
        return decision.model_copy(update={"action": ActionType.CREATE_BRANCH, "branch_name": name})

    def _concrete_action(self, decision: Decision) -> Optional[Decision]:
        """Turn review-style actions into one that can be executed, or cancel."""
        choices = [ActionType.COMMIT_DIRECT.value, ActionType.CREATE_BRANCH.value]
        if decision.target_branch:
            choices.append(ActionType.MERGE.value)
        choices.append("cancel")
        self.console.print(
            f"[yellow]'{decision.action.value}' cannot be executed directly; choose what to do.[/yellow]"
        )
        answer = Prompt.ask("Action", choices=choices, default="cancel", console=self.console)
        if answer == "cancel":
            return None
        return decision.model_copy(update={"action": ActionType(answer), "review_requested": False})

    def complete(self, decision: Decision) -> Optional[Decision]:
        """Ask for anything the chosen action still needs."""
        if decision.action not in EXECUTABLE_ACTIONS:
            decision = self._concrete_action(decision)
            if decision is None:
                return None

        if decision.action == ActionType.CREATE_BRANCH and not decision.branch_name:
            decision = self._edit_branch(decision)
            if not decision.branch_name:
                return None

        if decision.action == ActionType.MERGE and not decision.target_branch:
            target = Prompt.ask("Merge into branch", console=self.console)
            if not target:
                return None
            decision = decision.model_copy(update={"target_branch": target.strip()})

        if decision.action != ActionType.MERGE and decision.suggested_message is None:
            decision = self._edit_message(decision)
            if decision.suggested_message is None:
                return None

        return decision

    def select(self, decision: Decision) -> Optional[Decision]:
        """Let the user settle on a decision.

        Returns:
            The decision to execute, or None if the user cancelled
        """
        self.show(decision)

        if self.auto_accept and not decision.requires_review and decision.action in EXECUTABLE_ACTIONS:
            return self.complete(decision)

        while True:
            self.console.print(
                "[dim]a: accept  m: edit message  b: new branch  c: cancel"
                + ("  1-9: pick alternative" if decision.should_show_alternatives and decision.alternatives else "")
                + "[/dim]"
            )
            answer = Prompt.ask("Choice", choices=self._choices(decision), default="a", console=self.console)
            if answer == "a":
                return self.complete(decision)
            if answer == "c":
                return None
            if answer == "m":
                decision = self._edit_message(decision)
            elif answer == "b":
                decision = self._edit_branch(decision)
            else:
                decision = self._pick_alternative(decision, int(answer) - 1)
            self.show(decision)

    def select_merge(
        self,
        source: str,
        target: str,
        message: str,
        strategy: MergeStrategy,
        conflicts: Sequence[str] = (),
    ) -> Optional[Tuple[MergeStrategy, str]]:
        """Confirm a merge, optionally changing strategy and message.

        Returns:
            ``(strategy, message)`` to merge with, or None if cancelled
        """
        if strategy == MergeStrategy.ASK:
            strategy = MergeStrategy.REGULAR

        self.console.print(
            Panel(
                f"[bold]{source}[/bold] → [bold]{target}[/bold]\n"
                f"[bold]Strategy:[/bold] {strategy.value}\n\n[green]{message}[/green]",
                title="Merge",
                expand=False,
            )
        )
        if conflicts:
            self.console.print(f"[red]Merging will conflict in: {', '.join(conflicts)}[/red]")
            if not Confirm.ask("Attempt the merge anyway?", default=False, console=self.console):
                return None

        if self.auto_accept and not conflicts:
            return strategy, message

        if not Confirm.ask("Merge with these settings?", default=True, console=self.console):
            if not Confirm.ask("Change the strategy or message instead?", default=False, console=self.console):
                return None
            answer = Prompt.ask(
                "Strategy", choices=MERGE_STRATEGY_CHOICES, default=strategy.value, console=self.console
            )
            strategy = MergeStrategy(answer)
            message = Prompt.ask("Merge message", default=message, console=self.console) or message

        return strategy, message
