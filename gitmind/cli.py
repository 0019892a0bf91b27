#!/usr/bin/env python3
import asyncio
import os
from pathlib import Path
from typing import Optional

import click
import pyperclip
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.prompt import Confirm, Prompt
from rich.table import Table

from . import __version__
from .commands import DeleteBranchCommand, RenameBranchCommand, SetUpstreamCommand, branch_overview
from .config import ENV_MAPPING, Config
from .core import CommitAnalyzer, GitCommitter, MergeAnalyzer
from .errors import GitMindError, NoChanges, RateLimitError
from .factories import ProviderFactory
from .models import ActionType, APIKey, APITier, MergeStrategy
from .observers import ConsoleLogObserver, FileLogObserver
from .providers import AgentProvider, CerebrasProvider, LLMProvider
from .selector import DecisionSelector
from .vcs import GitRepoOperations

console = Console()

CONFIG_DIR_ENV_VAR = "GITMIND_CONFIG_DIR"


def build_provider(config: Config, api_key: APIKey, model: Optional[str] = None) -> LLMProvider:
    """Create the configured provider."""
    return ProviderFactory().create(
        config.provider,
        api_key,
        model=model or config.default_model,
        base_url=config.base_url,
        max_attempts=config.max_retries,
    )


def _spinner(description: str, coro):
    """Run a coroutine to completion while showing a spinner."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        return asyncio.run(coro)


def _require_api_key(config: Config) -> APIKey:
    api_key = config.api_key_value()
    if api_key is None:
        console.print("[red]No API key configured.[/red] Run [bold]gm config[/bold] to set one up.")
        raise click.Abort()
    return api_key


def _committer(ops: GitRepoOperations, repo_path: str, config: Config, log_file: Optional[Path]) -> GitCommitter:
    committer = GitCommitter(ops, repo_path, console)
    committer.add_observer(ConsoleLogObserver(console))
    log_file_path = log_file or config.get_log_file()
    if log_file_path:
        committer.add_observer(FileLogObserver(str(log_file_path)))
    return committer


def _print_rate_limit(error: RateLimitError) -> None:
    console.print(f"[yellow]{error.message}[/yellow]")
    console.print(f"[yellow]Try again in about {error.retry_after} seconds.[/yellow]")


@click.group()
@click.version_option(__version__, prog_name="gm")
@click.option(
    "--config-dir",
    envvar=CONFIG_DIR_ENV_VAR,
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    help="Directory holding .gitmind.toml (defaults to your home directory)",
)
@click.pass_context
def main(ctx: click.Context, config_dir: Optional[Path]):
    """
    AI-assisted git workflow.

    gm looks at your pending changes, asks an LLM how they should be
    committed (directly, on a new branch, or by merging a finished branch)
    and runs the git commands once you agree.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


@main.command()
@click.option("-m", "--message", "user_prompt", default="", help="Extra context for the model")
@click.option(
    "-c",
    "--conventional",
    is_flag=True,
    default=None,
    help="Use conventional commit messages (overrides config setting)",
)
@click.option(
    "-p",
    "--path",
    default=".",
    help="Path to git repository (defaults to current directory)",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option("-d", "--dry-run", is_flag=True, help="Show the recommendation without making changes")
@click.option("-y", "--yes", is_flag=True, help="Accept recommendations that do not need review")
@click.option(
    "-a",
    "--auto-push",
    is_flag=True,
    help="Push after committing (overrides config setting)",
)
@click.option(
    "-l",
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Optional file to log git operations (overrides config setting)",
)
@click.option("--model", help="Model to use (overrides config setting)")
@click.pass_context
def commit(
    ctx: click.Context,
    user_prompt: str,
    conventional: Optional[bool],
    path: Path,
    dry_run: bool,
    yes: bool,
    auto_push: bool,
    log_file: Optional[Path],
    model: Optional[str],
):
    """Analyze pending changes and commit them."""
    try:
        config = Config.load(ctx.obj["config_dir"])
        use_conventional = config.use_conventional_commits if conventional is None else conventional
        api_key = _require_api_key(config)

        ops = GitRepoOperations()
        repo_path = ops.toplevel(str(path.absolute()))
        analyzer = CommitAnalyzer(ops, build_provider(config, api_key, model), config.protected_branches)

        analysis = _spinner(
            "Analyzing changes...",
            analyzer.analyze(repo_path, api_key, user_prompt, use_conventional),
        )
        console.print(
            f"[blue]{analysis.branch.name}[/blue]: {analysis.snapshot.change_summary} "
            f"[dim]({analysis.snapshot.sync_status_summary})[/dim]"
        )

        selector = DecisionSelector(console, auto_accept=yes, use_conventional=use_conventional)
        if dry_run:
            selector.show(analysis.decision)
            return

        decision = selector.select(analysis.decision)
        if decision is None:
            console.print("[yellow]Cancelled, nothing was changed[/yellow]")
            return

        committer = _committer(ops, repo_path, config, log_file)
        result = asyncio.run(
            committer.execute_decision(decision, default_strategy=config.default_merge_strategy)
        )
        style = "yellow" if result.substituted else "green"
        console.print(f"[{style}]{result.message}[/{style}]" + (f" [dim]{result.commit_hash}[/dim]" if result.commit_hash else ""))

        if (auto_push or config.auto_push) and decision.action != ActionType.MERGE:
            asyncio.run(committer.push_changes())
    except NoChanges as e:
        console.print(f"[yellow]{e.message}[/yellow]")
    except RateLimitError as e:
        _print_rate_limit(e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
    except (GitMindError, ValueError) as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise click.Abort()


@main.command()
@click.option("-s", "--source", help="Branch to merge (defaults to the current branch)")
@click.option("-t", "--target", help="Branch to merge into (defaults to the parent branch)")
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in MergeStrategy], case_sensitive=False),
    help="Merge strategy (overrides config setting)",
)
@click.option(
    "-p",
    "--path",
    default=".",
    help="Path to git repository (defaults to current directory)",
    type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
)
@click.option("-d", "--dry-run", is_flag=True, help="Show the merge plan without merging")
@click.option("-y", "--yes", is_flag=True, help="Merge without asking when there are no conflicts")
@click.option(
    "-l",
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Optional file to log git operations (overrides config setting)",
)
@click.option("--model", help="Model to use (overrides config setting)")
@click.pass_context
def merge(
    ctx: click.Context,
    source: Optional[str],
    target: Optional[str],
    strategy: Optional[str],
    path: Path,
    dry_run: bool,
    yes: bool,
    log_file: Optional[Path],
    model: Optional[str],
):
    """Merge a finished branch with an AI-written merge message."""
    try:
        config = Config.load(ctx.obj["config_dir"])
        api_key = _require_api_key(config)

        ops = GitRepoOperations()
        repo_path = ops.toplevel(str(path.absolute()))
        analyzer = MergeAnalyzer(ops, build_provider(config, api_key, model), config.protected_branches)

        analysis = _spinner(
            "Analyzing merge...",
            analyzer.analyze(repo_path, api_key, source=source, target=target),
        )

        console.print(
            f"[blue]{analysis.source_branch}[/blue] → [blue]{analysis.target_branch}[/blue]: "
            f"{analysis.commit_count} commit(s) to merge"
        )
        for commit_info in analysis.commits:
            console.print(f"  [dim]{commit_info.hash[:7]}[/dim] {commit_info.message}")
        if analysis.reasoning:
            console.print(f"[dim]{analysis.reasoning}[/dim]")

        if strategy:
            chosen = MergeStrategy(strategy.lower())
        elif config.default_merge_strategy == MergeStrategy.ASK:
            chosen = analysis.suggested_strategy
        else:
            chosen = config.default_merge_strategy

        if dry_run:
            console.print(f"[bold]Strategy:[/bold] {chosen.value}")
            console.print(f"[green]{analysis.merge_message.full_message}[/green]")
            if analysis.conflicts:
                console.print(f"[red]Conflicts: {', '.join(analysis.conflicts)}[/red]")
            return

        selector = DecisionSelector(console, auto_accept=yes)
        selection = selector.select_merge(
            analysis.source_branch,
            analysis.target_branch,
            analysis.merge_message.full_message,
            chosen,
            analysis.conflicts,
        )
        if selection is None:
            console.print("[yellow]Cancelled, nothing was changed[/yellow]")
            return
        chosen, message = selection

        committer = _committer(ops, repo_path, config, log_file)
        result = asyncio.run(
            committer.merge(analysis.source_branch, analysis.target_branch, chosen, message)
        )
        console.print(f"[green]{result.message}[/green]" + (f" [dim]{result.commit_hash}[/dim]" if result.commit_hash else ""))

        if config.auto_push:
            asyncio.run(committer.push_changes(analysis.target_branch))
    except NoChanges as e:
        console.print(f"[yellow]{e.message}[/yellow]")
    except RateLimitError as e:
        _print_rate_limit(e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/yellow]")
    except (GitMindError, ValueError) as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise click.Abort()


def _repo_path_option(f):
    return click.option(
        "-p",
        "--path",
        default=".",
        help="Path to git repository (defaults to current directory)",
        type=click.Path(exists=True, file_okay=False, dir_okay=True, path_type=Path),
    )(f)


def _run_branch_command(ctx: click.Context, path: Path, build) -> None:
    """Build a branch command from ``(ops, repo_path, config)`` and run it."""
    try:
        config = Config.load(ctx.obj["config_dir"])
        ops = GitRepoOperations()
        repo_path = ops.toplevel(str(path.absolute()))
        result = asyncio.run(build(ops, repo_path, config).execute())
        console.print(f"[green]{result.message}[/green]")
    except (GitMindError, ValueError) as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise click.Abort()


@main.group()
def branch():
    """List and manage local branches."""


@branch.command("list")
@_repo_path_option
@click.pass_context
def branch_list(ctx: click.Context, path: Path):
    """Show every local branch with its type, parent and divergence."""
    try:
        config = Config.load(ctx.obj["config_dir"])
        ops = GitRepoOperations()
        repo_path = ops.toplevel(str(path.absolute()))
        current = ops.current_branch(repo_path)
        contexts = branch_overview(ops, repo_path, config.protected_branches)
    except (GitMindError, ValueError) as e:
        console.print(f"[red]Error: {str(e)}[/red]")
        raise click.Abort()

    table = Table()
    table.add_column("Branch")
    table.add_column("Type")
    table.add_column("Parent")
    table.add_column("Upstream")
    table.add_column("Ahead/Behind")
    table.add_column("Commits")
    for context in contexts:
        name = f"* {context.name}" if context.name == current else context.name
        table.add_row(
            name,
            context.branch_type.value,
            context.parent or "-",
            context.upstream or "-",
            f"{context.ahead_by}/{context.behind_by}",
            str(context.commit_count),
        )
    console.print(table)


@branch.command("delete")
@click.argument("name")
@click.option("-f", "--force", is_flag=True, help="Delete even if the branch is not fully merged")
@_repo_path_option
@click.pass_context
def branch_delete(ctx: click.Context, name: str, force: bool, path: Path):
    """Delete a local branch. Protected branches are refused."""
    _run_branch_command(
        ctx,
        path,
        lambda ops, repo_path, config: DeleteBranchCommand(
            ops, repo_path, name, force=force, protected_branches=config.protected_branches
        ),
    )


@branch.command("rename")
@click.argument("old_name")
@click.argument("new_name")
@_repo_path_option
@click.pass_context
def branch_rename(ctx: click.Context, old_name: str, new_name: str, path: Path):
    """Rename a local branch. Protected branches are refused."""
    _run_branch_command(
        ctx,
        path,
        lambda ops, repo_path, config: RenameBranchCommand(
            ops, repo_path, old_name, new_name, protected_branches=config.protected_branches
        ),
    )


@branch.command("upstream")
@click.argument("branch_name", required=False)
@click.argument("upstream", required=False)
@_repo_path_option
@click.pass_context
def branch_upstream(ctx: click.Context, branch_name: Optional[str], upstream: Optional[str], path: Path):
    """Set the upstream of BRANCH_NAME (defaults to the current branch and origin)."""
    _run_branch_command(
        ctx,
        path,
        lambda ops, repo_path, config: SetUpstreamCommand(ops, repo_path, branch_name, upstream),
    )


def _print_settings(config: Config, config_path: Path) -> None:
    file_exists = config_path.exists()
    overridden = {field for env_var, field in ENV_MAPPING.items() if env_var in os.environ}

    console.print("\n[bold]Current Configuration Settings:[/bold]")
    if file_exists:
        console.print(f"[dim]Config file: {str(config_path).replace(os.sep, '/')}[/dim]")
    else:
        console.print("[dim]Using default values (no config file found)[/dim]")

    table = Table()
    table.add_column("Setting")
    table.add_column("Value")
    table.add_column("Source")
    for name in Config.model_fields:
        if name == "api_key":
            api_key = config.api_key_value()
            value = api_key.masked if api_key else "not set"
        else:
            value = getattr(config, name)
            if isinstance(value, list):
                value = ", ".join(value)
            elif hasattr(value, "value"):
                value = value.value
        if name in overridden:
            source = "env"
        elif file_exists:
            source = "config"
        else:
            source = "default"
        table.add_row(name, str(value if value is not None else "None"), source)
    console.print(table)


def _interactive_setup(config: Config, config_dir: Optional[Path]) -> None:
    factory = ProviderFactory()
    provider = Prompt.ask("Provider", choices=factory.names, default=config.provider, console=console)

    current_key = config.api_key if provider == config.provider else None
    key = Prompt.ask(
        "API key" + (" (leave empty to keep the current key)" if current_key else ""),
        password=True,
        default="",
        show_default=False,
        console=console,
    ).strip() or current_key

    tier = Prompt.ask(
        "API tier",
        choices=[APITier.FREE.value, APITier.PRO.value],
        default=config.api_tier.value if config.api_tier != APITier.UNKNOWN else APITier.FREE.value,
        console=console,
    )
    model_default = config.default_model
    if provider != config.provider:
        if provider == "cerebras":
            model_default = CerebrasProvider.DEFAULT_MODEL
        else:
            model_default = AgentProvider.DEFAULT_MODELS.get(provider, "")
    model = Prompt.ask("Model", default=model_default or None, console=console)
    conventional = Confirm.ask(
        "Use conventional commits?", default=config.use_conventional_commits, console=console
    )
    protected = Prompt.ask(
        "Protected branches (comma separated)",
        default=", ".join(config.protected_branches),
        console=console,
    )
    auto_push = Confirm.ask("Push automatically after committing?", default=config.auto_push, console=console)

    updated = config.model_copy(
        update={
            "provider": provider,
            "api_key": key or None,
            "api_tier": APITier.parse(tier),
            "default_model": model or config.default_model,
            "use_conventional_commits": conventional,
            "protected_branches": [b.strip() for b in protected.split(",") if b.strip()],
            "auto_push": auto_push,
        }
    )
    config_path = updated.save(config_dir)
    console.print(f"[green]Configuration saved to {config_path}[/green]")

    api_key = updated.api_key_value()
    if api_key and Confirm.ask("Test the API key now?", default=False, console=console):
        try:
            asyncio.run(build_provider(updated, api_key).validate_key())
        except RateLimitError as e:
            _print_rate_limit(e)
        except GitMindError as e:
            console.print(f"[red]API key check failed: {e.message}[/red]")
        else:
            console.print("[green]API key works[/green]")


@main.command("config")
@click.option("--list", "list_settings", is_flag=True, help="Display current configuration settings")
@click.option(
    "--show-path",
    is_flag=True,
    help="Display the config file location and copy it to clipboard",
)
@click.pass_context
def config_command(ctx: click.Context, list_settings: bool, show_path: bool):
    """Set up or inspect gitmind configuration."""
    config_dir = ctx.obj["config_dir"]
    config = Config.load(config_dir)
    config_path = Config.config_path(config_dir)

    if list_settings:
        _print_settings(config, config_path)
        return

    if show_path:
        if not config_path.exists():
            Config().save(config_dir)
            console.print("[yellow]Created new config file with default values[/yellow]")
        console.print(f"[green]Config file location:[/green] {config_path}")
        try:
            pyperclip.copy(str(config_path))
        except pyperclip.PyperclipException as e:
            console.print(f"[yellow]Could not copy to clipboard: {e}[/yellow]")
        else:
            console.print("[green]Path copied to clipboard![/green]")
        return

    try:
        _interactive_setup(config, config_dir)
    except KeyboardInterrupt:
        console.print("\n[yellow]Setup cancelled, nothing was saved[/yellow]")


if __name__ == "__main__":
    main()
