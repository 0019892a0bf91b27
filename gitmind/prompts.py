"""Prompts for the gitmind assistant."""
from typing import List, Sequence

from .models import BranchContext, FileBlockKind, FileContentBlock
from .schemas import AnalysisRequest, MergeMessageRequest

# Rough size of a token, used to turn a token budget into characters.
CHARS_PER_TOKEN = 4
TRUNCATION_MARKER = "... (diff truncated for token limit) ..."
MAX_RECENT_COMMITS = 3
MAX_MERGE_PROMPT_COMMITS = 30

ANALYSIS_SYSTEM_PROMPT = '''You are an expert Git workflow assistant.
You look at pending changes in a repository and recommend how to record them.

Guidelines:
1. Commit messages explain what changed and why, in the imperative mood
2. Commit titles stay under 72 characters and do not end with a period
3. Work on protected branches belongs on a new branch
4. A small change that fits the topic of the current branch can be committed directly
5. A branch with several finished commits and no pending work may be ready to merge
6. Be honest about uncertainty; lower your confidence when the intent is unclear

Answer only with JSON matching the requested schema.
'''

MERGE_SYSTEM_PROMPT = '''You are an expert Git workflow assistant.
You write merge commit messages that summarize the work done on a branch
and suggest the most suitable merge strategy.

Guidelines:
1. The first line names the branch and its overall purpose, under 72 characters
2. The body summarizes the merged commits, grouped by theme when possible
3. Suggest squash for many small or noisy commits
4. Suggest fast-forward when history is linear and every commit stands on its own
5. Suggest regular to keep a visible merge commit for larger features

Answer only with JSON matching the requested schema.
'''


def reduce_diff_context(diff: str, max_tokens: int) -> str:
    """Trim ``diff`` to about ``max_tokens`` tokens, cutting only at line ends."""
    max_chars = max_tokens * CHARS_PER_TOKEN
    if len(diff) <= max_chars:
        return diff

    # Leave room for the marker so the result stays within max_chars.
    budget = max_chars - len(TRUNCATION_MARKER) - 1
    kept: List[str] = []
    size = 0
    for line in diff.split("\n"):
        if size + len(line) + 1 > budget:
            kept.append("\n" + TRUNCATION_MARKER)
            break
        kept.append(line + "\n")
        size += len(line) + 1
    return "".join(kept)


def render_file_blocks(blocks: Sequence[FileContentBlock]) -> str:
    """Describe new files for the model without pretending they are a diff."""
    sections = []
    for block in blocks:
        if block.kind == FileBlockKind.TEXT:
            header = f"File: {block.path} ({block.total_lines} lines)"
            if block.truncated:
                header += f", first {len(block.lines)} lines shown"
            sections.append(header + "\n" + "\n".join(block.lines))
        elif block.kind == FileBlockKind.DIRECTORY:
            sections.append(f"Directory: {block.path}/")
        elif block.kind == FileBlockKind.LARGE:
            sections.append(f"File: {block.path} (large file: {block.size} bytes, content omitted)")
        elif block.kind == FileBlockKind.BINARY:
            sections.append(f"File: {block.path} (binary file, content omitted)")
        else:
            sections.append(f"File: {block.path} (unreadable)")
    return "\n\n".join(sections)


def describe_branch(name: str, branch: BranchContext) -> str:
    details = []
    if branch.parent:
        details.append(f"parent: {branch.parent}")
        details.append(f"{branch.commit_count} commit(s) since parent")
    if branch.is_protected:
        details.append("protected")
    details.append(f"type: {branch.branch_type.value}")
    return f"{name} ({', '.join(details)})"


def _branch_guidance(branch: BranchContext) -> str:
    if branch.is_protected:
        return (
            f"Branch guidance: '{branch.name}' is a protected branch. Strongly suggest "
            "action=\"create-branch\" with a descriptive branch name (for example "
            "feature/<topic> or fix/<topic>) instead of committing directly."
        )
    return (
        f"Branch guidance: '{branch.name}' is a {branch.branch_type.value} branch. "
        "If these changes fit the topic of this branch, recommend committing directly. "
        "If they start an unrelated piece of work, recommend creating a new branch."
    )


def build_analysis_prompt(request: AnalysisRequest) -> str:
    """Build the user prompt for a commit analysis."""
    snapshot = request.snapshot
    branch = request.branch
    parts = []

    parts.append(f"Repository: {snapshot.path}")
    if branch is not None:
        parts.append(f"Current branch: {describe_branch(snapshot.current_branch, branch)}")
    else:
        parts.append(f"Current branch: {snapshot.current_branch}")
    parts.append(f"Changes: {snapshot.change_summary}")
    parts.append("")

    recent = list(request.recent_log[:MAX_RECENT_COMMITS])
    if recent:
        if branch is not None and branch.parent:
            parts.append(f"Recent commits on this branch since {branch.parent}:")
        else:
            parts.append("Recent commits:")
        parts.extend(f"- {subject}" for subject in recent)
        parts.append("")

    if request.merge_opportunity:
        parts.append("Merge opportunity:")
        parts.append(
            f"The working tree is clean and this branch has {request.merge_commit_count} "
            f"commit(s) that are not on '{request.merge_target_branch}'. The branch may be "
            f"ready to merge into '{request.merge_target_branch}'. If so, recommend "
            "action=\"merge\" and use commit_message for the merge commit message."
        )
        parts.append("")

    reduce = request.api_key.should_reduce_context or snapshot.is_large_changeset
    max_tokens = request.api_key.max_tokens_per_request

    if request.diff:
        diff = reduce_diff_context(request.diff, max_tokens) if reduce else request.diff
        parts.append("Changes (git diff):")
        parts.append(diff)
        parts.append("")
    elif request.file_blocks:
        content = render_file_blocks(request.file_blocks)
        if reduce:
            content = reduce_diff_context(content, max_tokens)
        parts.append("New files (not yet staged):")
        parts.append(content)
        parts.append("")

    if request.user_prompt:
        parts.append(f"User context: {request.user_prompt}")
        parts.append("")

    if branch is not None:
        parts.append(_branch_guidance(branch))
        parts.append("")

    message_line = "1. A clear, concise commit message"
    if request.use_conventional:
        message_line += " following conventional commits format (type(scope): description)"
    parts.append("Based on these changes, provide:")
    parts.append(message_line)
    parts.append(
        "2. Your recommendation: \"commit-direct\" to commit on the current branch, "
        "\"create-branch\" to start a new branch (include branch_name), "
        "\"merge\" when the branch is ready to merge, or \"review\" when the changes "
        "need a closer look first"
    )
    parts.append("3. Brief reasoning for your recommendation")
    parts.append("4. Alternative approaches if applicable")
    return "\n".join(parts) + "\n"


def build_merge_message_prompt(request: MergeMessageRequest) -> str:
    """Build the user prompt asking for a merge message and strategy."""
    parts = [
        f"Source branch: {request.source_branch}",
        f"Target branch: {request.target_branch}",
        f"Commits to merge: {request.commit_count}",
        "",
    ]
    if request.commits:
        parts.append("Commit subjects:")
        parts.extend(f"- {subject}" for subject in request.commits[:MAX_MERGE_PROMPT_COMMITS])
        if request.commit_count > MAX_MERGE_PROMPT_COMMITS:
            parts.append(f"- ... and {request.commit_count - MAX_MERGE_PROMPT_COMMITS} more")
        parts.append("")
    parts.append("Based on these commits, provide:")
    parts.append("1. A merge commit message")
    parts.append("2. The merge strategy to use: squash, regular or fast-forward")
    parts.append("3. Brief reasoning for the strategy")
    return "\n".join(parts) + "\n"
