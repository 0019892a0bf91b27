"""Parsers for git command output."""
import re
from typing import Dict, List, Tuple

from ..models import ChangeStatus, FileChange
from .base import CommitInfo

LOG_FORMAT = "--pretty=format:%H%n%an%n%aI%n%s%n---END---"
LOG_SEPARATOR = "---END---"

# Bytes inspected when sniffing for binary content while counting lines.
BINARY_SNIFF_BYTES = 512

_CONFLICT_MARKER = "CONFLICT"

# Checked in order; the first letter found in the two-character code wins.
_STATUS_PRECEDENCE = (
    ("A", ChangeStatus.ADDED),
    ("M", ChangeStatus.MODIFIED),
    ("D", ChangeStatus.DELETED),
    ("R", ChangeStatus.RENAMED),
    ("?", ChangeStatus.UNTRACKED),
)

_NUMSTAT_RENAME = re.compile(r"^(?P<prefix>.*)\{(?P<old>[^}]*) => (?P<new>[^}]*)\}(?P<suffix>.*)$")


def status_from_code(code: str) -> ChangeStatus:
    for letter, status in _STATUS_PRECEDENCE:
        if letter in code:
            return status
    return ChangeStatus.MODIFIED


def parse_status(output: str) -> List[FileChange]:
    """Parse ``git status --porcelain`` output into file changes.

    Lines shorter than four characters are malformed and skipped. For
    renames (``R  old -> new``) the new path is kept.
    """
    changes = []
    for line in output.split("\n"):
        if len(line) < 4:
            continue
        code = line[:2]
        path = line[3:].strip()
        if " -> " in path:
            path = path.split(" -> ", 1)[1].strip()
        changes.append(FileChange(path=path, status=status_from_code(code)))
    return changes


def _numstat_path(raw: str) -> str:
    """Resolve the destination path of a numstat entry, including renames."""
    match = _NUMSTAT_RENAME.match(raw)
    if match:
        path = match.group("prefix") + match.group("new") + match.group("suffix")
        return path.replace("//", "/")
    if " => " in raw:
        return raw.split(" => ", 1)[1]
    return raw


def parse_numstat(output: str) -> Dict[str, Tuple[int, int]]:
    """Parse ``git diff --numstat`` output into ``{path: (added, deleted)}``.

    Binary files report ``-`` for both counts and are recorded as zero.
    """
    stats = {}
    for line in output.strip().split("\n"):
        parts = line.split("\t")
        if len(parts) < 3:
            parts = line.split()
            if len(parts) < 3:
                continue
        added = int(parts[0]) if parts[0].isdigit() else 0
        deleted = int(parts[1]) if parts[1].isdigit() else 0
        stats[_numstat_path("\t".join(parts[2:]).strip())] = (added, deleted)
    return stats


def parse_log(output: str) -> List[CommitInfo]:
    """Parse log output produced with :data:`LOG_FORMAT`."""
    commits = []
    for entry in output.split(LOG_SEPARATOR):
        lines = entry.strip().split("\n")
        if len(lines) < 4:
            continue
        commits.append(
            CommitInfo(
                hash=lines[0].strip(),
                author=lines[1].strip(),
                date=lines[2].strip(),
                message=lines[3].strip(),
            )
        )
    return commits


def parse_conflict_files(output: str) -> List[str]:
    """Extract file paths from ``CONFLICT (...): Merge conflict in <path>`` lines."""
    conflicts = []
    for line in output.split("\n"):
        line = line.strip()
        if not line.startswith(_CONFLICT_MARKER):
            continue
        index = line.rfind("in ")
        if index == -1:
            continue
        path = line[index + 3:].strip()
        if path:
            conflicts.append(path)
    return conflicts


def parse_divergence(output: str) -> Tuple[int, int]:
    """Parse ``git rev-list --left-right --count a...b`` output."""
    parts = output.split()
    if len(parts) != 2:
        raise ValueError(f"unexpected rev-list output: {output!r}")
    return int(parts[0]), int(parts[1])


def is_binary(content: bytes, sniff: int = BINARY_SNIFF_BYTES) -> bool:
    return b"\x00" in content[:sniff]


def count_lines(content: bytes) -> int:
    """Count lines the way an untracked file is reported: binaries count zero.

    A trailing newline does not start an extra line.
    """
    if not content:
        return 0
    if is_binary(content):
        return 0
    lines = content.split(b"\n")
    if lines[-1] == b"":
        return len(lines) - 1
    return len(lines)
