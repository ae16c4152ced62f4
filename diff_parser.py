"""Patch parsing and file filtering using the unidiff library."""

import logging
from dataclasses import dataclass, field

from unidiff import PatchSet
from unidiff.errors import UnidiffParseError

from github_client import ChangedFile

logger = logging.getLogger(__name__)

# Files with more changed lines than this are skipped
MAX_FILE_CHANGES = 500


@dataclass
class DiffLineMapping:
    """Lines of the new file version that appear in the diff."""
    filename: str
    # New-file line numbers that can receive comments
    valid_lines: set[int] = field(default_factory=set)


def build_line_mapping(filename: str, patch: str | None) -> DiffLineMapping:
    """
    Build the commentable-line mapping for one file.

    GitHub's per-file ``patch`` holds only the hunks, without the
    ``---``/``+++`` header unidiff needs, so one is added here.

    GitHub only accepts inline comments on lines that appear in the diff
    (added or context lines of the new version).

    Args:
        filename: Path of the file in the PR
        patch: Patch text from the PR files API (None for binary files)

    Returns:
        DiffLineMapping; empty if there is no patch or it cannot be parsed
    """
    mapping = DiffLineMapping(filename=filename)
    if not patch:
        return mapping

    diff_text = f"--- a/{filename}\n+++ b/{filename}\n{patch}\n"
    try:
        patch_set = PatchSet(diff_text)
    except UnidiffParseError as e:
        logger.warning("Could not parse patch for %s: %s", filename, e)
        return mapping

    for patched_file in patch_set:
        for hunk in patched_file:
            for line in hunk:
                if (line.is_added or line.is_context) and line.target_line_no:
                    mapping.valid_lines.add(line.target_line_no)

    return mapping


def find_nearest_valid_line(
    mapping: DiffLineMapping,
    target_line: int,
    max_distance: int = 5,
) -> int | None:
    """
    Find the nearest valid line in the diff to the target line.

    Findings often reference lines just outside a hunk. This finds the
    closest line that we can actually comment on.

    Returns:
        Nearest valid line number, or None if none within range
    """
    if target_line in mapping.valid_lines:
        return target_line

    # Search outward from target, below first
    for distance in range(1, max_distance + 1):
        if target_line + distance in mapping.valid_lines:
            return target_line + distance
        if target_line - distance in mapping.valid_lines:
            return target_line - distance

    return None


# Extensions sent for review
CODE_EXTENSIONS = {
    '.js', '.jsx', '.ts', '.tsx', '.py', '.java',
    '.go', '.rb', '.php', '.c', '.cpp', '.cs',
}

SKIP_DIRECTORIES = {'node_modules/', 'vendor/', 'dist/', 'build/', '.git/', '__pycache__/', '.venv/'}


def should_review_file(filename: str) -> bool:
    """Check if file should be reviewed based on directory and extension."""
    for skip_dir in SKIP_DIRECTORIES:
        if filename.startswith(skip_dir) or f'/{skip_dir}' in filename:
            return False

    basename = filename.rsplit('/', 1)[-1]
    if '.' not in basename:
        return False

    extension = '.' + basename.rsplit('.', 1)[-1].lower()
    return extension in CODE_EXTENSIONS


def filter_files(
    files: list[ChangedFile],
    max_changes: int = MAX_FILE_CHANGES,
) -> list[ChangedFile]:
    """Keep changed code files that still exist and are small enough to review."""
    result = []

    for file in files:
        if file.status == 'removed' or not should_review_file(file.filename):
            continue
        if file.changes > max_changes:
            logger.info(
                "Skipping large file: %s (%d changes)", file.filename, file.changes
            )
            continue
        result.append(file)

    return result
