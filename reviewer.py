"""Per-file review - connects GitHub file contents + the model."""

import logging
import posixpath
import re
from dataclasses import dataclass, field

from config import call_model
from github_client import ChangedFile, PRMetadata, fetch_file_content
from models import Finding
from prompts import build_file_context, build_review_prompt
from response_parser import recover_review

logger = logging.getLogger(__name__)

# Related files larger than this are left out of the prompt
MAX_RELATED_FILE_CHARS = 10000

# import x from './a' | require('../b') | from '/c' | @import 'd'
_IMPORT_PATTERN = re.compile(
    r"""(?:import|require|from|@import)\s*\(?\s*['"](\./|\.\./|/)?([^'"]+)['"]"""
)

# Tried in order when an import has no extension
_IMPORT_EXTENSIONS = (".js", ".jsx", ".ts", ".tsx", ".scss", ".css")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass
class FileReview:
    """Review results for a single file."""

    filename: str
    summary: str
    findings: list[Finding] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Related files
# ---------------------------------------------------------------------------
def _resolve_import(filename: str, prefix: str | None, target: str) -> str:
    """Turn an import specifier into a repository path."""
    if not prefix:
        return target

    directory = posixpath.dirname(filename)
    resolved = posixpath.normpath(posixpath.join(directory, prefix + target))
    return resolved.lstrip("/")


def find_related_paths(filename: str, content: str) -> list[str]:
    """
    List repository paths that *content* imports.

    Extensionless imports expand to every known extension, plus an
    ``index`` file inside a directory of that name.

    Args:
        filename: Path of the importing file
        content: Text of the importing file

    Returns:
        Candidate paths in discovery order, without duplicates
    """
    candidates: dict[str, None] = {}

    for match in _IMPORT_PATTERN.finditer(content):
        path = _resolve_import(filename, match.group(1), match.group(2))

        if posixpath.splitext(path)[1]:
            candidates[path] = None
            continue

        for ext in _IMPORT_EXTENSIONS:
            candidates[f"{path}{ext}"] = None
            if posixpath.basename(path) != "index":
                candidates[posixpath.join(path, f"index{ext}")] = None

    return list(candidates)


def fetch_related_files(
    repo: str,
    filename: str,
    content: str,
    ref: str,
) -> dict[str, str]:
    """Fetch the imported files that exist at *ref* and are small enough."""
    related: dict[str, str] = {}

    for path in find_related_paths(filename, content):
        try:
            text = fetch_file_content(repo, path, ref)
        except ValueError as e:
            logger.debug("Could not fetch related file %s: %s", path, e)
            continue

        if text is None:
            logger.debug("Related file not found: %s", path)
            continue
        if len(text) < MAX_RELATED_FILE_CHARS:
            related[path] = text

    return related


# ---------------------------------------------------------------------------
# Core review function
# ---------------------------------------------------------------------------
def review_file(
    repo: str,
    pr_number: int,
    metadata: PRMetadata,
    changed_file: ChangedFile,
) -> FileReview | None:
    """
    Review one changed file of a PR.

    Args:
        repo: Repository in "owner/repo" format
        pr_number: Pull request number
        metadata: PR metadata (branches, title, description)
        changed_file: File from the PR files API

    Returns:
        FileReview with findings tagged with the file path, or None if the
        file is empty on the head branch
    """
    filename = changed_file.filename

    modified = fetch_file_content(repo, filename, metadata.head_branch) or ""
    if not modified.strip():
        logger.info("Skipping empty file: %s", filename)
        return None

    original = fetch_file_content(repo, filename, metadata.base_branch) or ""
    related = fetch_related_files(repo, filename, modified, metadata.head_branch)

    prompt = build_review_prompt(
        filename,
        original,
        modified,
        build_file_context(pr_number, metadata, is_new=not original),
        related,
    )

    raw_text = call_model(prompt)
    logger.debug("Raw model response for %s:\n%s", filename, raw_text)

    result = recover_review(raw_text)
    for finding in result.findings:
        finding.path = filename

    logger.info("  Found %d issue(s) in %s", len(result.findings), filename)
    return FileReview(
        filename=filename,
        summary=result.summary,
        findings=result.findings,
    )
