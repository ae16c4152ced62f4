"""Prompt templates for code review."""

import posixpath

from github_client import PRMetadata

# Related files are only context; keep each one short
RELATED_FILE_PREVIEW_CHARS = 1000

# =============================================================================
# SHARED SECTIONS
# =============================================================================

_FOCUS = (
    "Please focus your review on the changes made in this PR. "
    "Provide a detailed code review that identifies:\n"
    "1. Bugs or potential issues\n"
    "2. Security vulnerabilities\n"
    "3. Performance problems\n"
    "4. Style and best practice violations\n"
    "5. Specific suggestions for improvement\n"
)

_PER_ISSUE = (
    "For each issue, provide:\n"
    "- The line number in the MODIFIED CODE (if applicable)\n"
    "- A description of the issue\n"
    "- A suggested fix\n"
    "- Severity level (high/medium/low)\n"
)

_OUTPUT_FORMAT = (
    "Format your response as JSON:\n"
    "{\n"
    '  "issues": [\n'
    "    {\n"
    '      "line": <line_number>,\n'
    '      "issue": "<description>",\n'
    '      "suggestion": "<suggested_fix>",\n'
    '      "severity": "<high|medium|low>"\n'
    "    }\n"
    "  ],\n"
    '  "summary": "<overall_assessment>"\n'
    "}\n"
)

_NEW_FILE = "This is a new file added in this PR."


# =============================================================================
# PROMPT BUILDERS
# =============================================================================

def _code_block(code: str, language: str = "") -> str:
    return f"```{language}\n{code}\n```"


def build_file_context(pr_number: int, metadata: PRMetadata, is_new: bool) -> str:
    """Describe the PR a file belongs to."""
    return (
        f'This file is part of PR #{pr_number}: "{metadata.title}"\n'
        f"PR Description: {metadata.description or ''}\n"
        f"Branch: {metadata.head_branch}\n"
        f"This file {'is new' if is_new else 'was modified'} in this PR."
    )


def _related_section(related_files: dict[str, str]) -> str:
    if not related_files:
        return ""

    parts = []
    for filename, content in related_files.items():
        preview = content[:RELATED_FILE_PREVIEW_CHARS]
        if len(content) > RELATED_FILE_PREVIEW_CHARS:
            preview += "...(truncated)"
        parts.append(f"{filename}:\n{_code_block(preview)}")

    return "RELATED FILES:\n" + "\n\n".join(parts)


def build_review_prompt(
    filename: str,
    original_content: str,
    modified_content: str,
    file_context: str,
    related_files: dict[str, str] | None = None,
) -> str:
    """
    Build the review prompt for one changed file.

    Args:
        filename: Path of the file in the PR
        original_content: File text on the base branch ("" for new files)
        modified_content: File text on the head branch
        file_context: Output of build_file_context()
        related_files: Imported files, path -> content

    Returns:
        Prompt asking for {"issues": [...], "summary": ...} JSON
    """
    language = posixpath.splitext(filename)[1].lstrip(".")

    if original_content:
        original_section = "ORIGINAL CODE (BEFORE CHANGES):\n" + _code_block(
            original_content, language
        )
    else:
        original_section = _NEW_FILE

    sections = [
        "You are an expert code reviewer. "
        f"Review the following changes in a {language} file:",
        original_section,
        "MODIFIED CODE (AFTER CHANGES):\n" + _code_block(modified_content, language),
        f"FILE CONTEXT:\n{file_context}",
        _related_section(related_files or {}),
        _FOCUS,
        _PER_ISSUE,
        _OUTPUT_FORMAT,
    ]
    return "\n\n".join(section for section in sections if section)
