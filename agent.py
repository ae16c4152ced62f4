"""
ReviewRanger Agent - LangGraph-based PR Review Agent

This module implements the review workflow as a state machine using LangGraph.
Changed files are fetched and filtered, each file is reviewed by the model,
and the findings are posted back to the PR as one review with inline
comments and a summary.
"""

import logging
from dataclasses import dataclass, field

from langgraph.graph import END, START, StateGraph

import config as _config  # noqa: F401 - ensures env & logging are initialised
from diff_parser import build_line_mapping, filter_files, find_nearest_valid_line
from github_client import (
    ChangedFile,
    PRMetadata,
    ReviewComment,
    ReviewSubmission,
    fetch_changed_files,
    fetch_pr_metadata,
    post_review_with_fallback,
)
from models import Finding
from reviewer import FileReview, review_file

logger = logging.getLogger(__name__)


# =============================================================================
# STATE DEFINITION
# =============================================================================
@dataclass
class ReviewState:
    """
    State that flows through the review graph.

    Each node can read any field and return updates to specific fields.
    LangGraph automatically merges the updates into the state.
    """

    # Input (required)
    repo: str  # e.g., "octo-org/storefront"
    pr_number: int  # e.g., 42

    # Intermediate data (populated by nodes)
    metadata: PRMetadata | None = None
    files_to_review: list[ChangedFile] = field(default_factory=list)
    file_reviews: list[FileReview] = field(default_factory=list)

    # Output
    review_posted: bool = False  # Whether we posted to GitHub
    review_id: int | None = None  # GitHub review ID if posted
    comment_id: int | None = None  # General comment ID if the review fell back
    error: str | None = None  # Error message if something failed


# =============================================================================
# NODE FUNCTIONS
# =============================================================================
def fetch_pr_data(state: ReviewState) -> dict:
    """
    Node 1: Fetch PR metadata and changed files from GitHub.

    Reads: repo, pr_number
    Updates: metadata, files_to_review, error
    """
    logger.info("📥 Fetching PR #%d from %s...", state.pr_number, state.repo)

    try:
        metadata = fetch_pr_metadata(state.repo, state.pr_number)
        all_files = fetch_changed_files(state.repo, state.pr_number)
        files_to_review = filter_files(all_files)

        logger.info(
            "   Found %d changed files, %d code files to review",
            len(all_files),
            len(files_to_review),
        )

        return {
            "metadata": metadata,
            "files_to_review": files_to_review,
        }

    except Exception as e:
        logger.error("Failed to fetch PR: %s", e)
        return {
            "error": str(e),
            "files_to_review": [],
        }


def review_files(state: ReviewState) -> dict:
    """
    Node 2: Review every file; a failing file never stops the others.

    Reads: repo, pr_number, metadata, files_to_review
    Updates: file_reviews
    """
    if state.error or state.metadata is None or not state.files_to_review:
        return {"file_reviews": []}

    logger.info("🔍 Reviewing %d file(s)...", len(state.files_to_review))

    file_reviews: list[FileReview] = []
    for changed_file in state.files_to_review:
        logger.info("Reviewing: %s", changed_file.filename)
        try:
            result = review_file(
                state.repo, state.pr_number, state.metadata, changed_file
            )
        except Exception as e:
            logger.error("Error reviewing %s: %s", changed_file.filename, e)
            continue

        if result is not None:
            file_reviews.append(result)

    return {"file_reviews": file_reviews}


# =============================================================================
# FORMATTING & POSTING
# =============================================================================
def _all_findings(file_reviews: list[FileReview]) -> list[Finding]:
    return [finding for review in file_reviews for finding in review.findings]


def format_summary_markdown(file_reviews: list[FileReview]) -> str:
    """Format the PR-level summary review body."""
    findings = _all_findings(file_reviews)

    sections: list[str] = ["# ReviewRanger: Code Review Summary"]

    if findings:
        issue_lines = [f"## Issues Found ({len(findings)})"]
        for f in findings:
            location = f"{f.path}:{f.line}" if f.line else f"{f.path}"
            issue_lines.append(
                f"- **{f.severity.upper()}** [{location}]: {f.description}"
            )
        sections.append("\n".join(issue_lines))

    if file_reviews:
        by_file = [f"**{review.filename}**: {review.summary}" for review in file_reviews]
        sections.append("## Summary by File\n" + "\n\n".join(by_file))

    sections.append(
        "---\n*This review was performed automatically by ReviewRanger* 🤠"
    )
    return "\n\n".join(sections) + "\n"


def build_inline_comments(
    file_reviews: list[FileReview],
    files: list[ChangedFile],
) -> list[ReviewComment]:
    """
    Turn line-level findings into inline comments on lines GitHub accepts.

    Findings whose line is not within reach of the diff are left out; they
    still appear in the summary body.
    """
    patches = {f.filename: f.patch for f in files}
    comments: list[ReviewComment] = []

    for review in file_reviews:
        mapping = build_line_mapping(review.filename, patches.get(review.filename))

        for finding in review.findings:
            if finding.line is None:
                continue

            line = find_nearest_valid_line(mapping, finding.line)
            if line is None:
                logger.info(
                    "   %s:%d is outside the diff, summary only",
                    review.filename,
                    finding.line,
                )
                continue

            comments.append(
                ReviewComment(
                    path=review.filename,
                    line=line,
                    body=finding.comment_body(),
                )
            )

    return comments


def post_review_node(state: ReviewState) -> dict:
    """
    Node 3: Post the review to GitHub.

    Reads: repo, pr_number, files_to_review, file_reviews
    Updates: review_posted, review_id, comment_id, error
    """
    logger.info("📝 Posting review to GitHub...")

    try:
        review = ReviewSubmission(
            body=format_summary_markdown(state.file_reviews),
            event="COMMENT",
            comments=build_inline_comments(state.file_reviews, state.files_to_review),
        )

        result = post_review_with_fallback(state.repo, state.pr_number, review)

        logger.info("   ✅ Posted PR review summary")

        return {
            "review_posted": True,
            "review_id": result.get("review_id"),
            "comment_id": result.get("comment_id"),
        }

    except Exception as e:
        logger.error("   ❌ Failed to post review: %s", e)
        return {
            "review_posted": False,
            "error": str(e),
        }


# =============================================================================
# DECISION FUNCTIONS (for conditional edges)
# =============================================================================
def should_post_review(state: ReviewState) -> str:
    """
    Decide whether to post a review or end.

    Returns:
        "post_review" if any file produced findings or a summary
        "end" otherwise
    """
    # LangGraph may pass state as dict or dataclass
    file_reviews = (
        state.get("file_reviews", []) if isinstance(state, dict) else state.file_reviews
    )

    if file_reviews:
        logger.info(
            "🔀 Decision: %d issues found → posting review",
            len(_all_findings(file_reviews)),
        )
        return "post_review"

    logger.info("🔀 Decision: No issues found, not posting a review")
    return "end"


# =============================================================================
# GRAPH CONSTRUCTION
# =============================================================================
def build_review_graph() -> StateGraph:
    """Build the review workflow graph."""
    graph = StateGraph(ReviewState)

    # Add nodes
    graph.add_node("fetch_pr_data", fetch_pr_data)
    graph.add_node("review_files", review_files)
    graph.add_node("post_review", post_review_node)

    # Edges
    graph.add_edge(START, "fetch_pr_data")
    graph.add_edge("fetch_pr_data", "review_files")

    # Conditional edge: after reviewing, decide what to do
    graph.add_conditional_edges(
        "review_files",
        should_post_review,
        {
            "post_review": "post_review",
            "end": END,
        },
    )

    # After posting review, we're done
    graph.add_edge("post_review", END)

    return graph


def create_agent():
    """Create and compile the review agent."""
    graph = build_review_graph()
    return graph.compile()
