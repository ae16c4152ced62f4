"""GitHub API client for PR operations."""

import os
import logging
import functools
from dataclasses import asdict, dataclass, field

from github import Auth, Github
from github.GithubException import GithubException, UnknownObjectException
from github.PullRequest import PullRequest
from github.Repository import Repository

from config import validate_repo

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------
@dataclass
class PRMetadata:
    """Pull Request metadata."""

    number: int
    title: str
    author: str
    base_branch: str
    head_branch: str
    head_sha: str
    description: str | None


@dataclass
class ChangedFile:
    """A file changed in a Pull Request."""

    filename: str
    status: str  # added, removed, modified, renamed
    additions: int  # lines added
    deletions: int  # lines deleted
    changes: int  # total lines changed
    patch: str | None  # the diff/patch for this file


@dataclass
class ReviewComment:
    """A comment to post on a specific line in a PR."""

    path: str  # file path (e.g., "src/app/Cart.tsx")
    line: int  # line number in the file (new version)
    body: str  # comment text
    side: str = "RIGHT"  # RIGHT = new code, LEFT = old code


@dataclass
class ReviewSubmission:
    """A complete review to submit to a PR."""

    body: str = ""  # overall summary
    event: str = "COMMENT"  # APPROVE, REQUEST_CHANGES, COMMENT
    comments: list[ReviewComment] = field(default_factory=list)


def _error_message(e: GithubException) -> str:
    data = e.data if isinstance(e.data, dict) else {}
    return data.get("message", str(e))


# ---------------------------------------------------------------------------
# Cached GitHub client
# ---------------------------------------------------------------------------
@functools.lru_cache(maxsize=1)
def get_github_client() -> Github:
    """Create or return a cached GitHub client."""
    token = os.getenv("GITHUB_TOKEN")
    if not token:
        raise ValueError(
            "GITHUB_TOKEN not found. Set it in .env file.\n"
            "Get your token at: https://github.com/settings/tokens"
        )
    return Github(auth=Auth.Token(token))


# ---------------------------------------------------------------------------
# Pull request lookup
# ---------------------------------------------------------------------------
def _get_pull(repo: str, pr_number: int) -> tuple[Repository, PullRequest]:
    """Resolve *repo* and its pull request, mapping API failures to ValueError."""
    repo = validate_repo(repo)
    try:
        repository = get_github_client().get_repo(repo)
        return repository, repository.get_pull(pr_number)
    except GithubException as e:
        if e.status == 404:
            raise ValueError(f"PR #{pr_number} not found in {repo}") from e
        raise ValueError(f"GitHub API error: {_error_message(e)}") from e


def fetch_pr_metadata(repo: str, pr_number: int) -> PRMetadata:
    """Title, author, branches and head commit of a pull request."""
    _, pr = _get_pull(repo, pr_number)
    return PRMetadata(
        number=pr.number,
        title=pr.title,
        author=pr.user.login,
        base_branch=pr.base.ref,
        head_branch=pr.head.ref,
        head_sha=pr.head.sha,
        description=pr.body,
    )


def fetch_changed_files(repo: str, pr_number: int) -> list[ChangedFile]:
    """
    List every file touched by a pull request, with its per-file patch.

    Raises:
        ValueError: If the pull request cannot be read
    """
    _, pr = _get_pull(repo, pr_number)
    try:
        return [
            ChangedFile(
                filename=f.filename,
                status=f.status,
                additions=f.additions,
                deletions=f.deletions,
                changes=f.changes,
                patch=f.patch,
            )
            # get_files() pages through the API lazily
            for f in pr.get_files()
        ]
    except GithubException as e:
        raise ValueError(
            f"Could not list files of PR #{pr_number}: {_error_message(e)}"
        ) from e


def fetch_file_content(repo: str, path: str, ref: str) -> str | None:
    """
    Fetch the text of *path* at *ref*.

    Args:
        repo: Repository in "owner/repo" format
        path: File path inside the repository
        ref: Branch, tag or commit SHA

    Returns:
        Decoded file content, or None if the path does not exist at that ref
        (e.g. a file added by the PR, looked up on the base branch)
    """
    repo = validate_repo(repo)
    client = get_github_client()

    try:
        content = client.get_repo(repo).get_contents(path, ref=ref)
    except UnknownObjectException:
        return None
    except GithubException as e:
        raise ValueError(
            f"Could not fetch {path}@{ref}: {_error_message(e)}"
        ) from e

    # A directory listing comes back as a list
    if isinstance(content, list) or content.decoded_content is None:
        return None

    return content.decoded_content.decode("utf-8", errors="replace")


# ---------------------------------------------------------------------------
# Posting
# ---------------------------------------------------------------------------
def post_pr_comment(repo: str, pr_number: int, body: str) -> int:
    """Post *body* as a conversation comment on the PR and return its id."""
    _, pr = _get_pull(repo, pr_number)
    try:
        comment = pr.create_issue_comment(body)
    except GithubException as e:
        raise ValueError(f"Failed to post comment: {_error_message(e)}") from e

    logger.info("Posted comment %d on PR #%d", comment.id, pr_number)
    return comment.id


def post_review(repo: str, pr_number: int, review: ReviewSubmission) -> int:
    """
    Submit *review* in one call: the summary body plus every inline comment.

    Inline comments are anchored to the PR's head commit. GitHub validates
    each comment's line against the diff and rejects the whole review if
    any of them falls outside it.

    Returns:
        Review ID

    Raises:
        ValueError: If GitHub rejects the review
    """
    repository, pr = _get_pull(repo, pr_number)
    comments = [asdict(comment) for comment in review.comments]

    try:
        github_review = pr.create_review(
            commit=repository.get_commit(pr.head.sha),
            body=review.body,
            event=review.event,
            comments=comments,
        )
    except GithubException as e:
        error_msg = _error_message(e)
        details = e.data.get("errors", []) if isinstance(e.data, dict) else []
        logger.error("Review rejected for PR #%d: %s %s", pr_number, error_msg, details)
        raise ValueError(f"Failed to post review: {error_msg}") from e

    logger.info(
        "Posted review %d on PR #%d with %d inline comments",
        github_review.id,
        pr_number,
        len(comments),
    )
    return github_review.id


def post_review_with_fallback(
    repo: str,
    pr_number: int,
    review: ReviewSubmission,
) -> dict:
    """
    Post a review, falling back to general comment if line comments fail.

    GitHub rejects the whole review when any inline comment points at a
    line outside the diff. In that case the comments are listed in a
    single general comment instead.

    Returns:
        Dict with 'review_id' and/or 'comment_id', plus 'fallback' boolean
    """
    repo = validate_repo(repo)
    result: dict = {"fallback": False}

    try:
        result["review_id"] = post_review(repo, pr_number, review)
        return result

    except ValueError as e:
        if not review.comments:
            raise

        logger.warning("Review failed, falling back to general comment: %s", e)
        result["fallback"] = True

        fallback_body = review.body + "\n\n" if review.body else ""
        fallback_body += "## Inline Comments\n\n"
        fallback_body += (
            "_Could not post as inline comments. Listing here instead:_\n\n"
        )

        for comment in review.comments:
            fallback_body += f"**{comment.path}** (line {comment.line}):\n"
            fallback_body += f"> {comment.body}\n\n"

        result["comment_id"] = post_pr_comment(repo, pr_number, fallback_body)
        return result
