import os
import sys
import logging

from config import validate_repo
from agent import ReviewState, create_agent

logger = logging.getLogger(__name__)


def read_target() -> tuple[str, int]:
    """Read the repository and PR number from the CI environment."""
    owner = os.getenv("REPO_OWNER")
    name = os.getenv("REPO_NAME")
    pr_number = os.getenv("PR_NUMBER")

    if not owner or not name or not pr_number:
        raise ValueError(
            "REPO_OWNER, REPO_NAME and PR_NUMBER must be set."
        )

    try:
        number = int(pr_number)
    except ValueError:
        raise ValueError(f"PR_NUMBER must be an integer, got {pr_number!r}") from None

    return validate_repo(f"{owner}/{name}"), number


def main() -> int:
    """Main entry point."""
    try:
        repo, pr_number = read_target()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return 1

    logger.info(f"Starting AI review for PR #{pr_number}")

    agent = create_agent()
    final_state = agent.invoke(ReviewState(repo=repo, pr_number=pr_number))

    error = final_state.get("error")
    if error:
        logger.error(f"Error in review process: {error}")
        return 1

    if final_state.get("review_posted"):
        logger.info("Posted PR review summary")
    else:
        logger.info("No issues found, not posting a review")
    return 0


if __name__ == "__main__":
    sys.exit(main())
