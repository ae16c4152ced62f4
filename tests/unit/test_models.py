"""Tests for Finding and ReviewResult."""

import pytest
from pydantic import ValidationError

from models import Finding, ReviewResult


class TestFinding:

    def test_defaults(self):
        finding = Finding(description="x")

        assert finding.line is None
        assert finding.suggestion == "No suggestion provided"
        assert finding.severity == "medium"
        assert finding.path is None

    def test_issue_alias(self):
        finding = Finding.model_validate({"issue": "from the model", "line": 3})

        assert finding.description == "from the model"
        assert finding.line == 3

    def test_comment_body(self):
        finding = Finding(
            line=7, description="Null deref", suggestion="Check for None", severity="high"
        )
        assert finding.comment_body() == "**HIGH**: Null deref\n\nSuggestion: Check for None"

    def test_description_required(self):
        with pytest.raises(ValidationError):
            Finding()


class TestReviewResult:

    def test_defaults(self):
        result = ReviewResult()

        assert result.findings == []
        assert result.summary == "Code review completed"

    def test_empty_summary_rejected(self):
        with pytest.raises(ValidationError):
            ReviewResult(summary="")

    def test_to_payload(self):
        result = ReviewResult(
            findings=[
                Finding(line=2, description="a", suggestion="b", severity="low"),
                Finding(description="c"),
            ],
            summary="s",
        )

        assert result.to_payload() == {
            "issues": [
                {"line": 2, "issue": "a", "suggestion": "b", "severity": "low"},
                {
                    "issue": "c",
                    "suggestion": "No suggestion provided",
                    "severity": "medium",
                },
            ],
            "summary": "s",
        }
