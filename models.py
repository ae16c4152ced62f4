"""Data models for code review findings."""

from pydantic import AliasChoices, BaseModel, Field

DEFAULT_DESCRIPTION = "Unknown issue"
DEFAULT_SUGGESTION = "No suggestion provided"
DEFAULT_SEVERITY = "medium"
DEFAULT_SUMMARY = "Code review completed"


class Finding(BaseModel):
    """A single review finding."""

    line: int | None = Field(default=None, description="Line number in the file")
    description: str = Field(
        validation_alias=AliasChoices("description", "issue"),
        serialization_alias="issue",
        description="What the issue is",
    )
    suggestion: str = Field(
        default=DEFAULT_SUGGESTION, description="Suggested fix for the issue"
    )
    # Not restricted to high/medium/low: whatever the model wrote is kept.
    severity: str = Field(default=DEFAULT_SEVERITY, description="high, medium, low")
    path: str | None = Field(
        default=None, description="File path (populated during review)"
    )

    def comment_body(self) -> str:
        """Render the finding as an inline review comment."""
        return (
            f"**{self.severity.upper()}**: {self.description}\n\n"
            f"Suggestion: {self.suggestion}"
        )


class ReviewResult(BaseModel):
    """Review output recovered from a single model response."""

    findings: list[Finding] = Field(default_factory=list)
    summary: str = Field(default=DEFAULT_SUMMARY, min_length=1)

    def to_payload(self) -> dict:
        """Return the JSON shape the review prompt asks the model for."""
        issues = []
        for finding in self.findings:
            issue: dict = {}
            if finding.line is not None:
                issue["line"] = finding.line
            issue["issue"] = finding.description
            issue["suggestion"] = finding.suggestion
            issue["severity"] = finding.severity
            issues.append(issue)
        return {"issues": issues, "summary": self.summary}
