"""Shared fixtures for the ReviewRanger test suite."""

import pytest

from github_client import ChangedFile, PRMetadata


# ---------------------------------------------------------------------------
# Model responses
# ---------------------------------------------------------------------------

VALID_REVIEW_JSON = """\
{
  "issues": [
    {
      "line": 14,
      "issue": "Password is compared with == instead of a constant-time check",
      "suggestion": "Use hmac.compare_digest",
      "severity": "high"
    },
    {
      "issue": "Module has no tests",
      "suggestion": "Add unit tests for the login flow",
      "severity": "low"
    }
  ],
  "summary": "Login works but the comparison is unsafe."
}"""

# The model dropped the commas after "issue" and "suggestion" values.
MISSING_COMMAS_JSON = """\
{
  "issues": [
    {
      "line": 3,
      "issue": "Unused variable total"
      "suggestion": "Remove it"
      "severity": "low"
    }
  ],
  "summary": "Minor cleanup needed."
}"""

# The first object is fine, the second has an unquoted line and a stray quote.
PARTIALLY_BROKEN_JSON = """\
Here is my review:
{"issues": [
  {"line": 4, "issue": "unused import", "suggestion": "remove it", "severity": "low"},
  {"line": four, "issue": "bad "quote" here", "severity": "high"}
], "summary": "two problems"
"""

LINE_ORIENTED_TEXT = (
    "line: 12\n"
    "issue: missing null check\n"
    "suggestion: add guard\n"
    "severity: high\n"
    "summary: needs fixes"
)


@pytest.fixture
def valid_review_json():
    return VALID_REVIEW_JSON


@pytest.fixture
def missing_commas_json():
    return MISSING_COMMAS_JSON


@pytest.fixture
def partially_broken_json():
    return PARTIALLY_BROKEN_JSON


@pytest.fixture
def line_oriented_text():
    return LINE_ORIENTED_TEXT


# ---------------------------------------------------------------------------
# GitHub data
# ---------------------------------------------------------------------------

CART_PATCH = """\
@@ -10,6 +10,7 @@ export function Cart({ items }) {
   const [open, setOpen] = useState(false);
-  const total = items.reduce((sum, i) => sum + i.price, 0);
+  const total = items.reduce((sum, i) => sum + i.price * i.qty, 0);
+  const count = items.length;
   // totals
   return (
     <div className="cart">
       <span>{count}</span>"""


@pytest.fixture
def cart_patch():
    return CART_PATCH


@pytest.fixture
def pr_metadata():
    return PRMetadata(
        number=42,
        title="Fix cart total",
        author="dev",
        base_branch="main",
        head_branch="fix/cart-total",
        head_sha="abc123",
        description="Multiply by quantity",
    )


@pytest.fixture
def cart_file(cart_patch):
    return ChangedFile(
        filename="src/app/Cart.tsx",
        status="modified",
        additions=2,
        deletions=1,
        changes=3,
        patch=cart_patch,
    )
