"""Mock responses for testing without API calls."""

# Captured from deepseek-v2:16b: fenced, and the model dropped the commas
# before "severity" on the second issue.
MOCK_RESPONSE = """```json
{
  "issues": [
    {
      "line": 12,
      "issue": "fetchUser does not handle a rejected promise, so a network error crashes the page",
      "suggestion": "Wrap the await in try/catch and render an error state",
      "severity": "high"
    },
    {
      "line": 27,
      "issue": "Cart total is recomputed on every render",
      "suggestion": "Memoize the total with useMemo keyed on cart items"
      "severity": "low"
    }
  ],
  "summary": "Solid change overall; add error handling around the user fetch."
}
```"""
