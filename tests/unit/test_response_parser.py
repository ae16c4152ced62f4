"""Tests for recovering review results from raw model output."""

import json

import pytest

from mock_data import MOCK_RESPONSE
from models import DEFAULT_SUMMARY, Finding, ReviewResult
from response_parser import (
    FALLBACK_SUMMARY,
    recover_review,
    repair_delimiters,
    strip_fences,
)


class TestStripFences:

    def test_json_fence(self):
        assert strip_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_surrounding_whitespace(self):
        assert strip_fences('  \n```json\n{}\n```  \n') == "{}"

    def test_no_fence_unchanged(self):
        assert strip_fences('{"a": 1}') == '{"a": 1}'

    def test_only_opening_fence(self):
        assert strip_fences('```json\n{"a": 1}') == '{"a": 1}'


class TestRepairDelimiters:

    def test_inserts_commas_on_one_line(self):
        broken = '{"issue": "a" "suggestion": "b" "severity": "high"}'
        assert json.loads(repair_delimiters(broken)) == {
            "issue": "a",
            "suggestion": "b",
            "severity": "high",
        }

    def test_inserts_commas_across_lines(self):
        broken = '{\n  "suggestion": "x"\n  "severity": "y"\n}'
        assert json.loads(repair_delimiters(broken)) == {
            "suggestion": "x",
            "severity": "y",
        }

    def test_valid_json_untouched(self):
        valid = '{"issue": "a", "suggestion": "b"}'
        assert repair_delimiters(valid) == valid

    def test_escaped_quotes_in_value(self):
        broken = r'{"issue": "use \"===\"" "severity": "low"}'
        assert json.loads(repair_delimiters(broken))["issue"] == 'use "==="'


class TestDirectParse:

    def test_valid_json(self, valid_review_json):
        result = recover_review(valid_review_json)

        assert result.summary == "Login works but the comparison is unsafe."
        assert len(result.findings) == 2
        assert result.findings[0] == Finding(
            line=14,
            description="Password is compared with == instead of a constant-time check",
            suggestion="Use hmac.compare_digest",
            severity="high",
        )
        assert result.findings[1].line is None
        assert result.findings[1].severity == "low"

    def test_fenced_json_matches_unfenced(self, valid_review_json):
        fenced = f"```json\n{valid_review_json}\n```"
        assert recover_review(fenced) == recover_review(valid_review_json)

    def test_round_trip(self):
        original = ReviewResult(
            findings=[
                Finding(line=3, description="a", suggestion="b", severity="high"),
                Finding(description="c", suggestion="d", severity="low"),
                Finding(line=40, description='uses "eval"', suggestion="e", severity="medium"),
            ],
            summary="three issues",
        )

        assert recover_review(json.dumps(original.to_payload())) == original

    def test_round_trip_keeps_empty_strings(self):
        original = ReviewResult(
            findings=[
                Finding(line=3, description="a", suggestion="", severity="high"),
                Finding(line=4, description="", suggestion="b", severity="low"),
            ],
            summary="s",
        )

        assert recover_review(json.dumps(original.to_payload())) == original

    def test_empty_severity_defaults_to_medium(self):
        text = '{"issues": [{"line": 2, "issue": "x", "severity": ""}], "summary": "s"}'
        assert recover_review(text).findings[0].severity == "medium"

    def test_missing_severity_defaults_to_medium(self):
        text = '{"issues": [{"line": 2, "issue": "x", "suggestion": "y"}], "summary": "s"}'
        assert recover_review(text).findings[0].severity == "medium"

    def test_missing_suggestion_and_summary_defaulted(self):
        result = recover_review('{"issues": [{"issue": "x"}]}')

        assert result.findings[0].suggestion == "No suggestion provided"
        assert result.summary == DEFAULT_SUMMARY

    def test_severity_not_validated(self):
        result = recover_review('{"issues": [{"issue": "x", "severity": "CRITICAL"}]}')
        assert result.findings[0].severity == "CRITICAL"

    def test_unparsable_line_treated_as_absent(self):
        text = json.dumps(
            {
                "issues": [
                    {"line": "abc", "issue": "x"},
                    {"line": "7", "issue": "y"},
                    {"line": 0, "issue": "z"},
                ]
            }
        )
        assert [f.line for f in recover_review(text).findings] == [None, 7, None]

    def test_non_object_issues_skipped(self):
        result = recover_review('{"issues": [1, "two", null], "summary": "ok"}')

        assert result.findings == []
        assert result.summary == "ok"

    def test_description_key_accepted(self):
        result = recover_review('{"issues": [{"description": "x"}], "summary": "s"}')
        assert result.findings[0].description == "x"


class TestDelimiterRepair:

    def test_bare_finding_object(self):
        result = recover_review('{"issue": "a" "suggestion": "b" "severity": "high"}')

        assert len(result.findings) == 1
        finding = result.findings[0]
        assert finding.description == "a"
        assert finding.suggestion == "b"
        assert finding.severity == "high"

    def test_missing_commas_in_document(self, missing_commas_json):
        result = recover_review(missing_commas_json)

        assert result.summary == "Minor cleanup needed."
        assert result.findings == [
            Finding(
                line=3,
                description="Unused variable total",
                suggestion="Remove it",
                severity="low",
            )
        ]

    def test_mock_response_recovers_both_issues(self):
        result = recover_review(MOCK_RESPONSE)

        assert [f.line for f in result.findings] == [12, 27]
        assert [f.severity for f in result.findings] == ["high", "low"]


class TestObjectExtraction:

    def test_partial_extraction_keeps_recoverable_finding(self, partially_broken_json):
        result = recover_review(partially_broken_json)

        assert result.findings == [
            Finding(
                line=4,
                description="unused import",
                suggestion="remove it",
                severity="low",
            )
        ]
        assert result.summary == "two problems"

    def test_regex_fallback_for_unparsable_object(self):
        text = r'{"line": 8, "issue": "bad \x escape", "severity": "medium"}'
        result = recover_review(text)

        assert result.findings == [
            Finding(
                line=8,
                description=r"bad \x escape",
                suggestion="No suggestion provided",
                severity="medium",
            )
        ]
        assert result.summary == DEFAULT_SUMMARY

    def test_bare_value_in_broken_object(self):
        result = recover_review('{"line": 8, "severity": high, "issue": "x"}')

        assert result.findings[0].severity == "high"
        assert result.findings[0].description == "x"

    def test_objects_kept_in_order(self):
        text = (
            "Findings:\n"
            '{"line": 1, "issue": "first", "severity": "low"}\n'
            '{"line": 2, "issue": "second", "severity": "high"}\n'
            '"summary": "done"'
        )
        result = recover_review(text)

        assert [f.description for f in result.findings] == ["first", "second"]
        assert result.summary == "done"


class TestLineOrientedFallback:

    def test_key_value_lines(self, line_oriented_text):
        result = recover_review(line_oriented_text)

        assert result.findings == [
            Finding(
                line=12,
                description="missing null check",
                suggestion="add guard",
                severity="high",
            )
        ]
        assert result.summary == "needs fixes"

    def test_multiple_findings(self):
        text = (
            "Review notes\n"
            "line: 3\n"
            "issue: first\n"
            "line: 9\n"
            "description: second\n"
            "severity: low\n"
        )
        result = recover_review(text)

        assert [(f.line, f.description, f.severity) for f in result.findings] == [
            (3, "first", "medium"),
            (9, "second", "low"),
        ]
        assert result.summary == FALLBACK_SUMMARY

    def test_fields_before_first_line_ignored(self):
        result = recover_review("issue: orphan\nsummary: ok")

        assert result.findings == []
        assert result.summary == "ok"

    def test_non_numeric_line_starts_file_level_finding(self):
        result = recover_review("line: n/a\nissue: x")

        assert result.findings[0].line is None
        assert result.findings[0].description == "x"

    def test_quoted_keys_without_severity(self):
        text = '"line": 5,\n' r'"issue": "Off by one in \"i <= n\"",' "\n"
        result = recover_review(text)

        assert result.findings[0].line == 5
        assert result.findings[0].description == 'Off by one in "i <= n"'

    def test_truncated_compact_json(self):
        result = recover_review('{"issues": [{"line": 5, "issue": "x", "suggestion": "y"')

        assert result.findings == [
            Finding(line=5, description="x", suggestion="y", severity="medium")
        ]
        assert result.summary == FALLBACK_SUMMARY

    def test_bulleted_quoted_keys(self):
        result = recover_review('- "line": 12,\n- "issue": "null deref",\n"summary": "s"')

        assert [(f.line, f.description) for f in result.findings] == [
            (12, "null deref")
        ]
        assert result.summary == "s"

    def test_prose_mentioning_line_is_not_a_finding(self):
        result = recover_review("See the loop on line: 4 for details.")

        assert result.findings == []

    def test_plain_prose(self):
        result = recover_review("The code looks fine to me.")

        assert result.findings == []
        assert result.summary == FALLBACK_SUMMARY


class TestTotality:

    def test_empty_input(self):
        result = recover_review("")

        assert result.findings == []
        assert result.summary == FALLBACK_SUMMARY

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   \n\t  ",
            "\x00\xff\xfe\x01 garbage \x7f",
            "{",
            "}",
            "null",
            "42",
            '"just a string"',
            "```",
            "```json",
            "{" * 5000,
            "[" * 100000,
            '{"issues": "nope", "summary": 5}',
            '{"issues": [{"issue": "\\ud800"}]}',
            '{"line": "line": "severity": }',
            "line:\nissue:\nsummary:",
            '{"issues": [{"line": ' + "9" * 5000 + ', "severity": "low"}]}',
        ],
    )
    def test_never_raises(self, text):
        result = recover_review(text)

        assert isinstance(result, ReviewResult)
        assert isinstance(result.findings, list)
        assert result.summary
        for finding in result.findings:
            assert finding.severity
            assert finding.suggestion

    def test_unclosed_brace_with_many_line_keys(self):
        text = "{" + '"line": 1, ' * 20000 + '"severity": "low"'

        result = recover_review(text)

        assert [(f.line, f.severity) for f in result.findings] == [(1, "low")]

    def test_non_string_input(self):
        assert recover_review(None).summary == FALLBACK_SUMMARY
        assert isinstance(recover_review(b'{"summary": "bytes"}'), ReviewResult)
