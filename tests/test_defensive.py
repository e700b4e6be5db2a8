"""
Defensive test suite.

Focused on the failure paths that matter in production:
- Classifier unreliability (garbage output, bad enums, API errors)
- Summarizer failures
- Input validation
- CLI errors and API key
"""

import unittest
import json
import os
import sys
import tempfile
import shutil
from unittest.mock import patch, MagicMock
from io import StringIO

import httpx

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from src.models import SENTIMENTS, THEMES, URGENCIES, InvalidInputError


def reply(text):
    """Fake chat model reply carrying only text content."""
    return MagicMock(content=text)


def connection_error():
    from anthropic import APIConnectionError
    return APIConnectionError(request=httpx.Request("POST", "https://api.anthropic.com/v1/messages"))


class QuietTestCase(unittest.TestCase):
    """Silences stderr and sends the log file to a temporary directory for each test."""

    def setUp(self):
        self.log_dir = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, self.log_dir)
        log_file = os.path.join(self.log_dir, "test.log")

        for target, value in (("src.logger.LOG_FILE", log_file), ("sys.stderr", StringIO())):
            patcher = patch(target, new=value)
            patcher.start()
            self.addCleanup(patcher.stop)


class TestClassificationFallback(QuietTestCase):
    """Classifier output that can't be trusted always yields the neutral fallback"""

    def assert_fallback(self, result):
        self.assertEqual(result.sentiment, "neutral")
        self.assertEqual(result.sentiment_score, 0.0)
        self.assertEqual(result.theme, "other")
        self.assertEqual(result.urgency, "medium")

    def test_plain_text_response(self):
        """Test 'not json at all' returns the fixed fallback"""
        from nodes.classify import classify_content, PARSE_FAILURE_SUMMARY

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply("not json at all")
            result = classify_content("The dashboard is slow")

        self.assert_fallback(result)
        self.assertEqual(result.summary, PARSE_FAILURE_SUMMARY)
        self.assertEqual(result.raw_response, "not json at all")
        self.assertIsNone(result.error)

    def test_empty_response(self):
        """Test an empty reply is treated as an extraction failure"""
        from nodes.classify import classify_content

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply("")
            result = classify_content("The dashboard is slow")

        self.assert_fallback(result)

    def test_malformed_json(self):
        """Test braces around something that isn't JSON"""
        from nodes.classify import classify_content

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply("{sentiment: positive, theme: pricing")
            no_close = classify_content("Pricing is fair")

            mock_llm.invoke.return_value = reply("Here you go: {sentiment: 'positive'}")
            bad_json = classify_content("Pricing is fair")

        self.assert_fallback(no_close)
        self.assert_fallback(bad_json)

    def test_hallucinated_theme_is_not_coerced(self):
        """Test an out-of-domain theme rejects the whole response"""
        from nodes.classify import classify_content

        response = json.dumps({
            "sentiment": "negative", "sentiment_score": -0.5,
            "theme": "billing", "urgency": "high", "summary": "Billing issue"
        })
        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply(response)
            result = classify_content("I was double charged")

        self.assert_fallback(result)
        self.assertEqual(result.raw_response, response)

    def test_hallucinated_sentiment_and_urgency(self):
        """Test out-of-domain sentiment or urgency values fall back"""
        from nodes.classify import classify_content

        bad_values = [
            {"sentiment": "very positive", "urgency": "low"},
            {"sentiment": "positive", "urgency": "urgent"},
            {"sentiment": None, "urgency": "low"},
        ]
        with patch('nodes.classify._llm') as mock_llm:
            for values in bad_values:
                mock_llm.invoke.return_value = reply(json.dumps({
                    "sentiment_score": 0.5, "theme": "pricing", "summary": "x", **values
                }))
                self.assert_fallback(classify_content("Pricing is fair"))

    def test_missing_required_key(self):
        """Test a JSON object without urgency falls back"""
        from nodes.classify import classify_content

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply('{"sentiment": "positive", "theme": "pricing"}')
            result = classify_content("Pricing is fair")

        self.assert_fallback(result)

    def test_non_numeric_score(self):
        """Test a non-numeric sentiment_score falls back"""
        from nodes.classify import classify_content

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply(
                '{"sentiment": "positive", "sentiment_score": "very", "theme": "pricing", '
                '"urgency": "low", "summary": "ok"}'
            )
            result = classify_content("Pricing is fair")

        self.assert_fallback(result)

    def test_out_of_range_score_is_clamped(self):
        """Test sentiment_score outside [-1, 1] is clamped, not rejected"""
        from nodes.classify import classify_content

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply(
                '{"sentiment": "positive", "sentiment_score": 3.5, "theme": "pricing", '
                '"urgency": "low", "summary": "ok"}'
            )
            high = classify_content("Pricing is great")

            mock_llm.invoke.return_value = reply(
                '{"sentiment": "negative", "sentiment_score": -7, "theme": "pricing", '
                '"urgency": "low", "summary": "ok"}'
            )
            low = classify_content("Pricing is awful")

        self.assertEqual(high.sentiment, "positive")
        self.assertEqual(high.sentiment_score, 1.0)
        self.assertEqual(low.sentiment_score, -1.0)

    def test_api_error_single_attempt(self):
        """Test an API failure returns the unavailable fallback after exactly one call"""
        from nodes.classify import classify_content, UNAVAILABLE_SUMMARY

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.side_effect = connection_error()
            result = classify_content("The dashboard is slow")

            self.assertEqual(mock_llm.invoke.call_count, 1)

        self.assert_fallback(result)
        self.assertEqual(result.summary, UNAVAILABLE_SUMMARY)
        self.assertIsNotNone(result.error)

    def test_rate_limit_error(self):
        """Test rate limiting is absorbed like any other API error"""
        from nodes.classify import classify_content, UNAVAILABLE_SUMMARY
        from anthropic import RateLimitError

        mock_error = RateLimitError.__new__(RateLimitError)
        mock_error.message = "Rate limit"

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.side_effect = mock_error
            result = classify_content("The dashboard is slow")

        self.assert_fallback(result)
        self.assertEqual(result.summary, UNAVAILABLE_SUMMARY)

    def test_unexpected_error_handling(self):
        """Test non-API errors from the call are absorbed too"""
        from nodes.classify import classify_content

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.side_effect = ValueError("Unexpected error")
            result = classify_content("The dashboard is slow")

        self.assert_fallback(result)
        self.assertEqual(result.error, "Unexpected error")

    def test_results_always_in_domain(self):
        """Test every kind of bad output still yields in-domain fields"""
        from nodes.classify import classify_content

        responses = [
            "", "   ", "{}", "[]", "null", "{\"a\": 1}", "}{", "{{{{",
            '{"sentiment": "positive", "sentiment_score": 1, "theme": "pricing", "urgency": "low"} trailing }',
            "I think this is negative feedback about performance.",
        ]
        with patch('nodes.classify._llm') as mock_llm:
            for response in responses:
                mock_llm.invoke.return_value = reply(response)
                result = classify_content("Some feedback")

                self.assertIn(result.sentiment, SENTIMENTS)
                self.assertIn(result.theme, THEMES)
                self.assertIn(result.urgency, URGENCIES)
                self.assertTrue(-1.0 <= result.sentiment_score <= 1.0)

    def test_empty_content_rejected_before_call(self):
        """Test empty content is an input error and the model is never called"""
        from nodes.classify import classify_content

        with patch('nodes.classify._llm') as mock_llm:
            for content in ("", "   ", None):
                with self.assertRaises(InvalidInputError):
                    classify_content(content)

            mock_llm.invoke.assert_not_called()


class TestSummarizeFallback(QuietTestCase):
    """Summaries never raise and skip the model when there is nothing to summarize"""

    def test_empty_texts_short_circuit(self):
        """Test empty input returns the fixed message without calling the model"""
        from nodes.summarize import summarize_feedback, EMPTY_SUMMARY

        with patch('nodes.summarize._llm') as mock_llm:
            result = summarize_feedback([], "performance")

            mock_llm.invoke.assert_not_called()

        self.assertEqual(result, {"summary": EMPTY_SUMMARY})

    def test_api_error(self):
        """Test API failure returns the manual-review message"""
        from nodes.summarize import summarize_feedback, UNAVAILABLE_SUMMARY

        with patch('nodes.summarize._llm') as mock_llm:
            mock_llm.invoke.side_effect = connection_error()
            result = summarize_feedback(["Slow cold starts"], "performance")

            self.assertEqual(mock_llm.invoke.call_count, 1)

        self.assertEqual(result["summary"], UNAVAILABLE_SUMMARY)
        self.assertIn("error", result)

    def test_unexpected_error(self):
        """Test non-API errors are absorbed"""
        from nodes.summarize import summarize_feedback, UNAVAILABLE_SUMMARY

        with patch('nodes.summarize._llm') as mock_llm:
            mock_llm.invoke.side_effect = RuntimeError("boom")
            result = summarize_feedback(["Slow cold starts"], "performance")

        self.assertEqual(result["summary"], UNAVAILABLE_SUMMARY)
        self.assertEqual(result["error"], "boom")


class TestInputValidation(QuietTestCase):
    """Invalid input is rejected before touching the store or the model"""

    def setUp(self):
        super().setUp()
        from src.store import FeedbackStore
        self.store = FeedbackStore()
        self.store.initialize_schema()

    def tearDown(self):
        self.store.close()

    def test_theme_detail_requires_theme(self):
        """Test missing theme is rejected"""
        from src.aggregate import get_theme_detail

        for theme in ("", None, "  "):
            with self.assertRaises(InvalidInputError):
                get_theme_detail(self.store, theme)

    def test_unknown_filter_value(self):
        """Test filter values outside the closed sets are rejected"""
        from src.filters import build_feedback_query

        with self.assertRaises(InvalidInputError):
            build_feedback_query(sentiment="angry")
        with self.assertRaises(InvalidInputError):
            build_feedback_query(channel="email")
        with self.assertRaises(InvalidInputError):
            build_feedback_query(theme="positive' OR '1'='1")

    def test_invalid_limit(self):
        """Test limit must be a positive integer"""
        from src.filters import build_feedback_query

        for limit in (0, -5, "10", 2.5, True):
            with self.assertRaises(InvalidInputError):
                build_feedback_query(limit=limit)

    def test_ingest_rejects_empty_content(self):
        """Test the workflow refuses empty content and stores nothing"""
        from src.ingestion import ingest_feedback

        with patch('nodes.classify._llm') as mock_llm:
            with self.assertRaises(InvalidInputError):
                ingest_feedback(self.store, [{"channel": "github", "content": "   "}])

            mock_llm.invoke.assert_not_called()

        self.assertEqual(self.store.first("SELECT COUNT(*) AS n FROM feedback")["n"], 0)

    def test_ingest_rejects_unknown_channel(self):
        """Test unknown channels are rejected"""
        from src.ingestion import ingest_feedback

        with self.assertRaises(InvalidInputError):
            ingest_feedback(self.store, [{"channel": "fax", "content": "Hello"}], enable_analysis=False)

    def test_validate_items_structure(self):
        """Test import file structure checks"""
        from src.ingestion import validate_items

        with self.assertRaises(InvalidInputError):
            validate_items({"channel": "github", "content": "x"})
        with self.assertRaises(InvalidInputError):
            validate_items(["not an object"])
        with self.assertRaises(InvalidInputError) as cm:
            validate_items([{"content": "no channel"}])
        self.assertIn("channel", str(cm.exception))

    def test_store_errors_propagate(self):
        """Test store failures are not swallowed by the aggregation layer"""
        import sqlite3
        from src.aggregate import get_overview

        self.store.close()
        with self.assertRaises(sqlite3.Error):
            get_overview(self.store)


    def test_created_at_normalized_to_utc(self):
        """Test mixed ISO 8601 timestamps are stored in one UTC format"""
        from src.ingestion import ingest_feedback
        from src.aggregate import list_feedback, get_sentiment_trend

        with patch('nodes.classify._llm') as mock_llm:
            mock_llm.invoke.return_value = reply(
                '{"sentiment": "neutral", "sentiment_score": 0, "theme": "other", '
                '"urgency": "low", "summary": "ok"}'
            )
            ingest_feedback(self.store, [
                {"channel": "github", "content": "a", "created_at": "2026-01-10 23:00:00"},
                {"channel": "github", "content": "b", "created_at": "2026-01-10T01:00:00Z"},
                {"channel": "github", "content": "c", "created_at": "2026-01-10T20:30:00+02:00"},
            ])

        items = list_feedback(self.store)
        self.assertEqual([i["content"] for i in items], ["a", "c", "b"])
        self.assertEqual(
            [i["created_at"] for i in items],
            ["2026-01-10 23:00:00", "2026-01-10 18:30:00", "2026-01-10 01:00:00"],
        )
        self.assertEqual([b["date"] for b in get_sentiment_trend(self.store)], ["2026-01-10"])

    def test_unparsable_created_at_rejected(self):
        """Test a created_at that isn't a timestamp is an input error and nothing is stored"""
        from src.ingestion import ingest_feedback, validate_items

        for bad in ("yesterday", "2026-13-40", 1736500000):
            with self.assertRaises(InvalidInputError):
                validate_items([{"channel": "github", "content": "x", "created_at": bad}])

        with patch('nodes.classify._llm') as mock_llm:
            with self.assertRaises(InvalidInputError):
                ingest_feedback(self.store, [{"channel": "github", "content": "c", "created_at": "yesterday"}])

            mock_llm.invoke.assert_not_called()

        self.assertEqual(self.store.first("SELECT COUNT(*) AS n FROM feedback")["n"], 0)

    def test_seed_rejects_non_numeric_score(self):
        """Test a seed score that isn't a number is an input error, not a ValueError crash"""
        from src.ingestion import load_seed

        seed_path = os.path.join(self.log_dir, "seed.json")
        for score in ("high", None, True):
            with open(seed_path, "w") as f:
                json.dump([{
                    "channel": "github", "content": "x", "sentiment": "positive",
                    "sentiment_score": score, "theme": "pricing", "urgency": "low",
                }], f)

            with self.assertRaises(InvalidInputError):
                load_seed(self.store, seed_path)

        self.assertEqual(self.store.first("SELECT COUNT(*) AS n FROM feedback")["n"], 0)

    def test_backfill_rejects_invalid_limit(self):
        """Test backfill limit must be a positive integer"""
        from src.ingestion import backfill_pending

        self.store.insert({"channel": "github", "content": "pending"})

        with patch('nodes.classify._llm') as mock_llm:
            for limit in (0, -1, True, "5"):
                with self.assertRaises(InvalidInputError):
                    backfill_pending(self.store, limit=limit)

            mock_llm.invoke.assert_not_called()

        self.assertEqual(self.store.first("SELECT COUNT(*) AS n FROM feedback WHERE analyzed = 0")["n"], 1)

    def test_log_written_to_log_file(self):
        """Test log lines are appended to the log file with a timestamp"""
        from src import logger

        logger.log("Stored something")
        logger.log("")

        with open(logger.LOG_FILE, encoding="utf-8") as f:
            lines = f.read().splitlines()

        self.assertEqual(len(lines), 2)
        self.assertRegex(lines[0], r"^\[\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2} UTC\] Stored something$")
        self.assertEqual(lines[1], "")


class TestCommandLine(QuietTestCase):
    """CLI error handling"""

    def setUp(self):
        super().setUp()
        self.test_dir = tempfile.mkdtemp()
        self.original_dir = os.getcwd()
        os.chdir(self.test_dir)

    def tearDown(self):
        os.chdir(self.original_dir)
        shutil.rmtree(self.test_dir)

    def test_missing_input_file(self):
        """Test error when input file doesn't exist"""
        from main import main

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            with patch('sys.stderr', new=StringIO()) as output:
                with self.assertRaises(SystemExit) as cm:
                    main(["--db", "test.db", "ingest", "nonexistent.json"])

        self.assertEqual(cm.exception.code, 1)
        self.assertIn("Input file not found", output.getvalue())

    def test_invalid_json_format(self):
        """Test error when file contains invalid JSON"""
        from main import main

        with open('invalid.json', 'w') as f:
            f.write("not valid json {")

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            with patch('sys.stderr', new=StringIO()) as output:
                with self.assertRaises(SystemExit) as cm:
                    main(["--db", "test.db", "ingest", "invalid.json"])

        self.assertEqual(cm.exception.code, 1)
        self.assertIn("Invalid JSON", output.getvalue())

    def test_missing_required_fields(self):
        """Test error when items are missing content"""
        from main import main

        with open('missing.json', 'w') as f:
            json.dump([{"channel": "github"}], f)

        with patch('sys.stderr', new=StringIO()) as output:
            with self.assertRaises(SystemExit) as cm:
                main(["--db", "test.db", "ingest", "missing.json", "--no-analysis"])

        self.assertEqual(cm.exception.code, 1)
        self.assertIn("missing required fields", output.getvalue())
        self.assertIn("content", output.getvalue())

    def test_theme_detail_unknown_theme_is_empty(self):
        """Test an unknown theme gives zeroed stats rather than an error"""
        from main import main

        with patch('sys.stdout', new=StringIO()) as output:
            main(["--db", "test.db", "theme", "nonexistent"])

        detail = json.loads(output.getvalue())
        self.assertEqual(detail["stats"]["total"], 0)
        self.assertEqual(detail["stats"]["avg_sentiment"], 0)
        self.assertEqual(detail["samples"], [])

    def test_api_key_required(self):
        """Test missing API key causes early exit with clear error"""
        from main import main

        env = {k: v for k, v in os.environ.items() if k != "ANTHROPIC_API_KEY"}
        with patch.dict(os.environ, env, clear=True):
            with patch('sys.stderr', new=StringIO()) as output:
                with self.assertRaises(SystemExit) as cm:
                    main(["--db", "test.db", "analyze", "Some feedback"])

        self.assertEqual(cm.exception.code, 1)
        self.assertIn("ANTHROPIC_API_KEY", output.getvalue())
        self.assertIn("not set", output.getvalue())

    def test_seed_with_non_numeric_score(self):
        """Test a bad seed score exits cleanly with code 1"""
        from main import main

        with open('bad_seed.json', 'w') as f:
            json.dump([{
                "channel": "github", "content": "x", "sentiment": "positive",
                "sentiment_score": "high", "theme": "pricing", "urgency": "low",
            }], f)

        with patch('sys.stderr', new=StringIO()) as output:
            with self.assertRaises(SystemExit) as cm:
                main(["--db", "test.db", "seed", "bad_seed.json"])

        self.assertEqual(cm.exception.code, 1)
        self.assertIn("sentiment_score", output.getvalue())

    def test_backfill_rejects_non_positive_limit(self):
        """Test backfill --limit below 1 exits with code 1"""
        from main import main

        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            for limit in ("0", "-1"):
                with patch('sys.stderr', new=StringIO()) as output:
                    with self.assertRaises(SystemExit) as cm:
                        main(["--db", "test.db", "backfill", "--limit", limit])

                self.assertEqual(cm.exception.code, 1)
                self.assertIn("limit must be a positive integer", output.getvalue())


if __name__ == "__main__":
    unittest.main(verbosity=2)
