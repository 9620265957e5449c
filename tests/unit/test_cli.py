"""
Unit tests for the CLI module.

Tests cover:
- Help text
- Command wiring with patched pipeline and acquisitor builders
- Exit codes for rejections and invalid input
"""

import asyncio

import pytest
from click.testing import CliRunner
from unittest.mock import patch

from conftest import CHIP_REFERENCE, EU_REFERENCE, FakeBackend, FakeFeed, draft_json, feed_payload, news_json
from newsgate.__main__ import cli
from newsgate.generation import GenerationOrchestrator
from newsgate.ops import MetricsRegistry
from newsgate.pipeline import GroundedGenerationPipeline


@pytest.fixture
def runner():
    """Create CLI test runner."""
    return CliRunner()


@pytest.fixture
def patched_cli(settings):
    """Patch settings and logging so commands run against test settings."""
    with patch("newsgate.__main__.get_settings", return_value=settings), patch(
        "newsgate.__main__.configure_logging"
    ):
        yield


@pytest.fixture
def make_pipeline(settings, make_acquisitor, sleep_recorder):
    def _make(responses):
        orchestrator = GenerationOrchestrator(
            FakeBackend(responses), models=["primary"], settings=settings, sleep=sleep_recorder
        )
        feed = FakeFeed(default=feed_payload(EU_REFERENCE, CHIP_REFERENCE))
        return GroundedGenerationPipeline(
            orchestrator, make_acquisitor(feed), metrics=MetricsRegistry(), settings=settings
        )

    return _make


class TestCliGroup:
    """Tests for the main CLI group."""

    def test_help_shows_commands(self, runner):
        """Help text shows all available commands."""
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        for command in ("references", "draft", "news", "compliance", "ops"):
            assert command in result.output

    def test_draft_help(self, runner):
        """Draft command lists its options."""
        result = runner.invoke(cli, ["draft", "--help"])
        assert result.exit_code == 0
        assert "--mode" in result.output
        assert "--ref-url" in result.output

    def test_draft_rejects_unknown_mode(self, runner, patched_cli):
        """Only draft modes are accepted."""
        result = runner.invoke(cli, ["draft", "AI Act", "--mode", "news"])
        assert result.exit_code != 0


class TestReferencesCommand:
    """Tests for the references command."""

    def test_lists_references(self, runner, patched_cli, make_acquisitor):
        """Fetched references are printed."""
        acquisitor = make_acquisitor(FakeFeed(default=feed_payload(EU_REFERENCE, CHIP_REFERENCE)))
        with patch("newsgate.__main__._build_acquisitor", return_value=acquisitor):
            result = runner.invoke(cli, ["references", "AI regulation", "--limit", "2"])

        assert result.exit_code == 0
        assert "Reuters" in result.output
        assert "AP" in result.output

    def test_reports_fallback(self, runner, patched_cli, make_acquisitor):
        """Fallback paths are called out."""
        acquisitor = make_acquisitor(FakeFeed(top_stories=feed_payload(EU_REFERENCE)))
        with patch("newsgate.__main__._build_acquisitor", return_value=acquisitor):
            result = runner.invoke(cli, ["references", "AI regulation"])

        assert result.exit_code == 0
        assert "REFERENCE_TOP_STORIES" in result.output


class TestDraftCommand:
    """Tests for the draft command."""

    def test_prints_accepted_draft(self, runner, patched_cli, make_pipeline):
        """An accepted draft is printed with its compliance summary."""
        pipeline = make_pipeline([draft_json()])
        with patch("newsgate.__main__._build_pipeline", return_value=pipeline):
            result = runner.invoke(
                cli,
                [
                    "draft",
                    "AI Act",
                    "--ref-title",
                    EU_REFERENCE["title"],
                    "--ref-url",
                    EU_REFERENCE["url"],
                    "--ref-summary",
                    EU_REFERENCE["summary"],
                    "--ref-source",
                    "Reuters",
                ],
            )

        assert result.exit_code == 0
        assert "Compliance risk" in result.output
        assert "Sections" in result.output

    def test_rejection_exits_nonzero_with_code(self, runner, patched_cli, make_pipeline):
        """Rejections print their code and exit 1."""
        pipeline = make_pipeline([draft_json(url="https://example.com/invented")])
        with patch("newsgate.__main__._build_pipeline", return_value=pipeline):
            result = runner.invoke(
                cli, ["draft", "AI Act", "--ref-title", EU_REFERENCE["title"], "--ref-url", EU_REFERENCE["url"]]
            )

        assert result.exit_code == 1
        assert "AI_DRAFT_REFERENCE_OUT_OF_SCOPE" in result.output


class TestNewsCommand:
    """Tests for the news command."""

    def test_prints_items(self, runner, patched_cli, make_pipeline):
        """Accepted items are printed one panel each."""
        pipeline = make_pipeline([news_json()])
        with patch("newsgate.__main__._build_pipeline", return_value=pipeline):
            result = runner.invoke(cli, ["news", "clarity", "AI regulation", "--count", "2"])

        assert result.exit_code == 0
        assert "clarity #1" in result.output
        assert "clarity #2" in result.output

    def test_unknown_emotion_exits_2(self, runner, patched_cli, make_pipeline):
        """Invalid arguments exit with status 2."""
        pipeline = make_pipeline([])
        with patch("newsgate.__main__._build_pipeline", return_value=pipeline):
            result = runner.invoke(cli, ["news", "melancholy", "AI"])

        assert result.exit_code == 2
        assert "Unknown emotion category" in result.output


class TestComplianceCommand:
    """Tests for the compliance command."""

    def test_blocked_text_exits_1(self, runner, patched_cli):
        """High-risk text exits non-zero."""
        result = runner.invoke(cli, ["compliance", "주민등록번호와 계좌번호를 공개한다."])
        assert result.exit_code == 1
        assert "high" in result.output

    def test_clean_text(self, runner, patched_cli):
        """Low-risk text exits zero."""
        result = runner.invoke(cli, ["compliance", "The central bank held rates steady."])
        assert result.exit_code == 0
        assert "low" in result.output


class TestOpsCommand:
    """Tests for the ops command."""

    def test_shows_counters(self, runner, patched_cli):
        """Counters are listed even when nothing is stored yet."""
        result = runner.invoke(cli, ["ops"])
        assert result.exit_code == 0
        assert "requests" in result.output


class TestFailureExits:
    """Tests for request ceiling and argument errors."""

    def test_request_ceiling_exits_1(self, runner, settings):
        """Exceeding request_timeout_s prints a message instead of a traceback."""

        class HangingAcquisitor:
            async def fetch_references(self, keyword, limit=None):
                await asyncio.sleep(10)

        quick = settings.model_copy(update={"request_timeout_s": 0.05})
        with patch("newsgate.__main__.get_settings", return_value=quick), patch(
            "newsgate.__main__.configure_logging"
        ), patch("newsgate.__main__._build_acquisitor", return_value=HangingAcquisitor()):
            result = runner.invoke(cli, ["references", "AI regulation"])

        assert result.exit_code == 1
        assert "Timed out" in result.output
        assert not isinstance(result.exception, asyncio.TimeoutError)

    def test_draft_invalid_arguments_exit_2(self, runner, patched_cli, make_pipeline):
        """A draft with neither topic nor reference exits with status 2."""
        pipeline = make_pipeline([])
        with patch("newsgate.__main__._build_pipeline", return_value=pipeline):
            result = runner.invoke(cli, ["draft", "   "])

        assert result.exit_code == 2
        assert "topic or a selected reference is required" in result.output
