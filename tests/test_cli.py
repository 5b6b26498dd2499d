"""Tests for the CLI module."""

from __future__ import annotations

import json
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock, patch

from click.testing import CliRunner

from cookie_jar.cli import main
from cookie_jar.config import CookieJarConfig
from cookie_jar.exceptions import GitHubAPIError
from cookie_jar.models import Analytics, CandidateAssessment


def _make_analytics() -> Analytics:
    return Analytics(
        repository_id="owner/repo",
        total_issues_analyzed=12,
        total_claims_detected=4,
        total_claims_resolved=1,
        total_auto_released=1,
        total_nudges_sent=2,
        success_rate=1 / 3,
        issue_complexity_distribution={"low": 8, "medium": 3, "high": 1},
        failed_issues=[7],
    )


class TestScanCommand:
    def test_scan_no_token(self) -> None:
        """Invoking scan without a token should print an error and exit non-zero."""
        runner = CliRunner(env={"GITHUB_TOKEN": ""})
        result = runner.invoke(main, ["scan", "owner/repo"])
        assert result.exit_code != 0
        output = result.output + (result.stderr or "")
        assert "GitHub token required" in output

    def test_scan_bad_repo_format(self) -> None:
        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["scan", "badformat"])
        assert result.exit_code != 0
        assert "owner/name" in result.output or "owner/name" in (result.stderr or "")

    @patch("cookie_jar.cli._scan", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_scan_success(self, mock_load_config: MagicMock, mock_scan: AsyncMock) -> None:
        config = CookieJarConfig()
        mock_load_config.return_value = config
        mock_scan.return_value = _make_analytics()

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["scan", "owner/repo"])

        assert result.exit_code == 0
        assert "Issues analyzed: 12" in result.output
        assert "Nudges sent: 2 | Auto-released: 1" in result.output
        assert "Intervention success rate: 33%" in result.output
        assert "Failed issues: #7" in result.output
        mock_scan.assert_awaited_once_with("owner", "repo", "ghp_fake123", config, False)

    @patch("cookie_jar.cli._scan", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_scan_dry_run_verbose(
        self, mock_load_config: MagicMock, mock_scan: AsyncMock
    ) -> None:
        mock_load_config.return_value = CookieJarConfig()
        mock_scan.return_value = _make_analytics()

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["scan", "owner/repo", "--dry-run", "-v"])

        assert result.exit_code == 0
        assert "Complexity distribution:" in result.output
        assert "  low: 8" in result.output
        assert mock_scan.await_args.args[-1] is True

    @patch("cookie_jar.cli._scan", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_scan_json_output(self, mock_load_config: MagicMock, mock_scan: AsyncMock) -> None:
        mock_load_config.return_value = CookieJarConfig()
        mock_scan.return_value = _make_analytics()

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["scan", "owner/repo", "--json"])

        assert result.exit_code == 0
        parsed = json.loads(result.output)
        assert parsed["repository_id"] == "owner/repo"
        assert parsed["total_auto_released"] == 1

    @patch("cookie_jar.cli._scan", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_scan_api_error(self, mock_load_config: MagicMock, mock_scan: AsyncMock) -> None:
        mock_load_config.return_value = CookieJarConfig()
        mock_scan.side_effect = GitHubAPIError("GitHub API returned 502", status_code=502)

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["scan", "owner/repo"])

        assert result.exit_code == 1
        output = result.output + (result.stderr or "")
        assert "Error: GitHub API returned 502" in output


class TestClassifyCommand:
    def test_claim(self) -> None:
        result = CliRunner().invoke(main, ["classify", "Can I work on this?"])
        assert result.exit_code == 0
        assert "Claim: yes (comment)" in result.output
        assert "Progress: no" in result.output
        assert "Suggested action: nudge" in result.output

    def test_abandonment(self) -> None:
        result = CliRunner().invoke(main, ["classify", "Sorry, I can't continue with this"])
        assert result.exit_code == 0
        assert "Claim: no" in result.output
        assert "Abandonment: yes" in result.output

    def test_reliability_option(self) -> None:
        result = CliRunner().invoke(
            main, ["classify", "I will work on this, definitely", "--reliability", "20"]
        )
        assert result.exit_code == 0
        assert "Low contributor reliability score" in result.output

    def test_reliability_out_of_range(self) -> None:
        result = CliRunner().invoke(main, ["classify", "dibs", "--reliability", "120"])
        assert result.exit_code == 2


class TestCandidatesCommand:
    @patch("cookie_jar.cli._candidates", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_table(self, mock_load_config: MagicMock, mock_candidates: AsyncMock) -> None:
        mock_load_config.return_value = CookieJarConfig()
        mock_candidates.return_value = [
            CandidateAssessment(
                username="alice",
                claimed_at=datetime(2024, 6, 10, tzinfo=UTC),
                predictive_score=71,
                reliability_score=100,
                previous_contributions=2,
                days_since_claim=5,
            )
        ]

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["candidates", "owner/repo", "42"])

        assert result.exit_code == 0
        assert "alice" in result.output
        assert "71" in result.output
        assert mock_candidates.await_args.args[:3] == ("owner", "repo", 42)

    @patch("cookie_jar.cli._candidates", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_json_and_empty(
        self, mock_load_config: MagicMock, mock_candidates: AsyncMock
    ) -> None:
        mock_load_config.return_value = CookieJarConfig()
        mock_candidates.return_value = []

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        assert json.loads(
            runner.invoke(main, ["candidates", "owner/repo", "42", "--json"]).output
        ) == []
        assert "No candidates found." in runner.invoke(
            main, ["candidates", "owner/repo", "42"]
        ).output


class TestWatchCommand:
    @patch("cookie_jar.cli._watch", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_interval_defaults_to_config(
        self, mock_load_config: MagicMock, mock_watch: AsyncMock
    ) -> None:
        mock_load_config.return_value = CookieJarConfig()

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["watch", "owner/repo", "--max-runs", "1"])

        assert result.exit_code == 0
        assert "every 60 minutes" in result.output
        args = mock_watch.await_args.args
        assert args[4:] == (60, False, 1)

    @patch("cookie_jar.cli._watch", new_callable=AsyncMock)
    @patch("cookie_jar.cli.load_config")
    def test_interval_option(self, mock_load_config: MagicMock, mock_watch: AsyncMock) -> None:
        mock_load_config.return_value = CookieJarConfig()

        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["watch", "owner/repo", "--interval", "5", "--dry-run"])

        assert result.exit_code == 0
        assert mock_watch.await_args.args[4:] == (5, True, None)

    def test_interval_must_be_positive(self) -> None:
        runner = CliRunner(env={"GITHUB_TOKEN": "ghp_fake123"})
        result = runner.invoke(main, ["watch", "owner/repo", "--interval", "0"])
        assert result.exit_code == 2


class TestConfigShow:
    def test_shows_effective_config(self) -> None:
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config-show"])
        assert result.exit_code == 0
        parsed = json.loads(result.output)
        assert parsed["defaults"]["grace_period_days"] == 7
        assert parsed["notifications"]["probability_benchmark"] == 40.0

    def test_invalid_config(self) -> None:
        runner = CliRunner(env={"COOKIE_JAR_PROBABILITY_BENCHMARK": "500"})
        with runner.isolated_filesystem():
            result = runner.invoke(main, ["config-show"])
        assert result.exit_code == 1
        output = result.output + (result.stderr or "")
        assert "Benchmark must be between 0 and 100" in output
