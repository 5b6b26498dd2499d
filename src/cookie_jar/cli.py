"""Click-based CLI for Cookie Jar."""

from __future__ import annotations

import asyncio
import logging
import sys

import click

from cookie_jar.classifier import AdvancedClaimDetector, detect_abandonment, detect_progress
from cookie_jar.config import CookieJarConfig, load_config
from cookie_jar.exceptions import CookieJarError
from cookie_jar.formatter import (
    format_analytics_cli,
    format_candidates,
    format_classification,
    format_json,
)
from cookie_jar.github_client import GitHubClient, ReadOnlyDataSource
from cookie_jar.models import Analytics, CandidateAssessment, Contributor
from cookie_jar.notifications import LoggingNotificationSink
from cookie_jar.orchestrator import CookieJarDetector
from cookie_jar.scheduler import PeriodicTask
from cookie_jar.store import SQLiteConfigStore


def _split_repo(value: str) -> tuple[str, str]:
    parts = value.split("/")
    if len(parts) != 2 or not all(parts):
        click.echo("Error: repository must be in owner/name format.", err=True)
        sys.exit(1)
    return parts[0], parts[1]


def _require_token(token: str | None) -> str:
    if not token:
        click.echo("Error: GitHub token required. Set GITHUB_TOKEN or use --token.", err=True)
        sys.exit(1)
    return token


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s: %(name)s: %(message)s",
    )


async def _scan(
    owner: str, repo: str, token: str, config: CookieJarConfig, dry_run: bool
) -> Analytics:
    store = SQLiteConfigStore(config.store.db_path)
    try:
        async with GitHubClient(token=token, config=config) as client:
            source = ReadOnlyDataSource(client) if dry_run else client
            detector = CookieJarDetector(
                source, store, notifier=LoggingNotificationSink(), config=config
            )
            return await detector.process_repository(owner, repo)
    finally:
        store.close()


async def _candidates(
    owner: str, repo: str, issue_number: int, token: str, config: CookieJarConfig
) -> list[CandidateAssessment]:
    store = SQLiteConfigStore(config.store.db_path)
    try:
        async with GitHubClient(token=token, config=config) as client:
            detector = CookieJarDetector(client, store, config=config)
            return await detector.rank_candidates(owner, repo, issue_number)
    finally:
        store.close()


async def _watch(
    owner: str, repo: str, token: str, config: CookieJarConfig,
    interval_minutes: int, dry_run: bool, max_runs: int | None,
) -> None:
    store = SQLiteConfigStore(config.store.db_path)
    try:
        async with GitHubClient(token=token, config=config) as client:
            source = ReadOnlyDataSource(client) if dry_run else client
            detector = CookieJarDetector(
                source, store, notifier=LoggingNotificationSink(), config=config
            )

            async def run() -> None:
                analytics = await detector.process_repository(owner, repo)
                click.echo(format_analytics_cli(analytics))

            task = PeriodicTask(run, interval_minutes * 60, max_runs=max_runs)
            task.start()
            try:
                await task.wait()
            finally:
                await task.stop()
    finally:
        store.close()


@click.group()
@click.version_option(package_name="cookie-jar")
def main() -> None:
    """Cookie Jar - detect and release stale GitHub issue claims."""


@main.command()
@click.argument("repository")
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--dry-run", is_flag=True, help="Analyze without commenting or relabeling")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def scan(
    repository: str,
    token: str | None,
    config_path: str | None,
    dry_run: bool,
    verbose: bool,
    output_json: bool,
) -> None:
    """Run one pass over REPOSITORY (owner/name)."""
    token = _require_token(token)
    owner, repo = _split_repo(repository)
    _setup_logging(verbose)
    config = load_config(config_path)

    try:
        analytics = asyncio.run(_scan(owner, repo, token, config, dry_run))
    except CookieJarError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_json:
        click.echo(format_json(analytics))
    else:
        click.echo(format_analytics_cli(analytics, verbose=verbose))


@main.command()
@click.argument("text")
@click.option(
    "--reliability",
    type=click.FloatRange(0, 100),
    default=None,
    help="Reliability score of the author (0-100)",
)
def classify(text: str, reliability: float | None) -> None:
    """Classify a comment TEXT as claim, progress or abandonment."""
    contributor = None
    if reliability is not None:
        contributor = Contributor(id="cli", username="cli", reliability_score=reliability)
    detector = AdvancedClaimDetector()
    result = detector.detect_claim(text, contributor)
    click.echo(
        format_classification(
            text,
            is_claim=result.is_claim,
            is_progress=detect_progress(text),
            is_abandonment=detect_abandonment(text),
            result=result,
        )
    )


@main.command()
@click.argument("repository")
@click.argument("issue_number", type=int)
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def candidates(
    repository: str,
    issue_number: int,
    token: str | None,
    config_path: str | None,
    output_json: bool,
) -> None:
    """Rank contributors asking to work on ISSUE_NUMBER."""
    token = _require_token(token)
    owner, repo = _split_repo(repository)
    config = load_config(config_path)

    try:
        ranked = asyncio.run(_candidates(owner, repo, issue_number, token, config))
    except CookieJarError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if output_json:
        click.echo("[" + ",".join(c.model_dump_json() for c in ranked) + "]")
    else:
        click.echo(format_candidates(ranked))


@main.command()
@click.argument("repository")
@click.option("--token", envvar="GITHUB_TOKEN", help="GitHub token")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option(
    "--interval", type=click.IntRange(min=1), default=None, help="Minutes between passes"
)
@click.option("--dry-run", is_flag=True, help="Analyze without commenting or relabeling")
@click.option("--max-runs", type=int, default=None, hidden=True)
def watch(
    repository: str,
    token: str | None,
    config_path: str | None,
    interval: int | None,
    dry_run: bool,
    max_runs: int | None,
) -> None:
    """Process REPOSITORY repeatedly until interrupted."""
    token = _require_token(token)
    owner, repo = _split_repo(repository)
    _setup_logging(True)
    config = load_config(config_path)
    minutes = interval or config.scheduler.interval_minutes

    click.echo(f"Watching {owner}/{repo} every {minutes} minutes")
    try:
        asyncio.run(_watch(owner, repo, token, config, minutes, dry_run, max_runs))
    except KeyboardInterrupt:
        click.echo("Stopped.")


@main.command("config-show")
@click.option("--config", "config_path", default=None, help="Config file path")
def config_show(config_path: str | None) -> None:
    """Show the effective configuration."""
    try:
        config = load_config(config_path)
    except CookieJarError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(format_json(config))
