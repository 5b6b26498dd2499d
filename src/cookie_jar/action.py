"""GitHub Action entry point for Cookie Jar."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys

from cookie_jar.config import load_config
from cookie_jar.exceptions import CookieJarError, RateLimitExhaustedError
from cookie_jar.github_client import GitHubClient
from cookie_jar.models import InterventionType
from cookie_jar.orchestrator import CookieJarDetector
from cookie_jar.store import InMemoryConfigStore


async def run_action() -> None:
    """Main action logic."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(levelname)s: %(name)s: %(message)s",
    )
    logger = logging.getLogger("cookie_jar.action")

    token = os.environ.get("GITHUB_TOKEN", "")
    event_path = os.environ.get("GITHUB_EVENT_PATH", "")

    config_path = os.environ.get("INPUT_CONFIG-PATH") or os.environ.get("INPUT_CONFIG_PATH")
    if config_path and not os.path.exists(config_path):
        logger.warning("Config file %s not found, using defaults", config_path)
        config_path = None
    full_scan = os.environ.get("INPUT_FULL-SCAN", "false").lower() == "true"

    if not token:
        print("::error::GITHUB_TOKEN is required")
        sys.exit(1)

    if not event_path or not os.path.exists(event_path):
        print("::error::GITHUB_EVENT_PATH is not set or file does not exist")
        sys.exit(1)

    with open(event_path) as f:
        event = json.load(f)

    config = load_config(config_path)

    async with GitHubClient(token=token, config=config) as client:
        detector = CookieJarDetector(client, InMemoryConfigStore(), config=config)
        if full_scan or "issue" not in event:
            repository = os.environ.get("GITHUB_REPOSITORY", "")
            repo_parts = repository.split("/")
            if len(repo_parts) != 2:
                print(f"::error::Invalid GITHUB_REPOSITORY: {repository}")
                sys.exit(1)
            analytics = await detector.process_repository(*repo_parts)
            nudges = analytics.total_nudges_sent
            released = analytics.total_auto_released
        else:
            interventions = await detector.handle_webhook(event)
            nudges = sum(1 for i in interventions if i.type == InterventionType.NUDGE)
            released = sum(
                1 for i in interventions if i.type == InterventionType.AUTO_RELEASE
            )

    _set_output("interventions", str(nudges + released))
    _set_output("nudges", str(nudges))
    _set_output("auto-released", str(released))

    logger.info("Cookie Jar: %d nudges, %d auto-released", nudges, released)


def _set_output(name: str, value: str) -> None:
    """Set a GitHub Actions output variable."""
    output_file = os.environ.get("GITHUB_OUTPUT")
    if output_file:
        with open(output_file, "a") as f:
            f.write(f"{name}={value}\n")


def main() -> None:
    """Entry point."""
    try:
        asyncio.run(run_action())
    except RateLimitExhaustedError as exc:
        print(f"::error::Rate limit exhausted. Resets at {exc.reset_at.isoformat()}. "
              "Consider using a GitHub App token for higher limits.")
        sys.exit(1)
    except CookieJarError as exc:
        print(f"::error::{exc}")
        sys.exit(1)


if __name__ == "__main__":
    main()
