"""Example: Run a dry-run Cookie Jar pass over a repository."""

from __future__ import annotations

import asyncio
import os

from cookie_jar import CookieJarDetector, load_config
from cookie_jar.github_client import GitHubClient, ReadOnlyDataSource
from cookie_jar.store import InMemoryConfigStore


async def main() -> None:
    config = load_config()
    async with GitHubClient(token=os.environ["GITHUB_TOKEN"], config=config) as client:
        detector = CookieJarDetector(
            ReadOnlyDataSource(client), InMemoryConfigStore(), config=config
        )
        analytics = await detector.process_repository("octocat", "Hello-World")

    print(f"Issues analyzed: {analytics.total_issues_analyzed}")
    print(f"Claims detected: {analytics.total_claims_detected}")
    print(f"Nudges (not posted): {analytics.total_nudges_sent}")
    print(f"Auto-releases (not posted): {analytics.total_auto_released}")

    for contributor in analytics.top_contributors:
        print(f"  {contributor.username}: net {contributor.net_score}")


if __name__ == "__main__":
    asyncio.run(main())
