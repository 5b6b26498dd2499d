"""Cookie Jar - detect and release stale GitHub issue claims."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version

from cookie_jar.config import CookieJarConfig, RepositoryConfig, load_config
from cookie_jar.exceptions import CookieJarError
from cookie_jar.models import Analytics, ClaimStatus, IssueClaim
from cookie_jar.orchestrator import CookieJarDetector

try:
    __version__ = version("cookie-jar")
except PackageNotFoundError:
    __version__ = "0.0.0"

__all__ = [
    "Analytics",
    "ClaimStatus",
    "CookieJarConfig",
    "CookieJarDetector",
    "CookieJarError",
    "IssueClaim",
    "RepositoryConfig",
    "__version__",
    "load_config",
]
