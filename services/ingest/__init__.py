"""
Lead Inbox Ingest
Talks to the GitHub Issues API that stores leads

Components:
- config.py: Settings read from the environment, validated up front
- client.py: GitHub Issues client (httpx, single attempt, bounded timeout)
- cli.py: Command-line tool for netcheck, export and offline decoding
"""

from .client import GitHubAPIError, GitHubIssuesClient, GitHubTimeoutError
from .config import ConfigError, Settings

__all__ = [
    "GitHubIssuesClient",
    "GitHubAPIError",
    "GitHubTimeoutError",
    "ConfigError",
    "Settings",
]
