"""
Lead Inbox Configuration
Explicit settings object passed to the GitHub client and the API
"""

import os
from typing import Optional

from pydantic import BaseModel, Field

DEFAULT_API_BASE = "https://api.github.com"


class ConfigError(RuntimeError):
    """Required configuration is missing or malformed"""


class Settings(BaseModel):
    """
    Runtime settings.

    Secrets are kept out of repr so they never reach a log line.
    """
    api_token: str = Field("", repr=False)
    repo_full_name: str = ""
    admin_token: str = Field("", repr=False)
    default_site: str = "unknown"
    timeout: float = 10.0
    api_base: str = DEFAULT_API_BASE
    user_agent: str = "lead-inbox"

    @classmethod
    def from_env(cls, require: bool = True) -> "Settings":
        """
        Build settings from GH_TOKEN, GH_REPO_FULLNAME, ADMIN_TOKEN and friends.

        Args:
            require: raise ConfigError when a required value is blank
        """
        settings = cls(
            api_token=os.getenv("GH_TOKEN", "").strip(),
            repo_full_name=os.getenv("GH_REPO_FULLNAME", "").strip(),
            admin_token=os.getenv("ADMIN_TOKEN", "").strip(),
            default_site=os.getenv("LEAD_DEFAULT_SITE", "unknown").strip().lower() or "unknown",
            timeout=float(os.getenv("GITHUB_TIMEOUT", "10")),
            api_base=os.getenv("GITHUB_API_URL", DEFAULT_API_BASE).rstrip("/"),
        )
        if require:
            settings.require()
        return settings

    def missing(self) -> list[str]:
        """Names of required environment variables that are blank"""
        missing = []
        if not self.api_token:
            missing.append("GH_TOKEN")
        if not self.repo_full_name:
            missing.append("GH_REPO_FULLNAME")
        if not self.admin_token:
            missing.append("ADMIN_TOKEN")
        return missing

    def require(self) -> "Settings":
        """Fail fast on blank or malformed required settings"""
        missing = self.missing()
        if missing:
            raise ConfigError(f"Missing env ({', '.join(missing)})")
        owner, _, repo = self.repo_full_name.partition("/")
        if not owner or not repo or "/" in repo:
            raise ConfigError(
                f"GH_REPO_FULLNAME must look like 'owner/repo', got {self.repo_full_name!r}"
            )
        return self

    @property
    def issues_url(self) -> str:
        return f"{self.api_base}/repos/{self.repo_full_name}/issues"

    def env_presence(self) -> dict[str, bool]:
        """Which secrets are configured, without revealing them"""
        return {
            "GH_TOKEN": bool(self.api_token),
            "GH_REPO_FULLNAME": bool(self.repo_full_name),
            "ADMIN_TOKEN": bool(self.admin_token),
        }


def get_version_info() -> dict[str, Optional[str]]:
    """Deployment metadata exposed by /api/version"""
    return {
        "commit": os.getenv("VERCEL_GIT_COMMIT_SHA") or os.getenv("GIT_COMMIT_SHA") or "unknown",
        "url": os.getenv("VERCEL_URL") or os.getenv("DEPLOY_URL") or "unknown",
    }
