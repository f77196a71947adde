"""
GitHub Issues Client
Stores leads as issues and lists them back for the admin export

GitHub REST usage:
1. POST /repos/{owner}/{repo}/issues to create a lead
2. GET  /repos/{owner}/{repo}/issues?labels=...&page=N to list leads
3. GET  /rate_limit for the netcheck endpoint
"""

from typing import Any, Optional

import httpx
import structlog

from shared.schemas.lead import EncodedIssue, GitHubIssue

from .config import Settings

logger = structlog.get_logger()

PER_PAGE = 100
MAX_PAGES = 50  # 5,000 issues


class GitHubAPIError(Exception):
    """GitHub answered with an error (or could not be reached)"""

    def __init__(self, status_code: int, detail: str, message: str = "GitHub API error"):
        super().__init__(f"{message} ({status_code})")
        self.status_code = status_code
        self.detail = detail
        self.message = message


class GitHubTimeoutError(GitHubAPIError):
    """GitHub did not answer within the configured timeout"""

    def __init__(self, detail: str):
        super().__init__(504, detail, message="GitHub API timeout")


class GitHubIssuesClient:
    """
    Async client for the GitHub Issues API.

    One attempt per call, bounded by Settings.timeout; no retries.
    """

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.api_token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": self.settings.user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.settings.timeout,
                headers=self._headers,
                transport=self._transport,
            )
        return self._client

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request, mapping timeouts and non-2xx answers to GitHubAPIError"""
        try:
            response = await self._get_client().request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.error("GitHub request timed out", method=method, url=url, timeout=self.settings.timeout)
            raise GitHubTimeoutError(f"No response within {self.settings.timeout}s: {e!r}") from e
        except httpx.HTTPError as e:
            logger.error("GitHub request failed", method=method, url=url, error=str(e))
            raise GitHubAPIError(502, str(e), message="GitHub unreachable") from e

        if response.is_error:
            logger.warning(
                "GitHub returned an error",
                method=method,
                url=url,
                status=response.status_code,
            )
            raise GitHubAPIError(response.status_code, response.text)
        return response

    async def create_issue(self, issue: EncodedIssue) -> GitHubIssue:
        """
        Create an issue for a lead.

        Args:
            issue: Encoded title, body and labels

        Returns:
            The created issue (number, html_url, created_at, ...)
        """
        response = await self._request(
            "POST",
            self.settings.issues_url,
            json={"title": issue.title, "body": issue.body, "labels": issue.labels},
        )
        created = GitHubIssue.model_validate(response.json())
        logger.info("Created issue", number=created.number, labels=issue.labels)
        return created

    async def list_issues(
        self,
        labels: Optional[list[str]] = None,
        state: str = "all",
        per_page: int = PER_PAGE,
        max_pages: int = MAX_PAGES,
    ) -> list[dict]:
        """
        List issues newest first, following pages until a short page.

        Args:
            labels: Only issues carrying all of these labels
            state: open / closed / all
            per_page: Page size (GitHub caps at 100)
            max_pages: Hard stop on the number of pages fetched

        Returns:
            Raw issue dictionaries (pull requests skipped)
        """
        params: dict[str, Any] = {
            "state": state,
            "sort": "created",
            "direction": "desc",
            "per_page": per_page,
        }
        if labels:
            params["labels"] = ",".join(labels)

        issues: list[dict] = []
        page = 1
        while page <= max_pages:
            response = await self._request(
                "GET", self.settings.issues_url, params={**params, "page": page}
            )
            batch = response.json()
            if not isinstance(batch, list) or not batch:
                break
            issues.extend(item for item in batch if isinstance(item, dict) and "pull_request" not in item)
            if len(batch) < per_page:
                break
            page += 1
        else:
            logger.warning("Stopped listing at page cap", max_pages=max_pages, fetched=len(issues))

        logger.info("Listed issues", count=len(issues), pages=page, labels=labels)
        return issues

    async def rate_limit(self) -> dict:
        """Core rate-limit bucket: {limit, used, remaining, reset}"""
        response = await self._request("GET", f"{self.settings.api_base}/rate_limit")
        return response.json().get("resources", {}).get("core", {})

    async def check_health(self) -> bool:
        """Check if GitHub is reachable with the configured token"""
        try:
            await self.rate_limit()
            return True
        except GitHubAPIError as e:
            logger.warning("GitHub health check failed", status=e.status_code, error=e.message)
            return False

    async def close(self):
        """Close the underlying HTTP client"""
        if self._client:
            await self._client.aclose()
            self._client = None
