"""
Shared fixtures: settings, an in-memory GitHub Issues API and an API client
"""

import json
from typing import Callable, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from services.api.main import create_app
from services.ingest.config import Settings


class FakeGitHub:
    """
    Minimal GitHub Issues API served through httpx.MockTransport.

    Issues are kept newest first, like GitHub returns them with
    sort=created&direction=desc.
    """

    def __init__(self, issues: Optional[list[dict]] = None):
        self.issues = list(issues or [])
        self.requests: list[httpx.Request] = []
        self.fail_with: Optional[httpx.Response] = None
        self.raise_exc: Optional[Callable[[httpx.Request], Exception]] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc(request)
        if self.fail_with is not None:
            return self.fail_with

        path = request.url.path
        if request.method == "POST" and path.endswith("/issues"):
            payload = json.loads(request.content)
            number = len(self.issues) + 1
            issue = {
                "number": number,
                "html_url": f"https://github.com/acme/leads/issues/{number}",
                "created_at": "2024-05-01T03:00:00Z",
                "title": payload["title"],
                "body": payload["body"],
                "labels": [{"name": name} for name in payload["labels"]],
            }
            self.issues.insert(0, issue)
            return httpx.Response(201, json=issue)

        if request.method == "GET" and path.endswith("/issues"):
            page = int(request.url.params.get("page", "1"))
            per_page = int(request.url.params.get("per_page", "100"))
            start = (page - 1) * per_page
            return httpx.Response(200, json=self.issues[start:start + per_page])

        if request.method == "GET" and path == "/rate_limit":
            return httpx.Response(200, json={
                "resources": {"core": {"limit": 5000, "used": 1, "remaining": 4999, "reset": 0}},
            })

        return httpx.Response(404, json={"message": "Not Found"})

    @property
    def posts(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        api_token="gh-test-token",
        repo_full_name="acme/leads",
        admin_token="admin-secret",
        default_site="unknown",
    )


@pytest.fixture
def github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def transport(github: FakeGitHub) -> httpx.MockTransport:
    return httpx.MockTransport(github)


@pytest.fixture
def api(settings: Settings, transport: httpx.MockTransport):
    with TestClient(create_app(settings, transport)) as client:
        yield client


@pytest.fixture
def admin_headers(settings: Settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {settings.admin_token}"}


@pytest.fixture
def phone_form() -> dict:
    return {
        "type": "phone",
        "site": "teeth",
        "name": "홍길동",
        "phone": "12345678",
        "birth": "900101",
        "gender": "남",
    }


@pytest.fixture
def online_form() -> dict:
    return {
        "type": "online",
        "site": "teeth",
        "name": "김영희",
        "phone": "010-9876-5432",
        "rrnFront": "900101",
        "rrnBack": "1234567",
        "gender": "",
    }
