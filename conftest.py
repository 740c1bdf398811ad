"""
Root-level pytest configuration for the Awesome List Ranker.

Configures:
- Custom markers (integration)
- Shared fixtures: recorded sleeps, GitHub payloads, mocked API transport
"""

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (mocked GitHub API)"
    )


class RecordingSleep:
    """Async sleep replacement that records requested durations."""

    def __init__(self):
        self.calls: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)

    @property
    def total(self) -> float:
        return sum(self.calls)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    """Sleep that returns immediately and remembers how long it was asked to wait."""
    return RecordingSleep()


def make_repo_payload(full_name: str, stars: int = 100, **overrides: Any) -> Dict[str, Any]:
    """GET /repos/{owner}/{repo} body with the fields the ranker validates."""
    payload = {
        "id": 1,
        "name": full_name.split("/", 1)[1],
        "full_name": full_name,
        "html_url": f"https://github.com/{full_name}",
        "description": f"{full_name} description",
        "stargazers_count": stars,
        "updated_at": "2024-05-01T12:00:00Z",
        "topics": ["awesome"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def repo_payload() -> Callable[..., Dict[str, Any]]:
    return make_repo_payload


class FakeGitHubAPI:
    """
    httpx.MockTransport handler serving /repos/{owner}/{repo}.

    Repositories registered with add() answer 200; anything else answers 404.
    Custom responders can be registered per repository for failure cases.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self._responders: Dict[str, Callable[[httpx.Request], httpx.Response]] = {}

    def add(self, full_name: str, stars: int = 100, **overrides: Any) -> None:
        payload = make_repo_payload(full_name, stars=stars, **overrides)
        self._responders[full_name] = lambda request: httpx.Response(200, json=payload)

    def respond(self, full_name: str, responder: Callable[[httpx.Request], httpx.Response]) -> None:
        self._responders[full_name] = responder

    def calls_for(self, full_name: str) -> int:
        path = f"/repos/{full_name}"
        return sum(1 for r in self.requests if r.url.path == path)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        full_name = request.url.path[len("/repos/"):]
        responder = self._responders.get(full_name)
        if responder is None:
            return httpx.Response(404, json={"message": "Not Found"})
        return responder(request)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def fake_github() -> FakeGitHubAPI:
    return FakeGitHubAPI()


def status_response(status: int, headers: Optional[Dict[str, str]] = None) -> Callable[[httpx.Request], httpx.Response]:
    """Responder that always answers with the given status."""
    def responder(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, headers=headers or {}, json={"message": "error"})
    return responder


@pytest.fixture
def status_responder() -> Callable[..., Callable[[httpx.Request], httpx.Response]]:
    return status_response
