import sys
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Ensure src/ is on sys.path for importing the liora package during tests
repo_root = Path(__file__).resolve().parents[1]
src_path = repo_root / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Load environment variables from project .env for tests
load_dotenv(repo_root / ".env")

from liora.config import Settings  # noqa: E402


@pytest.fixture
def offline_settings():
    return Settings(offline=True)


@pytest.fixture
def live_settings():
    return Settings(
        fal_key="test-fal-key",
        notion_api_token="secret_notion",
        notion_best_practices_db_id="db123",
        coral_api_url="http://coral.test/",
        coral_session_id="session 1",
    )


class FakeDownload:
    """Streaming response stand-in for requests.Session.get."""

    def __init__(self, body: bytes, content_type: str = "image/jpeg", error=None):
        self.body = body
        self.headers = {"Content-Type": content_type}
        self.error = error
        self.closed = False

    def raise_for_status(self):
        if self.error is not None:
            raise self.error

    def iter_content(self, chunk_size=8192):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start:start + chunk_size]

    def close(self):
        self.closed = True


class FakeDownloadSession:
    def __init__(self, responses):
        self.responses = responses
        self.headers = {}
        self.requested = []

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False

    def get(self, url, stream=True, timeout=None):
        self.requested.append(url)
        return self.responses[url]


@pytest.fixture
def fake_download():
    """Factory for canned download responses."""
    return FakeDownload


@pytest.fixture
def fake_downloads(monkeypatch):
    """Route liora.cli downloads to canned responses; returns the url -> response dict."""
    from liora import cli

    responses = {}
    session = FakeDownloadSession(responses)
    monkeypatch.setattr(cli.requests, "Session", lambda: session)
    return responses
