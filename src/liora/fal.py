"""fal.ai generation: the repository that talks to the queue API, and the
service the tools call."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pprint import pformat
from typing import Any, Dict, Optional

from .config import Settings
from .errors import ConfigurationError, FalRequestError

logger = logging.getLogger(__name__)

MOCK_REQUEST_ID = "mock-request-id"
MOCK_IMAGE_URL = "https://placekitten.com/1024/768"
MOCK_VIDEO_URL = "https://sample-videos.com/video123/mp4/720/big_buck_bunny_720p_1mb.mp4"


@dataclass
class FalGenerationResult:
    request_id: str
    data: Any


class FalRepository:
    """Submits requests to fal.ai and waits for the result."""

    def __init__(self, settings: Settings, client=None):
        self.settings = settings
        self._client = client

    def _get_client(self):
        if self._client is None:
            self.settings.require("fal_key")
            logger.debug("Ensured valid fal.ai configuration")
            # Lazy import keeps module import light for tests and offline use
            import fal_client  # type: ignore

            self._client = fal_client.SyncClient(key=self.settings.fal_key)
        return self._client

    def run(self, endpoint: str, arguments: Dict[str, Any]) -> FalGenerationResult:
        client = self._get_client()
        try:
            import fal_client  # type: ignore

            handle = client.submit(endpoint, arguments=arguments)
            logger.info("Submitted %s as request %s", endpoint, handle.request_id)
            for event in handle.iter_events(with_logs=True):
                if isinstance(event, fal_client.InProgress):
                    for log in event.logs or []:
                        logger.debug("[%s] %s", handle.request_id, log.get("message", log))
            data = handle.get()
        except Exception as e:
            raise FalRequestError(str(e)) from e
        return FalGenerationResult(request_id=handle.request_id, data=data)


class MockFalRepository:
    """Offline stand-in: echoes the request and returns placeholder assets."""

    def run(self, endpoint: str, arguments: Dict[str, Any]) -> FalGenerationResult:
        logger.info("Mock fal.ai request:\n%s", pformat({"endpoint": endpoint, "arguments": arguments}))
        return FalGenerationResult(
            request_id=MOCK_REQUEST_ID,
            data={
                "model": endpoint,
                "input": dict(arguments),
                "mockedAssets": [
                    {"kind": "image", "url": MOCK_IMAGE_URL},
                    {"kind": "video", "url": MOCK_VIDEO_URL},
                ],
            },
        )


class FalService:
    def __init__(self, repository):
        self.repository = repository

    def generate(self, endpoint: str, prompt: str, extra: Optional[Dict[str, Any]] = None) -> FalGenerationResult:
        """Run prompt (plus any model-specific extra fields) on endpoint."""
        arguments = {"prompt": prompt}
        arguments.update(extra or {})
        try:
            return self.repository.run(endpoint, arguments)
        except (ConfigurationError, FalRequestError) as e:
            logger.error("%s", e)
            raise


def fal_service_for(settings: Settings) -> FalService:
    repository = MockFalRepository() if settings.offline else FalRepository(settings)
    return FalService(repository)
