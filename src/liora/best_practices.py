"""Best-practice guidance records, stored in a Notion database.

Each Notion page holds one insight, the models it applies to and the output
types (image, video, voice) it is relevant for. Agents fetch these before
choosing a model and shaping the prompt.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import requests

from .config import Settings
from .errors import NotionQueryError, ResponseShapeError

logger = logging.getLogger(__name__)

NOTION_API_URL = "https://api.notion.com/v1"
NOTION_VERSION = "2022-06-28"

INSIGHT_PROPERTY_NAME = "Insight 1"
RELEVANT_MODELS_PROPERTY_NAME = "Model"
OUTPUT_TYPE_PROPERTY_NAME = "Output type"
MULTISTEP_PROPERTY_NAME = "Multistep"

OUTPUT_TYPES = ("image", "video", "voice")

_LIST_SEPARATORS = re.compile(r"[;,\n]+")


@dataclass
class BestPractice:
    insight: str
    relevant_models: List[str] = field(default_factory=list)
    output_type: List[str] = field(default_factory=list)
    multistep: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "insight": self.insight,
            "relevantModels": list(self.relevant_models),
            "outputType": list(self.output_type),
            "multistep": self.multistep,
        }


# ------------------------------ Page mapping ------------------------------

def _plain_text(items) -> str:
    if not isinstance(items, list):
        return ""
    return " ".join(item["plain_text"] for item in items
                    if isinstance(item, dict) and isinstance(item.get("plain_text"), str)).strip()


def _split_list(text: str) -> List[str]:
    return [part.strip() for part in _LIST_SEPARATORS.split(text or "") if part.strip()]


def _names_or_text(prop: Optional[dict]) -> List[str]:
    """Values of a multi_select property, or a rich_text property split on ; , and newlines."""
    if not isinstance(prop, dict):
        return []
    if prop.get("type") == "multi_select":
        options = prop.get("multi_select")
        if not isinstance(options, list):
            return []
        return [o["name"] for o in options if isinstance(o, dict) and isinstance(o.get("name"), str) and o["name"]]
    if prop.get("type") == "rich_text":
        return _split_list(_plain_text(prop.get("rich_text")))
    return []


def _checkbox(prop: Optional[dict]) -> bool:
    return isinstance(prop, dict) and prop.get("type") == "checkbox" and prop.get("checkbox") is True


def page_to_best_practice(page: Dict[str, Any]) -> Optional[BestPractice]:
    """Map one Notion page object to a BestPractice, or None if it is unusable."""
    properties = page.get("properties")
    if not isinstance(properties, dict):
        logger.warning("Skipping partial page %s", page.get("id"))
        return None

    insight_prop = properties.get(INSIGHT_PROPERTY_NAME)
    if not isinstance(insight_prop, dict):
        logger.warning("Page %s has no %r property", page.get("id"), INSIGHT_PROPERTY_NAME)
        return None

    # Insight may be the page title or a plain rich_text column
    kind = insight_prop.get("type")
    if kind not in ("title", "rich_text"):
        logger.warning('Insight property must be of type "title" or "rich_text" (got %s)', kind)
        return None
    insight = _plain_text(insight_prop.get(kind))
    if not insight:
        logger.warning("Page %s has an empty insight", page.get("id"))
        return None

    models = _names_or_text(properties.get(RELEVANT_MODELS_PROPERTY_NAME))
    output_types = [v.strip().lower() for v in _names_or_text(properties.get(OUTPUT_TYPE_PROPERTY_NAME))]

    return BestPractice(
        insight=insight,
        relevant_models=models,
        output_type=[v for v in output_types if v in OUTPUT_TYPES],
        multistep=_checkbox(properties.get(MULTISTEP_PROPERTY_NAME)),
    )


def build_search_filter(query: str) -> Dict[str, Any]:
    return {
        "or": [
            {"property": INSIGHT_PROPERTY_NAME, "title": {"contains": query}},
            {"property": RELEVANT_MODELS_PROPERTY_NAME, "rich_text": {"contains": query}},
            {"property": OUTPUT_TYPE_PROPERTY_NAME, "multi_select": {"contains": query}},
        ]
    }


# ------------------------------ Repositories ------------------------------

class NotionBestPracticeRepository:
    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self.session = session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.settings.notion_api_token}",
            "Notion-Version": NOTION_VERSION,
            "Content-Type": "application/json",
        }

    def _query_database(self, filter_: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        self.settings.require("notion_api_token", "notion_best_practices_db_id")
        url = f"{NOTION_API_URL}/databases/{self.settings.notion_best_practices_db_id}/query"

        pages: List[Dict[str, Any]] = []
        cursor = None
        while True:
            body: Dict[str, Any] = {}
            if filter_:
                body["filter"] = filter_
            if cursor:
                body["start_cursor"] = cursor
            try:
                resp = self.session.post(url, json=body, headers=self._headers(), timeout=self.settings.timeout)
                resp.raise_for_status()
            except requests.exceptions.RequestException as e:
                raise NotionQueryError(f"Failed to query Notion database: {e}") from e
            try:
                payload = resp.json()
            except ValueError as e:
                raise ResponseShapeError(f"Notion returned a non-JSON body: {e}") from e

            if not isinstance(payload, dict) or not isinstance(payload.get("results"), list):
                raise ResponseShapeError("Notion query response has no results list")

            pages.extend(r for r in payload["results"] if isinstance(r, dict) and r.get("object") == "page")
            cursor = payload.get("next_cursor") if payload.get("has_more") else None
            if not cursor:
                break

        logger.info("Queried Notion database and got %d pages", len(pages))
        return pages

    def _map(self, pages) -> List[BestPractice]:
        practices = (page_to_best_practice(p) for p in pages)
        return [p for p in practices if p is not None]

    def get_all(self) -> List[BestPractice]:
        return self._map(self._query_database())

    def search(self, query: str) -> List[BestPractice]:
        trimmed = (query or "").strip()
        if not trimmed:
            return self.get_all()
        return self._map(self._query_database(build_search_filter(trimmed)))


MOCK_BEST_PRACTICES = [
    BestPractice(
        insight="Midjourney v7 is the best at all types of images at the moment.",
        relevant_models=["midjourney-v7"],
        output_type=["image"],
    ),
    BestPractice(
        insight='Midjourney v7 gives the best results when prompted in a JSON format like '
                '{ "subject": "tea pot", "lighting": "bright outdoor", ... }',
        relevant_models=["midjourney-v7"],
        output_type=["image"],
    ),
]


class MockBestPracticeRepository:
    def get_all(self) -> List[BestPractice]:
        return list(MOCK_BEST_PRACTICES)

    def search(self, query: str) -> List[BestPractice]:
        return list(MOCK_BEST_PRACTICES)


# ------------------------------ Service ------------------------------

def for_output_type(practices: List[BestPractice], output_type: Optional[str]) -> List[BestPractice]:
    if not output_type:
        return list(practices)
    return [p for p in practices if not p.output_type or output_type in p.output_type]


class BestPracticeService:
    def __init__(self, repository):
        self.repository = repository

    def get_relevant_for_prompt(self, prompt: str, output_type: Optional[str] = None) -> List[BestPractice]:
        """Best practices for prompt, narrowed to output_type when given.

        Records that declare no output type apply to every type.
        """
        practices = for_output_type(self.repository.get_all(), output_type)
        logger.debug("%d best practices for prompt %r", len(practices), prompt)
        return practices

    def search(self, query: str, output_type: Optional[str] = None) -> List[BestPractice]:
        return for_output_type(self.repository.search(query), output_type)


def best_practice_service_for(settings: Settings) -> BestPracticeService:
    if settings.offline:
        return BestPracticeService(MockBestPracticeRepository())
    return BestPracticeService(NotionBestPracticeRepository(settings))
