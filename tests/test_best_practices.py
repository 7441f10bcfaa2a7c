import pytest
import requests

from liora.best_practices import (
    MOCK_BEST_PRACTICES,
    BestPractice,
    BestPracticeService,
    MockBestPracticeRepository,
    NotionBestPracticeRepository,
    build_search_filter,
    page_to_best_practice,
)
from liora.config import Settings
from liora.errors import ConfigurationError, NotionQueryError, ResponseShapeError


def _page(insight="Use JSON prompts", insight_type="title", models=None, output=None, page_id="p1"):
    props = {"Insight 1": {"type": insight_type, insight_type: [{"plain_text": insight}]}}
    if models is not None:
        props["Model"] = models
    if output is not None:
        props["Output type"] = output
    return {"object": "page", "id": page_id, "properties": props}


def _multi(*names):
    return {"type": "multi_select", "multi_select": [{"name": n} for n in names]}


def _text(value):
    return {"type": "rich_text", "rich_text": [{"plain_text": value}]}


class FakeResp:
    def __init__(self, payload=None, status=200, json_error=False):
        self._payload = payload
        self.status_code = status
        self._json_error = json_error

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"{self.status_code} Client Error")

    def json(self):
        if self._json_error:
            raise ValueError("Expecting value")
        return self._payload


class FakeSession:
    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        resp = self.responses.pop(0)
        if isinstance(resp, Exception):
            raise resp
        return resp


def test_page_mapping_multi_select():
    bp = page_to_best_practice(_page(models=_multi("veo3", "kling"), output=_multi("Video", "gif")))
    assert bp == BestPractice(insight="Use JSON prompts", relevant_models=["veo3", "kling"], output_type=["video"])


def test_page_mapping_rich_text_lists():
    bp = page_to_best_practice(_page(insight_type="rich_text", models=_text("flux dev; nano banana,\nveo3"),
                                     output=_text("image, voice")))
    assert bp.relevant_models == ["flux dev", "nano banana", "veo3"]
    assert bp.output_type == ["image", "voice"]


@pytest.mark.parametrize(
    "page",
    [
        {"object": "page", "id": "partial"},
        {"object": "page", "properties": {}},
        {"object": "page", "properties": {"Insight 1": {"type": "number", "number": 3}}},
        _page(insight="   "),
        {"object": "page", "id": "str-insight", "properties": {"Insight 1": "Use JSON prompts"}},
        {"object": "page", "properties": {"Insight 1": {"type": "title", "title": "Use JSON prompts"}}},
        {"object": "page", "properties": {"Insight 1": {"type": "title", "title": [7, None]}}},
    ],
)
def test_page_mapping_skips_unusable_pages(page):
    assert page_to_best_practice(page) is None


def test_page_mapping_tolerates_malformed_lists():
    bp = page_to_best_practice(_page(
        models={"type": "multi_select", "multi_select": ["veo3", {"name": "kling"}, {"name": 3}]},
        output={"type": "multi_select", "multi_select": "video"},
    ))
    assert bp.relevant_models == ["kling"]
    assert bp.output_type == []


def test_page_mapping_reads_multistep_checkbox():
    page = _page()
    assert page_to_best_practice(page).multistep is False
    page["properties"]["Multistep"] = {"type": "checkbox", "checkbox": True}
    assert page_to_best_practice(page).multistep is True
    assert page_to_best_practice(page).to_dict()["multistep"] is True


def test_malformed_page_in_results_is_skipped(live_settings):
    session = FakeSession([
        FakeResp({"results": [{"object": "page", "id": "bad", "properties": {"Insight 1": ["oops"]}}, _page()],
                  "has_more": False}),
    ])
    practices = NotionBestPracticeRepository(live_settings, session=session).get_all()
    assert [p.insight for p in practices] == ["Use JSON prompts"]


def test_get_all_follows_pagination(live_settings):
    session = FakeSession([
        FakeResp({"results": [_page(page_id="a"), {"object": "database"}], "has_more": True, "next_cursor": "c2"}),
        FakeResp({"results": [_page(insight="Second", page_id="b")], "has_more": False, "next_cursor": None}),
    ])
    repo = NotionBestPracticeRepository(live_settings, session=session)

    practices = repo.get_all()

    assert [p.insight for p in practices] == ["Use JSON prompts", "Second"]
    assert session.requests[0]["url"] == "https://api.notion.com/v1/databases/db123/query"
    assert session.requests[0]["json"] == {}
    assert session.requests[1]["json"] == {"start_cursor": "c2"}
    assert session.requests[0]["headers"]["Authorization"] == "Bearer secret_notion"
    assert "Notion-Version" in session.requests[0]["headers"]


def test_search_sends_filter(live_settings):
    session = FakeSession([FakeResp({"results": [], "has_more": False})])
    NotionBestPracticeRepository(live_settings, session=session).search("  veo3 ")
    assert session.requests[0]["json"] == {"filter": build_search_filter("veo3")}


def test_blank_search_falls_back_to_get_all(live_settings):
    session = FakeSession([FakeResp({"results": [_page()], "has_more": False})])
    practices = NotionBestPracticeRepository(live_settings, session=session).search("   ")
    assert len(practices) == 1
    assert "filter" not in session.requests[0]["json"]


def test_missing_configuration():
    repo = NotionBestPracticeRepository(Settings(), session=FakeSession([]))
    with pytest.raises(ConfigurationError) as excinfo:
        repo.get_all()
    assert excinfo.value.missing == ["NOTION_API_TOKEN", "NOTION_BEST_PRACTICES_DB_ID"]


def test_http_error_becomes_notion_query_error(live_settings):
    repo = NotionBestPracticeRepository(live_settings, session=FakeSession([FakeResp(status=401)]))
    with pytest.raises(NotionQueryError) as excinfo:
        repo.get_all()
    assert "Failed to query Notion database" in str(excinfo.value)


def test_network_error_becomes_notion_query_error(live_settings):
    session = FakeSession([requests.exceptions.ConnectionError("down")])
    with pytest.raises(NotionQueryError):
        NotionBestPracticeRepository(live_settings, session=session).get_all()


@pytest.mark.parametrize("resp", [FakeResp(json_error=True), FakeResp(["not", "an", "object"]), FakeResp({})])
def test_bad_payload_shape(live_settings, resp):
    with pytest.raises(ResponseShapeError):
        NotionBestPracticeRepository(live_settings, session=FakeSession([resp])).get_all()


def test_service_filters_by_output_type():
    class Repo:
        def get_all(self):
            return [
                BestPractice("images only", ["flux"], ["image"]),
                BestPractice("videos only", ["veo3"], ["video"]),
                BestPractice("anything", ["any"], []),
            ]

    service = BestPracticeService(Repo())
    assert [p.insight for p in service.get_relevant_for_prompt("a clip", "video")] == ["videos only", "anything"]
    assert len(service.get_relevant_for_prompt("a clip")) == 3


def test_mock_repository():
    service = BestPracticeService(MockBestPracticeRepository())
    assert service.get_relevant_for_prompt("tea pot") == MOCK_BEST_PRACTICES
    assert service.search("midjourney", "video") == []
