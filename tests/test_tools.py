import pytest

from liora.best_practices import BestPracticeService, MockBestPracticeRepository
from liora.errors import FalRequestError, PaymentClaimError
from liora.fal import FalGenerationResult, FalService, MockFalRepository
from liora.genai import GenAiService
from liora.payment import MockPaymentService
from liora.tools import BestPracticeTool, FalGenerationTool, GenAiExecutionTool, default_tools


class FailingFalService:
    def generate(self, endpoint, prompt, extra=None):
        raise FalRequestError("upstream timeout")


class ExplodingFalService:
    def generate(self, endpoint, prompt, extra=None):
        raise KeyError("data")


class RefusingPayment:
    def claim(self, amount):
        raise PaymentClaimError("Budget exhausted (status 402)")


def _genai_tool(fal_service=None, payment=None, amount=None):
    return GenAiExecutionTool(GenAiService(fal_service or FalService(MockFalRepository())), payment, amount)


def test_best_practice_tool():
    tool = BestPracticeTool(BestPracticeService(MockBestPracticeRepository()))
    out = tool.execute({"prompt": "a tea pot"})
    assert len(out["bestPractices"]) == 2
    assert out["bestPractices"][0]["relevantModels"] == ["midjourney-v7"]
    assert set(out["bestPractices"][0]) == {"insight", "relevantModels", "outputType", "multistep"}


@pytest.mark.parametrize("payload", [{}, {"prompt": ""}, {"prompt": 3}, {"prompt": "x", "outputType": "smell"}])
def test_best_practice_tool_invalid_input(payload):
    tool = BestPracticeTool(BestPracticeService(MockBestPracticeRepository()))
    assert tool.execute(payload)["error"].startswith("[InvalidInput]")


def test_fal_generation_tool():
    out = FalGenerationTool(FalService(MockFalRepository())).execute(
        {"model": "fal-ai/flux/dev", "prompt": "a cat", "input": {"num_images": 2}})
    assert out["requestId"] == "mock-request-id"
    assert out["data"]["input"] == {"prompt": "a cat", "num_images": 2}


def test_fal_generation_tool_reports_errors():
    out = FalGenerationTool(FailingFalService()).execute({"model": "fal-ai/flux/dev", "prompt": "a cat"})
    assert out == {"error": "[FalRequestError] upstream timeout"}
    out = FalGenerationTool(FalService(MockFalRepository())).execute(
        {"model": "fal-ai/flux/dev", "prompt": "a cat", "input": "nope"})
    assert out["error"].startswith("[InvalidInput]")


def test_genai_tool_success():
    out = _genai_tool().execute({"model": "veo3", "prompt": "waves", "outputType": "video"})
    assert out["resolvedModel"] == "fal-ai/veo3"
    assert out["requestId"] == "mock-request-id"
    assert out["data"]["model"] == "fal-ai/veo3"
    assert "payment" not in out


def test_genai_tool_image_input():
    out = _genai_tool().execute(
        {"model": "flux", "prompt": "sketch", "outputType": "image", "imageUrl": "https://ex/in.png"})
    assert out["resolvedModel"] == "fal-ai/flux/dev/image-to-image"
    assert out["data"]["input"]["image_url"] == "https://ex/in.png"


def test_genai_tool_error_keeps_resolved_model():
    out = _genai_tool(FailingFalService()).execute({"model": "Kling", "prompt": "run", "outputType": "video"})
    assert out == {
        "error": "[FalRequestError] upstream timeout",
        "resolvedModel": "fal-ai/kling-video/v2/master/text-to-video",
    }


def test_genai_tool_never_raises():
    out = _genai_tool(ExplodingFalService()).execute({"model": "veo3", "prompt": "run", "outputType": "video"})
    assert out["error"].startswith("[UnexpectedError]")
    assert out["resolvedModel"] == "fal-ai/veo3"


@pytest.mark.parametrize("payload", [["kling", "a cat"], "kling", 42])
def test_tools_reject_non_object_payloads(offline_settings, payload):
    for tool in default_tools(offline_settings).values():
        out = tool.execute(payload)
        assert out == {"error": "[InvalidInput] payload must be an object"}


@pytest.mark.parametrize(
    "payload",
    [
        {"model": "veo3", "prompt": "x"},
        {"model": "veo3", "prompt": "x", "outputType": "audio"},
        {"model": "", "prompt": "x", "outputType": "image"},
        {"model": "veo3", "outputType": "image"},
    ],
)
def test_genai_tool_invalid_input(payload):
    out = _genai_tool().execute(payload)
    assert out["error"].startswith("[InvalidInput]")


def test_genai_tool_claims_payment():
    out = _genai_tool(payment=MockPaymentService(), amount=2).execute(
        {"model": "nano banana", "prompt": "x", "outputType": "image"})
    assert out["payment"] == {"remainingBudget": 100, "coralUsdPrice": 1}


def test_genai_tool_payment_failure_keeps_result():
    out = _genai_tool(payment=RefusingPayment(), amount=2).execute(
        {"model": "nano banana", "prompt": "x", "outputType": "image"})
    assert out["requestId"] == "mock-request-id"
    assert out["paymentError"] == "[PaymentClaimError] Budget exhausted (status 402)"


def test_function_schema():
    schema = _genai_tool().function_schema()
    assert schema["type"] == "function"
    assert schema["function"]["name"] == "genai-execute"
    assert schema["function"]["parameters"]["required"] == ["model", "prompt", "outputType"]


def test_default_tools_offline(offline_settings):
    tools = default_tools(offline_settings, claim_amount=1)
    assert sorted(tools) == ["fal-generate", "genai-execute", "get-best-practices"]
    out = tools["genai-execute"].execute({"model": "ideogram", "prompt": "logo", "outputType": "image"})
    assert out["resolvedModel"] == "fal-ai/ideogram/v3"
    assert out["payment"]["remainingBudget"] == 100


def test_default_tools_live_without_config_returns_error():
    from liora.config import Settings

    out = default_tools(Settings())["genai-execute"].execute({"model": "veo3", "prompt": "x", "outputType": "video"})
    assert out["error"] == "[ConfigurationError] Missing config: FAL_KEY"
    assert out["resolvedModel"] == "fal-ai/veo3"
