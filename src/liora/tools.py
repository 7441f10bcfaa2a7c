"""Tools exposed to the hosted agents.

Every tool takes a plain dict and returns a plain dict. Failures come back as
{"error": "..."} so the agent can report them; nothing raises past execute().
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from .best_practices import OUTPUT_TYPES as PRACTICE_OUTPUT_TYPES, BestPracticeService, best_practice_service_for
from .config import Settings
from .errors import LioraError
from .fal import FalService, fal_service_for
from .genai import GenAiService
from .payment import payment_service_for
from .registry import OUTPUT_TYPES
from .resolver import resolve_fal_endpoint

logger = logging.getLogger(__name__)


class ToolInputError(ValueError):
    pass


def _safe_dumps(value) -> str:
    try:
        return json.dumps(value)
    except (TypeError, ValueError):
        return "<non-serializable>"


class Tool:
    id = ""
    description = ""
    parameters: Dict[str, Any] = {"type": "object", "properties": {}}

    def function_schema(self) -> Dict[str, Any]:
        """Function-calling declaration for this tool."""
        return {
            "type": "function",
            "function": {
                "name": self.id,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def execute(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            if payload is None:
                payload = {}
            if not isinstance(payload, dict):
                raise ToolInputError("[InvalidInput] payload must be an object")
            output = self.run(payload)
        except (ToolInputError, LioraError) as e:
            output = {"error": str(e)}
        except Exception as e:
            # Agents only see dicts; keep the traceback in the log
            logger.exception("%s failed", self.id)
            output = {"error": f"[UnexpectedError] {e}"}
        logger.info("%s: input=%s output=%s", self.id, _safe_dumps(payload), _safe_dumps(output))
        return output

    def run(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    @staticmethod
    def _string(payload, key, required=True) -> Optional[str]:
        value = payload.get(key)
        if value is None and not required:
            return None
        if not isinstance(value, str) or (required and not value.strip()):
            raise ToolInputError(f"[InvalidInput] '{key}' must be a non-empty string")
        return value


class BestPracticeTool(Tool):
    id = "get-best-practices"
    description = "Get relevant best practices for a GenAI prompt"
    parameters = {
        "type": "object",
        "properties": {
            "prompt": {"type": "string", "description": "GenAI prompt"},
            "outputType": {"type": "string", "enum": list(PRACTICE_OUTPUT_TYPES),
                           "description": "Only return practices relevant to this output type"},
        },
        "required": ["prompt"],
    }

    def __init__(self, service: BestPracticeService):
        self.service = service

    def run(self, payload):
        prompt = self._string(payload, "prompt")
        output_type = self._string(payload, "outputType", required=False)
        if output_type and output_type not in PRACTICE_OUTPUT_TYPES:
            raise ToolInputError(f"[InvalidInput] 'outputType' must be one of {list(PRACTICE_OUTPUT_TYPES)}")
        practices = self.service.get_relevant_for_prompt(prompt, output_type)
        return {"bestPractices": [p.to_dict() for p in practices]}


class FalGenerationTool(Tool):
    id = "fal-generate"
    description = "Generate images or videos using fal.ai models"
    parameters = {
        "type": "object",
        "properties": {
            "model": {"type": "string", "description": "fal.ai endpoint ID, e.g. 'fal-ai/flux/dev'"},
            "prompt": {"type": "string", "description": "User prompt for generation"},
            "input": {"type": "object", "additionalProperties": True,
                      "description": "Extra input fields specific to the model, merged with prompt"},
        },
        "required": ["model", "prompt"],
    }

    def __init__(self, service: FalService):
        self.service = service

    def run(self, payload):
        model = self._string(payload, "model")
        prompt = self._string(payload, "prompt")
        extra = payload.get("input")
        if extra is not None and not isinstance(extra, dict):
            raise ToolInputError("[InvalidInput] 'input' must be an object")
        result = self.service.generate(model, prompt, extra)
        return {"requestId": result.request_id, "data": result.data}


class GenAiExecutionTool(Tool):
    """Generate from a generic model name, optionally claiming payment afterwards."""

    id = "genai-execute"
    description = "Generate images or videos using a generic model name"
    parameters = {
        "type": "object",
        "properties": {
            "model": {"type": "string", "description": "Generic model name, e.g. 'nano banana' or 'flux dev'"},
            "prompt": {"type": "string", "description": "User prompt for generation"},
            "outputType": {"type": "string", "enum": list(OUTPUT_TYPES),
                           "description": "Expected type of output: 'image' or 'video'"},
            "imageUrl": {"type": "string",
                         "description": "Optional image URL for image-to-video or image-to-image generation"},
        },
        "required": ["model", "prompt", "outputType"],
    }

    def __init__(self, service: GenAiService, payment_service=None, claim_amount: Optional[float] = None):
        self.service = service
        self.payment_service = payment_service
        self.claim_amount = claim_amount

    def execute(self, payload):
        output = super().execute(payload)
        # Report the endpoint even when generation failed
        if "error" in output and "resolvedModel" not in output and isinstance(payload, dict):
            try:
                output["resolvedModel"] = self._resolve(payload)
            except ToolInputError:
                pass
        return output

    def _resolve(self, payload) -> str:
        model = self._string(payload, "model")
        output_type = payload.get("outputType")
        if output_type not in OUTPUT_TYPES:
            raise ToolInputError(f"[InvalidInput] 'outputType' must be one of {list(OUTPUT_TYPES)}")
        image_url = self._string(payload, "imageUrl", required=False)
        return resolve_fal_endpoint(model, output_type, bool(image_url))

    def run(self, payload):
        self._resolve(payload)
        prompt = self._string(payload, "prompt")
        image_url = self._string(payload, "imageUrl", required=False)

        result = self.service.generate(payload["model"], prompt, payload["outputType"], image_url or None)
        output = {"requestId": result.request_id, "data": result.data, "resolvedModel": result.resolved_model}

        if self.payment_service is not None and self.claim_amount:
            try:
                output["payment"] = self.payment_service.claim(self.claim_amount).to_dict()
            except LioraError as e:
                logger.error("Payment claim failed after request %s: %s", result.request_id, e)
                output["paymentError"] = str(e)
        return output


def default_tools(settings: Settings, claim_amount: Optional[float] = None) -> Dict[str, Tool]:
    """Tool set keyed by id, wired to live services or mocks when offline."""
    fal_service = fal_service_for(settings)
    payment = payment_service_for(settings) if claim_amount else None
    tools = [
        BestPracticeTool(best_practice_service_for(settings)),
        FalGenerationTool(fal_service),
        GenAiExecutionTool(GenAiService(fal_service), payment, claim_amount),
    ]
    return {tool.id: tool for tool in tools}
