from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .fal import FalService
from .registry import image_arguments
from .resolver import resolve_fal_endpoint

logger = logging.getLogger(__name__)


@dataclass
class GenAiResult:
    resolved_model: str
    request_id: str
    data: Any


class GenAiService:
    """Generate from a generic model name ("nano banana", "flux dev", ...)."""

    def __init__(self, fal_service: FalService):
        self.fal_service = fal_service

    def generate(
            self,
            model_name: str,
            prompt: str,
            output_type: str = "image",
            image_url: Optional[str] = None,
            extra: Optional[Dict[str, Any]] = None,
    ) -> GenAiResult:
        endpoint = resolve_fal_endpoint(model_name, output_type, bool(image_url))
        logger.info("Resolved model %r (%s, image input: %s) to %s", model_name, output_type, bool(image_url), endpoint)

        fields = dict(extra or {})
        if image_url:
            fields.update(image_arguments(endpoint, image_url))

        result = self.fal_service.generate(endpoint, prompt, fields)
        return GenAiResult(resolved_model=endpoint, request_id=result.request_id, data=result.data)
