"""Invoice field extraction using the OpenAI chat completions API.

This service turns OCR text into a ``CanonicalInvoice`` document.  It
composes the fixed extraction prompt with the raw text, asks the model
for a JSON object (``response_format={"type": "json_object"}``) and
validates the answer against the canonical schema before handing it on.
The upstream model is not trusted to follow the template: a reply that
is not JSON, or JSON missing any canonical section or leaf, fails the
stage instead of being persisted half-filled.

Diagnostic logging can be enabled by setting env var STRUCTURING_DEBUG=1.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from invoice_api.core.config import settings
from invoice_api.core.errors import StructuringFailed
from invoice_api.models.schemas import CanonicalInvoice
from invoice_api.utils.prompts import build_extraction_prompt


logger = logging.getLogger(__name__)


class StructuringService:
    """Service responsible for extracting structured invoice fields."""

    def __init__(self, client: Optional[AsyncOpenAI] = None, model: Optional[str] = None) -> None:
        self.model: str = model or settings.LLM_MODEL
        self.debug: bool = os.getenv("STRUCTURING_DEBUG", "0").lower() in {"1", "true", "yes"}
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Built lazily so importing the module never requires an API key.
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=settings.OPENAI_API_KEY,
                timeout=settings.LLM_TIMEOUT_SECONDS,
                max_retries=0,
            )
        return self._client

    async def _complete(self, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            response_format={"type": "json_object"},
        )
        return response.choices[0].message.content or ""

    @staticmethod
    def parse_document(content: str) -> Dict[str, Any]:
        """Parse and validate a model reply into a canonical document.

        Raises:
            StructuringFailed: If ``content`` is not a JSON object matching
                the canonical key set.
        """
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise StructuringFailed() from exc
        if not isinstance(data, dict):
            raise StructuringFailed()
        try:
            return CanonicalInvoice.model_validate(data).to_document()
        except ValidationError as exc:
            raise StructuringFailed() from exc

    async def structure(self, raw_text: str) -> Dict[str, Any]:
        """Return the canonical invoice document for ``raw_text``."""
        prompt = build_extraction_prompt(raw_text)
        logger.info("[structuring] requesting model=%s prompt_chars=%d", self.model, len(prompt))
        try:
            content = await self._complete(prompt)
        except OpenAIError as exc:
            logger.warning("[structuring] service error model=%s: %s", self.model, exc)
            raise StructuringFailed() from exc
        if self.debug:
            logger.info("[structuring] raw reply=%s", content)
        try:
            document = self.parse_document(content)
        except StructuringFailed as exc:
            logger.warning("[structuring] unusable reply model=%s cause=%r", self.model, exc.__cause__)
            raise
        logger.info("[structuring] accepted reply model=%s", self.model)
        return document


__all__ = ["StructuringService"]
