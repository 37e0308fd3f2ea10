"""OpenAI (and OpenAI-compatible) vision provider: document image + typed prompt -> JSON fields."""

from __future__ import annotations

import logging
from typing import Any

import requests

from core.models import ExtractionResult
from prompts import prompt_for_document_type
from providers.base import DEFAULT_TIMEOUT_SEC, BaseExtractionProvider
from providers.text_fields import parse_json_fields
from utils.files import MIN_PDF_TEXT_LEN, extract_text_from_pdf, file_format
from utils.images import first_page_jpeg, image_to_data_url

logger = logging.getLogger(__name__)
DEFAULT_OPENAI_BASE = "https://api.openai.com/v1"
DEFAULT_CONFIDENCE = 0.85


class OpenAIVisionProvider(BaseExtractionProvider):
    """Chat completions with an image part; digital PDFs are sent as native text instead."""

    name = "openai_vision"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str = "",
        model: str = "gpt-4o-mini",
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
        max_tokens: int = 2048,
    ) -> None:
        super().__init__(timeout_sec=timeout_sec)
        self._base_url = (base_url or DEFAULT_OPENAI_BASE).rstrip("/")
        self._api_key = api_key or ""
        self._model = model
        self._max_tokens = max_tokens

    def _headers(self) -> dict[str, str]:
        h: dict[str, str] = {"Content-Type": "application/json"}
        if self._api_key:
            h["Authorization"] = f"Bearer {self._api_key}"
        return h

    def _user_content(self, data: bytes, fmt: str, prompt: str) -> tuple[list[dict[str, Any]], str]:
        """Message parts plus the native text used (empty when the image path is taken)."""
        if fmt == "pdf":
            native = extract_text_from_pdf(data)
            if len(native) >= MIN_PDF_TEXT_LEN:
                logger.info("Using native PDF text (len=%s); skipping image upload", len(native))
                return [{"type": "text", "text": f"{prompt}\n\nDocument text:\n{native}"}], native
        image = first_page_jpeg(data, fmt or "png")
        if not image:
            raise ValueError("document rendered no image")
        return [
            {"type": "text", "text": prompt},
            {"type": "image_url", "image_url": {"url": image_to_data_url(image)}},
        ], ""

    def chat(self, messages: list[dict[str, Any]], timeout: float) -> str:
        url = f"{self._base_url}/chat/completions"
        payload: dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "max_tokens": self._max_tokens,
            "temperature": 0,
            "stream": False,
        }
        resp = requests.post(url, json=payload, headers=self._headers(), timeout=timeout)
        resp.raise_for_status()
        data = resp.json()
        choice = (data.get("choices") or [{}])[0]
        return (choice.get("message") or {}).get("content", "").strip()

    def _extract(self, data: bytes, options: dict[str, Any]) -> ExtractionResult:
        fmt = file_format(options.get("file_name"))
        prompt = prompt_for_document_type(options.get("document_type"))
        content, native_text = self._user_content(data, fmt, prompt)
        logger.info("Calling vision model %s for %s", self._model, options.get("file_name", "document"))
        text = self.chat([{"role": "user", "content": content}], timeout=self.timeout_for(options))
        fields = parse_json_fields(text)
        try:
            confidence = float(fields.pop("confidence", DEFAULT_CONFIDENCE))
        except (TypeError, ValueError):
            confidence = DEFAULT_CONFIDENCE
        return ExtractionResult(
            raw_text=native_text or text,
            fields=fields,
            provider_confidence=confidence,
            provider=self.name,
        )
