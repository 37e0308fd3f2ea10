"""
Google Cloud Vision OCR adapter (REST via requests).
Images go to images:annotate; PDFs to files:annotate. The same adapter backs the
google_document_ai catalog entry, which sends every page of a PDF.
"""

from __future__ import annotations

import base64
import logging
from typing import Any

import requests

from core.models import ExtractionResult
from providers.base import DEFAULT_TIMEOUT_SEC, BaseExtractionProvider
from providers.text_fields import parse_fields_from_text
from utils.files import file_format

logger = logging.getLogger(__name__)

DEFAULT_VISION_BASE = "https://vision.googleapis.com/v1"
FEATURE = "DOCUMENT_TEXT_DETECTION"
# files:annotate accepts at most 5 pages per synchronous request
MAX_SYNC_PDF_PAGES = 5
MIME_BY_FORMAT = {"pdf": "application/pdf", "tif": "image/tiff", "tiff": "image/tiff", "gif": "image/gif"}


def _page_confidences(full_text_annotation: dict[str, Any]) -> list[float]:
    return [
        float(page["confidence"])
        for page in full_text_annotation.get("pages") or []
        if page.get("confidence") is not None
    ]


class GoogleVisionProvider(BaseExtractionProvider):
    """DOCUMENT_TEXT_DETECTION over REST; fields come from the regex text parser."""

    name = "google_vision"

    def __init__(
        self,
        api_key: str = "",
        base_url: str | None = None,
        timeout_sec: int = DEFAULT_TIMEOUT_SEC,
        name: str | None = None,
        max_pdf_pages: int = 1,
    ) -> None:
        super().__init__(timeout_sec=timeout_sec)
        self._api_key = api_key or ""
        self._base_url = (base_url or DEFAULT_VISION_BASE).rstrip("/")
        self._max_pdf_pages = max(1, min(max_pdf_pages, MAX_SYNC_PDF_PAGES))
        if name:
            self.name = name

    def _post(self, endpoint: str, payload: dict[str, Any], timeout: float) -> dict[str, Any]:
        url = f"{self._base_url}/{endpoint}"
        resp = requests.post(url, params={"key": self._api_key}, json=payload, timeout=timeout)
        resp.raise_for_status()
        return resp.json()

    def _annotate_image(self, data: bytes, timeout: float) -> list[dict[str, Any]]:
        payload = {
            "requests": [
                {
                    "image": {"content": base64.b64encode(data).decode("ascii")},
                    "features": [{"type": FEATURE}],
                }
            ]
        }
        return self._post("images:annotate", payload, timeout).get("responses", [])

    def _annotate_file(self, data: bytes, fmt: str, pages: int, timeout: float) -> list[dict[str, Any]]:
        page_count = max(1, min(pages, self._max_pdf_pages))
        payload = {
            "requests": [
                {
                    "inputConfig": {
                        "content": base64.b64encode(data).decode("ascii"),
                        "mimeType": MIME_BY_FORMAT.get(fmt, "application/pdf"),
                    },
                    "features": [{"type": FEATURE}],
                    "pages": list(range(1, page_count + 1)),
                }
            ]
        }
        outer = self._post("files:annotate", payload, timeout).get("responses", [])
        return [r for file_resp in outer for r in file_resp.get("responses", [])]

    def _extract(self, data: bytes, options: dict[str, Any]) -> ExtractionResult:
        fmt = file_format(options.get("file_name"))
        timeout = self.timeout_for(options)
        if fmt in ("pdf", "tif", "tiff", "gif"):
            responses = self._annotate_file(data, fmt, int(options.get("pages") or 1), timeout)
        else:
            responses = self._annotate_image(data, timeout)

        texts: list[str] = []
        confidences: list[float] = []
        for r in responses:
            error = r.get("error")
            if error:
                message = error.get("message", error) if isinstance(error, dict) else error
                raise ValueError(f"Vision API error: {message}")
            annotation = r.get("fullTextAnnotation") or {}
            if annotation.get("text"):
                texts.append(annotation["text"])
            confidences.extend(_page_confidences(annotation))

        raw_text = "\n".join(texts).strip()
        if not raw_text:
            logger.warning("%s returned no text for %s", self.name, options.get("file_name", "document"))
        confidence = sum(confidences) / len(confidences) if confidences else (0.5 if raw_text else 0.0)
        return ExtractionResult(
            raw_text=raw_text,
            fields=parse_fields_from_text(raw_text),
            provider_confidence=confidence,
            provider=self.name,
        )
