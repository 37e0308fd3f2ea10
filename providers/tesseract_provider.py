"""
Local OCR provider: pytesseract over PIL images (PDF pages rasterized with pdf2image).
Digital PDFs skip OCR and use the native text layer.
"""
from __future__ import annotations

import logging
from typing import Any

import pytesseract
from PIL import Image, ImageEnhance, ImageFilter

from core.models import ExtractionResult
from providers.base import DEFAULT_TIMEOUT_SEC, BaseExtractionProvider
from providers.text_fields import parse_fields_from_text
from utils.files import MIN_PDF_TEXT_LEN, extract_text_from_pdf, file_format
from utils.images import load_images

logger = logging.getLogger(__name__)

TESSERACT_CONFIG = "--psm 6 --oem 3"
MIN_SIDE_PX = 300
NATIVE_TEXT_CONFIDENCE = 1.0


def preprocess(image: Image.Image) -> Image.Image:
    """Grayscale, upscale if small, sharpen, contrast."""
    if image.mode != "L":
        image = image.convert("L")
    min_side = min(image.size)
    if 0 < min_side < MIN_SIDE_PX:
        scale = MIN_SIDE_PX / min_side
        image = image.resize(
            (max(MIN_SIDE_PX, int(image.width * scale)), max(MIN_SIDE_PX, int(image.height * scale))),
            Image.Resampling.LANCZOS,
        )
    image = image.filter(ImageFilter.SHARPEN)
    return ImageEnhance.Contrast(image).enhance(1.3)


def ocr_image(image: Image.Image, lang: str, config: str = TESSERACT_CONFIG, timeout: float = 0) -> tuple[str, float]:
    """(text, mean word confidence in 0-1) for one image."""
    data = pytesseract.image_to_data(
        image, lang=lang, config=config, output_type=pytesseract.Output.DICT, timeout=timeout
    )
    words: list[str] = []
    confidences: list[float] = []
    for word, conf in zip(data.get("text", []), data.get("conf", [])):
        try:
            c = float(conf)
        except (TypeError, ValueError):
            continue
        if c < 0 or not str(word).strip():
            continue
        words.append(str(word))
        confidences.append(c)
    text = pytesseract.image_to_string(image, lang=lang, config=config, timeout=timeout).strip()
    mean_conf = sum(confidences) / len(confidences) / 100.0 if confidences else 0.0
    return text or " ".join(words), min(1.0, max(0.0, mean_conf))


class TesseractProvider(BaseExtractionProvider):
    """Free local fallback; lowest quality in the catalog."""

    name = "tesseract"

    def __init__(self, lang: str = "por", config: str = TESSERACT_CONFIG, timeout_sec: int = DEFAULT_TIMEOUT_SEC) -> None:
        super().__init__(timeout_sec=timeout_sec)
        self._lang = lang
        self._config = config

    def _extract(self, data: bytes, options: dict[str, Any]) -> ExtractionResult:
        fmt = file_format(options.get("file_name"))
        if fmt == "pdf":
            native = extract_text_from_pdf(data)
            if len(native) >= MIN_PDF_TEXT_LEN:
                logger.info("Using native PDF text (len=%s); skipping OCR", len(native))
                return ExtractionResult(
                    raw_text=native,
                    fields=parse_fields_from_text(native),
                    provider_confidence=NATIVE_TEXT_CONFIDENCE,
                    provider=self.name,
                )

        timeout = self.timeout_for(options)
        texts: list[str] = []
        confidences: list[float] = []
        try:
            for image in load_images(data, fmt or "png"):
                text, conf = ocr_image(preprocess(image), self._lang, self._config, timeout=timeout)
                texts.append(text)
                confidences.append(conf)
        except (pytesseract.TesseractError, pytesseract.TesseractNotFoundError, RuntimeError) as e:
            # pytesseract signals its own timeout with RuntimeError
            raise ValueError(f"tesseract failed: {e}") from e

        raw_text = "\n".join(t for t in texts if t).strip()
        confidence = sum(confidences) / len(confidences) if confidences else 0.0
        logger.debug("Tesseract OCR: %s pages, mean confidence %.2f", len(texts), confidence)
        return ExtractionResult(
            raw_text=raw_text,
            fields=parse_fields_from_text(raw_text),
            provider_confidence=confidence,
            provider=self.name,
        )
