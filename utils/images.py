"""Image helpers for providers: load pages (PDF via pdf2image), resize, encode for vision APIs."""

from __future__ import annotations

import base64
import io
from pathlib import Path

from pdf2image import convert_from_bytes
from pdf2image.exceptions import PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError
from PIL import Image

# Vision defaults (first page -> single JPEG)
VISION_IMAGE_MAX_PX = 2048
VISION_JPEG_QUALITY = 85
PDF_RASTER_DPI = 250


def load_images(data: bytes, fmt: str, *, dpi: int = PDF_RASTER_DPI, first_page_only: bool = False) -> list[Image.Image]:
    """PDF -> one RGB image per page; image file -> single RGB image."""
    if fmt == "pdf":
        kwargs: dict[str, int] = {"dpi": dpi}
        if first_page_only:
            kwargs["first_page"] = 1
            kwargs["last_page"] = 1
        try:
            pages = convert_from_bytes(data, **kwargs)
        except (PDFInfoNotInstalledError, PDFPageCountError, PDFSyntaxError) as e:
            raise ValueError(f"PDF rasterization failed: {e}") from e
        return [p.convert("RGB") if p.mode != "RGB" else p for p in pages]
    img = Image.open(io.BytesIO(data))
    return [img.convert("RGB")]


def is_readable_image(source: bytes | Path) -> bool:
    """True when Pillow can identify and verify the image without decoding every pixel."""
    try:
        with Image.open(io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source) as img:
            img.verify()
    except (OSError, SyntaxError, ValueError):
        return False
    return True


def resize_to_max_px(img: Image.Image, max_px: int = VISION_IMAGE_MAX_PX) -> Image.Image:
    """Resize image so longest side is at most max_px."""
    w, h = img.size
    if max(w, h) <= max_px:
        return img
    ratio = max_px / max(w, h)
    return img.resize((int(w * ratio), int(h * ratio)), Image.Resampling.LANCZOS)


def to_jpeg_bytes(img: Image.Image, quality: int = VISION_JPEG_QUALITY) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return buf.getvalue()


def first_page_jpeg(data: bytes, fmt: str) -> bytes:
    """First page as size-limited JPEG, suitable for vision APIs. Empty bytes when nothing renders."""
    images = load_images(data, fmt, first_page_only=True)
    if not images:
        return b""
    return to_jpeg_bytes(resize_to_max_px(images[0]))


def image_to_data_url(image_bytes: bytes, media_type: str = "image/jpeg") -> str:
    """Encode image bytes as data URL for vision API."""
    b64 = base64.b64encode(image_bytes).decode("ascii")
    return f"data:{media_type};base64,{b64}"
