from __future__ import annotations

import io
import os

import pytesseract
from PIL import Image, ImageFilter, ImageOps, UnidentifiedImageError

from palimpsest.core.config import ocr_language
from palimpsest.core.errors import InvalidImageDataError, RecognitionFaultError


def preprocess_image_for_ocr(img: Image.Image) -> Image.Image:
    """Grayscale, stretch contrast and sharpen before recognition."""
    gray = ImageOps.grayscale(img)
    normalized = ImageOps.autocontrast(gray)
    return normalized.filter(ImageFilter.SHARPEN)


class TesseractRecognizer:
    def __init__(self, lang: str | None = None, tesseract_cmd: str | None = None) -> None:
        self.lang = lang or ocr_language()
        cmd = tesseract_cmd or os.getenv("PALIMPSEST_TESSERACT_CMD")
        if cmd:
            pytesseract.pytesseract.tesseract_cmd = cmd

    def recognize(self, image_bytes: bytes) -> str:
        try:
            with Image.open(io.BytesIO(image_bytes)) as img:
                img.load()
                prepared = preprocess_image_for_ocr(img)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise InvalidImageDataError(f"Image data could not be decoded: {exc}") from exc
        try:
            return pytesseract.image_to_string(prepared, lang=self.lang)
        except pytesseract.TesseractNotFoundError as exc:
            raise RecognitionFaultError("Tesseract is not installed or not on PATH.") from exc
        except (pytesseract.TesseractError, RuntimeError) as exc:
            raise RecognitionFaultError(f"Text recognition failed: {exc}") from exc
