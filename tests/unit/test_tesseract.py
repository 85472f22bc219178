import pytest
import pytesseract
from PIL import Image

from palimpsest.core.errors import InvalidImageDataError, RecognitionFaultError
from palimpsest.infrastructure.ocr import tesseract
from palimpsest.infrastructure.ocr.tesseract import TesseractRecognizer, preprocess_image_for_ocr


def test_recognize_passes_preprocessed_image_and_language(monkeypatch, make_png) -> None:
    seen: dict[str, object] = {}

    def fake_image_to_string(image: Image.Image, lang: str) -> str:
        seen["mode"] = image.mode
        seen["lang"] = lang
        return "Invoice 42\n"

    monkeypatch.setattr(tesseract.pytesseract, "image_to_string", fake_image_to_string)

    text = TesseractRecognizer(lang="eng+deu").recognize(make_png())

    assert text == "Invoice 42\n"
    assert seen == {"mode": "L", "lang": "eng+deu"}


def test_language_defaults_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("PALIMPSEST_OCR_LANG", "fra")
    assert TesseractRecognizer().lang == "fra"


def test_undecodable_image_is_rejected() -> None:
    with pytest.raises(InvalidImageDataError):
        TesseractRecognizer(lang="eng").recognize(b"not an image")


def test_missing_tesseract_binary_is_recognition_fault(monkeypatch, make_png) -> None:
    def missing(*_args, **_kwargs) -> str:
        raise pytesseract.TesseractNotFoundError()

    monkeypatch.setattr(tesseract.pytesseract, "image_to_string", missing)

    with pytest.raises(RecognitionFaultError):
        TesseractRecognizer(lang="eng").recognize(make_png())


def test_preprocess_produces_grayscale() -> None:
    img = Image.new("RGB", (10, 10), "blue")
    assert preprocess_image_for_ocr(img).mode == "L"
