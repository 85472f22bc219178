from __future__ import annotations

import io
from typing import Callable

import fitz
import pytest
from PIL import Image


def build_pdf(pages: int, label: str = "page", width: float = 595, height: float = 842) -> bytes:
    doc = fitz.open()
    for i in range(pages):
        page = doc.new_page(width=width, height=height)
        page.insert_text((72, 72), f"{label} {i + 1}", fontsize=14)
    data = doc.tobytes()
    doc.close()
    return data


def build_png(width: int = 8, height: int = 8, color: str = "red") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def page_texts(data: bytes) -> list[str]:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [page.get_text("text").strip() for page in doc]


def page_rotations(data: bytes) -> list[int]:
    with fitz.open(stream=data, filetype="pdf") as doc:
        return [int(page.rotation) for page in doc]


@pytest.fixture
def make_pdf() -> Callable[..., bytes]:
    return build_pdf


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    return build_png


@pytest.fixture
def read_texts() -> Callable[[bytes], list[str]]:
    return page_texts


@pytest.fixture
def read_rotations() -> Callable[[bytes], list[int]]:
    return page_rotations
