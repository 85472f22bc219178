"""PyMuPDF-backed document capability.

Coordinates follow PDF user space: the origin is the bottom-left corner of the
unrotated page and ``y`` grows upwards. Text is placed with its baseline at
``(x, y)``; images are placed with their bottom-left corner at ``(x, y)``.
"""

from __future__ import annotations

import io
import threading
from contextlib import contextmanager
from typing import Iterator

import fitz  # PyMuPDF
from PIL import Image, UnidentifiedImageError

from palimpsest.core.errors import CapabilityFaultError, InvalidImageDataError, InvalidPageIndexError

PDF_MEDIA_TYPE = "application/pdf"

# MuPDF is not thread-safe. Held from load() until close(); reentrant so a
# thread may open a second document (merge) while holding its first.
_ENGINE_LOCK = threading.RLock()


def validate_image_bytes(data: bytes) -> tuple[int, int]:
    """Decode ``data`` far enough to trust it; returns the pixel size."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            size = img.size
            img.verify()
    except (UnidentifiedImageError, OSError, ValueError, SyntaxError) as exc:
        raise InvalidImageDataError(f"Image data could not be decoded: {exc}") from exc
    return size


class PdfPage:
    def __init__(self, page: fitz.Page, index: int) -> None:
        self._page = page
        self.index = index

    @property
    def rotation(self) -> int:
        return int(self._page.rotation)

    @contextmanager
    def _user_space(self) -> Iterator[fitz.Matrix]:
        """Yield the PDF-space to page-space matrix of the unrotated page.

        The matrix accounts for a CropBox that does not start at the origin.
        """
        rotation = int(self._page.rotation)
        if rotation:
            self._page.set_rotation(0)
        try:
            yield self._page.transformation_matrix
        finally:
            if rotation:
                self._page.set_rotation(rotation)

    def draw_text(self, text: str, x: float, y: float, size: float) -> None:
        try:
            with self._user_space() as to_page:
                self._page.insert_text(fitz.Point(x, y) * to_page, text, fontsize=size)
        except Exception as exc:
            raise CapabilityFaultError(f"Unable to draw text on page {self.index}: {exc}") from exc

    def draw_image(self, image_bytes: bytes, x: float, y: float, width: float, height: float) -> None:
        validate_image_bytes(image_bytes)
        try:
            with self._user_space() as to_page:
                rect = fitz.Rect(fitz.Point(x, y) * to_page, fitz.Point(x + width, y + height) * to_page)
                self._page.insert_image(rect.normalize(), stream=image_bytes, keep_proportion=False)
        except Exception as exc:
            raise InvalidImageDataError(f"Image could not be embedded on page {self.index}: {exc}") from exc

    def set_rotation(self, angle_degrees: int) -> None:
        try:
            self._page.set_rotation(angle_degrees % 360)
        except Exception as exc:
            raise CapabilityFaultError(f"Unable to rotate page {self.index}: {exc}") from exc

    def render_png(self, zoom: float = 2.0) -> bytes:
        try:
            pix = self._page.get_pixmap(matrix=fitz.Matrix(zoom, zoom))
            return pix.tobytes("png")
        except Exception as exc:
            raise CapabilityFaultError(f"Unable to render page {self.index}: {exc}") from exc

    def text(self) -> str:
        return self._page.get_text("text")


class PdfDocument:
    """In-memory working document. Owned by exactly one caller at a time."""

    def __init__(self, doc: fitz.Document) -> None:
        self._doc = doc

    @classmethod
    def load(cls, data: bytes) -> PdfDocument:
        if not data:
            raise CapabilityFaultError("Document content is empty.")
        _ENGINE_LOCK.acquire()
        try:
            doc = fitz.open(stream=data, filetype="pdf")
        except Exception as exc:
            _ENGINE_LOCK.release()
            raise CapabilityFaultError(f"Content is not a readable PDF: {exc}") from exc
        if not doc.is_pdf or doc.page_count == 0:
            doc.close()
            _ENGINE_LOCK.release()
            raise CapabilityFaultError("Content is not a readable PDF with at least one page.")
        return cls(doc)

    def __enter__(self) -> PdfDocument:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def page_count(self) -> int:
        return int(self._doc.page_count)

    def get_page(self, index: int) -> PdfPage:
        self._check_index(index)
        return PdfPage(self._doc[index], index)

    def remove_page(self, index: int) -> None:
        self._check_index(index)
        self._doc.delete_page(index)

    def copy_pages_from(self, other: PdfDocument) -> int:
        """Append every page of ``other`` in order; returns how many were added."""
        added = other.page_count()
        try:
            self._doc.insert_pdf(other._doc)
        except Exception as exc:
            raise CapabilityFaultError(f"Unable to copy pages: {exc}") from exc
        return added

    def serialize(self) -> bytes:
        try:
            return self._doc.tobytes(garbage=3, deflate=True)
        except Exception as exc:
            raise CapabilityFaultError(f"Unable to serialize document: {exc}") from exc

    def close(self) -> None:
        if not self._doc.is_closed:
            self._doc.close()
            _ENGINE_LOCK.release()

    def _check_index(self, index: int) -> None:
        count = self.page_count()
        if index < 0 or index >= count:
            raise InvalidPageIndexError(f"Page index {index} is out of range for a document with {count} page(s).")


def read_page_count(data: bytes) -> int:
    with PdfDocument.load(data) as doc:
        return doc.page_count()
