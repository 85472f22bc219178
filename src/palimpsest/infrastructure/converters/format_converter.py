"""Format conversion capability.

Plain text and page images are produced in-process with PyMuPDF and Pillow;
office formats go through a headless LibreOffice subprocess.
"""

from __future__ import annotations

import io
import logging
import shutil
import subprocess
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from palimpsest.core.config import soffice_binary
from palimpsest.core.errors import ConversionFaultError, UnsupportedFormatError
from palimpsest.infrastructure.documents.pdf_document import PdfDocument

logger = logging.getLogger(__name__)

DEFAULT_CONVERT_TIMEOUT_SECONDS = 120


@dataclass(frozen=True, slots=True)
class TargetFormat:
    name: str
    extension: str
    media_type: str
    soffice_filter: str | None = None


TARGET_FORMATS: dict[str, TargetFormat] = {
    "txt": TargetFormat("txt", ".txt", "text/plain; charset=utf-8"),
    "png": TargetFormat("png", ".zip", "application/zip"),
    "jpg": TargetFormat("jpg", ".zip", "application/zip"),
    "docx": TargetFormat(
        "docx",
        ".docx",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "docx:MS Word 2007 XML",
    ),
    "xlsx": TargetFormat(
        "xlsx",
        ".xlsx",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        "xlsx:Calc MS Excel 2007 XML",
    ),
    "pptx": TargetFormat(
        "pptx",
        ".pptx",
        "application/vnd.openxmlformats-officedocument.presentationml.presentation",
        "pptx:Impress MS PowerPoint 2007 XML",
    ),
}

_ALIASES = {"word": "docx", "excel": "xlsx", "ppt": "pptx", "jpeg": "jpg", "text": "txt"}


def resolve_target_format(raw: str) -> TargetFormat:
    key = (raw or "").strip().lower().lstrip(".")
    key = _ALIASES.get(key, key)
    target = TARGET_FORMATS.get(key)
    if target is None:
        supported = ", ".join(sorted(TARGET_FORMATS))
        raise UnsupportedFormatError(f"Unsupported conversion target '{raw}'. Supported: {supported}")
    return target


class FormatConverter:
    def __init__(self, soffice_bin: str | None = None, timeout_seconds: int = DEFAULT_CONVERT_TIMEOUT_SECONDS) -> None:
        self.soffice_bin = soffice_bin or soffice_binary()
        self.timeout_seconds = timeout_seconds

    def convert(self, data: bytes, target_format: str) -> bytes:
        target = resolve_target_format(target_format)
        if target.name == "txt":
            return self._to_text(data)
        if target.name in {"png", "jpg"}:
            return self._to_page_images(data, target.name)
        return self._with_soffice(data, target)

    @staticmethod
    def _to_text(data: bytes) -> bytes:
        with PdfDocument.load(data) as doc:
            parts = [doc.get_page(i).text() for i in range(doc.page_count())]
        return "\f".join(parts).encode("utf-8")

    @staticmethod
    def _to_page_images(data: bytes, fmt: str) -> bytes:
        buffer = io.BytesIO()
        with PdfDocument.load(data) as doc, zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            for i in range(doc.page_count()):
                png = doc.get_page(i).render_png()
                if fmt == "png":
                    archive.writestr(f"page-{i + 1:04d}.png", png)
                    continue
                out = io.BytesIO()
                with Image.open(io.BytesIO(png)) as img:
                    img.convert("RGB").save(out, format="JPEG", quality=90)
                archive.writestr(f"page-{i + 1:04d}.jpg", out.getvalue())
        return buffer.getvalue()

    def _with_soffice(self, data: bytes, target: TargetFormat) -> bytes:
        binary = shutil.which(self.soffice_bin)
        if binary is None:
            raise ConversionFaultError(
                f"LibreOffice ('{self.soffice_bin}') is required for {target.name} conversion but was not found."
            )
        with tempfile.TemporaryDirectory(prefix="palimpsest-convert-") as tmp:
            tmp_dir = Path(tmp)
            src = tmp_dir / "source.pdf"
            src.write_bytes(data)
            cmd = [
                binary,
                "--headless",
                "--infilter=writer_pdf_import" if target.name == "docx" else "--norestore",
                "--convert-to",
                target.soffice_filter or target.name,
                "--outdir",
                str(tmp_dir),
                str(src),
            ]
            logger.debug("Running converter: %s", " ".join(cmd))
            try:
                completed = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_seconds,
                    check=False,
                )
            except subprocess.TimeoutExpired as exc:
                raise ConversionFaultError(
                    f"Conversion to {target.name} timed out after {self.timeout_seconds}s."
                ) from exc
            except OSError as exc:
                raise ConversionFaultError(f"Unable to start converter: {exc}") from exc

            out_path = tmp_dir / f"source{target.extension}"
            if completed.returncode != 0 or not out_path.exists():
                detail = (completed.stderr or completed.stdout or "").strip()
                raise ConversionFaultError(f"Conversion to {target.name} failed: {detail or 'no output produced'}")
            return out_path.read_bytes()
