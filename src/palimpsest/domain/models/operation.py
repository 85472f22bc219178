from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from typing import Any, Union

from palimpsest.core.errors import InvalidImageDataError, InvalidParameterError
from palimpsest.core.hashing import compute_bytes_digest
from palimpsest.domain.models.resource import OperationType

DEFAULT_FONT_SIZE = 12.0

# Edit type names accepted by the first version of the edit endpoint.
_LEGACY_TYPE_ALIASES = {
    "text": OperationType.INSERT_TEXT,
    "image": OperationType.INSERT_IMAGE,
    "delete": OperationType.REMOVE_PAGE,
    "rotate": OperationType.ROTATE_PAGE,
    "merge": OperationType.MERGE_PAGES,
}


@dataclass(frozen=True, slots=True)
class InsertText:
    page_index: int
    text: str
    x: float
    y: float
    size: float = DEFAULT_FONT_SIZE

    type = OperationType.INSERT_TEXT

    def log_parameters(self) -> dict[str, Any]:
        return {"page_index": self.page_index, "text": self.text, "x": self.x, "y": self.y, "size": self.size}


@dataclass(frozen=True, slots=True)
class InsertImage:
    page_index: int
    image_bytes: bytes
    x: float
    y: float
    width: float
    height: float

    type = OperationType.INSERT_IMAGE

    def log_parameters(self) -> dict[str, Any]:
        # The payload itself is not kept in the log, only enough to identify it.
        return {
            "page_index": self.page_index,
            "x": self.x,
            "y": self.y,
            "width": self.width,
            "height": self.height,
            "image_sha256": compute_bytes_digest(self.image_bytes),
            "image_size_bytes": len(self.image_bytes),
        }


@dataclass(frozen=True, slots=True)
class RemovePage:
    page_index: int

    type = OperationType.REMOVE_PAGE

    def log_parameters(self) -> dict[str, Any]:
        return {"page_index": self.page_index}


@dataclass(frozen=True, slots=True)
class RotatePage:
    page_index: int
    angle: int

    type = OperationType.ROTATE_PAGE

    def log_parameters(self) -> dict[str, Any]:
        return {"page_index": self.page_index, "angle": self.angle}


@dataclass(frozen=True, slots=True)
class MergePages:
    source_id: str

    type = OperationType.MERGE_PAGES

    def log_parameters(self) -> dict[str, Any]:
        return {"source_id": self.source_id}


Operation = Union[InsertText, InsertImage, RemovePage, RotatePage, MergePages]


def parse_operations(payloads: list[dict[str, Any]]) -> list[Operation]:
    if not isinstance(payloads, list):
        raise InvalidParameterError("Edits must be a list of operations.")
    return [parse_operation(payload, position=i) for i, payload in enumerate(payloads)]


def parse_operation(payload: dict[str, Any], position: int = 0) -> Operation:
    if not isinstance(payload, dict):
        raise InvalidParameterError(f"Operation #{position} must be an object.")
    op_type = _resolve_type(payload.get("type"), position)

    if op_type is OperationType.INSERT_TEXT:
        text = payload.get("text")
        if not isinstance(text, str) or not text:
            raise InvalidParameterError(f"Operation #{position} (insert-text) requires non-empty 'text'.")
        size = payload.get("size")
        return InsertText(
            page_index=_page_index(payload, position),
            text=text,
            x=_number(payload, "x", position),
            y=_number(payload, "y", position),
            size=DEFAULT_FONT_SIZE if size is None else _positive(_number(payload, "size", position), "size", position),
        )

    if op_type is OperationType.INSERT_IMAGE:
        return InsertImage(
            page_index=_page_index(payload, position),
            image_bytes=_decode_image(payload, position),
            x=_number(payload, "x", position),
            y=_number(payload, "y", position),
            width=_positive(_number(payload, "width", position), "width", position),
            height=_positive(_number(payload, "height", position), "height", position),
        )

    if op_type is OperationType.REMOVE_PAGE:
        return RemovePage(page_index=_page_index(payload, position))

    if op_type is OperationType.ROTATE_PAGE:
        angle = payload.get("angle")
        if isinstance(angle, bool) or not isinstance(angle, (int, float)) or angle != int(angle):
            raise InvalidParameterError(f"Operation #{position} (rotate-page) requires an integer 'angle'.")
        if int(angle) % 90 != 0:
            raise InvalidParameterError(
                f"Operation #{position} (rotate-page) angle must be a multiple of 90, got {angle}."
            )
        return RotatePage(page_index=_page_index(payload, position), angle=int(angle))

    source_id = _pick(payload, "source_id", "sourceId", "ref")
    if not isinstance(source_id, str) or not source_id.strip():
        raise InvalidParameterError(f"Operation #{position} (merge-pages) requires 'source_id'.")
    return MergePages(source_id=source_id.strip())


def _resolve_type(raw: Any, position: int) -> OperationType:
    if not isinstance(raw, str):
        raise InvalidParameterError(f"Operation #{position} is missing 'type'.")
    value = raw.strip().lower().replace("_", "-")
    if value in _LEGACY_TYPE_ALIASES:
        return _LEGACY_TYPE_ALIASES[value]
    try:
        return OperationType(value)
    except ValueError:
        raise InvalidParameterError(f"Operation #{position} has unknown type: {raw}") from None


def _pick(payload: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload and payload[key] is not None:
            return payload[key]
    return None


def _page_index(payload: dict[str, Any], position: int) -> int:
    raw = _pick(payload, "page_index", "pageIndex")
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise InvalidParameterError(f"Operation #{position} requires an integer 'page_index'.")
    return raw


def _number(payload: dict[str, Any], key: str, position: int) -> float:
    raw = payload.get(key)
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidParameterError(f"Operation #{position} requires a numeric '{key}'.")
    return float(raw)


def _positive(value: float, key: str, position: int) -> float:
    if value <= 0:
        raise InvalidParameterError(f"Operation #{position} '{key}' must be positive, got {value}.")
    return value


def _decode_image(payload: dict[str, Any], position: int) -> bytes:
    raw = _pick(payload, "image_data", "imageData")
    if not isinstance(raw, str) or not raw.strip():
        raise InvalidParameterError(f"Operation #{position} (insert-image) requires base64 'image_data'.")
    data = raw.strip()
    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]
    try:
        decoded = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageDataError(f"Operation #{position} image data is not valid base64.") from exc
    if not decoded:
        raise InvalidImageDataError(f"Operation #{position} image data is empty.")
    return decoded
