import base64

import pytest

from palimpsest.core.errors import InvalidImageDataError, InvalidParameterError
from palimpsest.domain.models.operation import (
    InsertImage,
    InsertText,
    MergePages,
    RemovePage,
    RotatePage,
    parse_operation,
    parse_operations,
)
from palimpsest.domain.models.resource import OperationType


def test_parse_each_operation_type() -> None:
    ops = parse_operations(
        [
            {"type": "insert-text", "page_index": 0, "text": "Hi", "x": 10, "y": 20},
            {"type": "remove-page", "page_index": 2},
            {"type": "rotate-page", "page_index": 1, "angle": 270},
            {"type": "merge-pages", "source_id": "abc"},
        ]
    )

    assert ops == [
        InsertText(page_index=0, text="Hi", x=10.0, y=20.0, size=12.0),
        RemovePage(page_index=2),
        RotatePage(page_index=1, angle=270),
        MergePages(source_id="abc"),
    ]


def test_legacy_names_and_camel_case_keys_are_accepted() -> None:
    assert parse_operation({"type": "delete", "pageIndex": 3}) == RemovePage(page_index=3)
    assert parse_operation({"type": "rotate", "pageIndex": 0, "angle": -90}) == RotatePage(page_index=0, angle=-90)
    assert parse_operation({"type": "merge", "sourceId": " xyz "}) == MergePages(source_id="xyz")
    assert parse_operation({"type": "ROTATE_PAGE", "page_index": 0, "angle": 180}).type is OperationType.ROTATE_PAGE


def test_insert_image_accepts_data_url_and_logs_digest_not_payload(make_png) -> None:
    png = make_png()
    encoded = base64.b64encode(png).decode("ascii")

    op = parse_operation(
        {
            "type": "image",
            "pageIndex": 0,
            "imageData": f"data:image/png;base64,{encoded}",
            "x": 5,
            "y": 5,
            "width": 40,
            "height": 30,
        }
    )

    assert isinstance(op, InsertImage)
    assert op.image_bytes == png
    params = op.log_parameters()
    assert params["image_size_bytes"] == len(png)
    assert len(params["image_sha256"]) == 64
    assert encoded not in str(params)


def test_invalid_base64_image_is_rejected() -> None:
    with pytest.raises(InvalidImageDataError):
        parse_operation(
            {"type": "insert-image", "page_index": 0, "image_data": "not base64!!", "x": 0, "y": 0, "width": 1, "height": 1}
        )


@pytest.mark.parametrize("angle", [45, 91, "90", None, True])
def test_rotate_requires_integer_multiple_of_ninety(angle) -> None:
    with pytest.raises(InvalidParameterError):
        parse_operation({"type": "rotate-page", "page_index": 0, "angle": angle})


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"type": "stamp"},
        {"type": "insert-text", "page_index": 0, "text": "", "x": 0, "y": 0},
        {"type": "insert-text", "page_index": "0", "text": "a", "x": 0, "y": 0},
        {"type": "insert-text", "page_index": 0, "text": "a", "x": 0, "y": 0, "size": 0},
        {"type": "insert-image", "page_index": 0, "x": 0, "y": 0, "width": 1, "height": 1},
        {"type": "merge-pages"},
        "rotate",
    ],
)
def test_malformed_operations_are_rejected(payload) -> None:
    with pytest.raises(InvalidParameterError):
        parse_operation(payload)


def test_parse_operations_requires_list() -> None:
    with pytest.raises(InvalidParameterError):
        parse_operations({"type": "remove-page", "page_index": 0})
