from palimpsest.core.hashing import compute_bytes_digest


def test_compute_bytes_digest_sha256() -> None:
    assert (
        compute_bytes_digest(b"palimpsest")
        == "0a5cec0b348b57fed596878cf03760d9475f3d2a84e62c61bf139945cea9389f"
    )


def test_compute_bytes_digest_of_empty_input() -> None:
    assert compute_bytes_digest(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
