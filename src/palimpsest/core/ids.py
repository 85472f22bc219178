from __future__ import annotations

import uuid
from typing import Callable


def new_uuid() -> str:
    """Generate a new UUID4 as a string."""
    return str(uuid.uuid4())


class IdentifierGenerator:
    """Mint resource identifiers that have never been issued before.

    ``is_taken`` is consulted for every candidate so that identifiers of live
    and deleted resources alike are never handed out twice.
    """

    def __init__(self, is_taken: Callable[[str], bool] | None = None) -> None:
        self._is_taken = is_taken

    def generate(self) -> str:
        while True:
            candidate = new_uuid()
            if self._is_taken is None or not self._is_taken(candidate):
                return candidate
