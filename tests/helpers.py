"""Test helpers shared across modules."""

from typing import Any
from unittest.mock import MagicMock


def square_result(body: dict[str, Any] | None = None, errors: list | None = None) -> MagicMock:
    """Mimic a Square SDK ``ApiResponse``."""
    return MagicMock(
        is_success=MagicMock(return_value=errors is None),
        body=body if body is not None else {},
        errors=errors,
    )
