from __future__ import annotations

from .base import FieldRule, first_non_empty
from .fallback import extract_fallback
from .structured import extract_structured, format_salary

__all__ = [
    "FieldRule",
    "extract_fallback",
    "extract_structured",
    "first_non_empty",
    "format_salary",
]
