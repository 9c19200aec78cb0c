"""
Validation package.

Exposes `InputValidator`, the single entry point for checking caller-supplied
identifiers and numbers before services touch the database.
"""

from src.core.validation.input_validator import InputValidator

__all__ = [
    "InputValidator",
]
