"""Error types raised by mintertx.

All errors subclass ValueError: every failure here is caused by invalid
input and none of them is worth retrying.
"""

from __future__ import annotations
from typing import Optional


class MinterTxError(ValueError):
    """Base class for all mintertx errors."""


class SchemaError(MinterTxError):
    """A field value violates its FieldSpec at construction time."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class DecodeError(MinterTxError):
    """Encoded bytes are malformed or do not match the record schema."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class UnknownTypeError(MinterTxError):
    """No payload schema is registered for the transaction type."""

    def __init__(self, type_code):
        super().__init__(f"Unknown transaction type: {type_code!r}")
        self.type_code = type_code


class SignatureError(MinterTxError):
    """Signature is malformed, non-canonical, or cannot be recovered."""
