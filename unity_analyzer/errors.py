"""
Exceptions raised while reading type tree dumps and analyzing assets.

AnalyzerError
  TypeTreeError          low-level accessor failures
    MissingFieldError    required child absent
    LeafTypeError        leaf of the wrong kind or out of range
  DumpFormatError        dump file could not be read
  UnsupportedSchemaError asset layout not recognised by a processor
"""

from typing import Optional


class AnalyzerError(Exception):
    """Base class for all analyzer errors."""


class TypeTreeError(AnalyzerError):
    """Raised by TypeTreeNode when the tree does not match what was asked of it."""

    def __init__(self, message: str, path: str = ""):
        self.path = path
        super().__init__(f"{path}: {message}" if path else message)


class MissingFieldError(TypeTreeError):
    """A required child field is absent."""

    def __init__(self, path: str, field: str):
        self.field = field
        super().__init__(f"missing field '{field}'", path)


class LeafTypeError(TypeTreeError):
    """A leaf value has the wrong type or does not fit the requested width."""


class DumpFormatError(AnalyzerError):
    """A type tree dump file is unreadable or malformed."""


class UnsupportedSchemaError(AnalyzerError):
    """An asset uses a serialized layout the processor does not understand.

    Callers are expected to skip or flag the asset; state for later assets is
    not affected.
    """

    def __init__(self, reason: str, object_id: Optional[int] = None):
        self.reason = reason
        self.object_id = object_id
        if object_id is not None:
            super().__init__(f"object {object_id}: unsupported schema: {reason}")
        else:
            super().__init__(f"unsupported schema: {reason}")
