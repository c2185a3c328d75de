# Unity Analyzer
# Extracts shader metadata from Unity type tree dumps into a SQLite database

from .errors import (
    AnalyzerError,
    TypeTreeError,
    MissingFieldError,
    LeafTypeError,
    DumpFormatError,
    UnsupportedSchemaError,
)
from .typetree import TypeTreeNode, load_dump
from .schemas import ShaderRecord, SubProgramRecord, AnalysisStatus
from .processors import ShaderProcessor, create_processors
from .store import AnalysisStore
from .analyzer import Analyzer, ObjectIdProvider

__version__ = "0.1.0"

__all__ = [
    # Errors
    "AnalyzerError",
    "TypeTreeError",
    "MissingFieldError",
    "LeafTypeError",
    "DumpFormatError",
    "UnsupportedSchemaError",
    # Type trees
    "TypeTreeNode",
    "load_dump",
    # Records
    "ShaderRecord",
    "SubProgramRecord",
    "AnalysisStatus",
    # Core classes
    "ShaderProcessor",
    "create_processors",
    "AnalysisStore",
    "Analyzer",
    "ObjectIdProvider",
]
