"""
Shader schema variant detection.

Shader assets carry no format version, so the layout is identified by probing
which fields exist. Three axes change independently across editor versions:

    axis            probe                                    values
    keyword scope   m_ParsedForm has m_KeywordNames          global / per-pass
    sub-programs    program slot has m_PlayerSubPrograms     tiered / flat
    size arrays     decompressedLengths elements are arrays  per-api / flat

Each probe is evaluated for the node it is handed, every time; nothing is cached
between assets or slots.
"""

from dataclasses import dataclass

from ..typetree import TypeTreeNode

KEYWORDS_GLOBAL = "global"
KEYWORDS_PER_PASS = "per-pass"

SUB_PROGRAMS_TIERED = "tiered"
SUB_PROGRAMS_FLAT = "flat"

SIZES_PER_API = "per-api"
SIZES_FLAT = "flat"


def keyword_scope(parsed_form: TypeTreeNode) -> str:
    """Keyword names live on the shader (newer editors) or on each pass."""
    if parsed_form.has_child("m_KeywordNames"):
        return KEYWORDS_GLOBAL
    return KEYWORDS_PER_PASS


def sub_program_layout(program: TypeTreeNode) -> str:
    """Sub-programs are stored per hardware tier or as one flat list."""
    if program.has_child("m_PlayerSubPrograms"):
        return SUB_PROGRAMS_TIERED
    return SUB_PROGRAMS_FLAT


def size_layout(decompressed_lengths: TypeTreeNode) -> str:
    """Decompressed block sizes are one array, or one array per graphics API."""
    if decompressed_lengths.elements_are_leaves():
        return SIZES_FLAT
    return SIZES_PER_API


@dataclass(frozen=True)
class ShaderVariant:
    """Shader-wide axes, for logging. Sub-program layout is decided per slot."""

    keywords: str
    sizes: str

    def __str__(self) -> str:
        return f"keywords={self.keywords} sizes={self.sizes}"


def detect_shader_variant(reader: TypeTreeNode) -> ShaderVariant:
    return ShaderVariant(
        keywords=keyword_scope(reader["m_ParsedForm"]),
        sizes=size_layout(reader["decompressedLengths"]),
    )
