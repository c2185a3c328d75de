"""
Shader asset processor.

Walks a Shader type tree (sub-shaders -> passes -> program-type slots ->
optional hardware tiers -> sub-programs), writes one ``shader_subprograms`` row
per sub-program as it is visited, then one ``shaders`` row summarising the asset.

A ShaderProcessor keeps its keyword table and unique-program set between calls
and clears them around every asset. One instance must only ever process one
asset at a time; give each worker its own instance.
"""

import logging

from ..errors import TypeTreeError, UnsupportedSchemaError
from ..schemas import ShaderRecord, SubProgramRecord
from ..typetree import TypeTreeNode
from .keywords import KeywordTable
from .variants import (
    KEYWORDS_GLOBAL,
    SIZES_PER_API,
    SUB_PROGRAMS_TIERED,
    detect_shader_variant,
    keyword_scope,
    size_layout,
    sub_program_layout,
)

logger = logging.getLogger("unity-analyzer")

# (pass field, shader_type label)
PROGRAM_TYPES = (
    ("progVertex", "vertex"),
    ("progFragment", "fragment"),
    ("progGeometry", "geometry"),
    ("progHull", "hull"),
    ("progDomain", "domain"),
    ("progRayTracing", "ray-tracing"),
)

# hw_tier placeholder when tiers come from each sub-program node
NO_TIER = -1


def _truncating_div(total: int, count: int) -> int:
    quotient = abs(total) // abs(count)
    return quotient if (total >= 0) == (count > 0) else -quotient


class ShaderProcessor:
    """Extracts ShaderRecord / SubProgramRecord rows from Shader assets."""

    asset_type = "Shader"

    def __init__(self):
        self._sink = None
        self._keywords = KeywordTable()
        self._unique_programs: set[int] = set()

    def init(self, sink):
        """Bind the record sink (needs insert_shader / insert_sub_program)."""
        self._sink = sink

    def process(
        self,
        object_id: int,
        local_to_db_file_id: dict[int, int],
        reader: TypeTreeNode,
    ) -> tuple[str, int]:
        """Analyze one shader asset.

        Args:
            object_id: Database id of the asset
            local_to_db_file_id: File id mapping of the containing serialized file
                (unused for shaders, which reference no other objects)
            reader: Root node of the asset's type tree

        Returns:
            (display name, streamed data size); shaders never stream data.

        Raises:
            UnsupportedSchemaError: the tree lacks a field every known layout has.
        """
        if self._sink is None:
            raise RuntimeError("ShaderProcessor.init() must be called before process()")

        self._reset()
        try:
            return self._process(object_id, reader)
        except TypeTreeError as e:
            raise UnsupportedSchemaError(str(e), object_id) from e
        except UnsupportedSchemaError as e:
            if e.object_id is None:
                raise UnsupportedSchemaError(e.reason, object_id) from e
            raise
        finally:
            self._reset()

    def _reset(self):
        self._keywords.clear()
        self._unique_programs.clear()

    def _process(self, object_id: int, reader: TypeTreeNode) -> tuple[str, int]:
        parsed_form = reader["m_ParsedForm"]
        sub_shaders = parsed_form["m_SubShaders"]
        name = parsed_form["m_Name"].as_str()

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("shader %d: %s", object_id, detect_shader_variant(reader))

        per_pass_keywords = keyword_scope(parsed_form) != KEYWORDS_GLOBAL
        if not per_pass_keywords:
            self._keywords.load_global(parsed_form["m_KeywordNames"])

        pass_index = 0
        for sub_shader in sub_shaders:
            for pass_node in sub_shader["m_Passes"]:
                if per_pass_keywords:
                    self._keywords.load_pass(pass_node["m_NameIndices"])
                self._process_pass(object_id, pass_index, pass_node)
                pass_index += 1

        record = ShaderRecord(
            id=object_id,
            decompressed_size=self._decompressed_size(reader["decompressedLengths"]),
            sub_shaders=sub_shaders.array_size(),
            unique_programs=len(self._unique_programs),
            keywords=" ".join(sorted(self._keywords.unique)),
        )
        self._sink.insert_shader(record)

        return name, 0

    def _process_pass(self, object_id: int, pass_index: int, pass_node: TypeTreeNode):
        for field_name, shader_type in PROGRAM_TYPES:
            if not pass_node.has_child(field_name):
                continue

            program = pass_node[field_name]

            if sub_program_layout(program) == SUB_PROGRAMS_TIERED:
                for hw_tier, tier_programs in enumerate(program["m_PlayerSubPrograms"]):
                    self._process_sub_programs(
                        object_id, pass_index, tier_programs, shader_type, hw_tier
                    )
            else:
                self._process_sub_programs(
                    object_id, pass_index, program["m_SubPrograms"], shader_type
                )

    def _process_sub_programs(
        self,
        object_id: int,
        pass_index: int,
        sub_programs: TypeTreeNode,
        shader_type: str,
        hw_tier: int = NO_TIER,
    ):
        for index, sub_program in enumerate(sub_programs):
            self._unique_programs.add(sub_program["m_BlobIndex"].as_uint())
            names = self._keywords.resolve_sub_program(sub_program)

            if hw_tier == NO_TIER:
                tier = sub_program["m_ShaderHardwareTier"].as_sbyte()
            else:
                tier = hw_tier

            self._sink.insert_sub_program(
                SubProgramRecord(
                    shader=object_id,
                    pass_index=pass_index,
                    sub_program=index,
                    hw_tier=tier,
                    shader_type=shader_type,
                    api=sub_program["m_GpuProgramType"].as_sbyte(),
                    keywords=" ".join(names),
                )
            )

    def _decompressed_size(self, lengths: TypeTreeNode) -> int:
        if size_layout(lengths) == SIZES_PER_API:
            # One array per graphics API; only the average is kept.
            total = sum(sum(api.as_i32_array()) for api in lengths)
            return _truncating_div(total, lengths.array_size())

        return sum(lengths.as_i32_array())
