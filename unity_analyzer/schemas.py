"""
Record schemas emitted by asset processors.

- ShaderRecord: one row per shader asset (``shaders`` table)
- SubProgramRecord: one row per compiled sub-program (``shader_subprograms`` table)
- AnalysisStatus: summary of an analysis database
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ShaderRecord:
    """Shader-level summary, emitted once after the whole tree walk."""

    id: int
    decompressed_size: int
    sub_shaders: int
    unique_programs: int
    keywords: str

    def to_row(self) -> tuple:
        return (
            self.id,
            self.decompressed_size,
            self.sub_shaders,
            self.unique_programs,
            self.keywords,
        )


@dataclass(frozen=True)
class SubProgramRecord:
    """One compiled program variant within a pass/program-type/tier slot."""

    shader: int
    pass_index: int
    sub_program: int
    hw_tier: int
    shader_type: str
    api: int
    keywords: str

    def to_row(self) -> tuple:
        return (
            self.shader,
            self.pass_index,
            self.sub_program,
            self.hw_tier,
            self.shader_type,
            self.api,
            self.keywords,
        )


@dataclass
class AnalysisStatus:
    """Row counts of an analysis database."""

    serialized_files: int
    total_objects: int
    objects_by_type: dict[str, int] = field(default_factory=dict)
    shaders: int = 0
    sub_programs: int = 0
    schema_version: int = 1

    def to_dict(self) -> dict:
        return {
            "serialized_files": self.serialized_files,
            "total_objects": self.total_objects,
            "objects_by_type": self.objects_by_type,
            "shaders": self.shaders,
            "sub_programs": self.sub_programs,
            "schema_version": self.schema_version,
        }
