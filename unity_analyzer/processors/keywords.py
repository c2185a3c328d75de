"""Keyword index to name resolution for shader sub-programs."""

from ..errors import UnsupportedSchemaError
from ..typetree import TypeTreeNode


class KeywordTable:
    """Index -> keyword name table plus the shader-wide set of names seen.

    The table is rebuilt once per shader when names are global, or at the start
    of every pass when each pass carries its own name/index pairs. The unique
    set spans the whole shader and is cleared by the owning processor.
    """

    def __init__(self):
        self._names: dict[int, str] = {}
        self.unique: set[str] = set()

    def __len__(self) -> int:
        return len(self._names)

    def get(self, index: int):
        return self._names.get(index)

    def load_global(self, keyword_names: TypeTreeNode):
        """Build the table from m_KeywordNames; position is the index."""
        self._names.clear()
        for i, name in enumerate(keyword_names):
            self._names[i] = name.as_str()

    def load_pass(self, name_indices: TypeTreeNode):
        """Build the table from a pass's m_NameIndices (name, index) pairs."""
        self._names.clear()
        for pair in name_indices:
            self._names[pair["second"].as_int()] = pair["first"].as_str()

    def resolve(self, indices, names: list[str]) -> list[str]:
        """Append the name of every known index to ``names``.

        Indices without a name are skipped: keywords stripped at build time
        leave holes in the table.
        """
        for index in indices:
            name = self.get(index)
            if name is not None:
                names.append(name)
                self.unique.add(name)
        return names

    def resolve_sub_program(self, sub_program: TypeTreeNode) -> list[str]:
        """Keyword names active for one sub-program, in index order."""
        names: list[str] = []

        if sub_program.has_child("m_KeywordIndices"):
            return self.resolve(sub_program["m_KeywordIndices"].as_u16_array(), names)

        if sub_program.has_child("m_GlobalKeywordIndices") and sub_program.has_child(
            "m_LocalKeywordIndices"
        ):
            self.resolve(sub_program["m_GlobalKeywordIndices"].as_u16_array(), names)
            return self.resolve(
                sub_program["m_LocalKeywordIndices"].as_u16_array(), names
            )

        raise UnsupportedSchemaError(
            f"{sub_program.path} has neither m_KeywordIndices nor "
            "m_GlobalKeywordIndices/m_LocalKeywordIndices"
        )

    def clear(self):
        self._names.clear()
        self.unique.clear()
