# Asset processors: one class per asset type that extracts rows from its type tree.
#
# A processor exposes:
#   asset_type                                   type name it handles ("Shader")
#   init(sink)                                   bind the record sink once
#   process(object_id, local_to_db_file_id, reader) -> (name, streamed_data_size)

from .shader import ShaderProcessor, PROGRAM_TYPES

PROCESSOR_CLASSES = {
    ShaderProcessor.asset_type: ShaderProcessor,
}


def create_processors() -> dict:
    """Fresh processor instances keyed by asset type.

    Processors hold per-asset scratch state, so every analyzer (or worker) gets
    its own set.
    """
    return {asset_type: cls() for asset_type, cls in PROCESSOR_CLASSES.items()}


__all__ = [
    "ShaderProcessor",
    "PROGRAM_TYPES",
    "PROCESSOR_CLASSES",
    "create_processors",
]
