"""Tests for processors/shader.py: tree walk, dedup, sizes and record emission."""

import pytest

from unity_analyzer.errors import MissingFieldError, UnsupportedSchemaError
from unity_analyzer.processors.shader import PROGRAM_TYPES, ShaderProcessor
from unity_analyzer.schemas import ShaderRecord, SubProgramRecord
from unity_analyzer.typetree import TypeTreeNode


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


class RecordingSink:
    """In-memory sink keeping emission order."""

    def __init__(self):
        self.events = []

    def insert_shader(self, record):
        self.events.append(record)

    def insert_sub_program(self, record):
        self.events.append(record)

    @property
    def shaders(self) -> list[ShaderRecord]:
        return [e for e in self.events if isinstance(e, ShaderRecord)]

    @property
    def sub_programs(self) -> list[SubProgramRecord]:
        return [e for e in self.events if isinstance(e, SubProgramRecord)]


def _sub_program(blob, keywords=(), tier=0, api=4, split=None):
    node = {
        "m_BlobIndex": blob,
        "m_GpuProgramType": api,
        "m_ShaderHardwareTier": tier,
    }
    if split is not None:
        global_indices, local_indices = split
        node["m_GlobalKeywordIndices"] = list(global_indices)
        node["m_LocalKeywordIndices"] = list(local_indices)
    else:
        node["m_KeywordIndices"] = list(keywords)
    return node


def _flat(*sub_programs):
    return {"m_SubPrograms": list(sub_programs)}


def _tiered(*tiers):
    return {"m_PlayerSubPrograms": [list(t) for t in tiers]}


def _pass(name_indices=None, **slots):
    node = {}
    if name_indices is not None:
        node["m_NameIndices"] = [
            {"first": name, "second": index} for name, index in name_indices.items()
        ]
    node.update(slots)
    return node


def _shader(sub_shaders, keyword_names=None, lengths=(0,), name="Test/Shader"):
    parsed_form = {
        "m_Name": name,
        "m_SubShaders": [{"m_Passes": list(passes)} for passes in sub_shaders],
    }
    if keyword_names is not None:
        parsed_form["m_KeywordNames"] = list(keyword_names)
    return TypeTreeNode(
        {"m_ParsedForm": parsed_form, "decompressedLengths": list(lengths)}
    )


GLOBAL_NAMES = ["UNUSED", "FOG", "LIGHTMAP", "SHADOW"]
PASS_NAMES = {"FOG": 1, "SHADOW": 3}


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def processor(sink):
    proc = ShaderProcessor()
    proc.init(sink)
    return proc


# ---------------------------------------------------------------------------
# Decompressed size
# ---------------------------------------------------------------------------


class TestDecompressedSize:
    def test_flat_lengths_are_summed(self, processor, sink):
        reader = _shader([[]], keyword_names=[], lengths=[100, 200, 300])
        processor.process(1, {}, reader)
        assert sink.shaders[0].decompressed_size == 600

    def test_per_api_lengths_are_averaged(self, processor, sink):
        reader = _shader([[]], keyword_names=[], lengths=[[100, 200], [50, 50]])
        processor.process(1, {}, reader)
        assert sink.shaders[0].decompressed_size == 200

    def test_per_api_average_truncates(self, processor, sink):
        reader = _shader([[]], keyword_names=[], lengths=[[100], [0], [0]])
        processor.process(1, {}, reader)
        assert sink.shaders[0].decompressed_size == 33

    def test_empty_lengths(self, processor, sink):
        reader = _shader([[]], keyword_names=[], lengths=[])
        processor.process(1, {}, reader)
        assert sink.shaders[0].decompressed_size == 0

    def test_layout_detected_per_asset(self, processor, sink):
        processor.process(1, {}, _shader([[]], keyword_names=[], lengths=[[10], [30]]))
        processor.process(2, {}, _shader([[]], keyword_names=[], lengths=[10, 30]))
        assert [s.decompressed_size for s in sink.shaders] == [20, 40]


# ---------------------------------------------------------------------------
# Program dedup
# ---------------------------------------------------------------------------


class TestUniquePrograms:
    def test_shared_blobs_counted_once(self, processor, sink):
        reader = _shader(
            [
                [
                    _pass(progVertex=_flat(_sub_program(7), _sub_program(9))),
                    _pass(progFragment=_flat(_sub_program(7))),
                ]
            ],
            keyword_names=[],
        )
        processor.process(1, {}, reader)

        assert len(sink.sub_programs) == 3
        assert sink.shaders[0].unique_programs == 2

    def test_blobs_shared_across_tiers(self, processor, sink):
        reader = _shader(
            [[_pass(progVertex=_tiered([_sub_program(1)], [_sub_program(1)], [_sub_program(2)]))]],
            keyword_names=[],
        )
        processor.process(1, {}, reader)
        assert sink.shaders[0].unique_programs == 2


# ---------------------------------------------------------------------------
# Keywords
# ---------------------------------------------------------------------------


class TestKeywords:
    def test_per_pass_table(self, processor, sink):
        reader = _shader(
            [[_pass(PASS_NAMES, progVertex=_flat(_sub_program(1, keywords=[1, 3])))]]
        )
        processor.process(1, {}, reader)
        assert sink.sub_programs[0].keywords == "FOG SHADOW"

    def test_order_follows_indices(self, processor, sink):
        reader = _shader(
            [[_pass(PASS_NAMES, progVertex=_flat(_sub_program(1, keywords=[3, 1])))]]
        )
        processor.process(1, {}, reader)
        assert sink.sub_programs[0].keywords == "SHADOW FOG"

    def test_global_table(self, processor, sink):
        reader = _shader(
            [[_pass(progVertex=_flat(_sub_program(1, keywords=[1, 3])))]],
            keyword_names=GLOBAL_NAMES,
        )
        processor.process(1, {}, reader)
        assert sink.sub_programs[0].keywords == "FOG SHADOW"

    def test_global_names_win_over_pass_pairs(self, processor, sink):
        reader = _shader(
            [[_pass({"OTHER": 1}, progVertex=_flat(_sub_program(1, keywords=[1])))]],
            keyword_names=GLOBAL_NAMES,
        )
        processor.process(1, {}, reader)
        assert sink.sub_programs[0].keywords == "FOG"

    def test_unknown_indices_skipped(self, processor, sink):
        reader = _shader(
            [[_pass(PASS_NAMES, progVertex=_flat(_sub_program(1, keywords=[99, 1, 42])))]]
        )
        processor.process(1, {}, reader)
        assert sink.sub_programs[0].keywords == "FOG"
        assert sink.shaders[0].keywords == "FOG"

    def test_split_indices_global_then_local(self, processor, sink):
        reader = _shader(
            [[_pass(PASS_NAMES, progVertex=_flat(_sub_program(1, split=([3], [1]))))]]
        )
        processor.process(1, {}, reader)
        assert sink.sub_programs[0].keywords == "SHADOW FOG"

    def test_table_rebuilt_each_pass(self, processor, sink):
        reader = _shader(
            [
                [
                    _pass({"FOG": 1}, progVertex=_flat(_sub_program(1, keywords=[1]))),
                    _pass({"SHADOW": 1}, progVertex=_flat(_sub_program(2, keywords=[1]))),
                ]
            ]
        )
        processor.process(1, {}, reader)
        assert [s.keywords for s in sink.sub_programs] == ["FOG", "SHADOW"]
        assert sink.shaders[0].keywords == "FOG SHADOW"

    def test_shader_keywords_sorted_and_unique(self, processor, sink):
        reader = _shader(
            [
                [
                    _pass(
                        progVertex=_flat(
                            _sub_program(1, keywords=[3, 1]),
                            _sub_program(2, keywords=[1, 2]),
                        )
                    )
                ]
            ],
            keyword_names=GLOBAL_NAMES,
        )
        processor.process(1, {}, reader)
        assert sink.shaders[0].keywords == "FOG LIGHTMAP SHADOW"

    def test_sub_program_without_keywords(self, processor, sink):
        reader = _shader(
            [[_pass(progVertex=_flat(_sub_program(1, keywords=[])))]],
            keyword_names=GLOBAL_NAMES,
        )
        processor.process(1, {}, reader)
        assert sink.sub_programs[0].keywords == ""
        assert sink.shaders[0].keywords == ""

    @pytest.mark.parametrize(
        "reader",
        [
            _shader(
                [[_pass(PASS_NAMES, progVertex=_flat(_sub_program(1, keywords=[1, 3])))]]
            ),
            _shader(
                [
                    [
                        _pass(progVertex=_flat(_sub_program(1, keywords=[1]))),
                        _pass(progFragment=_tiered([_sub_program(2, keywords=[2, 3])])),
                    ],
                    [_pass(progHull=_flat(_sub_program(3, split=([0], [1, 99]))))],
                ],
                keyword_names=GLOBAL_NAMES,
            ),
        ],
    )
    def test_shader_keywords_equal_union_of_sub_programs(self, processor, sink, reader):
        processor.process(1, {}, reader)

        union = set()
        for record in sink.sub_programs:
            union.update(record.keywords.split())
        assert set(sink.shaders[0].keywords.split()) == union


# ---------------------------------------------------------------------------
# Walk structure
# ---------------------------------------------------------------------------


class TestWalk:
    def test_pass_without_slots_emits_nothing(self, processor, sink):
        reader = _shader(
            [
                [
                    _pass(progVertex=_flat(_sub_program(1))),
                    _pass(),
                    _pass(progVertex=_flat(_sub_program(2))),
                ]
            ],
            keyword_names=[],
        )
        processor.process(1, {}, reader)
        assert [s.pass_index for s in sink.sub_programs] == [0, 2]

    def test_pass_counter_spans_sub_shaders(self, processor, sink):
        reader = _shader(
            [
                [_pass(progVertex=_flat(_sub_program(1)))],
                [
                    _pass(progVertex=_flat(_sub_program(2))),
                    _pass(progVertex=_flat(_sub_program(3))),
                ],
            ],
            keyword_names=[],
        )
        processor.process(1, {}, reader)
        assert [s.pass_index for s in sink.sub_programs] == [0, 1, 2]

    def test_tier_is_position_in_tier_list(self, processor, sink):
        reader = _shader(
            [
                [
                    _pass(
                        progVertex=_tiered(
                            [_sub_program(1, tier=7)],
                            [_sub_program(2, tier=7)],
                            [_sub_program(3, tier=7)],
                        )
                    )
                ]
            ],
            keyword_names=[],
        )
        processor.process(1, {}, reader)
        assert [s.hw_tier for s in sink.sub_programs] == [0, 1, 2]

    def test_flat_tier_read_from_sub_program(self, processor, sink):
        reader = _shader(
            [[_pass(progVertex=_flat(_sub_program(1, tier=2), _sub_program(2, tier=-1)))]],
            keyword_names=[],
        )
        processor.process(1, {}, reader)
        assert [s.hw_tier for s in sink.sub_programs] == [2, -1]

    def test_sub_program_index_restarts_per_slot(self, processor, sink):
        reader = _shader(
            [
                [
                    _pass(
                        progVertex=_tiered(
                            [_sub_program(1), _sub_program(2)],
                            [_sub_program(3)],
                        ),
                        progFragment=_flat(_sub_program(4), _sub_program(5)),
                    )
                ]
            ],
            keyword_names=[],
        )
        processor.process(1, {}, reader)
        assert [(s.shader_type, s.hw_tier, s.sub_program) for s in sink.sub_programs] == [
            ("vertex", 0, 0),
            ("vertex", 0, 1),
            ("vertex", 1, 0),
            ("fragment", 0, 0),
            ("fragment", 0, 1),
        ]

    def test_program_type_order_and_labels(self, processor, sink):
        slots = {field: _flat(_sub_program(i)) for i, (field, _) in enumerate(PROGRAM_TYPES)}
        reader = _shader([[_pass(**slots)]], keyword_names=[])
        processor.process(1, {}, reader)

        assert [s.shader_type for s in sink.sub_programs] == [
            "vertex",
            "fragment",
            "geometry",
            "hull",
            "domain",
            "ray-tracing",
        ]

    def test_layout_decided_per_slot(self, processor, sink):
        reader = _shader(
            [
                [
                    _pass(
                        progVertex=_tiered([_sub_program(1, tier=5)]),
                        progFragment=_flat(_sub_program(2, tier=5)),
                    )
                ]
            ],
            keyword_names=[],
        )
        processor.process(1, {}, reader)
        assert [s.hw_tier for s in sink.sub_programs] == [0, 5]

    def test_sub_program_fields(self, processor, sink):
        reader = _shader(
            [[_pass(progVertex=_flat(_sub_program(1, api=13)))]], keyword_names=[]
        )
        processor.process(42, {}, reader)

        record = sink.sub_programs[0]
        assert record.shader == 42
        assert record.api == 13
        assert record.shader_type == "vertex"


# ---------------------------------------------------------------------------
# Emission
# ---------------------------------------------------------------------------


class TestEmission:
    def test_shader_record_emitted_last(self, processor, sink):
        reader = _shader(
            [[_pass(progVertex=_flat(_sub_program(1), _sub_program(2)))]],
            keyword_names=[],
        )
        processor.process(1, {}, reader)

        assert isinstance(sink.events[-1], ShaderRecord)
        assert len(sink.shaders) == 1

    def test_sub_shader_count_read_from_tree(self, processor, sink):
        reader = _shader([[], [], []], keyword_names=[])
        processor.process(1, {}, reader)
        assert sink.shaders[0].sub_shaders == 3
        assert sink.sub_programs == []

    def test_returns_name_and_zero_streamed_size(self, processor):
        reader = _shader([[]], keyword_names=[], name="Custom/Water")
        assert processor.process(1, {}, reader) == ("Custom/Water", 0)

    def test_identical_input_identical_output(self, sink):
        def run():
            local_sink = RecordingSink()
            proc = ShaderProcessor()
            proc.init(local_sink)
            reader = _shader(
                [
                    [
                        _pass(
                            progVertex=_flat(
                                _sub_program(1, keywords=[3, 1]),
                                _sub_program(2, keywords=[2]),
                            )
                        )
                    ]
                ],
                keyword_names=GLOBAL_NAMES,
                lengths=[[10, 20], [30]],
            )
            proc.process(5, {}, reader)
            proc.process(5, {}, reader)
            return local_sink.events

        first, second = run(), run()
        assert first == second
        half = len(first) // 2
        assert first[:half] == first[half:]

    def test_process_requires_init(self):
        with pytest.raises(RuntimeError):
            ShaderProcessor().process(1, {}, _shader([[]], keyword_names=[]))


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestUnsupportedSchema:
    def test_missing_keyword_indices(self, processor):
        sub_program = _sub_program(1)
        del sub_program["m_KeywordIndices"]
        reader = _shader([[_pass(progVertex=_flat(sub_program))]], keyword_names=[])

        with pytest.raises(UnsupportedSchemaError) as exc_info:
            processor.process(9, {}, reader)
        assert exc_info.value.object_id == 9

    def test_missing_field_wrapped(self, processor):
        reader = _shader([[_pass(progVertex={"m_Unknown": []})]], keyword_names=[])

        with pytest.raises(UnsupportedSchemaError) as exc_info:
            processor.process(3, {}, reader)
        assert exc_info.value.object_id == 3
        assert isinstance(exc_info.value.__cause__, MissingFieldError)
        assert exc_info.value.__cause__.field == "m_SubPrograms"

    def test_missing_parsed_form(self, processor):
        with pytest.raises(UnsupportedSchemaError):
            processor.process(1, {}, TypeTreeNode({"decompressedLengths": []}))

    def test_per_pass_names_required_without_global_names(self, processor):
        reader = _shader([[_pass(progVertex=_flat(_sub_program(1)))]])
        with pytest.raises(UnsupportedSchemaError) as exc_info:
            processor.process(1, {}, reader)
        assert "m_NameIndices" in str(exc_info.value)

    def test_state_reset_after_failure(self, processor, sink):
        broken = _sub_program(99, keywords=[1])
        del broken["m_GpuProgramType"]
        bad = _shader(
            [[_pass(progVertex=_flat(_sub_program(98, keywords=[3]), broken))]],
            keyword_names=GLOBAL_NAMES,
        )
        with pytest.raises(UnsupportedSchemaError):
            processor.process(1, {}, bad)

        good = _shader(
            [[_pass(progVertex=_flat(_sub_program(1, keywords=[2])))]],
            keyword_names=GLOBAL_NAMES,
        )
        processor.process(2, {}, good)

        record = sink.shaders[-1]
        assert record.id == 2
        assert record.unique_programs == 1
        assert record.keywords == "LIGHTMAP"
