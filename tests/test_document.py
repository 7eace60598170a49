"""
Show Document Tests

Tests cover:
1. Wire field names and omission of unset optionals
2. Legacy channelValues input and sparse-only output
3. Parse errors for malformed documents
4. parse(serialize(d)) == d
5. Stored payload codecs (channels, tags, clamping)
"""

import json

import pytest

from core.showfile.document import (
    SCHEMA_VERSION,
    ExportMetadata,
    ExportProjectInfo,
    ExportedProject,
    ExportedFixtureDefinition,
    ExportedChannelDefinition,
    ExportedFixtureMode,
    ExportedModeChannel,
    ExportedFixtureInstance,
    ExportedScene,
    ExportedFixtureValue,
    ExportedChannelValue,
    ExportedCueList,
    ExportedCue,
    ExportedSceneBoard,
    ExportedSceneBoardButton,
    parse_exported_project,
)
from core.showfile.errors import DocumentParseError
from core.showfile.models import (
    ChannelValue,
    clamp_dmx_value,
    decode_channel_values,
    decode_tags,
    encode_channel_values,
    encode_tags,
)


# ============================================================
# Fixtures
# ============================================================

@pytest.fixture
def document():
    """A document touching every entity kind"""
    return ExportedProject(
        version=SCHEMA_VERSION,
        metadata=ExportMetadata(exported_at="2026-01-01T00:00:00+00:00", producer_version="1.0.0"),
        project=ExportProjectInfo(original_id="p1", name="Main Stage"),
        fixture_definitions=[
            ExportedFixtureDefinition(
                ref_id="d1", manufacturer="ACME", model="Par64", kind="LED_PAR",
                channels=[
                    ExportedChannelDefinition(ref_id="c1", name="Red", kind="RED", offset=0,
                                              fade_behavior="FADE"),
                    ExportedChannelDefinition(ref_id="c2", name="Green", kind="GREEN", offset=1),
                ],
                modes=[
                    ExportedFixtureMode(ref_id="m1", name="2ch", channel_count=2, mode_channels=[
                        ExportedModeChannel(channel_ref_id="c1", offset=0),
                        ExportedModeChannel(channel_ref_id="c2", offset=1),
                    ]),
                ],
            ),
        ],
        fixture_instances=[
            ExportedFixtureInstance(
                ref_id="f1", name="Par 1", definition_ref_id="d1", universe=1,
                start_channel=10, tags=["front"], mode_ref_id="m1", mode_name="2ch",
                channel_count=2,
            ),
        ],
        scenes=[
            ExportedScene(ref_id="s1", name="Warm", fixture_values=[
                ExportedFixtureValue(fixture_ref_id="f1", channels=[
                    ExportedChannelValue(offset=0, value=255),
                    ExportedChannelValue(offset=1, value=10),
                ], scene_order=0),
            ]),
        ],
        cue_lists=[
            ExportedCueList(ref_id="l1", name="Main", loop=True, cues=[
                ExportedCue(name="Open", cue_number=1.5, scene_ref_id="s1",
                            fade_in_time=2.0, fade_out_time=1.0, follow_time=3.0),
            ]),
        ],
        scene_boards=[
            ExportedSceneBoard(ref_id="b1", name="Busking", grid_size=50, buttons=[
                ExportedSceneBoardButton(scene_ref_id="s1", layout_x=10, layout_y=20, label="Warm"),
            ]),
        ],
    )


# ============================================================
# Serialization
# ============================================================

class TestSerialization:
    """Tests for to_dict / to_json"""

    def test_camel_case_field_names(self, document):
        """Top level and nested keys are lowerCamelCase"""
        data = document.to_dict()
        assert set(data) == {"version", "metadata", "project", "fixtureDefinitions",
                             "fixtureInstances", "scenes", "cueLists", "sceneBoards"}
        instance = data["fixtureInstances"][0]
        assert instance["definitionRefId"] == "d1"
        assert instance["startChannel"] == 10
        assert instance["modeRefId"] == "m1"
        assert data["fixtureDefinitions"][0]["modes"][0]["modeChannels"][0]["channelRefId"] == "c1"
        assert data["metadata"]["producerVersion"] == "1.0.0"

    def test_optional_fields_omitted(self, document):
        """None-valued optionals are not written"""
        data = document.to_dict()
        instance = data["fixtureInstances"][0]
        assert "description" not in instance
        assert "layoutX" not in instance
        assert "instanceChannels" not in instance
        assert "description" not in data["project"]
        assert "notes" not in data["cueLists"][0]["cues"][0]
        assert "fadeBehavior" not in data["fixtureDefinitions"][0]["channels"][1]

    def test_scene_boards_omitted_when_unset(self, document):
        """sceneBoards is optional at the top level"""
        document.scene_boards = None
        assert "sceneBoards" not in document.to_dict()

    def test_channel_values_never_written(self):
        """Legacy dense input is never echoed back"""
        value = ExportedFixtureValue(fixture_ref_id="f1", channel_values=[1, 2, 3])
        assert "channelValues" not in value.to_dict()
        assert value.to_dict()["channels"] == []

    def test_to_json_two_space_indent(self, document):
        """Pretty-printed with a two-space indent"""
        text = document.to_json()
        assert text.startswith('{\n  "version": "1.0"')


# ============================================================
# Parsing
# ============================================================

class TestParsing:
    """Tests for parse_exported_project"""

    def test_round_trip(self, document):
        """parse(serialize(d)) == d"""
        assert parse_exported_project(document.to_json()) == document

    def test_round_trip_dict_input(self, document):
        """Already-decoded dicts are accepted"""
        assert parse_exported_project(document.to_dict()) == document

    def test_minimal_document(self):
        """Only version and project"""
        doc = parse_exported_project('{"version":"1.0","project":{"originalID":"p0","name":"X"}}')
        assert doc.project_name == "X"
        assert doc.fixture_definitions == []
        assert doc.scene_boards is None

    def test_unknown_fields_ignored(self, document):
        """Forward compatibility: extra keys are dropped"""
        data = document.to_dict()
        data["futureField"] = {"a": 1}
        data["scenes"][0]["mood"] = "warm"
        assert parse_exported_project(json.dumps(data)) == document

    def test_invalid_json(self):
        """Malformed JSON is a parse error"""
        with pytest.raises(DocumentParseError):
            parse_exported_project("{not json")

    def test_non_object_top_level(self):
        """A JSON array is not a document"""
        with pytest.raises(DocumentParseError):
            parse_exported_project("[1, 2, 3]")

    def test_collection_with_wrong_shape(self):
        """Collections must be arrays of objects"""
        with pytest.raises(DocumentParseError):
            parse_exported_project('{"version":"1.0","scenes":{"a":1}}')
        with pytest.raises(DocumentParseError):
            parse_exported_project('{"version":"1.0","scenes":[1]}')

    def test_non_numeric_field(self):
        """Wrongly typed numbers surface as parse errors"""
        with pytest.raises(DocumentParseError):
            parse_exported_project(
                '{"fixtureInstances":[{"refId":"f","universe":"one"}]}')

    def test_fractional_board_positions_round_to_grid(self):
        button = ExportedSceneBoardButton.from_dict(
            {"sceneRefId": "s1", "layoutX": 10.6, "layoutY": 20.4})
        assert (button.layout_x, button.layout_y) == (11, 20)

    def test_infinite_board_position_rejected(self):
        data = {"version": "1.0", "project": {"name": "P"},
                "sceneBoards": [{"refId": "b1", "name": "B",
                                 "buttons": [{"sceneRefId": "s1", "layoutX": float("inf")}]}]}
        with pytest.raises(DocumentParseError):
            parse_exported_project(data)

    def test_legacy_channel_values_normalized(self):
        """channelValues index becomes the offset"""
        doc = parse_exported_project(json.dumps({
            "version": "1.0",
            "scenes": [{"refId": "s", "name": "S", "fixtureValues": [
                {"fixtureRefId": "f", "channelValues": [255, 128, 0, 0]},
            ]}],
        }))
        channels = doc.scenes[0].fixture_values[0].normalized_channels()
        assert [(c.offset, c.value) for c in channels] == [(0, 255), (1, 128), (2, 0), (3, 0)]

    def test_sparse_preferred_over_legacy(self):
        """When both forms are present the sparse one wins"""
        value = ExportedFixtureValue(
            fixture_ref_id="f",
            channels=[ExportedChannelValue(offset=5, value=7)],
            channel_values=[1, 2, 3],
        )
        assert value.normalized_channels() == [ChannelValue(offset=5, value=7)]


# ============================================================
# Stored payload codecs
# ============================================================

class TestStoredCodecs:
    """Tests for the helpers used on stored records"""

    def test_decode_sparse(self):
        assert decode_channel_values('[{"offset": 2, "value": 9}]') == [ChannelValue(2, 9)]

    def test_decode_dense(self):
        assert decode_channel_values("[200, 100]") == [ChannelValue(0, 200), ChannelValue(1, 100)]

    def test_decode_empty(self):
        assert decode_channel_values("") == []
        assert decode_channel_values(None) == []
        assert decode_channel_values("[]") == []

    def test_decode_rejects_bad_payload(self):
        with pytest.raises(ValueError):
            decode_channel_values('{"offset": 1}')
        with pytest.raises(ValueError):
            decode_channel_values('[{"offset": 1}]')
        with pytest.raises(ValueError):
            decode_channel_values("not json")

    @pytest.mark.parametrize("payload", [
        '[{"offset": 0, "value": null}]',
        '[{"offset": {"x": 1}, "value": 10}]',
        '[{"offset": 0, "value": "bright"}]',
        "[Infinity]",
    ])
    def test_decode_non_numeric_entry_is_value_error(self, payload):
        with pytest.raises(ValueError, match="not numeric"):
            decode_channel_values(payload)

    def test_encode_channel_values(self):
        encoded = encode_channel_values([ChannelValue(0, 255)])
        assert json.loads(encoded) == [{"offset": 0, "value": 255}]

    def test_tags(self):
        assert encode_tags([]) is None
        assert decode_tags(encode_tags(["a", "b"])) == ["a", "b"]
        assert decode_tags(None) == []
        with pytest.raises(ValueError):
            decode_tags('{"a": 1}')

    def test_clamp(self):
        assert clamp_dmx_value(-50) == 0
        assert clamp_dmx_value(500) == 255
        assert clamp_dmx_value(128) == 128
