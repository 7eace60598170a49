"""
Project Importer Tests

Tests cover:
1. CREATE / MERGE / REPLACE target resolution
2. Fixture definition conflicts (SKIP, REPLACE, RENAME, built-ins)
3. Mode merging into existing definitions
4. Instance channel derivation (explicit, mode-driven, full definition)
5. Legacy channelValues input
6. Unresolved references produce warnings, never failures
7. Options parsing, parse errors, cancellation
"""

import json
import threading

import pytest

from core.showfile.errors import DocumentParseError, OperationCancelled
from core.showfile.importer import (
    FixtureConflictStrategy,
    ImportMode,
    ImportOptions,
    ProjectImporter,
)
from core.showfile.models import decode_channel_values, decode_tags


@pytest.fixture
def importer(repo):
    return ProjectImporter(repo, scene_board_repository=repo)


def rgb_document(mode_channels=None, instance=None, **extra):
    """Document with one ACME Par64 definition (R,G,B) and one mode"""
    if mode_channels is None:
        mode_channels = [{"channelRefId": "c-r", "offset": 0},
                         {"channelRefId": "c-g", "offset": 1}]
    fixture = {
        "refId": "f1", "name": "Par 1", "definitionRefId": "d1",
        "universe": 1, "startChannel": 1, "modeName": "RGB-Short",
    }
    fixture.update(instance or {})
    document = {
        "version": "1.0",
        "project": {"originalId": "p0", "name": "Imported"},
        "fixtureDefinitions": [{
            "refId": "d1", "manufacturer": "ACME", "model": "Par64", "type": "LED_PAR",
            "isBuiltIn": False,
            "channels": [
                {"refId": "c-r", "name": "Red", "type": "RED", "offset": 0},
                {"refId": "c-g", "name": "Green", "type": "GREEN", "offset": 1},
                {"refId": "c-b", "name": "Blue", "type": "BLUE", "offset": 2},
            ],
            "modes": [{"refId": "m1", "name": "RGB-Short", "channelCount": len(mode_channels),
                       "modeChannels": mode_channels}],
        }],
        "fixtureInstances": [fixture],
        "scenes": [],
        "cueLists": [],
    }
    document.update(extra)
    return document


def only_fixture(repo, project_id):
    fixtures = repo.find_fixtures_by_project(project_id)
    assert len(fixtures) == 1
    return fixtures[0]


class TestTargetProject:
    """Tests for mode handling"""

    def test_minimal_create(self, importer, repo):
        """Version and project only: empty stats, no warnings"""
        result = importer.import_project(
            '{"version":"1.0","project":{"originalID":"p0","name":"X"}}',
            ImportOptions(mode=ImportMode.CREATE),
        )
        assert result.project_id != ""
        assert result.warnings == []
        assert all(count == 0 for count in result.stats.to_dict().values())
        assert repo.find_project(result.project_id).name == "X"

    def test_create_with_name_override(self, importer, repo):
        result = importer.import_project(rgb_document(), ImportOptions(project_name="Copy"))
        assert repo.find_project(result.project_id).name == "Copy"

    def test_merge_without_target_is_noop(self, importer, repo):
        result = importer.import_project(rgb_document(), ImportOptions(mode=ImportMode.MERGE))
        assert result.is_noop
        assert result.stats is None
        assert result.warnings is None
        assert repo.list_projects() == []

    def test_merge_with_unknown_target_is_noop(self, importer):
        result = importer.import_project(
            rgb_document(), ImportOptions(mode=ImportMode.MERGE, target_project_id="missing"))
        assert result.is_noop
        assert result.to_dict() == {"projectId": "", "stats": None, "warnings": None}

    def test_merge_into_existing_project(self, importer, repo, sample):
        result = importer.import_project(
            rgb_document(), ImportOptions(mode=ImportMode.MERGE,
                                          target_project_id=sample.project.project_id))
        assert result.project_id == sample.project.project_id
        assert len(repo.find_fixtures_by_project(sample.project.project_id)) == 3

    def test_replace_behaves_like_merge(self, importer, repo, sample):
        """Existing content is kept"""
        result = importer.import_project(
            rgb_document(), ImportOptions(mode=ImportMode.REPLACE,
                                          target_project_id=sample.project.project_id))
        assert result.project_id == sample.project.project_id
        assert len(repo.find_scenes_by_project(sample.project.project_id)) == 2
        assert len(repo.find_fixtures_by_project(sample.project.project_id)) == 3


class TestDefinitionConflicts:
    """Tests for (manufacturer, model) collisions"""

    def test_skip_reuses_existing(self, importer, repo, sample):
        result = importer.import_project(
            rgb_document(), ImportOptions(fixture_conflict_strategy=FixtureConflictStrategy.SKIP))
        assert result.stats.fixture_definitions_created == 0
        assert any("ACME Par64" in w for w in result.warnings)
        fixture = only_fixture(repo, result.project_id)
        assert fixture.definition_id == sample.definition.definition_id

    def test_replace_strategy_reuses_existing(self, importer, repo, sample):
        result = importer.import_project(
            rgb_document(), ImportOptions(fixture_conflict_strategy=FixtureConflictStrategy.REPLACE))
        assert result.stats.fixture_definitions_created == 0
        assert result.warnings == [
            "Reused existing fixture definition (Replace merges modes): ACME Par64"]

    def test_rename_creates_new_definition(self, importer, repo, sample):
        result = importer.import_project(
            rgb_document(), ImportOptions(fixture_conflict_strategy=FixtureConflictStrategy.RENAME))
        assert result.stats.fixture_definitions_created == 1
        assert result.warnings == [
            "Renamed conflicting fixture definition: ACME Par64 -> ACME Par64 (imported)"]
        renamed = repo.find_definition_by_manufacturer_model("ACME", "Par64 (imported)")
        fixture = only_fixture(repo, result.project_id)
        assert fixture.definition_id == renamed.definition_id
        assert fixture.model == "Par64 (imported)"

    def test_rename_twice_picks_next_free_name(self, importer, repo, sample):
        options = ImportOptions(fixture_conflict_strategy=FixtureConflictStrategy.RENAME)
        importer.import_project(rgb_document(), options)
        importer.import_project(rgb_document(), options)
        assert repo.find_definition_by_manufacturer_model("ACME", "Par64 (imported 2)") is not None

    def test_built_in_reused_without_warning(self, importer, repo):
        repo.seed_builtin_definitions()
        dimmer = repo.find_definition_by_manufacturer_model("Generic", "Dimmer")
        document = {
            "version": "1.0",
            "project": {"name": "Rig"},
            "fixtureDefinitions": [{"refId": "x", "manufacturer": "Generic", "model": "Dimmer",
                                    "type": "DIMMER", "isBuiltIn": True,
                                    "channels": [{"refId": "i", "name": "Intensity",
                                                  "type": "INTENSITY", "offset": 0}]}],
            "fixtureInstances": [{"refId": "f", "name": "Dim 1", "definitionRefId": "x",
                                  "universe": 1, "startChannel": 1}],
        }
        result = importer.import_project(document, ImportOptions())
        assert result.warnings == []
        assert result.stats.fixture_definitions_created == 0
        fixture = only_fixture(repo, result.project_id)
        assert fixture.definition_id == dimmer.definition_id


class TestModeMerge:
    """Tests for merging modes into an existing definition"""

    def test_new_modes_added_by_channel_name(self, importer, repo, sample):
        document = rgb_document()
        document["fixtureDefinitions"][0]["modes"].append({
            "refId": "m2", "name": "Full", "channelCount": 3,
            "modeChannels": [{"channelRefId": "c-b", "offset": 0},
                             {"channelRefId": "c-r", "offset": 1},
                             {"channelRefId": "c-g", "offset": 2}],
        })
        importer.import_project(document, ImportOptions())

        modes = {m.name: m for m in repo.get_definition_modes(sample.definition.definition_id)}
        assert set(modes) == {"RGB-Short", "Full"}
        bindings = repo.get_mode_channels(modes["Full"].mode_id)
        assert [b.channel_id for b in bindings] == [
            sample.channels[2].channel_id, sample.channels[0].channel_id,
            sample.channels[1].channel_id]

    def test_unknown_mode_channel_warns(self, importer, repo, sample):
        document = rgb_document()
        document["fixtureDefinitions"][0]["modes"].append({
            "refId": "m3", "name": "Strobe", "channelCount": 1,
            "modeChannels": [{"channelRefId": "c-strobe", "offset": 0}],
        })
        result = importer.import_project(document, ImportOptions())
        assert "Mode 'Strobe' references unknown channel 'c-strobe'" in result.warnings

    def test_channel_ref_may_be_a_name(self, importer, repo, sample):
        document = rgb_document()
        document["fixtureDefinitions"][0]["modes"].append({
            "refId": "m4", "name": "Red Only", "channelCount": 1,
            "modeChannels": [{"channelRefId": "Red", "offset": 0}],
        })
        result = importer.import_project(document, ImportOptions())
        assert not any("Red Only" in w for w in result.warnings)
        modes = {m.name: m for m in repo.get_definition_modes(sample.definition.definition_id)}
        assert len(repo.get_mode_channels(modes["Red Only"].mode_id)) == 1


class TestInstanceChannels:
    """Tests for channel derivation on imported fixtures"""

    def test_mode_driven_channels(self, importer, repo):
        """Only the mode's channels, at the mode's offsets"""
        result = importer.import_project(rgb_document(), ImportOptions())
        fixture = only_fixture(repo, result.project_id)
        channels = repo.get_instance_channels(fixture.fixture_id)
        assert [(c.name, c.offset) for c in channels] == [("Red", 0), ("Green", 1)]
        assert fixture.channel_count == 2
        assert fixture.mode_name == "RGB-Short"

    def test_mode_offset_wins_over_definition_offset(self, importer, repo):
        document = rgb_document(mode_channels=[{"channelRefId": "c-b", "offset": 0},
                                               {"channelRefId": "c-r", "offset": 1}])
        result = importer.import_project(document, ImportOptions())
        fixture = only_fixture(repo, result.project_id)
        channels = repo.get_instance_channels(fixture.fixture_id)
        assert [(c.name, c.offset) for c in channels] == [("Blue", 0), ("Red", 1)]

    def test_all_definition_channels_without_mode(self, importer, repo):
        result = importer.import_project(rgb_document(instance={"modeName": None}),
                                         ImportOptions())
        fixture = only_fixture(repo, result.project_id)
        assert len(repo.get_instance_channels(fixture.fixture_id)) == 3
        assert fixture.channel_count == 3

    def test_explicit_channels_win(self, importer, repo):
        result = importer.import_project(rgb_document(instance={
            "channelCount": 1,
            "instanceChannels": [{"name": "Dim", "type": "INTENSITY", "offset": 0}],
        }), ImportOptions())
        fixture = only_fixture(repo, result.project_id)
        channels = repo.get_instance_channels(fixture.fixture_id)
        assert [(c.name, c.kind) for c in channels] == [("Dim", "INTENSITY")]
        assert channels[0].fade_behavior == "FADE"

    def test_mode_ref_resolves_to_name(self, importer, repo):
        result = importer.import_project(
            rgb_document(instance={"modeRefId": "m1", "modeName": None}), ImportOptions())
        fixture = only_fixture(repo, result.project_id)
        assert fixture.mode_name == "RGB-Short"

    def test_unknown_mode_ref_falls_back_to_name(self, importer, repo):
        result = importer.import_project(
            rgb_document(instance={"modeRefId": "m-lost"}), ImportOptions())
        assert result.warnings == [
            "Mode refID 'm-lost' not found for fixture 'Par 1', "
            "using mode name 'RGB-Short' instead"]
        fixture = only_fixture(repo, result.project_id)
        assert len(repo.get_instance_channels(fixture.fixture_id)) == 2

    def test_tags_and_layout_preserved(self, importer, repo):
        result = importer.import_project(rgb_document(instance={
            "tags": ["front"], "layoutX": 0.5, "projectOrder": 4, "universe": 2,
        }), ImportOptions())
        fixture = only_fixture(repo, result.project_id)
        assert decode_tags(fixture.tags) == ["front"]
        assert fixture.layout_x == 0.5
        assert fixture.project_order == 4
        assert fixture.universe == 2

    def test_unknown_definition_skips_instance(self, importer, repo):
        result = importer.import_project(rgb_document(instance={"definitionRefId": "nope"}),
                                         ImportOptions())
        assert result.stats.fixture_instances_created == 0
        assert result.warnings == ["Skipping fixture instance with unknown definition: Par 1"]


class TestScenesAndCues:
    """Tests for scenes, cue lists and scene boards"""

    def test_legacy_channel_values(self, importer, repo):
        document = rgb_document(scenes=[{
            "refId": "s1", "name": "Look",
            "fixtureValues": [{"fixtureRefId": "f1", "channelValues": [255, 128, 0]}],
        }])
        result = importer.import_project(document, ImportOptions())
        scene = repo.find_scenes_by_project(result.project_id)[0]
        values = repo.get_fixture_values(scene.scene_id)
        assert [(c.offset, c.value) for c in decode_channel_values(values[0].channels)] == [
            (0, 255), (1, 128), (2, 0)]
        # Stored sparse
        assert json.loads(values[0].channels)[0] == {"offset": 0, "value": 255}

    def test_unknown_fixture_in_scene(self, importer, repo):
        """One warning per unresolved reference, scene still created"""
        document = rgb_document(scenes=[{
            "refId": "s1", "name": "Look",
            "fixtureValues": [
                {"fixtureRefId": "ghost", "channels": [{"offset": 0, "value": 1}]},
                {"fixtureRefId": "f1", "channels": [{"offset": 0, "value": 9}]},
            ],
        }])
        result = importer.import_project(document, ImportOptions())
        assert result.warnings == ["Skipping fixture value with unknown fixture 'ghost' in scene 'Look'"]
        assert result.stats.scenes_created == 1
        scene = repo.find_scenes_by_project(result.project_id)[0]
        assert len(repo.get_fixture_values(scene.scene_id)) == 1

    def test_cue_with_unknown_scene(self, importer, repo):
        document = rgb_document(
            scenes=[{"refId": "s1", "name": "Look", "fixtureValues": []}],
            cueLists=[{"refId": "l1", "name": "Main", "loop": True, "cues": [
                {"name": "One", "cueNumber": 1, "sceneRefId": "s1", "fadeInTime": 2},
                {"name": "Two", "cueNumber": 2, "sceneRefId": "missing"},
            ]}],
        )
        result = importer.import_project(document, ImportOptions())
        assert result.stats.cue_lists_created == 1
        assert result.stats.cues_created == 1
        assert result.warnings == ["Skipping cue with unknown scene in cue list: Main"]

        cue_list = repo.find_cue_lists_by_project(result.project_id)[0]
        assert cue_list.loop is True
        cues = repo.get_cues(cue_list.cue_list_id)
        assert cues[0].fade_in_time == 2.0

    def test_scene_board_buttons(self, importer, repo):
        document = rgb_document(
            scenes=[{"refId": "s1", "name": "Look", "fixtureValues": []}],
            sceneBoards=[{"refId": "b1", "name": "Board", "defaultFadeTime": 1.5, "buttons": [
                {"sceneRefId": "s1", "layoutX": 10, "layoutY": 0, "label": "Look"},
                {"sceneRefId": "nope", "layoutX": 0, "layoutY": 0},
            ]}],
        )
        result = importer.import_project(document, ImportOptions())
        assert result.stats.scene_boards_created == 1
        assert result.warnings == ["Skipping scene board button with unknown scene in board: Board"]

        board = repo.find_scene_boards_by_project(result.project_id)[0]
        assert board.default_fade_time == 1.5
        buttons = repo.get_scene_board_buttons(board.scene_board_id)
        assert [b.label for b in buttons] == ["Look"]

    def test_scene_boards_ignored_without_board_repository(self, repo):
        importer = ProjectImporter(repo)
        document = rgb_document(
            sceneBoards=[{"refId": "b1", "name": "Board", "buttons": []}])
        result = importer.import_project(document, ImportOptions())
        assert result.stats.scene_boards_created == 0


class TestOptionsAndErrors:
    """Tests for option parsing, parse errors and cancellation"""

    def test_options_from_dict(self):
        options = ImportOptions.from_dict({
            "mode": "merge", "targetProjectId": "p1",
            "fixtureConflictStrategy": "rename", "importBuiltInFixtures": True,
        })
        assert options.mode == ImportMode.MERGE
        assert options.target_project_id == "p1"
        assert options.fixture_conflict_strategy == FixtureConflictStrategy.RENAME
        assert options.import_built_in_fixtures is True

    @pytest.mark.parametrize("raw, expected", [
        ("false", False), ("False", False), ("0", False), ("no", False),
        ("true", True), ("YES", True), ("1", True), (True, True), (None, False),
    ])
    def test_import_built_in_fixtures_string_flag(self, raw, expected):
        options = ImportOptions.from_dict({"importBuiltInFixtures": raw})
        assert options.import_built_in_fixtures is expected

    def test_options_defaults(self):
        options = ImportOptions.from_dict({})
        assert options.mode == ImportMode.CREATE
        assert options.fixture_conflict_strategy == FixtureConflictStrategy.SKIP

    def test_unknown_option_value(self):
        with pytest.raises(ValueError):
            ImportOptions.from_dict({"mode": "OVERWRITE"})

    def test_invalid_json_creates_nothing(self, importer, repo):
        with pytest.raises(DocumentParseError):
            importer.import_project("{broken", ImportOptions())
        assert repo.list_projects() == []

    def test_cancelled_before_start(self, importer, repo):
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(OperationCancelled):
            importer.import_project(rgb_document(), ImportOptions(), cancel=cancel)
        assert repo.list_projects() == []
