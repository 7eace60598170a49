"""
Shared pytest fixtures

- repo: fresh SqliteShowRepository on a temp file
- sample: a small stored project (one definition with a mode, two
  fixtures, two scenes, a cue list, a scene board)
"""

import os
import sys
from types import SimpleNamespace

import pytest

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.showfile.models import (  # noqa: E402
    Project,
    FixtureDefinition,
    ChannelDefinition,
    FixtureMode,
    ModeChannel,
    FixtureInstance,
    InstanceChannel,
    Scene,
    FixtureValue,
    ChannelValue,
    CueList,
    Cue,
    SceneBoard,
    SceneBoardButton,
    encode_channel_values,
    encode_tags,
)
from core.showfile.sqlite_repository import SqliteShowRepository  # noqa: E402


@pytest.fixture
def repo(tmp_path):
    """Empty repository backed by a temp sqlite file"""
    return SqliteShowRepository(str(tmp_path / "show.db"))


def build_sample_project(repo):
    project = repo.create_project(Project(project_id="", name="Main Stage", description="Test rig"))

    channels = [
        ChannelDefinition(channel_id="", name="Red", kind="RED", offset=0),
        ChannelDefinition(channel_id="", name="Green", kind="GREEN", offset=1),
        ChannelDefinition(channel_id="", name="Blue", kind="BLUE", offset=2, fade_behavior="SNAP"),
    ]
    definition = repo.create_definition_with_channels(
        FixtureDefinition(definition_id="", manufacturer="ACME", model="Par64", kind="LED_PAR"),
        channels,
    )
    mode = repo.create_mode(FixtureMode(
        mode_id="", name="RGB-Short", short_name="2ch", channel_count=2,
        definition_id=definition.definition_id,
    ))
    repo.create_mode_channels([
        ModeChannel(mode_channel_id="", mode_id=mode.mode_id,
                    channel_id=channels[0].channel_id, offset=0),
        ModeChannel(mode_channel_id="", mode_id=mode.mode_id,
                    channel_id=channels[1].channel_id, offset=1),
    ])

    # Created out of patch order on purpose: export orders by universe/start
    fixture_b = repo.create_fixture_with_channels(
        FixtureInstance(
            fixture_id="", name="Par 2", definition_id=definition.definition_id,
            project_id=project.project_id, universe=1, start_channel=20,
            manufacturer="ACME", model="Par64", kind="LED_PAR", channel_count=3,
        ),
        [
            InstanceChannel(offset=0, name="Red", kind="RED"),
            InstanceChannel(offset=1, name="Green", kind="GREEN"),
            InstanceChannel(offset=2, name="Blue", kind="BLUE", fade_behavior="SNAP"),
        ],
    )
    fixture_a = repo.create_fixture_with_channels(
        FixtureInstance(
            fixture_id="", name="Par 1", definition_id=definition.definition_id,
            project_id=project.project_id, universe=1, start_channel=10,
            manufacturer="ACME", model="Par64", kind="LED_PAR",
            mode_name="RGB-Short", channel_count=2, tags=encode_tags(["front", "wash"]),
            project_order=1, layout_x=0.25, layout_y=0.5,
        ),
        [
            InstanceChannel(offset=0, name="Red", kind="RED"),
            InstanceChannel(offset=1, name="Green", kind="GREEN"),
        ],
    )

    warm = repo.create_scene_with_fixture_values(
        Scene(scene_id="", name="Warm", project_id=project.project_id),
        [
            FixtureValue(fixture_value_id="", fixture_id=fixture_a.fixture_id,
                         channels=encode_channel_values([ChannelValue(0, 255), ChannelValue(1, 128)]),
                         scene_order=0),
            # Legacy dense payload
            FixtureValue(fixture_value_id="", fixture_id=fixture_b.fixture_id,
                         channels="[200, 200, 200]", scene_order=1),
        ],
    )
    dark = repo.create_scene_with_fixture_values(
        Scene(scene_id="", name="Dark", project_id=project.project_id, description="All off"),
        [],
    )

    cue_list = repo.create_cue_list(CueList(
        cue_list_id="", name="Main", project_id=project.project_id, loop=True,
    ))
    repo.create_cue(Cue(cue_id="", cue_list_id=cue_list.cue_list_id, name="Close",
                        cue_number=2.0, scene_id=dark.scene_id, follow_time=5.0,
                        easing_type="LINEAR"))
    repo.create_cue(Cue(cue_id="", cue_list_id=cue_list.cue_list_id, name="Open",
                        cue_number=1.0, scene_id=warm.scene_id, fade_in_time=2.0,
                        fade_out_time=1.0, notes="House to half"))

    board = repo.create_scene_board_with_buttons(
        SceneBoard(scene_board_id="", name="Busking", project_id=project.project_id),
        [
            SceneBoardButton(button_id="", scene_id=warm.scene_id, layout_x=0, layout_y=0,
                             label="Warm", color="#ff8800"),
            SceneBoardButton(button_id="", scene_id=dark.scene_id, layout_x=200, layout_y=0,
                             label="Dark"),
        ],
    )

    return SimpleNamespace(
        project=project,
        definition=definition,
        channels=channels,
        mode=mode,
        fixture_a=fixture_a,
        fixture_b=fixture_b,
        warm=warm,
        dark=dark,
        cue_list=cue_list,
        board=board,
    )


@pytest.fixture
def sample(repo):
    """Stored sample project"""
    return build_sample_project(repo)
