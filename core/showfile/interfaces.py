"""
Show File Interfaces - Contracts consumed by the export/import and preview services

The services never talk to a database or to the DMX output directly; they
go through these small facades so storage and output can be swapped
(sqlite for the server, mocks in tests).

Classes:
    ShowRepository: Projects, fixture catalog, fixtures, scenes, cue lists
    SceneBoardRepository: Scene boards with their buttons
    DMXEngine: Preview channel overrides on the live DMX output

Creation methods assign storage IDs to records that arrive with an empty
ID and return the stored record. Multi-record creators are atomic.
"""

import threading
from abc import ABC, abstractmethod
from typing import List, Optional

from .errors import OperationCancelled
from .models import (
    Project,
    FixtureDefinition,
    ChannelDefinition,
    FixtureMode,
    ModeChannel,
    FixtureInstance,
    InstanceChannel,
    Scene,
    FixtureValue,
    CueList,
    Cue,
    SceneBoard,
    SceneBoardButton,
)


def check_cancelled(cancel: Optional[threading.Event]):
    """Raise OperationCancelled if the caller's token has been set."""
    if cancel is not None and cancel.is_set():
        raise OperationCancelled("Operation cancelled by caller")


class ShowRepository(ABC):
    """
    Persistence facade for everything a project export touches.

    Collections are returned in a stable order for a given project so
    that repeated exports produce identical documents.
    """

    # ---- Projects ----

    @abstractmethod
    def find_project(self, project_id: str) -> Optional[Project]:
        pass

    @abstractmethod
    def create_project(self, project: Project) -> Project:
        pass

    # ---- Fixture catalog ----

    @abstractmethod
    def find_definition(self, definition_id: str) -> Optional[FixtureDefinition]:
        pass

    @abstractmethod
    def find_definition_by_manufacturer_model(self, manufacturer: str,
                                              model: str) -> Optional[FixtureDefinition]:
        pass

    @abstractmethod
    def get_definition_channels(self, definition_id: str) -> List[ChannelDefinition]:
        """Channels of a definition, ordered by offset."""
        pass

    @abstractmethod
    def get_definition_modes(self, definition_id: str) -> List[FixtureMode]:
        """Modes of a definition, ordered by name."""
        pass

    @abstractmethod
    def get_mode_channels(self, mode_id: str) -> List[ModeChannel]:
        """Channel bindings of a mode, ordered by offset."""
        pass

    @abstractmethod
    def create_definition_with_channels(self, definition: FixtureDefinition,
                                        channels: List[ChannelDefinition]) -> FixtureDefinition:
        """Create a definition and all of its channels in one transaction."""
        pass

    @abstractmethod
    def create_mode(self, mode: FixtureMode) -> FixtureMode:
        pass

    @abstractmethod
    def create_mode_channels(self, mode_channels: List[ModeChannel]):
        pass

    # ---- Fixture instances ----

    @abstractmethod
    def find_fixture(self, fixture_id: str) -> Optional[FixtureInstance]:
        pass

    @abstractmethod
    def find_fixtures_by_project(self, project_id: str) -> List[FixtureInstance]:
        """Fixtures of a project, ordered by universe then start channel."""
        pass

    @abstractmethod
    def get_instance_channels(self, fixture_id: str) -> List[InstanceChannel]:
        pass

    @abstractmethod
    def create_fixture_with_channels(self, fixture: FixtureInstance,
                                     channels: List[InstanceChannel]) -> FixtureInstance:
        """Create a fixture and its instance channels in one transaction."""
        pass

    # ---- Scenes ----

    @abstractmethod
    def find_scene(self, scene_id: str) -> Optional[Scene]:
        pass

    @abstractmethod
    def find_scenes_by_project(self, project_id: str) -> List[Scene]:
        pass

    @abstractmethod
    def get_fixture_values(self, scene_id: str) -> List[FixtureValue]:
        pass

    @abstractmethod
    def create_scene_with_fixture_values(self, scene: Scene,
                                         fixture_values: List[FixtureValue]) -> Scene:
        """Create a scene and its fixture values in one transaction."""
        pass

    # ---- Cue lists ----

    @abstractmethod
    def find_cue_lists_by_project(self, project_id: str) -> List[CueList]:
        pass

    @abstractmethod
    def get_cues(self, cue_list_id: str) -> List[Cue]:
        """Cues of a list, ordered by cue number."""
        pass

    @abstractmethod
    def create_cue_list(self, cue_list: CueList) -> CueList:
        pass

    @abstractmethod
    def create_cue(self, cue: Cue) -> Cue:
        pass


class SceneBoardRepository(ABC):
    """Persistence for scene boards (optional for import/export)."""

    @abstractmethod
    def find_scene_boards_by_project(self, project_id: str) -> List[SceneBoard]:
        pass

    @abstractmethod
    def get_scene_board_buttons(self, scene_board_id: str) -> List[SceneBoardButton]:
        pass

    @abstractmethod
    def create_scene_board_with_buttons(self, board: SceneBoard,
                                        buttons: List[SceneBoardButton]) -> SceneBoard:
        pass


class DMXEngine(ABC):
    """
    Override registry of the live DMX output.

    Channels are 1-based (1-512). Overrides take precedence over whatever
    the engine would otherwise output for that channel. Implementations
    synchronize internally.
    """

    @abstractmethod
    def set_channel_override(self, universe: int, channel: int, value: int):
        pass

    @abstractmethod
    def clear_channel_override(self, universe: int, channel: int):
        pass

    @abstractmethod
    def get_universe(self, universe: int) -> List[int]:
        """Current 512-slot output of a universe, overrides applied."""
        pass
