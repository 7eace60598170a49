"""
Project Exporter - Serialize a stored project into a self-contained document

RefIDs in the document are the storage primary keys of the exporting side,
so repeated exports of an unchanged project are identical apart from
metadata.exportedAt. Fixture definitions are emitted in the order their
first fixture instance appears.

Usage:
    exporter = ProjectExporter(repository, scene_board_repository=repository)
    result = exporter.export_project(project_id, include_scene_boards=True)
    if result is None:
        ...  # project not found
    document, stats = result
    text = document.to_json()
"""

import logging
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from .document import (
    SCHEMA_VERSION,
    PRODUCER_VERSION,
    ExportMetadata,
    ExportProjectInfo,
    ExportedProject,
    ExportedFixtureDefinition,
    ExportedChannelDefinition,
    ExportedFixtureMode,
    ExportedModeChannel,
    ExportedFixtureInstance,
    ExportedInstanceChannel,
    ExportedScene,
    ExportedFixtureValue,
    ExportedChannelValue,
    ExportedCueList,
    ExportedCue,
    ExportedSceneBoard,
    ExportedSceneBoardButton,
)
from .interfaces import ShowRepository, SceneBoardRepository, check_cancelled
from .models import FixtureInstance, FixtureMode, decode_channel_values, decode_tags

logger = logging.getLogger('stageshow.export')


@dataclass
class ExportStats:
    fixture_definitions_count: int = 0
    fixture_instances_count: int = 0
    scenes_count: int = 0
    cue_lists_count: int = 0
    cues_count: int = 0
    scene_boards_count: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


class ProjectExporter:
    """Builds ExportedProject documents from a ShowRepository."""

    def __init__(self, repository: ShowRepository,
                 scene_board_repository: Optional[SceneBoardRepository] = None):
        self.repository = repository
        self.scene_board_repository = scene_board_repository

    def export_project(self, project_id: str,
                       include_fixtures: bool = True,
                       include_scenes: bool = True,
                       include_cue_lists: bool = True,
                       include_scene_boards: bool = False,
                       cancel: Optional[threading.Event] = None
                       ) -> Optional[Tuple[ExportedProject, ExportStats]]:
        """
        Export a project.

        Returns:
            (document, stats), or None when the project does not exist.

        Raises:
            OperationCancelled: cancel was set before the export finished
            Any repository error, unwrapped
        """
        check_cancelled(cancel)
        project = self.repository.find_project(project_id)
        if project is None:
            return None

        stats = ExportStats()
        document = ExportedProject(
            version=SCHEMA_VERSION,
            metadata=ExportMetadata(
                exported_at=datetime.now(timezone.utc).isoformat(),
                producer_version=PRODUCER_VERSION,
            ),
            project=ExportProjectInfo(
                original_id=project.project_id,
                name=project.name,
                description=project.description,
            ),
        )

        if include_fixtures:
            self._export_fixtures(project_id, document, stats, cancel)

        if include_scenes:
            self._export_scenes(project_id, document, stats, cancel)

        if include_cue_lists:
            self._export_cue_lists(project_id, document, stats, cancel)

        if include_scene_boards and self.scene_board_repository is not None:
            self._export_scene_boards(project_id, document, stats, cancel)

        logger.info(
            "Exported project %s: %d definitions, %d fixtures, %d scenes, %d cue lists, %d cues",
            project_id, stats.fixture_definitions_count, stats.fixture_instances_count,
            stats.scenes_count, stats.cue_lists_count, stats.cues_count,
        )
        return document, stats

    def export_project_json(self, project_id: str, **kwargs) -> Optional[str]:
        """Same as export_project but returns the document text."""
        result = self.export_project(project_id, **kwargs)
        if result is None:
            return None
        document, _ = result
        return document.to_json()

    # ─────────────────────────────────────────────────────────
    # Fixtures
    # ─────────────────────────────────────────────────────────

    def _export_fixtures(self, project_id: str, document: ExportedProject,
                         stats: ExportStats, cancel):
        fixtures = self.repository.find_fixtures_by_project(project_id)

        definition_ids: List[str] = []
        for fixture in fixtures:
            if fixture.definition_id not in definition_ids:
                definition_ids.append(fixture.definition_id)

        modes_by_definition: Dict[str, List[FixtureMode]] = {}
        for definition_id in definition_ids:
            check_cancelled(cancel)
            definition = self.repository.find_definition(definition_id)
            if definition is None:
                continue

            channels = [
                ExportedChannelDefinition(
                    ref_id=ch.channel_id,
                    name=ch.name,
                    kind=ch.kind,
                    offset=ch.offset,
                    min_value=ch.min_value,
                    max_value=ch.max_value,
                    default_value=ch.default_value,
                    fade_behavior=ch.fade_behavior or None,
                    is_discrete=ch.is_discrete,
                )
                for ch in self.repository.get_definition_channels(definition_id)
            ]

            modes = self.repository.get_definition_modes(definition_id)
            modes_by_definition[definition_id] = modes
            exported_modes = []
            for mode in modes:
                exported_modes.append(ExportedFixtureMode(
                    ref_id=mode.mode_id,
                    name=mode.name,
                    short_name=mode.short_name,
                    channel_count=mode.channel_count,
                    mode_channels=[
                        ExportedModeChannel(channel_ref_id=mc.channel_id, offset=mc.offset)
                        for mc in self.repository.get_mode_channels(mode.mode_id)
                    ],
                ))

            document.fixture_definitions.append(ExportedFixtureDefinition(
                ref_id=definition.definition_id,
                manufacturer=definition.manufacturer,
                model=definition.model,
                kind=definition.kind,
                is_built_in=definition.is_built_in,
                channels=channels,
                modes=exported_modes,
            ))
            stats.fixture_definitions_count += 1

        for fixture in fixtures:
            check_cancelled(cancel)
            document.fixture_instances.append(
                self._export_instance(fixture, modes_by_definition.get(fixture.definition_id, []))
            )
            stats.fixture_instances_count += 1

    def _export_instance(self, fixture: FixtureInstance,
                         modes: List[FixtureMode]) -> ExportedFixtureInstance:
        try:
            tags = decode_tags(fixture.tags)
        except ValueError as e:
            logger.warning("Failed to decode tags for fixture %s: %s", fixture.fixture_id, e)
            tags = []

        mode_ref_id = None
        if fixture.mode_name:
            for mode in modes:
                if mode.name == fixture.mode_name:
                    mode_ref_id = mode.mode_id
                    break

        instance_channels = [
            ExportedInstanceChannel(
                name=ch.name,
                kind=ch.kind,
                offset=ch.offset,
                min_value=ch.min_value,
                max_value=ch.max_value,
                default_value=ch.default_value,
                fade_behavior=ch.fade_behavior or None,
                is_discrete=ch.is_discrete,
            )
            for ch in self.repository.get_instance_channels(fixture.fixture_id)
        ]

        return ExportedFixtureInstance(
            ref_id=fixture.fixture_id,
            name=fixture.name,
            description=fixture.description,
            definition_ref_id=fixture.definition_id,
            universe=fixture.universe,
            start_channel=fixture.start_channel,
            tags=tags,
            mode_ref_id=mode_ref_id,
            mode_name=fixture.mode_name,
            channel_count=fixture.channel_count,
            instance_channels=instance_channels or None,
            project_order=fixture.project_order,
            layout_x=fixture.layout_x,
            layout_y=fixture.layout_y,
            layout_rotation=fixture.layout_rotation,
        )

    # ─────────────────────────────────────────────────────────
    # Scenes / Cue lists / Boards
    # ─────────────────────────────────────────────────────────

    def _export_scenes(self, project_id: str, document: ExportedProject,
                       stats: ExportStats, cancel):
        for scene in self.repository.find_scenes_by_project(project_id):
            check_cancelled(cancel)
            exported = ExportedScene(
                ref_id=scene.scene_id,
                name=scene.name,
                description=scene.description,
            )
            for fv in self.repository.get_fixture_values(scene.scene_id):
                try:
                    channels = decode_channel_values(fv.channels)
                except ValueError as e:
                    logger.warning("Skipping fixture %s in scene %s: undecodable channels (%s)",
                                   fv.fixture_id, scene.scene_id, e)
                    continue
                exported.fixture_values.append(ExportedFixtureValue(
                    fixture_ref_id=fv.fixture_id,
                    channels=[ExportedChannelValue(offset=ch.offset, value=ch.value)
                              for ch in channels],
                    scene_order=fv.scene_order,
                ))
            document.scenes.append(exported)
            stats.scenes_count += 1

    def _export_cue_lists(self, project_id: str, document: ExportedProject,
                          stats: ExportStats, cancel):
        for cue_list in self.repository.find_cue_lists_by_project(project_id):
            check_cancelled(cancel)
            exported = ExportedCueList(
                ref_id=cue_list.cue_list_id,
                name=cue_list.name,
                description=cue_list.description,
                loop=cue_list.loop,
            )
            for cue in self.repository.get_cues(cue_list.cue_list_id):
                exported.cues.append(ExportedCue(
                    name=cue.name,
                    cue_number=cue.cue_number,
                    scene_ref_id=cue.scene_id,
                    fade_in_time=cue.fade_in_time,
                    fade_out_time=cue.fade_out_time,
                    follow_time=cue.follow_time,
                    easing_type=cue.easing_type,
                    notes=cue.notes,
                ))
                stats.cues_count += 1
            document.cue_lists.append(exported)
            stats.cue_lists_count += 1

    def _export_scene_boards(self, project_id: str, document: ExportedProject,
                             stats: ExportStats, cancel):
        document.scene_boards = []
        for board in self.scene_board_repository.find_scene_boards_by_project(project_id):
            check_cancelled(cancel)
            buttons = self.scene_board_repository.get_scene_board_buttons(board.scene_board_id)
            document.scene_boards.append(ExportedSceneBoard(
                ref_id=board.scene_board_id,
                name=board.name,
                description=board.description,
                default_fade_time=board.default_fade_time,
                grid_size=board.grid_size,
                canvas_width=board.canvas_width,
                canvas_height=board.canvas_height,
                buttons=[
                    ExportedSceneBoardButton(
                        scene_ref_id=b.scene_id,
                        layout_x=b.layout_x,
                        layout_y=b.layout_y,
                        width=b.width,
                        height=b.height,
                        color=b.color,
                        label=b.label,
                    )
                    for b in buttons
                ],
            ))
            stats.scene_boards_count += 1
