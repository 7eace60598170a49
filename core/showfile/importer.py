"""
Project Importer - Materialize a show document into storage

Every cross-reference in the document is a RefID. The importer keeps one
mapping table per entity kind (definitions, fixtures, scenes, mode RefID to
mode name) for the duration of a single import and translates references
through them. A reference that cannot be resolved never fails the import:
the affected entity is skipped and a human-readable warning is returned.

Import is not transactional as a whole. The first repository error aborts
and propagates; anything created before it stays.

Usage:
    importer = ProjectImporter(repository, scene_board_repository=repository)
    result = importer.import_project(text, ImportOptions(mode=ImportMode.CREATE))
    print(result.project_id, result.stats, result.warnings)
"""

import logging
import threading
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Dict, List, Optional

from .document import (
    ExportedProject,
    ExportedFixtureDefinition,
    ExportedFixtureMode,
    ExportedChannelDefinition,
    ExportedFixtureInstance,
    parse_exported_project,
)
from .interfaces import ShowRepository, SceneBoardRepository, check_cancelled
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
    DEFAULT_FADE_BEHAVIOR,
    encode_channel_values,
    encode_tags,
    new_id,
)

logger = logging.getLogger('stageshow.import')


# ============================================================
# Options / Results
# ============================================================

class ImportMode(str, Enum):
    CREATE = "CREATE"
    MERGE = "MERGE"
    REPLACE = "REPLACE"  # currently behaves like MERGE


class FixtureConflictStrategy(str, Enum):
    SKIP = "SKIP"
    REPLACE = "REPLACE"
    RENAME = "RENAME"


# Strategies that reuse the catalog entry already present
REUSE_STRATEGIES = (FixtureConflictStrategy.SKIP, FixtureConflictStrategy.REPLACE)


def _option_flag(value) -> bool:
    """JSON boolean, or a true/false/1/0/yes/no string"""
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass
class ImportOptions:
    mode: ImportMode = ImportMode.CREATE
    target_project_id: Optional[str] = None
    project_name: Optional[str] = None
    fixture_conflict_strategy: FixtureConflictStrategy = FixtureConflictStrategy.SKIP
    import_built_in_fixtures: bool = False

    @classmethod
    def from_dict(cls, data: dict) -> "ImportOptions":
        """
        Build options from an API payload.

        Raises ValueError for an unknown mode or strategy.
        """
        mode = str(data.get("mode", ImportMode.CREATE.value)).upper()
        strategy = str(data.get("fixtureConflictStrategy",
                                FixtureConflictStrategy.SKIP.value)).upper()
        return cls(
            mode=ImportMode(mode),
            target_project_id=data.get("targetProjectId"),
            project_name=data.get("projectName"),
            fixture_conflict_strategy=FixtureConflictStrategy(strategy),
            import_built_in_fixtures=_option_flag(data.get("importBuiltInFixtures", False)),
        )


@dataclass
class ImportStats:
    fixture_definitions_created: int = 0
    fixture_instances_created: int = 0
    scenes_created: int = 0
    cue_lists_created: int = 0
    cues_created: int = 0
    scene_boards_created: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class ImportResult:
    """project_id is "" and stats/warnings None when the target was not found."""
    project_id: str
    stats: Optional[ImportStats]
    warnings: Optional[List[str]]

    @property
    def is_noop(self) -> bool:
        return not self.project_id

    def to_dict(self) -> dict:
        return {
            "projectId": self.project_id,
            "stats": self.stats.to_dict() if self.stats else None,
            "warnings": list(self.warnings) if self.warnings is not None else None,
        }


@dataclass
class _ImportContext:
    """Per-import RefID mapping tables."""
    project_id: str
    options: ImportOptions
    stats: ImportStats = field(default_factory=ImportStats)
    warnings: List[str] = field(default_factory=list)
    definition_ids: Dict[str, str] = field(default_factory=dict)
    fixture_ids: Dict[str, str] = field(default_factory=dict)
    scene_ids: Dict[str, str] = field(default_factory=dict)
    mode_names: Dict[str, str] = field(default_factory=dict)

    def warn(self, message: str):
        logger.warning(message)
        self.warnings.append(message)


# ============================================================
# Importer
# ============================================================

class ProjectImporter:
    """Imports documents produced by ProjectExporter."""

    def __init__(self, repository: ShowRepository,
                 scene_board_repository: Optional[SceneBoardRepository] = None):
        self.repository = repository
        self.scene_board_repository = scene_board_repository

    def import_project(self, document_json, options: ImportOptions,
                       cancel: Optional[threading.Event] = None) -> ImportResult:
        """
        Import a document (JSON text, bytes or decoded dict).

        Raises:
            DocumentParseError: the document is malformed
            OperationCancelled: cancel was set before the import finished
            Any repository error, unwrapped
        """
        document = parse_exported_project(document_json)
        check_cancelled(cancel)

        project_id = self._resolve_target_project(document, options)
        if not project_id:
            return ImportResult("", None, None)

        ctx = _ImportContext(project_id=project_id, options=options)

        for definition in document.fixture_definitions:
            check_cancelled(cancel)
            self._import_definition(ctx, definition)

        for instance in document.fixture_instances:
            check_cancelled(cancel)
            self._import_instance(ctx, instance)

        for scene in document.scenes:
            check_cancelled(cancel)
            self._import_scene(ctx, scene)

        for cue_list in document.cue_lists:
            check_cancelled(cancel)
            self._import_cue_list(ctx, cue_list)

        if self.scene_board_repository is not None and document.scene_boards:
            for board in document.scene_boards:
                check_cancelled(cancel)
                self._import_scene_board(ctx, board)

        logger.info(
            "Imported into project %s: %d definitions, %d fixtures, %d scenes, "
            "%d cue lists, %d cues, %d warnings",
            project_id, ctx.stats.fixture_definitions_created,
            ctx.stats.fixture_instances_created, ctx.stats.scenes_created,
            ctx.stats.cue_lists_created, ctx.stats.cues_created, len(ctx.warnings),
        )
        return ImportResult(project_id, ctx.stats, ctx.warnings)

    def _resolve_target_project(self, document: ExportedProject,
                                options: ImportOptions) -> str:
        """New or existing project ID; "" when a merge target is missing."""
        if options.mode == ImportMode.CREATE:
            name = options.project_name if options.project_name is not None else document.project_name
            project = self.repository.create_project(Project(
                project_id="",
                name=name,
                description=document.project_description,
            ))
            return project.project_id

        # MERGE and REPLACE
        if not options.target_project_id:
            return ""
        if self.repository.find_project(options.target_project_id) is None:
            return ""
        return options.target_project_id

    # ─────────────────────────────────────────────────────────
    # Fixture definitions
    # ─────────────────────────────────────────────────────────

    def _import_definition(self, ctx: _ImportContext, definition: ExportedFixtureDefinition):
        if definition.is_built_in and not ctx.options.import_built_in_fixtures:
            existing = self.repository.find_definition_by_manufacturer_model(
                definition.manufacturer, definition.model)
            if existing is not None:
                self._reuse_definition(ctx, definition, existing)
                return

        existing = self.repository.find_definition_by_manufacturer_model(
            definition.manufacturer, definition.model)

        if existing is not None and ctx.options.fixture_conflict_strategy in REUSE_STRATEGIES:
            self._reuse_definition(ctx, definition, existing)
            if ctx.options.fixture_conflict_strategy == FixtureConflictStrategy.SKIP:
                ctx.warn(f"Skipped existing fixture definition: {definition.display_name}")
            else:
                ctx.warn(f"Reused existing fixture definition (Replace merges modes): "
                         f"{definition.display_name}")
            return

        model = definition.model
        if existing is not None:
            # RENAME: the catalog holds one definition per (manufacturer, model)
            model = self._free_model_name(definition.manufacturer, definition.model)
            ctx.warn(f"Renamed conflicting fixture definition: {definition.display_name} -> "
                     f"{definition.manufacturer} {model}")

        self._create_definition(ctx, definition, model)

    def _free_model_name(self, manufacturer: str, model: str) -> str:
        candidate = f"{model} (imported)"
        suffix = 2
        while self.repository.find_definition_by_manufacturer_model(manufacturer, candidate):
            candidate = f"{model} (imported {suffix})"
            suffix += 1
        return candidate

    def _reuse_definition(self, ctx: _ImportContext, definition: ExportedFixtureDefinition,
                          existing: FixtureDefinition):
        ctx.definition_ids[definition.ref_id] = existing.definition_id
        if definition.modes:
            self._merge_modes(ctx, existing.definition_id, definition.modes, definition.channels)

    def _create_definition(self, ctx: _ImportContext, definition: ExportedFixtureDefinition,
                           model: str):
        channel_ids: Dict[str, str] = {}
        channels = []
        for ch in definition.channels:
            channel_id = new_id()
            channels.append(ChannelDefinition(
                channel_id=channel_id,
                name=ch.name,
                kind=ch.kind,
                offset=ch.offset,
                min_value=ch.min_value,
                max_value=ch.max_value,
                default_value=ch.default_value,
                fade_behavior=ch.fade_behavior or DEFAULT_FADE_BEHAVIOR,
                is_discrete=ch.is_discrete,
            ))
            channel_ids[ch.ref_id or ch.name] = channel_id

        created = self.repository.create_definition_with_channels(
            FixtureDefinition(
                definition_id="",
                manufacturer=definition.manufacturer,
                model=model,
                kind=definition.kind,
                is_built_in=False,
            ),
            channels,
        )
        ctx.definition_ids[definition.ref_id] = created.definition_id
        ctx.stats.fixture_definitions_created += 1

        for mode in definition.modes:
            new_mode = self.repository.create_mode(FixtureMode(
                mode_id="",
                name=mode.name,
                short_name=mode.short_name,
                channel_count=mode.channel_count,
                definition_id=created.definition_id,
            ))
            ctx.mode_names[mode.ref_id] = new_mode.name

            bindings = []
            for mc in mode.mode_channels:
                channel_id = channel_ids.get(mc.channel_ref_id)
                if channel_id is None:
                    ctx.warn(f"Mode channel references unknown channel: {mc.channel_ref_id}")
                    continue
                bindings.append(ModeChannel(mode_channel_id="", mode_id=new_mode.mode_id,
                                            channel_id=channel_id, offset=mc.offset))
            self.repository.create_mode_channels(bindings)

    def _merge_modes(self, ctx: _ImportContext, definition_id: str,
                     modes: List[ExportedFixtureMode],
                     exported_channels: List[ExportedChannelDefinition]):
        """Add exported modes whose names are missing from an existing definition."""
        existing_names = {m.name for m in self.repository.get_definition_modes(definition_id)}
        channel_ids_by_name = {
            ch.name: ch.channel_id for ch in self.repository.get_definition_channels(definition_id)
        }
        names_by_ref = {ch.ref_id: ch.name for ch in exported_channels if ch.ref_id}

        for mode in modes:
            if mode.name in existing_names:
                ctx.mode_names[mode.ref_id] = mode.name
                continue

            new_mode = self.repository.create_mode(FixtureMode(
                mode_id="",
                name=mode.name,
                short_name=mode.short_name,
                channel_count=mode.channel_count,
                definition_id=definition_id,
            ))
            ctx.mode_names[mode.ref_id] = new_mode.name

            bindings = []
            for mc in mode.mode_channels:
                channel_name = names_by_ref.get(mc.channel_ref_id)
                channel_id = channel_ids_by_name.get(channel_name) if channel_name else None
                if not channel_id:
                    # RefID may itself be a channel name
                    channel_id = channel_ids_by_name.get(mc.channel_ref_id)
                if not channel_id:
                    ctx.warn(f"Mode '{mode.name}' references unknown channel "
                             f"'{channel_name or mc.channel_ref_id}'")
                    continue
                bindings.append(ModeChannel(mode_channel_id="", mode_id=new_mode.mode_id,
                                            channel_id=channel_id, offset=mc.offset))
            if bindings:
                self.repository.create_mode_channels(bindings)

    # ─────────────────────────────────────────────────────────
    # Fixture instances
    # ─────────────────────────────────────────────────────────

    def _import_instance(self, ctx: _ImportContext, instance: ExportedFixtureInstance):
        definition_id = ctx.definition_ids.get(instance.definition_ref_id)
        if definition_id is None:
            ctx.warn(f"Skipping fixture instance with unknown definition: {instance.name}")
            return

        definition = self.repository.find_definition(definition_id)
        if definition is None:
            ctx.warn(f"Definition not found for fixture: {instance.name}")
            return

        mode_name = instance.mode_name
        if instance.mode_ref_id:
            if instance.mode_ref_id in ctx.mode_names:
                mode_name = ctx.mode_names[instance.mode_ref_id]
            elif mode_name:
                ctx.warn(f"Mode refID '{instance.mode_ref_id}' not found for fixture "
                         f"'{instance.name}', using mode name '{mode_name}' instead")

        channels = self._instance_channels(instance, definition_id, mode_name)
        channel_count = instance.channel_count
        if channel_count is None:
            channel_count = len(channels)

        fixture = self.repository.create_fixture_with_channels(
            FixtureInstance(
                fixture_id="",
                name=instance.name,
                description=instance.description,
                definition_id=definition_id,
                project_id=ctx.project_id,
                universe=instance.universe,
                start_channel=instance.start_channel,
                tags=encode_tags(instance.tags),
                manufacturer=definition.manufacturer,
                model=definition.model,
                kind=definition.kind,
                mode_name=mode_name,
                channel_count=channel_count,
                project_order=instance.project_order,
                layout_x=instance.layout_x,
                layout_y=instance.layout_y,
                layout_rotation=instance.layout_rotation,
            ),
            channels,
        )
        ctx.fixture_ids[instance.ref_id] = fixture.fixture_id
        ctx.stats.fixture_instances_created += 1

    def _instance_channels(self, instance: ExportedFixtureInstance, definition_id: str,
                           mode_name: Optional[str]) -> List[InstanceChannel]:
        """Explicit instance channels, else the mode's bindings, else every definition channel."""
        if instance.instance_channels:
            return [
                InstanceChannel(
                    offset=ch.offset,
                    name=ch.name,
                    kind=ch.kind,
                    min_value=ch.min_value,
                    max_value=ch.max_value,
                    default_value=ch.default_value,
                    fade_behavior=ch.fade_behavior or DEFAULT_FADE_BEHAVIOR,
                    is_discrete=ch.is_discrete,
                )
                for ch in instance.instance_channels
            ]

        definition_channels = self.repository.get_definition_channels(definition_id)

        if mode_name:
            selected = None
            for mode in self.repository.get_definition_modes(definition_id):
                if mode.name == mode_name:
                    selected = mode
                    break

            if selected is not None:
                by_id = {ch.channel_id: ch for ch in definition_channels}
                result = []
                for binding in self.repository.get_mode_channels(selected.mode_id):
                    ch = by_id.get(binding.channel_id)
                    if ch is None:
                        continue
                    # Offset comes from the mode, not the definition
                    result.append(InstanceChannel(
                        offset=binding.offset,
                        name=ch.name,
                        kind=ch.kind,
                        min_value=ch.min_value,
                        max_value=ch.max_value,
                        default_value=ch.default_value,
                        fade_behavior=ch.fade_behavior,
                        is_discrete=ch.is_discrete,
                    ))
                return result

        return [
            InstanceChannel(
                offset=ch.offset,
                name=ch.name,
                kind=ch.kind,
                min_value=ch.min_value,
                max_value=ch.max_value,
                default_value=ch.default_value,
                fade_behavior=ch.fade_behavior,
                is_discrete=ch.is_discrete,
            )
            for ch in definition_channels
        ]

    # ─────────────────────────────────────────────────────────
    # Scenes / Cue lists / Boards
    # ─────────────────────────────────────────────────────────

    def _import_scene(self, ctx: _ImportContext, scene):
        values = []
        for fv in scene.fixture_values:
            fixture_id = ctx.fixture_ids.get(fv.fixture_ref_id)
            if fixture_id is None:
                ctx.warn(f"Skipping fixture value with unknown fixture '{fv.fixture_ref_id}' "
                         f"in scene '{scene.name}'")
                continue
            values.append(FixtureValue(
                fixture_value_id="",
                fixture_id=fixture_id,
                channels=encode_channel_values(fv.normalized_channels()),
                scene_order=fv.scene_order,
            ))

        created = self.repository.create_scene_with_fixture_values(
            Scene(scene_id="", name=scene.name, project_id=ctx.project_id,
                  description=scene.description),
            values,
        )
        ctx.scene_ids[scene.ref_id] = created.scene_id
        ctx.stats.scenes_created += 1

    def _import_cue_list(self, ctx: _ImportContext, cue_list):
        created = self.repository.create_cue_list(CueList(
            cue_list_id="",
            name=cue_list.name,
            project_id=ctx.project_id,
            description=cue_list.description,
            loop=cue_list.loop,
        ))
        ctx.stats.cue_lists_created += 1

        for cue in cue_list.cues:
            scene_id = ctx.scene_ids.get(cue.scene_ref_id)
            if scene_id is None:
                ctx.warn(f"Skipping cue with unknown scene in cue list: {cue_list.name}")
                continue
            self.repository.create_cue(Cue(
                cue_id="",
                cue_list_id=created.cue_list_id,
                name=cue.name,
                cue_number=cue.cue_number,
                scene_id=scene_id,
                fade_in_time=cue.fade_in_time,
                fade_out_time=cue.fade_out_time,
                follow_time=cue.follow_time,
                easing_type=cue.easing_type,
                notes=cue.notes,
            ))
            ctx.stats.cues_created += 1

    def _import_scene_board(self, ctx: _ImportContext, board):
        buttons = []
        for button in board.buttons:
            scene_id = ctx.scene_ids.get(button.scene_ref_id)
            if scene_id is None:
                ctx.warn(f"Skipping scene board button with unknown scene in board: {board.name}")
                continue
            buttons.append(SceneBoardButton(
                button_id="",
                scene_id=scene_id,
                layout_x=button.layout_x,
                layout_y=button.layout_y,
                width=button.width,
                height=button.height,
                color=button.color,
                label=button.label,
            ))

        self.scene_board_repository.create_scene_board_with_buttons(
            SceneBoard(
                scene_board_id="",
                name=board.name,
                project_id=ctx.project_id,
                description=board.description,
                default_fade_time=board.default_fade_time,
                grid_size=board.grid_size,
                canvas_width=board.canvas_width,
                canvas_height=board.canvas_height,
            ),
            buttons,
        )
        ctx.stats.scene_boards_created += 1
