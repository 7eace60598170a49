"""
Show File Module - Project export/import for lighting shows

Exports a stored project (fixture catalog entries it uses, patched
fixtures, scenes, cue lists and scene boards) into a self-contained JSON
document, and imports such documents back, remapping every document RefID
onto freshly assigned storage IDs.

Key Components:
- ProjectExporter: Project -> ExportedProject document
- ProjectImporter: document -> new or existing project, with warnings
- ShowRepository / SceneBoardRepository / DMXEngine: consumed interfaces
- SqliteShowRepository: sqlite3 implementation of both repositories

Usage:
    from core.showfile import ProjectExporter, ProjectImporter, ImportOptions, ImportMode

    document, stats = ProjectExporter(repo).export_project(project_id)
    result = ProjectImporter(repo).import_project(
        document.to_json(), ImportOptions(mode=ImportMode.CREATE))

Version: 1.0.0
"""

from .errors import ShowfileError, DocumentParseError, OperationCancelled

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
    ChannelValue,
    CueList,
    Cue,
    SceneBoard,
    SceneBoardButton,
    UNIVERSE_SIZE,
    clamp_dmx_value,
    decode_channel_values,
    encode_channel_values,
)

from .document import (
    SCHEMA_VERSION,
    PRODUCER_VERSION,
    ExportedProject,
    parse_exported_project,
)

from .interfaces import ShowRepository, SceneBoardRepository, DMXEngine, check_cancelled
from .exporter import ProjectExporter, ExportStats
from .importer import (
    ProjectImporter,
    ImportMode,
    FixtureConflictStrategy,
    ImportOptions,
    ImportStats,
    ImportResult,
)
from .sqlite_repository import SqliteShowRepository

__all__ = [
    # Errors
    "ShowfileError",
    "DocumentParseError",
    "OperationCancelled",
    # Models
    "Project",
    "FixtureDefinition",
    "ChannelDefinition",
    "FixtureMode",
    "ModeChannel",
    "FixtureInstance",
    "InstanceChannel",
    "Scene",
    "FixtureValue",
    "ChannelValue",
    "CueList",
    "Cue",
    "SceneBoard",
    "SceneBoardButton",
    "UNIVERSE_SIZE",
    "clamp_dmx_value",
    "decode_channel_values",
    "encode_channel_values",
    # Document
    "SCHEMA_VERSION",
    "ExportedProject",
    "parse_exported_project",
    # Interfaces
    "ShowRepository",
    "SceneBoardRepository",
    "DMXEngine",
    "check_cancelled",
    # Export / Import
    "ProjectExporter",
    "ExportStats",
    "ProjectImporter",
    "ImportMode",
    "FixtureConflictStrategy",
    "ImportOptions",
    "ImportStats",
    "ImportResult",
    # Storage
    "SqliteShowRepository",
]

__version__ = PRODUCER_VERSION
