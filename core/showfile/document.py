"""
Show Document Schema - Self-contained project export format

A document is a versioned, self-referential graph. Every entity that can be
referenced carries a ``refId`` unique within the document, and every
cross-reference uses those RefIDs, never storage primary keys of the
importing side.

Wire format:
    JSON, UTF-8, two-space indent, lowerCamelCase field names.
    Optional fields are omitted when None. Unknown fields are ignored.

    {
      "version": "1.0",
      "metadata": {"exportedAt": "...", "producerVersion": "1.0.0"},
      "project": {"originalId": "p0", "name": "Main Stage"},
      "fixtureDefinitions": [...],
      "fixtureInstances": [...],
      "scenes": [...],
      "cueLists": [...],
      "sceneBoards": [...]          # optional
    }

Scene fixture values are written as sparse ``channels: [{offset, value}]``.
The legacy dense ``channelValues: [int, ...]`` form is accepted on read and
never written.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import DocumentParseError
from .models import ChannelValue


SCHEMA_VERSION = "1.0"
PRODUCER_VERSION = "1.0.0"


# ============================================================
# Helpers
# ============================================================

def _put(result: Dict[str, Any], key: str, value: Any):
    """Set key only when value is not None"""
    if value is not None:
        result[key] = value


def _objects(data: dict, key: str) -> List[dict]:
    """Read a list of JSON objects, tolerating a missing or null key"""
    items = data.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise DocumentParseError(f"'{key}' must be an array")
    for item in items:
        if not isinstance(item, dict):
            raise DocumentParseError(f"'{key}' entries must be objects")
    return items


def _optional_float(value) -> Optional[float]:
    return float(value) if value is not None else None


def _optional_int(value) -> Optional[int]:
    return int(value) if value is not None else None


def _grid_position(value) -> int:
    """Board positions are whole pixels; fractional input rounds to the nearest one"""
    return int(round(float(value)))


# ============================================================
# Metadata / Project
# ============================================================

@dataclass
class ExportMetadata:
    exported_at: str
    producer_version: str
    description: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "exportedAt": self.exported_at,
            "producerVersion": self.producer_version,
        }
        _put(result, "description", self.description)
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportMetadata":
        return cls(
            exported_at=data.get("exportedAt", ""),
            producer_version=data.get("producerVersion", ""),
            description=data.get("description"),
        )


@dataclass
class ExportProjectInfo:
    original_id: str
    name: str
    description: Optional[str] = None

    def to_dict(self) -> dict:
        result = {"originalId": self.original_id, "name": self.name}
        _put(result, "description", self.description)
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportProjectInfo":
        return cls(
            original_id=data.get("originalId", data.get("originalID", "")),
            name=data.get("name", ""),
            description=data.get("description"),
        )


# ============================================================
# Fixture Definitions
# ============================================================

@dataclass
class ExportedChannelDefinition:
    ref_id: str
    name: str
    kind: str
    offset: int
    min_value: int = 0
    max_value: int = 255
    default_value: int = 0
    fade_behavior: Optional[str] = None
    is_discrete: bool = False

    def to_dict(self) -> dict:
        result = {
            "refId": self.ref_id,
            "name": self.name,
            "type": self.kind,
            "offset": self.offset,
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "defaultValue": self.default_value,
        }
        _put(result, "fadeBehavior", self.fade_behavior)
        result["isDiscrete"] = self.is_discrete
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedChannelDefinition":
        return cls(
            ref_id=data.get("refId") or "",
            name=data.get("name", ""),
            kind=data.get("type", ""),
            offset=int(data.get("offset", 0)),
            min_value=int(data.get("minValue", 0)),
            max_value=int(data.get("maxValue", 255)),
            default_value=int(data.get("defaultValue", 0)),
            fade_behavior=data.get("fadeBehavior") or None,
            is_discrete=bool(data.get("isDiscrete", False)),
        )


@dataclass
class ExportedModeChannel:
    channel_ref_id: str
    offset: int

    def to_dict(self) -> dict:
        return {"channelRefId": self.channel_ref_id, "offset": self.offset}

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedModeChannel":
        return cls(
            channel_ref_id=data.get("channelRefId", ""),
            offset=int(data.get("offset", 0)),
        )


@dataclass
class ExportedFixtureMode:
    ref_id: str
    name: str
    channel_count: int
    short_name: Optional[str] = None
    mode_channels: List[ExportedModeChannel] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {"refId": self.ref_id, "name": self.name}
        _put(result, "shortName", self.short_name)
        result["channelCount"] = self.channel_count
        result["modeChannels"] = [mc.to_dict() for mc in self.mode_channels]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedFixtureMode":
        return cls(
            ref_id=data.get("refId", ""),
            name=data.get("name", ""),
            channel_count=int(data.get("channelCount", 0)),
            short_name=data.get("shortName"),
            mode_channels=[ExportedModeChannel.from_dict(mc) for mc in _objects(data, "modeChannels")],
        )


@dataclass
class ExportedFixtureDefinition:
    ref_id: str
    manufacturer: str
    model: str
    kind: str
    is_built_in: bool = False
    channels: List[ExportedChannelDefinition] = field(default_factory=list)
    modes: List[ExportedFixtureMode] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return f"{self.manufacturer} {self.model}"

    def to_dict(self) -> dict:
        return {
            "refId": self.ref_id,
            "manufacturer": self.manufacturer,
            "model": self.model,
            "type": self.kind,
            "isBuiltIn": self.is_built_in,
            "channels": [ch.to_dict() for ch in self.channels],
            "modes": [m.to_dict() for m in self.modes],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedFixtureDefinition":
        return cls(
            ref_id=data.get("refId", ""),
            manufacturer=data.get("manufacturer", ""),
            model=data.get("model", ""),
            kind=data.get("type", ""),
            is_built_in=bool(data.get("isBuiltIn", False)),
            channels=[ExportedChannelDefinition.from_dict(ch) for ch in _objects(data, "channels")],
            modes=[ExportedFixtureMode.from_dict(m) for m in _objects(data, "modes")],
        )


# ============================================================
# Fixture Instances
# ============================================================

@dataclass
class ExportedInstanceChannel:
    name: str
    kind: str
    offset: int
    min_value: int = 0
    max_value: int = 255
    default_value: int = 0
    fade_behavior: Optional[str] = None
    is_discrete: bool = False

    def to_dict(self) -> dict:
        result = {
            "name": self.name,
            "type": self.kind,
            "offset": self.offset,
            "minValue": self.min_value,
            "maxValue": self.max_value,
            "defaultValue": self.default_value,
        }
        _put(result, "fadeBehavior", self.fade_behavior)
        result["isDiscrete"] = self.is_discrete
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedInstanceChannel":
        return cls(
            name=data.get("name", ""),
            kind=data.get("type", ""),
            offset=int(data.get("offset", 0)),
            min_value=int(data.get("minValue", 0)),
            max_value=int(data.get("maxValue", 255)),
            default_value=int(data.get("defaultValue", 0)),
            fade_behavior=data.get("fadeBehavior") or None,
            is_discrete=bool(data.get("isDiscrete", False)),
        )


@dataclass
class ExportedFixtureInstance:
    ref_id: str
    name: str
    definition_ref_id: str
    universe: int
    start_channel: int
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    mode_ref_id: Optional[str] = None
    mode_name: Optional[str] = None  # kept for documents without modeRefId
    channel_count: Optional[int] = None
    instance_channels: Optional[List[ExportedInstanceChannel]] = None
    project_order: Optional[int] = None
    layout_x: Optional[float] = None
    layout_y: Optional[float] = None
    layout_rotation: Optional[float] = None

    def to_dict(self) -> dict:
        result = {"refId": self.ref_id, "name": self.name}
        _put(result, "description", self.description)
        result["definitionRefId"] = self.definition_ref_id
        result["universe"] = self.universe
        result["startChannel"] = self.start_channel
        result["tags"] = list(self.tags)
        _put(result, "modeRefId", self.mode_ref_id)
        _put(result, "modeName", self.mode_name)
        _put(result, "channelCount", self.channel_count)
        if self.instance_channels is not None:
            result["instanceChannels"] = [ch.to_dict() for ch in self.instance_channels]
        _put(result, "projectOrder", self.project_order)
        _put(result, "layoutX", self.layout_x)
        _put(result, "layoutY", self.layout_y)
        _put(result, "layoutRotation", self.layout_rotation)
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedFixtureInstance":
        instance_channels = None
        if data.get("instanceChannels") is not None:
            instance_channels = [
                ExportedInstanceChannel.from_dict(ch) for ch in _objects(data, "instanceChannels")
            ]
        return cls(
            ref_id=data.get("refId", ""),
            name=data.get("name", ""),
            definition_ref_id=data.get("definitionRefId", ""),
            universe=int(data.get("universe", 1)),
            start_channel=int(data.get("startChannel", 1)),
            description=data.get("description"),
            tags=[str(t) for t in (data.get("tags") or [])],
            mode_ref_id=data.get("modeRefId"),
            mode_name=data.get("modeName"),
            channel_count=_optional_int(data.get("channelCount")),
            instance_channels=instance_channels,
            project_order=_optional_int(data.get("projectOrder")),
            layout_x=_optional_float(data.get("layoutX")),
            layout_y=_optional_float(data.get("layoutY")),
            layout_rotation=_optional_float(data.get("layoutRotation")),
        )


# ============================================================
# Scenes
# ============================================================

@dataclass
class ExportedChannelValue:
    offset: int
    value: int

    def to_dict(self) -> dict:
        return {"offset": self.offset, "value": self.value}

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedChannelValue":
        return cls(offset=int(data.get("offset", 0)), value=int(data.get("value", 0)))


@dataclass
class ExportedFixtureValue:
    fixture_ref_id: str
    channels: List[ExportedChannelValue] = field(default_factory=list)
    channel_values: Optional[List[int]] = None  # legacy dense input only
    scene_order: Optional[int] = None

    def normalized_channels(self) -> List[ChannelValue]:
        """Sparse channel list, converting the legacy dense array when needed"""
        if self.channels:
            return [ChannelValue(offset=ch.offset, value=ch.value) for ch in self.channels]
        if self.channel_values:
            return [ChannelValue(offset=i, value=v) for i, v in enumerate(self.channel_values)]
        return []

    def to_dict(self) -> dict:
        result = {
            "fixtureRefId": self.fixture_ref_id,
            "channels": [ch.to_dict() for ch in self.channels],
        }
        _put(result, "sceneOrder", self.scene_order)
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedFixtureValue":
        channel_values = data.get("channelValues")
        if channel_values is not None:
            if not isinstance(channel_values, list):
                raise DocumentParseError("'channelValues' must be an array")
            channel_values = [int(v) for v in channel_values]
        return cls(
            fixture_ref_id=data.get("fixtureRefId", ""),
            channels=[ExportedChannelValue.from_dict(ch) for ch in _objects(data, "channels")],
            channel_values=channel_values,
            scene_order=_optional_int(data.get("sceneOrder")),
        )


@dataclass
class ExportedScene:
    ref_id: str
    name: str
    description: Optional[str] = None
    fixture_values: List[ExportedFixtureValue] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {"refId": self.ref_id, "name": self.name}
        _put(result, "description", self.description)
        result["fixtureValues"] = [fv.to_dict() for fv in self.fixture_values]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedScene":
        return cls(
            ref_id=data.get("refId", ""),
            name=data.get("name", ""),
            description=data.get("description"),
            fixture_values=[ExportedFixtureValue.from_dict(fv) for fv in _objects(data, "fixtureValues")],
        )


# ============================================================
# Cue Lists
# ============================================================

@dataclass
class ExportedCue:
    name: str
    cue_number: float
    scene_ref_id: str
    fade_in_time: float = 0.0
    fade_out_time: float = 0.0
    follow_time: Optional[float] = None
    easing_type: Optional[str] = None
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "name": self.name,
            "cueNumber": self.cue_number,
            "sceneRefId": self.scene_ref_id,
            "fadeInTime": self.fade_in_time,
            "fadeOutTime": self.fade_out_time,
        }
        _put(result, "followTime", self.follow_time)
        _put(result, "easingType", self.easing_type)
        _put(result, "notes", self.notes)
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedCue":
        return cls(
            name=data.get("name", ""),
            cue_number=float(data.get("cueNumber", 0)),
            scene_ref_id=data.get("sceneRefId", ""),
            fade_in_time=float(data.get("fadeInTime", 0)),
            fade_out_time=float(data.get("fadeOutTime", 0)),
            follow_time=_optional_float(data.get("followTime")),
            easing_type=data.get("easingType"),
            notes=data.get("notes"),
        )


@dataclass
class ExportedCueList:
    ref_id: str
    name: str
    description: Optional[str] = None
    loop: bool = False
    cues: List[ExportedCue] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {"refId": self.ref_id, "name": self.name}
        _put(result, "description", self.description)
        result["loop"] = self.loop
        result["cues"] = [c.to_dict() for c in self.cues]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedCueList":
        return cls(
            ref_id=data.get("refId", ""),
            name=data.get("name", ""),
            description=data.get("description"),
            loop=bool(data.get("loop", False)),
            cues=[ExportedCue.from_dict(c) for c in _objects(data, "cues")],
        )


# ============================================================
# Scene Boards
# ============================================================

@dataclass
class ExportedSceneBoardButton:
    """Button on a scene board, placed on an integer pixel grid"""

    scene_ref_id: str
    layout_x: int = 0
    layout_y: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    color: Optional[str] = None
    label: Optional[str] = None

    def to_dict(self) -> dict:
        result = {
            "sceneRefId": self.scene_ref_id,
            "layoutX": self.layout_x,
            "layoutY": self.layout_y,
        }
        _put(result, "width", self.width)
        _put(result, "height", self.height)
        _put(result, "color", self.color)
        _put(result, "label", self.label)
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedSceneBoardButton":
        return cls(
            scene_ref_id=data.get("sceneRefId", ""),
            layout_x=_grid_position(data.get("layoutX", 0)),
            layout_y=_grid_position(data.get("layoutY", 0)),
            width=_optional_int(data.get("width")),
            height=_optional_int(data.get("height")),
            color=data.get("color"),
            label=data.get("label"),
        )


@dataclass
class ExportedSceneBoard:
    ref_id: str
    name: str
    description: Optional[str] = None
    default_fade_time: float = 3.0
    grid_size: Optional[int] = None
    canvas_width: int = 2000
    canvas_height: int = 2000
    buttons: List[ExportedSceneBoardButton] = field(default_factory=list)

    def to_dict(self) -> dict:
        result = {"refId": self.ref_id, "name": self.name}
        _put(result, "description", self.description)
        result["defaultFadeTime"] = self.default_fade_time
        _put(result, "gridSize", self.grid_size)
        result["canvasWidth"] = self.canvas_width
        result["canvasHeight"] = self.canvas_height
        result["buttons"] = [b.to_dict() for b in self.buttons]
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedSceneBoard":
        return cls(
            ref_id=data.get("refId", ""),
            name=data.get("name", ""),
            description=data.get("description"),
            default_fade_time=float(data.get("defaultFadeTime", 3.0)),
            grid_size=_optional_int(data.get("gridSize")),
            canvas_width=int(data.get("canvasWidth", 2000)),
            canvas_height=int(data.get("canvasHeight", 2000)),
            buttons=[ExportedSceneBoardButton.from_dict(b) for b in _objects(data, "buttons")],
        )


# ============================================================
# Document
# ============================================================

@dataclass
class ExportedProject:
    """The whole document"""
    version: str = SCHEMA_VERSION
    metadata: Optional[ExportMetadata] = None
    project: Optional[ExportProjectInfo] = None
    fixture_definitions: List[ExportedFixtureDefinition] = field(default_factory=list)
    fixture_instances: List[ExportedFixtureInstance] = field(default_factory=list)
    scenes: List[ExportedScene] = field(default_factory=list)
    cue_lists: List[ExportedCueList] = field(default_factory=list)
    scene_boards: Optional[List[ExportedSceneBoard]] = None

    @property
    def project_name(self) -> str:
        return self.project.name if self.project else ""

    @property
    def project_description(self) -> Optional[str]:
        return self.project.description if self.project else None

    def to_dict(self) -> dict:
        result = {"version": self.version}
        if self.metadata is not None:
            result["metadata"] = self.metadata.to_dict()
        if self.project is not None:
            result["project"] = self.project.to_dict()
        result["fixtureDefinitions"] = [d.to_dict() for d in self.fixture_definitions]
        result["fixtureInstances"] = [f.to_dict() for f in self.fixture_instances]
        result["scenes"] = [s.to_dict() for s in self.scenes]
        result["cueLists"] = [c.to_dict() for c in self.cue_lists]
        if self.scene_boards is not None:
            result["sceneBoards"] = [b.to_dict() for b in self.scene_boards]
        return result

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: dict) -> "ExportedProject":
        metadata = data.get("metadata")
        project = data.get("project")
        scene_boards = None
        if data.get("sceneBoards") is not None:
            scene_boards = [ExportedSceneBoard.from_dict(b) for b in _objects(data, "sceneBoards")]
        return cls(
            version=str(data.get("version") or SCHEMA_VERSION),
            metadata=ExportMetadata.from_dict(metadata) if isinstance(metadata, dict) else None,
            project=ExportProjectInfo.from_dict(project) if isinstance(project, dict) else None,
            fixture_definitions=[
                ExportedFixtureDefinition.from_dict(d) for d in _objects(data, "fixtureDefinitions")
            ],
            fixture_instances=[
                ExportedFixtureInstance.from_dict(f) for f in _objects(data, "fixtureInstances")
            ],
            scenes=[ExportedScene.from_dict(s) for s in _objects(data, "scenes")],
            cue_lists=[ExportedCueList.from_dict(c) for c in _objects(data, "cueLists")],
            scene_boards=scene_boards,
        )


def parse_exported_project(content) -> ExportedProject:
    """
    Parse a document from JSON text (str/bytes) or an already-decoded dict.

    Raises:
        DocumentParseError: malformed JSON, a non-object top level, or
            fields with the wrong shape.
    """
    if isinstance(content, dict):
        data = content
    else:
        try:
            data = json.loads(content)
        except (TypeError, ValueError) as e:
            raise DocumentParseError(f"Invalid document JSON: {e}") from e

    if not isinstance(data, dict):
        raise DocumentParseError("Document must be a JSON object")

    try:
        return ExportedProject.from_dict(data)
    except (TypeError, ValueError, OverflowError) as e:
        raise DocumentParseError(f"Invalid document field: {e}") from e
