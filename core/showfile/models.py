"""
Show Data Models - Storage-side records for lighting projects

These are the records exchanged with the repository layer. They mirror the
stored schema: storage IDs are opaque strings, tags and scene channel
payloads are kept as JSON-encoded strings exactly as they are persisted.

Classes:
    Project, FixtureDefinition, ChannelDefinition, FixtureMode, ModeChannel,
    FixtureInstance, InstanceChannel, Scene, FixtureValue, ChannelValue,
    CueList, Cue, SceneBoard, SceneBoardButton

Helpers:
    new_id: Fresh storage identifier
    clamp_dmx_value: Clamp into the 0-255 DMX range
    encode_channel_values / decode_channel_values: Scene payload codec
    encode_tags / decode_tags: Fixture tag codec
"""

import json
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Union


# ============================================================
# DMX Constants
# ============================================================

UNIVERSE_SIZE = 512
DMX_MIN_VALUE = 0
DMX_MAX_VALUE = 255

FADE_BEHAVIOR_FADE = "FADE"
FADE_BEHAVIOR_SNAP = "SNAP"
FADE_BEHAVIOR_SNAP_END = "SNAP_END"
DEFAULT_FADE_BEHAVIOR = FADE_BEHAVIOR_FADE


def new_id() -> str:
    """Generate a new storage identifier"""
    return uuid.uuid4().hex


def clamp_dmx_value(value) -> int:
    """Clamp a channel value into 0-255"""
    return max(DMX_MIN_VALUE, min(DMX_MAX_VALUE, int(value)))


# ============================================================
# Projects
# ============================================================

@dataclass
class Project:
    project_id: str
    name: str
    description: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


# ============================================================
# Fixture Definitions (global catalog)
# ============================================================

@dataclass
class ChannelDefinition:
    """A channel within a fixture definition"""
    channel_id: str
    name: str
    kind: str  # INTENSITY, RED, GREEN, PAN, ...
    offset: int
    min_value: int = 0
    max_value: int = 255
    default_value: int = 0
    fade_behavior: str = DEFAULT_FADE_BEHAVIOR
    is_discrete: bool = False
    definition_id: str = ""


@dataclass
class ModeChannel:
    """Binds a definition channel to an offset within a mode"""
    mode_channel_id: str
    mode_id: str
    channel_id: str
    offset: int


@dataclass
class FixtureMode:
    mode_id: str
    name: str
    channel_count: int
    short_name: Optional[str] = None
    definition_id: str = ""


@dataclass
class FixtureDefinition:
    """
    A fixture type in the catalog. At most one definition exists per
    (manufacturer, model); built-in definitions are shared by every project.
    """
    definition_id: str
    manufacturer: str
    model: str
    kind: str
    is_built_in: bool = False
    created_at: Optional[str] = None

    @property
    def display_name(self) -> str:
        return f"{self.manufacturer} {self.model}"


# ============================================================
# Fixture Instances (per project)
# ============================================================

@dataclass
class InstanceChannel:
    """Denormalized channel snapshot stored on a fixture instance"""
    offset: int
    name: str
    kind: str
    min_value: int = 0
    max_value: int = 255
    default_value: int = 0
    fade_behavior: str = DEFAULT_FADE_BEHAVIOR
    is_discrete: bool = False
    instance_channel_id: str = ""
    fixture_id: str = ""


@dataclass
class FixtureInstance:
    """A fixture patched into a project at a universe + start channel"""
    fixture_id: str
    name: str
    definition_id: str
    project_id: str
    universe: int
    start_channel: int
    description: Optional[str] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    kind: Optional[str] = None
    mode_name: Optional[str] = None
    channel_count: Optional[int] = None
    tags: Optional[str] = None  # JSON array of strings
    project_order: Optional[int] = None
    layout_x: Optional[float] = None
    layout_y: Optional[float] = None
    layout_rotation: Optional[float] = None

    @property
    def end_channel(self) -> int:
        return self.start_channel + (self.channel_count or 1) - 1


# ============================================================
# Scenes
# ============================================================

@dataclass
class ChannelValue:
    """A single sparse channel value: 0-based offset within the fixture"""
    offset: int
    value: int

    def to_dict(self) -> dict:
        return {"offset": self.offset, "value": self.value}


@dataclass
class FixtureValue:
    fixture_value_id: str
    fixture_id: str
    channels: str = "[]"  # JSON array of {offset, value}
    scene_order: Optional[int] = None
    scene_id: str = ""


@dataclass
class Scene:
    scene_id: str
    name: str
    project_id: str
    description: Optional[str] = None
    created_at: Optional[str] = None


# ============================================================
# Cue Lists
# ============================================================

@dataclass
class Cue:
    cue_id: str
    cue_list_id: str
    name: str
    cue_number: float
    scene_id: str
    fade_in_time: float = 0.0
    fade_out_time: float = 0.0
    follow_time: Optional[float] = None
    easing_type: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class CueList:
    cue_list_id: str
    name: str
    project_id: str
    description: Optional[str] = None
    loop: bool = False


# ============================================================
# Scene Boards
# ============================================================

@dataclass
class SceneBoardButton:
    button_id: str
    scene_id: str
    layout_x: int = 0
    layout_y: int = 0
    width: Optional[int] = 200
    height: Optional[int] = 120
    color: Optional[str] = None
    label: Optional[str] = None
    scene_board_id: str = ""


@dataclass
class SceneBoard:
    scene_board_id: str
    name: str
    project_id: str
    description: Optional[str] = None
    default_fade_time: float = 3.0
    grid_size: Optional[int] = 50
    canvas_width: int = 2000
    canvas_height: int = 2000
    buttons: List[SceneBoardButton] = field(default_factory=list)


# ============================================================
# Stored payload codecs
# ============================================================

def encode_channel_values(channels: List[ChannelValue]) -> str:
    """Encode a sparse channel list the way it is stored on a FixtureValue"""
    return json.dumps([ch.to_dict() for ch in channels])


def decode_channel_values(payload: Union[str, list, None]) -> List[ChannelValue]:
    """
    Decode a stored channel payload into the sparse form.

    Accepts the current sparse form ``[{"offset": 0, "value": 255}, ...]``
    and the legacy dense form ``[255, 128, 0]`` where the array index is the
    offset. Raises ValueError when the payload is not one of those shapes.
    """
    if payload is None or payload == "":
        return []

    data = json.loads(payload) if isinstance(payload, str) else payload
    if not isinstance(data, list):
        raise ValueError(f"channel payload must be a JSON array, got {type(data).__name__}")

    result = []
    for index, item in enumerate(data):
        if isinstance(item, dict):
            if "offset" not in item or "value" not in item:
                raise ValueError(f"channel entry {index} is missing offset/value")
            offset, value = item["offset"], item["value"]
        elif isinstance(item, (int, float)) and not isinstance(item, bool):
            offset, value = index, item
        else:
            raise ValueError(f"unsupported channel entry at index {index}: {item!r}")
        try:
            result.append(ChannelValue(offset=int(offset), value=int(value)))
        except (TypeError, ValueError, OverflowError) as e:
            raise ValueError(f"channel entry {index} is not numeric: {item!r}") from e
    return result


def encode_tags(tags: Optional[List[str]]) -> Optional[str]:
    """Tags are stored as a JSON string array; empty means no tags"""
    if not tags:
        return None
    return json.dumps(list(tags))


def decode_tags(stored: Optional[str]) -> List[str]:
    """Decode stored tags. Raises ValueError on a malformed payload."""
    if not stored:
        return []
    data = json.loads(stored)
    if not isinstance(data, list):
        raise ValueError("tags must be a JSON array")
    return [str(t) for t in data]
