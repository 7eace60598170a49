"""
SQLite Show Repository - Reference persistence for projects and the fixture catalog

Implements ShowRepository and SceneBoardRepository on a single sqlite file.
Thread-safe with connection-per-operation; writes are serialized by a lock
and multi-record creations run in one transaction.

Usage:
    repo = SqliteShowRepository("/path/to/show.db")
    repo.seed_builtin_definitions()
    project = repo.create_project(Project(project_id="", name="Main Stage"))
"""

import logging
import sqlite3
import threading
from datetime import datetime
from typing import List, Optional

from .interfaces import ShowRepository, SceneBoardRepository
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
    new_id,
)

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


# ============================================================
# Database Schema
# ============================================================

def init_show_tables(db_path: str):
    """Initialize all show tables"""
    conn = sqlite3.connect(db_path)
    c = conn.cursor()

    c.execute('''CREATE TABLE IF NOT EXISTS projects (
        project_id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        description TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )''')

    # Fixture catalog (global, shared by all projects)
    c.execute('''CREATE TABLE IF NOT EXISTS fixture_definitions (
        definition_id TEXT PRIMARY KEY,
        manufacturer TEXT NOT NULL,
        model TEXT NOT NULL,
        kind TEXT NOT NULL DEFAULT 'OTHER',
        is_built_in INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS channel_definitions (
        channel_id TEXT PRIMARY KEY,
        definition_id TEXT NOT NULL,
        name TEXT NOT NULL,
        kind TEXT NOT NULL,
        channel_offset INTEGER NOT NULL,
        min_value INTEGER NOT NULL DEFAULT 0,
        max_value INTEGER NOT NULL DEFAULT 255,
        default_value INTEGER NOT NULL DEFAULT 0,
        fade_behavior TEXT NOT NULL DEFAULT 'FADE',
        is_discrete INTEGER NOT NULL DEFAULT 0
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS fixture_modes (
        mode_id TEXT PRIMARY KEY,
        definition_id TEXT NOT NULL,
        name TEXT NOT NULL,
        short_name TEXT,
        channel_count INTEGER NOT NULL DEFAULT 0
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS mode_channels (
        mode_channel_id TEXT PRIMARY KEY,
        mode_id TEXT NOT NULL,
        channel_id TEXT NOT NULL,
        channel_offset INTEGER NOT NULL
    )''')

    # Fixture instances (per project)
    c.execute('''CREATE TABLE IF NOT EXISTS fixture_instances (
        fixture_id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        definition_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        manufacturer TEXT,
        model TEXT,
        kind TEXT,
        mode_name TEXT,
        channel_count INTEGER,
        universe INTEGER NOT NULL DEFAULT 1,
        start_channel INTEGER NOT NULL DEFAULT 1,
        tags TEXT,
        project_order INTEGER,
        layout_x REAL,
        layout_y REAL,
        layout_rotation REAL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS instance_channels (
        instance_channel_id TEXT PRIMARY KEY,
        fixture_id TEXT NOT NULL,
        channel_offset INTEGER NOT NULL,
        name TEXT NOT NULL,
        kind TEXT NOT NULL,
        min_value INTEGER NOT NULL DEFAULT 0,
        max_value INTEGER NOT NULL DEFAULT 255,
        default_value INTEGER NOT NULL DEFAULT 0,
        fade_behavior TEXT NOT NULL DEFAULT 'FADE',
        is_discrete INTEGER NOT NULL DEFAULT 0
    )''')

    # Scenes (channel payload stored as JSON)
    c.execute('''CREATE TABLE IF NOT EXISTS scenes (
        scene_id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS fixture_values (
        fixture_value_id TEXT PRIMARY KEY,
        scene_id TEXT NOT NULL,
        fixture_id TEXT NOT NULL,
        channels TEXT NOT NULL DEFAULT '[]',
        scene_order INTEGER
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS cue_lists (
        cue_list_id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        loop INTEGER NOT NULL DEFAULT 0,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS cues (
        cue_id TEXT PRIMARY KEY,
        cue_list_id TEXT NOT NULL,
        name TEXT NOT NULL,
        cue_number REAL NOT NULL,
        scene_id TEXT NOT NULL,
        fade_in_time REAL NOT NULL DEFAULT 0,
        fade_out_time REAL NOT NULL DEFAULT 0,
        follow_time REAL,
        easing_type TEXT,
        notes TEXT
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS scene_boards (
        scene_board_id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        name TEXT NOT NULL,
        description TEXT,
        default_fade_time REAL NOT NULL DEFAULT 3.0,
        grid_size INTEGER,
        canvas_width INTEGER NOT NULL DEFAULT 2000,
        canvas_height INTEGER NOT NULL DEFAULT 2000,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )''')

    c.execute('''CREATE TABLE IF NOT EXISTS scene_board_buttons (
        button_id TEXT PRIMARY KEY,
        scene_board_id TEXT NOT NULL,
        scene_id TEXT NOT NULL,
        layout_x INTEGER NOT NULL DEFAULT 0,
        layout_y INTEGER NOT NULL DEFAULT 0,
        width INTEGER,
        height INTEGER,
        color TEXT,
        label TEXT
    )''')

    # Schema version tracking
    c.execute('''CREATE TABLE IF NOT EXISTS schema_versions (
        module TEXT PRIMARY KEY,
        version INTEGER NOT NULL,
        migrated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )''')
    c.execute('''INSERT OR REPLACE INTO schema_versions (module, version, migrated_at)
                 VALUES ('showfile', ?, CURRENT_TIMESTAMP)''', (SCHEMA_VERSION,))

    # One catalog entry per (manufacturer, model)
    c.execute('''CREATE UNIQUE INDEX IF NOT EXISTS idx_definitions_make_model
                 ON fixture_definitions(manufacturer, model)''')
    c.execute('CREATE INDEX IF NOT EXISTS idx_fixtures_project ON fixture_instances(project_id)')
    c.execute('CREATE INDEX IF NOT EXISTS idx_scenes_project ON scenes(project_id)')
    c.execute('CREATE INDEX IF NOT EXISTS idx_fixture_values_scene ON fixture_values(scene_id)')
    c.execute('CREATE INDEX IF NOT EXISTS idx_cue_lists_project ON cue_lists(project_id)')
    c.execute('CREATE INDEX IF NOT EXISTS idx_cues_list ON cues(cue_list_id)')

    conn.commit()
    conn.close()


# ============================================================
# Built-in catalog
# ============================================================

BUILTIN_DEFINITIONS = [
    {
        "manufacturer": "Generic",
        "model": "Dimmer",
        "kind": "DIMMER",
        "channels": [("Intensity", "INTENSITY")],
        "modes": [("1-Channel", "1ch", ["Intensity"])],
    },
    {
        "manufacturer": "Generic",
        "model": "RGB Par",
        "kind": "LED_PAR",
        "channels": [("Red", "RED"), ("Green", "GREEN"), ("Blue", "BLUE")],
        "modes": [("3-Channel", "3ch", ["Red", "Green", "Blue"])],
    },
    {
        "manufacturer": "Generic",
        "model": "RGBW Par",
        "kind": "LED_PAR",
        "channels": [("Dimmer", "INTENSITY"), ("Red", "RED"), ("Green", "GREEN"),
                     ("Blue", "BLUE"), ("White", "WHITE")],
        "modes": [
            ("4-Channel", "4ch", ["Red", "Green", "Blue", "White"]),
            ("5-Channel", "5ch", ["Dimmer", "Red", "Green", "Blue", "White"]),
        ],
    },
]


# ============================================================
# Repository
# ============================================================

class SqliteShowRepository(ShowRepository, SceneBoardRepository):
    """
    sqlite3-backed repository.
    Thread-safe with connection-per-operation pattern.
    """

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.lock = threading.Lock()
        init_show_tables(db_path)

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _fetch_one(self, query: str, params: tuple) -> Optional[sqlite3.Row]:
        conn = self._get_conn()
        try:
            return conn.execute(query, params).fetchone()
        finally:
            conn.close()

    def _fetch_all(self, query: str, params: tuple) -> List[sqlite3.Row]:
        conn = self._get_conn()
        try:
            return conn.execute(query, params).fetchall()
        finally:
            conn.close()

    # ---- Projects ----

    def find_project(self, project_id: str) -> Optional[Project]:
        row = self._fetch_one('SELECT * FROM projects WHERE project_id = ?', (project_id,))
        return self._row_to_project(row) if row else None

    def list_projects(self) -> List[Project]:
        rows = self._fetch_all('SELECT * FROM projects ORDER BY rowid', ())
        return [self._row_to_project(row) for row in rows]

    def create_project(self, project: Project) -> Project:
        with self.lock:
            now = datetime.now().isoformat()
            if not project.project_id:
                project.project_id = new_id()
            project.created_at = project.created_at or now
            project.updated_at = now

            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO projects
                                (project_id, name, description, created_at, updated_at)
                                VALUES (?, ?, ?, ?, ?)''',
                             (project.project_id, project.name, project.description,
                              project.created_at, project.updated_at))
                conn.commit()
            finally:
                conn.close()
            logger.debug("Created project %s (%s)", project.name, project.project_id)
            return project

    # ---- Fixture catalog ----

    def find_definition(self, definition_id: str) -> Optional[FixtureDefinition]:
        row = self._fetch_one('SELECT * FROM fixture_definitions WHERE definition_id = ?',
                              (definition_id,))
        return self._row_to_definition(row) if row else None

    def find_definition_by_manufacturer_model(self, manufacturer: str,
                                              model: str) -> Optional[FixtureDefinition]:
        row = self._fetch_one('''SELECT * FROM fixture_definitions
                                 WHERE manufacturer = ? AND model = ?''',
                              (manufacturer, model))
        return self._row_to_definition(row) if row else None

    def get_definition_channels(self, definition_id: str) -> List[ChannelDefinition]:
        rows = self._fetch_all('''SELECT * FROM channel_definitions WHERE definition_id = ?
                                  ORDER BY channel_offset, rowid''', (definition_id,))
        return [self._row_to_channel(row) for row in rows]

    def get_definition_modes(self, definition_id: str) -> List[FixtureMode]:
        rows = self._fetch_all('''SELECT * FROM fixture_modes WHERE definition_id = ?
                                  ORDER BY name, rowid''', (definition_id,))
        return [self._row_to_mode(row) for row in rows]

    def get_mode_channels(self, mode_id: str) -> List[ModeChannel]:
        rows = self._fetch_all('''SELECT * FROM mode_channels WHERE mode_id = ?
                                  ORDER BY channel_offset, rowid''', (mode_id,))
        return [
            ModeChannel(
                mode_channel_id=row["mode_channel_id"],
                mode_id=row["mode_id"],
                channel_id=row["channel_id"],
                offset=row["channel_offset"],
            )
            for row in rows
        ]

    def create_definition_with_channels(self, definition: FixtureDefinition,
                                        channels: List[ChannelDefinition]) -> FixtureDefinition:
        with self.lock:
            if not definition.definition_id:
                definition.definition_id = new_id()
            definition.created_at = definition.created_at or datetime.now().isoformat()

            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO fixture_definitions
                                (definition_id, manufacturer, model, kind, is_built_in, created_at)
                                VALUES (?, ?, ?, ?, ?, ?)''',
                             (definition.definition_id, definition.manufacturer,
                              definition.model, definition.kind,
                              1 if definition.is_built_in else 0, definition.created_at))
                for ch in channels:
                    if not ch.channel_id:
                        ch.channel_id = new_id()
                    ch.definition_id = definition.definition_id
                    conn.execute('''INSERT INTO channel_definitions
                                    (channel_id, definition_id, name, kind, channel_offset,
                                     min_value, max_value, default_value, fade_behavior, is_discrete)
                                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                                 (ch.channel_id, ch.definition_id, ch.name, ch.kind, ch.offset,
                                  ch.min_value, ch.max_value, ch.default_value,
                                  ch.fade_behavior or DEFAULT_FADE_BEHAVIOR,
                                  1 if ch.is_discrete else 0))
                conn.commit()
            finally:
                conn.close()
            return definition

    def create_mode(self, mode: FixtureMode) -> FixtureMode:
        with self.lock:
            if not mode.mode_id:
                mode.mode_id = new_id()
            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO fixture_modes
                                (mode_id, definition_id, name, short_name, channel_count)
                                VALUES (?, ?, ?, ?, ?)''',
                             (mode.mode_id, mode.definition_id, mode.name,
                              mode.short_name, mode.channel_count))
                conn.commit()
            finally:
                conn.close()
            return mode

    def create_mode_channels(self, mode_channels: List[ModeChannel]):
        if not mode_channels:
            return
        with self.lock:
            conn = self._get_conn()
            try:
                for mc in mode_channels:
                    if not mc.mode_channel_id:
                        mc.mode_channel_id = new_id()
                    conn.execute('''INSERT INTO mode_channels
                                    (mode_channel_id, mode_id, channel_id, channel_offset)
                                    VALUES (?, ?, ?, ?)''',
                                 (mc.mode_channel_id, mc.mode_id, mc.channel_id, mc.offset))
                conn.commit()
            finally:
                conn.close()

    def seed_builtin_definitions(self) -> int:
        """Install the built-in catalog; existing entries are left alone."""
        created = 0
        for entry in BUILTIN_DEFINITIONS:
            if self.find_definition_by_manufacturer_model(entry["manufacturer"], entry["model"]):
                continue

            channels = [
                ChannelDefinition(channel_id="", name=name, kind=kind, offset=offset)
                for offset, (name, kind) in enumerate(entry["channels"])
            ]
            definition = self.create_definition_with_channels(
                FixtureDefinition(
                    definition_id="",
                    manufacturer=entry["manufacturer"],
                    model=entry["model"],
                    kind=entry["kind"],
                    is_built_in=True,
                ),
                channels,
            )
            by_name = {ch.name: ch.channel_id for ch in channels}
            for mode_name, short_name, channel_names in entry["modes"]:
                mode = self.create_mode(FixtureMode(
                    mode_id="",
                    name=mode_name,
                    short_name=short_name,
                    channel_count=len(channel_names),
                    definition_id=definition.definition_id,
                ))
                self.create_mode_channels([
                    ModeChannel(mode_channel_id="", mode_id=mode.mode_id,
                                channel_id=by_name[name], offset=offset)
                    for offset, name in enumerate(channel_names)
                ])
            created += 1

        if created:
            print(f"✓ Seeded {created} built-in fixture definitions")
        return created

    # ---- Fixture instances ----

    def find_fixture(self, fixture_id: str) -> Optional[FixtureInstance]:
        row = self._fetch_one('SELECT * FROM fixture_instances WHERE fixture_id = ?', (fixture_id,))
        return self._row_to_fixture(row) if row else None

    def find_fixtures_by_project(self, project_id: str) -> List[FixtureInstance]:
        rows = self._fetch_all('''SELECT * FROM fixture_instances WHERE project_id = ?
                                  ORDER BY universe, start_channel, rowid''', (project_id,))
        return [self._row_to_fixture(row) for row in rows]

    def get_instance_channels(self, fixture_id: str) -> List[InstanceChannel]:
        rows = self._fetch_all('''SELECT * FROM instance_channels WHERE fixture_id = ?
                                  ORDER BY channel_offset, rowid''', (fixture_id,))
        return [
            InstanceChannel(
                instance_channel_id=row["instance_channel_id"],
                fixture_id=row["fixture_id"],
                offset=row["channel_offset"],
                name=row["name"],
                kind=row["kind"],
                min_value=row["min_value"],
                max_value=row["max_value"],
                default_value=row["default_value"],
                fade_behavior=row["fade_behavior"],
                is_discrete=bool(row["is_discrete"]),
            )
            for row in rows
        ]

    def create_fixture_with_channels(self, fixture: FixtureInstance,
                                     channels: List[InstanceChannel]) -> FixtureInstance:
        with self.lock:
            if not fixture.fixture_id:
                fixture.fixture_id = new_id()

            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO fixture_instances
                                (fixture_id, project_id, definition_id, name, description,
                                 manufacturer, model, kind, mode_name, channel_count,
                                 universe, start_channel, tags, project_order,
                                 layout_x, layout_y, layout_rotation, created_at)
                                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                             (fixture.fixture_id, fixture.project_id, fixture.definition_id,
                              fixture.name, fixture.description, fixture.manufacturer,
                              fixture.model, fixture.kind, fixture.mode_name,
                              fixture.channel_count, fixture.universe, fixture.start_channel,
                              fixture.tags, fixture.project_order, fixture.layout_x,
                              fixture.layout_y, fixture.layout_rotation,
                              datetime.now().isoformat()))
                for ch in channels:
                    if not ch.instance_channel_id:
                        ch.instance_channel_id = new_id()
                    ch.fixture_id = fixture.fixture_id
                    conn.execute('''INSERT INTO instance_channels
                                    (instance_channel_id, fixture_id, channel_offset, name, kind,
                                     min_value, max_value, default_value, fade_behavior, is_discrete)
                                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                                 (ch.instance_channel_id, ch.fixture_id, ch.offset, ch.name,
                                  ch.kind, ch.min_value, ch.max_value, ch.default_value,
                                  ch.fade_behavior or DEFAULT_FADE_BEHAVIOR,
                                  1 if ch.is_discrete else 0))
                conn.commit()
            finally:
                conn.close()
            return fixture

    # ---- Scenes ----

    def find_scene(self, scene_id: str) -> Optional[Scene]:
        row = self._fetch_one('SELECT * FROM scenes WHERE scene_id = ?', (scene_id,))
        return self._row_to_scene(row) if row else None

    def find_scenes_by_project(self, project_id: str) -> List[Scene]:
        rows = self._fetch_all('SELECT * FROM scenes WHERE project_id = ? ORDER BY rowid',
                               (project_id,))
        return [self._row_to_scene(row) for row in rows]

    def get_fixture_values(self, scene_id: str) -> List[FixtureValue]:
        rows = self._fetch_all('''SELECT * FROM fixture_values WHERE scene_id = ?
                                  ORDER BY scene_order IS NULL, scene_order, rowid''',
                               (scene_id,))
        return [
            FixtureValue(
                fixture_value_id=row["fixture_value_id"],
                fixture_id=row["fixture_id"],
                channels=row["channels"],
                scene_order=row["scene_order"],
                scene_id=row["scene_id"],
            )
            for row in rows
        ]

    def create_scene_with_fixture_values(self, scene: Scene,
                                         fixture_values: List[FixtureValue]) -> Scene:
        with self.lock:
            if not scene.scene_id:
                scene.scene_id = new_id()
            scene.created_at = scene.created_at or datetime.now().isoformat()

            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO scenes (scene_id, project_id, name, description, created_at)
                                VALUES (?, ?, ?, ?, ?)''',
                             (scene.scene_id, scene.project_id, scene.name,
                              scene.description, scene.created_at))
                for fv in fixture_values:
                    if not fv.fixture_value_id:
                        fv.fixture_value_id = new_id()
                    fv.scene_id = scene.scene_id
                    conn.execute('''INSERT INTO fixture_values
                                    (fixture_value_id, scene_id, fixture_id, channels, scene_order)
                                    VALUES (?, ?, ?, ?, ?)''',
                                 (fv.fixture_value_id, fv.scene_id, fv.fixture_id,
                                  fv.channels, fv.scene_order))
                conn.commit()
            finally:
                conn.close()
            return scene

    # ---- Cue lists ----

    def find_cue_lists_by_project(self, project_id: str) -> List[CueList]:
        rows = self._fetch_all('SELECT * FROM cue_lists WHERE project_id = ? ORDER BY rowid',
                               (project_id,))
        return [
            CueList(
                cue_list_id=row["cue_list_id"],
                name=row["name"],
                project_id=row["project_id"],
                description=row["description"],
                loop=bool(row["loop"]),
            )
            for row in rows
        ]

    def get_cues(self, cue_list_id: str) -> List[Cue]:
        rows = self._fetch_all('''SELECT * FROM cues WHERE cue_list_id = ?
                                  ORDER BY cue_number, rowid''', (cue_list_id,))
        return [
            Cue(
                cue_id=row["cue_id"],
                cue_list_id=row["cue_list_id"],
                name=row["name"],
                cue_number=row["cue_number"],
                scene_id=row["scene_id"],
                fade_in_time=row["fade_in_time"],
                fade_out_time=row["fade_out_time"],
                follow_time=row["follow_time"],
                easing_type=row["easing_type"],
                notes=row["notes"],
            )
            for row in rows
        ]

    def create_cue_list(self, cue_list: CueList) -> CueList:
        with self.lock:
            if not cue_list.cue_list_id:
                cue_list.cue_list_id = new_id()
            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO cue_lists
                                (cue_list_id, project_id, name, description, loop, created_at)
                                VALUES (?, ?, ?, ?, ?, ?)''',
                             (cue_list.cue_list_id, cue_list.project_id, cue_list.name,
                              cue_list.description, 1 if cue_list.loop else 0,
                              datetime.now().isoformat()))
                conn.commit()
            finally:
                conn.close()
            return cue_list

    def create_cue(self, cue: Cue) -> Cue:
        with self.lock:
            if not cue.cue_id:
                cue.cue_id = new_id()
            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO cues
                                (cue_id, cue_list_id, name, cue_number, scene_id, fade_in_time,
                                 fade_out_time, follow_time, easing_type, notes)
                                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                             (cue.cue_id, cue.cue_list_id, cue.name, cue.cue_number,
                              cue.scene_id, cue.fade_in_time, cue.fade_out_time,
                              cue.follow_time, cue.easing_type, cue.notes))
                conn.commit()
            finally:
                conn.close()
            return cue

    # ---- Scene boards ----

    def find_scene_boards_by_project(self, project_id: str) -> List[SceneBoard]:
        rows = self._fetch_all('SELECT * FROM scene_boards WHERE project_id = ? ORDER BY rowid',
                               (project_id,))
        return [
            SceneBoard(
                scene_board_id=row["scene_board_id"],
                name=row["name"],
                project_id=row["project_id"],
                description=row["description"],
                default_fade_time=row["default_fade_time"],
                grid_size=row["grid_size"],
                canvas_width=row["canvas_width"],
                canvas_height=row["canvas_height"],
            )
            for row in rows
        ]

    def get_scene_board_buttons(self, scene_board_id: str) -> List[SceneBoardButton]:
        rows = self._fetch_all('''SELECT * FROM scene_board_buttons WHERE scene_board_id = ?
                                  ORDER BY layout_y, layout_x, rowid''', (scene_board_id,))
        return [
            SceneBoardButton(
                button_id=row["button_id"],
                scene_id=row["scene_id"],
                layout_x=row["layout_x"],
                layout_y=row["layout_y"],
                width=row["width"],
                height=row["height"],
                color=row["color"],
                label=row["label"],
                scene_board_id=row["scene_board_id"],
            )
            for row in rows
        ]

    def create_scene_board_with_buttons(self, board: SceneBoard,
                                        buttons: List[SceneBoardButton]) -> SceneBoard:
        with self.lock:
            if not board.scene_board_id:
                board.scene_board_id = new_id()
            conn = self._get_conn()
            try:
                conn.execute('''INSERT INTO scene_boards
                                (scene_board_id, project_id, name, description, default_fade_time,
                                 grid_size, canvas_width, canvas_height, created_at)
                                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                             (board.scene_board_id, board.project_id, board.name,
                              board.description, board.default_fade_time, board.grid_size,
                              board.canvas_width, board.canvas_height,
                              datetime.now().isoformat()))
                for button in buttons:
                    if not button.button_id:
                        button.button_id = new_id()
                    button.scene_board_id = board.scene_board_id
                    conn.execute('''INSERT INTO scene_board_buttons
                                    (button_id, scene_board_id, scene_id, layout_x, layout_y,
                                     width, height, color, label)
                                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)''',
                                 (button.button_id, button.scene_board_id, button.scene_id,
                                  button.layout_x, button.layout_y, button.width,
                                  button.height, button.color, button.label))
                conn.commit()
            finally:
                conn.close()
            board.buttons = list(buttons)
            return board

    # ---- Row converters ----

    def _row_to_project(self, row: sqlite3.Row) -> Project:
        return Project(
            project_id=row["project_id"],
            name=row["name"],
            description=row["description"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def _row_to_definition(self, row: sqlite3.Row) -> FixtureDefinition:
        return FixtureDefinition(
            definition_id=row["definition_id"],
            manufacturer=row["manufacturer"],
            model=row["model"],
            kind=row["kind"],
            is_built_in=bool(row["is_built_in"]),
            created_at=row["created_at"],
        )

    def _row_to_channel(self, row: sqlite3.Row) -> ChannelDefinition:
        return ChannelDefinition(
            channel_id=row["channel_id"],
            name=row["name"],
            kind=row["kind"],
            offset=row["channel_offset"],
            min_value=row["min_value"],
            max_value=row["max_value"],
            default_value=row["default_value"],
            fade_behavior=row["fade_behavior"],
            is_discrete=bool(row["is_discrete"]),
            definition_id=row["definition_id"],
        )

    def _row_to_mode(self, row: sqlite3.Row) -> FixtureMode:
        return FixtureMode(
            mode_id=row["mode_id"],
            name=row["name"],
            channel_count=row["channel_count"],
            short_name=row["short_name"],
            definition_id=row["definition_id"],
        )

    def _row_to_fixture(self, row: sqlite3.Row) -> FixtureInstance:
        return FixtureInstance(
            fixture_id=row["fixture_id"],
            name=row["name"],
            definition_id=row["definition_id"],
            project_id=row["project_id"],
            universe=row["universe"],
            start_channel=row["start_channel"],
            description=row["description"],
            manufacturer=row["manufacturer"],
            model=row["model"],
            kind=row["kind"],
            mode_name=row["mode_name"],
            channel_count=row["channel_count"],
            tags=row["tags"],
            project_order=row["project_order"],
            layout_x=row["layout_x"],
            layout_y=row["layout_y"],
            layout_rotation=row["layout_rotation"],
        )

    def _row_to_scene(self, row: sqlite3.Row) -> Scene:
        return Scene(
            scene_id=row["scene_id"],
            name=row["name"],
            project_id=row["project_id"],
            description=row["description"],
            created_at=row["created_at"],
        )
