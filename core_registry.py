"""
Core Registry - Shared Instance Registry

Modules that need a cross-dependency import it from here instead of from
the server module. lighting_server.create_app() populates these during
startup.

All attributes are None until create_app() initializes them, but by the
time any method is called during normal operation, everything is wired up.
"""

# ── Core managers ──
dmx_state = None          # DMXStateManager instance
repository = None         # SqliteShowRepository instance
preview_service = None    # PreviewService instance

# ── Show file ──
exporter = None           # ProjectExporter instance
importer = None           # ProjectImporter instance

# ── Infrastructure ──
socketio = None           # Flask-SocketIO instance
config = None             # ServerConfig instance

# ── Constants (set during startup) ──
DATA_DIR = None           # Directory holding the database
DB_PATH = None            # Path to SQLite database
