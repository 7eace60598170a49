"""
Server Configuration - Environment-driven settings

Every setting comes from a SHOW_* environment variable with a default.
Unparseable numbers and booleans fall back to the default rather than
failing startup.

    SHOW_PORT              API/socket.io port                (4000)
    SHOW_ENV               development | production          (development)
    SHOW_DB_PATH           SQLite database file              (~/.stageshow/show.db)
    SHOW_PREVIEW_TIMEOUT   Preview idle timeout, seconds     (1800)
    SHOW_CORS_ORIGINS      Extra CORS origins, comma-separated
    SHOW_SEED_BUILTINS     Install built-in fixture catalog  (true)
    SHOW_LOG_LEVEL         Python logging level              (INFO)
"""

import os
from dataclasses import dataclass, field
from typing import List

DEFAULT_PORT = 4000
DEFAULT_ENV = 'development'
DEFAULT_DB_PATH = os.path.join(os.path.expanduser('~'), '.stageshow', 'show.db')
DEFAULT_PREVIEW_TIMEOUT = 1800.0
DEFAULT_LOG_LEVEL = 'INFO'

# Default allowed origins for local deployment
DEFAULT_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://localhost:4000",
    "http://127.0.0.1:3000",
    "http://127.0.0.1:4000",
]


def _env_int(name, default):
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_float(name, default):
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_bool(name, default):
    raw = os.environ.get(name)
    if raw is None:
        return default
    raw = raw.strip().lower()
    if raw in ('1', 'true', 'yes', 'on'):
        return True
    if raw in ('0', 'false', 'no', 'off'):
        return False
    return default


def get_allowed_origins():
    """Get list of allowed CORS origins from defaults + environment"""
    origins = DEFAULT_CORS_ORIGINS.copy()
    env_origins = os.environ.get('SHOW_CORS_ORIGINS', '')
    if env_origins:
        for origin in env_origins.split(','):
            origin = origin.strip()
            if origin and origin not in origins:
                origins.append(origin)
    return origins


@dataclass
class ServerConfig:
    port: int = DEFAULT_PORT
    env: str = DEFAULT_ENV
    db_path: str = DEFAULT_DB_PATH
    preview_timeout: float = DEFAULT_PREVIEW_TIMEOUT
    cors_origins: List[str] = field(default_factory=lambda: DEFAULT_CORS_ORIGINS.copy())
    seed_builtins: bool = True
    log_level: str = DEFAULT_LOG_LEVEL

    def is_development(self) -> bool:
        return self.env == 'development'

    def is_production(self) -> bool:
        return self.env == 'production'


def load_config() -> ServerConfig:
    """Read the current environment into a ServerConfig"""
    return ServerConfig(
        port=_env_int('SHOW_PORT', DEFAULT_PORT),
        env=os.environ.get('SHOW_ENV', DEFAULT_ENV).strip().lower() or DEFAULT_ENV,
        db_path=os.path.expanduser(os.environ.get('SHOW_DB_PATH', DEFAULT_DB_PATH)),
        preview_timeout=_env_float('SHOW_PREVIEW_TIMEOUT', DEFAULT_PREVIEW_TIMEOUT),
        cors_origins=get_allowed_origins(),
        seed_builtins=_env_bool('SHOW_SEED_BUILTINS', True),
        log_level=os.environ.get('SHOW_LOG_LEVEL', DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL,
    )
