"""
Stage Show Server - Flask + Socket.IO entry point

Wires the sqlite repository, the DMX state manager, the preview service
and the show file exporter/importer together, registers the HTTP
blueprints and streams preview session updates over socket.io.

Run:
    python lighting_server.py
    SHOW_PORT=4000 SHOW_DB_PATH=/var/lib/stageshow/show.db stageshow
"""

import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS
from flask_socketio import SocketIO

import core_registry as reg
from core.showfile import (
    OperationCancelled,
    ProjectExporter,
    ProjectImporter,
    SqliteShowRepository,
    __version__,
)
from dmx_state_manager import DMXStateManager
from preview_service import PreviewService
from server_config import ServerConfig, load_config

from blueprints.preview_bp import preview_bp, init_app as preview_init
from blueprints.project_io_bp import project_io_bp, init_app as project_io_init

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s] %(message)s'


def configure_logging(level='INFO'):
    """Root logging setup; unknown level names fall back to INFO"""
    numeric = getattr(logging, str(level).upper(), None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT, datefmt='%Y-%m-%dT%H:%M:%S')


def _install_preview_broadcast(preview_service, socketio):
    """Forward every preview snapshot to socket.io clients"""
    def on_session_update(session, dmx_outputs):
        socketio.emit('preview_session_updated', {
            'session': session.to_dict(),
            'dmx_output': [o.to_dict() for o in dmx_outputs],
        })

    preview_service.set_session_update_callback(on_session_update)


def create_app(config: ServerConfig = None):
    """Build the Flask app and every service behind it"""
    config = config or load_config()
    configure_logging(config.log_level)

    data_dir = os.path.dirname(os.path.abspath(config.db_path))
    os.makedirs(data_dir, exist_ok=True)

    repository = SqliteShowRepository(config.db_path)
    print(f"✓ Show database ready: {config.db_path}")
    if config.seed_builtins:
        repository.seed_builtin_definitions()

    dmx_state = DMXStateManager()
    preview_service = PreviewService(repository, dmx_state, session_timeout=config.preview_timeout)
    exporter = ProjectExporter(repository, scene_board_repository=repository)
    importer = ProjectImporter(repository, scene_board_repository=repository)

    app = Flask(__name__)
    print(f"🔒 CORS allowed origins: {config.cors_origins}")
    CORS(app, resources={r"/api/*": {"origins": config.cors_origins}})
    socketio = SocketIO(app, cors_allowed_origins=config.cors_origins, async_mode='threading')

    # ── Wire into registry ──
    reg.config = config
    reg.DATA_DIR = data_dir
    reg.DB_PATH = config.db_path
    reg.repository = repository
    reg.dmx_state = dmx_state
    reg.preview_service = preview_service
    reg.exporter = exporter
    reg.importer = importer
    reg.socketio = socketio

    _install_preview_broadcast(preview_service, socketio)

    @app.errorhandler(OperationCancelled)
    def handle_cancelled(e):
        return jsonify({'success': False, 'error': str(e)}), 409

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'version': __version__, 'env': config.env})

    preview_init(preview_service, repository)
    app.register_blueprint(preview_bp)
    project_io_init(repository, exporter, importer)
    app.register_blueprint(project_io_bp)

    print(f"✓ Stage show core {__version__} initialized ({config.env})")
    return app


def main():
    app = create_app()
    config = reg.config

    print("\n" + "=" * 60)
    print(f"  Stage show server listening on port {config.port}")
    print("=" * 60 + "\n")

    try:
        # allow_unsafe_werkzeug is required for Flask-SocketIO threading mode
        reg.socketio.run(app, host='0.0.0.0', port=config.port, debug=False,
                         allow_unsafe_werkzeug=True)
    finally:
        reg.preview_service.shutdown()


if __name__ == '__main__':
    main()
