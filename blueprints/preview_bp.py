"""
Preview Blueprint
Routes: /api/preview/*, /api/projects/<id>/preview
Dependencies: preview_service, repository
"""

from flask import Blueprint, jsonify, request

preview_bp = Blueprint('preview', __name__)

_preview_service = None
_repository = None


def init_app(preview_service, repository):
    """Initialize blueprint with required dependencies."""
    global _preview_service, _repository
    _preview_service = preview_service
    _repository = repository


def _session_not_found():
    return jsonify({'error': 'Session not found'}), 404


@preview_bp.route('/api/preview/sessions', methods=['GET'])
def list_preview_sessions():
    """List all preview sessions"""
    return jsonify({'sessions': _preview_service.list_sessions()})


@preview_bp.route('/api/preview/sessions', methods=['POST'])
def start_preview_session():
    """Start a preview session for a project (supersedes any active one)."""
    data = request.get_json(silent=True) or {}

    project_id = data.get('project_id')
    if not project_id:
        return jsonify({'error': 'project_id is required'}), 400
    if _repository.find_project(project_id) is None:
        return jsonify({'error': 'Project not found'}), 404

    session = _preview_service.start_session(project_id, user_id=data.get('user_id'))
    return jsonify({'success': True, 'session': session.to_dict()}), 201


@preview_bp.route('/api/preview/sessions/<session_id>', methods=['GET'])
def get_preview_session(session_id):
    """Get a preview session's current state"""
    session = _preview_service.get_session(session_id)
    if not session:
        return _session_not_found()
    return jsonify(session.to_dict())


@preview_bp.route('/api/projects/<project_id>/preview', methods=['GET'])
def get_project_preview_session(project_id):
    """Get the active preview session of a project"""
    session = _preview_service.get_project_session(project_id)
    if not session:
        return jsonify({'error': 'No active preview session'}), 404
    return jsonify(session.to_dict())


@preview_bp.route('/api/preview/sessions/<session_id>/channels', methods=['PUT'])
def update_preview_channel(session_id):
    """Override one fixture channel: {fixture_id, channel_index, value}"""
    data = request.get_json(silent=True) or {}

    fixture_id = data.get('fixture_id')
    try:
        channel_index = int(data.get('channel_index'))
        value = int(data.get('value'))
    except (TypeError, ValueError):
        return jsonify({'error': 'channel_index and value must be integers'}), 400
    if not fixture_id:
        return jsonify({'error': 'fixture_id is required'}), 400

    success = _preview_service.update_channel_value(session_id, fixture_id, channel_index, value)
    if not success:
        return jsonify({'error': 'Session or fixture not found'}), 404
    return jsonify({'success': True, 'session_id': session_id})


@preview_bp.route('/api/preview/sessions/<session_id>/scene', methods=['POST'])
def initialize_preview_with_scene(session_id):
    """Load a scene's values into the session: {scene_id}"""
    data = request.get_json(silent=True) or {}

    scene_id = data.get('scene_id')
    if not scene_id:
        return jsonify({'error': 'scene_id is required'}), 400

    success = _preview_service.initialize_with_scene(session_id, scene_id)
    if not success:
        return jsonify({'error': 'Session or scene not found'}), 404
    return jsonify({'success': True, 'session_id': session_id, 'scene_id': scene_id})


@preview_bp.route('/api/preview/sessions/<session_id>/commit', methods=['POST'])
def commit_preview_session(session_id):
    """Commit (end) a preview session"""
    if not _preview_service.commit_session(session_id):
        return _session_not_found()
    return jsonify({'success': True, 'session_id': session_id})


@preview_bp.route('/api/preview/sessions/<session_id>', methods=['DELETE'])
def cancel_preview_session(session_id):
    """Cancel a preview session and clear its overrides"""
    if not _preview_service.cancel_session(session_id):
        return _session_not_found()
    return jsonify({'success': True, 'session_id': session_id})


@preview_bp.route('/api/preview/sessions/<session_id>/output', methods=['GET'])
def get_preview_output(session_id):
    """DMX output of every universe the session touches"""
    outputs = _preview_service.get_dmx_output(session_id)
    if outputs is None:
        return _session_not_found()
    return jsonify({
        'session_id': session_id,
        'universes': [o.to_dict() for o in outputs],
    })


@preview_bp.route('/api/preview/status', methods=['GET'])
def get_preview_status():
    """Get preview service status"""
    return jsonify(_preview_service.get_status())
