"""
Project Export/Import Blueprint
Routes: /api/projects, /api/projects/<id>/export, /api/projects/import
Dependencies: repository, exporter, importer
"""

from flask import Blueprint, jsonify, request

from core.showfile import DocumentParseError, ImportOptions

project_io_bp = Blueprint('project_io', __name__)

_repository = None
_exporter = None
_importer = None


def init_app(repository, exporter, importer):
    """Initialize blueprint with required dependencies."""
    global _repository, _exporter, _importer
    _repository = repository
    _exporter = exporter
    _importer = importer


def _flag(name, default):
    """Query-string boolean: true/false/1/0/yes/no"""
    raw = request.args.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ('1', 'true', 'yes', 'on')


@project_io_bp.route('/api/projects', methods=['GET'])
def list_projects():
    """List all projects"""
    return jsonify([
        {'id': p.project_id, 'name': p.name, 'description': p.description,
         'created_at': p.created_at, 'updated_at': p.updated_at}
        for p in _repository.list_projects()
    ])


@project_io_bp.route('/api/projects/<project_id>/export', methods=['GET'])
def export_project(project_id):
    """
    Export a project as a show document.
    Query: fixtures, scenes, cueLists (default true), sceneBoards (default false)
    """
    result = _exporter.export_project(
        project_id,
        include_fixtures=_flag('fixtures', True),
        include_scenes=_flag('scenes', True),
        include_cue_lists=_flag('cueLists', True),
        include_scene_boards=_flag('sceneBoards', False),
    )
    if result is None:
        return jsonify({'error': 'Project not found'}), 404

    document, stats = result
    return jsonify({'document': document.to_dict(), 'stats': stats.to_dict()})


@project_io_bp.route('/api/projects/import', methods=['POST'])
def import_project():
    """
    Import a show document.
    Body: {document: <JSON string or object>, options: {mode, targetProjectId,
           projectName, fixtureConflictStrategy, importBuiltInFixtures}}
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or data.get('document') is None:
        return jsonify({'success': False, 'error': 'document is required'}), 400

    try:
        options = ImportOptions.from_dict(data.get('options') or {})
    except ValueError as e:
        return jsonify({'success': False, 'error': f'Invalid options: {e}'}), 400

    try:
        result = _importer.import_project(data['document'], options)
    except DocumentParseError as e:
        return jsonify({'success': False, 'error': str(e)}), 400

    if result.is_noop:
        return jsonify({'success': False, 'error': 'Target project not found'}), 404

    return jsonify({'success': True, **result.to_dict()})
