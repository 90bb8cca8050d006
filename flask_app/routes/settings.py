"""
Settings routes: connection config, display formats, logs and cache control.
"""
import logging
from datetime import datetime, timezone

from flask import Blueprint, Response, jsonify, request

from flask_app.extensions import get_dashboard
from flask_app.logging_setup import LOG_LEVELS, get_log_level, set_log_level
from flask_app.services.cache_service import CacheService
from flask_app.utils.validators import validate_cache_name, validate_format_payload

logger = logging.getLogger(__name__)

settings_bp = Blueprint('settings', __name__)

LOG_FILENAME_TEMPLATE = 'plex-tautulli-dashboard-logs-{date}.txt'


# Connection configuration

@settings_bp.route('/config', methods=['GET'])
def get_config():
    """Stored connection settings for the settings screen."""
    config = get_dashboard().settings.get_config()
    return jsonify(config.to_dict())


@settings_bp.route('/config', methods=['POST'])
def update_config():
    """Partial update; empty values keep the stored ones."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid configuration data'}), 400

    try:
        config = get_dashboard().settings.update_config(data)
    except OSError as e:
        logger.exception("Failed to save configuration")
        return jsonify({'error': 'Failed to save configuration', 'message': str(e)}), 500

    logger.info("Received config update: %r", config)
    return jsonify({'status': 'ok', 'config': config.public_dict()})


@settings_bp.route('/reset-all', methods=['POST'])
def reset_all():
    """Reset connection settings, formats and saved sections."""
    dashboard = get_dashboard()
    try:
        dashboard.settings.reset()
        dashboard.formats.reset()
        dashboard.sections.reset()
    except OSError as e:
        logger.exception("Failed to reset configurations")
        return jsonify({
            'status': 'error',
            'message': 'Failed to reset configurations',
            'details': str(e),
        }), 500

    logger.info("All configurations have been reset")
    return jsonify({'status': 'success', 'message': 'All configurations reset successfully'})


# Display formats

@settings_bp.route('/formats', methods=['GET'])
def get_formats():
    return jsonify(get_dashboard().formats.get_formats())


@settings_bp.route('/formats', methods=['POST'])
def save_formats():
    """Replace the formats of one widget type."""
    data = request.get_json(silent=True)
    errors = validate_format_payload(data)
    if errors:
        return jsonify({'error': 'Invalid format data', 'message': errors[0]}), 400

    formats = get_dashboard().formats.update(data['type'], data['formats'])
    if formats is None:
        return jsonify({'error': 'Failed to save formats', 'message': 'Could not write formats file'}), 500
    return jsonify({'success': True, 'formats': formats})


# Logs

@settings_bp.route('/logs/level', methods=['GET'])
def get_level():
    return jsonify({'success': True, 'level': get_log_level()})


@settings_bp.route('/logs/level', methods=['POST'])
def set_level():
    data = request.get_json(silent=True) or {}
    level = data.get('level') if isinstance(data, dict) else None
    if not level or not isinstance(level, str):
        return jsonify({'success': False, 'message': 'Invalid or missing level parameter'}), 400

    if not set_log_level(level):
        return jsonify({
            'success': False,
            'message': 'Invalid log level',
            'validLevels': list(LOG_LEVELS),
        }), 400

    logger.info("Log level changed to %s", level.upper())
    return jsonify({'success': True, 'level': get_log_level()})


@settings_bp.route('/logs', methods=['GET'])
def get_logs():
    logs = get_dashboard().log_handler.get_logs()
    return jsonify({'success': True, 'logs': logs})


@settings_bp.route('/logs/clear', methods=['POST'])
def clear_logs():
    get_dashboard().log_handler.clear()
    logger.info("Logs cleared via API")
    return jsonify({'success': True})


@settings_bp.route('/logs/download', methods=['GET'])
def download_logs():
    text = get_dashboard().log_handler.export()
    filename = LOG_FILENAME_TEMPLATE.format(date=datetime.now(timezone.utc).strftime('%Y-%m-%d'))
    logger.info("Logs downloaded (%d bytes)", len(text))
    return Response(
        text,
        mimetype='text/plain',
        headers={'Content-Disposition': f'attachment; filename="{filename}"'},
    )


# Cache control

@settings_bp.route('/clear-cache', methods=['POST'])
def clear_cache():
    return jsonify(CacheService(get_dashboard()).clear_all())


@settings_bp.route('/users/clear-cache', methods=['POST'])
def clear_users_cache():
    return jsonify(CacheService(get_dashboard()).clear_user_history())


@settings_bp.route('/clear-cache/<cache_name>', methods=['POST'])
def clear_named_cache(cache_name):
    errors = validate_cache_name(cache_name)
    if errors:
        return jsonify({'error': 'Invalid cache type', 'message': errors[0]}), 400
    return jsonify(CacheService(get_dashboard()).clear_cache(cache_name))


@settings_bp.route('/clear-image-cache', methods=['GET'])
def clear_image_cache():
    response = jsonify(CacheService.image_cache_buster())
    response.headers['Cache-Control'] = 'no-store, no-cache, must-revalidate, proxy-revalidate'
    response.headers['Pragma'] = 'no-cache'
    response.headers['Expires'] = '0'
    return response


@settings_bp.route('/refresh-posters', methods=['POST'])
def refresh_posters():
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({'error': 'Invalid refresh request'}), 400

    try:
        payload = CacheService(get_dashboard()).refresh_posters(
            media_id=data.get('mediaId'),
            section_id=data.get('sectionId'),
        )
    except Exception as e:
        logger.exception("Failed to refresh posters")
        return jsonify({'error': 'Failed to refresh posters', 'message': str(e)}), 500
    return jsonify(payload)
