"""
Dashboard data routes: recently added, media, users, libraries, sections, downloads and health.
"""
import logging

from flask import Blueprint, jsonify, request

from flask_app.extensions import get_dashboard
from flask_app.services.downloads_service import DownloadsService
from flask_app.services.health_service import HealthService
from flask_app.services.library_service import LibraryService
from flask_app.services.media_service import DEFAULT_COUNT as MEDIA_DEFAULT_COUNT
from flask_app.services.media_service import LISTED_TYPES, MediaService, SectionNotFoundError
from flask_app.services.recently_added_service import DEFAULT_COUNT as RECENT_DEFAULT_COUNT
from flask_app.services.recently_added_service import RecentlyAddedService
from flask_app.services.users_service import DEFAULT_COUNT as USERS_DEFAULT_COUNT
from flask_app.services.users_service import UsersService
from flask_app.utils.validators import (
    parse_count,
    validate_media_type,
    validate_sections_payload,
    validate_service_name,
)
from plex_dashboard.api_client import UpstreamError

logger = logging.getLogger(__name__)

main_bp = Blueprint('main', __name__)

NO_CACHE_HEADERS = {
    'Cache-Control': 'no-cache, no-store, must-revalidate',
    'Pragma': 'no-cache',
    'Expires': '0',
}


def _upstream_error(error: str, e: Exception, status: int = 500):
    body = {'error': error, 'message': str(e)}
    detail = getattr(e, 'detail', None)
    if detail is not None:
        body['details'] = detail
    return jsonify(body), status


def _is_true(value) -> bool:
    return str(value).lower() == 'true'


@main_bp.route('/recent/<media_type>')
def recently_added(media_type):
    """Recently added items of one media type, newest first."""
    if validate_media_type(media_type):
        return jsonify({'error': 'Invalid media type'}), 400

    count = parse_count(request.args.get('count'), RECENT_DEFAULT_COUNT)
    try:
        payload = RecentlyAddedService(get_dashboard()).get_recent(
            media_type,
            section=request.args.get('section') or None,
            count=count,
            force_refresh=_is_true(request.args.get('refresh')),
        )
        return jsonify(payload)
    except UpstreamError as e:
        return _upstream_error('Failed to fetch library sections', e)
    except Exception as e:
        logger.exception("Error processing recently added media")
        return jsonify({'error': 'Failed to process recently added media', 'message': str(e)}), 500


@main_bp.route('/media/<media_type>')
def media(media_type):
    """Recently added movies or shows with their library statistics."""
    if validate_media_type(media_type, allowed=LISTED_TYPES):
        return jsonify({'error': 'Invalid media type'}), 400

    count = parse_count(request.args.get('count'), MEDIA_DEFAULT_COUNT)
    try:
        payload = MediaService(get_dashboard()).get_media(
            media_type,
            section=request.args.get('section') or None,
            count=count,
        )
        return jsonify(payload)
    except SectionNotFoundError:
        return jsonify({'error': 'Section not found'}), 404
    except Exception as e:
        logger.exception("Error fetching %s", media_type)
        return _upstream_error(f'Failed to fetch {media_type}', e)


@main_bp.route('/users')
def users():
    """Users ordered by activity with current or last played media."""
    count = parse_count(request.args.get('count'), USERS_DEFAULT_COUNT)
    try:
        payload = UsersService(get_dashboard()).get_users(
            count=count,
            force_refresh=_is_true(request.args.get('refresh')),
        )
        response = jsonify(payload)
    except Exception as e:
        logger.exception("Error processing users")
        response, status = _upstream_error('Failed to process users', e)
        response.status_code = status

    response.headers.update(NO_CACHE_HEADERS)
    return response


@main_bp.route('/libraries')
def libraries():
    """Library table with the library formats applied."""
    try:
        payload = LibraryService(get_dashboard()).get_libraries(
            media_type=request.args.get('mediaType') or None,
        )
        return jsonify(payload)
    except Exception as e:
        logger.exception("Error fetching libraries")
        return _upstream_error('Failed to fetch libraries', e)


@main_bp.route('/sections', methods=['GET'])
def get_sections():
    """Saved sections with the section formats applied."""
    try:
        return jsonify(LibraryService(get_dashboard()).get_saved_sections())
    except Exception as e:
        logger.exception("Error reading saved sections")
        return jsonify({'error': 'Failed to read saved sections', 'message': str(e)}), 500


@main_bp.route('/sections', methods=['POST'])
def save_sections():
    """Save the picked sections, enriched with library statistics."""
    data = request.get_json(silent=True)
    errors = validate_sections_payload(data)
    if errors:
        return jsonify({'error': 'Invalid sections data', 'message': errors[0]}), 400

    try:
        return jsonify(LibraryService(get_dashboard()).save_sections(data))
    except Exception as e:
        logger.exception("Error saving sections")
        return jsonify({'error': 'Failed to save sections', 'message': str(e)}), 500


@main_bp.route('/downloads')
def downloads():
    """Current Plex activities with the downloads formats applied."""
    try:
        return jsonify(DownloadsService(get_dashboard()).get_activities())
    except Exception as e:
        logger.exception("Error processing downloads")
        return _upstream_error('Failed to process downloads', e)


@main_bp.route('/health')
def health():
    """Health summary; ?check=true also contacts both services."""
    try:
        return jsonify(HealthService(get_dashboard()).health(check=_is_true(request.args.get('check'))))
    except Exception:
        logger.exception("Health API error")
        return jsonify({'status': 'error', 'error': 'Server error during health check'}), 500


@main_bp.route('/health/check-service', methods=['POST'])
def check_service():
    """Connectivity check of one service."""
    data = request.get_json(silent=True) or {}
    service = data.get('service') if isinstance(data, dict) else None
    errors = validate_service_name(service)
    if errors:
        return jsonify({'status': 'error', 'error': errors[0]}), 400

    try:
        return jsonify(HealthService(get_dashboard()).check_service(service))
    except Exception:
        logger.exception("Service check error")
        return jsonify({'status': 'error', 'message': 'Server error during service check'}), 500
