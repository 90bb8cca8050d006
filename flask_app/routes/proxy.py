"""
Pass-through routes to the Plex and Tautulli servers (/api/plex/..., /api/tautulli/...).
"""
import logging

import requests
from flask import Blueprint, Response, jsonify, request

from flask_app.extensions import get_dashboard
from flask_app.services.proxy_service import SERVICE_NAMES, ProxyNotConfiguredError, ProxyService, redact_headers

logger = logging.getLogger(__name__)

proxy_bp = Blueprint('proxy', __name__)

PROXY_METHODS = ['GET', 'POST', 'PUT', 'DELETE']


def _proxy(service: str, path: str):
    dashboard = get_dashboard()
    name = SERVICE_NAMES[service]
    proxy = ProxyService(dashboard.settings.get_config(), timeout=dashboard.proxy_timeout)
    logger.debug("%s proxy: %s /%s headers=%s", name, request.method, path, redact_headers(request.headers))

    try:
        upstream = proxy.forward(
            service,
            path,
            request.method,
            params=request.args.items(multi=True),
            headers=request.headers.items(),
            body=request.get_data(),
            remote_addr=request.remote_addr,
        )
    except ProxyNotConfiguredError as e:
        return jsonify({
            'error': str(e),
            'detail': f"Please configure {name} URL in settings",
        }), 500
    except requests.RequestException as e:
        logger.error("%s proxy error: %s", name, e)
        return jsonify({
            'error': f"{name} Proxy Error",
            'message': str(e),
            'detail': f"Failed to proxy request to {name}. Please check your connection and settings.",
        }), 500

    return Response(upstream.content, status=upstream.status_code, headers=proxy.response_headers(upstream))


@proxy_bp.route('/plex/', defaults={'path': ''}, methods=PROXY_METHODS)
@proxy_bp.route('/plex/<path:path>', methods=PROXY_METHODS)
def plex_proxy(path):
    return _proxy('plex', path)


@proxy_bp.route('/tautulli/', defaults={'path': ''}, methods=PROXY_METHODS)
@proxy_bp.route('/tautulli/<path:path>', methods=PROXY_METHODS)
def tautulli_proxy(path):
    return _proxy('tautulli', path)
