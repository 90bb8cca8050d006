"""
Flask application factory.
"""
import logging

from flask import Flask, request
from flask_cors import CORS

from flask_app.extensions import EXTENSION_KEY, DashboardContext
from flask_app.logging_setup import configure_logging
from flask_app.services.config_service import ConfigService
from flask_app.services.format_store import FormatStore
from flask_app.services.section_store import SectionStore
from plex_dashboard.cache import CacheSet
from plex_dashboard.config_loader import ConfigLoader
from plex_dashboard.refresh import RefreshCoordinator

logger = logging.getLogger(__name__)

CONFIG_CLASSES = {
    'development': 'flask_app.config.DevelopmentConfig',
    'production': 'flask_app.config.ProductionConfig',
    'testing': 'flask_app.config.TestingConfig',
}

PLEX_HEADERS = [
    'x-plex-client-identifier',
    'x-plex-product',
    'x-plex-version',
    'x-plex-platform',
    'x-plex-platform-version',
    'x-plex-device',
    'x-plex-device-name',
    'x-plex-token',
    'x-plex-language',
]


def create_app(config_name='development', test_config=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: 'development', 'production' or 'testing'
        test_config: Optional mapping applied on top of the config class
    """
    app = Flask(__name__)

    # Load configuration
    app.config.from_object(CONFIG_CLASSES.get(config_name, CONFIG_CLASSES['development']))
    if test_config:
        app.config.update(test_config)
    app.json.sort_keys = False

    log_handler = configure_logging(app.config['LOG_LEVEL'], app.config['LOG_BUFFER_SIZE'])

    CORS(
        app,
        origins=app.config['ALLOWED_ORIGINS'],
        supports_credentials=True,
        methods=['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS'],
        allow_headers=['Content-Type', 'Authorization', *PLEX_HEADERS],
    )

    config_dir = app.config['CONFIG_DIR']
    settings = ConfigService(ConfigLoader(config_dir), timeout=app.config['UPSTREAM_TIMEOUT'])
    formats = FormatStore(config_dir)
    sections = SectionStore(config_dir)
    for store in (settings.loader.store, formats.store, sections.store):
        store.ensure_exists()

    app.extensions[EXTENSION_KEY] = DashboardContext(
        settings=settings,
        formats=formats,
        sections=sections,
        caches=CacheSet.create(
            media_ttl=app.config['MEDIA_CACHE_TTL'],
            metadata_ttl=app.config['METADATA_CACHE_TTL'],
            history_ttl=app.config['HISTORY_CACHE_TTL'],
        ),
        refresher=RefreshCoordinator(max_workers=app.config['REFRESH_WORKERS']),
        log_handler=log_handler,
        upstream_timeout=app.config['UPSTREAM_TIMEOUT'],
        metadata_timeout=app.config['METADATA_TIMEOUT'],
        proxy_timeout=app.config['PROXY_TIMEOUT'],
    )

    @app.before_request
    def log_request():
        logger.debug("%s %s - Origin: %s", request.method, request.path, request.headers.get('Origin', 'none'))

    # Register blueprints
    from flask_app.routes.main import main_bp
    from flask_app.routes.proxy import proxy_bp
    from flask_app.routes.settings import settings_bp

    app.register_blueprint(main_bp, url_prefix='/api')
    app.register_blueprint(settings_bp, url_prefix='/api')
    app.register_blueprint(proxy_bp, url_prefix='/api')

    logger.info("Dashboard app created (config dir %s)", config_dir)
    return app
